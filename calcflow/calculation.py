"""
Recalculation of a single node against the dependency graph
"""

import json
import logging
import math
from typing import Any, Hashable, List, Optional, Tuple

import numpy as np

from .config import EvaluationConfig
from .evaluator import ExpressionEvaluator
from .graph import DependencyGraph
from .models import ErrorKind, Result, as_error_kind
from .tokenizer import TokenType, Tokenizer


logger = logging.getLogger(__name__)


def round_result(value: float, precision: int = 6) -> float:
    """Round half up to ``precision`` decimals.

    Values too large to scale are returned unchanged.
    """
    factor = 10.0 ** precision
    with np.errstate(all='ignore'):
        scaled = np.float64(value) * factor
        if not np.isfinite(scaled):
            return float(value)
        return float(np.floor(scaled + 0.5) / factor)


class NodeCalculator:
    """Keeps one node's result in step with its expression and dependencies.

    The calculator owns the node's outgoing edges: every recalculation
    re-reads the references of the expression and rewires the graph.
    """

    def __init__(self, node_id: Hashable, graph: DependencyGraph, evaluator: ExpressionEvaluator,
                 tokenizer: Optional[Tokenizer] = None, config: Optional[EvaluationConfig] = None,
                 expression: str = '', debounce_delay: float = 0.1):
        self.node_id = node_id
        self.graph = graph
        self.evaluator = evaluator
        self.tokenizer = tokenizer or evaluator.tokenizer
        self.config = config or EvaluationConfig()
        self.expression = expression
        self.debounce_delay = debounce_delay

        self.result: Result = 0.0
        self.current_dependencies: List[Hashable] = []
        self.last_fingerprint: Optional[str] = None
        self.last_result: Optional[Result] = None
        # Last unresolved state pushed to dependents, stops cycles re-triggering
        self._published: Optional[Tuple[str, Result]] = None

    def update_dependencies(self) -> bool:
        """Rewire the node's edges from the references in its expression.

        Returns:
            False when the node refers to itself or sits on a cycle, in which
            case the result has already been set to the matching error kind.
        """
        found = {}
        for token in self.tokenizer.tokenize(self.expression):
            if token.type != TokenType.REFERENCE:
                continue
            record = self.graph.get_node_by_header(token.value)
            if record is None:
                continue
            if record.node_id == self.node_id:
                for dependency in self.current_dependencies:
                    self.graph.remove_dependency(self.node_id, dependency)
                self.current_dependencies = []
                self._set_result(ErrorKind.SELF_REFERENCE)
                return False
            found.setdefault(record.node_id, None)

        for dependency in self.current_dependencies:
            self.graph.remove_dependency(self.node_id, dependency)
        for dependency in found:
            self.graph.add_dependency(self.node_id, dependency)
        self.current_dependencies = list(found)

        if self.graph.detect_circular_dependency(self.node_id):
            # Edges stay so the error state reaches the whole cycle
            self._set_result(ErrorKind.CIRCULAR_DEPENDENCY)
            return False
        return True

    def fingerprint(self) -> str:
        """Cache key: expression text plus the current dependency results."""
        results = []
        for dependency in self.current_dependencies:
            record = self.graph.get_node(dependency)
            results.append(_json_value(record.result) if record is not None else 0)
        return self.expression + json.dumps(results)

    async def recalculate(self) -> Result:
        """Bring the node up to date and propagate to its dependents."""
        if self.graph.get_node(self.node_id) is None:
            logger.debug(f"Node {self.node_id!r} is no longer registered, skipping")
            return self.result

        resolved = self.update_dependencies()
        fingerprint = self.fingerprint()

        if not resolved:
            self.last_fingerprint = None
            self.last_result = None
            if self._published == (fingerprint, self.result):
                return self.result
            self._published = (fingerprint, self.result)
            self.graph.trigger_dependent_updates(self.node_id)
            return self.result

        if fingerprint == self.last_fingerprint and self.last_result is not None:
            logger.debug(f"Node {self.node_id!r} unchanged, reusing {self.last_result!r}")
            self.result = self.last_result
            return self.result

        scope = {}
        for dependency in self.current_dependencies:
            record = self.graph.get_node(dependency)
            if record is None:
                continue
            kind = as_error_kind(record.result)
            if kind is not None:
                self._publish(kind, fingerprint)
                return kind
            scope[record.header] = record.result

        value = await self.evaluator.evaluate(self.expression, scope)
        self._publish(self._finalize(value), fingerprint)
        return self.result

    def debounced_recalculate(self):
        """Recalculate once edits have paused for the debounce delay."""
        self.graph.scheduler.debounce(self.node_id, self.debounce_delay, self.recalculate)

    def _finalize(self, value: Any) -> Result:
        if isinstance(value, str) or value is None:
            return ErrorKind.ERROR
        value = float(value)
        if not math.isfinite(value):
            return ErrorKind.ERROR
        return round_result(value, self.config.result_precision)

    def _set_result(self, result: Result):
        self.result = result
        self.graph.update_node(self.node_id, result=result)

    def _publish(self, result: Result, fingerprint: str):
        self.last_fingerprint = fingerprint
        self.last_result = result
        self._published = None
        self._set_result(result)
        self.graph.trigger_dependent_updates(self.node_id)


def _json_value(value: Any) -> Any:
    kind = as_error_kind(value)
    if kind is not None:
        return kind.value
    return value


__all__ = [
    'NodeCalculator',
    'round_result'
]
