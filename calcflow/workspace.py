"""
Workspace of named expression nodes kept consistent through the dependency graph
"""

import itertools
import logging
import regex
from typing import Any, Dict, Iterable, List, Optional, Tuple

from .calculation import NodeCalculator
from .config import WorkspaceConfig
from .engine import MathEngine
from .exceptions import MalformedPersistedInput
from .graph import DependencyGraph
from .models import Result, Suggestion, WorkspaceRecord
from .scheduling import Scheduler


logger = logging.getLogger(__name__)

IDENTIFIER_AT_END = regex.compile(r'[A-Za-z_][A-Za-z0-9_]*$')
EMPTY_CALL = regex.compile(r'\(\s*\)')


class Workspace:
    """Collection of nodes whose results follow their expressions and each other.

    Mutating operations are coroutines and must run inside an event loop;
    propagation to dependents continues in the background until
    :meth:`settle` is awaited.
    """

    def __init__(self, config: Optional[WorkspaceConfig] = None, engine: Optional[MathEngine] = None):
        """Initialize workspace with configuration."""
        self.config = config or WorkspaceConfig()

        # Setup logging
        if self.config.verbose:
            logging.basicConfig(level=logging.INFO)
        if self.config.debug:
            logging.basicConfig(level=logging.DEBUG)

        self.engine = engine or MathEngine(evaluation=self.config.evaluation, render=self.config.render)
        self.scheduler = Scheduler()
        self.graph = DependencyGraph(self.scheduler)
        self.calculators: Dict[str, NodeCalculator] = {}
        self._ids = itertools.count(1)

    # Nodes

    @property
    def node_ids(self) -> List[str]:
        return list(self.calculators)

    def header_of(self, node_id: str) -> Optional[str]:
        record = self.graph.get_node(node_id)
        return record.header if record is not None else None

    def expression_of(self, node_id: str) -> str:
        return self._calculator(node_id).expression

    def result_of(self, node_id: str) -> Result:
        """Current result of a node (a number or an error kind)."""
        return self._calculator(node_id).result

    def find(self, header: str) -> Optional[str]:
        """Id of the first node with this header."""
        record = self.graph.get_node_by_header(header)
        return record.node_id if record is not None else None

    async def add_node(self, header: Optional[str] = None, expression: str = '') -> str:
        """Create a node, compute it and re-resolve nodes that mention its header."""
        node_id = self._create(header, expression)
        await self.calculators[node_id].recalculate()
        await self._reresolve([self.header_of(node_id)], skip=node_id)
        return node_id

    async def set_expression(self, node_id: str, expression: str) -> Result:
        """Replace a node's expression and recompute it now."""
        calculator = self._calculator(node_id)
        self.scheduler.cancel(node_id)
        calculator.expression = expression or ''
        return await calculator.recalculate()

    def edit_expression(self, node_id: str, expression: str):
        """Replace a node's expression, recomputing after the debounce delay.

        Meant for keystroke-level edits: only the last edit of a burst is
        evaluated.
        """
        calculator = self._calculator(node_id)
        calculator.expression = expression or ''
        calculator.debounced_recalculate()

    async def rename_node(self, node_id: str, header: str):
        """Change a node's header; nodes referring to the old or new name re-resolve."""
        old_header = self.header_of(node_id)
        self._calculator(node_id)
        self.graph.update_node(node_id, header=header)
        logger.info(f"Renamed node {node_id!r}: {old_header!r} -> {header!r}")
        await self._reresolve([old_header, header])

    async def remove_node(self, node_id: str):
        """Delete a node; its former dependents re-resolve without it."""
        self._calculator(node_id)
        header = self.header_of(node_id)
        dependents = self.graph.get_dependents(node_id)

        self.scheduler.cancel(node_id)
        self.graph.unregister_node(node_id)
        del self.calculators[node_id]
        logger.info(f"Removed node {node_id!r} ({header!r})")

        await self._reresolve([header], extra=dependents)

    async def clear(self):
        """Remove every node."""
        self.scheduler.cancel_all()
        for node_id in list(self.calculators):
            self.graph.unregister_node(node_id)
        self.calculators.clear()

    async def latex_of(self, node_id: str) -> str:
        """``<expression> = <result>`` for display."""
        calculator = self._calculator(node_id)
        return await self.engine.latex_from_expression(calculator.expression, calculator.result)

    async def settle(self):
        """Wait for pending debounced edits and propagation to finish."""
        await self.scheduler.settle()

    # Import / export

    async def load_records(self, records: Any, replace: bool = True) -> List[str]:
        """Load ``[{header, expression}, ...]`` records.

        All nodes are registered before any is computed, so references to
        records further down the list resolve.

        Raises:
            MalformedPersistedInput: The top level is not a list, or an entry
                is not a mapping
        """
        if not isinstance(records, list):
            raise MalformedPersistedInput(f"Expected a list of records, got {type(records).__name__}")
        parsed = []
        for index, entry in enumerate(records):
            if not isinstance(entry, dict):
                raise MalformedPersistedInput(f"Record {index} is not a mapping: {entry!r}")
            parsed.append(WorkspaceRecord.from_dict(entry))

        if replace:
            await self.clear()

        node_ids = [self._create(record.header, record.expression) for record in parsed]
        for node_id in node_ids:
            await self.calculators[node_id].recalculate()

        logger.info(f"Loaded {len(node_ids)} nodes")
        return node_ids

    def export_records(self) -> List[Dict[str, str]]:
        """Nodes as ``{header, expression}`` records, in creation order."""
        return [
            WorkspaceRecord(self.header_of(node_id), calculator.expression).to_dict()
            for node_id, calculator in self.calculators.items()
        ]

    # Autocomplete

    def suggestions(self, prefix: Optional[str]) -> List[Suggestion]:
        """Functions, then constants, then node headers starting with ``prefix``."""
        p = str(prefix or '').lower()
        if not p:
            return []

        registry = self.engine.registry
        items = [Suggestion(name, 'function') for name in registry.function_names()
                 if name.lower().startswith(p)]
        items += [Suggestion(name, 'constant') for name in registry.constant_names()
                  if name.lower().startswith(p)]
        headers = dict.fromkeys(record.header for record in self.graph.nodes.values() if record.header)
        items += [Suggestion(header, 'node') for header in headers if header.lower().startswith(p)]
        return items[:self.config.suggestion_limit]

    def current_prefix(self, text: Optional[str], cursor: Optional[int] = None) -> str:
        """Identifier being typed just before ``cursor`` (end of text by default)."""
        text = str(text or '')
        before = text[:len(text) if cursor is None else cursor]
        match = IDENTIFIER_AT_END.search(before)
        return match.group() if match else ''

    def apply_suggestion(self, text: Optional[str], suggestion: Suggestion,
                         cursor: Optional[int] = None) -> Tuple[str, int]:
        """Replace the prefix at ``cursor`` with a suggestion.

        Functions also get an argument placeholder, ``( )`` or ``( , )`` by
        arity, unless a call with arguments already follows.

        Returns:
            The new text and the caret position
        """
        text = str(text or '')
        pos = len(text) if cursor is None else cursor
        prefix = self.current_prefix(text, pos)
        start = pos - len(prefix)
        label_end = start + len(suggestion.label)
        new_text = text[:start] + suggestion.label + text[pos:]

        if suggestion.kind != 'function':
            return new_text, label_end

        definition = self.engine.registry.get_function(suggestion.label)
        arity = definition.min_arity if definition is not None else 1
        placeholder = '( , )' if arity > 1 else '( )'
        tail = new_text[label_end:]

        if not tail.startswith('('):
            return new_text[:label_end] + placeholder + tail, label_end + 1
        empty_call = EMPTY_CALL.match(tail)
        if empty_call:
            return new_text[:label_end] + placeholder + tail[empty_call.end():], label_end + 1
        return new_text, label_end

    def next_slot(self, text: Optional[str], cursor: int) -> Optional[int]:
        """Caret position after Tab inside a call: the next argument, then past ')'."""
        text = str(text or '')
        open_paren = text.rfind('(', 0, cursor + 1)
        if open_paren == -1:
            return None
        comma = text.find(',', open_paren)
        close = text.find(')', open_paren)
        if close == -1:
            return None
        if comma != -1 and cursor <= comma:
            return comma + 2
        if cursor <= close:
            return close + 1
        return None

    # Internals

    def _calculator(self, node_id: str) -> NodeCalculator:
        try:
            return self.calculators[node_id]
        except KeyError:
            raise KeyError(f"Unknown node: {node_id!r}") from None

    def _create(self, header: Optional[str], expression: str) -> str:
        node_id = f"node-{next(self._ids)}"
        if header is None:
            header = self._next_header()

        calculator = NodeCalculator(
            node_id,
            self.graph,
            self.engine.evaluator,
            tokenizer=self.engine.tokenizer,
            config=self.config.evaluation,
            expression=expression or '',
            debounce_delay=self.config.debounce_delay
        )
        self.graph.register_node(node_id, header=header, result=0.0, update_callback=calculator.recalculate)
        self.calculators[node_id] = calculator
        logger.debug(f"Created node {node_id!r} ({header!r})")
        return node_id

    def _next_header(self) -> str:
        n = len(self.calculators) + 1
        while self.graph.get_node_by_header(f"Node{n}") is not None:
            n += 1
        return f"Node{n}"

    async def _reresolve(self, headers: Iterable[Optional[str]], skip: Optional[str] = None,
                         extra: Iterable[str] = ()):
        """Recompute nodes whose expressions mention any of the headers."""
        names = {h for h in headers if h}
        targets = list(dict.fromkeys(extra))
        for node_id, calculator in self.calculators.items():
            if node_id == skip or node_id in targets:
                continue
            if names.intersection(self.engine.tokenizer.references(calculator.expression)):
                targets.append(node_id)

        for node_id in targets:
            calculator = self.calculators.get(node_id)
            if calculator is not None:
                await calculator.recalculate()


__all__ = ['Workspace']
