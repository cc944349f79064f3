"""
Dependency graph between workspace nodes
"""

import inspect
import logging
from dataclasses import fields, replace
from typing import Any, Callable, Dict, Hashable, List, Optional, Set

from .models import NodeRecord
from .scheduling import Scheduler


logger = logging.getLogger(__name__)


Listener = Callable[[Hashable, NodeRecord], None]

RECORD_FIELDS = frozenset(f.name for f in fields(NodeRecord)) - {'node_id', 'metadata'}


class DependencyGraph:
    """Node table plus mirrored dependency edges.

    ``dependents[X]`` holds the nodes that recompute when X changes and
    ``dependencies[Y]`` the nodes Y reads from; both are always kept in sync.
    """

    def __init__(self, scheduler: Optional[Scheduler] = None):
        self.scheduler = scheduler or Scheduler()
        self.nodes: Dict[Hashable, NodeRecord] = {}
        self.dependents: Dict[Hashable, Set[Hashable]] = {}
        self.dependencies: Dict[Hashable, Set[Hashable]] = {}
        self._listeners: List[Listener] = []

    # Node table

    def register_node(self, node_id: Hashable, **data) -> NodeRecord:
        """Add or replace a node record, keeping existing edges."""
        record = NodeRecord(node_id=node_id)
        self._apply(record, data)
        self.nodes[node_id] = record
        self.dependents.setdefault(node_id, set())
        self.dependencies.setdefault(node_id, set())
        logger.debug(f"Registered node {node_id!r} ({record.header!r})")
        return record

    def unregister_node(self, node_id: Hashable):
        """Remove a node and every edge touching it."""
        for dependent in self.dependents.get(node_id, set()):
            self.dependencies.get(dependent, set()).discard(node_id)
        for dependency in self.dependencies.get(node_id, set()):
            self.dependents.get(dependency, set()).discard(node_id)

        self.nodes.pop(node_id, None)
        self.dependents.pop(node_id, None)
        self.dependencies.pop(node_id, None)
        logger.debug(f"Unregistered node {node_id!r}")

    def update_node(self, node_id: Hashable, **changes) -> Optional[NodeRecord]:
        """Merge changes into a registered node; unknown ids are ignored."""
        record = self.nodes.get(node_id)
        if record is None:
            return None
        record = replace(record, metadata=dict(record.metadata))
        self._apply(record, changes)
        self.nodes[node_id] = record
        return record

    @staticmethod
    def _apply(record: NodeRecord, data: Dict[str, Any]):
        for key, value in data.items():
            if key in RECORD_FIELDS:
                setattr(record, key, value)
            elif key == 'metadata':
                record.metadata.update(value or {})
            else:
                record.metadata[key] = value

    def get_node(self, node_id: Hashable) -> Optional[NodeRecord]:
        return self.nodes.get(node_id)

    def get_node_by_header(self, header: str) -> Optional[NodeRecord]:
        """First registered node whose header matches exactly."""
        for record in self.nodes.values():
            if record.header == header:
                return record
        return None

    # Edges

    def add_dependency(self, dependent: Hashable, dependency: Hashable):
        """Record that ``dependent`` reads ``dependency``."""
        if dependent == dependency:
            raise ValueError(f"Node {dependent!r} cannot depend on itself")
        self.dependents.setdefault(dependency, set()).add(dependent)
        self.dependencies.setdefault(dependent, set()).add(dependency)

    def remove_dependency(self, dependent: Hashable, dependency: Hashable):
        self.dependents.get(dependency, set()).discard(dependent)
        self.dependencies.get(dependent, set()).discard(dependency)

    def get_dependents(self, node_id: Hashable) -> List[Hashable]:
        return list(self.dependents.get(node_id, ()))

    def get_dependencies(self, node_id: Hashable) -> List[Hashable]:
        return list(self.dependencies.get(node_id, ()))

    # Traversals

    def detect_circular_dependency(self, node_id: Hashable) -> bool:
        """Check whether a cycle is reachable from a node along its dependencies.

        Iterative white/gray/black depth-first search, so long chains do not
        hit the recursion limit.
        """
        gray: Set[Hashable] = set()
        black: Set[Hashable] = set()
        stack = [(node_id, iter(self.dependencies.get(node_id, ())))]
        gray.add(node_id)

        while stack:
            current, children = stack[-1]
            for child in children:
                if child in gray:
                    logger.debug(f"Cycle found from {node_id!r} at {child!r}")
                    return True
                if child not in black:
                    gray.add(child)
                    stack.append((child, iter(self.dependencies.get(child, ()))))
                    break
            else:
                stack.pop()
                gray.discard(current)
                black.add(current)

        return False

    def get_topological_order(self) -> List[Hashable]:
        """Every node after all of its dependencies (postorder over dependencies).

        Nodes on a cycle still appear exactly once.
        """
        visited: Set[Hashable] = set()
        order: List[Hashable] = []

        for root in self.nodes:
            if root in visited:
                continue
            visited.add(root)
            stack = [(root, iter(self.dependencies.get(root, ())))]
            while stack:
                current, children = stack[-1]
                for child in children:
                    if child not in visited:
                        visited.add(child)
                        stack.append((child, iter(self.dependencies.get(child, ()))))
                        break
                else:
                    stack.pop()
                    order.append(current)

        return order

    def propagation_closure(self, node_id: Hashable) -> Set[Hashable]:
        """Nodes transitively depending on ``node_id``, excluding itself."""
        visited: Set[Hashable] = set()
        stack = [node_id]
        while stack:
            current = stack.pop()
            for dependent in self.dependents.get(current, ()):
                if dependent not in visited:
                    visited.add(dependent)
                    stack.append(dependent)
        visited.discard(node_id)
        return visited

    def trigger_dependent_updates(self, node_id: Hashable) -> List[Hashable]:
        """Schedule update callbacks of every node depending on ``node_id``.

        Callbacks run after the current turn, one after another, in
        topological order. Listeners are notified immediately.

        Returns:
            Ids of the nodes in the closure, in the order they will update
        """
        closure = self.propagation_closure(node_id)
        index = {nid: i for i, nid in enumerate(self.get_topological_order())}
        ordered = sorted(closure, key=lambda nid: index.get(nid, len(index)))

        record = self.nodes.get(node_id)
        for listener in list(self._listeners):
            listener(node_id, record)

        # Snapshot the callbacks now, as they are when the change happened
        callbacks = []
        for nid in ordered:
            node = self.nodes.get(nid)
            if node is not None and node.update_callback is not None:
                callbacks.append((nid, node.update_callback))

        if callbacks:
            logger.debug(f"Propagating {node_id!r} to {[nid for nid, _ in callbacks]}")
            self.scheduler.schedule(self._run_callbacks(callbacks))
        return ordered

    async def _run_callbacks(self, callbacks):
        for nid, callback in callbacks:
            try:
                outcome = callback()
                if inspect.isawaitable(outcome):
                    await outcome
            except Exception:
                logger.exception(f"Update callback for node {nid!r} failed")

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Call ``listener(node_id, record)`` whenever a node propagates a change."""
        self._listeners.append(listener)

        def unsubscribe():
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe


__all__ = [
    'DependencyGraph',
    'Listener'
]
