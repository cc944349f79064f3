"""
Data models for CalcFlow workspaces
"""

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Hashable, Optional, Union
from enum import Enum


class ErrorKind(str, Enum):
    """Terminal, propagating non-numeric result states."""
    ERROR = "Error"
    SELF_REFERENCE = "Self Reference"
    CIRCULAR_DEPENDENCY = "Circular Dependency"

    def __str__(self) -> str:
        return self.value


Result = Union[float, ErrorKind]

ERROR_VALUES = frozenset(kind.value for kind in ErrorKind)


def is_error_result(value: Any) -> bool:
    """Check whether a node result is one of the error kinds."""
    return isinstance(value, str) and str(value) in ERROR_VALUES


def as_error_kind(value: Any) -> Optional[ErrorKind]:
    """Map a result (enum member or plain string) to its ErrorKind."""
    if is_error_result(value):
        return ErrorKind(str(value))
    return None


@dataclass
class NodeRecord:
    """Bookkeeping the dependency graph keeps for one node."""
    node_id: Hashable
    header: str = ""
    result: Result = 0.0
    update_callback: Optional[Callable[[], Any]] = None
    metadata: Dict[str, Any] = field(default_factory=dict)

    @property
    def has_error(self) -> bool:
        """Check if the node currently holds an error kind."""
        return is_error_result(self.result)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            'node_id': self.node_id,
            'header': self.header,
            'result': self.result.value if isinstance(self.result, ErrorKind) else self.result,
            'metadata': self.metadata
        }


@dataclass
class WorkspaceRecord:
    """One entry of the persisted/exported workspace layout."""
    header: Optional[str] = None
    expression: str = ""

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'WorkspaceRecord':
        """Build a record; a null header is left for the workspace to generate."""
        header = data.get('header')
        expression = data.get('expression')
        return cls(
            header=None if header is None else str(header),
            expression='' if expression is None else str(expression)
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            'header': self.header,
            'expression': self.expression
        }


@dataclass(frozen=True)
class Suggestion:
    """Autocomplete candidate: a function, constant or node header."""
    label: str
    kind: str  # function, constant, node


__all__ = [
    'ErrorKind',
    'Result',
    'ERROR_VALUES',
    'is_error_result',
    'as_error_kind',
    'NodeRecord',
    'WorkspaceRecord',
    'Suggestion'
]
