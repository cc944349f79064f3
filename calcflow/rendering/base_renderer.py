"""
Base classes for LaTeX rendering
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional, Tuple

from ..config import RenderConfig
from ..parser import ASTNode, BinaryOp, COMPOUND_NODES


@dataclass(frozen=True)
class LatexContext:
    """Neighbouring nodes handed to registry latex rules."""
    left_node: Optional[ASTNode] = None
    right_node: Optional[ASTNode] = None
    expr_node: Optional[ASTNode] = None
    args_nodes: Tuple[ASTNode, ...] = ()

    @staticmethod
    def wrap_parens(latex: str) -> str:
        return '\\left(' + latex + '\\right)'

    @staticmethod
    def needs_parens(node: Optional[ASTNode]) -> bool:
        """Power bases are wrapped only when they are binary operations."""
        return isinstance(node, BinaryOp)

    @staticmethod
    def is_complex_node(node: Optional[ASTNode]) -> bool:
        return isinstance(node, COMPOUND_NODES)


class BaseLatexRenderer(ABC):
    """Base class for expression-to-LaTeX renderers."""

    # Renderers that may take long run in the executor
    blocking = False

    def __init__(self, config: Optional[RenderConfig] = None):
        self.config = config or RenderConfig()

    def is_available(self) -> bool:
        """Check if renderer can be used."""
        return True

    @abstractmethod
    def render(self, expression: str) -> str:
        """Render expression text as LaTeX (left-hand side only)."""
        pass


__all__ = [
    'LatexContext',
    'BaseLatexRenderer'
]
