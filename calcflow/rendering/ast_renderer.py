import logging
from typing import List, Optional

from ..config import RenderConfig
from ..parser import (
    ASTNode,
    BinaryOp,
    Constant,
    ExpressionParser,
    Function,
    Group,
    Number,
    Reference,
    UnaryOp
)
from ..registry import MathRegistry
from ..tokenizer import Tokenizer
from .base_renderer import BaseLatexRenderer, LatexContext


logger = logging.getLogger(__name__)


class AstLatexRenderer(BaseLatexRenderer):
    """Render the parser's AST with the registry's latex rules."""

    # Used when a function has no registry entry
    FALLBACK_FUNCTIONS = {
        'sin': '\\sin',
        'cos': '\\cos',
        'tan': '\\tan',
        'ln': '\\ln',
        'asin': '\\arcsin',
        'acos': '\\arccos',
        'atan': '\\arctan',
    }

    def __init__(self, registry: MathRegistry, tokenizer: Optional[Tokenizer] = None,
                 parser: Optional[ExpressionParser] = None, config: Optional[RenderConfig] = None):
        super().__init__(config)
        self.registry = registry
        self.tokenizer = tokenizer or Tokenizer(registry)
        self.parser = parser or ExpressionParser()

    def render(self, expression: str) -> str:
        return self.ast_to_latex(self.parser.parse(self.tokenizer.tokenize(expression)))

    def ast_to_latex(self, node: Optional[ASTNode]) -> str:
        """Convert an AST node into LaTeX."""
        if node is None:
            return ''

        if isinstance(node, Number):
            return str(node.value)

        if isinstance(node, Reference):
            return node.name

        if isinstance(node, Constant):
            return '\\pi' if node.name == 'pi' else node.name

        if isinstance(node, UnaryOp):
            return self._unary_to_latex(node)

        if isinstance(node, BinaryOp):
            return self._binary_to_latex(node)

        if isinstance(node, Group):
            return LatexContext.wrap_parens(self.ast_to_latex(node.expr))

        if isinstance(node, Function):
            return self._function_to_latex(node)

        logger.debug(f"No LaTeX rule for node {node!r}")
        return ''

    def _unary_to_latex(self, node: UnaryOp) -> str:
        inner = self.ast_to_latex(node.expr)
        definition = self.registry.get_unary_operator(node.op)
        if definition is not None and definition.latex is not None:
            return definition.latex(inner, ctx=LatexContext(expr_node=node.expr))
        if LatexContext.is_complex_node(node.expr):
            return node.op + LatexContext.wrap_parens(inner)
        return node.op + inner

    def _binary_to_latex(self, node: BinaryOp) -> str:
        left = self.ast_to_latex(node.left)
        right = self.ast_to_latex(node.right)
        definition = self.registry.get_operator(node.op)
        if definition is not None and definition.latex is not None:
            ctx = LatexContext(left_node=node.left, right_node=node.right)
            return definition.latex(left, right, ctx=ctx)
        symbol = '\\cdot' if node.op == '*' else node.op
        return f"{left} {symbol} {right}"

    def _function_to_latex(self, node: Function) -> str:
        args: List[str] = [self.ast_to_latex(arg) for arg in node.args]
        definition = self.registry.get_function(node.name)

        if definition is not None and definition.latex is not None:
            ctx = LatexContext(args_nodes=tuple(node.args))
            # Missing arguments render empty
            if definition.arity == 1:
                return definition.latex(_arg(args, 0), ctx=ctx)
            if definition.arity == 2:
                return definition.latex(_arg(args, 0), _arg(args, 1), ctx=ctx)
            return definition.latex(*args, ctx=ctx)

        if node.name in self.FALLBACK_FUNCTIONS:
            return self.FALLBACK_FUNCTIONS[node.name] + LatexContext.wrap_parens(_arg(args, 0))

        return node.name + LatexContext.wrap_parens(',\\,'.join(args))


def _arg(args: List[str], index: int) -> str:
    return args[index] if index < len(args) else ''


__all__ = ['AstLatexRenderer']
