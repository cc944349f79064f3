import asyncio
import logging
from typing import Any, List, Optional

from ..config import RenderConfig
from ..exceptions import DelegateError
from ..parser import ASTNode, ExpressionParser
from ..registry import MathRegistry
from ..tokenizer import Tokenizer
from .ast_renderer import AstLatexRenderer
from .base_renderer import BaseLatexRenderer, LatexContext
from .result_formatter import ResultFormatter, js_number_string
from .sympy_renderer import SymPyLatexRenderer


logger = logging.getLogger(__name__)


class LatexRenderer:
    """Main interface for turning expressions and results into LaTeX."""

    def __init__(self, registry: MathRegistry, tokenizer: Optional[Tokenizer] = None,
                 parser: Optional[ExpressionParser] = None, config: Optional[RenderConfig] = None):
        self.config = config or RenderConfig()
        self.tokenizer = tokenizer or Tokenizer(registry)

        self.ast_renderer = AstLatexRenderer(registry, self.tokenizer, parser, self.config)
        self.formatter = ResultFormatter(self.config)

        # Tried in order, the AST renderer always last
        self.renderers: List[BaseLatexRenderer] = []
        if self.config.use_external_library:
            self.renderers.append(SymPyLatexRenderer(registry, self.tokenizer, self.config))
        self.renderers.append(self.ast_renderer)

    def ast_to_latex(self, node: Optional[ASTNode]) -> str:
        return self.ast_renderer.ast_to_latex(node)

    def format_result_latex(self, value: Any) -> str:
        return self.formatter.format_result_latex(value)

    def expression_to_latex(self, expression: Optional[str]) -> str:
        """Render the left-hand side, falling back through the renderers."""
        text = str(expression or '')
        for renderer in self.renderers:
            if not renderer.is_available():
                continue
            try:
                return renderer.render(text)
            except DelegateError as e:
                logger.debug(f"{renderer.__class__.__name__} failed, falling back: {e}")
        return self.ast_renderer.render(text)

    async def latex_from_expression(self, expression: Optional[str], result: Any) -> str:
        """Build ``<expression> = <result>`` without blocking the event loop."""
        text = str(expression or '')
        loop = asyncio.get_running_loop()
        left = None

        for renderer in self.renderers:
            if not renderer.is_available():
                continue
            try:
                if renderer.blocking:
                    left = await loop.run_in_executor(None, renderer.render, text)
                else:
                    left = renderer.render(text)
                break
            except DelegateError as e:
                logger.debug(f"{renderer.__class__.__name__} failed, falling back: {e}")

        if left is None:
            left = self.ast_renderer.render(text)
        return left + ' = ' + self.format_result_latex(result)


__all__ = [
    'LatexRenderer',
    'LatexContext',
    'BaseLatexRenderer',
    'AstLatexRenderer',
    'SymPyLatexRenderer',
    'ResultFormatter',
    'js_number_string'
]
