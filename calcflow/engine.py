"""
Expression engine: one registry shared by tokenizer, parser, evaluator and renderer
"""

import logging
from typing import Any, List, Optional, Sequence, Union

from .config import EvaluationConfig, RenderConfig
from .evaluator import ExpressionEvaluator, Scope
from .models import Result
from .parser import ASTNode, ExpressionParser
from .registry import MathRegistry, create_default_registry
from .rendering import LatexRenderer
from .tokenizer import Token, Tokenizer


logger = logging.getLogger(__name__)


class MathEngine:
    """Main interface for tokenizing, evaluating and rendering expressions."""

    def __init__(self, registry: Optional[MathRegistry] = None,
                 evaluation: Optional[EvaluationConfig] = None,
                 render: Optional[RenderConfig] = None):
        self.registry = registry or create_default_registry()
        self.evaluation_config = evaluation or EvaluationConfig()
        self.render_config = render or RenderConfig()

        # Initialize components
        self.tokenizer = Tokenizer(self.registry)
        self.parser = ExpressionParser()
        self.evaluator = ExpressionEvaluator(self.registry, self.tokenizer, self.evaluation_config)
        self.renderer = LatexRenderer(self.registry, self.tokenizer, self.parser, self.render_config)

        logger.info(
            f"Engine ready (external evaluation: {self.evaluation_config.use_external_library}, "
            f"external LaTeX: {self.render_config.use_external_library})"
        )

    def tokenize(self, text: Optional[str]) -> List[Token]:
        return self.tokenizer.tokenize(text)

    def parse(self, expression: Union[str, Sequence[Token], None]) -> ASTNode:
        """Parse text or an existing token list into an AST."""
        if expression is None or isinstance(expression, str):
            expression = self.tokenize(expression)
        return self.parser.parse(expression)

    async def evaluate(self, expression: Union[str, Sequence[Token], None],
                       scope: Optional[Scope] = None) -> Result:
        """Evaluate with SymPy when enabled, falling back to the builtin evaluator."""
        return await self.evaluator.evaluate(expression, scope)

    def evaluate_tokens(self, expression: Union[str, Sequence[Token], None],
                        scope: Optional[Scope] = None) -> Result:
        """Evaluate with the builtin shunting-yard evaluator only."""
        return self.evaluator.builtin.evaluate(expression, scope)

    def ast_to_latex(self, node: Optional[ASTNode]) -> str:
        return self.renderer.ast_to_latex(node)

    def format_result_latex(self, value: Any) -> str:
        return self.renderer.format_result_latex(value)

    async def latex_from_expression(self, expression: Optional[str], result: Any) -> str:
        """Render ``<expression> = <result>``."""
        return await self.renderer.latex_from_expression(expression, result)


__all__ = ['MathEngine']
