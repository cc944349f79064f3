import logging
from typing import Optional

import sympy

from ..config import RenderConfig
from ..evaluator import SymPyEvaluator
from ..exceptions import DelegateError
from ..registry import MathRegistry
from ..tokenizer import Tokenizer
from .base_renderer import BaseLatexRenderer


logger = logging.getLogger(__name__)


class SymPyLatexRenderer(BaseLatexRenderer):
    """Render expressions with SymPy's LaTeX printer.

    The tree is built unevaluated so the output mirrors what was typed;
    headers are printed verbatim instead of SymPy's subscript convention
    for trailing digits.
    """

    blocking = True

    def __init__(self, registry: MathRegistry, tokenizer: Optional[Tokenizer] = None,
                 config: Optional[RenderConfig] = None):
        super().__init__(config)
        self.delegate = SymPyEvaluator(registry, tokenizer)

    def render(self, expression: str) -> str:
        """Render with SymPy.

        Raises:
            DelegateError: The text is outside what the SymPy delegate reads
        """
        text = expression or ''
        try:
            with sympy.evaluate(False):
                expr = self.delegate.to_sympy(text, symbolic=True)
            symbol_names = {s: s.name for s in expr.free_symbols}
            return sympy.latex(expr, symbol_names=symbol_names)
        except DelegateError:
            raise
        except Exception as e:
            raise DelegateError(f"SymPy could not render {text!r}: {e}") from e


__all__ = ['SymPyLatexRenderer']
