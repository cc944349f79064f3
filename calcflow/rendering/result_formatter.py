"""
LaTeX formatting of node results
"""

import math
import regex
from typing import Any, Optional

import numpy as np

from ..config import RenderConfig


TEXT_UNSAFE_PATTERN = regex.compile(r'[\\{}]')


def js_number_string(value: float) -> str:
    """Shortest round-trip decimal string, spelled the way JavaScript prints numbers."""
    value = float(value)
    if math.isnan(value):
        return 'NaN'
    if math.isinf(value):
        return 'Infinity' if value > 0 else '-Infinity'
    if value == 0:
        return '0'

    magnitude = abs(value)
    if magnitude >= 1e21 or magnitude < 1e-6:
        return np.format_float_scientific(value, trim='-', exp_digits=1)
    return np.format_float_positional(value, trim='-')


class ResultFormatter:
    """Format a numeric (or error) result for the right-hand side of an equation."""

    def __init__(self, config: Optional[RenderConfig] = None):
        self.config = config or RenderConfig()

    def format_result_latex(self, value: Any) -> str:
        """Render a result as LaTeX.

        Error kinds and other non-numbers become ``\\text{...}``. Numbers are
        printed plainly unless the integer part or the fraction is too long,
        in which case they switch to ``m \\times 10^{e}``.
        """
        if isinstance(value, bool) or not isinstance(value, (int, float, np.number)):
            return self._text(str(value))

        value = float(value)
        if not math.isfinite(value):
            return self._text(js_number_string(value))

        text = js_number_string(value)
        integer_digits = len(js_number_string(np.trunc(abs(value))))
        fraction = text.split('.', 1)[1] if '.' in text else ''

        if integer_digits > self.config.max_integer_digits or len(fraction) > self.config.max_fraction_digits:
            return self._scientific(value)
        return text

    def _scientific(self, value: float) -> str:
        mantissa, exponent = f"{value:.{self.config.mantissa_digits}e}".split('e')
        return mantissa + ' \\times 10^{' + f"{int(exponent):+d}" + '}'

    @staticmethod
    def _text(text: str) -> str:
        return '\\text{' + TEXT_UNSAFE_PATTERN.sub('', text) + '}'


__all__ = [
    'ResultFormatter',
    'js_number_string'
]
