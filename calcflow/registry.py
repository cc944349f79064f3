"""
Operator, function and constant registry for the CalcFlow math language
"""

import logging
from dataclasses import dataclass
from functools import wraps
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple, Union

import numpy as np


logger = logging.getLogger(__name__)


Arity = Union[int, Tuple[int, int]]

LEFT = 'left'
RIGHT = 'right'


def ieee_compute(func: Callable[..., Any]) -> Callable[..., float]:
    """Run a compute rule with float64 semantics: NaN/inf instead of exceptions."""
    @wraps(func)
    def wrapper(*args):
        with np.errstate(all='ignore'):
            return float(func(*(np.float64(a) for a in args)))
    return wrapper


@dataclass(frozen=True)
class OperatorDef:
    precedence: int
    associativity: str
    compute: Callable[[float, float], float]
    latex: Optional[Callable[..., str]] = None

    def __post_init__(self):
        if self.associativity not in (LEFT, RIGHT):
            raise ValueError(f"Invalid associativity: {self.associativity!r}")

    @property
    def right_associative(self) -> bool:
        return self.associativity == RIGHT


@dataclass(frozen=True)
class UnaryOperatorDef:
    compute: Callable[[float], float]
    latex: Optional[Callable[..., str]] = None


@dataclass(frozen=True)
class FunctionDef:
    arity: Arity
    compute: Callable[..., float]
    latex: Optional[Callable[..., str]] = None

    def __post_init__(self):
        if isinstance(self.arity, (list, tuple)):
            if len(self.arity) != 2:
                raise ValueError(f"Arity range must be (min, max), got {self.arity!r}")
            object.__setattr__(self, 'arity', tuple(self.arity))

    @property
    def min_arity(self) -> int:
        """Number of operands the evaluator pops (upper bound is not enforced)."""
        if isinstance(self.arity, tuple):
            return self.arity[0]
        return self.arity


@dataclass(frozen=True)
class ConstantDef:
    value: float


class MathRegistry:
    """Lookup tables shared by the tokenizer, parser, renderer and evaluator.

    Functions and constants are keyed case-insensitively, operators by their
    exact symbol. Entries are never removed.
    """

    def __init__(self):
        self._operators: Dict[str, OperatorDef] = {}
        self._unary_operators: Dict[str, UnaryOperatorDef] = {}
        self._functions: Dict[str, FunctionDef] = {}
        self._constants: Dict[str, ConstantDef] = {}

    def register_operator(self, symbol: str, definition: OperatorDef):
        self._operators[symbol] = definition

    def register_unary_operator(self, symbol: str, definition: UnaryOperatorDef):
        self._unary_operators[symbol] = definition

    def register_function(self, name: str, definition: FunctionDef):
        self._functions[str(name).lower()] = definition

    def register_constant(self, name: str, definition: ConstantDef):
        self._constants[str(name).lower()] = definition

    def get_operator(self, symbol: str) -> Optional[OperatorDef]:
        return self._operators.get(symbol)

    def get_unary_operator(self, symbol: str) -> Optional[UnaryOperatorDef]:
        return self._unary_operators.get(symbol)

    def get_function(self, name: str) -> Optional[FunctionDef]:
        return self._functions.get(str(name).lower())

    def get_constant(self, name: str) -> Optional[ConstantDef]:
        return self._constants.get(str(name).lower())

    def operator_symbols(self) -> List[str]:
        return list(self._operators)

    def function_names(self) -> List[str]:
        return list(self._functions)

    def constant_names(self) -> List[str]:
        return list(self._constants)

    def precedence(self, symbol: str) -> int:
        """Binary precedence of a symbol, 0 when unregistered."""
        definition = self._operators.get(symbol)
        return definition.precedence if definition else 0

    def is_right_associative(self, symbol: str) -> bool:
        definition = self._operators.get(symbol)
        return definition.right_associative if definition else False


# Compute rules

@ieee_compute
def _divide(a, b):
    return np.nan if b == 0 else a / b


@ieee_compute
def _remainder(a, b):
    # Truncated remainder: the result takes the sign of the dividend
    return np.nan if b == 0 else np.fmod(a, b)


@ieee_compute
def _sqrt(a):
    return np.nan if a < 0 else np.sqrt(a)


@ieee_compute
def _log(a, b):
    valid = a > 0 and b > 0 and b != 1
    return np.log(a) / np.log(b) if valid else np.nan


@ieee_compute
def _ln(a):
    return np.nan if a <= 0 else np.log(a)


# LaTeX rules

def _latex_power(left: str, right: str, ctx=None) -> str:
    base = ctx.wrap_parens(left) if ctx is not None and ctx.needs_parens(ctx.left_node) else left
    return base + '^{' + right + '}'


def _latex_negate(inner: str, ctx=None) -> str:
    if ctx is not None and ctx.is_complex_node(ctx.expr_node):
        return '-' + ctx.wrap_parens(inner)
    return '-' + inner


def _latex_pow_function(a: str, b: str, ctx=None) -> str:
    nodes: Sequence[Any] = ctx.args_nodes if ctx is not None else ()
    base = ctx.wrap_parens(a) if nodes and ctx.needs_parens(nodes[0]) else a
    return base + '^{' + b + '}'


def _one_argument_latex(latex_name: str) -> Callable[..., str]:
    def render(a: str, ctx=None) -> str:
        return latex_name + '\\left(' + a + '\\right)'
    return render


ONE_ARGUMENT_FUNCTIONS = [
    ('sin', '\\sin', np.sin),
    ('cos', '\\cos', np.cos),
    ('tan', '\\tan', np.tan),
    ('ln', '\\ln', None),
    ('asin', '\\arcsin', np.arcsin),
    ('acos', '\\arccos', np.arccos),
    ('atan', '\\arctan', np.arctan),
]


def create_default_registry() -> MathRegistry:
    """Create a registry holding the default operators, functions and constants."""
    registry = MathRegistry()

    registry.register_operator('+', OperatorDef(
        precedence=1,
        associativity=LEFT,
        compute=ieee_compute(lambda a, b: a + b),
        latex=lambda left, right, ctx=None: left + ' + ' + right
    ))
    registry.register_operator('-', OperatorDef(
        precedence=1,
        associativity=LEFT,
        compute=ieee_compute(lambda a, b: a - b),
        latex=lambda left, right, ctx=None: left + ' - ' + right
    ))
    registry.register_operator('*', OperatorDef(
        precedence=2,
        associativity=LEFT,
        compute=ieee_compute(lambda a, b: a * b),
        latex=lambda left, right, ctx=None: left + ' \\cdot ' + right
    ))
    registry.register_operator('/', OperatorDef(
        precedence=2,
        associativity=LEFT,
        compute=_divide,
        latex=lambda left, right, ctx=None: '\\frac{' + left + '}{' + right + '}'
    ))
    registry.register_operator('%', OperatorDef(
        precedence=2,
        associativity=LEFT,
        compute=_remainder,
        latex=lambda left, right, ctx=None: left + ' \\bmod ' + right
    ))
    registry.register_operator('^', OperatorDef(
        precedence=3,
        associativity=RIGHT,
        compute=ieee_compute(np.power),
        latex=_latex_power
    ))

    registry.register_unary_operator('-', UnaryOperatorDef(
        compute=ieee_compute(np.negative),
        latex=_latex_negate
    ))

    registry.register_function('sqrt', FunctionDef(
        arity=1,
        compute=_sqrt,
        latex=lambda a, ctx=None: '\\sqrt{' + a + '}'
    ))
    registry.register_function('pow', FunctionDef(
        arity=2,
        compute=ieee_compute(np.power),
        latex=_latex_pow_function
    ))
    registry.register_function('log', FunctionDef(
        arity=2,
        compute=_log,
        latex=lambda a, b, ctx=None: '\\log_{' + b + '}\\left(' + a + '\\right)'
    ))

    for name, latex_name, func in ONE_ARGUMENT_FUNCTIONS:
        registry.register_function(name, FunctionDef(
            arity=1,
            compute=_ln if func is None else ieee_compute(func),
            latex=_one_argument_latex(latex_name)
        ))

    registry.register_constant('pi', ConstantDef(value=float(np.pi)))

    logger.debug(
        f"Default registry: {len(registry.operator_symbols())} operators, "
        f"{len(registry.function_names())} functions, {len(registry.constant_names())} constants"
    )
    return registry


__all__ = [
    'Arity',
    'OperatorDef',
    'UnaryOperatorDef',
    'FunctionDef',
    'ConstantDef',
    'MathRegistry',
    'ieee_compute',
    'create_default_registry'
]
