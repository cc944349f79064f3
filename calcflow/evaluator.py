import asyncio
import logging
import math
import operator
import regex
import sys
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Union

import sympy

from .config import EvaluationConfig
from .exceptions import (
    DelegateError,
    DomainError,
    EvaluationError,
    InsufficientOperands,
    ParseBoundaryOverrun,
    UnknownFunction
)
from .models import ErrorKind, Result
from .parser import ASTNode, BinaryOp, Constant, ExpressionParser, Function, Group, Number, Reference, UnaryOp
from .registry import MathRegistry
from .tokenizer import Token, TokenType, Tokenizer


logger = logging.getLogger(__name__)


Scope = Mapping[str, Any]
Expression = Union[str, Sequence[Token], None]

# Follows the parser's Factor := '-' Factor rule: prefix minus binds tighter than any binary operator
UNARY_PRECEDENCE = 4

JS_FLOAT_PATTERN = regex.compile(r'\s*([+-]?(?:[0-9]+(?:\.[0-9]*)?|\.[0-9]+)(?:[eE][+-]?[0-9]+)?)')


def coerce_number(value: Any) -> float:
    """Read a scope value as a number; anything unusable counts as 0."""
    if isinstance(value, bool) or value is None:
        return 0.0
    if isinstance(value, (int, float)):
        number = float(value)
    else:
        match = JS_FLOAT_PATTERN.match(str(value))
        number = float(match.group(1)) if match else math.nan
    return number if math.isfinite(number) else 0.0


def is_prefix_position(previous: Optional[Token]) -> bool:
    """A '-' here is negation: at the start, after an operator, '(' or ','."""
    if previous is None:
        return True
    return previous.type in (TokenType.OPERATOR, TokenType.COMMA) or previous.is_open_paren()


@dataclass(frozen=True)
class _Prefix:
    token: Token


class BaseEvaluator(ABC):
    """Base class for numeric evaluators."""

    # Evaluators that may take long run in the executor
    blocking = False

    def __init__(self, registry: MathRegistry, tokenizer: Optional[Tokenizer] = None):
        self.registry = registry
        self.tokenizer = tokenizer or Tokenizer(registry)

    def is_available(self) -> bool:
        """Check if evaluator can be used."""
        return True

    @abstractmethod
    def evaluate(self, expression: Expression, scope: Optional[Scope] = None) -> Result:
        """Evaluate expression against a name -> value scope."""
        pass


class ShuntingYardEvaluator(BaseEvaluator):
    """Builtin evaluator working on tokens directly, without an AST."""

    OPERANDS = (TokenType.NUMBER, TokenType.REFERENCE, TokenType.CONSTANT)

    def evaluate(self, expression: Expression, scope: Optional[Scope] = None) -> Result:
        """Evaluate text or tokens, returning "Error" on any failure."""
        try:
            return self.evaluate_strict(expression, scope)
        except EvaluationError as e:
            logger.debug(f"Builtin evaluation failed: {e}")
            return ErrorKind.ERROR

    def evaluate_strict(self, expression: Expression, scope: Optional[Scope] = None) -> float:
        """Evaluate text or tokens, raising EvaluationError subclasses."""
        tokens = self._as_tokens(expression)
        if not tokens:
            return 0.0
        return self.evaluate_postfix(self.to_postfix(tokens), scope or {})

    def _as_tokens(self, expression: Expression) -> List[Token]:
        if expression is None or isinstance(expression, str):
            return self.tokenizer.tokenize(expression)
        return list(expression)

    def to_postfix(self, tokens: Sequence[Token]) -> List[Union[Token, _Prefix]]:
        """Reorder tokens into postfix with an operator stack.

        Function tokens wait on the stack until their ')' arrives; commas only
        flush operators, so arguments end up adjacent in the output.
        """
        output: List[Union[Token, _Prefix]] = []
        ops: List[Union[Token, _Prefix]] = []
        previous: Optional[Token] = None

        for token in tokens:
            if token.type in self.OPERANDS:
                output.append(token)

            elif token.type == TokenType.FUNCTION:
                ops.append(token)

            elif token.type == TokenType.OPERATOR:
                if is_prefix_position(previous) and self.registry.get_unary_operator(token.value):
                    ops.append(_Prefix(token))
                else:
                    self._push_binary(token, ops, output)

            elif token.type == TokenType.COMMA:
                while ops and not _is_open_paren(ops[-1]):
                    output.append(ops.pop())

            elif token.is_open_paren():
                ops.append(token)

            elif token.is_close_paren():
                while ops and not _is_open_paren(ops[-1]):
                    output.append(ops.pop())
                if not ops:
                    raise ParseBoundaryOverrun("Unmatched ')'", token.value)
                ops.pop()
                if ops and isinstance(ops[-1], Token) and ops[-1].type == TokenType.FUNCTION:
                    output.append(ops.pop())

            previous = token

        while ops:
            top = ops.pop()
            if _is_open_paren(top):
                raise ParseBoundaryOverrun("Unmatched '('", '(')
            output.append(top)

        return output

    def _push_binary(self, token: Token, ops: List, output: List):
        precedence = self.registry.precedence(token.value)
        right_assoc = self.registry.is_right_associative(token.value)

        while ops:
            top = ops[-1]
            if isinstance(top, _Prefix):
                if UNARY_PRECEDENCE <= precedence:
                    break
                output.append(ops.pop())
                continue
            if top.type != TokenType.OPERATOR:
                break
            top_precedence = self.registry.precedence(top.value)
            if top_precedence > precedence or (top_precedence == precedence and not right_assoc):
                output.append(ops.pop())
            else:
                break

        ops.append(token)

    def evaluate_postfix(self, postfix: Sequence[Union[Token, _Prefix]], scope: Scope) -> float:
        """Run a postfix queue against a value stack."""
        stack: List[float] = []

        for item in postfix:
            if isinstance(item, _Prefix):
                if not stack:
                    raise InsufficientOperands(f"Unary {item.token.value} needs an operand", item.token.value)
                definition = self.registry.get_unary_operator(item.token.value)
                stack.append(_checked(definition.compute(stack.pop()), item.token.value))

            elif item.type == TokenType.NUMBER:
                stack.append(float(item.value))

            elif item.type == TokenType.REFERENCE:
                stack.append(coerce_number(scope.get(item.value)))

            elif item.type == TokenType.CONSTANT:
                definition = self.registry.get_constant(item.value)
                value = definition.value if definition is not None else math.nan
                stack.append(_checked(value, item.value))

            elif item.type == TokenType.OPERATOR:
                if len(stack) < 2:
                    raise InsufficientOperands(f"Operator {item.value} needs two operands", item.value)
                b = stack.pop()
                a = stack.pop()
                definition = self.registry.get_operator(item.value)
                value = definition.compute(a, b) if definition is not None else math.nan
                stack.append(_checked(value, item.value))

            elif item.type == TokenType.FUNCTION:
                definition = self.registry.get_function(item.value)
                if definition is None:
                    raise UnknownFunction(f"Unknown function: {item.value}", item.value)
                count = definition.min_arity
                if len(stack) < count:
                    raise InsufficientOperands(
                        f"{item.value} expects {count} arguments, found {len(stack)}", item.value
                    )
                args = stack[len(stack) - count:]
                del stack[len(stack) - count:]
                stack.append(_checked(definition.compute(*args), item.value))

        if not stack:
            return 0.0
        return stack[-1]


def _is_open_paren(item) -> bool:
    return isinstance(item, Token) and item.is_open_paren()


def _checked(value: float, symbol: str) -> float:
    if math.isnan(value):
        raise DomainError(f"{symbol} produced NaN", symbol)
    return value


def _log_base(value, base):
    return sympy.log(value) / sympy.log(base)


class SymPyEvaluator(BaseEvaluator):
    """Delegate evaluation to SymPy, restricted to the registry's vocabulary.

    The text goes through the strict parser and the resulting tree is turned
    into SymPy objects node by node, so SymPy never reads the source text
    itself. Numbers are 53-bit Floats and every intermediate value must stay
    a finite real within float64 range; anything else is left to the builtin
    evaluator, which owns the Error semantics.
    """

    blocking = True

    # SymPy reads % as a floored modulo; the registry defines a truncated one
    BUILTIN_ONLY_OPERATORS = frozenset("%")

    NUMERIC_OPERATORS: Dict[str, Callable[[Any, Any], Any]] = {
        '+': operator.add,
        '-': operator.sub,
        '*': operator.mul,
        '/': operator.truediv,
        '^': operator.pow,
    }

    # Same shapes SymPy builds for unevaluated input, so the printer sees x - y as written
    SYMBOLIC_OPERATORS: Dict[str, Callable[[Any, Any], Any]] = {
        '+': lambda a, b: sympy.Add(a, b, evaluate=False),
        '-': lambda a, b: sympy.Add(a, sympy.Mul(sympy.S.NegativeOne, b, evaluate=False), evaluate=False),
        '*': lambda a, b: sympy.Mul(a, b, evaluate=False),
        '/': lambda a, b: sympy.Mul(a, sympy.Pow(b, sympy.S.NegativeOne, evaluate=False), evaluate=False),
        '^': lambda a, b: sympy.Pow(a, b, evaluate=False),
    }

    SYMPY_FUNCTIONS: Dict[str, Callable[..., Any]] = {
        'sqrt': sympy.sqrt,
        'pow': sympy.Pow,
        'log': _log_base,
        'ln': sympy.log,
        'sin': sympy.sin,
        'cos': sympy.cos,
        'tan': sympy.tan,
        'asin': sympy.asin,
        'acos': sympy.acos,
        'atan': sympy.atan,
    }

    SYMPY_CONSTANTS: Dict[str, Any] = {
        'pi': sympy.pi,
    }

    FLOAT64_MAX = sympy.Float(sys.float_info.max)

    def __init__(self, registry: MathRegistry, tokenizer: Optional[Tokenizer] = None,
                 parser: Optional[ExpressionParser] = None):
        super().__init__(registry, tokenizer)
        self.parser = parser or ExpressionParser()

    def evaluate(self, expression: Expression, scope: Optional[Scope] = None) -> Result:
        """Evaluate with SymPy.

        Raises:
            DelegateError: SymPy could not produce a finite real value; the
                caller is expected to fall back to the builtin evaluator.
        """
        if expression is not None and not isinstance(expression, str):
            raise DelegateError("SymPy evaluation needs the expression text")
        text = expression or ''

        try:
            return float(self.to_sympy(text, scope or {}))
        except DelegateError:
            raise
        except Exception as e:
            raise DelegateError(f"SymPy could not evaluate {text!r}: {e}") from e

    def to_sympy(self, text: str, scope: Optional[Scope] = None, symbolic: bool = False) -> Any:
        """Build the SymPy object for expression text.

        With ``symbolic`` references become Symbols and integers stay exact,
        for printing; otherwise references are read from the scope.

        Raises:
            DelegateError: The text is outside what the delegate handles
        """
        tokens = self.tokenizer.tokenize(text)
        self.check_supported(text, tokens)
        try:
            tree = self.parser.parse(tokens, strict=True)
        except EvaluationError as e:
            raise DelegateError(f"Cannot parse {text!r}: {e}") from e
        return self._convert(tree, scope or {}, symbolic)

    def check_supported(self, text: str, tokens: Optional[List[Token]] = None):
        """Reject text the delegate must not read.

        Raises:
            DelegateError: The tokenizer skipped characters of the text, or
                the text uses an operator only the builtin evaluator defines
        """
        if tokens is None:
            tokens = self.tokenizer.tokenize(text)

        unread = self.tokenizer.unread_characters(text, tokens)
        if unread:
            raise DelegateError(f"Characters outside the language: {''.join(unread)!r}")

        for token in tokens:
            if token.type == TokenType.OPERATOR and token.value in self.BUILTIN_ONLY_OPERATORS:
                raise DelegateError(f"Operator {token.value!r} is left to the builtin evaluator")

    def _convert(self, node: ASTNode, scope: Scope, symbolic: bool) -> Any:
        if isinstance(node, Group):
            return self._convert(node.expr, scope, symbolic)

        if isinstance(node, Number):
            if symbolic and node.value.isdigit():
                return sympy.Integer(node.value)
            return self._in_range(sympy.Float(float(node.value)), symbolic)

        if isinstance(node, Reference):
            if symbolic:
                return sympy.Symbol(node.name)
            return self._in_range(sympy.Float(coerce_number(scope.get(node.name))), symbolic)

        if isinstance(node, Constant):
            definition = self.registry.get_constant(node.name)
            if definition is None:
                raise DelegateError(f"Unknown constant {node.name!r}")
            if symbolic:
                return self.SYMPY_CONSTANTS.get(node.name, sympy.Symbol(node.name))
            return self._in_range(sympy.Float(definition.value), symbolic)

        if isinstance(node, UnaryOp):
            if node.op != '-':
                raise DelegateError(f"No SymPy mapping for prefix {node.op!r}")
            operand = self._convert(node.expr, scope, symbolic)
            if symbolic:
                return sympy.Mul(sympy.S.NegativeOne, operand, evaluate=False)
            return self._in_range(-operand, symbolic)

        if isinstance(node, BinaryOp):
            operators = self.SYMBOLIC_OPERATORS if symbolic else self.NUMERIC_OPERATORS
            if node.op not in operators:
                raise DelegateError(f"Operator {node.op!r} is left to the builtin evaluator")
            left = self._convert(node.left, scope, symbolic)
            right = self._convert(node.right, scope, symbolic)
            return self._in_range(operators[node.op](left, right), symbolic)

        if isinstance(node, Function):
            func = self._function(node.name, len(node.args))
            args = [self._convert(arg, scope, symbolic) for arg in node.args]
            return self._in_range(func(*args), symbolic)

        raise DelegateError(f"Unsupported node {node!r}")

    def _function(self, name: str, count: int) -> Callable[..., Any]:
        definition = self.registry.get_function(name)
        func = self.SYMPY_FUNCTIONS.get(name)
        if definition is None or func is None:
            raise DelegateError(f"No SymPy mapping for function {name!r}")
        # The builtin evaluator owns the permissive extra-argument behaviour
        if count != definition.min_arity:
            raise DelegateError(f"{name} called with {count} arguments, expected {definition.min_arity}")
        return func

    def _in_range(self, value: Any, symbolic: bool) -> Any:
        """Keep numeric intermediates to finite reals in float64 range."""
        if symbolic:
            return value
        if not (value.is_Number and value.is_finite) or abs(value) > self.FLOAT64_MAX:
            raise DelegateError(f"{value} is not a finite float64 value")
        return value


class ExpressionEvaluator:
    """Evaluate expressions, trying the external library before the builtin."""

    def __init__(self, registry: MathRegistry, tokenizer: Optional[Tokenizer] = None,
                 config: Optional[EvaluationConfig] = None,
                 evaluators: Optional[List[BaseEvaluator]] = None):
        self.config = config or EvaluationConfig()
        self.tokenizer = tokenizer or Tokenizer(registry)
        self.builtin = ShuntingYardEvaluator(registry, self.tokenizer)

        if evaluators is None:
            evaluators = []
            if self.config.use_external_library:
                evaluators.append(SymPyEvaluator(registry, self.tokenizer))
            evaluators.append(self.builtin)
        self.evaluators = evaluators

    async def evaluate(self, expression: Expression, scope: Optional[Scope] = None) -> Result:
        """Evaluate text (or tokens, which only the builtin accepts)."""
        if expression is not None and not isinstance(expression, str):
            return self.builtin.evaluate(expression, scope)

        loop = asyncio.get_running_loop()
        scope = dict(scope or {})

        for evaluator in self.evaluators:
            if not evaluator.is_available():
                continue
            try:
                if evaluator.blocking:
                    return await loop.run_in_executor(None, evaluator.evaluate, expression, scope)
                return evaluator.evaluate(expression, scope)
            except DelegateError as e:
                logger.debug(f"{evaluator.__class__.__name__} failed, falling back: {e}")

        logger.warning(f"No evaluator could handle {expression!r}")
        return ErrorKind.ERROR

    def evaluate_sync(self, expression: Expression, scope: Optional[Scope] = None) -> Result:
        """Evaluate synchronously with the same fallback order."""
        for evaluator in self.evaluators:
            if not evaluator.is_available():
                continue
            try:
                return evaluator.evaluate(expression, scope)
            except DelegateError as e:
                logger.debug(f"{evaluator.__class__.__name__} failed, falling back: {e}")
        return ErrorKind.ERROR


__all__ = [
    'BaseEvaluator',
    'ShuntingYardEvaluator',
    'SymPyEvaluator',
    'ExpressionEvaluator',
    'coerce_number',
    'is_prefix_position',
    'UNARY_PRECEDENCE'
]
