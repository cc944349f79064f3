"""
Recursive-descent parser building an AST for LaTeX display
"""

import logging
from dataclasses import dataclass, field
from typing import List, Optional, Sequence, Tuple, Type, Union

from .exceptions import EvaluationError, InsufficientOperands, ParseBoundaryOverrun, UnexpectedToken
from .tokenizer import Token, TokenType


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Number:
    value: str


@dataclass(frozen=True)
class Reference:
    name: str


@dataclass(frozen=True)
class Constant:
    name: str


@dataclass(frozen=True)
class UnaryOp:
    op: str
    expr: 'ASTNode'


@dataclass(frozen=True)
class BinaryOp:
    op: str
    left: 'ASTNode'
    right: 'ASTNode'


@dataclass(frozen=True)
class Group:
    expr: 'ASTNode'


@dataclass(frozen=True)
class Function:
    name: str
    args: Tuple['ASTNode', ...] = field(default_factory=tuple)


ASTNode = Union[Number, Reference, Constant, UnaryOp, BinaryOp, Group, Function]

COMPOUND_NODES = (BinaryOp, Function, Group)


class _TokenStream:
    __slots__ = ['tokens', 'pos', 'strict']

    def __init__(self, tokens: Sequence[Token], strict: bool = False):
        self.tokens = tokens
        self.pos = 0
        self.strict = strict

    def peek(self) -> Optional[Token]:
        if self.pos < len(self.tokens):
            return self.tokens[self.pos]
        return None

    def consume(self) -> Token:
        token = self.tokens[self.pos]
        self.pos += 1
        return token

    def next_is_operator(self, *symbols: str) -> bool:
        token = self.peek()
        return token is not None and token.type == TokenType.OPERATOR and token.value in symbols

    def next_is_close_paren(self) -> bool:
        token = self.peek()
        return token is not None and token.is_close_paren()

    def reject(self, error: Type[EvaluationError], message: str, token: Optional[str] = None):
        """Raise in strict mode; the lenient parser patches the input up instead."""
        if self.strict:
            raise error(message, token)


class ExpressionParser:
    """Operator-precedence parser producing a best-effort tree.

    Grammar::

        Expression := Term (('+' | '-') Term)*
        Term       := Power (('*' | '/' | '%') Power)*
        Power      := Factor ('^' Power)?
        Factor     := '-' Factor | Number | Reference | Constant
                    | Function '(' ArgList? ')' | '(' Expression ')'

    Malformed input never raises: a missing ')' is tolerated and stray tokens
    in factor position become references named after the token. With
    ``strict=True`` each of those repairs raises an EvaluationError instead.
    """

    def parse(self, tokens: Sequence[Token], strict: bool = False) -> ASTNode:
        """Parse tokens into an AST; an empty stream yields Number('0').

        Raises:
            EvaluationError: Only when ``strict``, for a missing operand or
                parenthesis, a stray token, or tokens left after the expression
        """
        if not tokens:
            return Number('0')

        stream = _TokenStream(tokens, strict)
        node = self._parse_expression(stream)
        if stream.peek() is not None:
            leftover = stream.peek().value
            stream.reject(UnexpectedToken, f"Unexpected {leftover!r} after the expression", leftover)
            logger.debug(f"Parser stopped with {len(tokens) - stream.pos} unconsumed tokens")
        return node

    def _parse_expression(self, stream: _TokenStream) -> ASTNode:
        node = self._parse_term(stream)
        while stream.next_is_operator('+', '-'):
            op = stream.consume().value
            node = BinaryOp(op, node, self._parse_term(stream))
        return node

    def _parse_term(self, stream: _TokenStream) -> ASTNode:
        node = self._parse_power(stream)
        while stream.next_is_operator('*', '/', '%'):
            op = stream.consume().value
            node = BinaryOp(op, node, self._parse_power(stream))
        return node

    def _parse_power(self, stream: _TokenStream) -> ASTNode:
        node = self._parse_factor(stream)
        if stream.next_is_operator('^'):
            stream.consume()
            # Right recursion gives right associativity
            node = BinaryOp('^', node, self._parse_power(stream))
        return node

    def _parse_factor(self, stream: _TokenStream) -> ASTNode:
        token = stream.peek()
        if token is None:
            stream.reject(InsufficientOperands, "Expression ends where an operand is expected")
            return Number('0')

        if token.type == TokenType.OPERATOR and token.value == '-':
            stream.consume()
            return UnaryOp('-', self._parse_factor(stream))

        if token.type == TokenType.NUMBER:
            stream.consume()
            return Number(token.value)

        if token.type == TokenType.REFERENCE:
            stream.consume()
            return Reference(token.value)

        if token.type == TokenType.CONSTANT:
            stream.consume()
            return Constant(token.value)

        if token.type == TokenType.FUNCTION:
            return self._parse_function(stream)

        if token.is_open_paren():
            stream.consume()
            inner = self._parse_expression(stream)
            if stream.next_is_close_paren():
                stream.consume()
            else:
                stream.reject(ParseBoundaryOverrun, "Unmatched '('", '(')
            return Group(inner)

        stream.reject(UnexpectedToken, f"Unexpected {token.value!r}", token.value)
        stream.consume()
        return Reference(str(token.value or ''))

    def _parse_function(self, stream: _TokenStream) -> ASTNode:
        name = stream.consume().value
        following = stream.peek()
        if following is None or not following.is_open_paren():
            # Header that collides with a function name
            return Reference(name)

        stream.consume()
        args: List[ASTNode] = []
        if stream.peek() is not None and not stream.next_is_close_paren():
            args.append(self._parse_expression(stream))
            while stream.peek() is not None and stream.peek().type == TokenType.COMMA:
                stream.consume()
                args.append(self._parse_expression(stream))

        if stream.next_is_close_paren():
            stream.consume()
        else:
            stream.reject(ParseBoundaryOverrun, f"Unclosed call to {name}", '(')
        return Function(name, tuple(args))


def walk(node: ASTNode):
    """Yield every node of a tree, parents before children."""
    yield node
    if isinstance(node, (UnaryOp, Group)):
        yield from walk(node.expr)
    elif isinstance(node, BinaryOp):
        yield from walk(node.left)
        yield from walk(node.right)
    elif isinstance(node, Function):
        for arg in node.args:
            yield from walk(arg)


__all__ = [
    'ASTNode',
    'Number',
    'Reference',
    'Constant',
    'UnaryOp',
    'BinaryOp',
    'Group',
    'Function',
    'COMPOUND_NODES',
    'ExpressionParser',
    'walk'
]
