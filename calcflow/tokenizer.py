import regex
import logging
from dataclasses import dataclass
from enum import Enum
from typing import List, Optional

from .registry import MathRegistry, create_default_registry


logger = logging.getLogger(__name__)


class TokenType(Enum):
    NUMBER = "number"
    REFERENCE = "reference"
    CONSTANT = "constant"
    FUNCTION = "function"
    OPERATOR = "operator"
    PARENTHESIS = "parenthesis"
    COMMA = "comma"


@dataclass(frozen=True)
class Token:
    type: TokenType
    value: str
    position: int = 0
    length: int = 0

    def raw(self, text: str) -> str:
        """Spelling of the token in the text it was read from."""
        return text[self.position:self.position + self.length]

    def is_open_paren(self) -> bool:
        return self.type == TokenType.PARENTHESIS and self.value == '('

    def is_close_paren(self) -> bool:
        return self.type == TokenType.PARENTHESIS and self.value == ')'


class Tokenizer:
    """Single-pass, greedy scanner for the CalcFlow expression language."""

    OPERATORS = frozenset('+-*/^%')
    WHITESPACE = frozenset(' \t\n')

    def __init__(self, registry: Optional[MathRegistry] = None):
        self.registry = registry or create_default_registry()
        # At most one '.', a second one ends the number
        self.number_pattern = regex.compile(r'[0-9]+(?:\.[0-9]*)?|\.[0-9]+')
        self.identifier_pattern = regex.compile(r'[A-Za-z_][A-Za-z0-9_]*')
        self.lookahead_pattern = regex.compile(r'\s*')

    def tokenize(self, text: Optional[str]) -> List[Token]:
        """Convert expression text into a flat token list.

        Characters that belong to no token are skipped, so this never fails;
        malformed input surfaces later as an evaluation error.

        Args:
            text: Expression source

        Returns:
            Tokens in source order
        """
        if not text:
            return []

        text = str(text)
        tokens = []
        pos = 0

        while pos < len(text):
            char = text[pos]

            if char in self.WHITESPACE:
                pos += 1

            elif match := self.number_pattern.match(text, pos):
                tokens.append(Token(TokenType.NUMBER, match.group(), pos, len(match.group())))
                pos = match.end()

            elif match := self.identifier_pattern.match(text, pos):
                tokens.append(self._classify_identifier(text, match))
                pos = match.end()

            elif char in self.OPERATORS:
                tokens.append(Token(TokenType.OPERATOR, char, pos, 1))
                pos += 1

            elif char in '()':
                tokens.append(Token(TokenType.PARENTHESIS, char, pos, 1))
                pos += 1

            elif char == ',':
                tokens.append(Token(TokenType.COMMA, char, pos, 1))
                pos += 1

            else:
                logger.debug(f"Skipping character {char!r} at {pos}")
                pos += 1

        return tokens

    def _classify_identifier(self, text: str, match) -> Token:
        """Decide between function, constant and reference for an identifier."""
        ident = match.group()
        start, end = match.start(), match.end()
        lookahead = self.lookahead_pattern.match(text, end).end()

        if lookahead < len(text) and text[lookahead] == '(':
            return Token(TokenType.FUNCTION, ident.lower(), start, end - start)
        if self.registry.get_constant(ident) is not None:
            return Token(TokenType.CONSTANT, ident.lower(), start, end - start)
        # Headers are matched case-sensitively
        return Token(TokenType.REFERENCE, ident, start, end - start)

    def unread_characters(self, text: Optional[str], tokens: Optional[List[Token]] = None) -> List[str]:
        """Non-whitespace characters that no token covers, in source order."""
        if not text:
            return []
        text = str(text)
        if tokens is None:
            tokens = self.tokenize(text)

        covered = [False] * len(text)
        for token in tokens:
            for pos in range(token.position, token.position + token.length):
                covered[pos] = True
        return [char for char, seen in zip(text, covered) if not seen and char not in self.WHITESPACE]

    def references(self, text: Optional[str]) -> List[str]:
        """Reference names in order of first appearance."""
        seen = {}
        for token in self.tokenize(text):
            if token.type == TokenType.REFERENCE:
                seen.setdefault(token.value, None)
        return list(seen)


__all__ = [
    'Token',
    'TokenType',
    'Tokenizer'
]
