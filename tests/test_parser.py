import pytest
from calcflow.parser import (
    BinaryOp,
    Constant,
    ExpressionParser,
    Function,
    Group,
    Number,
    Reference,
    UnaryOp,
    walk
)
from calcflow.exceptions import InsufficientOperands, ParseBoundaryOverrun, UnexpectedToken
from calcflow.tokenizer import Token, TokenType


@pytest.fixture
def parse(tokenizer, parser):
    def _parse(text):
        return parser.parse(tokenizer.tokenize(text))
    return _parse


class TestExpressionParser:

    def test_empty(self, parse):
        """Test empty input parses to zero."""
        assert parse("") == Number('0')

    def test_precedence(self, parse):
        """Test multiplication binds tighter than addition."""
        assert parse("1 + 2 * 3") == BinaryOp(
            '+', Number('1'), BinaryOp('*', Number('2'), Number('3'))
        )

    def test_left_associativity(self, parse):
        """Test subtraction groups to the left."""
        assert parse("8 - 4 - 2") == BinaryOp(
            '-', BinaryOp('-', Number('8'), Number('4')), Number('2')
        )

    def test_power_right_associativity(self, parse):
        """Test exponentiation groups to the right."""
        assert parse("2 ^ 3 ^ 2") == BinaryOp(
            '^', Number('2'), BinaryOp('^', Number('3'), Number('2'))
        )

    def test_unary_minus(self, parse):
        """Test prefix minus applies to a factor."""
        assert parse("-x") == UnaryOp('-', Reference('x'))
        assert parse("--5") == UnaryOp('-', UnaryOp('-', Number('5')))
        assert parse("-2 ^ 2") == BinaryOp('^', UnaryOp('-', Number('2')), Number('2'))

    def test_constant_and_group(self, parse):
        """Test constants and parenthesized groups."""
        assert parse("(pi + 1)") == Group(BinaryOp('+', Constant('pi'), Number('1')))

    def test_function_arguments(self, parse):
        """Test function calls with several arguments."""
        assert parse("log(8, 2)") == Function('log', (Number('8'), Number('2')))
        assert parse("f()") == Function('f', ())

    def test_missing_close_paren_tolerated(self, parse):
        """Test an unclosed group still parses."""
        assert parse("(1 + 2") == Group(BinaryOp('+', Number('1'), Number('2')))
        assert parse("sqrt(4") == Function('sqrt', (Number('4'),))

    def test_stray_token_becomes_reference(self, parse):
        """Test unexpected tokens in factor position are kept by name."""
        assert parse(")") == Reference(')')
        assert parse("2 * ,") == BinaryOp('*', Number('2'), Reference(','))

    def test_function_without_paren(self, parser):
        """Test a function token not followed by '(' becomes a reference."""
        tokens = [Token(TokenType.FUNCTION, 'sin', 0, 3)]
        assert parser.parse(tokens) == Reference('sin')

    def test_trailing_tokens_ignored(self, parse):
        """Test the parser stops at tokens it cannot continue with."""
        assert parse("1 2") == Number('1')

    def test_walk(self, parse):
        """Test walking visits every node, parents first."""
        nodes = list(walk(parse("-(a + sqrt(b))")))
        assert isinstance(nodes[0], UnaryOp)
        names = [n.name for n in nodes if isinstance(n, Reference)]
        assert names == ['a', 'b']
        assert any(isinstance(n, Function) for n in nodes)

    @pytest.mark.parametrize("text", ["(((", "+ - * /", "sin(,)", ",", "1 +", "^"])
    def test_malformed_input_terminates(self, parse, text):
        """Test malformed input always produces a tree."""
        assert parse(text) is not None


class TestStrictParsing:

    @pytest.fixture
    def parse_strict(self, tokenizer, parser):
        def _parse(text):
            return parser.parse(tokenizer.tokenize(text), strict=True)
        return _parse

    def test_well_formed(self, parse_strict):
        """Test strict mode builds the same tree for valid input."""
        assert parse_strict("") == Number('0')
        assert parse_strict("-2 ^ 2") == BinaryOp('^', UnaryOp('-', Number('2')), Number('2'))
        assert parse_strict("f()") == Function('f', ())

    @pytest.mark.parametrize("text", ["1 +", "-", "sqrt(2,"])
    def test_missing_operand(self, parse_strict, text):
        with pytest.raises(InsufficientOperands):
            parse_strict(text)

    @pytest.mark.parametrize("text", ["(1", "sqrt(4", "((1)"])
    def test_missing_close_paren(self, parse_strict, text):
        """Test unclosed groups and calls raise."""
        with pytest.raises(ParseBoundaryOverrun):
            parse_strict(text)

    @pytest.mark.parametrize("text", ["1 2", "2 * ,", ")", "1 + 2)", "2 ** 3"])
    def test_unexpected_token(self, parse_strict, text):
        """Test stray and trailing tokens raise."""
        with pytest.raises(UnexpectedToken) as exc_info:
            parse_strict(text)
        assert exc_info.value.token is not None
