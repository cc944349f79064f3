import math
import pytest
from unittest.mock import patch
from calcflow.config import RenderConfig
from calcflow.exceptions import DelegateError
from calcflow.models import ErrorKind
from calcflow.parser import BinaryOp, Function, Group, Number, Reference, UnaryOp
from calcflow.registry import MathRegistry
from calcflow.rendering import (
    AstLatexRenderer,
    LatexRenderer,
    ResultFormatter,
    SymPyLatexRenderer,
    js_number_string
)


class TestRenderConfig:

    def test_default_config(self):
        """Test default render configuration."""
        config = RenderConfig()
        assert config.use_external_library is True
        assert config.max_integer_digits == 6
        assert config.max_fraction_digits == 3
        assert config.mantissa_digits == 4


class TestAstLatexRenderer:

    @pytest.mark.parametrize("text,expected", [
        ("1 + 2", "1 + 2"),
        ("a - b", "a - b"),
        ("a * b", "a \\cdot b"),
        ("a / b", "\\frac{a}{b}"),
        ("a % b", "a \\bmod b"),
        ("x ^ 2", "x^{2}"),
        ("(a + b) ^ 2", "\\left(a + b\\right)^{2}"),
        ("pi", "\\pi"),
        ("1.50", "1.50"),
        ("Price", "Price"),
    ])
    def test_operators(self, ast_renderer, text, expected):
        """Test operator and leaf rendering."""
        assert ast_renderer.render(text) == expected

    @pytest.mark.parametrize("text,expected", [
        ("sqrt(x)", "\\sqrt{x}"),
        ("pow(a + b, 2)", "\\left(a + b\\right)^{2}"),
        ("pow(x, 2)", "x^{2}"),
        ("log(8, 2)", "\\log_{2}\\left(8\\right)"),
        ("sin(x)", "\\sin\\left(x\\right)"),
        ("asin(x)", "\\arcsin\\left(x\\right)"),
        ("ln(x)", "\\ln\\left(x\\right)"),
        ("foo(a, b)", "foo\\left(a,\\,b\\right)"),
        ("sqrt()", "\\sqrt{}"),
    ])
    def test_functions(self, ast_renderer, text, expected):
        """Test function rendering."""
        assert ast_renderer.render(text) == expected

    def test_unary_minus(self, ast_renderer):
        """Test negation wraps compound operands only."""
        assert ast_renderer.render("-x") == "-x"
        assert ast_renderer.render("-3") == "-3"
        assert ast_renderer.render("-sqrt(x)") == "-\\left(\\sqrt{x}\\right)"
        assert ast_renderer.render("-(a + b)") == "-\\left(\\left(a + b\\right)\\right)"

    def test_binary_power_base(self, ast_renderer):
        """Test a binary operation as power base is parenthesized."""
        node = BinaryOp('^', BinaryOp('+', Reference('a'), Reference('b')), Number('2'))
        assert ast_renderer.ast_to_latex(node) == "\\left(a + b\\right)^{2}"

    def test_empty(self, ast_renderer):
        """Test empty input renders as zero."""
        assert ast_renderer.render("") == "0"
        assert ast_renderer.ast_to_latex(None) == ""

    def test_fallbacks_without_registry_entries(self):
        """Test rendering with an empty registry."""
        renderer = AstLatexRenderer(MathRegistry())
        assert renderer.ast_to_latex(BinaryOp('*', Reference('a'), Reference('b'))) == "a \\cdot b"
        assert renderer.ast_to_latex(BinaryOp('/', Reference('a'), Reference('b'))) == "a / b"
        assert renderer.ast_to_latex(Function('sin', (Reference('x'),))) == "\\sin\\left(x\\right)"
        assert renderer.ast_to_latex(Function('sqrt', (Reference('x'),))) == "sqrt\\left(x\\right)"
        assert renderer.ast_to_latex(UnaryOp('-', Group(Reference('x')))) == "-\\left(\\left(x\\right)\\right)"
        assert renderer.ast_to_latex(UnaryOp('-', Reference('x'))) == "-x"

    @pytest.mark.parametrize("text", ["(((", "+ - * /", "sin(,)", ")", "2 ^", ",,"])
    def test_malformed_input_terminates(self, ast_renderer, text):
        """Test malformed input still renders."""
        assert isinstance(ast_renderer.render(text), str)


class TestSymPyLatexRenderer:

    @pytest.fixture
    def renderer(self, registry, tokenizer):
        return SymPyLatexRenderer(registry, tokenizer)

    def test_render(self, renderer):
        """Test SymPy renders supported expressions."""
        assert renderer.render("sqrt(x)") == "\\sqrt{x}"
        assert renderer.render("pi") == "\\pi"

    def test_headers_printed_verbatim(self, renderer):
        """Test trailing digits are not turned into subscripts."""
        assert renderer.render("Node1") == "Node1"

    def test_unsupported_raises(self, renderer):
        """Test inputs outside SymPy's reading raise DelegateError."""
        for text in ["10 % 3", "foo(1)", "(1 +", "2 ** 3", "x.evalf"]:
            with pytest.raises(DelegateError):
                renderer.render(text)

    def test_unevaluated(self, renderer):
        """Test the output follows the typed expression."""
        assert renderer.render("sqrt(16)") == "\\sqrt{16}"
        assert renderer.render("") == "0"

    def test_code_in_text_not_executed(self, renderer, temp_dir):
        target = temp_dir / "created"
        with pytest.raises(DelegateError):
            renderer.render(f"(x.evalf.__globals__['__builtins__']['__import__']('os').system)('touch {target}')")
        assert not target.exists()


class TestLatexRenderer:

    def test_fallback_to_ast(self, registry, tokenizer):
        """Test the AST renderer takes over when SymPy fails."""
        renderer = LatexRenderer(registry, tokenizer)
        assert renderer.expression_to_latex("10 % 3") == "10 \\bmod 3"
        assert renderer.expression_to_latex("1 @ 2") == "1"

    @patch.object(SymPyLatexRenderer, 'is_available', return_value=False)
    def test_unavailable_renderer_skipped(self, mock_available, registry, tokenizer):
        """Test unavailable renderers are skipped."""
        renderer = LatexRenderer(registry, tokenizer)
        assert renderer.expression_to_latex("a * b") == "a \\cdot b"

    def test_builtin_only(self, registry, tokenizer):
        """Test disabling the external library."""
        renderer = LatexRenderer(registry, tokenizer, config=RenderConfig(use_external_library=False))
        assert renderer.renderers == [renderer.ast_renderer]

    @pytest.mark.asyncio
    async def test_latex_from_expression(self, builtin_engine):
        """Test the full equation string."""
        assert await builtin_engine.latex_from_expression("1 + 2", 3.0) == "1 + 2 = 3"
        assert await builtin_engine.latex_from_expression("a / 0", ErrorKind.ERROR) == "\\frac{a}{0} = \\text{Error}"
        assert await builtin_engine.latex_from_expression("", 0.0) == "0 = 0"

    @pytest.mark.asyncio
    async def test_latex_from_expression_sympy(self, engine):
        """Test the SymPy path produces the left-hand side."""
        assert await engine.latex_from_expression("sqrt(x)", 2.0) == "\\sqrt{x} = 2"


class TestResultFormatter:

    @pytest.mark.parametrize("value,expected", [
        (0, "0"),
        (-0.0, "0"),
        (42, "42"),
        (-42.0, "-42"),
        (0.5, "0.5"),
        (3.142, "3.142"),
        (123456, "123456"),
        (-123456.5, "-123456.5"),
    ])
    def test_plain(self, formatter, value, expected):
        """Test values printed as plain decimals."""
        assert formatter.format_result_latex(value) == expected

    @pytest.mark.parametrize("value,expected", [
        (1234567, "1.2346 \\times 10^{+6}"),
        (-1234567, "-1.2346 \\times 10^{+6}"),
        (3.1416, "3.1416 \\times 10^{+0}"),
        (0.1234, "1.2340 \\times 10^{-1}"),
        (0.30000000000000004, "3.0000 \\times 10^{-1}"),
    ])
    def test_scientific(self, formatter, value, expected):
        """Test long integer parts or fractions switch to scientific form."""
        assert formatter.format_result_latex(value) == expected

    def test_integer_digit_boundary(self, formatter):
        """Test six integer digits stay plain, seven do not."""
        assert "\\times" not in formatter.format_result_latex(999999)
        assert "\\times" in formatter.format_result_latex(1000000)

    def test_text_values(self, formatter):
        """Test non-numbers render as text with unsafe characters stripped."""
        assert formatter.format_result_latex(ErrorKind.ERROR) == "\\text{Error}"
        assert formatter.format_result_latex("Circular Dependency") == "\\text{Circular Dependency}"
        assert formatter.format_result_latex("a{b}\\c") == "\\text{abc}"
        assert formatter.format_result_latex(True) == "\\text{True}"

    def test_non_finite(self, formatter):
        """Test infinities and NaN render as text."""
        assert formatter.format_result_latex(math.inf) == "\\text{Infinity}"
        assert formatter.format_result_latex(math.nan) == "\\text{NaN}"

    def test_custom_thresholds(self):
        """Test configurable thresholds and mantissa."""
        formatter = ResultFormatter(RenderConfig(max_integer_digits=3, mantissa_digits=2))
        assert formatter.format_result_latex(1234) == "1.23 \\times 10^{+3}"
        assert formatter.format_result_latex(123) == "123"


class TestJsNumberString:

    @pytest.mark.parametrize("value,expected", [
        (100.0, "100"),
        (-2.5, "-2.5"),
        (0.1 + 0.2, "0.30000000000000004"),
        (1e21, "1e+21"),
        (1.5e-7, "1.5e-7"),
        (123456789.0, "123456789"),
    ])
    def test_spelling(self, value, expected):
        """Test JavaScript-style shortest number spelling."""
        assert js_number_string(value) == expected
