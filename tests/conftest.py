import pytest
import tempfile
from pathlib import Path
from calcflow.config import EvaluationConfig, RenderConfig, WorkspaceConfig
from calcflow.engine import MathEngine
from calcflow.evaluator import ShuntingYardEvaluator, SymPyEvaluator
from calcflow.graph import DependencyGraph
from calcflow.parser import ExpressionParser
from calcflow.registry import create_default_registry
from calcflow.rendering import AstLatexRenderer, ResultFormatter
from calcflow.scheduling import Scheduler
from calcflow.tokenizer import Tokenizer
from calcflow.workspace import Workspace


@pytest.fixture
def temp_dir():
    """Create temporary directory for tests."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def registry():
    """Default operator/function/constant registry."""
    return create_default_registry()


@pytest.fixture
def tokenizer(registry):
    return Tokenizer(registry)


@pytest.fixture
def parser():
    return ExpressionParser()


@pytest.fixture
def builtin_evaluator(registry, tokenizer):
    """Shunting-yard evaluator without SymPy."""
    return ShuntingYardEvaluator(registry, tokenizer)


@pytest.fixture
def sympy_evaluator(registry, tokenizer):
    return SymPyEvaluator(registry, tokenizer)


@pytest.fixture
def ast_renderer(registry, tokenizer, parser):
    return AstLatexRenderer(registry, tokenizer, parser)


@pytest.fixture
def formatter():
    return ResultFormatter()


@pytest.fixture
def builtin_engine(registry):
    """Engine restricted to the builtin evaluator and AST renderer."""
    return MathEngine(
        registry,
        evaluation=EvaluationConfig(use_external_library=False),
        render=RenderConfig(use_external_library=False)
    )


@pytest.fixture
def engine():
    """Engine with SymPy enabled."""
    return MathEngine()


@pytest.fixture
def graph():
    return DependencyGraph(Scheduler())


@pytest.fixture
def workspace_config():
    """Builtin-only configuration with a short debounce."""
    return WorkspaceConfig(
        debounce_delay=0.01,
        evaluation=EvaluationConfig(use_external_library=False),
        render=RenderConfig(use_external_library=False)
    )


@pytest.fixture
def workspace(workspace_config):
    return Workspace(workspace_config)


@pytest.fixture
def sympy_workspace():
    """Workspace evaluating through SymPy first."""
    return Workspace(WorkspaceConfig(debounce_delay=0.01))


@pytest.fixture
def sample_expressions():
    """Expressions with their expected builtin results."""
    return {
        '2 + 3 * 4': 14.0,
        '2 ^ 3 ^ 2': 512.0,
        '(2 + 3) * 4': 20.0,
        '10 - 4 - 3': 3.0,
        '100 / 10 / 5': 2.0,
        '-10 % 3': -1.0,
        '7 % -3': 1.0,
        'pow(2, 10)': 1024.0,
        'sqrt(16) + 1': 5.0,
        '(-2) ^ 3': -8.0,
        '--5': 5.0,
        'NonExistent + 1': 1.0,
    }


@pytest.fixture
def error_expressions():
    """Expressions that must evaluate to "Error"."""
    return [
        '10 / 0',
        '10 % 0',
        'sqrt(-1)',
        'ln(0)',
        'log(10, 1)',
        'log(-1, 10)',
        'acos(2)',
        '(-8) ^ 0.5',
        '(1 + 2',
        '1 + 2)',
        '+ - * /',
        'foo(1)',
        'pow(2)',
    ]
