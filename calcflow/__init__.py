"""
CalcFlow

A dependency-aware arithmetic expression engine: a small math language with
LaTeX rendering, wired into a live graph of named nodes that recompute when
the nodes they reference change.
"""

__version__ = "0.1.0"
__author__ = "CalcFlow Team"

# Models and errors
from .models import (
    ErrorKind,
    Result,
    NodeRecord,
    WorkspaceRecord,
    Suggestion,
    is_error_result
)
from .exceptions import (
    CalcFlowError,
    EvaluationError,
    ParseBoundaryOverrun,
    InsufficientOperands,
    DomainError,
    UnknownFunction,
    UnexpectedToken,
    DelegateError,
    MalformedPersistedInput,
    ConfigurationError
)

# Configuration classes
from .config import (
    EvaluationConfig,
    RenderConfig,
    WorkspaceConfig
)

# Core components
from .registry import (
    MathRegistry,
    OperatorDef,
    UnaryOperatorDef,
    FunctionDef,
    ConstantDef,
    create_default_registry
)
from .tokenizer import Token, TokenType, Tokenizer
from .parser import ExpressionParser
from .evaluator import ExpressionEvaluator, ShuntingYardEvaluator, SymPyEvaluator
from .rendering import LatexRenderer
from .graph import DependencyGraph
from .scheduling import Scheduler
from .calculation import NodeCalculator

# Main interfaces
from .engine import MathEngine
from .workspace import Workspace

__all__ = [
    # Version
    "__version__",

    # Models
    "ErrorKind",
    "Result",
    "NodeRecord",
    "WorkspaceRecord",
    "Suggestion",
    "is_error_result",

    # Errors
    "CalcFlowError",
    "EvaluationError",
    "ParseBoundaryOverrun",
    "InsufficientOperands",
    "DomainError",
    "UnknownFunction",
    "UnexpectedToken",
    "DelegateError",
    "MalformedPersistedInput",
    "ConfigurationError",

    # Configurations
    "EvaluationConfig",
    "RenderConfig",
    "WorkspaceConfig",

    # Core components
    "MathRegistry",
    "OperatorDef",
    "UnaryOperatorDef",
    "FunctionDef",
    "ConstantDef",
    "create_default_registry",
    "Token",
    "TokenType",
    "Tokenizer",
    "ExpressionParser",
    "ExpressionEvaluator",
    "ShuntingYardEvaluator",
    "SymPyEvaluator",
    "LatexRenderer",
    "DependencyGraph",
    "Scheduler",
    "NodeCalculator",

    # Main interfaces
    "MathEngine",
    "Workspace",
    "create_engine",
    "create_workspace"
]


# Convenience functions
def create_engine(**kwargs):
    """Create an engine; keyword arguments configure evaluation."""
    return MathEngine(evaluation=EvaluationConfig(**kwargs))


def create_workspace(**kwargs):
    """Create a configured workspace instance."""
    config = WorkspaceConfig(**kwargs)
    return Workspace(config)
