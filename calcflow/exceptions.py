"""
Exception hierarchy for the CalcFlow expression engine
"""

from typing import Optional


class CalcFlowError(Exception):
    """Base class for all CalcFlow errors."""


class EvaluationError(CalcFlowError):
    """An expression could not be reduced to a number."""

    def __init__(self, message: str, token: Optional[str] = None):
        super().__init__(message)
        self.token = token


class ParseBoundaryOverrun(EvaluationError):
    """Unmatched parenthesis in the operator stack."""


class InsufficientOperands(EvaluationError):
    """An operator or function found too few values on the stack."""


class DomainError(EvaluationError):
    """A computation produced NaN (division by zero, sqrt of a negative...)."""


class UnknownFunction(EvaluationError):
    """A function token has no registry entry."""


class UnexpectedToken(EvaluationError):
    """A token appears where the grammar allows none."""


class DelegateError(CalcFlowError):
    """The external math library could not handle an expression."""


class MalformedPersistedInput(CalcFlowError):
    """Imported workspace data is not a list of header/expression records."""


class ConfigurationError(CalcFlowError):
    """Invalid configuration value or file."""


__all__ = [
    'CalcFlowError',
    'EvaluationError',
    'ParseBoundaryOverrun',
    'InsufficientOperands',
    'DomainError',
    'UnknownFunction',
    'UnexpectedToken',
    'DelegateError',
    'MalformedPersistedInput',
    'ConfigurationError'
]
