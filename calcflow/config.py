"""
Configuration classes for CalcFlow
"""

import json
import logging
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Dict, Union

import yaml

from .exceptions import ConfigurationError


logger = logging.getLogger(__name__)


@dataclass
class EvaluationConfig:
    """Numeric evaluation configuration."""
    # Try SymPy before the builtin shunting-yard evaluator
    use_external_library: bool = True

    # Decimal places kept in node results
    result_precision: int = 6

    def __post_init__(self):
        if self.result_precision < 0:
            raise ConfigurationError(f"result_precision must be >= 0, got {self.result_precision}")


@dataclass
class RenderConfig:
    """LaTeX rendering configuration."""
    use_external_library: bool = True

    # Scientific notation thresholds
    max_integer_digits: int = 6
    max_fraction_digits: int = 3
    mantissa_digits: int = 4


@dataclass
class WorkspaceConfig:
    """Main workspace configuration."""
    # General settings
    verbose: bool = False
    debug: bool = False

    # Seconds to wait after the last edit before recomputing
    debounce_delay: float = 0.1

    # Autocomplete
    suggestion_limit: int = 8

    evaluation: EvaluationConfig = field(default_factory=EvaluationConfig)
    render: RenderConfig = field(default_factory=RenderConfig)

    def __post_init__(self):
        if self.debounce_delay < 0:
            raise ConfigurationError(f"debounce_delay must be >= 0, got {self.debounce_delay}")
        if isinstance(self.evaluation, dict):
            self.evaluation = _build(EvaluationConfig, self.evaluation)
        if isinstance(self.render, dict):
            self.render = _build(RenderConfig, self.render)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'WorkspaceConfig':
        """Build a configuration from a plain mapping."""
        if not isinstance(data, dict):
            raise ConfigurationError(f"Configuration must be a mapping, got {type(data).__name__}")
        return _build(cls, data)

    @classmethod
    def from_file(cls, path: Union[str, Path]) -> 'WorkspaceConfig':
        """Load configuration from a YAML or JSON file."""
        path = Path(path)
        try:
            with open(path, 'r', encoding='utf-8') as f:
                if path.suffix in ['.yaml', '.yml']:
                    data = yaml.safe_load(f)
                else:
                    data = json.load(f)
        except (OSError, yaml.YAMLError, json.JSONDecodeError) as e:
            raise ConfigurationError(f"Failed to load configuration from {path}: {e}") from e

        logger.info(f"Loaded configuration from {path}")
        return cls.from_dict(data or {})


def _build(config_cls, data: Dict[str, Any]):
    """Instantiate a config dataclass, dropping unknown keys."""
    known = {f.name for f in fields(config_cls)}
    unknown = set(data) - known
    if unknown:
        logger.warning(f"Ignoring unknown {config_cls.__name__} keys: {sorted(unknown)}")
    try:
        return config_cls(**{k: v for k, v in data.items() if k in known})
    except TypeError as e:
        raise ConfigurationError(str(e)) from e


__all__ = [
    'EvaluationConfig',
    'RenderConfig',
    'WorkspaceConfig'
]
