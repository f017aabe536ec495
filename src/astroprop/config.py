"""
Propagation settings, YAML loading and logging setup.

Example settings file:

    solver:
      stepper_type: runge_kutta_dopri5
      time_step: 5.0
      relative_tolerance: 1.0e-12
      absolute_tolerance: 1.0e-12
    maximum_propagation_duration: 2592000.0
    verbosity: 3
"""

from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Dict, Union
import logging

import yaml

from .constants import DEFAULT_MAXIMUM_PROPAGATION_DURATION
from .core.errors import InvalidConfigurationError
from .core.solver import LogType, NumericalSolver, StepperType

logger = logging.getLogger(__name__)

TRACE = 5
logging.addLevelName(TRACE, 'TRACE')

# Sequence verbosity -> logging threshold (0 is silent)
VERBOSITY_LEVELS = {
    0: None,
    1: logging.ERROR,
    2: logging.WARNING,
    3: logging.INFO,
    4: logging.DEBUG,
    5: TRACE,
}


@dataclass
class SolverSettings:
    """Numerical solver settings, enum members given by value (e.g. 'runge_kutta_dopri5')."""
    log_type: str = LogType.NO_LOG.value
    stepper_type: str = StepperType.RUNGE_KUTTA_DOPRI5.value
    time_step: float = 5.0
    relative_tolerance: float = 1e-12
    absolute_tolerance: float = 1e-12
    root_solver_tolerance: float = 1e-7
    root_solver_max_iterations: int = 100

    def to_numerical_solver(self) -> NumericalSolver:
        try:
            log_type = LogType(self.log_type.lower())
            stepper_type = StepperType(self.stepper_type.lower())
        except (ValueError, AttributeError) as error:
            raise InvalidConfigurationError(f"Invalid solver settings: {error}") from error

        solver = NumericalSolver(
            log_type=log_type,
            stepper_type=stepper_type,
            time_step=float(self.time_step),
            relative_tolerance=float(self.relative_tolerance),
            absolute_tolerance=float(self.absolute_tolerance),
            root_solver_tolerance=float(self.root_solver_tolerance),
            root_solver_max_iterations=int(self.root_solver_max_iterations),
        )
        solver.validate()

        return solver


@dataclass
class PropagationSettings:
    """Top-level settings for a sequence run."""
    solver: SolverSettings = field(default_factory=SolverSettings)
    maximum_propagation_duration: float = DEFAULT_MAXIMUM_PROPAGATION_DURATION
    verbosity: int = 0
    repetition_count: int = 1
    log_level: str = 'INFO'

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'PropagationSettings':
        data = dict(data or {})
        solver_data = data.pop('solver', None) or {}

        _check_keys(cls, data, 'settings')
        _check_keys(SolverSettings, solver_data, 'solver settings')

        settings = cls(solver=SolverSettings(**solver_data), **data)

        if settings.verbosity not in VERBOSITY_LEVELS:
            raise InvalidConfigurationError(f"Verbosity must be in [0, 5], got {settings.verbosity}")
        if not float(settings.maximum_propagation_duration) > 0.0:
            raise InvalidConfigurationError(
                f"maximum_propagation_duration must be positive, got {settings.maximum_propagation_duration}"
            )
        if int(settings.repetition_count) < 1:
            raise InvalidConfigurationError(
                f"repetition_count must be >= 1, got {settings.repetition_count}"
            )

        return settings


def _check_keys(settings_class, data: Dict[str, Any], label: str):
    known = {item.name for item in fields(settings_class)}
    unknown = set(data) - known
    if unknown:
        raise InvalidConfigurationError(f"Unknown {label}: {', '.join(sorted(unknown))}")


def load_settings(path: Union[str, Path]) -> PropagationSettings:
    """
    Load propagation settings from a YAML file.

    Args:
        path: YAML file path

    Returns:
        PropagationSettings (defaults for missing keys)
    """
    with open(path, 'r') as f:
        try:
            data = yaml.safe_load(f)
        except yaml.YAMLError as error:
            raise InvalidConfigurationError(f"Cannot parse {path}: {error}") from error

    if data is not None and not isinstance(data, dict):
        raise InvalidConfigurationError(f"{path} must contain a mapping")

    settings = PropagationSettings.from_dict(data)
    logger.info(f"Loaded propagation settings from {path}")

    return settings


def configure_logging(level: Union[int, str] = logging.INFO, format: str = '%(message)s'):
    """Configure root logging for scripts and notebooks."""
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
    logging.basicConfig(level=level, format=format)
