"""Core propagation abstractions."""

from .coordinates import CoordinatesSubset, CartesianPosition, CartesianVelocity, CoordinatesBroker
from .dynamics import Dynamics
from .errors import (
    PropagationError,
    InvalidArgumentError,
    UndefinedArgumentError,
    UndefinedCoordinatesError,
    WrongOrderError,
    OutOfRangeError,
    InvalidConfigurationError,
    PropagationRuntimeError,
    IntegrationError,
)
from .events import (
    Criterion,
    Target,
    TargetType,
    EventCondition,
    RealCondition,
    AngularCondition,
    InstantCondition,
    DurationCondition,
    ConjunctiveCondition,
    DisjunctiveCondition,
)
from .frames import Frame
from .solver import NumericalSolver, LogType, StepperType, IntegrationResult
from .state import State
from .time import Instant

__all__ = [
    'CoordinatesSubset',
    'CartesianPosition',
    'CartesianVelocity',
    'CoordinatesBroker',
    'Dynamics',
    'PropagationError',
    'InvalidArgumentError',
    'UndefinedArgumentError',
    'UndefinedCoordinatesError',
    'WrongOrderError',
    'OutOfRangeError',
    'InvalidConfigurationError',
    'PropagationRuntimeError',
    'IntegrationError',
    'Criterion',
    'Target',
    'TargetType',
    'EventCondition',
    'RealCondition',
    'AngularCondition',
    'InstantCondition',
    'DurationCondition',
    'ConjunctiveCondition',
    'DisjunctiveCondition',
    'Frame',
    'NumericalSolver',
    'LogType',
    'StepperType',
    'IntegrationResult',
    'State',
    'Instant',
]
