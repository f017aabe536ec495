"""
astroprop: segment/sequence orbit propagation.

Propagates states built from named coordinates subsets under composable
dynamics, stops on event conditions refined to the exact crossing time,
and chains propagation legs into sequences sharing a duration budget.
"""

from .core import (
    CoordinatesSubset,
    CartesianPosition,
    CartesianVelocity,
    CoordinatesBroker,
    Dynamics,
    Criterion,
    Target,
    RealCondition,
    AngularCondition,
    InstantCondition,
    DurationCondition,
    ConjunctiveCondition,
    DisjunctiveCondition,
    Frame,
    NumericalSolver,
    LogType,
    StepperType,
    State,
    Instant,
)
from .trajectory import Segment, Sequence

__version__ = "0.1.0"

__all__ = [
    'CoordinatesSubset',
    'CartesianPosition',
    'CartesianVelocity',
    'CoordinatesBroker',
    'Dynamics',
    'Criterion',
    'Target',
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
    'State',
    'Instant',
    'Segment',
    'Sequence',
]
