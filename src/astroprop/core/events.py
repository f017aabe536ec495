"""
Event conditions used to stop propagation.

A condition is tested between two consecutive states (current, previous).
Real-valued conditions expose a signed error (value - target) that the
numerical solver refines with a bracketed root finder; logical
combinations are refined by bisection on the predicate.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional, Sequence, Union
import copy
import logging

import numpy as np

from .errors import PropagationRuntimeError, UndefinedArgumentError
from .frames import Frame
from .state import State
from .time import Instant

logger = logging.getLogger(__name__)


class Criterion(Enum):
    POSITIVE_CROSSING = 'positive_crossing'
    NEGATIVE_CROSSING = 'negative_crossing'
    ANY_CROSSING = 'any_crossing'
    STRICTLY_POSITIVE = 'strictly_positive'
    STRICTLY_NEGATIVE = 'strictly_negative'
    IGNORE = 'ignore'


class TargetType(Enum):
    ABSOLUTE = 'absolute'
    RELATIVE = 'relative'


@dataclass(frozen=True)
class Target:
    """
    Target value of a condition.

    A relative target is an offset from the condition's value at the
    initial state of a propagation.
    """
    value: float
    type: TargetType = TargetType.ABSOLUTE

    @classmethod
    def absolute(cls, value: float) -> 'Target':
        return cls(float(value), TargetType.ABSOLUTE)

    @classmethod
    def relative(cls, value: float) -> 'Target':
        return cls(float(value), TargetType.RELATIVE)

    @property
    def is_relative(self) -> bool:
        return self.type is TargetType.RELATIVE

    def resolve(self, reference_value: float) -> 'Target':
        if not self.is_relative:
            return self
        return Target(reference_value + self.value, TargetType.ABSOLUTE)


def evaluate_criterion(criterion: Criterion, current_error: float,
                       previous_error: Optional[float] = None) -> bool:
    """
    Test a criterion on errors (value - target).

    Crossings need a previous error; without one they are never satisfied.
    """
    if criterion is Criterion.STRICTLY_POSITIVE:
        return current_error > 0.0
    if criterion is Criterion.STRICTLY_NEGATIVE:
        return current_error < 0.0
    if criterion is Criterion.IGNORE or previous_error is None:
        return False

    positive = previous_error < 0.0 <= current_error
    negative = previous_error > 0.0 >= current_error

    if criterion is Criterion.POSITIVE_CROSSING:
        return positive
    if criterion is Criterion.NEGATIVE_CROSSING:
        return negative
    return positive or negative


class EventCondition(ABC):
    """Abstract stopping condition."""

    def __init__(self, name: str):
        self._name = name

    @property
    def name(self) -> str:
        return self._name

    def is_defined(self) -> bool:
        return True

    @abstractmethod
    def is_satisfied(self, current_state: State, previous_state: State) -> bool:
        pass

    def resolve(self, initial_state: State) -> 'EventCondition':
        """Return a copy with relative targets fixed against `initial_state`."""
        return self

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self._name!r})"


class RealCondition(EventCondition):
    """
    Condition on a real-valued function of the state.

    Args:
        name: Condition name
        criterion: Criterion applied to value - target
        evaluator: Function State -> float
        target: Target value (float for absolute, or Target)
        frame: Frame the state is expressed in before evaluation (default: as is)
    """

    def __init__(self, name: str, criterion: Criterion, evaluator: Callable[[State], float],
                 target: Union[float, Target] = 0.0, frame: Optional[Frame] = None):
        super().__init__(name)

        if criterion is None:
            raise UndefinedArgumentError("Condition criterion is undefined")
        if evaluator is None:
            raise UndefinedArgumentError("Condition evaluator is undefined")

        self._criterion = criterion
        self._evaluator = evaluator
        self._target = target if isinstance(target, Target) else Target.absolute(target)
        self._frame = frame

    @property
    def criterion(self) -> Criterion:
        return self._criterion

    @property
    def target(self) -> Target:
        return self._target

    @property
    def frame(self) -> Optional[Frame]:
        return self._frame

    def evaluate(self, state: State) -> float:
        if self._frame is not None:
            state = state.in_frame(self._frame)
        return float(self._evaluator(state))

    def compute_error(self, state: State) -> float:
        return self.evaluate(state) - self._target.value

    def evaluate_criterion(self, current_error: float, previous_error: Optional[float] = None) -> bool:
        return evaluate_criterion(self._criterion, current_error, previous_error)

    def is_satisfied(self, current_state: State, previous_state: State) -> bool:
        previous_error = None if previous_state is None else self.compute_error(previous_state)
        return self.evaluate_criterion(self.compute_error(current_state), previous_error)

    def resolve(self, initial_state: State) -> 'RealCondition':
        if not self._target.is_relative:
            return self
        resolved = copy.copy(self)
        resolved._target = self._target.resolve(self.evaluate(initial_state))
        return resolved


class AngularCondition(RealCondition):
    """
    Condition on an angle (radians).

    Errors are wrapped to (-π, π]. A crossing also requires the jump
    between samples to be smaller than π, so passing the antipode of the
    target is not a crossing.
    """

    @staticmethod
    def wrap(angle: float) -> float:
        return float(np.pi - np.mod(np.pi - angle, 2 * np.pi))

    def compute_error(self, state: State) -> float:
        return self.wrap(self.evaluate(state) - self._target.value)

    def evaluate_criterion(self, current_error: float, previous_error: Optional[float] = None) -> bool:
        satisfied = evaluate_criterion(self._criterion, current_error, previous_error)

        if satisfied and previous_error is not None and self._criterion in (
                Criterion.ANY_CROSSING, Criterion.POSITIVE_CROSSING, Criterion.NEGATIVE_CROSSING):
            return abs(current_error - previous_error) < np.pi

        return satisfied


class InstantCondition(RealCondition):
    """Condition on the state instant, with error in seconds from `instant`."""

    def __init__(self, criterion: Criterion, instant: Instant, name: str = 'Instant Condition'):
        if instant is None:
            raise UndefinedArgumentError("Condition instant is undefined")
        super().__init__(name, criterion, lambda state: state.instant - instant, 0.0)
        self._instant = instant

    @property
    def instant(self) -> Instant:
        return self._instant

    def compute_error(self, state: State) -> float:
        return state.instant - self._instant


class DurationCondition(InstantCondition):
    """
    Instant condition relative to the start of a propagation.

    Must be resolved against an initial state before use.
    """

    def __init__(self, criterion: Criterion, duration: float, name: str = 'Duration Condition'):
        super().__init__(criterion, Instant.j2000(), name)
        self._duration = float(duration)
        self._resolved = False

    @property
    def duration(self) -> float:
        return self._duration

    def compute_error(self, state: State) -> float:
        if not self._resolved:
            raise PropagationRuntimeError(
                f"{self.name} must be resolved against an initial state before evaluation"
            )
        return super().compute_error(state)

    def resolve(self, initial_state: State) -> InstantCondition:
        return InstantCondition(self._criterion, initial_state.instant + self._duration, self.name)


class LogicalCondition(EventCondition):
    """Combination of conditions, refined by bisection."""

    def __init__(self, name: str, conditions: Sequence[EventCondition]):
        super().__init__(name)
        if not conditions:
            raise UndefinedArgumentError(f"{name} needs at least one condition")
        self._conditions = tuple(conditions)

    @property
    def conditions(self):
        return self._conditions

    def resolve(self, initial_state: State) -> 'LogicalCondition':
        resolved = copy.copy(self)
        resolved._conditions = tuple(condition.resolve(initial_state) for condition in self._conditions)
        return resolved


class ConjunctiveCondition(LogicalCondition):
    """Satisfied when every condition is satisfied."""

    def __init__(self, conditions: Sequence[EventCondition], name: str = 'Conjunctive Condition'):
        super().__init__(name, conditions)

    def is_satisfied(self, current_state, previous_state) -> bool:
        return all(condition.is_satisfied(current_state, previous_state) for condition in self._conditions)


class DisjunctiveCondition(LogicalCondition):
    """Satisfied when any condition is satisfied."""

    def __init__(self, conditions: Sequence[EventCondition], name: str = 'Disjunctive Condition'):
        super().__init__(name, conditions)

    def is_satisfied(self, current_state, previous_state) -> bool:
        return any(condition.is_satisfied(current_state, previous_state) for condition in self._conditions)
