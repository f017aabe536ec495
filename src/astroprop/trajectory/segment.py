"""
Trajectory segments.

A segment propagates a state under a fixed set of dynamics until its
event condition is satisfied or a duration limit is reached. Coast
segments use only natural dynamics; maneuver segments add a thruster.
"""

from bisect import bisect_right
from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, Optional, Sequence
import logging

import numpy as np

from ..constants import DEFAULT_MAXIMUM_PROPAGATION_DURATION, STANDARD_GRAVITY
from ..core.coordinates import CartesianVelocity, CoordinatesSubset
from ..core.dynamics import Dynamics
from ..core.errors import (
    InvalidArgumentError, OutOfRangeError, PropagationRuntimeError, UndefinedArgumentError,
    WrongOrderError,
)
from ..core.events import EventCondition
from ..core.frames import Frame, GCRF
from ..core.solver import NumericalSolver
from ..core.state import State
from ..core.time import Instant

logger = logging.getLogger(__name__)


class SegmentType(Enum):
    COAST = 'coast'
    MANEUVER = 'maneuver'


def _check_requested_instants(instants: Sequence[Instant], start: Instant, end: Instant):
    """Raise unless instants are strictly increasing and inside [start, end]."""
    for earlier, later in zip(instants, instants[1:]):
        if not earlier < later:
            raise WrongOrderError("Instants must be in strictly increasing order")

    if instants[0] < start or instants[-1] > end:
        raise OutOfRangeError(
            f"Requested instants [{instants[0]}, {instants[-1]}] are outside "
            f"the solution span [{start}, {end}]"
        )


@dataclass
class SegmentSolution:
    """
    Result of solving a segment.

    `states` are strictly time ordered, or hold the seed alone when the
    condition held at the start.
    """
    name: str
    dynamics: List[Dynamics]
    states: List[State]
    condition_is_satisfied: bool
    segment_type: SegmentType

    def _require_states(self):
        if not self.states:
            raise PropagationRuntimeError(f"Segment solution '{self.name}' has no states")

    def access_start_instant(self) -> Instant:
        self._require_states()
        return self.states[0].instant

    def access_end_instant(self) -> Instant:
        self._require_states()
        return self.states[-1].instant

    def get_propagation_duration(self) -> float:
        """Elapsed time between the first and last states (seconds)."""
        self._require_states()
        return self.states[-1].instant - self.states[0].instant

    def get_initial_mass(self) -> float:
        self._require_states()
        return self.states[0].mass

    def get_final_mass(self) -> float:
        self._require_states()
        return self.states[-1].mass

    def compute_delta_mass(self) -> float:
        """Propellant consumed (kg); 0 without states."""
        if not self.states:
            return 0.0
        return self.get_initial_mass() - self.get_final_mass()

    def compute_delta_v(self, specific_impulse: float) -> float:
        """
        Ideal velocity change from the rocket equation.

        Args:
            specific_impulse: Specific impulse (s)

        Returns:
            g0 * Isp * ln(m0 / mf) (m/s); 0 without states or mass change
        """
        if not self.states:
            return 0.0

        initial_mass = self.get_initial_mass()
        final_mass = self.get_final_mass()

        if initial_mass == final_mass:
            return 0.0

        return STANDARD_GRAVITY * specific_impulse * float(np.log(initial_mass / final_mass))

    def calculate_states_at(self, instants: Sequence[Instant],
                            numerical_solver: Optional[NumericalSolver] = None) -> List[State]:
        """
        Interpolate the solution at instants by re-propagation.

        Each instant is propagated from the closest stored state at or
        before it; stored instants return the stored state.

        Args:
            instants: Strictly increasing instants inside the solution span
            numerical_solver: Solver used between stored states (default: NumericalSolver.default())

        Returns:
            One state per instant
        """
        self._require_states()

        if len(instants) == 0:
            return []

        _check_requested_instants(instants, self.access_start_instant(), self.access_end_instant())

        numerical_solver = numerical_solver if numerical_solver is not None else NumericalSolver.default()
        stored_instants = [state.instant for state in self.states]

        groups: Dict[int, List[Instant]] = {}
        for instant in instants:
            groups.setdefault(bisect_right(stored_instants, instant) - 1, []).append(instant)

        states = []
        for index, group in groups.items():
            seed = self.states[index]
            if group[0] == seed.instant:
                states.append(seed)
                group = group[1:]
            if group:
                states.extend(numerical_solver.integrate_times(seed, group, self.dynamics))

        return states

    def get_dynamics_contribution(self, dynamics: Dynamics, frame: Frame = GCRF,
                                  coordinates_subsets: Optional[Sequence[CoordinatesSubset]] = None) -> np.ndarray:
        """
        Evaluate one dynamics along the solution.

        Args:
            dynamics: Dynamics of this solution
            frame: Frame the states are expressed in before evaluation
            coordinates_subsets: Write subsets to keep (default: all; must not be empty)

        Returns:
            Matrix (number of states x total subset size)
        """
        if not any(item is dynamics for item in self.dynamics):
            raise InvalidArgumentError("Provided dynamics is not part of the segment dynamics.")

        write_subsets = list(dynamics.get_write_coordinates_subsets())
        subsets = write_subsets if coordinates_subsets is None else list(coordinates_subsets)

        if not subsets:
            raise UndefinedArgumentError("Coordinates subsets are undefined.")

        for subset in subsets:
            if subset not in write_subsets:
                raise UndefinedArgumentError(
                    "Provided coordinates subset is not part of the dynamics write coordinates subsets."
                )

        self._require_states()

        offsets = np.cumsum([0] + [subset.size for subset in write_subsets])
        columns = np.concatenate([
            np.arange(offsets[write_subsets.index(subset)], offsets[write_subsets.index(subset)] + subset.size)
            for subset in subsets
        ])

        read_subsets = dynamics.get_read_coordinates_subsets()
        rows = []
        for state in self.states:
            state = state.in_frame(frame)
            contribution = dynamics.compute_contribution(
                state.instant, state.extract_coordinates(read_subsets), frame
            )
            rows.append(np.asarray(contribution, dtype=float)[columns])

        return np.vstack(rows)

    def get_dynamics_acceleration_contribution(self, dynamics: Dynamics, frame: Frame = GCRF) -> np.ndarray:
        return self.get_dynamics_contribution(dynamics, frame, [CartesianVelocity.default()])

    def get_all_dynamics_contributions(self, frame: Frame = GCRF) -> Dict[Dynamics, np.ndarray]:
        return {dynamics: self.get_dynamics_contribution(dynamics, frame) for dynamics in self.dynamics}

    def summary(self) -> str:
        report = []
        report.append("=" * 70)
        report.append(f"SEGMENT SOLUTION: {self.name}")
        report.append("=" * 70)
        report.append(f"  Type: {self.segment_type.name}")
        report.append(f"  Condition satisfied: {self.condition_is_satisfied}")
        report.append(f"  States: {len(self.states)}")
        report.append(f"  Dynamics: {', '.join(item.name for item in self.dynamics)}")

        if self.states:
            report.append(f"  Start: {self.access_start_instant()}")
            report.append(f"  End: {self.access_end_instant()}")
            report.append(f"  Duration: {self.get_propagation_duration():.3f} sec")
            if self.states[0].has_subset(CoordinatesSubset.mass()):
                report.append(f"  Delta mass: {self.compute_delta_mass():.6f} kg")

        report.append("=" * 70)
        return "\n".join(report)

    def __str__(self) -> str:
        return self.summary()


class Segment:
    """
    Propagation leg bounded by an event condition.

    Args:
        name: Segment name
        segment_type: COAST or MANEUVER
        event_condition: Condition ending the segment
        dynamics: Dynamics acting during the segment
        numerical_solver: Solver configuration
    """

    Solution = SegmentSolution
    Type = SegmentType

    def __init__(self, name: str, segment_type: SegmentType, event_condition: EventCondition,
                 dynamics: Sequence[Dynamics], numerical_solver: NumericalSolver):
        if event_condition is None or not event_condition.is_defined():
            raise UndefinedArgumentError("Event condition is undefined")
        if not dynamics:
            raise UndefinedArgumentError("Dynamics are undefined")
        if any(item is None or not item.is_defined() for item in dynamics):
            raise UndefinedArgumentError("Dynamics are undefined")
        if numerical_solver is None or not numerical_solver.is_defined():
            raise UndefinedArgumentError("Numerical solver is undefined")

        numerical_solver.validate()

        self._name = name
        self._type = segment_type
        self._event_condition = event_condition
        self._dynamics = tuple(dynamics)
        self._numerical_solver = numerical_solver

    @classmethod
    def coast(cls, name: str, event_condition: EventCondition, dynamics: Sequence[Dynamics],
              numerical_solver: NumericalSolver) -> 'Segment':
        return cls(name, SegmentType.COAST, event_condition, dynamics, numerical_solver)

    @classmethod
    def maneuver(cls, name: str, event_condition: EventCondition, thruster_dynamics: Dynamics,
                 dynamics: Sequence[Dynamics], numerical_solver: NumericalSolver) -> 'Segment':
        """Coast dynamics plus a thruster."""
        if thruster_dynamics is None:
            raise UndefinedArgumentError("Thruster dynamics are undefined")
        return cls(name, SegmentType.MANEUVER, event_condition,
                   [*dynamics, thruster_dynamics], numerical_solver)

    @property
    def name(self) -> str:
        return self._name

    @property
    def type(self) -> SegmentType:
        return self._type

    @property
    def event_condition(self) -> EventCondition:
        return self._event_condition

    @property
    def dynamics(self) -> tuple:
        return self._dynamics

    @property
    def numerical_solver(self) -> NumericalSolver:
        return self._numerical_solver

    @property
    def thruster_dynamics(self) -> Optional[Dynamics]:
        if self._type is not SegmentType.MANEUVER:
            return None
        return self._dynamics[-1]

    def solve(self, state: State,
              maximum_propagation_duration: float = DEFAULT_MAXIMUM_PROPAGATION_DURATION) -> SegmentSolution:
        """
        Propagate until the event condition is satisfied.

        Args:
            state: Initial state (converted to GCRF)
            maximum_propagation_duration: Duration limit (seconds)

        Returns:
            SegmentSolution; `condition_is_satisfied` is False when the
            limit was reached first
        """
        if state is None:
            raise UndefinedArgumentError("State is undefined")
        if not maximum_propagation_duration > 0.0:
            raise InvalidArgumentError(
                f"Maximum propagation duration must be positive, got {maximum_propagation_duration}"
            )

        initial_state = state.in_frame(GCRF)
        event_condition = self._event_condition.resolve(initial_state)

        result = self._numerical_solver.integrate_time_to_condition(
            initial_state,
            initial_state.instant + maximum_propagation_duration,
            self._dynamics,
            event_condition,
        )

        logger.debug(
            f"Segment '{self._name}': {len(result.states)} states, "
            f"condition satisfied={result.condition_is_satisfied}, "
            f"{result.num_steps} steps"
        )

        return SegmentSolution(
            name=self._name,
            dynamics=list(self._dynamics),
            states=result.states,
            condition_is_satisfied=result.condition_is_satisfied,
            segment_type=self._type,
        )

    def __repr__(self) -> str:
        return f"Segment({self._name!r}, {self._type.name}, {self._event_condition.name!r})"
