"""
Segment sequences.

A sequence chains segments: each leg starts from the last state of the
previous one, and all legs share a global propagation duration budget.
Running out of budget, or a leg whose condition is never met, ends the
sequence with a partial (incomplete) solution rather than an error.
"""

from bisect import bisect_left
from dataclasses import dataclass
from typing import List, Optional, Sequence as SequenceType
import logging

from tqdm import tqdm

from ..config import VERBOSITY_LEVELS, PropagationSettings, configure_logging
from ..constants import DEFAULT_MAXIMUM_PROPAGATION_DURATION
from ..core.dynamics import Dynamics
from ..core.errors import InvalidArgumentError, PropagationRuntimeError, UndefinedArgumentError
from ..core.events import EventCondition
from ..core.solver import NumericalSolver
from ..core.state import State
from ..core.time import Instant
from .segment import Segment, SegmentSolution, _check_requested_instants

logger = logging.getLogger(__name__)


@dataclass
class SequenceSolution:
    """Ordered segment solutions and whether every leg completed."""
    segment_solutions: List[SegmentSolution]
    execution_is_complete: bool

    def get_states(self) -> List[State]:
        """
        Concatenate the legs' states.

        The seed of each leg repeats the last state of the previous leg and
        is dropped.
        """
        states: List[State] = []

        for solution in self.segment_solutions:
            for state in solution.states:
                if states and state.instant == states[-1].instant:
                    continue
                states.append(state)

        if not states:
            raise PropagationRuntimeError("Sequence solution has no states")

        return states

    def access_start_instant(self) -> Instant:
        return self.get_states()[0].instant

    def access_end_instant(self) -> Instant:
        return self.get_states()[-1].instant

    def get_propagation_duration(self) -> float:
        return self.access_end_instant() - self.access_start_instant()

    def get_initial_mass(self) -> float:
        return self.get_states()[0].mass

    def get_final_mass(self) -> float:
        return self.get_states()[-1].mass

    def compute_delta_mass(self) -> float:
        if not self.segment_solutions:
            return 0.0
        return self.get_initial_mass() - self.get_final_mass()

    def compute_delta_v(self, specific_impulse: float) -> float:
        return sum(solution.compute_delta_v(specific_impulse) for solution in self.segment_solutions)

    def calculate_states_at(self, instants: SequenceType[Instant],
                            numerical_solver: Optional[NumericalSolver] = None) -> List[State]:
        """
        Interpolate the sequence at instants.

        Each instant is delegated to the first leg whose span contains it.
        Raises OutOfRangeError outside the sequence span.
        """
        self.get_states()

        if len(instants) == 0:
            return []

        _check_requested_instants(instants, self.access_start_instant(), self.access_end_instant())

        solutions = [solution for solution in self.segment_solutions if solution.states]
        end_instants = [solution.access_end_instant() for solution in solutions]

        groups = {}
        for instant in instants:
            groups.setdefault(bisect_left(end_instants, instant), []).append(instant)

        states = []
        for index, group in groups.items():
            states.extend(solutions[index].calculate_states_at(group, numerical_solver))

        return states

    def summary(self) -> str:
        report = []
        report.append("=" * 70)
        report.append("SEQUENCE SOLUTION")
        report.append("=" * 70)
        report.append(f"  Complete: {self.execution_is_complete}")
        report.append(f"  Segments: {len(self.segment_solutions)}")

        for solution in self.segment_solutions:
            duration = solution.get_propagation_duration() if solution.states else 0.0
            status = "✓" if solution.condition_is_satisfied else "✗"
            report.append(f"    {status} {solution.name}: {duration:.3f} sec, {len(solution.states)} states")

        if self.segment_solutions and any(solution.states for solution in self.segment_solutions):
            report.append(f"  Total duration: {self.get_propagation_duration():.3f} sec")

        report.append("=" * 70)
        return "\n".join(report)

    def __str__(self) -> str:
        return self.summary()


class Sequence:
    """
    Ordered chain of segments sharing a numerical solver and base dynamics.

    Args:
        segments: Initial segments
        numerical_solver: Solver used by segments added through this sequence
        dynamics: Base dynamics of segments added through this sequence
        maximum_propagation_duration: Global duration budget (seconds)
        verbosity: 0 (silent) to 5 (trace)
        repetition_count: Passes over the segments when `solve` is not given one (>= 1)
    """

    Solution = SequenceSolution

    def __init__(self, segments: SequenceType[Segment] = None,
                 numerical_solver: NumericalSolver = None,
                 dynamics: SequenceType[Dynamics] = None,
                 maximum_propagation_duration: float = DEFAULT_MAXIMUM_PROPAGATION_DURATION,
                 verbosity: int = 0,
                 repetition_count: int = 1):
        if verbosity not in VERBOSITY_LEVELS:
            raise InvalidArgumentError(f"Verbosity must be in [0, 5], got {verbosity}")
        if repetition_count < 1:
            raise InvalidArgumentError(f"Repetition count must be >= 1, got {repetition_count}")
        if not maximum_propagation_duration > 0.0:
            raise InvalidArgumentError(
                f"Maximum propagation duration must be positive, got {maximum_propagation_duration}"
            )

        self._segments: List[Segment] = []
        self._numerical_solver = numerical_solver if numerical_solver is not None \
            else NumericalSolver.default_conditional()
        self._dynamics = list(dynamics or [])
        self._maximum_propagation_duration = float(maximum_propagation_duration)
        self._verbosity = verbosity
        self._repetition_count = int(repetition_count)

        self.add_segments(segments or [])

    @classmethod
    def from_settings(cls, settings: PropagationSettings, segments: SequenceType[Segment] = None,
                      dynamics: SequenceType[Dynamics] = None) -> 'Sequence':
        """
        Build a sequence from loaded settings.

        Also configures root logging at `settings.log_level`.
        """
        configure_logging(settings.log_level)

        return cls(
            segments=segments,
            numerical_solver=settings.solver.to_numerical_solver(),
            dynamics=dynamics,
            maximum_propagation_duration=settings.maximum_propagation_duration,
            verbosity=settings.verbosity,
            repetition_count=settings.repetition_count,
        )

    @property
    def segments(self) -> List[Segment]:
        return list(self._segments)

    @property
    def numerical_solver(self) -> NumericalSolver:
        return self._numerical_solver

    @property
    def dynamics(self) -> List[Dynamics]:
        return list(self._dynamics)

    @property
    def maximum_propagation_duration(self) -> float:
        return self._maximum_propagation_duration

    @property
    def verbosity(self) -> int:
        return self._verbosity

    @property
    def repetition_count(self) -> int:
        return self._repetition_count

    def add_segment(self, segment: Segment):
        if segment is None:
            raise UndefinedArgumentError("Segment is undefined")
        self._segments.append(segment)

    def add_segments(self, segments: SequenceType[Segment]):
        for segment in segments:
            self.add_segment(segment)

    def add_coast_segment(self, event_condition: EventCondition):
        self.add_segment(Segment.coast(
            f"Coast [{event_condition.name}]" if event_condition is not None else "Coast",
            event_condition, self._dynamics, self._numerical_solver,
        ))

    def add_maneuver_segment(self, event_condition: EventCondition, thruster_dynamics: Dynamics):
        self.add_segment(Segment.maneuver(
            f"Maneuver [{event_condition.name}]" if event_condition is not None else "Maneuver",
            event_condition, thruster_dynamics, self._dynamics, self._numerical_solver,
        ))

    def _log(self, level: int, message: str):
        threshold = VERBOSITY_LEVELS[self._verbosity]
        if threshold is not None and level >= threshold:
            logger.log(level, message)

    def solve(self, state: State, repetition_count: Optional[int] = None) -> SequenceSolution:
        """
        Solve the segments in order, `repetition_count` times.

        Args:
            state: Initial state
            repetition_count: Number of passes over the segments (>= 1,
                default: the sequence's repetition count)

        Returns:
            SequenceSolution; incomplete when a leg's condition is not met
            within the remaining duration budget
        """
        if repetition_count is None:
            repetition_count = self._repetition_count
        if repetition_count < 1:
            raise InvalidArgumentError(f"Repetition count must be >= 1, got {repetition_count}")
        if state is None:
            raise UndefinedArgumentError("State is undefined")
        if not self._segments:
            raise UndefinedArgumentError("Sequence has no segments")

        solutions: List[SegmentSolution] = []
        initial_state = state
        remaining = self._maximum_propagation_duration

        for repetition in tqdm(range(repetition_count), desc="Sequence", disable=self._verbosity < 4):
            for segment in self._segments:
                if remaining <= 0.0:
                    self._log(logging.WARNING, "Maximum propagation duration reached")
                    return SequenceSolution(solutions, False)

                self._log(logging.INFO, f"Solving segment {segment.name} (repetition {repetition + 1})")

                solution = segment.solve(initial_state, remaining)
                solutions.append(solution)
                remaining -= solution.get_propagation_duration()

                self._log(logging.DEBUG, str(solution))

                if not solution.condition_is_satisfied:
                    self._log(logging.WARNING, f"Segment {segment.name} did not satisfy its condition")
                    return SequenceSolution(solutions, False)

                initial_state = solution.states[-1]

        self._log(logging.INFO, f"Sequence complete: {len(solutions)} segment solutions")

        return SequenceSolution(solutions, True)

    def solve_to_condition(self, state: State, event_condition: EventCondition,
                           maximum_propagation_duration: float = DEFAULT_MAXIMUM_PROPAGATION_DURATION) -> SequenceSolution:
        """
        Repeat the segments until an outer condition is satisfied.

        The condition is resolved on the initial state and tested after
        each leg between the leg's last and first states.

        Args:
            state: Initial state
            event_condition: Outer stopping condition
            maximum_propagation_duration: Outer duration limit (seconds)

        Returns:
            SequenceSolution; complete once the condition is satisfied
        """
        if state is None:
            raise UndefinedArgumentError("State is undefined")
        if event_condition is None:
            raise UndefinedArgumentError("Event condition is undefined")
        if not self._segments:
            raise UndefinedArgumentError("Sequence has no segments")
        if not maximum_propagation_duration > 0.0:
            raise InvalidArgumentError(
                f"Maximum propagation duration must be positive, got {maximum_propagation_duration}"
            )

        event_condition = event_condition.resolve(state)

        solutions: List[SegmentSolution] = []
        initial_state = state
        elapsed = 0.0

        while True:
            pass_start = elapsed

            for segment in self._segments:
                limit = min(self._maximum_propagation_duration, maximum_propagation_duration) - elapsed
                if limit <= 0.0:
                    self._log(logging.WARNING, "Maximum propagation duration reached")
                    return SequenceSolution(solutions, False)

                self._log(logging.INFO, f"Solving segment {segment.name}")

                solution = segment.solve(initial_state, limit)
                solutions.append(solution)
                elapsed += solution.get_propagation_duration()

                if not solution.condition_is_satisfied:
                    self._log(logging.WARNING, f"Segment {segment.name} did not satisfy its condition")
                    return SequenceSolution(solutions, False)

                if event_condition.is_satisfied(solution.states[-1], solution.states[0]):
                    self._log(logging.INFO, f"{event_condition.name} satisfied after {len(solutions)} segments")
                    return SequenceSolution(solutions, True)

                initial_state = solution.states[-1]

            if elapsed == pass_start:
                self._log(logging.ERROR, "Segments made no progress, stopping")
                return SequenceSolution(solutions, False)

    def __repr__(self) -> str:
        return f"Sequence({len(self._segments)} segments, verbosity={self._verbosity})"
