"""
Tests for segment sequences.
"""

import logging

import numpy as np
import pytest

from astroprop.config import PropagationSettings
from astroprop.core.errors import (
    InvalidArgumentError, OutOfRangeError, PropagationRuntimeError, UndefinedArgumentError,
)
from astroprop.core.events import AngularCondition, Criterion, DurationCondition, Target
from astroprop.core.state import State
from astroprop.domains.orbital_elements import COE, COECondition, true_anomaly
from astroprop.domains.spacecraft import (
    ConstantThrust, PropulsionSystem, SatelliteSystem, Thruster,
)
from astroprop.trajectory.segment import Segment
from astroprop.trajectory.sequence import Sequence, SequenceSolution


def _duration_segment(duration, dynamics, solver, name='Coast'):
    return Segment.coast(name, DurationCondition(Criterion.STRICTLY_POSITIVE, duration), dynamics, solver)


class TestSequenceConstruction:
    """Test sequence construction and segment registration."""

    @pytest.mark.parametrize("verbosity", [-1, 6])
    def test_invalid_verbosity(self, verbosity):
        """Verbosity is 0 to 5."""
        with pytest.raises(InvalidArgumentError):
            Sequence(verbosity=verbosity)

    def test_invalid_duration(self):
        """The duration budget must be positive."""
        with pytest.raises(InvalidArgumentError):
            Sequence(maximum_propagation_duration=0.0)

    def test_add_segments(self, coast_dynamics, numerical_solver):
        """Convenience builders use the sequence dynamics and solver."""
        satellite = SatelliteSystem(dry_mass=100.0, propulsion_system=PropulsionSystem())
        thruster = Thruster(satellite, ConstantThrust.intrack())
        sequence = Sequence(numerical_solver=numerical_solver, dynamics=coast_dynamics)

        sequence.add_coast_segment(DurationCondition(Criterion.STRICTLY_POSITIVE, 60.0))
        sequence.add_maneuver_segment(DurationCondition(Criterion.STRICTLY_POSITIVE, 60.0), thruster)
        sequence.add_segments([_duration_segment(10.0, coast_dynamics, numerical_solver)])

        segments = sequence.segments
        assert len(segments) == 3
        assert segments[0].type is Segment.Type.COAST
        assert segments[1].thruster_dynamics is thruster
        assert len(segments[1].dynamics) == len(coast_dynamics) + 1
        assert segments[0].numerical_solver is numerical_solver

    def test_from_settings(self, coast_dynamics):
        """Settings carry the solver, budget and verbosity."""
        settings = PropagationSettings.from_dict({
            'solver': {'stepper_type': 'runge_kutta_fehlberg_45', 'time_step': 10.0},
            'maximum_propagation_duration': 3600.0,
            'verbosity': 2,
        })

        sequence = Sequence.from_settings(settings, dynamics=coast_dynamics)

        assert sequence.maximum_propagation_duration == 3600.0
        assert sequence.verbosity == 2
        assert sequence.numerical_solver.time_step == 10.0
        assert sequence.dynamics == coast_dynamics
        assert sequence.repetition_count == 1

    def test_from_settings_repetitions_and_log_level(self, initial_state, coast_dynamics,
                                                      numerical_solver, monkeypatch):
        """Settings repetitions drive `solve` and the log level reaches the logging setup."""
        levels = []
        monkeypatch.setattr('astroprop.trajectory.sequence.configure_logging', levels.append)
        settings = PropagationSettings.from_dict({'repetition_count': 2, 'log_level': 'DEBUG'})

        sequence = Sequence.from_settings(
            settings, segments=[_duration_segment(30.0, coast_dynamics, numerical_solver)]
        )
        solution = sequence.solve(initial_state)

        assert levels == ['DEBUG']
        assert sequence.repetition_count == 2
        assert len(solution.segment_solutions) == 2
        assert solution.get_propagation_duration() == pytest.approx(60.0, abs=1e-6)

    def test_invalid_repetition_count(self):
        """The stored repetition count must be at least one."""
        with pytest.raises(InvalidArgumentError):
            Sequence(repetition_count=0)


class TestSequenceSolve:
    """Test repeated sequence execution."""

    def test_zero_repetitions(self, initial_state, coast_dynamics, numerical_solver):
        """At least one repetition is required."""
        sequence = Sequence([_duration_segment(30.0, coast_dynamics, numerical_solver)])
        with pytest.raises(InvalidArgumentError):
            sequence.solve(initial_state, 0)

    def test_no_segments(self, initial_state):
        """Empty sequences cannot be solved."""
        with pytest.raises(UndefinedArgumentError):
            Sequence().solve(initial_state)

    def test_budget_exhausted(self, initial_state, coast_dynamics, numerical_solver):
        """A 1 s budget stops a 15 min coast after one incomplete leg."""
        sequence = Sequence([_duration_segment(900.0, coast_dynamics, numerical_solver)],
                            maximum_propagation_duration=1.0)

        solution = sequence.solve(initial_state)

        assert not solution.execution_is_complete
        assert len(solution.segment_solutions) == 1
        assert not solution.segment_solutions[0].condition_is_satisfied
        assert solution.access_end_instant() == initial_state.instant + 1.0

    def test_repetitions(self, initial_state, coast_dynamics, numerical_solver):
        """Each repetition adds one leg starting where the last ended."""
        sequence = Sequence([_duration_segment(30.0, coast_dynamics, numerical_solver)])

        solution = sequence.solve(initial_state, 3)

        assert solution.execution_is_complete
        assert len(solution.segment_solutions) == 3
        for index, segment_solution in enumerate(solution.segment_solutions):
            assert segment_solution.condition_is_satisfied
            elapsed = segment_solution.access_end_instant() - initial_state.instant
            assert elapsed == pytest.approx(30.0 * (index + 1), abs=1e-6)

        instants = [state.instant for state in solution.get_states()]
        assert all(a < b for a, b in zip(instants, instants[1:]))
        assert solution.get_propagation_duration() == pytest.approx(90.0, abs=1e-6)

    def test_legs_are_chained(self, initial_state, coast_dynamics, numerical_solver):
        """Each leg starts from the previous leg's final state."""
        sequence = Sequence([
            _duration_segment(30.0, coast_dynamics, numerical_solver, 'First'),
            _duration_segment(45.0, coast_dynamics, numerical_solver, 'Second'),
        ])

        solution = sequence.solve(initial_state)
        first, second = solution.segment_solutions

        assert second.states[0] is first.states[-1]
        assert [item.name for item in solution.segment_solutions] == ['First', 'Second']

    def test_relative_true_anomaly(self, start_instant, coast_dynamics, numerical_solver):
        """Relative targets are resolved at the start of every leg."""
        position, velocity = COE(8000000.0, 0.1, 0.0, 0.0, 0.0, 0.0).to_cartesian()
        state = State.from_cartesian(start_instant, position, velocity)

        sequence = Sequence(numerical_solver=numerical_solver, dynamics=coast_dynamics)
        sequence.add_coast_segment(
            COECondition.true_anomaly(Criterion.POSITIVE_CROSSING, Target.relative(np.deg2rad(5.0)))
        )

        solution = sequence.solve(state, 3)

        assert solution.execution_is_complete
        for index, segment_solution in enumerate(solution.segment_solutions):
            final = segment_solution.states[-1]
            anomaly = true_anomaly(final.position, final.velocity)
            difference = AngularCondition.wrap(anomaly - np.deg2rad(5.0 * (index + 1)))
            assert np.rad2deg(difference) == pytest.approx(0.0, abs=1e-5)

    def test_verbose_logging(self, initial_state, coast_dynamics, numerical_solver, caplog):
        """Verbosity 3 logs segment progress at INFO."""
        sequence = Sequence([_duration_segment(30.0, coast_dynamics, numerical_solver)], verbosity=3)

        with caplog.at_level(logging.INFO, logger='astroprop.trajectory.sequence'):
            sequence.solve(initial_state)

        assert any('Sequence complete' in record.message for record in caplog.records)

    def test_silent_by_default(self, initial_state, coast_dynamics, numerical_solver, caplog):
        """Verbosity 0 logs nothing."""
        sequence = Sequence([_duration_segment(30.0, coast_dynamics, numerical_solver)])

        with caplog.at_level(logging.DEBUG, logger='astroprop.trajectory.sequence'):
            sequence.solve(initial_state)

        assert not [record for record in caplog.records if record.name == 'astroprop.trajectory.sequence']


class TestSolveToCondition:
    """Test repetition until an outer condition."""

    def test_condition_reached(self, initial_state, coast_dynamics, numerical_solver):
        """60 s legs repeat until 150 s have elapsed."""
        sequence = Sequence([_duration_segment(60.0, coast_dynamics, numerical_solver)])

        solution = sequence.solve_to_condition(
            initial_state, DurationCondition(Criterion.STRICTLY_POSITIVE, 150.0)
        )

        assert solution.execution_is_complete
        assert len(solution.segment_solutions) == 3
        assert solution.get_propagation_duration() == pytest.approx(180.0, abs=1e-6)

    def test_outer_duration_limit(self, initial_state, coast_dynamics, numerical_solver):
        """The outer limit truncates the leg in progress."""
        sequence = Sequence([_duration_segment(60.0, coast_dynamics, numerical_solver)])

        solution = sequence.solve_to_condition(
            initial_state, DurationCondition(Criterion.STRICTLY_POSITIVE, 150.0), 100.0
        )

        assert not solution.execution_is_complete
        assert len(solution.segment_solutions) == 2
        assert not solution.segment_solutions[-1].condition_is_satisfied
        assert solution.get_propagation_duration() == pytest.approx(100.0, abs=1e-6)

    def test_sequence_duration_limit(self, initial_state, coast_dynamics, numerical_solver):
        """The sequence budget applies as well."""
        sequence = Sequence([_duration_segment(60.0, coast_dynamics, numerical_solver)],
                            maximum_propagation_duration=100.0)

        solution = sequence.solve_to_condition(
            initial_state, DurationCondition(Criterion.STRICTLY_POSITIVE, 150.0)
        )

        assert not solution.execution_is_complete
        assert solution.get_propagation_duration() == pytest.approx(100.0, abs=1e-6)

    def test_undefined_condition(self, initial_state, coast_dynamics, numerical_solver):
        """An outer condition is required."""
        sequence = Sequence([_duration_segment(60.0, coast_dynamics, numerical_solver)])
        with pytest.raises(UndefinedArgumentError):
            sequence.solve_to_condition(initial_state, None)


class TestSequenceSolution:
    """Test sequence solution queries."""

    def test_empty(self):
        """Empty solutions have no states."""
        solution = SequenceSolution([], True)

        with pytest.raises(PropagationRuntimeError):
            solution.get_states()
        assert solution.compute_delta_mass() == 0.0
        assert solution.compute_delta_v(1500.0) == 0.0

    def test_seams_are_not_duplicated(self, initial_state, coast_dynamics, numerical_solver):
        """Concatenated states drop the repeated seed of each leg."""
        sequence = Sequence([_duration_segment(30.0, coast_dynamics, numerical_solver)])
        solution = sequence.solve(initial_state, 2)

        total = sum(len(item.states) for item in solution.segment_solutions)
        assert len(solution.get_states()) == total - 1

    def test_calculate_states_at(self, initial_state, coast_dynamics, numerical_solver):
        """Instants are delegated to the leg spanning them."""
        sequence = Sequence([_duration_segment(30.0, coast_dynamics, numerical_solver)])
        solution = sequence.solve(initial_state, 3)

        instants = [initial_state.instant + offset for offset in (10.0, 45.0, 80.0)]
        states = solution.calculate_states_at(instants, numerical_solver)
        expected = numerical_solver.integrate_times(initial_state, instants, coast_dynamics)

        assert [state.instant for state in states] == instants
        for state, reference in zip(states, expected):
            assert np.allclose(state.position, reference.position, atol=1e-2)

        assert solution.calculate_states_at([]) == []
        with pytest.raises(OutOfRangeError):
            solution.calculate_states_at([initial_state.instant + 200.0])

    def test_maneuver_budget(self, initial_state_with_mass, coast_dynamics, numerical_solver):
        """Delta-v sums over legs and delta mass spans the sequence."""
        satellite = SatelliteSystem(dry_mass=100.0, propulsion_system=PropulsionSystem(1.0, 1500.0))
        sequence = Sequence(numerical_solver=numerical_solver, dynamics=coast_dynamics)
        sequence.add_maneuver_segment(DurationCondition(Criterion.STRICTLY_POSITIVE, 60.0),
                                      Thruster(satellite, ConstantThrust.intrack()))
        sequence.add_coast_segment(DurationCondition(Criterion.STRICTLY_POSITIVE, 60.0))

        solution = sequence.solve(initial_state_with_mass, 2)

        burn = 2 * 60.0 / (1500.0 * 9.80665)
        assert solution.execution_is_complete
        assert solution.compute_delta_mass() == pytest.approx(burn, rel=1e-6)
        assert solution.compute_delta_v(1500.0) == pytest.approx(
            sum(item.compute_delta_v(1500.0) for item in solution.segment_solutions)
        )
        assert 'SEQUENCE SOLUTION' in solution.summary()
