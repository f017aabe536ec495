"""
Tests for telemetry export and orbital elements.
"""

import json

import numpy as np
import pytest

from astroprop.core.events import Criterion, DurationCondition
from astroprop.domains.orbital_elements import COE
from astroprop.trajectory.segment import Segment
from astroprop.trajectory.sequence import Sequence
from astroprop.utils.telemetry import (
    export_solution_csv, export_solution_json, solution_to_dataframe, states_to_dataframe,
)


@pytest.fixture
def sequence_solution(initial_state_with_mass, coast_dynamics, numerical_solver):
    sequence = Sequence([
        Segment.coast('First', DurationCondition(Criterion.STRICTLY_POSITIVE, 30.0),
                      coast_dynamics, numerical_solver),
        Segment.coast('Second', DurationCondition(Criterion.STRICTLY_POSITIVE, 30.0),
                      coast_dynamics, numerical_solver),
    ])
    return sequence.solve(initial_state_with_mass)


class TestTelemetry:
    """Test tabular and JSON export."""

    def test_states_to_dataframe(self, sequence_solution):
        """One row per state, one column per coordinate."""
        states = sequence_solution.segment_solutions[0].states
        table = states_to_dataframe(states)

        assert len(table) == len(states)
        assert list(table.columns) == [
            'elapsed_s', 'seconds_since_j2000', 'frame',
            'CARTESIAN_POSITION_0', 'CARTESIAN_POSITION_1', 'CARTESIAN_POSITION_2',
            'CARTESIAN_VELOCITY_0', 'CARTESIAN_VELOCITY_1', 'CARTESIAN_VELOCITY_2',
            'MASS',
        ]
        assert table['elapsed_s'].iloc[0] == 0.0
        assert (table['MASS'] == 200.0).all()
        assert (table['frame'] == 'GCRF').all()

    def test_empty_states(self):
        """No states give an empty table."""
        assert states_to_dataframe([]).empty

    def test_sequence_dataframe(self, sequence_solution):
        """Sequence tables tag rows with the segment name."""
        table = solution_to_dataframe(sequence_solution)

        assert set(table['segment']) == {'First', 'Second'}
        assert len(table) == sum(len(item.states) for item in sequence_solution.segment_solutions)

    def test_export_json(self, sequence_solution, tmp_path):
        """JSON export round-trips through the standard parser."""
        path = tmp_path / 'out' / 'solution.json'

        text = export_solution_json(sequence_solution, str(path))
        data = json.loads(path.read_text())

        assert json.loads(text) == data
        assert data['execution_is_complete'] is True
        assert [item['name'] for item in data['segments']] == ['First', 'Second']
        assert data['segments'][0]['propagation_duration_s'] == pytest.approx(30.0, abs=1e-6)

    def test_export_csv(self, sequence_solution, tmp_path):
        """CSV export writes the solution table."""
        path = tmp_path / 'solution.csv'

        assert export_solution_csv(sequence_solution, str(path)) == str(path)
        assert path.read_text().splitlines()[0].startswith('segment,elapsed_s')


class TestOrbitalElements:
    """Test classical orbital element conversions."""

    def test_round_trip(self):
        """Elements -> Cartesian -> elements."""
        elements = COE(8000000.0, 0.1, np.deg2rad(30.0), np.deg2rad(40.0), np.deg2rad(50.0), np.deg2rad(60.0))

        recovered = COE.from_cartesian(*elements.to_cartesian())

        assert recovered.semi_major_axis == pytest.approx(elements.semi_major_axis, rel=1e-10)
        assert recovered.eccentricity == pytest.approx(elements.eccentricity, rel=1e-9)
        for name in ('inclination', 'raan', 'aop', 'true_anomaly'):
            assert getattr(recovered, name) == pytest.approx(getattr(elements, name), abs=1e-9)

    def test_from_state(self, initial_state):
        """Near-circular equatorial orbit."""
        elements = COE.from_state(initial_state)

        assert elements.semi_major_axis == pytest.approx(7000000.0, rel=1e-6)
        assert elements.eccentricity < 1e-6
        assert elements.inclination == pytest.approx(0.0, abs=1e-12)
