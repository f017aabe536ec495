"""Shared fixtures for the astroprop test suite."""

import sys
from pathlib import Path

import pytest

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / 'src'))

from astroprop.core.coordinates import CoordinatesSubset
from astroprop.core.frames import Frame
from astroprop.core.solver import LogType, NumericalSolver, StepperType
from astroprop.core.state import State
from astroprop.core.time import Instant
from astroprop.domains.spacecraft import CentralBodyGravity, PositionDerivative


@pytest.fixture
def start_instant():
    return Instant.date_time(2021, 3, 20, 12, 0, 0)


@pytest.fixture
def initial_state(start_instant):
    """Near-circular equatorial LEO state (GCRF)."""
    return State.from_cartesian(
        start_instant,
        [7000000.0, 0.0, 0.0],
        [0.0, 7546.05329, 0.0],
        Frame.gcrf(),
    )


@pytest.fixture
def initial_state_with_mass(start_instant):
    return State.from_cartesian(
        start_instant,
        [7000000.0, 0.0, 0.0],
        [0.0, 7546.05329, 0.0],
        Frame.gcrf(),
        extra={CoordinatesSubset.mass(): 200.0},
    )


@pytest.fixture
def coast_dynamics():
    return [PositionDerivative(), CentralBodyGravity()]


@pytest.fixture
def numerical_solver():
    return NumericalSolver(
        LogType.NO_LOG,
        StepperType.RUNGE_KUTTA_DOPRI5,
        5.0,
        1e-12,
        1e-12,
    )
