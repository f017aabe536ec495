"""
Tests for coordinates subsets, brokers and states.
"""

import numpy as np
import pytest

from astroprop.core.coordinates import (
    CartesianPosition, CartesianVelocity, CoordinatesBroker, CoordinatesSubset,
)
from astroprop.core.errors import (
    InvalidArgumentError, UndefinedArgumentError, UndefinedCoordinatesError,
)
from astroprop.core.frames import Frame
from astroprop.core.state import State
from astroprop.core.time import Instant


class TestCoordinatesSubset:
    """Test subset identity."""

    def test_identity_by_name_and_size(self):
        """Subsets are equal when name and size match."""
        assert CoordinatesSubset('MASS', 1) == CoordinatesSubset.mass()
        assert CoordinatesSubset('MASS', 2) != CoordinatesSubset.mass()
        assert CartesianPosition.default() == CoordinatesSubset('CARTESIAN_POSITION', 3)
        assert hash(CoordinatesSubset('MASS', 1)) == hash(CoordinatesSubset.mass())

    def test_invalid_size(self):
        """Subsets need at least one coordinate."""
        with pytest.raises(InvalidArgumentError):
            CoordinatesSubset('EMPTY', 0)

    def test_well_known_subsets(self):
        """Well-known subsets are process-wide singletons."""
        assert CartesianPosition.default() is CartesianPosition.default()
        assert CartesianVelocity.default().position is CartesianPosition.default()
        assert CoordinatesSubset.surface_area().size == 1
        assert CoordinatesSubset.drag_coefficient().size == 1
        assert CoordinatesSubset.mass_flow_rate().size == 1


class TestCoordinatesBroker:
    """Test subset registration and layout."""

    def test_layout_follows_registration_order(self):
        """Offsets accumulate subset sizes."""
        broker = CoordinatesBroker()

        assert broker.add_subset(CartesianPosition.default()) == 0
        assert broker.add_subset(CartesianVelocity.default()) == 3
        assert broker.add_subset(CoordinatesSubset.mass()) == 6

        assert broker.number_of_coordinates == 7
        assert broker.number_of_subsets == 3
        assert broker.subsets[2] == CoordinatesSubset.mass()

    def test_registration_is_idempotent(self):
        """Registering twice returns the existing offset."""
        broker = CoordinatesBroker([CartesianPosition.default(), CartesianVelocity.default()])

        assert broker.add_subset(CartesianVelocity.default()) == 3
        assert broker.number_of_coordinates == 6
        assert broker.number_of_subsets == 2

    def test_unknown_subset(self):
        """Lookups of unregistered subsets fail."""
        broker = CoordinatesBroker([CartesianPosition.default()])

        assert not broker.has_subset(CoordinatesSubset.mass())
        with pytest.raises(UndefinedCoordinatesError):
            broker.get_subset_offset(CoordinatesSubset.mass())

    def test_extract_coordinates(self):
        """Extract one or several subsets."""
        broker = CoordinatesBroker([
            CartesianPosition.default(), CartesianVelocity.default(), CoordinatesSubset.mass(),
        ])
        coordinates = np.arange(7.0)

        assert np.array_equal(broker.extract_coordinates(coordinates, CoordinatesSubset.mass()), [6.0])
        assert np.array_equal(
            broker.extract_coordinates(coordinates, [CoordinatesSubset.mass(), CartesianPosition.default()]),
            [6.0, 0.0, 1.0, 2.0],
        )

    def test_equality(self):
        """Brokers compare by ordered subsets."""
        a = CoordinatesBroker([CartesianPosition.default(), CartesianVelocity.default()])
        b = CoordinatesBroker([CartesianPosition.default(), CartesianVelocity.default()])
        c = CoordinatesBroker([CartesianVelocity.default(), CartesianPosition.default()])

        assert a == b
        assert a != c


class TestState:
    """Test state construction, arithmetic and frame changes."""

    def test_accessors(self, initial_state_with_mass):
        """Subsets are read through the broker."""
        state = initial_state_with_mass

        assert state.size == 7
        assert np.array_equal(state.position, [7000000.0, 0.0, 0.0])
        assert np.array_equal(state.velocity, [0.0, 7546.05329, 0.0])
        assert state.mass == 200.0
        assert state.has_subset(CoordinatesSubset.mass())

    def test_coordinates_are_read_only(self, initial_state):
        """States are immutable."""
        with pytest.raises(ValueError):
            initial_state.coordinates[0] = 1.0

    def test_size_mismatch(self, start_instant):
        """Coordinates must match the broker size."""
        broker = CoordinatesBroker([CartesianPosition.default()])
        with pytest.raises(InvalidArgumentError):
            State(start_instant, [1.0, 2.0], Frame.gcrf(), broker)

    def test_undefined_instant(self):
        """Instant is required."""
        broker = CoordinatesBroker([CartesianPosition.default()])
        with pytest.raises(UndefinedArgumentError):
            State(None, [1.0, 2.0, 3.0], Frame.gcrf(), broker)

    def test_addition_and_subtraction(self, initial_state):
        """Element-wise arithmetic over a shared broker."""
        doubled = initial_state + initial_state
        zero = initial_state - initial_state

        assert np.allclose(doubled.coordinates, 2 * initial_state.coordinates)
        assert np.allclose(zero.coordinates, 0.0)
        assert doubled.instant == initial_state.instant

    def test_arithmetic_requires_same_broker(self, initial_state, initial_state_with_mass):
        """Different layouts cannot be combined."""
        with pytest.raises(InvalidArgumentError):
            initial_state + initial_state_with_mass

    def test_arithmetic_requires_same_instant(self, initial_state):
        """Different instants cannot be combined."""
        later = State(initial_state.instant + 1.0, initial_state.coordinates,
                      initial_state.frame, initial_state.broker)
        with pytest.raises(InvalidArgumentError):
            initial_state - later

    def test_arithmetic_converts_frame(self, initial_state):
        """The right operand is expressed in the left operand's frame."""
        itrf_state = initial_state.in_frame(Frame.itrf())
        difference = initial_state - itrf_state

        assert difference.frame == Frame.gcrf()
        assert np.allclose(difference.coordinates, 0.0, atol=1e-6)

    def test_frame_round_trip(self, initial_state_with_mass):
        """GCRF -> ITRF -> GCRF keeps coordinates; scalars are untouched."""
        itrf_state = initial_state_with_mass.in_frame(Frame.itrf())

        assert itrf_state.frame == Frame.itrf()
        assert itrf_state.mass == 200.0
        assert not np.allclose(itrf_state.position, initial_state_with_mass.position)

        back = itrf_state.in_frame(Frame.gcrf())
        assert np.allclose(back.coordinates, initial_state_with_mass.coordinates, atol=1e-6)

    def test_equality(self, initial_state):
        """States compare instant, frame, broker and coordinates."""
        same = State(initial_state.instant, np.array(initial_state.coordinates),
                     Frame.gcrf(), initial_state.broker)
        moved = State(initial_state.instant + 1.0, initial_state.coordinates,
                      Frame.gcrf(), initial_state.broker)

        assert same == initial_state
        assert moved != initial_state
        assert initial_state.in_frame(Frame.gcrf()) is initial_state

    def test_explicit_broker(self):
        """States can be built over a user broker."""
        broker = CoordinatesBroker([CoordinatesSubset('X', 2)])
        state = State(Instant.j2000(), [1.0, 2.0], Frame.gcrf(), broker)

        assert np.array_equal(state.extract_coordinates(CoordinatesSubset('X', 2)), [1.0, 2.0])
