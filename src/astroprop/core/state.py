"""
Immutable propagation state.

A State couples an instant, a flat coordinates vector, the frame the
coordinates are expressed in, and the broker describing their layout.
"""

from typing import Iterable, Optional
import logging

import numpy as np

from .coordinates import (
    CoordinatesBroker, CoordinatesSubset, CartesianPosition, CartesianVelocity,
    SubsetOrSubsets,
)
from .errors import InvalidArgumentError, UndefinedArgumentError
from .frames import Frame, GCRF
from .time import Instant

logger = logging.getLogger(__name__)


class State:
    """
    Snapshot of a body at an instant.

    States never change after construction: arithmetic and frame changes
    return new states. The coordinates array is read-only.
    """

    __slots__ = ('_instant', '_coordinates', '_frame', '_broker')

    def __init__(self, instant: Instant, coordinates, frame: Frame,
                 broker: CoordinatesBroker):
        if instant is None:
            raise UndefinedArgumentError("State instant is undefined")
        if frame is None:
            raise UndefinedArgumentError("State frame is undefined")
        if broker is None:
            raise UndefinedArgumentError("State coordinates broker is undefined")

        values = np.array(coordinates, dtype=float).reshape(-1)

        if values.size != broker.number_of_coordinates:
            raise InvalidArgumentError(
                f"State has {values.size} coordinates, broker expects "
                f"{broker.number_of_coordinates}"
            )

        values.setflags(write=False)

        self._instant = instant
        self._coordinates = values
        self._frame = frame
        self._broker = broker

    @classmethod
    def from_cartesian(cls, instant: Instant, position, velocity,
                       frame: Frame = GCRF, extra: Optional[dict] = None) -> 'State':
        """
        Build a position/velocity state, with optional extra scalar subsets.

        Args:
            instant: State instant
            position: Cartesian position (m)
            velocity: Cartesian velocity (m/s)
            frame: Frame of position and velocity (default: GCRF)
            extra: Optional {CoordinatesSubset: value} appended in order

        Returns:
            State over a new broker [position, velocity, *extra]
        """
        extra = extra or {}
        broker = CoordinatesBroker(
            [CartesianPosition.default(), CartesianVelocity.default(), *extra.keys()]
        )
        coordinates = np.concatenate([
            np.asarray(position, dtype=float).reshape(3),
            np.asarray(velocity, dtype=float).reshape(3),
            *[np.atleast_1d(np.asarray(value, dtype=float)) for value in extra.values()],
        ])
        return cls(instant, coordinates, frame, broker)

    @property
    def instant(self) -> Instant:
        return self._instant

    @property
    def coordinates(self) -> np.ndarray:
        return self._coordinates

    @property
    def frame(self) -> Frame:
        return self._frame

    @property
    def broker(self) -> CoordinatesBroker:
        return self._broker

    @property
    def size(self) -> int:
        return self._coordinates.size

    @property
    def coordinates_subsets(self):
        return self._broker.subsets

    @property
    def position(self) -> np.ndarray:
        return self.extract_coordinates(CartesianPosition.default())

    @property
    def velocity(self) -> np.ndarray:
        return self.extract_coordinates(CartesianVelocity.default())

    @property
    def mass(self) -> float:
        return float(self.extract_coordinates(CoordinatesSubset.mass())[0])

    def has_subset(self, subset: CoordinatesSubset) -> bool:
        return self._broker.has_subset(subset)

    def extract_coordinates(self, subsets: SubsetOrSubsets) -> np.ndarray:
        return self._broker.extract_coordinates(self._coordinates, subsets)

    def in_frame(self, frame: Frame) -> 'State':
        """Express this state in another frame."""
        if frame is None:
            raise UndefinedArgumentError("Target frame is undefined")

        if frame == self._frame:
            return self

        blocks = [
            subset.in_frame(self._instant, self._coordinates, self._frame, frame, self._broker)
            for subset in self._broker.subsets
        ]

        return State(self._instant, np.concatenate(blocks), frame, self._broker)

    def _combine(self, other: 'State', operation: str) -> 'State':
        if not isinstance(other, State):
            return NotImplemented

        if self._broker != other._broker:
            raise InvalidArgumentError("Cannot combine states with different coordinates brokers")

        if self._instant != other._instant:
            raise InvalidArgumentError("Cannot combine states at different instants")

        other_coordinates = other.in_frame(self._frame)._coordinates

        blocks = [
            getattr(subset, operation)(
                self._instant, self._coordinates, other_coordinates, self._frame, self._broker
            )
            for subset in self._broker.subsets
        ]

        return State(self._instant, np.concatenate(blocks), self._frame, self._broker)

    def __add__(self, other: 'State') -> 'State':
        return self._combine(other, 'add')

    def __sub__(self, other: 'State') -> 'State':
        return self._combine(other, 'subtract')

    def __eq__(self, other) -> bool:
        if not isinstance(other, State):
            return NotImplemented
        return (
            self._instant == other._instant
            and self._frame == other._frame
            and self._broker == other._broker
            and np.array_equal(self._coordinates, other._coordinates)
        )

    __hash__ = None

    def __repr__(self) -> str:
        return (
            f"State(instant={self._instant}, frame={self._frame.name}, "
            f"coordinates={np.array2string(self._coordinates, precision=6)})"
        )


def states_to_matrix(states: Iterable[State]) -> np.ndarray:
    """Stack state coordinates row-wise."""
    return np.vstack([state.coordinates for state in states])
