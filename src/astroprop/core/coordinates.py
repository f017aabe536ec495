"""
Coordinates subsets and the broker that lays them out in a state vector.

A state vector is the concatenation of named subsets (position, velocity,
mass, ...). The broker owns the ordering and offsets; dynamics and states
find their slices through it instead of hard-coding indices.
"""

from typing import Iterable, List, Sequence, Tuple, Union
import logging

import numpy as np

from .errors import InvalidArgumentError, UndefinedCoordinatesError

logger = logging.getLogger(__name__)


class CoordinatesSubset:
    """
    Named, fixed-size block of coordinates.

    Subsets are immutable and compare equal by (name, size). The base class
    combines values with plain arithmetic and is frame-invariant, which is
    the right behavior for scalar quantities (mass, area, ...).
    """

    def __init__(self, name: str, size: int):
        if not name:
            raise InvalidArgumentError("Coordinates subset name is undefined")
        if int(size) < 1:
            raise InvalidArgumentError(f"Coordinates subset size must be >= 1, got {size}")

        self._name = str(name)
        self._size = int(size)

    @property
    def name(self) -> str:
        return self._name

    @property
    def size(self) -> int:
        return self._size

    @property
    def id(self) -> Tuple[str, int]:
        return (self._name, self._size)

    def add(self, instant, coordinates: np.ndarray, other_coordinates: np.ndarray,
            frame, broker: 'CoordinatesBroker') -> np.ndarray:
        """
        Add this subset's block of two full state vectors.

        Both vectors must be expressed in `frame` and laid out by `broker`.
        """
        return (broker.extract_coordinates(coordinates, self)
                + broker.extract_coordinates(other_coordinates, self))

    def subtract(self, instant, coordinates: np.ndarray, other_coordinates: np.ndarray,
                 frame, broker: 'CoordinatesBroker') -> np.ndarray:
        """Subtract this subset's block of two full state vectors."""
        return (broker.extract_coordinates(coordinates, self)
                - broker.extract_coordinates(other_coordinates, self))

    def in_frame(self, instant, coordinates: np.ndarray, from_frame, to_frame,
                 broker: 'CoordinatesBroker') -> np.ndarray:
        """Return this subset's block of `coordinates` expressed in `to_frame`."""
        return np.array(broker.extract_coordinates(coordinates, self), dtype=float)

    @classmethod
    def mass(cls) -> 'CoordinatesSubset':
        return MASS

    @classmethod
    def surface_area(cls) -> 'CoordinatesSubset':
        return SURFACE_AREA

    @classmethod
    def drag_coefficient(cls) -> 'CoordinatesSubset':
        return DRAG_COEFFICIENT

    @classmethod
    def mass_flow_rate(cls) -> 'CoordinatesSubset':
        return MASS_FLOW_RATE

    def __eq__(self, other) -> bool:
        if not isinstance(other, CoordinatesSubset):
            return NotImplemented
        return self.id == other.id

    def __hash__(self) -> int:
        return hash(self.id)

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self._name!r}, {self._size})"


class CartesianPosition(CoordinatesSubset):
    """Cartesian position (m), rotated between frames."""

    def __init__(self, name: str = 'CARTESIAN_POSITION'):
        super().__init__(name, 3)

    @classmethod
    def default(cls) -> 'CartesianPosition':
        return CARTESIAN_POSITION

    def in_frame(self, instant, coordinates, from_frame, to_frame, broker):
        position = broker.extract_coordinates(coordinates, self)
        return from_frame.transform_position(position, instant, to_frame)


class CartesianVelocity(CoordinatesSubset):
    """
    Cartesian velocity (m/s).

    Transforming a velocity into a rotating frame needs the position, so
    the subset keeps a reference to its associated position subset.
    """

    def __init__(self, position: CartesianPosition = None, name: str = 'CARTESIAN_VELOCITY'):
        super().__init__(name, 3)
        self._position = position if position is not None else CARTESIAN_POSITION

    @classmethod
    def default(cls) -> 'CartesianVelocity':
        return CARTESIAN_VELOCITY

    @property
    def position(self) -> CartesianPosition:
        return self._position

    def in_frame(self, instant, coordinates, from_frame, to_frame, broker):
        position = broker.extract_coordinates(coordinates, self._position)
        velocity = broker.extract_coordinates(coordinates, self)
        return from_frame.transform_velocity(position, velocity, instant, to_frame)


CARTESIAN_POSITION = CartesianPosition()
CARTESIAN_VELOCITY = CartesianVelocity(CARTESIAN_POSITION)
MASS = CoordinatesSubset('MASS', 1)
SURFACE_AREA = CoordinatesSubset('SURFACE_AREA', 1)
DRAG_COEFFICIENT = CoordinatesSubset('DRAG_COEFFICIENT', 1)
MASS_FLOW_RATE = CoordinatesSubset('MASS_FLOW_RATE', 1)


SubsetOrSubsets = Union[CoordinatesSubset, Sequence[CoordinatesSubset]]


class CoordinatesBroker:
    """
    Ordered registry of coordinates subsets.

    Registration order defines the layout of every state vector built over
    this broker. Registering a subset twice returns the existing offset.
    Brokers are shared between states and must not be extended once states
    exist.
    """

    def __init__(self, subsets: Iterable[CoordinatesSubset] = ()):
        self._subsets: List[CoordinatesSubset] = []
        self._offsets = {}
        self._number_of_coordinates = 0

        for subset in subsets:
            self.add_subset(subset)

    @property
    def subsets(self) -> Tuple[CoordinatesSubset, ...]:
        return tuple(self._subsets)

    @property
    def number_of_coordinates(self) -> int:
        return self._number_of_coordinates

    @property
    def number_of_subsets(self) -> int:
        return len(self._subsets)

    def add_subset(self, subset: CoordinatesSubset) -> int:
        """
        Register a subset.

        Args:
            subset: Coordinates subset

        Returns:
            Offset of the subset in the state vector
        """
        if subset is None:
            raise InvalidArgumentError("Cannot register an undefined coordinates subset")

        if subset in self._offsets:
            return self._offsets[subset]

        offset = self._number_of_coordinates
        self._subsets.append(subset)
        self._offsets[subset] = offset
        self._number_of_coordinates += subset.size

        return offset

    def has_subset(self, subset: CoordinatesSubset) -> bool:
        return subset in self._offsets

    def get_subset_offset(self, subset: CoordinatesSubset) -> int:
        try:
            return self._offsets[subset]
        except KeyError:
            raise UndefinedCoordinatesError(
                f"Coordinates subset {subset!r} is not part of the broker"
            ) from None

    def get_subset_indices(self, subsets: SubsetOrSubsets) -> np.ndarray:
        """Indices of one or several subsets in the full state vector."""
        if isinstance(subsets, CoordinatesSubset):
            subsets = [subsets]

        indices = [
            np.arange(self.get_subset_offset(subset), self.get_subset_offset(subset) + subset.size)
            for subset in subsets
        ]

        if not indices:
            return np.zeros(0, dtype=int)

        return np.concatenate(indices)

    def extract_coordinates(self, coordinates: np.ndarray, subsets: SubsetOrSubsets) -> np.ndarray:
        """Extract the block(s) of `subsets` from a full state vector."""
        coordinates = np.asarray(coordinates)

        if coordinates.shape[-1] != self._number_of_coordinates:
            raise InvalidArgumentError(
                f"Coordinates size {coordinates.shape[-1]} does not match broker size "
                f"{self._number_of_coordinates}"
            )

        if isinstance(subsets, CoordinatesSubset):
            offset = self.get_subset_offset(subsets)
            return coordinates[..., offset:offset + subsets.size]

        return coordinates[..., self.get_subset_indices(subsets)]

    def __eq__(self, other) -> bool:
        if not isinstance(other, CoordinatesBroker):
            return NotImplemented
        return self is other or self._subsets == other._subsets

    __hash__ = None

    def __repr__(self) -> str:
        names = ', '.join(subset.name for subset in self._subsets)
        return f"CoordinatesBroker([{names}])"
