"""
Dynamics contributions and the system of equations they form.

Each dynamics declares which coordinates subsets it reads and which it
writes. The propagator slices the read subsets out of the full state,
asks every dynamics for its contribution and sums the contributions into
the derivative of the write subsets.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Callable, List, Sequence
import logging

import numpy as np

from .coordinates import CoordinatesBroker, CoordinatesSubset
from .errors import InvalidArgumentError
from .frames import Frame
from .time import Instant

logger = logging.getLogger(__name__)


class Dynamics(ABC):
    """
    Abstract interface for a contribution to the state derivative.

    Implementations are stateless: read/write subsets are fixed at
    construction and `compute_contribution` depends only on its arguments.
    """

    def __init__(self, name: str):
        self._name = name

    @property
    def name(self) -> str:
        return self._name

    def is_defined(self) -> bool:
        return True

    @abstractmethod
    def get_read_coordinates_subsets(self) -> List[CoordinatesSubset]:
        """Subsets this dynamics needs, in the order of `x`."""
        pass

    @abstractmethod
    def get_write_coordinates_subsets(self) -> List[CoordinatesSubset]:
        """Subsets this dynamics contributes to, in contribution order."""
        pass

    @abstractmethod
    def compute_contribution(self, instant: Instant, x: np.ndarray, frame: Frame) -> np.ndarray:
        """
        Compute the contribution to the write subsets' derivative.

        Args:
            instant: Evaluation instant
            x: Concatenated read-subset coordinates
            frame: Frame the coordinates are expressed in

        Returns:
            Contribution vector sized to the write subsets
        """
        pass

    def get_write_size(self) -> int:
        return sum(subset.size for subset in self.get_write_coordinates_subsets())

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self._name!r})"


@dataclass(frozen=True)
class DynamicsContext:
    """A dynamics bound to a broker, with precomputed read/write indices."""
    dynamics: Dynamics
    read_indices: np.ndarray
    write_indices: np.ndarray

    @classmethod
    def build(cls, dynamics: Dynamics, broker: CoordinatesBroker) -> 'DynamicsContext':
        """Raises UndefinedCoordinatesError if the broker lacks a subset."""
        return cls(
            dynamics=dynamics,
            read_indices=broker.get_subset_indices(dynamics.get_read_coordinates_subsets()),
            write_indices=broker.get_subset_indices(dynamics.get_write_coordinates_subsets()),
        )

    def evaluate(self, instant: Instant, coordinates: np.ndarray, frame: Frame) -> np.ndarray:
        contribution = np.asarray(
            self.dynamics.compute_contribution(instant, coordinates[self.read_indices], frame),
            dtype=float,
        )

        if contribution.shape != self.write_indices.shape:
            raise InvalidArgumentError(
                f"{self.dynamics.name} returned a contribution of shape {contribution.shape}, "
                f"expected {self.write_indices.shape}"
            )

        return contribution


def build_contexts(dynamics: Sequence[Dynamics], broker: CoordinatesBroker) -> List[DynamicsContext]:
    return [DynamicsContext.build(item, broker) for item in dynamics]


def build_system_of_equations(contexts: Sequence[DynamicsContext], reference_instant: Instant,
                              frame: Frame) -> Callable[[float, np.ndarray], np.ndarray]:
    """
    Assemble f(t, y) from dynamics contexts.

    Args:
        contexts: Dynamics bound to the state broker
        reference_instant: Instant at t = 0
        frame: Frame of the integrated coordinates

    Returns:
        Function of (seconds since reference_instant, coordinates) returning dy/dt
    """
    def system(t: float, y: np.ndarray) -> np.ndarray:
        instant = reference_instant + t
        dydt = np.zeros_like(y)

        # Overlapping writes accumulate
        for context in contexts:
            dydt[context.write_indices] += context.evaluate(instant, y, frame)

        return dydt

    return system
