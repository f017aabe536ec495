"""
Spacecraft domain implementation.

Reference force models (two-body gravity with optional J2, tabulated
exponential atmosphere drag, constant-direction thrust) expressed as
Dynamics over coordinates subsets, plus the satellite/propulsion
description used by maneuvers.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import List, Optional
import logging

import numpy as np

from ..constants import (
    EARTH_EQUATORIAL_RADIUS, EARTH_J2, EARTH_MU, EARTH_ROTATION_RATE, STANDARD_GRAVITY,
)
from ..core.coordinates import CartesianPosition, CartesianVelocity, CoordinatesSubset
from ..core.dynamics import Dynamics
from ..core.errors import InvalidArgumentError, PropagationRuntimeError, UndefinedArgumentError
from ..core.frames import Frame, GCRF
from ..core.state import State
from ..core.time import Instant

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Celestial:
    """Central body parameters (SI units)."""
    name: str
    gravitational_parameter: float  # m^3/s^2
    equatorial_radius: float  # m
    j2: float = 0.0
    rotation_rate: float = 0.0  # rad/s

    @classmethod
    def earth(cls, include_j2: bool = False) -> 'Celestial':
        """Earth, spherical by default."""
        return cls(
            name='Earth',
            gravitational_parameter=EARTH_MU,
            equatorial_radius=EARTH_EQUATORIAL_RADIUS,
            j2=EARTH_J2 if include_j2 else 0.0,
            rotation_rate=EARTH_ROTATION_RATE,
        )


@dataclass(frozen=True)
class PropulsionSystem:
    """
    Constant thrust / specific impulse engine.

    Args:
        thrust: Thrust (N)
        specific_impulse: Specific impulse (s)
    """
    thrust: float = 1.0
    specific_impulse: float = 1000.0

    def __post_init__(self):
        if self.thrust <= 0.0 or self.specific_impulse <= 0.0:
            raise InvalidArgumentError(
                f"Invalid propulsion system: thrust={self.thrust} N, Isp={self.specific_impulse} s"
            )

    @property
    def mass_flow_rate(self) -> float:
        """Propellant mass flow rate (kg/s)."""
        return self.thrust / (self.specific_impulse * STANDARD_GRAVITY)

    def get_acceleration(self, mass: float) -> float:
        return self.thrust / mass


@dataclass(frozen=True)
class SatelliteSystem:
    """Physical properties of a satellite."""
    dry_mass: float  # kg
    cross_sectional_area: float = 1.0  # m^2
    drag_coefficient: float = 2.2
    propulsion_system: Optional[PropulsionSystem] = None

    def __post_init__(self):
        if self.dry_mass <= 0.0:
            raise InvalidArgumentError(f"Invalid dry mass: {self.dry_mass} kg")


class PositionDerivative(Dynamics):
    """dr/dt = v."""

    def __init__(self, name: str = 'Position Derivative'):
        super().__init__(name)

    def get_read_coordinates_subsets(self) -> List[CoordinatesSubset]:
        return [CartesianVelocity.default()]

    def get_write_coordinates_subsets(self) -> List[CoordinatesSubset]:
        return [CartesianPosition.default()]

    def compute_contribution(self, instant, x, frame) -> np.ndarray:
        return np.array(x, dtype=float)


class CentralBodyGravity(Dynamics):
    """
    Central body gravitational acceleration.

    Implements two-body gravity with the J2 perturbation when the
    celestial carries a non-zero J2.
    """

    def __init__(self, celestial: Celestial = None, name: str = None):
        celestial = celestial if celestial is not None else Celestial.earth()
        super().__init__(name or f'Central Body Gravity [{celestial.name}]')
        self._celestial = celestial

    @property
    def celestial(self) -> Celestial:
        return self._celestial

    def get_read_coordinates_subsets(self):
        return [CartesianPosition.default()]

    def get_write_coordinates_subsets(self):
        return [CartesianVelocity.default()]

    def compute_contribution(self, instant, x, frame) -> np.ndarray:
        acceleration = self.two_body_acceleration(x)
        if self._celestial.j2 != 0.0:
            acceleration = acceleration + self.j2_acceleration(x)
        return acceleration

    def two_body_acceleration(self, r: np.ndarray) -> np.ndarray:
        """
        Compute two-body gravitational acceleration.

        Args:
            r: Position vector (m)

        Returns:
            Acceleration vector (m/s^2)
        """
        r_norm = np.linalg.norm(r)
        return -self._celestial.gravitational_parameter / r_norm**3 * r

    def j2_acceleration(self, r: np.ndarray) -> np.ndarray:
        """J2 perturbation acceleration (m/s^2), inertial Z along the body pole."""
        mu = self._celestial.gravitational_parameter
        R = self._celestial.equatorial_radius

        r_norm = np.linalg.norm(r)
        x, y, z = r[0], r[1], r[2]

        factor = (3/2) * self._celestial.j2 * (mu / r_norm**2) * (R / r_norm)**2
        z_ratio_sq = (z / r_norm)**2

        return -factor * np.array([
            x / r_norm * (1 - 5 * z_ratio_sq),
            y / r_norm * (1 - 5 * z_ratio_sq),
            z / r_norm * (3 - 5 * z_ratio_sq),
        ])


class ExponentialAtmosphere:
    """
    Static atmospheric density from a reference table.

    Log-linear interpolation between tabulated densities (quiet sun,
    mid-latitude), exponential decay above the table.
    """

    # altitude_km: density_kg_m3
    REFERENCE_TABLE = {
        0: 1.225,
        25: 3.899e-2,
        30: 1.774e-2,
        40: 3.972e-3,
        50: 1.027e-3,
        60: 3.097e-4,
        70: 8.283e-5,
        80: 1.846e-5,
        90: 3.416e-6,
        100: 5.606e-7,
        110: 9.708e-8,
        120: 2.222e-8,
        130: 8.152e-9,
        140: 3.831e-9,
        150: 2.076e-9,
        180: 5.194e-10,
        200: 2.541e-10,
        250: 6.073e-11,
        300: 1.916e-11,
        350: 7.014e-12,
        400: 2.803e-12,
        450: 1.184e-12,
        500: 5.215e-13,
        600: 1.137e-13,
        700: 3.070e-14,
        800: 1.136e-14,
        900: 5.759e-15,
        1000: 3.561e-15,
    }

    HIGH_ALTITUDE_SCALE_HEIGHT = 60.0  # km

    def __init__(self):
        altitudes = sorted(self.REFERENCE_TABLE)
        self._alt_array = np.array(altitudes, dtype=float)
        self._log_rho_array = np.log([self.REFERENCE_TABLE[alt] for alt in altitudes])

    def density(self, altitude_km: float) -> float:
        if altitude_km < self._alt_array[0]:
            return float(np.exp(self._log_rho_array[0]))

        if altitude_km > self._alt_array[-1]:
            return float(np.exp(self._log_rho_array[-1]) *
                         np.exp(-(altitude_km - self._alt_array[-1]) / self.HIGH_ALTITUDE_SCALE_HEIGHT))

        return float(np.exp(np.interp(altitude_km, self._alt_array, self._log_rho_array)))


class AtmosphericDrag(Dynamics):
    """
    Atmospheric drag acceleration.

    Reads position, velocity, mass, surface area and drag coefficient.
    The atmosphere co-rotates with the central body.
    """

    def __init__(self, celestial: Celestial = None, atmosphere: ExponentialAtmosphere = None,
                 name: str = 'Atmospheric Drag'):
        super().__init__(name)
        self._celestial = celestial if celestial is not None else Celestial.earth()
        self._atmosphere = atmosphere if atmosphere is not None else ExponentialAtmosphere()

    def get_read_coordinates_subsets(self):
        return [
            CartesianPosition.default(),
            CartesianVelocity.default(),
            CoordinatesSubset.mass(),
            CoordinatesSubset.surface_area(),
            CoordinatesSubset.drag_coefficient(),
        ]

    def get_write_coordinates_subsets(self):
        return [CartesianVelocity.default()]

    def compute_contribution(self, instant, x, frame) -> np.ndarray:
        r, v = x[0:3], x[3:6]
        mass, area, drag_coefficient = x[6], x[7], x[8]

        if mass <= 0.0:
            raise PropagationRuntimeError(f"Non-positive mass in drag evaluation: {mass} kg")

        altitude_km = (np.linalg.norm(r) - self._celestial.equatorial_radius) / 1000.0
        rho = self._atmosphere.density(altitude_km)

        omega = np.array([0.0, 0.0, self._celestial.rotation_rate])
        v_rel = v - np.cross(omega, r)
        v_rel_norm = np.linalg.norm(v_rel)

        if v_rel_norm < 1e-9:
            return np.zeros(3)

        # F = -0.5 * C_d * A * rho * |v| * v
        return -0.5 * (drag_coefficient * area / mass) * rho * v_rel_norm * v_rel


class GuidanceLaw(ABC):
    """Thrust direction provider."""

    def __init__(self, name: str):
        self._name = name

    @property
    def name(self) -> str:
        return self._name

    @abstractmethod
    def calculate_thrust_direction_at(self, instant: Instant, position: np.ndarray,
                                      velocity: np.ndarray, frame: Frame) -> np.ndarray:
        """Unit thrust direction expressed in `frame`."""
        pass


def local_orbital_frame(position: np.ndarray, velocity: np.ndarray,
                        frame_type: str = 'VNC') -> np.ndarray:
    """
    Rotation from a local orbital frame to the frame of r and v.

    Columns are the local axes:
    - VNC: velocity, orbit normal, co-normal
    - QSW: radial, along-track, orbit normal

    Args:
        position: Position vector
        velocity: Velocity vector
        frame_type: 'VNC' or 'QSW'

    Returns:
        3x3 matrix whose columns are the local unit axes
    """
    h = np.cross(position, velocity)
    h_norm = np.linalg.norm(h)

    if h_norm == 0.0:
        raise InvalidArgumentError("Local orbital frame undefined for rectilinear motion")

    W = h / h_norm

    if frame_type == 'VNC':
        V = velocity / np.linalg.norm(velocity)
        return np.column_stack([V, W, np.cross(V, W)])

    if frame_type == 'QSW':
        Q = position / np.linalg.norm(position)
        return np.column_stack([Q, np.cross(W, Q), W])

    raise InvalidArgumentError(f"Unknown local orbital frame: {frame_type}")


class ConstantThrust(GuidanceLaw):
    """Thrust along a fixed direction of a local orbital frame."""

    def __init__(self, direction, local_frame: str = 'VNC', name: str = 'Constant Thrust'):
        super().__init__(name)
        direction = np.asarray(direction, dtype=float)
        norm = np.linalg.norm(direction)

        if direction.shape != (3,) or norm == 0.0:
            raise InvalidArgumentError(f"Invalid thrust direction: {direction}")

        self._direction = direction / norm
        self._local_frame = local_frame

    @classmethod
    def intrack(cls, velocity_direction: bool = True) -> 'ConstantThrust':
        """Thrust along (or against) the velocity."""
        sign = 1.0 if velocity_direction else -1.0
        return cls([sign, 0.0, 0.0], 'VNC', name='Constant Thrust [Intrack]')

    @property
    def direction(self) -> np.ndarray:
        return self._direction

    def calculate_thrust_direction_at(self, instant, position, velocity, frame) -> np.ndarray:
        return local_orbital_frame(position, velocity, self._local_frame) @ self._direction


class Thruster(Dynamics):
    """
    Thrust acceleration and propellant consumption.

    Writes velocity (thrust / mass along the guidance direction) and mass
    (minus the mass flow rate). Raises once the mass reaches the dry mass.
    """

    def __init__(self, satellite_system: SatelliteSystem, guidance_law: GuidanceLaw,
                 name: str = None):
        if satellite_system is None or satellite_system.propulsion_system is None:
            raise UndefinedArgumentError("Thruster needs a satellite system with a propulsion system")
        if guidance_law is None:
            raise UndefinedArgumentError("Thruster guidance law is undefined")

        super().__init__(name or f'Thruster [{guidance_law.name}]')
        self._satellite_system = satellite_system
        self._guidance_law = guidance_law

    @property
    def satellite_system(self) -> SatelliteSystem:
        return self._satellite_system

    @property
    def guidance_law(self) -> GuidanceLaw:
        return self._guidance_law

    @property
    def propulsion_system(self) -> PropulsionSystem:
        return self._satellite_system.propulsion_system

    def get_read_coordinates_subsets(self):
        return [CartesianPosition.default(), CartesianVelocity.default(), CoordinatesSubset.mass()]

    def get_write_coordinates_subsets(self):
        return [CartesianVelocity.default(), CoordinatesSubset.mass()]

    def compute_contribution(self, instant, x, frame) -> np.ndarray:
        r, v, mass = x[0:3], x[3:6], x[6]

        if mass <= self._satellite_system.dry_mass:
            raise PropagationRuntimeError(
                f"Out of fuel: mass {mass:.6f} kg reached dry mass "
                f"{self._satellite_system.dry_mass} kg"
            )

        direction = self._guidance_law.calculate_thrust_direction_at(instant, r, v, frame)
        acceleration = self.propulsion_system.get_acceleration(mass) * direction

        return np.concatenate([acceleration, [-self.propulsion_system.mass_flow_rate]])


def create_circular_orbit(instant: Instant, altitude: float, inclination: float,
                          RAAN: float = 0.0, true_anomaly: float = 0.0,
                          celestial: Celestial = None,
                          extra: Optional[dict] = None) -> State:
    """
    Create initial state for circular orbit.

    Args:
        instant: State instant
        altitude: Orbit altitude above the equatorial radius (m)
        inclination: Orbit inclination (degrees)
        RAAN: Right Ascension of Ascending Node (degrees)
        true_anomaly: Initial true anomaly (degrees)
        celestial: Central body (default: spherical Earth)
        extra: Optional {CoordinatesSubset: value} appended to the state

    Returns:
        GCRF state
    """
    celestial = celestial if celestial is not None else Celestial.earth()

    r = celestial.equatorial_radius + altitude
    v_mag = np.sqrt(celestial.gravitational_parameter / r)

    inc_rad = np.deg2rad(inclination)
    raan_rad = np.deg2rad(RAAN)
    ta_rad = np.deg2rad(true_anomaly)

    r_orbital = r * np.array([np.cos(ta_rad), np.sin(ta_rad), 0])
    v_orbital = v_mag * np.array([-np.sin(ta_rad), np.cos(ta_rad), 0])

    R_inc = np.array([
        [1, 0, 0],
        [0, np.cos(inc_rad), -np.sin(inc_rad)],
        [0, np.sin(inc_rad), np.cos(inc_rad)]
    ])

    R_raan = np.array([
        [np.cos(raan_rad), -np.sin(raan_rad), 0],
        [np.sin(raan_rad), np.cos(raan_rad), 0],
        [0, 0, 1]
    ])

    return State.from_cartesian(
        instant, R_raan @ R_inc @ r_orbital, R_raan @ R_inc @ v_orbital, GCRF, extra
    )
