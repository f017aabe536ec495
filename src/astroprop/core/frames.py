"""
Reference frames and Cartesian transformations.

Two frames are provided:
- GCRF (inertial, J2000-aligned), in which dynamics are integrated
- ITRF (Earth-fixed), rotating about +Z by Greenwich Mean Sidereal Time

Every transformation passes through GCRF. Velocities account for frame
rotation (v' = R v - w x r').

Reference: Vallado, D. "Fundamentals of Astrodynamics and Applications" (2013)
"""

from typing import Callable, Tuple
import logging

import numpy as np

from ..constants import EARTH_ROTATION_RATE, J2000_JD

logger = logging.getLogger(__name__)

_IDENTITY = np.eye(3)
_ZERO = np.zeros(3)


def compute_gmst(instant) -> float:
    """
    Compute Greenwich Mean Sidereal Time (IAU 1982).

    UT1 is approximated by UTC.

    Args:
        instant: Instant

    Returns:
        gmst: Greenwich Mean Sidereal Time (radians, 0 to 2π)

    Reference: Vallado, Algorithm 15
    """
    utc = instant.to_time().utc

    # Julian centuries from J2000
    T = ((utc.jd1 - J2000_JD) + utc.jd2) / 36525.0

    gmst_seconds = 67310.54841 + \
        (876600.0 * 3600.0 + 8640184.812866) * T + \
        0.093104 * T**2 - \
        6.2e-6 * T**3

    # 240 sec = 1 degree
    gmst_rad = np.fmod(np.deg2rad(gmst_seconds / 240.0), 2 * np.pi)
    if gmst_rad < 0:
        gmst_rad += 2 * np.pi

    return float(gmst_rad)


def _gcrf_rotation(instant) -> Tuple[np.ndarray, np.ndarray]:
    return _IDENTITY, _ZERO


def _itrf_rotation(instant) -> Tuple[np.ndarray, np.ndarray]:
    gmst = compute_gmst(instant)
    cos_gmst = np.cos(gmst)
    sin_gmst = np.sin(gmst)

    R = np.array([
        [ cos_gmst,  sin_gmst, 0],
        [-sin_gmst,  cos_gmst, 0],
        [ 0,         0,        1]
    ])

    return R, np.array([0.0, 0.0, EARTH_ROTATION_RATE])


class Frame:
    """
    Named reference frame.

    A frame is described by the rotation from GCRF into it and its angular
    velocity with respect to GCRF (expressed in the frame). Frames compare
    equal by name.
    """

    def __init__(self, name: str, is_inertial: bool,
                 rotation_provider: Callable[[object], Tuple[np.ndarray, np.ndarray]]):
        self._name = name
        self._is_inertial = is_inertial
        self._rotation_provider = rotation_provider

    @classmethod
    def gcrf(cls) -> 'Frame':
        return GCRF

    @classmethod
    def itrf(cls) -> 'Frame':
        return ITRF

    @property
    def name(self) -> str:
        return self._name

    @property
    def is_inertial(self) -> bool:
        return self._is_inertial

    def rotation_from_gcrf(self, instant) -> Tuple[np.ndarray, np.ndarray]:
        """Return (R, omega): r_frame = R @ r_gcrf, omega in this frame (rad/s)."""
        return self._rotation_provider(instant)

    def transform_position(self, position: np.ndarray, instant,
                           to_frame: 'Frame') -> np.ndarray:
        """Express a position given in this frame in `to_frame`."""
        if to_frame == self:
            return np.array(position, dtype=float)

        R_from, _ = self.rotation_from_gcrf(instant)
        R_to, _ = to_frame.rotation_from_gcrf(instant)

        return R_to @ (R_from.T @ np.asarray(position, dtype=float))

    def transform_velocity(self, position: np.ndarray, velocity: np.ndarray,
                           instant, to_frame: 'Frame') -> np.ndarray:
        """
        Express a velocity given in this frame in `to_frame`.

        Args:
            position: Position in this frame (m)
            velocity: Velocity in this frame (m/s)
            instant: Instant of the transformation
            to_frame: Destination frame

        Returns:
            Velocity in `to_frame` (m/s)
        """
        if to_frame == self:
            return np.array(velocity, dtype=float)

        r = np.asarray(position, dtype=float)
        v = np.asarray(velocity, dtype=float)

        R_from, omega_from = self.rotation_from_gcrf(instant)
        R_to, omega_to = to_frame.rotation_from_gcrf(instant)

        # Through GCRF
        v_gcrf = R_from.T @ (v + np.cross(omega_from, r))
        r_out = R_to @ (R_from.T @ r)

        return R_to @ v_gcrf - np.cross(omega_to, r_out)

    def __eq__(self, other) -> bool:
        if not isinstance(other, Frame):
            return NotImplemented
        return self._name == other._name

    def __hash__(self) -> int:
        return hash(self._name)

    def __repr__(self) -> str:
        return f"Frame({self._name!r})"


GCRF = Frame('GCRF', True, _gcrf_rotation)
ITRF = Frame('ITRF', False, _itrf_rotation)
