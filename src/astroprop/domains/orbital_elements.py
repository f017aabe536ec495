"""
Classical orbital elements and conditions on them.

Reference: Vallado, D. "Fundamentals of Astrodynamics and Applications" (2013),
           Algorithm 9 (RV2COE)
"""

from dataclasses import dataclass
from typing import Union

import numpy as np

from ..constants import EARTH_MU
from ..core.events import AngularCondition, Criterion, RealCondition, Target
from ..core.frames import Frame, GCRF
from ..core.state import State


@dataclass(frozen=True)
class COE:
    """
    Classical orbital elements.

    Distances in meters, angles in radians.
    """
    semi_major_axis: float
    eccentricity: float
    inclination: float
    raan: float
    aop: float
    true_anomaly: float

    @classmethod
    def from_cartesian(cls, position: np.ndarray, velocity: np.ndarray,
                       gravitational_parameter: float = EARTH_MU) -> 'COE':
        r = np.asarray(position, dtype=float)
        v = np.asarray(velocity, dtype=float)
        mu = gravitational_parameter

        e_vec = eccentricity_vector(r, v, mu)
        h = np.cross(r, v)
        h_norm = np.linalg.norm(h)
        n = _node_vector(h)

        raan = float(np.mod(np.arctan2(n[1], n[0]), 2 * np.pi))
        aop = float(np.mod(_angle_in_plane(n, e_vec, h), 2 * np.pi))

        return cls(
            semi_major_axis=semi_major_axis(r, v, mu),
            eccentricity=float(np.linalg.norm(e_vec)),
            inclination=float(np.arccos(np.clip(h[2] / h_norm, -1.0, 1.0))),
            raan=raan,
            aop=aop,
            true_anomaly=true_anomaly(r, v, mu),
        )

    @classmethod
    def from_state(cls, state: State, gravitational_parameter: float = EARTH_MU) -> 'COE':
        state = state.in_frame(GCRF)
        return cls.from_cartesian(state.position, state.velocity, gravitational_parameter)

    def to_cartesian(self, gravitational_parameter: float = EARTH_MU):
        """Return (position, velocity) from the elements."""
        mu = gravitational_parameter
        p = self.semi_major_axis * (1 - self.eccentricity**2)
        nu = self.true_anomaly

        r_pqw = p / (1 + self.eccentricity * np.cos(nu)) * np.array([np.cos(nu), np.sin(nu), 0.0])
        v_pqw = np.sqrt(mu / p) * np.array([-np.sin(nu), self.eccentricity + np.cos(nu), 0.0])

        rotation = _rotation_z(self.raan) @ _rotation_x(self.inclination) @ _rotation_z(self.aop)

        return rotation @ r_pqw, rotation @ v_pqw


def _rotation_x(angle: float) -> np.ndarray:
    c, s = np.cos(angle), np.sin(angle)
    return np.array([[1, 0, 0], [0, c, -s], [0, s, c]])


def _rotation_z(angle: float) -> np.ndarray:
    c, s = np.cos(angle), np.sin(angle)
    return np.array([[c, -s, 0], [s, c, 0], [0, 0, 1]])


def _node_vector(h: np.ndarray) -> np.ndarray:
    n = np.cross([0.0, 0.0, 1.0], h)
    norm = np.linalg.norm(n)
    # Equatorial orbits: measure from +X
    if norm < 1e-12 * np.linalg.norm(h):
        return np.array([1.0, 0.0, 0.0])
    return n / norm


def _angle_in_plane(origin: np.ndarray, vector: np.ndarray, h: np.ndarray) -> float:
    """Signed angle from `origin` to `vector`, positive about h."""
    h_hat = h / np.linalg.norm(h)
    return float(np.arctan2(np.dot(np.cross(origin, vector), h_hat), np.dot(origin, vector)))


def eccentricity_vector(r: np.ndarray, v: np.ndarray, mu: float = EARTH_MU) -> np.ndarray:
    r_norm = np.linalg.norm(r)
    return ((np.dot(v, v) - mu / r_norm) * r - np.dot(r, v) * v) / mu


def semi_major_axis(r: np.ndarray, v: np.ndarray, mu: float = EARTH_MU) -> float:
    return float(1.0 / (2.0 / np.linalg.norm(r) - np.dot(v, v) / mu))


def eccentricity(r: np.ndarray, v: np.ndarray, mu: float = EARTH_MU) -> float:
    return float(np.linalg.norm(eccentricity_vector(r, v, mu)))


def true_anomaly(r: np.ndarray, v: np.ndarray, mu: float = EARTH_MU) -> float:
    """True anomaly in [0, 2π); undefined (returns the argument of latitude) for circular orbits."""
    e_vec = eccentricity_vector(r, v, mu)
    h = np.cross(r, v)

    if np.linalg.norm(e_vec) < 1e-12:
        return argument_of_latitude(r, v)

    return float(np.mod(_angle_in_plane(e_vec, r, h), 2 * np.pi))


def argument_of_latitude(r: np.ndarray, v: np.ndarray, mu: float = EARTH_MU) -> float:
    h = np.cross(r, v)
    return float(np.mod(_angle_in_plane(_node_vector(h), r, h), 2 * np.pi))


def inclination(r: np.ndarray, v: np.ndarray, mu: float = EARTH_MU) -> float:
    h = np.cross(r, v)
    return float(np.arccos(np.clip(h[2] / np.linalg.norm(h), -1.0, 1.0)))


class COECondition:
    """Factories for conditions on classical orbital elements."""

    @staticmethod
    def _evaluator(element, gravitational_parameter: float):
        def evaluate(state: State) -> float:
            return element(state.position, state.velocity, gravitational_parameter)
        return evaluate

    @classmethod
    def semi_major_axis(cls, criterion: Criterion, target: Union[float, Target],
                        frame: Frame = GCRF,
                        gravitational_parameter: float = EARTH_MU) -> RealCondition:
        return RealCondition(
            'Semi-major axis Condition', criterion,
            cls._evaluator(semi_major_axis, gravitational_parameter), target, frame,
        )

    @classmethod
    def eccentricity(cls, criterion: Criterion, target: Union[float, Target],
                     frame: Frame = GCRF,
                     gravitational_parameter: float = EARTH_MU) -> RealCondition:
        return RealCondition(
            'Eccentricity Condition', criterion,
            cls._evaluator(eccentricity, gravitational_parameter), target, frame,
        )

    @classmethod
    def inclination(cls, criterion: Criterion, target: Union[float, Target],
                    frame: Frame = GCRF,
                    gravitational_parameter: float = EARTH_MU) -> AngularCondition:
        return AngularCondition(
            'Inclination Condition', criterion,
            cls._evaluator(inclination, gravitational_parameter), target, frame,
        )

    @classmethod
    def true_anomaly(cls, criterion: Criterion, target: Union[float, Target],
                     frame: Frame = GCRF,
                     gravitational_parameter: float = EARTH_MU) -> AngularCondition:
        return AngularCondition(
            'True Anomaly Condition', criterion,
            cls._evaluator(true_anomaly, gravitational_parameter), target, frame,
        )

    @classmethod
    def argument_of_latitude(cls, criterion: Criterion, target: Union[float, Target],
                             frame: Frame = GCRF,
                             gravitational_parameter: float = EARTH_MU) -> AngularCondition:
        return AngularCondition(
            'Argument of Latitude Condition', criterion,
            cls._evaluator(argument_of_latitude, gravitational_parameter), target, frame,
        )
