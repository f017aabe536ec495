"""Spacecraft force models and orbital elements."""

from .orbital_elements import COE, COECondition
from .spacecraft import (
    Celestial,
    PropulsionSystem,
    SatelliteSystem,
    PositionDerivative,
    CentralBodyGravity,
    AtmosphericDrag,
    GuidanceLaw,
    ConstantThrust,
    Thruster,
    create_circular_orbit,
)

__all__ = [
    'COE',
    'COECondition',
    'Celestial',
    'PropulsionSystem',
    'SatelliteSystem',
    'PositionDerivative',
    'CentralBodyGravity',
    'AtmosphericDrag',
    'GuidanceLaw',
    'ConstantThrust',
    'Thruster',
    'create_circular_orbit',
]
