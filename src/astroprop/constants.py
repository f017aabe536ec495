"""Physical and time constants (SI units)."""

# Standard gravity (m/s^2), used for Isp <-> exhaust velocity
STANDARD_GRAVITY = 9.80665

# Earth parameters
EARTH_MU = 398600441500000.0  # m^3/s^2, EGM2008 spherical
EARTH_EQUATORIAL_RADIUS = 6378137.0  # m
EARTH_J2 = 1.08263e-3
EARTH_ROTATION_RATE = 7.2921159e-5  # rad/s, sidereal

# Time
SECONDS_PER_MINUTE = 60.0
SECONDS_PER_HOUR = 3600.0
SECONDS_PER_DAY = 86400.0
J2000_JD = 2451545.0  # Julian date of 2000-01-01 12:00 TT

# Default upper bound on a single propagation
DEFAULT_MAXIMUM_PROPAGATION_DURATION = 30.0 * SECONDS_PER_DAY
