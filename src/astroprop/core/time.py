"""
Exact time tags for propagation.

An Instant keeps whole seconds and the fractional second since the J2000
epoch (TT) separately, so that adding short durations to dates decades
away from J2000 does not lose sub-microsecond resolution. Conversions
to and from calendar dates go through astropy, which handles leap
seconds and the UTC/TT offset.
"""

import math
from datetime import datetime, timezone
from functools import total_ordering

from astropy.time import Time, TimeDelta

from ..constants import J2000_JD
from .errors import InvalidArgumentError


@total_ordering
class Instant:
    """
    Point in time, stored as seconds since J2000 TT.

    Instants support `instant + seconds`, `instant - seconds` and
    `instant - instant` (float seconds). Equality is exact.
    """

    __slots__ = ('_whole', '_fraction')

    def __init__(self, whole_seconds: int = 0, fractional_seconds: float = 0.0):
        if not math.isfinite(fractional_seconds):
            raise InvalidArgumentError(f"Non-finite fractional seconds: {fractional_seconds}")

        whole = int(whole_seconds)
        carry = math.floor(fractional_seconds)
        fraction = float(fractional_seconds - carry)
        whole += int(carry)

        # floor can leave 1.0 after rounding (e.g. -1e-17 + 1)
        if fraction >= 1.0:
            whole += 1
            fraction -= 1.0

        self._whole = whole
        self._fraction = fraction

    @classmethod
    def j2000(cls) -> 'Instant':
        """J2000 epoch (2000-01-01 12:00:00 TT)."""
        return cls(0, 0.0)

    @classmethod
    def from_time(cls, time: Time) -> 'Instant':
        """Build an instant from an astropy Time in any scale."""
        tt = time.tt
        # jd1 is integral after astropy's two-double normalization
        whole_days = float(tt.jd1) - J2000_JD
        whole = int(round(whole_days * 86400.0))
        fraction = (whole_days * 86400.0 - whole) + float(tt.jd2) * 86400.0
        return cls(whole, fraction)

    @classmethod
    def from_datetime(cls, date_time: datetime, scale: str = 'utc') -> 'Instant':
        """
        Build an instant from a calendar datetime.

        Args:
            date_time: Datetime (naive values are read in `scale`)
            scale: astropy time scale of the datetime (default: 'utc')

        Returns:
            Instant
        """
        if date_time.tzinfo is not None:
            date_time = date_time.astimezone(timezone.utc).replace(tzinfo=None)
        return cls.from_time(Time(date_time, scale=scale))

    @classmethod
    def date_time(cls, year: int, month: int, day: int, hour: int = 0,
                  minute: int = 0, second: int = 0, microsecond: int = 0,
                  scale: str = 'utc') -> 'Instant':
        return cls.from_datetime(
            datetime(year, month, day, hour, minute, second, microsecond), scale=scale
        )

    @property
    def whole_seconds(self) -> int:
        return self._whole

    @property
    def fractional_seconds(self) -> float:
        return self._fraction

    def to_seconds_since_j2000(self) -> float:
        return self._whole + self._fraction

    def to_time(self) -> Time:
        """Astropy Time (TT scale) for this instant."""
        epoch = Time(J2000_JD, format='jd', scale='tt')
        return epoch + TimeDelta(float(self._whole), self._fraction, format='sec')

    def to_datetime(self, scale: str = 'utc') -> datetime:
        """Timezone-aware datetime (for UTC) or naive datetime (other scales)."""
        time = getattr(self.to_time(), scale)
        if scale == 'utc':
            return time.to_datetime(timezone=timezone.utc)
        return time.to_datetime()

    def __add__(self, seconds) -> 'Instant':
        if isinstance(seconds, Instant):
            return NotImplemented
        seconds = float(seconds)
        if not math.isfinite(seconds):
            raise InvalidArgumentError(f"Cannot shift instant by {seconds} s")
        carry = math.floor(seconds)
        return Instant(self._whole + int(carry), self._fraction + (seconds - carry))

    __radd__ = __add__

    def __sub__(self, other):
        if isinstance(other, Instant):
            return float(self._whole - other._whole) + (self._fraction - other._fraction)
        return self + (-float(other))

    def __eq__(self, other) -> bool:
        if not isinstance(other, Instant):
            return NotImplemented
        return self._whole == other._whole and self._fraction == other._fraction

    def __lt__(self, other) -> bool:
        if not isinstance(other, Instant):
            return NotImplemented
        return (self._whole, self._fraction) < (other._whole, other._fraction)

    def __hash__(self) -> int:
        return hash((self._whole, self._fraction))

    def __repr__(self) -> str:
        return f"Instant({self._whole}, {self._fraction!r})"

    def __str__(self) -> str:
        try:
            return self.to_time().utc.isot + ' [UTC]'
        except ValueError:
            return repr(self)
