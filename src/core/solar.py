"""Dawn/dusk computation from date and coordinates.

Uses the sunrise equation (NOAA low-precision approximation, accurate to about
a minute at mid latitudes). Dawn and dusk are civil twilight by default: the
moment the sun's centre is 6 degrees below the horizon. The altitude is a
parameter so other twilight definitions can be plugged in.
"""

import math
from dataclasses import dataclass
from datetime import UTC, date, datetime, time, timedelta
from zoneinfo import ZoneInfo

from src.core.config import constants


_J2000 = 2451545.0
_J2000_DATETIME = datetime(2000, 1, 1, 12, 0, tzinfo=UTC)
_ORDINAL_TO_JULIAN_NOON = 1721425.0
_EARTH_AXIAL_TILT = 23.4397


@dataclass(frozen=True)
class SolarWindow:
    """Daylight interval of one local day, both ends timezone aware."""

    dawn: datetime
    dusk: datetime

    def contains(self, moment: datetime) -> bool:
        return self.dawn <= moment <= self.dusk


def _julian_to_datetime(julian: float) -> datetime:
    return _J2000_DATETIME + timedelta(days=julian - _J2000)


def solar_window(
    *,
    day: date,
    latitude: float,
    longitude: float,
    tz: ZoneInfo,
    altitude_degrees: float = constants.CIVIL_TWILIGHT_DEGREES,
) -> SolarWindow | None:
    """Compute dawn and dusk for a local calendar day.

    Returns None during polar night (the sun never climbs to the altitude).
    During midnight sun (it never sinks below it) the whole local day is returned.
    """
    # Julian cycle closest to local solar noon; east longitudes positive
    n = round(day.toordinal() + _ORDINAL_TO_JULIAN_NOON - _J2000 + 0.0008)
    mean_solar_time = n - longitude / 360.0

    mean_anomaly = math.radians((357.5291 + 0.98560028 * mean_solar_time) % 360)
    center = (
        1.9148 * math.sin(mean_anomaly)
        + 0.0200 * math.sin(2 * mean_anomaly)
        + 0.0003 * math.sin(3 * mean_anomaly)
    )
    ecliptic_longitude = math.radians((math.degrees(mean_anomaly) + center + 180 + 102.9372) % 360)
    transit = (
        _J2000
        + mean_solar_time
        + 0.0053 * math.sin(mean_anomaly)
        - 0.0069 * math.sin(2 * ecliptic_longitude)
    )

    sin_declination = math.sin(ecliptic_longitude) * math.sin(math.radians(_EARTH_AXIAL_TILT))
    cos_declination = math.cos(math.asin(sin_declination))
    phi = math.radians(latitude)

    cos_hour_angle = (math.sin(math.radians(altitude_degrees)) - math.sin(phi) * sin_declination) / (
        math.cos(phi) * cos_declination
    )

    if cos_hour_angle > 1:
        return None
    if cos_hour_angle < -1:
        start = datetime.combine(day, time.min, tzinfo=tz)
        return SolarWindow(dawn=start, dusk=start + timedelta(days=1) - timedelta(microseconds=1))

    hour_angle = math.degrees(math.acos(cos_hour_angle))
    dawn = _julian_to_datetime(transit - hour_angle / 360.0)
    dusk = _julian_to_datetime(transit + hour_angle / 360.0)
    return SolarWindow(dawn=dawn.astimezone(tz), dusk=dusk.astimezone(tz))
