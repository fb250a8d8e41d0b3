"""Local time helpers for time-of-day bands and business hours."""

from datetime import datetime, time
from zoneinfo import ZoneInfo

from src.core.config import constants, settings
from src.domain.task import TimeOfDay


_WEEKEND_START = 5  # datetime.weekday(): Saturday


def local_zone() -> ZoneInfo:
    """The user's configured timezone."""
    return ZoneInfo(settings.timezone)


def to_local(moment: datetime, tz: ZoneInfo | None = None) -> datetime:
    """Convert an aware datetime to the local zone."""
    return moment.astimezone(tz or local_zone())


def time_of_day_band(local_moment: datetime) -> TimeOfDay:
    """Map a local time to one of four six-hour bands (night, morning, afternoon, evening)."""
    hour = local_moment.hour
    if hour >= constants.EVENING_START_HOUR:
        return TimeOfDay.EVENING
    if hour >= constants.AFTERNOON_START_HOUR:
        return TimeOfDay.AFTERNOON
    if hour >= constants.MORNING_START_HOUR:
        return TimeOfDay.MORNING
    return TimeOfDay.NIGHT


def band_start(band: TimeOfDay) -> time:
    """Local clock time at which a band begins."""
    return {
        TimeOfDay.NIGHT: time(constants.NIGHT_START_HOUR, 0),
        TimeOfDay.MORNING: time(constants.MORNING_START_HOUR, 0),
        TimeOfDay.AFTERNOON: time(constants.AFTERNOON_START_HOUR, 0),
        TimeOfDay.EVENING: time(constants.EVENING_START_HOUR, 0),
    }[band]


def is_business_hours(
    local_moment: datetime,
    *,
    start: time | None = None,
    end: time | None = None,
) -> bool:
    """Monday to Friday, start inclusive and end exclusive."""
    if local_moment.weekday() >= _WEEKEND_START:
        return False
    start = start or settings.business_hours_start
    end = end or settings.business_hours_end
    return start <= local_moment.time() < end
