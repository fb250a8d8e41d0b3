"""Recurrence parsing utilities for recurring task schedules."""

import re
from datetime import datetime, time, timedelta
from zoneinfo import ZoneInfo

from croniter import croniter

from src.core.errors import ValidationError


_INTERVAL_PREFIX = "INTERVAL:"
_WEEKDAY_NAMES = ["Sunday", "Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday"]


def _format_time(hour: str, minute: str) -> str:
    if hour == "*" or minute == "*" or not hour.isdigit() or not minute.isdigit():
        return ""
    h = int(hour)
    m = int(minute)
    if h == 0 and m == 0:
        return " at midnight"
    if h == 12 and m == 0:
        return " at noon"
    period = "AM" if h < 12 else "PM"
    display_hour = h if h <= 12 else h - 12
    if display_hour == 0:
        display_hour = 12
    return f" at {display_hour}:{m:02d} {period}"


def cron_to_human(cron_expr: str) -> str:
    """Convert a CRON expression to human-readable text.

    Args:
        cron_expr: CRON expression (e.g., "0 12 * * 1") or INTERVAL format

    Returns:
        Human-readable description (e.g., "every Monday at 12:00 PM")
    """
    if cron_expr.startswith(_INTERVAL_PREFIX):
        days = int(cron_expr.split(":")[1])
        if days == 1:
            return "daily"
        return f"every {days} days"

    parts = cron_expr.split()
    if len(parts) != 5:
        return cron_expr

    minute, hour, day_of_month, month, day_of_week = parts
    time_str = _format_time(hour, minute)

    if day_of_week == "*" and day_of_month == "*" and month == "*":
        return f"daily{time_str}"

    if day_of_month == "*" and month == "*" and day_of_week.isdigit() and int(day_of_week) < len(_WEEKDAY_NAMES):
        return f"every {_WEEKDAY_NAMES[int(day_of_week)]}{time_str}"

    if day_of_week == "*" and month == "*" and day_of_month.isdigit():
        dom = int(day_of_month)
        suffix = {1: "st", 21: "st", 31: "st", 2: "nd", 22: "nd", 3: "rd", 23: "rd"}.get(dom, "th")
        return f"monthly on the {dom}{suffix}{time_str}"

    return f"scheduled ({cron_expr})"


def parse_recurrence_to_cron(recurrence: str, *, at: time | None = None) -> str:
    """Parse a custom recurrence string to a CRON expression.

    Supports:
    - Direct CRON expressions (e.g., "0 20 * * *")
    - Interval format (e.g., "every 3 days"), encoded as "INTERVAL:N:<cron>"

    Raises:
        ValidationError: If recurrence format is invalid
    """
    recurrence = recurrence.strip()
    if croniter.is_valid(recurrence):
        return recurrence

    match = re.match(r"^every\s+(\d+)\s+days?$", recurrence.lower())
    if match:
        days = int(match.group(1))
        if days < 1:
            raise ValidationError("Interval must be at least one day", operation="parse_recurrence")
        at = at or time(0, 0)
        return f"{_INTERVAL_PREFIX}{days}:{at.minute} {at.hour} * * *"

    msg = f"Invalid recurrence format: {recurrence}. Use CRON expression or 'every X days'"
    raise ValidationError(msg, operation="parse_recurrence")


def schedule_to_cron(
    *,
    recurrence_type: str,
    time_of_day: time | None = None,
    day_of_week: int | None = None,
    day_of_month: int | None = None,
    cron_expression: str | None = None,
) -> str:
    """Build the CRON expression for a schedule kind.

    Weekdays use 0=Sunday, matching CRON.
    """
    at = time_of_day or time(0, 0)

    if recurrence_type == "daily":
        return f"{at.minute} {at.hour} * * *"
    if recurrence_type == "weekly":
        if day_of_week is None or not 0 <= day_of_week <= 6:
            raise ValidationError("Weekly schedules need day_of_week between 0 (Sunday) and 6")
        return f"{at.minute} {at.hour} * * {day_of_week}"
    if recurrence_type == "monthly":
        if day_of_month is None or not 1 <= day_of_month <= 31:
            raise ValidationError("Monthly schedules need day_of_month between 1 and 31")
        return f"{at.minute} {at.hour} {day_of_month} * *"
    if recurrence_type == "custom":
        if not cron_expression:
            raise ValidationError("Custom schedules need a cron_expression")
        return parse_recurrence_to_cron(cron_expression, at=time_of_day)

    raise ValidationError(f"Unknown recurrence type: {recurrence_type}")


def next_occurrence(*, cron: str, after: datetime, tz: ZoneInfo) -> datetime:
    """Return the first occurrence strictly after ``after``, evaluated in local time."""
    local_after = after.astimezone(tz)

    if cron.startswith(_INTERVAL_PREFIX):
        _, days, inner = cron.split(":", 2)
        minute, hour = inner.split()[:2]
        target_day = local_after.date() + timedelta(days=int(days))
        return datetime.combine(target_day, time(int(hour), int(minute)), tzinfo=tz)

    return croniter(cron, local_after).get_next(datetime)
