"""
Pure time-window arithmetic for daily and weekly cycles.

No database, no clock reads: callers pass ``now`` and the reference zone.
A "day" starts at the configured boundary hour (04:00 by default), a
"week" starts on Sunday at local midnight.

Returned instants are UTC-aware.
"""

from datetime import date, datetime, time, timedelta, timezone, tzinfo

from ..domain.errors import InvalidRange
from ..models.value_objects import CycleType, TimeWindow, WindowMode

DEFAULT_DAY_BOUNDARY_HOUR = 4
DAY = timedelta(hours=24)


def _at_local(day: date, clock: time, tz: tzinfo) -> datetime:
    """Local wall-clock time on ``day`` in ``tz``, as a UTC instant."""
    return datetime.combine(day, clock, tzinfo=tz).astimezone(timezone.utc)


def day_boundary(now: datetime, tz: tzinfo, boundary_hour: int = DEFAULT_DAY_BOUNDARY_HOUR) -> datetime:
    """Boundary instant on the local calendar date of ``now``.

    This is the boundary of today's *date*: when ``now`` is before the
    boundary hour it lies in the future.
    """
    return _at_local(now.astimezone(tz).date(), time(hour=boundary_hour), tz)


def cycle_day_start(now: datetime, tz: tzinfo, boundary_hour: int = DEFAULT_DAY_BOUNDARY_HOUR) -> datetime:
    """Most recent day boundary at or before ``now``."""
    boundary = day_boundary(now, tz, boundary_hour)
    if now < boundary:
        return boundary - DAY
    return boundary


def week_start(now: datetime, tz: tzinfo) -> datetime:
    """Most recent Sunday 00:00 local at or before ``now``."""
    local_day = now.astimezone(tz).date()
    days_since_sunday = (local_day.weekday() + 1) % 7
    return _at_local(local_day - timedelta(days=days_since_sunday), time.min, tz)


def _previous_week_start(current: datetime, tz: tzinfo) -> datetime:
    # Local midnight a calendar week earlier; 7 x 24h would drift across DST.
    previous_day = current.astimezone(tz).date() - timedelta(days=7)
    return _at_local(previous_day, time.min, tz)


def compute_window(
    cycle_type: CycleType,
    mode: WindowMode,
    now: datetime,
    tz: tzinfo,
    boundary_hour: int = DEFAULT_DAY_BOUNDARY_HOUR,
) -> TimeWindow:
    """Compute the window for a cycle.

    Daily, automated: the 24 hours ending at today's boundary.
    Daily, manual: from the most recent boundary up to ``now``.
    Weekly, automated: the week that ended at the latest Sunday midnight.
    Weekly, manual: from the latest Sunday midnight up to ``now``.

    Raises:
        InvalidRange: If the resulting start is not strictly before end.
        ValueError: If ``now`` is naive.
    """
    if now.tzinfo is None:
        raise ValueError("now must be timezone-aware")
    now = now.astimezone(timezone.utc)
    cycle_type = CycleType(cycle_type)
    mode = WindowMode(mode)

    if cycle_type is CycleType.DAILY:
        if mode is WindowMode.AUTOMATED:
            end = day_boundary(now, tz, boundary_hour)
            start = end - DAY
        else:
            start = cycle_day_start(now, tz, boundary_hour)
            end = now
    else:
        current_week = week_start(now, tz)
        if mode is WindowMode.AUTOMATED:
            start = _previous_week_start(current_week, tz)
            end = current_week
        else:
            start = current_week
            end = now

    return validate_window(start, end)


def validate_window(start: datetime, end: datetime) -> TimeWindow:
    """Build a TimeWindow, refusing empty or inverted ranges."""
    if start is None or end is None or start >= end:
        raise InvalidRange(start, end)
    return TimeWindow(start=start, end=end)
