"""Domain value objects shared by the scheduling, verification and recap code."""

from __future__ import annotations

import enum
from dataclasses import dataclass
from datetime import date, datetime, timedelta, tzinfo
from typing import Iterable, List, Optional, Sequence, Tuple, Union

from pydantic import BaseModel, ConfigDict


class CycleType(str, enum.Enum):
    """Cycle a one-off commitment belongs to."""

    DAILY = "daily"
    WEEKLY = "weekly"


class WindowMode(str, enum.Enum):
    """How a time window is requested.

    MANUAL is an on-demand query (progress so far in the current cycle);
    AUTOMATED is a scheduled run covering the cycle that just finished.
    """

    MANUAL = "manual"
    AUTOMATED = "automated"


class Confidence(str, enum.Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


WEEKDAYS: Tuple[str, ...] = (
    "monday",
    "tuesday",
    "wednesday",
    "thursday",
    "friday",
    "saturday",
    "sunday",
)


def weekday_name(day: date) -> str:
    """Canonical lowercase weekday name for a calendar date."""
    return WEEKDAYS[day.weekday()]


def local_date(instant: datetime, tz: tzinfo) -> date:
    """Calendar date of an aware instant in the given zone."""
    return instant.astimezone(tz).date()


def as_local_day(value: Union[date, datetime], tz: Optional[tzinfo]) -> date:
    """Calendar date of ``value``; instants are read in ``tz``, dates pass through."""
    if isinstance(value, datetime):
        if tz is None or value.tzinfo is None:
            raise ValueError("A timezone and an aware instant are needed to find its calendar date")
        return local_date(value, tz)
    return value


@dataclass(frozen=True)
class TimeWindow:
    """An interval of instants, start inclusive and end exclusive by default."""

    start: datetime
    end: datetime

    def contains(self, instant: datetime, inclusive_end: bool = False) -> bool:
        if inclusive_end:
            return self.start <= instant <= self.end
        return self.start <= instant < self.end

    @property
    def duration(self) -> timedelta:
        return self.end - self.start

    def calendar_days(self, tz: tzinfo) -> List[date]:
        """Every local calendar date touched by the window, both endpoints included."""
        first = local_date(self.start, tz)
        last = local_date(self.end, tz)
        return [first + timedelta(days=i) for i in range((last - first).days + 1)]


@dataclass(frozen=True)
class RecurrenceRule:
    """Fixed weekly schedule with an optional expiry instant."""

    weekdays: Tuple[str, ...]
    end_date: Optional[datetime] = None

    def __post_init__(self) -> None:
        if not self.weekdays:
            raise ValueError("RecurrenceRule needs at least one weekday")
        unknown = [d for d in self.weekdays if d not in WEEKDAYS]
        if unknown:
            raise ValueError(f"Unknown weekday names: {unknown}")

    @classmethod
    def from_names(
        cls, names: Iterable[str], end_date: Optional[datetime] = None
    ) -> "RecurrenceRule":
        wanted = set(names)
        return cls(weekdays=tuple(d for d in WEEKDAYS if d in wanted), end_date=end_date)

    def is_scheduled_on(self, day: Union[date, datetime], tz: tzinfo) -> bool:
        """True when ``day`` falls on a listed weekday and not after the end date.

        ``day`` may be a calendar date or an aware instant; instants are
        reduced to their calendar date in ``tz``. The end date is compared at
        day granularity in ``tz``, so the end date's own calendar day is
        still scheduled.
        """
        day = as_local_day(day, tz)
        if weekday_name(day) not in self.weekdays:
            return False
        if self.end_date is None:
            return True
        return day <= local_date(self.end_date, tz)

    def is_expired_at(self, instant: datetime) -> bool:
        return self.end_date is not None and self.end_date < instant


FALLBACK_EXPLANATION = (
    "Unable to verify proof due to technical issues with the analysis"
)


class VerificationVerdict(BaseModel):
    """Validity judgment for a proof submission."""

    model_config = ConfigDict(frozen=True)

    is_valid: bool
    explanation: str
    confidence: Confidence

    @classmethod
    def fallback(cls, explanation: Optional[str] = None) -> "VerificationVerdict":
        """Safe verdict used when the verifier fails or answers garbage."""
        return cls(
            is_valid=False,
            explanation=explanation or FALLBACK_EXPLANATION,
            confidence=Confidence.LOW,
        )


@dataclass(frozen=True)
class RecurrenceSpec:
    """Recurrence as supplied by a caller creating a commitment.

    ``days`` is a comma-separated string ("mon,wed") or a sequence of tokens;
    ``end_date`` is a date, datetime or ISO-8601 string, or None.
    """

    days: Union[str, Sequence[str]]
    end_date: Union[None, str, date, datetime] = None
