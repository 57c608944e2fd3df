"""
Pure domain logic for recurring commitments.

Weekday-token normalization, schedule membership and completion upserts.
No database and no network.
"""

from datetime import date, datetime, time, timezone, tzinfo
from typing import Dict, Iterable, List, Optional, Union

from ..domain.errors import InvalidInput
from ..models.commitment import Commitment, Completion, Proof
from ..models.commitment_aggregate import CommitmentAggregate
from ..models.value_objects import WEEKDAYS, RecurrenceRule, TimeWindow

WEEKDAY_ALIASES: Dict[str, str] = {
    **{name[:3]: name for name in WEEKDAYS},
    **{name: name for name in WEEKDAYS},
}


def parse_weekdays(tokens: Union[str, Iterable[str]]) -> List[str]:
    """Normalize weekday tokens to canonical lowercase names.

    Accepts a comma-separated string ("Mon, wed") or an iterable of tokens.
    Matching is case-insensitive and accepts three-letter abbreviations.
    Duplicates collapse and the result is ordered Monday to Sunday.

    Raises:
        InvalidInput: Listing every token that is not a weekday, or when
            no tokens were given at all, or when ``tokens`` is neither a
            string nor an iterable.
    """
    if tokens is None:
        raise InvalidInput("At least one weekday is required for a recurring commitment")
    if isinstance(tokens, str):
        raw = tokens.split(",")
    elif isinstance(tokens, Iterable):
        raw = list(tokens)
    else:
        raise InvalidInput(
            f"Weekdays must be a comma-separated string or a list, not {type(tokens).__name__}"
        )
    cleaned = [str(token).strip() for token in raw]
    cleaned = [token for token in cleaned if token]

    if not cleaned:
        raise InvalidInput("At least one weekday is required for a recurring commitment")

    invalid = [token for token in cleaned if token.lower() not in WEEKDAY_ALIASES]
    if invalid:
        raise InvalidInput(f"Invalid days: {', '.join(invalid)}", invalid_tokens=invalid)

    return list(RecurrenceRule.from_names(WEEKDAY_ALIASES[t.lower()] for t in cleaned).weekdays)


def parse_end_date(
    value: Union[None, str, date, datetime], tz: tzinfo
) -> Optional[datetime]:
    """Turn a user-supplied end date into a UTC instant.

    A bare date (or "YYYY-MM-DD" string) means the end of that local day, so
    the day itself stays active. Naive datetimes are read as local time.
    """
    if value is None or value == "":
        return None
    if isinstance(value, str):
        text = value.strip()
        try:
            if len(text) == 10:
                value = date.fromisoformat(text)
            else:
                value = datetime.fromisoformat(text)
        except ValueError as e:
            raise InvalidInput(
                f"Invalid end date: {value}", invalid_tokens=[value]
            ) from e
    if not isinstance(value, datetime):
        value = datetime.combine(value, time.max)
    if value.tzinfo is None:
        value = value.replace(tzinfo=tz)
    return value.astimezone(timezone.utc)


def is_scheduled_on(rule: RecurrenceRule, day: Union[date, datetime], tz: tzinfo) -> bool:
    """True iff the local calendar date of ``day`` is a listed weekday and not after the end date."""
    return rule.is_scheduled_on(day, tz)


def scheduled_days(rule: RecurrenceRule, window: TimeWindow, tz: tzinfo) -> List[date]:
    """Scheduled calendar dates in ``window``, both endpoints included at day level."""
    return [day for day in window.calendar_days(tz) if rule.is_scheduled_on(day, tz)]


def upsert_completion(
    commitment: Commitment,
    day: Union[date, datetime],
    completed: bool,
    proof: Optional[Proof],
    tz: Optional[tzinfo] = None,
) -> Completion:
    """Find-or-append the completion for ``day`` on a recurring commitment.

    Instants are matched by their calendar date in ``tz``. Repeated calls
    for the same date overwrite verdict and proof in place.
    Unscheduled dates are recorded all the same.
    """
    return CommitmentAggregate(commitment).upsert_completion(day, completed, proof, tz)
