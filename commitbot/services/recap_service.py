"""
Recap aggregation over daily and weekly windows.

``build_recap`` is pure: it turns already-loaded commitments into a
RecapReport. ``RecapService`` adds the clock, the window computation and the
storage read. Commitments are only read; the per-day status maps live on
the returned read models.
"""

import logging
from datetime import date, datetime, timezone, tzinfo
from typing import Callable, Dict, Iterable, Optional, Union

from sqlalchemy.exc import SQLAlchemyError

from ..core.config import Settings, get_settings
from ..core.database import get_db_session
from ..domain.errors import InvalidInput, InvalidRange, PersistenceFailure
from ..domain.repositories import CommitmentRepository
from ..infrastructure.repositories import SqlAlchemyCommitmentRepository
from ..models.commitment import Commitment
from ..models.recap import CommitmentRecap, DayStatus, ProofRecord, RecapReport, UserRecap
from ..models.value_objects import CycleType, TimeWindow, WindowMode
from ..utils.logging import OperationLogContext
from .commitment_service import parse_cycle_type
from .recurrence import scheduled_days
from .time_window import compute_window

logger = logging.getLogger(__name__)


def parse_window_mode(value: Union[str, WindowMode]) -> WindowMode:
    try:
        return WindowMode(value)
    except ValueError as e:
        raise InvalidInput(
            f"Invalid recap mode: {value!r} (expected 'manual' or 'automated')"
        ) from e


def daily_status_for(
    commitment: Commitment, window: TimeWindow, tz: tzinfo
) -> Dict[date, DayStatus]:
    """Status of every scheduled day of a recurring commitment in ``window``.

    Scheduled days without a completion count as not completed; days that
    are not scheduled are left out.
    """
    rule = commitment.recurrence
    if rule is None:
        return {}
    by_date = {c.date: c for c in commitment.completions}
    status: Dict[date, DayStatus] = {}
    for day in scheduled_days(rule, window, tz):
        completion = by_date.get(day)
        if completion is None:
            status[day] = DayStatus(completed=False)
        else:
            proof = ProofRecord.from_model(completion.proof) if completion.proof else None
            status[day] = DayStatus(completed=bool(completion.completed), proof=proof)
    return status


def build_recap(
    commitments: Iterable[Commitment], window: TimeWindow, tz: tzinfo
) -> RecapReport:
    """Roll commitments up into per-user and global totals.

    One-off commitments count once each; recurring ones count each
    scheduled day in the window, so a recurring commitment with no
    scheduled day contributes nothing (but is still listed).
    """
    user_stats: Dict[str, UserRecap] = {}

    for commitment in commitments:
        stats = user_stats.setdefault(commitment.user_id, UserRecap())

        if commitment.is_recurring:
            entry = CommitmentRecap.from_model(
                commitment, daily_status_for(commitment, window, tz)
            )
            stats.total += entry.scheduled_count
            stats.completed += entry.completed_count
        else:
            entry = CommitmentRecap.from_model(commitment)
            stats.total += 1
            if commitment.completed:
                stats.completed += 1

        stats.commitments.append(entry)

    return RecapReport(
        start=window.start,
        end=window.end,
        total=sum(s.total for s in user_stats.values()),
        completed=sum(s.completed for s in user_stats.values()),
        user_stats=user_stats,
    )


class RecapService:
    """Generates recaps for on-demand queries and scheduled runs."""

    def __init__(
        self,
        session_factory=get_db_session,
        settings: Optional[Settings] = None,
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
        repository_factory: Callable[..., CommitmentRepository] = SqlAlchemyCommitmentRepository,
    ) -> None:
        self._session_factory = session_factory
        self._settings = settings or get_settings()
        self._clock = clock
        self._repository_factory = repository_factory

    def window_for(
        self, cycle_type: Union[str, CycleType], mode: Union[str, WindowMode]
    ) -> TimeWindow:
        """Window a recap would cover right now.

        Raises:
            InvalidInput: Unknown cycle type or mode.
            InvalidRange: The computed window is empty (an internal defect).
        """
        cycle = parse_cycle_type(cycle_type)
        window_mode = parse_window_mode(mode)
        try:
            return compute_window(
                cycle,
                window_mode,
                self._clock(),
                self._settings.tz,
                self._settings.day_boundary_hour,
            )
        except InvalidRange as e:
            logger.error(
                f"Time window invariant violated for {cycle.value} recap: {e}",
                exc_info=True,
            )
            raise

    async def generate_recap(
        self,
        cycle_type: Union[str, CycleType],
        mode: Union[str, WindowMode] = WindowMode.MANUAL,
    ) -> RecapReport:
        """Build the recap for the current daily or weekly window.

        Raises:
            InvalidInput: Unknown cycle type or mode.
            InvalidRange: The computed window is empty.
            PersistenceFailure: Commitments could not be read.
        """
        window = self.window_for(cycle_type, mode)

        with OperationLogContext(
            "recap",
            cycle_type=parse_cycle_type(cycle_type).value,
            mode=parse_window_mode(mode).value,
            start=window.start.isoformat(),
            end=window.end.isoformat(),
        ) as op:
            try:
                async with self._session_factory() as session:
                    repo = self._repository_factory(session)
                    commitments = await repo.find_for_recap(window.start, window.end)
            except SQLAlchemyError as e:
                logger.error(f"Failed to load commitments for recap: {e}", exc_info=True)
                raise PersistenceFailure("Failed to generate recap") from e

            report = build_recap(commitments, window, self._settings.tz)
            op.add(
                commitments=len(commitments),
                users=len(report.user_stats),
                total=report.total,
                completed=report.completed,
            )

        return report
