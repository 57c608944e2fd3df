"""
Application-layer commitment lifecycle service.

Orchestrates the pure scheduling logic (time_window, recurrence), the
CommitmentAggregate invariants and the infrastructure (SQLAlchemy repository,
proof verifier). Every mutation and read-for-mutation is scoped to the
owning user.
"""

import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import AsyncIterator, Callable, List, Optional, Tuple, Union

from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from ..core.config import Settings, get_settings
from ..core.database import get_db_session
from ..domain.errors import (
    CommitmentNotFound,
    InvalidInput,
    PersistenceFailure,
    UpstreamVerificationFailure,
)
from ..domain.interfaces import ProofVerifier
from ..domain.repositories import CommitmentRepository
from ..infrastructure.repositories import SqlAlchemyCommitmentRepository
from ..models.commitment import Commitment
from ..models.commitment_aggregate import CommitmentAggregate
from ..models.value_objects import (
    CycleType,
    RecurrenceSpec,
    VerificationVerdict,
    local_date,
)
from ..utils.logging import OperationLogContext
from .recurrence import parse_end_date, parse_weekdays
from .time_window import cycle_day_start, week_start

logger = logging.getLogger(__name__)

ALL_CYCLES = "all"

Clock = Callable[[], datetime]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def parse_cycle_type(value: Union[str, CycleType]) -> CycleType:
    try:
        return CycleType(value)
    except ValueError as e:
        raise InvalidInput(
            f"Invalid cycle type: {value!r} (expected 'daily' or 'weekly')"
        ) from e


class CommitmentService:
    """Create, verify, list and delete commitments."""

    def __init__(
        self,
        verifier: Optional[ProofVerifier] = None,
        session_factory=get_db_session,
        settings: Optional[Settings] = None,
        clock: Clock = _utcnow,
        repository_factory: Callable[..., CommitmentRepository] = SqlAlchemyCommitmentRepository,
    ) -> None:
        self._verifier = verifier
        self._session_factory = session_factory
        self._settings = settings or get_settings()
        self._clock = clock
        self._repository_factory = repository_factory

    # -- Infrastructure helpers --

    @property
    def verifier(self) -> ProofVerifier:
        if self._verifier is None:
            from .verification_service import get_verification_service

            self._verifier = get_verification_service()
        return self._verifier

    def _now(self) -> datetime:
        return self._clock().astimezone(timezone.utc)

    @asynccontextmanager
    async def _unit_of_work(
        self, action: str, reraise_conflicts: bool = False
    ) -> AsyncIterator[tuple]:
        """Session + repository; storage errors become PersistenceFailure.

        With ``reraise_conflicts`` an IntegrityError is passed through as is,
        for callers that retry on a lost write race.
        """
        try:
            async with self._session_factory() as session:
                yield session, self._repository_factory(session)
        except IntegrityError as e:
            if reraise_conflicts:
                raise
            logger.error(f"Integrity error while trying to {action}: {e}", exc_info=True)
            raise PersistenceFailure(f"Failed to {action}") from e
        except SQLAlchemyError as e:
            logger.error(f"Storage error while trying to {action}: {e}", exc_info=True)
            raise PersistenceFailure(f"Failed to {action}") from e

    # -- Public operations --

    async def create(
        self,
        user_id: str,
        text: str,
        cycle_type: Union[str, CycleType],
        recurrence: Optional[RecurrenceSpec] = None,
    ) -> Commitment:
        """Create a one-off or recurring commitment.

        Raises:
            InvalidInput: Empty text, unknown cycle type, bad weekday tokens
                (listed in ``invalid_tokens``) or an unparseable end date.
            PersistenceFailure: The commitment could not be stored.
        """
        text = (text or "").strip()
        if not text:
            raise InvalidInput("Commitment text is required")
        cycle = parse_cycle_type(cycle_type)

        commitment = Commitment(
            user_id=str(user_id),
            text=text,
            cycle_type=cycle,
            completed=False,
            created_at=self._now(),
        )
        if recurrence is not None:
            commitment.recurring_days = parse_weekdays(recurrence.days)
            commitment.recurring_end_date = parse_end_date(
                recurrence.end_date, self._settings.tz
            )

        async with self._unit_of_work("create commitment") as (session, repo):
            commitment = await repo.add(commitment)
            await session.commit()

        logger.info(
            f"Created {cycle.value} commitment {commitment.id} for user {user_id}"
            + (f" recurring on {commitment.recurring_days}" if commitment.is_recurring else "")
        )
        return commitment

    async def get(self, user_id: str, commitment_id: int) -> Commitment:
        """Fetch one of the user's commitments.

        Raises:
            CommitmentNotFound: Absent or owned by another user.
        """
        async with self._unit_of_work("load commitment") as (_, repo):
            commitment = await repo.get_for_user(commitment_id, str(user_id))
        if commitment is None:
            raise CommitmentNotFound(commitment_id, str(user_id))
        return commitment

    async def verify(
        self,
        user_id: str,
        commitment_id: int,
        image_url: str,
        extracted_text: str,
    ) -> Tuple[Commitment, VerificationVerdict]:
        """Judge a proof submission and record the verdict.

        Recurring commitments get the completion for today's local calendar
        date created or overwritten; one-off commitments get the proof
        appended and become completed once any verdict is valid.

        Raises:
            CommitmentNotFound: Absent or owned by another user.
            PersistenceFailure: The verdict could not be stored (it is lost).
        """
        user_id = str(user_id)
        with OperationLogContext(
            "verify", user_id=user_id, commitment_id=commitment_id
        ) as op:
            commitment = await self.get(user_id, commitment_id)
            verdict = await self._judge(commitment.text, extracted_text, image_url)
            verified_at = self._now()

            try:
                commitment = await self._save_verification(
                    user_id, commitment_id, verdict, image_url, extracted_text, verified_at
                )
            except IntegrityError:
                # Lost a race on the same calendar date; the retry sees the
                # other writer's completion and overwrites it.
                logger.warning(
                    f"Concurrent completion write on commitment {commitment_id}; retrying"
                )
                try:
                    commitment = await self._save_verification(
                        user_id, commitment_id, verdict, image_url, extracted_text, verified_at
                    )
                except IntegrityError as e:
                    logger.error(
                        f"Failed to save verification for commitment {commitment_id}: {e}",
                        exc_info=True,
                    )
                    raise PersistenceFailure("Failed to save verification") from e

            op.add(is_valid=verdict.is_valid, confidence=verdict.confidence.value)

        return commitment, verdict

    async def _judge(
        self, commitment_text: str, extracted_text: str, image_url: str
    ) -> VerificationVerdict:
        try:
            return await self.verifier.verify(commitment_text, extracted_text, image_url)
        except UpstreamVerificationFailure as e:
            logger.warning(f"Verifier unavailable, recording fallback verdict: {e}")
            return VerificationVerdict.fallback()

    async def _save_verification(
        self,
        user_id: str,
        commitment_id: int,
        verdict: VerificationVerdict,
        image_url: str,
        extracted_text: str,
        verified_at: datetime,
    ) -> Commitment:
        async with self._unit_of_work("save verification", reraise_conflicts=True) as (
            session,
            repo,
        ):
            commitment = await repo.get_for_user(commitment_id, user_id, for_update=True)
            if commitment is not None:
                CommitmentAggregate(commitment).record_verification(
                    verdict,
                    image_url=image_url,
                    extracted_text=extracted_text,
                    verified_at=verified_at,
                    local_day=local_date(verified_at, self._settings.tz),
                )
                await session.commit()

        # Deleted between the initial lookup and the write
        if commitment is None:
            raise CommitmentNotFound(commitment_id, user_id)
        return commitment

    async def list_active(self, user_id: str) -> List[Commitment]:
        """Commitments the user can act on right now, newest first.

        One-off: not completed and created in the current window of its
        own cycle. Recurring: not past its end date and scheduled today.
        """
        now = self._now()
        tz = self._settings.tz
        async with self._unit_of_work("list active commitments") as (_, repo):
            candidates = await repo.find_active_candidates(
                str(user_id),
                daily_start=cycle_day_start(now, tz, self._settings.day_boundary_hour),
                weekly_start=week_start(now, tz),
                now=now,
            )

        today = local_date(now, tz)
        active = []
        for commitment in candidates:
            rule = commitment.recurrence
            if rule is None:
                active.append(commitment)
            elif not rule.is_expired_at(now) and rule.is_scheduled_on(today, tz):
                active.append(commitment)
        return active

    async def list(
        self, user_id: str, cycle_type: Union[str, CycleType] = ALL_CYCLES
    ) -> List[Commitment]:
        """The user's commitments, newest first.

        With a cycle type, only commitments of that type created in the
        current window of that cycle; with "all", everything.
        """
        user_id = str(user_id)
        if cycle_type == ALL_CYCLES:
            async with self._unit_of_work("list commitments") as (_, repo):
                return await repo.list_for_user(user_id)

        cycle = parse_cycle_type(cycle_type)
        now = self._now()
        tz = self._settings.tz
        if cycle is CycleType.DAILY:
            start = cycle_day_start(now, tz, self._settings.day_boundary_hour)
        else:
            start = week_start(now, tz)
        async with self._unit_of_work("list commitments") as (_, repo):
            return await repo.list_for_user(
                user_id, cycle_type=cycle, created_from=start, created_to=now
            )

    async def delete(self, user_id: str, commitment_id: int) -> Commitment:
        """Remove one of the user's commitments and return it.

        Raises:
            CommitmentNotFound: Absent or owned by another user.
        """
        user_id = str(user_id)
        async with self._unit_of_work("delete commitment") as (session, repo):
            commitment = await repo.get_for_user(commitment_id, user_id, for_update=True)
            if commitment is not None:
                await repo.delete(commitment)
                await session.commit()

        if commitment is None:
            raise CommitmentNotFound(commitment_id, user_id)

        logger.info(f"Deleted commitment {commitment_id} for user {user_id}")
        return commitment
