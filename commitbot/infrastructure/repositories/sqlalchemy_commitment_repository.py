"""SQLAlchemy implementation of CommitmentRepository."""

import logging
from datetime import datetime
from typing import List, Optional

from sqlalchemy import and_, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from commitbot.models.commitment import Commitment
from commitbot.models.value_objects import CycleType

logger = logging.getLogger(__name__)


class SqlAlchemyCommitmentRepository:
    """Concrete CommitmentRepository backed by SQLAlchemy async sessions."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def add(self, commitment: Commitment) -> Commitment:
        """Persist a new commitment and return it with ID populated."""
        self._session.add(commitment)
        await self._session.flush()
        await self._session.refresh(commitment)
        return commitment

    async def get_by_id(self, commitment_id: int) -> Optional[Commitment]:
        """Look up a commitment by ID."""
        result = await self._session.execute(
            select(Commitment).where(Commitment.id == commitment_id)
        )
        return result.scalar_one_or_none()

    async def get_for_user(
        self, commitment_id: int, user_id: str, for_update: bool = False
    ) -> Optional[Commitment]:
        """Look up a commitment by ID, scoped to its owner."""
        stmt = select(Commitment).where(
            Commitment.id == commitment_id, Commitment.user_id == user_id
        )
        if for_update:
            stmt = stmt.with_for_update()
        result = await self._session.execute(stmt)
        return result.scalar_one_or_none()

    async def list_for_user(
        self,
        user_id: str,
        cycle_type: Optional[CycleType] = None,
        created_from: Optional[datetime] = None,
        created_to: Optional[datetime] = None,
    ) -> List[Commitment]:
        """All of a user's commitments, newest first."""
        stmt = select(Commitment).where(Commitment.user_id == user_id)
        if cycle_type is not None:
            stmt = stmt.where(Commitment.cycle_type == cycle_type)
        if created_from is not None:
            stmt = stmt.where(Commitment.created_at >= created_from)
        if created_to is not None:
            stmt = stmt.where(Commitment.created_at <= created_to)
        result = await self._session.execute(
            stmt.order_by(Commitment.created_at.desc(), Commitment.id.desc())
        )
        return list(result.scalars().all())

    async def find_active_candidates(
        self,
        user_id: str,
        daily_start: datetime,
        weekly_start: datetime,
        now: datetime,
    ) -> List[Commitment]:
        """One-off commitments still open in their cycle, plus live recurring ones."""
        one_off_open = and_(
            Commitment.recurring_days.is_(None),
            Commitment.completed == False,  # noqa: E712
            or_(
                and_(
                    Commitment.cycle_type == CycleType.DAILY,
                    Commitment.created_at >= daily_start,
                    Commitment.created_at <= now,
                ),
                and_(
                    Commitment.cycle_type == CycleType.WEEKLY,
                    Commitment.created_at >= weekly_start,
                    Commitment.created_at <= now,
                ),
            ),
        )
        recurring_live = and_(
            Commitment.recurring_days.is_not(None),
            or_(
                Commitment.recurring_end_date.is_(None),
                Commitment.recurring_end_date >= now,
            ),
        )
        result = await self._session.execute(
            select(Commitment)
            .where(Commitment.user_id == user_id, or_(one_off_open, recurring_live))
            .order_by(Commitment.created_at.desc(), Commitment.id.desc())
        )
        return list(result.scalars().all())

    async def find_for_recap(self, start: datetime, end: datetime) -> List[Commitment]:
        """Commitments relevant to a recap over ``[start, end)``."""
        one_off_in_window = and_(
            Commitment.recurring_days.is_(None),
            Commitment.created_at >= start,
            Commitment.created_at < end,
        )
        recurring_overlapping = and_(
            Commitment.recurring_days.is_not(None),
            Commitment.created_at < end,
            or_(
                Commitment.recurring_end_date.is_(None),
                Commitment.recurring_end_date >= start,
            ),
        )
        result = await self._session.execute(
            select(Commitment)
            .where(or_(one_off_in_window, recurring_overlapping))
            .order_by(Commitment.created_at.desc(), Commitment.id.desc())
        )
        return list(result.scalars().all())

    async def delete(self, commitment: Commitment) -> None:
        """Remove a commitment; proofs and completions go with it."""
        await self._session.delete(commitment)
        await self._session.flush()
