"""CommitmentRepository protocol: the commitment persistence contract."""

from datetime import datetime
from typing import List, Optional, Protocol, runtime_checkable

from ...models.value_objects import CycleType


@runtime_checkable
class CommitmentRepository(Protocol):
    """Repository interface for Commitment access and persistence.

    Writes to one commitment's proofs/completions must be linearizable per
    commitment id: ``get_for_user(..., for_update=True)`` holds a write lock
    on the row until the surrounding transaction ends.
    """

    async def add(self, commitment: object) -> object:
        """Persist a new commitment and return it with its ID populated."""
        ...

    async def get_by_id(self, commitment_id: int) -> Optional[object]:
        """Look up a commitment by ID regardless of owner."""
        ...

    async def get_for_user(
        self, commitment_id: int, user_id: str, for_update: bool = False
    ) -> Optional[object]:
        """Look up a commitment by ID, scoped to its owner.

        Args:
            commitment_id: The commitment primary key.
            user_id: The owning user; any other owner yields None.
            for_update: Lock the row for the rest of the transaction.

        Returns:
            The Commitment, or None if absent or owned by someone else.
        """
        ...

    async def list_for_user(
        self,
        user_id: str,
        cycle_type: Optional[CycleType] = None,
        created_from: Optional[datetime] = None,
        created_to: Optional[datetime] = None,
    ) -> List[object]:
        """All of a user's commitments, newest first, optionally filtered.

        ``created_from`` and ``created_to`` are both inclusive.
        """
        ...

    async def find_active_candidates(
        self,
        user_id: str,
        daily_start: datetime,
        weekly_start: datetime,
        now: datetime,
    ) -> List[object]:
        """Uncompleted one-off commitments created in their cycle's window,
        plus recurring commitments not yet past their end date. Newest first.
        """
        ...

    async def find_for_recap(self, start: datetime, end: datetime) -> List[object]:
        """Commitments relevant to a recap over ``[start, end)``, newest first.

        One-off commitments created inside the window, and recurring ones
        created before ``end`` whose end date is absent or not before ``start``.
        """
        ...

    async def delete(self, commitment: object) -> None:
        """Remove a commitment and everything it owns."""
        ...
