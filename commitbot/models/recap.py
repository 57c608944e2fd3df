"""
Read models for recaps.

Built from Commitments by the recap aggregator and never written back;
the per-day status maps exist only here, not on the persisted entities.
"""

from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Dict, List, Optional, Tuple

from .commitment import Commitment, Proof
from .value_objects import Confidence, CycleType


def _rate(completed: int, total: int) -> int:
    """Whole-number completion percentage; 0 when nothing was due."""
    if total <= 0:
        return 0
    return round(completed / total * 100)


@dataclass(frozen=True)
class ProofRecord:
    image_url: str
    extracted_text: str
    is_valid: bool
    explanation: str
    confidence: Confidence
    verified_at: datetime

    @classmethod
    def from_model(cls, proof: Proof) -> "ProofRecord":
        return cls(
            image_url=proof.image_url,
            extracted_text=proof.extracted_text,
            is_valid=proof.is_valid,
            explanation=proof.explanation,
            confidence=proof.confidence,
            verified_at=proof.verified_at,
        )


@dataclass(frozen=True)
class DayStatus:
    """Outcome of one scheduled day of a recurring commitment."""

    completed: bool
    proof: Optional[ProofRecord] = None


@dataclass(frozen=True)
class CommitmentRecap:
    """Snapshot of one commitment as it stands in a recap window."""

    commitment_id: int
    user_id: str
    text: str
    cycle_type: CycleType
    created_at: datetime
    completed: bool
    weekdays: Tuple[str, ...] = ()
    end_date: Optional[datetime] = None
    proofs: Tuple[ProofRecord, ...] = ()
    # Only scheduled days appear; unscheduled days are simply absent.
    daily_status: Dict[date, DayStatus] = field(default_factory=dict)

    @classmethod
    def from_model(
        cls, commitment: Commitment, daily_status: Optional[Dict[date, DayStatus]] = None
    ) -> "CommitmentRecap":
        return cls(
            commitment_id=commitment.id,
            user_id=commitment.user_id,
            text=commitment.text,
            cycle_type=commitment.cycle_type,
            created_at=commitment.created_at,
            completed=commitment.completed,
            weekdays=tuple(commitment.recurring_days or ()),
            end_date=commitment.recurring_end_date,
            proofs=tuple(ProofRecord.from_model(p) for p in commitment.proofs),
            daily_status=dict(daily_status or {}),
        )

    @property
    def is_recurring(self) -> bool:
        return bool(self.weekdays)

    @property
    def scheduled_count(self) -> int:
        return len(self.daily_status)

    @property
    def completed_count(self) -> int:
        return sum(1 for status in self.daily_status.values() if status.completed)

    @property
    def is_fully_completed(self) -> bool:
        """Recurring: every scheduled day done (and at least one was due)."""
        if self.is_recurring:
            return self.scheduled_count > 0 and self.completed_count == self.scheduled_count
        return self.completed


@dataclass
class UserRecap:
    commitments: List[CommitmentRecap] = field(default_factory=list)
    completed: int = 0
    total: int = 0

    @property
    def completion_rate(self) -> int:
        return _rate(self.completed, self.total)


@dataclass(frozen=True)
class RecapReport:
    start: datetime
    end: datetime
    total: int
    completed: int
    user_stats: Dict[str, UserRecap]

    @property
    def completion_rate(self) -> int:
        return _rate(self.completed, self.total)
