"""
Commitment models: user goals, proof submissions and per-day completions.
"""

from datetime import date, datetime
from typing import List, Optional

from sqlalchemy import (
    JSON,
    Boolean,
    Date,
    Enum,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import Base, TimestampMixin, UTCDateTime, utcnow
from .value_objects import Confidence, CycleType, RecurrenceRule, VerificationVerdict


class Commitment(Base, TimestampMixin):
    """
    A user's declared goal.

    One-off commitments use ``completed``/``proofs``. Recurring ones carry a
    weekday schedule (``recurring_days``) and track each day in
    ``completions``; for those, ``completed`` and ``proofs`` stay untouched.
    """

    __tablename__ = "commitments"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    text: Mapped[str] = mapped_column(Text, nullable=False)
    cycle_type: Mapped[CycleType] = mapped_column(Enum(CycleType), nullable=False)

    # One-off state
    completed: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    # Recurrence; both NULL for one-off commitments
    recurring_days: Mapped[Optional[List[str]]] = mapped_column(
        JSON(none_as_null=True), nullable=True
    )  # canonical weekday names, e.g. ["monday", "wednesday"]
    recurring_end_date: Mapped[Optional[datetime]] = mapped_column(
        UTCDateTime(), nullable=True
    )

    # Relationships
    proofs: Mapped[List["Proof"]] = relationship(
        "Proof",
        back_populates="commitment",
        cascade="all, delete-orphan",
        order_by="Proof.id",
        lazy="selectin",
    )
    completions: Mapped[List["Completion"]] = relationship(
        "Completion",
        back_populates="commitment",
        cascade="all, delete-orphan",
        order_by="Completion.date",
        lazy="selectin",
    )

    @property
    def is_recurring(self) -> bool:
        return self.recurring_days is not None

    @property
    def recurrence(self) -> Optional[RecurrenceRule]:
        if self.recurring_days is None:
            return None
        return RecurrenceRule.from_names(self.recurring_days, self.recurring_end_date)

    def __repr__(self) -> str:
        return (
            f"<Commitment(id={self.id}, user_id={self.user_id}, "
            f"cycle_type={self.cycle_type}, recurring={self.is_recurring})>"
        )


class Proof(Base):
    """A proof-of-completion submission and the verdict it received."""

    __tablename__ = "proofs"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    # Set for one-off proofs only; recurring proofs hang off a Completion.
    commitment_id: Mapped[Optional[int]] = mapped_column(
        Integer, ForeignKey("commitments.id", ondelete="CASCADE"), nullable=True
    )

    image_url: Mapped[str] = mapped_column(Text, nullable=False)
    extracted_text: Mapped[str] = mapped_column(Text, default="", nullable=False)

    # Verdict
    is_valid: Mapped[bool] = mapped_column(Boolean, nullable=False)
    explanation: Mapped[str] = mapped_column(Text, default="", nullable=False)
    confidence: Mapped[Confidence] = mapped_column(Enum(Confidence), nullable=False)

    verified_at: Mapped[datetime] = mapped_column(
        UTCDateTime(), default=utcnow, nullable=False
    )

    commitment: Mapped[Optional["Commitment"]] = relationship(
        "Commitment", back_populates="proofs"
    )

    @classmethod
    def from_verdict(
        cls,
        image_url: str,
        extracted_text: str,
        verdict: VerificationVerdict,
        verified_at: datetime,
    ) -> "Proof":
        return cls(
            image_url=image_url,
            extracted_text=extracted_text or "",
            is_valid=verdict.is_valid,
            explanation=verdict.explanation,
            confidence=verdict.confidence,
            verified_at=verified_at,
        )

    @property
    def verdict(self) -> VerificationVerdict:
        return VerificationVerdict(
            is_valid=self.is_valid,
            explanation=self.explanation,
            confidence=self.confidence,
        )

    def __repr__(self) -> str:
        return f"<Proof(id={self.id}, is_valid={self.is_valid}, confidence={self.confidence})>"


class Completion(Base):
    """Verdict for one calendar day of a recurring commitment."""

    __tablename__ = "completions"
    __table_args__ = (
        UniqueConstraint("commitment_id", "date", name="uq_completion_commitment_date"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    commitment_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("commitments.id", ondelete="CASCADE"), nullable=False
    )
    date: Mapped[date] = mapped_column(Date, nullable=False)
    completed: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    proof_id: Mapped[Optional[int]] = mapped_column(
        Integer, ForeignKey("proofs.id", ondelete="SET NULL"), nullable=True
    )

    commitment: Mapped["Commitment"] = relationship(
        "Commitment", back_populates="completions"
    )
    proof: Mapped[Optional["Proof"]] = relationship(
        "Proof",
        cascade="all, delete-orphan",
        single_parent=True,
        lazy="selectin",
    )

    def __repr__(self) -> str:
        return (
            f"<Completion(commitment_id={self.commitment_id}, date={self.date}, "
            f"completed={self.completed})>"
        )
