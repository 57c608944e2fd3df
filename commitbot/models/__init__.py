from .base import Base, TimestampMixin
from .commitment import Commitment, Completion, Proof
from .commitment_aggregate import CommitmentAggregate
from .recap import CommitmentRecap, DayStatus, ProofRecord, RecapReport, UserRecap
from .value_objects import (
    Confidence,
    CycleType,
    RecurrenceRule,
    RecurrenceSpec,
    TimeWindow,
    VerificationVerdict,
    WindowMode,
)

__all__ = [
    "Base",
    "TimestampMixin",
    "Commitment",
    "Completion",
    "Proof",
    "CommitmentAggregate",
    "CommitmentRecap",
    "DayStatus",
    "ProofRecord",
    "RecapReport",
    "UserRecap",
    "Confidence",
    "CycleType",
    "RecurrenceRule",
    "RecurrenceSpec",
    "TimeWindow",
    "VerificationVerdict",
    "WindowMode",
]
