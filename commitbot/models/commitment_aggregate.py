"""
CommitmentAggregate: aggregate root enforcing proof/completion invariants.

All verification writes to a Commitment go through this aggregate so the
domain rules (one-off vs recurring paths never mix, at most one completion
per calendar date, ``completed`` never reset) are enforced in one place.
"""

from datetime import date, datetime, tzinfo
from typing import Dict, Optional, Union

from .commitment import Commitment, Completion, Proof
from .value_objects import VerificationVerdict, as_local_day


class CommitmentAggregate:
    """Aggregate root wrapping a Commitment and its owned records.

    Invariants enforced:
    - Recurring commitments only ever gain Completions, one-off ones only Proofs.
    - At most one Completion per calendar date.
    - A one-off commitment's ``completed`` flag is never set back to False.
    """

    def __init__(self, commitment: Commitment) -> None:
        self._commitment = commitment
        self._by_date: Dict[date, Completion] = {}
        for completion in commitment.completions:
            if completion.date in self._by_date:
                raise ValueError(
                    f"Commitment {commitment.id} has duplicate completions "
                    f"for {completion.date}"
                )
            self._by_date[completion.date] = completion
        if commitment.recurring_days is None and self._by_date:
            raise ValueError(
                f"One-off commitment {commitment.id} must not carry completions"
            )

    # --- Read-only properties ---

    @property
    def commitment(self) -> Commitment:
        return self._commitment

    @property
    def completions_by_date(self) -> Dict[date, Completion]:
        return dict(self._by_date)

    def completion_on(self, day: date) -> Optional[Completion]:
        return self._by_date.get(day)

    # --- Commands ---

    def upsert_completion(
        self,
        day: Union[date, datetime],
        completed: bool,
        proof: Optional[Proof],
        tz: Optional[tzinfo] = None,
    ) -> Completion:
        """Record the verdict for ``day``, overwriting any earlier one.

        Completions are keyed by calendar date: an aware instant is reduced to
        its date in ``tz`` first, so two instants on the same local day hit
        the same completion.

        Whether ``day`` is a scheduled weekday is not checked
        here; scheduling only matters when listing and aggregating.
        """
        if not self._commitment.is_recurring:
            raise ValueError(
                f"Commitment {self._commitment.id} is not recurring; "
                "completions are not tracked"
            )
        day = as_local_day(day, tz)
        existing = self._by_date.get(day)
        if existing is not None:
            existing.completed = completed
            existing.proof = proof
            return existing

        completion = Completion(date=day, completed=completed, proof=proof)
        self._commitment.completions.append(completion)
        self._by_date[day] = completion
        return completion

    def add_proof(self, proof: Proof) -> Proof:
        """Append a proof to a one-off commitment, completing it if valid."""
        if self._commitment.is_recurring:
            raise ValueError(
                f"Commitment {self._commitment.id} is recurring; "
                "record a completion instead"
            )
        self._commitment.proofs.append(proof)
        if proof.is_valid:
            self._commitment.completed = True
        return proof

    def record_verification(
        self,
        verdict: VerificationVerdict,
        image_url: str,
        extracted_text: str,
        verified_at: datetime,
        local_day: date,
    ) -> Proof:
        """Apply a verdict along whichever path this commitment uses."""
        proof = Proof.from_verdict(image_url, extracted_text, verdict, verified_at)
        if self._commitment.is_recurring:
            self.upsert_completion(local_day, verdict.is_valid, proof)
        else:
            self.add_proof(proof)
        return proof
