"""
Tests for CommitmentService lifecycle operations over in-memory SQLite.

The verifier is an AsyncMock and the clock is frozen (see conftest), so
every scenario pins exact local dates in America/New_York.
"""

from datetime import date, datetime
from unittest.mock import AsyncMock, patch
from zoneinfo import ZoneInfo

import pytest
from sqlalchemy.exc import IntegrityError, OperationalError

from commitbot.domain.errors import (
    CommitmentNotFound,
    InvalidInput,
    PersistenceFailure,
    UpstreamVerificationFailure,
)
from commitbot.models.value_objects import (
    Confidence,
    CycleType,
    RecurrenceSpec,
    VerificationVerdict,
)
from commitbot.services.commitment_service import CommitmentService

IMAGE = "https://example.com/proof.jpg"
NY = ZoneInfo("America/New_York")


def ny(year, month, day, hour=12, minute=0):
    return datetime(year, month, day, hour, minute, tzinfo=NY)


def make_verdict(is_valid=True, explanation="Looks good", confidence="high"):
    return VerificationVerdict(
        is_valid=is_valid, explanation=explanation, confidence=Confidence(confidence)
    )


class TestCreate:
    async def test_one_off(self, commitment_service, clock):
        commitment = await commitment_service.create("u1", "  Read 20 pages ", "daily")

        assert commitment.id is not None
        assert commitment.text == "Read 20 pages"
        assert commitment.cycle_type is CycleType.DAILY
        assert commitment.completed is False
        assert commitment.is_recurring is False
        assert commitment.created_at == clock()

    async def test_recurring(self, commitment_service):
        commitment = await commitment_service.create(
            "u1", "Gym", "daily", RecurrenceSpec(days="Wed,mon", end_date="2025-03-01")
        )

        assert commitment.recurring_days == ["monday", "wednesday"]
        assert commitment.recurring_end_date.astimezone(NY).date() == date(2025, 3, 1)

    async def test_user_id_coerced_to_string(self, commitment_service):
        commitment = await commitment_service.create(12345, "Walk", "weekly")

        assert commitment.user_id == "12345"

    async def test_empty_text_rejected(self, commitment_service):
        with pytest.raises(InvalidInput):
            await commitment_service.create("u1", "   ", "daily")

    async def test_unknown_cycle_rejected(self, commitment_service):
        with pytest.raises(InvalidInput):
            await commitment_service.create("u1", "Walk", "monthly")

    async def test_missing_days_rejected(self, commitment_service):
        with pytest.raises(InvalidInput):
            await commitment_service.create("u1", "Gym", "daily", RecurrenceSpec(days=None))

        assert await commitment_service.list("u1") == []

    async def test_invalid_days_persist_nothing(self, commitment_service):
        with pytest.raises(InvalidInput) as exc_info:
            await commitment_service.create(
                "u1", "Gym", "daily", RecurrenceSpec(days="mon,blursday")
            )

        assert exc_info.value.invalid_tokens == ["blursday"]
        assert await commitment_service.list("u1") == []


class TestGetAndDelete:
    async def test_get_is_owner_scoped(self, commitment_service):
        commitment = await commitment_service.create("u1", "Walk", "daily")

        assert (await commitment_service.get("u1", commitment.id)).id == commitment.id
        with pytest.raises(CommitmentNotFound):
            await commitment_service.get("u2", commitment.id)

    async def test_delete_by_other_user_fails_and_keeps_commitment(self, commitment_service):
        commitment = await commitment_service.create("u1", "Walk", "daily")

        with pytest.raises(CommitmentNotFound):
            await commitment_service.delete("u2", commitment.id)

        assert (await commitment_service.get("u1", commitment.id)).id == commitment.id

    async def test_get_after_delete_is_not_found(self, commitment_service):
        commitment = await commitment_service.create(
            "u1", "Gym", "daily", RecurrenceSpec(days="mon")
        )
        await commitment_service.verify("u1", commitment.id, IMAGE, "")

        deleted = await commitment_service.delete("u1", commitment.id)

        assert deleted.id == commitment.id
        with pytest.raises(CommitmentNotFound):
            await commitment_service.get("u1", commitment.id)


class TestVerifyOneOff:
    async def test_invalid_then_valid(self, commitment_service, fake_verifier):
        commitment = await commitment_service.create("u1", "Read 20 pages", "daily")
        fake_verifier.verify.side_effect = [
            make_verdict(is_valid=False, explanation="Blurry", confidence="low"),
            make_verdict(is_valid=True, explanation="Book visible"),
        ]

        after_first, verdict = await commitment_service.verify("u1", commitment.id, IMAGE, "")
        assert verdict.is_valid is False
        assert after_first.completed is False

        after_second, verdict = await commitment_service.verify("u1", commitment.id, IMAGE, "p. 20")

        assert verdict.is_valid is True
        assert after_second.completed is True
        assert [p.is_valid for p in after_second.proofs] == [False, True]
        assert after_second.proofs[1].extracted_text == "p. 20"
        assert after_second.completions == []

    async def test_verifier_receives_commitment_text(self, commitment_service, fake_verifier):
        commitment = await commitment_service.create("u1", "Read 20 pages", "daily")

        await commitment_service.verify("u1", commitment.id, IMAGE, "chapter 3")

        fake_verifier.verify.assert_awaited_once_with("Read 20 pages", "chapter 3", IMAGE)

    async def test_upstream_failure_records_fallback(self, commitment_service, fake_verifier):
        commitment = await commitment_service.create("u1", "Read", "daily")
        fake_verifier.verify.side_effect = UpstreamVerificationFailure("timeout")

        updated, verdict = await commitment_service.verify("u1", commitment.id, IMAGE, "")

        assert verdict.is_valid is False
        assert verdict.confidence is Confidence.LOW
        assert len(updated.proofs) == 1
        assert updated.proofs[0].confidence is Confidence.LOW

    async def test_missing_commitment_skips_verifier(self, commitment_service, fake_verifier):
        with pytest.raises(CommitmentNotFound):
            await commitment_service.verify("u1", 999, IMAGE, "")

        fake_verifier.verify.assert_not_awaited()

    async def test_other_users_commitment_not_found(self, commitment_service, fake_verifier):
        commitment = await commitment_service.create("u1", "Read", "daily")

        with pytest.raises(CommitmentNotFound):
            await commitment_service.verify("u2", commitment.id, IMAGE, "")


class TestVerifyRecurring:
    async def test_monday_and_wednesday(self, commitment_service, clock):
        commitment = await commitment_service.create(
            "u1", "Gym", "daily", RecurrenceSpec(days="mon,wed")
        )

        clock.set(ny(2025, 2, 3, 18))
        await commitment_service.verify("u1", commitment.id, IMAGE, "")
        clock.set(ny(2025, 2, 5, 7))
        updated, _ = await commitment_service.verify("u1", commitment.id, IMAGE, "")

        assert [c.date for c in updated.completions] == [date(2025, 2, 3), date(2025, 2, 5)]
        assert all(c.completed for c in updated.completions)
        assert all(c.proof is not None for c in updated.completions)
        assert updated.proofs == []
        assert updated.completed is False

    async def test_same_day_overwrites(self, commitment_service, fake_verifier, clock):
        commitment = await commitment_service.create(
            "u1", "Gym", "daily", RecurrenceSpec(days="mon")
        )
        fake_verifier.verify.side_effect = [
            make_verdict(is_valid=False, explanation="Not a gym"),
            make_verdict(is_valid=True, explanation="Treadmill"),
        ]

        await commitment_service.verify("u1", commitment.id, IMAGE, "")
        clock.set(ny(2025, 2, 3, 20))
        updated, _ = await commitment_service.verify("u1", commitment.id, IMAGE, "")

        assert len(updated.completions) == 1
        assert updated.completions[0].completed is True
        assert updated.completions[0].proof.explanation == "Treadmill"

    async def test_unscheduled_day_still_recorded(self, commitment_service, clock):
        commitment = await commitment_service.create(
            "u1", "Gym", "daily", RecurrenceSpec(days="mon,wed")
        )
        clock.set(ny(2025, 2, 4, 12))  # Tuesday

        updated, _ = await commitment_service.verify("u1", commitment.id, IMAGE, "")

        assert [c.date for c in updated.completions] == [date(2025, 2, 4)]

    async def test_completion_date_is_local_calendar_date(self, commitment_service, clock):
        commitment = await commitment_service.create(
            "u1", "Gym", "daily", RecurrenceSpec(days="tue")
        )
        # 02:00 Tuesday local is 07:00 UTC; before the 04:00 boundary but still Tuesday
        clock.set(ny(2025, 2, 4, 2))

        updated, _ = await commitment_service.verify("u1", commitment.id, IMAGE, "")

        assert updated.completions[0].date == date(2025, 2, 4)

    async def test_integrity_error_retried_once(self, commitment_service):
        commitment = await commitment_service.create("u1", "Gym", "daily", RecurrenceSpec(days="mon"))
        conflict = IntegrityError("INSERT", {}, Exception("UNIQUE constraint failed"))

        with patch.object(
            CommitmentService,
            "_save_verification",
            new=AsyncMock(side_effect=[conflict, commitment]),
        ) as save:
            updated, _ = await commitment_service.verify("u1", commitment.id, IMAGE, "")

        assert updated is commitment
        assert save.await_count == 2

    async def test_repeated_integrity_error_is_persistence_failure(self, commitment_service):
        commitment = await commitment_service.create("u1", "Gym", "daily", RecurrenceSpec(days="mon"))
        conflict = IntegrityError("INSERT", {}, Exception("UNIQUE constraint failed"))

        with patch.object(
            CommitmentService,
            "_save_verification",
            new=AsyncMock(side_effect=[conflict, conflict]),
        ):
            with pytest.raises(PersistenceFailure):
                await commitment_service.verify("u1", commitment.id, IMAGE, "")


class TestListActive:
    async def test_selection(self, commitment_service, fake_verifier, clock):
        # Sunday morning: weekly one-off for this week, daily one-off for Sunday
        clock.set(ny(2025, 2, 2, 9))
        weekly = await commitment_service.create("u1", "Call mom", "weekly")
        await commitment_service.create("u1", "Stale daily", "daily")

        # Monday 03:00 is still Sunday's cycle day
        clock.set(ny(2025, 2, 3, 3))
        await commitment_service.create("u1", "Late night daily", "daily")

        clock.set(ny(2025, 2, 3, 8))
        daily = await commitment_service.create("u1", "Read", "daily")
        done = await commitment_service.create("u1", "Done already", "daily")
        await commitment_service.verify("u1", done.id, IMAGE, "")
        monday = await commitment_service.create("u1", "Gym", "daily", RecurrenceSpec(days="mon,wed"))
        await commitment_service.create("u1", "Swim", "daily", RecurrenceSpec(days="tue"))
        await commitment_service.create(
            "u1", "Expired", "daily", RecurrenceSpec(days="mon", end_date="2025-02-01")
        )
        await commitment_service.create("u2", "Someone else", "daily")

        clock.set(ny(2025, 2, 3, 10))
        active = await commitment_service.list_active("u1")

        assert [c.id for c in active] == [monday.id, daily.id, weekly.id]

    async def test_recurring_active_on_its_end_date(self, commitment_service, clock):
        clock.set(ny(2025, 2, 3, 8))
        commitment = await commitment_service.create(
            "u1", "Gym", "daily", RecurrenceSpec(days="mon", end_date="2025-02-03")
        )

        clock.set(ny(2025, 2, 3, 22))
        active = await commitment_service.list_active("u1")

        assert [c.id for c in active] == [commitment.id]

    async def test_exactly_at_boundary(self, commitment_service, clock):
        clock.set(ny(2025, 2, 3, 4))
        commitment = await commitment_service.create("u1", "Read", "daily")

        active = await commitment_service.list_active("u1")

        assert [c.id for c in active] == [commitment.id]


class TestList:
    async def test_all_newest_first(self, commitment_service, clock):
        clock.set(ny(2025, 1, 20, 10))
        old = await commitment_service.create("u1", "Old", "weekly")
        clock.set(ny(2025, 2, 3, 9))
        new = await commitment_service.create("u1", "New", "daily")

        result = await commitment_service.list("u1")

        assert [c.id for c in result] == [new.id, old.id]

    async def test_filtered_by_cycle_and_current_window(self, commitment_service, clock):
        clock.set(ny(2025, 2, 2, 9))
        weekly = await commitment_service.create("u1", "Weekly", "weekly")
        yesterday = await commitment_service.create("u1", "Yesterday", "daily")
        clock.set(ny(2025, 2, 3, 9))
        today = await commitment_service.create("u1", "Today", "daily")

        clock.set(ny(2025, 2, 3, 10))
        daily_result = await commitment_service.list("u1", "daily")
        weekly_result = await commitment_service.list("u1", CycleType.WEEKLY)

        assert [c.id for c in daily_result] == [today.id]
        assert yesterday.id not in [c.id for c in daily_result]
        assert [c.id for c in weekly_result] == [weekly.id]

    async def test_unknown_filter_rejected(self, commitment_service):
        with pytest.raises(InvalidInput):
            await commitment_service.list("u1", "monthly")

    async def test_storage_error_is_persistence_failure(self, session_factory, settings, clock):
        class BrokenRepository:
            def __init__(self, session):
                pass

            async def list_for_user(self, *args, **kwargs):
                raise OperationalError("SELECT", {}, Exception("database is locked"))

        service = CommitmentService(
            verifier=AsyncMock(),
            session_factory=session_factory,
            settings=settings,
            clock=clock,
            repository_factory=BrokenRepository,
        )

        with pytest.raises(PersistenceFailure):
            await service.list("u1")

    async def test_integrity_error_on_delete_is_persistence_failure(
        self, session_factory, settings, clock
    ):
        class ConflictingRepository:
            def __init__(self, session):
                pass

            async def get_for_user(self, *args, **kwargs):
                raise IntegrityError("DELETE", {}, Exception("FOREIGN KEY constraint failed"))

        service = CommitmentService(
            verifier=AsyncMock(),
            session_factory=session_factory,
            settings=settings,
            clock=clock,
            repository_factory=ConflictingRepository,
        )

        with pytest.raises(PersistenceFailure):
            await service.delete("u1", 1)

        with pytest.raises(PersistenceFailure):
            await service.get("u1", 1)
