"""Integration tests for the operation state machine."""

import asyncio
from uuid import uuid4

import pytest

from advanceweekly.errors import DuplicateError, UnknownJobTypeError, ValidationError
from advanceweekly.models import JobType, Operation, OperationStatus
from advanceweekly.weeks import IsoWeek
from tests.factories import DraftReflectionFactory, OperationFactory

WEEK = IsoWeek(2026, 42)
WEEKLY_INPUT = {"week_start": "2026-10-12", "week_end": "2026-10-18", "include_integrations": []}


class TestEnqueue:
    """Tests for OperationService.enqueue."""

    async def test_enqueue_creates_queued_operation(self, operations, fetch_all, test_user_id):
        """Test a new operation is queued with its dedup key and decoded input."""
        operation = await operations.enqueue(
            test_user_id, JobType.WEEKLY_REFLECTION_GENERATION, WEEKLY_INPUT, metadata={"trigger": "manual"}
        )

        [stored] = await fetch_all(Operation, Operation.id == operation.id)
        assert stored.status == OperationStatus.QUEUED
        assert stored.progress == 0
        assert stored.dedup_key == "2026-W42"
        assert stored.input_data == WEEKLY_INPUT
        assert stored.extra_metadata == {"trigger": "manual"}
        assert stored.started_at is None

    async def test_duplicate_while_active(self, operations, test_user_id):
        """Test a second enqueue for the same week reports the existing operation."""
        first = await operations.enqueue_weekly_reflection(test_user_id, WEEK, [])

        with pytest.raises(DuplicateError) as exc_info:
            await operations.enqueue_weekly_reflection(test_user_id, WEEK, ["github"])

        assert exc_info.value.existing_operation_id == str(first.id)

    async def test_failed_operation_allows_retry(self, operations, add_rows, test_user_id):
        """Test failed operations do not block a new enqueue."""
        await add_rows(OperationFactory(user_id=test_user_id, status=OperationStatus.FAILED, error_kind="llm"))

        operation = await operations.enqueue_weekly_reflection(test_user_id, WEEK, [])
        assert operation.status == OperationStatus.QUEUED

    async def test_existing_draft_is_duplicate(self, operations, add_rows, test_user_id):
        """Test a week that already has a draft is not enqueued again."""
        await add_rows(DraftReflectionFactory(user_id=test_user_id, week=WEEK))

        with pytest.raises(DuplicateError, match="already exists"):
            await operations.enqueue_weekly_reflection(test_user_id, WEEK, [])

    async def test_concurrent_enqueue_single_winner(self, operations, fetch_all, test_user_id):
        """Test racing enqueues for one week leave exactly one operation."""
        results = await asyncio.gather(
            operations.enqueue_weekly_reflection(test_user_id, WEEK, [], metadata={"trigger": "scheduled"}),
            operations.enqueue_weekly_reflection(test_user_id, WEEK, [], metadata={"trigger": "manual"}),
            return_exceptions=True,
        )

        created = [r for r in results if isinstance(r, Operation)]
        duplicates = [r for r in results if isinstance(r, DuplicateError)]
        assert len(created) == 1
        assert len(duplicates) == 1
        assert len(await fetch_all(Operation, Operation.user_id == test_user_id)) == 1

    async def test_career_plans_not_deduplicated(self, operations, test_user_id):
        """Test job types without a dedup key can be queued repeatedly."""
        payload = {"role": "Software Engineer", "level": "Software Engineer"}
        first = await operations.enqueue(test_user_id, "career_plan_generation", payload)
        second = await operations.enqueue(test_user_id, "career_plan_generation", payload)
        assert first.id != second.id

    async def test_invalid_input_rejected_before_persisting(self, operations, fetch_all, test_user_id):
        """Test validation happens at enqueue time."""
        with pytest.raises(ValidationError):
            await operations.enqueue(test_user_id, "weekly_reflection_generation", {"week_start": "not-a-date"})
        with pytest.raises(UnknownJobTypeError):
            await operations.enqueue(test_user_id, "quarterly_review", {})

        assert await fetch_all(Operation, Operation.user_id == test_user_id) == []

    @pytest.mark.parametrize("user_id", ["", "   "])
    async def test_blank_user_rejected(self, operations, fetch_all, user_id):
        """Test an operation cannot be queued without a user."""
        with pytest.raises(ValidationError, match="user_id"):
            await operations.enqueue_weekly_reflection(user_id, IsoWeek(2026, 42), [])

        assert await fetch_all(Operation, Operation.user_id == user_id) == []


class TestTransitions:
    """Tests for the conditional state transitions."""

    @pytest.fixture
    async def queued(self, add_rows, test_user_id):
        [operation] = await add_rows(OperationFactory(user_id=test_user_id))
        return operation

    async def test_claim_only_once(self, operations, queued, fetch_all):
        """Test concurrent claims have exactly one winner."""
        results = await asyncio.gather(*(operations.claim(queued.id) for _ in range(5)))

        assert results.count(True) == 1
        [stored] = await fetch_all(Operation, Operation.id == queued.id)
        assert stored.status == OperationStatus.PROCESSING
        assert stored.started_at is not None

    async def test_progress_is_monotonic(self, operations, queued, fetch_all):
        """Test progress never moves backwards and is capped at 100."""
        await operations.claim(queued.id)

        assert await operations.report_progress(queued.id, 60, "Loading previous context") == 60
        assert await operations.report_progress(queued.id, 30, "Stale update") == 60
        assert await operations.report_progress(queued.id, 250) == 100

        [stored] = await fetch_all(Operation, Operation.id == queued.id)
        assert stored.progress == 100
        assert stored.extra_metadata["current_step"] == "Stale update"

    async def test_progress_ignored_unless_processing(self, operations, queued):
        """Test progress on a queued operation is not recorded."""
        assert await operations.report_progress(queued.id, 10) is None

    async def test_terminal_states_are_final(self, operations, queued, fetch_all):
        """Test a completed operation can be neither failed nor reclaimed."""
        await operations.claim(queued.id)
        assert await operations.complete(queued.id, {"draft_id": "d-1"})

        assert not await operations.fail(queued.id, "timeout", "timeout: too slow")
        assert not await operations.complete(queued.id, {"draft_id": "d-2"})
        assert not await operations.claim(queued.id)
        assert await operations.report_progress(queued.id, 100) is None

        [stored] = await fetch_all(Operation, Operation.id == queued.id)
        assert stored.status == OperationStatus.COMPLETED
        assert stored.result_data == {"draft_id": "d-1"}
        assert stored.progress == 100
        assert stored.error_message is None

    async def test_complete_requires_processing(self, operations, queued):
        """Test queued operations cannot skip straight to a terminal state."""
        assert not await operations.complete(queued.id, {})
        assert not await operations.fail(queued.id, "validation", "validation: bad")

    async def test_fail_records_kind(self, operations, queued):
        """Test failures store the classified message and kind."""
        await operations.claim(queued.id)
        await operations.fail(queued.id, "llm", "llm: generation failed")

        status = await operations.get_status(queued.id)
        assert status["status"] == "failed"
        assert status["error_kind"] == "llm"
        assert status["error_message"] == "llm: generation failed"
        assert status["completed_at"] is not None

    async def test_status_not_found(self, operations):
        """Test unknown ids."""
        status = await operations.get_status(uuid4())
        assert status["status"] == "not_found"
