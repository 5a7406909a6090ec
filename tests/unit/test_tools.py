"""Unit tests for tool response shaping."""

from unittest.mock import AsyncMock, patch
from uuid import uuid4

from advanceweekly.errors import DuplicateError, LLMError, ValidationError
from advanceweekly.tools.enqueue import job_enqueue, rejected_response
from advanceweekly.tools.generate_now import reflection_generate_now
from advanceweekly.tools.status import job_status


class TestRejectedResponse:
    """Tests for rejected_response."""

    def test_duplicate_with_existing_operation(self):
        response = rejected_response(DuplicateError("already queued", existing_operation_id="op-1"))
        assert response == {"status": "duplicate", "reason": "already queued", "operation_id": "op-1"}

    def test_duplicate_without_operation(self):
        """Test a draft-level duplicate carries no operation id."""
        response = rejected_response(DuplicateError("a draft already exists for 2026-W42"))
        assert response["status"] == "duplicate"
        assert "operation_id" not in response

    def test_other_errors(self):
        assert rejected_response(ValidationError("bad week")) == {
            "status": "error",
            "error_kind": "validation",
            "reason": "bad week",
        }
        assert rejected_response(LLMError("down"))["error_kind"] == "llm"


class TestJobStatus:
    """Tests for the job_status tool."""

    async def test_invalid_operation_id(self):
        assert await job_status("not-a-uuid") == {"status": "error", "reason": "invalid operation_id"}

    async def test_other_users_operation_is_hidden(self):
        """Test an operation owned by someone else reads as not found."""
        operation_id = str(uuid4())
        stored = {"operation_id": operation_id, "user_id": "user-a", "status": "completed"}

        with patch("advanceweekly.tools.status.operation_service") as service:
            service.get_status = AsyncMock(return_value=stored)
            assert (await job_status(operation_id, user_id="user-b"))["status"] == "not_found"
            assert await job_status(operation_id, user_id="user-a") == stored
            assert await job_status(operation_id) == stored


class TestBlankUser:
    """Tests for tool calls made without a user."""

    async def test_enqueue_rejects_blank_user(self):
        response = await job_enqueue(user_id="", job_type="weekly_reflection_generation", input_data={})
        assert response["status"] == "error"
        assert response["error_kind"] == "validation"

    async def test_generate_now_rejects_blank_user(self):
        """Test the manual trigger reports a validation error instead of queueing."""
        response = await reflection_generate_now(user_id="  ")
        assert response == {"status": "error", "error_kind": "validation", "reason": "user_id must not be blank"}
