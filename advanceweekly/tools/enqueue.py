"""job_enqueue tool for queueing asynchronous operations."""

from typing import Any

from advanceweekly.errors import DuplicateError, JobError
from advanceweekly.jobs import job_processor, operation_service
from advanceweekly.models.operation import Operation


def queued_response(operation: Operation) -> dict[str, Any]:
    return {
        "operation_id": str(operation.id),
        "status": "queued",
        "job_type": operation.job_type.value,
        "queued_at": operation.created_at.isoformat(),
    }


def rejected_response(exc: JobError) -> dict[str, Any]:
    """Duplicates are a successful no-op; everything else is an error."""
    if isinstance(exc, DuplicateError):
        response = {"status": "duplicate", "reason": exc.message}
        if exc.existing_operation_id:
            response["operation_id"] = exc.existing_operation_id
        return response
    return {"status": "error", "error_kind": exc.kind, "reason": exc.message}


async def job_enqueue(
    user_id: str,
    job_type: str,
    input_data: dict[str, Any] | None = None,
) -> dict[str, Any]:
    """Queue an operation for background processing.

    Args:
        user_id: User identifier.
        job_type: One of "weekly_reflection_generation", "career_plan_generation".
        input_data: Job-type specific payload.

    Returns:
        dict with operation_id and status "queued", or status "duplicate"
        (with the existing operation_id when known) or "error".

    Example:
        >>> job_enqueue("u-1", "career_plan_generation", {"role": "Engineer", "level": "Senior"})
        {"operation_id": "6f1c...", "status": "queued", ...}
    """
    try:
        operation = await operation_service.enqueue(user_id, job_type, input_data)
    except JobError as exc:
        return rejected_response(exc)

    # Start background worker lazily
    await job_processor.ensure_worker()
    return queued_response(operation)
