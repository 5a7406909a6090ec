"""job_status tool for polling operations."""

from typing import Any
from uuid import UUID

from advanceweekly.jobs import operation_service


async def job_status(operation_id: str, user_id: str | None = None) -> dict[str, Any]:
    """Get the status of an operation."""
    try:
        oid = UUID(operation_id)
    except ValueError:
        return {"status": "error", "reason": "invalid operation_id"}

    status = await operation_service.get_status(oid)
    if user_id and status.get("user_id") not in (None, user_id):
        return {"operation_id": operation_id, "status": "not_found"}
    return status
