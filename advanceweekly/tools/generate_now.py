"""reflection_generate_now tool for manually triggering a weekly reflection."""

from datetime import date
from typing import Any

from advanceweekly.errors import JobError
from advanceweekly.jobs import hourly_reflection_checker, job_processor
from advanceweekly.tools.enqueue import queued_response, rejected_response


async def reflection_generate_now(user_id: str, week_start: str | None = None) -> dict[str, Any]:
    """Generate the weekly reflection now instead of waiting for the preferred time.

    Args:
        user_id: User identifier.
        week_start: Optional ISO date inside the target week. Defaults to the
            user's current local week.

    Returns:
        Same shape as job_enqueue. A week that already has a draft or a
        pending operation returns status "duplicate".
    """
    try:
        start = date.fromisoformat(week_start) if week_start else None
    except ValueError:
        return {"status": "error", "error_kind": "validation", "reason": f"invalid week_start: {week_start}"}

    try:
        operation = await hourly_reflection_checker.generate_now(user_id, week_start=start)
    except JobError as exc:
        return rejected_response(exc)

    await job_processor.ensure_worker()
    return queued_response(operation)
