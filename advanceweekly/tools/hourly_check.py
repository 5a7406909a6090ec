"""reflection_hourly_check tool, the scheduler's external tick."""

from datetime import datetime
from typing import Any

from advanceweekly.jobs import hourly_reflection_checker, job_processor


async def reflection_hourly_check(now: str | None = None) -> dict[str, Any]:
    """Enqueue reflections for every user whose preferred local hour is now.

    Args:
        now: Optional ISO instant to evaluate instead of the current time.
            Naive values are treated as UTC.

    Returns:
        dict with evaluated, enqueued, skipped, duplicates and errors counts.
    """
    try:
        instant = datetime.fromisoformat(now) if now else None
    except ValueError:
        return {"status": "error", "reason": f"invalid timestamp: {now}"}

    summary = await hourly_reflection_checker.check(now=instant)
    if summary["enqueued"]:
        await job_processor.ensure_worker()
    return summary
