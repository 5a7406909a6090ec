"""MCP tool implementations for AdvanceWeekly."""

from advanceweekly.tools.enqueue import job_enqueue
from advanceweekly.tools.generate_now import reflection_generate_now
from advanceweekly.tools.hourly_check import reflection_hourly_check
from advanceweekly.tools.preferences import preferences_get, preferences_reset, preferences_update
from advanceweekly.tools.status import job_status

__all__ = [
    "job_enqueue",
    "job_status",
    "preferences_get",
    "preferences_reset",
    "preferences_update",
    "reflection_generate_now",
    "reflection_hourly_check",
]
