"""Job handlers, one per job type, and the registry the processor dispatches through."""

from advanceweekly.handlers.base import (
    HandlerRegistry,
    IncompleteRegistryError,
    JobContext,
    JobHandler,
    ProgressReporter,
)
from advanceweekly.handlers.career_plan import CareerPlanHandler, CareerPlanInput
from advanceweekly.handlers.weekly_reflection import WeeklyReflectionHandler, WeeklyReflectionInput

# Fails at import time if a JobType has no handler
handler_registry = HandlerRegistry([WeeklyReflectionHandler(), CareerPlanHandler()])

__all__ = [
    "CareerPlanHandler",
    "CareerPlanInput",
    "HandlerRegistry",
    "IncompleteRegistryError",
    "JobContext",
    "JobHandler",
    "ProgressReporter",
    "WeeklyReflectionHandler",
    "WeeklyReflectionInput",
    "handler_registry",
]
