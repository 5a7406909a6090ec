"""Asynchronous job engine: operations, the processor and the hourly scheduler."""

from advanceweekly.jobs.operations import OperationService, operation_service
from advanceweekly.jobs.processor import JobProcessor, job_processor
from advanceweekly.jobs.scheduler import (
    EnqueueDecision,
    HourlyReflectionChecker,
    decide_enqueue,
    hourly_reflection_checker,
)

__all__ = [
    "EnqueueDecision",
    "HourlyReflectionChecker",
    "JobProcessor",
    "OperationService",
    "decide_enqueue",
    "hourly_reflection_checker",
    "job_processor",
    "operation_service",
]
