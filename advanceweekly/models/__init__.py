"""Data models for AdvanceWeekly."""

from advanceweekly.models.consolidated_week import ConsolidatedWeek, SourceStatus
from advanceweekly.models.draft_reflection import DraftReflection
from advanceweekly.models.integration import AssessmentInsight, IntegrationConnection
from advanceweekly.models.operation import JobType, Operation, OperationStatus
from advanceweekly.models.preference import UserPreference, Weekday

__all__ = [
    "AssessmentInsight",
    "ConsolidatedWeek",
    "DraftReflection",
    "IntegrationConnection",
    "JobType",
    "Operation",
    "OperationStatus",
    "SourceStatus",
    "UserPreference",
    "Weekday",
]
