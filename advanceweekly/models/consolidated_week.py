"""Normalized per-source activity for one user-week."""

from datetime import datetime
from enum import Enum
from typing import Any
from uuid import UUID, uuid4

from sqlalchemy import JSON, DateTime, UniqueConstraint
from sqlmodel import Column, Field, SQLModel

from advanceweekly.weeks import utc_now


class SourceStatus(str, Enum):
    AVAILABLE = "available"
    UNAVAILABLE = "unavailable"


class ConsolidatedWeek(SQLModel, table=True):
    """One source's normalized output for a user-week. Re-consolidation overwrites it."""

    __tablename__ = "consolidated_weeks"
    __table_args__ = (
        UniqueConstraint(
            "user_id", "week_number", "year", "source_id", name="uq_consolidated_weeks_user_week_source"
        ),
    )

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    user_id: str = Field(index=True, max_length=255)
    week_number: int = Field(ge=1, le=53)
    year: int
    source_id: str = Field(max_length=64)

    status: SourceStatus = Field(default=SourceStatus.AVAILABLE)
    raw_data: list[dict[str, Any]] | None = Field(default=None, sa_column=Column(JSON))
    themes: list[dict[str, Any]] = Field(default_factory=list, sa_column=Column(JSON))
    error_message: str | None = Field(default=None)

    consolidated_at: datetime = Field(default_factory=utc_now, sa_type=DateTime(timezone=True))
