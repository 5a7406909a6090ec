"""Generated weekly reflection drafts."""

from datetime import date, datetime
from typing import Any
from uuid import UUID, uuid4

from sqlalchemy import DateTime, UniqueConstraint
from sqlmodel import Field, SQLModel

from advanceweekly.weeks import utc_now


class DraftReflection(SQLModel, table=True):
    """Draft reflection for one user-week, written only through an upsert on that triple."""

    __tablename__ = "draft_reflections"
    __table_args__ = (
        UniqueConstraint("user_id", "week_number", "year", name="uq_draft_reflections_user_week"),
    )

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    user_id: str = Field(index=True, max_length=255)
    week_number: int = Field(ge=1, le=53)
    year: int
    week_start: date
    week_end: date

    content: str
    source_operation_id: UUID | None = Field(default=None)
    generated_automatically: bool = Field(default=True)
    reduced_confidence: bool = Field(default=False)

    created_at: datetime = Field(default_factory=utc_now, sa_type=DateTime(timezone=True))
    updated_at: datetime = Field(default_factory=utc_now, sa_type=DateTime(timezone=True))

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": str(self.id),
            "user_id": self.user_id,
            "week_number": self.week_number,
            "year": self.year,
            "week_start": self.week_start.isoformat(),
            "week_end": self.week_end.isoformat(),
            "content": self.content,
            "source_operation_id": str(self.source_operation_id) if self.source_operation_id else None,
            "generated_automatically": self.generated_automatically,
            "reduced_confidence": self.reduced_confidence,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
        }
