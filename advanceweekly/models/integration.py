"""Connected third-party sources and assessment insights read by the handlers."""

from datetime import datetime
from uuid import UUID, uuid4

from sqlalchemy import DateTime, UniqueConstraint
from sqlmodel import Field, SQLModel

from advanceweekly.weeks import utc_now


class IntegrationConnection(SQLModel, table=True):
    """A user's credentials for one activity source."""

    __tablename__ = "integration_connections"
    __table_args__ = (
        UniqueConstraint("user_id", "source_id", name="uq_integration_connections_user_source"),
    )

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    user_id: str = Field(index=True, max_length=255)
    source_id: str = Field(max_length=64)
    access_token: str | None = Field(default=None)
    external_account: str | None = Field(default=None, max_length=255)
    is_active: bool = Field(default=True)
    connected_at: datetime = Field(default_factory=utc_now, sa_type=DateTime(timezone=True))


class AssessmentInsight(SQLModel, table=True):
    """Summary from a performance assessment, used as reflection context."""

    __tablename__ = "assessment_insights"

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    user_id: str = Field(index=True, max_length=255)
    summary: str
    created_at: datetime = Field(default_factory=utc_now, index=True, sa_type=DateTime(timezone=True))
