"""Operation model for asynchronous job processing."""

from datetime import datetime
from enum import Enum
from typing import Any
from uuid import UUID, uuid4

from sqlalchemy import JSON, DateTime, Index, String, text
from sqlalchemy import Enum as SAEnum
from sqlmodel import Column, Field, SQLModel

from advanceweekly.weeks import utc_now


class JobType(str, Enum):
    """Job types with a registered handler."""

    WEEKLY_REFLECTION_GENERATION = "weekly_reflection_generation"
    CAREER_PLAN_GENERATION = "career_plan_generation"


class OperationStatus(str, Enum):
    """States of the operation state machine."""

    QUEUED = "queued"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (OperationStatus.COMPLETED, OperationStatus.FAILED)


def _enum_values(enum_cls: type[Enum]) -> list[str]:
    return [member.value for member in enum_cls]


class Operation(SQLModel, table=True):
    """Persisted unit of asynchronous work."""

    __tablename__ = "operations"
    __table_args__ = (
        # At most one non-failed operation per job target
        Index(
            "uq_operations_active_target",
            "user_id",
            "job_type",
            "dedup_key",
            unique=True,
            postgresql_where=text("status != 'failed'"),
            sqlite_where=text("status != 'failed'"),
        ),
    )

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    user_id: str = Field(index=True, max_length=255)

    job_type: JobType = Field(
        sa_column=Column(
            SAEnum(JobType, name="job_type", native_enum=False, length=64, values_callable=_enum_values),
            nullable=False,
        )
    )
    status: OperationStatus = Field(
        default=OperationStatus.QUEUED,
        sa_column=Column(
            SAEnum(
                OperationStatus,
                name="operation_status",
                native_enum=False,
                length=20,
                values_callable=_enum_values,
            ),
            nullable=False,
            index=True,
        ),
    )
    progress: int = Field(default=0, ge=0, le=100)
    dedup_key: str | None = Field(default=None, sa_column=Column(String(64), nullable=True))

    input_data: dict[str, Any] = Field(default_factory=dict, sa_column=Column(JSON))
    result_data: dict[str, Any] | None = Field(default=None, sa_column=Column(JSON))
    error_message: str | None = Field(default=None)
    error_kind: str | None = Field(default=None, max_length=32)

    created_at: datetime = Field(default_factory=utc_now, sa_type=DateTime(timezone=True))
    started_at: datetime | None = Field(default=None, sa_type=DateTime(timezone=True))
    completed_at: datetime | None = Field(default=None, sa_type=DateTime(timezone=True))

    extra_metadata: dict[str, Any] = Field(default_factory=dict, sa_column=Column(JSON))

    def to_status(self) -> dict[str, Any]:
        """Serialize for status queries."""
        payload: dict[str, Any] = {
            "operation_id": str(self.id),
            "user_id": self.user_id,
            "job_type": self.job_type.value,
            "status": self.status.value,
            "progress": self.progress,
            "created_at": self.created_at.isoformat(),
            "started_at": self.started_at.isoformat() if self.started_at else None,
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
            "current_step": (self.extra_metadata or {}).get("current_step"),
        }
        if self.status == OperationStatus.COMPLETED:
            payload["result_data"] = self.result_data
        elif self.status == OperationStatus.FAILED:
            payload["error_message"] = self.error_message
            payload["error_kind"] = self.error_kind
        return payload
