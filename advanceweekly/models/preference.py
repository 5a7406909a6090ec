"""Per-user reflection scheduling preferences."""

from datetime import datetime
from enum import Enum
from typing import Any

from sqlalchemy import JSON, DateTime
from sqlmodel import Column, Field, SQLModel

from advanceweekly.weeks import utc_now


class Weekday(str, Enum):
    """Weekdays, ordered to match ``datetime.weekday()``."""

    MONDAY = "monday"
    TUESDAY = "tuesday"
    WEDNESDAY = "wednesday"
    THURSDAY = "thursday"
    FRIDAY = "friday"
    SATURDAY = "saturday"
    SUNDAY = "sunday"

    @property
    def number(self) -> int:
        return list(Weekday).index(self)

    @classmethod
    def from_number(cls, number: int) -> "Weekday":
        return list(cls)[number]


class UserPreference(SQLModel, table=True):
    """Auto-generation settings for one user."""

    __tablename__ = "user_preferences"

    user_id: str = Field(primary_key=True, max_length=255)
    auto_generate: bool = Field(default=True, index=True)
    preferred_day: Weekday = Field(default=Weekday.FRIDAY)
    preferred_hour: int = Field(default=14, ge=0, le=23)
    timezone: str = Field(default="America/New_York", max_length=64)
    include_integrations: list[str] = Field(default_factory=list, sa_column=Column(JSON))
    notify_on_generation: bool = Field(default=False)
    updated_at: datetime = Field(default_factory=utc_now, sa_type=DateTime(timezone=True))

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for API responses."""
        return {
            "user_id": self.user_id,
            "auto_generate": self.auto_generate,
            "preferred_day": Weekday(self.preferred_day).value,
            "preferred_hour": self.preferred_hour,
            "timezone": self.timezone,
            "include_integrations": list(self.include_integrations or []),
            "notify_on_generation": self.notify_on_generation,
            "updated_at": self.updated_at.isoformat(),
        }
