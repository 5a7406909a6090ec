"""Preference store for reflection auto-generation settings."""

import logging
from typing import Any

from pydantic import BaseModel, Field, field_validator
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from advanceweekly.config import settings
from advanceweekly.db import SessionFactory, get_session
from advanceweekly.errors import ValidationError
from advanceweekly.models.integration import IntegrationConnection
from advanceweekly.models.preference import UserPreference, Weekday
from advanceweekly.weeks import is_valid_timezone, utc_now

logger = logging.getLogger(__name__)


class PreferenceUpdate(BaseModel):
    """Partial update of a user's preferences. Unset fields are left alone."""

    auto_generate: bool | None = None
    preferred_day: Weekday | None = None
    preferred_hour: int | None = Field(default=None, ge=0, le=23)
    timezone: str | None = None
    include_integrations: list[str] | None = None
    notify_on_generation: bool | None = None

    @field_validator("timezone")
    @classmethod
    def _known_timezone(cls, value: str | None) -> str | None:
        if value is not None and not is_valid_timezone(value):
            raise ValueError(f"unknown timezone: {value}")
        return value


def default_values() -> dict[str, Any]:
    return {
        "auto_generate": settings.default_auto_generate,
        "preferred_day": Weekday(settings.default_preferred_day),
        "preferred_hour": settings.default_preferred_hour,
        "timezone": settings.default_timezone,
        "include_integrations": [],
        "notify_on_generation": False,
    }


class PreferenceService:
    """Reads and writes UserPreference rows, materializing defaults on first access."""

    def __init__(self, session_factory: SessionFactory = get_session):
        self._session_factory = session_factory

    async def get(self, user_id: str) -> UserPreference:
        async with self._session_factory() as session:
            return await self.get_with_session(session, user_id)

    async def get_with_session(self, session: AsyncSession, user_id: str) -> UserPreference:
        """Return the user's preferences, creating the default row if missing."""
        preference = await session.get(UserPreference, user_id)
        if preference is not None:
            return preference

        preference = UserPreference(user_id=user_id, **default_values())
        try:
            async with session.begin_nested():
                session.add(preference)
        except IntegrityError:
            # Another request materialized the row first
            preference = await session.get(UserPreference, user_id, populate_existing=True)
        return preference

    async def update(self, user_id: str, changes: dict[str, Any]) -> UserPreference:
        """Apply a partial update.

        Raises:
            ValidationError: Malformed values, or integrations the user has not connected.
        """
        try:
            update = PreferenceUpdate.model_validate(changes)
        except ValueError as exc:
            raise ValidationError(f"invalid preferences: {exc}") from exc

        values = update.model_dump(exclude_unset=True)
        async with self._session_factory() as session:
            if values.get("include_integrations"):
                await self._check_connected(session, user_id, values["include_integrations"])

            preference = await self.get_with_session(session, user_id)
            for key, value in values.items():
                setattr(preference, key, value)
            preference.updated_at = utc_now()
            await session.flush()
            logger.info("Updated preferences for user %s: %s", user_id, sorted(values))
            return preference

    async def reset(self, user_id: str) -> UserPreference:
        """Restore defaults. Preferences are never deleted."""
        async with self._session_factory() as session:
            preference = await self.get_with_session(session, user_id)
            for key, value in default_values().items():
                setattr(preference, key, value)
            preference.updated_at = utc_now()
            await session.flush()
            return preference

    async def list_auto_generate(self) -> list[UserPreference]:
        async with self._session_factory() as session:
            result = await session.execute(
                select(UserPreference)
                .where(UserPreference.auto_generate.is_(True))
                .order_by(UserPreference.user_id)
            )
            return list(result.scalars().all())

    async def _check_connected(self, session: AsyncSession, user_id: str, source_ids: list[str]) -> None:
        result = await session.execute(
            select(IntegrationConnection.source_id).where(
                IntegrationConnection.user_id == user_id,
                IntegrationConnection.is_active.is_(True),
            )
        )
        connected = set(result.scalars().all())
        missing = [source_id for source_id in source_ids if source_id not in connected]
        if missing:
            raise ValidationError(f"integrations not connected: {', '.join(missing)}")


# Global singleton instance
preference_service = PreferenceService()
