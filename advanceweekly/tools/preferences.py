"""Tools for reading and changing reflection preferences."""

from typing import Any

from advanceweekly.errors import ValidationError
from advanceweekly.services import preference_service


async def preferences_get(user_id: str) -> dict[str, Any]:
    """Get a user's reflection preferences, creating defaults on first access."""
    preference = await preference_service.get(user_id)
    return preference.to_dict()


async def preferences_update(user_id: str, changes: dict[str, Any]) -> dict[str, Any]:
    """Update reflection preferences.

    Args:
        user_id: User identifier.
        changes: Any of auto_generate, preferred_day (monday..sunday),
            preferred_hour (0-23, local), timezone (IANA name),
            include_integrations, notify_on_generation.

    Returns:
        The updated preferences, or status "error" with a reason.
    """
    try:
        preference = await preference_service.update(user_id, changes)
    except ValidationError as exc:
        return {"status": "error", "error_kind": exc.kind, "reason": exc.message}
    return preference.to_dict()


async def preferences_reset(user_id: str) -> dict[str, Any]:
    """Restore default reflection preferences."""
    preference = await preference_service.reset(user_id)
    return preference.to_dict()
