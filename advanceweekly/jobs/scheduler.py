"""Hourly scheduling of automatic weekly reflections."""

import asyncio
import logging
from collections import Counter
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any, Protocol

from advanceweekly.config import settings
from advanceweekly.errors import DuplicateError, ValidationError
from advanceweekly.jobs.operations import OperationService, operation_service
from advanceweekly.models.operation import Operation
from advanceweekly.models.preference import UserPreference, Weekday
from advanceweekly.services.preferences import PreferenceService, preference_service
from advanceweekly.weeks import IsoWeek, as_utc, local_week, to_local, utc_now

logger = logging.getLogger(__name__)


class SchedulePreference(Protocol):
    auto_generate: bool
    preferred_day: Weekday | str
    preferred_hour: int


@dataclass(frozen=True)
class EnqueueDecision:
    """Outcome of evaluating one user's schedule at one instant."""

    enqueue: bool
    reason: str
    local_time: datetime | None = None
    week: IsoWeek | None = None


def decide_enqueue(utc_instant: datetime, timezone: str, preference: SchedulePreference) -> EnqueueDecision:
    """Whether ``utc_instant`` falls in the user's preferred local generation hour.

    Pure: the result depends only on the arguments. Raises
    ``pytz.UnknownTimeZoneError`` for an unknown ``timezone``.
    """
    if not preference.auto_generate:
        return EnqueueDecision(False, "auto-generation disabled")

    local = to_local(utc_instant, timezone)
    preferred_day = Weekday(preference.preferred_day)
    if local.weekday() != preferred_day.number:
        return EnqueueDecision(False, f"local day is {Weekday.from_number(local.weekday()).value}", local)
    if local.hour != preference.preferred_hour:
        return EnqueueDecision(False, f"local hour is {local.hour:02d}", local)

    return EnqueueDecision(True, "preferred local time", local, IsoWeek.containing(local.date()))


def preferred_time_label(preference: UserPreference) -> str:
    return f"{Weekday(preference.preferred_day).value} {preference.preferred_hour:02d}:00"


class HourlyReflectionChecker:
    """Enqueues weekly reflections for users whose preferred local hour is now."""

    def __init__(
        self,
        operations: OperationService | None = None,
        preferences: PreferenceService | None = None,
        max_concurrency: int = settings.scheduler_max_concurrency,
    ):
        self._operations = operations or operation_service
        self._preferences = preferences or preference_service
        self._max_concurrency = max(1, max_concurrency)

    async def check(self, now: datetime | None = None) -> dict[str, Any]:
        """Evaluate every auto-generating user once.

        Returns:
            Counts of users evaluated, enqueued, skipped, deduplicated and failed.
        """
        instant = as_utc(now or utc_now())
        preferences = await self._preferences.list_auto_generate()
        semaphore = asyncio.Semaphore(self._max_concurrency)

        async def bounded(preference: UserPreference) -> str:
            async with semaphore:
                return await self._evaluate(preference, instant)

        outcomes = Counter(await asyncio.gather(*(bounded(preference) for preference in preferences)))
        summary = {
            "checked_at": instant.isoformat(),
            "evaluated": len(preferences),
            "enqueued": outcomes["enqueued"],
            "skipped": outcomes["skipped"],
            "duplicates": outcomes["duplicate"],
            "errors": outcomes["error"],
        }
        logger.info("Hourly reflection check: %s", summary)
        return summary

    async def _evaluate(self, preference: UserPreference, instant: datetime) -> str:
        user_id = preference.user_id
        try:
            decision = decide_enqueue(instant, preference.timezone, preference)
            if not decision.enqueue:
                return "skipped"

            operation = await self._operations.enqueue_weekly_reflection(
                user_id,
                decision.week,
                preference.include_integrations or [],
                metadata={
                    "trigger": "scheduled",
                    "timezone": preference.timezone,
                    "preferred_time": preferred_time_label(preference),
                },
            )
            logger.info("Scheduled reflection %s for user %s, %s", operation.id, user_id, decision.week)
            return "enqueued"
        except DuplicateError as exc:
            logger.info("Skipping user %s: %s", user_id, exc.message)
            return "duplicate"
        except Exception:
            logger.exception("Scheduler failed for user %s", user_id)
            return "error"

    async def generate_now(
        self,
        user_id: str,
        week_start: date | None = None,
        now: datetime | None = None,
    ) -> Operation:
        """Manual trigger: enqueue without the time match, subject to the same dedup.

        The week defaults to the one containing the user's local date.

        Raises:
            ValidationError: ``user_id`` is blank.
            DuplicateError: The week already has a non-failed operation or a draft.
        """
        if not user_id or not user_id.strip():
            raise ValidationError("user_id must not be blank")
        preference = await self._preferences.get(user_id)
        if week_start is not None:
            week = IsoWeek.containing(week_start)
        else:
            week = local_week(now or utc_now(), preference.timezone)

        return await self._operations.enqueue_weekly_reflection(
            user_id,
            week,
            preference.include_integrations or [],
            metadata={"trigger": "manual", "timezone": preference.timezone},
        )


# Global singleton instance
hourly_reflection_checker = HourlyReflectionChecker()
