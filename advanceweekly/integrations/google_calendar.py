"""Google Calendar activity source."""

from datetime import date
from typing import Any

from advanceweekly.config import settings
from advanceweekly.integrations.base import HttpSourceAdapter, Theme, ThemeCategory, parse_timestamp
from advanceweekly.weeks import week_bounds_utc

# Meeting titles that usually matter for career conversations
KEY_MEETING_KEYWORDS = (
    "1:1",
    "review",
    "feedback",
    "demo",
    "presentation",
    "retrospective",
    "planning",
    "architecture",
    "design",
    "stakeholder",
)


class GoogleCalendarAdapter(HttpSourceAdapter):
    """Reads timed events from the user's primary calendar."""

    source_id = "google_calendar"
    base_url = settings.google_calendar_base_url

    async def fetch_week(self, user_id: str, week_start: date, week_end: date) -> list[dict[str, Any]]:
        time_min, time_max = week_bounds_utc(week_start, week_end)
        data = await self._get_json(
            "/calendars/primary/events",
            params={
                "timeMin": time_min.isoformat(),
                "timeMax": time_max.isoformat(),
                "singleEvents": "true",
                "orderBy": "startTime",
                "maxResults": settings.google_calendar_max_results,
            },
        )
        items = data.get("items") or []
        # All-day events carry only a date and say little about the week's work
        return [item for item in items if (item.get("start") or {}).get("dateTime")]

    def to_themes(self, records: list[dict[str, Any]]) -> list[Theme]:
        themes = []
        for event in records:
            if event.get("status") == "cancelled":
                continue
            started = parse_timestamp((event.get("start") or {}).get("dateTime"))
            if started is None:
                continue

            summary = event.get("summary") or "Untitled Event"
            attendees = len(event.get("attendees") or [])
            text = summary
            if attendees > 1:
                text += f" ({attendees} attendees)"
            if is_key_meeting(summary):
                text += " [key meeting]"

            themes.append(
                Theme(
                    category=ThemeCategory.MEETINGS,
                    evidence_text=text,
                    source_reference=f"{self.source_id}:event:{event.get('id', '')}",
                    timestamp=started,
                )
            )
        return themes


def is_key_meeting(summary: str) -> bool:
    title = summary.lower()
    return any(keyword in title for keyword in KEY_MEETING_KEYWORDS)
