"""Todoist activity source."""

from datetime import date
from typing import Any

from advanceweekly.config import settings
from advanceweekly.integrations.base import HttpSourceAdapter, Theme, ThemeCategory, parse_timestamp
from advanceweekly.weeks import week_bounds_utc


class TodoistAdapter(HttpSourceAdapter):
    """Reads tasks completed during the week."""

    source_id = "todoist"
    base_url = settings.todoist_base_url

    async def fetch_week(self, user_id: str, week_start: date, week_end: date) -> list[dict[str, Any]]:
        since, until = week_bounds_utc(week_start, week_end)
        data = await self._get_json(
            "/completed/get_all",
            params={
                "since": since.strftime("%Y-%m-%dT%H:%M:%S"),
                "until": until.strftime("%Y-%m-%dT%H:%M:%S"),
                "limit": 200,
            },
        )
        return list(data.get("items") or [])

    def to_themes(self, records: list[dict[str, Any]]) -> list[Theme]:
        themes = []
        for task in records:
            completed = parse_timestamp(task.get("completed_at"))
            content = (task.get("content") or "").strip()
            if completed is None or not content:
                continue
            themes.append(
                Theme(
                    category=ThemeCategory.TASKS,
                    evidence_text=f"Completed: {content}",
                    source_reference=f"{self.source_id}:task:{task.get('task_id') or task.get('id', '')}",
                    timestamp=completed,
                )
            )
        return themes
