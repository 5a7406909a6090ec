"""GitHub activity source."""

from datetime import date
from typing import Any

from advanceweekly.config import settings
from advanceweekly.integrations.base import HttpSourceAdapter, Theme, ThemeCategory, parse_timestamp
from advanceweekly.weeks import week_bounds_utc

CODE_EVENT_TYPES = {
    "PushEvent",
    "PullRequestEvent",
    "PullRequestReviewEvent",
    "PullRequestReviewCommentEvent",
    "CreateEvent",
    "ReleaseEvent",
}


class GitHubAdapter(HttpSourceAdapter):
    """Reads the authenticated user's public and private events."""

    source_id = "github"
    base_url = settings.github_base_url

    def __init__(self, access_token: str, username: str, client=None):
        super().__init__(access_token, client=client)
        self._username = username

    def _headers(self) -> dict[str, str]:
        headers = super()._headers()
        headers["Accept"] = "application/vnd.github+json"
        return headers

    async def fetch_week(self, user_id: str, week_start: date, week_end: date) -> list[dict[str, Any]]:
        start, end = week_bounds_utc(week_start, week_end)
        events = await self._get_json(f"/users/{self._username}/events", params={"per_page": 100})
        records = []
        for event in events or []:
            created = parse_timestamp(event.get("created_at"))
            if created is not None and start <= created < end:
                records.append(event)
        return records

    def to_themes(self, records: list[dict[str, Any]]) -> list[Theme]:
        themes = []
        for event in records:
            created = parse_timestamp(event.get("created_at"))
            if created is None:
                continue
            event_type = event.get("type", "")
            repo = (event.get("repo") or {}).get("name", "unknown repository")
            category = ThemeCategory.CODE_ACTIVITY if event_type in CODE_EVENT_TYPES else ThemeCategory.OTHER
            themes.append(
                Theme(
                    category=category,
                    evidence_text=describe_event(event_type, repo, event.get("payload") or {}),
                    source_reference=f"{self.source_id}:event:{event.get('id', '')}",
                    timestamp=created,
                )
            )
        return themes


def describe_event(event_type: str, repo: str, payload: dict[str, Any]) -> str:
    if event_type == "PushEvent":
        commits = payload.get("size") or len(payload.get("commits") or [])
        return f"Pushed {commits} commit(s) to {repo}"
    if event_type == "PullRequestEvent":
        pr = payload.get("pull_request") or {}
        return f"{payload.get('action', 'updated').capitalize()} pull request '{pr.get('title', '')}' in {repo}"
    if event_type in ("PullRequestReviewEvent", "PullRequestReviewCommentEvent"):
        pr = payload.get("pull_request") or {}
        return f"Reviewed pull request '{pr.get('title', '')}' in {repo}"
    if event_type == "IssuesEvent":
        issue = payload.get("issue") or {}
        return f"{payload.get('action', 'updated').capitalize()} issue '{issue.get('title', '')}' in {repo}"
    return f"{event_type or 'Activity'} in {repo}"
