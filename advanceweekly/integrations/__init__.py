"""Integration source adapters, one per third-party activity source."""

from typing import Callable

from advanceweekly.integrations.base import HttpSourceAdapter, SourceAdapter, Theme, ThemeCategory
from advanceweekly.integrations.github import GitHubAdapter
from advanceweekly.integrations.google_calendar import GoogleCalendarAdapter
from advanceweekly.integrations.todoist import TodoistAdapter
from advanceweekly.models.integration import IntegrationConnection

AdapterFactory = Callable[[IntegrationConnection], SourceAdapter]

# Builds a credentialed adapter from a user's stored connection
ADAPTER_FACTORIES: dict[str, AdapterFactory] = {
    GoogleCalendarAdapter.source_id: lambda conn: GoogleCalendarAdapter(conn.access_token or ""),
    TodoistAdapter.source_id: lambda conn: TodoistAdapter(conn.access_token or ""),
    GitHubAdapter.source_id: lambda conn: GitHubAdapter(conn.access_token or "", conn.external_account or ""),
}

__all__ = [
    "ADAPTER_FACTORIES",
    "AdapterFactory",
    "GitHubAdapter",
    "GoogleCalendarAdapter",
    "HttpSourceAdapter",
    "SourceAdapter",
    "Theme",
    "ThemeCategory",
    "TodoistAdapter",
]
