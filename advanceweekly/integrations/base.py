"""Base contract for third-party activity sources."""

import logging
from abc import ABC, abstractmethod
from datetime import date, datetime
from enum import Enum
from typing import Any

import httpx
from pydantic import BaseModel

from advanceweekly.config import settings
from advanceweekly.errors import TransientSourceError
from advanceweekly.weeks import as_utc

logger = logging.getLogger(__name__)


class ThemeCategory(str, Enum):
    """Theme categories, declared in merge priority order."""

    MEETINGS = "meetings"
    TASKS = "tasks"
    CODE_ACTIVITY = "code_activity"
    OTHER = "other"

    @property
    def priority(self) -> int:
        return list(ThemeCategory).index(self)


class Theme(BaseModel):
    """A normalized evidence record extracted from raw source data."""

    category: ThemeCategory
    evidence_text: str
    source_reference: str
    timestamp: datetime


class SourceAdapter(ABC):
    """Fetches one week of raw activity for a user from a single source."""

    source_id: str

    @abstractmethod
    async def fetch_week(self, user_id: str, week_start: date, week_end: date) -> list[dict[str, Any]]:
        """Return raw records for the week.

        Raises:
            TransientSourceError: The source could not be read.
        """

    @abstractmethod
    def to_themes(self, records: list[dict[str, Any]]) -> list[Theme]:
        """Normalize raw records into themes."""


class HttpSourceAdapter(SourceAdapter):
    """Adapter backed by a bearer-token HTTP API."""

    base_url: str

    def __init__(self, access_token: str, client: httpx.AsyncClient | None = None):
        self._access_token = access_token
        self._client = client

    def _headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self._access_token}",
            "Accept": "application/json",
        }

    async def _get_json(self, path: str, params: dict[str, Any] | None = None) -> Any:
        """GET ``path`` and decode JSON, mapping transport and status failures."""
        url = f"{self.base_url}{path}"
        try:
            if self._client is not None:
                response = await self._client.get(url, params=params, headers=self._headers())
            else:
                async with httpx.AsyncClient(timeout=settings.integration_http_timeout_seconds) as client:
                    response = await client.get(url, params=params, headers=self._headers())
        except httpx.HTTPError as exc:
            raise TransientSourceError(self.source_id, f"request failed: {exc}") from exc

        if response.status_code == 401:
            raise TransientSourceError(self.source_id, "access expired, reconnect required", retryable=False)
        if response.status_code == 403:
            raise TransientSourceError(self.source_id, "insufficient permissions", retryable=False)
        if response.status_code >= 400:
            raise TransientSourceError(self.source_id, f"HTTP {response.status_code}")

        try:
            return response.json()
        except ValueError as exc:
            raise TransientSourceError(self.source_id, f"invalid JSON: {exc}") from exc


def parse_timestamp(value: str | None) -> datetime | None:
    """Parse an ISO 8601 timestamp as returned by the source APIs."""
    if not value:
        return None
    try:
        return as_utc(datetime.fromisoformat(value.replace("Z", "+00:00")))
    except ValueError:
        logger.debug("Unparseable timestamp %r", value)
        return None
