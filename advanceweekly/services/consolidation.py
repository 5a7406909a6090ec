"""Consolidation of several activity sources into one normalized theme list."""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Iterable, Mapping
from uuid import uuid4

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError

from advanceweekly.db import SessionFactory, get_session, upsert
from advanceweekly.errors import PersistenceError, TransientSourceError
from advanceweekly.integrations import ADAPTER_FACTORIES, AdapterFactory, Theme
from advanceweekly.models.consolidated_week import ConsolidatedWeek, SourceStatus
from advanceweekly.models.integration import IntegrationConnection
from advanceweekly.weeks import IsoWeek, utc_now

logger = logging.getLogger(__name__)


@dataclass
class SourceOutcome:
    """What one source contributed to a consolidation."""

    source_id: str
    status: SourceStatus
    records: list[dict[str, Any]] = field(default_factory=list)
    themes: list[Theme] = field(default_factory=list)
    error: str | None = None

    def summary(self) -> dict[str, Any]:
        return {
            "status": self.status.value,
            "themes": len(self.themes),
            "error": self.error,
        }


@dataclass
class ConsolidationResult:
    """Merged themes for a user-week plus per-source availability."""

    week: IsoWeek
    themes: list[Theme]
    sources: dict[str, SourceOutcome]

    @property
    def available_sources(self) -> list[str]:
        return [sid for sid, outcome in self.sources.items() if outcome.status == SourceStatus.AVAILABLE]

    @property
    def unavailable_sources(self) -> list[str]:
        return [sid for sid, outcome in self.sources.items() if outcome.status == SourceStatus.UNAVAILABLE]

    def source_summary(self) -> dict[str, dict[str, Any]]:
        return {sid: outcome.summary() for sid, outcome in self.sources.items()}


def merge_themes(theme_groups: Iterable[Iterable[Theme]]) -> list[Theme]:
    """Group themes by category priority, chronologically within each category."""
    merged = [theme for group in theme_groups for theme in group]
    return sorted(merged, key=lambda theme: (theme.category.priority, theme.timestamp))


class ConsolidationService:
    """Fetches each requested source independently and merges the results."""

    def __init__(
        self,
        session_factory: SessionFactory = get_session,
        adapter_factories: Mapping[str, AdapterFactory] | None = None,
    ):
        self._session_factory = session_factory
        self._adapter_factories = dict(ADAPTER_FACTORIES if adapter_factories is None else adapter_factories)

    async def consolidate(
        self,
        user_id: str,
        week_start: date,
        week_end: date,
        include_integrations: Iterable[str],
    ) -> ConsolidationResult:
        """Fetch, normalize and persist one user-week.

        A failing or unconnected source is recorded as unavailable and
        contributes no themes. Persistence failures are fatal.
        """
        week = IsoWeek.containing(week_start)
        source_ids = list(dict.fromkeys(include_integrations))
        connections = await self._load_connections(user_id, source_ids)

        outcomes = await asyncio.gather(
            *(
                self._fetch_source(user_id, source_id, connections.get(source_id), week_start, week_end)
                for source_id in source_ids
            )
        )

        await self._store(user_id, week, outcomes)

        sources = {outcome.source_id: outcome for outcome in outcomes}
        result = ConsolidationResult(
            week=week,
            themes=merge_themes(outcome.themes for outcome in outcomes),
            sources=sources,
        )
        logger.info(
            "Consolidated %s for user %s: %d themes, unavailable=%s",
            week,
            user_id,
            len(result.themes),
            result.unavailable_sources,
        )
        return result

    async def load_week(
        self, user_id: str, week: IsoWeek, source_ids: Iterable[str] | None = None
    ) -> ConsolidationResult:
        """Read a previously consolidated user-week back without re-fetching.

        With ``source_ids`` only those sources are read, in the given order.
        Otherwise every stored source is returned, ordered by source id.
        """
        query = select(ConsolidatedWeek).where(
            ConsolidatedWeek.user_id == user_id,
            ConsolidatedWeek.week_number == week.week,
            ConsolidatedWeek.year == week.year,
        )
        order = None
        if source_ids is not None:
            order = list(dict.fromkeys(source_ids))
            query = query.where(ConsolidatedWeek.source_id.in_(order))
        try:
            async with self._session_factory() as session:
                rows = (await session.execute(query.order_by(ConsolidatedWeek.source_id))).scalars().all()
        except SQLAlchemyError as exc:
            raise PersistenceError(f"could not load consolidation for {week}: {exc}") from exc

        if order is not None:
            rows = sorted(rows, key=lambda row: order.index(row.source_id))
        sources = {}
        for row in rows:
            sources[row.source_id] = SourceOutcome(
                source_id=row.source_id,
                status=SourceStatus(row.status),
                records=list(row.raw_data or []),
                themes=[Theme.model_validate(item) for item in row.themes or []],
                error=row.error_message,
            )
        return ConsolidationResult(
            week=week,
            themes=merge_themes(outcome.themes for outcome in sources.values()),
            sources=sources,
        )

    async def _load_connections(
        self, user_id: str, source_ids: list[str]
    ) -> dict[str, IntegrationConnection]:
        if not source_ids:
            return {}
        try:
            async with self._session_factory() as session:
                rows = (
                    await session.execute(
                        select(IntegrationConnection).where(
                            IntegrationConnection.user_id == user_id,
                            IntegrationConnection.source_id.in_(source_ids),
                            IntegrationConnection.is_active.is_(True),
                        )
                    )
                ).scalars().all()
        except SQLAlchemyError as exc:
            raise PersistenceError(f"could not load integrations: {exc}") from exc
        return {row.source_id: row for row in rows}

    async def _fetch_source(
        self,
        user_id: str,
        source_id: str,
        connection: IntegrationConnection | None,
        week_start: date,
        week_end: date,
    ) -> SourceOutcome:
        factory = self._adapter_factories.get(source_id)
        if factory is None:
            return SourceOutcome(source_id, SourceStatus.UNAVAILABLE, error="unsupported source")
        if connection is None:
            return SourceOutcome(source_id, SourceStatus.UNAVAILABLE, error="not connected")

        adapter = factory(connection)
        try:
            records = await adapter.fetch_week(user_id, week_start, week_end)
            themes = adapter.to_themes(records)
        except TransientSourceError as exc:
            logger.warning("Source %s unavailable for user %s: %s", source_id, user_id, exc.message)
            return SourceOutcome(source_id, SourceStatus.UNAVAILABLE, error=exc.message)
        except Exception as exc:
            logger.exception("Source %s failed unexpectedly for user %s", source_id, user_id)
            return SourceOutcome(source_id, SourceStatus.UNAVAILABLE, error=f"unexpected error: {exc}")

        return SourceOutcome(source_id, SourceStatus.AVAILABLE, records=records, themes=themes)

    async def _store(self, user_id: str, week: IsoWeek, outcomes: list[SourceOutcome]) -> None:
        if not outcomes:
            return
        try:
            async with self._session_factory() as session:
                for outcome in outcomes:
                    await upsert(
                        session,
                        ConsolidatedWeek,
                        values={
                            "id": uuid4(),
                            "user_id": user_id,
                            "week_number": week.week,
                            "year": week.year,
                            "source_id": outcome.source_id,
                            "status": outcome.status,
                            "raw_data": outcome.records,
                            "themes": [theme.model_dump(mode="json") for theme in outcome.themes],
                            "error_message": outcome.error,
                            "consolidated_at": utc_now(),
                        },
                        conflict_columns=("user_id", "week_number", "year", "source_id"),
                        update_columns=("status", "raw_data", "themes", "error_message", "consolidated_at"),
                    )
        except SQLAlchemyError as exc:
            raise PersistenceError(f"could not store consolidation for {week}: {exc}") from exc


# Global singleton instance
consolidation_service = ConsolidationService()
