"""Weekly reflection generation: consolidate a week of activity and draft a Done/Next/Notes summary."""

import asyncio
import logging
import re
from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Any
from uuid import uuid4

from pydantic import BaseModel, Field
from sqlalchemy import and_, or_, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from advanceweekly.config import settings
from advanceweekly.db import SessionFactory, get_session, upsert
from advanceweekly.errors import DuplicateError, LLMError, PersistenceError, ValidationError
from advanceweekly.handlers.base import JobContext, JobHandler
from advanceweekly.integrations import ThemeCategory
from advanceweekly.models.draft_reflection import DraftReflection
from advanceweekly.models.integration import AssessmentInsight, IntegrationConnection
from advanceweekly.models.operation import JobType
from advanceweekly.services.consolidation import ConsolidationResult, ConsolidationService, consolidation_service
from advanceweekly.services.llm import LLMGateway, ModelParams, llm_gateway
from advanceweekly.weeks import IsoWeek, utc_now

logger = logging.getLogger(__name__)


REFLECTION_SYSTEM_PROMPT = """You help technology professionals write short, honest weekly reflections for their own career records.

Write in the first person using action verbs. Ground every statement in the activity you are given; never invent accomplishments. Keep it concise and skimmable."""

REFLECTION_REQUIREMENTS = """REQUIREMENTS:
1. Create a structured reflection in the format: ## Done, ## Next, ## Notes
2. Under "Done" - List 3-5 specific accomplishments based on the actual activities
3. Under "Next" - Identify 2-3 concrete next steps based on current priorities
4. Under "Notes" - Include observations about challenges, learnings, or important context
5. Maintain continuity with the previous week if context is provided
6. Focus on impact and outcomes, not just activities
7. If no activity data is provided, say so plainly in Notes instead of guessing

FORMAT:
Return markdown text with exactly those three sections."""

CATEGORY_TITLES = {
    ThemeCategory.MEETINGS: "Meetings",
    ThemeCategory.TASKS: "Tasks",
    ThemeCategory.CODE_ACTIVITY: "Code activity",
    ThemeCategory.OTHER: "Other",
}

DONE_HEADING = "## Done"
NEXT_HEADING = "## Next"
NOTES_HEADING = "## Notes"
NO_SOURCE_DATA_NOTE = "- No source data was available for this week; review and add your own highlights."
MAX_RECENT_INSIGHTS = 5

_FENCED_MARKDOWN = re.compile(r"^```markdown\s*\n(.*?)\n```$", re.DOTALL)
_FENCED_GENERIC = re.compile(r"^```\s*\n(.*?)\n```$", re.DOTALL)


class WeeklyReflectionInput(BaseModel):
    week_start: date
    week_end: date
    include_integrations: list[str] = Field(default_factory=list)


@dataclass
class PreviousContext:
    """Continuity material from earlier weeks."""

    reflection: str | None = None
    insights: list[str] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return self.reflection is None and not self.insights


def build_reflection_prompt(
    week: IsoWeek,
    consolidation: ConsolidationResult,
    previous: PreviousContext,
    previous_max_chars: int = settings.previous_reflection_max_chars,
) -> str:
    """Assemble the generation prompt from consolidated themes and previous context."""
    lines = [
        f"Generate a weekly reflection for the week of {week.start.isoformat()} to {week.end.isoformat()} ({week}).",
        "",
        "KEY THEMES AND ACTIVITIES:",
    ]

    if consolidation.themes:
        current = None
        for theme in consolidation.themes:
            if theme.category != current:
                current = theme.category
                lines.append(f"\n### {CATEGORY_TITLES[current]}")
            lines.append(f"- {theme.evidence_text}")
    else:
        lines.append("No source data was available for this week.")

    if consolidation.unavailable_sources:
        lines.append(f"\nSources unavailable this week: {', '.join(consolidation.unavailable_sources)}")

    if previous.reflection:
        excerpt = previous.reflection[:previous_max_chars]
        if len(previous.reflection) > previous_max_chars:
            excerpt += "..."
        lines.append(f"\n\nPREVIOUS WEEK'S REFLECTION (for continuity):\n{excerpt}")

    if previous.insights:
        lines.append("\n\nRECENT PERFORMANCE INSIGHTS:")
        lines.extend(f"- {insight}" for insight in previous.insights)

    lines.append(f"\n\n{REFLECTION_REQUIREMENTS}")
    return "\n".join(lines)


def normalize_reflection(text: str, has_source_data: bool = True) -> str:
    """Clean model output into a Done/Next/Notes document.

    Strips code fences the model sometimes wraps its answer in, restores
    missing sections, and records in Notes when there was no source data.
    """
    content = text.strip()

    match = _FENCED_MARKDOWN.match(content)
    if match:
        content = match.group(1).strip()
    match = _FENCED_GENERIC.match(content)
    if match and DONE_HEADING in match.group(1):
        content = match.group(1).strip()

    if DONE_HEADING not in content or NEXT_HEADING not in content:
        content = (
            f"{DONE_HEADING}\n\n{content}\n\n"
            f"{NEXT_HEADING}\n\n- Continue with current priorities\n\n"
            f"{NOTES_HEADING}\n\n*Generated reflection - please review and edit as needed*"
        )
    elif NOTES_HEADING not in content:
        content = f"{content}\n\n{NOTES_HEADING}\n"

    if not has_source_data:
        head, heading, tail = content.partition(NOTES_HEADING)
        tail = tail.lstrip("\n")
        content = f"{head}{heading}\n\n{NO_SOURCE_DATA_NOTE}\n{tail}"

    return content.rstrip() + "\n"


class WeeklyReflectionHandler(JobHandler[WeeklyReflectionInput]):
    """Generates and stores the draft reflection for one user-week."""

    job_type = JobType.WEEKLY_REFLECTION_GENERATION
    input_model = WeeklyReflectionInput

    def __init__(
        self,
        session_factory: SessionFactory = get_session,
        consolidation: ConsolidationService | None = None,
        llm: LLMGateway | None = None,
        max_attempts: int = settings.llm_max_attempts,
        retry_base_seconds: float = settings.llm_retry_base_seconds,
    ):
        self._session_factory = session_factory
        self._consolidation = consolidation or consolidation_service
        self._llm = llm or llm_gateway
        self._max_attempts = max(1, max_attempts)
        self._retry_base_seconds = retry_base_seconds

    def validate(self, payload: WeeklyReflectionInput) -> None:
        if payload.week_start.isoweekday() != 1:
            raise ValidationError(f"week_start {payload.week_start.isoformat()} is not a Monday")
        if payload.week_end != payload.week_start + timedelta(days=6):
            raise ValidationError("week_end must be the Sunday of the same ISO week")

    def dedup_key(self, payload: WeeklyReflectionInput) -> str:
        return IsoWeek.containing(payload.week_start).key

    async def already_done(self, session: AsyncSession, user_id: str, payload: WeeklyReflectionInput) -> bool:
        week = IsoWeek.containing(payload.week_start)
        return await _draft_exists(session, user_id, week)

    async def process(self, payload: WeeklyReflectionInput, context: JobContext) -> dict[str, Any]:
        user_id = context.user_id
        week = IsoWeek.containing(payload.week_start)

        await context.report(10, "Checking connected integrations")
        active_sources = await self._active_integrations(user_id, payload.include_integrations)
        if not active_sources:
            logger.info("No active integrations for user %s, generating %s with reduced confidence", user_id, week)

        await context.report(30, "Consolidating weekly activity")
        fetched = await self._consolidation.consolidate(
            user_id, payload.week_start, payload.week_end, payload.include_integrations
        )
        consolidation = await self._consolidation.load_week(user_id, week, source_ids=fetched.sources)
        reduced_confidence = not active_sources or not consolidation.available_sources

        await context.report(60, "Loading previous context")
        previous = await self._previous_context(user_id, week)

        await context.report(80, "Generating reflection")
        prompt = build_reflection_prompt(week, consolidation, previous)
        text = await self._generate(prompt)
        content = normalize_reflection(text, has_source_data=bool(consolidation.themes))

        await context.report(95, "Saving draft")
        draft = await self._save_draft(
            user_id=user_id,
            week=week,
            content=content,
            context=context,
            reduced_confidence=reduced_confidence,
        )

        logger.info("Stored draft %s for user %s, %s", draft.id, user_id, week)
        return {
            "draft_id": str(draft.id),
            "week_number": draft.week_number,
            "year": draft.year,
            "content": draft.content,
            "reduced_confidence": draft.reduced_confidence,
            "sources": consolidation.source_summary(),
        }

    async def _active_integrations(self, user_id: str, source_ids: list[str]) -> list[str]:
        if not source_ids:
            return []
        try:
            async with self._session_factory() as session:
                result = await session.execute(
                    select(IntegrationConnection.source_id).where(
                        IntegrationConnection.user_id == user_id,
                        IntegrationConnection.source_id.in_(source_ids),
                        IntegrationConnection.is_active.is_(True),
                    )
                )
                return list(result.scalars().all())
        except SQLAlchemyError as exc:
            raise PersistenceError(f"could not load integrations: {exc}") from exc

    async def _previous_context(self, user_id: str, week: IsoWeek) -> PreviousContext:
        try:
            async with self._session_factory() as session:
                previous_draft = (
                    await session.execute(
                        select(DraftReflection)
                        .where(
                            DraftReflection.user_id == user_id,
                            or_(
                                DraftReflection.year < week.year,
                                and_(DraftReflection.year == week.year, DraftReflection.week_number < week.week),
                            ),
                        )
                        .order_by(DraftReflection.year.desc(), DraftReflection.week_number.desc())
                        .limit(1)
                    )
                ).scalar_one_or_none()

                insight_query = select(AssessmentInsight.summary).where(AssessmentInsight.user_id == user_id)
                if previous_draft is not None:
                    insight_query = insight_query.where(AssessmentInsight.created_at > previous_draft.updated_at)
                insights = (
                    await session.execute(
                        insight_query.order_by(AssessmentInsight.created_at.desc()).limit(MAX_RECENT_INSIGHTS)
                    )
                ).scalars().all()
        except SQLAlchemyError as exc:
            raise PersistenceError(f"could not load previous context: {exc}") from exc

        return PreviousContext(
            reflection=previous_draft.content if previous_draft else None,
            insights=list(insights),
        )

    async def _generate(self, prompt: str) -> str:
        """Call the gateway, retrying transient failures with exponential backoff."""
        params = ModelParams(system=REFLECTION_SYSTEM_PROMPT)
        attempt = 1
        while True:
            try:
                return await self._llm.generate(prompt, params)
            except LLMError as exc:
                if not exc.transient:
                    raise
                if attempt >= self._max_attempts:
                    raise LLMError(
                        f"generation failed after {attempt} attempts: {exc.message}", transient=True
                    ) from exc
                delay = self._retry_base_seconds * 2 ** (attempt - 1)
                logger.warning(
                    "Transient LLM error (attempt %d/%d), retrying in %.1fs: %s",
                    attempt,
                    self._max_attempts,
                    delay,
                    exc.message,
                )
            await asyncio.sleep(delay)
            attempt += 1

    async def _save_draft(
        self,
        user_id: str,
        week: IsoWeek,
        content: str,
        context: JobContext,
        reduced_confidence: bool,
    ) -> DraftReflection:
        now = utc_now()
        try:
            async with self._session_factory() as session:
                # Another trigger may have finished this week since the operation was enqueued
                if await _draft_exists(session, user_id, week):
                    raise DuplicateError(f"a draft already exists for {week}")

                await upsert(
                    session,
                    DraftReflection,
                    values={
                        "id": uuid4(),
                        "user_id": user_id,
                        "week_number": week.week,
                        "year": week.year,
                        "week_start": week.start,
                        "week_end": week.end,
                        "content": content,
                        "source_operation_id": context.operation_id,
                        "generated_automatically": context.metadata.get("trigger") == "scheduled",
                        "reduced_confidence": reduced_confidence,
                        "created_at": now,
                        "updated_at": now,
                    },
                    conflict_columns=("user_id", "week_number", "year"),
                    update_columns=(
                        "content",
                        "source_operation_id",
                        "generated_automatically",
                        "reduced_confidence",
                        "updated_at",
                    ),
                )
                return (
                    await session.execute(
                        select(DraftReflection).where(
                            DraftReflection.user_id == user_id,
                            DraftReflection.week_number == week.week,
                            DraftReflection.year == week.year,
                        )
                    )
                ).scalar_one()
        except SQLAlchemyError as exc:
            raise PersistenceError(f"could not store draft for {week}: {exc}") from exc


async def _draft_exists(session: AsyncSession, user_id: str, week: IsoWeek) -> bool:
    result = await session.execute(
        select(DraftReflection.id).where(
            DraftReflection.user_id == user_id,
            DraftReflection.week_number == week.week,
            DraftReflection.year == week.year,
        )
    )
    return result.first() is not None
