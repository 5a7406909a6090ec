"""Pytest configuration and fixtures for AdvanceWeekly tests."""

import os
import tempfile
from unittest.mock import AsyncMock, MagicMock

# Set test environment variables BEFORE importing app modules
# This ensures the Settings singleton loads with test values
_TEST_DB_DIR = tempfile.mkdtemp(prefix="advanceweekly-test-")
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{_TEST_DB_DIR}/advanceweekly.db"
os.environ["ANTHROPIC_API_KEY"] = "test-anthropic-key"
os.environ["LLM_RETRY_BASE_SECONDS"] = "0"

import pytest
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlmodel import SQLModel

import advanceweekly.models  # noqa: F401  registers tables
from advanceweekly.db import session_scope
from advanceweekly.handlers import CareerPlanHandler, HandlerRegistry, WeeklyReflectionHandler
from advanceweekly.integrations import ThemeCategory
from advanceweekly.jobs import HourlyReflectionChecker, JobProcessor, OperationService
from advanceweekly.services import ConsolidationService, PreferenceService
from tests.fakes import REFLECTION_TEXT, FailingAdapter, StaticAdapter, at


@pytest.fixture
async def db_engine(tmp_path):
    """File-backed SQLite engine so concurrent sessions use separate connections."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}", echo=False)
    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(db_engine):
    """``get_session``-style factory bound to the test database."""
    return session_scope(async_sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False))


@pytest.fixture
def fetch_all(session_factory):
    """Read every row of a model with a fresh session."""

    async def _fetch(model, *criteria):
        async with session_factory() as session:
            result = await session.execute(select(model).where(*criteria))
            return list(result.scalars().all())

    return _fetch


@pytest.fixture
def add_rows(session_factory):
    """Persist model instances."""

    async def _add(*rows):
        async with session_factory() as session:
            session.add_all(rows)
        return rows

    return _add


@pytest.fixture
def test_user_id(faker):
    """Generate a unique user ID for test isolation."""
    return f"user-{faker.uuid4()}"


@pytest.fixture
def fake_llm():
    """LLM gateway double returning a well-formed reflection."""
    llm = MagicMock()
    llm.generate = AsyncMock(return_value=REFLECTION_TEXT)
    return llm


@pytest.fixture
def adapter_factories():
    """Adapters for calendar and todoist with a week of activity, github always down."""
    calendar = StaticAdapter(
        "google_calendar",
        [
            {"id": "e2", "text": "Architecture review (6 attendees) [key meeting]", "at": at(14, 15)},
            {"id": "e1", "text": "1:1 with manager [key meeting]", "at": at(12, 10)},
        ],
        ThemeCategory.MEETINGS,
    )
    todoist = StaticAdapter(
        "todoist",
        [{"id": "t1", "text": "Completed: Write rollout plan", "at": at(13, 9)}],
        ThemeCategory.TASKS,
    )
    return {
        "google_calendar": lambda conn: calendar,
        "todoist": lambda conn: todoist,
        "github": lambda conn: FailingAdapter("github"),
    }


@pytest.fixture
def consolidation(session_factory, adapter_factories):
    return ConsolidationService(session_factory=session_factory, adapter_factories=adapter_factories)


@pytest.fixture
def weekly_handler(session_factory, consolidation, fake_llm):
    return WeeklyReflectionHandler(
        session_factory=session_factory,
        consolidation=consolidation,
        llm=fake_llm,
        max_attempts=3,
        retry_base_seconds=0,
    )


@pytest.fixture
def registry(weekly_handler, fake_llm):
    return HandlerRegistry([weekly_handler, CareerPlanHandler(llm=fake_llm)])


@pytest.fixture
def operations(session_factory, registry):
    return OperationService(session_factory=session_factory, registry=registry)


@pytest.fixture
def processor(operations, registry):
    return JobProcessor(operations=operations, registry=registry, poll_interval_seconds=0.01)


@pytest.fixture
def preferences(session_factory):
    return PreferenceService(session_factory=session_factory)


@pytest.fixture
def checker(operations, preferences):
    return HourlyReflectionChecker(operations=operations, preferences=preferences)
