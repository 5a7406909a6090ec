"""Database layer for AdvanceWeekly."""

from advanceweekly.db.connection import SessionFactory, get_session, session_scope
from advanceweekly.db.upsert import upsert

__all__ = [
    "SessionFactory",
    "get_session",
    "session_scope",
    "upsert",
]
