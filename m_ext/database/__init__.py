"""
M Extension Engine - Database Module

SQLAlchemy engine factory and the append-only audit event journal.
"""

from m_ext.database.event_journal import (
    EngineEvent,
    EventJournal,
    EventType,
    MemoryJournal,
)
from m_ext.database.session import create_journal_engine, get_journal_url

__all__ = [
    "EngineEvent",
    "EventJournal",
    "EventType",
    "MemoryJournal",
    "create_journal_engine",
    "get_journal_url",
]
