"""
============================================================================
M Extension Engine v1.0.0
Database Session - SQLAlchemy Engine for the Event Journal
============================================================================

Reliability Level: SOVEREIGN TIER (Mission-Critical)
Input Constraints: SQLAlchemy URL via EXT_JOURNAL_URL
Side Effects: Database connections

The journal is append-only: the engine issues INSERT and SELECT only.

============================================================================
"""

import os
from typing import Optional

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.pool import StaticPool

DEFAULT_JOURNAL_URL = "sqlite:///ext_journal.db"


def get_journal_url() -> str:
    """
    Journal connection URL from the environment.

    Environment Variables:
        EXT_JOURNAL_URL: SQLAlchemy URL (default: sqlite:///ext_journal.db)
    """
    return os.getenv("EXT_JOURNAL_URL", DEFAULT_JOURNAL_URL)


def _is_sqlite_memory(url: str) -> bool:
    return url in ("sqlite://", "sqlite:///:memory:") or "mode=memory" in url


def create_journal_engine(url: Optional[str] = None) -> Engine:
    """
    Create the journal engine.

    In-memory SQLite shares a single connection so every statement sees
    the same database; file and server databases use the default pool.
    """
    url = url or get_journal_url()
    echo = os.getenv("EXT_DB_ECHO", "false").lower() == "true"

    if _is_sqlite_memory(url):
        return create_engine(
            url,
            poolclass=StaticPool,
            connect_args={"check_same_thread": False},
            echo=echo,
        )

    return create_engine(url, pool_pre_ping=True, echo=echo)
