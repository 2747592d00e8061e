"""
============================================================================
M Extension Engine v1.0.0
Event Journal - Append-Only Audit Trail
============================================================================

Reliability Level: SOVEREIGN TIER (Mission-Critical)
Side Effects: INSERT into ext_events

Every committed engine operation appends one event. Events are never
updated or deleted. Integers are serialised as strings in the JSON
payload so u64/u128 values survive any JSON consumer unchanged.

TABLE ext_events:
    id              VARCHAR(36)  primary key (uuid4)
    sequence        BIGINT       insertion order
    event_type      VARCHAR(64)
    payload         TEXT         JSON
    correlation_id  VARCHAR(64)
    created_at      VARCHAR(40)  ISO-8601 UTC

============================================================================
"""

import json
import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, List, Optional

from sqlalchemy import text
from sqlalchemy.engine import Engine

# Configure module logger
logger = logging.getLogger(__name__)


class EventType(Enum):
    SYNC_INDEX_UPDATE = "SYNC_INDEX_UPDATE"
    REWARDS_CLAIM = "REWARDS_CLAIM"
    FEES_CLAIMED = "FEES_CLAIMED"
    EXCESS_CLAIMED = "EXCESS_CLAIMED"
    WRAP = "WRAP"
    UNWRAP = "UNWRAP"
    MERKLE_CLAIM = "MERKLE_CLAIM"
    CLAIMS_ROOT_UPDATE = "CLAIMS_ROOT_UPDATE"


@dataclass
class EngineEvent:
    """One audit event."""
    event_type: EventType
    payload: Dict[str, Any]
    correlation_id: Optional[str] = None
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    event_id: str = field(default_factory=lambda: str(uuid.uuid4()))


class JournalJSONEncoder(json.JSONEncoder):
    """Serialises ints, Decimals and bytes losslessly as strings."""

    def encode(self, o: Any) -> str:
        return super().encode(self._normalise(o))

    def _normalise(self, o: Any) -> Any:
        if isinstance(o, bool) or o is None:
            return o
        if isinstance(o, (int, Decimal)):
            return str(o)
        if isinstance(o, bytes):
            return o.hex()
        if isinstance(o, Enum):
            return o.value
        if isinstance(o, dict):
            return {k: self._normalise(v) for k, v in o.items()}
        if isinstance(o, (list, tuple)):
            return [self._normalise(v) for v in o]
        return o


def encode_payload(payload: Dict[str, Any]) -> str:
    return json.dumps(payload, cls=JournalJSONEncoder, sort_keys=True)


# ============================================================================
# In-memory journal
# ============================================================================

class MemoryJournal:
    """Journal kept in a list; used by tests and when persistence is off."""

    def __init__(self) -> None:
        self.events: List[EngineEvent] = []

    def ensure_schema(self) -> None:
        pass

    def record(self, event: EngineEvent) -> None:
        self.events.append(event)

    def fetch(self, event_type: Optional[EventType] = None) -> List[Dict[str, Any]]:
        return [
            {
                "id": e.event_id,
                "event_type": e.event_type.value,
                "payload": json.loads(encode_payload(e.payload)),
                "correlation_id": e.correlation_id,
                "created_at": e.created_at.isoformat(),
            }
            for e in self.events
            if event_type is None or e.event_type is event_type
        ]


# ============================================================================
# SQL journal
# ============================================================================

class EventJournal:
    """
    SQL-backed append-only event journal.

    Reliability Level: SOVEREIGN TIER
    Side Effects: Writes to ext_events

    Example Usage:
        journal = EventJournal(create_journal_engine("sqlite://"))
        journal.ensure_schema()
        journal.record(EngineEvent(EventType.WRAP, {"ext_principal": 100}))
    """

    def __init__(self, engine: Engine) -> None:
        self.engine = engine

    def ensure_schema(self) -> None:
        with self.engine.begin() as conn:
            conn.execute(text("""
                CREATE TABLE IF NOT EXISTS ext_events (
                    id VARCHAR(36) PRIMARY KEY,
                    sequence BIGINT NOT NULL,
                    event_type VARCHAR(64) NOT NULL,
                    payload TEXT NOT NULL,
                    correlation_id VARCHAR(64),
                    created_at VARCHAR(40) NOT NULL
                )
            """))
        logger.debug("[EXT-JOURNAL] Schema ensured")

    def record(self, event: EngineEvent) -> None:
        """
        Append an event.

        Raises:
            SQLAlchemyError: the insert failed (the enclosing operation aborts)
        """
        try:
            with self.engine.begin() as conn:
                next_sequence = conn.execute(
                    text("SELECT COALESCE(MAX(sequence), 0) + 1 FROM ext_events")
                ).scalar()
                conn.execute(
                    text("""
                        INSERT INTO ext_events (
                            id, sequence, event_type, payload, correlation_id, created_at
                        ) VALUES (
                            :id, :sequence, :event_type, :payload, :correlation_id, :created_at
                        )
                    """),
                    {
                        "id": event.event_id,
                        "sequence": next_sequence,
                        "event_type": event.event_type.value,
                        "payload": encode_payload(event.payload),
                        "correlation_id": event.correlation_id,
                        "created_at": event.created_at.isoformat(),
                    }
                )
        except Exception as e:
            logger.error(
                "[EXT-JOURNAL-001] Failed to record event | type=%s | error=%s | "
                "correlation_id=%s",
                event.event_type.value, str(e), event.correlation_id
            )
            raise

        logger.debug(
            "[EXT-JOURNAL] Event recorded | type=%s | id=%s | correlation_id=%s",
            event.event_type.value, event.event_id, event.correlation_id
        )

    def fetch(self, event_type: Optional[EventType] = None) -> List[Dict[str, Any]]:
        query = (
            "SELECT id, event_type, payload, correlation_id, created_at "
            "FROM ext_events"
        )
        params: Dict[str, Any] = {}
        if event_type is not None:
            query += " WHERE event_type = :event_type"
            params["event_type"] = event_type.value
        query += " ORDER BY sequence"

        with self.engine.connect() as conn:
            rows = conn.execute(text(query), params).fetchall()

        return [
            {
                "id": row[0],
                "event_type": row[1],
                "payload": json.loads(row[2]),
                "correlation_id": row[3],
                "created_at": row[4],
            }
            for row in rows
        ]
