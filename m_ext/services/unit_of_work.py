"""
============================================================================
M Extension Engine v1.0.0
Unit of Work - All-or-Nothing Engine Operations
============================================================================

Reliability Level: L6 Critical (Sovereign Tier)

Every engine operation runs inside atomic(). Participants are snapshotted
on entry; if any exception escapes the block, each participant is
restored (in reverse order) and the exception is re-raised unchanged.
Nothing is recovered locally.

Supported participants:
    - objects exposing snapshot() / restore(state)
    - dataclass records (field values are copied)
    - dicts of records (membership and each record's fields)

============================================================================
"""

import copy
import logging
from contextlib import contextmanager
from dataclasses import is_dataclass
from typing import Any, Iterator, Optional

# Configure module logger
logger = logging.getLogger(__name__)


def _snapshot(participant: Any) -> Any:
    if hasattr(participant, "snapshot") and hasattr(participant, "restore"):
        return participant.snapshot()
    if isinstance(participant, dict):
        return (
            dict(participant),
            {key: _snapshot(value) for key, value in participant.items() if is_dataclass(value)},
        )
    if is_dataclass(participant):
        return copy.deepcopy(vars(participant))
    raise TypeError(f"cannot snapshot participant of type {type(participant).__name__}")


def _restore(participant: Any, state: Any) -> None:
    if hasattr(participant, "snapshot") and hasattr(participant, "restore"):
        participant.restore(state)
    elif isinstance(participant, dict):
        members, record_states = state
        participant.clear()
        participant.update(members)
        for key, record_state in record_states.items():
            _restore(members[key], record_state)
    else:
        # object.__setattr__ keeps this working for frozen dataclasses too
        for name, value in state.items():
            object.__setattr__(participant, name, value)


@contextmanager
def atomic(*participants: Any, operation: str = "operation",
           correlation_id: Optional[str] = None) -> Iterator[None]:
    """
    Run a block so that either all of its mutations apply or none do.

    Args:
        *participants: State touched by the block (None entries are skipped)
        operation: Operation name for logging
        correlation_id: Audit trail identifier

    Raises:
        Whatever the block raised, after restoring every participant
    """
    snapshots = [(p, _snapshot(p)) for p in participants if p is not None]
    try:
        yield
    except Exception as e:
        for participant, state in reversed(snapshots):
            _restore(participant, state)
        logger.warning(
            "[EXT-UOW] Operation aborted, state restored | operation=%s | "
            "error=%s | correlation_id=%s",
            operation, e, correlation_id
        )
        raise


__all__ = ["atomic"]
