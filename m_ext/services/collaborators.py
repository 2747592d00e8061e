"""
============================================================================
M Extension Engine v1.0.0
External Collaborators - Yield Source, Multiplier Store, Token Movement
============================================================================

Reliability Level: L6 Critical (Sovereign Tier)
Traceability: Every token movement is logged with account and amount

This module defines the interfaces the engine consumes at its boundary,
plus in-memory implementations used by tests, simulations and the CLI:

- YieldSourceReader: (source_index, timestamp) = read_source()
- MultiplierStore: publish(f64, ts) / read_current() -> (f64, ts)
- TokenLedger: mint / burn / transfer / balance_of / total_supply
- CustomYieldAdapter: index derivation for the CUSTOM yield variant

The in-memory implementations support snapshot()/restore() so that the
engine's atomic() unit of work can roll them back on failure.

============================================================================
"""

import logging
from dataclasses import dataclass
from typing import Dict, Optional, Protocol, Set, Tuple

from m_ext.accounting.constants import INDEX_SCALE
from m_ext.accounting.errors import ExternalCommitError, InvalidAmountError
from m_ext.accounting.records import IndexConfig

# Configure module logger
logger = logging.getLogger(__name__)


# =============================================================================
# Value Types
# =============================================================================

@dataclass(frozen=True)
class SourceReading:
    """Snapshot of the external yield source."""
    index: int
    timestamp: int


# =============================================================================
# Collaborator Interfaces
# =============================================================================

class YieldSourceReader(Protocol):
    """Read-only, externally owned yield source."""

    def read_source(self) -> SourceReading:
        ...


class MultiplierStore(Protocol):
    """External representation of the rebasing multiplier."""

    def publish(self, new_value: float, effective_timestamp: int) -> None:
        ...

    def read_current(self) -> Tuple[float, int]:
        ...


class TokenLedger(Protocol):
    """Token movement primitives, invoked with delegated authority."""

    def mint(self, destination: str, amount: int) -> None:
        ...

    def burn(self, source: str, amount: int) -> None:
        ...

    def transfer(self, source: str, destination: str, amount: int) -> None:
        ...

    def balance_of(self, account: str) -> int:
        ...

    def total_supply(self) -> int:
        ...

    def is_account_open(self, account: str) -> bool:
        ...


class CustomYieldAdapter(Protocol):
    """Index derivation supplied by a custom extension program."""

    def derive_index(self, config: IndexConfig, reading: SourceReading) -> int:
        ...

    def conversion_index(self, config: IndexConfig) -> int:
        ...


# =============================================================================
# In-Memory Implementations
# =============================================================================

class StaticYieldSource:
    """Yield source whose reading is set explicitly."""

    def __init__(self, index: int = INDEX_SCALE, timestamp: int = 0) -> None:
        self._reading = SourceReading(index=index, timestamp=timestamp)

    def read_source(self) -> SourceReading:
        return self._reading

    def advance(self, index: int, timestamp: int) -> None:
        self._reading = SourceReading(index=index, timestamp=timestamp)
        logger.debug("[EXT-SRC] Source advanced | index=%s | ts=%s", index, timestamp)


class InMemoryMultiplierStore:
    """
    Multiplier store held in memory.

    Attributes:
        fail_publish: Raise on the next publish() call
        apply_updates: When False, publish() succeeds but has no effect
                       (simulates an update that never lands)
        publish_count: Number of accepted publish() calls
    """

    def __init__(self, value: float = 1.0, timestamp: int = 0) -> None:
        self.value = value
        self.timestamp = timestamp
        self.fail_publish = False
        self.apply_updates = True
        self.publish_count = 0

    def publish(self, new_value: float, effective_timestamp: int) -> None:
        if self.fail_publish:
            self.fail_publish = False
            raise ExternalCommitError("multiplier store rejected the update")
        self.publish_count += 1
        if self.apply_updates:
            self.value = new_value
            self.timestamp = effective_timestamp

    def read_current(self) -> Tuple[float, int]:
        return self.value, self.timestamp


class InMemoryTokenLedger:
    """
    Token balances held in memory.

    Accounts must be opened before they can receive tokens; closing an
    account models a fee destination that was closed by its owner.
    """

    def __init__(self, name: str = "token") -> None:
        self.name = name
        self._balances: Dict[str, int] = {}
        self._open: Set[str] = set()
        self._supply = 0
        self.fail_next_mint = False

    # ------------------------------------------------------------------
    # Account lifecycle
    # ------------------------------------------------------------------

    def open_account(self, account: str) -> None:
        self._open.add(account)
        self._balances.setdefault(account, 0)

    def close_account(self, account: str) -> None:
        self._open.discard(account)

    def is_account_open(self, account: str) -> bool:
        return account in self._open

    # ------------------------------------------------------------------
    # Movements
    # ------------------------------------------------------------------

    def mint(self, destination: str, amount: int) -> None:
        if self.fail_next_mint:
            self.fail_next_mint = False
            raise ExternalCommitError(f"{self.name}: mint to {destination} failed")
        self._require_open(destination)
        self._require_amount(amount)
        self._balances[destination] += amount
        self._supply += amount
        logger.debug("[EXT-TOKEN] mint | token=%s | to=%s | amount=%s", self.name, destination, amount)

    def burn(self, source: str, amount: int) -> None:
        self._require_amount(amount)
        self._debit(source, amount)
        self._supply -= amount
        logger.debug("[EXT-TOKEN] burn | token=%s | from=%s | amount=%s", self.name, source, amount)

    def transfer(self, source: str, destination: str, amount: int) -> None:
        self._require_open(destination)
        self._require_amount(amount)
        self._debit(source, amount)
        self._balances[destination] += amount
        logger.debug(
            "[EXT-TOKEN] transfer | token=%s | from=%s | to=%s | amount=%s",
            self.name, source, destination, amount
        )

    def balance_of(self, account: str) -> int:
        return self._balances.get(account, 0)

    def total_supply(self) -> int:
        return self._supply

    # ------------------------------------------------------------------
    # Unit of work support
    # ------------------------------------------------------------------

    def snapshot(self) -> Tuple[Dict[str, int], Set[str], int]:
        return dict(self._balances), set(self._open), self._supply

    def restore(self, state: Tuple[Dict[str, int], Set[str], int]) -> None:
        balances, open_accounts, supply = state
        self._balances = dict(balances)
        self._open = set(open_accounts)
        self._supply = supply

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _require_open(self, account: str) -> None:
        if account not in self._open:
            raise ExternalCommitError(f"{self.name}: account {account} is not open")

    @staticmethod
    def _require_amount(amount: int) -> None:
        if isinstance(amount, bool) or not isinstance(amount, int) or amount < 0:
            raise InvalidAmountError(f"invalid token amount: {amount}")

    def _debit(self, account: str, amount: int) -> None:
        balance = self._balances.get(account, 0)
        if balance < amount:
            raise InvalidAmountError(
                f"{self.name}: balance {balance} of {account} below {amount}"
            )
        self._balances[account] = balance - amount


class FixedCustomAdapter:
    """CUSTOM adapter that follows the source index 1:1 (reference adapter)."""

    def __init__(self, conversion: Optional[int] = None) -> None:
        self._conversion = conversion

    def derive_index(self, config: IndexConfig, reading: SourceReading) -> int:
        return config.last_derived_index * reading.index // config.last_source_index

    def conversion_index(self, config: IndexConfig) -> int:
        if self._conversion is not None:
            return self._conversion
        return config.last_derived_index


__all__ = [
    "SourceReading",
    "YieldSourceReader",
    "MultiplierStore",
    "TokenLedger",
    "CustomYieldAdapter",
    "StaticYieldSource",
    "InMemoryMultiplierStore",
    "InMemoryTokenLedger",
    "FixedCustomAdapter",
]
