"""
============================================================================
M Extension Engine v1.0.0
Accounting Records - Index Config, Holder Claims, Managers, Vault
============================================================================

Reliability Level: L6 Critical (Sovereign Tier)
Integer Integrity: All balances and indices are u64 integers
Traceability: Records are mutated only inside atomic engine operations

This module defines the state records owned by one extension instance:
- IndexConfig: cached source/derived index pair, fee and timestamp
- HolderClaimRecord: per-holder claim cursor for manual distribution
- ManagerRecord: earn manager fee configuration (soft-deleted, never removed)
- MerkleClaimsState: claims root bookkeeping for merkle distribution
- VaultObservation: read-only snapshot of custodied collateral

OWNERSHIP:
    IndexConfig and ManagerRecord belong to the extension instance.
    HolderClaimRecord belongs to the extension instance and references its
    manager by id; reassignment updates the reference only.

============================================================================
"""

from dataclasses import dataclass, field
from typing import Optional

from m_ext.accounting.constants import (
    INDEX_SCALE,
    ONE_HUNDRED_PERCENT_BPS,
    U64_MAX,
)
from m_ext.accounting.errors import InvalidParamError
from m_ext.accounting.fixed_point_index import principal_to_amount_down


def validate_fee_bps(fee_bps: int) -> int:
    """
    Validate a fee in basis points (0..=10000).

    Raises:
        InvalidParamError: fee_bps is not an integer in range
    """
    if isinstance(fee_bps, bool) or not isinstance(fee_bps, int):
        raise InvalidParamError(f"fee_bps must be an integer, got {type(fee_bps).__name__}")
    if fee_bps < 0 or fee_bps > ONE_HUNDRED_PERCENT_BPS:
        raise InvalidParamError(
            f"fee_bps must be between 0 and {ONE_HUNDRED_PERCENT_BPS}, got {fee_bps}"
        )
    return fee_bps


@dataclass
class IndexConfig:
    """
    Cached index state for one extension instance.

    ============================================================================
    FIELDS:
    ============================================================================
    - last_source_index: source index observed at the last sync
    - last_derived_index: derived index committed at the last sync
    - fee_bps: fee on yield in basis points (0..=10000)
    - last_timestamp: effective timestamp of the last sync (seconds)
    ============================================================================

    Reliability Level: L6 Critical (Sovereign Tier)
    Input Constraints: last_derived_index, last_source_index >= INDEX_SCALE
    Side Effects: None (data container)
    """

    last_source_index: int
    last_derived_index: int = INDEX_SCALE
    fee_bps: int = 0
    last_timestamp: int = 0

    def __post_init__(self) -> None:
        validate_fee_bps(self.fee_bps)
        if self.last_derived_index < INDEX_SCALE:
            raise InvalidParamError(
                f"last_derived_index must be >= {INDEX_SCALE}, got {self.last_derived_index}"
            )
        if self.last_source_index < INDEX_SCALE or self.last_source_index > U64_MAX:
            raise InvalidParamError(
                f"last_source_index must be in {INDEX_SCALE}..={U64_MAX}, "
                f"got {self.last_source_index}"
            )

    @classmethod
    def initialize(cls, source_index: int, timestamp: int, fee_bps: int = 0) -> "IndexConfig":
        """Create the config at extension initialization (derived index = 1.0)."""
        return cls(
            last_source_index=source_index,
            last_derived_index=INDEX_SCALE,
            fee_bps=fee_bps,
            last_timestamp=timestamp,
        )


@dataclass
class ManagerRecord:
    """
    Earn manager entitled to a fee share of its holders' yield.

    Deactivation flips is_active; the record is never deleted because live
    HolderClaimRecords reference it.
    """

    manager_id: str
    fee_bps: int
    fee_destination: str
    is_active: bool = True

    def __post_init__(self) -> None:
        validate_fee_bps(self.fee_bps)


@dataclass
class HolderClaimRecord:
    """
    Per-holder claim cursor for crank and merkle distribution.

    Reliability Level: L6 Critical (Sovereign Tier)
    Input Constraints: last_claim_index >= INDEX_SCALE
    Side Effects: None (data container)

    Attributes:
        holder: Identity of the holder that opted in
        token_account: Holder's extension token account (record key)
        manager_id: Earn manager currently serving this holder
        last_claim_index: Global distribution index at the last claim
        last_claim_timestamp: Timestamp of that index
        recipient: Optional override account for reward payouts
        claimed_amount: Cumulative merkle claims (merkle variant only)
    """

    holder: str
    token_account: str
    manager_id: str
    last_claim_index: int = INDEX_SCALE
    last_claim_timestamp: int = 0
    recipient: Optional[str] = None
    claimed_amount: int = 0

    def __post_init__(self) -> None:
        if self.last_claim_index < INDEX_SCALE:
            raise InvalidParamError(
                f"last_claim_index must be >= {INDEX_SCALE}, got {self.last_claim_index}"
            )

    @property
    def payout_account(self) -> str:
        """Account that receives rewards (override if set)."""
        return self.recipient if self.recipient is not None else self.token_account


@dataclass
class MerkleClaimsState:
    """
    Claims root bookkeeping for the merkle distribution variant.

    max_claimable_amount and claimed_amount are cumulative over the life of
    the extension.
    """

    merkle_root: bytes = field(default=bytes(32))
    root_index: int = INDEX_SCALE
    max_claimable_amount: int = 0
    claimed_amount: int = 0

    def __post_init__(self) -> None:
        if len(self.merkle_root) != 32:
            raise InvalidParamError("merkle_root must be 32 bytes")
        if self.claimed_amount > self.max_claimable_amount:
            raise InvalidParamError("claimed_amount exceeds max_claimable_amount")


@dataclass(frozen=True)
class VaultObservation:
    """
    Read-only snapshot of the custodied collateral.

    Attributes:
        balance: Raw vault holding in collateral principal units
        index: Collateral token's own index at observation time (1.0 when
               the collateral does not rebase)
        observed_at: Observation timestamp (seconds)
    """

    balance: int
    index: int = INDEX_SCALE
    observed_at: int = 0

    @property
    def collateral_amount(self) -> int:
        """Collateral expressed in amount units, rounded down."""
        return principal_to_amount_down(self.balance, self.index)


__all__ = [
    "validate_fee_bps",
    "IndexConfig",
    "ManagerRecord",
    "HolderClaimRecord",
    "MerkleClaimsState",
    "VaultObservation",
]
