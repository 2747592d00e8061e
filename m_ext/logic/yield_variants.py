"""
============================================================================
M Extension Engine v1.0.0
Yield Variants - One Engine, Five Distribution Strategies
============================================================================

Reliability Level: SOVEREIGN TIER (Mission-Critical)

A single engine is parameterised by a YieldStrategy. The strategy only
decides how the index is advanced and committed, and at which index the
extension supply converts to collateral amount. CompoundingSync,
SolvencyGuard and ClaimLedger are shared by every variant.

    NONE           no yield; 1:1 conversion; excess claimable by admin
    REBASING       fee-adjusted compounding, committed via the publisher
    CRANK          fee-free index, holder claims minted by earn authority
    MERKLE_CLAIMS  fee-free index, holder claims via published roots
    CUSTOM         index derived by an external adapter

============================================================================
"""

import logging
from dataclasses import dataclass, replace
from enum import Enum
from typing import Optional

from m_ext.accounting.constants import INDEX_SCALE, U64_MAX
from m_ext.accounting.errors import InvalidInputError, TypeConversionError
from m_ext.accounting.fixed_point_index import index_to_multiplier
from m_ext.accounting.records import IndexConfig
from m_ext.logic.compounding_sync import CompoundingSync
from m_ext.logic.multiplier_publisher import MultiplierPublisher
from m_ext.logic.solvency_guard import SolvencyGuard
from m_ext.services.collaborators import CustomYieldAdapter, SourceReading

# Configure module logger
logger = logging.getLogger(__name__)


class YieldVariant(Enum):
    NONE = "none"
    REBASING = "rebasing"
    CRANK = "crank"
    MERKLE_CLAIMS = "merkle_claims"
    CUSTOM = "custom"


@dataclass(frozen=True)
class SyncOutcome:
    """Result of advancing the index for any variant."""
    variant: YieldVariant
    derived_index: int
    source_index: int
    timestamp: int
    changed: bool

    @property
    def multiplier(self) -> float:
        return index_to_multiplier(self.derived_index)


class YieldStrategy:
    """
    Base strategy. Capability flags select which engine operations the
    variant supports; unsupported ones are rejected by the engine.
    """

    variant = YieldVariant.NONE
    requires_sync_authority = False
    supports_holder_claims = False
    supports_merkle_claims = False
    supports_fee_claims = False
    supports_excess_claims = False
    supports_fee_config = False

    def sync(
        self,
        config: IndexConfig,
        reading: SourceReading,
        outstanding_principal: int,
        collateral: int,
        correlation_id: Optional[str] = None
    ) -> SyncOutcome:
        raise NotImplementedError

    def conversion_index(self, config: IndexConfig) -> int:
        """Index at which extension principal converts to amount."""
        return INDEX_SCALE

    def distribution_index(self, config: IndexConfig) -> int:
        """Global index holder claims are measured against."""
        return config.last_derived_index

    def _unchanged(self, config: IndexConfig) -> SyncOutcome:
        return SyncOutcome(
            variant=self.variant,
            derived_index=config.last_derived_index,
            source_index=config.last_source_index,
            timestamp=config.last_timestamp,
            changed=False,
        )


class NoYieldStrategy(YieldStrategy):
    """Extension that passes no yield on; accrued yield is excess collateral."""

    variant = YieldVariant.NONE
    supports_excess_claims = True

    def sync(self, config, reading, outstanding_principal, collateral, correlation_id=None):
        return self._unchanged(config)


class RebasingStrategy(YieldStrategy):
    """Fee-adjusted compounding committed through the multiplier publisher."""

    variant = YieldVariant.REBASING
    supports_fee_claims = True
    supports_fee_config = True

    def __init__(self, publisher: MultiplierPublisher) -> None:
        self.publisher = publisher

    def sync(self, config, reading, outstanding_principal, collateral, correlation_id=None):
        result = self.publisher.sync(
            config, reading, outstanding_principal, collateral, correlation_id
        )
        return SyncOutcome(
            variant=self.variant,
            derived_index=result.derived_index,
            source_index=result.source_index,
            timestamp=result.timestamp,
            changed=result.changed,
        )

    def conversion_index(self, config: IndexConfig) -> int:
        return config.last_derived_index


class ManualDistributionStrategy(YieldStrategy):
    """
    Fee-free index advanced by the earn authority. Extension balances do
    not rebase; holders receive yield as minted rewards instead.
    """

    requires_sync_authority = True

    def __init__(self, variant: YieldVariant, compounding: Optional[CompoundingSync] = None) -> None:
        if variant not in (YieldVariant.CRANK, YieldVariant.MERKLE_CLAIMS):
            raise ValueError(f"{variant} is not a manual distribution variant")
        self.variant = variant
        self.supports_holder_claims = variant is YieldVariant.CRANK
        self.supports_merkle_claims = variant is YieldVariant.MERKLE_CLAIMS
        self.compounding = compounding or CompoundingSync()

    def sync(self, config, reading, outstanding_principal, collateral, correlation_id=None):
        if reading.index == config.last_source_index and reading.timestamp == config.last_timestamp:
            return self._unchanged(config)

        new_derived = self.compounding.compute_unscaled(
            config.last_derived_index, config.last_source_index, reading.index, correlation_id
        )
        config.last_source_index = reading.index
        config.last_derived_index = new_derived
        config.last_timestamp = reading.timestamp

        logger.info(
            "[EXT-SYNC] Distribution index advanced | variant=%s | index=%s | ts=%s | "
            "correlation_id=%s",
            self.variant.value, new_derived, reading.timestamp, correlation_id
        )
        return SyncOutcome(
            variant=self.variant,
            derived_index=new_derived,
            source_index=reading.index,
            timestamp=reading.timestamp,
            changed=True,
        )


class CustomStrategy(YieldStrategy):
    """Index derivation delegated to an adapter; guard and cache stay here."""

    variant = YieldVariant.CUSTOM

    def __init__(self, adapter: CustomYieldAdapter, guard: Optional[SolvencyGuard] = None) -> None:
        self.adapter = adapter
        self.guard = guard or SolvencyGuard()

    def sync(self, config, reading, outstanding_principal, collateral, correlation_id=None):
        if reading.index == config.last_source_index and reading.timestamp == config.last_timestamp:
            return self._unchanged(config)
        if reading.index < config.last_source_index:
            raise InvalidInputError(
                f"source index {reading.index} below last {config.last_source_index}",
                correlation_id
            )

        new_derived = self.adapter.derive_index(config, reading)
        if new_derived < config.last_derived_index:
            raise InvalidInputError(
                f"adapter index {new_derived} below last {config.last_derived_index}",
                correlation_id
            )
        if new_derived > U64_MAX:
            raise TypeConversionError(f"adapter index {new_derived} does not fit in u64", correlation_id)

        candidate = replace(
            config,
            last_source_index=reading.index,
            last_derived_index=new_derived,
            last_timestamp=reading.timestamp,
        )
        self.guard.check(
            self.conversion_index(candidate), outstanding_principal, collateral,
            operation="sync", correlation_id=correlation_id
        )

        config.last_source_index = candidate.last_source_index
        config.last_derived_index = candidate.last_derived_index
        config.last_timestamp = candidate.last_timestamp
        return SyncOutcome(
            variant=self.variant,
            derived_index=new_derived,
            source_index=reading.index,
            timestamp=reading.timestamp,
            changed=True,
        )

    def conversion_index(self, config: IndexConfig) -> int:
        return self.adapter.conversion_index(config)
