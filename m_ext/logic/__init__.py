"""
M Extension Engine - Logic Module

Index compounding, solvency enforcement, multiplier commits, holder
claims and the yield variant strategies built on them.
"""

from m_ext.logic.compounding_sync import CompoundingSync, PowerMode, compute_derived_index
from m_ext.logic.solvency_guard import SolvencyGuard, SolvencyReport
from m_ext.logic.multiplier_publisher import MultiplierPublisher, PublishResult
from m_ext.logic.claim_ledger import ClaimLedger, ClaimResult
from m_ext.logic.merkle_claims import (
    MerkleClaimsLedger,
    build_merkle_tree,
    hash_leaf,
    verify_proof,
)
from m_ext.logic.quoter import Quoter, WrapOperation
from m_ext.logic.yield_variants import (
    YieldVariant,
    YieldStrategy,
    SyncOutcome,
    NoYieldStrategy,
    RebasingStrategy,
    ManualDistributionStrategy,
    CustomStrategy,
)

__all__ = [
    "CompoundingSync",
    "PowerMode",
    "compute_derived_index",
    "SolvencyGuard",
    "SolvencyReport",
    "MultiplierPublisher",
    "PublishResult",
    "ClaimLedger",
    "ClaimResult",
    "MerkleClaimsLedger",
    "build_merkle_tree",
    "hash_leaf",
    "verify_proof",
    "Quoter",
    "WrapOperation",
    "YieldVariant",
    "YieldStrategy",
    "SyncOutcome",
    "NoYieldStrategy",
    "RebasingStrategy",
    "ManualDistributionStrategy",
    "CustomStrategy",
]
