# ============================================================================
# M Extension Engine v1.0.0
# Accounting Module - Index Arithmetic and State Records
# ============================================================================
#
# Reliability Level: SOVEREIGN TIER (Mission-Critical)
# Purpose: Fixed-point conversions, error taxonomy and owned records
#
# Components:
#   - FixedPointIndex: amount <-> principal conversion with checked math
#   - IndexConfig / HolderClaimRecord / ManagerRecord: owned state
#   - VaultObservation: read-only collateral snapshot
#   - ExtError hierarchy: typed failures (EXT-001 .. EXT-014)
#
# ============================================================================

from m_ext.accounting.constants import (
    INDEX_SCALE,
    ONE_HUNDRED_PERCENT_BPS,
    SOLVENCY_TOLERANCE,
    SOURCE_INDEX_CEILING,
)
from m_ext.accounting.fixed_point_index import (
    FixedPointIndex,
    Rounding,
    amount_to_principal,
    principal_to_amount,
    multiplier_to_index,
    index_to_multiplier,
)
from m_ext.accounting.records import (
    IndexConfig,
    HolderClaimRecord,
    ManagerRecord,
    MerkleClaimsState,
    VaultObservation,
)

__all__ = [
    # Constants
    'INDEX_SCALE',
    'ONE_HUNDRED_PERCENT_BPS',
    'SOLVENCY_TOLERANCE',
    'SOURCE_INDEX_CEILING',
    # Fixed Point Index
    'FixedPointIndex',
    'Rounding',
    'amount_to_principal',
    'principal_to_amount',
    'multiplier_to_index',
    'index_to_multiplier',
    # Records
    'IndexConfig',
    'HolderClaimRecord',
    'ManagerRecord',
    'MerkleClaimsState',
    'VaultObservation',
]
