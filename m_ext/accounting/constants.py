# ============================================================================
# M Extension Engine v1.0.0
# Accounting Constants
# ============================================================================
#
# Reliability Level: SOVEREIGN TIER (Mission-Critical)
# Purpose: Fixed constants shared by every index and collateral calculation
#
# SOVEREIGN MANDATE:
#   - These values are part of the accounting contract and are NOT
#     configurable at runtime
#   - Index "1.0" is represented by INDEX_SCALE (10^12)
#
# ============================================================================

from decimal import Decimal


# Index scale: an index of INDEX_SCALE means a multiplier of exactly 1.0
INDEX_SCALE = 1_000_000_000_000
INDEX_SCALE_DECIMAL = Decimal(INDEX_SCALE)
INDEX_SCALE_FLOAT = 1e12

# Fee basis points: 10000 bps = 100%
ONE_HUNDRED_PERCENT_BPS = 10_000
ONE_HUNDRED_PERCENT_DECIMAL = Decimal(ONE_HUNDRED_PERCENT_BPS)

# Slack absorbed by the solvency check (units of the collateral token)
SOLVENCY_TOLERANCE = 2

# Source indices above this ceiling are treated as corrupted input
SOURCE_INDEX_CEILING = 100 * INDEX_SCALE

# Integer widths emulated by the checked arithmetic
U64_MAX = 2 ** 64 - 1
U128_MAX = 2 ** 128 - 1
