"""
============================================================================
M Extension Engine v1.0.0
Prometheus Metrics - Engine Observability
============================================================================

Reliability Level: SOVEREIGN TIER (Mission-Critical)
Input Constraints: Index and balance values are integers
Side Effects: Updates Prometheus metrics registry

METRICS EXPOSED
---------------
- ext_index_syncs_total: Counter of sync attempts by variant and outcome
- ext_derived_index: Gauge of the last committed derived index (as 1.0 ratio)
- ext_claims_total: Counter of holder claims by outcome
- ext_claim_fee_units_total: Counter of fee units paid to earn managers
- ext_solvency_failures_total: Counter of solvency rejections by operation
- ext_collateral_ratio: Gauge of collateral / requirement after a check

ZERO-FLOAT MANDATE
------------------
Indices and balances are converted to float ONLY at the Prometheus
boundary. Engine calculations remain integer.

============================================================================
"""

import logging
from typing import Optional

from prometheus_client import Counter, Gauge

from m_ext.accounting.constants import INDEX_SCALE_FLOAT

# Configure module logger
logger = logging.getLogger(__name__)


# ============================================================================
# PROMETHEUS METRICS DEFINITIONS
# ============================================================================

INDEX_SYNCS = Counter(
    "ext_index_syncs_total",
    "Total number of index sync attempts",
    ["variant", "outcome"]
)

DERIVED_INDEX_GAUGE = Gauge(
    "ext_derived_index",
    "Last committed derived index as a multiplier (1.0 == 10^12)"
)

CLAIMS = Counter(
    "ext_claims_total",
    "Total number of holder reward claims",
    ["outcome"]
)

CLAIM_FEE_UNITS = Counter(
    "ext_claim_fee_units_total",
    "Total fee units minted to earn managers"
)

SOLVENCY_FAILURES = Counter(
    "ext_solvency_failures_total",
    "Total number of solvency check rejections",
    ["operation"]
)

COLLATERAL_RATIO_GAUGE = Gauge(
    "ext_collateral_ratio",
    "Collateral divided by required collateral at the last solvency check"
)


# ============================================================================
# METRIC UPDATE FUNCTIONS
# ============================================================================

def record_sync(
    variant: str,
    outcome: str,
    derived_index: Optional[int] = None,
    correlation_id: Optional[str] = None
) -> None:
    """
    Record an index sync attempt.

    Args:
        variant: Yield variant name (e.g. "rebasing")
        outcome: "committed", "unchanged" or "rejected"
        derived_index: Committed derived index, if any
        correlation_id: Optional tracking ID
    """
    try:
        INDEX_SYNCS.labels(variant=variant, outcome=outcome).inc()
        if derived_index is not None:
            DERIVED_INDEX_GAUGE.set(derived_index / INDEX_SCALE_FLOAT)
        logger.debug(
            "Metric: index_sync | variant=%s | outcome=%s | correlation_id=%s",
            variant, outcome, correlation_id
        )
    except Exception as e:
        logger.error("[OBS-001] Failed to record index_sync metric | error=%s", str(e))


def record_claim(
    outcome: str,
    fee: int = 0,
    correlation_id: Optional[str] = None
) -> None:
    """Record a holder claim and the fee units it paid."""
    try:
        CLAIMS.labels(outcome=outcome).inc()
        if fee > 0:
            CLAIM_FEE_UNITS.inc(fee)
        logger.debug(
            "Metric: claim | outcome=%s | fee=%s | correlation_id=%s",
            outcome, fee, correlation_id
        )
    except Exception as e:
        logger.error("[OBS-002] Failed to record claim metric | error=%s", str(e))


def record_solvency_failure(operation: str) -> None:
    """Record a solvency rejection for the given operation."""
    try:
        SOLVENCY_FAILURES.labels(operation=operation).inc()
    except Exception as e:
        logger.error("[OBS-003] Failed to record solvency metric | error=%s", str(e))


def record_collateral_ratio(collateral: int, required: int) -> None:
    """Record collateral / required; skipped when nothing is required."""
    if required <= 0:
        return
    try:
        COLLATERAL_RATIO_GAUGE.set(collateral / required)
    except Exception as e:
        logger.error("[OBS-004] Failed to record collateral ratio | error=%s", str(e))
