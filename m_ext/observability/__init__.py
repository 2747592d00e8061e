"""
M Extension Engine - Observability Module

Prometheus metrics for index syncs, claims and solvency checks.
"""

from m_ext.observability.metrics import (
    record_sync,
    record_claim,
    record_solvency_failure,
    record_collateral_ratio,
)

__all__ = [
    "record_sync",
    "record_claim",
    "record_solvency_failure",
    "record_collateral_ratio",
]
