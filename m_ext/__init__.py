# ============================================================================
# M Extension Engine v1.0.0
# Index-Based Yield Accounting for Extension Tokens
# ============================================================================
#
# Reliability Level: SOVEREIGN TIER (Mission-Critical)
#
# Subpackages:
#   - accounting: fixed-point index math, records, error taxonomy
#   - logic: compounding, solvency, publishing, claims, yield variants
#   - services: engine orchestration, configuration, collaborators
#   - database: audit event journal (SQLAlchemy)
#   - observability: Prometheus metrics
#
# ============================================================================

__version__ = "1.0.0"
