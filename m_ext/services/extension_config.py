"""
============================================================================
M Extension Engine v1.0.0
Extension Configuration - Environment Settings
============================================================================

Reliability Level: L6 Critical (Sovereign Tier)
Traceability: Configuration is logged on load (never secrets)

This module provides configuration management for one extension instance:
- Environment variable parsing with type safety
- Default values for optional configuration
- Fail-closed validation (EXT-CFG-001)

ENVIRONMENT VARIABLES:
    - EXT_YIELD_VARIANT: none | rebasing | crank | merkle_claims | custom
                         (default: rebasing)
    - EXT_FEE_BPS: Fee on yield in basis points, 0..10000 (default: 0)
    - EXT_POWER_MODE: decimal | float (default: decimal)
    - EXT_ADMIN_AUTHORITY: Extension admin identity (fee, excess and manager
                           administration; unset = those operations are refused)
    - EXT_EARN_AUTHORITY: Earn authority identity (required for crank and
                          merkle_claims)
    - EXT_WRAP_AUTHORITIES: Comma-separated wrap whitelist (empty = open)
    - EXT_JOURNAL_URL: SQLAlchemy URL of the event journal
                       (default: sqlite:///ext_journal.db)
    - EXT_JOURNAL_ENABLED: Persist audit events (default: true)

ERROR CODES:
    - EXT-CFG-001: Configuration missing or invalid

============================================================================
"""

from dataclasses import dataclass, field
from typing import List, Optional, Set
import logging
import os

from m_ext.accounting.constants import ONE_HUNDRED_PERCENT_BPS
from m_ext.logic.compounding_sync import PowerMode
from m_ext.logic.yield_variants import YieldVariant

# Configure module logger
logger = logging.getLogger(__name__)


# =============================================================================
# Error Codes
# =============================================================================

class ExtensionConfigErrorCode:
    """Configuration-specific error codes for audit logging."""
    CONFIG_INVALID = "EXT-CFG-001"


# =============================================================================
# Default Values
# =============================================================================

DEFAULT_YIELD_VARIANT = YieldVariant.REBASING.value
DEFAULT_FEE_BPS = 0
DEFAULT_POWER_MODE = PowerMode.DECIMAL.value
DEFAULT_JOURNAL_URL = "sqlite:///ext_journal.db"
DEFAULT_JOURNAL_ENABLED = True

MANUAL_VARIANTS = (YieldVariant.CRANK.value, YieldVariant.MERKLE_CLAIMS.value)


# =============================================================================
# Configuration Validation Exception
# =============================================================================

class ExtensionConfigurationError(Exception):
    """Raised at startup when extension configuration is invalid."""

    def __init__(self, message: str, error_code: str = ExtensionConfigErrorCode.CONFIG_INVALID):
        self.error_code = error_code
        self.message = message
        super().__init__(f"[{error_code}] {message}")


# =============================================================================
# ExtensionSettings Class
# =============================================================================

@dataclass
class ExtensionSettings:
    """
    Settings for one extension instance.

    ============================================================================
    CONFIGURATION PARAMETERS:
    ============================================================================
    - yield_variant: Distribution strategy name (default: rebasing)
    - fee_bps: Fee on yield for the rebasing variant (default: 0)
    - power_mode: Fractional power evaluation (default: decimal)
    - admin_authority: Identity allowed to run admin operations
    - earn_authority: Identity allowed to sync/claim for manual variants
    - wrap_authorities: Identities allowed to wrap/unwrap (empty = anyone)
    - journal_url: SQLAlchemy URL for the audit event journal
    - journal_enabled: Whether events are persisted
    ============================================================================

    Reliability Level: L6 Critical (Sovereign Tier)
    Side Effects: Logs configuration on validate
    """

    yield_variant: str = DEFAULT_YIELD_VARIANT
    fee_bps: int = DEFAULT_FEE_BPS
    power_mode: str = DEFAULT_POWER_MODE
    admin_authority: Optional[str] = None
    earn_authority: Optional[str] = None
    wrap_authorities: Set[str] = field(default_factory=set)
    journal_url: str = DEFAULT_JOURNAL_URL
    journal_enabled: bool = DEFAULT_JOURNAL_ENABLED

    @property
    def variant(self) -> YieldVariant:
        return YieldVariant(self.yield_variant)

    @property
    def power(self) -> PowerMode:
        return PowerMode(self.power_mode)

    def validate(self) -> None:
        """
        Validate configuration completeness.

        Raises:
            ExtensionConfigurationError: If any setting is missing or invalid
        """
        errors: List[str] = []

        valid_variants = [v.value for v in YieldVariant]
        if self.yield_variant not in valid_variants:
            errors.append(
                f"EXT_YIELD_VARIANT must be one of {valid_variants}, got: {self.yield_variant}"
            )

        if isinstance(self.fee_bps, bool) or not isinstance(self.fee_bps, int) \
                or not 0 <= self.fee_bps <= ONE_HUNDRED_PERCENT_BPS:
            errors.append(
                f"EXT_FEE_BPS must be an integer in 0..{ONE_HUNDRED_PERCENT_BPS}, got: {self.fee_bps}"
            )

        valid_modes = [m.value for m in PowerMode]
        if self.power_mode not in valid_modes:
            errors.append(f"EXT_POWER_MODE must be one of {valid_modes}, got: {self.power_mode}")

        if self.yield_variant in MANUAL_VARIANTS and not self.earn_authority:
            errors.append(
                f"EXT_EARN_AUTHORITY must be set for the {self.yield_variant} variant"
            )

        if self.journal_enabled and not self.journal_url.strip():
            errors.append("EXT_JOURNAL_URL must be set when EXT_JOURNAL_ENABLED is true")

        if errors:
            error_msg = "Extension configuration validation failed: " + "; ".join(errors)
            logger.error(f"[{ExtensionConfigErrorCode.CONFIG_INVALID}] {error_msg}")
            raise ExtensionConfigurationError(error_msg)

        logger.info(
            f"[EXT-CONFIG] Configuration validated | "
            f"variant={self.yield_variant} | "
            f"fee_bps={self.fee_bps} | "
            f"power_mode={self.power_mode} | "
            f"wrap_authorities_count={len(self.wrap_authorities)} | "
            f"journal_enabled={self.journal_enabled}"
        )

    @classmethod
    def from_environment(cls, validate: bool = True) -> "ExtensionSettings":
        """
        Load settings from environment variables.

        A malformed EXT_FEE_BPS is kept as-is so validation fails closed
        instead of silently falling back to a default fee.

        Raises:
            ExtensionConfigurationError: If validation is requested and fails
        """
        variant = os.environ.get("EXT_YIELD_VARIANT", DEFAULT_YIELD_VARIANT).lower().strip()

        fee_str = os.environ.get("EXT_FEE_BPS", str(DEFAULT_FEE_BPS)).strip()
        try:
            fee_bps = int(fee_str)
        except ValueError:
            logger.warning(f"[EXT-CONFIG] Invalid EXT_FEE_BPS value: {fee_str}")
            fee_bps = fee_str

        power_mode = os.environ.get("EXT_POWER_MODE", DEFAULT_POWER_MODE).lower().strip()

        admin_authority = os.environ.get("EXT_ADMIN_AUTHORITY", "").strip() or None
        earn_authority = os.environ.get("EXT_EARN_AUTHORITY", "").strip() or None

        wrap_authorities: Set[str] = set()
        for authority in os.environ.get("EXT_WRAP_AUTHORITIES", "").split(","):
            authority = authority.strip()
            if authority:
                wrap_authorities.add(authority)

        journal_url = os.environ.get("EXT_JOURNAL_URL", DEFAULT_JOURNAL_URL).strip()
        journal_enabled = os.environ.get("EXT_JOURNAL_ENABLED", "true").lower().strip() in (
            "true", "1", "yes", "on"
        )

        logger.info(
            f"[EXT-CONFIG] Loading configuration from environment | "
            f"EXT_YIELD_VARIANT={variant} | "
            f"EXT_FEE_BPS={fee_bps} | "
            f"EXT_POWER_MODE={power_mode} | "
            f"EXT_JOURNAL_ENABLED={journal_enabled}"
        )

        settings = cls(
            yield_variant=variant,
            fee_bps=fee_bps,
            power_mode=power_mode,
            admin_authority=admin_authority,
            earn_authority=earn_authority,
            wrap_authorities=wrap_authorities,
            journal_url=journal_url,
            journal_enabled=journal_enabled,
        )

        if validate:
            settings.validate()

        return settings

    def to_dict(self) -> dict:
        return {
            "yield_variant": self.yield_variant,
            "fee_bps": self.fee_bps,
            "power_mode": self.power_mode,
            "admin_authority": self.admin_authority,
            "earn_authority": self.earn_authority,
            "wrap_authorities": sorted(self.wrap_authorities),
            "journal_url": self.journal_url,
            "journal_enabled": self.journal_enabled,
        }


# =============================================================================
# Module-Level Settings Instance
# =============================================================================

# Global settings instance (lazy-loaded)
_settings_instance: Optional[ExtensionSettings] = None


def get_extension_settings(validate: bool = True) -> ExtensionSettings:
    """Settings singleton, loaded from the environment on first access."""
    global _settings_instance

    if _settings_instance is None:
        _settings_instance = ExtensionSettings.from_environment(validate=validate)

    return _settings_instance


def reset_extension_settings() -> None:
    """Clear the settings singleton (tests)."""
    global _settings_instance
    _settings_instance = None
    logger.debug("[EXT-CONFIG] Settings instance reset")
