"""
============================================================================
M Extension Engine v1.0.0
Error Taxonomy - Typed Failures for Every Engine Operation
============================================================================

Reliability Level: SOVEREIGN TIER (Mission-Critical)
Side Effects: None

Every fallible engine operation raises one of the exceptions below. None
of them are recovered inside the engine: the enclosing operation aborts,
its attempted mutations are rolled back, and the specific error reaches
the caller.

ERROR CODES:
    - EXT-001: NotAuthorized
    - EXT-002: InvalidParam
    - EXT-003: InvalidAccount
    - EXT-004: Active
    - EXT-005: NotActive
    - EXT-006: InsufficientCollateral
    - EXT-007: MathOverflow
    - EXT-008: MathUnderflow
    - EXT-009: TypeConversionError
    - EXT-010: InvalidInput
    - EXT-011: InvalidAmount
    - EXT-012: AlreadyClaimed
    - EXT-013: UnsupportedOperation
    - EXT-014: ExternalCommit

============================================================================
"""

from typing import Optional


class ExtErrorCode:
    """Engine error codes for audit logging."""
    NOT_AUTHORIZED = "EXT-001"
    INVALID_PARAM = "EXT-002"
    INVALID_ACCOUNT = "EXT-003"
    ACTIVE = "EXT-004"
    NOT_ACTIVE = "EXT-005"
    INSUFFICIENT_COLLATERAL = "EXT-006"
    MATH_OVERFLOW = "EXT-007"
    MATH_UNDERFLOW = "EXT-008"
    TYPE_CONVERSION = "EXT-009"
    INVALID_INPUT = "EXT-010"
    INVALID_AMOUNT = "EXT-011"
    ALREADY_CLAIMED = "EXT-012"
    UNSUPPORTED_OPERATION = "EXT-013"
    EXTERNAL_COMMIT = "EXT-014"


class ExtError(Exception):
    """
    Base exception for all engine failures.

    Reliability Level: SOVEREIGN TIER

    Attributes:
        error_code: Engine error code (EXT-XXX)
        message: Human-readable description
        correlation_id: Audit trail identifier, if known
    """

    error_code = "EXT-000"

    def __init__(self, message: str, correlation_id: Optional[str] = None):
        self.message = message
        self.correlation_id = correlation_id
        super().__init__(f"[{self.error_code}] {message}")


class NotAuthorizedError(ExtError):
    """Raised when the caller is not the expected authority (EXT-001)."""
    error_code = ExtErrorCode.NOT_AUTHORIZED


class InvalidParamError(ExtError):
    """Raised for malformed caller input, e.g. fee_bps > 10000 (EXT-002)."""
    error_code = ExtErrorCode.INVALID_PARAM


class InvalidAccountError(ExtError):
    """Raised when a record does not match the expected account (EXT-003)."""
    error_code = ExtErrorCode.INVALID_ACCOUNT


class ActiveError(ExtError):
    """Raised when an operation requires an inactive record (EXT-004)."""
    error_code = ExtErrorCode.ACTIVE


class NotActiveError(ExtError):
    """Raised when an operation requires an active record (EXT-005)."""
    error_code = ExtErrorCode.NOT_ACTIVE


class InsufficientCollateralError(ExtError):
    """Raised when the solvency invariant is or would be violated (EXT-006)."""
    error_code = ExtErrorCode.INSUFFICIENT_COLLATERAL


class MathOverflowError(ExtError):
    """Raised when an intermediate result exceeds its width (EXT-007)."""
    error_code = ExtErrorCode.MATH_OVERFLOW


class MathUnderflowError(ExtError):
    """Raised on negative intermediates or division by zero (EXT-008)."""
    error_code = ExtErrorCode.MATH_UNDERFLOW


class TypeConversionError(ExtError):
    """Raised when a value cannot be narrowed to 64 bits (EXT-009)."""
    error_code = ExtErrorCode.TYPE_CONVERSION


class InvalidInputError(ExtError):
    """Raised on domain precondition violations during sync (EXT-010)."""
    error_code = ExtErrorCode.INVALID_INPUT


class InvalidAmountError(ExtError):
    """Raised when a wrap/unwrap amount is zero (EXT-011)."""
    error_code = ExtErrorCode.INVALID_AMOUNT


class AlreadyClaimedError(ExtError):
    """Raised when a holder has already claimed at this index (EXT-012)."""
    error_code = ExtErrorCode.ALREADY_CLAIMED


class UnsupportedOperationError(ExtError):
    """Raised when the yield variant does not support an operation (EXT-013)."""
    error_code = ExtErrorCode.UNSUPPORTED_OPERATION


class ExternalCommitError(ExtError):
    """Raised when the external multiplier store rejects an update (EXT-014)."""
    error_code = ExtErrorCode.EXTERNAL_COMMIT


__all__ = [
    "ExtErrorCode",
    "ExtError",
    "NotAuthorizedError",
    "InvalidParamError",
    "InvalidAccountError",
    "ActiveError",
    "NotActiveError",
    "InsufficientCollateralError",
    "MathOverflowError",
    "MathUnderflowError",
    "TypeConversionError",
    "InvalidInputError",
    "InvalidAmountError",
    "AlreadyClaimedError",
    "UnsupportedOperationError",
    "ExternalCommitError",
]
