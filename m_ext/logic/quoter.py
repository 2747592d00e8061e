"""
============================================================================
M Extension Engine v1.0.0
Quoter - Wrap / Unwrap Conversion Quotes
============================================================================

Converts between collateral (M) principal and extension principal via
their common amount unit, using the two indices cached at quote time.

Rounding policy (always favours the vault):
    exact-in  -> DOWN on both legs (user receives no more than backed)
    exact-out -> UP on both legs   (user pays no less than required)

============================================================================
"""

import logging
from enum import Enum
from typing import Optional

from m_ext.accounting.fixed_point_index import FixedPointIndex, Rounding

# Configure module logger
logger = logging.getLogger(__name__)


class WrapOperation(Enum):
    WRAP = "wrap"
    UNWRAP = "unwrap"


class Quoter:
    """
    Wrap/unwrap quotes at fixed indices.

    Args:
        source_index: Collateral token index (M principal -> amount)
        conversion_index: Extension index (ext principal -> amount)
    """

    def __init__(self, source_index: int, conversion_index: int) -> None:
        self.source_index = source_index
        self.conversion_index = conversion_index
        self._fpi = FixedPointIndex()

    def quote(
        self,
        operation: WrapOperation,
        principal: int,
        exact_out: bool = False,
        correlation_id: Optional[str] = None
    ) -> int:
        """
        Quote the other side of a wrap or unwrap.

        WRAP, exact in:    M principal in    -> ext principal out
        WRAP, exact out:   ext principal out -> M principal in
        UNWRAP, exact in:  ext principal in  -> M principal out
        UNWRAP, exact out: M principal out   -> ext principal in
        """
        rounding = Rounding.UP if exact_out else Rounding.DOWN

        if operation is WrapOperation.WRAP:
            if exact_out:
                from_index, to_index = self.conversion_index, self.source_index
            else:
                from_index, to_index = self.source_index, self.conversion_index
        else:
            if exact_out:
                from_index, to_index = self.source_index, self.conversion_index
            else:
                from_index, to_index = self.conversion_index, self.source_index

        amount = self._fpi.principal_to_amount(principal, from_index, rounding, correlation_id)
        quoted = self._fpi.amount_to_principal(amount, to_index, rounding, correlation_id)

        logger.debug(
            "[EXT-QUOTE] %s | exact_out=%s | principal=%s | amount=%s | quoted=%s | "
            "correlation_id=%s",
            operation.value, exact_out, principal, amount, quoted, correlation_id
        )
        return quoted

    def exact_in(self, operation: WrapOperation, principal: int) -> int:
        return self.quote(operation, principal, exact_out=False)

    def exact_out(self, operation: WrapOperation, principal: int) -> int:
        return self.quote(operation, principal, exact_out=True)
