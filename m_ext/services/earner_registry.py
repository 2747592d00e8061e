"""
============================================================================
M Extension Engine v1.0.0
Earner Registry - Earn Manager and Holder Administration
============================================================================

Reliability Level: L6 Critical (Sovereign Tier)
Side Effects: Mutates ManagerRecord / HolderClaimRecord maps

Managers are soft-deleted (is_active = False), never removed, because
live HolderClaimRecords reference them. Holders served by an inactive
manager can be reassigned or removed as orphans.

Error Codes:
    - EXT-001: NotAuthorized (wrong manager or holder)
    - EXT-002: InvalidParam (fee bound)
    - EXT-003: InvalidAccount (unknown or duplicate record)
    - EXT-004: Active (manager still active for orphan removal)
    - EXT-005: NotActive (manager inactive)

============================================================================
"""

import logging
from typing import Dict, List, Optional

from m_ext.accounting.constants import INDEX_SCALE
from m_ext.accounting.errors import (
    ActiveError,
    InvalidAccountError,
    NotActiveError,
    NotAuthorizedError,
)
from m_ext.accounting.records import HolderClaimRecord, ManagerRecord, validate_fee_bps

# Configure module logger
logger = logging.getLogger(__name__)


class EarnerRegistry:
    """
    Owns the manager and holder records of one extension instance.

    Example Usage:
        registry = EarnerRegistry()
        registry.add_manager("mgr-1", fee_bps=500, fee_destination="mgr-1-fees")
        registry.add_earner("mgr-1", "alice", "alice-ext", index=INDEX_SCALE, timestamp=0)
    """

    def __init__(self) -> None:
        self.managers: Dict[str, ManagerRecord] = {}
        self.earners: Dict[str, HolderClaimRecord] = {}

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    def get_manager(self, manager_id: str) -> ManagerRecord:
        manager = self.managers.get(manager_id)
        if manager is None:
            raise InvalidAccountError(f"unknown earn manager {manager_id}")
        return manager

    def get_earner(self, token_account: str) -> HolderClaimRecord:
        record = self.earners.get(token_account)
        if record is None:
            raise InvalidAccountError(f"unknown earner account {token_account}")
        return record

    def earners_of(self, manager_id: str) -> List[HolderClaimRecord]:
        return [r for r in self.earners.values() if r.manager_id == manager_id]

    # ------------------------------------------------------------------
    # Manager administration (extension authority)
    # ------------------------------------------------------------------

    def add_manager(self, manager_id: str, fee_bps: int, fee_destination: str) -> ManagerRecord:
        validate_fee_bps(fee_bps)
        if manager_id in self.managers:
            raise InvalidAccountError(f"earn manager {manager_id} already exists")

        manager = ManagerRecord(manager_id=manager_id, fee_bps=fee_bps, fee_destination=fee_destination)
        self.managers[manager_id] = manager
        logger.info(
            "[EXT-REG] Earn manager added | manager=%s | fee_bps=%s | destination=%s",
            manager_id, fee_bps, fee_destination
        )
        return manager

    def configure_manager(
        self,
        manager_id: str,
        fee_bps: Optional[int] = None,
        fee_destination: Optional[str] = None
    ) -> ManagerRecord:
        manager = self.get_manager(manager_id)
        if not manager.is_active:
            raise NotActiveError(f"earn manager {manager_id} is not active")
        if fee_bps is not None:
            manager.fee_bps = validate_fee_bps(fee_bps)
        if fee_destination is not None:
            manager.fee_destination = fee_destination
        logger.info(
            "[EXT-REG] Earn manager configured | manager=%s | fee_bps=%s | destination=%s",
            manager_id, manager.fee_bps, manager.fee_destination
        )
        return manager

    def deactivate_manager(self, manager_id: str) -> ManagerRecord:
        manager = self.get_manager(manager_id)
        if not manager.is_active:
            raise NotActiveError(f"earn manager {manager_id} is already inactive")
        manager.is_active = False
        logger.warning("[EXT-REG] Earn manager deactivated | manager=%s", manager_id)
        return manager

    # ------------------------------------------------------------------
    # Earner administration (earn managers)
    # ------------------------------------------------------------------

    def add_earner(
        self,
        manager_id: str,
        holder: str,
        token_account: str,
        index: int = INDEX_SCALE,
        timestamp: int = 0
    ) -> HolderClaimRecord:
        """
        Opt a holder in under an active manager.

        The record is seeded with the current global distribution index so
        the holder only earns from this point on.
        """
        manager = self.get_manager(manager_id)
        if not manager.is_active:
            raise NotActiveError(f"earn manager {manager_id} is not active")
        if token_account in self.earners:
            raise InvalidAccountError(f"earner account {token_account} already exists")

        record = HolderClaimRecord(
            holder=holder,
            token_account=token_account,
            manager_id=manager_id,
            last_claim_index=index,
            last_claim_timestamp=timestamp,
        )
        self.earners[token_account] = record
        logger.info(
            "[EXT-REG] Earner added | manager=%s | holder=%s | account=%s | index=%s",
            manager_id, holder, token_account, index
        )
        return record

    def remove_earner(self, manager_id: str, token_account: str) -> HolderClaimRecord:
        record = self.get_earner(token_account)
        if record.manager_id != manager_id:
            raise NotAuthorizedError(f"{manager_id} does not manage {token_account}")
        if not self.get_manager(manager_id).is_active:
            raise NotActiveError(f"earn manager {manager_id} is not active")

        del self.earners[token_account]
        logger.info("[EXT-REG] Earner removed | manager=%s | account=%s", manager_id, token_account)
        return record

    def transfer_earner(self, from_manager: str, to_manager: str, token_account: str) -> HolderClaimRecord:
        record = self.get_earner(token_account)
        if record.manager_id != from_manager:
            raise NotAuthorizedError(f"{from_manager} does not manage {token_account}")
        for manager_id in (from_manager, to_manager):
            if not self.get_manager(manager_id).is_active:
                raise NotActiveError(f"earn manager {manager_id} is not active")

        record.manager_id = to_manager
        logger.info(
            "[EXT-REG] Earner transferred | account=%s | from=%s | to=%s",
            token_account, from_manager, to_manager
        )
        return record

    def set_recipient(self, holder: str, token_account: str, recipient: Optional[str]) -> HolderClaimRecord:
        record = self.get_earner(token_account)
        if record.holder != holder:
            raise NotAuthorizedError(f"{holder} does not own {token_account}")
        record.recipient = recipient
        logger.info(
            "[EXT-REG] Recipient set | account=%s | recipient=%s", token_account, recipient
        )
        return record

    def remove_orphaned_earner(self, token_account: str) -> HolderClaimRecord:
        record = self.get_earner(token_account)
        if self.get_manager(record.manager_id).is_active:
            raise ActiveError(f"earn manager {record.manager_id} is still active")

        del self.earners[token_account]
        logger.warning(
            "[EXT-REG] Orphaned earner removed | account=%s | manager=%s",
            token_account, record.manager_id
        )
        return record

    # ------------------------------------------------------------------
    # Unit of work support
    # ------------------------------------------------------------------

    def snapshot(self):
        return (
            {k: (m, dict(vars(m))) for k, m in self.managers.items()},
            {k: (r, dict(vars(r))) for k, r in self.earners.items()},
        )

    def restore(self, state) -> None:
        managers, earners = state
        self.managers = {}
        for key, (manager, fields) in managers.items():
            vars(manager).update(fields)
            self.managers[key] = manager
        self.earners = {}
        for key, (record, fields) in earners.items():
            vars(record).update(fields)
            self.earners[key] = record
