"""
Unit Tests for EarnerRegistry

Reliability Level: SOVEREIGN TIER
Python 3.8 Compatible

Tests earn manager and holder administration:
- Manager lifecycle (add, configure, soft-delete)
- Earner opt-in seeded at the current index
- Authorization of manager / holder operations
- Orphan removal and snapshot rollback
"""

import os
import sys

import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', '..'))

from m_ext.accounting.errors import (
    ActiveError,
    InvalidAccountError,
    InvalidParamError,
    NotActiveError,
    NotAuthorizedError,
)
from m_ext.services.earner_registry import EarnerRegistry


INDEX_1_1 = 1_100_000_000_000


@pytest.fixture
def registry() -> EarnerRegistry:
    registry = EarnerRegistry()
    registry.add_manager("mgr-a", fee_bps=500, fee_destination="mgr-a-fees")
    registry.add_manager("mgr-b", fee_bps=100, fee_destination="mgr-b-fees")
    registry.add_earner("mgr-a", "alice", "alice-ext", index=INDEX_1_1, timestamp=50)
    return registry


class TestManagers:
    """Tests for manager administration."""

    def test_duplicate_manager_rejected(self, registry) -> None:
        with pytest.raises(InvalidAccountError):
            registry.add_manager("mgr-a", fee_bps=0, fee_destination="x")

    def test_fee_bound_enforced(self, registry) -> None:
        with pytest.raises(InvalidParamError):
            registry.add_manager("mgr-c", fee_bps=10_001, fee_destination="x")

    def test_configure_manager(self, registry) -> None:
        manager = registry.configure_manager("mgr-a", fee_bps=750)
        assert manager.fee_bps == 750
        assert manager.fee_destination == "mgr-a-fees"

    def test_deactivate_is_soft_delete(self, registry) -> None:
        registry.deactivate_manager("mgr-a")
        assert registry.get_manager("mgr-a").is_active is False

    def test_deactivate_twice_rejected(self, registry) -> None:
        registry.deactivate_manager("mgr-a")
        with pytest.raises(NotActiveError):
            registry.deactivate_manager("mgr-a")

    def test_inactive_manager_cannot_configure(self, registry) -> None:
        registry.deactivate_manager("mgr-a")
        with pytest.raises(NotActiveError):
            registry.configure_manager("mgr-a", fee_bps=0)

    def test_unknown_manager(self, registry) -> None:
        with pytest.raises(InvalidAccountError):
            registry.get_manager("nobody")


class TestEarners:
    """Tests for holder administration."""

    def test_earner_seeded_at_current_index(self, registry) -> None:
        record = registry.get_earner("alice-ext")
        assert record.last_claim_index == INDEX_1_1
        assert record.last_claim_timestamp == 50
        assert registry.earners_of("mgr-a") == [record]

    def test_duplicate_earner_rejected(self, registry) -> None:
        with pytest.raises(InvalidAccountError):
            registry.add_earner("mgr-b", "alice", "alice-ext")

    def test_inactive_manager_cannot_add(self, registry) -> None:
        registry.deactivate_manager("mgr-b")
        with pytest.raises(NotActiveError):
            registry.add_earner("mgr-b", "bob", "bob-ext")

    def test_remove_requires_own_manager(self, registry) -> None:
        with pytest.raises(NotAuthorizedError):
            registry.remove_earner("mgr-b", "alice-ext")
        registry.remove_earner("mgr-a", "alice-ext")
        assert "alice-ext" not in registry.earners

    def test_transfer_earner(self, registry) -> None:
        record = registry.transfer_earner("mgr-a", "mgr-b", "alice-ext")
        assert record.manager_id == "mgr-b"
        assert record.last_claim_index == INDEX_1_1

    def test_transfer_to_inactive_rejected(self, registry) -> None:
        registry.deactivate_manager("mgr-b")
        with pytest.raises(NotActiveError):
            registry.transfer_earner("mgr-a", "mgr-b", "alice-ext")
        assert registry.get_earner("alice-ext").manager_id == "mgr-a"

    def test_set_recipient_holder_only(self, registry) -> None:
        with pytest.raises(NotAuthorizedError):
            registry.set_recipient("mallory", "alice-ext", "mallory-ext")
        registry.set_recipient("alice", "alice-ext", "alice-savings")
        assert registry.get_earner("alice-ext").payout_account == "alice-savings"

    def test_orphan_removal_requires_inactive_manager(self, registry) -> None:
        with pytest.raises(ActiveError):
            registry.remove_orphaned_earner("alice-ext")

        registry.deactivate_manager("mgr-a")
        registry.remove_orphaned_earner("alice-ext")
        assert registry.earners == {}


class TestSnapshot:
    """Tests for snapshot / restore."""

    def test_restore_undoes_changes(self, registry) -> None:
        state = registry.snapshot()

        registry.configure_manager("mgr-a", fee_bps=9_000)
        registry.add_earner("mgr-b", "bob", "bob-ext")
        registry.remove_earner("mgr-a", "alice-ext")

        registry.restore(state)

        assert registry.get_manager("mgr-a").fee_bps == 500
        assert "bob-ext" not in registry.earners
        assert registry.get_earner("alice-ext").manager_id == "mgr-a"
