"""
Unit Tests for the atomic() Unit of Work

Reliability Level: SOVEREIGN TIER
Python 3.8 Compatible

Tests all-or-nothing semantics for every participant kind.
"""

import os
import sys

import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', '..'))

from m_ext.accounting.constants import INDEX_SCALE
from m_ext.accounting.errors import InvalidParamError
from m_ext.accounting.records import HolderClaimRecord, IndexConfig
from m_ext.services.collaborators import InMemoryTokenLedger
from m_ext.services.unit_of_work import atomic


class TestAtomic:
    """Tests for rollback on failure and commit on success."""

    def test_success_keeps_mutations(self) -> None:
        config = IndexConfig.initialize(INDEX_SCALE, 0)
        with atomic(config):
            config.last_timestamp = 10
        assert config.last_timestamp == 10

    def test_dataclass_restored(self) -> None:
        config = IndexConfig.initialize(INDEX_SCALE, 0)
        with pytest.raises(InvalidParamError):
            with atomic(config, operation="test"):
                config.last_derived_index = 2 * INDEX_SCALE
                config.fee_bps = 100
                raise InvalidParamError("boom")
        assert config.last_derived_index == INDEX_SCALE
        assert config.fee_bps == 0

    def test_ledger_restored(self) -> None:
        ledger = InMemoryTokenLedger()
        ledger.open_account("a")
        ledger.mint("a", 100)

        with pytest.raises(RuntimeError):
            with atomic(ledger):
                ledger.burn("a", 40)
                ledger.open_account("b")
                raise RuntimeError("abort")

        assert ledger.balance_of("a") == 100
        assert ledger.total_supply() == 100
        assert ledger.is_account_open("b") is False

    def test_dict_of_records_restored(self) -> None:
        record = HolderClaimRecord(holder="alice", token_account="alice-ext", manager_id="mgr")
        records = {"alice-ext": record}

        with pytest.raises(RuntimeError):
            with atomic(records):
                record.last_claim_index = 2 * INDEX_SCALE
                records["bob-ext"] = HolderClaimRecord(
                    holder="bob", token_account="bob-ext", manager_id="mgr"
                )
                raise RuntimeError("abort")

        assert list(records) == ["alice-ext"]
        assert records["alice-ext"] is record
        assert record.last_claim_index == INDEX_SCALE

    def test_none_participants_skipped(self) -> None:
        with atomic(None, operation="noop"):
            pass

    def test_unsupported_participant(self) -> None:
        with pytest.raises(TypeError):
            with atomic(object()):
                pass
