"""
Unit Tests for ExtensionEngine

Reliability Level: SOVEREIGN TIER
Python 3.8 Compatible

Tests the engine operations for every yield variant:
- Rebasing: wrap, sync, unwrap, fee claims, fee changes
- Crank: earner administration and claim_for with manager fees
- Merkle claims: root updates and holder claims
- No-yield: excess collateral claims
- Custom: adapter-derived index under the solvency guard
- Atomicity: any failure leaves ledgers, records and config untouched
"""

import os
import sys
from dataclasses import asdict

import pytest
from prometheus_client import REGISTRY

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', '..'))

from m_ext.accounting.constants import INDEX_SCALE
from m_ext.accounting.errors import (
    AlreadyClaimedError,
    ExternalCommitError,
    InsufficientCollateralError,
    InvalidAmountError,
    InvalidInputError,
    InvalidParamError,
    NotAuthorizedError,
    UnsupportedOperationError,
)
from m_ext.database.event_journal import EventType
from m_ext.logic.merkle_claims import build_merkle_tree, hash_leaf
from m_ext.logic.quoter import WrapOperation
from m_ext.services.collaborators import (
    FixedCustomAdapter,
    InMemoryMultiplierStore,
    InMemoryTokenLedger,
    StaticYieldSource,
)
from m_ext.services.extension_config import ExtensionConfigurationError, ExtensionSettings
from m_ext.services.extension_service import VAULT_ACCOUNT, ExtensionEngine


INDEX_1_1 = 1_100_000_000_000
ACCOUNTS = ["alice-ext", "bob-ext", "alice-savings", "mgr-fees", "treasury-ext"]


# =============================================================================
# Test Fixtures
# =============================================================================

@pytest.fixture
def source() -> StaticYieldSource:
    return StaticYieldSource(index=INDEX_SCALE, timestamp=100)


@pytest.fixture
def m_ledger() -> InMemoryTokenLedger:
    ledger = InMemoryTokenLedger("M")
    for account in (VAULT_ACCOUNT, "alice-m", "bob-m", "treasury-m"):
        ledger.open_account(account)
    ledger.mint("alice-m", 10_000_000)
    return ledger


@pytest.fixture
def ext_ledger() -> InMemoryTokenLedger:
    ledger = InMemoryTokenLedger("wM")
    for account in ACCOUNTS:
        ledger.open_account(account)
    return ledger


@pytest.fixture
def store() -> InMemoryMultiplierStore:
    return InMemoryMultiplierStore(value=1.0, timestamp=100)


def make_engine(source, m_ledger, ext_ledger, store=None, custom_adapter=None, **settings):
    settings.setdefault("admin_authority", "admin")
    settings.setdefault("journal_enabled", False)
    return ExtensionEngine.from_settings(
        ExtensionSettings(**settings), source, m_ledger, ext_ledger,
        store=store, custom_adapter=custom_adapter,
    )


@pytest.fixture
def rebasing(source, m_ledger, ext_ledger, store) -> ExtensionEngine:
    return make_engine(source, m_ledger, ext_ledger, store, yield_variant="rebasing")


@pytest.fixture
def crank(source, m_ledger, ext_ledger) -> ExtensionEngine:
    engine = make_engine(
        source, m_ledger, ext_ledger, yield_variant="crank", earn_authority="earn-bot"
    )
    engine.add_manager("admin", "mgr", 500, "mgr-fees")
    engine.add_earner("mgr", "alice", "alice-ext")
    return engine


# =============================================================================
# Construction
# =============================================================================

class TestConstruction:
    """Tests for from_settings()."""

    def test_rebasing_requires_store(self, source, m_ledger, ext_ledger) -> None:
        with pytest.raises(ExtensionConfigurationError):
            make_engine(source, m_ledger, ext_ledger, yield_variant="rebasing")

    def test_custom_requires_adapter(self, source, m_ledger, ext_ledger) -> None:
        with pytest.raises(ExtensionConfigurationError):
            make_engine(source, m_ledger, ext_ledger, yield_variant="custom")

    def test_initial_config(self, source, m_ledger, ext_ledger, store) -> None:
        engine = make_engine(source, m_ledger, ext_ledger, store, fee_bps=250)
        assert engine.config.last_source_index == INDEX_SCALE
        assert engine.config.last_derived_index == INDEX_SCALE
        assert engine.config.last_timestamp == 100
        assert engine.config.fee_bps == 250

    def test_fee_ignored_for_manual_variant(self, source, m_ledger, ext_ledger) -> None:
        engine = make_engine(
            source, m_ledger, ext_ledger,
            yield_variant="crank", earn_authority="earn-bot", fee_bps=250,
        )
        assert engine.config.fee_bps == 0

    def test_source_below_unit_index_rejected(self, m_ledger, ext_ledger, store) -> None:
        source = StaticYieldSource(index=INDEX_SCALE - 1, timestamp=100)
        with pytest.raises(InvalidParamError):
            make_engine(source, m_ledger, ext_ledger, store, yield_variant="rebasing")


# =============================================================================
# Rebasing variant
# =============================================================================

class TestRebasing:
    """Wrap, sync and unwrap on a rebasing extension."""

    def test_wrap_mints_principal(self, rebasing, m_ledger, ext_ledger) -> None:
        minted = rebasing.wrap("swap", "alice-m", "alice-ext", 1_000_000)

        assert minted == 1_000_000
        assert ext_ledger.balance_of("alice-ext") == 1_000_000
        assert m_ledger.balance_of(VAULT_ACCOUNT) == 1_000_000
        assert len(rebasing.journal.fetch(EventType.WRAP)) == 1

    def test_sync_publishes_multiplier(self, rebasing, source, store) -> None:
        rebasing.wrap("swap", "alice-m", "alice-ext", 1_000_000)
        source.advance(INDEX_1_1, 200)

        outcome = rebasing.sync()

        assert outcome.changed is True
        assert outcome.derived_index == INDEX_1_1
        assert store.read_current() == (1.1, 200)
        events = rebasing.journal.fetch(EventType.SYNC_INDEX_UPDATE)
        assert events[-1]["payload"]["new_index"] == str(INDEX_1_1)

    def test_unchanged_sync_emits_nothing(self, rebasing) -> None:
        assert rebasing.sync().changed is False
        assert rebasing.journal.fetch(EventType.SYNC_INDEX_UPDATE) == []

    def test_unwrap_after_rebase(self, rebasing, source, m_ledger, ext_ledger) -> None:
        rebasing.wrap("swap", "alice-m", "alice-ext", 1_000_000)
        source.advance(INDEX_1_1, 200)
        rebasing.sync()

        released = rebasing.unwrap("swap", "alice-ext", "alice-m", 500_000)

        assert released == 500_000
        assert ext_ledger.balance_of("alice-ext") == 500_000
        assert m_ledger.balance_of(VAULT_ACCOUNT) == 500_000

    def test_quote_uses_cached_indices(self, rebasing, source) -> None:
        rebasing.wrap("swap", "alice-m", "alice-ext", 1_000_000)
        source.advance(INDEX_1_1, 200)
        rebasing.sync()
        assert rebasing.quote(WrapOperation.WRAP, 1_000) == 1_000

    def test_publish_failure_leaves_config(self, rebasing, source, store) -> None:
        rebasing.wrap("swap", "alice-m", "alice-ext", 1_000_000)
        before = asdict(rebasing.config)
        source.advance(INDEX_1_1, 200)
        store.fail_publish = True

        with pytest.raises(ExternalCommitError):
            rebasing.sync()

        assert asdict(rebasing.config) == before
        assert rebasing.journal.fetch(EventType.SYNC_INDEX_UPDATE) == []

    def test_failed_mint_rolls_back_wrap(self, rebasing, m_ledger, ext_ledger) -> None:
        ext_ledger.fail_next_mint = True

        with pytest.raises(ExternalCommitError):
            rebasing.wrap("swap", "alice-m", "alice-ext", 1_000_000)

        assert m_ledger.balance_of("alice-m") == 10_000_000
        assert m_ledger.balance_of(VAULT_ACCOUNT) == 0
        assert ext_ledger.total_supply() == 0
        assert rebasing.journal.fetch() == []

    def test_wrap_without_collateral_balance(self, rebasing, m_ledger) -> None:
        with pytest.raises(InvalidAmountError):
            rebasing.wrap("swap", "bob-m", "bob-ext", 1_000)
        assert m_ledger.balance_of(VAULT_ACCOUNT) == 0

    def test_zero_amount_rejected(self, rebasing) -> None:
        with pytest.raises(InvalidAmountError):
            rebasing.wrap("swap", "alice-m", "alice-ext", 0)
        with pytest.raises(InvalidAmountError):
            rebasing.unwrap("swap", "alice-ext", "alice-m", 0)

    def test_wrap_whitelist(self, source, m_ledger, ext_ledger, store) -> None:
        engine = make_engine(
            source, m_ledger, ext_ledger, store, wrap_authorities={"swap-facility"}
        )
        with pytest.raises(NotAuthorizedError):
            engine.wrap("mallory", "alice-m", "alice-ext", 1_000)
        assert engine.wrap("swap-facility", "alice-m", "alice-ext", 1_000) == 1_000

    def test_unsupported_operations(self, rebasing) -> None:
        with pytest.raises(UnsupportedOperationError):
            rebasing.claim_for("earn-bot", "alice-ext", 1)
        with pytest.raises(UnsupportedOperationError):
            rebasing.claim_excess("admin", "treasury-m")
        with pytest.raises(UnsupportedOperationError):
            rebasing.add_manager("admin", "mgr", 0, "mgr-fees")


class TestRebasingFees:
    """Fee claims and fee changes on a rebasing extension."""

    def test_fee_claim_mints_excess(self, source, m_ledger, ext_ledger, store) -> None:
        engine = make_engine(source, m_ledger, ext_ledger, store, fee_bps=1_000)
        engine.wrap("swap", "alice-m", "alice-ext", 1_000_000)
        source.advance(INDEX_1_1, 200)
        engine.sync()

        assert INDEX_SCALE < engine.config.last_derived_index < INDEX_1_1

        minted = engine.claim_fees("admin", "treasury-ext")

        assert minted > 0
        assert ext_ledger.balance_of("treasury-ext") == minted
        assert len(engine.journal.fetch(EventType.FEES_CLAIMED)) == 1

    def test_no_fee_means_nothing_to_claim(self, rebasing, source) -> None:
        rebasing.wrap("swap", "alice-m", "alice-ext", 1_000_000)
        source.advance(INDEX_1_1, 200)
        rebasing.sync()
        assert rebasing.claim_fees("admin", "treasury-ext") == 0

    def test_fee_claim_requires_admin(self, rebasing) -> None:
        with pytest.raises(NotAuthorizedError):
            rebasing.claim_fees("mallory", "treasury-ext")

    def test_set_fee_syncs_at_old_fee(self, rebasing, source) -> None:
        rebasing.wrap("swap", "alice-m", "alice-ext", 1_000_000)
        source.advance(INDEX_1_1, 200)

        config = rebasing.set_fee("admin", 2_500)

        assert config.last_derived_index == INDEX_1_1
        assert config.fee_bps == 2_500

    def test_set_fee_validation(self, rebasing) -> None:
        with pytest.raises(NotAuthorizedError):
            rebasing.set_fee("mallory", 100)
        with pytest.raises(InvalidParamError):
            rebasing.set_fee("admin", 10_001)
        assert rebasing.config.fee_bps == 0


# =============================================================================
# Crank variant
# =============================================================================

class TestCrank:
    """Manual distribution with earn-authority claims."""

    def advance(self, engine, source) -> None:
        engine.wrap("swap", "alice-m", "alice-ext", 1_000_000)
        source.advance(INDEX_1_1, 200)
        engine.sync("earn-bot")

    def test_sync_requires_earn_authority(self, crank, source) -> None:
        source.advance(INDEX_1_1, 200)
        with pytest.raises(NotAuthorizedError):
            crank.sync("mallory")
        assert crank.config.last_derived_index == INDEX_SCALE

    def test_wrap_does_not_sync(self, crank, source) -> None:
        source.advance(INDEX_1_1, 200)
        crank.wrap("swap", "alice-m", "alice-ext", 1_000)
        assert crank.config.last_derived_index == INDEX_SCALE

    def test_claim_for_splits_fee(self, crank, source, ext_ledger) -> None:
        self.advance(crank, source)

        result = crank.claim_for("earn-bot", "alice-ext", 1_000_000)

        assert result.gross_reward == 100_000
        assert result.fee == 5_000
        assert result.net_reward == 95_000
        assert result.claim_timestamp == 200
        assert ext_ledger.balance_of("alice-ext") == 1_095_000
        assert ext_ledger.balance_of("mgr-fees") == 5_000
        assert len(crank.journal.fetch(EventType.REWARDS_CLAIM)) == 1

    def test_double_claim_rejected(self, crank, source, ext_ledger) -> None:
        self.advance(crank, source)
        crank.claim_for("earn-bot", "alice-ext", 1_000_000)

        with pytest.raises(AlreadyClaimedError):
            crank.claim_for("earn-bot", "alice-ext", 1_095_000)
        assert ext_ledger.total_supply() == 1_100_000

    def test_claim_requires_earn_authority(self, crank, source) -> None:
        self.advance(crank, source)
        with pytest.raises(NotAuthorizedError):
            crank.claim_for("alice", "alice-ext", 1_000_000)

    def test_failed_mint_rolls_back_record(self, crank, source, ext_ledger) -> None:
        self.advance(crank, source)
        ext_ledger.fail_next_mint = True

        with pytest.raises(ExternalCommitError):
            crank.claim_for("earn-bot", "alice-ext", 1_000_000)

        assert crank.registry.get_earner("alice-ext").last_claim_index == INDEX_SCALE
        assert ext_ledger.total_supply() == 1_000_000

    def test_failed_mint_counts_no_claim(self, crank, source, ext_ledger) -> None:
        self.advance(crank, source)
        claimed = {"outcome": "claimed"}
        before = REGISTRY.get_sample_value("ext_claims_total", claimed) or 0.0
        ext_ledger.fail_next_mint = True

        with pytest.raises(ExternalCommitError):
            crank.claim_for("earn-bot", "alice-ext", 1_000_000)

        assert (REGISTRY.get_sample_value("ext_claims_total", claimed) or 0.0) == before
        assert crank.journal.fetch(EventType.REWARDS_CLAIM) == []

        crank.claim_for("earn-bot", "alice-ext", 1_000_000)
        assert REGISTRY.get_sample_value("ext_claims_total", claimed) == before + 1

    def test_closed_fee_account_forfeits_fee(self, crank, source, ext_ledger) -> None:
        self.advance(crank, source)
        ext_ledger.close_account("mgr-fees")

        result = crank.claim_for("earn-bot", "alice-ext", 1_000_000)
        assert result.fee == 0
        assert result.net_reward == 100_000

    def test_recipient_override(self, crank, source, ext_ledger) -> None:
        crank.set_recipient("alice", "alice-ext", "alice-savings")
        self.advance(crank, source)

        crank.claim_for("earn-bot", "alice-ext", 1_000_000)
        assert ext_ledger.balance_of("alice-savings") == 95_000

    def test_new_earner_seeded_at_current_index(self, crank, source) -> None:
        self.advance(crank, source)
        record = crank.add_earner("mgr", "bob", "bob-ext")
        assert record.last_claim_index == INDEX_1_1
        assert record.last_claim_timestamp == 200
        with pytest.raises(AlreadyClaimedError):
            crank.claim_for("earn-bot", "bob-ext", 0)

    def test_manager_administration(self, crank) -> None:
        with pytest.raises(NotAuthorizedError):
            crank.add_manager("mallory", "mgr-2", 0, "mgr-fees")
        crank.configure_manager("mgr", fee_bps=100)
        assert crank.registry.get_manager("mgr").fee_bps == 100

        crank.add_manager("admin", "mgr-2", 0, "mgr-fees")
        crank.transfer_earner("mgr", "mgr-2", "alice-ext")
        assert crank.registry.get_earner("alice-ext").manager_id == "mgr-2"

        crank.deactivate_manager("admin", "mgr-2")
        crank.remove_orphaned_earner("alice-ext")
        assert crank.registry.earners == {}

    def test_failed_admin_operation_restores_registry(self, crank, monkeypatch) -> None:
        crank.add_manager("admin", "mgr-2", 0, "mgr-fees")
        transfer = crank.registry.transfer_earner

        def transfer_then_fail(*args):
            transfer(*args)
            raise ExternalCommitError("registry write failed")

        monkeypatch.setattr(crank.registry, "transfer_earner", transfer_then_fail)

        with pytest.raises(ExternalCommitError):
            crank.transfer_earner("mgr", "mgr-2", "alice-ext")

        assert crank.registry.get_earner("alice-ext").manager_id == "mgr"
        assert crank.registry.earners_of("mgr-2") == []

    def test_remove_earner(self, crank) -> None:
        crank.remove_earner("mgr", "alice-ext")
        assert "alice-ext" not in crank.registry.earners

    def test_fee_operations_unsupported(self, crank) -> None:
        with pytest.raises(UnsupportedOperationError):
            crank.claim_fees("admin", "treasury-ext")
        with pytest.raises(UnsupportedOperationError):
            crank.set_fee("admin", 100)


# =============================================================================
# Merkle claims variant
# =============================================================================

class TestMerkleClaims:
    """Root-published distribution."""

    @pytest.fixture
    def merkle(self, source, m_ledger, ext_ledger) -> ExtensionEngine:
        engine = make_engine(
            source, m_ledger, ext_ledger, yield_variant="merkle_claims", earn_authority="earn-bot"
        )
        engine.add_manager("admin", "mgr", 0, "mgr-fees")
        engine.add_earner("mgr", "alice", "alice-ext")
        engine.add_earner("mgr", "bob", "bob-ext")
        engine.wrap("swap", "alice-m", "alice-ext", 1_000_000)
        source.advance(INDEX_1_1, 200)
        engine.sync("earn-bot")
        return engine

    @pytest.fixture
    def tree(self):
        accounts = ["alice-ext", "bob-ext"]
        allocations = {"alice-ext": 60_000, "bob-ext": 40_000}
        root, proofs = build_merkle_tree([hash_leaf(a, allocations[a]) for a in accounts])
        return root, dict(zip(accounts, proofs))

    def test_claims_against_root(self, merkle, tree, ext_ledger) -> None:
        root, proofs = tree
        merkle.update_claims_root("earn-bot", root, INDEX_1_1, 100_000)

        assert merkle.merkle_claim("alice", "alice-ext", 60_000, proofs["alice-ext"]) == 60_000
        assert merkle.merkle_claim("bob", "bob-ext", 40_000, proofs["bob-ext"]) == 40_000

        assert ext_ledger.balance_of("alice-ext") == 1_060_000
        assert ext_ledger.balance_of("bob-ext") == 40_000
        assert merkle.merkle_state.claimed_amount == 100_000
        assert len(merkle.journal.fetch(EventType.MERKLE_CLAIM)) == 2

    def test_root_update_requires_earn_authority(self, merkle, tree) -> None:
        with pytest.raises(NotAuthorizedError):
            merkle.update_claims_root("admin", tree[0], INDEX_1_1, 100_000)

    def test_root_index_ahead_of_index(self, merkle, tree) -> None:
        with pytest.raises(InvalidParamError):
            merkle.update_claims_root("earn-bot", tree[0], INDEX_1_1 + 1, 100_000)

    def test_only_holder_may_claim(self, merkle, tree) -> None:
        root, proofs = tree
        merkle.update_claims_root("earn-bot", root, INDEX_1_1, 100_000)
        with pytest.raises(NotAuthorizedError):
            merkle.merkle_claim("bob", "alice-ext", 60_000, proofs["alice-ext"])

    def test_replay_rejected(self, merkle, tree, ext_ledger) -> None:
        root, proofs = tree
        merkle.update_claims_root("earn-bot", root, INDEX_1_1, 100_000)
        merkle.merkle_claim("alice", "alice-ext", 60_000, proofs["alice-ext"])

        with pytest.raises(InvalidParamError):
            merkle.merkle_claim("alice", "alice-ext", 60_000, proofs["alice-ext"])
        assert ext_ledger.balance_of("alice-ext") == 1_060_000

    def test_crank_claims_unsupported(self, merkle) -> None:
        with pytest.raises(UnsupportedOperationError):
            merkle.claim_for("earn-bot", "alice-ext", 1_000_000)


# =============================================================================
# No-yield variant
# =============================================================================

class TestNoYield:
    """Accrued yield stays in the vault as claimable excess."""

    @pytest.fixture
    def plain(self, source, m_ledger, ext_ledger) -> ExtensionEngine:
        return make_engine(source, m_ledger, ext_ledger, yield_variant="none")

    def test_sync_never_moves_index(self, plain, source) -> None:
        source.advance(INDEX_1_1, 200)
        assert plain.sync().changed is False
        assert plain.config.last_derived_index == INDEX_SCALE

    def test_claim_excess(self, plain, source, m_ledger) -> None:
        plain.wrap("swap", "alice-m", "alice-ext", 1_000_000)
        source.advance(INDEX_1_1, 200)

        released = plain.claim_excess("admin", "treasury-m")

        assert released == 90_909
        assert m_ledger.balance_of("treasury-m") == 90_909
        assert m_ledger.balance_of(VAULT_ACCOUNT) == 909_091
        assert len(plain.journal.fetch(EventType.EXCESS_CLAIMED)) == 1

    def test_no_excess_at_unit_index(self, plain) -> None:
        plain.wrap("swap", "alice-m", "alice-ext", 1_000_000)
        assert plain.claim_excess("admin", "treasury-m") == 0

    def test_excess_requires_admin(self, plain) -> None:
        with pytest.raises(NotAuthorizedError):
            plain.claim_excess("mallory", "treasury-m")


# =============================================================================
# Custom variant
# =============================================================================

class InflatingAdapter(FixedCustomAdapter):
    """Derives an index twice as high as the source supports."""

    def derive_index(self, config, reading):
        return 2 * super().derive_index(config, reading)


class TestCustom:
    """Adapter-driven index derivation."""

    def test_adapter_index_committed(self, source, m_ledger, ext_ledger) -> None:
        engine = make_engine(
            source, m_ledger, ext_ledger,
            yield_variant="custom", custom_adapter=FixedCustomAdapter(),
        )
        engine.wrap("swap", "alice-m", "alice-ext", 1_000_000)
        source.advance(INDEX_1_1, 200)

        outcome = engine.sync()

        assert outcome.derived_index == INDEX_1_1
        assert engine.config.last_derived_index == INDEX_1_1

    def test_insolvent_adapter_rejected(self, source, m_ledger, ext_ledger) -> None:
        engine = make_engine(
            source, m_ledger, ext_ledger,
            yield_variant="custom", custom_adapter=InflatingAdapter(),
        )
        engine.wrap("swap", "alice-m", "alice-ext", 1_000_000)
        before = asdict(engine.config)
        source.advance(INDEX_1_1, 200)

        with pytest.raises(InsufficientCollateralError):
            engine.sync()
        assert asdict(engine.config) == before

    def test_decreasing_source_rejected(self, source, m_ledger, ext_ledger) -> None:
        source.advance(INDEX_1_1, 200)
        engine = make_engine(
            source, m_ledger, ext_ledger,
            yield_variant="custom", custom_adapter=FixedCustomAdapter(),
        )
        source.advance(INDEX_SCALE, 300)
        with pytest.raises(InvalidInputError):
            engine.sync()
