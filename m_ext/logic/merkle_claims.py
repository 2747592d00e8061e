"""
============================================================================
M Extension Engine v1.0.0
Merkle Claims - Root-Published Reward Distribution
============================================================================

Reliability Level: SOVEREIGN TIER (Mission-Critical)
Input Constraints: Roots and proof nodes are 32-byte digests
Side Effects: Mutates MerkleClaimsState and HolderClaimRecord on success

DISTRIBUTION MODEL
------------------
The earn authority periodically publishes a merkle root committing to
each holder's CUMULATIVE claimable amount, together with the index the
root was computed at and the amount newly made claimable.

A holder claims an increment `amount`; the proof must verify for
(token_account, claimed_so_far + amount). The global claimed total may
never exceed the cumulative claimable total.

Hashing:
    leaf  = SHA-256(token_account_utf8 || cumulative_amount_u128_le)
    inner = SHA-256(min(a, b) || max(a, b))         (sorted pairs)

Error Codes:
    - EXT-002: Invalid root update, amount or proof
    - EXT-003: Record is not a merkle earner

============================================================================
"""

import hashlib
import logging
from typing import List, Optional, Sequence, Tuple

from m_ext.accounting.constants import INDEX_SCALE, U128_MAX, U64_MAX
from m_ext.accounting.errors import InvalidParamError
from m_ext.accounting.records import HolderClaimRecord, MerkleClaimsState
from m_ext.logic.solvency_guard import SolvencyGuard

# Configure module logger
logger = logging.getLogger(__name__)

DIGEST_SIZE = 32


# ============================================================================
# Hashing
# ============================================================================

def hash_leaf(token_account: str, cumulative_amount: int) -> bytes:
    """Leaf committing to an account's cumulative claimable amount."""
    if cumulative_amount < 0 or cumulative_amount > U128_MAX:
        raise InvalidParamError(f"cumulative amount {cumulative_amount} is not a u128")
    return hashlib.sha256(
        token_account.encode("utf-8") + cumulative_amount.to_bytes(16, "little")
    ).digest()


def hash_pair(left: bytes, right: bytes) -> bytes:
    if left <= right:
        return hashlib.sha256(left + right).digest()
    return hashlib.sha256(right + left).digest()


def verify_proof(proof: Sequence[bytes], root: bytes, leaf: bytes) -> bool:
    computed = leaf
    for node in proof:
        if len(node) != DIGEST_SIZE:
            return False
        computed = hash_pair(computed, node)
    return computed == root


def build_merkle_tree(leaves: Sequence[bytes]) -> Tuple[bytes, List[List[bytes]]]:
    """
    Build a sorted-pair merkle tree.

    An unpaired node at the end of a level is promoted unchanged.

    Returns:
        (root, proofs) where proofs[i] verifies leaves[i]
    """
    if not leaves:
        raise InvalidParamError("cannot build a merkle tree with no leaves")

    levels = [list(leaves)]
    while len(levels[-1]) > 1:
        current = levels[-1]
        parents = []
        for i in range(0, len(current), 2):
            if i + 1 < len(current):
                parents.append(hash_pair(current[i], current[i + 1]))
            else:
                parents.append(current[i])
        levels.append(parents)

    proofs = []
    for leaf_position in range(len(leaves)):
        proof = []
        position = leaf_position
        for level in levels[:-1]:
            sibling = position ^ 1
            if sibling < len(level):
                proof.append(level[sibling])
            position //= 2
        proofs.append(proof)

    return levels[-1][0], proofs


# ============================================================================
# Ledger
# ============================================================================

class MerkleClaimsLedger:
    """
    Applies claims root updates and holder merkle claims.

    Reliability Level: SOVEREIGN TIER (Mission-Critical)
    Input Constraints: State and record belong to the same extension
    Side Effects: State counters and record.claimed_amount advance on success
    """

    def __init__(self, guard: Optional[SolvencyGuard] = None) -> None:
        self.guard = guard or SolvencyGuard()

    def update_root(
        self,
        state: MerkleClaimsState,
        merkle_root: bytes,
        root_index: int,
        claimable_amount: int,
        current_index: int,
        correlation_id: Optional[str] = None
    ) -> MerkleClaimsState:
        """
        Publish a new claims root.

        Raises:
            InvalidParamError: root_index not strictly after the previous
                               root, or ahead of the current index
        """
        if len(merkle_root) != DIGEST_SIZE:
            raise InvalidParamError("merkle_root must be 32 bytes", correlation_id)
        if root_index <= state.root_index:
            raise InvalidParamError(
                f"root index {root_index} must exceed previous root index {state.root_index}",
                correlation_id
            )
        if root_index > current_index:
            raise InvalidParamError(
                f"root index {root_index} is ahead of current index {current_index}",
                correlation_id
            )
        if claimable_amount < 0 or claimable_amount > U64_MAX:
            raise InvalidParamError(f"claimable amount {claimable_amount} is not a u64", correlation_id)

        state.merkle_root = merkle_root
        state.root_index = root_index
        state.max_claimable_amount += claimable_amount

        logger.info(
            "[EXT-MERKLE] Claims root updated | root=%s | root_index=%s | "
            "added=%s | max_claimable=%s | correlation_id=%s",
            merkle_root.hex(), root_index, claimable_amount,
            state.max_claimable_amount, correlation_id
        )
        return state

    def claim(
        self,
        state: MerkleClaimsState,
        record: HolderClaimRecord,
        amount: int,
        proof: Sequence[bytes],
        outstanding_supply: int,
        collateral: int,
        solvency_index: int = INDEX_SCALE,
        correlation_id: Optional[str] = None
    ) -> int:
        """
        Claim an increment of the holder's cumulative merkle allocation.

        Returns:
            amount to mint to record.payout_account

        Raises:
            InvalidParamError: zero amount, bad proof, or global cap exceeded
            InsufficientCollateralError: minting amount breaks solvency
        """
        if amount <= 0 or amount > U64_MAX:
            raise InvalidParamError(f"claim amount {amount} must be a positive u64", correlation_id)

        cumulative = record.claimed_amount + amount
        leaf = hash_leaf(record.token_account, cumulative)
        if not verify_proof(proof, state.merkle_root, leaf):
            logger.warning(
                "[EXT-002] Merkle proof rejected | account=%s | cumulative=%s | "
                "correlation_id=%s",
                record.token_account, cumulative, correlation_id
            )
            raise InvalidParamError("merkle proof does not verify", correlation_id)

        new_total = state.claimed_amount + amount
        if new_total > state.max_claimable_amount:
            raise InvalidParamError(
                f"claimed total {new_total} would exceed max claimable "
                f"{state.max_claimable_amount}",
                correlation_id
            )

        self.guard.check(
            solvency_index, outstanding_supply + amount, collateral,
            operation="merkle_claim", correlation_id=correlation_id
        )

        record.claimed_amount = cumulative
        state.claimed_amount = new_total

        logger.info(
            "[EXT-MERKLE] Claimed | account=%s | amount=%s | cumulative=%s | "
            "correlation_id=%s",
            record.token_account, amount, cumulative, correlation_id
        )
        return amount
