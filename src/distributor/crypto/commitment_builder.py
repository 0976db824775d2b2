"""Commitment builder — turns an allowlist into a root and per-recipient proofs.

This is the offline side of the distribution. It runs once over the full
(recipient, amount) list and produces:
1. The commitment (Merkle root) that the principal publishes on the ledger.
2. A proof per recipient, delivered to each recipient out of band.

The builder is deterministic: given the same entries, it produces the
same root and the same proofs.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Iterable

from distributor.crypto.leaf import encode_leaf
from distributor.crypto.merkle import MerkleTree
from distributor.models.account import AccountLike, normalize_account, parse_amount
from distributor.models.allocation import (
    AllocationEntry,
    AllowlistCommitment,
    ClaimProof,
)


class CommitmentBuilder:
    """Builds an AllowlistCommitment from allocation entries.

    Usage:
        builder = CommitmentBuilder()
        builder.add_entry("0xAbc...", 100 * 10**18)
        builder.add_entry("0xDef...", 50 * 10**18)
        commitment = builder.build()
        commitment.root_hex
        commitment.proof_for("0xAbc...").proof
    """

    def __init__(self, sort_leaves: bool = True) -> None:
        self._sort_leaves = sort_leaves
        self._entries: dict[str, AllocationEntry] = {}

    def add_entry(self, account: AccountLike, amount: int | str) -> None:
        """Add one allocation. Each account may appear only once."""
        entry = AllocationEntry(
            account=normalize_account(account),
            amount=parse_amount(amount),
        )
        if entry.account in self._entries:
            raise ValueError(f"Duplicate allowlist address: {entry.account}")
        self._entries[entry.account] = entry

    def add_entries(self, entries: Iterable[AllocationEntry]) -> None:
        for entry in entries:
            self.add_entry(entry.account, entry.amount)

    @property
    def entry_count(self) -> int:
        return len(self._entries)

    def build(self) -> AllowlistCommitment:
        """Compute the root and one proof per entry."""
        tree = MerkleTree(sort_leaves=self._sort_leaves)
        leaves = {
            account: encode_leaf(account, entry.amount)
            for account, entry in self._entries.items()
        }
        tree.add_leaves(leaves.values())
        root = tree.compute_root()

        claims: dict[str, ClaimProof] = {}
        for account, entry in self._entries.items():
            proof = tree.inclusion_proof(leaves[account])
            if proof is None:
                raise RuntimeError(f"Leaf missing from built tree: {account}")
            claims[account] = ClaimProof(
                account=account,
                amount=entry.amount,
                proof=list(proof.path),
            )

        return AllowlistCommitment(root=root, claims=claims)


def load_allowlist(path: Path) -> list[AllocationEntry]:
    """Load ``[{"address": "0x...", "amount": "..."}, ...]`` from a JSON file.

    Amounts are base units (decimals already applied), as decimal strings
    or integers.
    """
    with path.open("r", encoding="utf-8") as handle:
        data: Any = json.load(handle)
    if not isinstance(data, list):
        raise ValueError(f"Allowlist must be a JSON list: {path}")
    return [AllocationEntry.from_dict(item) for item in data]


def build_from_file(path: Path, sort_leaves: bool = True) -> AllowlistCommitment:
    builder = CommitmentBuilder(sort_leaves=sort_leaves)
    builder.add_entries(load_allowlist(path))
    return builder.build()
