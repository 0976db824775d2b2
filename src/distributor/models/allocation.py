"""Allocation models — allowlist entries, claim proofs, commitments.

These are the values exchanged between the offline commitment builder,
recipients, and the ledger. The ledger itself only ever stores the root;
proofs travel out of band to each recipient.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any, Dict, List

from distributor.models.account import normalize_account, parse_amount


def node_hex(node: bytes) -> str:
    return "0x" + node.hex()


@dataclass(frozen=True)
class AllocationEntry:
    """One (recipient, amount) line of an allowlist."""
    account: str
    amount: int

    @staticmethod
    def from_dict(data: Dict[str, Any]) -> AllocationEntry:
        """Parse ``{"address": ..., "amount": ...}`` into a normalized entry."""
        return AllocationEntry(
            account=normalize_account(data["address"]),
            amount=parse_amount(data["amount"]),
        )


@dataclass(frozen=True)
class ClaimProof:
    """Everything a recipient needs to claim: amount and sibling path."""
    account: str
    amount: int
    proof: List[bytes]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "address": self.account,
            "amount": str(self.amount),
            "proof": [node_hex(p) for p in self.proof],
        }


@dataclass(frozen=True)
class AllowlistCommitment:
    """Output of the commitment builder: one root plus a proof per recipient.

    Serializes to the ``proofs.json`` layout:
        {"root": "0x...", "proofs": [{"address", "amount", "proof"}, ...]}
    """
    root: bytes
    claims: Dict[str, ClaimProof] = field(default_factory=dict)

    @property
    def total_amount(self) -> int:
        return sum(c.amount for c in self.claims.values())

    @property
    def root_hex(self) -> str:
        return node_hex(self.root)

    def proof_for(self, account: str) -> ClaimProof | None:
        """Look up the claim for an account, or None if not allowlisted."""
        return self.claims.get(normalize_account(account))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "root": self.root_hex,
            "proofs": [c.to_dict() for c in self.claims.values()],
        }

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), indent=2)

    @staticmethod
    def from_dict(data: Dict[str, Any]) -> AllowlistCommitment:
        from distributor.crypto.merkle import to_node

        claims: Dict[str, ClaimProof] = {}
        for item in data["proofs"]:
            account = normalize_account(item["address"])
            claims[account] = ClaimProof(
                account=account,
                amount=parse_amount(item["amount"]),
                proof=[to_node(p) for p in item["proof"]],
            )
        return AllowlistCommitment(root=to_node(data["root"]), claims=claims)

    @staticmethod
    def from_json(text: str) -> AllowlistCommitment:
        return AllowlistCommitment.from_dict(json.loads(text))


@dataclass(frozen=True)
class LedgerSnapshot:
    """Point-in-time view of the externally observable ledger state."""
    principal: str
    total_supply: int
    commitment: bytes
    balances: Dict[str, int]
    claimed: frozenset

    def to_dict(self) -> Dict[str, Any]:
        return {
            "principal": self.principal,
            "total_supply": str(self.total_supply),
            "commitment": node_hex(self.commitment),
            "balances": {a: str(b) for a, b in sorted(self.balances.items())},
            "claimed": sorted(self.claimed),
        }
