"""Distributor service — unified facade over the allocation ledger.

This is the primary interface for programmatic access. It wires:
- Configuration (supply, initial principal, data directory)
- The allocation ledger (claims, batch push, administration)
- The event log (in-memory or JSONL-backed, replayed on start)
- The allowlist currently published, if the caller supplied one

All operations produce typed results. Input arriving as strings (hex
roots and proof elements, decimal amounts) is coerced here so the ledger
only ever sees bytes and ints. Every ledger error is reported with its
taxonomy code in data["error_code"].
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Optional, Sequence

from distributor import __version__
from distributor.config import DistributorConfig
from distributor.crypto.leaf import encode_leaf
from distributor.crypto.merkle import NodeLike, to_node, verify_proof
from distributor.errors import DistributionError
from distributor.ledger.allocation_ledger import AllocationLedger
from distributor.models.account import AmountLike, normalize_account, parse_amount
from distributor.models.allocation import AllowlistCommitment, node_hex
from distributor.persistence.event_log import EventKind, EventLog


@dataclass(frozen=True)
class ServiceResult:
    """Result of a service operation."""
    success: bool
    errors: list[str] = field(default_factory=list)
    data: dict[str, Any] = field(default_factory=dict)


class DistributorService:
    """Unified distribution facade.

    Usage:
        config = DistributorConfig.from_config_dir(config_dir)
        service = DistributorService(config)

        # Principal publishes the allowlist built offline
        service.publish_allowlist(principal, commitment)

        # Recipients claim with their proof
        result = service.claim(alice, "100", ["0xabc...", ...])

        # Principal pushes directly
        result = service.batch_push(principal, [(bob, 10), (carol, 20)])

    Persistence (optional):
        service = DistributorService(config, event_log=EventLog(config.events_path))
        # A non-empty log is replayed; an empty one starts a fresh ledger.
    """

    def __init__(
        self,
        config: DistributorConfig,
        event_log: Optional[EventLog] = None,
    ) -> None:
        self._config = config
        log = event_log if event_log is not None else EventLog()
        if log.count:
            self._ledger = AllocationLedger.replay(log)
        else:
            self._ledger = AllocationLedger(
                principal=config.principal,
                total_supply=config.total_supply,
                event_log=log,
            )
        self._allowlist: Optional[AllowlistCommitment] = None

    @property
    def ledger(self) -> AllocationLedger:
        return self._ledger

    @property
    def allowlist(self) -> Optional[AllowlistCommitment]:
        return self._allowlist

    # ------------------------------------------------------------------
    # Administration
    # ------------------------------------------------------------------

    def set_commitment(self, caller: str, commitment: NodeLike) -> ServiceResult:
        """Replace the active commitment with a raw root."""
        def _op() -> dict[str, Any]:
            self._ledger.set_commitment(caller, commitment)
            if self._allowlist is not None and self._allowlist.root != self._ledger.commitment:
                self._allowlist = None
            return {"commitment": node_hex(self._ledger.commitment)}
        return self._run(_op)

    def publish_allowlist(
        self, caller: str, allowlist: AllowlistCommitment,
    ) -> ServiceResult:
        """Set the commitment from a builder output and keep its proofs on hand."""
        def _op() -> dict[str, Any]:
            self._ledger.set_commitment(caller, allowlist.root)
            self._allowlist = allowlist
            return {
                "commitment": allowlist.root_hex,
                "recipients": len(allowlist.claims),
                "total_amount": str(allowlist.total_amount),
            }
        return self._run(_op)

    def batch_push(
        self,
        caller: str,
        entries: Sequence[tuple[str, AmountLike]],
    ) -> ServiceResult:
        """Push (recipient, amount) pairs from the pool, all or nothing."""
        def _op() -> dict[str, Any]:
            recipients = [recipient for recipient, _ in entries]
            amounts = [amount for _, amount in entries]
            self._ledger.batch_push(caller, recipients, amounts)
            total = sum(parse_amount(amount) for amount in amounts)
            return {"count": len(entries), "total": str(total)}
        return self._run(_op)

    def transfer_principal(self, caller: str, new_principal: str) -> ServiceResult:
        def _op() -> dict[str, Any]:
            self._ledger.transfer_principal(caller, new_principal)
            return {"principal": self._ledger.principal}
        return self._run(_op)

    # ------------------------------------------------------------------
    # Public surface
    # ------------------------------------------------------------------

    def claim(
        self,
        caller: str,
        amount: AmountLike,
        proof: Sequence[NodeLike],
    ) -> ServiceResult:
        """Claim an allocation with an explicit proof.

        Raw input goes straight to the ledger so that a malformed amount or
        proof element is judged after the already-claimed and commitment
        checks, as an InvalidProof.
        """
        def _op() -> dict[str, Any]:
            self._ledger.claim(caller, amount, proof)
            return {
                "account": normalize_account(caller),
                "amount": str(parse_amount(amount)),
                "balance": str(self._ledger.balance_of(caller)),
            }
        return self._run(_op)

    def claim_from_allowlist(self, caller: str) -> ServiceResult:
        """Claim using the proof held for caller in the published allowlist."""
        if self._allowlist is None:
            return ServiceResult(
                success=False,
                errors=["No allowlist loaded; pass the proof explicitly"],
            )
        try:
            entry = self._allowlist.proof_for(caller)
        except ValueError as e:
            return ServiceResult(success=False, errors=[str(e)])
        if entry is None:
            return ServiceResult(
                success=False,
                errors=[f"{caller} is not on the published allowlist"],
            )
        return self.claim(caller, entry.amount, entry.proof)

    def transfer(self, caller: str, recipient: str, amount: AmountLike) -> ServiceResult:
        def _op() -> dict[str, Any]:
            self._ledger.transfer(caller, recipient, amount)
            return {"from": normalize_account(caller), "amount": str(parse_amount(amount))}
        return self._run(_op)

    def verify_claim(
        self,
        account: str,
        amount: AmountLike,
        proof: Sequence[NodeLike],
    ) -> bool:
        """Dry-run the proof check against the active commitment. No state change."""
        try:
            leaf = encode_leaf(account, parse_amount(amount))
            nodes = [to_node(p) for p in proof]
        except ValueError:
            return False
        return verify_proof(nodes, self._ledger.commitment, leaf)

    def balance(self, account: str) -> ServiceResult:
        try:
            key = normalize_account(account)
        except ValueError as e:
            return ServiceResult(success=False, errors=[str(e)])
        return ServiceResult(success=True, data={
            "account": key,
            "balance": str(self._ledger.balance_of(key)),
            "claimed": self._ledger.is_claimed(key),
        })

    # ------------------------------------------------------------------
    # Status and queries
    # ------------------------------------------------------------------

    def status(self) -> dict[str, Any]:
        """Return system-wide status summary."""
        snapshot = self._ledger.snapshot()
        log = self._ledger.event_log
        return {
            "version": __version__,
            "token": {
                "name": self._config.token_name,
                "symbol": self._config.token_symbol,
                "decimals": self._config.decimals,
            },
            "ledger": {
                "principal": snapshot.principal,
                "total_supply": str(snapshot.total_supply),
                "pool_balance": str(snapshot.balances.get(snapshot.principal, 0)),
                "holders": len(snapshot.balances),
                "claimed": len(snapshot.claimed),
            },
            "commitment": {
                "active": self._ledger.has_commitment,
                "root": node_hex(snapshot.commitment),
                "allowlist_loaded": self._allowlist is not None,
            },
            "events": {
                "total": log.count,
                "claims": len(log.events(EventKind.CLAIMED)),
                "batches": len(log.events(EventKind.BATCH_COMPLETED)),
            },
            "invariant_violations": self._ledger.check_invariants(),
        }

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _run(op: Callable[[], dict[str, Any]]) -> ServiceResult:
        """Execute a ledger operation and convert failures into a result."""
        try:
            return ServiceResult(success=True, data=op())
        except DistributionError as e:
            return ServiceResult(
                success=False,
                errors=[f"{e.code}: {e}"],
                data={"error_code": e.code},
            )
        except ValueError as e:
            return ServiceResult(success=False, errors=[str(e)])
        except OSError as e:
            return ServiceResult(success=False, errors=[f"Event log failure: {e}"])
