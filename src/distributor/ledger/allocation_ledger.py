"""Allocation ledger — fixed-supply balances, allowlist claims and batch push.

The whole supply is minted to the initial principal at construction; no
units are created or destroyed afterwards. The principal's balance is the
unclaimed pool that both distribution channels draw from:

- claim: a recipient proves membership of (recipient, amount) against the
  active commitment and receives exactly that amount, once.
- batch push: the principal sends amounts to a list of recipients. The
  batch is all-or-nothing.

Every mutating operation runs under one lock and stages its effects in a
_Transaction. Nothing touches ledger state until every check has passed
and the resulting events are in the event log, so a failed operation
leaves no trace.

Invariants:
- sum(balances) == total_supply at every observation point.
- An account in the claimed set never leaves it, and never claims again.
"""

from __future__ import annotations

import threading
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any, Iterable, Iterator, Optional, Sequence

from distributor.crypto.leaf import encode_leaf
from distributor.crypto.merkle import EMPTY_COMMITMENT, NodeLike, to_node, verify_proof
from distributor.errors import (
    AlreadyClaimed,
    InsufficientBalance,
    InvalidAmount,
    InvalidPrincipal,
    InvalidProof,
    InvalidRecipient,
    LengthMismatch,
    NoCommitmentPublished,
    PoolExhausted,
    Unauthorized,
)
from distributor.models.account import (
    NULL_ACCOUNT,
    AccountLike,
    AmountLike,
    is_uint256,
    normalize_account,
    parse_amount,
)
from distributor.models.allocation import LedgerSnapshot, node_hex
from distributor.persistence.event_log import EventKind, EventLog, EventRecord

DEFAULT_TOTAL_SUPPLY = 10_000 * 10**18


class _Transaction:
    """Staged effects of a single ledger operation.

    Reads fall through to the committed ledger state, so later steps of a
    batch see the debits of earlier steps.
    """

    def __init__(self, ledger: AllocationLedger, actor_id: str) -> None:
        self._ledger = ledger
        self.actor_id = actor_id
        self.balances: dict[str, int] = {}
        self.claimed: set[str] = set()
        self.commitment: Optional[bytes] = None
        self.principal: Optional[str] = None
        self.events: list[tuple[EventKind, dict[str, Any]]] = []

    def balance_of(self, account: str) -> int:
        if account in self.balances:
            return self.balances[account]
        return self._ledger._balances.get(account, 0)

    def move(self, sender: str, recipient: str, amount: int) -> None:
        self.balances[sender] = self.balance_of(sender) - amount
        self.balances[recipient] = self.balance_of(recipient) + amount
        self.emit(EventKind.TRANSFER, {
            "from": sender, "to": recipient, "amount": str(amount),
        })

    def mint(self, recipient: str, amount: int) -> None:
        self.balances[recipient] = self.balance_of(recipient) + amount
        self.emit(EventKind.TRANSFER, {
            "from": NULL_ACCOUNT, "to": recipient, "amount": str(amount),
        })

    def emit(self, kind: EventKind, payload: dict[str, Any]) -> None:
        self.events.append((kind, payload))


class AllocationLedger:
    """Fixed-supply ledger with Merkle-gated claims and principal batch push.

    Usage:
        ledger = AllocationLedger(principal="0xP...")
        ledger.set_commitment("0xP...", commitment.root)
        ledger.claim("0xA...", 100, proof)
        ledger.batch_push("0xP...", ["0xB...", "0xC..."], [10, 20])

    Replay:
        ledger = AllocationLedger.replay(EventLog(storage_path=path))
    """

    def __init__(
        self,
        principal: AccountLike,
        total_supply: int = DEFAULT_TOTAL_SUPPLY,
        event_log: Optional[EventLog] = None,
    ) -> None:
        try:
            owner = normalize_account(principal)
        except ValueError as e:
            raise InvalidPrincipal(str(e)) from None
        if owner == NULL_ACCOUNT:
            raise InvalidPrincipal("Principal cannot be the null account")
        if not is_uint256(total_supply):
            raise InvalidAmount(f"Total supply must be a uint256, got {total_supply!r}")
        log = event_log if event_log is not None else EventLog()
        if log.count:
            raise ValueError(
                "Event log already holds ledger history; use AllocationLedger.replay()"
            )

        self._setup(owner, total_supply, log)
        with self._transaction(owner) as txn:
            txn.emit(EventKind.LEDGER_INITIALIZED, {
                "principal": owner, "total_supply": str(total_supply),
            })
            txn.mint(owner, total_supply)

    def _setup(self, principal: str, total_supply: int, event_log: EventLog) -> None:
        self._lock = threading.RLock()
        self._event_log = event_log
        self._event_counter = event_log.count
        self._balances: dict[str, int] = {}
        self._claimed: set[str] = set()
        self._commitment = EMPTY_COMMITMENT
        self._principal = principal
        self._total_supply = total_supply

    # ------------------------------------------------------------------
    # Claim protocol
    # ------------------------------------------------------------------

    def claim(
        self,
        caller: AccountLike,
        amount: AmountLike,
        proof: Sequence[NodeLike],
    ) -> None:
        """Claim an allowlisted allocation.

        amount may be an int or a decimal string, proof elements raw bytes
        or 0x-hex. Input that cannot be converted is an InvalidProof, so it
        never pre-empts the earlier checks.

        Checks, first failure wins:
        1. caller has not claimed before       else AlreadyClaimed
        2. a commitment is published           else NoCommitmentPublished
        3. proof reduces leaf(caller, amount)
           to the active commitment            else InvalidProof
        4. the pool covers amount              else PoolExhausted
        """
        account = self._identity(caller)
        with self._transaction(account) as txn:
            if account in self._claimed:
                raise AlreadyClaimed(f"{account} has already claimed")
            if self._commitment == EMPTY_COMMITMENT:
                raise NoCommitmentPublished("No allowlist commitment is active")
            try:
                value = parse_amount(amount)
                nodes = [to_node(p) for p in proof]
                leaf = encode_leaf(account, value)
            except (TypeError, ValueError):
                raise InvalidProof(f"Invalid proof for {account}") from None
            if not verify_proof(nodes, self._commitment, leaf):
                raise InvalidProof(f"Invalid proof for {account}")

            pool = self._principal
            if txn.balance_of(pool) < value:
                raise PoolExhausted(
                    f"Pool holds {txn.balance_of(pool)}, claim needs {value}"
                )

            txn.claimed.add(account)
            txn.move(pool, account, value)
            txn.emit(EventKind.CLAIMED, {"account": account, "amount": str(value)})

    # ------------------------------------------------------------------
    # Administration (principal only)
    # ------------------------------------------------------------------

    def batch_push(
        self,
        caller: AccountLike,
        recipients: Sequence[AccountLike],
        amounts: Sequence[AmountLike],
    ) -> None:
        """Send amounts[i] from the pool to recipients[i], all or nothing.

        Entries are processed in order against the running pool balance.
        Any invalid entry aborts the whole batch. Amounts may be ints or
        decimal strings.
        """
        with self._transaction(self._identity(caller)) as txn:
            pool = self._require_principal(caller)
            recipients = list(recipients)
            amounts = list(amounts)
            if len(recipients) != len(amounts):
                raise LengthMismatch(
                    f"{len(recipients)} recipients but {len(amounts)} amounts"
                )

            total = 0
            for index, (recipient, amount) in enumerate(zip(recipients, amounts)):
                try:
                    to = normalize_account(recipient)
                except ValueError:
                    raise InvalidRecipient(
                        f"Entry {index}: invalid recipient {recipient!r}"
                    ) from None
                if to == NULL_ACCOUNT:
                    raise InvalidRecipient(f"Entry {index}: null recipient")
                try:
                    value = parse_amount(amount)
                except ValueError:
                    raise InvalidAmount(
                        f"Entry {index}: invalid amount {amount!r}"
                    ) from None
                if txn.balance_of(pool) < value:
                    raise PoolExhausted(
                        f"Entry {index}: pool holds {txn.balance_of(pool)}, "
                        f"entry needs {value}"
                    )
                txn.move(pool, to, value)
                total += value

            txn.emit(EventKind.BATCH_COMPLETED, {
                "count": len(recipients), "total": str(total),
            })

    def batch_push_entries(
        self,
        caller: AccountLike,
        entries: Iterable[tuple[AccountLike, AmountLike]],
    ) -> None:
        """batch_push over (recipient, amount) pairs."""
        pairs = list(entries)
        self.batch_push(caller, [p[0] for p in pairs], [p[1] for p in pairs])

    def set_commitment(self, caller: AccountLike, commitment: NodeLike) -> None:
        """Replace the active commitment. Takes effect immediately.

        The empty sentinel disables claiming. Recorded claims are unaffected.
        """
        with self._transaction(self._identity(caller)) as txn:
            self._require_principal(caller)
            root = to_node(commitment)
            txn.commitment = root
            txn.emit(EventKind.COMMITMENT_UPDATED, {
                "previous": node_hex(self._commitment),
                "commitment": node_hex(root),
            })

    def transfer_principal(self, caller: AccountLike, new_principal: AccountLike) -> None:
        """Hand administration to another account. Balances do not move."""
        with self._transaction(self._identity(caller)) as txn:
            previous = self._require_principal(caller)
            try:
                successor = normalize_account(new_principal)
            except ValueError:
                raise InvalidPrincipal(f"Invalid principal {new_principal!r}") from None
            if successor == NULL_ACCOUNT:
                raise InvalidPrincipal("Principal cannot be the null account")
            txn.principal = successor
            txn.emit(EventKind.PRINCIPAL_CHANGED, {
                "previous": previous, "principal": successor,
            })

    # ------------------------------------------------------------------
    # Plain transfer
    # ------------------------------------------------------------------

    def transfer(
        self,
        caller: AccountLike,
        recipient: AccountLike,
        amount: AmountLike,
    ) -> None:
        """Move units from the caller to a recipient."""
        sender = self._identity(caller)
        with self._transaction(sender) as txn:
            try:
                to = normalize_account(recipient)
            except ValueError:
                raise InvalidRecipient(f"Invalid recipient {recipient!r}") from None
            if to == NULL_ACCOUNT:
                raise InvalidRecipient("Cannot transfer to the null account")
            try:
                value = parse_amount(amount)
            except ValueError:
                raise InvalidAmount(f"Invalid amount {amount!r}") from None
            if txn.balance_of(sender) < value:
                raise InsufficientBalance(
                    f"{sender} holds {txn.balance_of(sender)}, transfer needs {value}"
                )
            txn.move(sender, to, value)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def balance_of(self, account: AccountLike) -> int:
        key = normalize_account(account)
        with self._lock:
            return self._balances.get(key, 0)

    def is_claimed(self, account: AccountLike) -> bool:
        key = normalize_account(account)
        with self._lock:
            return key in self._claimed

    def claimed_accounts(self) -> frozenset:
        with self._lock:
            return frozenset(self._claimed)

    def holders(self) -> dict[str, int]:
        with self._lock:
            return dict(self._balances)

    @property
    def commitment(self) -> bytes:
        with self._lock:
            return self._commitment

    @property
    def has_commitment(self) -> bool:
        return self.commitment != EMPTY_COMMITMENT

    @property
    def principal(self) -> str:
        with self._lock:
            return self._principal

    @property
    def total_supply(self) -> int:
        return self._total_supply

    @property
    def event_log(self) -> EventLog:
        return self._event_log

    def snapshot(self) -> LedgerSnapshot:
        with self._lock:
            return LedgerSnapshot(
                principal=self._principal,
                total_supply=self._total_supply,
                commitment=self._commitment,
                balances=dict(self._balances),
                claimed=frozenset(self._claimed),
            )

    def check_invariants(self) -> list[str]:
        """Return violated invariants. Empty list means the ledger is sound."""
        errors: list[str] = []
        with self._lock:
            held = sum(self._balances.values())
            if held != self._total_supply:
                errors.append(
                    f"Balances sum to {held}, total supply is {self._total_supply}"
                )
            negative = sorted(a for a, b in self._balances.items() if b < 0)
            if negative:
                errors.append(f"Negative balances: {', '.join(negative)}")
            if self._principal == NULL_ACCOUNT:
                errors.append("Principal is the null account")
        return errors

    # ------------------------------------------------------------------
    # Replay
    # ------------------------------------------------------------------

    @classmethod
    def replay(cls, event_log: EventLog) -> AllocationLedger:
        """Rebuild a ledger from its event log.

        Fail-closed: a log that does not open with ledger initialization,
        records a second claim for one account, overdraws a balance, or
        ends with broken invariants raises ValueError.
        """
        events = event_log.events()
        if not events or events[0].event_kind != EventKind.LEDGER_INITIALIZED:
            raise ValueError("Event log does not start with ledger initialization")

        genesis = events[0].payload
        ledger = cls.__new__(cls)
        ledger._setup(
            normalize_account(genesis["principal"]),
            int(genesis["total_supply"]),
            event_log,
        )
        for event in events[1:]:
            ledger._apply_event(event)

        errors = ledger.check_invariants()
        if errors:
            raise ValueError(f"Replayed ledger is inconsistent: {'; '.join(errors)}")
        return ledger

    def _apply_event(self, event: EventRecord) -> None:
        payload = event.payload
        kind = event.event_kind
        if kind == EventKind.TRANSFER:
            amount = int(payload["amount"])
            sender = normalize_account(payload["from"])
            recipient = normalize_account(payload["to"])
            if sender != NULL_ACCOUNT:
                remaining = self._balances.get(sender, 0) - amount
                if remaining < 0:
                    raise ValueError(f"Event {event.event_id} overdraws {sender}")
                self._set_balance(sender, remaining)
            self._set_balance(recipient, self._balances.get(recipient, 0) + amount)
        elif kind == EventKind.CLAIMED:
            account = normalize_account(payload["account"])
            if account in self._claimed:
                raise ValueError(f"Event {event.event_id}: {account} claimed twice")
            self._claimed.add(account)
        elif kind == EventKind.COMMITMENT_UPDATED:
            self._commitment = to_node(payload["commitment"])
        elif kind == EventKind.PRINCIPAL_CHANGED:
            self._principal = normalize_account(payload["principal"])
        elif kind == EventKind.LEDGER_INITIALIZED:
            raise ValueError(f"Event {event.event_id}: ledger initialized twice")

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    @contextmanager
    def _transaction(self, actor_id: str) -> Iterator[_Transaction]:
        """Serialize one operation and commit its staged effects on success.

        An exception inside the block discards everything staged.
        """
        with self._lock:
            txn = _Transaction(self, actor_id)
            yield txn
            records = self._commit(txn)
        # Subscribers run outside the lock and see fully applied state.
        self._event_log.notify(records)

    def _commit(self, txn: _Transaction) -> list[EventRecord]:
        now = datetime.now(timezone.utc)
        records = [
            EventRecord.create(
                event_id=f"evt-{self._event_counter + offset + 1:08d}",
                event_kind=kind,
                actor_id=txn.actor_id,
                payload=payload,
                timestamp_utc=now,
            )
            for offset, (kind, payload) in enumerate(txn.events)
        ]
        # Audit first: if the log rejects the group, nothing is applied.
        self._event_log.append_many(records, notify=False)
        self._event_counter += len(records)

        for account, balance in txn.balances.items():
            self._set_balance(account, balance)
        self._claimed.update(txn.claimed)
        if txn.commitment is not None:
            self._commitment = txn.commitment
        if txn.principal is not None:
            self._principal = txn.principal
        return records

    def _set_balance(self, account: str, balance: int) -> None:
        if balance:
            self._balances[account] = balance
        else:
            self._balances.pop(account, None)

    def _identity(self, caller: AccountLike) -> str:
        try:
            return normalize_account(caller)
        except ValueError:
            raise Unauthorized(f"Invalid caller identity {caller!r}") from None

    def _require_principal(self, caller: AccountLike) -> str:
        account = self._identity(caller)
        if account != self._principal:
            raise Unauthorized(f"{account} is not the principal")
        return account
