"""Append-only event log — the canonical record of every ledger mutation.

Every successful state change on the ledger produces one or more event
records, appended to the log in a single step. Events are immutable once
written. The log serves as:
1. The notification channel for observers (transfers, claims, admin changes).
2. The audit trail for third-party verification.
3. The source of truth for state reconstruction (AllocationLedger.replay).
"""

from __future__ import annotations

import enum
import hashlib
import json
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Iterable, Optional


class EventKind(str, enum.Enum):
    """Classification of ledger events."""
    LEDGER_INITIALIZED = "ledger_initialized"
    TRANSFER = "transfer"
    CLAIMED = "claimed"
    COMMITMENT_UPDATED = "commitment_updated"
    PRINCIPAL_CHANGED = "principal_changed"
    BATCH_COMPLETED = "batch_completed"


def _canonical_digest(
    event_id: str,
    event_kind: str,
    timestamp_utc: str,
    actor_id: str,
    payload: dict[str, Any],
) -> str:
    canonical = json.dumps(
        {
            "event_id": event_id,
            "event_kind": event_kind,
            "timestamp_utc": timestamp_utc,
            "actor_id": actor_id,
            "payload": payload,
        },
        sort_keys=True,
        ensure_ascii=False,
    ).encode("utf-8")
    return f"sha256:{hashlib.sha256(canonical).hexdigest()}"


@dataclass(frozen=True)
class EventRecord:
    """A single immutable event in the ledger log.

    The event_hash is computed at creation time over the canonical JSON
    of every other field.
    """
    event_id: str
    event_kind: EventKind
    timestamp_utc: str
    actor_id: str
    payload: dict[str, Any]
    event_hash: str

    @staticmethod
    def create(
        event_id: str,
        event_kind: EventKind,
        actor_id: str,
        payload: dict[str, Any],
        timestamp_utc: Optional[datetime] = None,
    ) -> EventRecord:
        """Create a new event record with computed hash."""
        ts = timestamp_utc or datetime.now(timezone.utc)
        ts_str = ts.strftime("%Y-%m-%dT%H:%M:%SZ")
        return EventRecord(
            event_id=event_id,
            event_kind=event_kind,
            timestamp_utc=ts_str,
            actor_id=actor_id,
            payload=payload,
            event_hash=_canonical_digest(
                event_id, event_kind.value, ts_str, actor_id, payload,
            ),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "event_id": self.event_id,
            "event_kind": self.event_kind.value,
            "timestamp_utc": self.timestamp_utc,
            "actor_id": self.actor_id,
            "payload": self.payload,
            "event_hash": self.event_hash,
        }


class EventLog:
    """Append-only event log with optional file persistence.

    Events can only be appended, never modified or deleted.
    The log can be persisted to a JSONL file (one JSON object per line)
    and loaded back for recovery. Subscribers are notified after each
    successful append.
    """

    def __init__(self, storage_path: Optional[Path] = None) -> None:
        self._events: list[EventRecord] = []
        self._storage_path = storage_path
        self._event_ids: set[str] = set()
        self._subscribers: list[Callable[[EventRecord], None]] = []
        self._subscriber_errors: list[tuple[str, Exception]] = []

        if storage_path and storage_path.exists():
            self._load_from_file(storage_path)

    def append(self, event: EventRecord) -> None:
        """Append one event.

        Raises ValueError if event_id is a duplicate (replay protection).
        """
        self.append_many([event])

    def append_many(self, events: Iterable[EventRecord], notify: bool = True) -> None:
        """Append a group of events as one unit.

        All ids are checked before anything is written, and the file
        receives the whole group in a single write, so a rejected group
        leaves the log unchanged. With notify=False the caller is
        responsible for calling notify() once its own state is settled.
        """
        batch = list(events)
        seen: set[str] = set()
        for event in batch:
            if event.event_id in self._event_ids or event.event_id in seen:
                raise ValueError(f"Duplicate event ID: {event.event_id}")
            seen.add(event.event_id)

        if self._storage_path:
            self._append_to_file(batch)

        for event in batch:
            self._events.append(event)
            self._event_ids.add(event.event_id)
        if notify:
            self.notify(batch)

    def subscribe(self, callback: Callable[[EventRecord], None]) -> None:
        """Register a callback invoked for every event appended from now on."""
        self._subscribers.append(callback)

    def notify(self, events: Iterable[EventRecord]) -> None:
        """Deliver already-stored events to every subscriber.

        A failing subscriber cannot undo an append. Its exception is
        recorded in subscriber_errors and delivery continues.
        """
        for event in events:
            for callback in list(self._subscribers):
                try:
                    callback(event)
                except Exception as e:
                    self._subscriber_errors.append((event.event_id, e))

    @property
    def subscriber_errors(self) -> list[tuple[str, Exception]]:
        return list(self._subscriber_errors)

    def events(self, kind: Optional[EventKind] = None) -> list[EventRecord]:
        """Return events, optionally filtered by kind."""
        if kind is None:
            return list(self._events)
        return [e for e in self._events if e.event_kind == kind]

    def events_for(self, account: str) -> list[EventRecord]:
        """Return events whose actor or payload mentions an account."""
        return [
            e for e in self._events
            if e.actor_id == account or account in e.payload.values()
        ]

    def event_hashes(self, kind: Optional[EventKind] = None) -> list[str]:
        return [e.event_hash for e in self.events(kind)]

    @property
    def count(self) -> int:
        return len(self._events)

    @property
    def last_event(self) -> Optional[EventRecord]:
        return self._events[-1] if self._events else None

    def _append_to_file(self, events: list[EventRecord]) -> None:
        lines = "".join(
            json.dumps(e.to_dict(), sort_keys=True, ensure_ascii=False) + "\n"
            for e in events
        )
        with self._storage_path.open("a", encoding="utf-8") as f:
            f.write(lines)

    def _load_from_file(self, path: Path) -> None:
        """Load events from a JSONL file with integrity verification.

        Fail-closed: rejects tampered records (hash mismatch) and
        duplicate event IDs (replay protection on recovery).
        """
        with path.open("r", encoding="utf-8") as f:
            for line_num, line in enumerate(f, 1):
                line = line.strip()
                if not line:
                    continue
                data = json.loads(line)

                event_id = data["event_id"]
                if event_id in self._event_ids:
                    raise ValueError(
                        f"Duplicate event ID on recovery (line {line_num}): {event_id}"
                    )

                expected_hash = _canonical_digest(
                    data["event_id"],
                    data["event_kind"],
                    data["timestamp_utc"],
                    data["actor_id"],
                    data["payload"],
                )
                if data["event_hash"] != expected_hash:
                    raise ValueError(
                        f"Integrity check failed (line {line_num}): event {event_id} "
                        f"stored hash {data['event_hash']} != computed {expected_hash}"
                    )

                event = EventRecord(
                    event_id=data["event_id"],
                    event_kind=EventKind(data["event_kind"]),
                    timestamp_utc=data["timestamp_utc"],
                    actor_id=data["actor_id"],
                    payload=data["payload"],
                    event_hash=data["event_hash"],
                )
                self._events.append(event)
                self._event_ids.add(event.event_id)
