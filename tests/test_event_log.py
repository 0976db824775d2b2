"""Tests for the event log — proves append-only, tamper-evident persistence."""

import json
from datetime import datetime, timezone
from pathlib import Path

import pytest

from distributor.persistence.event_log import EventKind, EventLog, EventRecord


def _event(event_id: str, kind: EventKind = EventKind.TRANSFER, **payload) -> EventRecord:
    return EventRecord.create(
        event_id=event_id,
        event_kind=kind,
        actor_id="0xA",
        payload=payload or {"amount": "1"},
    )


class TestEventRecord:
    def test_hash_is_deterministic(self) -> None:
        ts = datetime(2026, 1, 1, tzinfo=timezone.utc)
        a = EventRecord.create("e-1", EventKind.TRANSFER, "0xA", {"amount": "1"}, ts)
        b = EventRecord.create("e-1", EventKind.TRANSFER, "0xA", {"amount": "1"}, ts)
        assert a.event_hash == b.event_hash
        assert a.event_hash.startswith("sha256:")

    def test_hash_covers_payload(self) -> None:
        assert _event("e-1", amount="1").event_hash != _event("e-1", amount="2").event_hash

    def test_to_dict(self) -> None:
        data = _event("e-1").to_dict()
        assert data["event_kind"] == "transfer"
        assert set(data) == {
            "event_id", "event_kind", "timestamp_utc", "actor_id", "payload", "event_hash",
        }


class TestEventLog:
    def test_append_and_query(self) -> None:
        log = EventLog()
        log.append(_event("e-1"))
        log.append(_event("e-2", EventKind.CLAIMED, account="0xA"))
        assert log.count == 2
        assert [e.event_id for e in log.events(EventKind.CLAIMED)] == ["e-2"]
        assert log.last_event.event_id == "e-2"
        assert len(log.event_hashes()) == 2

    def test_empty_log(self) -> None:
        log = EventLog()
        assert log.count == 0
        assert log.last_event is None

    def test_duplicate_id_rejected(self) -> None:
        log = EventLog()
        log.append(_event("e-1"))
        with pytest.raises(ValueError, match="Duplicate"):
            log.append(_event("e-1"))

    def test_rejected_group_leaves_log_unchanged(self, tmp_path: Path) -> None:
        path = tmp_path / "events.jsonl"
        log = EventLog(storage_path=path)
        log.append(_event("e-1"))
        with pytest.raises(ValueError):
            log.append_many([_event("e-2"), _event("e-1")])
        assert log.count == 1
        assert len(path.read_text().splitlines()) == 1

    def test_duplicate_within_group_rejected(self) -> None:
        log = EventLog()
        with pytest.raises(ValueError):
            log.append_many([_event("e-1"), _event("e-1")])
        assert log.count == 0

    def test_events_for_account(self) -> None:
        log = EventLog()
        log.append(EventRecord.create(
            event_id="e-1", event_kind=EventKind.TRANSFER, actor_id="0xP",
            payload={"from": "0xP", "to": "0xB", "amount": "5"},
        ))
        log.append(_event("e-2"))
        assert [e.event_id for e in log.events_for("0xB")] == ["e-1"]
        assert [e.event_id for e in log.events_for("0xA")] == ["e-2"]

    def test_subscribers_notified_in_order(self) -> None:
        log = EventLog()
        seen: list[str] = []
        log.subscribe(lambda e: seen.append(e.event_id))
        log.append_many([_event("e-1"), _event("e-2")])
        assert seen == ["e-1", "e-2"]


class TestPersistence:
    def test_round_trip(self, tmp_path: Path) -> None:
        path = tmp_path / "events.jsonl"
        log = EventLog(storage_path=path)
        log.append_many([_event("e-1"), _event("e-2", EventKind.CLAIMED)])

        reloaded = EventLog(storage_path=path)
        assert reloaded.event_hashes() == log.event_hashes()
        assert reloaded.events()[1].event_kind == EventKind.CLAIMED

    def test_tampered_record_rejected(self, tmp_path: Path) -> None:
        path = tmp_path / "events.jsonl"
        EventLog(storage_path=path).append(_event("e-1", amount="1"))

        record = json.loads(path.read_text())
        record["payload"]["amount"] = "1000"
        path.write_text(json.dumps(record) + "\n")

        with pytest.raises(ValueError, match="Integrity check failed"):
            EventLog(storage_path=path)

    def test_duplicate_line_rejected(self, tmp_path: Path) -> None:
        path = tmp_path / "events.jsonl"
        EventLog(storage_path=path).append(_event("e-1"))
        line = path.read_text()
        path.write_text(line + line)

        with pytest.raises(ValueError, match="Duplicate event ID on recovery"):
            EventLog(storage_path=path)

    def test_blank_lines_ignored(self, tmp_path: Path) -> None:
        path = tmp_path / "events.jsonl"
        EventLog(storage_path=path).append(_event("e-1"))
        path.write_text(path.read_text() + "\n\n")
        assert EventLog(storage_path=path).count == 1


class TestSubscribers:
    def test_failing_subscriber_is_isolated(self) -> None:
        log = EventLog()
        seen: list[str] = []

        def explode(event: EventRecord) -> None:
            raise RuntimeError("boom")

        log.subscribe(explode)
        log.subscribe(lambda e: seen.append(e.event_id))
        log.append(_event("e-1"))

        assert log.count == 1
        assert seen == ["e-1"]
        [(event_id, error)] = log.subscriber_errors
        assert event_id == "e-1"
        assert isinstance(error, RuntimeError)

    def test_deferred_notification(self) -> None:
        log = EventLog()
        seen: list[str] = []
        log.subscribe(lambda e: seen.append(e.event_id))

        batch = [_event("e-1"), _event("e-2")]
        log.append_many(batch, notify=False)
        assert log.count == 2
        assert seen == []

        log.notify(batch)
        assert seen == ["e-1", "e-2"]
