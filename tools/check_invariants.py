#!/usr/bin/env python3
"""Distributor invariant checks against the configuration and the event log."""

import json
import sys
from pathlib import Path
from typing import Optional


ROOT = Path(__file__).resolve().parents[1]
DEFAULT_CONFIG_DIR = ROOT / "config"
PARAMS_FILE = "distributor_params.json"
DEFAULT_EVENTS_PATH = ROOT / "data" / "events.jsonl"

sys.path.insert(0, str(ROOT / "src"))

from distributor.ledger.allocation_ledger import AllocationLedger  # noqa: E402
from distributor.persistence.event_log import EventKind, EventLog  # noqa: E402


def load_json(path: Path) -> dict:
    with path.open("r", encoding="utf-8") as handle:
        return json.load(handle)


def check_params(params: dict, errors: list[str]) -> None:
    token = params["token"]
    if not 0 <= token["decimals"] <= 77:
        errors.append("token.decimals must be in [0, 77]")
    if token["total_supply_units"] <= 0:
        errors.append("token.total_supply_units must be > 0")
    if int(params["ledger"]["principal"], 16) == 0:
        errors.append("ledger.principal must not be the null account")


def check_batches(log: EventLog, errors: list[str]) -> None:
    """Each batch_completed must close a run of `count` transfers summing to `total`."""
    events = log.events()
    for index, event in enumerate(events):
        if event.event_kind != EventKind.BATCH_COMPLETED:
            continue
        count = event.payload["count"]
        run = events[index - count:index] if count else []
        if len(run) != count or any(e.event_kind != EventKind.TRANSFER for e in run):
            errors.append(f"{event.event_id}: batch of {count} not preceded by {count} transfers")
            continue
        total = sum(int(e.payload["amount"]) for e in run)
        if total != int(event.payload["total"]):
            errors.append(f"{event.event_id}: batch total {event.payload['total']} != {total}")


def check_claims(log: EventLog, errors: list[str]) -> None:
    """Each claimed event must directly follow the transfer that paid it."""
    events = log.events()
    for index, event in enumerate(events):
        if event.event_kind != EventKind.CLAIMED:
            continue
        paid = events[index - 1] if index else None
        if (
            paid is None
            or paid.event_kind != EventKind.TRANSFER
            or paid.payload["to"] != event.payload["account"]
            or paid.payload["amount"] != event.payload["amount"]
        ):
            errors.append(f"{event.event_id}: claim without matching transfer")


def check(
    events_path: Optional[Path] = None,
    config_dir: Optional[Path] = None,
) -> int:
    params = load_json((config_dir or DEFAULT_CONFIG_DIR) / PARAMS_FILE)
    errors: list[str] = []

    # --- Configuration invariants ---
    check_params(params, errors)

    # --- Ledger invariants ---
    path = events_path or DEFAULT_EVENTS_PATH
    if path.exists():
        try:
            log = EventLog(storage_path=path)
            ledger = AllocationLedger.replay(log)
        except ValueError as e:
            errors.append(str(e))
        else:
            errors.extend(ledger.check_invariants())
            check_claims(log, errors)
            check_batches(log, errors)
    else:
        print(f"No event log at {path}; checking configuration only.")

    if errors:
        print("Invariant check failed:")
        for err in errors:
            print(f"- {err}")
        return 1

    print("Invariant check passed.")
    return 0


if __name__ == "__main__":
    raise SystemExit(check(Path(sys.argv[1]) if len(sys.argv) > 1 else None))
