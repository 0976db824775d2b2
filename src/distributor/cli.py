"""Distributor CLI — command-line interface for the allocation ledger.

Usage:
    python -m distributor.cli status
    python -m distributor.cli build-tree --allowlist allowlist.json --out proofs.json
    python -m distributor.cli verify-proof --proofs proofs.json --address 0xA...
    python -m distributor.cli set-commitment --caller 0xP... --proofs proofs.json
    python -m distributor.cli claim --caller 0xA... --proofs proofs.json
    python -m distributor.cli push --caller 0xP... --entry 0xB...:100 --entry 0xC...:50
    python -m distributor.cli transfer-principal --caller 0xP... --to 0xQ...
    python -m distributor.cli balance --account 0xA...
    python -m distributor.cli check-invariants

Ledger state lives in <data-dir>/events.jsonl and is replayed on every
invocation.
"""

from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path

from distributor.config import DistributorConfig
from distributor.crypto.commitment_builder import build_from_file
from distributor.crypto.leaf import encode_leaf
from distributor.crypto.merkle import to_node, verify_proof
from distributor.models.allocation import AllowlistCommitment
from distributor.persistence.event_log import EventLog
from distributor.service import DistributorService, ServiceResult


DEFAULT_CONFIG = Path(__file__).resolve().parents[2] / "config"


def _load_config(args: argparse.Namespace) -> DistributorConfig:
    return DistributorConfig.from_env(args.config)


def _events_path(args: argparse.Namespace, config: DistributorConfig) -> Path:
    data_dir = args.data_dir if args.data_dir is not None else config.data_dir
    return data_dir / "events.jsonl"


def _make_service(args: argparse.Namespace) -> DistributorService:
    """Create a DistributorService backed by the JSONL event log."""
    config = _load_config(args)
    path = _events_path(args, config)
    path.parent.mkdir(parents=True, exist_ok=True)
    return DistributorService(config, event_log=EventLog(storage_path=path))


def _load_proofs(path: Path) -> AllowlistCommitment:
    """Read a proofs.json bundle. Raises ValueError for a malformed file."""
    try:
        return AllowlistCommitment.from_json(path.read_text(encoding="utf-8"))
    except (KeyError, TypeError) as e:
        raise ValueError(f"Malformed proofs file {path}: {e!r}") from None


def _report(result: ServiceResult) -> int:
    if result.success:
        print(json.dumps(result.data, indent=2))
        return 0
    print(f"Failed: {'; '.join(result.errors)}", file=sys.stderr)
    return 1


def cmd_status(args: argparse.Namespace) -> int:
    service = _make_service(args)
    print(json.dumps(service.status(), indent=2))
    return 0


def cmd_build_tree(args: argparse.Namespace) -> int:
    """Offline: build the root and proofs from an allowlist file."""
    try:
        commitment = build_from_file(args.allowlist, sort_leaves=args.sort_leaves)
    except (ValueError, KeyError, TypeError) as e:
        print(f"Failed: {e}", file=sys.stderr)
        return 1
    args.out.write_text(commitment.to_json() + "\n", encoding="utf-8")
    print(f"merkle root: {commitment.root_hex}")
    print(f"recipients: {len(commitment.claims)}  total: {commitment.total_amount}")
    print(f"wrote {args.out}")
    return 0


def cmd_verify_proof(args: argparse.Namespace) -> int:
    """Check one recipient's proof from a proofs file against its root."""
    try:
        bundle = _load_proofs(args.proofs)
        entry = bundle.proof_for(args.address)
        root = to_node(args.root) if args.root else bundle.root
    except ValueError as e:
        print(f"Failed: {e}", file=sys.stderr)
        return 1
    if entry is None:
        print(f"Address not in proofs file: {args.address}", file=sys.stderr)
        return 1
    ok = verify_proof(entry.proof, root, encode_leaf(entry.account, entry.amount))
    print(json.dumps({"address": entry.account, "amount": str(entry.amount), "valid": ok}))
    return 0 if ok else 1


def cmd_set_commitment(args: argparse.Namespace) -> int:
    service = _make_service(args)
    if args.proofs is not None:
        try:
            bundle = _load_proofs(args.proofs)
        except ValueError as e:
            print(f"Failed: {e}", file=sys.stderr)
            return 1
        return _report(service.publish_allowlist(args.caller, bundle))
    return _report(service.set_commitment(args.caller, args.root))


def cmd_claim(args: argparse.Namespace) -> int:
    service = _make_service(args)
    if args.proofs is not None:
        try:
            entry = _load_proofs(args.proofs).proof_for(args.caller)
        except ValueError as e:
            print(f"Failed: {e}", file=sys.stderr)
            return 1
        if entry is None:
            print(f"Failed: {args.caller} is not in the proofs file", file=sys.stderr)
            return 1
        amount, proof = (args.amount or entry.amount), entry.proof
    else:
        if args.amount is None:
            print("Failed: --amount is required without --proofs", file=sys.stderr)
            return 1
        amount, proof = args.amount, args.proof
    return _report(service.claim(args.caller, amount, proof))


def cmd_push(args: argparse.Namespace) -> int:
    entries: list[tuple[str, str]] = []
    for raw in args.entry:
        recipient, sep, amount = raw.rpartition(":")
        if not sep:
            print(f"Failed: entry must be ADDRESS:AMOUNT, got {raw}", file=sys.stderr)
            return 1
        entries.append((recipient, amount))
    if args.file is not None:
        try:
            data = json.loads(args.file.read_text(encoding="utf-8"))
            entries.extend((item["address"], str(item["amount"])) for item in data)
        except (ValueError, KeyError, TypeError) as e:
            print(f"Failed: malformed entries file {args.file}: {e!r}", file=sys.stderr)
            return 1
    service = _make_service(args)
    return _report(service.batch_push(args.caller, entries))


def cmd_transfer_principal(args: argparse.Namespace) -> int:
    service = _make_service(args)
    return _report(service.transfer_principal(args.caller, args.to))


def cmd_transfer(args: argparse.Namespace) -> int:
    service = _make_service(args)
    return _report(service.transfer(args.caller, args.to, args.amount))


def cmd_balance(args: argparse.Namespace) -> int:
    service = _make_service(args)
    return _report(service.balance(args.account))


def cmd_check_invariants(args: argparse.Namespace) -> int:
    """Replay the event log and check ledger invariants."""
    tools_dir = Path(__file__).resolve().parents[2] / "tools"
    sys.path.insert(0, str(tools_dir))
    from check_invariants import check
    return check(_events_path(args, _load_config(args)), config_dir=args.config)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="distributor",
        description="Merkle distributor — allocation ledger CLI",
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=DEFAULT_CONFIG,
        help="Path to config directory (default: config/)",
    )
    parser.add_argument(
        "--data-dir",
        type=Path,
        default=None,
        help="Directory holding events.jsonl (default: from config)",
    )
    sub = parser.add_subparsers(dest="command")

    # status
    sub.add_parser("status", help="Show ledger status")

    # build-tree
    p_build = sub.add_parser("build-tree", help="Build root and proofs from an allowlist")
    p_build.add_argument("--allowlist", type=Path, required=True,
                         help='JSON list of {"address", "amount"}')
    p_build.add_argument("--out", type=Path, default=Path("proofs.json"))
    p_build.add_argument("--sort-leaves", action="store_true",
                         help="Sort leaves before building. The default keeps "
                              "allowlist order, which reproduces merkletreejs "
                              "roots built with sortPairs only")

    # verify-proof
    p_verify = sub.add_parser("verify-proof", help="Verify one proof from a proofs file")
    p_verify.add_argument("--proofs", type=Path, required=True)
    p_verify.add_argument("--address", required=True)
    p_verify.add_argument("--root", help="Root to verify against (default: file root)")

    # set-commitment
    p_commit = sub.add_parser("set-commitment", help="Publish a commitment (principal)")
    p_commit.add_argument("--caller", required=True)
    group = p_commit.add_mutually_exclusive_group(required=True)
    group.add_argument("--root", help="0x-prefixed 32-byte root")
    group.add_argument("--proofs", type=Path, help="proofs.json from build-tree")

    # claim
    p_claim = sub.add_parser("claim", help="Claim an allowlisted allocation")
    p_claim.add_argument("--caller", required=True)
    p_claim.add_argument("--amount", help="Amount in base units")
    p_claim.add_argument("--proof", nargs="*", default=[], help="Proof elements (0x...)")
    p_claim.add_argument("--proofs", type=Path, help="Look up amount and proof here")

    # push
    p_push = sub.add_parser("push", help="Batch push from the pool (principal)")
    p_push.add_argument("--caller", required=True)
    p_push.add_argument("--entry", action="append", default=[],
                        help="ADDRESS:AMOUNT (repeatable)")
    p_push.add_argument("--file", type=Path, help='JSON list of {"address", "amount"}')

    # transfer-principal
    p_owner = sub.add_parser("transfer-principal", help="Hand over administration")
    p_owner.add_argument("--caller", required=True)
    p_owner.add_argument("--to", required=True)

    # transfer
    p_transfer = sub.add_parser("transfer", help="Plain transfer between holders")
    p_transfer.add_argument("--caller", required=True)
    p_transfer.add_argument("--to", required=True)
    p_transfer.add_argument("--amount", required=True)

    # balance
    p_balance = sub.add_parser("balance", help="Show an account's balance")
    p_balance.add_argument("--account", required=True)

    # check-invariants
    sub.add_parser("check-invariants", help="Replay the event log and check invariants")

    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return 0

    commands = {
        "status": cmd_status,
        "build-tree": cmd_build_tree,
        "verify-proof": cmd_verify_proof,
        "set-commitment": cmd_set_commitment,
        "claim": cmd_claim,
        "push": cmd_push,
        "transfer-principal": cmd_transfer_principal,
        "transfer": cmd_transfer,
        "balance": cmd_balance,
        "check-invariants": cmd_check_invariants,
    }

    handler = commands.get(args.command)
    if handler is None:
        print(f"Unknown command: {args.command}", file=sys.stderr)
        return 1

    return handler(args)


if __name__ == "__main__":
    raise SystemExit(main())
