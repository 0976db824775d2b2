#!/usr/bin/env python3
"""Anchor an allowlist commitment on Ethereum Sepolia.

Reads a proofs.json produced by `distributor build-tree`, and embeds its
root together with the canonical SHA-256 of the whole bundle in a
transaction, so recipients can later check that the root the principal
published and the proofs they were sent both match what was announced.

Usage:
    python3 tools/anchor_commitment.py proofs.json
    python3 tools/anchor_commitment.py proofs.json "Round 1 allowlist"

Requires:
    RPC_URL (or SEPOLIA_RPC_URL) and PRIVATE_KEY in a .env file at the
    project root.
"""

import sys
from pathlib import Path

# Add src to path for distributor imports
ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(ROOT / "src"))

from distributor.config import DistributorConfig
from distributor.crypto.anchor import anchor_commitment, canonical_hash
from distributor.models.allocation import AllowlistCommitment

# ------------------------------------------------------------------ #
# Configuration                                                       #
# ------------------------------------------------------------------ #

config = DistributorConfig.from_env(ROOT / "config", env_file=ROOT / ".env")

if not config.can_anchor:
    print("ERROR: Missing RPC_URL and/or PRIVATE_KEY in .env")
    sys.exit(1)

if len(sys.argv) < 2:
    print(__doc__)
    sys.exit(1)

BUNDLE = Path(sys.argv[1])
ANCHORS_FILE = ROOT / "docs" / "ANCHORS.md"

if not BUNDLE.exists():
    print(f"ERROR: Proofs bundle not found: {BUNDLE}")
    sys.exit(1)

description = " ".join(sys.argv[2:])

# ------------------------------------------------------------------ #
# Compute what gets anchored                                          #
# ------------------------------------------------------------------ #

bundle = AllowlistCommitment.from_json(BUNDLE.read_text(encoding="utf-8"))
digest = canonical_hash(BUNDLE)

print("=" * 60)
print("ALLOWLIST COMMITMENT ANCHOR")
print("=" * 60)
print()
print(f"  Bundle:         {BUNDLE.name}")
print(f"  Root:           {bundle.root_hex}")
print(f"  Recipients:     {len(bundle.claims)}")
print(f"  Total amount:   {bundle.total_amount}")
print(f"  Bundle SHA-256: {digest}")
if description:
    print(f"  Description:    {description}")
print()

# ------------------------------------------------------------------ #
# Anchor                                                              #
# ------------------------------------------------------------------ #

print(f"Anchoring to chain {config.chain_id} ...")
print()

record = anchor_commitment(
    commitment=bundle.root,
    rpc_url=config.rpc_url,
    private_key=config.private_key,
    bundle_sha256=digest,
    chain_id=config.chain_id,
    gas=config.anchor_gas,
    gas_price_gwei=config.anchor_gas_price_gwei,
    explorer_base=config.explorer_base,
)

print(f"  Confirmed in block {record.block_number}")
print(f"  Explorer: {record.explorer_url}")

# ------------------------------------------------------------------ #
# Log the anchor                                                      #
# ------------------------------------------------------------------ #

ANCHORS_FILE.parent.mkdir(parents=True, exist_ok=True)

short_tx = record.tx_hash[:10] + "..."
entry_lines = [
    f"## {bundle.root_hex}",
    "",
    f"- Bundle `{digest}` → [tx {short_tx}]({record.explorer_url})",
    f"  Recipients: {len(bundle.claims)} | Block: {record.block_number} | Anchored: {record.timestamp_utc}",
]
if description:
    entry_lines.append(f"  **{description}**")
entry_lines.append("")

with ANCHORS_FILE.open("a", encoding="utf-8") as handle:
    handle.write("\n".join(entry_lines) + "\n")

print()
print(f"Recorded in {ANCHORS_FILE.relative_to(ROOT)}")
