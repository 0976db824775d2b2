"""Commitment anchoring — publishes an allowlist root on Ethereum.

Anchoring embeds the commitment, together with a hash of the proofs bundle
that was distributed to recipients, in the data field of a 0-ETH
self-send transaction. Anyone can later check that the root the principal
set on the ledger is the one that was publicly announced, and that the
proofs file they received is the one the root was built from.

This is NOT a claim contract. No code executes on-chain. The chain is
only a timestamped witness.
"""

from __future__ import annotations

import hashlib
import json
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from distributor.crypto.leaf import NODE_SIZE

SEPOLIA_CHAIN_ID = 11155111


@dataclass(frozen=True)
class AnchorRecord:
    """A record of a successful blockchain anchor."""
    commitment: str
    bundle_sha256: str
    tx_hash: str
    block_number: int
    chain_id: int
    timestamp_utc: str
    explorer_url: str


def canonical_hash(document_path: Path) -> str:
    """Compute the canonical SHA-256 hash of a JSON document.

    Canonical form: sorted keys, Unicode preserved, UTF-8 encoded, so the
    same proofs bundle always hashes the same regardless of formatting.
    """
    raw = document_path.read_text(encoding="utf-8")
    parsed = json.loads(raw)
    canonical = json.dumps(parsed, sort_keys=True, ensure_ascii=False).encode("utf-8")
    return hashlib.sha256(canonical).hexdigest()


def anchor_calldata(commitment: bytes, bundle_sha256: Optional[str] = None) -> bytes:
    """Transaction data: the 32-byte root, then the 32-byte bundle hash if any."""
    if len(commitment) != NODE_SIZE:
        raise ValueError(f"Commitment must be {NODE_SIZE} bytes")
    data = bytes(commitment)
    if bundle_sha256:
        digest = bytes.fromhex(bundle_sha256)
        if len(digest) != 32:
            raise ValueError("Bundle hash must be a SHA-256 hex digest")
        data += digest
    return data


def anchor_commitment(
    commitment: bytes,
    rpc_url: str,
    private_key: str,
    bundle_sha256: str = "",
    chain_id: int = SEPOLIA_CHAIN_ID,
    gas: int = 30_000,
    gas_price_gwei: str = "2",
    explorer_base: str = "https://sepolia.etherscan.io/tx/",
) -> AnchorRecord:
    """Anchor a commitment on Ethereum and wait for one confirmation.

    Args:
        commitment: The 32-byte allowlist root.
        rpc_url: Ethereum RPC endpoint URL.
        private_key: Hex-encoded private key for signing.
        bundle_sha256: Optional canonical hash of the proofs bundle.
        chain_id: Network chain ID (default: 11155111 = Sepolia).
        gas: Gas limit for the transaction.
        gas_price_gwei: Gas price in gwei.

    Returns:
        AnchorRecord with transaction details.
    """
    from web3 import Web3, HTTPProvider
    from eth_account import Account

    w3 = Web3(HTTPProvider(rpc_url))
    acct = Account.from_key(private_key)

    nonce = w3.eth.get_transaction_count(acct.address)
    tx = {
        "to": acct.address,  # self-send, 0 ETH
        "value": 0,
        "gas": gas,
        "gasPrice": w3.to_wei(gas_price_gwei, "gwei"),
        "nonce": nonce,
        "chainId": chain_id,
        "data": anchor_calldata(commitment, bundle_sha256 or None),
    }

    signed = acct.sign_transaction(tx)
    tx_hash = w3.eth.send_raw_transaction(signed.raw_transaction)
    receipt = w3.eth.wait_for_transaction_receipt(tx_hash, timeout=300)

    now = datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")
    return AnchorRecord(
        commitment="0x" + bytes(commitment).hex(),
        bundle_sha256=bundle_sha256,
        tx_hash=tx_hash.hex(),
        block_number=receipt.blockNumber,
        chain_id=chain_id,
        timestamp_utc=now,
        explorer_url=f"{explorer_base}{tx_hash.hex()}",
    )
