"""Leaf encoding for allowlist entries.

A leaf is keccak256(abi.encodePacked(address, uint256)): the 20-byte
address immediately followed by the amount as 32 big-endian bytes, 52
bytes in all, hashed once. The offline builder and the ledger must agree
on this byte-for-byte or every proof fails verification.
"""

from __future__ import annotations

from eth_abi.packed import encode_packed
from eth_utils import keccak

from distributor.models.account import AccountLike, account_bytes, is_uint256

NODE_SIZE = 32


def encode_leaf(account: AccountLike, amount: int) -> bytes:
    """Encode one (account, amount) allocation as a 32-byte leaf.

    Raises ValueError for a malformed account or an amount outside uint256.
    """
    if not is_uint256(amount):
        raise ValueError(f"Amount must be an int in uint256 range, got {amount!r}")
    packed = encode_packed(["address", "uint256"], [account_bytes(account), amount])
    return keccak(packed)
