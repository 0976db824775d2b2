"""Account and amount primitives.

Accounts are 20-byte Ethereum-style addresses, carried internally as
EIP-55 checksummed strings so they compare equal regardless of the case
they were supplied in. Amounts are plain ints bounded to uint256.
"""

from __future__ import annotations

from typing import Union

from eth_utils import is_address, to_canonical_address, to_checksum_address

NULL_ACCOUNT = "0x0000000000000000000000000000000000000000"
MAX_UINT256 = 2**256 - 1

AccountLike = Union[str, bytes, bytearray]
AmountLike = Union[int, str]


def normalize_account(value: AccountLike) -> str:
    """Return the checksummed form of an account.

    Accepts a hex address string (any case; mixed case must carry a valid
    checksum) or 20 raw bytes. Raises ValueError for anything else.
    """
    if isinstance(value, (bytes, bytearray)):
        if len(value) != 20:
            raise ValueError(f"Account must be 20 bytes, got {len(value)}")
        return to_checksum_address(bytes(value))
    if not isinstance(value, str) or not is_address(value):
        raise ValueError(f"Invalid account: {value!r}")
    return to_checksum_address(value)


def account_bytes(value: AccountLike) -> bytes:
    """Return the canonical 20-byte representation of an account."""
    return to_canonical_address(normalize_account(value))


def is_uint256(value: object) -> bool:
    """True if value is an int (not a bool) in [0, 2**256)."""
    return (
        isinstance(value, int)
        and not isinstance(value, bool)
        and 0 <= value <= MAX_UINT256
    )


def parse_amount(value: AmountLike) -> int:
    """Parse a base-unit amount from an int or a decimal string.

    Allowlists and proof files carry amounts as decimal strings so that
    values above 2**53 survive JSON tooling in other languages.
    """
    if isinstance(value, bool):
        raise ValueError(f"Invalid amount: {value!r}")
    if isinstance(value, int):
        amount = value
    elif isinstance(value, str) and value.strip().isdigit():
        amount = int(value.strip())
    else:
        raise ValueError(f"Amount must be a non-negative integer, got {value!r}")
    if not is_uint256(amount):
        raise ValueError(f"Amount out of uint256 range: {amount}")
    return amount
