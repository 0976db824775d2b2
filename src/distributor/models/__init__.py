"""Core data models for the distributor."""

from distributor.models.account import (
    MAX_UINT256,
    NULL_ACCOUNT,
    normalize_account,
    parse_amount,
)
from distributor.models.allocation import (
    AllocationEntry,
    AllowlistCommitment,
    ClaimProof,
    LedgerSnapshot,
)

__all__ = [
    "MAX_UINT256",
    "NULL_ACCOUNT",
    "normalize_account",
    "parse_amount",
    "AllocationEntry",
    "AllowlistCommitment",
    "ClaimProof",
    "LedgerSnapshot",
]
