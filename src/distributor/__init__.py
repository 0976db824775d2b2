"""Merkle distributor — fixed-supply ledger with allowlist claims and batch push."""

__version__ = "0.1.0"
