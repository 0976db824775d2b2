"""Allocation ledger — balances, claimed set, claim and batch-push protocols."""

from distributor.ledger.allocation_ledger import AllocationLedger, DEFAULT_TOTAL_SUPPLY

__all__ = ["AllocationLedger", "DEFAULT_TOTAL_SUPPLY"]
