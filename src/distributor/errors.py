"""Distribution error taxonomy.

Every failure of a ledger operation is one of these. They are ordinary,
recoverable outcomes: the operation that raised one applied nothing, and
the caller may retry with corrected input.

Each class carries a stable ``code`` so the service layer and CLI can
report the failure without depending on message wording.
"""

from __future__ import annotations


class DistributionError(Exception):
    """Base class for all ledger operation failures."""
    code = "DistributionError"


class Unauthorized(DistributionError):
    """Caller is not the current principal."""
    code = "Unauthorized"


class AlreadyClaimed(DistributionError):
    """Account is already in the claimed set."""
    code = "AlreadyClaimed"


class NoCommitmentPublished(DistributionError):
    """The active commitment is the empty sentinel."""
    code = "NoCommitmentPublished"


class InvalidProof(DistributionError):
    """Proof, amount, or leaf encoding does not reduce to the active commitment.

    Intentionally undifferentiated.
    """
    code = "InvalidProof"


class PoolExhausted(DistributionError):
    """The principal's balance cannot cover the requested amount."""
    code = "PoolExhausted"


class InvalidRecipient(DistributionError):
    """Recipient is the null identifier or not a valid account."""
    code = "InvalidRecipient"


class LengthMismatch(DistributionError):
    """Batch recipients and amounts differ in length."""
    code = "LengthMismatch"


class InvalidPrincipal(DistributionError):
    """Proposed principal is the null identifier or not a valid account."""
    code = "InvalidPrincipal"


class InvalidAmount(DistributionError):
    """Amount is not an integer in the uint256 range."""
    code = "InvalidAmount"


class InsufficientBalance(DistributionError):
    """Sender balance is too low for a plain transfer."""
    code = "InsufficientBalance"
