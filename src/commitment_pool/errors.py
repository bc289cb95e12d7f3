"""
Accumulator Errors

Every failure of a deposit or withdrawal surfaces synchronously as one of the
exceptions below. None of them is retried internally, and by the time one
reaches the caller every state change attempted during the call has been
rolled back.
"""


class AccumulatorError(Exception):
    """Base class for all accumulator operation failures."""
    pass


class InputError(AccumulatorError):
    """Raised for malformed arguments, e.g. a non-positive deposit value."""
    pass


class CapacityError(AccumulatorError):
    """
    Raised when the commitment tree has no free leaf left.

    This is terminal for the tree instance: no further deposits are possible
    and a new pool must be created to continue.
    """
    pass


class ReplayError(AccumulatorError):
    """Raised when a nullifier has already authorised a withdrawal."""
    pass


class StaleRootError(AccumulatorError):
    """Raised when a withdrawal references a root outside the recent window."""
    pass


class ProofRejected(AccumulatorError):
    """Raised when the proof verifier declines a withdrawal proof."""
    pass


class TransferError(AccumulatorError):
    """Raised when pooled value cannot be released to the recipient."""
    pass
