"""
Commitment Pool

Append-only commitment accumulator: an incremental Merkle tree, a bounded
window of recent roots, and a spent-nullifier registry, orchestrated by a
deposit/withdraw facade.

Zero-knowledge proof verification is NOT part of this package. Withdrawals
are only as sound as the ProofVerifier injected into the Accumulator.

Usage:
    from commitment_pool import Accumulator, PayoutLedger

    pool = Accumulator(my_verifier, PayoutLedger(), depth=20)
    event = pool.deposit(commitment, 1)
"""

__version__ = "0.1.0"

from .accumulator import (
    Accumulator,
    DepositEvent,
    WithdrawalEvent,
    event_from_dict,
)
from .errors import (
    AccumulatorError,
    InputError,
    CapacityError,
    ReplayError,
    StaleRootError,
    ProofRejected,
    TransferError,
)
from .history import RootHistory
from .merkle import CommitmentTree
from .nullifiers import NullifierRegistry
from .transfer import PayoutLedger, ValueTransfer
from .verifier import (
    AcceptAllVerifier,
    ProofVerifier,
    PublicInputs,
    UnconfiguredVerifier,
)

__all__ = [
    "__version__",
    # Facade
    "Accumulator",
    "DepositEvent",
    "WithdrawalEvent",
    "event_from_dict",
    # Components
    "CommitmentTree",
    "RootHistory",
    "NullifierRegistry",
    # Collaborators
    "ProofVerifier",
    "PublicInputs",
    "AcceptAllVerifier",
    "UnconfiguredVerifier",
    "ValueTransfer",
    "PayoutLedger",
    # Errors
    "AccumulatorError",
    "InputError",
    "CapacityError",
    "ReplayError",
    "StaleRootError",
    "ProofRejected",
    "TransferError",
]
