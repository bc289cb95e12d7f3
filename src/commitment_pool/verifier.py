"""
Proof Verifier Interface

The accumulator checks root freshness and nullifier uniqueness, but whether a
withdrawal corresponds to a genuine prior deposit can only be established by
a zero-knowledge proof over (root, nullifier, amount, recipient). No such
proof system lives in this package. A concrete verifier (a SNARK or STARK
verification routine) must be injected before withdrawals can be trusted.

Two stand-ins are provided:

- UnconfiguredVerifier: rejects every proof. This is what a pool gets when
  nothing has been wired in.
- AcceptAllVerifier: accepts every proof. Development and testing only; it
  makes the pool trivially drainable and says so in the log.
"""

import logging
from dataclasses import dataclass
from typing import Protocol, runtime_checkable

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PublicInputs:
    """Values a withdrawal proof must be bound to."""
    root: bytes
    nullifier: bytes
    amount: int
    recipient: str


@runtime_checkable
class ProofVerifier(Protocol):
    def verify(self, proof: bytes, public_inputs: PublicInputs) -> bool: ...


class UnconfiguredVerifier:
    """Rejects all proofs; stands in until a real verifier is deployed."""

    def verify(self, proof: bytes, public_inputs: PublicInputs) -> bool:
        logger.error(
            "Withdrawal rejected: no proof verifier is configured for this pool"
        )
        return False


class AcceptAllVerifier:
    """
    Accepts any proof without inspecting it.

    INSECURE: anyone holding an unspent nullifier and a recent root can drain
    the pool. Never deploy with this verifier.
    """

    def __init__(self):
        logger.warning(
            "AcceptAllVerifier in use: withdrawal proofs are NOT verified. "
            "Do not use this configuration outside development."
        )

    def verify(self, proof: bytes, public_inputs: PublicInputs) -> bool:
        return True
