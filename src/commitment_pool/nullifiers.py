"""
Nullifier Registry

Set of nullifiers that have already authorised a withdrawal. Entries are
write-once: a nullifier goes from unspent to spent exactly once and never
back, except when the accumulator undoes a spend whose withdrawal did not
commit.
"""

from typing import Iterable, Iterator, Optional, Set

from .constants import NULLIFIER_SIZE
from .errors import ReplayError


class NullifierRegistry:
    """
    Spent-nullifier set with check-and-spend semantics.

    Check and mark happen in one call; the accumulator serialises calls, so
    no other operation can observe the nullifier between the two steps.
    """

    def __init__(self, spent: Optional[Iterable[bytes]] = None):
        self._spent: Set[bytes] = set()
        for nullifier in spent or ():
            if len(nullifier) != NULLIFIER_SIZE:
                raise ValueError(f"Nullifier must be {NULLIFIER_SIZE} bytes")
            self._spent.add(bytes(nullifier))

    def check_and_spend(self, nullifier: bytes) -> None:
        """
        Mark `nullifier` spent.

        Raises:
            ReplayError: If it is already spent; nothing changes
        """
        if nullifier in self._spent:
            raise ReplayError(f"Nullifier 0x{nullifier.hex()} has already been spent")
        self._spent.add(bytes(nullifier))

    def is_spent(self, nullifier: bytes) -> bool:
        return nullifier in self._spent

    def _unspend(self, nullifier: bytes) -> None:
        # Only reachable from Accumulator rollback of an uncommitted withdrawal
        self._spent.discard(nullifier)

    def __len__(self) -> int:
        return len(self._spent)

    def __iter__(self) -> Iterator[bytes]:
        # Sorted so persisted state is deterministic
        return iter(sorted(self._spent))

    def __contains__(self, nullifier: object) -> bool:
        return nullifier in self._spent
