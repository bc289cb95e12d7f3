"""
Root History

Append-only log of every root the commitment tree has produced, starting
with the genesis (empty-tree) root. Withdrawals may only reference one of the
most recent `window` roots: the bounded scan keeps lookups cheap as the pool
ages, at the cost of rejecting proofs built against an expired root.
"""

from typing import Iterator, List, Optional, Sequence

from .constants import DEFAULT_ROOT_HISTORY_SIZE, ROOT_SIZE


class RootHistory:
    """Ordered, never-pruned root log with a recency-window membership test."""

    def __init__(self, window: int = DEFAULT_ROOT_HISTORY_SIZE, roots: Optional[Sequence[bytes]] = None):
        if isinstance(window, bool) or not isinstance(window, int) or window < 1:
            raise ValueError(f"Root history window must be a positive integer, got {window!r}")
        self.window = window
        self._roots: List[bytes] = []
        for root in roots or ():
            self.append(root)

    def append(self, root: bytes) -> int:
        """
        Record a new root.

        Returns:
            Position of the root in the log
        """
        if len(root) != ROOT_SIZE:
            raise ValueError(f"Root must be {ROOT_SIZE} bytes")
        self._roots.append(bytes(root))
        return len(self._roots) - 1

    def is_known_root(self, root: bytes) -> bool:
        """
        Check whether `root` is among the most recent min(window, len) roots.

        Older roots are reported unknown even though they were once valid.
        """
        if not self._roots:
            return False
        # Newest first; the most likely match is the current root
        for position in range(len(self._roots) - 1, max(-1, len(self._roots) - 1 - self.window), -1):
            if self._roots[position] == root:
                return True
        return False

    def recent(self) -> List[bytes]:
        """Roots currently accepted by is_known_root, oldest first."""
        return self._roots[-self.window:]

    def truncate(self, length: int) -> None:
        """Drop roots past `length`; only used to undo an uncommitted insertion."""
        if not 1 <= length <= len(self._roots):
            raise ValueError(f"Cannot truncate root history of {len(self._roots)} to {length}")
        del self._roots[length:]

    @property
    def latest(self) -> bytes:
        if not self._roots:
            raise IndexError("Root history is empty")
        return self._roots[-1]

    def __len__(self) -> int:
        return len(self._roots)

    def __iter__(self) -> Iterator[bytes]:
        return iter(self._roots)

    def __getitem__(self, position: int) -> bytes:
        return self._roots[position]
