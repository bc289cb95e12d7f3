"""
Incremental Merkle Tree

This module implements the append-only commitment tree. Leaves are inserted
strictly left to right, so everything to the left of the insertion point is
already final and can be summarised by one cached "filled subtree" hash per
level. Each insertion therefore costs `depth` hash operations instead of a
rebuild of the whole tree.
"""

import logging
from hashlib import sha256
from typing import List, NamedTuple, Tuple

from ..constants import (
    DEFAULT_TREE_DEPTH,
    HASH_SIZE,
    MAX_TREE_DEPTH,
    MIN_TREE_DEPTH,
    ZERO_HASHES,
)
from ..errors import CapacityError, InputError

logger = logging.getLogger(__name__)


def hash_pair(left: bytes, right: bytes) -> bytes:
    """Hash two 32-byte child nodes into their parent."""
    return sha256(left + right).digest()


def validate_depth(depth: int) -> int:
    """
    Check a tree depth against the supported bounds.

    Raises:
        ValueError: If depth is not an int in [MIN_TREE_DEPTH, MAX_TREE_DEPTH]
    """
    if isinstance(depth, bool) or not isinstance(depth, int):
        raise ValueError(f"Tree depth must be an integer, got {depth!r}")
    if not MIN_TREE_DEPTH <= depth <= MAX_TREE_DEPTH:
        raise ValueError(
            f"Tree depth must be between {MIN_TREE_DEPTH} and {MAX_TREE_DEPTH}, got {depth}"
        )
    return depth


def validate_hash(value: bytes, name: str = "leaf") -> bytes:
    """
    Check that a value is a 32-byte hash.

    Raises:
        InputError: If the value is not bytes of length HASH_SIZE
    """
    if not isinstance(value, (bytes, bytearray)) or len(value) != HASH_SIZE:
        raise InputError(f"{name} must be {HASH_SIZE} bytes")
    return bytes(value)


class TreeSnapshot(NamedTuple):
    """Mutable tree state captured before an insertion, for rollback."""
    next_index: int
    root: bytes
    filled_subtrees: Tuple[bytes, ...]


class CommitmentTree:
    """
    Append-only incremental Merkle tree of fixed depth.

    State is three values: the next free leaf index, the current root, and
    a fixed-length list of `depth` filled-subtree slots. Slot i holds the most
    recent left node produced at level i; before any insertion passes through
    level i as a left child it holds the empty-subtree hash of that level.
    """

    def __init__(self, depth: int = DEFAULT_TREE_DEPTH):
        self.depth = validate_depth(depth)
        self.capacity = 1 << depth
        self.zeros: Tuple[bytes, ...] = tuple(ZERO_HASHES[: depth + 1])

        self._filled_subtrees: List[bytes] = [self.zeros[level] for level in range(depth)]
        self._next_index = 0
        self._root = self.zeros[depth]

    @property
    def next_index(self) -> int:
        return self._next_index

    @property
    def root(self) -> bytes:
        return self._root

    @property
    def filled_subtrees(self) -> Tuple[bytes, ...]:
        return tuple(self._filled_subtrees)

    @property
    def is_full(self) -> bool:
        return self._next_index >= self.capacity

    def insert(self, leaf: bytes) -> Tuple[int, bytes]:
        """
        Insert a leaf at the next free position.

        Args:
            leaf: 32-byte commitment hash

        Returns:
            Tuple of (assigned leaf index, new root)

        Raises:
            InputError: If the leaf is not a 32-byte hash
            CapacityError: If all 2**depth positions are taken

        Examples:
            >>> tree = CommitmentTree(depth=2)
            >>> index, root = tree.insert(b'\\x01' * 32)
            >>> index
            0
        """
        leaf = validate_hash(leaf, "leaf")
        if self.is_full:
            raise CapacityError(
                f"Merkle tree is full: all {self.capacity} leaves of a depth-{self.depth} tree are used"
            )

        index = self._next_index
        current = leaf
        idx = index
        # Work on a copy so a failure mid-walk leaves the stored slots untouched
        filled = list(self._filled_subtrees)

        for level in range(self.depth):
            if idx % 2 == 0:
                # Left child: remember it, pair it with the empty right subtree
                filled[level] = current
                current = hash_pair(current, self.zeros[level])
            else:
                # Right child: the left sibling is already final
                current = hash_pair(filled[level], current)
            idx //= 2

        self._filled_subtrees[:] = filled
        self._root = current
        self._next_index = index + 1

        logger.debug(f"Inserted leaf {leaf.hex()} at index {index}, root {current.hex()}")
        return index, current

    def snapshot(self) -> TreeSnapshot:
        """Capture the mutable state, O(depth)."""
        return TreeSnapshot(self._next_index, self._root, tuple(self._filled_subtrees))

    def restore(self, snapshot: TreeSnapshot) -> None:
        """Return the tree to a previously captured state."""
        if len(snapshot.filled_subtrees) != self.depth:
            raise ValueError("Snapshot does not match tree depth")
        self._filled_subtrees[:] = snapshot.filled_subtrees
        self._root = snapshot.root
        self._next_index = snapshot.next_index

    @classmethod
    def from_snapshot(cls, depth: int, snapshot: TreeSnapshot) -> "CommitmentTree":
        """
        Rebuild a tree from persisted state.

        Raises:
            ValueError: If the snapshot is inconsistent with the depth
        """
        tree = cls(depth)
        if not 0 <= snapshot.next_index <= tree.capacity:
            raise ValueError(
                f"next_index {snapshot.next_index} outside [0, {tree.capacity}]"
            )
        for value in (snapshot.root, *snapshot.filled_subtrees):
            if len(value) != HASH_SIZE:
                raise ValueError(f"Tree hashes must be {HASH_SIZE} bytes")
        tree.restore(snapshot)
        return tree

    def __repr__(self) -> str:
        return (
            f"CommitmentTree(depth={self.depth}, next_index={self._next_index}, "
            f"root=0x{self._root.hex()})"
        )
