"""
Merkle Path Generation and Verification

This module rebuilds the fixed-capacity commitment tree from its ordered
leaves and extracts authentication paths. A withdrawer needs the path of
their commitment against a known root to construct a withdrawal proof; the
accumulator itself never stores the leaves, so callers recover them from the
deposit event log.
"""

from typing import List, Sequence

from ..constants import HASH_SIZE, ZERO_HASHES
from .tree import hash_pair, validate_depth


def _check_leaves(leaves: Sequence[bytes], depth: int) -> None:
    capacity = 1 << depth
    if len(leaves) > capacity:
        raise ValueError(f"Too many leaves: {len(leaves)} > {capacity}")
    for leaf in leaves:
        if len(leaf) != HASH_SIZE:
            raise ValueError(f"Each leaf must be {HASH_SIZE} bytes")


def merkle_root_from_leaves(leaves: Sequence[bytes], depth: int) -> bytes:
    """
    Merkle-root an ordered list of leaves in a tree of exactly 2**depth leaves.

    Positions beyond len(leaves) are empty and padded with precomputed zero
    hashes, so the cost is proportional to the number of real leaves.

    Args:
        leaves: Inserted leaves in insertion order (32 bytes each)
        depth: Tree depth

    Returns:
        32-byte merkle root

    Examples:
        >>> merkle_root_from_leaves([], 20) == ZERO_HASHES[20]
        True
    """
    validate_depth(depth)
    _check_leaves(leaves, depth)

    nodes = list(leaves)
    for level in range(depth):
        if not nodes:
            return ZERO_HASHES[depth]
        if len(nodes) % 2 == 1:
            nodes.append(ZERO_HASHES[level])
        nodes = [hash_pair(nodes[i], nodes[i + 1]) for i in range(0, len(nodes), 2)]

    return nodes[0] if nodes else ZERO_HASHES[depth]


def get_merkle_path(leaves: Sequence[bytes], index: int, depth: int) -> List[bytes]:
    """
    Build the authentication path for `index` in a tree of 2**depth leaves,
    where:
      • The first len(leaves) positions hold real leaves.
      • The remaining positions are implicitly empty.

    Returns a list of `depth` sibling hashes, ordered from the leaf level up.

    Raises:
        ValueError: If index does not refer to a real leaf
    """
    validate_depth(depth)
    _check_leaves(leaves, depth)
    if not 0 <= index < len(leaves):
        raise ValueError(f"Leaf index {index} out of range (0-{len(leaves) - 1})")

    path: List[bytes] = []
    nodes = list(leaves)
    current_index = index

    for level in range(depth):
        sibling_index = current_index ^ 1
        if sibling_index < len(nodes):
            path.append(nodes[sibling_index])
        else:
            path.append(ZERO_HASHES[level])

        # Only the real nodes of the next level are materialised
        if len(nodes) % 2 == 1:
            nodes.append(ZERO_HASHES[level])
        nodes = [hash_pair(nodes[i], nodes[i + 1]) for i in range(0, len(nodes), 2)]
        current_index //= 2

    return path


def compute_root_from_path(leaf: bytes, index: int, path: Sequence[bytes]) -> bytes:
    """
    Rebuild the merkle root from a 32-byte leaf and its authentication path.

    Args:
        leaf: 32-byte commitment
        index: 0-based position of that leaf
        path: Sibling hashes, one per level, as returned by get_merkle_path

    Returns:
        The reconstructed 32-byte merkle root
    """
    current = leaf
    for level, sibling in enumerate(path):
        # Check the bit at position `level` in `index`:
        if ((index >> level) & 1) == 0:
            current = hash_pair(current, sibling)
        else:
            current = hash_pair(sibling, current)
    return current


def verify_merkle_path(leaf: bytes, index: int, path: Sequence[bytes], root: bytes) -> bool:
    """Check that `leaf` sits at `index` under `root`."""
    if index < 0 or index >= (1 << len(path)):
        return False
    return compute_root_from_path(leaf, index, path) == root
