"""
Merkle Tree Operations

This package provides the incremental commitment tree and the helpers used
to derive and check authentication paths:
- tree: O(depth) append-only insertion over cached filled subtrees
- proof: full recomputation from leaves, path extraction and verification
"""

from .tree import (
    CommitmentTree,
    TreeSnapshot,
    hash_pair,
    validate_depth,
    validate_hash,
)

from .proof import (
    merkle_root_from_leaves,
    get_merkle_path,
    compute_root_from_path,
    verify_merkle_path,
)

__all__ = [
    # Tree
    "CommitmentTree",
    "TreeSnapshot",
    "hash_pair",
    "validate_depth",
    "validate_hash",
    # Paths
    "merkle_root_from_leaves",
    "get_merkle_path",
    "compute_root_from_path",
    "verify_merkle_path",
]
