"""
Commitment Pool Constants and Limits

This module contains the constants and limits used by the commitment
accumulator: hash widths, tree depth bounds, the root history window and the
precomputed empty-subtree chain used to pad the incremental Merkle tree.
"""

from hashlib import sha256

# ====================
# Hash Sizes
# ====================

# Standard hash output size (32 bytes for SHA256)
HASH_SIZE = 32

# Commitments, nullifiers and roots are all fixed-width hashes
COMMITMENT_SIZE = HASH_SIZE
NULLIFIER_SIZE = HASH_SIZE
ROOT_SIZE = HASH_SIZE

# ====================
# Tree Limits
# ====================

# Depth used when none is configured; capacity is 2**DEFAULT_TREE_DEPTH leaves
DEFAULT_TREE_DEPTH = 20

MIN_TREE_DEPTH = 1
MAX_TREE_DEPTH = 32

# ====================
# Root History
# ====================

# Number of most recent roots accepted by withdrawals
DEFAULT_ROOT_HISTORY_SIZE = 30

# ====================
# Cryptographic Constants
# ====================

# Leaf value of an unoccupied tree position
ZERO_LEAF = b"\0" * HASH_SIZE

# Precomputed empty-subtree hashes for Merkle tree padding
# Each level i contains: SHA256(ZERO_HASHES[i-1] || ZERO_HASHES[i-1])
# ZERO_HASHES[d] is the root of an all-empty tree of depth d
ZERO_HASHES = [ZERO_LEAF]
for _ in range(MAX_TREE_DEPTH):
    ZERO_HASHES.append(sha256(ZERO_HASHES[-1] + ZERO_HASHES[-1]).digest())

# ====================
# Persistence
# ====================

# Version tag written into persisted state files
STATE_FORMAT_VERSION = 1
