"""
Utility Functions

This package provides hex string handling shared by the service, REST API,
CLI and persistence layers.
"""

from .hex_helpers import (
    normalize_hex,
    hex_to_bytes,
    bytes_to_hex,
    hash_from_hex,
    validate_hex_length,
)

__all__ = [
    'normalize_hex',
    'hex_to_bytes',
    'bytes_to_hex',
    'hash_from_hex',
    'validate_hex_length',
]
