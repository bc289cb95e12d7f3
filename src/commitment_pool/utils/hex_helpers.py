"""
Hex String Utilities

This module provides utilities for converting between the 0x-prefixed hex
strings used on the wire (REST API, CLI, state files) and the raw 32-byte
hashes the accumulator works with.
"""

from typing import Optional

from ..constants import HASH_SIZE

HEX_DIGITS = "0123456789abcdefABCDEF"


def normalize_hex(hex_str: str, expected_bytes: Optional[int] = None) -> str:
    """
    Normalize a hex string to ensure proper formatting.

    Args:
        hex_str: The hex string to normalize (with or without '0x')
        expected_bytes: Optional expected byte length for validation

    Returns:
        Lower-case, 0x-prefixed hex string padded to an even length

    Raises:
        ValueError: If the hex string contains invalid characters or has
            the wrong length

    Examples:
        >>> normalize_hex("0x123")
        "0x0123"
        >>> normalize_hex("ABCD")
        "0xabcd"
    """
    if not isinstance(hex_str, str):
        raise ValueError(f"Expected a hex string, got {type(hex_str).__name__}")

    hex_part = hex_str[2:] if hex_str.startswith(("0x", "0X")) else hex_str

    # Validate hex characters
    if not hex_part or not all(c in HEX_DIGITS for c in hex_part):
        raise ValueError(f"Invalid hex string: {hex_str!r}")

    # Pad to even length
    if len(hex_part) % 2 == 1:
        hex_part = "0" + hex_part

    # Validate expected byte length if provided
    if expected_bytes is not None:
        actual_bytes = len(hex_part) // 2
        if actual_bytes != expected_bytes:
            raise ValueError(f"Expected {expected_bytes} bytes, got {actual_bytes} bytes")

    return "0x" + hex_part.lower()


def hex_to_bytes(hex_str: str) -> bytes:
    """
    Convert a hex string to bytes.

    Args:
        hex_str: Hex string (with or without '0x' prefix)

    Returns:
        Bytes representation of the hex string

    Examples:
        >>> hex_to_bytes("0x1234")
        b'\\x12\\x34'
        >>> hex_to_bytes("1234")
        b'\\x12\\x34'
    """
    return bytes.fromhex(normalize_hex(hex_str)[2:])


def bytes_to_hex(data: bytes, prefix: bool = True) -> str:
    """
    Convert bytes to a hex string.

    Args:
        data: Bytes to convert
        prefix: Whether to include '0x' prefix

    Returns:
        Hex string representation

    Examples:
        >>> bytes_to_hex(b'\\x12\\x34')
        "0x1234"
        >>> bytes_to_hex(b'\\x12\\x34', prefix=False)
        "1234"
    """
    hex_str = data.hex()
    return f"0x{hex_str}" if prefix else hex_str


def hash_from_hex(hex_str: str, name: str = "value") -> bytes:
    """
    Parse a 32-byte hash (commitment, nullifier or root) from hex.

    Args:
        hex_str: 64-digit hex string, with or without 0x
        name: Field name used in the error message

    Returns:
        32 raw bytes

    Raises:
        ValueError: If the string is not exactly 64 valid hex digits
    """
    if isinstance(hex_str, str):
        digits = hex_str[2:] if hex_str.startswith(("0x", "0X")) else hex_str
        # No left-padding: a 63-digit string is not a hash
        if len(digits) != HASH_SIZE * 2:
            raise ValueError(
                f"Invalid {name}: expected {HASH_SIZE * 2} hex digits, got {len(digits)}"
            )
    try:
        return bytes.fromhex(normalize_hex(hex_str, HASH_SIZE)[2:])
    except ValueError as e:
        raise ValueError(f"Invalid {name}: {e}")


def validate_hex_length(hex_str: str, expected_bytes: int) -> bool:
    """
    Validate that a hex string represents the expected number of bytes.

    Args:
        hex_str: The hex string to validate
        expected_bytes: Expected number of bytes

    Returns:
        True if the hex string is 0x-prefixed and has the correct length
    """
    if not isinstance(hex_str, str) or not hex_str.startswith("0x"):
        return False

    hex_part = hex_str[2:]
    if not all(c in HEX_DIGITS for c in hex_part):
        return False

    return len(hex_part) == expected_bytes * 2
