"""
API Models

This module defines Pydantic models for API request and response validation.
Hashes travel as 0x-prefixed 64-digit hex strings and amounts as integers in
base units.
"""

from datetime import datetime, timezone
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ..utils import validate_hex_length


def _check_hash(v: str, name: str) -> str:
    if not validate_hex_length(v, 32):
        raise ValueError(f"{name} must be a 32-byte hex string starting with '0x'")
    return v.lower()


class ErrorResponse(BaseModel):
    """
    Response model for API errors.

    Attributes:
        error: Error message
        code: Error code (string identifier)
        details: Additional error details
    """
    error: str = Field(..., description="Error message")
    code: str = Field(..., description="Error code")
    details: Optional[dict] = Field(default=None, description="Additional error details")


class HealthResponse(BaseModel):
    """
    Response model for health check endpoint.

    Attributes:
        status: Service status
        tree_full: Whether the commitment tree has run out of leaves
        next_index: Next free leaf index
        version: Service version
        timestamp: Response timestamp
    """
    status: str = Field(..., description="Service status")
    tree_full: bool = Field(..., description="Commitment tree is full")
    next_index: int = Field(..., description="Next free leaf index")
    version: str = Field(default="0.1.0", description="Service version")
    timestamp: Optional[str] = Field(
        default_factory=lambda: datetime.now(timezone.utc).isoformat(),
        description="Response timestamp",
    )


class DepositRequest(BaseModel):
    """
    Request model for a deposit.

    Attributes:
        commitment: Leaf hash, built by the depositor
        value: Amount to deposit (must be positive)
    """
    commitment: str = Field(..., description="Commitment hash (hex string with 0x prefix)")
    value: int = Field(..., description="Deposit value in base units")

    @field_validator("commitment")
    @classmethod
    def validate_commitment(cls, v):
        return _check_hash(v, "commitment")


class DepositResponse(BaseModel):
    commitment: str = Field(..., description="Inserted commitment")
    value: int = Field(..., description="Deposited value")
    leaf_index: int = Field(..., description="Leaf index assigned to the commitment")
    root: str = Field(..., description="Tree root after the insertion")

    model_config = ConfigDict(json_schema_extra={
        "example": {
            "commitment": "0x" + "11" * 32,
            "value": 1,
            "leaf_index": 0,
            "root": "0x" + "22" * 32,
        }
    })


class WithdrawRequest(BaseModel):
    """
    Request model for a withdrawal.

    Attributes:
        nullifier: One-time identifier tied to the deposit being spent
        root: Root the withdrawal proof was built against
        amount: Amount to release
        recipient: Address identifier receiving the value
        proof: Hex-encoded proof bytes, passed to the proof verifier
    """
    nullifier: str = Field(..., description="Nullifier hash (hex string with 0x prefix)")
    root: str = Field(..., description="Known tree root (hex string with 0x prefix)")
    amount: int = Field(..., description="Amount to withdraw in base units")
    recipient: str = Field(..., min_length=1, description="Recipient address")
    proof: str = Field(default="", description="Hex-encoded withdrawal proof")

    @field_validator("nullifier")
    @classmethod
    def validate_nullifier(cls, v):
        return _check_hash(v, "nullifier")

    @field_validator("root")
    @classmethod
    def validate_root(cls, v):
        return _check_hash(v, "root")

    @field_validator("proof")
    @classmethod
    def validate_proof(cls, v):
        """Validate proof is a hex string if provided."""
        if v and not (v.startswith("0x") and all(c in "0123456789abcdefABCDEF" for c in v[2:])):
            raise ValueError("proof must be a hex string starting with '0x'")
        return v


class WithdrawalResponse(BaseModel):
    recipient: str = Field(..., description="Recipient address")
    amount: int = Field(..., description="Released amount")
    nullifier: str = Field(..., description="Nullifier now marked spent")
    pool_value: int = Field(..., description="Value remaining in the pool")


class RootStatusResponse(BaseModel):
    root: str = Field(..., description="Queried root")
    known: bool = Field(..., description="Root is within the recent-root window")


class MerklePathResponse(BaseModel):
    """
    Authentication path of a deposited commitment.

    Attributes:
        commitment: The commitment
        leaf_index: Its position in the tree
        path: Sibling hashes from the leaf level up
        root: Root the path resolves to
    """
    commitment: str
    leaf_index: int
    path: List[str]
    root: str


class PoolStateResponse(BaseModel):
    depth: int
    capacity: int
    next_index: int
    is_full: bool
    current_root: str
    root_history_size: int
    root_count: int
    recent_roots: List[str]
    nullifier_count: int
    pool_value: int
    verifier: str


class EventResponse(BaseModel):
    """A committed deposit or withdrawal; fields depend on `kind`."""
    sequence: int
    kind: str
    commitment: Optional[str] = None
    value: Optional[int] = None
    leaf_index: Optional[int] = None
    recipient: Optional[str] = None
    amount: Optional[int] = None
    nullifier: Optional[str] = None
