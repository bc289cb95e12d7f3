"""
API Models Package

This package contains request and response models for the pool API.
It includes Pydantic models for validation and serialization of:

- Deposit and withdrawal requests and their results
- Root status, Merkle paths, pool state and event listings
- Error responses and health status

Usage:
    from commitment_pool.models import DepositRequest, DepositResponse

    request = DepositRequest(commitment="0x" + "11" * 32, value=1)
"""

from .api_models import (
    DepositRequest,
    DepositResponse,
    WithdrawRequest,
    WithdrawalResponse,
    RootStatusResponse,
    MerklePathResponse,
    PoolStateResponse,
    EventResponse,
    ErrorResponse,
    HealthResponse
)

__all__ = [
    'DepositRequest',
    'DepositResponse',
    'WithdrawRequest',
    'WithdrawalResponse',
    'RootStatusResponse',
    'MerklePathResponse',
    'PoolStateResponse',
    'EventResponse',
    'ErrorResponse',
    'HealthResponse'
]
