"""
Pool API Package

This package exposes the accumulator over HTTP and provides the pieces
around it:

- PoolService: persisted accumulator shared by the REST API and the CLI
- PoolAPIClient: HTTP client for a running pool API
- rest_api: FastAPI application (imported on demand by `serve`)

Usage:
    from commitment_pool.api import PoolService

    service = PoolService("pool_state.json", create=True)
    service.deposit("0x" + "11" * 32, 1)
"""

from .pool_client import PoolAPIClient, PoolAPIError
from .pool_service import PoolService, PoolServiceError

__all__ = [
    'PoolAPIClient',
    'PoolAPIError',
    'PoolService',
    'PoolServiceError'
]
