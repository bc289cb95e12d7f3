"""
REST API for Commitment Pool

This module provides a FastAPI-based REST API over a persisted commitment
accumulator, with full OpenAPI documentation.
"""

import logging
import threading
import traceback
from typing import List, Optional

import uvicorn
from fastapi import Depends, FastAPI, Query
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .. import __version__
from ..errors import (
    AccumulatorError,
    CapacityError,
    InputError,
    ProofRejected,
    ReplayError,
    StaleRootError,
    TransferError,
)
from ..models.api_models import (
    DepositRequest,
    DepositResponse,
    ErrorResponse,
    EventResponse,
    HealthResponse,
    MerklePathResponse,
    PoolStateResponse,
    RootStatusResponse,
    WithdrawalResponse,
    WithdrawRequest,
)
from .pool_service import PoolService, PoolServiceError

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

# HTTP status and error code per accumulator failure
ERROR_STATUS = {
    InputError: (400, "INPUT_ERROR"),
    ProofRejected: (403, "PROOF_REJECTED"),
    CapacityError: (409, "CAPACITY_ERROR"),
    ReplayError: (409, "REPLAY_ERROR"),
    StaleRootError: (409, "STALE_ROOT"),
    TransferError: (502, "TRANSFER_ERROR"),
}

# Initialize FastAPI app
app = FastAPI(
    title="Commitment Pool API",
    description="""
    Deposit commitments into an append-only Merkle accumulator and withdraw
    against unspent nullifiers.

    ## Features
    - **Deposits**: Each commitment becomes the next leaf; the response carries
      its leaf index and the new root
    - **Withdrawals**: Checked against the recent-root window and the spent
      nullifier set, then passed to the configured proof verifier
    - **Merkle Paths**: Authentication path of any deposited commitment
    - **Root Queries**: Whether a root is still accepted for withdrawals

    ## Proof Verification
    This service does not verify zero-knowledge proofs itself. Unless a
    verifier is wired in (or POOL_ALLOW_UNVERIFIED_PROOFS is set for
    development), every withdrawal is rejected.
    """,
    version=__version__,
    license_info={
        "name": "MIT",
        "url": "https://opensource.org/licenses/MIT"
    }
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Configure appropriately for production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Global pool service instance; handlers run on the thread pool
pool_service = None
_pool_service_lock = threading.Lock()


def get_pool_service() -> PoolService:
    """Dependency to get the pool service instance."""
    global pool_service
    with _pool_service_lock:
        if pool_service is None:
            pool_service = PoolService(create=True)
    return pool_service


@app.exception_handler(AccumulatorError)
async def accumulator_error_handler(request, exc: AccumulatorError):
    """Handle rejected deposits and withdrawals."""
    status_code, code = ERROR_STATUS.get(type(exc), (400, "ACCUMULATOR_ERROR"))
    logger.warning(f"Operation rejected ({code}): {exc}")
    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse(
            error=str(exc),
            code=code,
            details={"error_type": type(exc).__name__}
        ).model_dump()
    )


@app.exception_handler(PoolServiceError)
async def pool_service_error_handler(request, exc: PoolServiceError):
    """Handle service-level errors."""
    logger.error(f"Pool service error: {exc}")
    return JSONResponse(
        status_code=400,
        content=ErrorResponse(
            error=str(exc),
            code="POOL_SERVICE_ERROR",
            details={"error_type": "PoolServiceError"}
        ).model_dump()
    )


@app.exception_handler(RequestValidationError)
async def request_validation_error_handler(request, exc: RequestValidationError):
    """Handle malformed request bodies, paths and query parameters."""
    logger.warning(f"Request validation failed: {exc.errors()}")
    return JSONResponse(
        status_code=422,
        content=ErrorResponse(
            error="Request validation failed",
            code="VALIDATION_ERROR",
            details={"errors": jsonable_encoder(exc.errors())}
        ).model_dump()
    )


@app.exception_handler(ValueError)
async def value_error_handler(request, exc: ValueError):
    """Handle validation errors."""
    logger.error(f"Validation error: {exc}")
    return JSONResponse(
        status_code=400,
        content=ErrorResponse(
            error=str(exc),
            code="VALIDATION_ERROR",
            details={"error_type": "ValueError"}
        ).model_dump()
    )


@app.exception_handler(Exception)
async def general_exception_handler(request, exc: Exception):
    """Handle unexpected errors."""
    logger.error(f"Unexpected error: {exc}\n{traceback.format_exc()}")
    return JSONResponse(
        status_code=500,
        content=ErrorResponse(
            error="Internal server error",
            code="INTERNAL_ERROR",
            details={"error_type": type(exc).__name__}
        ).model_dump()
    )


@app.get("/", response_model=dict)
async def root():
    """API root endpoint with basic information."""
    return {
        "name": "Commitment Pool API",
        "version": __version__,
        "description": "Append-only commitment accumulator with nullifier replay protection",
        "docs": "/docs",
        "health": "/health"
    }


@app.get("/health", response_model=HealthResponse)
def health_check(service: PoolService = Depends(get_pool_service)):
    """
    Health check endpoint.

    Reports "full" once the commitment tree has no free leaf left; deposits
    are impossible from then on.
    """
    accumulator = service.accumulator
    return HealthResponse(
        status="full" if accumulator.is_full else "healthy",
        tree_full=accumulator.is_full,
        next_index=accumulator.next_index,
        version=__version__
    )


@app.get("/state", response_model=PoolStateResponse)
def get_state(service: PoolService = Depends(get_pool_service)):
    """Current tree, root window, nullifier count and pooled value."""
    return PoolStateResponse(**service.get_state())


@app.post("/deposits", response_model=DepositResponse)
def deposit(request: DepositRequest, service: PoolService = Depends(get_pool_service)):
    """
    Insert a commitment as the next leaf and credit its value to the pool.

    The commitment is opaque to the pool: binding a secret, a nullifier and
    the amount into it is the depositor's responsibility.
    """
    result = service.deposit(request.commitment, request.value)
    return DepositResponse(**result)


@app.post("/withdrawals", response_model=WithdrawalResponse)
def withdraw(request: WithdrawRequest, service: PoolService = Depends(get_pool_service)):
    """
    Release pooled value against an unspent nullifier and a recent root.

    **Failure modes:**
    - `STALE_ROOT` (409): root outside the recent-root window; rebuild the
      proof against a current root
    - `REPLAY_ERROR` (409): nullifier already spent
    - `PROOF_REJECTED` (403): verifier declined the proof
    - `TRANSFER_ERROR` (502): value could not be released; the nullifier
      stays unspent
    """
    result = service.withdraw(
        request.nullifier,
        request.root,
        request.amount,
        request.recipient,
        request.proof,
    )
    return WithdrawalResponse(**result)


@app.get("/roots/{root}/known", response_model=RootStatusResponse)
def is_known_root(root: str, service: PoolService = Depends(get_pool_service)):
    """Whether `root` is among the most recent roots accepted for withdrawals."""
    return RootStatusResponse(root=root.lower(), known=service.is_known_root(root))


@app.get("/commitments/{commitment}/path", response_model=MerklePathResponse)
def get_merkle_path(commitment: str, service: PoolService = Depends(get_pool_service)):
    """Authentication path of a deposited commitment against the current root."""
    return MerklePathResponse(**service.get_merkle_path(commitment))


@app.get("/events", response_model=List[EventResponse])
def list_events(
    kind: Optional[str] = Query(None, description="Filter by 'deposit' or 'withdrawal'"),
    service: PoolService = Depends(get_pool_service)
):
    """Committed deposits and withdrawals in order."""
    return [EventResponse(**event) for event in service.list_events(kind)]


def run_server(host: str = "127.0.0.1", port: int = 8000, dev: bool = False):
    """
    Run the API server.

    Args:
        host: Host to bind to
        port: Port to bind to
        dev: Enable development mode with auto-reload
    """
    logger.info(f"Starting Commitment Pool API server on {host}:{port}")
    uvicorn.run(
        "commitment_pool.api.rest_api:app",
        host=host,
        port=port,
        reload=dev,
        log_level="info"
    )


if __name__ == "__main__":
    run_server(dev=True)
