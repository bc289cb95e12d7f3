"""
Pool API Client

This module provides a client for a running Commitment Pool REST API. The
CLI uses it in remote mode (--api-url) instead of opening a local state file.
"""

import logging
from typing import Any, Dict, List, Optional

import requests

from ..config import Settings

logger = logging.getLogger(__name__)


class PoolAPIError(Exception):
    """
    Exception raised for pool API related errors.

    Attributes:
        status_code: HTTP status of the failed response, if any
        code: Error code from the server's ErrorResponse body, if any
    """

    def __init__(self, message: str, status_code: Optional[int] = None, code: Optional[str] = None):
        super().__init__(message)
        self.status_code = status_code
        self.code = code


class PoolAPIClient:
    """
    Client for the Commitment Pool REST API.

    Provides one method per endpoint with error handling that surfaces the
    server's error code.
    """

    def __init__(self, base_url: Optional[str] = None, timeout: int = 30):
        """
        Initialize the pool API client.

        Args:
            base_url: Base URL of the API. If None, uses POOL_API_URL.
            timeout: Request timeout in seconds
        """
        self.base_url = (base_url or Settings.from_env().api_url).rstrip("/")
        self.timeout = timeout

        self.session = requests.Session()
        self.session.headers.update({
            'Content-Type': 'application/json',
            'Accept': 'application/json'
        })

        logger.info(f"Initialized PoolAPIClient with base_url: {self.base_url}")

    def _request(self, method: str, path: str, **kwargs) -> Any:
        url = f"{self.base_url}{path}"
        try:
            response = self.session.request(method, url, timeout=self.timeout, **kwargs)
        except requests.ConnectionError as e:
            raise PoolAPIError(
                f"Failed to connect to pool API at {self.base_url}. "
                f"Please check the server is running (commitment-pool serve) "
                f"and POOL_API_URL is correct. Original error: {e}"
            )
        except requests.Timeout as e:
            raise PoolAPIError(
                f"Timeout connecting to pool API at {self.base_url}. Original error: {e}"
            )
        except requests.RequestException as e:
            raise PoolAPIError(f"Request failed to pool API at {self.base_url}. Error: {e}")

        if response.status_code >= 400:
            message = response.text
            code = None
            try:
                body = response.json()
                if isinstance(body, dict):
                    message = body.get("error") or body.get("detail") or message
                    code = body.get("code")
            except ValueError:
                pass
            raise PoolAPIError(
                f"{method} {path} failed ({response.status_code}): {message}",
                status_code=response.status_code,
                code=code,
            )

        try:
            return response.json()
        except ValueError as e:
            raise PoolAPIError(f"Invalid JSON response from {url}: {e}")

    def deposit(self, commitment: str, value: int) -> Dict[str, Any]:
        """Deposit `value` under `commitment`; returns leaf_index and root."""
        return self._request("POST", "/deposits", json={"commitment": commitment, "value": value})

    def withdraw(
        self,
        nullifier: str,
        root: str,
        amount: int,
        recipient: str,
        proof: str = "",
    ) -> Dict[str, Any]:
        """Withdraw `amount` to `recipient`."""
        payload = {
            "nullifier": nullifier,
            "root": root,
            "amount": amount,
            "recipient": recipient,
            "proof": proof,
        }
        return self._request("POST", "/withdrawals", json=payload)

    def is_known_root(self, root: str) -> bool:
        return bool(self._request("GET", f"/roots/{root}/known")["known"])

    def get_state(self) -> Dict[str, Any]:
        return self._request("GET", "/state")

    def get_merkle_path(self, commitment: str) -> Dict[str, Any]:
        return self._request("GET", f"/commitments/{commitment}/path")

    def list_events(self, kind: Optional[str] = None) -> List[Dict[str, Any]]:
        params = {"kind": kind} if kind else None
        return self._request("GET", "/events", params=params)

    def health_check(self) -> bool:
        """
        Check if the pool API is accessible.

        Returns:
            True if API is accessible, False otherwise
        """
        try:
            response = self.session.get(f"{self.base_url}/health", timeout=10)
            return response.status_code == 200
        except requests.RequestException:
            return False
