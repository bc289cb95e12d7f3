"""
Pool Service Module

This module provides the service layer shared by the REST API and the CLI.
It owns one accumulator and its state file: it parses hex input, runs the
operation, persists the result, and formats JSON-ready responses.
"""

import logging
import os
import threading
from typing import Any, Dict, List, Optional, Tuple

from ..accumulator import Accumulator
from ..config import Settings
from ..merkle import get_merkle_path
from ..storage import load_state, save_state
from ..transfer import PayoutLedger
from ..utils import bytes_to_hex, hash_from_hex, hex_to_bytes
from ..verifier import AcceptAllVerifier, ProofVerifier, UnconfiguredVerifier

logger = logging.getLogger(__name__)


class PoolServiceError(Exception):
    """Custom exception for pool service operations."""
    pass


def build_verifier(settings: Settings) -> ProofVerifier:
    """Pick the verifier implied by configuration when none is injected."""
    if settings.allow_unverified_proofs:
        return AcceptAllVerifier()
    return UnconfiguredVerifier()


class PoolService:
    """Service wrapping a persisted commitment accumulator."""

    def __init__(
        self,
        state_file: Optional[str] = None,
        settings: Optional[Settings] = None,
        verifier: Optional[ProofVerifier] = None,
        create: bool = False,
    ):
        """
        Initialize the pool service.

        Args:
            state_file: Path of the JSON state file. Defaults to settings.
            settings: Settings instance. If None, read from the environment.
            verifier: Proof verifier. If None, derived from settings; without
                POOL_ALLOW_UNVERIFIED_PROOFS every withdrawal is rejected.
            create: Create an empty pool if the state file does not exist

        Raises:
            PoolServiceError: If the state file is missing (and create is
                False) or cannot be parsed
        """
        self.settings = settings or Settings.from_env()
        self.state_file = state_file or self.settings.state_file
        self.verifier = verifier or build_verifier(self.settings)
        self._lock = threading.Lock()

        if os.path.exists(self.state_file):
            self.accumulator, self.payouts = self._load()
        elif create:
            self.accumulator, self.payouts = self._new_pool(
                self.settings.tree_depth, self.settings.root_history_size
            )
            self._persist()
            logger.info(f"Created new pool state at {self.state_file}")
        else:
            raise PoolServiceError(
                f"State file {self.state_file} not found. Run 'commitment-pool init' first."
            )

    @classmethod
    def initialize(
        cls,
        state_file: str,
        depth: int,
        root_history_size: int,
        force: bool = False,
        settings: Optional[Settings] = None,
        verifier: Optional[ProofVerifier] = None,
    ) -> "PoolService":
        """
        Create a fresh pool at `state_file`.

        Raises:
            PoolServiceError: If the file exists and force is False, or the
                parameters are invalid
        """
        if os.path.exists(state_file):
            if not force:
                raise PoolServiceError(
                    f"State file {state_file} already exists; use --force to overwrite"
                )
            logger.warning(f"Overwriting existing pool state at {state_file}")
            os.unlink(state_file)

        base = settings or Settings.from_env()
        try:
            settings = Settings(
                tree_depth=depth,
                root_history_size=root_history_size,
                state_file=state_file,
                api_url=base.api_url,
                api_host=base.api_host,
                api_port=base.api_port,
                allow_unverified_proofs=base.allow_unverified_proofs,
            )
            return cls(state_file, settings=settings, verifier=verifier, create=True)
        except ValueError as e:
            raise PoolServiceError(f"Invalid pool parameters: {e}")

    def _new_pool(self, depth: int, root_history_size: int) -> Tuple[Accumulator, PayoutLedger]:
        payouts = PayoutLedger()
        return Accumulator(self.verifier, payouts, depth=depth, root_history_size=root_history_size), payouts

    def _load(self) -> Tuple[Accumulator, PayoutLedger]:
        try:
            state = load_state(self.state_file)
            payouts = PayoutLedger(state.get("payouts", {}))
            return Accumulator.from_state(state, self.verifier, payouts), payouts
        except (OSError, ValueError) as e:
            raise PoolServiceError(f"Failed to load pool state from {self.state_file}: {e}")

    def _persist(self) -> None:
        state = self.accumulator.to_state()
        state["payouts"] = dict(sorted(self.payouts.balances.items()))
        try:
            save_state(self.state_file, state)
        except OSError as e:
            logger.error(f"Failed to persist pool state to {self.state_file}: {e}")
            # Fall back to the last state that reached disk
            if os.path.exists(self.state_file):
                self.accumulator, self.payouts = self._load()
            else:
                self.accumulator, self.payouts = self._new_pool(
                    self.accumulator.depth, self.accumulator.root_history_size
                )
            raise PoolServiceError(f"Failed to persist pool state: {e}")

    @staticmethod
    def _parse_hash(value: str, name: str) -> bytes:
        try:
            return hash_from_hex(value, name)
        except ValueError as e:
            raise PoolServiceError(str(e))

    def deposit(self, commitment: str, value: int) -> Dict[str, Any]:
        """
        Deposit `value` under a hex commitment.

        Returns:
            Dictionary with commitment, value, leaf_index and the new root

        Raises:
            PoolServiceError: If the commitment is not a 32-byte hex string
                or the new state cannot be persisted
            AccumulatorError: If the accumulator rejects the deposit
        """
        commitment_bytes = self._parse_hash(commitment, "commitment")
        with self._lock:
            event = self.accumulator.deposit(commitment_bytes, value)
            root = self.accumulator.current_root
            self._persist()

        return {
            "commitment": bytes_to_hex(event.commitment),
            "value": event.value,
            "leaf_index": event.leaf_index,
            "root": bytes_to_hex(root),
        }

    def withdraw(
        self,
        nullifier: str,
        root: str,
        amount: int,
        recipient: str,
        proof: str = "",
    ) -> Dict[str, Any]:
        """
        Withdraw `amount` to `recipient` against a nullifier and known root.

        Args:
            proof: Hex-encoded proof bytes, handed to the verifier unchanged

        Raises:
            PoolServiceError: Malformed hex input or persistence failure
            AccumulatorError: If the accumulator rejects the withdrawal
        """
        nullifier_bytes = self._parse_hash(nullifier, "nullifier")
        root_bytes = self._parse_hash(root, "root")
        try:
            proof_bytes = hex_to_bytes(proof) if proof else b""
        except ValueError as e:
            raise PoolServiceError(f"Invalid proof: {e}")

        with self._lock:
            event = self.accumulator.withdraw(nullifier_bytes, root_bytes, amount, recipient, proof_bytes)
            self._persist()

        return {
            "recipient": event.recipient,
            "amount": event.amount,
            "nullifier": bytes_to_hex(event.nullifier),
            "pool_value": self.accumulator.pool_value,
        }

    def is_known_root(self, root: str) -> bool:
        return self.accumulator.is_known_root(self._parse_hash(root, "root"))

    def is_spent(self, nullifier: str) -> bool:
        return self.accumulator.is_spent(self._parse_hash(nullifier, "nullifier"))

    def get_state(self) -> Dict[str, Any]:
        """Summarise the pool for display."""
        with self._lock:
            acc = self.accumulator
            return {
                "depth": acc.depth,
                "capacity": acc.capacity,
                "next_index": acc.next_index,
                "is_full": acc.is_full,
                "current_root": bytes_to_hex(acc.current_root),
                "root_history_size": acc.root_history_size,
                "root_count": len(acc.roots),
                "recent_roots": [bytes_to_hex(r) for r in acc.history.recent()],
                "nullifier_count": len(acc.nullifiers),
                "pool_value": acc.pool_value,
                "verifier": type(self.verifier).__name__,
            }

    def get_merkle_path(self, commitment: str) -> Dict[str, Any]:
        """
        Build the authentication path of a deposited commitment against the
        current root.

        Raises:
            PoolServiceError: If the commitment was never deposited
        """
        commitment_bytes = self._parse_hash(commitment, "commitment")
        with self._lock:
            leaves = self.accumulator.leaves()
            root = self.accumulator.current_root
            depth = self.accumulator.depth

        try:
            leaf_index = leaves.index(commitment_bytes)
        except ValueError:
            raise PoolServiceError(f"Commitment {commitment} has not been deposited")

        path = get_merkle_path(leaves, leaf_index, depth)
        return {
            "commitment": bytes_to_hex(commitment_bytes),
            "leaf_index": leaf_index,
            "path": [bytes_to_hex(step) for step in path],
            "root": bytes_to_hex(root),
        }

    def list_events(self, kind: Optional[str] = None) -> List[Dict[str, Any]]:
        """Committed events in order, optionally filtered by kind."""
        if kind is not None and kind not in ("deposit", "withdrawal"):
            raise PoolServiceError(f"Unknown event kind: {kind}")
        with self._lock:
            committed = self.accumulator.events
        events = []
        for sequence, event in enumerate(committed):
            if kind is None or event.kind == kind:
                events.append({"sequence": sequence, **event.to_dict()})
        return events
