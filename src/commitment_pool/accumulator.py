"""
Commitment Accumulator

This module contains the pool facade: it owns the commitment tree, the root
history, the nullifier registry and the pooled value, and exposes the only
two state-changing operations, deposit and withdraw.

Every operation runs under one re-entrant lock and records an undo action for
each mutation it performs. If any step raises, the undo actions run in
reverse order before the exception reaches the caller, so a failed call never
leaves a partial insert, a stray spent nullifier or a debited pool behind.
"""

import logging
import threading
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Callable, ClassVar, Dict, Iterator, List, Optional, Tuple, Union

from .constants import (
    DEFAULT_ROOT_HISTORY_SIZE,
    DEFAULT_TREE_DEPTH,
    STATE_FORMAT_VERSION,
)
from .errors import InputError, ProofRejected, StaleRootError, TransferError
from .history import RootHistory
from .merkle import CommitmentTree, TreeSnapshot, merkle_root_from_leaves, validate_hash
from .nullifiers import NullifierRegistry
from .transfer import ValueTransfer
from .utils import bytes_to_hex, hash_from_hex
from .verifier import ProofVerifier, PublicInputs

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DepositEvent:
    """Emitted once a deposit has committed."""
    commitment: bytes
    value: int
    leaf_index: int

    kind: ClassVar[str] = "deposit"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": self.kind,
            "commitment": bytes_to_hex(self.commitment),
            "value": self.value,
            "leaf_index": self.leaf_index,
        }


@dataclass(frozen=True)
class WithdrawalEvent:
    """Emitted once a withdrawal has committed."""
    recipient: str
    amount: int
    nullifier: bytes

    kind: ClassVar[str] = "withdrawal"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": self.kind,
            "recipient": self.recipient,
            "amount": self.amount,
            "nullifier": bytes_to_hex(self.nullifier),
        }


PoolEvent = Union[DepositEvent, WithdrawalEvent]
EventListener = Callable[[PoolEvent], None]


def event_from_dict(data: Dict[str, Any]) -> PoolEvent:
    """Rebuild an event from its to_dict() form."""
    kind = data.get("kind")
    if kind == DepositEvent.kind:
        return DepositEvent(
            commitment=hash_from_hex(data["commitment"], "commitment"),
            value=int(data["value"]),
            leaf_index=int(data["leaf_index"]),
        )
    if kind == WithdrawalEvent.kind:
        return WithdrawalEvent(
            recipient=str(data["recipient"]),
            amount=int(data["amount"]),
            nullifier=hash_from_hex(data["nullifier"], "nullifier"),
        )
    raise ValueError(f"Unknown event kind: {kind!r}")


def _positive_amount(value: Any, name: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise InputError(f"{name} must be an integer amount, got {value!r}")
    if value <= 0:
        raise InputError(f"{name} must be positive, got {value}")
    return value


def _check_event_log(pool: "Accumulator", next_index: int) -> None:
    """
    Cross-check a restored event log against the restored tree, nullifier
    set and pool value.

    Raises:
        ValueError: If the log disagrees with the rest of the state
    """
    deposits = [e for e in pool._events if isinstance(e, DepositEvent)]
    withdrawals = [e for e in pool._events if isinstance(e, WithdrawalEvent)]

    if [e.leaf_index for e in deposits] != list(range(next_index)):
        raise ValueError(
            f"Event log holds {len(deposits)} deposits, expected leaves 0..{next_index - 1} in order"
        )
    if merkle_root_from_leaves([e.commitment for e in deposits], pool.depth) != pool.current_root:
        raise ValueError("Deposited commitments do not reproduce current_root")

    spent = [e.nullifier for e in withdrawals]
    if len(spent) != len(pool.nullifiers) or set(spent) != set(pool.nullifiers):
        raise ValueError("Spent nullifiers do not match the withdrawals in the event log")

    expected_value = sum(e.value for e in deposits) - sum(e.amount for e in withdrawals)
    if pool.pool_value != expected_value:
        raise ValueError(
            f"Pool value {pool.pool_value} does not match the event log ({expected_value})"
        )


class Accumulator:
    """
    Append-only commitment accumulator with replay protection.

    Args:
        verifier: Proof verifier consulted by every withdrawal. There is no
            default; see commitment_pool.verifier.
        transfer: Sink that releases withdrawn value to recipients
        depth: Commitment tree depth (capacity 2**depth)
        root_history_size: Number of recent roots accepted by withdrawals

    Examples:
        >>> pool = Accumulator(AcceptAllVerifier(), PayoutLedger(), depth=4)
        >>> pool.deposit(commitment, 1).leaf_index
        0
    """

    def __init__(
        self,
        verifier: ProofVerifier,
        transfer: ValueTransfer,
        depth: int = DEFAULT_TREE_DEPTH,
        root_history_size: int = DEFAULT_ROOT_HISTORY_SIZE,
    ):
        if verifier is None:
            raise ValueError("A proof verifier is required")
        if transfer is None:
            raise ValueError("A value transfer sink is required")

        self.verifier = verifier
        self.transfer = transfer
        self.tree = CommitmentTree(depth)
        self.history = RootHistory(root_history_size)
        self.history.append(self.tree.root)
        self.nullifiers = NullifierRegistry()

        self._pool_value = 0
        self._events: List[PoolEvent] = []
        self._listeners: List[EventListener] = []
        self._lock = threading.RLock()

        logger.info(
            f"Accumulator created: depth={depth}, capacity={self.tree.capacity}, "
            f"root_history_size={root_history_size}, genesis_root=0x{self.tree.root.hex()}"
        )

    # Read-only views ----------------------------------------------------------

    @property
    def depth(self) -> int:
        return self.tree.depth

    @property
    def capacity(self) -> int:
        return self.tree.capacity

    @property
    def next_index(self) -> int:
        return self.tree.next_index

    @property
    def current_root(self) -> bytes:
        return self.tree.root

    @property
    def is_full(self) -> bool:
        return self.tree.is_full

    @property
    def filled_subtrees(self) -> Tuple[bytes, ...]:
        return self.tree.filled_subtrees

    @property
    def roots(self) -> Tuple[bytes, ...]:
        return tuple(self.history)

    @property
    def root_history_size(self) -> int:
        return self.history.window

    @property
    def pool_value(self) -> int:
        return self._pool_value

    @property
    def events(self) -> Tuple[PoolEvent, ...]:
        return tuple(self._events)

    def leaves(self) -> List[bytes]:
        """Inserted commitments in leaf order, recovered from the event log."""
        return [e.commitment for e in self._events if isinstance(e, DepositEvent)]

    def is_known_root(self, root: bytes) -> bool:
        with self._lock:
            return self.history.is_known_root(root)

    def is_spent(self, nullifier: bytes) -> bool:
        with self._lock:
            return self.nullifiers.is_spent(nullifier)

    # Listeners ----------------------------------------------------------------

    def add_listener(self, listener: EventListener) -> None:
        """Call `listener(event)` after every committed operation."""
        self._listeners.append(listener)

    def remove_listener(self, listener: EventListener) -> None:
        self._listeners.remove(listener)

    def _notify(self, event: PoolEvent) -> None:
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception:
                # The operation has committed; a listener cannot undo it
                logger.exception(f"Event listener {listener!r} failed on {event.kind} event")

    # Atomic section -----------------------------------------------------------

    @contextmanager
    def _atomic(self) -> Iterator[Callable[[Callable[[], None]], None]]:
        undo: List[Callable[[], None]] = []
        with self._lock:
            try:
                yield undo.append
            except BaseException:
                for action in reversed(undo):
                    action()
                raise

    def _adjust_pool_value(self, delta: int) -> None:
        self._pool_value += delta

    def _record(self, event: PoolEvent, on_rollback: Callable[[Callable[[], None]], None]) -> None:
        self._events.append(event)
        on_rollback(self._events.pop)

    # Operations ---------------------------------------------------------------

    def deposit(self, commitment: bytes, value: int) -> DepositEvent:
        """
        Accept `value` into the pool and insert `commitment` as the next leaf.

        Args:
            commitment: 32-byte leaf hash, constructed by the depositor
            value: Positive integer amount

        Returns:
            The committed DepositEvent (commitment, value, leaf_index)

        Raises:
            InputError: If value is not a positive integer or the commitment
                is not 32 bytes
            CapacityError: If the tree is full
        """
        value = _positive_amount(value, "Deposit value")
        commitment = validate_hash(commitment, "Commitment")

        with self._atomic() as on_rollback:
            snapshot: TreeSnapshot = self.tree.snapshot()
            history_length = len(self.history)

            index, root = self.tree.insert(commitment)
            on_rollback(lambda: self.tree.restore(snapshot))

            self.history.append(root)
            on_rollback(lambda: self.history.truncate(history_length))

            self._adjust_pool_value(value)
            on_rollback(lambda: self._adjust_pool_value(-value))

            event = DepositEvent(commitment=commitment, value=value, leaf_index=index)
            self._record(event, on_rollback)

        logger.info(
            f"Deposit committed: commitment=0x{commitment.hex()} value={value} "
            f"index={index} root=0x{root.hex()}"
        )
        self._notify(event)
        return event

    def withdraw(
        self,
        nullifier: bytes,
        root: bytes,
        amount: int,
        recipient: str,
        proof: Optional[bytes] = b"",
    ) -> WithdrawalEvent:
        """
        Release `amount` to `recipient` against an unspent nullifier.

        Order: root freshness, nullifier spend, proof verification, value
        release. The nullifier is spent before value leaves the pool, so a
        re-entrant call with the same nullifier fails; if anything after the
        spend fails, the spend is undone.

        Returns:
            The committed WithdrawalEvent (recipient, amount, nullifier)

        Raises:
            InputError: Malformed hashes, non-positive amount, empty recipient
            StaleRootError: Root is not among the recent roots
            ReplayError: Nullifier already spent
            ProofRejected: Verifier declined the proof
            TransferError: Pool cannot cover the amount or the payout failed
        """
        nullifier = validate_hash(nullifier, "Nullifier")
        root = validate_hash(root, "Root")
        amount = _positive_amount(amount, "Withdrawal amount")
        if not isinstance(recipient, str) or not recipient.strip():
            raise InputError("Recipient must be a non-empty address string")
        proof = bytes(proof or b"")

        with self._atomic() as on_rollback:
            if not self.history.is_known_root(root):
                raise StaleRootError(
                    f"Root 0x{root.hex()} is not among the last {self.history.window} roots"
                )

            self.nullifiers.check_and_spend(nullifier)
            on_rollback(lambda: self.nullifiers._unspend(nullifier))

            public_inputs = PublicInputs(root=root, nullifier=nullifier, amount=amount, recipient=recipient)
            if not self.verifier.verify(proof, public_inputs):
                raise ProofRejected(f"Proof rejected for nullifier 0x{nullifier.hex()}")

            if amount > self._pool_value:
                raise TransferError(
                    f"Insufficient pooled value: requested {amount}, available {self._pool_value}"
                )
            # Undo by delta: the transfer sink may nest calls that commit
            self._adjust_pool_value(-amount)
            on_rollback(lambda: self._adjust_pool_value(amount))

            try:
                self.transfer.transfer(recipient, amount)
            except TransferError:
                raise
            except Exception as e:
                raise TransferError(f"Transfer of {amount} to {recipient} failed: {e}") from e

            event = WithdrawalEvent(recipient=recipient, amount=amount, nullifier=nullifier)
            self._record(event, on_rollback)

        logger.info(
            f"Withdrawal committed: nullifier=0x{nullifier.hex()} amount={amount} recipient={recipient}"
        )
        self._notify(event)
        return event

    # Persistence --------------------------------------------------------------

    def to_state(self) -> Dict[str, Any]:
        """Snapshot the full accumulator state as a JSON-ready dict."""
        with self._lock:
            return {
                "version": STATE_FORMAT_VERSION,
                "depth": self.depth,
                "root_history_size": self.history.window,
                "next_index": self.next_index,
                "current_root": bytes_to_hex(self.current_root),
                "filled_subtrees": [bytes_to_hex(h) for h in self.filled_subtrees],
                "roots": [bytes_to_hex(r) for r in self.history],
                "nullifiers": [bytes_to_hex(n) for n in self.nullifiers],
                "pool_value": self._pool_value,
                "events": [e.to_dict() for e in self._events],
            }

    @classmethod
    def from_state(
        cls,
        state: Dict[str, Any],
        verifier: ProofVerifier,
        transfer: ValueTransfer,
    ) -> "Accumulator":
        """
        Restore an accumulator from a to_state() snapshot.

        Raises:
            ValueError: If the snapshot is malformed or violates the
                accumulator invariants
        """
        try:
            version = state.get("version")
            if version != STATE_FORMAT_VERSION:
                raise ValueError(f"Unsupported state version: {version!r}")

            depth = int(state["depth"])
            pool = cls(verifier, transfer, depth=depth, root_history_size=int(state["root_history_size"]))

            snapshot = TreeSnapshot(
                next_index=int(state["next_index"]),
                root=hash_from_hex(state["current_root"], "current_root"),
                filled_subtrees=tuple(
                    hash_from_hex(h, "filled subtree") for h in state["filled_subtrees"]
                ),
            )
            if len(snapshot.filled_subtrees) != depth:
                raise ValueError(
                    f"Expected {depth} filled subtrees, got {len(snapshot.filled_subtrees)}"
                )
            pool.tree = CommitmentTree.from_snapshot(depth, snapshot)

            roots = [hash_from_hex(r, "root") for r in state["roots"]]
            if len(roots) != snapshot.next_index + 1:
                raise ValueError(
                    f"Root log has {len(roots)} entries, expected {snapshot.next_index + 1}"
                )
            if roots[-1] != snapshot.root:
                raise ValueError("Latest root in the log does not match current_root")
            pool.history = RootHistory(pool.history.window, roots)

            pool.nullifiers = NullifierRegistry(
                hash_from_hex(n, "nullifier") for n in state["nullifiers"]
            )

            pool_value = int(state["pool_value"])
            if pool_value < 0:
                raise ValueError(f"Pool value cannot be negative: {pool_value}")
            pool._pool_value = pool_value
            pool._events = [event_from_dict(e) for e in state["events"]]
            _check_event_log(pool, snapshot.next_index)
        except (KeyError, TypeError) as e:
            raise ValueError(f"Malformed accumulator state: {e!r}")

        logger.info(
            f"Accumulator restored: next_index={pool.next_index}, "
            f"nullifiers={len(pool.nullifiers)}, pool_value={pool.pool_value}"
        )
        return pool
