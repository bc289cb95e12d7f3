"""
Value Release

The pool releases withdrawn value through an injected `ValueTransfer`. The
token ledger itself is external; `PayoutLedger` is the in-memory sink used by
the service layer, the CLI and tests, recording what each recipient has been
paid so the records can be persisted next to the pool state.
"""

import logging
from typing import Dict, Optional, Protocol, runtime_checkable

from .errors import TransferError

logger = logging.getLogger(__name__)


@runtime_checkable
class ValueTransfer(Protocol):
    def transfer(self, recipient: str, amount: int) -> None:
        """Pay `amount` to `recipient`; raise TransferError on failure."""
        ...


class PayoutLedger:
    """Records payouts per recipient."""

    def __init__(self, balances: Optional[Dict[str, int]] = None):
        self.balances: Dict[str, int] = dict(balances or {})

    def transfer(self, recipient: str, amount: int) -> None:
        if not recipient:
            raise TransferError("Recipient address is empty")
        if amount <= 0:
            raise TransferError(f"Cannot transfer non-positive amount {amount}")
        self.balances[recipient] = self.balances.get(recipient, 0) + amount
        logger.debug(f"Paid {amount} to {recipient}")

    def balance_of(self, recipient: str) -> int:
        return self.balances.get(recipient, 0)
