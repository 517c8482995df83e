"""
Domain Models - Internal data structures.

All values are request-scoped and immutable once built.
"""

from dataclasses import dataclass
from enum import Enum


class ReceiptStatus(str, Enum):
    """Execution outcome of a transaction."""

    SUCCESS = "success"
    FAILURE = "failure"


class TransferOutcome(str, Enum):
    """How a receipt was judged against the accepted amount band."""

    ACCEPTED = "accepted"
    BELOW_MINIMUM = "below_minimum"
    ABOVE_MAXIMUM = "above_maximum"
    NO_TRANSFER = "no_transfer"


@dataclass(frozen=True)
class PurchaseEvent:
    """A confirmed purchase, from a checkout session or an on-chain transfer."""

    amount_minor: int
    buyer_email: str | None
    source_id: str


@dataclass(frozen=True)
class EventLog:
    """One event emitted by a contract during a transaction."""

    address: str
    topics: tuple[str, ...]
    data: str

    @property
    def recipient(self) -> str | None:
        """Destination of an ERC-20 Transfer: low 20 bytes of topic[2]."""
        if len(self.topics) < 3:
            return None
        return "0x" + self.topics[2][-40:].lower()


@dataclass(frozen=True)
class TransactionReceipt:
    """Execution record of a transaction as reported by the node."""

    transaction_hash: str
    status: ReceiptStatus
    logs: tuple[EventLog, ...]

    @property
    def succeeded(self) -> bool:
        return self.status == ReceiptStatus.SUCCESS


@dataclass(frozen=True)
class VerificationResult:
    """Outcome of interpreting a receipt. Never persisted."""

    valid: bool
    outcome: TransferOutcome
    amount: float | None = None
    reason: str | None = None

    def __post_init__(self) -> None:
        """Keep valid and outcome in agreement."""
        if self.valid != (self.outcome == TransferOutcome.ACCEPTED):
            raise ValueError("valid must be True exactly when outcome is ACCEPTED")
        if not self.valid and not self.reason:
            raise ValueError("an invalid result needs a reason")
