"""Swap record model persisted in the history."""

from dataclasses import asdict, dataclass
from enum import Enum
from typing import Optional

from swaphive.chains import Token

# Counterpart ids stored by older clients before real transaction ids were
# tracked. Records carrying one are re-queried to backfill the real id.
LEGACY_PLACEHOLDER_IDS = frozenset({"uswap-transfer", "uswap-refund"})


class SwapStatus(str, Enum):
    """Lifecycle of a submitted swap."""

    PENDING = "pending"
    COMPLETED = "completed"
    REFUNDED = "refunded"
    NOT_SENT = "not-sent"

    @property
    def is_terminal(self) -> bool:
        return self is not SwapStatus.PENDING


@dataclass
class SwapRecord:
    """A swap the user submitted.

    Attributes:
        timestamp: Submission time in epoch milliseconds
        tx_id_sent: Transaction id returned by the signing service
        amount_sent: Amount with symbol, e.g. "10.000 HIVE"
        token_in: Token sent to the bridge
        token_out: Token expected back
        username: Submitting account
        status: Current lifecycle status
        tx_id_received: Settlement or refund transaction id
        amount_received: Settled amount as reported by the ledger
        swapped_qty: "Swapped Qty" parsed from the settlement memo
        swapped_price: "Swapped Price" parsed from the settlement memo
    """

    timestamp: int
    tx_id_sent: str
    amount_sent: str
    token_in: Token
    token_out: Token
    username: str
    status: SwapStatus = SwapStatus.PENDING
    tx_id_received: Optional[str] = None
    amount_received: Optional[str] = None
    swapped_qty: Optional[str] = None
    swapped_price: Optional[str] = None

    @property
    def has_placeholder_id(self) -> bool:
        return self.tx_id_received in LEGACY_PLACEHOLDER_IDS

    def age_seconds(self, now: float) -> float:
        """Seconds elapsed since submission, given ``now`` in epoch seconds."""
        return now - self.timestamp / 1000

    def to_dict(self) -> dict:
        data = asdict(self)
        data["token_in"] = self.token_in.value
        data["token_out"] = self.token_out.value
        data["status"] = self.status.value
        return data

    @classmethod
    def from_dict(cls, data: dict) -> "SwapRecord":
        """Build a record from its stored form.

        Raises:
            KeyError: A required field is missing
            ValueError: Unknown token or status
        """
        token_in = Token.parse(data["token_in"])
        token_out = data.get("token_out")
        return cls(
            timestamp=int(data["timestamp"]),
            tx_id_sent=data["tx_id_sent"],
            amount_sent=data.get("amount_sent", ""),
            token_in=token_in,
            token_out=Token.parse(token_out) if token_out else token_in.counterpart,
            username=data["username"],
            status=SwapStatus(data.get("status", SwapStatus.PENDING.value)),
            tx_id_received=data.get("tx_id_received"),
            amount_received=data.get("amount_received"),
            swapped_qty=data.get("swapped_qty"),
            swapped_price=data.get("swapped_price"),
        )


@dataclass(frozen=True)
class Settlement:
    """A bridge transfer matched to a submitted swap by its memo."""

    tx_id: str
    amount: str
    swapped_qty: Optional[str] = None
    swapped_price: Optional[str] = None
    memo: str = ""
