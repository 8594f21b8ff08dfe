"""Simulated signing service for dry runs and tests."""

import json
import logging
import secrets
from dataclasses import dataclass, field
from typing import Optional

from swaphive.ledgers.simulated import SimulatedLedger
from swaphive.signing.base import SigningResult, SigningService

logger = logging.getLogger(__name__)


@dataclass
class SignedRequest:
    """A request the dry-run signer accepted, kept for inspection."""

    kind: str  # "transfer" or "custom_json"
    user: str
    params: dict = field(default_factory=dict)
    result_id: Optional[str] = None


class DryRunSigner(SigningService):
    """Signer that approves everything with a random transaction id.

    Args:
        reject_with: If set, every request is rejected with this message
        primary: If set, approved transfers are registered on this ledger so
            existence checks find them
        side: If set, approved custom_json operations are registered here
    """

    def __init__(
        self,
        reject_with: Optional[str] = None,
        primary: Optional[SimulatedLedger] = None,
        side: Optional[SimulatedLedger] = None,
    ):
        self.reject_with = reject_with
        self.ledgers = {"transfer": primary, "custom_json": side}
        self.requests: list[SignedRequest] = []

    def _approve(self, kind: str, user: str, params: dict) -> SigningResult:
        if self.reject_with is not None:
            logger.info(f"Dry-run signer rejected {kind} for @{user}: {self.reject_with}")
            return SigningResult(success=False, message=self.reject_with)

        result_id = secrets.token_hex(20)
        ledger = self.ledgers.get(kind)
        if ledger is not None:
            ledger.add_transaction(result_id)

        self.requests.append(SignedRequest(kind=kind, user=user, params=params, result_id=result_id))
        logger.info(f"Dry-run signer approved {kind} for @{user}: {result_id}")
        return SigningResult(success=True, result_id=result_id, raw={"id": result_id, "simulated": True})

    async def request_transfer(
        self,
        user: str,
        recipient: str,
        amount: str,
        memo: str,
        asset: str,
    ) -> SigningResult:
        return self._approve(
            "transfer",
            user,
            {"to": recipient, "amount": amount, "memo": memo, "asset": asset},
        )

    async def request_custom_json(
        self,
        user: str,
        op_id: str,
        authority: str,
        payload: str,
        description: str,
    ) -> SigningResult:
        return self._approve(
            "custom_json",
            user,
            {"id": op_id, "authority": authority, "json": json.loads(payload), "description": description},
        )
