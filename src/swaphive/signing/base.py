"""Base interface for the external signing service.

The client never holds keys. A signing service (a wallet extension, a
hardware signer, a remote signer) is asked to broadcast a transfer or a
custom_json operation on the user's behalf and answers with the transaction
id or a rejection.

Signing flow:
1. Client builds the request (recipient = bridge account, memo = min receive)
2. Signing service asks the user to approve and broadcasts
3. Service returns the broadcast transaction id, or a rejection
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Optional

logger = logging.getLogger(__name__)


@dataclass
class SigningResult:
    """Result of a signing request.

    Attributes:
        success: Whether the operation was approved and broadcast
        result_id: Broadcast transaction id
        message: Rejection reason when not successful
        raw: Service-specific response payload
    """

    success: bool
    result_id: Optional[str] = None
    message: Optional[str] = None
    raw: Optional[Any] = None


class SigningService(ABC):
    """Abstract signing service."""

    @abstractmethod
    async def request_transfer(
        self,
        user: str,
        recipient: str,
        amount: str,
        memo: str,
        asset: str,
    ) -> SigningResult:
        """Ask the user to sign a native token transfer.

        Args:
            user: Sending account
            recipient: Receiving account
            amount: Amount formatted to 3 decimals (e.g. "10.000")
            memo: Transfer memo
            asset: Asset symbol (e.g. "HIVE")
        """
        pass

    @abstractmethod
    async def request_custom_json(
        self,
        user: str,
        op_id: str,
        authority: str,
        payload: str,
        description: str,
    ) -> SigningResult:
        """Ask the user to sign a custom_json operation.

        Args:
            user: Signing account
            op_id: custom_json id (e.g. "ssc-mainnet-hive")
            authority: Key authority ("Active" or "Posting")
            payload: JSON string body
            description: Human-readable prompt
        """
        pass

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}()"
