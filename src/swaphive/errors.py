"""Error taxonomy shared by every component.

Only genuine failures raise. States that merely disable a swap (amount too
small, balance too low) are reported as ``CheckResult`` values instead.
"""

import logging
from dataclasses import dataclass
from typing import Optional

logger = logging.getLogger(__name__)


class SwapHiveError(Exception):
    """Base class for all swaphive errors."""

    pass


class ValidationError(SwapHiveError):
    """Bad input, insufficient balance or insufficient liquidity."""

    pass


class APIError(SwapHiveError):
    """A remote query failed."""

    def __init__(self, message: str, endpoint: Optional[str] = None):
        super().__init__(message)
        self.endpoint = endpoint


class RequestTimeoutError(APIError):
    """A remote query did not answer in time."""

    pass


class TransactionError(SwapHiveError):
    """The signing service rejected the request or is unavailable."""

    def __init__(self, message: str, transaction_id: Optional[str] = None):
        super().__init__(message)
        self.transaction_id = transaction_id


@dataclass(frozen=True)
class CheckResult:
    """Outcome of a non-raising validation."""

    ok: bool
    reason: Optional[str] = None

    @classmethod
    def passed(cls) -> "CheckResult":
        return cls(ok=True)

    @classmethod
    def failed(cls, reason: str) -> "CheckResult":
        return cls(ok=False, reason=reason)

    def __bool__(self) -> bool:
        return self.ok


def handle_error(error: Exception, context: str = "") -> dict:
    """Classify an error and log it consistently.

    Args:
        error: The exception to classify
        context: Caller name used as log prefix

    Returns:
        Dict with ``type`` (validation, api, transaction or unknown) and
        ``message``, plus ``endpoint`` / ``tx_id`` where known
    """
    prefix = f"[{context}] " if context else ""

    if isinstance(error, ValidationError):
        logger.warning(f"{prefix}{error}")
        return {"type": "validation", "message": str(error)}

    if isinstance(error, APIError):
        logger.error(f"{prefix}{error} (endpoint: {error.endpoint})")
        return {"type": "api", "message": str(error), "endpoint": error.endpoint}

    if isinstance(error, TransactionError):
        logger.error(f"{prefix}{error} (tx: {error.transaction_id})")
        return {"type": "transaction", "message": str(error), "tx_id": error.transaction_id}

    logger.error(f"{prefix}Unexpected error: {type(error).__name__}: {error}")
    return {"type": "unknown", "message": str(error) or "An unexpected error occurred"}
