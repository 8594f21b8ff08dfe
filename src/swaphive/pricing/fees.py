"""Fee curve parameters and the remote fee document.

The bridge operator publishes the curve as a JSON document:

    {"BASE_FEE": 0.002, "MIN_BASE_FEE": 0.00075,
     "DIFF_COEFFICIENT": 0.00575, "BASE_PRICE_HIVE_TO_SHIVE": 1.0}

Every field is optional. A field that is missing or not a number keeps its
current value; a document that would break ``min_base_fee <= base_fee`` is
ignored as a whole.
"""

import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Optional

import httpx

from swaphive.errors import APIError
from swaphive.utils.numeric import to_decimal
from swaphive.utils.resilience import with_timeout

logger = logging.getLogger(__name__)

# Document field -> FeeConfig attribute
FEE_DOCUMENT_FIELDS = {
    "BASE_FEE": "base_fee",
    "MIN_BASE_FEE": "min_base_fee",
    "DIFF_COEFFICIENT": "diff_coefficient",
    "BASE_PRICE_HIVE_TO_SHIVE": "base_price",
}


@dataclass(frozen=True)
class FeeConfig:
    """Parameters of the pool-imbalance fee curve.

    Attributes:
        base_fee: Fee fraction charged on a trade at 50/50 pool balance
        min_base_fee: Floor for the adjusted fee
        diff_coefficient: Price sensitivity to pool imbalance
        base_price: HIVE -> SWAP.HIVE price at balance
    """

    base_fee: Decimal = Decimal("0.002")
    min_base_fee: Decimal = Decimal("0.00075")
    diff_coefficient: Decimal = Decimal("0.00575")
    base_price: Decimal = Decimal("1.00")

    @property
    def is_valid(self) -> bool:
        return self.min_base_fee <= self.base_fee and self.base_price > 0

    def merged(self, document: Any) -> "FeeConfig":
        """Build a new config from a fee document, falling back field by field.

        Returns ``self`` unchanged if the document is not an object or the
        merged result is invalid.
        """
        if not isinstance(document, dict):
            logger.warning(f"Fee document is not an object: {type(document).__name__}")
            return self

        values = {}
        for field_name, attr in FEE_DOCUMENT_FIELDS.items():
            current = getattr(self, attr)
            values[attr] = to_decimal(document.get(field_name), default=current)

        candidate = FeeConfig(**values)
        if not candidate.is_valid:
            logger.warning(f"Rejecting invalid fee document {document}: keeping {self}")
            return self
        return candidate

    def to_dict(self) -> dict:
        return {field_name: str(getattr(self, attr)) for field_name, attr in FEE_DOCUMENT_FIELDS.items()}


async def fetch_fee_document(
    url: str,
    timeout: float = 5.0,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> Any:
    """Download the fee document.

    Raises:
        APIError: On HTTP failure, bad status or unparsable body
        RequestTimeoutError: If the download takes longer than ``timeout``
    """

    async def _get() -> Any:
        try:
            async with httpx.AsyncClient(timeout=timeout, transport=transport) as client:
                response = await client.get(url)
        except httpx.HTTPError as e:
            raise APIError(f"Fee document request failed: {e}", url)

        if response.status_code != 200:
            raise APIError(f"Fee document returned HTTP {response.status_code}", url)
        try:
            return response.json()
        except ValueError as e:
            raise APIError(f"Fee document is not JSON: {e}", url)

    return await with_timeout(_get(), timeout)


async def load_fee_config(
    url: str,
    current: Optional[FeeConfig] = None,
    timeout: float = 5.0,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> FeeConfig:
    """Fetch the remote fee curve, keeping ``current`` (or defaults) on any failure."""
    current = current or FeeConfig()
    try:
        document = await fetch_fee_document(url, timeout=timeout, transport=transport)
    except APIError as e:
        logger.error(f"Fee config fetch failed, using {current}: {e}")
        return current

    config = current.merged(document)
    logger.info(f"Fee config loaded: {config}")
    return config
