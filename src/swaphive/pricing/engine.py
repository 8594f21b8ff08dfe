"""Swap pricing under pool imbalance.

The bridge holds a HIVE pool and a SWAP.HIVE pool. A trade is priced by how
far it pushes the pools away from a 50/50 split:

    diff      = (amount * 0.5 + from_pool) / total_pool - 0.5
    fee       = max(base_fee * (1 - 2 * |diff|), min_base_fee)
    price     = base_price - 2 * diff * diff_coefficient          (HIVE in)
              = 1 / base_price - 2 * diff * diff_coefficient      (SWAP.HIVE in)
    expected  = amount * price * (1 - fee)

The inverse base price in the SWAP.HIVE branch is not itself diff-adjusted,
so the two branches are not mirror images.
"""

import logging
from dataclasses import asdict, dataclass
from decimal import Decimal
from typing import Any, Optional

from swaphive.chains import Token
from swaphive.pricing.fees import FeeConfig
from swaphive.utils.numeric import (
    ACCOUNTING_PLACES,
    floor_to,
    is_positive_number,
    round_to,
    safe_multiply,
    to_decimal,
)

logger = logging.getLogger(__name__)

HALF = Decimal("0.5")
DEFAULT_POOL_SIZE = Decimal("24900")
DEFAULT_SLIPPAGE_PERCENT = Decimal("0.01")


@dataclass(frozen=True)
class PoolState:
    """Bridge liquidity on each ledger."""

    primary_pool_size: Decimal = DEFAULT_POOL_SIZE
    side_pool_size: Decimal = DEFAULT_POOL_SIZE

    @property
    def total(self) -> Decimal:
        return self.primary_pool_size + self.side_pool_size

    def size_of(self, token: Token) -> Decimal:
        return self.primary_pool_size if token.is_primary else self.side_pool_size


@dataclass(frozen=True)
class FeeBreakdown:
    """Intermediate figures of the fee curve for one trade."""

    diff: Decimal
    adjusted_fee: Decimal
    price: Decimal
    fee_amount: Decimal  # 8dp, in input token
    fee_percent: Decimal  # 4dp
    expected_out: Decimal  # 8dp, in output token


@dataclass(frozen=True)
class SwapQuote:
    """Price quote for one swap input.

    ``expected_out`` is floored to 3 decimals (what the ledgers can carry);
    ``raw_expected_out`` keeps 8 decimals for accounting.
    """

    amount_in: Decimal
    token_in: Token
    token_out: Token
    expected_out: Decimal
    raw_expected_out: Decimal
    fee_amount: Decimal
    fee_percent: Decimal
    slippage_percent: Decimal
    min_receive: Decimal

    @property
    def is_empty(self) -> bool:
        return self.amount_in <= 0

    @classmethod
    def zero(
        cls,
        token_in: Token,
        token_out: Token,
        slippage_percent: Decimal = DEFAULT_SLIPPAGE_PERCENT,
        amount_in: Decimal = Decimal("0"),
    ) -> "SwapQuote":
        return cls(
            amount_in=amount_in,
            token_in=token_in,
            token_out=token_out,
            expected_out=Decimal("0"),
            raw_expected_out=Decimal("0"),
            fee_amount=Decimal("0"),
            fee_percent=Decimal("0"),
            slippage_percent=slippage_percent,
            min_receive=Decimal("0"),
        )

    def to_dict(self) -> dict:
        data = asdict(self)
        data["token_in"] = self.token_in.value
        data["token_out"] = self.token_out.value
        return {k: str(v) if isinstance(v, Decimal) else v for k, v in data.items()}


def minimum_receive(expected_out: Decimal, slippage_percent: Decimal) -> Decimal:
    """Lowest acceptable output: expected less slippage, floored to 3 decimals."""
    factor = Decimal("1") - slippage_percent / Decimal("100")
    return floor_to(safe_multiply(expected_out, factor))


class PricingEngine:
    """Quotes swaps from the current fee curve and pool sizes.

    The engine owns its two inputs and only reads them; they are replaced
    wholesale through ``update_fee_config`` and ``update_pools``.
    """

    def __init__(self, fee_config: Optional[FeeConfig] = None, pool_state: Optional[PoolState] = None):
        self.fee_config = fee_config or FeeConfig()
        self.pool_state = pool_state or PoolState()

    def update_fee_config(self, fee_config: FeeConfig) -> None:
        self.fee_config = fee_config

    def update_pools(self, pool_state: PoolState) -> None:
        self.pool_state = pool_state

    def calculate_fee(self, amount: Decimal, token_in: Token) -> FeeBreakdown:
        """Apply the fee curve to a positive amount.

        Args:
            amount: Input amount (must be positive)
            token_in: Token being sold to the bridge

        Raises:
            ValueError: If the pools are empty
        """
        pools = self.pool_state
        config = self.fee_config
        total_pool = pools.total
        if total_pool <= 0:
            raise ValueError("Pool sizes are empty")

        from_pool = pools.size_of(token_in)

        diff = (amount * HALF + from_pool) / total_pool - HALF

        adjusted_fee = max(config.base_fee * (1 - 2 * abs(diff)), config.min_base_fee)

        if token_in.is_primary:
            price = config.base_price - (2 * diff * config.diff_coefficient)
        else:
            price = (1 / config.base_price) - (2 * diff * config.diff_coefficient)

        expected_out = (amount * price) * (1 - adjusted_fee)

        return FeeBreakdown(
            diff=diff,
            adjusted_fee=adjusted_fee,
            price=price,
            fee_amount=round_to(amount * adjusted_fee, ACCOUNTING_PLACES),
            fee_percent=round_to(adjusted_fee * 100, 4),
            expected_out=round_to(expected_out, ACCOUNTING_PLACES),
        )

    def quote(
        self,
        amount_in: Any,
        token_in: Any,
        token_out: Any = None,
        slippage_percent: Any = DEFAULT_SLIPPAGE_PERCENT,
    ) -> SwapQuote:
        """Quote a swap.

        Args:
            amount_in: Input amount; anything that is not a finite positive
                number yields a zero quote
            token_in: Token sold to the bridge
            token_out: Token received (defaults to the counterpart of token_in)
            slippage_percent: Tolerance in percent, clamped to [0, 100]

        Returns:
            SwapQuote (all-zero for empty input)
        """
        token_in = Token.parse(token_in)
        token_out = Token.parse(token_out) if token_out is not None else token_in.counterpart
        if token_in == token_out:
            raise ValueError(f"Cannot swap {token_in.value} for itself")

        slippage = to_decimal(slippage_percent, default=DEFAULT_SLIPPAGE_PERCENT)
        slippage = min(max(slippage, Decimal("0")), Decimal("100"))

        if not is_positive_number(amount_in):
            return SwapQuote.zero(token_in, token_out, slippage)

        amount = to_decimal(amount_in)
        try:
            breakdown = self.calculate_fee(amount, token_in)
        except ValueError as e:
            logger.warning(f"Cannot price {amount} {token_in.value}: {e}")
            return SwapQuote.zero(token_in, token_out, slippage, amount_in=amount)

        expected = floor_to(breakdown.expected_out)

        return SwapQuote(
            amount_in=amount,
            token_in=token_in,
            token_out=token_out,
            expected_out=expected,
            raw_expected_out=breakdown.expected_out,
            fee_amount=breakdown.fee_amount,
            fee_percent=breakdown.fee_percent,
            slippage_percent=slippage,
            min_receive=minimum_receive(expected, slippage),
        )
