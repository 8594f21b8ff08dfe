"""Command-line entry point.

Usage:
    python -m swaphive config
    python -m swaphive quote 100 --from HIVE --slippage 0.5
    python -m swaphive balance alice
    python -m swaphive liquidity
    python -m swaphive history alice
    python -m swaphive prices

Options:
    --dry-run  Use simulated ledgers and signer (no network)
    --debug    Verbose logging
"""

import argparse
import asyncio
import json
import logging
import sys
from typing import Optional

from swaphive.app import Application
from swaphive.chains import Token
from swaphive.config import Settings, get_settings
from swaphive.errors import SwapHiveError, handle_error
from swaphive.utils.numeric import format_amount

logger = logging.getLogger(__name__)


def configure_logging(debug: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="swaphive", description="HIVE <-> SWAP.HIVE bridge client")
    parser.add_argument("--dry-run", action="store_true", help="Use simulated ledgers and signer")
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")

    commands = parser.add_subparsers(dest="command", required=True)

    commands.add_parser("config", help="Show effective settings")

    quote = commands.add_parser("quote", help="Quote a swap at current liquidity")
    quote.add_argument("amount", help="Amount to swap")
    quote.add_argument(
        "--from",
        dest="token_in",
        default=Token.HIVE.value,
        choices=[t.value for t in Token],
        help="Token to sell (default: HIVE)",
    )
    quote.add_argument("--slippage", type=float, default=None, help="Slippage tolerance in percent")

    balance = commands.add_parser("balance", help="Show an account's balances")
    balance.add_argument("username")

    commands.add_parser("liquidity", help="Show bridge pool sizes")

    history = commands.add_parser("history", help="Resolve and show an account's recent swaps")
    history.add_argument("username")

    commands.add_parser("prices", help="Show USD market prices")

    return parser


def _print(data) -> None:
    print(json.dumps(data, indent=2, default=str))


async def run_command(args: argparse.Namespace, settings: Settings) -> int:
    if args.command == "config":
        _print(settings.get_safe_dict())
        return 0

    app = Application(settings)
    try:
        await app.start()

        if args.command == "quote":
            slippage = settings.default_slippage if args.slippage is None else args.slippage
            quote = app.pricing.quote(args.amount, args.token_in, slippage_percent=slippage)
            _print(quote.to_dict())

        elif args.command == "balance":
            snapshot = await app.balances.load(args.username)
            _print(snapshot.to_dict())

        elif args.command == "liquidity":
            pools = app.liquidity.pool_state
            _print(
                {
                    "bridge": settings.bridge_account,
                    Token.HIVE.value: format_amount(pools.primary_pool_size),
                    Token.SWAP_HIVE.value: format_amount(pools.side_pool_size),
                    "refreshed_at": app.liquidity.refreshed_at,
                }
            )

        elif args.command == "history":
            records = await app.swaps.load_history(args.username)
            _print([record.to_dict() for record in records])

        elif args.command == "prices":
            prices = await app.prices.fetch_all()
            _print({symbol: str(price) for symbol, price in prices.usd.items()})

        return 0
    except SwapHiveError as e:
        error = handle_error(e, args.command)
        print(f"Error: {error['message']}", file=sys.stderr)
        return 1
    finally:
        await app.close()


def main(argv: Optional[list[str]] = None) -> int:
    """Main entry point."""
    args = build_parser().parse_args(argv)

    settings = get_settings()
    overrides = {}
    if args.dry_run:
        overrides["dry_run"] = True
    if args.debug:
        overrides["debug"] = True
    if overrides:
        settings = settings.model_copy(update=overrides)

    configure_logging(settings.debug)

    try:
        return asyncio.run(run_command(args, settings))
    except KeyboardInterrupt:
        logger.info("Keyboard interrupt received")
        return 130


if __name__ == "__main__":
    sys.exit(main())
