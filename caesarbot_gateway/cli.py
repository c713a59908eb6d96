"""
Command-line interface for the CaesarBot API gateway.
"""

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Awaitable, Callable, Dict, List, Optional

from .config.manager import ConfigManager
from .envelope import ConfigurationError, Envelope
from .gateway import Gateway
from .utils.structured_logging import logging_manager, with_correlation_id


logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_CONFIG_ERROR = 2

GatewayHandler = Callable[[Gateway, argparse.Namespace], Awaitable[Envelope]]


async def balance_command(gateway: Gateway, args) -> Envelope:
    return await gateway.helius.get_native_balance(args.address)


async def tokens_command(gateway: Gateway, args) -> Envelope:
    return await gateway.helius.get_token_accounts(args.address)


async def transactions_command(gateway: Gateway, args) -> Envelope:
    return await gateway.helius.get_transaction_history(args.address, limit=args.limit)


async def price_command(gateway: Gateway, args) -> Envelope:
    if len(args.addresses) == 1:
        return await gateway.birdeye.get_price(args.addresses[0])
    return await gateway.birdeye.get_multi_price(args.addresses)


async def chart_command(gateway: Gateway, args) -> Envelope:
    return await gateway.birdeye.get_ohlcv(
        args.address,
        timeframe=args.timeframe,
        from_time=args.from_time,
        to_time=args.to_time,
    )


async def trending_command(gateway: Gateway, args) -> Envelope:
    return await gateway.birdeye.get_trending(
        sort_by=args.sort_by,
        sort_type=args.sort_type,
        offset=args.offset,
        limit=args.limit,
    )


async def quote_command(gateway: Gateway, args) -> Envelope:
    return await gateway.jupiter.get_quote(
        args.input_mint,
        args.output_mint,
        args.amount,
        slippage_bps=args.slippage_bps,
        swap_mode=args.swap_mode,
    )


async def stats_command(gateway: Gateway, args) -> Envelope:
    return await gateway.supabase.get_user_stats(args.address)


async def leaderboard_command(gateway: Gateway, args) -> Envelope:
    return await gateway.supabase.get_leaderboard(limit=args.limit)


async def safety_command(gateway: Gateway, args) -> Envelope:
    if args.summary:
        return await gateway.rugcheck.get_token_risks(args.mint)
    return await gateway.rugcheck.check_token(args.mint)


GATEWAY_COMMANDS: Dict[str, GatewayHandler] = {
    "balance": balance_command,
    "tokens": tokens_command,
    "transactions": transactions_command,
    "price": price_command,
    "chart": chart_command,
    "trending": trending_command,
    "quote": quote_command,
    "stats": stats_command,
    "leaderboard": leaderboard_command,
    "safety": safety_command,
}


def print_envelope(envelope: Envelope) -> None:
    print(json.dumps(envelope.to_dict(), indent=2, default=str))


@with_correlation_id()
async def run_gateway_command(handler: GatewayHandler, args) -> int:
    """Load config, run one adapter call and print its envelope."""
    manager = ConfigManager(args.config)
    config = manager.load_config()

    if not args.verbose and not args.quiet:
        logging_manager.setup_from_config(config.logging)

    async with Gateway(config) as gateway:
        if args.retry:
            envelope = await gateway.with_retry(lambda: handler(gateway, args), operation=args.command)
        else:
            envelope = await handler(gateway, args)

    print_envelope(envelope)
    return EXIT_OK if envelope.success else EXIT_FAILED


def init_config_command(args) -> int:
    """Write a default configuration file."""
    config_path = Path(args.config)
    manager = ConfigManager(str(config_path))

    if not manager.create_default_config(overwrite=args.force):
        print(f"Configuration file {config_path} already exists. Use --force to overwrite.")
        return EXIT_FAILED

    print(f"[OK] Configuration initialized at {config_path}")
    print("  API keys are read from the environment (HELIUS_API_KEY, BIRDEYE_API_KEY, ...)")
    return EXIT_OK


def validate_config_command(args) -> int:
    """Validate configuration file."""
    config_path = Path(args.config)

    if not config_path.exists():
        print(f"Configuration file {config_path} not found.")
        return EXIT_CONFIG_ERROR

    manager = ConfigManager(str(config_path))
    is_valid, errors = manager.validate_config_file()

    if not is_valid:
        print("✗ Configuration validation failed:")
        for error in errors:
            print(f"  - {error}")
        return EXIT_CONFIG_ERROR

    print("✓ Configuration is valid")
    config = manager.load_config()
    missing = config.missing_credentials()
    if missing:
        print("\nMissing credentials (the matching providers are unavailable):")
        for name in missing:
            print(f"  - {name}")
    return EXIT_OK


def _add_address_command(subparsers, name: str, help_text: str):
    command_parser = subparsers.add_parser(name, help=help_text)
    command_parser.add_argument("address", help="Wallet or token address")
    return command_parser


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="caesarbot-gateway",
        description="CaesarBot API gateway CLI",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  caesarbot-gateway init-config                     # Write default config.yaml
  caesarbot-gateway balance <wallet>                # SOL balance
  caesarbot-gateway price <mint> [<mint> ...]       # Single or batched price
  caesarbot-gateway chart <mint> --timeframe 15m    # OHLCV candles
  caesarbot-gateway quote <in> <out> 1000000        # Swap quote
  caesarbot-gateway leaderboard --limit 10          # Top wallets
        """
    )

    parser.add_argument(
        "--version",
        action="version",
        version="caesarbot-gateway 0.1.0"
    )
    parser.add_argument(
        "--config", "-c",
        type=str,
        default="config.yaml",
        help="Path to configuration file (default: config.yaml)"
    )
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Enable verbose output"
    )
    parser.add_argument(
        "--quiet", "-q",
        action="store_true",
        help="Suppress non-error output"
    )
    parser.add_argument(
        "--retry",
        action="store_true",
        help="Retry failed provider calls with linear backoff"
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # Wallet commands
    _add_address_command(subparsers, "balance", "Native SOL balance of a wallet")
    _add_address_command(subparsers, "tokens", "Token holdings of a wallet")
    transactions_parser = _add_address_command(subparsers, "transactions", "Recent transactions of a wallet")
    transactions_parser.add_argument("--limit", type=int, default=100, help="Maximum transactions (default: 100)")

    # Market data commands
    price_parser = subparsers.add_parser("price", help="Current price of one or more tokens")
    price_parser.add_argument("addresses", nargs="+", help="Token mint addresses")

    chart_parser = _add_address_command(subparsers, "chart", "OHLCV candles of a token")
    chart_parser.add_argument("--timeframe", default="1H", help="Candle width (default: 1H)")
    chart_parser.add_argument("--from", dest="from_time", type=int, help="Window start, unix seconds")
    chart_parser.add_argument("--to", dest="to_time", type=int, help="Window end, unix seconds")

    trending_parser = subparsers.add_parser("trending", help="Ranked token list")
    trending_parser.add_argument("--sort-by", default="volume24hUSD", help="Sort field (default: volume24hUSD)")
    trending_parser.add_argument("--sort-type", choices=["asc", "desc"], default="desc")
    trending_parser.add_argument("--offset", type=int, default=0)
    trending_parser.add_argument("--limit", type=int, default=50)

    # Swap commands
    quote_parser = subparsers.add_parser("quote", help="Routed swap quote")
    quote_parser.add_argument("input_mint", help="Mint being sold")
    quote_parser.add_argument("output_mint", help="Mint being bought")
    quote_parser.add_argument("amount", type=int, help="Raw amount in smallest units")
    quote_parser.add_argument("--slippage-bps", type=int, help="Slippage tolerance (default from config)")
    quote_parser.add_argument("--swap-mode", choices=["ExactIn", "ExactOut"], default="ExactIn")

    # Rewards commands
    _add_address_command(subparsers, "stats", "Stored stats of a wallet")
    leaderboard_parser = subparsers.add_parser("leaderboard", help="Top wallets by points")
    leaderboard_parser.add_argument("--limit", type=int, default=100)

    # Safety commands
    safety_parser = subparsers.add_parser("safety", help="Token safety report")
    safety_parser.add_argument("mint", help="Token mint address")
    safety_parser.add_argument("--summary", action="store_true", help="Score and risks only")

    # Configuration commands
    init_parser = subparsers.add_parser("init-config", help="Write a default configuration file")
    init_parser.add_argument("--force", action="store_true", help="Overwrite existing configuration")
    subparsers.add_parser("validate-config", help="Validate configuration file")

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Main CLI entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return EXIT_FAILED

    if args.quiet:
        logging_manager.setup_logging(log_level="ERROR", force=True)
    elif args.verbose:
        logging_manager.setup_logging(log_level="DEBUG", force=True)

    if args.command == "init-config":
        return init_config_command(args)
    if args.command == "validate-config":
        return validate_config_command(args)

    handler = GATEWAY_COMMANDS.get(args.command)
    if handler is None:
        print(f"Unknown command: {args.command}")
        return EXIT_FAILED

    try:
        return asyncio.run(run_gateway_command(handler, args))
    except ConfigurationError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return EXIT_CONFIG_ERROR
    except ValueError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return EXIT_CONFIG_ERROR
    except KeyboardInterrupt:
        print("\nOperation cancelled by user.", file=sys.stderr)
        return 130


if __name__ == "__main__":
    sys.exit(main())
