# =============================================================================
# tamdata/cli/market.py: Market Data CLI
# =============================================================================
#
# Operator tool for the market-data core.  Builds the same service the
# tool layer uses (tamdata.main.async_session) and runs one command:
#
#   market-size ID [--region R] [--json]   Resolve a market size through
#                                          the provider fallback chain
#   providers                              Provider availability report
#   cache-stats                            Cache hit/miss/size counters
#   cache-health                           Cache backend health rollup
#   invalidate PATTERN                     Delete cached keys by glob
#
# Logging goes to stderr (tamdata.utils.logging); results go to stdout so
# that `--json` output can be piped.
# =============================================================================

"""Command-line interface for market-size lookups and cache maintenance.

Usage::

    python -m tamdata.cli market-size AAPL --region US
    python -m tamdata.cli market-size tech-software --json
    python -m tamdata.cli providers
    python -m tamdata.cli cache-stats
    python -m tamdata.cli cache-health
    python -m tamdata.cli invalidate "fred:*"
"""

from __future__ import annotations

import argparse
import asyncio
import json
import sys
from typing import Any

from tamdata.config.settings import Settings
from tamdata.main import async_session
from tamdata.services.market_data_service import MarketDataService
from tamdata.utils.errors import TamDataError
from tamdata.utils.logging import configure_logging

# ---------------------------------------------------------------------------
# Command handlers
# ---------------------------------------------------------------------------


def _emit(payload: Any, as_json: bool) -> None:
    if as_json:
        print(json.dumps(payload, indent=2, default=str))
        return
    if isinstance(payload, dict):
        for key, value in payload.items():
            print(f"{key:<20} {value}")
    else:
        print(payload)


async def _market_size(service: MarketDataService, args: argparse.Namespace) -> int:
    result = await service.get_market_size(args.identifier, args.region)
    if args.json_output:
        _emit(result.model_dump(mode="json"), True)
    else:
        print(f"{args.identifier} ({args.region}): {result.value:,.2f}  [source: {result.source}]")
    return 0


async def _providers(service: MarketDataService, args: argparse.Namespace) -> int:
    statuses = service.provider_statuses()
    if args.json_output:
        _emit([s.model_dump() for s in statuses], True)
        return 0
    for status in statuses:
        state = "available" if status.available else f"missing {status.key_name}"
        print(f"{status.name:<15} {state}")
    return 0


async def _cache_stats(service: MarketDataService, args: argparse.Namespace) -> int:
    metrics = await service.get_metrics()
    _emit(metrics["cache"], args.json_output)
    return 0


async def _cache_health(service: MarketDataService, args: argparse.Namespace) -> int:
    report = await service.health_check()
    if args.json_output:
        _emit(report, True)
    else:
        _emit({"status": report["status"], **report["cache"]["details"]}, False)
    return 0 if report["status"] == "healthy" else 2


async def _invalidate(service: MarketDataService, args: argparse.Namespace) -> int:
    deleted = await service.invalidate_cache(args.pattern)
    _emit({"pattern": args.pattern, "deleted": deleted}, args.json_output)
    return 0


_HANDLERS = {
    "market-size": _market_size,
    "providers": _providers,
    "cache-stats": _cache_stats,
    "cache-health": _cache_health,
    "invalidate": _invalidate,
}


async def _run(args: argparse.Namespace, app_settings: Settings) -> int:
    async with async_session(app_settings, config_path=args.config) as service:
        return await _HANDLERS[args.command](service, args)


# ---------------------------------------------------------------------------
# Argument parsing
# ---------------------------------------------------------------------------


def _build_parser() -> argparse.ArgumentParser:
    """Build the argparse parser for the market data CLI."""
    parser = argparse.ArgumentParser(
        prog="python -m tamdata.cli",
        description="Market-size lookups and cache maintenance for tam-data-hub.",
    )
    parser.add_argument(
        "--config",
        default="config/config.yaml",
        help="Path to the YAML configuration (default: config/config.yaml)",
    )
    subparsers = parser.add_subparsers(dest="command", help="Commands")

    size_parser = subparsers.add_parser("market-size", help="Resolve a market size")
    size_parser.add_argument("identifier", help="Ticker, industry code or series id")
    size_parser.add_argument("--region", default="US", help="Region / country code (default: US)")

    providers_parser = subparsers.add_parser("providers", help="Show provider availability")
    stats_parser = subparsers.add_parser("cache-stats", help="Show cache statistics")
    health_parser = subparsers.add_parser("cache-health", help="Show cache health")

    invalidate_parser = subparsers.add_parser("invalidate", help="Delete cached keys by glob")
    invalidate_parser.add_argument("pattern", help='Glob pattern, e.g. "fred:*"')

    for sub in (size_parser, providers_parser, stats_parser, health_parser, invalidate_parser):
        sub.add_argument(
            "--json", action="store_true", dest="json_output", help="Print machine-readable JSON"
        )

    return parser


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------


def main(argv: list[str] | None = None) -> int:
    """CLI entry point.  Returns the process exit code."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return 1

    app_settings = Settings()
    configure_logging(
        log_level=app_settings.log_level,
        json_output=(app_settings.app_env == "production"),
    )

    try:
        return asyncio.run(_run(args, app_settings))
    except TamDataError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1
