"""CLI entrypoints for JWK aggregator operational tasks."""

from __future__ import annotations

import argparse
import asyncio
import json
from collections.abc import Sequence

from app.config import get_settings
from jwks_aggregator.aggregator import KeySetAggregator
from jwks_aggregator.client import OriginClient
from jwks_aggregator.state import CacheState


async def _run_aggregate(origins: Sequence[str], timeout_seconds: float | None) -> int:
    """Aggregate JWK sets from ``origins`` once and print the merged set."""
    async with OriginClient(timeout=timeout_seconds) as client:
        aggregator = KeySetAggregator(client=client, state=CacheState(), origins=origins)
        snapshot = await aggregator.aggregate_snapshot()

    print(json.dumps(snapshot.as_jwks()))
    return 0


def _configured_origins() -> list[str]:
    """Return origins from settings, or an empty list when unconfigured."""
    config = get_settings().jwk_aggregator
    return list(config.origin_urls) if config is not None else []


def _configured_timeout() -> float | None:
    config = get_settings().jwk_aggregator
    return config.fetch_timeout_seconds if config is not None else None


def _build_parser() -> argparse.ArgumentParser:
    """Build command-line parser for supported operational commands."""
    parser = argparse.ArgumentParser(prog="python -m app.cli")
    subcommands = parser.add_subparsers(dest="command", required=True)

    aggregate_parser = subcommands.add_parser("aggregate")
    aggregate_parser.add_argument(
        "--origin",
        action="append",
        dest="origins",
        default=None,
        help="Origin URL to fetch; repeat to override JWK_AGGREGATOR__ORIGINS.",
    )
    aggregate_parser.add_argument(
        "--timeout",
        type=float,
        default=None,
        help="Optional per-origin request timeout in seconds.",
    )
    return parser


def main(argv: Sequence[str] | None = None) -> int:
    """Run CLI command."""
    parser = _build_parser()
    args = parser.parse_args(argv)
    if args.command == "aggregate":
        origins = args.origins or _configured_origins()
        if not origins:
            print("No origins configured; pass --origin or set JWK_AGGREGATOR__ORIGINS.")
            return 2
        timeout = args.timeout if args.timeout is not None else _configured_timeout()
        return asyncio.run(_run_aggregate(origins, timeout))
    parser.error("Unsupported command")
    return 2


if __name__ == "__main__":
    raise SystemExit(main())
