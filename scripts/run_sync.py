#!/usr/bin/env python3
"""Run one catalog sync from the command line (cron, CI, manual backfills)."""

from __future__ import annotations

import argparse
import asyncio
import sys

from app.core.database import engine
from app.core.logging import configure_logging
from app.services.providers.registry import get_registry
from app.services.sync_engine import get_sync_engine


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Sync eSIM provider catalogs into the database.")
    parser.add_argument(
        "providers",
        nargs="*",
        help="Provider slugs to sync (default: every registered provider)",
    )
    return parser


async def run(slugs: list[str]) -> int:
    registry = get_registry()
    sync_engine = get_sync_engine()

    adapters = []
    for slug in slugs or registry.slugs():
        adapter = registry.get(slug)
        if adapter is None:
            print(f"ERROR: unknown provider '{slug}'. Available: {', '.join(registry.slugs())}")
            return 2
        adapters.append(adapter)

    try:
        results = await sync_engine.run_all(adapters)
    finally:
        await engine.dispose()

    for result in results:
        if result.ok:
            print(f"OK: {result.provider} -> {result.plans_inserted} plans ({result.duration_ms}ms)")
        else:
            print(f"FAILED: {result.provider} -> {result.error}")
    return 0 if all(result.ok for result in results) else 1


def main() -> None:
    args = build_parser().parse_args()
    configure_logging()
    sys.exit(asyncio.run(run(args.providers)))


if __name__ == "__main__":
    main()
