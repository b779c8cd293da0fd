#!/usr/bin/env python3
"""
bump_fill_version.py
--------------------

Invalidates every cached entry of one or more namespaces by bumping their
fill version. Run by the nightly reload job once fresh rankings are loaded.

USAGE:
  python scripts/bump_fill_version.py DE1 FR1      # Bump two server namespaces
  python scripts/bump_fill_version.py --all        # Bump every known server
  python scripts/bump_fill_version.py assets       # Drop every rendered image

Exit code is 1 if any bump failed.
"""

import argparse
import asyncio
import sys
from typing import Dict, List, Optional, Sequence

from ggetracker.core.cache.versions import VersionRegistry
from ggetracker.core.logging.logger import get_logger, shutdown_logging
from ggetracker.core.redis.service import CacheStore, RedisCacheStore
from ggetracker.modules.servers.registry import ServerRegistry

logger = get_logger("ggetracker.scripts.bump_fill_version")


async def bump_namespaces(store: CacheStore, namespaces: Sequence[str]) -> Dict[str, Optional[int]]:
    """Bump each namespace; a failed bump maps to None."""
    versions = VersionRegistry(store)
    results: Dict[str, Optional[int]] = {}
    for namespace in namespaces:
        try:
            results[namespace] = await versions.bump(namespace)
        except Exception as exc:
            logger.error(
                "Fill version bump failed",
                extra={"namespace": namespace, "error": str(exc)},
            )
            results[namespace] = None
    return results


async def _run(namespaces: List[str], redis_url: Optional[str]) -> int:
    store = RedisCacheStore(url=redis_url)
    await store.initialize()
    try:
        results = await bump_namespaces(store, namespaces)
    finally:
        await store.shutdown()

    for namespace, version in results.items():
        if version is None:
            print(f"  ✗ {namespace}: failed")
        else:
            print(f"  ✓ {namespace}: now at version {version}")
    return 1 if any(version is None for version in results.values()) else 0


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Bump cache fill versions")
    parser.add_argument("namespaces", nargs="*", help="Namespaces to invalidate (server names, assets...)")
    parser.add_argument("--all", action="store_true", help="Bump every known game server namespace")
    parser.add_argument("--redis-url", default=None, help="Override REDIS_URL")
    args = parser.parse_args(argv)

    namespaces = list(args.namespaces)
    if args.all:
        namespaces.extend(name for name in ServerRegistry().names() if name not in namespaces)
    if not namespaces:
        parser.error("at least one namespace (or --all) is required")

    try:
        return asyncio.run(_run(namespaces, args.redis_url))
    finally:
        shutdown_logging()


if __name__ == "__main__":
    sys.exit(main())
