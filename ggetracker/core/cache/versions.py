"""
Fill-version registry.

Purpose
-------
Track one positive integer per cache namespace under
``fill-version:<namespace>``. Readers embed the current value in every key
they build, so bumping it orphans a whole family of entries in O(1): nothing
is scanned or deleted, old entries simply stop being addressed and expire on
their own TTL.

Responsibilities
----------------
- Read the current version, degrading to 1 on any problem
- Perform the administrative bump for the nightly data reload

Non-Responsibilities
--------------------
- Caching the version in-process (readers re-read before every key build)
- Ordering versions (they are compared by equality only)
"""

from __future__ import annotations

from ggetracker.core.constants import DEFAULT_FILL_VERSION, FILL_VERSION_KEY_PREFIX
from ggetracker.core.logging.logger import get_logger
from ggetracker.core.redis.service import CacheStore

logger = get_logger(__name__)


def fill_version_key(namespace: str) -> str:
    return f"{FILL_VERSION_KEY_PREFIX}:{namespace}"


class VersionRegistry:
    """Per-namespace fill versions backed by the cache store."""

    def __init__(self, store: CacheStore) -> None:
        self._store = store

    async def get_version(self, namespace: str) -> int:
        """
        Return the current fill version of a namespace.

        Missing keys, unparseable or non-positive values and store errors all
        yield the default version 1. Never raises.
        """
        key = fill_version_key(namespace)
        try:
            raw = await self._store.get(key)
        except Exception as exc:
            logger.warning(
                "Fill version read failed, using default",
                extra={
                    "namespace": namespace,
                    "error": str(exc),
                    "error_type": type(exc).__name__,
                },
            )
            return DEFAULT_FILL_VERSION

        if raw is None:
            return DEFAULT_FILL_VERSION

        try:
            version = int(str(raw).strip())
        except ValueError:
            logger.warning(
                "Unparseable fill version, using default",
                extra={"namespace": namespace, "raw_value": raw},
            )
            return DEFAULT_FILL_VERSION

        if version < 1:
            logger.warning(
                "Non-positive fill version, using default",
                extra={"namespace": namespace, "raw_value": raw},
            )
            return DEFAULT_FILL_VERSION

        return version

    async def bump(self, namespace: str) -> int:
        """
        Atomically advance the fill version of a namespace.

        INCR on an absent key yields 1, which readers already use as the
        default, so that case is incremented once more.

        Returns
        -------
        int
            The new version.

        Raises
        ------
        CacheStoreError
            If the store rejects the increment.
        """
        key = fill_version_key(namespace)
        version = await self._store.incr(key)
        if version == DEFAULT_FILL_VERSION:
            version = await self._store.incr(key)

        logger.info(
            "Fill version bumped",
            extra={"namespace": namespace, "version": version},
        )
        return version
