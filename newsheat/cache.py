"""Heatmap result cache on cashews (Redis backend with in-memory fallback).

Raw build results are stored under ``newsheat:{namespace}:{hours}:{category}:{scan}``
where the namespace identifies the article database, so two engines pointed at
different databases never read each other's results. Entries expire after
``NEWS_HEATMAP_CACHE_MS``; ``invalidate_namespace`` drops them early.

Usage:
    from newsheat.cache import cache, heatmap_key, setup_cache

    await setup_cache()
    await cache.set(heatmap_key(ns, 24, "ALL", 1200), result, expire=ttl)
"""
from __future__ import annotations

import hashlib
import logging

from cashews import cache

from newsheat.config import CACHE_DEFAULT_TTL, CACHE_ENABLED, REDIS_URL

logger = logging.getLogger(__name__)

__all__ = ["cache", "setup_cache", "cache_namespace", "heatmap_key", "invalidate_namespace"]

KEY_PREFIX = "newsheat"


async def setup_cache() -> str:
    """Pick the cashews backend and return its kind (``redis``, ``memory`` or ``null``).

    With CACHE_ENABLED=false every lookup misses, so each non-coalesced
    request builds. A Redis URL that cashews cannot set up (bad scheme,
    client library missing) degrades to the in-process backend.
    """
    if not CACHE_ENABLED:
        cache.setup("null://")
        logger.info("Heatmap result cache disabled (CACHE_ENABLED=false)")
        return "null"

    if REDIS_URL:
        try:
            cache.setup(REDIS_URL, default_timeout=CACHE_DEFAULT_TTL)
        except Exception:
            logger.warning("Cannot use Redis at %s for heatmap results, using memory", _redact(REDIS_URL), exc_info=True)
        else:
            logger.info("Heatmap result cache: Redis at %s", _redact(REDIS_URL))
            return "redis"

    cache.setup("mem://", default_timeout=CACHE_DEFAULT_TTL)
    logger.info("Heatmap result cache: in-process memory")
    return "memory"


def _redact(url: str) -> str:
    return url.rsplit("@", 1)[-1]


def cache_namespace(db_path: str) -> str:
    """Short stable namespace for one article database."""
    return hashlib.sha1(db_path.encode("utf-8")).hexdigest()[:12]


def heatmap_key(namespace: str, hours: int, category: str, article_limit: int) -> str:
    return f"{KEY_PREFIX}:{namespace}:{hours}:{category}:{article_limit}"


async def invalidate_namespace(namespace: str) -> None:
    """Drop every cached heatmap result for one namespace."""
    await cache.delete_match(f"{KEY_PREFIX}:{namespace}:*")
