"""News heatmap service: build pipeline, result cache and request coalescing.

One build cycle:

    articles  = newest-first rows from ``news_articles`` in the window
    labels    = LLM labels for the newest articles (may be empty)
    previous  = persisted state from the lookback window
    clusters  = finalize(stabilize(assign(articles, labels)), previous)
    persist(clusters)            # all categories, one transaction
    result    = clusters filtered to the requested category

Raw results are cached in cashews for ``NEWS_HEATMAP_CACHE_MS`` under a key of
(hours, category, article scan cap). Concurrent non-forced callers for the
same key share one in-flight build. The cashews backend must be configured
(``newsheat.cache.setup_cache``) before the first call.
"""
from __future__ import annotations

import asyncio
import logging
import sqlite3
import time
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from pathlib import Path

from newsheat.cache import cache, cache_namespace, heatmap_key, invalidate_namespace
from newsheat.clustering import build_accumulators
from newsheat.config import (
    DEFAULT_BUCKET_HOURS,
    DEFAULT_HOURS,
    DEFAULT_LIMIT,
    HEATMAP_CACHE_MS,
    HEATMAP_DETAIL_HOURS,
    HEATMAP_MAX_ARTICLES,
    HEATMAP_MIN_ARTICLES,
    MAX_HOURS,
    MAX_LIMIT,
    NEWS_DB_PATH,
    STATE_LOOKBACK_HOURS,
)
from newsheat.data.articles import ArticleSource
from newsheat.data.openrouter import OpenRouterClient
from newsheat.database import NewsDatabase
from newsheat.finalize import finalize_clusters
from newsheat.labeling import LlmLabeler
from newsheat.models import (
    ALL_CATEGORIES,
    BuildResult,
    LlmSummary,
    NewsHeatmapCluster,
    NewsHeatmapResult,
    NewsHeatmapTimeline,
)
from newsheat.state_store import StateStore
from newsheat.timeline import bucket_observations, clamp_int, resolve_window
from newsheat.tokenizer import normalize_category

logger = logging.getLogger(__name__)

DETAIL_REBUILD_LIMIT = 250
TIMELINE_SEED_LIMIT = 80


@dataclass(frozen=True)
class HeatmapOptions:
    hours: int = DEFAULT_HOURS
    limit: int = DEFAULT_LIMIT
    category: str = ALL_CATEGORIES
    force: bool = False
    article_limit: int = HEATMAP_MAX_ARTICLES

    @classmethod
    def normalize(
        cls,
        hours=None,
        limit=None,
        category: str | None = None,
        force: bool = False,
        article_limit=None,
        max_article_scan: int = HEATMAP_MAX_ARTICLES,
    ) -> HeatmapOptions:
        """Clamp every option into range; never rejects."""
        max_scan = max(HEATMAP_MIN_ARTICLES, max_article_scan)
        raw_category = str(category or ALL_CATEGORIES).strip().upper()
        return cls(
            hours=clamp_int(hours, 1, MAX_HOURS, DEFAULT_HOURS),
            limit=clamp_int(limit, 1, MAX_LIMIT, DEFAULT_LIMIT),
            category=ALL_CATEGORIES if raw_category == ALL_CATEGORIES else normalize_category(raw_category),
            force=bool(force),
            article_limit=clamp_int(article_limit, HEATMAP_MIN_ARTICLES, max_scan, max_scan),
        )


class NewsHeatmapService:
    """Clusters recent news into a ranked heatmap. Safe for concurrent use."""

    def __init__(
        self,
        db_path: str | Path | None = None,
        *,
        labeler: LlmLabeler | None = None,
        cache_ttl_ms: int = HEATMAP_CACHE_MS,
        max_article_scan: int = HEATMAP_MAX_ARTICLES,
        state_lookback_hours: float = STATE_LOOKBACK_HOURS,
    ) -> None:
        self.db_path = Path(db_path or NEWS_DB_PATH)
        self.db = NewsDatabase(self.db_path)
        self.articles = ArticleSource(self.db)
        self.store = StateStore(self.db)
        self.labeler = labeler or LlmLabeler(OpenRouterClient())
        self.cache_ttl_ms = cache_ttl_ms
        self.max_article_scan = max(HEATMAP_MIN_ARTICLES, max_article_scan)
        self.state_lookback_hours = state_lookback_hours
        self.namespace = cache_namespace(str(self.db_path.resolve()))

        self._initialized = False
        self._open_failed = False
        self._init_lock = asyncio.Lock()
        self._in_flight: dict[str, asyncio.Task] = {}
        self._cluster_details: dict[str, NewsHeatmapCluster] = {}
        self.builds = 0

    # ── Lifecycle ──

    async def initialize(self) -> None:
        """Open the database and create tables.

        A failed open leaves the service degraded and is retried on the next call.
        """
        if self._initialized:
            return
        async with self._init_lock:
            if self._initialized:
                return
            try:
                await asyncio.to_thread(self._open)
            except (sqlite3.Error, OSError) as exc:
                self.db.close()
                self._open_failed = True
                logger.error("News heatmap store unavailable, running degraded: %s", exc)
                return
            self._open_failed = False
            self._initialized = True
            logger.info("News heatmap service initialized (db=%s)", self.db_path)

    def _open(self) -> None:
        self.db.open()
        self.store.ensure_schema()

    async def close(self) -> None:
        await asyncio.to_thread(self.db.close)
        self._initialized = False

    @property
    def degraded(self) -> bool:
        return self._open_failed and not self.db.is_open

    # ── Heatmap ──

    def normalize_options(self, **kwargs) -> HeatmapOptions:
        return HeatmapOptions.normalize(max_article_scan=self.max_article_scan, **kwargs)

    async def get_heatmap(
        self,
        hours=None,
        limit=None,
        category: str | None = None,
        force: bool = False,
        article_limit=None,
    ) -> NewsHeatmapResult:
        opts = self.normalize_options(
            hours=hours, limit=limit, category=category, force=force, article_limit=article_limit,
        )
        key = heatmap_key(self.namespace, opts.hours, opts.category, opts.article_limit)

        if not opts.force:
            cached = await cache.get(key)
            if cached is not None:
                return NewsHeatmapResult.project(cached, opts.limit)
            in_flight = self._in_flight.get(key)
            if in_flight is not None:
                return NewsHeatmapResult.project(await asyncio.shield(in_flight), opts.limit)

        task = asyncio.ensure_future(self._build_and_cache(key, opts))
        self._in_flight[key] = task
        return NewsHeatmapResult.project(await asyncio.shield(task), opts.limit)

    async def rebuild(self, hours=None, limit=None, category: str | None = None, article_limit=None) -> NewsHeatmapResult:
        return await self.get_heatmap(
            hours=hours, limit=limit, category=category, force=True, article_limit=article_limit,
        )

    async def get_cluster_details(
        self, cluster_id: str, hours: int = HEATMAP_DETAIL_HOURS,
    ) -> NewsHeatmapCluster | None:
        if not cluster_id:
            return None
        cached = self._cluster_details.get(cluster_id)
        if cached is not None:
            return cached

        rebuilt = await self.get_heatmap(hours=hours, limit=DETAIL_REBUILD_LIMIT, force=True)
        return next((c for c in rebuilt.clusters if c.id == cluster_id), None)

    async def invalidate(self) -> None:
        """Drop cached results and cluster details for this database."""
        self._cluster_details.clear()
        await invalidate_namespace(self.namespace)

    async def _build_and_cache(self, key: str, opts: HeatmapOptions) -> BuildResult:
        current = asyncio.current_task()
        try:
            result = await self._build(opts)
            await cache.set(key, result, expire=timedelta(milliseconds=self.cache_ttl_ms))
            return result
        finally:
            if self._in_flight.get(key) is current:
                del self._in_flight[key]

    async def _build(self, opts: HeatmapOptions) -> BuildResult:
        await self.initialize()
        started = time.perf_counter()
        self.builds += 1
        now = datetime.now(timezone.utc)

        articles = await asyncio.to_thread(self.articles.get_recent_articles, opts.hours, opts.article_limit, now)
        labels = await self.labeler.label(articles)
        previous = await asyncio.to_thread(self.store.get_previous_state, self.state_lookback_hours, now)
        clusters = finalize_clusters(build_accumulators(articles, labels, now), previous, now)

        try:
            await asyncio.to_thread(self.store.persist, clusters, now)
        except sqlite3.Error as exc:
            logger.warning("Failed to persist heatmap state (%d clusters): %s", len(clusters), exc)

        if opts.category != ALL_CATEGORIES:
            clusters = [c for c in clusters if c.category == opts.category]

        self._cluster_details = {c.id: c for c in clusters}

        llm_denominator = min(len(articles), self.labeler.max_articles)
        coverage = round(len(labels) / llm_denominator, 3) if llm_denominator > 0 else 0.0

        logger.info(
            "Heatmap built: %d articles, %d clusters, %d labeled, %.0fms (hours=%d category=%s)",
            len(articles), len(clusters), len(labels), (time.perf_counter() - started) * 1000,
            opts.hours, opts.category,
        )
        return BuildResult(
            generated_at=now,
            hours=opts.hours,
            category=opts.category,
            total_articles=len(articles),
            total_clusters=len(clusters),
            clusters=tuple(clusters),
            llm=LlmSummary(
                enabled=self.labeler.is_available(),
                model=self.labeler.model,
                labeled_articles=len(labels),
                coverage=coverage,
            ),
        )

    # ── Timeline ──

    async def get_timeline(
        self, hours=DEFAULT_HOURS, bucket_hours=DEFAULT_BUCKET_HOURS, category: str | None = ALL_CATEGORIES,
    ) -> NewsHeatmapTimeline:
        """Bucketed heat history; seeds one build when history is empty."""
        await self.initialize()
        hours, bucket_hours, category = resolve_window(hours, bucket_hours, category)
        now = datetime.now(timezone.utc)
        if not self.store.available:
            return NewsHeatmapTimeline(generated_at=now, hours=hours, bucket_hours=bucket_hours)

        since = now - timedelta(hours=hours)
        rows = await asyncio.to_thread(self.store.read_history, since)
        if not rows:
            await self.get_heatmap(hours=hours, limit=TIMELINE_SEED_LIMIT, force=True)
            rows = await asyncio.to_thread(self.store.read_history, since)
            if not rows:
                return NewsHeatmapTimeline(generated_at=datetime.now(timezone.utc), hours=hours, bucket_hours=bucket_hours)

        now = datetime.now(timezone.utc)
        return NewsHeatmapTimeline(
            generated_at=now,
            hours=hours,
            bucket_hours=bucket_hours,
            points=tuple(bucket_observations(rows, now, hours, bucket_hours, category)),
        )


news_heatmap_service = NewsHeatmapService()
