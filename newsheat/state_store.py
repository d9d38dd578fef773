"""Persisted heatmap state: per-key current state plus append-only history.

``news_heatmap_state``   one row per stable key (``category:topic_key``), upserted
                         every build; feeds velocity and cluster-id reuse.
``news_heatmap_history`` one row per cluster per build; feeds the timeline.

Each persist is one transaction: upserts, history inserts and retention
cleanup commit together or not at all.
"""
from __future__ import annotations

import logging
import sqlite3
from collections.abc import Sequence
from datetime import datetime, timedelta, timezone

from newsheat.config import (
    HISTORY_RETENTION_DAYS,
    STATE_LOOKBACK_HOURS,
    STATE_RETENTION_DAYS,
)
from newsheat.database import NewsDatabase
from newsheat.models import (
    ALL_CATEGORIES,
    HistoryObservation,
    NewsHeatmapCluster,
    StateSnapshot,
    parse_iso,
    to_iso,
)

logger = logging.getLogger(__name__)

_SCHEMA = """
CREATE TABLE IF NOT EXISTS news_heatmap_state (
    cluster_key TEXT PRIMARY KEY,
    cluster_id TEXT NOT NULL,
    category TEXT NOT NULL,
    topic TEXT NOT NULL,
    last_heat_score REAL NOT NULL,
    last_article_count INTEGER NOT NULL,
    last_velocity REAL NOT NULL,
    last_sentiment_score REAL NOT NULL,
    llm_coverage REAL NOT NULL,
    updated_at TEXT NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_news_heatmap_state_updated
    ON news_heatmap_state(updated_at);

CREATE TABLE IF NOT EXISTS news_heatmap_history (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    cluster_key TEXT NOT NULL,
    category TEXT NOT NULL,
    topic TEXT NOT NULL,
    heat_score REAL NOT NULL,
    article_count INTEGER NOT NULL,
    sentiment_score REAL NOT NULL,
    velocity REAL NOT NULL,
    llm_coverage REAL NOT NULL,
    timestamp TEXT NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_news_heatmap_history_ts
    ON news_heatmap_history(timestamp);
CREATE INDEX IF NOT EXISTS idx_news_heatmap_history_category_ts
    ON news_heatmap_history(category, timestamp);
"""

_UPSERT_STATE = """
    INSERT INTO news_heatmap_state (
        cluster_key, cluster_id, category, topic, last_heat_score,
        last_article_count, last_velocity, last_sentiment_score, llm_coverage, updated_at
    ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
    ON CONFLICT(cluster_key) DO UPDATE SET
        cluster_id = excluded.cluster_id,
        category = excluded.category,
        topic = excluded.topic,
        last_heat_score = excluded.last_heat_score,
        last_article_count = excluded.last_article_count,
        last_velocity = excluded.last_velocity,
        last_sentiment_score = excluded.last_sentiment_score,
        llm_coverage = excluded.llm_coverage,
        updated_at = excluded.updated_at
"""

_INSERT_HISTORY = """
    INSERT INTO news_heatmap_history (
        cluster_key, category, topic, heat_score, article_count,
        sentiment_score, velocity, llm_coverage, timestamp
    ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
"""


def _float(value) -> float | None:
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


class StateStore:
    """Reads and writes the heatmap tables on a shared ``NewsDatabase``."""

    def __init__(
        self,
        db: NewsDatabase,
        *,
        state_retention_days: float = STATE_RETENTION_DAYS,
        history_retention_days: float = HISTORY_RETENTION_DAYS,
    ) -> None:
        self.db = db
        self.state_retention = timedelta(days=state_retention_days)
        self.history_retention = timedelta(days=history_retention_days)

    @property
    def available(self) -> bool:
        return self.db.is_open

    def ensure_schema(self) -> None:
        with self.db.lock:
            self.db.conn.executescript(_SCHEMA)

    def get_previous_state(
        self, lookback_hours: float = STATE_LOOKBACK_HOURS, now: datetime | None = None,
    ) -> dict[str, StateSnapshot]:
        """Current-state rows updated within the lookback, keyed by stable key."""
        if not self.available:
            return {}
        now = now or datetime.now(timezone.utc)
        cutoff = to_iso(now - timedelta(hours=lookback_hours))
        with self.db.lock:
            rows = self.db.conn.execute(
                "SELECT * FROM news_heatmap_state WHERE updated_at >= ?", (cutoff,),
            ).fetchall()

        result: dict[str, StateSnapshot] = {}
        for row in rows:
            heat = _float(row["last_heat_score"])
            if heat is None or not row["cluster_key"]:
                logger.debug("Skipping malformed state row %r", row["cluster_key"])
                continue
            result[row["cluster_key"]] = StateSnapshot(
                cluster_key=row["cluster_key"],
                cluster_id=str(row["cluster_id"] or ""),
                last_heat_score=heat,
                last_velocity=_float(row["last_velocity"]) or 0.0,
                last_sentiment_score=_float(row["last_sentiment_score"]) or 0.0,
                last_article_count=int(_float(row["last_article_count"]) or 0),
                llm_coverage=_float(row["llm_coverage"]) or 0.0,
                updated_at=parse_iso(row["updated_at"]),
            )
        return result

    def persist(self, clusters: Sequence[NewsHeatmapCluster], timestamp: datetime) -> None:
        """Upsert state, append history, apply retention; one transaction.

        Raises ``sqlite3.Error`` after rolling back when any statement fails.
        """
        if not self.available or not clusters:
            return
        ts = to_iso(timestamp)
        state_cutoff = to_iso(timestamp - self.state_retention)
        history_cutoff = to_iso(timestamp - self.history_retention)

        with self.db.lock:
            conn = self.db.conn
            conn.execute("BEGIN IMMEDIATE")
            try:
                for cluster in clusters:
                    key = cluster.stable_key
                    conn.execute(_UPSERT_STATE, (
                        key, cluster.id, cluster.category, cluster.topic, cluster.heat_score,
                        cluster.article_count, cluster.velocity, cluster.sentiment_score,
                        cluster.llm_coverage, ts,
                    ))
                    conn.execute(_INSERT_HISTORY, (
                        key, cluster.category, cluster.topic, cluster.heat_score,
                        cluster.article_count, cluster.sentiment_score, cluster.velocity,
                        cluster.llm_coverage, ts,
                    ))
                conn.execute("DELETE FROM news_heatmap_state WHERE updated_at < ?", (state_cutoff,))
                conn.execute("DELETE FROM news_heatmap_history WHERE timestamp < ?", (history_cutoff,))
                conn.execute("COMMIT")
            except sqlite3.Error:
                if conn.in_transaction:
                    conn.execute("ROLLBACK")
                raise

    def read_history(
        self, since: datetime, category: str = ALL_CATEGORIES,
    ) -> list[HistoryObservation]:
        """History observations at or after ``since``, oldest first."""
        if not self.available:
            return []
        params: tuple = (to_iso(since),)
        sql = "SELECT category, heat_score, article_count, timestamp FROM news_heatmap_history WHERE timestamp >= ?"
        if category != ALL_CATEGORIES:
            sql += " AND category = ?"
            params += (category,)
        sql += " ORDER BY timestamp ASC"

        with self.db.lock:
            rows = self.db.conn.execute(sql, params).fetchall()

        observations: list[HistoryObservation] = []
        for row in rows:
            ts = parse_iso(row["timestamp"])
            heat = _float(row["heat_score"])
            if ts is None or heat is None:
                logger.debug("Skipping malformed history row at %r", row["timestamp"])
                continue
            observations.append(HistoryObservation(
                category=str(row["category"]),
                heat_score=heat,
                article_count=int(_float(row["article_count"]) or 0),
                timestamp=ts,
            ))
        return observations
