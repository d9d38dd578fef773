"""Article source over the ``news_articles`` SQLite table.

Reads the newest articles inside a time window. The event time of a row is
``published_at`` when present, else ``created_at``; rows are returned newest
first by that time. The bulky ``content`` column is never selected.
"""
from __future__ import annotations

import json
import logging
import sqlite3
from datetime import datetime, timedelta, timezone

from newsheat.database import NewsDatabase
from newsheat.models import (
    GENERAL_CATEGORY,
    Importance,
    Sentiment,
    SourceArticle,
    parse_iso,
    to_iso,
)
from newsheat.tokenizer import normalize_category

logger = logging.getLogger(__name__)

MAX_TAGS = 12

# Candidate ids come from two range scans, then full rows are joined back by id.
_RECENT_ARTICLES_SQL = """
    WITH candidates AS (
        SELECT id, published_at AS event_time
        FROM news_articles
        WHERE published_at IS NOT NULL AND published_at != '' AND published_at >= ?
        UNION ALL
        SELECT id, created_at AS event_time
        FROM news_articles
        WHERE (published_at IS NULL OR published_at = '') AND created_at >= ?
    ),
    ranked AS (
        SELECT id, event_time FROM candidates ORDER BY event_time DESC LIMIT ?
    )
    SELECT n.id, n.title, n.summary, n.snippet, n.source, n.url,
           n.published_at, n.created_at, n.categories, n.tags,
           n.sentiment, n.importance
    FROM ranked r
    JOIN news_articles n ON n.id = r.id
    ORDER BY r.event_time DESC
"""


def _json_list(value: str | None) -> list[str]:
    if not value:
        return []
    try:
        parsed = json.loads(value)
    except (TypeError, ValueError):
        return []
    if not isinstance(parsed, list):
        return []
    return [str(v) for v in parsed if v is not None and str(v)]


def row_to_article(row: sqlite3.Row) -> SourceArticle | None:
    """Hydrate one row; None when ``created_at`` is unusable."""
    created_at = parse_iso(row["created_at"])
    if created_at is None:
        return None

    categories = [
        c for c in (normalize_category(raw) for raw in _json_list(row["categories"]))
        if c != GENERAL_CATEGORY
    ]
    sentiment = row["sentiment"]
    importance = row["importance"]

    return SourceArticle(
        id=str(row["id"]),
        title=str(row["title"] or "Untitled"),
        snippet=str(row["snippet"] or ""),
        summary=str(row["summary"] or ""),
        source=str(row["source"] or "Unknown"),
        url=str(row["url"] or ""),
        published_at=parse_iso(row["published_at"]),
        created_at=created_at,
        categories=tuple(dict.fromkeys(categories)),
        tags=tuple(_json_list(row["tags"])[:MAX_TAGS]),
        sentiment=Sentiment(sentiment) if sentiment in Sentiment.__members__ else Sentiment.NEUTRAL,
        importance=Importance(importance) if importance in Importance.__members__ else Importance.MEDIUM,
    )


class ArticleSource:
    def __init__(self, db: NewsDatabase) -> None:
        self.db = db

    def get_recent_articles(self, hours: float, limit: int, now: datetime | None = None) -> list[SourceArticle]:
        """Newest-first articles from the last ``hours``; [] when the table is absent."""
        if not self.db.is_open:
            return []
        now = now or datetime.now(timezone.utc)
        cutoff = to_iso(now - timedelta(hours=hours))

        with self.db.lock:
            if not self.db.table_exists("news_articles"):
                return []
            rows = self.db.conn.execute(_RECENT_ARTICLES_SQL, (cutoff, cutoff, int(limit))).fetchall()

        articles: list[SourceArticle] = []
        skipped = 0
        for row in rows:
            article = row_to_article(row)
            if article is None:
                skipped += 1
                continue
            articles.append(article)
        if skipped:
            logger.debug("Skipped %d article rows with unparseable created_at", skipped)
        return articles
