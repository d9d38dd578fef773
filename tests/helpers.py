"""Shared factories for the heatmap tests."""

import json
import sqlite3
from datetime import datetime, timedelta, timezone

from newsheat.models import Importance, Sentiment, SourceArticle, to_iso

NOW = datetime(2026, 3, 2, 12, 0, tzinfo=timezone.utc)

_ARTICLES_SCHEMA = """
CREATE TABLE IF NOT EXISTS news_articles (
    id TEXT PRIMARY KEY,
    title TEXT,
    content TEXT,
    summary TEXT,
    snippet TEXT,
    source TEXT,
    url TEXT,
    published_at TEXT,
    created_at TEXT,
    categories TEXT,
    tags TEXT,
    sentiment TEXT,
    importance TEXT
)
"""


class FakeBackend:
    """In-process labeling backend; returns canned raw labels."""

    model = "test/labeler"

    def __init__(self, labels=None, usable=True, error=None):
        self.labels = labels or {}
        self.usable = usable
        self.error = error
        self.calls = 0

    def can_use_service(self):
        return self.usable

    async def batch_event_labels(self, inputs):
        self.calls += 1
        if self.error is not None:
            raise self.error
        wanted = {item["id"] for item in inputs}
        return {k: v for k, v in self.labels.items() if k in wanted}


def make_article(
    id="a1",
    title="Bitcoin ETF inflows surge as BTC rallies",
    *,
    hours_ago=1.0,
    now=NOW,
    source="Reuters",
    categories=("CRYPTO",),
    tags=(),
    sentiment=Sentiment.NEUTRAL,
    importance=Importance.MEDIUM,
    snippet="",
    summary="",
) -> SourceArticle:
    ts = now - timedelta(hours=hours_ago)
    return SourceArticle(
        id=id,
        title=title,
        snippet=snippet,
        summary=summary,
        source=source,
        url=f"https://example.com/{id}",
        published_at=ts,
        created_at=ts,
        categories=tuple(categories),
        tags=tuple(tags),
        sentiment=sentiment,
        importance=importance,
    )


def insert_articles(db_path, rows):
    """Create ``news_articles`` (if needed) and insert raw row dicts."""
    conn = sqlite3.connect(str(db_path))
    try:
        conn.execute(_ARTICLES_SCHEMA)
        for row in rows:
            conn.execute(
                "INSERT INTO news_articles (id, title, content, summary, snippet, source, url, "
                "published_at, created_at, categories, tags, sentiment, importance) "
                "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
                (
                    row["id"], row.get("title"), row.get("content", ""), row.get("summary", ""),
                    row.get("snippet", ""), row.get("source"), row.get("url", ""),
                    row.get("published_at"), row.get("created_at"),
                    json.dumps(row.get("categories", ["CRYPTO"])), json.dumps(row.get("tags", [])),
                    row.get("sentiment", "NEUTRAL"), row.get("importance", "MEDIUM"),
                ),
            )
        conn.commit()
    finally:
        conn.close()


def article_row(id, title, *, hours_ago=1.0, source="Reuters", categories=("CRYPTO",), **extra) -> dict:
    ts = to_iso(datetime.now(timezone.utc) - timedelta(hours=hours_ago))
    row = {
        "id": id,
        "title": title,
        "source": source,
        "published_at": ts,
        "created_at": ts,
        "categories": list(categories),
    }
    row.update(extra)
    return row


