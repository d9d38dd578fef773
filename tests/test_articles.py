"""Tests for newsheat/data/articles.py: news_articles reader."""

from datetime import datetime, timedelta, timezone

from helpers import article_row, insert_articles
from newsheat.data.articles import ArticleSource
from newsheat.database import NewsDatabase
from newsheat.models import Importance, Sentiment


def test_missing_table_returns_empty(article_source):
    assert article_source.get_recent_articles(24, 100) == []


def test_closed_database_returns_empty(db_path):
    assert ArticleSource(NewsDatabase(db_path)).get_recent_articles(24, 100) == []


def test_window_ordering_and_limit(db_path, article_source):
    insert_articles(db_path, [
        article_row("old", "Old story", hours_ago=30),
        article_row("mid", "Middle story", hours_ago=5),
        article_row("new", "Newest story", hours_ago=1),
        article_row("newer", "Even newer story", hours_ago=0.5),
    ])
    articles = article_source.get_recent_articles(24, 2)
    assert [a.id for a in articles] == ["newer", "new"]

    all_recent = article_source.get_recent_articles(24, 100)
    assert [a.id for a in all_recent] == ["newer", "new", "mid"]


def test_created_at_used_when_published_missing(db_path, article_source):
    row = article_row("c1", "Only created", hours_ago=2)
    row["published_at"] = ""
    insert_articles(db_path, [row])
    [article] = article_source.get_recent_articles(24, 10)
    assert article.published_at is None
    assert article.event_time == article.created_at


def test_row_defaults_and_normalization(db_path, article_source):
    insert_articles(db_path, [article_row(
        "d1", None, source=None, categories=["politics", "weather", "crypto"],
        tags=[f"t{i}" for i in range(20)], sentiment="EUPHORIC", importance="EXTREME",
    )])
    [article] = article_source.get_recent_articles(24, 10)
    assert article.title == "Untitled"
    assert article.source == "Unknown"
    assert article.categories == ("GEOPOLITICS", "CRYPTO")
    assert len(article.tags) == 12
    assert article.sentiment == Sentiment.NEUTRAL
    assert article.importance == Importance.MEDIUM


def test_unrecognized_categories_dropped(db_path, article_source):
    insert_articles(db_path, [article_row("g1", "Weather news", categories=["weather"])])
    [article] = article_source.get_recent_articles(24, 10)
    assert article.categories == ()
    assert article.primary_category is None


def test_unparseable_created_at_skipped(db_path, article_source):
    good = article_row("ok", "Fine row")
    bad = article_row("bad", "Broken row")
    bad["published_at"] = ""
    bad["created_at"] = "zzzz-not-a-date"
    insert_articles(db_path, [good, bad])
    # "zzzz" sorts after any ISO timestamp, so the bad row passes the window filter.
    assert [a.id for a in article_source.get_recent_articles(24, 10)] == ["ok"]


def test_explicit_now(db_path, article_source):
    insert_articles(db_path, [article_row("x", "Story", hours_ago=1)])
    later = datetime.now(timezone.utc) + timedelta(hours=48)
    assert article_source.get_recent_articles(24, 10, now=later) == []
