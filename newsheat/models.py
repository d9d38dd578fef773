"""Data model for the news heatmap engine.

Articles and labels are immutable inputs; clusters, results and timelines are
the engine's outputs. Output types serialize to the camelCase payloads the
dashboard and downstream agents consume via ``to_dict()``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any


class Sentiment(str, Enum):
    BULLISH = "BULLISH"
    BEARISH = "BEARISH"
    NEUTRAL = "NEUTRAL"


class Importance(str, Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    CRITICAL = "CRITICAL"


class TrendDirection(str, Enum):
    UP = "UP"
    DOWN = "DOWN"
    NEUTRAL = "NEUTRAL"


class Urgency(str, Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    CRITICAL = "CRITICAL"


# Severity order, least to most urgent.
URGENCY_RANKING: tuple[Urgency, ...] = (Urgency.LOW, Urgency.MEDIUM, Urgency.HIGH, Urgency.CRITICAL)

GENERAL_CATEGORY = "GENERAL"
ALL_CATEGORIES = "ALL"


def to_iso(value: datetime) -> str:
    """UTC ISO-8601 with millisecond precision and a ``Z`` suffix."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def parse_iso(value: Any) -> datetime | None:
    """Lenient ISO-8601 parse; naive values are UTC, garbage is None."""
    if not value:
        return None
    text = str(value).strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _iso(value: datetime | None) -> str | None:
    return to_iso(value) if value is not None else None


@dataclass(frozen=True)
class SourceArticle:
    id: str
    title: str
    snippet: str
    summary: str
    source: str
    url: str
    published_at: datetime | None
    created_at: datetime
    categories: tuple[str, ...] = ()
    tags: tuple[str, ...] = ()
    sentiment: Sentiment = Sentiment.NEUTRAL
    importance: Importance = Importance.MEDIUM

    @property
    def event_time(self) -> datetime:
        return self.published_at or self.created_at

    @property
    def primary_category(self) -> str | None:
        return self.categories[0] if self.categories else None


@dataclass(frozen=True)
class LlmEventLabel:
    topic: str
    trend_direction: TrendDirection = TrendDirection.NEUTRAL
    urgency: Urgency = Urgency.MEDIUM
    keywords: tuple[str, ...] = ()


@dataclass(frozen=True)
class StateSnapshot:
    """Last persisted observation of one stable cluster key."""
    cluster_key: str
    cluster_id: str
    last_heat_score: float
    last_velocity: float = 0.0
    last_sentiment_score: float = 0.0
    last_article_count: int = 0
    llm_coverage: float = 0.0
    updated_at: datetime | None = None


@dataclass(frozen=True)
class HistoryObservation:
    category: str
    heat_score: float
    article_count: int
    timestamp: datetime


@dataclass(frozen=True)
class ClusterArticle:
    """Lightweight projection of a member article."""
    id: str
    title: str
    source: str
    url: str
    published_at: datetime | None
    sentiment: Sentiment
    importance: Importance
    snippet: str
    summary: str

    @classmethod
    def from_article(cls, article: SourceArticle) -> ClusterArticle:
        return cls(
            id=article.id,
            title=article.title,
            source=article.source,
            url=article.url,
            published_at=article.published_at,
            sentiment=article.sentiment,
            importance=article.importance,
            snippet=article.snippet,
            summary=article.summary,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "source": self.source,
            "url": self.url,
            "publishedAt": _iso(self.published_at),
            "sentiment": self.sentiment.value,
            "importance": self.importance.value,
            "snippet": self.snippet,
            "summary": self.summary,
        }


@dataclass(frozen=True)
class NewsHeatmapCluster:
    id: str
    topic: str
    topic_key: str
    summary: str
    category: str
    keywords: tuple[str, ...]
    heat_score: float
    article_count: int
    source_count: int
    sentiment_score: float
    sentiment: Sentiment
    trend_direction: TrendDirection
    urgency: Urgency
    velocity: float
    freshness_minutes: int
    llm_coverage: float
    first_seen: datetime
    updated_at: datetime
    articles: tuple[ClusterArticle, ...] = ()

    @property
    def stable_key(self) -> str:
        return f"{self.category}:{self.topic_key}"

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "topic": self.topic,
            "topicKey": self.topic_key,
            "summary": self.summary,
            "category": self.category,
            "keywords": list(self.keywords),
            "heatScore": self.heat_score,
            "articleCount": self.article_count,
            "sourceCount": self.source_count,
            "sentimentScore": self.sentiment_score,
            "sentiment": self.sentiment.value,
            "trendDirection": self.trend_direction.value,
            "urgency": self.urgency.value,
            "velocity": self.velocity,
            "freshnessMinutes": self.freshness_minutes,
            "llmCoverage": self.llm_coverage,
            "firstSeen": _iso(self.first_seen),
            "updatedAt": _iso(self.updated_at),
            "articles": [a.to_dict() for a in self.articles],
        }


@dataclass(frozen=True)
class LlmSummary:
    enabled: bool
    model: str
    labeled_articles: int
    coverage: float

    def to_dict(self) -> dict[str, Any]:
        return {
            "enabled": self.enabled,
            "model": self.model,
            "labeledArticles": self.labeled_articles,
            "coverage": self.coverage,
        }


@dataclass(frozen=True)
class BuildResult:
    """Raw, unsliced result of one build cycle (what the cache stores)."""
    generated_at: datetime
    hours: int
    category: str
    total_articles: int
    total_clusters: int
    clusters: tuple[NewsHeatmapCluster, ...]
    llm: LlmSummary


@dataclass(frozen=True)
class NewsHeatmapResult:
    generated_at: datetime
    hours: int
    category: str
    total_articles: int
    total_clusters: int
    clusters: tuple[NewsHeatmapCluster, ...]
    by_category: dict[str, list[NewsHeatmapCluster]]
    llm: LlmSummary

    @classmethod
    def project(cls, raw: BuildResult, limit: int) -> NewsHeatmapResult:
        """Client-facing view: top ``limit`` clusters, regrouped by category."""
        visible = raw.clusters[:limit]
        by_category: dict[str, list[NewsHeatmapCluster]] = {}
        for cluster in visible:
            by_category.setdefault(cluster.category, []).append(cluster)
        return cls(
            generated_at=raw.generated_at,
            hours=raw.hours,
            category=raw.category,
            total_articles=raw.total_articles,
            total_clusters=raw.total_clusters,
            clusters=visible,
            by_category=by_category,
            llm=raw.llm,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "generatedAt": _iso(self.generated_at),
            "hours": self.hours,
            "category": self.category,
            "totalArticles": self.total_articles,
            "totalClusters": self.total_clusters,
            "clusters": [c.to_dict() for c in self.clusters],
            "byCategory": {
                cat: [c.to_dict() for c in clusters] for cat, clusters in self.by_category.items()
            },
            "llm": self.llm.to_dict(),
        }


@dataclass(frozen=True)
class TimelinePoint:
    bucket_start: datetime
    bucket_end: datetime
    avg_heat: float
    article_count: int
    cluster_observations: int
    by_category: dict[str, float] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "bucketStart": _iso(self.bucket_start),
            "bucketEnd": _iso(self.bucket_end),
            "avgHeat": self.avg_heat,
            "articleCount": self.article_count,
            "clusterObservations": self.cluster_observations,
            "byCategory": dict(self.by_category),
        }


@dataclass(frozen=True)
class NewsHeatmapTimeline:
    generated_at: datetime
    hours: int
    bucket_hours: int
    points: tuple[TimelinePoint, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        return {
            "generatedAt": _iso(self.generated_at),
            "hours": self.hours,
            "bucketHours": self.bucket_hours,
            "points": [p.to_dict() for p in self.points],
        }
