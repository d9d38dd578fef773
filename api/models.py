from typing import Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class _CamelModel(BaseModel):
    """Snake-case attributes, camelCase on the wire (dashboard contract)."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ── News Heatmap Models ──

class ClusterArticleModel(_CamelModel):
    id: str
    title: str
    source: str
    url: str
    published_at: Optional[str] = None
    sentiment: str
    importance: str
    snippet: str = ""
    summary: str = ""


class HeatmapClusterModel(_CamelModel):
    id: str = Field(..., description="Stable id, reused across rebuilds (nh_…)")
    topic: str
    topic_key: str
    summary: str
    category: str
    keywords: list[str]
    heat_score: float = Field(..., ge=0, le=100, description="Saturating heat [0, 100]")
    article_count: int = Field(..., ge=1)
    source_count: int
    sentiment_score: float = Field(..., description="Weighted sentiment [-1, 1]")
    sentiment: str = Field(..., description="BULLISH / BEARISH / NEUTRAL")
    trend_direction: str = Field(..., description="UP / DOWN / NEUTRAL")
    urgency: str = Field(..., description="CRITICAL / HIGH / MEDIUM / LOW")
    velocity: float = Field(..., description="Heat delta vs last persisted observation")
    freshness_minutes: int
    llm_coverage: float = Field(..., ge=0, le=1)
    first_seen: str
    updated_at: str
    articles: list[ClusterArticleModel] = []


class LlmSummaryModel(_CamelModel):
    enabled: bool
    model: str
    labeled_articles: int = 0
    coverage: float = 0.0


class HeatmapResponse(_CamelModel):
    generated_at: str
    hours: int
    category: str
    total_articles: int
    total_clusters: int
    total: int = Field(..., description="Clusters in this response after the limit")
    clusters: list[HeatmapClusterModel]
    by_category: dict[str, list[HeatmapClusterModel]]
    llm: LlmSummaryModel


class RebuildResponse(_CamelModel):
    success: bool
    generated_at: str
    total_articles: int
    total_clusters: int
    llm: LlmSummaryModel


class TimelinePointModel(_CamelModel):
    bucket_start: str
    bucket_end: str
    avg_heat: float
    article_count: int
    cluster_observations: int
    by_category: dict[str, float] = {}


class TimelineResponse(_CamelModel):
    generated_at: str
    hours: int
    bucket_hours: int
    points: list[TimelinePointModel]
