"""
Cluster finalization: accumulator → NewsHeatmapCluster.

Heat is an exponential saturation of raw cluster mass:

    raw  = Σw × 19 + log2(sources + 1) × 3.4 + √n × 4 − max(0, n − sources) × 0.35
    heat = 100 × (1 − exp(−raw / 26))

so it approaches but never reaches 100, rewards source diversity and
penalizes many articles from the same outlet. Velocity is the delta against
the last persisted heat for the same stable key. Trend and urgency come from
label votes with score-based overrides.
"""
from __future__ import annotations

import hashlib
import math
from collections.abc import Iterable, Mapping
from datetime import datetime

from newsheat.clustering import ClusterAccumulator, choose_topic
from newsheat.models import (
    URGENCY_RANKING,
    ClusterArticle,
    Importance,
    NewsHeatmapCluster,
    StateSnapshot,
    TrendDirection,
    Urgency,
)
from newsheat.tokenizer import normalize_topic_key
from newsheat.weighting import sentiment_label

MAX_KEYWORDS = 8
MAX_CLUSTER_ARTICLES = 12
KEYWORD_TRUST_FACTOR = 1.35

HEAT_WEIGHT_FACTOR = 19.0
HEAT_SOURCE_FACTOR = 3.4
HEAT_COUNT_FACTOR = 4.0
HEAT_CONCENTRATION_PENALTY = 0.35
HEAT_SATURATION = 26.0

TREND_VOTE_MARGIN = 2
TREND_VELOCITY_THRESHOLD = 3.0


def raw_heat(weight_sum: float, article_count: int, source_count: int) -> float:
    diversity = math.log2(source_count + 1) * HEAT_SOURCE_FACTOR
    concentration = max(0, article_count - source_count) * HEAT_CONCENTRATION_PENALTY
    return weight_sum * HEAT_WEIGHT_FACTOR + diversity + math.sqrt(article_count) * HEAT_COUNT_FACTOR - concentration


def heat_score(weight_sum: float, article_count: int, source_count: int) -> float:
    """Saturating 0-100 heat, rounded to 2 decimals."""
    raw = raw_heat(weight_sum, article_count, source_count)
    return round(max(0.0, 100 * (1 - math.exp(-raw / HEAT_SATURATION))), 2)


def choose_keywords(acc: ClusterAccumulator) -> list[str]:
    weights: dict[str, float] = {}
    for token, weight in acc.keyword_weights.items():
        weights[token] = weights.get(token, 0.0) + weight * KEYWORD_TRUST_FACTOR
    for token, weight in acc.token_weights.items():
        weights[token] = weights.get(token, 0.0) + weight

    ranked = sorted(weights.items(), key=lambda kv: (-kv[1], kv[0]))
    return [token for token, _ in ranked if len(token) >= 3][:MAX_KEYWORDS]


def resolve_trend(acc: ClusterAccumulator, velocity: float) -> TrendDirection:
    vote_delta = acc.trend_votes[TrendDirection.UP] - acc.trend_votes[TrendDirection.DOWN]
    if vote_delta >= TREND_VOTE_MARGIN:
        return TrendDirection.UP
    if vote_delta <= -TREND_VOTE_MARGIN:
        return TrendDirection.DOWN
    if velocity >= TREND_VELOCITY_THRESHOLD:
        return TrendDirection.UP
    if velocity <= -TREND_VELOCITY_THRESHOLD:
        return TrendDirection.DOWN
    return TrendDirection.NEUTRAL


def resolve_urgency(acc: ClusterAccumulator, heat: float) -> Urgency:
    critical = acc.importance_votes[Importance.CRITICAL]
    high = acc.importance_votes[Importance.HIGH]
    if heat >= 85 or critical >= 2:
        return Urgency.CRITICAL
    if heat >= 65 or critical >= 1 or high >= 4:
        return Urgency.HIGH
    if heat >= 35:
        return Urgency.MEDIUM

    # Plurality vote; ties go to the more severe level.
    best = Urgency.LOW
    best_count = 0
    for level in URGENCY_RANKING:
        count = acc.urgency_votes[level]
        if count > 0 and count >= best_count:
            best, best_count = level, count
    return best


def cluster_id_for(stable_key: str) -> str:
    return "nh_" + hashlib.sha1(stable_key.encode("utf-8")).hexdigest()[:18]


def finalize_cluster(
    acc: ClusterAccumulator,
    previous_state: Mapping[str, StateSnapshot],
    now: datetime,
) -> NewsHeatmapCluster:
    by_recency = sorted(acc.members, key=lambda m: m.article.event_time, reverse=True)
    topic = choose_topic(acc)
    topic_key = normalize_topic_key(topic) or hashlib.sha1(acc.key.encode("utf-8")).hexdigest()[:24]
    stable_key = f"{acc.category}:{topic_key}"

    heat = heat_score(acc.weight_sum, acc.article_count, acc.source_count)
    previous = previous_state.get(stable_key) or previous_state.get(acc.key)
    if previous is None and acc.original_key:
        previous = previous_state.get(acc.original_key)
    velocity = round(heat - (previous.last_heat_score if previous else 0.0), 2)

    sentiment = round(acc.weighted_sentiment_sum / acc.weight_sum, 3) if acc.weight_sum > 0 else 0.0
    span_hours = max(0.1, (acc.last_seen - acc.first_seen).total_seconds() / 3600)
    latest_title = by_recency[0].article.title if by_recency else topic

    return NewsHeatmapCluster(
        id=previous.cluster_id if previous and previous.cluster_id else cluster_id_for(stable_key),
        topic=topic,
        topic_key=topic_key,
        summary=(
            f"{acc.article_count} articles across {acc.source_count} sources "
            f"over {span_hours:.1f}h. Latest: {latest_title}"
        ),
        category=acc.category,
        keywords=tuple(choose_keywords(acc)),
        heat_score=heat,
        article_count=acc.article_count,
        source_count=acc.source_count,
        sentiment_score=sentiment,
        sentiment=sentiment_label(sentiment),
        trend_direction=resolve_trend(acc, velocity),
        urgency=resolve_urgency(acc, heat),
        velocity=velocity,
        freshness_minutes=max(0, round((now - acc.last_seen).total_seconds() / 60)),
        llm_coverage=round(acc.labeled_count / max(1, acc.article_count), 3),
        first_seen=acc.first_seen,
        updated_at=acc.last_seen,
        articles=tuple(ClusterArticle.from_article(m.article) for m in by_recency[:MAX_CLUSTER_ARTICLES]),
    )


def finalize_clusters(
    accumulators: Iterable[ClusterAccumulator],
    previous_state: Mapping[str, StateSnapshot],
    now: datetime,
) -> list[NewsHeatmapCluster]:
    """Finalize every non-empty accumulator; hottest first."""
    clusters = [finalize_cluster(acc, previous_state, now) for acc in accumulators if acc.members]
    clusters.sort(key=lambda c: (-c.heat_score, -c.velocity, -c.article_count))
    return clusters
