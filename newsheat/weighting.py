"""
Article salience weighting.

    w = exp(-age_hours / 9) × importance_weight × (1 + 0.22 × |sentiment|)

Recent, important and strongly-opinionated articles pull harder on their
cluster's heat. Pure function of the article and ``now``.
"""

import math
from datetime import datetime

from newsheat.models import Importance, Sentiment, SourceArticle

RECENCY_DECAY_HOURS = 9.0
SENTIMENT_BOOST = 0.22

IMPORTANCE_WEIGHTS: dict[Importance, float] = {
    Importance.CRITICAL: 2.4,
    Importance.HIGH: 1.65,
    Importance.MEDIUM: 1.0,
    Importance.LOW: 0.8,
}

SENTIMENT_SCORES: dict[Sentiment, float] = {
    Sentiment.BULLISH: 1.0,
    Sentiment.BEARISH: -1.0,
    Sentiment.NEUTRAL: 0.0,
}


def sentiment_score(sentiment: Sentiment) -> float:
    return SENTIMENT_SCORES.get(sentiment, 0.0)


def sentiment_label(score: float) -> Sentiment:
    if score >= 0.15:
        return Sentiment.BULLISH
    if score <= -0.15:
        return Sentiment.BEARISH
    return Sentiment.NEUTRAL


def importance_weight(importance: Importance) -> float:
    return IMPORTANCE_WEIGHTS.get(importance, IMPORTANCE_WEIGHTS[Importance.LOW])


def article_weight(article: SourceArticle, now: datetime) -> float:
    """Salience of one article at ``now``; future-dated articles count as age 0."""
    age_hours = max(0.0, (now - article.event_time).total_seconds() / 3600)
    recency = math.exp(-age_hours / RECENCY_DECAY_HOURS)
    boost = 1 + SENTIMENT_BOOST * abs(sentiment_score(article.sentiment))
    return recency * importance_weight(article.importance) * boost
