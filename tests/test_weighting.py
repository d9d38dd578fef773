"""Tests for newsheat/weighting.py: article salience."""

import math

import pytest

from helpers import NOW, make_article
from newsheat.models import Importance, Sentiment
from newsheat.weighting import article_weight, importance_weight, sentiment_label, sentiment_score


def test_fresh_medium_neutral_weight_is_one():
    assert article_weight(make_article(hours_ago=0), NOW) == pytest.approx(1.0)


def test_recency_decay_nine_hours():
    w = article_weight(make_article(hours_ago=9), NOW)
    assert w == pytest.approx(math.exp(-1))


def test_future_dated_counts_as_now():
    assert article_weight(make_article(hours_ago=-2), NOW) == pytest.approx(1.0)


def test_importance_and_sentiment_boost():
    art = make_article(hours_ago=0, importance=Importance.CRITICAL, sentiment=Sentiment.BEARISH)
    assert article_weight(art, NOW) == pytest.approx(2.4 * 1.22)


@pytest.mark.parametrize("importance,expected", [
    (Importance.CRITICAL, 2.4),
    (Importance.HIGH, 1.65),
    (Importance.MEDIUM, 1.0),
    (Importance.LOW, 0.8),
])
def test_importance_weights(importance, expected):
    assert importance_weight(importance) == expected


def test_sentiment_scores_and_labels():
    assert sentiment_score(Sentiment.BULLISH) == 1.0
    assert sentiment_score(Sentiment.BEARISH) == -1.0
    assert sentiment_score(Sentiment.NEUTRAL) == 0.0
    assert sentiment_label(0.15) == Sentiment.BULLISH
    assert sentiment_label(-0.15) == Sentiment.BEARISH
    assert sentiment_label(0.149) == Sentiment.NEUTRAL


def test_weight_always_positive():
    old = make_article(hours_ago=500, importance=Importance.LOW)
    assert article_weight(old, NOW) > 0
