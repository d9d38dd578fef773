"""Cluster assignment: label-keyed lookup first, then token-set similarity.

Articles are processed newest first. Each one joins

  1. the cluster already keyed by its LLM label (``category:topic_slug``), or
  2. the best same-category cluster by max(lexical, 1.1 × label) Jaccard,
     if that score reaches 0.26 (labeled) / 0.34 (unlabeled), or
  3. a new cluster keyed by its label, else by a throwaway seed key.

Seed keys are then replaced with deterministic keys and clusters that land on
the same key are merged. Accumulators live for one build only.
"""
from __future__ import annotations

import hashlib
import re
import uuid
from collections import Counter, defaultdict
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from datetime import datetime

from newsheat.models import LlmEventLabel, SourceArticle
from newsheat.tokenizer import (
    extract_tokens,
    jaccard,
    normalize_category,
    normalize_token,
    normalize_topic_key,
    topic_fragments,
)
from newsheat.weighting import article_weight, sentiment_score

LABELED_THRESHOLD = 0.26
LEXICAL_THRESHOLD = 0.34
LABEL_SCORE_BOOST = 1.1

TOPIC_VOTE_WEIGHT = 1.3
KEYWORD_WEIGHT_FACTOR = 1.15
MIN_KEYWORD_LENGTH = 3
STABLE_TOKEN_COUNT = 6

TOPIC_MAX_LENGTH = 120
PLACEHOLDER_TOPIC = "Unlabeled Market Event"

SEED_MARKER = ":seed:"

_WIRE_SUFFIX_RE = re.compile(r"\s*[-|]\s*(Reuters|Bloomberg|CoinDesk|Cointelegraph|AP|AFP).*$", re.IGNORECASE)
_WHITESPACE_RE = re.compile(r"\s+")


@dataclass
class MemberArticle:
    article: SourceArticle
    tokens: frozenset[str]
    weight: float
    label: LlmEventLabel | None = None


@dataclass
class ClusterAccumulator:
    key: str
    category: str
    first_seen: datetime
    last_seen: datetime
    members: list[MemberArticle] = field(default_factory=list)
    token_set: set[str] = field(default_factory=set)
    token_weights: defaultdict[str, float] = field(default_factory=lambda: defaultdict(float))
    keyword_weights: defaultdict[str, float] = field(default_factory=lambda: defaultdict(float))
    topic_votes: defaultdict[str, float] = field(default_factory=lambda: defaultdict(float))
    trend_votes: Counter = field(default_factory=Counter)
    urgency_votes: Counter = field(default_factory=Counter)
    importance_votes: Counter = field(default_factory=Counter)
    sources: set[str] = field(default_factory=set)
    weight_sum: float = 0.0
    weighted_sentiment_sum: float = 0.0
    labeled_count: int = 0
    # Key before stabilization; velocity lookup falls back to it.
    original_key: str = ""

    @property
    def article_count(self) -> int:
        return len(self.members)

    @property
    def source_count(self) -> int:
        return len(self.sources)

    @property
    def is_seed(self) -> bool:
        return SEED_MARKER in self.key

    def add(self, member: MemberArticle) -> None:
        article = member.article
        self.members.append(member)
        self.sources.add(article.source or "Unknown")
        self.weight_sum += member.weight
        self.weighted_sentiment_sum += sentiment_score(article.sentiment) * member.weight
        self.importance_votes[article.importance] += 1
        self.first_seen = min(self.first_seen, article.event_time)
        self.last_seen = max(self.last_seen, article.event_time)

        for token in member.tokens:
            self.token_set.add(token)
            self.token_weights[token] += member.weight

        label = member.label
        if label is None:
            return
        self.labeled_count += 1
        self.topic_votes[label.topic] += TOPIC_VOTE_WEIGHT
        self.trend_votes[label.trend_direction] += 1
        self.urgency_votes[label.urgency] += 1
        for keyword in label.keywords:
            normalized = normalize_token(keyword)
            if len(normalized) < MIN_KEYWORD_LENGTH:
                continue
            self.token_set.add(normalized)
            self.keyword_weights[normalized] += member.weight * KEYWORD_WEIGHT_FACTOR

    def merge(self, other: ClusterAccumulator) -> None:
        """Fold ``other`` into this accumulator (sums, unions, time extremes)."""
        self.members.extend(other.members)
        self.sources |= other.sources
        self.token_set |= other.token_set
        for token, weight in other.token_weights.items():
            self.token_weights[token] += weight
        for token, weight in other.keyword_weights.items():
            self.keyword_weights[token] += weight
        for topic, votes in other.topic_votes.items():
            self.topic_votes[topic] += votes
        self.trend_votes.update(other.trend_votes)
        self.urgency_votes.update(other.urgency_votes)
        self.importance_votes.update(other.importance_votes)
        self.weight_sum += other.weight_sum
        self.weighted_sentiment_sum += other.weighted_sentiment_sum
        self.labeled_count += other.labeled_count
        self.first_seen = min(self.first_seen, other.first_seen)
        self.last_seen = max(self.last_seen, other.last_seen)

    def latest_member(self) -> MemberArticle | None:
        if not self.members:
            return None
        return max(self.members, key=lambda m: m.article.event_time)

    def top_tokens(self, n: int) -> list[str]:
        ranked = sorted(self.token_weights.items(), key=lambda kv: (-kv[1], kv[0]))
        return [token for token, _ in ranked[:n]]


def clean_title(title: str) -> str:
    """Strip trailing wire-service suffixes, collapse whitespace, cap length."""
    stripped = _WIRE_SUFFIX_RE.sub("", title)
    return _WHITESPACE_RE.sub(" ", stripped).strip()[:TOPIC_MAX_LENGTH]


def choose_topic(acc: ClusterAccumulator) -> str:
    """Most-voted label topic (ties: lexicographically smallest), else latest title."""
    if acc.topic_votes:
        top_topic, _ = min(acc.topic_votes.items(), key=lambda kv: (-kv[1], kv[0]))
        if len(top_topic) > 5:
            return top_topic

    latest = acc.latest_member()
    if latest is None:
        return PLACEHOLDER_TOPIC
    return clean_title(latest.article.title)


def stable_fallback_key(acc: ClusterAccumulator) -> str:
    topic_key = normalize_topic_key(choose_topic(acc))
    if topic_key:
        return f"{acc.category}:{topic_key}"

    tokens = sorted(acc.top_tokens(STABLE_TOKEN_COUNT))
    if tokens:
        return f"{acc.category}:{'|'.join(tokens)}"

    seed = acc.members[0].article.id if acc.members else acc.key
    digest = hashlib.sha1(seed.encode("utf-8")).hexdigest()[:16]
    return f"{acc.category}:cluster:{digest}"


def label_token_set(label: LlmEventLabel) -> set[str]:
    tokens = {t for t in (normalize_token(k) for k in label.keywords) if t}
    return tokens | topic_fragments(label.topic)


def find_best_cluster(
    clusters: Iterable[ClusterAccumulator],
    category: str,
    tokens: frozenset[str],
    label: LlmEventLabel | None = None,
) -> ClusterAccumulator | None:
    """Best same-category match at or above the threshold; earliest wins ties."""
    label_tokens = label_token_set(label) if label is not None else None
    best: ClusterAccumulator | None = None
    best_score = 0.0

    for cluster in clusters:
        if cluster.category != category:
            continue
        score = jaccard(tokens, cluster.token_set)
        if label_tokens is not None:
            score = max(score, jaccard(label_tokens, cluster.token_set) * LABEL_SCORE_BOOST)
        if score > best_score:
            best_score = score
            best = cluster

    threshold = LABELED_THRESHOLD if label is not None else LEXICAL_THRESHOLD
    return best if best_score >= threshold else None


def assign_articles(
    articles: Iterable[SourceArticle],
    labels: Mapping[str, LlmEventLabel],
    now: datetime,
) -> list[ClusterAccumulator]:
    """Partition articles into accumulators (keys not yet stabilized)."""
    working: list[ClusterAccumulator] = []
    by_label_key: dict[str, ClusterAccumulator] = {}

    for article in sorted(articles, key=lambda a: a.event_time, reverse=True):
        category = normalize_category(article.primary_category)
        tokens = extract_tokens(article)
        label = labels.get(article.id)
        label_key = f"{category}:{normalize_topic_key(label.topic)}" if label is not None else ""

        cluster = by_label_key.get(label_key) if label_key else None
        if cluster is None:
            cluster = find_best_cluster(working, category, tokens, label)
        if cluster is None:
            key = label_key or f"{category}{SEED_MARKER}{uuid.uuid4()}"
            cluster = ClusterAccumulator(
                key=key,
                category=category,
                first_seen=article.event_time,
                last_seen=article.event_time,
                original_key=key,
            )
            working.append(cluster)
            if label_key:
                by_label_key[label_key] = cluster

        cluster.add(MemberArticle(article, tokens, article_weight(article, now), label))

    return working


def stabilize(clusters: Iterable[ClusterAccumulator]) -> list[ClusterAccumulator]:
    """Replace seed keys with deterministic ones and merge clusters sharing a key."""
    stable: dict[str, ClusterAccumulator] = {}
    for cluster in clusters:
        key = stable_fallback_key(cluster) if cluster.is_seed else cluster.key
        existing = stable.get(key)
        if existing is None:
            cluster.key = key
            stable[key] = cluster
        else:
            existing.merge(cluster)
    return list(stable.values())


def build_accumulators(
    articles: Iterable[SourceArticle],
    labels: Mapping[str, LlmEventLabel],
    now: datetime,
) -> list[ClusterAccumulator]:
    return stabilize(assign_articles(articles, labels, now))

