"""Token extraction and text normalization for topic clustering.

Every article is reduced to a small set of lowercase tokens drawn from its
title, snippet, summary, tags and ALL-CAPS ticker-like title words. Token sets
are compared with Jaccard similarity.
"""

from __future__ import annotations

import re
from collections.abc import Iterable

from newsheat.config import CATEGORIES, CATEGORY_ALIASES, HIGH_SIGNAL_TOKENS, STOP_WORDS
from newsheat.models import GENERAL_CATEGORY, SourceArticle

MAX_TOKENS = 30
FALLBACK_TITLE_WORDS = 6

_EDGE_RE = re.compile(r"^[^a-z0-9#+-]+|[^a-z0-9#+-]+$")
_QUOTE_RE = re.compile(r"['\"]")
_SPLIT_RE = re.compile(r"[\s/,:;()\[\]{}\"'`~!?<>|]+")
_TICKER_RE = re.compile(r"\b[A-Z]{2,8}\b")
_DIGITS_RE = re.compile(r"^\d+$")
_TOPIC_KEY_RE = re.compile(r"[^a-z0-9]+")


def normalize_token(raw: str) -> str:
    return _QUOTE_RE.sub("", _EDGE_RE.sub("", raw.lower()))


def _admit(token: str) -> bool:
    if not token or _DIGITS_RE.match(token):
        return False
    if token in HIGH_SIGNAL_TOKENS:
        return True
    return len(token) >= 3 and token not in STOP_WORDS


def extract_tokens(article: SourceArticle) -> frozenset[str]:
    """Return up to 30 normalized tokens for one article.

    Sources, in order: words of title + snippet + summary, each tag verbatim,
    and ALL-CAPS 2-8 letter title words. When nothing survives the filters
    the first six title words longer than three characters are used as-is.
    """
    ordered: dict[str, None] = {}

    def push(raw: str) -> None:
        token = normalize_token(raw)
        if _admit(token):
            ordered.setdefault(token)

    text = f"{article.title} {article.snippet} {article.summary}".strip()
    for part in _SPLIT_RE.split(text):
        if part:
            push(part)
    for tag in article.tags:
        push(tag)
    for ticker in _TICKER_RE.findall(article.title):
        push(ticker)

    if not ordered:
        words = [w for w in article.title.split() if len(w) > 3][:FALLBACK_TITLE_WORDS]
        for word in words:
            token = normalize_token(word)
            if token:
                ordered.setdefault(token)

    return frozenset(list(ordered)[:MAX_TOKENS])


def normalize_category(raw: str | None) -> str:
    """Map a raw category to a known one; aliases fold, everything else is GENERAL."""
    if not raw:
        return GENERAL_CATEGORY
    value = str(raw).strip().upper()
    if value in CATEGORIES:
        return value
    return CATEGORY_ALIASES.get(value, GENERAL_CATEGORY)


def normalize_topic_key(topic: str) -> str:
    """Slug used for stable keys: ``"Fed & ECB Cuts"`` -> ``"fed_and_ecb_cuts"``."""
    slug = _TOPIC_KEY_RE.sub("_", topic.lower().replace("&", " and "))
    return slug.strip("_")[:180]


def topic_fragments(topic: str) -> set[str]:
    return {part for part in normalize_topic_key(topic).split("_") if len(part) >= 3}


def jaccard(a: Iterable[str], b: Iterable[str]) -> float:
    sa = a if isinstance(a, (set, frozenset)) else set(a)
    sb = b if isinstance(b, (set, frozenset)) else set(b)
    if not sa or not sb:
        return 0.0
    inter = len(sa & sb)
    return inter / (len(sa) + len(sb) - inter)
