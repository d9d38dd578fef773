"""Centralized configuration — single source of truth for all tuneable constants.

Every value is backed by an environment variable with a sensible default so the
engine works out-of-the-box while remaining fully configurable in production.
"""

import json
import os

# ── Storage ──

NEWS_DB_PATH = os.environ.get("NEWS_DB_PATH", "./data/news.db")
SQLITE_BUSY_TIMEOUT_MS = int(os.environ.get("SQLITE_BUSY_TIMEOUT_MS", "5000"))

# ── Heatmap build ──

HEATMAP_CACHE_MS = int(os.environ.get("NEWS_HEATMAP_CACHE_MS", "15000"))
HEATMAP_MAX_ARTICLES = int(os.environ.get("NEWS_HEATMAP_MAX_ARTICLES", "1200"))
HEATMAP_MIN_ARTICLES = 50
HEATMAP_MAX_LLM_ARTICLES = int(os.environ.get("NEWS_HEATMAP_MAX_LLM_ARTICLES", "450"))
HEATMAP_LLM_TIMEOUT_MS = max(1000, int(os.environ.get("NEWS_HEATMAP_LLM_TIMEOUT_MS", "8000")))
HEATMAP_DETAIL_HOURS = int(os.environ.get("NEWS_HEATMAP_DETAIL_HOURS", "48"))

DEFAULT_HOURS = 24
MAX_HOURS = 168
DEFAULT_LIMIT = 60
MAX_LIMIT = 300

# ── Labeling breaker ──

LLM_COOLDOWN_SECONDS = float(os.environ.get("NEWS_HEATMAP_LLM_COOLDOWN_SECONDS", "600"))
LLM_MAX_EMPTY_RESPONSES = int(os.environ.get("NEWS_HEATMAP_LLM_MAX_EMPTY", "2"))

# ── State store ──

STATE_LOOKBACK_HOURS = float(os.environ.get("NEWS_HEATMAP_STATE_LOOKBACK_HOURS", "96"))
STATE_RETENTION_DAYS = float(os.environ.get("NEWS_HEATMAP_STATE_RETENTION_DAYS", "10"))
HISTORY_RETENTION_DAYS = float(os.environ.get("NEWS_HEATMAP_HISTORY_RETENTION_DAYS", "14"))

# ── Timeline ──

DEFAULT_BUCKET_HOURS = 2
MAX_BUCKET_HOURS = 24

# ── Categories & vocabulary ──

CATEGORIES: frozenset[str] = frozenset(json.loads(
    os.environ.get(
        "NEWS_CATEGORIES",
        json.dumps([
            "CRYPTO", "STOCKS", "ECONOMICS", "GEOPOLITICS", "TECH", "COMMODITIES",
            "SPORTS", "FOOTBALL", "BASKETBALL", "TENNIS", "MMA", "GOLF",
        ]),
    )
))
CATEGORY_ALIASES: dict[str, str] = {
    "POLITICS": "GEOPOLITICS",
    "FX": "ECONOMICS",
    "RATES": "ECONOMICS",
}

HIGH_SIGNAL_TOKENS: frozenset[str] = frozenset({
    "btc", "eth", "sol", "xrp", "ada", "dot", "avax", "link", "arb", "op",
    "fed", "fomc", "cpi", "pce", "ppi", "powell", "ecb", "boj", "sec", "etf",
    "nasdaq", "spx", "spy", "dxy", "oil", "gold", "silver", "treasury", "yield",
    "trump", "china", "us", "uk", "eu", "opec", "nvidia", "tesla", "apple",
})

STOP_WORDS: frozenset[str] = frozenset({
    "a", "an", "and", "are", "as", "at", "be", "been", "being", "by", "for", "from",
    "has", "have", "had", "he", "her", "his", "i", "if", "in", "into", "is", "it",
    "its", "of", "on", "or", "s", "she", "that", "the", "their", "them", "they",
    "this", "to", "was", "were", "will", "with", "you", "your", "new", "latest",
    "update", "updates", "news", "report", "reports", "says", "say", "amid", "after",
    "before", "over", "under", "during", "about", "market", "markets", "analysis",
})

# ── OpenRouter labeling backend ──

OPENROUTER_API_KEY = os.environ.get("OPENROUTER_API_KEY", "")
OPENROUTER_BASE_URL = os.environ.get("OPENROUTER_BASE_URL", "https://openrouter.ai/api/v1")
OPENROUTER_LABELING_MODEL = os.environ.get("OPENROUTER_LABELING_MODEL", "openai/gpt-4o-mini")
OPENROUTER_TIMEOUT = float(os.environ.get("OPENROUTER_TIMEOUT", "30"))
OPENROUTER_BATCH_SIZE = int(os.environ.get("OPENROUTER_BATCH_SIZE", "100"))
OPENROUTER_CONCURRENCY = int(os.environ.get("OPENROUTER_CONCURRENCY", "8"))

# ── Cache (cashews) ──

REDIS_URL = os.environ.get("REDIS_URL", "")
CACHE_ENABLED = os.environ.get("CACHE_ENABLED", "true").lower() == "true"
CACHE_DEFAULT_TTL = int(os.environ.get("CACHE_DEFAULT_TTL", "300"))

# ── Logging ──

LOG_FORMAT = os.environ.get("LOG_FORMAT", "console")  # "json" or "console"
LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO").upper()

# ── API ──

API_VERSION = os.environ.get("API_VERSION", "1.0.0")
