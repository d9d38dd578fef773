"""LLM event labeling with a local empty-response breaker.

A batch of the newest articles is sent to the labeling backend with a hard
timeout. The call is raced against a timer; on expiry its result is discarded
(the request itself keeps running in the background and is not awaited).

Breaker rules (per ``LlmLabeler`` instance):
  - timeout, backend error or empty mapping → empty_count += 1
  - empty_count >= LLM_MAX_EMPTY_RESPONSES → skip labeling for LLM_COOLDOWN_SECONDS
  - any non-empty mapping → empty_count = 0, cooldown cleared
"""
from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Sequence
from typing import Any, Protocol

from newsheat.config import (
    HEATMAP_LLM_TIMEOUT_MS,
    HEATMAP_MAX_LLM_ARTICLES,
    LLM_COOLDOWN_SECONDS,
    LLM_MAX_EMPTY_RESPONSES,
)
from newsheat.models import LlmEventLabel, SourceArticle, TrendDirection, Urgency

logger = logging.getLogger(__name__)

MAX_LABEL_KEYWORDS = 8


class LabelingTimeoutError(TimeoutError):
    """The labeling backend did not answer within the configured timeout."""


class LabelingBackend(Protocol):
    model: str

    def can_use_service(self) -> bool: ...

    async def batch_event_labels(self, inputs: list[dict[str, Any]]) -> dict[str, dict[str, Any]]: ...


def sanitize_label(raw: Any) -> LlmEventLabel | None:
    """Coerce one raw backend label; None when it carries no usable topic."""
    if not isinstance(raw, dict):
        return None
    topic = str(raw.get("topic") or "").strip()
    if not topic:
        return None

    trend_raw = str(raw.get("trendDirection") or "").upper()
    trend = TrendDirection(trend_raw) if trend_raw in TrendDirection.__members__ else TrendDirection.NEUTRAL
    urgency_raw = str(raw.get("urgency") or "").upper()
    urgency = Urgency(urgency_raw) if urgency_raw in Urgency.__members__ else Urgency.MEDIUM

    keywords_raw = raw.get("keywords")
    keywords: list[str] = []
    if isinstance(keywords_raw, (list, tuple)):
        keywords = [str(k).strip() for k in keywords_raw if str(k).strip()]

    return LlmEventLabel(
        topic=topic,
        trend_direction=trend,
        urgency=urgency,
        keywords=tuple(keywords[:MAX_LABEL_KEYWORDS]),
    )


class LlmLabeler:
    """Labels articles through a ``LabelingBackend``, degrading to no labels."""

    def __init__(
        self,
        backend: LabelingBackend,
        *,
        max_articles: int = HEATMAP_MAX_LLM_ARTICLES,
        timeout_ms: int = HEATMAP_LLM_TIMEOUT_MS,
        max_empty: int = LLM_MAX_EMPTY_RESPONSES,
        cooldown_seconds: float = LLM_COOLDOWN_SECONDS,
    ) -> None:
        self.backend = backend
        self.max_articles = max(0, max_articles)
        self.timeout_ms = max(1000, timeout_ms)
        self.max_empty = max(1, max_empty)
        self.cooldown_seconds = cooldown_seconds
        self.empty_count = 0
        self.blocked_until = 0.0

    @property
    def model(self) -> str:
        return getattr(self.backend, "model", "")

    def in_cooldown(self) -> bool:
        return time.time() < self.blocked_until

    def is_available(self) -> bool:
        return self.backend.can_use_service() and not self.in_cooldown()

    def reset(self) -> None:
        self.empty_count = 0
        self.blocked_until = 0.0

    async def label(self, articles: Sequence[SourceArticle]) -> dict[str, LlmEventLabel]:
        """Return ``{article_id: label}`` for up to ``max_articles`` articles."""
        if not articles or self.max_articles == 0 or not self.is_available():
            return {}

        inputs = [
            {
                "id": a.id,
                "title": a.title,
                "category": a.primary_category,
                "tags": list(a.tags),
            }
            for a in articles[:self.max_articles]
        ]

        try:
            raw = await self._call_with_timeout(inputs)
        except LabelingTimeoutError:
            logger.warning("LLM labeling timed out after %dms, continuing with lexical fallback", self.timeout_ms)
            self._record_empty()
            return {}
        except Exception as exc:
            logger.warning("LLM labeling failed, continuing with lexical fallback: %s", exc)
            self._record_empty()
            return {}

        labels: dict[str, LlmEventLabel] = {}
        for article_id, raw_label in (raw or {}).items():
            label = sanitize_label(raw_label)
            if label is not None:
                labels[str(article_id)] = label

        if labels:
            self.reset()
        else:
            self._record_empty()
        return labels

    async def _call_with_timeout(self, inputs: list[dict[str, Any]]) -> dict[str, dict[str, Any]]:
        task = asyncio.ensure_future(self.backend.batch_event_labels(inputs))
        done, _ = await asyncio.wait({task}, timeout=self.timeout_ms / 1000)
        if task not in done:
            task.add_done_callback(_discard_result)
            raise LabelingTimeoutError(f"labeling exceeded {self.timeout_ms}ms")
        return task.result()

    def _record_empty(self) -> None:
        self.empty_count += 1
        if self.empty_count >= self.max_empty:
            self.blocked_until = time.time() + self.cooldown_seconds
            self.empty_count = 0
            logger.warning(
                "LLM labeling returned no labels %d times in a row, cooling down for %.0fs",
                self.max_empty, self.cooldown_seconds,
            )


def _discard_result(task: asyncio.Future) -> None:
    # Consume a late result or exception so it is never reported as unretrieved.
    if not task.cancelled():
        task.exception()
