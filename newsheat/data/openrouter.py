"""OpenRouter chat-completions client for batch news event labeling.

Each batch of up to ``OPENROUTER_BATCH_SIZE`` headlines is sent as one JSON-only
prompt; up to ``OPENROUTER_CONCURRENCY`` prompts run at once. Replies are
parsed leniently (the first JSON object, with truncated brackets closed and
trailing commas removed). A failing batch contributes no labels; it never
fails the whole call.
"""

from __future__ import annotations

import asyncio
import json
import logging
import re
from typing import Any

import httpx

from newsheat.config import (
    OPENROUTER_API_KEY,
    OPENROUTER_BASE_URL,
    OPENROUTER_BATCH_SIZE,
    OPENROUTER_CONCURRENCY,
    OPENROUTER_LABELING_MODEL,
    OPENROUTER_TIMEOUT,
)

logger = logging.getLogger(__name__)

PLACEHOLDER_KEY = "your-api-key-here"
MAX_KEYWORDS = 7

_SYSTEM_PROMPT = "You are a precise financial news analyst. Always respond with valid JSON only."

_LABEL_PROMPT = """Label each news headline with the market event it describes.

Good topics: "Spot Bitcoin ETF Approvals", "Federal Reserve Rate Decision", "Ethereum Dencun Upgrade Launch".
Bad topics: "Market Update", "Crypto News", "bitcoin_spot_etf".

For EACH article provide:
1. topic: 3-8 words, specific entity + specific action, Title Case
2. trendDirection: UP (bullish) | DOWN (bearish) | NEUTRAL
3. urgency: CRITICAL | HIGH | MEDIUM | LOW
4. keywords: 4-7 specific entities and terms

Articles:
{articles}

Return JSON ONLY in this format:
{{"labels": [{{"id": "article-id", "topic": "...", "trendDirection": "UP|DOWN|NEUTRAL", "urgency": "CRITICAL|HIGH|MEDIUM|LOW", "keywords": ["...", "..."]}}]}}"""

_TRAILING_COMMA_RE = re.compile(r",\s*([}\]])")


class OpenRouterError(RuntimeError):
    """Raised when OpenRouter returns an error status or an unusable body."""


def repair_json(fragment: str) -> str:
    """Close unterminated strings/brackets and drop trailing commas."""
    stack: list[str] = []
    in_string = False
    escaped = False
    for ch in fragment:
        if in_string:
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == '"':
                in_string = False
            continue
        if ch == '"':
            in_string = True
        elif ch in "{[":
            stack.append("}" if ch == "{" else "]")
        elif ch in "}]" and stack and stack[-1] == ch:
            stack.pop()

    repaired = fragment + ('"' if in_string else "") + "".join(reversed(stack))
    return _TRAILING_COMMA_RE.sub(r"\1", repaired)


def extract_labels(content: str) -> list[dict[str, Any]]:
    """Pull the ``labels`` array out of a model reply; [] when nothing parses."""
    start = content.find("{")
    if start < 0:
        return []
    candidates = [content[start:].strip().rstrip("`").strip()]
    end = content.rfind("}")
    if end > start:
        candidates.append(content[start:end + 1])

    for candidate in candidates:
        try:
            parsed = json.loads(repair_json(candidate))
        except json.JSONDecodeError:
            continue
        labels = parsed.get("labels", []) if isinstance(parsed, dict) else parsed
        if isinstance(labels, list):
            return [item for item in labels if isinstance(item, dict)]
    return []


class OpenRouterClient:
    """Minimal async client for the OpenRouter labeling model."""

    def __init__(
        self,
        *,
        api_key: str | None = None,
        base_url: str | None = None,
        model: str | None = None,
        timeout: float = OPENROUTER_TIMEOUT,
        batch_size: int = OPENROUTER_BATCH_SIZE,
        concurrency: int = OPENROUTER_CONCURRENCY,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.api_key = OPENROUTER_API_KEY if api_key is None else api_key
        self.base_url = (base_url or OPENROUTER_BASE_URL).rstrip("/")
        self.model = model or OPENROUTER_LABELING_MODEL
        self.timeout = timeout
        self.batch_size = max(1, batch_size)
        self.concurrency = max(1, concurrency)
        self._transport = transport

    def can_use_service(self) -> bool:
        return bool(self.api_key) and self.api_key != PLACEHOLDER_KEY

    async def batch_event_labels(self, inputs: list[dict[str, Any]]) -> dict[str, dict[str, Any]]:
        """Label ``[{id, title, category, tags}]``; returns ``{id: raw_label}``."""
        if not self.can_use_service() or not inputs:
            return {}

        batches = [inputs[i:i + self.batch_size] for i in range(0, len(inputs), self.batch_size)]
        semaphore = asyncio.Semaphore(self.concurrency)
        results: dict[str, dict[str, Any]] = {}

        async with httpx.AsyncClient(
            base_url=self.base_url,
            timeout=self.timeout,
            transport=self._transport,
            headers={
                "Authorization": f"Bearer {self.api_key}",
                "Content-Type": "application/json",
                "X-Title": "Newsheat Heatmap",
            },
        ) as client:

            async def run(batch: list[dict[str, Any]], index: int) -> dict[str, dict[str, Any]]:
                async with semaphore:
                    try:
                        return await self._label_batch(client, batch, index)
                    except (httpx.HTTPError, OpenRouterError) as exc:
                        logger.warning("OpenRouter batch %d failed: %s", index, exc)
                        return {}

            batch_results = await asyncio.gather(
                *(run(batch, i + 1) for i, batch in enumerate(batches))
            )

        for batch_result in batch_results:
            results.update(batch_result)
        logger.info("OpenRouter labeled %d/%d articles in %d batch(es)", len(results), len(inputs), len(batches))
        return results

    async def _label_batch(
        self, client: httpx.AsyncClient, batch: list[dict[str, Any]], index: int,
    ) -> dict[str, dict[str, Any]]:
        articles_text = "\n".join(
            f"{i + 1}. ID: {item['id']}\n   Title: {item.get('title', '')}\n"
            f"   Category: {item.get('category') or 'GENERAL'}\n"
            f"   Tags: {', '.join(item.get('tags') or [])}"
            for i, item in enumerate(batch)
        )
        resp = await client.post("/chat/completions", json={
            "model": self.model,
            "messages": [
                {"role": "system", "content": _SYSTEM_PROMPT},
                {"role": "user", "content": _LABEL_PROMPT.format(articles=articles_text)},
            ],
            "temperature": 0.1,
            "max_tokens": 8000,
        })
        if resp.status_code >= 400:
            raise OpenRouterError(f"HTTP {resp.status_code}: {resp.text[:200]}")

        try:
            content = resp.json()["choices"][0]["message"]["content"] or ""
        except (ValueError, KeyError, IndexError, TypeError) as exc:
            raise OpenRouterError(f"unexpected response shape: {exc}") from exc

        wanted = {str(item["id"]) for item in batch}
        labels: dict[str, dict[str, Any]] = {}
        for raw in extract_labels(content):
            label_id = str(raw.get("id", ""))
            topic = str(raw.get("topic") or "").strip()
            if label_id not in wanted or len(topic) <= 5:
                continue
            keywords = raw.get("keywords")
            labels[label_id] = {
                "topic": topic,
                "trendDirection": raw.get("trendDirection"),
                "urgency": raw.get("urgency"),
                "keywords": [str(k).strip() for k in keywords if str(k).strip()][:MAX_KEYWORDS]
                if isinstance(keywords, list) else [],
            }

        logger.debug("OpenRouter batch %d: %d labeled from %d articles", index, len(labels), len(batch))
        return labels
