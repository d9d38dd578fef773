"""HTTP plumbing for the heatmap API: optional key auth, request ids, CORS origins."""

import logging
import os
import secrets
import time
import uuid

import structlog.contextvars
from fastapi import HTTPException, Request, Security
from fastapi.security import APIKeyHeader
from starlette.middleware.base import BaseHTTPMiddleware

logger = logging.getLogger("newsheat.api")

# ── API Key Authentication ──────────────────────────────────────────

_api_key_header = APIKeyHeader(name="X-API-Key", auto_error=False)


def configured_api_keys() -> frozenset[str]:
    """Keys from NEWSHEAT_API_KEYS (comma-separated). Empty means auth is off."""
    return frozenset(k.strip() for k in os.environ.get("NEWSHEAT_API_KEYS", "").split(",") if k.strip())


async def verify_api_key(api_key: str | None = Security(_api_key_header)) -> str | None:
    """Router dependency guarding every /api/v1 route when keys are configured."""
    keys = configured_api_keys()
    if not keys:
        return None
    if api_key and any(secrets.compare_digest(api_key, k) for k in keys):
        return api_key
    raise HTTPException(status_code=401, detail="Invalid or missing API key")


# ── Request ID ─────────────────────────────────────────────────────


class RequestIDMiddleware(BaseHTTPMiddleware):
    """Tag each request with an id for log correlation and echo it back.

    A heatmap build can take seconds when labeling is on, so responses carry
    their duration and slow ones are logged.
    """

    SLOW_REQUEST_MS = 2000

    async def dispatch(self, request: Request, call_next):
        request_id = request.headers.get("x-request-id") or uuid.uuid4().hex
        started = time.perf_counter()
        with structlog.contextvars.bound_contextvars(request_id=request_id, path=request.url.path):
            response = await call_next(request)
            elapsed_ms = (time.perf_counter() - started) * 1000
            if elapsed_ms >= self.SLOW_REQUEST_MS:
                logger.info("Slow %s %s: %.0fms (status %d)", request.method, request.url.path,
                            elapsed_ms, response.status_code)

        response.headers["X-Request-ID"] = request_id
        response.headers["X-Response-Time-Ms"] = f"{elapsed_ms:.0f}"
        return response


# ── CORS Configuration ──────────────────────────────────────────────


def get_allowed_origins() -> list[str]:
    """NEWSHEAT_ALLOWED_ORIGINS as a list; ``*`` allows any, unset means local dev origins."""
    raw = os.environ.get("NEWSHEAT_ALLOWED_ORIGINS", "").strip()
    if raw == "*":
        return ["*"]
    origins = [o.strip() for o in raw.split(",") if o.strip()]
    return origins or ["http://localhost:3000", "http://localhost:8000"]
