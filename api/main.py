from contextlib import asynccontextmanager
from pathlib import Path

from dotenv import load_dotenv

load_dotenv(Path(__file__).resolve().parent.parent / ".env")

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from api.middleware import RequestIDMiddleware, get_allowed_origins
from api.routes import router
from newsheat.cache import cache, setup_cache
from newsheat.config import API_VERSION
from newsheat.logging import get_logger, setup_logging
from newsheat.service import news_heatmap_service

setup_logging()
logger = get_logger("newsheat.api")


@asynccontextmanager
async def lifespan(app: FastAPI):
    cache_backend = await setup_cache()
    await news_heatmap_service.initialize()
    logger.info(
        "newsheat_started",
        cache=cache_backend,
        db_path=str(news_heatmap_service.db_path),
        degraded=news_heatmap_service.degraded,
        llm_available=news_heatmap_service.labeler.is_available(),
    )

    yield

    await news_heatmap_service.close()
    await cache.close()
    logger.info("newsheat_stopped")


app = FastAPI(
    title="Newsheat",
    description=(
        "Clusters recent news into topics and ranks them by heat, with velocity, "
        "sentiment, trend and urgency per cluster plus a bucketed heat history."
    ),
    version=API_VERSION,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=get_allowed_origins(),
    allow_credentials=True,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["X-API-Key", "Content-Type", "X-Request-ID"],
    expose_headers=["X-Request-ID"],
)
app.add_middleware(RequestIDMiddleware)

app.include_router(router, prefix="/api/v1")


@app.get("/health")
def health():
    """Liveness plus whether the heatmap store opened."""
    degraded = news_heatmap_service.degraded
    return {
        "status": "degraded" if degraded else "ok",
        "service": "newsheat",
        "version": API_VERSION,
        "store": "unavailable" if degraded else "sqlite",
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("api.main:app", host="0.0.0.0", port=8000, reload=True)
