"""News heatmap endpoints: clusters, heatmap, timeline, rebuild, cluster detail."""

import logging
from datetime import datetime, timezone

from fastapi import APIRouter, HTTPException, Query

from api.models import (
    HeatmapClusterModel,
    HeatmapResponse,
    LlmSummaryModel,
    RebuildResponse,
    TimelineResponse,
)
from newsheat.models import to_iso
from newsheat.service import news_heatmap_service

logger = logging.getLogger(__name__)

router = APIRouter(tags=["news-heatmap"])

# Upper bounds are enforced by the service's own clamping, not by 422s.
HoursQuery = Query(24, description="Look-back window in hours (1-168)")
CategoryQuery = Query("ALL", description="Category filter or ALL")


def _empty_heatmap() -> HeatmapResponse:
    labeler = news_heatmap_service.labeler
    return HeatmapResponse(
        generated_at=to_iso(datetime.now(timezone.utc)),
        hours=24,
        category="ALL",
        total_articles=0,
        total_clusters=0,
        total=0,
        clusters=[],
        by_category={},
        llm=LlmSummaryModel(enabled=False, model=labeler.model),
    )


@router.get("/news/heatmap", response_model=HeatmapResponse, summary="Ranked news heatmap")
async def get_news_heatmap(
    hours: int = HoursQuery,
    limit: int = Query(80, description="Max clusters returned (1-300)"),
    category: str = CategoryQuery,
    force: bool = Query(False, description="Bypass the result cache"),
):
    try:
        result = await news_heatmap_service.get_heatmap(hours=hours, limit=limit, category=category, force=force)
    except Exception:
        logger.exception("Heatmap endpoint error")
        return _empty_heatmap()

    payload = result.to_dict()
    payload["total"] = len(result.clusters)
    return HeatmapResponse.model_validate(payload)


@router.get("/news/clusters", response_model=list[HeatmapClusterModel], summary="Hot clusters only")
async def get_news_clusters(
    hours: int = HoursQuery,
    limit: int = Query(20, description="Max clusters returned (1-300)"),
    category: str = CategoryQuery,
    force: bool = Query(False),
):
    try:
        result = await news_heatmap_service.get_heatmap(hours=hours, limit=limit, category=category, force=force)
    except Exception:
        logger.exception("Clusters endpoint error")
        return []
    return [HeatmapClusterModel.model_validate(c.to_dict()) for c in result.clusters]


@router.get("/news/clusters/{cluster_id}", response_model=HeatmapClusterModel, summary="Single cluster detail")
async def get_news_cluster(cluster_id: str, hours: int = Query(48, description="Rebuild window on cache miss")):
    cluster = await news_heatmap_service.get_cluster_details(cluster_id, hours=hours)
    if cluster is None:
        raise HTTPException(status_code=404, detail=f"Cluster '{cluster_id}' not found")
    return HeatmapClusterModel.model_validate(cluster.to_dict())


@router.get("/news/heatmap/timeline", response_model=TimelineResponse, summary="Heat history buckets")
async def get_news_heatmap_timeline(
    hours: int = HoursQuery,
    bucket_hours: int = Query(2, alias="bucketHours", description="Bucket width in hours (1-24)"),
    category: str = CategoryQuery,
):
    try:
        timeline = await news_heatmap_service.get_timeline(hours=hours, bucket_hours=bucket_hours, category=category)
    except Exception:
        logger.exception("Heatmap timeline endpoint error")
        return TimelineResponse(
            generated_at=to_iso(datetime.now(timezone.utc)), hours=24, bucket_hours=2, points=[],
        )
    return TimelineResponse.model_validate(timeline.to_dict())


@router.post("/news/heatmap/rebuild", response_model=RebuildResponse, summary="Force a heatmap rebuild")
async def rebuild_news_heatmap(
    hours: int = HoursQuery,
    limit: int = Query(80),
    category: str = CategoryQuery,
):
    try:
        rebuilt = await news_heatmap_service.rebuild(hours=hours, limit=limit, category=category)
    except Exception as exc:
        logger.exception("Heatmap rebuild endpoint error")
        raise HTTPException(status_code=500, detail=f"Heatmap rebuild failed: {exc}")

    return RebuildResponse(
        success=True,
        generated_at=to_iso(rebuilt.generated_at),
        total_articles=rebuilt.total_articles,
        total_clusters=rebuilt.total_clusters,
        llm=LlmSummaryModel.model_validate(rebuilt.llm.to_dict()),
    )
