"""Tests for the news heatmap HTTP endpoints."""

from unittest.mock import AsyncMock, MagicMock, patch

from fastapi.testclient import TestClient

from api.main import app
from helpers import NOW
from newsheat.models import (
    ClusterArticle,
    Importance,
    LlmSummary,
    NewsHeatmapCluster,
    NewsHeatmapResult,
    NewsHeatmapTimeline,
    Sentiment,
    TimelinePoint,
    TrendDirection,
    Urgency,
)

client = TestClient(app)

CLUSTER = NewsHeatmapCluster(
    id="nh_0123456789abcdef01",
    topic="Solana Network Outage",
    topic_key="solana_network_outage",
    summary="2 articles across 2 sources over 1.0h. Latest: Solana halts block production",
    category="CRYPTO",
    keywords=("solana", "outage", "validators"),
    heat_score=61.37,
    article_count=2,
    source_count=2,
    sentiment_score=-0.5,
    sentiment=Sentiment.BEARISH,
    trend_direction=TrendDirection.UP,
    urgency=Urgency.HIGH,
    velocity=12.5,
    freshness_minutes=14,
    llm_coverage=0.5,
    first_seen=NOW,
    updated_at=NOW,
    articles=(ClusterArticle(
        id="a1", title="Solana halts block production", source="Reuters", url="https://example.com/a1",
        published_at=NOW, sentiment=Sentiment.BEARISH, importance=Importance.HIGH, snippet="", summary="",
    ),),
)

RESULT = NewsHeatmapResult(
    generated_at=NOW,
    hours=24,
    category="ALL",
    total_articles=40,
    total_clusters=7,
    clusters=(CLUSTER,),
    by_category={"CRYPTO": [CLUSTER]},
    llm=LlmSummary(enabled=True, model="test/labeler", labeled_articles=20, coverage=0.5),
)


def _mock_service(**overrides):
    svc = MagicMock()
    svc.labeler.model = "test/labeler"
    svc.get_heatmap = AsyncMock(return_value=RESULT)
    svc.rebuild = AsyncMock(return_value=RESULT)
    svc.get_cluster_details = AsyncMock(return_value=None)
    svc.get_timeline = AsyncMock()
    for name, value in overrides.items():
        setattr(svc, name, value)
    return svc


class TestHeatmapEndpoint:
    def test_camel_case_payload(self):
        svc = _mock_service()
        with patch("api.routes.heatmap.news_heatmap_service", svc):
            r = client.get("/api/v1/news/heatmap", params={"hours": 12, "limit": 5, "category": "crypto"})
        assert r.status_code == 200
        data = r.json()
        assert data["totalClusters"] == 7
        assert data["total"] == 1
        cluster = data["clusters"][0]
        assert cluster["heatScore"] == 61.37
        assert cluster["trendDirection"] == "UP"
        assert cluster["firstSeen"] == "2026-03-02T12:00:00.000Z"
        assert cluster["articles"][0]["publishedAt"] == "2026-03-02T12:00:00.000Z"
        assert data["byCategory"]["CRYPTO"][0]["id"] == CLUSTER.id
        assert data["llm"]["labeledArticles"] == 20
        svc.get_heatmap.assert_awaited_once_with(hours=12, limit=5, category="crypto", force=False)

    def test_service_failure_degrades_to_empty(self):
        svc = _mock_service(get_heatmap=AsyncMock(side_effect=RuntimeError("boom")))
        with patch("api.routes.heatmap.news_heatmap_service", svc):
            r = client.get("/api/v1/news/heatmap")
        assert r.status_code == 200
        data = r.json()
        assert data["clusters"] == []
        assert data["totalClusters"] == 0
        assert data["llm"] == {"enabled": False, "model": "test/labeler", "labeledArticles": 0, "coverage": 0.0}


class TestClustersEndpoints:
    def test_list(self):
        svc = _mock_service()
        with patch("api.routes.heatmap.news_heatmap_service", svc):
            r = client.get("/api/v1/news/clusters")
        assert r.status_code == 200
        assert [c["id"] for c in r.json()] == [CLUSTER.id]
        assert svc.get_heatmap.await_args.kwargs["limit"] == 20

    def test_list_failure_is_empty(self):
        svc = _mock_service(get_heatmap=AsyncMock(side_effect=RuntimeError("boom")))
        with patch("api.routes.heatmap.news_heatmap_service", svc):
            r = client.get("/api/v1/news/clusters")
        assert r.status_code == 200
        assert r.json() == []

    def test_detail_found(self):
        svc = _mock_service(get_cluster_details=AsyncMock(return_value=CLUSTER))
        with patch("api.routes.heatmap.news_heatmap_service", svc):
            r = client.get(f"/api/v1/news/clusters/{CLUSTER.id}")
        assert r.status_code == 200
        assert r.json()["topicKey"] == "solana_network_outage"
        svc.get_cluster_details.assert_awaited_once_with(CLUSTER.id, hours=48)

    def test_detail_missing_is_404(self):
        with patch("api.routes.heatmap.news_heatmap_service", _mock_service()):
            r = client.get("/api/v1/news/clusters/nh_missing")
        assert r.status_code == 404


class TestTimelineEndpoint:
    def test_points(self):
        timeline = NewsHeatmapTimeline(
            generated_at=NOW, hours=6, bucket_hours=3,
            points=(TimelinePoint(
                bucket_start=NOW, bucket_end=NOW, avg_heat=33.3, article_count=9,
                cluster_observations=3, by_category={"CRYPTO": 33.3},
            ),),
        )
        svc = _mock_service(get_timeline=AsyncMock(return_value=timeline))
        with patch("api.routes.heatmap.news_heatmap_service", svc):
            r = client.get("/api/v1/news/heatmap/timeline", params={"hours": 6, "bucketHours": 3})
        assert r.status_code == 200
        data = r.json()
        assert data["bucketHours"] == 3
        assert data["points"][0]["clusterObservations"] == 3
        assert data["points"][0]["byCategory"] == {"CRYPTO": 33.3}
        svc.get_timeline.assert_awaited_once_with(hours=6, bucket_hours=3, category="ALL")

    def test_failure_degrades_to_empty(self):
        svc = _mock_service(get_timeline=AsyncMock(side_effect=RuntimeError("boom")))
        with patch("api.routes.heatmap.news_heatmap_service", svc):
            r = client.get("/api/v1/news/heatmap/timeline")
        assert r.status_code == 200
        assert r.json()["points"] == []


class TestRebuildEndpoint:
    def test_rebuild(self):
        svc = _mock_service()
        with patch("api.routes.heatmap.news_heatmap_service", svc):
            r = client.post("/api/v1/news/heatmap/rebuild", params={"hours": 48})
        assert r.status_code == 200
        data = r.json()
        assert data["success"] is True
        assert data["totalArticles"] == 40
        assert data["llm"]["model"] == "test/labeler"

    def test_rebuild_failure_is_500(self):
        svc = _mock_service(rebuild=AsyncMock(side_effect=RuntimeError("db locked")))
        with patch("api.routes.heatmap.news_heatmap_service", svc):
            r = client.post("/api/v1/news/heatmap/rebuild")
        assert r.status_code == 500
        assert "db locked" in r.json()["detail"]


class TestAuthAndHealth:
    def test_api_key_required_when_configured(self, monkeypatch):
        monkeypatch.setenv("NEWSHEAT_API_KEYS", "secret-1,secret-2")
        with patch("api.routes.heatmap.news_heatmap_service", _mock_service()):
            assert client.get("/api/v1/news/clusters").status_code == 401
            r = client.get("/api/v1/news/clusters", headers={"X-API-Key": "secret-2"})
        assert r.status_code == 200

    def test_health(self):
        r = client.get("/health")
        assert r.status_code == 200
        assert r.json()["status"] in ("ok", "degraded")

    def test_request_id_echoed(self):
        r = client.get("/health", headers={"X-Request-ID": "req-42"})
        assert r.headers["X-Request-ID"] == "req-42"
