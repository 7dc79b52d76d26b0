"""
API Server Tests

The lifespan hook is bypassed: TestClient is used without a context
manager and the orchestrator dependency is overridden.
"""

from unittest.mock import patch

import pytest
from fastapi.testclient import TestClient

from adapter.providers import ProviderErrorCode, ScriptedProvider
from backend.api.server import app, get_orchestrator

from .fixtures import build_pipeline, listing_handler, listing_post, scripted


@pytest.fixture
def pipeline(store, fake_clock):
    posts = {"a": [listing_post(f"a{i}", f"Great post {i}") for i in range(3)]}
    return build_pipeline(listing_handler(posts), ScriptedProvider(), store, fake_clock)


@pytest.fixture
def client(pipeline):
    app.dependency_overrides[get_orchestrator] = lambda: pipeline
    yield TestClient(app)
    app.dependency_overrides.clear()


def test_scrape_with_partial_failure_is_ok(client):
    response = client.post("/api/scrape", json={"sources": ["a", "b"], "perSourceLimit": 5})

    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert (body["fetched"], body["stored"], body["analyzed"]) == (3, 3, 3)
    assert body["skipped_sources"][0]["source"] == "b"
    assert body["errors"] == []


def test_scrape_without_body_uses_defaults(client, pipeline):
    with patch.object(pipeline, "run_scrape_and_analyze", wraps=pipeline.run_scrape_and_analyze) as run:
        response = client.post("/api/scrape")

    run.assert_called_once_with(sources=None, per_source_limit=None)
    assert response.status_code == 500
    assert response.json()["message"] == "No documents fetched from any source"


def test_scrape_nothing_fetched_is_500(client):
    response = client.post("/api/scrape", json={"sources": ["missing"]})

    assert response.status_code == 500
    assert response.json()["success"] is False


def test_scrape_rejects_bad_limit(client):
    response = client.post("/api/scrape", json={"sources": ["a"], "perSourceLimit": 0})
    assert response.status_code == 422


def test_analyze_with_nothing_pending(client):
    response = client.post("/api/analyze")

    assert response.status_code == 200
    assert response.json()["message"] == "No documents to analyze"


def test_posts_lists_analyzed_documents(client):
    client.post("/api/scrape", json={"sources": ["a"]})

    response = client.get("/api/posts")

    assert response.status_code == 200
    body = response.json()
    assert body["count"] == 3
    post = body["posts"][0]
    assert post["external_id"].startswith("reddit_a")
    assert post["analysis"]["sentiment"] in {"positive", "neutral", "negative"}


def test_health_reports_store_and_engine(client):
    client.post("/api/scrape", json={"sources": ["a"]})

    response = client.get("/api/health")

    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "healthy"
    assert body["database"]["totalRecords"] == 3
    assert body["database"]["pendingAnalysis"] == 0
    assert body["engine"]["mode"] == "primary"


def test_health_unhealthy_when_store_fails(client, store):
    with patch.object(store, "stats", side_effect=RuntimeError("disk I/O error")):
        response = client.get("/api/health")

    assert response.status_code == 500
    assert response.json()["status"] == "unhealthy"


def test_clear_deletes_everything(client):
    client.post("/api/scrape", json={"sources": ["a"]})

    response = client.delete("/api/clear")

    assert response.json() == {"success": True, "deleted": 3}
    assert client.get("/api/posts").json()["count"] == 0


def test_engine_reset(store, fake_clock):
    provider = scripted(ProviderErrorCode.RATE_LIMITED, ProviderErrorCode.RATE_LIMITED)
    pipeline = build_pipeline(listing_handler({"a": [listing_post("a1")]}), provider, store, fake_clock)
    app.dependency_overrides[get_orchestrator] = lambda: pipeline
    try:
        client = TestClient(app)
        client.post("/api/scrape", json={"sources": ["a"]})
        assert client.get("/api/health").json()["engine"]["mode"] == "degraded"

        response = client.post("/api/engine/reset")

        assert response.status_code == 200
        assert response.json()["engine"]["mode"] == "primary"
    finally:
        app.dependency_overrides.clear()


def test_uninitialized_pipeline_is_503():
    response = TestClient(app).get("/api/health")
    assert response.status_code == 503
