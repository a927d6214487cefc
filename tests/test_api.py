"""API endpoint tests using FastAPI's TestClient."""

from unittest.mock import patch

import pytest
from fastapi.testclient import TestClient

from conftest import FakeEmbeddingsClient, make_point
from curriculum_rag.container import build_container
from curriculum_rag.main import create_app
from curriculum_rag.middleware import api_area
from curriculum_rag.services.cache_store import InMemoryCacheStore


@pytest.fixture
def container(settings, qdrant_client):
    return build_container(
        settings,
        qdrant_client=qdrant_client,
        embedding_client=FakeEmbeddingsClient(),
        cache_store=InMemoryCacheStore(),
    )


@pytest.fixture
def client(container):
    with TestClient(create_app(container)) as test_client:
        yield test_client


def _document(**overrides):
    data = {
        "id": "doc-api",
        "title": "Programme de français",
        "content": "Les élèves lisent des textes variés. Ils écrivent des textes courts.",
        "niveau": "CM1",
        "matiere": "francais",
        "cycle": "cycle_3",
    }
    data.update(overrides)
    return data


class TestProbes:
    def test_root(self, client):
        response = client.get("/")
        assert response.status_code == 200
        assert response.json()["service"] == "curriculum-rag"

    def test_health(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "healthy"
        assert client.get("/api/v1/health").status_code == 200

    def test_ready(self, client):
        response = client.get("/ready")
        assert response.status_code == 200
        assert response.json()["checks"] == {"qdrant": True, "embeddings": True, "cache": "healthy"}

    def test_not_ready_when_qdrant_down(self, client, qdrant_client):
        qdrant_client.get_collections.side_effect = ConnectionError("refused")
        response = client.get("/api/v1/ready")
        assert response.status_code == 503
        assert response.json()["status"] == "not_ready"

    def test_request_id_is_echoed(self, client):
        response = client.get("/health", headers={"X-Request-ID": "req-123"})
        assert response.headers["X-Request-ID"] == "req-123"

    def test_probes_are_not_access_logged(self, client):
        with patch("curriculum_rag.middleware.log_request") as log_request:
            client.get("/api/v1/health")
        log_request.assert_not_called()

    def test_api_requests_are_logged_with_their_area(self, client):
        with patch("curriculum_rag.middleware.log_request") as log_request:
            response = client.get("/api/v1/ingestion/stats")

        assert "X-Response-Time-Ms" in response.headers
        kwargs = log_request.call_args.kwargs
        assert kwargs["path"] == "/api/v1/ingestion/stats"
        assert kwargs["area"] == "ingestion"
        assert kwargs["status_code"] == 200


def test_api_area():
    assert api_area("/api/v1/search/context") == "search"
    assert api_area("/docs") == "docs"
    assert api_area("/") == "root"


class TestIngestionEndpoints:
    def test_run(self, client, qdrant_client):
        response = client.post("/api/v1/ingestion/run", json={"documents": [_document()]})

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["stats"]["documents_processed"] == 1
        assert body["collection_stats"]["points_count"] == 42
        qdrant_client.upsert.assert_called_once()

    def test_run_reports_invalid_documents(self, client):
        response = client.post("/api/v1/ingestion/run", json={"documents": [_document(niveau="")]})

        body = response.json()
        assert response.status_code == 200
        assert body["success"] is False
        assert body["errors"][0]["error"] == "Validation failed: Missing required field: niveau"

    def test_wrong_typed_document_does_not_reject_the_batch(self, client, qdrant_client):
        documents = [_document(niveau=None), _document()]

        response = client.post("/api/v1/ingestion/run", json={"documents": documents})

        assert response.status_code == 200
        assert response.json()["stats"]["documents_processed"] == 1
        qdrant_client.upsert.assert_called_once()

    def test_dry_run(self, client, qdrant_client):
        response = client.post(
            "/api/v1/ingestion/run",
            json={"documents": [_document()], "options": {"dry_run": True}},
        )
        assert response.json()["dry_run"] is True
        qdrant_client.upsert.assert_not_called()

    def test_store_unavailable_maps_to_503(self, client, qdrant_client):
        qdrant_client.get_collections.side_effect = ConnectionError("refused")
        qdrant_client.collection_exists.side_effect = ConnectionError("refused")

        response = client.post("/api/v1/ingestion/run", json={"documents": [_document()]})

        assert response.status_code == 503
        assert response.json()["error"]["code"] == "STORE_UNAVAILABLE"

    def test_reindex(self, client, qdrant_client):
        response = client.post("/api/v1/ingestion/reindex", json={"document": _document()})
        assert response.status_code == 200
        qdrant_client.delete.assert_called_once()

    def test_reindex_rejects_invalid_document(self, client, qdrant_client):
        response = client.post("/api/v1/ingestion/reindex", json={"document": _document(content="  ")})

        assert response.status_code == 422
        error = response.json()["error"]
        assert error["code"] == "VALIDATION_ERROR"
        assert error["details"]["validation_errors"] == ["Missing required field: content"]
        qdrant_client.delete.assert_not_called()

    def test_stats(self, client):
        response = client.get("/api/v1/ingestion/stats")
        assert response.status_code == 200
        assert response.json()["points_count"] == 42

    def test_stats_unavailable(self, client, qdrant_client):
        qdrant_client.get_collection.side_effect = RuntimeError("missing")
        response = client.get("/api/v1/ingestion/stats")
        assert response.status_code == 502
        assert response.json()["error"]["code"] == "VECTOR_STORE_ERROR"


class TestSearchEndpoints:
    def test_search(self, client, qdrant_client):
        qdrant_client.query_points.return_value.points = [make_point(0.9), make_point(0.1)]

        response = client.post(
            "/api/v1/search", json={"query": "les fractions", "niveau": "6e", "matiere": "mathematiques"}
        )

        assert response.status_code == 200
        body = response.json()
        assert body["available"] is True
        assert [h["score"] for h in body["hits"]] == [0.9]

    def test_context(self, client, qdrant_client):
        qdrant_client.query_points.return_value.points = [make_point(0.8)]

        response = client.post(
            "/api/v1/search/context", json={"query": "les fractions", "niveau": "6e", "matiere": "mathematiques"}
        )

        body = response.json()
        assert body["found"] is True
        assert body["context"].startswith("📚 PROGRAMMES OFFICIELS")

    def test_search_validation_error(self, client):
        response = client.post("/api/v1/search", json={"niveau": "6e", "matiere": "mathematiques"})
        assert response.status_code == 422
        assert response.json()["error"]["code"] == "VALIDATION_ERROR"

    def test_search_failure_maps_to_502(self, client, qdrant_client):
        qdrant_client.query_points.side_effect = RuntimeError("boom")
        response = client.post("/api/v1/search", json={"query": "q", "niveau": "6e", "matiere": "maths"})
        assert response.status_code == 502
        assert response.json()["error"]["code"] == "RETRIEVAL_ERROR"


class TestCacheEndpoints:
    def test_metrics(self, client):
        response = client.get("/api/v1/cache/metrics")
        body = response.json()
        assert body["backend"] == "memory"
        assert body["health"]["status"] == "healthy"
        assert "hit_rate" in body["metrics"]

    def test_invalidate(self, client, container):
        response = client.post("/api/v1/cache/invalidate", json={"pattern": "rag:*"})
        assert response.status_code == 200
        assert response.json() == {"pattern": "rag:*", "deleted": 0}


def test_services_unavailable_before_startup(container):
    response = TestClient(create_app(container)).get("/api/v1/cache/metrics")
    assert response.status_code == 503
    assert response.json()["error"]["code"] == "HTTP_ERROR"
