"""Unit tests for QdrantService."""

import uuid

import pytest
from qdrant_client.models import Distance, FilterSelector, PayloadSchemaType

from conftest import make_point
from curriculum_rag.models.index import IndexableDocument
from curriculum_rag.services.qdrant_service import PAYLOAD_INDEX_FIELDS, QdrantService, build_filter
from curriculum_rag.utils.errors import VectorStoreError


@pytest.fixture
def service(settings, qdrant_client):
    return QdrantService(settings, client=qdrant_client)


def _document(**payload):
    base = {"content": "Les fractions.", "niveau": "6e", "matiere": "mathematiques", "document_id": "doc-1"}
    base.update(payload)
    return IndexableDocument(id=str(uuid.uuid4()), content="📄 Document: ...\n\nLes fractions.", payload=base)


def test_build_filter_on_level_and_subject():
    query_filter = build_filter("6e", "mathematiques")
    assert [(c.key, c.match.value) for c in query_filter.must] == [("niveau", "6e"), ("matiere", "mathematiques")]
    assert build_filter() is None


class TestHealthAndProvisioning:
    @pytest.mark.asyncio
    async def test_health_check_ok(self, service):
        assert await service.health_check() is True

    @pytest.mark.asyncio
    async def test_health_check_never_raises(self, service, qdrant_client):
        qdrant_client.get_collections.side_effect = ConnectionError("refused")
        assert await service.health_check() is False

    @pytest.mark.asyncio
    async def test_existing_collection_is_left_alone(self, service, qdrant_client):
        assert await service.create_collection() is False
        qdrant_client.create_collection.assert_not_called()

    @pytest.mark.asyncio
    async def test_creates_collection_with_named_vector_and_indexes(self, service, qdrant_client, settings):
        qdrant_client.collection_exists.return_value = False

        assert await service.create_collection() is True

        kwargs = qdrant_client.create_collection.call_args.kwargs
        assert kwargs["collection_name"] == "test_curriculum"
        params = kwargs["vectors_config"][settings.qdrant.vector_name]
        assert params.size == settings.qdrant.vector_size
        assert params.distance == Distance.COSINE
        indexed = [c.kwargs["field_name"] for c in qdrant_client.create_payload_index.call_args_list]
        assert indexed == list(PAYLOAD_INDEX_FIELDS)
        assert all(
            c.kwargs["field_schema"] == PayloadSchemaType.KEYWORD
            for c in qdrant_client.create_payload_index.call_args_list
        )

    @pytest.mark.asyncio
    async def test_creation_failure_raises(self, service, qdrant_client):
        qdrant_client.collection_exists.side_effect = RuntimeError("refused")
        with pytest.raises(VectorStoreError):
            await service.create_collection()


class TestUpsert:
    @pytest.mark.asyncio
    async def test_upsert_keeps_raw_content_and_timestamps(self, service, qdrant_client, settings):
        documents = [_document(), _document(chunk_index=1)]
        vectors = [[1.0, 0.0, 0.0, 0.0], [0.0, 1.0, 0.0, 0.0]]

        written = await service.upsert_points(documents, vectors)

        assert written == 2
        kwargs = qdrant_client.upsert.call_args.kwargs
        assert kwargs["collection_name"] == "test_curriculum"
        assert kwargs["wait"] is True
        point = kwargs["points"][0]
        assert point.id == documents[0].id
        assert point.vector == {settings.qdrant.vector_name: vectors[0]}
        assert point.payload["content"] == "Les fractions."
        assert point.payload["created_at"] == point.payload["updated_at"]

    @pytest.mark.asyncio
    async def test_length_mismatch_raises(self, service):
        with pytest.raises(VectorStoreError):
            await service.upsert_points([_document()], [])

    @pytest.mark.asyncio
    async def test_empty_upsert_is_a_no_op(self, service, qdrant_client):
        assert await service.upsert_points([], []) == 0
        qdrant_client.upsert.assert_not_called()

    @pytest.mark.asyncio
    async def test_write_failure_raises(self, service, qdrant_client):
        qdrant_client.upsert.side_effect = RuntimeError("timeout")
        with pytest.raises(VectorStoreError) as exc_info:
            await service.upsert_points([_document()], [[1.0, 0.0, 0.0, 0.0]])
        assert exc_info.value.details["error"] == "timeout"


class TestQueries:
    @pytest.mark.asyncio
    async def test_search_maps_points_to_hits(self, service, qdrant_client, settings):
        qdrant_client.query_points.return_value.points = [make_point(0.82, domaine="Nombres")]

        hits = await service.search([1.0, 0.0, 0.0, 0.0], niveau="6e", matiere="mathematiques", limit=20)

        assert len(hits) == 1
        assert hits[0].score == 0.82
        assert hits[0].title == "Nombres et calculs"
        assert hits[0].domaine == "Nombres"
        kwargs = qdrant_client.query_points.call_args.kwargs
        assert kwargs["using"] == settings.qdrant.vector_name
        assert kwargs["limit"] == 20
        assert kwargs["search_params"].hnsw_ef == settings.retrieval.hnsw_ef
        assert len(kwargs["query_filter"].must) == 2

    @pytest.mark.asyncio
    async def test_search_failure_raises(self, service, qdrant_client):
        qdrant_client.query_points.side_effect = RuntimeError("boom")
        with pytest.raises(VectorStoreError):
            await service.search([1.0, 0.0, 0.0, 0.0])

    @pytest.mark.asyncio
    async def test_collection_stats(self, service):
        stats = await service.get_collection_stats()
        assert stats.points_count == 42
        assert stats.status == "green"

    @pytest.mark.asyncio
    async def test_collection_stats_none_on_error(self, service, qdrant_client):
        qdrant_client.get_collection.side_effect = RuntimeError("missing")
        assert await service.get_collection_stats() is None

    @pytest.mark.asyncio
    async def test_count_points(self, service):
        assert await service.count_points() == 42

    @pytest.mark.asyncio
    async def test_delete_by_document_id_uses_filter(self, service, qdrant_client):
        await service.delete_by_document_id("doc-7")

        selector = qdrant_client.delete.call_args.kwargs["points_selector"]
        assert isinstance(selector, FilterSelector)
        assert selector.filter.must[0].key == "document_id"
        assert selector.filter.must[0].match.value == "doc-7"

    @pytest.mark.asyncio
    async def test_get_point_returns_payload(self, service, qdrant_client):
        qdrant_client.retrieve.return_value = [make_point(1.0)]
        payload = await service.get_point("some-id")
        assert payload["matiere"] == "mathematiques"

        qdrant_client.retrieve.return_value = []
        assert await service.get_point("missing") is None
