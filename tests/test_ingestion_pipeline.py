"""Unit tests for IngestionPipeline."""

from unittest.mock import patch

import pytest
from qdrant_client.models import FilterSelector

from conftest import FakeEmbeddingsClient
from curriculum_rag.models.ingestion import IngestionOptions
from curriculum_rag.services.chunking_service import ChunkingService
from curriculum_rag.services.embedding_service import EmbeddingService
from curriculum_rag.services.ingestion_pipeline import IngestionPipeline
from curriculum_rag.services.qdrant_service import QdrantService
from curriculum_rag.utils.errors import ChunkingError, StoreUnavailableError


@pytest.fixture
def build_pipeline(settings, qdrant_client):
    def _build(embeddings_client=None):
        return IngestionPipeline(
            ChunkingService(settings),
            EmbeddingService(settings, client=embeddings_client or FakeEmbeddingsClient()),
            QdrantService(settings, client=qdrant_client),
            settings,
        )

    return _build


def _upserted_points(qdrant_client):
    return [p for c in qdrant_client.upsert.call_args_list for p in c.kwargs["points"]]


class TestRun:
    @pytest.mark.asyncio
    async def test_happy_path(self, build_pipeline, make_document, qdrant_client):
        documents = [make_document(), make_document(matiere="francais")]

        result = await build_pipeline().run(documents)

        assert result.success is True
        assert result.errors == []
        assert result.stats.documents_processed == 2
        assert result.stats.chunks_created == 2
        assert result.stats.tokens_total > 0
        assert set(result.stats.by_subject) == {"mathematiques", "francais"}
        assert result.stats.duration_ms is not None
        assert result.collection_stats.points_count == 42
        assert len(_upserted_points(qdrant_client)) == 2

    @pytest.mark.asyncio
    async def test_invalid_document_is_reported_and_others_continue(self, build_pipeline, make_document):
        bad = make_document(title="")
        good = make_document()

        result = await build_pipeline().run([bad, good])

        assert result.success is False
        assert result.stats.documents_processed == 1
        assert result.stats.error_count == 1
        assert result.errors[0].document_id == bad.id
        assert result.errors[0].error == "Validation failed: Missing required field: title"

    @pytest.mark.asyncio
    async def test_all_documents_invalid(self, build_pipeline, make_document, qdrant_client):
        result = await build_pipeline().run([make_document(id="", content="")])

        assert result.success is False
        assert result.stats.chunks_created == 0
        assert result.errors[0].document_id == "unknown"
        qdrant_client.upsert.assert_not_called()

    @pytest.mark.asyncio
    async def test_dry_run_never_touches_the_store(self, build_pipeline, make_document, qdrant_client):
        result = await build_pipeline().run([make_document()], IngestionOptions(dry_run=True))

        assert result.success is True
        assert result.dry_run is True
        assert result.stats.chunks_created == 1
        assert result.collection_stats is None
        qdrant_client.get_collections.assert_not_called()
        qdrant_client.collection_exists.assert_not_called()
        qdrant_client.upsert.assert_not_called()
        qdrant_client.get_collection.assert_not_called()

    @pytest.mark.asyncio
    async def test_failed_embedding_is_excluded_from_upsert(self, build_pipeline, make_document, qdrant_client):
        good = make_document()
        poisoned = make_document(content="Texte POISON refusé par le fournisseur.")

        result = await build_pipeline(FakeEmbeddingsClient(fail_on=("POISON",))).run([good, poisoned])

        assert result.success is False
        assert result.stats.embeddings_failed == 1
        error = result.errors[0]
        assert error.document_id == poisoned.id
        assert error.chunk_id is not None
        assert error.error.startswith("Embedding failed:")
        points = _upserted_points(qdrant_client)
        assert [p.payload["document_id"] for p in points] == [good.id]

    @pytest.mark.asyncio
    async def test_failed_batch_is_reported_by_number(self, build_pipeline, make_document, qdrant_client):
        qdrant_client.upsert.side_effect = [None, RuntimeError("timeout"), None]

        result = await build_pipeline().run(
            [make_document(), make_document(), make_document()], IngestionOptions(batch_size=1)
        )

        assert result.success is False
        assert qdrant_client.upsert.call_count == 3
        assert [e.document_id for e in result.errors] == ["batch_2"]
        assert result.errors[0].error == "Upsert failed: Failed to upsert points into Qdrant: timeout"

    @pytest.mark.asyncio
    async def test_chunking_error_is_collected(self, build_pipeline, make_document):
        pipeline = build_pipeline()
        document = make_document()

        with patch.object(ChunkingService, "chunk_document", side_effect=ChunkingError("no sentences")):
            result = await pipeline.run([document])

        assert result.success is False
        assert result.errors[0].document_id == document.id
        assert result.errors[0].error == "Chunking failed: no sentences"

    @pytest.mark.asyncio
    async def test_unreachable_store_aborts(self, build_pipeline, make_document, qdrant_client):
        qdrant_client.get_collections.side_effect = ConnectionError("refused")
        qdrant_client.collection_exists.side_effect = ConnectionError("refused")

        with pytest.raises(StoreUnavailableError):
            await build_pipeline().run([make_document()])
        qdrant_client.upsert.assert_not_called()

    @pytest.mark.asyncio
    async def test_raw_content_is_embedded_when_requested(self, build_pipeline, make_document):
        client = FakeEmbeddingsClient()
        document = make_document()

        await build_pipeline(client).run([document], IngestionOptions(use_contextualized_content=False))

        assert client.calls[-1] == [document.content]


class TestReindex:
    @pytest.mark.asyncio
    async def test_reindex_purges_previous_points(self, build_pipeline, make_document, qdrant_client):
        document = make_document(id="doc-reindex")

        result = await build_pipeline().reindex_document(document)

        assert result.success is True
        selector = qdrant_client.delete.call_args.kwargs["points_selector"]
        assert isinstance(selector, FilterSelector)
        assert selector.filter.must[0].match.value == "doc-reindex"
        qdrant_client.upsert.assert_called_once()

    @pytest.mark.asyncio
    async def test_reindex_dry_run_keeps_points(self, build_pipeline, make_document, qdrant_client):
        await build_pipeline().reindex_document(make_document(), IngestionOptions(dry_run=True))
        qdrant_client.delete.assert_not_called()

    @pytest.mark.asyncio
    async def test_reindex_without_purge(self, build_pipeline, make_document, qdrant_client, settings):
        settings.ingestion.purge_on_reindex = False
        await build_pipeline().reindex_document(make_document())
        qdrant_client.delete.assert_not_called()
        qdrant_client.upsert.assert_called_once()

    @pytest.mark.asyncio
    async def test_invalid_update_keeps_indexed_points(self, build_pipeline, make_document, qdrant_client):
        result = await build_pipeline().reindex_document(make_document(id="doc-keep", content="   "))

        assert result.success is False
        qdrant_client.delete.assert_not_called()
        qdrant_client.upsert.assert_not_called()

    @pytest.mark.asyncio
    async def test_failed_embeddings_keep_indexed_points(self, build_pipeline, make_document, qdrant_client):
        client = FakeEmbeddingsClient(fail_on=("fractions",))

        result = await build_pipeline(client).reindex_document(make_document(id="doc-keep"))

        assert result.success is False
        assert result.stats.embeddings_failed == 1
        qdrant_client.delete.assert_not_called()
        qdrant_client.upsert.assert_not_called()

    @pytest.mark.asyncio
    async def test_failed_purge_is_reported_and_skips_upsert(self, build_pipeline, make_document, qdrant_client):
        qdrant_client.delete.side_effect = RuntimeError("timeout")

        result = await build_pipeline().reindex_document(make_document(id="doc-keep"))

        assert result.success is False
        assert result.errors[-1].document_id == "doc-keep"
        assert result.errors[-1].error.startswith("Purge failed: Failed to delete document points")
        qdrant_client.upsert.assert_not_called()


@pytest.mark.asyncio
async def test_get_ingestion_stats(build_pipeline):
    stats = await build_pipeline().get_ingestion_stats()
    assert stats.points_count == 42
