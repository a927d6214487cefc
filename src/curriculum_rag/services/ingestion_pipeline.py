"""Ingestion pipeline: validate, chunk, embed and index curriculum documents."""

from datetime import datetime, timezone
from typing import List, Optional

from curriculum_rag.config import Settings, get_settings
from curriculum_rag.models.document import RawDocument
from curriculum_rag.models.index import CollectionStats
from curriculum_rag.models.ingestion import (
    IngestionError,
    IngestionOptions,
    IngestionPipelineResult,
    IngestionStats,
    SubjectStats,
)
from curriculum_rag.services.chunking_service import ChunkingService, to_indexable_documents
from curriculum_rag.services.embedding_service import EmbeddingService
from curriculum_rag.services.index_writer import VectorIndexWriter
from curriculum_rag.services.qdrant_service import QdrantService
from curriculum_rag.utils.errors import ChunkingError, VectorStoreError
from curriculum_rag.utils.logging import get_logger, log_stage

logger = get_logger("ingestion_pipeline")


class IngestionPipeline:
    """
    Run documents through validation, chunking, embedding and batched upsert.

    Per-document, per-embedding and per-batch failures are collected into the
    result. The only exception that escapes run() is StoreUnavailableError,
    raised when the vector store cannot be reached or provisioned.
    """

    def __init__(
        self,
        chunking_service: ChunkingService,
        embedding_service: EmbeddingService,
        qdrant_service: QdrantService,
        settings: Optional[Settings] = None,
        index_writer: Optional[VectorIndexWriter] = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._chunking = chunking_service
        self._embeddings = embedding_service
        self._qdrant = qdrant_service
        self._writer = index_writer or VectorIndexWriter(qdrant_service)

    def default_options(self) -> IngestionOptions:
        cfg = self._settings.ingestion
        return IngestionOptions(
            batch_size=cfg.batch_size,
            use_contextualized_content=cfg.use_contextualized_content,
        )

    async def run(
        self,
        documents: List[RawDocument],
        options: Optional[IngestionOptions] = None,
    ) -> IngestionPipelineResult:
        """
        Ingest a batch of documents.

        Args:
            documents: Plain-text curriculum documents
            options: Batch size, contextualized embedding, dry-run, chunking overrides

        Returns:
            IngestionPipelineResult; success is True only when no error was recorded

        Raises:
            StoreUnavailableError: If the vector store is unreachable and cannot be provisioned
        """
        return await self._run(documents, options or self.default_options())

    async def _run(
        self,
        documents: List[RawDocument],
        options: IngestionOptions,
        replace_document_id: Optional[str] = None,
    ) -> IngestionPipelineResult:
        stats = IngestionStats()
        errors: List[IngestionError] = []

        logger.info(
            f"Starting ingestion: documents={len(documents)}, batch_size={options.batch_size}, "
            f"mode={'dry-run' if options.dry_run else 'production'}"
        )

        if not options.dry_run:
            await self._writer.prepare()

        valid_documents: List[RawDocument] = []
        for document in documents:
            problems = document.validation_errors()
            if problems:
                errors.append(
                    IngestionError(
                        document_id=document.id or "unknown",
                        error=f"Validation failed: {', '.join(problems)}",
                    )
                )
                stats.error_count += 1
            else:
                valid_documents.append(document)

        log_stage(
            "validate",
            f"{len(valid_documents)}/{len(documents)} documents valid",
            valid=len(valid_documents),
            invalid=len(documents) - len(valid_documents),
        )

        if not valid_documents:
            stats.end_time = datetime.now(timezone.utc)
            return IngestionPipelineResult(success=False, stats=stats, errors=errors, dry_run=options.dry_run)

        chunking_options = options.chunking or self._chunking.default_options()
        chunks = []
        for document in valid_documents:
            try:
                result = self._chunking.chunk_document(document, chunking_options)
            except ChunkingError as e:
                errors.append(IngestionError(document_id=document.id, error=f"Chunking failed: {e.message}"))
                stats.error_count += 1
                continue

            stats.documents_processed += 1
            subject = stats.by_subject.setdefault(document.matiere, SubjectStats())
            subject.documents += 1
            for chunk in result.chunks:
                subject.chunks += 1
                subject.tokens += chunk.token_count
                stats.tokens_total += chunk.token_count
            stats.chunks_created += len(result.chunks)
            chunks.extend(result.chunks)

        log_stage(
            "chunk",
            f"{stats.chunks_created} chunks, {stats.tokens_total} tokens",
            chunks=stats.chunks_created,
            tokens=stats.tokens_total,
        )

        indexable = to_indexable_documents(chunks, options.use_contextualized_content)
        embedding_results = await self._embeddings.embed_texts([d.content for d in indexable], options.batch_size)

        documents_to_write = []
        vectors = []
        for chunk, doc, embedding in zip(chunks, indexable, embedding_results):
            if embedding.success:
                documents_to_write.append(doc)
                vectors.append(embedding.vector)
                continue
            errors.append(
                IngestionError(
                    document_id=chunk.document_id,
                    chunk_id=chunk.id,
                    error=f"Embedding failed: {embedding.error}",
                )
            )
            stats.error_count += 1
            stats.embeddings_failed += 1

        log_stage(
            "embed",
            f"{len(vectors)}/{len(embedding_results)} embeddings generated",
            generated=len(vectors),
            failed=stats.embeddings_failed,
        )

        collection_stats: Optional[CollectionStats] = None
        if options.dry_run:
            logger.info("Dry-run: upsert skipped")
        elif replace_document_id and vectors and not await self._purge(replace_document_id, errors):
            stats.error_count += 1
            logger.warning(f"Upsert skipped: previous points of {replace_document_id} could not be removed")
        else:
            report = await self._writer.write(documents_to_write, vectors, options.batch_size)
            for failure in report.failures:
                errors.append(
                    IngestionError(
                        document_id=f"batch_{failure.batch_number}",
                        error=f"Upsert failed: {failure.error}",
                    )
                )
                stats.error_count += 1
            log_stage(
                "upsert",
                f"{report.batches_succeeded}/{report.batches_total} batches, {report.points_written} points",
                batches=report.batches_total,
                failed_batches=len(report.failures),
                points=report.points_written,
            )
            collection_stats = await self._writer.collection_stats()

        stats.end_time = datetime.now(timezone.utc)
        self._log_summary(stats, collection_stats)

        return IngestionPipelineResult(
            success=stats.error_count == 0,
            stats=stats,
            errors=errors,
            collection_stats=collection_stats,
            dry_run=options.dry_run,
        )

    async def reindex_document(
        self,
        document: RawDocument,
        options: Optional[IngestionOptions] = None,
    ) -> IngestionPipelineResult:
        """
        Re-ingest one document, replacing its previous points when configured to.

        The old points are removed only once the update has been validated,
        chunked and embedded with at least one vector, right before the upsert.
        A failed removal is recorded as an error and the upsert is skipped, so
        the indexed version stays untouched.
        """
        options = options or self.default_options()
        replace_id = None
        if self._settings.ingestion.purge_on_reindex and document.id and document.id.strip():
            replace_id = document.id
        return await self._run([document], options, replace_document_id=replace_id)

    async def _purge(self, document_id: str, errors: List[IngestionError]) -> bool:
        try:
            await self._qdrant.delete_by_document_id(document_id)
        except VectorStoreError as e:
            errors.append(IngestionError(document_id=document_id, error=f"Purge failed: {e.message}"))
            return False
        return True

    async def get_ingestion_stats(self) -> Optional[CollectionStats]:
        return await self._writer.collection_stats()

    def _log_summary(self, stats: IngestionStats, collection_stats: Optional[CollectionStats]) -> None:
        logger.info(
            f"Ingestion finished in {stats.duration_ms / 1000:.2f}s: documents={stats.documents_processed}, "
            f"chunks={stats.chunks_created}, tokens={stats.tokens_total}, errors={stats.error_count}"
        )
        if collection_stats:
            logger.info(f"Collection: {collection_stats.points_count} points ({collection_stats.status})")
        for matiere, data in stats.by_subject.items():
            logger.debug(f"{matiere}: {data.documents} docs, {data.chunks} chunks, {data.tokens} tokens")
