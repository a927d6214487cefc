"""Batched writes to the vector index with per-batch failure isolation."""

import math
from typing import List, Optional

from curriculum_rag.models.index import BatchFailure, CollectionStats, IndexableDocument, UpsertReport
from curriculum_rag.services.qdrant_service import QdrantService
from curriculum_rag.utils.errors import StoreUnavailableError, VectorStoreError
from curriculum_rag.utils.logging import get_logger

logger = get_logger("index_writer")


class VectorIndexWriter:
    """Prepare the collection and upsert points in fixed-size batches."""

    def __init__(self, store: QdrantService) -> None:
        self._store = store

    async def prepare(self) -> None:
        """
        Make sure the store is reachable and the collection exists.

        If the health check fails, one provisioning attempt is made.

        Raises:
            StoreUnavailableError: If provisioning fails too
        """
        if await self._store.health_check():
            logger.info("Vector store connected")
        else:
            logger.warning("Vector store unreachable, attempting to provision the collection")

        try:
            await self._store.create_collection()
        except VectorStoreError as e:
            raise StoreUnavailableError(
                f"Vector store connection failed: {e.message}",
                details=e.details,
            ) from e

    async def write(
        self,
        documents: List[IndexableDocument],
        vectors: List[List[float]],
        batch_size: int = 100,
    ) -> UpsertReport:
        """
        Upsert aligned documents and vectors in ceil(N / batch_size) batches.

        A failed batch is recorded and the remaining batches still run.
        """
        if len(documents) != len(vectors):
            raise VectorStoreError(
                "Documents and vectors length mismatch",
                details={"documents": len(documents), "vectors": len(vectors)},
            )

        batch_size = max(1, batch_size)
        total_batches = math.ceil(len(documents) / batch_size)
        report = UpsertReport(batches_total=total_batches)

        for start in range(0, len(documents), batch_size):
            batch_number = start // batch_size + 1
            batch_docs = documents[start : start + batch_size]
            batch_vectors = vectors[start : start + batch_size]
            logger.debug(f"Batch {batch_number}/{total_batches}: {len(batch_docs)} points")

            try:
                report.points_written += await self._store.upsert_points(batch_docs, batch_vectors)
                report.batches_succeeded += 1
            except Exception as e:
                message = e.message if isinstance(e, VectorStoreError) else str(e)
                if isinstance(e, VectorStoreError) and e.details.get("error"):
                    message = f"{message}: {e.details['error']}"
                logger.error(f"Batch {batch_number} failed: {message}")
                report.failures.append(BatchFailure(batch_number=batch_number, error=message, size=len(batch_docs)))

        return report

    async def collection_stats(self) -> Optional[CollectionStats]:
        return await self._store.get_collection_stats()
