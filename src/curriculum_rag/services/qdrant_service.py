"""Qdrant integration service for the curriculum collection."""

from __future__ import annotations

import asyncio
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from qdrant_client import QdrantClient
from qdrant_client.models import (
    Distance,
    FieldCondition,
    Filter,
    FilterSelector,
    HnswConfigDiff,
    MatchValue,
    OptimizersConfigDiff,
    PayloadSchemaType,
    PointIdsList,
    PointStruct,
    SearchParams,
    VectorParams,
)

from curriculum_rag.config import Settings, get_settings
from curriculum_rag.models.index import CollectionStats, IndexableDocument
from curriculum_rag.models.search import SearchHit
from curriculum_rag.utils.errors import VectorStoreError
from curriculum_rag.utils.logging import get_logger

logger = get_logger("qdrant_service")

PAYLOAD_INDEX_FIELDS = (
    "niveau",
    "matiere",
    "cycle",
    "domaine",
    "sousdomaine",
    "content_type",
    "document_id",
)


def build_filter(niveau: Optional[str] = None, matiere: Optional[str] = None) -> Optional[Filter]:
    """Keyword filter on level and subject; None when neither is given."""
    conditions = []
    if niveau:
        conditions.append(FieldCondition(key="niveau", match=MatchValue(value=niveau)))
    if matiere:
        conditions.append(FieldCondition(key="matiere", match=MatchValue(value=matiere)))
    if not conditions:
        return None
    return Filter(must=conditions)


def _hit_from_point(point: Any) -> SearchHit:
    payload: Dict[str, Any] = dict(point.payload or {})
    return SearchHit(
        id=str(point.id),
        score=float(point.score),
        content=payload.get("content", ""),
        title=payload.get("title", ""),
        niveau=payload.get("niveau", ""),
        matiere=payload.get("matiere", ""),
        domaine=payload.get("domaine"),
        sousdomaine=payload.get("sousdomaine"),
        document_id=payload.get("document_id"),
        chunk_index=payload.get("chunk_index"),
        source=payload.get("source"),
        source_url=payload.get("source_url"),
        payload=payload,
    )


class QdrantService:
    """
    Store and query curriculum chunks in a single Qdrant collection.

    The collection holds one named dense vector (cosine) per point and keyword
    payload indexes on the taxonomy fields used for filtering. The synchronous
    QdrantClient is driven through asyncio.to_thread.
    """

    def __init__(self, settings: Optional[Settings] = None, client: Optional[QdrantClient] = None) -> None:
        self._settings = settings or get_settings()
        self._client = client

    @property
    def collection_name(self) -> str:
        return self._settings.qdrant.collection_name

    @property
    def vector_name(self) -> str:
        return self._settings.qdrant.vector_name

    def _get_client(self) -> QdrantClient:
        if self._client is not None:
            return self._client

        cfg = self._settings.qdrant
        self._client = QdrantClient(url=cfg.url, api_key=cfg.api_key, timeout=cfg.timeout)
        logger.info(f"Qdrant client initialized for {cfg.url}")
        return self._client

    async def health_check(self) -> bool:
        """Return True when the cluster answers a collection listing; never raises."""
        try:
            result = await asyncio.to_thread(lambda: self._get_client().get_collections())
            logger.debug(f"Qdrant health check OK - {len(result.collections)} collections")
            return True
        except Exception as e:
            logger.error(f"Qdrant health check failed: {e}")
            return False

    async def create_collection(self, vector_size: Optional[int] = None) -> bool:
        """
        Create the collection and its payload indexes if it does not exist.

        Returns:
            True if the collection was created, False if it already existed

        Raises:
            VectorStoreError: If creation fails
        """
        name = self.collection_name
        size = vector_size or self._settings.qdrant.vector_size

        def _create() -> bool:
            client = self._get_client()
            if client.collection_exists(name):
                return False

            client.create_collection(
                collection_name=name,
                vectors_config={self.vector_name: VectorParams(size=size, distance=Distance.COSINE)},
                optimizers_config=OptimizersConfigDiff(
                    indexing_threshold=self._settings.qdrant.indexing_threshold
                ),
                hnsw_config=HnswConfigDiff(m=16, ef_construct=100),
            )
            for field in PAYLOAD_INDEX_FIELDS:
                client.create_payload_index(
                    collection_name=name,
                    field_name=field,
                    field_schema=PayloadSchemaType.KEYWORD,
                )
            return True

        try:
            created = await asyncio.to_thread(_create)
        except Exception as e:
            raise VectorStoreError(
                "Failed to create Qdrant collection",
                details={"collection": name, "error": str(e)},
            ) from e

        if created:
            logger.info(
                f"Qdrant collection created: {name} (vector_size={size}, "
                f"payload_indexes={len(PAYLOAD_INDEX_FIELDS)})"
            )
        else:
            logger.info(f"Qdrant collection already exists: {name}")
        return created

    async def upsert_points(self, documents: List[IndexableDocument], vectors: List[List[float]]) -> int:
        """
        Upsert points (full replace by id); documents and vectors are aligned by position.

        Raises:
            VectorStoreError: If the lengths differ or the write fails
        """
        if len(documents) != len(vectors):
            raise VectorStoreError(
                "Documents and vectors length mismatch",
                details={"documents": len(documents), "vectors": len(vectors)},
            )
        if not documents:
            return 0

        now = datetime.now(timezone.utc).isoformat()
        points = [
            PointStruct(
                id=doc.id,
                vector={self.vector_name: vector},
                payload={
                    **doc.payload,
                    "content": doc.payload.get("content", doc.content),
                    "created_at": now,
                    "updated_at": now,
                },
            )
            for doc, vector in zip(documents, vectors)
        ]

        try:
            await asyncio.to_thread(
                lambda: self._get_client().upsert(collection_name=self.collection_name, points=points, wait=True)
            )
        except Exception as e:
            logger.error(f"Qdrant upsert failed: points={len(points)}, error={e}")
            raise VectorStoreError(
                "Failed to upsert points into Qdrant",
                details={"collection": self.collection_name, "points": len(points), "error": str(e)},
            ) from e

        logger.info(f"Qdrant upsert complete: collection={self.collection_name}, points={len(points)}")
        return len(points)

    async def get_collection_stats(self) -> Optional[CollectionStats]:
        """Collection statistics, or None if the collection cannot be read."""
        try:
            info = await asyncio.to_thread(lambda: self._get_client().get_collection(self.collection_name))
        except Exception as e:
            logger.error(f"Error getting Qdrant collection stats: {e}")
            return None

        status = getattr(info.status, "value", info.status)
        return CollectionStats(
            points_count=info.points_count or 0,
            segments_count=info.segments_count or 0,
            status=str(status),
            indexed_vectors_count=info.indexed_vectors_count,
        )

    async def search(
        self,
        vector: List[float],
        niveau: Optional[str] = None,
        matiere: Optional[str] = None,
        limit: int = 5,
        score_threshold: Optional[float] = None,
    ) -> List[SearchHit]:
        """
        Cosine similarity query restricted to level and subject.

        Raises:
            VectorStoreError: If the query fails
        """

        def _query():
            return self._get_client().query_points(
                collection_name=self.collection_name,
                query=vector,
                using=self.vector_name,
                query_filter=build_filter(niveau, matiere),
                limit=limit,
                score_threshold=score_threshold,
                with_payload=True,
                search_params=SearchParams(hnsw_ef=self._settings.retrieval.hnsw_ef),
            )

        try:
            response = await asyncio.to_thread(_query)
        except Exception as e:
            raise VectorStoreError(
                "Qdrant query failed",
                details={"collection": self.collection_name, "error": str(e)},
            ) from e

        return [_hit_from_point(p) for p in response.points]

    async def delete_points(self, ids: List[str]) -> None:
        if not ids:
            return
        try:
            await asyncio.to_thread(
                lambda: self._get_client().delete(
                    collection_name=self.collection_name,
                    points_selector=PointIdsList(points=ids),
                    wait=True,
                )
            )
        except Exception as e:
            raise VectorStoreError("Failed to delete points", details={"error": str(e)}) from e
        logger.info(f"Deleted {len(ids)} points from {self.collection_name}")

    async def delete_by_document_id(self, document_id: str) -> None:
        """Remove every point that belongs to a source document."""
        selector = FilterSelector(
            filter=Filter(must=[FieldCondition(key="document_id", match=MatchValue(value=document_id))])
        )
        try:
            await asyncio.to_thread(
                lambda: self._get_client().delete(
                    collection_name=self.collection_name,
                    points_selector=selector,
                    wait=True,
                )
            )
        except Exception as e:
            raise VectorStoreError(
                "Failed to delete document points",
                details={"document_id": document_id, "error": str(e)},
            ) from e
        logger.info(f"Deleted points of document {document_id}")

    async def count_points(self) -> int:
        try:
            result = await asyncio.to_thread(
                lambda: self._get_client().count(collection_name=self.collection_name, exact=True)
            )
            return result.count
        except Exception as e:
            logger.error(f"Error counting Qdrant points: {e}")
            return 0

    async def get_point(self, point_id: str) -> Optional[Dict[str, Any]]:
        """Payload of a point, or None if missing or unreadable."""
        try:
            records = await asyncio.to_thread(
                lambda: self._get_client().retrieve(
                    collection_name=self.collection_name, ids=[point_id], with_payload=True
                )
            )
        except Exception as e:
            logger.error(f"Error getting Qdrant point {point_id}: {e}")
            return None
        if not records:
            return None
        return dict(records[0].payload or {})

    def close(self) -> None:
        if self._client is not None:
            self._client.close()
            self._client = None
