"""Composition root: builds every service from settings."""

from dataclasses import dataclass
from typing import Optional

from curriculum_rag.config import Settings, get_settings
from curriculum_rag.services.cache_service import CacheService
from curriculum_rag.services.cache_store import CacheStore, InMemoryCacheStore, RedisCacheStore
from curriculum_rag.services.chunking_service import ChunkingService
from curriculum_rag.services.embedding_service import EmbeddingService
from curriculum_rag.services.index_writer import VectorIndexWriter
from curriculum_rag.services.ingestion_pipeline import IngestionPipeline
from curriculum_rag.services.qdrant_service import QdrantService
from curriculum_rag.services.retrieval_service import HybridSearchService, RetrievalService
from curriculum_rag.utils.logging import get_logger

logger = get_logger("container")


@dataclass
class Container:
    settings: Settings
    cache: CacheService
    chunking_service: ChunkingService
    embedding_service: EmbeddingService
    qdrant_service: QdrantService
    ingestion_pipeline: IngestionPipeline
    search_service: HybridSearchService
    retrieval_service: RetrievalService

    async def startup(self) -> None:
        await self.cache.connect()
        store = self.cache.store
        if isinstance(store, InMemoryCacheStore):
            store.start_sweeper()

    async def shutdown(self) -> None:
        await self.cache.close()
        self.qdrant_service.close()
        logger.info("Services shut down")


def build_cache_store(settings: Settings) -> Optional[CacheStore]:
    """Redis when REDIS_URL is set, in-process otherwise, None when caching is disabled."""
    if not settings.redis.enabled:
        logger.info("Caching disabled")
        return None
    if settings.redis.is_configured:
        return RedisCacheStore(settings.redis)
    return InMemoryCacheStore(sweep_interval=settings.redis.sweep_interval)


def build_container(
    settings: Optional[Settings] = None,
    *,
    qdrant_client=None,
    embedding_client=None,
    cache_store: Optional[CacheStore] = None,
) -> Container:
    """
    Wire the services together.

    Clients and the cache store can be injected (tests pass fakes); anything
    not given is created lazily from settings.
    """
    settings = settings or get_settings()

    store = cache_store if cache_store is not None else build_cache_store(settings)
    cache = CacheService(store, settings.redis)

    chunking_service = ChunkingService(settings)
    embedding_service = EmbeddingService(settings, client=embedding_client, cache=cache)
    qdrant_service = QdrantService(settings, client=qdrant_client)
    ingestion_pipeline = IngestionPipeline(
        chunking_service,
        embedding_service,
        qdrant_service,
        settings=settings,
        index_writer=VectorIndexWriter(qdrant_service),
    )
    search_service = HybridSearchService(embedding_service, qdrant_service, settings)
    retrieval_service = RetrievalService(search_service, cache=cache, settings=settings)

    logger.info(
        f"Container built: embeddings={settings.embedding.provider.value}/{embedding_service.model_name}, "
        f"collection={settings.qdrant.collection_name}, cache={cache.backend}"
    )
    return Container(
        settings=settings,
        cache=cache,
        chunking_service=chunking_service,
        embedding_service=embedding_service,
        qdrant_service=qdrant_service,
        ingestion_pipeline=ingestion_pipeline,
        search_service=search_service,
        retrieval_service=retrieval_service,
    )
