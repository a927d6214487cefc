"""Similarity search over the curriculum collection and prompt-context formatting."""

import asyncio
import time
from typing import List, Optional

from curriculum_rag.config import Settings, get_settings
from curriculum_rag.models.search import RetrievalContext, RetrievalSource, SearchHit, SearchResult
from curriculum_rag.services.cache_service import CacheService, Namespace, hash_text, normalize_query
from curriculum_rag.services.embedding_service import EmbeddingService
from curriculum_rag.services.qdrant_service import QdrantService
from curriculum_rag.utils.errors import EmbeddingError, RetrievalError, VectorStoreError
from curriculum_rag.utils.logging import get_logger

logger = get_logger("retrieval_service")

CONTEXT_HEADER = "\U0001f4da PROGRAMMES OFFICIELS"
CONTEXT_FOOTER = "⚠️ Utilise UNIQUEMENT ces informations officielles pour répondre."
CONTEXT_SEPARATOR = "\n\n---\n\n"


def format_context(hits: List[SearchHit], max_length: Optional[int] = None) -> str:
    """Render hits as a numbered block framed by the official-programme header and footer."""
    if not hits:
        return ""

    parts = []
    length = 0
    for index, hit in enumerate(hits, start=1):
        part = f"[{index}] {hit.title} ({hit.niveau} - {hit.matiere}) [{hit.score * 100:.0f}%]\n{hit.content}"
        if max_length and parts and length + len(part) > max_length:
            break
        parts.append(part)
        length += len(part) + len(CONTEXT_SEPARATOR)

    return f"{CONTEXT_HEADER}\n\n{CONTEXT_SEPARATOR.join(parts)}\n\n{CONTEXT_FOOTER}"


class HybridSearchService:
    """Embed a query and run a filtered cosine search, keeping only hits above a floor."""

    def __init__(
        self,
        embedding_service: EmbeddingService,
        qdrant_service: QdrantService,
        settings: Optional[Settings] = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._embeddings = embedding_service
        self._qdrant = qdrant_service

    async def is_available(self) -> bool:
        try:
            store_ok, provider_ok = await asyncio.gather(
                self._qdrant.health_check(),
                self._embeddings.is_available(),
            )
        except Exception as e:
            logger.warning(f"Availability probe failed: {e}")
            return False
        return store_ok and provider_ok

    async def search(
        self,
        query: str,
        niveau: Optional[str] = None,
        matiere: Optional[str] = None,
        limit: Optional[int] = None,
        min_score: Optional[float] = None,
    ) -> SearchResult:
        """
        Ranked hits for a query within a level and subject.

        Returns an empty result with available=False when the store or the
        embedding provider is down.

        Raises:
            RetrievalError: If embedding or the store query fails once both are up
        """
        cfg = self._settings.retrieval
        limit = min(limit or cfg.default_limit, cfg.max_limit)
        min_score = cfg.min_score if min_score is None else min_score
        start = time.perf_counter()

        if not await self.is_available():
            logger.warning("Retrieval not available: vector store or embedding provider down")
            return SearchResult(query=query, available=False)

        try:
            vector = await self._embeddings.embed_query(query)
            candidates = await self._qdrant.search(
                vector,
                niveau=niveau,
                matiere=matiere,
                limit=max(limit, cfg.search_limit),
                score_threshold=min_score,
            )
        except (EmbeddingError, VectorStoreError) as e:
            logger.error(f"Search failed for query={query[:50]!r} niveau={niveau} matiere={matiere}: {e.message}")
            raise RetrievalError(f"Search failed: {e.message}", details=e.details) from e

        hits = sorted((h for h in candidates if h.score >= min_score), key=lambda h: h.score, reverse=True)
        elapsed_ms = (time.perf_counter() - start) * 1000

        logger.info(
            f"Search completed: niveau={niveau}, matiere={matiere}, candidates={len(candidates)}, "
            f"kept={len(hits)}, top={hits[0].score if hits else 'N/A'}, time={elapsed_ms:.0f}ms"
        )
        return SearchResult(
            query=query,
            hits=hits[:limit],
            total_found=len(hits),
            search_time_ms=elapsed_ms,
        )


class RetrievalService:
    """
    Cached retrieval for prompt assembly.

    Contexts are cached in the rag namespace and ranked hits in the search
    namespace, both keyed on level, subject and a hash of the normalized query.
    """

    def __init__(
        self,
        search_service: HybridSearchService,
        cache: Optional[CacheService] = None,
        settings: Optional[Settings] = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._search = search_service
        self._cache = cache

    def get_thresholds(self) -> dict:
        cfg = self._settings.retrieval
        return {"min_score": cfg.min_score, "good_score": cfg.good_score, "excellent_score": cfg.high_score}

    async def search_passages(
        self,
        query: str,
        niveau: str,
        matiere: str,
        limit: Optional[int] = None,
        min_score: Optional[float] = None,
    ) -> SearchResult:
        key = f"{niveau}:{matiere}:{limit}:{min_score}:{hash_text(normalize_query(query))}"
        if self._cache is not None:
            cached = await self._cache.get(Namespace.SEARCH, key)
            if cached is not None:
                return SearchResult.model_validate(cached)

        result = await self._search.search(query, niveau, matiere, limit, min_score)
        if self._cache is not None and result.available and result.hits:
            await self._cache.set(Namespace.SEARCH, key, result.model_dump(mode="json"))
        return result

    async def get_context(
        self,
        query: str,
        niveau: str,
        matiere: str,
        limit: Optional[int] = None,
        min_similarity: Optional[float] = None,
        fallback_matiere: Optional[str] = None,
    ) -> RetrievalContext:
        """
        Formatted passages for a question at a level and subject.

        When nothing qualifies and fallback_matiere is given, the search is
        repeated with that subject. Only non-empty contexts are cached, keyed
        on the effective limit, similarity floor and fallback subject.
        """
        cfg = self._settings.retrieval
        limit = min(limit or cfg.default_limit, cfg.max_limit)
        min_similarity = cfg.min_score if min_similarity is None else min_similarity
        variant = f"{limit}:{min_similarity}:{fallback_matiere or '-'}"

        if self._cache is not None:
            cached = await self._cache.get_rag_context(query, niveau, matiere, variant)
            if cached is not None:
                logger.debug(f"RAG context cache hit: niveau={niveau}, matiere={matiere}")
                return RetrievalContext.model_validate(cached)

        matiere_used = matiere
        result = await self._search.search(query, niveau, matiere, limit, min_similarity)
        if not result.hits and fallback_matiere and fallback_matiere != matiere and result.available:
            logger.info(f"No passages for matiere={matiere}, falling back to {fallback_matiere}")
            result = await self._search.search(query, niveau, fallback_matiere, limit, min_similarity)
            matiere_used = fallback_matiere

        context = self._build_context(result, matiere_used)

        if self._cache is not None and context.found:
            await self._cache.cache_rag_context(
                query, niveau, matiere, context.model_dump(mode="json"), variant
            )
        return context

    def _build_context(self, result: SearchResult, matiere_used: str) -> RetrievalContext:
        hits = result.hits
        if not hits:
            return RetrievalContext(search_time=result.search_time_ms, matiere_used=matiere_used)

        best = hits[0]
        return RetrievalContext(
            context=format_context(hits, self._settings.retrieval.context_max_length),
            sources=[
                RetrievalSource(
                    id=h.id,
                    similarity=h.score,
                    niveau=h.niveau,
                    matiere=h.matiere,
                    titre=h.title,
                )
                for h in hits
            ],
            search_time=result.search_time_ms,
            total_documents=len(hits),
            average_similarity=sum(h.score for h in hits) / len(hits),
            found=True,
            matiere_used=matiere_used,
            best_match_title=best.title,
            best_match_domaine=best.domaine,
        )
