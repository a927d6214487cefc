"""Embedding generation service (provider-agnostic)."""

from __future__ import annotations

import asyncio
import math
from typing import TYPE_CHECKING, List, Optional

from curriculum_rag.config import EmbeddingProvider, Settings, get_settings
from curriculum_rag.models.embedding import EmbeddingResult
from curriculum_rag.utils.errors import (
    EmbeddingError,
    PermanentProviderError,
    TransientProviderError,
)
from curriculum_rag.utils.logging import get_logger
from curriculum_rag.utils.retry import with_retry

if TYPE_CHECKING:
    from curriculum_rag.services.cache_service import CacheService

logger = get_logger("embedding_service")

TRANSIENT_STATUS_CODES = {408, 429, 500, 502, 503, 504}


def classify_provider_error(error: Exception, model: Optional[str] = None) -> EmbeddingError:
    """Map a client exception onto the transient/permanent split used for retries."""
    if isinstance(error, EmbeddingError):
        return error

    import openai

    message = f"Embedding request failed: {error}"
    if isinstance(error, (openai.APITimeoutError, openai.APIConnectionError, openai.RateLimitError)):
        return TransientProviderError(message, model=model)
    if isinstance(error, openai.APIStatusError):
        details = {"status_code": error.status_code}
        if error.status_code in TRANSIENT_STATUS_CODES:
            return TransientProviderError(message, model=model, details=details)
        return PermanentProviderError(message, model=model, details=details)
    if isinstance(error, (asyncio.TimeoutError, ConnectionError)):
        return TransientProviderError(message, model=model)
    return PermanentProviderError(message, model=model)


def normalize(vector: List[float]) -> List[float]:
    """Scale a vector to unit length; a zero vector is a permanent error."""
    norm = math.sqrt(sum(x * x for x in vector))
    if norm == 0:
        raise PermanentProviderError("Provider returned a zero vector")
    return [x / norm for x in vector]


class EmbeddingService:
    """
    Generate embeddings using a configurable OpenAI-compatible provider.

    Providers:
    - mistral: Mistral's OpenAI-compatible endpoint (mistral-embed, 1024 dims)
    - openai: OpenAI direct API
    - azure: Azure OpenAI (requires deployment + quota)
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        client=None,
        cache: Optional["CacheService"] = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._provider = self._settings.embedding.provider
        self._model_name = self._settings.embedding.resolved_model_name
        self._client = client  # lazy when not injected
        self._cache = cache

    @property
    def model_name(self) -> str:
        return self._model_name

    def _get_client(self):
        """Create the appropriate OpenAI client for the selected provider."""
        if self._client is not None:
            return self._client

        from openai import AsyncAzureOpenAI, AsyncOpenAI

        cfg = self._settings.embedding

        if self._provider == EmbeddingProvider.MISTRAL:
            if not cfg.mistral_api_key:
                raise PermanentProviderError(
                    "MISTRAL_API_KEY is required when EMBEDDING_PROVIDER=mistral",
                    model=self._model_name,
                )
            self._client = AsyncOpenAI(
                api_key=cfg.mistral_api_key,
                base_url=cfg.mistral_base_url,
                timeout=cfg.timeout,
                max_retries=0,
            )
            return self._client

        if self._provider == EmbeddingProvider.OPENAI:
            if not cfg.openai_api_key:
                raise PermanentProviderError(
                    "OPENAI_API_KEY is required when EMBEDDING_PROVIDER=openai",
                    model=self._model_name,
                )
            self._client = AsyncOpenAI(
                api_key=cfg.openai_api_key,
                base_url=cfg.openai_base_url,
                timeout=cfg.timeout,
                max_retries=0,
            )
            return self._client

        if self._provider == EmbeddingProvider.AZURE:
            if not cfg.is_configured:
                raise PermanentProviderError(
                    "Azure embeddings require AZURE_OPENAI_ENDPOINT, AZURE_OPENAI_API_KEY, and EMBEDDING_DEPLOYMENT_NAME",
                    model=self._model_name,
                )
            self._client = AsyncAzureOpenAI(
                api_key=cfg.azure_openai_api_key,
                azure_endpoint=cfg.azure_openai_endpoint,
                api_version=cfg.azure_openai_api_version,
                timeout=cfg.timeout,
                max_retries=0,
            )
            return self._client

        raise PermanentProviderError(f"Unsupported embedding provider: {self._provider}", model=self._model_name)

    async def _embed_batch(self, inputs: List[str]) -> List[List[float]]:
        """Embed one batch of texts, returning unit-length vectors in input order."""
        client = self._get_client()
        try:
            resp = await client.embeddings.create(model=self._model_name, input=inputs)
        except Exception as e:
            raise classify_provider_error(e, self._model_name) from e

        data = sorted(resp.data, key=lambda d: d.index)
        if len(data) != len(inputs):
            raise PermanentProviderError(
                "Embedding response size mismatch",
                model=self._model_name,
                details={"expected": len(inputs), "got": len(data)},
            )

        expected_dim = self._settings.embedding.embedding_dimension
        vectors = []
        for d in data:
            if expected_dim is not None and len(d.embedding) != expected_dim:
                raise PermanentProviderError(
                    "Embedding dimension mismatch",
                    model=self._model_name,
                    details={"expected_dimension": expected_dim, "actual_dimension": len(d.embedding)},
                )
            vectors.append(normalize(list(d.embedding)))
        return vectors

    async def _embed_batch_with_retry(self, inputs: List[str]) -> List[List[float]]:
        return await with_retry(lambda: self._embed_batch(inputs), self._settings.retry)

    async def embed_query(self, text: str) -> List[float]:
        """
        Embed a single query text.

        Raises:
            EmbeddingError: If the provider fails after retries
        """
        if not text or not text.strip():
            raise PermanentProviderError("Cannot embed empty text", model=self._model_name)

        if self._cache is not None:
            cached = await self._cache.get_embedding(text, self._model_name)
            if cached is not None:
                return cached

        vectors = await self._embed_batch_with_retry([text])
        vector = vectors[0]

        if self._cache is not None:
            await self._cache.cache_embedding(text, vector, self._model_name)
        return vector

    async def embed_texts(self, texts: List[str], batch_size: Optional[int] = None) -> List[EmbeddingResult]:
        """
        Embed many texts, tolerating partial failures.

        Batches are sent one after another. When a whole batch fails after
        retries, its items are retried one by one so a single bad input only
        fails itself.

        Args:
            texts: Texts to embed
            batch_size: Texts per provider call (defaults to settings.embedding.batch_size)

        Returns:
            One EmbeddingResult per input, in input order
        """
        if not texts:
            return []

        batch_size = max(1, batch_size or self._settings.embedding.batch_size)
        provider_str = self._provider.value if hasattr(self._provider, "value") else str(self._provider)
        logger.info(
            f"Generating embeddings: provider={provider_str}, model={self._model_name}, "
            f"texts={len(texts)}, batch_size={batch_size}"
        )

        results: List[EmbeddingResult] = []
        for start in range(0, len(texts), batch_size):
            batch = texts[start : start + batch_size]
            batch_number = start // batch_size + 1
            try:
                vectors = await self._embed_batch_with_retry(batch)
                results.extend(EmbeddingResult(vector=v, success=True, text=t) for t, v in zip(batch, vectors))
                continue
            except EmbeddingError as e:
                logger.warning(f"Embedding batch {batch_number} failed, retrying items individually: {e.message}")

            for text in batch:
                results.append(await self._embed_single(text))

        failed = sum(1 for r in results if not r.success)
        logger.info(f"Embeddings generated: success={len(results) - failed}, failed={failed}")
        return results

    async def _embed_single(self, text: str) -> EmbeddingResult:
        try:
            vectors = await self._embed_batch_with_retry([text])
        except EmbeddingError as e:
            return EmbeddingResult(success=False, text=text, error=e.message)
        return EmbeddingResult(vector=vectors[0], success=True, text=text)

    async def is_available(self) -> bool:
        """Probe the provider with a tiny request; never raises."""
        if not self._settings.embedding.is_configured and self._client is None:
            return False
        try:
            await self._embed_batch(["test"])
            return True
        except Exception as e:
            logger.warning(f"Embedding provider unavailable: {e}")
            return False
