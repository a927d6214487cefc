"""Pytest configuration and fixtures for curriculum-rag tests."""

import itertools
import uuid
from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest

from curriculum_rag.config import (
    ChunkingSettings,
    EmbeddingSettings,
    IngestionSettings,
    QdrantSettings,
    RedisSettings,
    RetrievalSettings,
    RetrySettings,
    Settings,
)
from curriculum_rag.models.document import RawDocument
from curriculum_rag.utils.errors import PermanentProviderError, TransientProviderError

DIMENSION = 4


@pytest.fixture
def settings():
    """Clean settings with a configured (fake) Mistral provider and instant retries."""
    return Settings(
        embedding=EmbeddingSettings(
            embedding_provider="mistral",
            mistral_api_key="test-key",
            embedding_dimension=DIMENSION,
            embedding_batch_size=10,
        ),
        qdrant=QdrantSettings(url="http://localhost:6333", api_key=None, collection_name="test_curriculum"),
        chunking=ChunkingSettings(max_tokens=512, min_tokens=100, overlap_percent=15),
        retry=RetrySettings(max_attempts=3, initial_delay=0, multiplier=2, max_delay=0),
        redis=RedisSettings(url=None, key_prefix="test:"),
        retrieval=RetrievalSettings(),
        ingestion=IngestionSettings(batch_size=100),
    )


class FakeEmbeddingsClient:
    """Stands in for AsyncOpenAI: `client.embeddings.create(model=..., input=[...])`."""

    def __init__(self, fail_on=(), transient_failures=0, zero_on=()):
        self.embeddings = self
        self.calls = []
        self.fail_on = tuple(fail_on)
        self.zero_on = tuple(zero_on)
        self.transient_failures = transient_failures

    async def create(self, model, input):
        self.calls.append(list(input))
        if self.transient_failures > 0:
            self.transient_failures -= 1
            raise TransientProviderError("503 Service Unavailable")
        if any(marker in text for text in input for marker in self.fail_on):
            raise PermanentProviderError("400 Bad Request")
        data = []
        for index, text in enumerate(input):
            if any(marker in text for marker in self.zero_on):
                vector = [0.0] * DIMENSION
            else:
                vector = [1.0, float(len(text) % 7 + 1), 0.5, 2.0]
            data.append(SimpleNamespace(embedding=vector, index=index))
        return SimpleNamespace(data=data)


@pytest.fixture
def embeddings_client():
    return FakeEmbeddingsClient()


def make_point(score, **payload):
    base = {
        "title": "Nombres et calculs",
        "niveau": "6e",
        "matiere": "mathematiques",
        "content": "Les fractions permettent de partager.",
        "document_id": "doc-1",
        "chunk_index": 0,
    }
    base.update(payload)
    return SimpleNamespace(id=str(uuid.uuid4()), score=score, payload=base)


@pytest.fixture
def qdrant_client():
    """A synchronous QdrantClient double that answers like a healthy cluster."""
    client = MagicMock()
    client.get_collections.return_value = SimpleNamespace(collections=[SimpleNamespace(name="test_curriculum")])
    client.collection_exists.return_value = True
    client.get_collection.return_value = SimpleNamespace(
        points_count=42,
        segments_count=2,
        status=SimpleNamespace(value="green"),
        indexed_vectors_count=42,
    )
    client.query_points.return_value = SimpleNamespace(points=[])
    client.count.return_value = SimpleNamespace(count=42)
    return client


_ids = itertools.count(1)


@pytest.fixture
def make_document():
    def _make(**overrides):
        data = {
            "id": f"doc-{next(_ids)}",
            "title": "Programme de mathématiques",
            "content": (
                "Les élèves apprennent à utiliser les fractions. "
                "Ils comparent des nombres décimaux comme 12.5 et 3.25. "
                "Ils résolvent des problèmes de proportionnalité."
            ),
            "niveau": "6e",
            "matiere": "mathematiques",
            "cycle": "cycle_3",
            "domaine": "Nombres et calculs",
            "source": "Eduscol",
        }
        data.update(overrides)
        return RawDocument(**data)

    return _make


@pytest.fixture
def clock():
    """Mutable fake clock in seconds."""

    class Clock:
        def __init__(self):
            self.now = 1_000.0

        def __call__(self):
            return self.now

        def advance(self, seconds):
            self.now += seconds

    return Clock()
