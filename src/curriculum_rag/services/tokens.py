"""Token estimation strategies used for chunk sizing."""

import math
from typing import Optional

from curriculum_rag.config import ChunkingSettings, TokenEstimator


class ApproxTokenEstimator:
    """Character-ratio estimate: about four characters per token for French text."""

    chars_per_token = 4

    def count(self, text: str) -> int:
        return math.ceil(len(text) / self.chars_per_token)


class TiktokenEstimator:
    """Exact count using a tiktoken encoding."""

    def __init__(self, encoding_name: str = "cl100k_base"):
        import tiktoken

        self._encoding = tiktoken.get_encoding(encoding_name)

    def count(self, text: str) -> int:
        return len(self._encoding.encode(text))


def build_token_estimator(chunking: Optional[ChunkingSettings] = None):
    """Return the estimator selected by CHUNK_TOKEN_ESTIMATOR."""
    chunking = chunking or ChunkingSettings()
    if chunking.token_estimator == TokenEstimator.TIKTOKEN:
        return TiktokenEstimator(chunking.tiktoken_encoding)
    return ApproxTokenEstimator()
