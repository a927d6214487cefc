"""Embedding models."""

from typing import List, Optional

from pydantic import BaseModel, Field


class EmbeddingResult(BaseModel):
    """Outcome of embedding one text; position matches the input order."""

    vector: List[float] = Field(default_factory=list, description="Unit-length embedding vector")
    success: bool = Field(..., description="Whether the provider returned a usable vector")
    text: str = Field(..., description="Text that was embedded")
    error: Optional[str] = Field(default=None, description="Failure reason when success is False")
