"""Vector index models."""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


class IndexableDocument(BaseModel):
    """A chunk projected into what is embedded and what is stored."""

    id: str = Field(..., description="Point id (the chunk id)")
    content: str = Field(..., description="Text sent to the embedding provider")
    payload: Dict[str, Any] = Field(default_factory=dict, description="Point payload")


class CollectionStats(BaseModel):
    points_count: int = 0
    segments_count: int = 0
    status: str = "grey"
    indexed_vectors_count: Optional[int] = None


class BatchFailure(BaseModel):
    batch_number: int = Field(..., ge=1, description="1-based batch number")
    error: str
    size: int = 0


class UpsertReport(BaseModel):
    """Result of a batched write."""

    batches_total: int = 0
    batches_succeeded: int = 0
    points_written: int = 0
    failures: List[BatchFailure] = Field(default_factory=list)

    @property
    def success(self) -> bool:
        return not self.failures
