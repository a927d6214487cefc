"""Chunk models for curriculum content."""

from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class ChunkingOptions(BaseModel):
    """Parameters for sentence-aware chunking."""

    max_tokens: int = Field(default=512, gt=0, description="Maximum tokens per chunk")
    min_tokens: int = Field(default=100, ge=0, description="Minimum tokens for the trailing chunk")
    overlap_percent: int = Field(default=15, ge=0, lt=100, description="Overlap in percent of max_tokens")

    @property
    def overlap_tokens(self) -> int:
        return self.max_tokens * self.overlap_percent // 100


class ChunkMetadata(BaseModel):
    """Taxonomy and neighbourhood information carried by each chunk."""

    model_config = ConfigDict(frozen=True)

    title: str
    niveau: str
    matiere: str
    cycle: str
    domaine: Optional[str] = None
    sousdomaine: Optional[str] = None
    content_type: str = "programme_officiel"
    source: str = ""
    source_url: Optional[str] = None
    chunk_of: int = Field(..., ge=1, description="Total number of chunks in the document")
    previous_chunk_summary: Optional[str] = None
    next_chunk_summary: Optional[str] = None


class ContentChunk(BaseModel):
    """A bounded passage of a document, ready for embedding."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(..., description="Globally unique chunk id (UUID4)")
    document_id: str
    chunk_index: int = Field(..., ge=0)
    content: str = Field(..., description="Verbatim chunk text")
    contextualized_content: str = Field(..., description="Chunk text with document context")
    char_start: int = Field(..., ge=0)
    char_end: int = Field(..., ge=0)
    token_count: int = Field(..., ge=0)
    metadata: ChunkMetadata

    @field_validator("content")
    @classmethod
    def content_not_empty(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("chunk content must not be empty")
        return v


class ChunkingStats(BaseModel):
    total_chunks: int = 0
    avg_tokens_per_chunk: float = 0.0
    min_tokens: int = 0
    max_tokens: int = 0


class ChunkingResult(BaseModel):
    """Chunks produced for one document."""

    chunks: List[ContentChunk] = Field(default_factory=list)
    stats: ChunkingStats = Field(default_factory=ChunkingStats)
