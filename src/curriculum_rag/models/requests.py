"""Request bodies for the HTTP API."""

from typing import List, Optional

from pydantic import BaseModel, Field

from curriculum_rag.models.document import RawDocument
from curriculum_rag.models.ingestion import IngestionOptions


class IngestionRunRequest(BaseModel):
    documents: List[RawDocument] = Field(..., description="Documents to ingest")
    options: Optional[IngestionOptions] = None


class ReindexRequest(BaseModel):
    document: RawDocument
    options: Optional[IngestionOptions] = None


class SearchRequest(BaseModel):
    query: str = Field(..., min_length=1, description="User question")
    niveau: str = Field(..., min_length=1, description="School level")
    matiere: str = Field(..., min_length=1, description="Subject")
    limit: Optional[int] = Field(default=None, ge=1, le=50)
    min_score: Optional[float] = Field(default=None, ge=0.0, le=1.0)
    fallback_matiere: Optional[str] = Field(default=None, description="Subject to try when nothing matches")


class InvalidateRequest(BaseModel):
    pattern: str = Field(..., min_length=1, description="Glob pattern, e.g. 'rag:6e:*'")
