"""Search and retrieval models."""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


class SearchHit(BaseModel):
    """A passage returned by a similarity query."""

    id: str
    score: float
    content: str = ""
    title: str = ""
    niveau: str = ""
    matiere: str = ""
    domaine: Optional[str] = None
    sousdomaine: Optional[str] = None
    document_id: Optional[str] = None
    chunk_index: Optional[int] = None
    source: Optional[str] = None
    source_url: Optional[str] = None
    payload: Dict[str, Any] = Field(default_factory=dict)


class SearchResult(BaseModel):
    query: str
    hits: List[SearchHit] = Field(default_factory=list)
    total_found: int = 0
    search_time_ms: float = 0.0
    available: bool = True


class RetrievalSource(BaseModel):
    id: str
    similarity: float
    niveau: str
    matiere: str
    titre: str


class RetrievalContext(BaseModel):
    """Formatted passages ready for prompt assembly."""

    context: str = ""
    sources: List[RetrievalSource] = Field(default_factory=list)
    search_time: float = Field(default=0.0, description="Search time in milliseconds")
    total_documents: int = 0
    average_similarity: float = 0.0
    found: bool = False
    matiere_used: Optional[str] = None
    best_match_title: Optional[str] = None
    best_match_domaine: Optional[str] = None
