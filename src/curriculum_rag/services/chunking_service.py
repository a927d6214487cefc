"""Sentence-aware chunking service for curriculum documents."""

import uuid
from typing import Any, Dict, Iterable, List, Optional

from curriculum_rag.config import Settings, get_settings
from curriculum_rag.models.chunk import (
    ChunkingOptions,
    ChunkingResult,
    ChunkingStats,
    ChunkMetadata,
    ContentChunk,
)
from curriculum_rag.models.document import RawDocument
from curriculum_rag.models.index import IndexableDocument
from curriculum_rag.services.enrichment import NEIGHBOUR_SUMMARY_LENGTH, enrich_chunk
from curriculum_rag.services.segmenter import short_summary, split_sentences
from curriculum_rag.services.tokens import build_token_estimator
from curriculum_rag.utils.errors import ChunkingError
from curriculum_rag.utils.logging import get_logger

logger = get_logger("chunking_service")


class ChunkingService:
    """
    Split documents into bounded, overlapping passages that never cut a sentence.

    Sentences are packed greedily up to max_tokens. When a chunk is closed, the
    next one starts with the trailing sentences of the previous chunk that fit
    in the overlap budget. A single sentence larger than max_tokens becomes its
    own chunk. A trailing chunk smaller than min_tokens is merged into the
    previous one.
    """

    def __init__(self, settings: Optional[Settings] = None, token_estimator=None):
        self._settings = settings or get_settings()
        self._estimator = token_estimator or build_token_estimator(self._settings.chunking)

    def default_options(self) -> ChunkingOptions:
        cfg = self._settings.chunking
        return ChunkingOptions(
            max_tokens=cfg.max_tokens,
            min_tokens=cfg.min_tokens,
            overlap_percent=cfg.overlap_percent,
        )

    def count_tokens(self, text: str) -> int:
        return self._estimator.count(text)

    def group_sentences(self, sentences: List[str], options: ChunkingOptions) -> List[str]:
        """Pack sentences into chunk strings (sentences joined by single spaces).

        Sizes are measured on the joined text, so separators count toward
        max_tokens.
        """
        chunks: List[List[str]] = []
        current: List[str] = []
        # Leading sentences of `current` that were copied from the previous chunk
        carried = 0

        for sentence in sentences:
            if self.count_tokens(sentence) > options.max_tokens:
                if len(current) > carried:
                    chunks.append(current)
                chunks.append([sentence])
                current, carried = [], 0
                continue

            if current and self._joined_tokens(current + [sentence]) > options.max_tokens:
                if len(current) > carried:
                    chunks.append(current)
                    current = self._overlap_tail(current, options.overlap_tokens)
                # Overlap gives way to the incoming sentence
                while current and self._joined_tokens(current + [sentence]) > options.max_tokens:
                    current = current[1:]
                carried = len(current)

            current.append(sentence)

        if len(current) > carried:
            final = " ".join(current)
            if not chunks or self.count_tokens(final) >= options.min_tokens:
                chunks.append(current)
            else:
                chunks[-1] = chunks[-1] + current[carried:]

        return [" ".join(parts) for parts in chunks]

    def _joined_tokens(self, sentences: List[str]) -> int:
        return self.count_tokens(" ".join(sentences))

    def _overlap_tail(self, sentences: List[str], budget: int) -> List[str]:
        """Longest trailing run of sentences whose joined estimate fits in budget."""
        tail: List[str] = []
        for sentence in reversed(sentences):
            if self._joined_tokens([sentence] + tail) > budget:
                break
            tail.insert(0, sentence)
        return tail

    def chunk_document(
        self,
        document: RawDocument,
        options: Optional[ChunkingOptions] = None,
    ) -> ChunkingResult:
        """
        Chunk one document.

        Args:
            document: Validated document to split
            options: Chunking options (defaults to settings.chunking)

        Returns:
            ChunkingResult with freshly identified chunks and size statistics

        Raises:
            ChunkingError: If the document has no content to chunk
        """
        options = options or self.default_options()
        if not document.content or not document.content.strip():
            raise ChunkingError("Document content is empty", details={"document_id": document.id})

        raw_chunks = self.group_sentences(split_sentences(document.content), options)
        total = len(raw_chunks)

        chunks: List[ContentChunk] = []
        offset = 0
        for i, content in enumerate(raw_chunks):
            previous_chunk = raw_chunks[i - 1] if i > 0 else None
            next_chunk = raw_chunks[i + 1] if i < total - 1 else None

            # Best effort: chunks are re-joined with single spaces and overlap
            # text sits before `offset`, so the lookup often falls back.
            found = document.content.find(content, offset)
            char_start = found if found >= 0 else offset
            char_end = char_start + len(content)
            offset = char_end

            metadata = ChunkMetadata(
                title=document.title,
                niveau=document.niveau,
                matiere=document.matiere,
                cycle=document.cycle,
                domaine=document.domaine,
                sousdomaine=document.sousdomaine,
                content_type=document.content_type,
                source=document.source,
                source_url=document.source_url,
                chunk_of=total,
                previous_chunk_summary=(
                    short_summary(previous_chunk, NEIGHBOUR_SUMMARY_LENGTH) if previous_chunk else None
                ),
                next_chunk_summary=short_summary(next_chunk, NEIGHBOUR_SUMMARY_LENGTH) if next_chunk else None,
            )

            chunks.append(
                ContentChunk(
                    id=str(uuid.uuid4()),
                    document_id=document.id,
                    chunk_index=i,
                    content=content,
                    contextualized_content=enrich_chunk(content, document, previous_chunk, next_chunk),
                    char_start=char_start,
                    char_end=char_end,
                    token_count=self.count_tokens(content),
                    metadata=metadata,
                )
            )

        token_counts = [c.token_count for c in chunks]
        stats = ChunkingStats(
            total_chunks=len(chunks),
            avg_tokens_per_chunk=round(sum(token_counts) / len(token_counts)) if token_counts else 0,
            min_tokens=min(token_counts) if token_counts else 0,
            max_tokens=max(token_counts) if token_counts else 0,
        )
        logger.debug(
            f"Chunked document {document.id}: chunks={stats.total_chunks}, "
            f"avg_tokens={stats.avg_tokens_per_chunk}"
        )
        return ChunkingResult(chunks=chunks, stats=stats)

    def chunk_documents(
        self,
        documents: Iterable[RawDocument],
        options: Optional[ChunkingOptions] = None,
    ) -> Dict[str, Any]:
        """Chunk several documents and aggregate totals."""
        documents = list(documents)
        all_chunks: List[ContentChunk] = []
        total_tokens = 0

        for document in documents:
            result = self.chunk_document(document, options)
            all_chunks.extend(result.chunks)
            total_tokens += sum(c.token_count for c in result.chunks)

        return {
            "chunks": all_chunks,
            "stats": {
                "documents_processed": len(documents),
                "total_chunks": len(all_chunks),
                "total_tokens": total_tokens,
                "avg_chunks_per_document": round(len(all_chunks) / len(documents)) if documents else 0,
                "avg_tokens_per_chunk": round(total_tokens / len(all_chunks)) if all_chunks else 0,
            },
        }


def to_indexable_documents(
    chunks: Iterable[ContentChunk],
    use_contextualized: bool = True,
) -> List[IndexableDocument]:
    """Project chunks into point ids, embedding text and payloads."""
    out = []
    for chunk in chunks:
        payload = chunk.metadata.model_dump()
        payload.update(
            {
                "content": chunk.content,
                "chunk_index": chunk.chunk_index,
                "document_id": chunk.document_id,
                "token_count": chunk.token_count,
            }
        )
        text = chunk.contextualized_content if use_contextualized and chunk.contextualized_content else chunk.content
        out.append(IndexableDocument(id=chunk.id, content=text, payload=payload))
    return out
