"""Contextual enrichment of chunks with document-level context."""

from typing import Optional

from curriculum_rag.models.document import RawDocument
from curriculum_rag.services.segmenter import short_summary

NEIGHBOUR_SUMMARY_LENGTH = 80


def enrich_chunk(
    chunk: str,
    document: RawDocument,
    previous_chunk: Optional[str] = None,
    next_chunk: Optional[str] = None,
) -> str:
    """
    Prefix a chunk with its document title, subject and level, and surround it
    with one-line summaries of its neighbours.

    The result is what gets embedded; the raw chunk is still stored verbatim.
    """
    parts = [f'\U0001f4c4 Document: "{document.title}" ({document.matiere}, {document.niveau})']

    if document.domaine:
        parts.append(f"\U0001f4cc Domaine: {document.domaine}")

    if previous_chunk:
        parts.append(f"⬆️ Précédent: {short_summary(previous_chunk, NEIGHBOUR_SUMMARY_LENGTH)}")

    parts.append("")
    parts.append(chunk)

    if next_chunk:
        parts.append("")
        parts.append(f"⬇️ Suite: {short_summary(next_chunk, NEIGHBOUR_SUMMARY_LENGTH)}")

    return "\n".join(parts)
