"""Sentence segmentation for French curriculum text."""

import re
from typing import List

_PLACEHOLDER = "⟨DOT⟩"

# Periods that do not end a sentence: common abbreviations and numbers
_ABBREVIATIONS = re.compile(r"\b(M|Mme|Dr|ex|cf|etc)\.")
_NUMBER_DOT = re.compile(r"(\d)\.")
_BOUNDARY = re.compile(r"(?<=[.!?])\s+")


def split_sentences(text: str) -> List[str]:
    """
    Split text into ordered, non-empty, trimmed sentences.

    Periods after the abbreviations M, Mme, Dr, ex, cf, etc and after a digit
    are protected, so "M. Dupont habite au 12.5, etc." stays one sentence.
    Text without terminal punctuation comes back as a single sentence.
    """
    if not text or not text.strip():
        return []

    protected = _ABBREVIATIONS.sub(lambda m: m.group(1) + _PLACEHOLDER, text)
    protected = _NUMBER_DOT.sub(lambda m: m.group(1) + _PLACEHOLDER, protected)

    sentences = []
    for part in _BOUNDARY.split(protected):
        sentence = part.replace(_PLACEHOLDER, ".").strip()
        if sentence:
            sentences.append(sentence)
    return sentences


def short_summary(text: str, max_length: int = 100) -> str:
    """First sentence of text, cut to max_length characters with an ellipsis."""
    sentences = split_sentences(text)
    if not sentences:
        return ""
    summary = sentences[0]
    if len(summary) > max_length:
        summary = summary[: max_length - 3] + "..."
    return summary
