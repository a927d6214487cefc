"""Curriculum document ingestion, indexing and retrieval service."""

__version__ = "0.1.0"
