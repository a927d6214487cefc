"""Service layer for the curriculum RAG pipeline."""
