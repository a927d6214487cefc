"""Custom exception classes for the curriculum RAG service."""

from typing import Any, Dict, Optional


class RagException(Exception):
    """Base exception for all curriculum RAG errors."""

    def __init__(
        self,
        message: str,
        status_code: int = 500,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.status_code = status_code
        self.code = code or self.__class__.__name__
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for JSON response."""
        return {
            "error": {
                "message": self.message,
                "code": self.code,
                "status_code": self.status_code,
                "details": self.details,
            }
        }


class ValidationError(RagException):
    """Exception raised for validation errors."""

    def __init__(
        self,
        message: str = "Validation failed",
        errors: Optional[Any] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        error_details = details or {}
        if errors:
            error_details["validation_errors"] = errors
        super().__init__(
            message=message,
            status_code=422,
            code="VALIDATION_ERROR",
            details=error_details,
        )


class ChunkingError(RagException):
    """Exception raised for text chunking errors."""

    def __init__(
        self,
        message: str = "Text chunking failed",
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(
            message=message,
            status_code=500,
            code="CHUNKING_ERROR",
            details=details,
        )


class EmbeddingError(RagException):
    """Exception raised for embedding generation errors."""

    def __init__(
        self,
        message: str = "Embedding generation failed",
        model: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        code: str = "EMBEDDING_ERROR",
    ):
        error_details = details or {}
        if model:
            error_details["model"] = model
        super().__init__(
            message=message,
            status_code=502,
            code=code,
            details=error_details,
        )


class TransientProviderError(EmbeddingError):
    """Provider failure worth retrying (timeout, rate limit, 5xx, reset)."""

    def __init__(
        self,
        message: str = "Embedding provider temporarily unavailable",
        model: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, model=model, details=details, code="PROVIDER_TRANSIENT")


class PermanentProviderError(EmbeddingError):
    """Provider failure that will not succeed on retry (auth, bad request, bad vector)."""

    def __init__(
        self,
        message: str = "Embedding provider rejected the request",
        model: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, model=model, details=details, code="PROVIDER_PERMANENT")


class VectorStoreError(RagException):
    """Exception raised for Qdrant operation errors."""

    def __init__(
        self,
        message: str = "Qdrant operation failed",
        details: Optional[Dict[str, Any]] = None,
        status_code: int = 502,
        code: str = "VECTOR_STORE_ERROR",
    ):
        super().__init__(
            message=message,
            status_code=status_code,
            code=code,
            details=details,
        )


class StoreUnavailableError(VectorStoreError):
    """Raised when the vector store stays unreachable after provisioning."""

    def __init__(
        self,
        message: str = "Vector store unavailable",
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(
            message=message,
            details=details,
            status_code=503,
            code="STORE_UNAVAILABLE",
        )


class RetrievalError(RagException):
    """Exception raised when a similarity query fails."""

    def __init__(
        self,
        message: str = "Retrieval failed",
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(
            message=message,
            status_code=502,
            code="RETRIEVAL_ERROR",
            details=details,
        )


class CacheError(RagException):
    """Exception raised for cache store errors."""

    def __init__(
        self,
        message: str = "Cache operation failed",
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(
            message=message,
            status_code=502,
            code="CACHE_ERROR",
            details=details,
        )

