"""Configuration management using pydantic-settings."""

import warnings
from enum import Enum
from typing import Optional

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Environment(str, Enum):
    """Application environment."""

    DEVELOPMENT = "development"
    STAGING = "staging"
    PRODUCTION = "production"


class EmbeddingProvider(str, Enum):
    """Embedding provider selection."""

    OPENAI = "openai"
    AZURE = "azure"
    MISTRAL = "mistral"


class TokenEstimator(str, Enum):
    """Token counting strategy used by the chunker."""

    APPROX = "approx"
    TIKTOKEN = "tiktoken"


class EmbeddingSettings(BaseSettings):
    """Embedding configuration (provider-agnostic)."""

    model_config = SettingsConfigDict(env_prefix="", case_sensitive=False)

    embedding_provider: EmbeddingProvider = Field(
        default=EmbeddingProvider.MISTRAL,
        description="Embedding provider: openai, azure or mistral. Env var: EMBEDDING_PROVIDER",
    )

    # OpenAI (direct) embeddings
    openai_api_key: Optional[str] = Field(
        default=None,
        description="OpenAI API key for embeddings. Env var: OPENAI_API_KEY",
    )
    openai_base_url: Optional[str] = Field(
        default=None,
        description="Optional OpenAI base URL (advanced). Env var: OPENAI_BASE_URL",
    )

    # Mistral embeddings (OpenAI-compatible endpoint)
    mistral_api_key: Optional[str] = Field(
        default=None, description="Mistral API key. Env var: MISTRAL_API_KEY"
    )
    mistral_base_url: str = Field(
        default="https://api.mistral.ai/v1",
        description="Mistral API base URL. Env var: MISTRAL_BASE_URL",
    )

    # Azure OpenAI embeddings (optional)
    azure_openai_endpoint: Optional[str] = Field(
        default=None, description="Azure OpenAI endpoint URL. Env var: AZURE_OPENAI_ENDPOINT"
    )
    azure_openai_api_key: Optional[str] = Field(
        default=None, description="Azure OpenAI API key. Env var: AZURE_OPENAI_API_KEY"
    )
    azure_openai_api_version: str = Field(
        default="2024-02-15-preview",
        description="Azure OpenAI API version. Env var: AZURE_OPENAI_API_VERSION",
    )
    embedding_deployment_name: Optional[str] = Field(
        default=None,
        description="Embedding deployment name (Azure OpenAI). Env var: EMBEDDING_DEPLOYMENT_NAME",
    )

    # Model configuration
    embedding_model: Optional[str] = Field(
        default=None,
        description="Embedding model name; defaults per provider. Env var: EMBEDDING_MODEL",
    )
    embedding_dimension: Optional[int] = Field(
        default=1024,
        description="Expected embedding dimension (validation / collection sizing). Env var: EMBEDDING_DIMENSION",
    )
    embedding_batch_size: int = Field(
        default=100,
        description="Batch size for embedding generation. Env var: EMBEDDING_BATCH_SIZE",
    )
    embedding_timeout: float = Field(
        default=30.0,
        description="Embedding request timeout in seconds. Env var: EMBEDDING_TIMEOUT",
    )

    @property
    def provider(self) -> EmbeddingProvider:
        """Get the embedding provider."""
        return self.embedding_provider

    @property
    def is_configured(self) -> bool:
        """Check if the selected embedding provider is configured."""
        if self.embedding_provider == EmbeddingProvider.OPENAI:
            return bool(self.openai_api_key)
        if self.embedding_provider == EmbeddingProvider.MISTRAL:
            return bool(self.mistral_api_key)
        if self.embedding_provider == EmbeddingProvider.AZURE:
            return bool(self.azure_openai_endpoint and self.azure_openai_api_key and self.embedding_deployment_name)
        return False

    @property
    def resolved_model_name(self) -> str:
        """Get the effective model/deployment name to use for embeddings."""
        if self.embedding_provider == EmbeddingProvider.AZURE:
            return self.embedding_deployment_name or ""
        if self.embedding_model:
            return self.embedding_model
        if self.embedding_provider == EmbeddingProvider.MISTRAL:
            return "mistral-embed"
        return "text-embedding-3-small"

    @property
    def batch_size(self) -> int:
        return self.embedding_batch_size

    @property
    def timeout(self) -> float:
        return self.embedding_timeout


class QdrantSettings(BaseSettings):
    """Qdrant vector database configuration."""

    model_config = SettingsConfigDict(env_prefix="QDRANT_", case_sensitive=False)

    url: str = Field(
        default="http://localhost:6333", description="Qdrant connection URL"
    )
    api_key: Optional[str] = Field(
        default=None, description="Qdrant API key (for Qdrant Cloud). Env var: QDRANT_api_key"
    )
    timeout: int = Field(default=30, description="Request timeout in seconds")
    collection_name: str = Field(
        default="tomai_educational",
        description="Collection holding curriculum chunks. Env var: QDRANT_collection_name",
    )
    vector_name: str = Field(
        default="dense", description="Named dense vector inside the collection"
    )
    vector_size: int = Field(
        default=1024, description="Dense vector size used when provisioning the collection"
    )
    indexing_threshold: int = Field(
        default=20000, description="Optimizer indexing threshold for new collections"
    )

    @property
    def is_cloud(self) -> bool:
        """Check if using Qdrant Cloud (has API key)."""
        return bool(self.api_key)


class ChunkingSettings(BaseSettings):
    """Sentence-aware chunking configuration."""

    model_config = SettingsConfigDict(env_prefix="CHUNK_", case_sensitive=False)

    max_tokens: int = Field(default=512, description="Maximum tokens per chunk. Env var: CHUNK_MAX_TOKENS")
    min_tokens: int = Field(default=100, description="Minimum tokens for a trailing chunk. Env var: CHUNK_MIN_TOKENS")
    overlap_percent: int = Field(
        default=15, description="Overlap between consecutive chunks, in percent of max_tokens"
    )
    token_estimator: TokenEstimator = Field(
        default=TokenEstimator.APPROX,
        description="Token counting strategy: approx (chars/4) or tiktoken. Env var: CHUNK_TOKEN_ESTIMATOR",
    )
    tiktoken_encoding: str = Field(default="cl100k_base", description="tiktoken encoding name")

    @field_validator("overlap_percent")
    @classmethod
    def validate_overlap(cls, v: int) -> int:
        """Validate overlap percentage."""
        if not 0 <= v < 100:
            raise ValueError("overlap_percent must be in [0, 100)")
        return v


class RetrySettings(BaseSettings):
    """Retry configuration for transient provider failures."""

    model_config = SettingsConfigDict(env_prefix="RETRY_", case_sensitive=False)

    max_attempts: int = Field(default=5, description="Maximum attempts per call. Env var: RETRY_MAX_ATTEMPTS")
    initial_delay: float = Field(default=1.0, description="Initial backoff delay in seconds")
    multiplier: float = Field(default=2.0, description="Exponential backoff multiplier")
    max_delay: float = Field(default=30.0, description="Maximum delay between attempts in seconds")


class RedisSettings(BaseSettings):
    """Redis configuration for the cache layer."""

    model_config = SettingsConfigDict(env_prefix="REDIS_", case_sensitive=False)

    url: Optional[str] = Field(
        default=None, description="Redis connection URL; in-process cache is used when unset"
    )
    password: Optional[str] = Field(default=None, description="Redis password")
    enabled: bool = Field(default=True, description="Enable caching altogether")
    socket_timeout: int = Field(default=5, description="Socket timeout in seconds")
    socket_connect_timeout: int = Field(
        default=10, description="Socket connect timeout in seconds"
    )
    max_connections: int = Field(default=50, description="Connection pool size")
    key_prefix: str = Field(default="qdrant:rag:v2:", description="Global key prefix")
    max_key_length: int = Field(default=512, description="Keys longer than this are hashed")
    max_value_size: int = Field(
        default=100 * 1024 * 1024, description="Largest serialized entry accepted, in bytes"
    )
    sweep_interval: Optional[float] = Field(
        default=None, description="Seconds between in-process cache sweeps (None disables)"
    )
    reconnect_interval: float = Field(
        default=30.0, description="Seconds between reconnection attempts while the store is unreachable"
    )

    @property
    def is_configured(self) -> bool:
        return bool(self.url)


class RetrievalSettings(BaseSettings):
    """Retrieval thresholds and limits (cosine similarity, 0-1)."""

    model_config = SettingsConfigDict(env_prefix="RAG_", case_sensitive=False)

    default_limit: int = Field(default=5, description="Default number of passages returned")
    max_limit: int = Field(default=10, description="Upper bound on requested passages")
    search_limit: int = Field(default=20, description="Candidates fetched from the store")
    min_score: float = Field(default=0.35, description="Similarity floor")
    good_score: float = Field(default=0.5, description="Score considered a good match")
    high_score: float = Field(default=0.7, description="Score considered an excellent match")
    hnsw_ef: int = Field(default=128, description="HNSW ef search parameter")
    context_max_length: int = Field(default=8000, description="Maximum formatted context length")


class IngestionSettings(BaseSettings):
    """Ingestion pipeline configuration."""

    model_config = SettingsConfigDict(env_prefix="INGESTION_", case_sensitive=False)

    batch_size: int = Field(default=100, description="Batch size for embeddings and upserts")
    use_contextualized_content: bool = Field(
        default=True, description="Embed the enriched chunk text instead of the raw chunk"
    )
    purge_on_reindex: bool = Field(
        default=True,
        description="Delete a document's previous points before re-indexing it",
    )


class ServerSettings(BaseSettings):
    """Server configuration."""

    model_config = SettingsConfigDict(env_prefix="", case_sensitive=False)

    host: str = Field(default="0.0.0.0", description="Server host. Env var: HOST")
    port: int = Field(default=8004, description="HTTP server port. Env var: PORT")
    reload: bool = Field(
        default=False, description="Enable auto-reload (development only). Env var: RELOAD"
    )


class Settings(BaseSettings):
    """Application settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    app_name: str = Field(
        default="curriculum-rag", description="Application name. Env var: APP_NAME"
    )
    environment: Environment = Field(
        default=Environment.DEVELOPMENT,
        description="Application environment. Env var: ENVIRONMENT",
    )
    debug: bool = Field(default=False, description="Enable debug mode. Env var: DEBUG")
    log_level: str = Field(
        default="INFO", description="Logging level. Env var: LOG_LEVEL"
    )

    # Sub-settings
    embedding: Optional[EmbeddingSettings] = None
    qdrant: Optional[QdrantSettings] = None
    chunking: Optional[ChunkingSettings] = None
    retry: Optional[RetrySettings] = None
    redis: Optional[RedisSettings] = None
    retrieval: Optional[RetrievalSettings] = None
    ingestion: Optional[IngestionSettings] = None
    server: Optional[ServerSettings] = None

    @model_validator(mode="after")
    def initialize_nested_settings(self) -> "Settings":
        """Initialize nested settings to ensure they read from environment."""
        if self.embedding is None:
            self.embedding = EmbeddingSettings()
        if self.qdrant is None:
            self.qdrant = QdrantSettings()
        if self.chunking is None:
            self.chunking = ChunkingSettings()
        if self.retry is None:
            self.retry = RetrySettings()
        if self.redis is None:
            self.redis = RedisSettings()
        if self.retrieval is None:
            self.retrieval = RetrievalSettings()
        if self.ingestion is None:
            self.ingestion = IngestionSettings()
        if self.server is None:
            self.server = ServerSettings()
        return self

    @field_validator("environment", mode="before")
    @classmethod
    def parse_environment(cls, v):
        """Parse environment from string."""
        if isinstance(v, str):
            try:
                return Environment(v.lower())
            except ValueError:
                return Environment.DEVELOPMENT
        return v

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level."""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in valid_levels:
            raise ValueError(f"Log level must be one of {valid_levels}")
        return v.upper()

    @property
    def is_development(self) -> bool:
        """Check if running in development environment."""
        return self.environment == Environment.DEVELOPMENT

    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.environment == Environment.PRODUCTION

    def validate_configuration(self) -> None:
        """Warn about collaborators that are not configured."""
        if not self.embedding.is_configured:
            warnings.warn(
                "Embeddings are not configured. Set EMBEDDING_PROVIDER=mistral and MISTRAL_API_KEY, "
                "EMBEDDING_PROVIDER=openai and OPENAI_API_KEY, or EMBEDDING_PROVIDER=azure with "
                "AZURE_OPENAI_ENDPOINT/AZURE_OPENAI_API_KEY/EMBEDDING_DEPLOYMENT_NAME.",
                UserWarning,
            )

        if self.redis.enabled and not self.redis.is_configured:
            warnings.warn(
                "REDIS_URL is not set; the in-process cache store will be used.",
                UserWarning,
            )

    def validate_production_settings(self) -> None:
        """Validate that production settings are secure."""
        if self.is_production:
            if self.debug:
                raise ValueError("DEBUG must be False in production")

            if not self.embedding.is_configured:
                raise ValueError("Embeddings must be configured in production.")

            if not self.qdrant.is_cloud and not self.qdrant.url.startswith("http://localhost"):
                raise ValueError("QDRANT_API_KEY is required for a remote Qdrant in production.")


# Global settings instance
_settings: Optional[Settings] = None


def get_settings() -> Settings:
    """Get the global settings instance."""
    global _settings
    if _settings is None:
        _settings = Settings()
        _settings.validate_configuration()
        try:
            _settings.validate_production_settings()
        except ValueError as e:
            import logging

            logging.error(f"Configuration validation failed: {e}")
            if _settings.is_production:
                raise
    return _settings
