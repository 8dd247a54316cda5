"""
Sift - Centralized Configuration
=================================
Uses ``pydantic-settings`` (``BaseSettings``) to load *all* configuration
from environment variables and the project-level ``.env`` file.

Grouping
--------
Engine tunables live in three frozen sub-models (``chunking``,
``embedding``, ``retrieval``) plus ``ingestion`` for the large-collection
batch processor.  Nested values are addressed with a double underscore::

    CHUNKING__MAX_CHUNK_SIZE=400
    EMBEDDING__CONCURRENCY=8
    RETRIEVAL__RERANK_RESULTS=false

Immutability
------------
Every model is ``frozen``; configuration is fixed once the process has
initialised.  Components receive their group by injection and fall back
to the module-level ``settings`` singleton.

Security
--------
- ``GOOGLE_API_KEY`` is typed as ``SecretStr`` and is only required when
  the Gemini embedding provider is selected.  The raw value is never
  exposed in repr, logs, or tracebacks.
"""

from __future__ import annotations

from pathlib import Path
from typing import Literal

from pydantic import BaseModel, ConfigDict, SecretStr, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class ChunkingConfig(BaseModel):
    """Token bounds for the chunker (tokens ≈ ``ceil(chars / 4)``)."""

    model_config = ConfigDict(frozen=True)

    max_chunk_size: int = 512
    min_chunk_size: int = 100
    overlap: int = 50

    @field_validator("max_chunk_size")
    @classmethod
    def _max_positive(cls, v: int) -> int:
        if v < 1:
            raise ValueError(f"max_chunk_size must be ≥ 1, got {v}")
        return v

    @field_validator("min_chunk_size", "overlap")
    @classmethod
    def _non_negative(cls, v: int) -> int:
        if v < 0:
            raise ValueError(f"value must be ≥ 0, got {v}")
        return v

    @model_validator(mode="after")
    def _bounds_consistent(self) -> ChunkingConfig:
        if self.min_chunk_size > self.max_chunk_size:
            raise ValueError(f"min_chunk_size ({self.min_chunk_size}) exceeds max_chunk_size ({self.max_chunk_size})")
        if self.overlap >= self.max_chunk_size:
            raise ValueError(f"overlap ({self.overlap}) must be smaller than max_chunk_size ({self.max_chunk_size})")
        return self


class EmbeddingConfig(BaseModel):
    """Batching, concurrency and retry policy for the embedding pipeline."""

    model_config = ConfigDict(frozen=True)

    batch_size: int = 16
    retry_attempts: int = 3
    rate_limit_delay: float = 0.1
    concurrency: int = 4
    retry_base_delay: float = 1.0
    max_in_flight_requests: int = 16
    max_input_tokens: int = 8192

    @field_validator("batch_size", "retry_attempts", "max_in_flight_requests", "max_input_tokens")
    @classmethod
    def _positive(cls, v: int) -> int:
        if v < 1:
            raise ValueError(f"value must be ≥ 1, got {v}")
        return v

    @field_validator("concurrency")
    @classmethod
    def _concurrency_range(cls, v: int) -> int:
        if not 1 <= v <= 64:
            raise ValueError(f"concurrency must be 1–64, got {v}")
        return v

    @field_validator("rate_limit_delay", "retry_base_delay")
    @classmethod
    def _delay_non_negative(cls, v: float) -> float:
        if v < 0:
            raise ValueError(f"delay must be ≥ 0, got {v}")
        return v


class RetrievalConfig(BaseModel):
    """Ranking knobs for the retriever and the context budget."""

    model_config = ConfigDict(frozen=True)

    default_top_k: int = 5
    similarity_threshold: float = 0.3
    rerank_results: bool = True
    max_context_chars: int = 2000

    @field_validator("similarity_threshold")
    @classmethod
    def _threshold_range(cls, v: float) -> float:
        if not -1.0 <= v <= 1.0:
            raise ValueError(f"similarity_threshold must be within [-1, 1], got {v}")
        return v

    @field_validator("default_top_k", "max_context_chars")
    @classmethod
    def _positive(cls, v: int) -> int:
        if v < 1:
            raise ValueError(f"value must be ≥ 1, got {v}")
        return v


class IngestionConfig(BaseModel):
    """Grouping used when feeding very large document collections."""

    model_config = ConfigDict(frozen=True)

    document_batch_size: int = 50
    document_batch_pause: float = 0.5

    @field_validator("document_batch_size")
    @classmethod
    def _positive(cls, v: int) -> int:
        if v < 1:
            raise ValueError(f"document_batch_size must be ≥ 1, got {v}")
        return v


class Settings(BaseSettings):
    """
    Application-wide settings.

    Every field is loaded from environment variables (or ``.env``).

    Attributes
    ----------
    ENV : Literal["dev", "prod"]
        Environment mode controlling logging verbosity.
    OLLAMA_BASE_URL : str
        Base URL of the Ollama server used for embeddings.
    EMBEDDING_MODEL : str
        Default embedding model identifier sent to the provider.
    REQUEST_TIMEOUT : float
        Per-request HTTP timeout in seconds.
    GOOGLE_API_KEY : SecretStr | None
        Only needed for the Gemini provider.
        Access the raw value with ``settings.GOOGLE_API_KEY.get_secret_value()``.
    chunking, embedding, retrieval, ingestion
        Frozen tunable groups (see module docstring).
    """

    # ── Environment Mode ───────────────────────────────────────────────
    ENV: Literal["dev", "prod"] = "dev"

    # ── Embedding Provider ─────────────────────────────────────────────
    OLLAMA_BASE_URL: str = "http://localhost:11434"
    EMBEDDING_MODEL: str = "mxbai-embed-large"
    GEMINI_EMBEDDING_MODEL: str = "models/gemini-embedding-001"
    REQUEST_TIMEOUT: float = 30.0
    GOOGLE_API_KEY: SecretStr | None = None

    # ── Engine Tunables ────────────────────────────────────────────────
    chunking: ChunkingConfig = ChunkingConfig()
    embedding: EmbeddingConfig = EmbeddingConfig()
    retrieval: RetrievalConfig = RetrievalConfig()
    ingestion: IngestionConfig = IngestionConfig()

    # ── Validators ─────────────────────────────────────────────────────

    @field_validator("OLLAMA_BASE_URL")
    @classmethod
    def _strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/")

    @field_validator("REQUEST_TIMEOUT")
    @classmethod
    def _timeout_positive(cls, v: float) -> float:
        if v <= 0:
            raise ValueError(f"REQUEST_TIMEOUT must be > 0, got {v}")
        return v

    # ── Pydantic Settings Configuration ────────────────────────────────
    model_config = SettingsConfigDict(env_file=Path(__file__).resolve().parent.parent / ".env", env_file_encoding="utf-8", env_nested_delimiter="__", extra="ignore", frozen=True)

    def engine_config(self) -> dict[str, dict[str, int | float | bool]]:
        """Return the tunable groups as plain dicts (used by system stats)."""
        return {
            "chunking": self.chunking.model_dump(),
            "embedding": self.embedding.model_dump(),
            "retrieval": self.retrieval.model_dump(),
        }


# ── Singleton Instance ─────────────────────────────────────────────────
# Import this throughout the project:
#     from sift.config.settings import settings
settings = Settings()
