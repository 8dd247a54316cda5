"""
Sift - Error Taxonomy
======================
Every exception the engine raises derives from ``SiftError``.

Retry policy by class:
    • ``EmbeddingValidationError``: caller error, never retried.
    • ``TransportError`` / ``FormatError``: transient, retried.  Any
      other provider exception is wrapped in ``TransportError``.
    • ``ExhaustedRetriesError``: terminal for one chunk; the pipeline
      drops the chunk and carries on.
"""

from __future__ import annotations


class SiftError(Exception):
    """Base class for all engine errors."""


class EmbeddingError(SiftError):
    """Base class for failures while producing an embedding."""


class EmbeddingValidationError(EmbeddingError, ValueError):
    """Empty or whitespace-only text submitted for embedding."""


class TransportError(EmbeddingError):
    """Network failure or non-success HTTP status from the provider."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class FormatError(EmbeddingError):
    """Provider answered, but not with a well-formed numeric vector."""


class ExhaustedRetriesError(EmbeddingError):
    """All attempts for one embedding failed."""

    def __init__(self, attempts: int, last_error: BaseException | None) -> None:
        super().__init__(f"embedding failed after {attempts} attempt(s): {last_error}")
        self.attempts = attempts
        self.last_error = last_error


class InvalidEmbeddingError(SiftError, ValueError):
    """The vector store refused an empty or non-finite vector."""


class DuplicateChunkError(SiftError, ValueError):
    """A chunk id is already present in the vector store."""


# Failures worth another attempt.
RETRYABLE_ERRORS: tuple[type[EmbeddingError], ...] = (TransportError, FormatError)
