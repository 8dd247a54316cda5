"""
Sift - Data Model
==================
Immutable value types shared by every stage of the engine.

    Document  ──chunk──▶  Chunk  ──embed──▶  VectorRecord  ──rank──▶  SimilarityResult

``Document`` and ``Chunk`` are pydantic models (frozen).  ``VectorRecord``
and ``SimilarityResult`` are frozen dataclasses because they carry a
``numpy`` array, which is kept read-only once stored.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

import numpy as np
from pydantic import BaseModel, ConfigDict, Field

ChunkMetadata = dict[str, Any]


class ContentType(str, Enum):
    """Classifier labels; each selects a chunking strategy."""

    CODE = "code"
    STRUCTURED = "structured"
    NARRATIVE = "narrative"
    GENERAL = "general"


class Document(BaseModel):
    """
    Raw text plus caller-supplied metadata.

    ``document_id`` is the ordinal assigned by the engine at ingestion.
    """

    model_config = ConfigDict(frozen=True)

    document_id: int
    content: str
    metadata: dict[str, Any] = Field(default_factory=dict)


class Chunk(BaseModel):
    """
    Bounded excerpt of a document: the unit of embedding and retrieval.

    ``id`` is ``f"{document_id}_chunk_{index}"`` (see ``make_chunk_id``).
    """

    model_config = ConfigDict(frozen=True)

    id: str
    content: str
    index: int
    token_count: int
    metadata: ChunkMetadata = Field(default_factory=dict)

    @property
    def document_id(self) -> Any:
        return self.metadata.get("document_id")


def make_chunk_id(document_id: int | str, index: int) -> str:
    return f"{document_id}_chunk_{index}"


@dataclass(frozen=True, slots=True)
class VectorRecord:
    """A stored chunk with its embedding.  Never mutated after insertion."""

    vector_id: int
    chunk: Chunk
    embedding: np.ndarray = field(repr=False)

    @property
    def dimension(self) -> int:
        return int(self.embedding.shape[0])


@dataclass(frozen=True, slots=True)
class SimilarityResult:
    """Per-query ranking entry.  Transient, never stored."""

    record: VectorRecord
    similarity: float
    rerank_score: float | None = None

    @property
    def content(self) -> str:
        return self.record.chunk.content

    @property
    def metadata(self) -> ChunkMetadata:
        return self.record.chunk.metadata

    @property
    def chunk_id(self) -> str:
        return self.record.chunk.id

    @property
    def vector_id(self) -> int:
        return self.record.vector_id

    @property
    def score(self) -> float:
        """Ranking score: the re-rank score when present, else the similarity."""
        return self.rerank_score if self.rerank_score is not None else self.similarity

    def to_dict(self) -> dict[str, Any]:
        return {
            "vector_id": self.vector_id,
            "chunk_id": self.chunk_id,
            "content": self.content,
            "metadata": self.metadata,
            "similarity": self.similarity,
            "rerank_score": self.rerank_score,
        }
