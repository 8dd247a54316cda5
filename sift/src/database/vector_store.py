"""
Sift - InMemoryVectorStore
===========================
Append-only, in-process collection of ``VectorRecord`` objects.

Design decisions:
  • **Append-only**: ``add`` is the only mutation.  The record id is
    the store size at insertion time, assigned under the write lock, so
    ids stay unique and gap-free no matter how many batches finish
    concurrently.
  • **Brute-force reads**: retrieval scans a ``snapshot()``; there is
    no secondary index.  A scan running during an insertion sees the
    new record or it does not, never a half-built one.
  • **Injectable**: every engine owns (or is handed) its store; there
    is no module-level singleton, so corpora are isolated.
  • **Document ordinals**: the store hands out document ids, which
    keeps chunk ids unique even when several engines share one store.
  • **Read-only vectors**: embeddings are copied into ``float64``
    numpy arrays with ``writeable=False``.

Usage:
    store = InMemoryVectorStore()
    record = store.add(chunk, [0.1, 0.2, 0.3])
    for record in store.snapshot():
        ...
"""

from __future__ import annotations

from collections.abc import Iterator, Sequence

import numpy as np

from sift.src.core.errors import DuplicateChunkError, InvalidEmbeddingError
from sift.src.core.models import Chunk, VectorRecord
from sift.src.database.locks import ReadWriteLock
from sift.src.utils.logger import get_logger

logger = get_logger(__name__)


def as_readonly_vector(embedding: Sequence[float] | np.ndarray) -> np.ndarray:
    """Copy *embedding* into a 1-D, finite, read-only float array."""
    try:
        vector = np.array(embedding, dtype=float)
    except (TypeError, ValueError) as exc:
        raise InvalidEmbeddingError(f"embedding is not numeric: {exc}") from exc

    if vector.ndim != 1 or vector.size == 0:
        raise InvalidEmbeddingError(f"embedding must be a non-empty 1-D vector, got shape {vector.shape}")
    if not np.all(np.isfinite(vector)):
        raise InvalidEmbeddingError("embedding contains NaN or infinite values")

    vector.flags.writeable = False
    return vector


class InMemoryVectorStore:
    """
    Thread-safe append-only vector collection.

    Parameters
    ----------
    name
        Label used in logs and ``repr``.
    """

    __slots__ = ("name", "_records", "_chunk_ids", "_next_document_id", "_lock")

    def __init__(self, name: str = "default") -> None:
        self.name = name
        self._records: list[VectorRecord] = []
        self._chunk_ids: set[str] = set()
        self._next_document_id = 0
        self._lock = ReadWriteLock()

    # ── Mutation ───────────────────────────────────────────────────────

    def add(self, chunk: Chunk, embedding: Sequence[float] | np.ndarray) -> VectorRecord:
        """
        Insert *chunk* with its *embedding* and assign the next id.

        Raises
        ------
        InvalidEmbeddingError
            If the vector is empty, not 1-D, or not finite.
        DuplicateChunkError
            If a record with the same chunk id already exists.
        """
        vector = as_readonly_vector(embedding)

        with self._lock.write_lock():
            if chunk.id in self._chunk_ids:
                raise DuplicateChunkError(f"chunk '{chunk.id}' is already stored in '{self.name}'")
            record = VectorRecord(vector_id=len(self._records), chunk=chunk, embedding=vector)
            self._records.append(record)
            self._chunk_ids.add(chunk.id)

        logger.debug("[STORE] '%s' ← record %d (chunk %s, dim %d).", self.name, record.vector_id, chunk.id, record.dimension)
        return record

    def allocate_document_ids(self, count: int) -> range:
        """Reserve *count* consecutive document ordinals."""
        if count < 0:
            raise ValueError(f"count must be ≥ 0, got {count}")
        with self._lock.write_lock():
            start = self._next_document_id
            self._next_document_id += count
        return range(start, start + count)

    # ── Reads ──────────────────────────────────────────────────────────

    def snapshot(self) -> tuple[VectorRecord, ...]:
        """Consistent point-in-time view for a full scan."""
        with self._lock.read_lock():
            return tuple(self._records)

    def get(self, vector_id: int) -> VectorRecord | None:
        with self._lock.read_lock():
            if 0 <= vector_id < len(self._records):
                return self._records[vector_id]
            return None

    def count(self) -> int:
        with self._lock.read_lock():
            return len(self._records)

    def __len__(self) -> int:
        return self.count()

    def __iter__(self) -> Iterator[VectorRecord]:
        return iter(self.snapshot())

    def __contains__(self, chunk_id: object) -> bool:
        with self._lock.read_lock():
            return chunk_id in self._chunk_ids

    def __repr__(self) -> str:
        return f"InMemoryVectorStore(name='{self.name}', records={self.count()})"
