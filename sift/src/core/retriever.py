"""
Sift - Retriever
=================
Brute-force similarity search over an ``InMemoryVectorStore`` followed by
an optional diversity / recency re-rank.

Pipeline:
    1. Embed the query (failures propagate to the caller).
    2. Cosine similarity against every record in a store snapshot.
    3. Keep ``similarity ≥ similarity_threshold``; sort descending.
    4. Take ``2 × top_k`` candidates.
    5. Re-rank when enabled and there are more candidates than ``top_k``.
    6. Truncate to ``top_k``.
"""

from __future__ import annotations

import dataclasses
import time
from collections.abc import Sequence

import numpy as np

from sift.config.settings import RetrievalConfig, settings
from sift.src.core.embedding_client import EmbeddingProvider
from sift.src.core.models import SimilarityResult
from sift.src.database.vector_store import InMemoryVectorStore, as_readonly_vector
from sift.src.utils.logger import get_logger

logger = get_logger(__name__)

# ── Re-rank multipliers ────────────────────────────────────────────────
DIVERSITY_PENALTY = 0.95
FIRST_CHUNK_BOOST = 1.02


def cosine_similarity(a: Sequence[float] | np.ndarray, b: Sequence[float] | np.ndarray) -> float:
    """
    ``dot(a, b) / (‖a‖·‖b‖)`` clamped to ``[-1, 1]``.

    A zero vector or a NaN result gives ``0.0``.  Vectors of different
    length are a data-quality problem, not a fatal one: a warning is
    logged and ``0.0`` is returned.
    """
    va = np.asarray(a, dtype=float)
    vb = np.asarray(b, dtype=float)

    if va.shape != vb.shape:
        logger.warning("[RETRIEVE] Dimension mismatch: %s vs %s — similarity set to 0.", va.shape, vb.shape)
        return 0.0

    denominator = float(np.linalg.norm(va) * np.linalg.norm(vb))
    if denominator == 0.0:
        return 0.0

    similarity = float(np.dot(va, vb) / denominator)
    if np.isnan(similarity):
        return 0.0
    return max(-1.0, min(1.0, similarity))


class Retriever:
    """
    Query-time ranking over one store.

    Parameters
    ----------
    store
        The store to scan.  Only ``snapshot()`` is used.
    provider
        Embeds the query; must use the same model as ingestion.
    config
        Ranking policy.  Defaults to ``settings.retrieval``.
    """

    __slots__ = ("_store", "_provider", "_config")

    def __init__(self, store: InMemoryVectorStore, provider: EmbeddingProvider, config: RetrievalConfig | None = None) -> None:
        self._store = store
        self._provider = provider
        self._config = config or settings.retrieval

    @property
    def config(self) -> RetrievalConfig:
        return self._config

    async def retrieve(self, query: str, top_k: int | None = None, model: str | None = None) -> list[SimilarityResult]:
        """Return at most *top_k* results, best first."""
        k = self._config.default_top_k if top_k is None else top_k
        if k <= 0:
            return []

        t_start = time.perf_counter()
        try:
            query_vector = as_readonly_vector(await self._provider.embed(query, model))
        except Exception:
            logger.error("[RETRIEVE] Query embedding failed.")
            raise

        candidates = self.score(query_vector)[: 2 * k]

        if self._config.rerank_results and len(candidates) > k:
            candidates = self.rerank(candidates)

        results = candidates[:k]
        elapsed_ms = (time.perf_counter() - t_start) * 1000
        top = f"{results[0].similarity:.4f}" if results else "N/A"
        logger.info("[RETRIEVE] %d result(s) for query (top similarity %s) in %.1fms.", len(results), top, elapsed_ms)
        return results

    def score(self, query_vector: np.ndarray) -> list[SimilarityResult]:
        """Similarity of every stored record, filtered by threshold, best first."""
        threshold = self._config.similarity_threshold
        scored: list[SimilarityResult] = []
        for record in self._store.snapshot():
            similarity = cosine_similarity(query_vector, record.embedding)
            if similarity >= threshold:
                scored.append(SimilarityResult(record=record, similarity=similarity))

        scored.sort(key=lambda r: r.similarity, reverse=True)
        return scored

    @staticmethod
    def rerank(candidates: Sequence[SimilarityResult]) -> list[SimilarityResult]:
        """
        Diversity / recency re-rank.

        Walks candidates in the given (similarity) order.  A candidate
        whose ``document_id`` was already seen is multiplied by 0.95; the
        first chunk of a document (``chunk_index == 0``) by 1.02.
        """
        seen_sources: set = set()
        reranked: list[SimilarityResult] = []

        for candidate in candidates:
            source = candidate.metadata.get("document_id")
            diversity = 1.0
            if source is not None:
                if source in seen_sources:
                    diversity = DIVERSITY_PENALTY
                seen_sources.add(source)
            recency = FIRST_CHUNK_BOOST if candidate.metadata.get("chunk_index") == 0 else 1.0

            reranked.append(dataclasses.replace(candidate, rerank_score=candidate.similarity * diversity * recency))

        reranked.sort(key=lambda r: r.rerank_score, reverse=True)
        logger.debug("[RERANK] Re-ranked %d candidate(s) across %d source(s).", len(reranked), len(seen_sources))
        return reranked
