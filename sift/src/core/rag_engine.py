"""
Sift - RAG Engine
==================
Facade that wires the stages together over one injected store.

Architecture
------------
``Chunker``
    Classifies each document and splits it with the matching strategy.
``EmbeddingPipeline``
    Batches chunks, bounds concurrency, retries, and appends successful
    vectors to the store.
``Retriever``
    Embeds a query, scans a store snapshot, filters by threshold and
    re-ranks for source diversity.
``assemble_context``
    Packs ranked results into a character-budgeted context string.

Flow:
    ingest:   raw documents → Document → chunks → pipeline → store
    query:    query → retriever → ranked results → context

Per-document and per-chunk failures are contained: they are logged,
counted in the ``IngestionReport`` and never raised.  A failure to embed
the *query* is raised to the caller.

Usage:
    from sift.src.core.rag_engine import RAGEngine
    async with OllamaEmbeddingClient() as provider:
        engine = RAGEngine(provider)
        await engine.store_documents(["Llamas are members of the camelid family."])
        result = await engine.build_context("What are llamas related to?")
"""

from __future__ import annotations

import time
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Any

from sift.config.messages import NO_RELEVANT_INFORMATION
from sift.config.settings import Settings, settings as default_settings
from sift.src.core.chunker import Chunker
from sift.src.core.context import assemble_context
from sift.src.core.embedding_client import EmbeddingProvider
from sift.src.core.embedding_pipeline import EmbeddingPipeline
from sift.src.core.ingestor import IngestionReport, RawDocument, to_document
from sift.src.core.models import Chunk, SimilarityResult
from sift.src.core.retriever import Retriever
from sift.src.database.vector_store import InMemoryVectorStore
from sift.src.utils.logger import get_logger
from sift.src.utils.timing import PerformanceMonitor

logger = get_logger(__name__)


@dataclass(frozen=True, slots=True)
class RetrievalContext:
    """Answer material for one query."""

    query: str
    context: str
    results: list[SimilarityResult] = field(default_factory=list)
    found: bool = False


class RAGEngine:
    """
    In-memory retrieval-augmented-generation engine.

    Parameters
    ----------
    provider
        Embedding provider used for both documents and queries.
    store
        Target store.  A fresh ``InMemoryVectorStore`` when omitted.
    config
        Settings instance.  Defaults to the module-level ``settings``.
    """

    __slots__ = ("_provider", "_store", "_config", "chunker", "pipeline", "retriever", "monitor")

    def __init__(self, provider: EmbeddingProvider, store: InMemoryVectorStore | None = None, config: Settings | None = None) -> None:
        self._provider = provider
        self._store = store if store is not None else InMemoryVectorStore()
        self._config = config or default_settings

        self.chunker = Chunker(self._config.chunking)
        self.pipeline = EmbeddingPipeline(provider, self._store, self._config.embedding)
        self.retriever = Retriever(self._store, provider, self._config.retrieval)
        self.monitor = PerformanceMonitor()

    @property
    def store(self) -> InMemoryVectorStore:
        return self._store

    @property
    def provider(self) -> EmbeddingProvider:
        return self._provider

    # ══════════════════════════════════════════════════════════════════
    #  INGESTION
    # ══════════════════════════════════════════════════════════════════

    async def store_documents(self, documents: Sequence[RawDocument], model: str | None = None) -> int:
        """Chunk, embed and store *documents*; return the number of chunks stored."""
        report = await self.ingest(documents, model=model)
        return report.chunks_stored

    async def ingest(self, documents: Sequence[RawDocument], model: str | None = None) -> IngestionReport:
        """Same work as ``store_documents`` with the full report."""
        t_start = time.perf_counter()
        report = IngestionReport(documents_total=len(documents))
        document_ids = self._store.allocate_document_ids(len(documents))

        logger.info("[INGEST] Processing %d document(s).", len(documents))

        # ── Chunking (timed) ───────────────────────────────────────────
        self.monitor.start_timer("chunking")
        chunks: list[Chunk] = []
        for position, (raw, document_id) in enumerate(zip(documents, document_ids)):
            try:
                document = to_document(raw, document_id, position)
                produced = self.chunker.chunk(document)
            except Exception:
                logger.exception("[INGEST] Document %d failed during chunking.", document_id)
                report.documents_failed += 1
                continue

            if not produced:
                report.documents_without_chunks += 1
                logger.warning("[INGEST] Document %d produced no chunks (shorter than min_chunk_size=%d tokens?).", document_id, self.chunker.config.min_chunk_size)
            logger.debug("[INGEST] Document %d → %d chunk(s).", document_id, len(produced))
            chunks.extend(produced)
        self.monitor.end_timer("chunking", documents=len(documents), chunks=len(chunks))

        report.chunks_created = len(chunks)

        # ── Embedding + storage (timed) ────────────────────────────────
        with self.monitor.measure("embedding", chunks=len(chunks)):
            pipeline_report = await self.pipeline.run(chunks, model=model)

        report.chunks_stored = pipeline_report.chunks_stored
        report.chunks_failed = pipeline_report.chunks_failed
        report.pipeline = pipeline_report
        report.elapsed_seconds = round(time.perf_counter() - t_start, 3)

        logger.info(
            "[INGEST] Complete — %d/%d document(s) chunked, %d/%d chunk(s) stored in %.2fs.",
            report.documents_total - report.documents_failed,
            report.documents_total,
            report.chunks_stored,
            report.chunks_created,
            report.elapsed_seconds,
        )
        return report

    # ══════════════════════════════════════════════════════════════════
    #  RETRIEVAL
    # ══════════════════════════════════════════════════════════════════

    async def retrieve_relevant_documents(self, query: str, top_k: int | None = None, model: str | None = None) -> list[SimilarityResult]:
        with self.monitor.measure("retrieval", top_k=top_k):
            return await self.retriever.retrieve(query, top_k=top_k, model=model)

    async def build_context(self, query: str, top_k: int | None = None, model: str | None = None) -> RetrievalContext:
        """
        Retrieve and assemble the context for *query*.

        When nothing clears the similarity threshold the context is the
        "no relevant information" message and ``found`` is ``False``.
        """
        results = await self.retrieve_relevant_documents(query, top_k=top_k, model=model)
        if not results:
            logger.info("[RETRIEVE] No relevant documents for query.")
            return RetrievalContext(query=query, context=NO_RELEVANT_INFORMATION, results=[], found=False)

        context = assemble_context(results, self._config.retrieval.max_context_chars)
        return RetrievalContext(query=query, context=context, results=results, found=True)

    # ══════════════════════════════════════════════════════════════════
    #  INTROSPECTION
    # ══════════════════════════════════════════════════════════════════

    def get_system_stats(self) -> dict[str, Any]:
        records = self._store.snapshot()
        total_tokens = sum(record.chunk.token_count for record in records)
        return {
            "total_chunks": len(records),
            "total_documents": len({record.chunk.document_id for record in records}),
            "average_chunk_size": round(total_tokens / len(records)) if records else 0,
            "embedding_model": self._provider.model,
            "config": self._config.engine_config(),
            "metrics": self.monitor.get_metrics(),
        }

    async def check_provider(self) -> bool:
        healthy = await self._provider.check_status()
        if not healthy:
            logger.warning("[EMBED] Provider '%s' is not reachable.", self._provider.model)
        return healthy

    def __repr__(self) -> str:
        return f"RAGEngine(provider={self._provider!r}, store={self._store!r})"
