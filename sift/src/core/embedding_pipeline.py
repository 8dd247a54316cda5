"""
Sift - Bounded Embedding Pipeline
==================================
Converts chunks into stored ``VectorRecord`` objects while keeping the
load on the embedding provider under control.

Flow per run:
    1. Group chunks into batches of ``batch_size``.
    2. Each batch takes one permit from a FIFO limiter of
       ``concurrency`` permits and keeps it until it is done.
    3. Inside a batch every chunk is embedded independently; each
       provider call also takes a permit from a second limiter of
       ``max_in_flight_requests``, so total in-flight calls are bounded
       no matter how large ``batch_size × concurrency`` is.
    4. Each chunk gets up to ``retry_attempts`` tries with a backoff of
       ``retry_base_delay × attempt`` between them.  A chunk that never
       succeeds is dropped; its siblings are unaffected.
    5. Successful vectors are appended to the store (id assignment is
       serialised by the store's write lock).
    6. While batches are still waiting to start, a finished batch holds
       its permit for ``rate_limit_delay`` before letting the next one in.

Failures never escape ``run``; the caller gets a ``PipelineReport``.
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import asdict, dataclass, field
from typing import Any

from sift.config.settings import EmbeddingConfig, settings
from sift.src.core.embedding_client import EmbeddingProvider, Vector
from sift.src.core.errors import RETRYABLE_ERRORS, EmbeddingValidationError, ExhaustedRetriesError, SiftError, TransportError
from sift.src.core.limiter import BoundedLimiter
from sift.src.core.models import Chunk
from sift.src.database.vector_store import InMemoryVectorStore
from sift.src.utils.logger import get_logger

logger = get_logger(__name__)

SleepFn = Callable[[float], Awaitable[Any]]


@dataclass(slots=True)
class PipelineReport:
    """Outcome of one pipeline run."""

    chunks_submitted: int = 0
    chunks_stored: int = 0
    chunks_failed: int = 0
    batches: int = 0
    attempts: int = 0
    peak_batches_in_flight: int = 0
    peak_requests_in_flight: int = 0
    elapsed_seconds: float = 0.0
    failed_chunk_ids: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(slots=True)
class _RunState:
    report: PipelineReport
    batch_limiter: BoundedLimiter
    request_limiter: BoundedLimiter
    model: str | None
    total_batches: int
    not_started: int


class EmbeddingPipeline:
    """
    Batched, concurrency-bounded, retrying embedder.

    Parameters
    ----------
    provider
        Any ``EmbeddingProvider``.
    store
        Destination ``InMemoryVectorStore`` (injected, never global).
    config
        Batching / retry policy.  Defaults to ``settings.embedding``.
    sleep
        Awaitable used for backoff and pacing.  Defaults to ``asyncio.sleep``.
    """

    __slots__ = ("_provider", "_store", "_config", "_sleep")

    def __init__(self, provider: EmbeddingProvider, store: InMemoryVectorStore, config: EmbeddingConfig | None = None, sleep: SleepFn | None = None) -> None:
        self._provider = provider
        self._store = store
        self._config = config or settings.embedding
        self._sleep = sleep or asyncio.sleep

    @property
    def config(self) -> EmbeddingConfig:
        return self._config

    # ══════════════════════════════════════════════════════════════════
    #  PUBLIC ENTRY POINT
    # ══════════════════════════════════════════════════════════════════

    async def run(self, chunks: Sequence[Chunk], model: str | None = None) -> PipelineReport:
        """Embed and store *chunks*; return the run report."""
        t_start = time.perf_counter()
        report = PipelineReport(chunks_submitted=len(chunks))
        if not chunks:
            return report

        size = self._config.batch_size
        batches = [list(chunks[i : i + size]) for i in range(0, len(chunks), size)]
        report.batches = len(batches)

        state = _RunState(
            report=report,
            batch_limiter=BoundedLimiter(self._config.concurrency, name="batches"),
            request_limiter=BoundedLimiter(self._config.max_in_flight_requests, name="requests"),
            model=model,
            total_batches=len(batches),
            not_started=len(batches),
        )

        logger.info("[PIPELINE] Embedding %d chunk(s) in %d batch(es) (batch_size=%d, concurrency=%d).", len(chunks), len(batches), size, self._config.concurrency)

        await asyncio.gather(*(self._run_batch(batch, index, state) for index, batch in enumerate(batches)))

        report.peak_batches_in_flight = state.batch_limiter.peak
        report.peak_requests_in_flight = state.request_limiter.peak
        report.elapsed_seconds = round(time.perf_counter() - t_start, 3)

        logger.info(
            "[PIPELINE] Complete — %d/%d chunk(s) stored, %d failed, %d attempt(s), %.2fs.",
            report.chunks_stored,
            report.chunks_submitted,
            report.chunks_failed,
            report.attempts,
            report.elapsed_seconds,
        )
        return report

    # ══════════════════════════════════════════════════════════════════
    #  PER-BATCH PROCESSING
    # ══════════════════════════════════════════════════════════════════

    async def _run_batch(self, batch: list[Chunk], index: int, state: _RunState) -> None:
        async with state.batch_limiter.permit():
            state.not_started -= 1
            t_batch = time.perf_counter()
            logger.debug("[PIPELINE] Batch %d/%d started (%d chunk(s)).", index + 1, state.total_batches, len(batch))

            vectors = await asyncio.gather(*(self._embed_chunk(chunk, state) for chunk in batch))

            stored = 0
            for chunk, vector in zip(batch, vectors):
                if vector is not None and self._insert(chunk, vector):
                    stored += 1
                else:
                    state.report.chunks_failed += 1
                    state.report.failed_chunk_ids.append(chunk.id)
            state.report.chunks_stored += stored

            logger.info("[PIPELINE] Batch %d/%d complete — %d/%d stored in %.1fms.", index + 1, state.total_batches, stored, len(batch), (time.perf_counter() - t_batch) * 1000)

            # Pace the provider between batches; the permit is still held.
            if state.not_started > 0 and self._config.rate_limit_delay > 0:
                await self._sleep(self._config.rate_limit_delay)

    def _insert(self, chunk: Chunk, vector: Vector) -> bool:
        try:
            self._store.add(chunk, vector)
        except SiftError:
            logger.exception("[PIPELINE] Could not store chunk %s.", chunk.id)
            return False
        return True

    # ══════════════════════════════════════════════════════════════════
    #  PER-CHUNK RETRY
    # ══════════════════════════════════════════════════════════════════

    async def _embed_chunk(self, chunk: Chunk, state: _RunState) -> Vector | None:
        try:
            return await self.embed_with_retry(chunk.content, state.model, state.request_limiter, state.report)
        except EmbeddingValidationError as exc:
            logger.warning("[EMBED] Chunk %s rejected: %s", chunk.id, exc)
        except ExhaustedRetriesError as exc:
            logger.error("[EMBED] Chunk %s dropped after %d attempt(s): %s", chunk.id, exc.attempts, exc.last_error)
        return None

    async def embed_with_retry(self, text: str, model: str | None = None, limiter: BoundedLimiter | None = None, report: PipelineReport | None = None) -> Vector:
        """
        Embed *text* with up to ``retry_attempts`` tries.

        Raises
        ------
        EmbeddingValidationError
            Immediately, for blank input.
        ExhaustedRetriesError
            After the final failed attempt.
        """
        attempts = self._config.retry_attempts
        last_error: BaseException | None = None

        for attempt in range(1, attempts + 1):
            if report is not None:
                report.attempts += 1
            try:
                if limiter is None:
                    return await self._provider.embed(text, model)
                async with limiter.permit():
                    return await self._provider.embed(text, model)
            except EmbeddingValidationError:
                raise
            except Exception as exc:
                # Foreign provider errors are retried as transport failures.
                if isinstance(exc, RETRYABLE_ERRORS):
                    last_error = exc
                else:
                    last_error = TransportError(f"{type(exc).__name__}: {exc}")
                    last_error.__cause__ = exc
                if attempt < attempts:
                    delay = self._config.retry_base_delay * attempt
                    logger.warning("[EMBED] Attempt %d/%d failed (%s) — retrying in %.2fs.", attempt, attempts, exc, delay)
                    await self._sleep(delay)

        raise ExhaustedRetriesError(attempts, last_error)
