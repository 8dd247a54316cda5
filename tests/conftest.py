"""
Pytest configuration and shared fixtures for sift tests.

This module provides:
- ``FakeProvider``: scriptable in-process embedding provider
- Small engine configurations with zero delays
- Helpers to build chunks / stored records with known vectors
"""

import asyncio
import math
from collections.abc import Callable

import pytest

from sift.config.settings import ChunkingConfig, EmbeddingConfig, RetrievalConfig, Settings
from sift.src.core.embedding_client import prepare_input
from sift.src.core.errors import TransportError
from sift.src.core.models import Chunk, make_chunk_id
from sift.src.database.vector_store import InMemoryVectorStore


# =============================================================================
# Fake provider
# =============================================================================


class FakeProvider:
    """
    Deterministic ``EmbeddingProvider`` for tests.

    - ``embed_fn`` maps text to a vector (default: a 4-d vector derived
      from the text length).
    - ``fail_times[text]`` makes the first N calls for *text* raise
      ``TransportError`` (``math.inf`` for "always").
    - ``delay`` suspends each call so concurrency can be observed.
    """

    def __init__(self, embed_fn: Callable[[str], list[float]] | None = None, delay: float = 0.0, model: str = "fake-embed") -> None:
        self.model = model
        self.embed_fn = embed_fn or (lambda text: [float(len(text)), 1.0, 0.5, 0.25])
        self.delay = delay
        self.fail_times: dict[str, float] = {}
        self.calls: list[str] = []
        self.models_seen: list[str | None] = []
        self.in_flight = 0
        self.peak_in_flight = 0
        self.healthy = True

    async def embed(self, text: str, model: str | None = None) -> list[float]:
        prepared = prepare_input(text, 8192)
        self.calls.append(prepared)
        self.models_seen.append(model)

        self.in_flight += 1
        self.peak_in_flight = max(self.peak_in_flight, self.in_flight)
        try:
            if self.delay:
                await asyncio.sleep(self.delay)
            if self.calls.count(prepared) <= self.fail_times.get(prepared, 0):
                raise TransportError("simulated outage", status_code=503)
            return self.embed_fn(prepared)
        finally:
            self.in_flight -= 1

    async def check_status(self) -> bool:
        return self.healthy

    def attempts_for(self, text: str) -> int:
        return self.calls.count(text)


class SleepRecorder:
    """Drop-in for ``asyncio.sleep`` that records requested delays."""

    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)
        await asyncio.sleep(0)


# =============================================================================
# Helpers
# =============================================================================


def unit_vector(similarity: float) -> list[float]:
    """2-d vector whose cosine with ``[1, 0]`` equals *similarity*."""
    return [similarity, math.sqrt(max(0.0, 1.0 - similarity * similarity))]


def make_chunk(document_id: int, index: int, content: str | None = None, **metadata) -> Chunk:
    content = content or f"Chunk {index} of document {document_id}."
    return Chunk(
        id=make_chunk_id(document_id, index),
        content=content,
        index=index,
        token_count=math.ceil(len(content) / 4),
        metadata={"document_id": document_id, "chunk_index": index, **metadata},
    )


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def provider() -> FakeProvider:
    return FakeProvider()


@pytest.fixture
def store() -> InMemoryVectorStore:
    return InMemoryVectorStore(name="test")


@pytest.fixture
def fast_embedding_config() -> EmbeddingConfig:
    return EmbeddingConfig(batch_size=4, retry_attempts=3, rate_limit_delay=0.0, concurrency=2, retry_base_delay=0.0)


@pytest.fixture
def engine_settings(fast_embedding_config) -> Settings:
    """Default chunking / retrieval with zero-delay embedding."""
    return Settings(_env_file=None, embedding=fast_embedding_config, chunking=ChunkingConfig(), retrieval=RetrievalConfig())
