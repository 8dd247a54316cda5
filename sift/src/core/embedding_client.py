"""
Sift - Embedding Client
========================
One call to an external embedding provider, returning a validated
vector.

Providers
---------
``OllamaEmbeddingClient``
    ``POST {base}/api/embed`` over ``httpx.AsyncClient``.
``LangChainEmbeddingClient``
    Adapts any LangChain ``Embeddings`` object (e.g.
    ``GoogleGenerativeAIEmbeddings``) through ``aembed_query``.

Both route the provider's answer through ``parse_embedding_payload``,
which turns the raw payload into a tagged ok / error result.  Shape
problems surface as ``FormatError``; network problems and non-2xx
statuses as ``TransportError``; empty input as
``EmbeddingValidationError`` (never sent to the provider).
"""

from __future__ import annotations

import math
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any, Protocol, runtime_checkable

import httpx
from langchain_core.embeddings import Embeddings

from sift.config.settings import Settings, settings
from sift.src.core.errors import EmbeddingError, EmbeddingValidationError, FormatError, TransportError
from sift.src.utils.logger import get_logger
from sift.src.utils.text_utils import estimate_tokens, truncate_to_tokens

logger = get_logger(__name__)

Vector = list[float]


# ══════════════════════════════════════════════════════════════════════
#  PROVIDER PROTOCOL
# ══════════════════════════════════════════════════════════════════════


@runtime_checkable
class EmbeddingProvider(Protocol):
    """Anything that can turn one text into one embedding vector."""

    model: str

    async def embed(self, text: str, model: str | None = None) -> Vector: ...

    async def check_status(self) -> bool: ...


# ══════════════════════════════════════════════════════════════════════
#  RESPONSE ADAPTER
# ══════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class EmbeddingParseResult:
    """Outcome of parsing a provider payload: a vector or an error message."""

    vector: Vector | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.vector is not None

    @classmethod
    def success(cls, vector: Vector) -> EmbeddingParseResult:
        return cls(vector=vector)

    @classmethod
    def failure(cls, error: str) -> EmbeddingParseResult:
        return cls(error=error)


def parse_embedding_payload(payload: Any) -> EmbeddingParseResult:
    """
    Parse a provider payload into a vector.

    Accepted shapes:
        ``{"embeddings": [[...]]}``  (Ollama ``/api/embed``)
        ``{"embedding": [...]}``     (Ollama ``/api/embeddings``)
        ``[...]`` or ``[[...]]``     (bare vector, e.g. LangChain)

    A single-row batch is unwrapped.  Multi-row batches, empty vectors,
    non-numeric values, NaN and infinities are rejected.
    """
    if isinstance(payload, dict):
        if "embeddings" in payload:
            raw = payload["embeddings"]
        elif "embedding" in payload:
            raw = payload["embedding"]
        else:
            return EmbeddingParseResult.failure(f"response has no 'embeddings' or 'embedding' key (keys: {sorted(payload)[:5]})")
    else:
        raw = payload

    if not _is_sequence(raw):
        return EmbeddingParseResult.failure(f"embedding is not a sequence (got {type(raw).__name__})")

    if len(raw) > 0 and _is_sequence(raw[0]):
        if len(raw) != 1:
            return EmbeddingParseResult.failure(f"expected a single vector, got a batch of {len(raw)}")
        raw = raw[0]

    if len(raw) == 0:
        return EmbeddingParseResult.failure("embedding is empty")

    vector: Vector = []
    for position, value in enumerate(raw):
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            return EmbeddingParseResult.failure(f"non-numeric value at position {position}: {value!r}")
        number = float(value)
        if not math.isfinite(number):
            return EmbeddingParseResult.failure(f"non-finite value at position {position}: {number}")
        vector.append(number)

    return EmbeddingParseResult.success(vector)


def _is_sequence(value: Any) -> bool:
    return isinstance(value, Sequence) and not isinstance(value, (str, bytes))


def prepare_input(text: str, max_input_tokens: int) -> str:
    """Reject blank input and truncate oversized input."""
    if not text or not text.strip():
        raise EmbeddingValidationError("Empty text provided for embedding")
    if estimate_tokens(text) > max_input_tokens:
        logger.debug("[EMBED] Truncating input from %d to %d tokens.", estimate_tokens(text), max_input_tokens)
        return truncate_to_tokens(text, max_input_tokens)
    return text


# ══════════════════════════════════════════════════════════════════════
#  OLLAMA (HTTP)
# ══════════════════════════════════════════════════════════════════════


class OllamaEmbeddingClient:
    """
    Async client for Ollama's embedding endpoint.

    Parameters
    ----------
    base_url
        Server root.  Defaults to ``settings.OLLAMA_BASE_URL``.
    model
        Default model.  Defaults to ``settings.EMBEDDING_MODEL``.
    timeout
        Per-request timeout in seconds.
    client
        Optional pre-built ``httpx.AsyncClient`` (tests inject one with a
        ``MockTransport``).  An injected client is not closed by ``aclose``.
    """

    def __init__(self, base_url: str | None = None, model: str | None = None, timeout: float | None = None, max_input_tokens: int | None = None, client: httpx.AsyncClient | None = None) -> None:
        self._base_url = (base_url or settings.OLLAMA_BASE_URL).rstrip("/")
        self.model = model or settings.EMBEDDING_MODEL
        self._max_input_tokens = max_input_tokens or settings.embedding.max_input_tokens
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=timeout or settings.REQUEST_TIMEOUT)

    async def embed(self, text: str, model: str | None = None) -> Vector:
        prepared = prepare_input(text, self._max_input_tokens)

        try:
            response = await self._client.post(f"{self._base_url}/api/embed", json={"model": model or self.model, "input": prepared})
        except httpx.HTTPError as exc:
            raise TransportError(f"embedding request to {self._base_url} failed: {exc}") from exc

        if response.is_error:
            raise TransportError(f"HTTP error {response.status_code}: {response.text[:200]}", status_code=response.status_code)

        try:
            payload = response.json()
        except ValueError as exc:
            raise FormatError(f"embedding response is not valid JSON: {exc}") from exc

        result = parse_embedding_payload(payload)
        if not result.ok:
            raise FormatError(f"Invalid embedding response format: {result.error}")
        return result.vector  # type: ignore[return-value]

    async def check_status(self) -> bool:
        try:
            response = await self._client.get(f"{self._base_url}/api/tags")
        except httpx.HTTPError as exc:
            logger.warning("[EMBED] Ollama not reachable at %s: %s", self._base_url, exc)
            return False
        return response.is_success

    async def list_models(self) -> list[dict[str, Any]]:
        """Return the server's model list (empty on any failure)."""
        try:
            response = await self._client.get(f"{self._base_url}/api/tags")
            response.raise_for_status()
            models = response.json().get("models", [])
        except (httpx.HTTPError, ValueError, AttributeError) as exc:
            logger.warning("[EMBED] Could not list models: %s", exc)
            return []
        return models if isinstance(models, list) else []

    async def has_model(self, name: str) -> bool:
        return any(m.get("name") == name for m in await self.list_models())

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self) -> OllamaEmbeddingClient:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    def __repr__(self) -> str:
        return f"OllamaEmbeddingClient(base_url='{self._base_url}', model='{self.model}')"


# ══════════════════════════════════════════════════════════════════════
#  LANGCHAIN ADAPTER
# ══════════════════════════════════════════════════════════════════════


class LangChainEmbeddingClient:
    """
    Wrap a LangChain ``Embeddings`` instance as an ``EmbeddingProvider``.

    The model is fixed by the wrapped object; a per-call ``model``
    argument is ignored.
    """

    def __init__(self, embeddings: Embeddings, model: str | None = None, max_input_tokens: int | None = None) -> None:
        self._embeddings = embeddings
        self.model = model or getattr(embeddings, "model", None) or type(embeddings).__name__
        self._max_input_tokens = max_input_tokens or settings.embedding.max_input_tokens

    async def embed(self, text: str, model: str | None = None) -> Vector:
        prepared = prepare_input(text, self._max_input_tokens)

        try:
            raw = await self._embeddings.aembed_query(prepared)
        except Exception as exc:
            # LangChain integrations raise provider-specific exception types.
            raise TransportError(f"{type(self._embeddings).__name__} failed: {exc}") from exc

        result = parse_embedding_payload(raw)
        if not result.ok:
            raise FormatError(f"Invalid embedding response format: {result.error}")
        return result.vector  # type: ignore[return-value]

    async def check_status(self) -> bool:
        try:
            await self.embed("status check")
        except EmbeddingError as exc:
            logger.warning("[EMBED] %s health check failed: %s", self.model, exc)
            return False
        return True

    def __repr__(self) -> str:
        return f"LangChainEmbeddingClient(model='{self.model}')"


def create_gemini_client(config: Settings | None = None) -> LangChainEmbeddingClient:
    """Build a Gemini-backed provider (requires the ``gemini`` extra)."""
    config = config or settings
    if config.GOOGLE_API_KEY is None:
        raise ValueError("GOOGLE_API_KEY is required for the Gemini embedding provider")

    from langchain_google_genai import GoogleGenerativeAIEmbeddings

    embeddings = GoogleGenerativeAIEmbeddings(model=config.GEMINI_EMBEDDING_MODEL, google_api_key=config.GOOGLE_API_KEY.get_secret_value())
    logger.info("[EMBED] Gemini embeddings initialised: %s", config.GEMINI_EMBEDDING_MODEL)
    return LangChainEmbeddingClient(embeddings, model=config.GEMINI_EMBEDDING_MODEL)
