"""
Sift - Ingestion Helpers
=========================
Everything that happens to a document *before* it reaches the chunker,
plus the driver for very large collections.

Components:
    • ``to_document`` – normalises one raw input (a string, a mapping or
      any object with ``content`` / ``metadata``) into a ``Document``.
    • ``IngestionReport`` – the result of ``RAGEngine.ingest``.
    • ``DocumentLoader`` – builds raw inputs from files, plain text or
      markdown, tagging each with a content-type hint.
    • ``BatchProcessor`` – feeds an engine in fixed-size document groups
      with a pause between groups; a failing group is counted and the
      run continues.

Usage:
    from sift.src.core.ingestor import BatchProcessor, DocumentLoader
    documents = DocumentLoader.from_files(Path("docs").glob("*.md"))
    summary   = await BatchProcessor(engine).process_large_document_collection(documents)
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Awaitable, Callable, Iterable, Mapping, Sequence
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import TYPE_CHECKING, Any, Union

from sift.config.settings import IngestionConfig, settings
from sift.src.core.embedding_pipeline import PipelineReport
from sift.src.core.models import Document
from sift.src.utils.logger import get_logger
from sift.src.utils.text_utils import detect_file_type

if TYPE_CHECKING:
    from sift.src.core.rag_engine import RAGEngine

logger = get_logger(__name__)

RawDocument = Union[str, Mapping[str, Any], Any]
ProgressCallback = Callable[[dict[str, Any]], Union[Awaitable[None], None]]

# Length of the preview used as ``source_document`` for bare strings.
_SOURCE_PREVIEW_CHARS = 100


# ══════════════════════════════════════════════════════════════════════
#  DOCUMENT NORMALISATION
# ══════════════════════════════════════════════════════════════════════


def to_document(raw: RawDocument, document_id: int, position: int | None = None) -> Document:
    """
    Normalise *raw* into a ``Document``.

    A bare string gets ``source_document`` set to its first 100
    characters followed by ``"..."``.  A mapping or object uses its
    ``title`` when present, else ``"Document <position>"``.  Caller
    metadata is applied last and may override ``source_document``.

    Raises
    ------
    TypeError
        If *raw* has no string ``content``.
    """
    label = document_id if position is None else position

    if isinstance(raw, str):
        return Document(document_id=document_id, content=raw, metadata={"source_document": raw[:_SOURCE_PREVIEW_CHARS] + "..."})

    if isinstance(raw, Mapping):
        content = raw.get("content")
        metadata = raw.get("metadata") or {}
        title = raw.get("title")
    else:
        content = getattr(raw, "content", None)
        metadata = getattr(raw, "metadata", None) or {}
        title = getattr(raw, "title", None)

    if not isinstance(content, str):
        raise TypeError(f"document {label} has no text content (got {type(content).__name__})")

    merged = {"source_document": title or f"Document {label}", **dict(metadata)}
    return Document(document_id=document_id, content=content, metadata=merged)


# ══════════════════════════════════════════════════════════════════════
#  REPORT
# ══════════════════════════════════════════════════════════════════════


@dataclass(slots=True)
class IngestionReport:
    """Outcome of one ``RAGEngine.ingest`` call."""

    documents_total: int = 0
    documents_failed: int = 0
    documents_without_chunks: int = 0
    chunks_created: int = 0
    chunks_stored: int = 0
    chunks_failed: int = 0
    elapsed_seconds: float = 0.0
    pipeline: PipelineReport | None = field(default=None, repr=False)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


# ══════════════════════════════════════════════════════════════════════
#  DOCUMENT LOADER
# ══════════════════════════════════════════════════════════════════════


class DocumentLoader:
    """Builds raw document mappings (``{"content", "metadata"}``)."""

    @staticmethod
    def from_files(paths: Iterable[str | Path]) -> list[dict[str, Any]]:
        """
        Read every path; unreadable files are logged and skipped.

        The content-type hint is inferred from the extension.
        """
        documents: list[dict[str, Any]] = []
        for path in paths:
            path = Path(path)
            try:
                content = DocumentLoader.read_file(path)
            except OSError:
                logger.exception("[INGEST] Failed to load %s", path)
                continue

            documents.append({
                "content": content,
                "metadata": {
                    "source": str(path),
                    "type": detect_file_type(path),
                    "loaded_at": _now(),
                },
            })

        logger.info("[INGEST] Loaded %d document(s) from disk.", len(documents))
        return documents

    @staticmethod
    def from_text(text: str, metadata: Mapping[str, Any] | None = None) -> list[dict[str, Any]]:
        return [{"content": text, "metadata": {"type": "general", "loaded_at": _now(), **(metadata or {})}}]

    @staticmethod
    def from_markdown(markdown: str, metadata: Mapping[str, Any] | None = None) -> list[dict[str, Any]]:
        return [{"content": markdown, "metadata": {"type": "structured", "format": "markdown", "loaded_at": _now(), **(metadata or {})}}]

    @staticmethod
    def detect_file_type(path: str | Path) -> str:
        return detect_file_type(path)

    @staticmethod
    def read_file(path: Path) -> str:
        """UTF-8 first, Latin-1 as a lossless fallback."""
        try:
            return path.read_text(encoding="utf-8")
        except UnicodeDecodeError:
            return path.read_text(encoding="latin-1")


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


# ══════════════════════════════════════════════════════════════════════
#  LARGE-COLLECTION BATCH PROCESSOR
# ══════════════════════════════════════════════════════════════════════


class BatchProcessor:
    """
    Feed *engine* with documents in groups of ``document_batch_size``.

    Parameters
    ----------
    engine
        The ``RAGEngine`` receiving the documents.
    config
        Group size / pause.  Defaults to ``settings.ingestion``.
    sleep
        Awaitable used for the pause between groups.
    """

    def __init__(self, engine: RAGEngine, config: IngestionConfig | None = None, sleep: Callable[[float], Awaitable[Any]] | None = None) -> None:
        self._engine = engine
        self._config = config or settings.ingestion
        self._sleep = sleep or asyncio.sleep

    async def process_large_document_collection(self, documents: Sequence[RawDocument], progress_callback: ProgressCallback | None = None, model: str | None = None) -> dict[str, Any]:
        """
        Returns
        -------
        dict
            ``processed``, ``failed``, ``total_chunks``, ``total``,
            ``elapsed_seconds``, ``average_ms_per_document``.
        """
        t_start = time.perf_counter()
        size = self._config.document_batch_size
        total = len(documents)
        total_groups = (total + size - 1) // size

        processed = 0
        failed = 0
        total_chunks = 0

        logger.info("[INGEST] Processing %d document(s) in %d group(s) of ≤ %d.", total, total_groups, size)

        for group_number, start in enumerate(range(0, total, size), start=1):
            group = documents[start : start + size]
            logger.info("[INGEST] Group %d/%d (%d document(s)).", group_number, total_groups, len(group))

            try:
                total_chunks += await self._engine.store_documents(group, model=model)
                processed += len(group)
            except Exception:
                logger.exception("[INGEST] Group %d failed.", group_number)
                failed += len(group)
            else:
                if progress_callback is not None:
                    outcome = progress_callback({
                        "batch": group_number,
                        "total_batches": total_groups,
                        "processed": processed,
                        "total": total,
                        "chunks": total_chunks,
                    })
                    if asyncio.iscoroutine(outcome):
                        await outcome

            if start + size < total and self._config.document_batch_pause > 0:
                await self._sleep(self._config.document_batch_pause)

        elapsed = time.perf_counter() - t_start
        summary = self._summary(total, processed, failed, total_chunks, elapsed)

        logger.info(
            "[INGEST] Collection complete — %d/%d processed, %d failed, %d chunk(s) in %.2fs.",
            processed,
            total,
            failed,
            total_chunks,
            elapsed,
        )
        return summary

    # ── Summary helper ─────────────────────────────────────────────────

    @staticmethod
    def _summary(total: int, processed: int, failed: int, chunks: int, elapsed: float) -> dict[str, Any]:
        return {
            "total": total,
            "processed": processed,
            "failed": failed,
            "total_chunks": chunks,
            "elapsed_seconds": round(elapsed, 2),
            "average_ms_per_document": round(elapsed * 1000 / processed) if processed else 0,
        }
