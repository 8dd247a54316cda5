"""
Sift - Ingest & Query Script
=============================
CLI entry point that orchestrates:
    1. Load settings (fail-fast on configuration errors).
    2. Build the embedding provider and check that it is reachable.
    3. Load every file under ``--source`` and ingest it.
    4. Print an execution summary with a timing breakdown.
    5. Run each ``--query`` and print the assembled context.

Flags:
    --source DIR     Directory of documents to ingest (required).
    --query Q        Question to run after ingestion (repeatable).
    --top-k N        Results per query (default: ``RETRIEVAL__DEFAULT_TOP_K``).
    --provider P     ``ollama`` (default) or ``gemini``.
    --stats          Print the engine statistics as JSON at the end.

Usage:
    python -m sift.scripts.run_rag --source docs/
    python -m sift.scripts.run_rag --source docs/ --query "How long do llamas live?" --top-k 3
    python -m sift.scripts.run_rag --source docs/ --provider gemini --stats
"""

from __future__ import annotations

import argparse
import asyncio
import json
import sys
import time
from pathlib import Path

# ── Ensure project root is importable when run directly ────────────────
_PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent
if str(_PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(_PROJECT_ROOT))


# ── CLI Argument Parsing ───────────────────────────────────────────────

def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="run_rag", description="Sift — Ingest a directory of documents and query it.")
    parser.add_argument("--source", type=Path, required=True, help="Directory containing the documents to ingest.")
    parser.add_argument("--query", action="append", default=[], help="Question to run after ingestion (may be repeated).")
    parser.add_argument("--top-k", type=int, default=None, help="Number of results per query.")
    parser.add_argument("--provider", choices=("ollama", "gemini"), default="ollama", help="Embedding provider.")
    parser.add_argument("--stats", action="store_true", default=False, help="Print engine statistics as JSON.")
    return parser.parse_args(argv)


# ── Main Orchestration ─────────────────────────────────────────────────

def main(argv: list[str] | None = None) -> int:
    args = _parse_args(argv)
    return asyncio.run(_run(args))


async def _run(args: argparse.Namespace) -> int:
    t_start = time.perf_counter()

    # ── 0. Load settings + .env (timed) ────────────────────────────────
    t_settings = time.perf_counter()
    try:
        from sift.config.settings import settings
    except Exception as exc:
        print("\n[FATAL] Configuration error — check your .env file:\n")
        print(f"  {exc}")
        print()
        return 1
    settings_ms = (time.perf_counter() - t_settings) * 1000

    # Now that settings is loaded, we can safely import the logger
    from sift.src.utils.logger import get_logger
    logger = get_logger(__name__)

    logger.info("Settings loaded in %.1fms", settings_ms)
    _print_header(settings, args)

    if not args.source.is_dir():
        logger.error("Source directory does not exist: %s", args.source)
        return 1

    # ── 1. Initialise provider (timed) ─────────────────────────────────
    from sift.src.core.embedding_client import OllamaEmbeddingClient, create_gemini_client

    t_provider = time.perf_counter()
    try:
        provider = create_gemini_client(settings) if args.provider == "gemini" else OllamaEmbeddingClient()
    except ImportError:
        logger.error("langchain-google-genai is not installed (pip install 'sift-rag[gemini]').")
        return 1
    except ValueError as exc:
        logger.error("Provider configuration error: %s", exc)
        return 1

    if not await provider.check_status():
        logger.error("Embedding provider '%s' is not reachable.", provider.model)
        await _close(provider)
        return 1
    provider_ms = (time.perf_counter() - t_provider) * 1000
    logger.info("Provider '%s' ready in %.1fms", provider.model, provider_ms)

    try:
        return await _ingest_and_query(args, provider, t_start, settings_ms, provider_ms)
    finally:
        await _close(provider)


async def _ingest_and_query(args: argparse.Namespace, provider: object, t_start: float, settings_ms: float, provider_ms: float) -> int:
    from sift.src.core.errors import EmbeddingError
    from sift.src.core.ingestor import DocumentLoader
    from sift.src.core.rag_engine import RAGEngine

    # ── 2. Load + ingest ───────────────────────────────────────────────
    paths = sorted(p for p in args.source.rglob("*") if p.is_file())
    documents = DocumentLoader.from_files(paths)

    engine = RAGEngine(provider)  # type: ignore[arg-type]
    report = await engine.ingest(documents)

    startup_ms = settings_ms + provider_ms
    metrics = engine.monitor.get_metrics()
    _print_footer(len(paths), report, time.perf_counter() - t_start, startup_ms, metrics)

    # ── 3. Queries ─────────────────────────────────────────────────────
    for question in args.query:
        print("=" * 60)
        print(f"  Q: {question}")
        print("-" * 60)
        t_query = time.perf_counter()
        try:
            result = await engine.build_context(question, top_k=args.top_k)
        except EmbeddingError as exc:
            print(f"  [ERROR] Query failed: {exc}")
            print()
            continue
        print(result.context)
        print("-" * 60)
        print(f"  {len(result.results)} source(s) · {(time.perf_counter() - t_query) * 1000:.0f}ms")
        print()

    if args.stats:
        print(json.dumps(engine.get_system_stats(), indent=2, default=str))

    return 0


async def _close(provider: object) -> None:
    aclose = getattr(provider, "aclose", None)
    if aclose is not None:
        await aclose()


# ── Pretty-print helpers ──────────────────────────────────────────────

def _print_header(settings: object, args: argparse.Namespace) -> None:
    print()
    print("=" * 60)
    print("  SIFT — Ingest & Query")
    print("=" * 60)
    print(f"  Environment  : {settings.ENV}")                                   # type: ignore[attr-defined]
    print(f"  Provider     : {args.provider}")
    if args.provider == "ollama":
        print(f"  Ollama URL   : {settings.OLLAMA_BASE_URL}")                   # type: ignore[attr-defined]
        print(f"  Embedding    : {settings.EMBEDDING_MODEL}")                   # type: ignore[attr-defined]
    else:
        print(f"  Embedding    : {settings.GEMINI_EMBEDDING_MODEL}")            # type: ignore[attr-defined]
    print(f"  Source dir   : {args.source}")
    print(f"  Chunk size   : {settings.chunking.min_chunk_size}–{settings.chunking.max_chunk_size} tokens (overlap {settings.chunking.overlap})")  # type: ignore[attr-defined]
    print(f"  Concurrency  : {settings.embedding.concurrency} batch(es) × {settings.embedding.batch_size}")  # type: ignore[attr-defined]
    print("=" * 60)
    print()


def _print_footer(total_files: int, report: object, elapsed: float, startup_ms: float, metrics: dict) -> None:
    processing_s = elapsed - (startup_ms / 1000)
    chunking_ms = metrics.get("chunking", {}).get("duration_ms", 0.0)
    embedding_ms = metrics.get("embedding", {}).get("duration_ms", 0.0)

    print()
    print("=" * 60)
    print("  EXECUTION SUMMARY")
    print("-" * 60)
    print(f"  Files loaded         : {report.documents_total}/{total_files}")  # type: ignore[attr-defined]
    print(f"  Documents failed     : {report.documents_failed}")               # type: ignore[attr-defined]
    print(f"  Chunks created       : {report.chunks_created}")                 # type: ignore[attr-defined]
    print(f"  Chunks stored        : {report.chunks_stored}")                  # type: ignore[attr-defined]
    print(f"  Chunks failed        : {report.chunks_failed}")                  # type: ignore[attr-defined]
    print("-" * 60)
    print("  TIMING BREAKDOWN")
    print("-" * 60)
    print(f"  Startup time (total) : {startup_ms:>8.1f}ms")
    print(f"  Chunking             : {chunking_ms:>8.1f}ms")
    print(f"  Embedding + storage  : {embedding_ms:>8.1f}ms")
    print(f"  Processing time      : {processing_s:>8.2f}s")
    print(f"  Total elapsed        : {elapsed:>8.2f}s")
    print("=" * 60)
    print()


# ── Entry point ────────────────────────────────────────────────────────

if __name__ == "__main__":
    sys.exit(main())
