"""
Sift - Chunker
===============
Turns a ``Document`` into token-bounded, overlapping ``Chunk`` objects.

Strategy is picked by the content classifier:

    • ``general``    – sentence units, accumulated up to ``max_chunk_size``.
    • ``narrative``  – paragraph units, same accumulation rules.
    • ``structured`` – split at markdown headers, then ``general`` per
      section; header text / level travel in the chunk metadata.
    • ``code``       – brace-depth block detection; oversized blocks are
      split line-by-line with no overlap.

Accumulation rules (general / narrative):
    A buffer is emitted only when the next unit would push it past
    ``max_chunk_size`` **and** the buffer already holds at least
    ``min_chunk_size`` tokens.  The next buffer is seeded with the
    word-aligned tail (≤ ``overlap`` tokens) of the emitted chunk.
    A trailing buffer below ``min_chunk_size`` is dropped.

All sizes are estimated tokens (``ceil(chars / 4)``).
"""

from __future__ import annotations

import math
import re
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from sift.config.settings import ChunkingConfig, settings
from sift.src.core.classifier import classify
from sift.src.core.models import Chunk, ContentType, Document, make_chunk_id
from sift.src.utils.logger import get_logger
from sift.src.utils.text_utils import CHARS_PER_TOKEN, clean_text, estimate_tokens

logger = get_logger(__name__)

# Split after . ! ? when the next sentence starts with a capital letter.
_SENTENCE_BOUNDARY_RE = re.compile(r"(?<=[.!?])\s+(?=[A-Z])")
_PARAGRAPH_BOUNDARY_RE = re.compile(r"\n\s*\n")
_HEADER_RE = re.compile(r"^(#{1,6})\s+(.+)$")
_DECLARATION_RE = re.compile(r"^(function|class|def|async\s+function)\b")


@dataclass(frozen=True, slots=True)
class ChunkDraft:
    """Chunk text plus structural metadata, before ids are assigned."""

    content: str
    extra: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class Section:
    header: str
    level: int
    content: str


# ── Unit splitting helpers ─────────────────────────────────────────────

def split_sentences(text: str) -> list[str]:
    return [s.strip() for s in _SENTENCE_BOUNDARY_RE.split(text) if s.strip()]


def split_paragraphs(text: str) -> list[str]:
    return [p.strip() for p in _PARAGRAPH_BOUNDARY_RE.split(text) if p.strip()]


def overlap_tail(text: str, overlap_tokens: int) -> str:
    """
    Return the longest run of trailing words of *text* whose token
    estimate stays within *overlap_tokens*.
    """
    if overlap_tokens <= 0:
        return ""

    words = text.split()
    kept: list[str] = []
    length = 0
    for word in reversed(words):
        new_length = length + len(word) + (1 if kept else 0)
        if math.ceil(new_length / CHARS_PER_TOKEN) > overlap_tokens:
            break
        kept.append(word)
        length = new_length

    kept.reverse()
    return " ".join(kept)


def split_by_structure(text: str) -> list[Section]:
    """
    Split markdown-ish text at header lines.

    Content before the first header forms a section with header ``""``
    and level 0.  Sections whose body is empty are skipped.
    """
    sections: list[Section] = []
    header, level = "", 0
    body: list[str] = []

    for line in text.split("\n"):
        match = _HEADER_RE.match(line)
        if match:
            if "\n".join(body).strip():
                sections.append(Section(header, level, "\n".join(body).strip()))
            header, level = match.group(2).strip(), len(match.group(1))
            body = []
        else:
            body.append(line)

    if "\n".join(body).strip():
        sections.append(Section(header, level, "\n".join(body).strip()))

    return sections


def extract_code_blocks(text: str) -> list[str]:
    """
    Group lines into logical blocks by tracking brace depth.

    A block opens at a line starting with a declaration keyword and
    closes when the depth returns to zero.  Lines seen outside a block
    are carried into the next one; whatever is left at the end becomes
    a final block.
    """
    blocks: list[str] = []
    current: list[str] = []
    depth = 0
    in_block = False

    for line in text.split("\n"):
        current.append(line)
        depth += line.count("{") - line.count("}")

        if _DECLARATION_RE.match(line):
            in_block = True

        if in_block and depth == 0:
            block = "\n".join(current).strip()
            if block:
                blocks.append(block)
            current = []
            in_block = False

    remainder = "\n".join(current).strip()
    if remainder:
        blocks.append(remainder)

    return blocks


class Chunker:
    """
    Strategy-dispatched document splitter.

    Parameters
    ----------
    config
        Token bounds.  Defaults to ``settings.chunking``.
    """

    __slots__ = ("_config",)

    def __init__(self, config: ChunkingConfig | None = None) -> None:
        self._config = config or settings.chunking

    @property
    def config(self) -> ChunkingConfig:
        return self._config

    # ══════════════════════════════════════════════════════════════════
    #  PUBLIC ENTRY POINT
    # ══════════════════════════════════════════════════════════════════

    def chunk(self, document: Document) -> list[Chunk]:
        """Clean, classify and split *document* into chunks."""
        t_start = time.perf_counter()
        text = clean_text(document.content)
        if not text:
            logger.warning("[CHUNK] Document %s is empty after cleaning.", document.document_id)
            return []

        content_type = classify(text, document.metadata.get("type"))
        drafts = self.split(text, content_type)
        chunks = self.build_chunks(document, drafts, content_type)

        logger.debug(
            "[CHUNK] Document %s (%s) → %d chunk(s) in %.1fms.",
            document.document_id,
            content_type.value,
            len(chunks),
            (time.perf_counter() - t_start) * 1000,
        )
        return chunks

    def split(self, text: str, content_type: ContentType) -> list[ChunkDraft]:
        if content_type is ContentType.CODE:
            return self.split_code(text)
        if content_type is ContentType.STRUCTURED:
            return self.split_structured(text)
        if content_type is ContentType.NARRATIVE:
            return self.split_narrative(text)
        return self.split_general(text)

    # ══════════════════════════════════════════════════════════════════
    #  STRATEGIES
    # ══════════════════════════════════════════════════════════════════

    def split_general(self, text: str, extra: dict[str, Any] | None = None) -> list[ChunkDraft]:
        pieces = self._accumulate(split_sentences(text), " ")
        return [ChunkDraft(piece, dict(extra or {})) for piece in pieces]

    def split_narrative(self, text: str) -> list[ChunkDraft]:
        pieces = self._accumulate(split_paragraphs(text), "\n\n")
        return [ChunkDraft(piece) for piece in pieces]

    def split_structured(self, text: str) -> list[ChunkDraft]:
        drafts: list[ChunkDraft] = []
        for section in split_by_structure(text):
            drafts.extend(self.split_general(section.content, {"section_header": section.header, "section_level": section.level}))
        return drafts

    def split_code(self, text: str) -> list[ChunkDraft]:
        drafts: list[ChunkDraft] = []
        for block in extract_code_blocks(text):
            if estimate_tokens(block) <= self._config.max_chunk_size:
                drafts.append(ChunkDraft(block, {"type": ContentType.CODE.value}))
                continue
            for piece in self._split_large_code_block(block):
                drafts.append(ChunkDraft(piece, {"type": ContentType.CODE.value}))
        return drafts

    # ══════════════════════════════════════════════════════════════════
    #  ACCUMULATION
    # ══════════════════════════════════════════════════════════════════

    def _accumulate(self, units: list[str], separator: str) -> list[str]:
        max_size = self._config.max_chunk_size
        min_size = self._config.min_chunk_size

        pieces: list[str] = []
        buffer = ""

        for unit in units:
            if not buffer:
                buffer = unit
                continue

            candidate = buffer + separator + unit
            if estimate_tokens(candidate) > max_size and estimate_tokens(buffer) >= min_size:
                pieces.append(buffer)
                tail = overlap_tail(buffer, self._config.overlap)
                seeded = f"{tail} {unit}" if tail else unit
                # Overlap never pushes a chunk over budget on its own.
                buffer = seeded if estimate_tokens(seeded) <= max_size else unit
            else:
                buffer = candidate

        if buffer and estimate_tokens(buffer) >= min_size:
            pieces.append(buffer)
        elif buffer:
            logger.debug("[CHUNK] Dropping trailing remainder (%d tokens < min %d).", estimate_tokens(buffer), min_size)

        return pieces

    def _split_large_code_block(self, block: str) -> list[str]:
        max_size = self._config.max_chunk_size
        pieces: list[str] = []
        current = ""

        for line in block.split("\n"):
            if current and estimate_tokens(current + "\n" + line) > max_size:
                if current.strip():
                    pieces.append(current.strip())
                current = line
            else:
                current = current + "\n" + line if current else line

        if current.strip():
            pieces.append(current.strip())
        return pieces

    # ══════════════════════════════════════════════════════════════════
    #  BUILDER
    # ══════════════════════════════════════════════════════════════════

    @staticmethod
    def build_chunks(document: Document, drafts: list[ChunkDraft], content_type: ContentType) -> list[Chunk]:
        """
        Assign sequential indexes and deterministic ids, then merge the
        document's metadata with the draft's structural metadata.
        Structural keys override caller keys.
        """
        created_at = datetime.now(timezone.utc).isoformat()
        chunks: list[Chunk] = []

        for draft in drafts:
            content = draft.content.strip()
            if not content:
                continue
            index = len(chunks)
            token_count = estimate_tokens(content)
            metadata = {
                **document.metadata,
                "content_type": content_type.value,
                **draft.extra,
                "document_id": document.document_id,
                "chunk_index": index,
                "token_count": token_count,
                "created_at": created_at,
            }
            chunks.append(Chunk(id=make_chunk_id(document.document_id, index), content=content, index=index, token_count=token_count, metadata=metadata))

        return chunks
