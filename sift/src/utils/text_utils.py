"""
Sift - Text Utilities
======================
Helper functions for text cleaning, token estimation, and
extension-based content-type hints.

These utilities are consumed by the chunker, the embedding client and
the document loader, and should remain stateless and side-effect-free.
"""

from __future__ import annotations

import math
import re
from pathlib import Path

# Rough token estimation: one token ≈ four characters of English text.
CHARS_PER_TOKEN = 4

_CRLF_RE = re.compile(r"\r\n?")
_EXCESS_NEWLINES_RE = re.compile(r"\n{3,}")
_HORIZONTAL_RUN_RE = re.compile(r"[ \t]{2,}")


# ── Public API ─────────────────────────────────────────────────────────

def clean_text(text: str) -> str:
    """
    Normalise raw document text before chunking.

    Steps:
        1. Normalise line endings to ``\\n``.
        2. Collapse 3+ consecutive newlines to 2 (paragraph breaks survive).
        3. Collapse runs of spaces / tabs into a single space.
        4. Strip leading / trailing whitespace.

    Args:
        text: Raw text supplied by the caller.

    Returns:
        Cleaned text ready for classification and chunking.
    """
    text = _CRLF_RE.sub("\n", text)
    text = _EXCESS_NEWLINES_RE.sub("\n\n", text)
    text = _HORIZONTAL_RUN_RE.sub(" ", text)
    return text.strip()


def estimate_tokens(text: str) -> int:
    """Return ``ceil(len(text) / 4)``."""
    return math.ceil(len(text) / CHARS_PER_TOKEN)


def truncate_to_tokens(text: str, max_tokens: int) -> str:
    """Cut *text* to roughly *max_tokens* tokens (character-based)."""
    if estimate_tokens(text) <= max_tokens:
        return text
    return text[: max_tokens * CHARS_PER_TOKEN]


# ── Extension → content-type hint ──────────────────────────────────────
# The values are classifier labels; unknown extensions fall back to
# ``"general"``.
_EXTENSION_TYPES: dict[str, str] = {
    "md": "structured",
    "json": "structured",
    "txt": "general",
    "js": "code",
    "py": "code",
    "html": "code",
}

_DEFAULT_FILE_TYPE = "general"


def detect_file_type(path: str | Path) -> str:
    """
    Map a file path to a content-type hint by extension.

    Examples::

        "notes.md"     → "structured"
        "server.js"    → "code"
        "README"       → "general"
    """
    suffix = Path(path).suffix.lower().lstrip(".")
    return _EXTENSION_TYPES.get(suffix, _DEFAULT_FILE_TYPE)
