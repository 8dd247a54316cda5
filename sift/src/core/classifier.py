"""
Sift - Content Classifier
==========================
Labels a text blob as ``code``, ``structured``, ``narrative`` or
``general`` so the chunker can pick a strategy.

Decision order:
    1. A caller hint wins outright (an unrecognised hint means ``general``).
    2. Any code-indicative pattern → ``code``.
    3. Markdown header / numbered list / bullet list → ``structured``.
    4. Average words per sentence > 15 → ``narrative``.
    5. Otherwise → ``general``.

Pure function: identical input always yields identical output.
"""

from __future__ import annotations

import re
from typing import Any

from sift.src.core.models import ContentType

_CODE_PATTERNS: tuple[re.Pattern[str], ...] = (
    re.compile(r"function\s+\w+\s*\("),
    re.compile(r"class\s+\w+"),
    re.compile(r"import\s+.*from"),
    re.compile(r"def\s+\w+\s*\("),
    re.compile(r"<\w+[^>]*>"),
)

_STRUCTURED_PATTERNS: tuple[re.Pattern[str], ...] = (
    re.compile(r"^#{1,6}\s+", re.MULTILINE),
    re.compile(r"^\d+\.\s+", re.MULTILINE),
    re.compile(r"^[-*+]\s+", re.MULTILINE),
)

_SENTENCE_SPLIT_RE = re.compile(r"[.!?]+")
_WORD_SPLIT_RE = re.compile(r"\s+")

NARRATIVE_WORDS_PER_SENTENCE = 15

_LABELS = {label.value: label for label in ContentType}


def classify(text: str, hint: Any = None) -> ContentType:
    """
    Return the content type of *text*.

    Args:
        text: Cleaned document text.
        hint: Optional caller-declared type (usually ``metadata["type"]``).
    """
    if hint:
        if isinstance(hint, ContentType):
            return hint
        return _LABELS.get(str(hint).strip().lower(), ContentType.GENERAL)

    if any(pattern.search(text) for pattern in _CODE_PATTERNS):
        return ContentType.CODE

    if any(pattern.search(text) for pattern in _STRUCTURED_PATTERNS):
        return ContentType.STRUCTURED

    if average_words_per_sentence(text) > NARRATIVE_WORDS_PER_SENTENCE:
        return ContentType.NARRATIVE

    return ContentType.GENERAL


def average_words_per_sentence(text: str) -> float:
    # The trailing piece after the final terminator counts as a sentence,
    # so "One. Two." has three pieces.
    sentences = len(_SENTENCE_SPLIT_RE.split(text))
    words = len(_WORD_SPLIT_RE.split(text))
    return words / sentences
