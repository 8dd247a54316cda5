"""
Sift - Context Assembler
=========================
Turns ranked results into the context string handed to a language model.

Each result becomes one block::

    --- Source (similarity: 0.873) ---
    <chunk content>

Blocks are joined in rank order until the next one would push the total
past ``max_chars``; assembly stops there, even if a later, shorter block
would still fit.
"""

from __future__ import annotations

from collections.abc import Iterable

from sift.config.messages import CONTEXT_SOURCE_TEMPLATE
from sift.src.core.models import SimilarityResult

DEFAULT_MAX_CHARS = 2000


def format_source(result: SimilarityResult) -> str:
    return "\n\n" + CONTEXT_SOURCE_TEMPLATE.format(similarity=result.similarity, content=result.content)


def assemble_context(results: Iterable[SimilarityResult], max_chars: int = DEFAULT_MAX_CHARS) -> str:
    """Concatenate *results* under a hard *max_chars* budget."""
    context = ""
    for result in results:
        block = format_source(result)
        if len(context) + len(block) > max_chars:
            break
        context += block
    return context.strip()
