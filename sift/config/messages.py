"""
Sift - User-Facing Messages
============================
Fixed strings surfaced to callers of the engine.  Kept in one place so
the context format and the "nothing found" signal stay consistent
between the engine, the CLI, and the tests.
"""

# ══════════════════════════════════════════════════════════════════════
#  RETRIEVAL SIGNALS
# ══════════════════════════════════════════════════════════════════════

NO_RELEVANT_INFORMATION = "I could not find relevant information to answer your question."

# ══════════════════════════════════════════════════════════════════════
#  CONTEXT FORMAT
# ══════════════════════════════════════════════════════════════════════

# One block per ranked result; the assembler prepends "\n\n" to each.
CONTEXT_SOURCE_TEMPLATE = "--- Source (similarity: {similarity:.3f}) ---\n{content}"
