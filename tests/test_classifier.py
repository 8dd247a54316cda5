"""Tests for the content classifier."""

import pytest

from sift.src.core.classifier import average_words_per_sentence, classify
from sift.src.core.models import ContentType

LONG_SENTENCES = (
    "The herd moved slowly across the windswept plateau while the shepherds followed at a patient distance behind them. "
    "By evening the animals had settled near the stream and the travellers began to unpack their heavy woollen blankets"
)


class TestClassify:
    """Heuristic order and hint handling."""

    @pytest.mark.parametrize(
        "text",
        [
            "function add(a, b) { return a + b; }",
            "class Parser:\n    pass",
            "import React from 'react'",
            "def handler(event):\n    return event",
            "<div class='note'>Hello</div>",
        ],
    )
    def test_code_patterns(self, text):
        assert classify(text) is ContentType.CODE

    @pytest.mark.parametrize(
        "text",
        [
            "# Overview\nSome words here.",
            "Steps:\n1. Open the lid\n2. Pour the water",
            "Shopping:\n- milk\n- bread",
            "Notes\n* first\n* second",
        ],
    )
    def test_structured_patterns(self, text):
        assert classify(text) is ContentType.STRUCTURED

    def test_long_sentences_are_narrative(self):
        assert average_words_per_sentence(LONG_SENTENCES) > 15
        assert classify(LONG_SENTENCES) is ContentType.NARRATIVE

    def test_short_sentences_are_general(self):
        assert classify("Llamas hum. They are social. Yes.") is ContentType.GENERAL

    def test_code_wins_over_structured(self):
        text = "# Example\ndef run():\n    pass"
        assert classify(text) is ContentType.CODE

    def test_hint_wins_outright(self):
        assert classify("def looks_like_code(): pass", hint="narrative") is ContentType.NARRATIVE
        assert classify("plain words", hint=ContentType.CODE) is ContentType.CODE

    def test_hint_is_case_insensitive(self):
        assert classify("anything", hint="Structured") is ContentType.STRUCTURED

    def test_unknown_hint_maps_to_general(self):
        assert classify("def looks_like_code(): pass", hint="text") is ContentType.GENERAL

    def test_empty_hint_runs_heuristics(self):
        assert classify("# Title\nbody", hint="") is ContentType.STRUCTURED

    @pytest.mark.parametrize("text", ["", "a", LONG_SENTENCES, "function f() {}", "# H\n- x"])
    def test_is_pure(self, text):
        assert classify(text) == classify(text)
        assert classify(text, "code") == classify(text, "code")
