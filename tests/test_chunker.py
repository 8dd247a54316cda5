"""Tests for the chunker strategies and the chunk builder."""

import pytest

from sift.config.settings import ChunkingConfig
from sift.src.core.chunker import Chunker, extract_code_blocks, overlap_tail, split_by_structure, split_sentences
from sift.src.core.models import ContentType, Document
from sift.src.utils.text_utils import estimate_tokens

SMALL = ChunkingConfig(max_chunk_size=60, min_chunk_size=20, overlap=10)


def _sentences(count: int) -> list[str]:
    return [f"Sentence number {i} describes llamas and alpacas grazing quietly on the high plateau of the Andes." for i in range(count)]


def _document(text: str, document_id: int = 0, **metadata) -> Document:
    return Document(document_id=document_id, content=text, metadata=metadata)


def _strip_overlap(chunks: list[str], overlap: int) -> list[str]:
    pieces = [chunks[0]]
    for previous, current in zip(chunks, chunks[1:]):
        tail = overlap_tail(previous, overlap)
        prefix = f"{tail} " if tail else ""
        assert current.startswith(prefix)
        pieces.append(current[len(prefix):])
    return pieces


class TestHelpers:
    """Unit splitting and overlap helpers."""

    def test_split_sentences_requires_capital(self):
        text = "First one. second stays attached. Third starts fresh! Fourth? Yes."
        assert split_sentences(text) == ["First one. second stays attached.", "Third starts fresh!", "Fourth?", "Yes."]

    def test_overlap_tail_is_word_aligned(self):
        text = "alpha beta gamma delta epsilon"
        tail = overlap_tail(text, 3)  # ≤ 12 characters
        assert tail == "epsilon"
        assert text.endswith(tail)
        assert estimate_tokens(tail) <= 3

    def test_overlap_tail_longest_run(self):
        assert overlap_tail("aa bb cc dd", 2) == "bb cc dd"

    def test_overlap_tail_zero(self):
        assert overlap_tail("anything at all", 0) == ""

    def test_split_by_structure_sections(self):
        text = "Preface line.\n# Intro\nHello there.\n## Details\nMore words.\n### Empty"
        sections = split_by_structure(text)
        assert [(s.header, s.level, s.content) for s in sections] == [
            ("", 0, "Preface line."),
            ("Intro", 1, "Hello there."),
            ("Details", 2, "More words."),
        ]

    def test_extract_code_blocks_brace_depth(self):
        code = "function add(a, b) {\n return a + b;\n}\nconst x = 1;\nfunction sub(a, b) {\n if (a) {\n  return a - b;\n }\n}"
        blocks = extract_code_blocks(code)
        assert len(blocks) == 2
        assert blocks[0].startswith("function add")
        assert blocks[0].endswith("}")
        assert blocks[1].startswith("const x = 1;\nfunction sub")

    def test_extract_code_blocks_leftover(self):
        blocks = extract_code_blocks("const a = 1;\nconst b = 2;")
        assert blocks == ["const a = 1;\nconst b = 2;"]


class TestGeneralStrategy:
    """Sentence accumulation, overlap and size bounds."""

    def test_union_minus_overlap_reconstructs_text(self):
        text = " ".join(_sentences(12))
        chunks = Chunker(SMALL).chunk(_document(text, type="general"))
        assert len(chunks) > 1

        pieces = _strip_overlap([c.content for c in chunks], SMALL.overlap)
        assert " ".join(pieces) == text

    def test_chunks_within_budget(self):
        text = " ".join(_sentences(20))
        chunks = Chunker(SMALL).chunk(_document(text, type="general"))
        assert all(c.token_count <= SMALL.max_chunk_size for c in chunks)
        assert all(c.token_count == estimate_tokens(c.content) for c in chunks)

    def test_single_oversized_sentence_is_kept_whole(self):
        sentence = "A" + "a" * 400 + "."
        chunks = Chunker(SMALL).chunk(_document(sentence, type="general"))
        assert len(chunks) == 1
        assert chunks[0].token_count > SMALL.max_chunk_size

    def test_short_document_yields_no_chunks(self):
        chunks = Chunker(SMALL).chunk(_document("Too short.", type="general"))
        assert chunks == []

    def test_empty_document(self):
        assert Chunker(SMALL).chunk(_document("   \n\n  ")) == []

    def test_default_config_single_chunk(self):
        text = " ".join(_sentences(5))  # ~125 tokens
        chunks = Chunker(ChunkingConfig()).chunk(_document(text, type="general"))
        assert len(chunks) == 1
        assert chunks[0].content == text


class TestNarrativeStrategy:
    def test_paragraph_units(self):
        paragraphs = [" ".join(_sentences(2)) for _ in range(4)]
        text = "\n\n".join(paragraphs)
        chunks = Chunker(SMALL).chunk(_document(text, type="narrative"))
        assert len(chunks) >= 2
        assert chunks[0].content == paragraphs[0]
        assert all(c.metadata["content_type"] == "narrative" for c in chunks)


class TestStructuredStrategy:
    def test_section_metadata_and_sequential_indexes(self):
        config = ChunkingConfig(max_chunk_size=60, min_chunk_size=5, overlap=0)
        text = "# Intro\nLlamas are members of the camelid family.\n\n## Care\nThey need shelter, water and good pasture."
        chunks = Chunker(config).chunk(_document(text, document_id=7))

        assert [c.metadata["section_header"] for c in chunks] == ["Intro", "Care"]
        assert [c.metadata["section_level"] for c in chunks] == [1, 2]
        assert [c.index for c in chunks] == [0, 1]
        assert [c.id for c in chunks] == ["7_chunk_0", "7_chunk_1"]
        assert all(c.metadata["content_type"] == "structured" for c in chunks)

    def test_text_without_headers(self):
        text = " ".join(_sentences(5))
        chunks = Chunker(ChunkingConfig()).chunk(_document(text, type="structured"))
        assert len(chunks) == 1
        assert chunks[0].metadata["section_header"] == ""
        assert chunks[0].metadata["section_level"] == 0


class TestCodeStrategy:
    def test_one_chunk_per_function(self):
        code = "function add(a, b) {\n  return a + b;\n}\nfunction sub(a, b) {\n  return a - b;\n}"
        chunks = Chunker(SMALL).chunk(_document(code))

        assert len(chunks) == 2
        assert all(c.metadata["type"] == "code" for c in chunks)
        assert all(c.metadata["content_type"] == "code" for c in chunks)
        assert chunks[0].content.startswith("function add")

    def test_large_block_split_line_by_line(self):
        config = ChunkingConfig(max_chunk_size=20, min_chunk_size=5, overlap=0)
        body = "\n".join(f"  total = total + value_{i};" for i in range(12))
        code = "function sum() {\n" + body + "\n}"
        chunks = Chunker(config).chunk(_document(code))

        assert len(chunks) > 1
        assert all(c.token_count <= config.max_chunk_size for c in chunks)
        assert [c.index for c in chunks] == list(range(len(chunks)))


class TestBuilder:
    def test_metadata_merge(self):
        text = " ".join(_sentences(5))
        chunks = Chunker(ChunkingConfig()).chunk(_document(text, document_id=3, type="general", author="ana", chunk_index=99))
        meta = chunks[0].metadata

        assert meta["author"] == "ana"
        assert meta["chunk_index"] == 0  # structural keys win
        assert meta["document_id"] == 3
        assert meta["token_count"] == chunks[0].token_count
        assert "created_at" in meta
        assert chunks[0].document_id == 3

    @pytest.mark.parametrize("content_type", list(ContentType))
    def test_ids_follow_document_and_index(self, content_type):
        text = "\n\n".join(" ".join(_sentences(3)) for _ in range(3))
        chunks = Chunker(SMALL).chunk(_document(text, document_id=5, type=content_type.value))
        assert chunks
        assert [c.id for c in chunks] == [f"5_chunk_{i}" for i in range(len(chunks))]
