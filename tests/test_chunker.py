"""Tests for the document chunker."""

import pydantic
import pytest

from semantic_memory.core.config import ChunkingConfig
from semantic_memory.services.chunker import SENTENCE_BOUNDARY, Chunker


def make_chunker(strategy: str = "sentence", chunk_size: int = 1000, overlap: int = 0) -> Chunker:
    return Chunker(ChunkingConfig(strategy=strategy, chunk_size=chunk_size, overlap=overlap))


def sample_document(sentences: int = 24) -> str:
    paragraphs = []
    for start in range(0, sentences, 4):
        paragraphs.append(
            " ".join(
                f"Sentence number {i} talks about topic {i % 7} in some detail."
                for i in range(start, min(start + 4, sentences))
            )
        )
    return "\n\n".join(paragraphs)


# ===================================================================
# Sentence strategy
# ===================================================================

class TestSentenceStrategy:
    """Sentence-boundary chunking with overlap."""

    def test_each_sentence_becomes_a_chunk_when_pairs_do_not_fit(self):
        chunker = make_chunker(chunk_size=20, overlap=0)
        chunks = chunker.chunk("Sentence one. Sentence two. Sentence three.")
        assert chunks == ["Sentence one.", "Sentence two.", "Sentence three."]

    def test_short_text_stays_in_one_chunk(self):
        text = "Sentence one. Sentence two. Sentence three."
        assert make_chunker().chunk(text) == [text]

    def test_blank_content_yields_no_chunks(self):
        assert make_chunker().chunk("") == []
        assert make_chunker().chunk("   \n\t ") == []

    def test_overlap_seeds_next_chunk_from_word_boundary(self):
        chunker = make_chunker(chunk_size=60, overlap=20)
        first = "Alpha beta gamma delta epsilon zeta eta theta."
        second = "Iota kappa lambda mu."
        chunks = chunker.chunk(f"{first} {second}")
        assert chunks == [first, f"zeta eta theta. {second}"]

    def test_overlap_dropped_when_it_would_exceed_chunk_size(self):
        chunker = make_chunker(chunk_size=50, overlap=30)
        first = "Alpha beta gamma delta epsilon zeta eta theta."
        second = "Iota kappa lambda mu nu xi omicron pi rho sigma."
        chunks = chunker.chunk(f"{first} {second}")
        assert chunks == [first, second]

    def test_oversized_sentence_is_emitted_whole(self):
        sentence = "This single sentence is definitely longer than twenty characters."
        chunks = make_chunker(chunk_size=20, overlap=5).chunk(sentence)
        assert chunks == [sentence]

    def test_sentence_boundary_keeps_terminal_punctuation(self):
        assert SENTENCE_BOUNDARY.split("One! Two? Three.") == ["One!", "Two?", "Three."]


# ===================================================================
# Paragraph strategy
# ===================================================================

class TestParagraphStrategy:
    """Paragraph grouping with sentence fallback."""

    def test_paragraphs_grouped_while_they_fit(self):
        text = "First paragraph here.\n\nSecond paragraph here."
        assert make_chunker("paragraph").chunk(text) == ["First paragraph here.\n\nSecond paragraph here."]

    def test_paragraphs_split_when_group_too_large(self):
        text = "First paragraph here.\n\nSecond paragraph here."
        chunks = make_chunker("paragraph", chunk_size=30).chunk(text)
        assert chunks == ["First paragraph here.", "Second paragraph here."]

    def test_oversized_paragraph_falls_back_to_sentences(self):
        text = "Short intro paragraph.\n\nOne long sentence here. Another long sentence here."
        chunks = make_chunker("paragraph", chunk_size=30).chunk(text)
        assert chunks == [
            "Short intro paragraph.",
            "One long sentence here.",
            "Another long sentence here.",
        ]


# ===================================================================
# Fixed strategy
# ===================================================================

class TestFixedStrategy:
    """Fixed windows snapped to spaces."""

    def test_hard_cut_without_spaces(self):
        chunks = make_chunker("fixed", chunk_size=30, overlap=0).chunk("a" * 100)
        assert chunks == ["a" * 30, "a" * 30, "a" * 30, "a" * 10]

    def test_windows_end_on_word_boundaries(self):
        text = " ".join(["word"] * 50)
        chunks = make_chunker("fixed", chunk_size=30, overlap=5).chunk(text)
        assert len(chunks) > 1
        assert all(len(chunk) <= 30 for chunk in chunks)
        assert all(chunk.endswith("word") for chunk in chunks)
        assert chunks[0].startswith("word")

    def test_single_window_for_short_text(self):
        text = "Just a few words here."
        assert make_chunker("fixed", chunk_size=100, overlap=10).chunk(text) == [text]


# ===================================================================
# Size bound
# ===================================================================

class TestChunkSizeBound:
    """No chunk exceeds chunk_size unless it is one indivisible sentence."""

    @pytest.mark.parametrize("strategy", ["sentence", "paragraph", "fixed"])
    @pytest.mark.parametrize("chunk_size,overlap", [(80, 0), (80, 20), (150, 60), (400, 100)])
    def test_every_chunk_within_bound(self, strategy, chunk_size, overlap):
        chunker = make_chunker(strategy, chunk_size=chunk_size, overlap=overlap)
        chunks = chunker.chunk(sample_document())
        assert chunks
        assert all(len(chunk) <= chunk_size for chunk in chunks)

    @pytest.mark.parametrize("strategy", ["sentence", "paragraph"])
    def test_only_single_sentences_exceed_bound(self, strategy):
        long_sentence = "This sentence keeps going with many words well beyond the limit."
        text = f"Tiny one. {long_sentence} Another tiny."
        chunks = make_chunker(strategy, chunk_size=30, overlap=10).chunk(text)
        oversized = [chunk for chunk in chunks if len(chunk) > 30]
        assert oversized == [long_sentence]


# ===================================================================
# Post-processing and heuristics
# ===================================================================

class TestValidation:
    """validate_chunks and optimal_chunk_size."""

    def test_drops_short_and_noise_chunks(self):
        chunker = make_chunker()
        chunks = chunker.validate_chunks(["short", "!!!!!!!!!!!!!!!", "   valid chunk text  "])
        assert chunks == ["valid chunk text"]

    def test_short_content_kept_whole(self):
        assert make_chunker().optimal_chunk_size("short text") == 10

    def test_code_like_content_gets_smaller_chunks(self):
        assert make_chunker(chunk_size=1000).optimal_chunk_size("{}();" * 200) == 800
        assert make_chunker(chunk_size=600, overlap=0).optimal_chunk_size("{}();" * 200) == 600

    def test_prose_uses_configured_size(self):
        assert make_chunker(chunk_size=1000).optimal_chunk_size("word " * 120) == 1000

    def test_overlap_must_be_smaller_than_chunk_size(self):
        with pytest.raises(pydantic.ValidationError):
            ChunkingConfig(chunk_size=100, overlap=100)
