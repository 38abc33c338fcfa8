"""Unit tests for text chunking."""

import pytest

from qa_extractor.extraction.chunker import ChunkingConfig, chunk_text, dedupe_items
from qa_extractor.models import ExtractedItem


class TestChunkingConfig:
    """Tests for ChunkingConfig."""

    def test_default_config(self):
        config = ChunkingConfig()
        assert config.chunk_size == 18000
        assert config.overlap == 1200
        assert config.newline_snap == 200

    def test_custom_config(self):
        config = ChunkingConfig(chunk_size=4000, overlap=300)
        assert config.chunk_size == 4000
        assert config.overlap == 300


class TestChunkText:
    """Tests for window splitting."""

    def test_empty_text_yields_no_windows(self):
        assert chunk_text("") == []

    def test_short_text_is_one_window(self):
        windows = chunk_text("Hello world")
        assert len(windows) == 1
        assert windows[0].text == "Hello world"
        assert windows[0].start == 0
        assert windows[0].end == 11

    def test_long_text_uses_default_step(self):
        text = "a" * 25000
        windows = chunk_text(text)

        assert len(windows) == 2
        assert windows[0].start == 0
        assert windows[0].end == 18000
        assert windows[1].start == 16800
        assert windows[1].end == 25000

    def test_windows_overlap(self):
        text = "".join(chr(ord("a") + i % 26) for i in range(1000))
        windows = chunk_text(text, ChunkingConfig(chunk_size=400, overlap=100, newline_snap=0))

        assert [w.start for w in windows] == [0, 300, 600, 900]
        assert windows[0].text[-100:] == windows[1].text[:100]

    def test_indices_are_sequential(self):
        windows = chunk_text("x" * 1000, ChunkingConfig(chunk_size=300, overlap=50))
        assert [w.index for w in windows] == list(range(len(windows)))

    def test_overlap_not_smaller_than_size_still_terminates(self):
        windows = chunk_text("y" * 100, ChunkingConfig(chunk_size=10, overlap=10))

        assert len(windows) == 10
        assert [w.start for w in windows] == list(range(0, 100, 10))

    def test_non_positive_size_rejected(self):
        with pytest.raises(ValueError):
            chunk_text("text", ChunkingConfig(chunk_size=0))

    def test_snaps_to_nearby_newline(self):
        text = "a" * 105 + "\n" + "b" * 200
        windows = chunk_text(text, ChunkingConfig(chunk_size=100, overlap=0, newline_snap=10))

        assert windows[0].end == 105
        assert windows[0].text == "a" * 105

    def test_far_newline_is_ignored(self):
        text = "a" * 150 + "\n" + "b" * 200
        windows = chunk_text(text, ChunkingConfig(chunk_size=100, overlap=0, newline_snap=10))

        assert windows[0].end == 100

    @pytest.mark.parametrize(
        "distance, expected_end",
        [(9, 109), (10, 100)],
    )
    def test_snap_bound_is_exclusive(self, distance, expected_end):
        text = "a" * (100 + distance) + "\n" + "b" * 200
        windows = chunk_text(text, ChunkingConfig(chunk_size=100, overlap=0, newline_snap=10))

        assert windows[0].end == expected_end


class TestDedupeItems:
    """Tests for question deduplication."""

    def test_keeps_first_occurrence(self):
        items = [
            ExtractedItem(question_text="What is Java?", answer_text="first"),
            ExtractedItem(question_text="  What is Java?  ", answer_text="second"),
            ExtractedItem(question_text="Explain GC"),
        ]
        unique = dedupe_items(items)

        assert [item.question_text.strip() for item in unique] == ["What is Java?", "Explain GC"]
        assert unique[0].answer_text == "first"

    def test_drops_blank_questions(self):
        items = [ExtractedItem(question_text="   "), ExtractedItem(question_text="Q1")]
        assert [item.question_text for item in dedupe_items(items)] == ["Q1"]

    def test_only_surrounding_whitespace_is_ignored(self):
        items = [
            ExtractedItem(question_text="What is Java?"),
            ExtractedItem(question_text="what is java?"),
            ExtractedItem(question_text="What  is Java?"),
            ExtractedItem(question_text="\tWhat is Java?\n"),
        ]
        unique = dedupe_items(items)

        assert [item.question_text for item in unique] == [
            "What is Java?",
            "what is java?",
            "What  is Java?",
        ]
