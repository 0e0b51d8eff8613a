"""Tests for text utility functions."""

from __future__ import annotations

from docsearch.utils.text import chunk_text, normalize_whitespace, tokenize


class TestChunkText:
    """Test chunk_text function."""

    def test_chunk_short_text(self) -> None:
        """Should return single chunk for short text."""
        chunks = list(chunk_text("Short text", max_chars=100, overlap=10))
        assert chunks == ["Short text"]

    def test_chunk_long_text(self) -> None:
        """Should split long text into bounded chunks."""
        chunks = list(chunk_text("a" * 500, max_chars=100, overlap=20))
        assert len(chunks) > 1
        for chunk in chunks:
            assert len(chunk) <= 100

    def test_chunk_overlap(self) -> None:
        """Consecutive chunks should share ``overlap`` characters."""
        text = "0123456789" * 20
        chunks = list(chunk_text(text, max_chars=100, overlap=20))
        assert len(chunks) == 3
        assert chunks[0][-20:] == chunks[1][:20]

    def test_chunks_cover_text(self) -> None:
        text = "".join(chr(ord("a") + i % 26) for i in range(1234))
        chunks = list(chunk_text(text, max_chars=500, overlap=100))
        rebuilt = chunks[0] + "".join(chunk[100:] for chunk in chunks[1:])
        assert rebuilt == text

    def test_no_redundant_tail_chunk(self) -> None:
        """Text ending exactly at a window boundary should not emit a contained chunk."""
        chunks = list(chunk_text("x" * 100, max_chars=100, overlap=20))
        assert chunks == ["x" * 100]

    def test_chunk_empty_text(self) -> None:
        assert list(chunk_text("", max_chars=100, overlap=10)) == []


class TestTokenize:
    """Test tokenize function."""

    def test_lowercases_words(self) -> None:
        assert tokenize("Hello, World! Python3") == ["hello", "world", "python3"]

    def test_unicode_words(self) -> None:
        assert tokenize("Café déjà") == ["café", "déjà"]

    def test_empty(self) -> None:
        assert tokenize("") == []
        assert tokenize("  ...  ") == []


class TestNormalizeWhitespace:
    """Test normalize_whitespace function."""

    def test_normalize_whitespace(self) -> None:
        """Should strip lines and drop blank ones."""
        lines = ["  hello  ", "", "   ", "world  "]
        assert normalize_whitespace(lines) == "hello\nworld"

    def test_normalize_empty(self) -> None:
        assert normalize_whitespace([]) == ""
