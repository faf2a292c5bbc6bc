"""Tests for storyswap.sources — reading story text from files."""

from __future__ import annotations

import pytest

from storyswap.errors import ExtractionError
from storyswap.sources import extract_text, load_sources


class TestExtractText:
    def test_plain_text(self, tmp_path):
        path = tmp_path / "story.txt"
        path.write_text("Once upon a time.\n", encoding="utf-8")
        assert extract_text(path) == "Once upon a time.\n"

    def test_markdown_and_no_extension(self, tmp_path):
        for name in ("story.md", "STORY"):
            path = tmp_path / name
            path.write_text("A Wolf.", encoding="utf-8")
            assert extract_text(path) == "A Wolf."

    def test_bom_stripped_and_crlf_normalized(self, tmp_path):
        path = tmp_path / "story.txt"
        path.write_bytes("\ufeffLine one\r\nLine two\r\n".encode())
        assert extract_text(path) == "Line one\nLine two\n"

    def test_non_ascii(self, tmp_path):
        path = tmp_path / "skazka.txt"
        path.write_text("Жили-были дед да баба.", encoding="utf-8")
        assert extract_text(path) == "Жили-были дед да баба."

    def test_unsupported_format(self, tmp_path):
        path = tmp_path / "story.pdf"
        path.write_bytes(b"%PDF-1.7")
        with pytest.raises(ExtractionError, match="Unsupported file format"):
            extract_text(path)

    def test_missing_file(self, tmp_path):
        with pytest.raises(ExtractionError, match="Could not read"):
            extract_text(tmp_path / "missing.txt")

    def test_invalid_utf8(self, tmp_path):
        path = tmp_path / "story.txt"
        path.write_bytes(b"\xff\xfe\x00bad")
        with pytest.raises(ExtractionError, match="not valid UTF-8"):
            extract_text(path)

    def test_empty_file(self, tmp_path):
        path = tmp_path / "story.txt"
        path.write_text("  \n\n", encoding="utf-8")
        with pytest.raises(ExtractionError, match="contains no text"):
            extract_text(path)


class TestLoadSources:
    def test_failures_do_not_stop_other_files(self, tmp_path):
        good = tmp_path / "a.txt"
        good.write_text("Part one.", encoding="utf-8")
        bad = tmp_path / "b.docx"
        bad.write_bytes(b"PK")
        other = tmp_path / "c.txt"
        other.write_text("Part two.", encoding="utf-8")

        loaded = load_sources([good, bad, other])

        assert [path for path, _ in loaded.texts] == [good, other]
        assert list(loaded.failures) == [bad]
        assert loaded.combined == "Part one.\n\nPart two."

    def test_no_files(self):
        loaded = load_sources([])
        assert loaded.texts == []
        assert loaded.combined == ""
