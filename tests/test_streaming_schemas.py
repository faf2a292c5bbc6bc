"""Tests for storyswap.schemas.streaming — events, wire records, splitting."""

from __future__ import annotations

import pytest

from storyswap.errors import FramingError
from storyswap.schemas.streaming import (
    DONE_MARKER,
    EventKind,
    RecordSplitter,
    StreamEvent,
    parse_record,
)


class TestStreamEvent:
    def test_fragment(self):
        event = StreamEvent.fragment("Once")
        assert event.kind == EventKind.FRAGMENT
        assert event.text == "Once"
        assert not event.is_terminal

    def test_done_is_terminal(self):
        assert StreamEvent.done().is_terminal

    def test_failure_is_terminal(self):
        event = StreamEvent.failure("boom")
        assert event.kind == EventKind.FAILURE
        assert event.message == "boom"
        assert event.is_terminal


class TestToRecord:
    def test_fragment_record(self):
        assert StreamEvent.fragment("Once").to_record() == 'data: {"chunk": "Once"}\n\n'

    def test_failure_record(self):
        record = StreamEvent.failure("quota exceeded").to_record()
        assert record == 'data: {"error": "quota exceeded"}\n\n'

    def test_done_record(self):
        assert StreamEvent.done().to_record() == f"data: {DONE_MARKER}\n\n"

    def test_non_ascii_kept_readable(self):
        record = StreamEvent.fragment("Жил-был Лис").to_record()
        assert "Жил-был Лис" in record

    def test_newlines_escaped_inside_payload(self):
        record = StreamEvent.fragment("line one\n\nline two").to_record()
        # Only the trailing separator may contain a blank line
        assert record.count("\n\n") == 1
        assert record.endswith("\n\n")


class TestParseRecord:
    def test_fragment(self):
        event = parse_record('data: {"chunk": "upon"}')
        assert event == StreamEvent.fragment("upon")

    def test_fragment_preserves_whitespace(self):
        event = parse_record('data: {"chunk": " a time\\n"}')
        assert event.text == " a time\n"

    def test_empty_fragment(self):
        assert parse_record('data: {"chunk": ""}') == StreamEvent.fragment("")

    def test_failure(self):
        event = parse_record('data: {"error": "Text generation failed: quota"}')
        assert event.kind == EventKind.FAILURE
        assert event.message == "Text generation failed: quota"

    def test_done(self):
        assert parse_record("data: [DONE]") == StreamEvent.done()

    def test_data_without_space(self):
        assert parse_record('data:{"chunk": "x"}') == StreamEvent.fragment("x")

    def test_comment_lines_ignored(self):
        event = parse_record(': keep-alive\ndata: {"chunk": "x"}')
        assert event == StreamEvent.fragment("x")

    def test_comment_only_record(self):
        assert parse_record(": ping") is None

    def test_multiple_data_lines_joined(self):
        event = parse_record('data: {"chunk":\ndata: "joined"}')
        assert event == StreamEvent.fragment("joined")

    def test_round_trip(self):
        for event in (
            StreamEvent.fragment('He said "hi"'),
            StreamEvent.failure("nope"),
            StreamEvent.done(),
        ):
            assert parse_record(event.to_record().rstrip("\n")) == event

    def test_invalid_json(self):
        with pytest.raises(FramingError, match="not valid JSON"):
            parse_record("data: {not json")

    def test_non_object_payload(self):
        with pytest.raises(FramingError, match="JSON object"):
            parse_record('data: ["chunk"]')

    def test_missing_fields(self):
        with pytest.raises(FramingError, match="neither"):
            parse_record('data: {"text": "x"}')

    def test_non_string_chunk(self):
        with pytest.raises(FramingError):
            parse_record('data: {"chunk": 42}')

    def test_unknown_field_line(self):
        with pytest.raises(FramingError, match="Unexpected line"):
            parse_record("event: message")


class TestRecordSplitter:
    def test_single_complete_record(self):
        splitter = RecordSplitter()
        assert splitter.feed('data: {"chunk": "a"}\n\n') == ['data: {"chunk": "a"}']

    def test_several_records_in_one_read(self):
        splitter = RecordSplitter()
        records = splitter.feed('data: {"chunk": "a"}\n\ndata: {"chunk": "b"}\n\ndata: [DONE]\n\n')
        assert records == ['data: {"chunk": "a"}', 'data: {"chunk": "b"}', "data: [DONE]"]

    def test_record_split_across_reads(self):
        splitter = RecordSplitter()
        assert splitter.feed('data: {"ch') == []
        assert splitter.feed('unk": "a"}\n') == []
        assert splitter.feed('\ndata: [DO') == ['data: {"chunk": "a"}']
        assert splitter.feed("NE]\n\n") == ["data: [DONE]"]

    def test_byte_at_a_time(self):
        wire = StreamEvent.fragment("Fox").to_record() + StreamEvent.done().to_record()
        splitter = RecordSplitter()
        records: list[str] = []
        for ch in wire:
            records.extend(splitter.feed(ch))
        assert [parse_record(r) for r in records] == [
            StreamEvent.fragment("Fox"),
            StreamEvent.done(),
        ]

    def test_crlf_separators(self):
        splitter = RecordSplitter()
        assert splitter.feed('data: {"chunk": "a"}\r\n\r\n') == ['data: {"chunk": "a"}']

    def test_crlf_split_across_reads(self):
        splitter = RecordSplitter()
        assert splitter.feed('data: {"chunk": "a"}\r') == []
        assert splitter.feed("\n\r\n") == ['data: {"chunk": "a"}']

    def test_flush_returns_unterminated_tail(self):
        splitter = RecordSplitter()
        splitter.feed('data: {"chunk": "a"}\n\ndata: [DONE]')
        assert splitter.flush() == "data: [DONE]"
        assert splitter.flush() is None

    def test_flush_empty(self):
        splitter = RecordSplitter()
        splitter.feed('data: {"chunk": "a"}\n\n')
        assert splitter.flush() is None

    def test_blank_records_dropped(self):
        splitter = RecordSplitter()
        assert splitter.feed("\n\n\n\ndata: [DONE]\n\n") == ["data: [DONE]"]
