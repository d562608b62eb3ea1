"""
Tests for the inbox log format.

Tests cover:
- Parsing records and raw lines
- Appending records
- Marking a record as read
- Audit line formatting
"""

import json

from notiva.models import (
    RawLine,
    append_line,
    append_record,
    create_record,
    format_audit_line,
    mark_read,
    parse_lines,
    records,
)


def make_record(message_id: str, text: str = "Svool") -> dict:
    return create_record("alice", "bob", text, message_id, "2025-01-15 10:00:00")


class TestParseLines:

    def test_empty_blob(self):
        assert parse_lines(None) == []
        assert parse_lines("") == []
        assert parse_lines("\n\n") == []

    def test_records_and_raw_lines(self):
        blob = '{"id":"m1","decrypted":false}\nnot json\n[1,2]\n{"id":"m2"}\n'
        entries = parse_lines(blob)

        assert entries == [
            {"id": "m1", "decrypted": False},
            RawLine("not json"),
            RawLine("[1,2]"),
            {"id": "m2"},
        ]
        assert [r["id"] for r in records(entries)] == ["m1", "m2"]

    def test_blank_lines_dropped(self):
        entries = parse_lines('\n{"id":"m1"}\n\n{"id":"m2"}\n')
        assert len(entries) == 2


class TestAppend:

    def test_append_to_absent_blob(self):
        blob = append_record(None, make_record("m1"))
        assert blob == (
            '{"id":"m1","from":"alice","to":"bob","message":"Svool",'
            '"timestamp":"2025-01-15 10:00:00","decrypted":false}\n'
        )

    def test_append_keeps_existing_lines(self):
        blob = append_record("legacy line\n", make_record("m1"))
        lines = blob.split("\n")
        assert lines[0] == "legacy line"
        assert json.loads(lines[1])["id"] == "m1"
        assert blob.endswith("\n")

    def test_append_adds_missing_newline(self):
        assert append_line("first", "second") == "first\nsecond\n"

    def test_non_ascii_kept_literal(self):
        blob = append_record("", make_record("m1", text="Привет"))
        assert "Привет" in blob


class TestMarkRead:

    def test_marks_matching_record(self):
        blob = append_record(append_record("", make_record("m1")), make_record("m2"))
        new_blob, found, record = mark_read(parse_lines(blob), "m2")

        assert found is True
        assert record["id"] == "m2"
        assert record["decrypted"] is True
        parsed = records(parse_lines(new_blob))
        assert [r["decrypted"] for r in parsed] == [False, True]

    def test_missing_id(self):
        blob = append_record("", make_record("m1"))
        new_blob, found, record = mark_read(parse_lines(blob), "nope")

        assert found is False
        assert record is None
        assert new_blob == blob

    def test_raw_lines_preserved(self):
        blob = "garbage {{\n" + append_record("", make_record("m1")) + "  indented junk\n"
        new_blob, found, _ = mark_read(parse_lines(blob), "m1")

        assert found is True
        lines = new_blob.split("\n")
        assert lines[0] == "garbage {{"
        assert json.loads(lines[1])["decrypted"] is True
        assert lines[2] == "  indented junk"

    def test_extra_keys_preserved(self):
        blob = '{"id":"m1","message":"Svool","decrypted":false,"priority":"high"}\n'
        new_blob, _, record = mark_read(parse_lines(blob), "m1")

        assert record["priority"] == "high"
        assert json.loads(new_blob)["priority"] == "high"

    def test_only_first_match_marked(self):
        blob = '{"id":"m1","decrypted":false}\n{"id":"m1","decrypted":false}\n'
        new_blob, _, _ = mark_read(parse_lines(blob), "m1")
        assert [r["decrypted"] for r in records(parse_lines(new_blob))] == [True, False]

    def test_input_entries_not_mutated(self):
        entries = parse_lines('{"id":"m1","decrypted":false}\n')
        mark_read(entries, "m1")
        assert entries[0]["decrypted"] is False


class TestAuditLine:

    def test_format(self):
        line = format_audit_line("2025-01-15 10:00:00", "MESSAGE_SENT", "alice", "bob", "MSG_1_abc")
        assert line == "[2025-01-15 10:00:00] MESSAGE_SENT: alice -> bob (ID: MSG_1_abc)"
