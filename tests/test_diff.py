from __future__ import annotations

from prdtrack.diff import (
    ADDED,
    CONTEXT,
    REMOVED,
    DiffLine,
    apply_diff,
    content_hash,
    diff_lines,
    format_diff,
    has_changes,
    parse_diff,
    parse_line,
)
from prdtrack.significance import classify_changes


def test_content_hash_is_stable_and_short():
    assert content_hash("hello") == content_hash("hello")
    assert content_hash("hello") != content_hash("hello ")
    assert len(content_hash("hello")) == 16


def test_identical_texts_are_all_context():
    lines = diff_lines("a\nb\nc", "a\nb\nc")
    assert [line.tag for line in lines] == [CONTEXT] * 3
    assert not has_changes(lines)


def test_identical_texts_are_not_significant():
    text = "# PRD\n- Users can build dashboards\n- Users can export reports"
    lines = diff_lines(text, text)
    assert not classify_changes(lines).is_significant
    assert not classify_changes(format_diff(lines)).is_significant


def test_changed_line_becomes_removed_then_added():
    lines = diff_lines("a\nb\nc", "a\nB\nc")
    assert lines == [
        DiffLine(CONTEXT, "a"),
        DiffLine(REMOVED, "b"),
        DiffLine(ADDED, "B"),
        DiffLine(CONTEXT, "c"),
    ]


def test_trailing_lines_are_added_or_removed():
    assert diff_lines("a", "a\nb\nc")[1:] == [DiffLine(ADDED, "b"), DiffLine(ADDED, "c")]
    assert diff_lines("a\nb", "a")[1:] == [DiffLine(REMOVED, "b")]


def test_empty_inputs():
    assert diff_lines("", "") == []
    assert diff_lines("", "x") == [DiffLine(ADDED, "x")]
    assert diff_lines("x", "") == [DiffLine(REMOVED, "x")]


def test_positional_alignment_shifts_after_insert():
    # One inserted line misaligns everything after it.
    lines = diff_lines("a\nb\nc", "x\na\nb\nc")
    assert [line.tag for line in lines] == [REMOVED, ADDED, REMOVED, ADDED, REMOVED, ADDED, ADDED]
    assert apply_diff(lines) == ["x", "a", "b", "c"]


def test_format_and_parse_are_inverse():
    lines = diff_lines("keep\nold", "keep\nnew\n")
    text = format_diff(lines)
    assert text == "  keep\n- old\n+ new"
    assert parse_diff(text) == lines


def test_parse_line_edge_cases():
    assert parse_line("+") == DiffLine(ADDED, "")
    assert parse_line("-") == DiffLine(REMOVED, "")
    assert parse_line("No stored version") == DiffLine(CONTEXT, "No stored version")
    assert parse_line("+- nested") == DiffLine(CONTEXT, "+- nested")


def test_apply_diff_with_interleaved_changes():
    old = "a\nb\nc\nd\ne"
    for new in ("a\nB\nc\nD\ne\nf", "a\nB\nc\nD", "A\nb\nC\nd"):
        lines = diff_lines(old, new)
        assert apply_diff(lines) == new.splitlines()
        assert apply_diff(parse_diff(format_diff(lines))) == new.splitlines()
