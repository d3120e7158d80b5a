"""
Content hashing and line diffs for PRD snapshots.

The diff is a positional line zip, not a minimal edit script: both sides are
walked with one cursor each, so a single inserted line shifts the alignment
and shows up as a run of removed/added pairs. Downstream significance
classification only asks whether any non-trivial line was added or removed,
which this tolerates.
"""

from __future__ import annotations

import hashlib
from dataclasses import dataclass
from typing import Iterable


CONTEXT = "context"
ADDED = "added"
REMOVED = "removed"

_PREFIXES = {CONTEXT: " ", ADDED: "+", REMOVED: "-"}
_TAGS = {prefix: tag for tag, prefix in _PREFIXES.items()}

HASH_LENGTH = 16


@dataclass(frozen=True)
class DiffLine:
    tag: str
    text: str

    @property
    def is_change(self) -> bool:
        return self.tag != CONTEXT

    def render(self) -> str:
        return f"{_PREFIXES[self.tag]} {self.text}"


def content_hash(text: str) -> str:
    """Deterministic digest of raw text (change detection, not security)."""
    return hashlib.sha256(text.encode("utf-8")).hexdigest()[:HASH_LENGTH]


def diff_lines(old: str, new: str) -> list[DiffLine]:
    """Tag every line of `old` and `new` as context, added or removed."""
    old_lines = old.splitlines()
    new_lines = new.splitlines()
    result: list[DiffLine] = []
    i = j = 0

    while i < len(old_lines) or j < len(new_lines):
        if i >= len(old_lines):
            result.append(DiffLine(ADDED, new_lines[j]))
            j += 1
        elif j >= len(new_lines):
            result.append(DiffLine(REMOVED, old_lines[i]))
            i += 1
        elif old_lines[i] == new_lines[j]:
            result.append(DiffLine(CONTEXT, old_lines[i]))
            i += 1
            j += 1
        else:
            result.append(DiffLine(REMOVED, old_lines[i]))
            result.append(DiffLine(ADDED, new_lines[j]))
            i += 1
            j += 1

    return result


def has_changes(lines: Iterable[DiffLine]) -> bool:
    return any(line.is_change for line in lines)


def format_diff(lines: Iterable[DiffLine]) -> str:
    return "\n".join(line.render() for line in lines)


def parse_line(raw: str) -> DiffLine:
    """Inverse of DiffLine.render; unprefixed text is treated as context."""
    if len(raw) >= 2 and raw[0] in _TAGS and raw[1] == " ":
        return DiffLine(_TAGS[raw[0]], raw[2:])
    if raw in ("+", "-"):
        return DiffLine(_TAGS[raw], "")
    return DiffLine(CONTEXT, raw)


def parse_diff(text: str) -> list[DiffLine]:
    return [parse_line(raw) for raw in text.splitlines()]


def apply_diff(lines: Iterable[DiffLine]) -> list[str]:
    """Rebuild the new side of a diff: context and added lines, in order."""
    return [line.text for line in lines if line.tag != REMOVED]
