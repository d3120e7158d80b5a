"""
Change significance filter.

Separates diff lines that only touch version numbers, dates, changelog
headings and similar bookkeeping from lines that change what the PRD asks
for. Only the latter may trigger a planning call.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import Iterable

from .config import FilterConfig
from .diff import DiffLine, parse_diff

logger = logging.getLogger(__name__)


# Matched against the rendered line ("+ version: 1.2"), so context lines never match.
TRIVIAL_PATTERNS = [
    re.compile(r"^[+\-]\s*version:\s*\d+\.\d+", re.IGNORECASE),
    re.compile(r"^[+\-]\s*date:\s*\d{4}-\d{2}-\d{2}", re.IGNORECASE),
    re.compile(r"^[+\-]\s*updated:\s*\d{4}-\d{2}-\d{2}", re.IGNORECASE),
    re.compile(r"^[+\-]\s*v\d+\.\d+(\.\d+)?", re.IGNORECASE),
    re.compile(r"^[+\-]\s*\*\*last\s*updated", re.IGNORECASE),
    re.compile(r"^[+\-]\s*#+\s*changelog", re.IGNORECASE),
    re.compile(r"^[+\-]\s*\|\s*\d+\.\d+\s*\|"),
]


@dataclass
class SignificanceResult:
    is_significant: bool
    filtered_diff: list[DiffLine] = field(default_factory=list)
    trivial_changes: list[str] = field(default_factory=list)

    @property
    def filtered_text(self) -> str:
        return "\n".join(line.render() for line in self.filtered_diff)


class ChangeFilter:
    """Pattern-based classifier for diff lines."""

    def __init__(self, config: FilterConfig | None = None):
        config = config or FilterConfig()
        self.min_line_length = config.min_line_length
        self.patterns = TRIVIAL_PATTERNS + [
            re.compile(pattern, re.IGNORECASE) for pattern in config.extra_trivial_patterns
        ]

    def is_trivial(self, line: DiffLine) -> bool:
        rendered = line.render()
        return any(pattern.search(rendered) for pattern in self.patterns)

    def counts_as_change(self, line: DiffLine) -> bool:
        if not line.is_change:
            return False
        trimmed = DiffLine(line.tag, line.text.strip()).render()
        return len(trimmed) > self.min_line_length

    def classify(self, diff: str | Iterable[DiffLine]) -> SignificanceResult:
        """
        Classify a diff given as rendered text or as DiffLine objects.

        Trivial lines are reported and dropped; blank lines are dropped
        silently; everything else is kept in the filtered diff.
        """
        lines = parse_diff(diff) if isinstance(diff, str) else list(diff)

        trivial: list[str] = []
        kept: list[DiffLine] = []
        for line in lines:
            if not line.text.strip():
                continue
            if self.is_trivial(line):
                trivial.append(line.render().strip())
            else:
                kept.append(line)

        significant = any(self.counts_as_change(line) for line in kept)

        logger.debug(
            "Change significance: %d lines, %d trivial, %d kept, significant=%s",
            len(lines), len(trivial), len(kept), significant,
        )
        return SignificanceResult(
            is_significant=significant,
            filtered_diff=kept,
            trivial_changes=trivial,
        )


def classify_changes(
    diff: str | Iterable[DiffLine],
    config: FilterConfig | None = None,
) -> SignificanceResult:
    """Classify a diff with the default (or given) filter settings."""
    return ChangeFilter(config).classify(diff)
