"""
Exception hierarchy for Prdtrack.

Everything raised on purpose derives from PrdtrackError so the CLI can turn
it into a one-line message and a non-zero exit status.
"""

from __future__ import annotations


class PrdtrackError(Exception):
    """Base error for Prdtrack."""


class ConfigError(PrdtrackError):
    """Configuration required by the active backend is missing or invalid."""


class DocumentNotFoundError(PrdtrackError):
    """The source document does not resolve to readable content."""
    def __init__(self, path: str):
        super().__init__(f"PRD file not found: {path}")
        self.path = path


class OracleResponseError(PrdtrackError):
    """The text-analysis oracle returned something we cannot use."""


class PlanParseError(OracleResponseError):
    """The oracle's JSON was located but does not have the expected shape."""


class StoreError(PrdtrackError):
    """Work item storage failure."""


class ItemNotFoundError(StoreError):
    """A mutation targeted an item id the store does not know."""
    def __init__(self, item_id: int):
        super().__init__(f"Issue #{item_id} not found")
        self.item_id = item_id


class SnapshotsUnsupportedError(StoreError):
    """The active backend has no snapshot archive."""
