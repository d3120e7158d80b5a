"""
Work item store contract.

Every backend implements the required CRUD methods. Snapshot support is an
optional capability: callers check `supports_snapshots` before using the
snapshot methods, which otherwise raise SnapshotsUnsupportedError.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from ..diff import content_hash, diff_lines, format_diff
from ..errors import SnapshotsUnsupportedError
from ..models import DocumentSnapshot, ItemFilter, ItemPatch, NewItem, WorkItem
from .snapshots import SnapshotArchive


NO_SNAPSHOT_TEXT = "No stored version available for comparison"
NO_CHANGES_TEXT = "No changes detected between stored and current PRD versions"


class WorkItemStore(ABC):
    """CRUD over work items plus an optional snapshot archive."""

    name = "base"
    snapshots: SnapshotArchive | None = None

    @abstractmethod
    def create_item(self, data: NewItem) -> int:
        """Create an item and return its id."""

    @abstractmethod
    def update_item(self, item_id: int, patch: ItemPatch) -> None:
        """Apply a partial patch. Raises ItemNotFoundError for unknown ids."""

    @abstractmethod
    def list_items(self, filters: ItemFilter | None = None) -> list[WorkItem]:
        """Items matching `filters`, ordered by id descending."""

    @abstractmethod
    def get_item(self, item_id: int) -> WorkItem | None:
        """The item, or None when the id is unknown."""

    @abstractmethod
    def add_comment(self, item_id: int, body: str) -> None:
        """Append a comment. Raises ItemNotFoundError for unknown ids."""

    def close_item(self, item_id: int) -> None:
        self.update_item(item_id, ItemPatch(state="closed"))

    # Optional capabilities

    @property
    def supports_snapshots(self) -> bool:
        return self.snapshots is not None

    @property
    def supports_clear(self) -> bool:
        return False

    def clear(self) -> None:
        raise NotImplementedError(f"The {self.name} backend cannot be cleared")

    def _archive(self) -> SnapshotArchive:
        if self.snapshots is None:
            raise SnapshotsUnsupportedError(
                f"The {self.name} backend has no snapshot archive"
            )
        return self.snapshots

    def store_snapshot(self, item_id: int, content: str, document_path: str) -> DocumentSnapshot:
        return self._archive().put(item_id, content, document_path)

    def latest_snapshot(self, item_id: int) -> DocumentSnapshot | None:
        return self._archive().latest(item_id)

    def snapshot_history(self, item_id: int) -> list[DocumentSnapshot]:
        return self._archive().history(item_id)

    def get_snapshot(self, item_id: int) -> str | None:
        snapshot = self.latest_snapshot(item_id)
        return snapshot.text if snapshot else None

    def get_snapshot_diff(self, item_id: int, new_content: str) -> str:
        """Rendered diff between the item's latest snapshot and `new_content`."""
        snapshot = self.latest_snapshot(item_id)
        if snapshot is None:
            return NO_SNAPSHOT_TEXT
        if snapshot.content_hash == content_hash(new_content):
            return NO_CHANGES_TEXT
        return format_diff(diff_lines(snapshot.text, new_content))

    def _attach_snapshot(self, item: WorkItem) -> WorkItem:
        if self.snapshots is not None:
            item.snapshot = self.snapshots.latest(item.id)
        return item
