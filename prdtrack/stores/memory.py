"""In-memory work item store for tests and dry runs."""

from __future__ import annotations

import copy
import logging

from ..errors import ItemNotFoundError
from ..models import Comment, ItemFilter, ItemPatch, NewItem, WorkItem, touch, utc_now
from .base import WorkItemStore
from .snapshots import MemorySnapshotArchive

logger = logging.getLogger(__name__)


class InMemoryIssueStore(WorkItemStore):

    name = "memory"

    def __init__(self, snapshots: bool = True):
        self._items: dict[int, WorkItem] = {}
        self._last_id = 0
        self.snapshots = MemorySnapshotArchive() if snapshots else None

    def create_item(self, data: NewItem) -> int:
        self._last_id += 1
        now = utc_now()
        self._items[self._last_id] = WorkItem(
            id=self._last_id,
            title=data.title,
            body=data.body,
            state="open",
            labels=list(data.labels),
            created_at=now,
            updated_at=now,
        )
        logger.info("[memory] Created issue #%d: %s", self._last_id, data.title)
        return self._last_id

    def _require(self, item_id: int) -> WorkItem:
        item = self._items.get(item_id)
        if item is None:
            raise ItemNotFoundError(item_id)
        return item

    def update_item(self, item_id: int, patch: ItemPatch) -> None:
        item = self._require(item_id)
        if patch.title is not None:
            item.title = patch.title
        if patch.body is not None:
            item.body = patch.body
        if patch.labels is not None:
            item.labels = list(patch.labels)
        if patch.state is not None:
            item.state = patch.state
        item.updated_at = touch(item.updated_at)
        logger.info("[memory] Updated issue #%d (%s)", item_id, ", ".join(patch.changed_fields()))

    def list_items(self, filters: ItemFilter | None = None) -> list[WorkItem]:
        filters = filters or ItemFilter(state="all")
        items = [item for item in self._items.values() if filters.matches(item)]
        items.sort(key=lambda item: item.id, reverse=True)
        return [self._attach_snapshot(copy.deepcopy(item)) for item in items]

    def get_item(self, item_id: int) -> WorkItem | None:
        item = self._items.get(item_id)
        if item is None:
            return None
        return self._attach_snapshot(copy.deepcopy(item))

    def add_comment(self, item_id: int, body: str) -> None:
        item = self._require(item_id)
        item.comments.append(Comment(author="system", body=body, created_at=utc_now()))
        item.updated_at = touch(item.updated_at)
        logger.info("[memory] Added comment to issue #%d", item_id)

    @property
    def supports_clear(self) -> bool:
        return True

    def clear(self) -> None:
        self._items.clear()
        self._last_id = 0
        if self.snapshots is not None:
            self.snapshots.clear()
