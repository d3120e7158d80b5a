"""
Snapshot archives: append-only history of PRD revisions per work item.

The latest snapshot of an item is the canonical one; older ones are kept for
inspection only.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

import yaml

from ..diff import content_hash
from ..models import DocumentSnapshot, touch

logger = logging.getLogger(__name__)


class SnapshotArchive:
    """Interface shared by the in-memory and file-backed archives."""

    def put(self, item_id: int, content: str, document_path: str) -> DocumentSnapshot:
        raise NotImplementedError

    def history(self, item_id: int) -> list[DocumentSnapshot]:
        raise NotImplementedError

    def clear(self) -> None:
        raise NotImplementedError

    def latest(self, item_id: int) -> DocumentSnapshot | None:
        snapshots = self.history(item_id)
        return snapshots[-1] if snapshots else None


class MemorySnapshotArchive(SnapshotArchive):

    def __init__(self) -> None:
        self._snapshots: dict[int, list[DocumentSnapshot]] = {}

    def put(self, item_id: int, content: str, document_path: str) -> DocumentSnapshot:
        history = self._snapshots.setdefault(item_id, [])
        previous = history[-1].captured_at if history else None
        snapshot = DocumentSnapshot(
            item_id=item_id,
            content_hash=content_hash(content),
            text=content,
            captured_at=touch(previous),
            document_path=document_path,
        )
        history.append(snapshot)
        return snapshot

    def history(self, item_id: int) -> list[DocumentSnapshot]:
        return list(self._snapshots.get(item_id, []))

    def clear(self) -> None:
        self._snapshots.clear()


class FileSnapshotArchive(SnapshotArchive):
    """
    Snapshots on disk, keyed by item id and timestamp.

    Layout:
        <root>/issue-<id>-<timestamp>.md   raw PRD text
        <root>/issue-<id>.yaml             ordered index of the item's snapshots
    """

    def __init__(self, root: Path | str):
        self.root = Path(root)
        self.root.mkdir(parents=True, exist_ok=True)

    def _index_path(self, item_id: int) -> Path:
        return self.root / f"issue-{item_id}.yaml"

    def _load_index(self, item_id: int) -> list[dict[str, Any]]:
        path = self._index_path(item_id)
        if not path.exists():
            return []
        with open(path) as f:
            return yaml.safe_load(f) or []

    def put(self, item_id: int, content: str, document_path: str) -> DocumentSnapshot:
        index = self._load_index(item_id)
        previous = index[-1]["captured_at"] if index else None
        captured_at = touch(previous)
        stamp = captured_at.replace(":", "-").replace(".", "-")
        content_file = f"issue-{item_id}-{stamp}.md"
        if (self.root / content_file).exists():
            content_file = f"issue-{item_id}-{stamp}-{len(index) + 1}.md"

        (self.root / content_file).write_text(content, encoding="utf-8")

        record = {
            "content_file": content_file,
            "hash": content_hash(content),
            "captured_at": captured_at,
            "document_path": document_path,
        }
        index.append(record)
        with open(self._index_path(item_id), "w") as f:
            yaml.safe_dump(index, f, sort_keys=False)

        logger.debug("Stored PRD snapshot for issue #%d: %s", item_id, content_file)
        return self._to_snapshot(item_id, record)

    def _to_snapshot(self, item_id: int, record: dict[str, Any]) -> DocumentSnapshot:
        content_path = self.root / record["content_file"]
        text = content_path.read_text(encoding="utf-8") if content_path.exists() else ""
        return DocumentSnapshot(
            item_id=item_id,
            content_hash=record.get("hash", ""),
            text=text,
            captured_at=record.get("captured_at", ""),
            document_path=record.get("document_path", ""),
            content_file=record["content_file"],
        )

    def history(self, item_id: int) -> list[DocumentSnapshot]:
        return [self._to_snapshot(item_id, record) for record in self._load_index(item_id)]

    def latest(self, item_id: int) -> DocumentSnapshot | None:
        index = self._load_index(item_id)
        if not index:
            return None
        return self._to_snapshot(item_id, index[-1])

    def clear(self) -> None:
        for path in self.root.glob("issue-*"):
            path.unlink()
