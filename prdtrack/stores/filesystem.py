"""
File-tree work item store.

Layout under the base directory:
    counter.yaml                    last assigned issue number
    issue-<n>.yaml                  issue record (title, state, labels, timestamps)
    issue-<n>.md                    issue body
    issue-<n>-comments/comment-<k>.md
    snapshots/                      PRD snapshot archive (see FileSnapshotArchive)
"""

from __future__ import annotations

import logging
import re
import shutil
from pathlib import Path
from typing import Any

import yaml

from ..errors import ItemNotFoundError
from ..models import Comment, ItemFilter, ItemPatch, NewItem, WorkItem, touch, utc_now
from .base import WorkItemStore
from .snapshots import FileSnapshotArchive

logger = logging.getLogger(__name__)

COMMENT_HEADER = re.compile(r"^\*\*(.*?)\*\* - (.*)$")
COMMENT_FILE = re.compile(r"^comment-(\d+)\.md$")
RECORD_FILE = re.compile(r"^issue-(\d+)\.yaml$")


class FileSystemIssueStore(WorkItemStore):
    """Durable single-writer store keeping one record file per issue."""

    name = "filesystem"

    def __init__(self, base_path: Path | str = ".issues"):
        self.base_path = Path(base_path)
        self.counter_path = self.base_path / "counter.yaml"
        self.base_path.mkdir(parents=True, exist_ok=True)
        self.snapshots = FileSnapshotArchive(self.base_path / "snapshots")
        if not self.counter_path.exists():
            self._save_counter(0)
        logger.debug("FileSystemIssueStore initialized at %s", self.base_path.resolve())

    # Paths

    def _record_path(self, item_id: int) -> Path:
        return self.base_path / f"issue-{item_id}.yaml"

    def _body_path(self, item_id: int) -> Path:
        return self.base_path / f"issue-{item_id}.md"

    def _comments_dir(self, item_id: int) -> Path:
        return self.base_path / f"issue-{item_id}-comments"

    # Counter

    def _load_counter(self) -> int:
        with open(self.counter_path) as f:
            data = yaml.safe_load(f) or {}
        return int(data.get("last_issue_number", 0))

    def _save_counter(self, value: int) -> None:
        with open(self.counter_path, "w") as f:
            yaml.safe_dump({"last_issue_number": value}, f)

    # Records

    def _load_record(self, item_id: int) -> dict[str, Any] | None:
        path = self._record_path(item_id)
        if not path.exists():
            return None
        with open(path) as f:
            return yaml.safe_load(f) or None

    def _save_record(self, record: dict[str, Any]) -> None:
        with open(self._record_path(record["number"]), "w") as f:
            yaml.safe_dump(record, f, sort_keys=False, allow_unicode=True)

    def _load_body(self, item_id: int) -> str:
        path = self._body_path(item_id)
        if path.exists():
            return path.read_text(encoding="utf-8")
        return ""

    def _load_comments(self, item_id: int) -> list[Comment]:
        comments_dir = self._comments_dir(item_id)
        if not comments_dir.exists():
            return []

        numbered = []
        for path in comments_dir.iterdir():
            match = COMMENT_FILE.match(path.name)
            if match:
                numbered.append((int(match.group(1)), path))

        comments = []
        for _, path in sorted(numbered):
            lines = path.read_text(encoding="utf-8").split("\n")
            header = COMMENT_HEADER.match(lines[0])
            if header:
                comments.append(Comment(
                    author=header.group(1),
                    created_at=header.group(2),
                    body="\n".join(lines[2:]),
                ))
        return comments

    def _to_item(self, record: dict[str, Any]) -> WorkItem:
        item_id = record["number"]
        item = WorkItem(
            id=item_id,
            title=record.get("title", ""),
            body=self._load_body(item_id),
            state=record.get("state", "open"),
            labels=list(record.get("labels") or []),
            created_at=record.get("created_at", ""),
            updated_at=record.get("updated_at", ""),
            comments=self._load_comments(item_id),
            url=f"file://{self._record_path(item_id).resolve()}",
        )
        return self._attach_snapshot(item)

    # Contract

    def create_item(self, data: NewItem) -> int:
        item_id = self._load_counter() + 1
        self._save_counter(item_id)

        now = utc_now()
        record = {
            "number": item_id,
            "title": data.title,
            "body_file": self._body_path(item_id).name,
            "state": "open",
            "labels": list(data.labels),
            "created_at": now,
            "updated_at": now,
            "comments_directory": self._comments_dir(item_id).name,
        }
        self._body_path(item_id).write_text(data.body, encoding="utf-8")
        self._save_record(record)

        logger.info("Created issue #%d: %s", item_id, data.title)
        return item_id

    def update_item(self, item_id: int, patch: ItemPatch) -> None:
        record = self._load_record(item_id)
        if record is None:
            raise ItemNotFoundError(item_id)

        changes = []
        if patch.title is not None:
            changes.append(f'title: "{record.get("title")}" -> "{patch.title}"')
            record["title"] = patch.title
        if patch.state is not None:
            changes.append(f"state: {record.get('state')} -> {patch.state}")
            record["state"] = patch.state
        if patch.labels is not None:
            changes.append(f"labels: {record.get('labels')} -> {list(patch.labels)}")
            record["labels"] = list(patch.labels)
        if patch.body is not None:
            changes.append(f"body: updated ({len(patch.body)} characters)")
            self._body_path(item_id).write_text(patch.body, encoding="utf-8")
        record["updated_at"] = touch(record.get("updated_at"))
        self._save_record(record)

        logger.info("Updated issue #%d: %s", item_id, "; ".join(changes) or "timestamp only")

    def list_items(self, filters: ItemFilter | None = None) -> list[WorkItem]:
        filters = filters or ItemFilter(state="all")
        items = []
        for path in self.base_path.iterdir():
            match = RECORD_FILE.match(path.name)
            if not match:
                continue
            record = self._load_record(int(match.group(1)))
            if record is None:
                continue
            item = self._to_item(record)
            if filters.matches(item):
                items.append(item)
        return sorted(items, key=lambda item: item.id, reverse=True)

    def get_item(self, item_id: int) -> WorkItem | None:
        record = self._load_record(item_id)
        if record is None:
            return None
        return self._to_item(record)

    def add_comment(self, item_id: int, body: str) -> None:
        record = self._load_record(item_id)
        if record is None:
            raise ItemNotFoundError(item_id)

        comments_dir = self._comments_dir(item_id)
        comments_dir.mkdir(parents=True, exist_ok=True)
        taken = [
            int(match.group(1))
            for match in (COMMENT_FILE.match(p.name) for p in comments_dir.iterdir())
            if match
        ]
        next_index = max(taken, default=0) + 1
        comment_path = comments_dir / f"comment-{next_index}.md"
        comment_path.write_text(f"**system** - {utc_now()}\n\n{body}", encoding="utf-8")

        record["comments_directory"] = comments_dir.name
        record["updated_at"] = touch(record.get("updated_at"))
        self._save_record(record)
        logger.info("Added comment to issue #%d", item_id)

    @property
    def supports_clear(self) -> bool:
        return True

    def clear(self) -> None:
        """Remove every issue, comment and snapshot and reset the counter."""
        for path in self.base_path.iterdir():
            if path.is_dir() and path.name.endswith("-comments"):
                shutil.rmtree(path)
            elif RECORD_FILE.match(path.name) or re.match(r"^issue-\d+\.md$", path.name):
                path.unlink()
        self.snapshots.clear()
        self._save_counter(0)
        logger.info("Cleared all issues under %s", self.base_path)
