"""
Data model shared by the planning and execution engines.

Work items and snapshots are what the stores persist; assessments, plan
entries and feature records are derived values recomputed on every run.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from typing import Any


ITEM_STATES = ("open", "closed")
ACTIONS = ("update", "obsolete", "no_change")
SIGNIFICANCE_LEVELS = ("minor", "major", "scope_change")
CATEGORIES = ("technical", "non-technical", "enabler")
PRIORITIES = ("high", "medium", "low")


def utc_now() -> str:
    """Current UTC time as a sortable ISO-8601 string."""
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S.%fZ")


def touch(previous: str | None) -> str:
    """Timestamp for a mutation that never moves backwards past `previous`."""
    now = utc_now()
    if previous and previous > now:
        return previous
    return now


@dataclass
class Comment:
    author: str
    body: str
    created_at: str


@dataclass
class DocumentSnapshot:
    """A captured revision of the source document, linked to one item."""
    item_id: int
    content_hash: str
    text: str
    captured_at: str
    document_path: str
    content_file: str | None = None


@dataclass
class WorkItem:
    id: int
    title: str
    body: str
    state: str = "open"
    labels: list[str] = field(default_factory=list)
    created_at: str = ""
    updated_at: str = ""
    comments: list[Comment] = field(default_factory=list)
    snapshot: DocumentSnapshot | None = None
    url: str | None = None

    def has_labels(self, labels: list[str]) -> bool:
        return all(label in self.labels for label in labels)


@dataclass
class NewItem:
    """Payload for creating a work item."""
    title: str
    body: str
    labels: list[str] = field(default_factory=list)


@dataclass
class ItemPatch:
    """Partial update: fields left as None are preserved by the store."""
    title: str | None = None
    body: str | None = None
    labels: list[str] | None = None
    state: str | None = None

    def is_empty(self) -> bool:
        return (
            self.title is None
            and self.body is None
            and self.labels is None
            and self.state is None
        )

    def changed_fields(self) -> list[str]:
        return [name for name, value in asdict(self).items() if value is not None]


@dataclass
class ItemFilter:
    state: str | None = "open"  # open, closed, all
    labels: list[str] = field(default_factory=list)
    updated_since: str | None = None

    def matches(self, item: WorkItem) -> bool:
        if self.state and self.state != "all" and item.state != self.state:
            return False
        if self.labels and not item.has_labels(self.labels):
            return False
        if self.updated_since and item.updated_at < self.updated_since:
            return False
        return True


@dataclass
class ChangeAssessment:
    significant: bool
    summary: str = ""
    trivial_changes: list[str] = field(default_factory=list)
    rationale: str = ""


@dataclass
class UpdatePlanEntry:
    item_id: int
    action: str = "no_change"
    significance: str = "minor"
    rationale: str = ""
    patch: ItemPatch | None = None
    comment: str | None = None
    update_summary: str | None = None


@dataclass
class NewFeatureRecord:
    title: str
    description: str = ""
    category: str = "technical"
    priority: str = "medium"
    effort: str = ""
    acceptance_criteria: list[str] = field(default_factory=list)
    dependencies: list[str] = field(default_factory=list)
    blocked_features: list[str] = field(default_factory=list)
    tags: list[str] = field(default_factory=list)
    rationale: str = ""


@dataclass
class PlanCounts:
    items_analyzed: int = 0
    updates: int = 0
    obsolete: int = 0
    new_items: int = 0
    rationale: str = ""


@dataclass
class UnifiedPlan:
    """Everything one planning pass decided, for the execution engine to apply."""
    assessment: ChangeAssessment
    entries: list[UpdatePlanEntry] = field(default_factory=list)
    new_features: list[NewFeatureRecord] = field(default_factory=list)
    counts: PlanCounts = field(default_factory=PlanCounts)


@dataclass
class ExecutionFailure:
    target: str  # "#12" or the new feature's title
    action: str
    error: str


@dataclass
class ExecutionResult:
    updated: int = 0
    created: int = 0
    unchanged: int = 0
    failures: list[ExecutionFailure] = field(default_factory=list)


@dataclass
class RunSummary:
    mode: str  # create, update, no_change
    updated: int
    created: int
    unchanged: int
    rationale: str
    document_path: str
    timestamp: str = field(default_factory=utc_now)
    trivial_changes: list[str] = field(default_factory=list)
    failures: list[ExecutionFailure] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failures

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)
