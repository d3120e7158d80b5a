"""
Orchestrator: one PRD run from file to summary.

    load -> discover issues -> select mode -> diff -> plan -> execute -> summarize

Fresh-create mode extracts features from the whole document; update mode
diffs against the stored snapshot and lets the planner decide. Every run
ends by writing a JSON summary artifact.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Sequence

from .config import PrdtrackConfig
from .errors import DocumentNotFoundError
from .executor import ExecutionEngine
from .models import DocumentSnapshot, ExecutionResult, ItemFilter, RunSummary, WorkItem
from .planner import PlanningEngine
from .stores.base import NO_SNAPSHOT_TEXT, WorkItemStore

logger = logging.getLogger(__name__)


def load_document(path: Path | str) -> str:
    """Read the PRD; anything missing or unreadable is fatal for the run."""
    path = Path(path)
    if not path.is_file():
        raise DocumentNotFoundError(str(path))
    try:
        return path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        raise DocumentNotFoundError(str(path)) from e


def write_summary(summary: RunSummary, path: Path | str) -> Path:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(summary.to_dict(), indent=2, ensure_ascii=False) + "\n", encoding="utf-8")
    return path


def load_summary(path: Path | str) -> dict | None:
    path = Path(path)
    if not path.exists():
        return None
    return json.loads(path.read_text(encoding="utf-8"))


class DocumentProcessor:
    """Runs the create/update pipeline for one PRD against one store."""

    def __init__(
        self,
        store: WorkItemStore,
        planner: PlanningEngine,
        executor: ExecutionEngine,
        config: PrdtrackConfig | None = None,
    ):
        self.store = store
        self.planner = planner
        self.executor = executor
        self.config = config or PrdtrackConfig()

    def process_document(self, path: Path | str, force_create: bool = False) -> RunSummary:
        document_path = str(path)
        content = load_document(path)
        logger.info("Processing PRD %s (%d chars)", document_path, len(content))

        existing = self.discover_items()

        if force_create or not existing:
            summary = self._create_all(content, document_path)
        else:
            summary = self._update(content, document_path, existing)

        artifact = write_summary(summary, self.config.summary_path)
        logger.info(
            "Run finished (%s): %d updated, %d created, %d unchanged; summary written to %s",
            summary.mode, summary.updated, summary.created, summary.unchanged, artifact,
        )
        return summary

    def discover_items(self) -> list[WorkItem]:
        """Open issues previously generated from a PRD."""
        items = self.store.list_items(ItemFilter(state="open", labels=[self.config.generated_label]))
        logger.info("Found %d existing generated issues", len(items))
        return items

    def _create_all(self, content: str, document_path: str) -> RunSummary:
        logger.info("No existing issues to update; creating issues from the whole PRD")
        features = self.planner.extract_features(content, document_path)
        result = ExecutionResult()
        created = self.executor.create_items(features, content, document_path, result)
        return RunSummary(
            mode="create",
            updated=0,
            created=len(created),
            unchanged=0,
            rationale=f"Created {len(created)} issues from {len(features)} extracted features",
            document_path=document_path,
            failures=result.failures,
        )

    def _update(self, content: str, document_path: str, existing: Sequence[WorkItem]) -> RunSummary:
        diff = self.reference_diff(existing, content)
        plan = self.planner.plan(content, diff, existing)

        if not plan.assessment.significant:
            return RunSummary(
                mode="no_change",
                updated=0,
                created=0,
                unchanged=len(plan.entries),
                rationale=plan.counts.rationale or plan.assessment.rationale,
                document_path=document_path,
                trivial_changes=plan.assessment.trivial_changes,
            )

        result = self.executor.execute(plan, content, document_path)
        return RunSummary(
            mode="update",
            updated=result.updated,
            created=result.created,
            unchanged=result.unchanged,
            rationale=plan.counts.rationale,
            document_path=document_path,
            trivial_changes=plan.assessment.trivial_changes,
            failures=result.failures,
        )

    def reference_snapshot(self, items: Sequence[WorkItem]) -> DocumentSnapshot | None:
        """The most recently captured latest snapshot across `items`."""
        if not self.store.supports_snapshots:
            return None
        latest = None
        for item in items:
            snapshot = self.store.latest_snapshot(item.id)
            if snapshot is not None and (latest is None or snapshot.captured_at > latest.captured_at):
                latest = snapshot
        return latest

    def reference_diff(self, items: Sequence[WorkItem], content: str) -> str:
        reference = self.reference_snapshot(items)
        if reference is None:
            logger.info("No stored PRD version found; nothing to compare against")
            return NO_SNAPSHOT_TEXT
        logger.info(
            "Comparing against snapshot of issue #%d captured %s",
            reference.item_id, reference.captured_at,
        )
        return self.store.get_snapshot_diff(reference.item_id, content)
