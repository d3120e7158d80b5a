"""
Execution engine: apply a UnifiedPlan to the work item store.

Each plan entry and each new feature is applied independently. A failure
aborts the rest of that entry's side effects, is logged and recorded, and
processing moves on; counts only include entries that fully succeeded.
Already-applied side effects are never rolled back.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from typing import Sequence

import yaml
from jinja2 import TemplateError

from .errors import StoreError
from .models import (
    ExecutionFailure,
    ExecutionResult,
    ItemPatch,
    NewFeatureRecord,
    NewItem,
    UnifiedPlan,
    UpdatePlanEntry,
)
from .render import FeatureRenderer, format_title
from .stores.base import WorkItemStore

logger = logging.getLogger(__name__)

EXECUTION_ERRORS = (StoreError, OSError, yaml.YAMLError, TemplateError)
# Also recovered per plan entry: hand-built plans can carry an unknown action.
ENTRY_ERRORS = (*EXECUTION_ERRORS, ValueError)

OBSOLETE_COMMENT = "⚠️ This issue may be obsolete due to document changes: {rationale}"
CREATED_COMMENT = "Created from source document `{path}`"


def feature_labels(feature: NewFeatureRecord, generated_label: str = "generated") -> list[str]:
    """Deterministic label set for a generated issue, duplicates removed."""
    labels = [generated_label, f"type:{feature.category}", f"priority:{feature.priority}", *feature.tags]
    return list(dict.fromkeys(label for label in labels if label))


class ExecutionEngine:
    """Applies a UnifiedPlan to a work item store, one entry at a time."""

    def __init__(
        self,
        store: WorkItemStore,
        renderer: FeatureRenderer | None = None,
        generated_label: str = "generated",
    ):
        self.store = store
        self.renderer = renderer or FeatureRenderer()
        self.generated_label = generated_label

    def execute(self, plan: UnifiedPlan, current_content: str, document_path: str) -> ExecutionResult:
        logger.info(
            "Starting change execution: %d updates, %d obsolete, %d new issues planned",
            plan.counts.updates, plan.counts.obsolete, plan.counts.new_items,
        )
        result = ExecutionResult()

        for entry in plan.entries:
            if entry.action == "no_change":
                logger.debug("Issue #%d: no changes needed", entry.item_id)
                result.unchanged += 1
                continue
            try:
                if entry.action == "update":
                    self._apply_update(entry, current_content, document_path)
                elif entry.action == "obsolete":
                    self._mark_obsolete(entry, current_content, document_path)
                else:
                    raise ValueError(f"Unknown plan action: {entry.action}")
            except ENTRY_ERRORS as e:
                logger.exception(
                    "Failed to %s issue #%d (%s)", entry.action, entry.item_id, entry.rationale,
                )
                result.failures.append(ExecutionFailure(f"#{entry.item_id}", entry.action, str(e)))
                continue
            result.updated += 1

        created = self.create_items(plan.new_features, current_content, document_path, result)
        result.created += len(created)

        logger.info(
            "Change execution finished: %d updated, %d created, %d unchanged, %d failed",
            result.updated, result.created, result.unchanged, len(result.failures),
        )
        return result

    def _apply_update(self, entry: UpdatePlanEntry, content: str, document_path: str) -> None:
        logger.info(
            "Updating issue #%d (%s): %s",
            entry.item_id, entry.significance, entry.update_summary or entry.rationale,
        )
        if entry.patch is not None and not entry.patch.is_empty():
            self.store.update_item(entry.item_id, self._keep_generated_label(entry))
        if entry.comment:
            self.store.add_comment(entry.item_id, entry.comment)
        if self.store.supports_snapshots:
            self.store.store_snapshot(entry.item_id, content, document_path)

    def _keep_generated_label(self, entry: UpdatePlanEntry) -> ItemPatch:
        """A replacement label set must keep the label that marks the issue as ours."""
        patch = entry.patch
        if patch.labels is None or self.generated_label in patch.labels:
            return patch
        logger.warning(
            "Issue #%d: label update omits '%s', keeping it", entry.item_id, self.generated_label,
        )
        return replace(patch, labels=[self.generated_label, *patch.labels])

    def _mark_obsolete(self, entry: UpdatePlanEntry, content: str, document_path: str) -> None:
        # Advisory only: the issue stays open for a human to decide.
        logger.info("Marking issue #%d as possibly obsolete: %s", entry.item_id, entry.rationale)
        self.store.add_comment(entry.item_id, OBSOLETE_COMMENT.format(rationale=entry.rationale))
        if self.store.supports_snapshots:
            self.store.store_snapshot(entry.item_id, content, document_path)

    def create_item(self, feature: NewFeatureRecord, content: str, document_path: str) -> int:
        """Create one issue from a feature record, seeded with a comment and snapshot."""
        item_id = self.store.create_item(NewItem(
            title=format_title(feature),
            body=self.renderer.render(feature, document_path),
            labels=feature_labels(feature, self.generated_label),
        ))
        self.store.add_comment(item_id, CREATED_COMMENT.format(path=document_path))
        if self.store.supports_snapshots:
            self.store.store_snapshot(item_id, content, document_path)
        return item_id

    def create_items(
        self,
        features: Sequence[NewFeatureRecord],
        content: str,
        document_path: str,
        result: ExecutionResult | None = None,
    ) -> list[int]:
        """Create issues for `features`; failures are recorded on `result`."""
        created = []
        for feature in features:
            try:
                item_id = self.create_item(feature, content, document_path)
            except EXECUTION_ERRORS as e:
                logger.exception("Failed to create issue for feature '%s'", feature.title)
                if result is not None:
                    result.failures.append(ExecutionFailure(feature.title, "create", str(e)))
                continue
            logger.info("Created issue #%d: %s", item_id, feature.title)
            created.append(item_id)
        return created
