"""
Planning engine: decide what a PRD revision means for the tracked issues.

One call to `PlanningEngine.plan` yields a UnifiedPlan covering every
existing issue plus any new issues. Trivial-only diffs are answered locally
without contacting the oracle; everything else is one consolidated oracle
request whose JSON answer is parsed defensively and then held to the
conservative invariants:

- exactly one entry per existing issue (unknown ids dropped, missing ones
  filled in as no_change)
- an update that changes nothing is a no_change
- a new feature that duplicates an existing issue or another new feature
  is dropped in favour of the existing one
"""

from __future__ import annotations

import logging
import re
from typing import Any, Sequence

from .diff import DiffLine
from .errors import PlanParseError
from .llm import Oracle, extract_json
from .models import (
    ACTIONS,
    PRIORITIES,
    SIGNIFICANCE_LEVELS,
    ChangeAssessment,
    ItemPatch,
    NewFeatureRecord,
    PlanCounts,
    UnifiedPlan,
    UpdatePlanEntry,
    WorkItem,
)
from .prompts import (
    FEATURE_EXTRACTION_PROMPT,
    UNIFIED_PLANNING_PROMPT,
    build_extraction_context,
    build_planning_context,
)
from .significance import ChangeFilter

logger = logging.getLogger(__name__)


TRIVIAL_SUMMARY = "Only trivial changes detected (version numbers, dates, formatting)"
TRIVIAL_RATIONALE = "Changes are limited to non-functional updates that do not affect issue content"
TRIVIAL_OVERALL = "No action required - only trivial changes detected"
NO_CHANGE_RATIONALE = "No significant changes affect this item"
NOT_PLANNED_RATIONALE = "Not addressed by the plan; left unchanged"
EMPTY_UPDATE_RATIONALE = "Update proposed without any field changes or comment"
NEW_FEATURE_RATIONALE = "New feature identified from PRD updates"

# Accepted spellings per field, preferred name first.
ALIASES: dict[str, tuple[str, ...]] = {
    "assessment": ("change_assessment", "changeAssessment", "assessment"),
    "significant": ("significant", "has_significant_changes", "hasSignificantChanges"),
    "assessment_summary": ("summary", "change_summary", "changeSummary"),
    "assessment_rationale": (
        "rationale", "reasoning", "reasoning_for_significance", "reasoningForSignificance",
    ),
    "entries": ("issue_updates", "issueUpdates", "item_updates", "updatePlans", "update_plans"),
    "item_id": ("item_id", "itemId", "issue_number", "issueNumber", "number", "id"),
    "action": ("action",),
    "significance": (
        "significance", "change_significance", "changeSignificance", "change_type", "changeType",
    ),
    "rationale": ("rationale", "reasoning", "reason"),
    "patch": ("updates", "patch", "changes"),
    "comment": ("comment",),
    "update_summary": ("update_summary", "updateSummary"),
    "features": ("new_features", "newFeatures", "features"),
    "title": ("title", "name"),
    "description": ("description",),
    "category": ("category", "type"),
    "priority": ("priority",),
    "effort": ("effort", "estimated_effort", "estimatedEffort"),
    "acceptance_criteria": ("acceptance_criteria", "acceptanceCriteria"),
    "dependencies": ("dependencies", "depends_on", "dependsOn"),
    "blocked_features": ("blocked_features", "blockedFeatures", "blocks"),
    "tags": ("tags", "labels"),
    "summary": ("summary",),
    "overall_rationale": ("overall_rationale", "overallRationale"),
}

CATEGORY_ALIASES = {
    "nontechnical": "non-technical",
    "non-technical": "non-technical",
    "business": "non-technical",
    "technical": "technical",
    "tech": "technical",
    "enabler": "enabler",
}


def pick(data: dict[str, Any], field: str, default: Any = None) -> Any:
    """First present alias of `field` in `data`."""
    for key in ALIASES[field]:
        if key in data and data[key] is not None:
            return data[key]
    return default


def _as_text(value: Any) -> str:
    if value is None:
        return ""
    return str(value).strip()


def _as_list(value: Any, where: str) -> list[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [value.strip()] if value.strip() else []
    if not isinstance(value, list):
        raise PlanParseError(f"{where} must be a list, got {type(value).__name__}")
    return [_as_text(v) for v in value if _as_text(v)]


def _as_objects(value: Any, where: str) -> list[dict[str, Any]]:
    if value is None:
        return []
    if not isinstance(value, list):
        raise PlanParseError(f"{where} must be a list, got {type(value).__name__}")
    for element in value:
        if not isinstance(element, dict):
            raise PlanParseError(f"{where} entries must be objects, got {type(element).__name__}")
    return value


def _choice(value: Any, allowed: Sequence[str], default: str, where: str) -> str:
    text = re.sub(r"[\s-]+", "_", _as_text(value).lower())
    if text in allowed:
        return text
    if text:
        logger.warning("Unknown %s '%s'; using '%s'", where, value, default)
    return default


def normalize_category(value: Any) -> str:
    text = re.sub(r"[\s_]+", "-", _as_text(value).lower())
    category = CATEGORY_ALIASES.get(text) or CATEGORY_ALIASES.get(text.replace("-", ""))
    if category is None:
        if text:
            logger.warning("Unknown feature category '%s'; using 'technical'", value)
        return "technical"
    return category


def normalize_title(title: str) -> str:
    """Title key for duplicate detection: no [CATEGORY] prefix, case or spacing."""
    title = re.sub(r"^\s*\[[^\]]*\]\s*", "", title)
    return re.sub(r"\s+", " ", title).strip().lower()


def parse_item_id(value: Any) -> int:
    if isinstance(value, bool):
        raise PlanParseError(f"Invalid item id: {value!r}")
    if isinstance(value, int):
        return value
    match = re.fullmatch(r"\s*#?(\d+)\s*", _as_text(value))
    if not match:
        raise PlanParseError(f"Invalid item id: {value!r}")
    return int(match.group(1))


def parse_patch(value: Any) -> ItemPatch | None:
    if value is None:
        return None
    if not isinstance(value, dict):
        raise PlanParseError(f"Item updates must be an object, got {type(value).__name__}")
    title = _as_text(value.get("title")) or None
    body = value.get("body")
    labels = value.get("labels")
    patch = ItemPatch(
        title=title,
        body=str(body) if body is not None else None,
        labels=_as_list(labels, "updates.labels") if labels is not None else None,
    )
    return None if patch.is_empty() else patch


def parse_entry(data: dict[str, Any]) -> UpdatePlanEntry:
    item_id = pick(data, "item_id")
    if item_id is None:
        raise PlanParseError("Issue update entry without an item id")
    comment = _as_text(pick(data, "comment")) or None
    summary = _as_text(pick(data, "update_summary")) or None
    return UpdatePlanEntry(
        item_id=parse_item_id(item_id),
        action=_choice(pick(data, "action"), ACTIONS, "no_change", "action"),
        significance=_choice(pick(data, "significance"), SIGNIFICANCE_LEVELS, "minor", "significance"),
        rationale=_as_text(pick(data, "rationale")),
        patch=parse_patch(pick(data, "patch")),
        comment=comment,
        update_summary=summary,
    )


def parse_feature(data: dict[str, Any], default_rationale: str = "") -> NewFeatureRecord:
    title = _as_text(pick(data, "title"))
    if not title:
        raise PlanParseError("New feature without a title")
    return NewFeatureRecord(
        title=title,
        description=_as_text(pick(data, "description")),
        category=normalize_category(pick(data, "category")),
        priority=_choice(pick(data, "priority"), PRIORITIES, "medium", "priority"),
        effort=_as_text(pick(data, "effort")),
        acceptance_criteria=_as_list(pick(data, "acceptance_criteria"), "acceptance_criteria"),
        dependencies=_as_list(pick(data, "dependencies"), "dependencies"),
        blocked_features=_as_list(pick(data, "blocked_features"), "blocked_features"),
        tags=_as_list(pick(data, "tags"), "tags"),
        rationale=_as_text(pick(data, "rationale")) or default_rationale,
    )


def parse_features(data: dict[str, Any], default_rationale: str = "") -> list[NewFeatureRecord]:
    return [
        parse_feature(feature, default_rationale)
        for feature in _as_objects(pick(data, "features"), "new_features")
    ]


def count_plan(entries: Sequence[UpdatePlanEntry], features: Sequence[NewFeatureRecord], rationale: str) -> PlanCounts:
    return PlanCounts(
        items_analyzed=len(entries),
        updates=sum(1 for e in entries if e.action == "update"),
        obsolete=sum(1 for e in entries if e.action == "obsolete"),
        new_items=len(features),
        rationale=rationale,
    )


class PlanningEngine:
    """Turns (current PRD, diff, existing issues) into a UnifiedPlan."""

    def __init__(self, oracle: Oracle, change_filter: ChangeFilter | None = None):
        self.oracle = oracle
        self.change_filter = change_filter or ChangeFilter()

    def plan(
        self,
        current_content: str,
        diff: str | Sequence[DiffLine],
        existing_items: Sequence[WorkItem],
    ) -> UnifiedPlan:
        logger.info(
            "Starting unified planning: %d existing issues, PRD %d chars",
            len(existing_items), len(current_content),
        )
        significance = self.change_filter.classify(diff)

        if not significance.is_significant:
            logger.info(
                "No significant changes detected - skipping analysis (%d trivial changes ignored)",
                len(significance.trivial_changes),
            )
            return self._no_change_plan(existing_items, significance.trivial_changes)

        context = build_planning_context(
            current_content=current_content,
            filtered_diff=significance.filtered_text,
            trivial_changes=significance.trivial_changes,
            existing_items=existing_items,
        )
        response = self.oracle.complete(UNIFIED_PLANNING_PROMPT, context)
        plan = self.parse_plan(extract_json(response), existing_items, significance.trivial_changes)

        logger.info(
            "Unified planning finished: %d updates, %d obsolete, %d new issues",
            plan.counts.updates, plan.counts.obsolete, plan.counts.new_items,
        )
        return plan

    def _no_change_plan(self, existing_items: Sequence[WorkItem], trivial: list[str]) -> UnifiedPlan:
        entries = [
            UpdatePlanEntry(
                item_id=item.id,
                action="no_change",
                significance="minor",
                rationale=NO_CHANGE_RATIONALE,
            )
            for item in existing_items
        ]
        return UnifiedPlan(
            assessment=ChangeAssessment(
                significant=False,
                summary=TRIVIAL_SUMMARY,
                trivial_changes=trivial,
                rationale=TRIVIAL_RATIONALE,
            ),
            entries=entries,
            new_features=[],
            counts=count_plan(entries, [], TRIVIAL_OVERALL),
        )

    def parse_plan(
        self,
        data: dict[str, Any],
        existing_items: Sequence[WorkItem],
        trivial_changes: list[str] | None = None,
    ) -> UnifiedPlan:
        """Validate the oracle's plan JSON and apply the conservative invariants."""
        assessment_data = pick(data, "assessment", {})
        if not isinstance(assessment_data, dict):
            raise PlanParseError("change_assessment must be an object")

        assessment = ChangeAssessment(
            significant=bool(pick(assessment_data, "significant", True)),
            summary=_as_text(pick(assessment_data, "assessment_summary")),
            trivial_changes=list(trivial_changes or []),
            rationale=_as_text(pick(assessment_data, "assessment_rationale")),
        )

        known_ids = [item.id for item in existing_items]
        by_id: dict[int, UpdatePlanEntry] = {}
        for raw in _as_objects(pick(data, "entries"), "issue_updates"):
            entry = parse_entry(raw)
            if entry.item_id not in known_ids:
                logger.warning("Plan references unknown issue #%d; ignoring", entry.item_id)
                continue
            if entry.item_id in by_id:
                logger.warning("Plan has more than one entry for issue #%d; keeping the first", entry.item_id)
                continue
            if entry.action == "update" and entry.patch is None and not entry.comment:
                logger.info("Issue #%d: update without changes treated as no_change", entry.item_id)
                entry.action = "no_change"
                entry.rationale = entry.rationale or EMPTY_UPDATE_RATIONALE
            by_id[entry.item_id] = entry

        entries = [
            by_id.get(item_id) or UpdatePlanEntry(
                item_id=item_id, action="no_change", rationale=NOT_PLANNED_RATIONALE,
            )
            for item_id in known_ids
        ]

        seen_titles = {normalize_title(item.title) for item in existing_items}
        features = []
        for feature in parse_features(data, NEW_FEATURE_RATIONALE):
            key = normalize_title(feature.title)
            if key in seen_titles:
                logger.warning("Dropping new feature '%s': it duplicates an existing issue", feature.title)
                continue
            seen_titles.add(key)
            features.append(feature)

        summary = pick(data, "summary", {})
        if isinstance(summary, dict):
            overall = _as_text(pick(summary, "overall_rationale"))
        else:
            overall = _as_text(summary)

        return UnifiedPlan(
            assessment=assessment,
            entries=entries,
            new_features=features,
            counts=count_plan(entries, features, overall or assessment.rationale),
        )

    def extract_features(self, content: str, document_path: str) -> list[NewFeatureRecord]:
        """Whole-document feature extraction for fresh-create runs."""
        logger.info("Extracting features from %s (%d chars)", document_path, len(content))
        response = self.oracle.complete(
            FEATURE_EXTRACTION_PROMPT,
            build_extraction_context(content, document_path),
        )
        data = extract_json(response)

        features = []
        seen: set[str] = set()
        for feature in parse_features(data, "Extracted from source document"):
            key = normalize_title(feature.title)
            if key in seen:
                logger.warning("Dropping repeated feature '%s'", feature.title)
                continue
            seen.add(key)
            features.append(feature)

        logger.info("Extracted %d features", len(features))
        return features
