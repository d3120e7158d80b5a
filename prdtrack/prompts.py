"""
Oracle instructions and context builders.

The decision policy in UNIFIED_PLANNING_PROMPT is the contract the planner
relies on; the post-parse checks in planner.py enforce the parts of it that
can be checked mechanically.
"""

from __future__ import annotations

import json
from typing import Sequence

from .models import WorkItem


UNIFIED_PLANNING_PROMPT = """\
# Unified PRD Change Planning

You are a senior product engineer keeping a set of tracked issues in step with
a Product Requirements Document (PRD). You receive the current PRD, the diff
against the previously processed version (already filtered for trivial
changes), the trivial changes that were filtered out, and every existing issue.

Produce ONE plan covering every existing issue plus any genuinely new issues.

## Decision policy (follow literally)

1. Trivial edits: version bumps, date-only changes, pure formatting,
   non-semantic wording. IGNORE them entirely. They never justify an update.
2. Minor clarifications: added examples, non-functional tweaks. Update an
   issue only if its content is now wrong or incomplete; otherwise no_change.
3. New capabilities, changed acceptance criteria, removed scope, new
   dependencies: MUST produce either an "update" of the existing issue that
   covers the capability, or a new feature entry. NEVER both for the same
   capability.
4. Removed scope: mark the affected issue "obsolete" with the reason. Do not
   propose closing or deleting it.
5. Conservative bias: when uncertain whether a change affects an issue, choose
   "no_change". When new functionality overlaps an existing issue, update that
   issue instead of creating a new one.
6. Every existing issue appears exactly once in "issue_updates".
7. "updates.labels" replaces the whole label set: include every label the
   issue should keep, including the one that marks it as generated.

## Response format

Respond ONLY with one JSON object in this exact shape:
```json
{
  "change_assessment": {
    "summary": "What changed in the PRD, in one or two sentences",
    "rationale": "Why these changes are (or are not) significant"
  },
  "issue_updates": [
    {
      "item_id": 12,
      "action": "update" | "obsolete" | "no_change",
      "significance": "minor" | "major" | "scope_change",
      "rationale": "Why this action",
      "updates": {"title": "optional", "body": "optional", "labels": ["optional"]},
      "comment": "Optional comment explaining the change to readers of the issue",
      "update_summary": "Optional one-line summary of the update"
    }
  ],
  "new_features": [
    {
      "title": "Feature title",
      "description": "What the feature is and why it exists",
      "category": "technical" | "non-technical" | "enabler",
      "priority": "high" | "medium" | "low",
      "effort": "e.g. 3-5 days",
      "acceptance_criteria": ["Criterion 1", "Criterion 2"],
      "dependencies": ["Other feature names"],
      "blocked_features": ["Features this one blocks"],
      "tags": ["label"],
      "rationale": "Why this is new rather than an update of an existing issue"
    }
  ],
  "summary": {
    "overall_rationale": "One paragraph explaining the plan as a whole"
  }
}
```
Only include fields inside "updates" that actually change.
"""


FEATURE_EXTRACTION_PROMPT = """\
# PRD Feature Extraction

You are a senior product engineer breaking a Product Requirements Document
(PRD) into independently trackable features.

Guidelines:
- One feature per deliverable capability; do not split a capability across
  several features or merge unrelated capabilities into one.
- "technical" features are engineering work, "non-technical" features are
  design, content, legal or process work, "enabler" features are foundations
  other features depend on (infrastructure, shared services, data models).
- Acceptance criteria are concrete and testable.
- "dependencies" and "blocked_features" refer to other feature titles.

Respond ONLY with one JSON object in this exact shape:
```json
{
  "metadata": {"prd_title": "Document title", "summary": "One-paragraph summary"},
  "features": [
    {
      "title": "Feature title",
      "description": "What the feature is and why it exists",
      "category": "technical" | "non-technical" | "enabler",
      "priority": "high" | "medium" | "low",
      "effort": "e.g. 3-5 days",
      "acceptance_criteria": ["Criterion 1"],
      "dependencies": [],
      "blocked_features": [],
      "tags": []
    }
  ]
}
```
"""


def build_planning_context(
    current_content: str,
    filtered_diff: str,
    trivial_changes: Sequence[str],
    existing_items: Sequence[WorkItem],
) -> str:
    """Build the user message for the unified planning call."""
    items_context = [
        {
            "item_id": item.id,
            "title": item.title,
            "body": item.body,
            "labels": item.labels,
        }
        for item in existing_items
    ]

    return f"""\
## Current PRD Content:
{current_content}

## PRD Changes (Filtered for Significance):
{filtered_diff}

## Trivial Changes Filtered Out:
{chr(10).join(trivial_changes) if trivial_changes else "(none)"}

## Existing Issues:
{json.dumps(items_context, indent=2)}

## Previous Processing Context:
This is an update to an existing PRD. Focus on semantic changes that affect implementation or requirements.
Total existing issues: {len(existing_items)}
Trivial changes filtered: {len(trivial_changes)}
"""


def build_extraction_context(content: str, document_path: str) -> str:
    """Build the user message for whole-document feature extraction."""
    return f"""\
Analyze this PRD document and extract features:

PRD File Path: {document_path}

PRD Content:
{content}

Please provide your analysis in JSON format matching the expected structure for features.
"""
