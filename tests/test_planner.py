from __future__ import annotations

import pytest

from prdtrack.errors import OracleResponseError, PlanParseError
from prdtrack.models import WorkItem
from prdtrack.planner import (
    NO_CHANGE_RATIONALE,
    NOT_PLANNED_RATIONALE,
    PlanningEngine,
    normalize_category,
    normalize_title,
    parse_item_id,
)
from prdtrack.prompts import FEATURE_EXTRACTION_PROMPT, UNIFIED_PLANNING_PROMPT

from conftest import FakeOracle, feature


SIGNIFICANT_DIFF = "  ## Features\n- Users can export reports as PDF\n+ Users can export reports as CSV"
TRIVIAL_DIFF = "- version: 1.0\n+ version: 1.1\n- date: 2024-01-10\n+ date: 2024-02-01"


def make_items() -> list[WorkItem]:
    return [
        WorkItem(id=2, title="[TECHNICAL] PDF export", body="Export reports", labels=["generated"]),
        WorkItem(id=1, title="[TECHNICAL] Dashboards", body="Build dashboards", labels=["generated"]),
    ]


def test_trivial_diff_skips_oracle():
    oracle = FakeOracle()
    plan = PlanningEngine(oracle).plan("prd", TRIVIAL_DIFF, make_items())

    assert oracle.calls == []
    assert not plan.assessment.significant
    assert len(plan.assessment.trivial_changes) == 4
    assert [(e.item_id, e.action) for e in plan.entries] == [(2, "no_change"), (1, "no_change")]
    assert all(e.rationale == NO_CHANGE_RATIONALE for e in plan.entries)
    assert plan.new_features == []
    assert plan.counts.items_analyzed == 2
    assert plan.counts.updates == 0


def test_significant_diff_makes_one_call():
    oracle = FakeOracle({
        "change_assessment": {"summary": "CSV export replaces PDF", "rationale": "Output format changed"},
        "issue_updates": [
            {
                "item_id": 2,
                "action": "update",
                "significance": "major",
                "rationale": "Format changed",
                "updates": {"title": "[TECHNICAL] CSV export"},
                "comment": "Switched to CSV",
            },
            {"item_id": 1, "action": "no_change", "rationale": "Unaffected"},
        ],
        "new_features": [],
        "summary": {"overall_rationale": "One issue updated"},
    })
    plan = PlanningEngine(oracle).plan("current prd", SIGNIFICANT_DIFF, make_items())

    assert len(oracle.calls) == 1
    instructions, context = oracle.calls[0]
    assert instructions == UNIFIED_PLANNING_PROMPT
    assert "current prd" in context
    assert "+ Users can export reports as CSV" in context
    assert "Total existing issues: 2" in context

    assert plan.assessment.significant
    assert plan.assessment.summary == "CSV export replaces PDF"
    update = plan.entries[0]
    assert update.item_id == 2
    assert update.action == "update"
    assert update.significance == "major"
    assert update.patch.title == "[TECHNICAL] CSV export"
    assert update.patch.body is None
    assert update.comment == "Switched to CSV"
    assert plan.counts.updates == 1
    assert plan.counts.rationale == "One issue updated"


def test_plan_keeps_one_entry_per_existing_item():
    oracle = FakeOracle({
        "change_assessment": {"summary": "s"},
        "issue_updates": [
            {"item_id": 99, "action": "update", "updates": {"body": "x"}},
            {"item_id": 2, "action": "obsolete", "rationale": "Removed"},
            {"item_id": 2, "action": "update", "updates": {"body": "ignored"}},
        ],
    })
    plan = PlanningEngine(oracle).plan("prd", SIGNIFICANT_DIFF, make_items())

    assert [e.item_id for e in plan.entries] == [2, 1]
    assert plan.entries[0].action == "obsolete"
    assert plan.entries[1].action == "no_change"
    assert plan.entries[1].rationale == NOT_PLANNED_RATIONALE
    assert plan.counts.obsolete == 1


def test_empty_update_becomes_no_change():
    oracle = FakeOracle({
        "issue_updates": [{"item_id": 1, "action": "update", "updates": {}}],
    })
    plan = PlanningEngine(oracle).plan("prd", SIGNIFICANT_DIFF, make_items())
    assert all(e.action == "no_change" for e in plan.entries)
    assert plan.counts.updates == 0


def test_new_feature_duplicating_existing_item_is_dropped():
    oracle = FakeOracle({
        "issue_updates": [],
        "new_features": [feature("PDF Export"), feature("CSV Export"), feature("csv  export")],
    })
    plan = PlanningEngine(oracle).plan("prd", SIGNIFICANT_DIFF, make_items())
    assert [f.title for f in plan.new_features] == ["CSV Export"]
    assert plan.counts.new_items == 1


def test_camel_case_response_is_accepted():
    oracle = FakeOracle("""{
        "changeAssessment": {"hasSignificantChanges": true, "changeSummary": "New sharing"},
        "issueUpdates": [
            {"issueNumber": "#1", "action": "Update", "changeSignificance": "scope change",
             "updates": {"labels": ["generated", "sharing"]}, "updateSummary": "Adds sharing"}
        ],
        "newFeatures": [{"name": "Share links", "type": "non technical", "priority": "HIGH",
                         "acceptanceCriteria": "Links expire", "blockedFeatures": ["Embeds"]}]
    }""")
    plan = PlanningEngine(oracle).plan("prd", SIGNIFICANT_DIFF, make_items())

    entry = plan.entries[1]
    assert entry.item_id == 1
    assert entry.action == "update"
    assert entry.significance == "scope_change"
    assert entry.patch.labels == ["generated", "sharing"]
    assert entry.update_summary == "Adds sharing"

    new = plan.new_features[0]
    assert new.title == "Share links"
    assert new.category == "non-technical"
    assert new.priority == "high"
    assert new.acceptance_criteria == ["Links expire"]
    assert new.blocked_features == ["Embeds"]


def test_oracle_can_declare_changes_insignificant():
    oracle = FakeOracle({"change_assessment": {"significant": False, "summary": "Wording only"}})
    plan = PlanningEngine(oracle).plan("prd", SIGNIFICANT_DIFF, make_items())
    assert not plan.assessment.significant
    assert all(e.action == "no_change" for e in plan.entries)


def test_response_without_json_raises():
    with pytest.raises(OracleResponseError):
        PlanningEngine(FakeOracle("I could not decide.")).plan("prd", SIGNIFICANT_DIFF, make_items())


def test_malformed_plan_raises():
    oracle = FakeOracle({"issue_updates": {"item_id": 1}})
    with pytest.raises(PlanParseError):
        PlanningEngine(oracle).plan("prd", SIGNIFICANT_DIFF, make_items())


def test_feature_without_title_raises():
    oracle = FakeOracle({"new_features": [{"description": "nameless"}]})
    with pytest.raises(PlanParseError):
        PlanningEngine(oracle).plan("prd", SIGNIFICANT_DIFF, make_items())


def test_extract_features_dedups_titles():
    oracle = FakeOracle({
        "metadata": {"prd_title": "Reporting"},
        "features": [feature("Dashboards"), feature("PDF export", category="enabler"), feature("dashboards")],
    })
    features = PlanningEngine(oracle).extract_features("prd text", "docs/prd.md")

    assert oracle.calls[0][0] == FEATURE_EXTRACTION_PROMPT
    assert "docs/prd.md" in oracle.calls[0][1]
    assert [f.title for f in features] == ["Dashboards", "PDF export"]
    assert features[1].category == "enabler"
    assert features[0].rationale == "Extracted from source document"


def test_helpers():
    assert parse_item_id("#12") == 12
    assert parse_item_id(" 7 ") == 7
    with pytest.raises(PlanParseError):
        parse_item_id(True)
    with pytest.raises(PlanParseError):
        parse_item_id("twelve")

    assert normalize_title("[ENABLER]  Audit   Log ") == "audit log"
    assert normalize_category("Non_Technical") == "non-technical"
    assert normalize_category("nontechnical") == "non-technical"
    assert normalize_category("something else") == "technical"
