from __future__ import annotations

import json
from unittest.mock import patch

import pytest

from prdtrack.errors import DocumentNotFoundError, OracleResponseError
from prdtrack.executor import ExecutionEngine
from prdtrack.models import ItemFilter, NewItem
from prdtrack.planner import PlanningEngine
from prdtrack.processor import DocumentProcessor, load_summary
from prdtrack.stores.base import NO_SNAPSHOT_TEXT
from prdtrack.stores.memory import InMemoryIssueStore

from conftest import PRD_V1, FakeOracle, feature


def extraction(*titles):
    return {"metadata": {"prd_title": "Reporting"}, "features": [feature(t) for t in titles]}


def test_fresh_create(processor, oracle, store, config, prd_file):
    oracle.queue(extraction("Dashboards", "PDF export"))
    summary = processor.process_document(prd_file)

    assert summary.mode == "create"
    assert (summary.updated, summary.created, summary.unchanged) == (0, 2, 0)
    assert summary.ok
    assert len(oracle.calls) == 1

    items = store.list_items(ItemFilter(labels=["generated"]))
    assert [item.title for item in items] == ["[TECHNICAL] PDF export", "[TECHNICAL] Dashboards"]
    for item in items:
        assert store.get_snapshot(item.id) == PRD_V1
        assert item.comments[0].body.startswith("Created from source document")

    artifact = load_summary(config.summary_path)
    assert artifact["mode"] == "create"
    assert artifact["created"] == 2
    assert artifact["document_path"] == str(prd_file)


def test_trivial_only_edit_changes_nothing(processor, oracle, store, prd_file):
    oracle.queue(extraction("Dashboards", "PDF export"))
    processor.process_document(prd_file)
    before = store.list_items()

    prd_file.write_text(PRD_V1.replace("version: 1.0", "version: 1.1").replace("2024-01-10", "2024-02-01"))
    summary = processor.process_document(prd_file)

    assert len(oracle.calls) == 1
    assert summary.mode == "no_change"
    assert (summary.updated, summary.created, summary.unchanged) == (0, 0, 2)
    assert "+ version: 1.1" in summary.trivial_changes
    assert store.list_items() == before


def test_rerun_on_unchanged_document_is_idempotent(processor, oracle, store, prd_file):
    oracle.queue(extraction("Dashboards"))
    processor.process_document(prd_file)
    before = store.list_items()

    for _ in range(2):
        summary = processor.process_document(prd_file)
        assert summary.mode == "no_change"
        assert summary.unchanged == 1

    assert len(oracle.calls) == 1
    assert store.list_items() == before


def test_significant_change_updates_obsoletes_and_creates(processor, oracle, store, config, prd_file):
    oracle.queue(extraction("Dashboards", "PDF export"))
    processor.process_document(prd_file)

    new_prd = PRD_V1.replace("- Users can export reports as PDF", "- Users can share dashboards by link")
    prd_file.write_text(new_prd)
    oracle.queue({
        "change_assessment": {"summary": "PDF export replaced by sharing", "rationale": "Scope change"},
        "issue_updates": [
            {"item_id": 1, "action": "update", "significance": "minor",
             "updates": {"body": "Dashboards, now shareable"}, "comment": "Sharing affects dashboards"},
            {"item_id": 2, "action": "obsolete", "significance": "scope_change",
             "rationale": "PDF export removed"},
        ],
        "new_features": [feature("Share links")],
        "summary": {"overall_rationale": "Sharing replaces PDF export"},
    })
    summary = processor.process_document(prd_file)

    assert len(oracle.calls) == 2
    assert "+ - Users can share dashboards by link" in oracle.calls[1][1]
    assert summary.mode == "update"
    assert (summary.updated, summary.created, summary.unchanged) == (2, 1, 0)
    assert summary.rationale == "Sharing replaces PDF export"

    assert store.get_item(1).body == "Dashboards, now shareable"
    assert store.get_snapshot(1) == new_prd
    obsolete = store.get_item(2)
    assert obsolete.state == "open"
    assert "PDF export removed" in obsolete.comments[-1].body
    assert store.get_item(3).title == "[TECHNICAL] Share links"
    assert load_summary(config.summary_path)["mode"] == "update"


def test_force_create_ignores_existing_items(processor, oracle, store, prd_file):
    oracle.queue(extraction("Dashboards"))
    processor.process_document(prd_file)
    oracle.queue(extraction("Dashboards"))
    summary = processor.process_document(prd_file, force_create=True)

    assert summary.mode == "create"
    assert len(store.list_items()) == 2


def test_items_without_generated_label_are_ignored(processor, oracle, store, prd_file):
    store.create_item(NewItem(title="Hand written", body="", labels=["bug"]))
    oracle.queue(extraction("Dashboards"))
    summary = processor.process_document(prd_file)
    assert summary.mode == "create"


def test_store_without_snapshots_reports_no_change(oracle, config, prd_file):
    store = InMemoryIssueStore(snapshots=False)
    store.create_item(NewItem(title="[TECHNICAL] Dashboards", body="", labels=["generated"]))
    processor = DocumentProcessor(store, PlanningEngine(oracle), ExecutionEngine(store), config)

    assert processor.reference_diff(store.list_items(), PRD_V1) == NO_SNAPSHOT_TEXT
    summary = processor.process_document(prd_file)
    assert summary.mode == "no_change"
    assert oracle.calls == []


def test_reference_snapshot_is_most_recent(processor, store):
    first = store.create_item(NewItem(title="A", body="", labels=["generated"]))
    second = store.create_item(NewItem(title="B", body="", labels=["generated"]))
    stamps = ["2024-01-01T00:00:02.000000Z", "2024-01-01T00:00:01.000000Z", "2024-01-01T00:00:03.000000Z"]
    with patch("prdtrack.stores.snapshots.touch", side_effect=stamps):
        store.store_snapshot(second, "middle", "prd.md")
        store.store_snapshot(first, "oldest", "prd.md")
        store.store_snapshot(first, "newest", "prd.md")

    reference = processor.reference_snapshot(store.list_items())
    assert reference.item_id == first
    assert reference.text == "newest"
    assert reference.captured_at == stamps[2]


def test_missing_document_is_fatal(processor, oracle, tmp_path):
    with pytest.raises(DocumentNotFoundError):
        processor.process_document(tmp_path / "missing.md")
    assert oracle.calls == []


def test_unparseable_oracle_output_is_fatal(store, config, prd_file):
    oracle = FakeOracle("no json here")
    processor = DocumentProcessor(store, PlanningEngine(oracle), ExecutionEngine(store), config)
    with pytest.raises(OracleResponseError):
        processor.process_document(prd_file)
    assert store.list_items() == []


def test_summary_artifact_is_json(processor, oracle, config, prd_file):
    oracle.queue(extraction("Dashboards"))
    processor.process_document(prd_file)
    with open(config.summary_path) as f:
        data = json.load(f)
    assert set(data) >= {"mode", "updated", "created", "unchanged", "rationale", "timestamp", "failures"}


def test_rerun_after_obsolete_only_plan_is_idempotent(processor, oracle, store, prd_file):
    oracle.queue(extraction("Dashboards", "PDF export"))
    processor.process_document(prd_file)

    prd_file.write_text(PRD_V1.replace("- Users can export reports as PDF\n", ""))
    obsolete_plan = {
        "change_assessment": {"summary": "PDF export removed"},
        "issue_updates": [
            {"item_id": 1, "action": "no_change"},
            {"item_id": 2, "action": "obsolete", "rationale": "PDF export removed"},
        ],
        "new_features": [],
    }
    oracle.queue(obsolete_plan)
    oracle.queue(obsolete_plan)

    first = processor.process_document(prd_file)
    second = processor.process_document(prd_file)

    assert first.mode == "update"
    assert (first.updated, first.unchanged) == (1, 1)
    assert second.mode == "no_change"
    assert len(oracle.calls) == 2
    warnings = [c.body for c in store.get_item(2).comments if "may be obsolete" in c.body]
    assert len(warnings) == 1


def test_label_update_keeps_items_discoverable(processor, oracle, store, prd_file):
    oracle.queue(extraction("Dashboards"))
    processor.process_document(prd_file)

    prd_file.write_text(PRD_V1.replace("saved queries", "saved queries and charts"))
    oracle.queue({
        "change_assessment": {"summary": "Dashboards gain charts"},
        "issue_updates": [{"item_id": 1, "action": "update", "updates": {"labels": ["ui"]}}],
        "new_features": [],
    })
    summary = processor.process_document(prd_file)
    assert summary.mode == "update"
    assert store.get_item(1).labels == ["generated", "ui"]

    summary = processor.process_document(prd_file)
    assert summary.mode == "no_change"
    assert [item.id for item in store.list_items()] == [1]
    assert len(oracle.calls) == 2
