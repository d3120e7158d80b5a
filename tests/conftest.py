from __future__ import annotations

import json
from typing import Any

import pytest

from prdtrack.config import PrdtrackConfig
from prdtrack.executor import ExecutionEngine
from prdtrack.planner import PlanningEngine
from prdtrack.processor import DocumentProcessor
from prdtrack.stores.memory import InMemoryIssueStore


PRD_V1 = """\
# Reporting PRD
version: 1.0
date: 2024-01-10

## Features
- Users can build dashboards from saved queries
- Users can export reports as PDF
"""


class FakeOracle:
    """Scripted oracle: returns queued responses in order and records every call."""

    def __init__(self, *responses: Any):
        self.responses = list(responses)
        self.calls: list[tuple[str, str]] = []

    def queue(self, response: Any) -> None:
        self.responses.append(response)

    def complete(self, instructions: str, context: str) -> str:
        self.calls.append((instructions, context))
        if not self.responses:
            raise AssertionError("Oracle called more times than scripted")
        response = self.responses.pop(0)
        if isinstance(response, dict):
            return f"Here is the plan:\n```json\n{json.dumps(response)}\n```"
        return response


def feature(title: str, **extra: Any) -> dict[str, Any]:
    data = {
        "title": title,
        "description": f"{title} description",
        "category": "technical",
        "priority": "medium",
        "acceptance_criteria": [f"{title} works"],
    }
    data.update(extra)
    return data


@pytest.fixture
def oracle() -> FakeOracle:
    return FakeOracle()


@pytest.fixture
def store() -> InMemoryIssueStore:
    return InMemoryIssueStore()


@pytest.fixture
def config(tmp_path) -> PrdtrackConfig:
    return PrdtrackConfig(summary_path=str(tmp_path / "last-run.json"))


@pytest.fixture
def processor(store, oracle, config) -> DocumentProcessor:
    return DocumentProcessor(
        store,
        PlanningEngine(oracle),
        ExecutionEngine(store, generated_label=config.generated_label),
        config,
    )


@pytest.fixture
def prd_file(tmp_path):
    path = tmp_path / "prd.md"
    path.write_text(PRD_V1)
    return path
