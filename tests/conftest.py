"""
pytest configuration and shared fixtures.

Usage:
    def test_something(make_client, fake_sleep):
        client = make_client(databases={...})
"""

from __future__ import annotations

from typing import Any, Dict, List

import pytest

from notion_export.notion_client import NotionClientWrapper
from notion_fixtures import FakeNotionClient, checkbox_prop, number_prop, row, schema_field, select_prop, title_prop


@pytest.fixture
def tasks_schema() -> Dict[str, Dict[str, Any]]:
    """Schema whose declared order differs from alphabetical order."""
    return {
        "Task": schema_field("Task", "title"),
        "Status": schema_field("Status", "select"),
        "Done": schema_field("Done", "checkbox"),
        "Estimate": schema_field("Estimate", "number"),
    }


@pytest.fixture
def tasks_items() -> List[Dict[str, Any]]:
    return [
        row(Task=title_prop("Write docs"), Status=select_prop("Doing"), Done=checkbox_prop(False), Estimate=number_prop(3)),
        row(Task=title_prop("Ship"), Status=select_prop("Todo"), Done=checkbox_prop(True), Estimate=number_prop(1.5)),
    ]


@pytest.fixture
def sleeps() -> List[float]:
    return []


@pytest.fixture
def fake_sleep(sleeps: List[float]):
    return sleeps.append


@pytest.fixture
def make_client():
    """Build a NotionClientWrapper backed by a FakeNotionClient."""

    def _make(**kwargs: Any) -> NotionClientWrapper:
        return NotionClientWrapper(client=FakeNotionClient(**kwargs))

    return _make
