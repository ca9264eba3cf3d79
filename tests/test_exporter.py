"""
Page export orchestration: files written, sections assembled, failure policy.
"""

import os
from datetime import datetime

import pytest

from notion_export.config import ExportOptions
from notion_export.databases import NO_ITEMS_NOTICE
from notion_export.exporter import (
    DatabaseFile,
    PageExporter,
    database_file_name,
    page_file_name,
    page_title,
    strip_child_database_markers,
)
from notion_fixtures import (
    NOTES_DB_ID,
    PAGE_ID,
    TASKS_DB_ID,
    block,
    child_database_block,
    database_info,
    page_info,
    row,
    schema_field,
    text_prop,
    title_prop,
)

FIXED_NOW = datetime(2024, 1, 2, 3, 4, 5)
FOOTER = "\n\n---\n\n_generated at 2024-01-02 03:04:05_\n"


@pytest.fixture
def notes_schema():
    return {"Note": schema_field("Note", "title"), "Body": schema_field("Body", "rich_text")}


@pytest.fixture
def two_database_client(make_client, tasks_schema, tasks_items, notes_schema):
    return make_client(
        pages={PAGE_ID: page_info("Project")},
        databases={
            TASKS_DB_ID: database_info("Tasks", tasks_schema),
            NOTES_DB_ID: database_info("Notes", notes_schema),
        },
        query_results={
            TASKS_DB_ID: [tasks_items],
            NOTES_DB_ID: [[row(Note=title_prop("n1"), Body=text_prop("hello"))]],
        },
        children={
            PAGE_ID: [
                block("paragraph", "Intro"),
                child_database_block(TASKS_DB_ID, "Tasks"),
                child_database_block(NOTES_DB_ID, "Notes"),
            ]
        },
    )


def _exporter(client, tmp_path, fake_sleep):
    return PageExporter(client, str(tmp_path / "out"), clock=lambda: FIXED_NOW, sleep=fake_sleep)


def _read(path):
    with open(path, "r", encoding="utf-8") as f:
        return f.read()


def test_file_names_drop_dashes():
    assert page_file_name(PAGE_ID) == "notion_page_11111111222233334444555555555555.md"
    assert database_file_name(TASKS_DB_ID) == "notion_database_aaaaaaaabbbbccccddddeeeeeeeeeeee.md"


def test_page_title_from_title_property():
    page = {"properties": {"Name": title_prop("Roadmap"), "Tags": {"type": "multi_select", "multi_select": []}}}
    assert page_title(page) == "Roadmap"
    assert page_title({"properties": {}}) == "Untitled"
    assert page_title({"properties": {"title": title_prop(None)}}) == "Untitled"


def test_strip_child_database_markers():
    assert strip_child_database_markers("a\n\nchild_database\n\nb") == "a\n\nb"


def test_export_with_default_options(two_database_client, tmp_path, fake_sleep):
    out_dir = tmp_path / "out"

    result = _exporter(two_database_client, tmp_path, fake_sleep).export_page(PAGE_ID)

    assert out_dir.is_dir()
    assert result.page_file_path == os.path.join(str(out_dir), page_file_name(PAGE_ID))
    assert result.database_files == [
        DatabaseFile(TASKS_DB_ID, "Tasks", os.path.join(str(out_dir), database_file_name(TASKS_DB_ID)), 2),
        DatabaseFile(NOTES_DB_ID, "Notes", os.path.join(str(out_dir), database_file_name(NOTES_DB_ID)), 1),
    ]

    page = _read(result.page_file_path)
    assert page.startswith("# Project\n\nIntro\n\n## Databases in this page\n\n### Tasks\n\n| Task | Status | Done | Estimate |")
    assert "child_database" not in page
    assert "### Notes\n\n| Note | Body |\n| --- | --- |\n| n1 | hello |\n\n---" in page
    assert "## Database files\n\n" in page
    assert f"- [Tasks (2 items)]({database_file_name(TASKS_DB_ID)})\n" in page
    assert f"- [Notes (1 items)]({database_file_name(NOTES_DB_ID)})" in page
    assert page.index("## Databases in this page") < page.index("## Database files")
    assert page.endswith(FOOTER)

    tasks_file = _read(result.database_files[0].file_path)
    assert tasks_file == (
        "# Project - Tasks\n\n"
        "| Task | Status | Done | Estimate |\n"
        "| --- | --- | --- | --- |\n"
        "| Write docs | Doing | ❌ | 3 |\n"
        "| Ship | Todo | ✅ | 1.5 |" + FOOTER
    )


def test_inline_only_writes_no_database_files(two_database_client, tmp_path, fake_sleep):
    options = ExportOptions(separate_database_files=False, include_db_in_page=True)

    result = _exporter(two_database_client, tmp_path, fake_sleep).export_page(PAGE_ID, options)

    assert result.database_files == []
    assert sorted(os.listdir(tmp_path / "out")) == [page_file_name(PAGE_ID)]
    page = _read(result.page_file_path)
    assert "| Write docs | Doing | ❌ | 3 |" in page
    assert "| n1 | hello |" in page
    assert "## Database files" not in page


def test_separate_only_keeps_tables_out_of_page(two_database_client, tmp_path, fake_sleep):
    options = ExportOptions(separate_database_files=True, include_db_in_page=False)

    result = _exporter(two_database_client, tmp_path, fake_sleep).export_page(PAGE_ID, options)

    page = _read(result.page_file_path)
    assert "## Databases in this page" not in page
    assert "| Task |" not in page
    assert "## Database files" in page
    assert len(result.database_files) == 2


def test_page_without_databases(make_client, tmp_path, fake_sleep):
    client = make_client(
        pages={PAGE_ID: page_info("Plain")},
        children={PAGE_ID: [block("paragraph", "Just text")]},
    )

    result = _exporter(client, tmp_path, fake_sleep).export_page(PAGE_ID)

    assert result.database_files == []
    assert _read(result.page_file_path) == "# Plain\n\nJust text" + FOOTER
    assert not any(c[0].startswith("databases.") for c in client.client.calls)


def test_failing_database_does_not_abort_export(two_database_client, tmp_path, fake_sleep):
    two_database_client.client._query_error_after[TASKS_DB_ID] = 0

    result = _exporter(two_database_client, tmp_path, fake_sleep).export_page(PAGE_ID)

    assert [db.item_count for db in result.database_files] == [0, 1]
    page = _read(result.page_file_path)
    assert page.startswith("# Project\n\nIntro")
    assert f"### Tasks\n\n{NO_ITEMS_NOTICE}" in page
    assert "| n1 | hello |" in page
    assert NO_ITEMS_NOTICE in _read(result.database_files[0].file_path)


def test_custom_page_renderer_output_is_cleaned(make_client, tmp_path, fake_sleep):
    client = make_client(pages={PAGE_ID: page_info("Custom")}, children={PAGE_ID: []})
    exporter = PageExporter(
        client,
        str(tmp_path / "out"),
        page_renderer=lambda page_id: "Top\nchild_database\nBottom\n",
        clock=lambda: FIXED_NOW,
        sleep=fake_sleep,
    )

    result = exporter.export_page(PAGE_ID)

    assert _read(result.page_file_path) == "# Custom\n\nTop\nBottom" + FOOTER


def test_page_retrieve_failure_propagates(make_client, tmp_path, fake_sleep):
    client = make_client(errors={("pages.retrieve", PAGE_ID): RuntimeError("unauthorized")})

    with pytest.raises(RuntimeError, match="unauthorized"):
        _exporter(client, tmp_path, fake_sleep).export_page(PAGE_ID)

    assert not (tmp_path / "out" / page_file_name(PAGE_ID)).exists()


def test_database_file_write_failure_is_skipped(two_database_client, tmp_path, fake_sleep):
    out_dir = tmp_path / "out"
    (out_dir / database_file_name(TASKS_DB_ID)).mkdir(parents=True)

    result = _exporter(two_database_client, tmp_path, fake_sleep).export_page(PAGE_ID)

    assert [db.id for db in result.database_files] == [NOTES_DB_ID]
    page = _read(result.page_file_path)
    assert f"- [Notes (1 items)]({database_file_name(NOTES_DB_ID)})" in page
    assert "- [Tasks" not in page
    assert "| Write docs | Doing | ❌ | 3 |" in page


def test_only_database_write_failure_leaves_no_links(make_client, tasks_schema, tasks_items, tmp_path, fake_sleep):
    client = make_client(
        pages={PAGE_ID: page_info("Project")},
        databases={TASKS_DB_ID: database_info("Tasks", tasks_schema)},
        query_results={TASKS_DB_ID: [tasks_items]},
        children={PAGE_ID: [block("paragraph", "Intro"), child_database_block(TASKS_DB_ID, "Tasks")]},
    )
    (tmp_path / "out" / database_file_name(TASKS_DB_ID)).mkdir(parents=True)

    result = _exporter(client, tmp_path, fake_sleep).export_page(PAGE_ID)

    assert result.database_files == []
    assert os.path.isfile(result.page_file_path)
    assert "## Database files" not in _read(result.page_file_path)


def test_null_child_listing_exports_page_without_databases(make_client, tmp_path, fake_sleep):
    client = make_client(pages={PAGE_ID: page_info("Empty")}, children={PAGE_ID: None})

    result = _exporter(client, tmp_path, fake_sleep).export_page(PAGE_ID)

    assert result.database_files == []
    assert _read(result.page_file_path) == "# Empty\n\n" + FOOTER
