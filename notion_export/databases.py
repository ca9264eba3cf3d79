from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence

from .mapping import escape_cell, property_to_text
from .notion_client import MAX_PAGE_SIZE, NotionClientWrapper

logger = logging.getLogger(__name__)

CHILD_DATABASE = "child_database"
UNTITLED_DATABASE = "Untitled Database"
NO_ITEMS_NOTICE = "### No items in this database"
CONVERSION_ERROR_NOTICE = "### An error occurred while converting the database"

PAGE_DELAY_SECONDS = 0.2


@dataclass(frozen=True)
class DatabaseBlock:
    id: str
    title: str = UNTITLED_DATABASE


@dataclass(frozen=True)
class DatabaseContent:
    database_info: Dict[str, Any] = field(default_factory=dict)
    items: List[Dict[str, Any]] = field(default_factory=list)

    @property
    def schema(self) -> Dict[str, Dict[str, Any]]:
        return self.database_info.get("properties") or {}

    @property
    def title(self) -> str:
        parts = self.database_info.get("title") or []
        if parts and isinstance(parts[0], dict) and parts[0].get("plain_text"):
            return parts[0]["plain_text"]
        return UNTITLED_DATABASE


# ------------------------- Database Rows --------------------------

def fetch_database_content(
    client: NotionClientWrapper,
    database_id: str,
    *,
    page_size: int = MAX_PAGE_SIZE,
    delay: float = PAGE_DELAY_SECONDS,
    sleep: Callable[[float], None] = time.sleep,
) -> DatabaseContent:
    """Retrieve a database schema and every row, following the query cursor.

    Any failure drops the whole database: the error is logged and an empty
    ``DatabaseContent`` is returned so the rest of the export can continue.
    """
    try:
        database_info = client.retrieve_database(database_id)
        content = DatabaseContent(database_info=database_info)
        logger.info("Database: %s", content.title)

        items: List[Dict[str, Any]] = []
        has_more = True
        start_cursor: Optional[str] = None
        while has_more:
            logger.info("Fetching database items... %d fetched so far", len(items))
            resp = client.query_database(database_id, start_cursor=start_cursor, page_size=page_size)
            items.extend(resp.get("results", []))
            has_more = bool(resp.get("has_more", False))
            start_cursor = resp.get("next_cursor") or None
            if has_more:
                # stay under the API rate limit
                sleep(delay)

        logger.info("Finished fetching database items: %d total", len(items))
        return DatabaseContent(database_info=database_info, items=items)
    except Exception as exc:
        logger.error("Failed to fetch database %s: %s", database_id, exc)
        return DatabaseContent()


def _row_cells(schema: Mapping[str, Mapping[str, Any]], item: Mapping[str, Any]) -> List[str]:
    props = item.get("properties") or {}
    cells: List[str] = []
    for key, meta in schema.items():
        name = meta.get("name") or key
        value = props.get(name)
        if value is None:
            value = props.get(key)
        cells.append(escape_cell(property_to_text(meta.get("type"), value)))
    return cells


def _table_row(cells: Sequence[str]) -> str:
    return "|" + "".join(f" {cell} |" for cell in cells)


def database_to_markdown(schema: Mapping[str, Mapping[str, Any]], items: Sequence[Mapping[str, Any]]) -> str:
    """Render database rows as a markdown table.

    Columns follow the schema's own order. Returns ``NO_ITEMS_NOTICE`` for an
    empty database and ``CONVERSION_ERROR_NOTICE`` if anything goes wrong.
    """
    if not items:
        return NO_ITEMS_NOTICE

    try:
        header = [escape_cell(meta.get("name") or key) for key, meta in schema.items()]
        lines = [_table_row(header), _table_row(["---"] * len(header))]
        for item in items:
            lines.append(_table_row(_row_cells(schema, item)))
        return "\n".join(lines)
    except Exception as exc:
        logger.error("Failed to convert database to markdown: %s", exc)
        return CONVERSION_ERROR_NOTICE


def render_database_section(title: str, content: DatabaseContent) -> str:
    return f"### {title}\n\n{database_to_markdown(content.schema, content.items)}"


# ------------------------ Blocks and Children ---------------------

def find_databases_in_page(client: NotionClientWrapper, page_id: str) -> List[DatabaseBlock]:
    """Return the child databases among the page's direct children.

    Only the first 100 children are inspected and nested blocks are not
    searched. A failed request is logged and yields an empty list.
    """
    try:
        response = client.list_block_children(page_id, page_size=MAX_PAGE_SIZE)
    except Exception as exc:
        logger.error("Failed to search page %s for databases: %s", page_id, exc)
        return []

    databases: List[DatabaseBlock] = []
    for block in (response or {}).get("results") or []:
        if not isinstance(block, dict) or block.get("type") != CHILD_DATABASE or not block.get("id"):
            continue
        content = block.get(CHILD_DATABASE)
        title = (content.get("title") if isinstance(content, dict) else None) or UNTITLED_DATABASE
        databases.append(DatabaseBlock(id=block["id"], title=title))
    return databases
