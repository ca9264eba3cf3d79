from __future__ import annotations

import logging
import os
import re
import time
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

from .blocks import PageMarkdownRenderer
from .config import ExportOptions
from .databases import (
    DatabaseBlock,
    DatabaseContent,
    database_to_markdown,
    fetch_database_content,
    find_databases_in_page,
    render_database_section,
)
from .mapping import compact_id, format_timestamp, local_now
from .notion_client import NotionClientWrapper

UNTITLED_PAGE = "Untitled"

# The page renderer prints a child database block as its bare type name.
# Databases are exported as tables, so the marker is removed from the page text.
CHILD_DATABASE_MARKER = re.compile(r"child_database(\s*)")


@dataclass(frozen=True)
class DatabaseFile:
    id: str
    title: str
    file_path: str
    item_count: int


@dataclass(frozen=True)
class ExportResult:
    page_file_path: str
    database_files: List[DatabaseFile] = field(default_factory=list)


def page_file_name(page_id: str) -> str:
    return f"notion_page_{compact_id(page_id)}.md"


def database_file_name(database_id: str) -> str:
    return f"notion_database_{compact_id(database_id)}.md"


def page_title(page: Dict[str, Any]) -> str:
    for value in (page.get("properties") or {}).values():
        if isinstance(value, dict) and value.get("type") == "title":
            parts = value.get("title") or []
            if parts and parts[0].get("plain_text"):
                return parts[0]["plain_text"]
    return UNTITLED_PAGE


def strip_child_database_markers(markdown: str) -> str:
    return CHILD_DATABASE_MARKER.sub("", markdown)


class PageExporter:
    def __init__(
        self,
        client: NotionClientWrapper,
        output_dir: str = "output",
        *,
        page_renderer: Optional[Callable[[str], str]] = None,
        clock: Callable[[], datetime] = local_now,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.client = client
        self.output_dir = output_dir
        self.page_renderer = page_renderer or PageMarkdownRenderer(client)
        self.clock = clock
        self.sleep = sleep
        self.logger = logging.getLogger(self.__class__.__name__)

    # --------------------------- Public API ---------------------------
    def export_page(self, page_id: str, options: Optional[ExportOptions] = None) -> ExportResult:
        options = options or ExportOptions()
        os.makedirs(self.output_dir, exist_ok=True)

        title = page_title(self.client.retrieve_page(page_id))
        self.logger.info("Page title: %s", title)

        markdown = strip_child_database_markers(self.page_renderer(page_id)).rstrip()

        databases = find_databases_in_page(self.client, page_id)
        self.logger.info("Databases found: %d", len(databases))

        inline_section = ""
        saved: List[DatabaseFile] = []
        if databases:
            if options.include_db_in_page:
                inline_section = "\n\n## Databases in this page\n\n"
            for db in databases:
                self.logger.info("Processing database: %s", db.title)
                content = fetch_database_content(self.client, db.id, sleep=self.sleep)

                if options.separate_database_files:
                    record = self._save_database(db, content, f"{title} - {db.title}")
                    if record:
                        saved.append(record)

                if options.include_db_in_page:
                    inline_section += render_database_section(db.title, content) + "\n\n---\n\n"

        file_path = os.path.join(self.output_dir, page_file_name(page_id))

        body = markdown
        if inline_section:
            body += inline_section
        if saved:
            body += self._database_links(file_path, saved)

        self._write(file_path, title, body)
        self.logger.info("Markdown file created: %s", file_path)
        return ExportResult(page_file_path=file_path, database_files=saved)

    # --------------------------- Helpers ------------------------------
    def _save_database(self, db: DatabaseBlock, content: DatabaseContent, title: str) -> Optional[DatabaseFile]:
        file_path = os.path.join(self.output_dir, database_file_name(db.id))
        try:
            self._write(file_path, title, database_to_markdown(content.schema, content.items))
        except OSError as exc:
            self.logger.error("Failed to save database %s: %s", db.id, exc)
            return None
        self.logger.info("Database saved as markdown file: %s", file_path)
        return DatabaseFile(id=db.id, title=db.title, file_path=file_path, item_count=len(content.items))

    def _database_links(self, page_file_path: str, saved: List[DatabaseFile]) -> str:
        links = "\n\n## Database files\n\n"
        links += "The databases in this page were exported to the following files:\n\n"
        page_dir = os.path.dirname(page_file_path)
        for db in saved:
            relative_path = os.path.relpath(db.file_path, page_dir).replace(os.sep, "/")
            links += f"- [{db.title} ({db.item_count} items)]({relative_path})\n"
        return links

    def _write(self, file_path: str, title: str, body: str) -> None:
        footer = f"\n\n---\n\n_generated at {format_timestamp(self.clock())}_\n"
        with open(file_path, "w", encoding="utf-8") as f:
            f.write(f"# {title}\n\n{body.rstrip()}{footer}")
