from __future__ import annotations

import argparse
import logging
import sys
from typing import List, Optional

from dotenv import load_dotenv

from .config import get_config
from .exporter import ExportResult, PageExporter
from .notion_client import NotionClientWrapper

PREVIEW_CHARS = 500


def build_arg_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Export a Notion page and its embedded databases to markdown files."
    )
    parser.add_argument("page_id", nargs="?", help="Notion page ID or URL (defaults to $NOTION_PAGE_ID)")
    parser.add_argument("--token", dest="notion_token", help="Notion integration token (defaults to $NOTION_TOKEN)")
    parser.add_argument("--config", dest="config_path", help="Optional YAML config file")
    parser.add_argument("--out-dir", dest="output_dir", help="Output directory (default: output)")
    parser.add_argument(
        "--no-separate-files",
        dest="separate_database_files",
        action="store_false",
        default=None,
        help="Do not write one markdown file per database",
    )
    parser.add_argument(
        "--no-inline-databases",
        dest="include_db_in_page",
        action="store_false",
        default=None,
        help="Do not append database tables to the page document",
    )
    parser.add_argument("--log-level", dest="log_level", help="Logging level (default: INFO)")
    return parser


def print_summary(result: ExportResult) -> None:
    print("Export complete!")
    with open(result.page_file_path, "r", encoding="utf-8") as f:
        content = f.read()
    print("------------ markdown content ------------")
    print(content[:PREVIEW_CHARS] + ("...(truncated)" if len(content) > PREVIEW_CHARS else ""))
    print("------------------------------------------")

    if result.database_files:
        print(f"\nDatabase files written ({len(result.database_files)}):")
        for db in result.database_files:
            print(f"- {db.title}: {db.file_path} ({db.item_count} items)")


def main(argv: Optional[List[str]] = None) -> None:
    load_dotenv()  # Load .env if present

    args = build_arg_parser().parse_args(argv)
    try:
        cfg = get_config({k: v for k, v in vars(args).items() if v is not None})
    except ValueError as exc:
        print(f"[error] {exc}", file=sys.stderr)
        raise SystemExit(1)

    logging.basicConfig(
        level=getattr(logging, cfg.log_level, logging.INFO),
        format="%(asctime)s | %(levelname)s | %(message)s",
    )

    try:
        client = NotionClientWrapper(cfg.notion.token)
        exporter = PageExporter(client, cfg.output.directory)
        result = exporter.export_page(cfg.notion.page_id, cfg.options)
    except Exception:
        logging.exception("Export failed")
        raise SystemExit(1)

    print_summary(result)


if __name__ == "__main__":
    main()
