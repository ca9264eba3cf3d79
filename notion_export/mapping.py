from __future__ import annotations
import re
from datetime import datetime
from typing import Any, Dict, Optional
from dateutil import tz

CHECKED = "✅"
UNCHECKED = "❌"

TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"

NOTION_URL_ID_PATTERN = re.compile(r"([0-9a-fA-F]{8}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{12})|([0-9a-fA-F]{32})")


def extract_notion_id(possible_url_or_id: str) -> str:
    """Return a clean Notion ID given a URL or raw id.

    Accepts: page url, database url, or raw id (with or without dashes).
    Returns the dashed UUID form preferred by the API.
    """
    if not possible_url_or_id or not possible_url_or_id.strip():
        raise ValueError("Empty Notion URL or ID")

    raw = possible_url_or_id.strip()
    match = NOTION_URL_ID_PATTERN.search(raw)
    if not match:
        raise ValueError(f"Could not parse Notion ID from: {possible_url_or_id}")

    id_candidate = next(g for g in match.groups() if g)
    if len(id_candidate) == 32:  # add dashes 8-4-4-4-12
        return f"{id_candidate[0:8]}-{id_candidate[8:12]}-{id_candidate[12:16]}-{id_candidate[16:20]}-{id_candidate[20:32]}".lower()
    return id_candidate.lower()


def compact_id(notion_id: str) -> str:
    return notion_id.replace("-", "")


def local_now() -> datetime:
    return datetime.now(tz.tzlocal())


def format_timestamp(dt: datetime) -> str:
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=tz.tzlocal())
    return dt.strftime(TIMESTAMP_FORMAT)


def escape_cell(text: str) -> str:
    # keep one table row per item
    return text.replace("\r\n", " ").replace("\n", " ").replace("\r", " ").replace("|", "\\|")


# ---------- Notion property -> cell text ----------

def _first_plain_text(parts: Any) -> str:
    if isinstance(parts, list) and parts:
        first = parts[0]
        if isinstance(first, dict):
            return first.get("plain_text") or ""
    return ""


def property_to_text(property_type: Optional[str], property_value: Optional[Dict[str, Any]]) -> str:
    """Render one row property as table cell text.

    ``property_type`` is the type declared by the database schema. A missing
    value, or a value whose own type differs from the declared one, renders as
    an empty string.
    """
    if not isinstance(property_value, dict):
        return ""
    if property_value.get("type", property_type) != property_type:
        return ""

    if property_type in ("title", "rich_text"):
        return _first_plain_text(property_value.get(property_type))
    if property_type == "number":
        v = property_value.get("number")
        if isinstance(v, bool) or not isinstance(v, (int, float)):
            return ""
        return str(v)
    if property_type == "select":
        sel = property_value.get("select")
        return (sel.get("name") or "") if isinstance(sel, dict) else ""
    if property_type == "multi_select":
        items = property_value.get("multi_select")
        if not isinstance(items, list):
            return ""
        return ", ".join([i.get("name") or "" for i in items if isinstance(i, dict)])
    if property_type == "date":
        date_val = property_value.get("date")
        return (date_val.get("start") or "") if isinstance(date_val, dict) else ""
    if property_type == "checkbox":
        return CHECKED if property_value.get("checkbox") else UNCHECKED
    if property_type == "url":
        v = property_value.get("url")
        return v if isinstance(v, str) else ""
    # Unsupported types render empty
    return ""
