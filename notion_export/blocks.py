from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from .notion_client import NotionClientWrapper

HEADINGS = {"heading_1": "#", "heading_2": "##", "heading_3": "###"}
LIST_ITEMS = {"bulleted_list_item", "numbered_list_item", "to_do"}
LINK_BLOCKS = {"bookmark", "embed", "link_preview"}
MEDIA_BLOCKS = {"image", "video", "file", "pdf"}
CONTAINERS = {"column_list", "column", "synced_block"}


def rich_text_to_markdown(parts: Optional[List[Dict[str, Any]]]) -> str:
    out: List[str] = []
    for span in parts or []:
        text = span.get("plain_text", "")
        if not text:
            continue
        ann = span.get("annotations") or {}
        if ann.get("code"):
            text = f"`{text}`"
        if ann.get("bold"):
            text = f"**{text}**"
        if ann.get("italic"):
            text = f"_{text}_"
        if ann.get("strikethrough"):
            text = f"~~{text}~~"
        href = span.get("href")
        if href:
            text = f"[{text}]({href})"
        out.append(text)
    return "".join(out)


def _media_url(content: Dict[str, Any]) -> str:
    kind = content.get("type")
    if kind in ("file", "external"):
        return (content.get(kind) or {}).get("url", "")
    return content.get("url", "")


class PageMarkdownRenderer:
    """Convert a page's block tree into markdown.

    Block types without a markdown form are written out as their type name,
    e.g. ``child_database``.
    """

    def __init__(self, client: NotionClientWrapper) -> None:
        self.client = client
        self.logger = logging.getLogger(self.__class__.__name__)

    def __call__(self, page_id: str) -> str:
        return self.page_to_markdown(page_id)

    def page_to_markdown(self, page_id: str) -> str:
        blocks = self._fetch_tree(page_id)
        self.logger.debug("Fetched %d top-level blocks for %s", len(blocks), page_id)
        return self.blocks_to_markdown(blocks).strip("\n") + "\n"

    def _fetch_tree(self, block_id: str) -> List[Dict[str, Any]]:
        blocks = self.client.list_all_block_children(block_id)
        for block in blocks:
            # child pages and databases are not expanded inline
            if block.get("has_children") and block.get("type") not in ("child_page", "child_database"):
                block["children"] = self._fetch_tree(block["id"])
        return blocks

    def blocks_to_markdown(self, blocks: List[Dict[str, Any]], depth: int = 0) -> str:
        chunks: List[str] = []
        number = 0
        for block in blocks:
            if block.get("type") == "numbered_list_item":
                number += 1
            else:
                number = 0
            chunks.append(self.block_to_markdown(block, depth, number))

        out = ""
        for i, chunk in enumerate(chunks):
            if i:
                tight = blocks[i].get("type") in LIST_ITEMS and blocks[i - 1].get("type") in LIST_ITEMS
                out += "\n" if tight else "\n\n"
            out += chunk
        return out

    def block_to_markdown(self, block: Dict[str, Any], depth: int = 0, number: int = 1) -> str:
        t = block.get("type") or ""
        content = block.get(t) or {}
        ind = "  " * depth
        text = rich_text_to_markdown(content.get("rich_text"))

        if t == "paragraph":
            line = ind + text
        elif t in HEADINGS:
            line = f"{ind}{HEADINGS[t]} {text}"
        elif t == "bulleted_list_item":
            line = f"{ind}- {text}"
        elif t == "numbered_list_item":
            line = f"{ind}{number}. {text}"
        elif t == "to_do":
            check = "x" if content.get("checked") else " "
            line = f"{ind}- [{check}] {text}"
        elif t == "quote":
            line = f"{ind}> {text}"
        elif t == "callout":
            icon = (content.get("icon") or {}).get("emoji") or "💡"
            line = f"{ind}> {icon} {text}"
        elif t == "code":
            lang = content.get("language", "")
            line = f"{ind}```{lang}\n{text}\n{ind}```"
        elif t == "divider":
            line = f"{ind}---"
        elif t == "equation":
            line = f"{ind}$$ {content.get('expression', '')} $$"
        elif t in MEDIA_BLOCKS:
            caption = rich_text_to_markdown(content.get("caption")) or t
            prefix = "!" if t == "image" else ""
            line = f"{ind}{prefix}[{caption}]({_media_url(content)})"
        elif t in LINK_BLOCKS:
            url = content.get("url", "")
            caption = rich_text_to_markdown(content.get("caption")) or url
            line = f"{ind}[{caption}]({url})"
        elif t == "toggle":
            line = f"{ind}- {text}"
        elif t in CONTAINERS:
            return self.blocks_to_markdown(block.get("children") or [], depth)
        elif t == "child_page":
            line = f"{ind}**{content.get('title') or 'Untitled'}**"
        else:
            line = ind + t

        children = block.get("children") or []
        if children:
            child_depth = depth + 1 if t in LIST_ITEMS or t in ("quote", "callout", "toggle") else depth
            line += "\n" + self.blocks_to_markdown(children, child_depth)
        return line
