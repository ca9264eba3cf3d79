from __future__ import annotations
from typing import Any, Dict, List, Optional
from notion_client import Client

MAX_PAGE_SIZE = 100


class NotionClientWrapper:
    """Read-only access to the Notion endpoints the exporter needs."""

    def __init__(self, token: Optional[str] = None, client: Optional[Any] = None) -> None:
        if client is None:
            if not token:
                raise ValueError("NOTION_TOKEN is required. Set env var or pass --token.")
            client = Client(auth=token)
        self.client = client

    def retrieve_page(self, page_id: str) -> Dict[str, Any]:
        return self.client.pages.retrieve(page_id=page_id)

    def retrieve_database(self, database_id: str) -> Dict[str, Any]:
        return self.client.databases.retrieve(database_id=database_id)

    def query_database(
        self,
        database_id: str,
        start_cursor: Optional[str] = None,
        page_size: int = MAX_PAGE_SIZE,
    ) -> Dict[str, Any]:
        kwargs: Dict[str, Any] = {"database_id": database_id, "page_size": page_size}
        if start_cursor:
            kwargs["start_cursor"] = start_cursor
        return self.client.databases.query(**kwargs)

    def list_block_children(
        self,
        block_id: str,
        start_cursor: Optional[str] = None,
        page_size: int = MAX_PAGE_SIZE,
    ) -> Dict[str, Any]:
        kwargs: Dict[str, Any] = {"block_id": block_id, "page_size": page_size}
        if start_cursor:
            kwargs["start_cursor"] = start_cursor
        return self.client.blocks.children.list(**kwargs)

    def list_all_block_children(self, block_id: str) -> List[Dict[str, Any]]:
        """Fetch all children for a block, handling pagination."""
        results: List[Dict[str, Any]] = []
        start_cursor: Optional[str] = None
        while True:
            response = self.list_block_children(block_id, start_cursor=start_cursor)
            results.extend(response.get("results") or [])
            if not response.get("has_more"):
                break
            start_cursor = response.get("next_cursor")
            if not start_cursor:
                break
        return results
