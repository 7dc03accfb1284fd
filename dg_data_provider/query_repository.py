"""
Lazy expansion of shared query nodes.

Folders returned by ``$depth=2`` only carry two levels of children; deeper
folders (and leaves without WIQL) are fetched on demand through their url.
"""
import logging
from dataclasses import replace
from typing import Dict, Optional

from .constants import ApiPaths
from .models import QueryNode

logger = logging.getLogger(__name__)


class QueryNodeRepository:
    """
    Expands query nodes on demand and remembers what it expanded.

    Create one repository per top-level request: the memo keyed by node id
    lives as long as the repository and is never shared between requests.
    """

    def __init__(self, fetcher):
        """
        Args:
            fetcher: ContentFetcher (anything with ``async fetch_json(url)``)
        """
        self.fetcher = fetcher
        self._expanded: Dict[str, QueryNode] = {}
        self._detailed: Dict[str, QueryNode] = {}
        self.fetch_count = 0

    async def ensure_children(self, node: Optional[QueryNode]) -> Optional[QueryNode]:
        """
        Return ``node`` with its children loaded.

        Nodes without children, with children already present, or without a
        url are returned as-is. Fetch errors propagate.
        """
        if node is None or not node.has_children or node.children is not None:
            return node

        if node.id and node.id in self._expanded:
            return self._expanded[node.id]

        if not node.url:
            logger.debug(f"Cannot expand {node!r}: no url")
            return node

        payload = await self._fetch(f"{node.url}?{ApiPaths.EXPAND_CHILDREN}")
        expanded = node.merged_with(payload or {})
        if expanded.children is None:
            # folder reported children but the response listed none
            expanded = replace(expanded, children=[])
        if node.id:
            self._expanded[node.id] = expanded
        logger.debug(f"Expanded {node!r} with {len(expanded.children or [])} children")
        return expanded

    async def ensure_details(self, node: Optional[QueryNode]) -> Optional[QueryNode]:
        """Load WIQL and columns for a leaf query that was listed without them."""
        if node is None or node.is_folder or node.wiql or not node.url:
            return node

        if node.id and node.id in self._detailed:
            return self._detailed[node.id]

        payload = await self._fetch(f"{node.url}?{ApiPaths.EXPAND_DETAILS}")
        detailed = node.merged_with(payload or {})
        if node.id:
            self._detailed[node.id] = detailed
        return detailed

    async def _fetch(self, url: str):
        self.fetch_count += 1
        return await self.fetcher.fetch_json(url)
