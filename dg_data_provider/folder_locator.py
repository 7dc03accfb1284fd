"""
Folder lookup inside the shared query hierarchy.

Organizations name and nest their query folders inconsistently, so besides
exact lookups there is a ranked candidate-name search: an exact name match
anywhere in the tree beats a partial match, and among partial matches the
shallowest one found first wins.
"""
import logging
import uuid
from collections import deque
from typing import Iterable, List, Optional

from .models import QueryNode
from .query_repository import QueryNodeRepository
from .validation import validate_candidate_names

logger = logging.getLogger(__name__)


def _visit_key(node: QueryNode) -> str:
    # nodes without an id are never considered duplicates
    return node.id or f"{node.name}:{uuid.uuid4().hex}"


def _folder_children(node: Optional[QueryNode]) -> List[QueryNode]:
    if node is None or not node.children:
        return []
    return [child for child in node.children if child is not None and child.is_folder]


class FolderLocator:
    """Finds folders by name, expanding nodes lazily through the repository."""

    def __init__(self, repository: QueryNodeRepository):
        self.repository = repository

    async def find_folder_by_exact_name(
        self,
        root: Optional[QueryNode],
        name: str
    ) -> Optional[QueryNode]:
        """Breadth-first search for a folder named ``name`` (case-insensitive)."""
        if root is None or not name:
            return None

        target = name.strip().lower()
        queue = deque([root])
        visited = set()

        while queue:
            node = await self.repository.ensure_children(queue.popleft())
            key = _visit_key(node)
            if key in visited:
                continue
            visited.add(key)

            if node.is_folder and node.name.lower() == target:
                return node

            queue.extend(child for child in node.children or [] if child is not None)

        return None

    async def find_child_by_exact_name(
        self,
        parent: Optional[QueryNode],
        name: str
    ) -> Optional[QueryNode]:
        """Direct folder child of ``parent`` named ``name``; not recursive."""
        if parent is None or not name:
            return None

        parent = await self.repository.ensure_children(parent)
        target = name.strip().lower()
        for child in _folder_children(parent):
            if child.name.lower() == target:
                return child
        return None

    async def find_child_by_candidate_names(
        self,
        parent: Optional[QueryNode],
        candidate_names: Iterable[str]
    ) -> Optional[QueryNode]:
        """
        Search the folders below ``parent`` for any of ``candidate_names``.

        Returns the first exact match in breadth-first order if there is one
        anywhere below ``parent``, else the first partial (substring) match,
        else None.
        """
        candidates = validate_candidate_names(candidate_names)
        if parent is None or not candidates:
            return None

        parent = await self.repository.ensure_children(parent)
        queue = deque(_folder_children(parent))
        if not queue:
            return None

        visited = set()
        first_partial: Optional[QueryNode] = None

        while queue:
            folder = queue.popleft()
            key = _visit_key(folder)
            if key in visited:
                continue
            visited.add(key)

            folder_name = folder.name.lower()
            if folder_name in candidates:
                logger.debug(f"Exact folder match '{folder.name}' for {candidates}")
                return folder

            if first_partial is None and any(candidate in folder_name for candidate in candidates):
                first_partial = folder

            folder = await self.repository.ensure_children(folder)
            queue.extend(_folder_children(folder))

        if first_partial is not None:
            logger.debug(f"Partial folder match '{first_partial.name}' for {candidates}")
        return first_partial
