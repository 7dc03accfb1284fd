"""
Ancestor fallback for branch fetches.

A branch starts at its dedicated folder; when nothing usable comes back it
retries on each ancestor up to the document root, and finally settles for
whatever the last candidate produced.
"""
import logging
from typing import Any, Awaitable, Callable, List, Optional

from .constants import ROOT_SENTINEL_ID
from .models import FallbackFetchOutcome, QueryNode, TreeOutputNode, TreePair
from .query_repository import QueryNodeRepository

logger = logging.getLogger(__name__)

Fetcher = Callable[[QueryNode], Awaitable[Any]]
Validator = Callable[[Any], bool]


def _chain_key(node: QueryNode, root: Optional[QueryNode]) -> str:
    if node.id:
        return node.id
    if node is root:
        return ROOT_SENTINEL_ID
    return f"anonymous:{id(node)}"


def has_any_query_tree(result: Any) -> bool:
    """
    Whether a fetch result contains at least one query.

    Looks recursively for a mapping or node carrying ``isValidQuery``, ``wiql``
    or ``queryType``, or a non-empty ``roots``/``children`` list.
    """
    if result is None:
        return False

    if isinstance(result, TreePair):
        return has_any_query_tree(result.tree1) or has_any_query_tree(result.tree2)

    if isinstance(result, TreeOutputNode):
        return has_any_query_tree(result.to_dict())

    if isinstance(result, (list, tuple)):
        return any(has_any_query_tree(item) for item in result)

    if isinstance(result, dict):
        if result.get('isValidQuery') or result.get('wiql') or result.get('queryType'):
            return True
        for key in ('roots', 'children'):
            value = result.get(key)
            if isinstance(value, list) and value:
                return True
        return any(
            has_any_query_tree(value)
            for value in result.values()
            if isinstance(value, (dict, list, tuple, TreePair, TreeOutputNode))
        )

    return False


VALIDATORS = {
    'has_any_query_tree': has_any_query_tree,
}


class AncestorFallbackEngine:
    """Builds ancestor chains and runs a fetcher along them."""

    def __init__(self, repository: QueryNodeRepository):
        self.repository = repository

    async def find_path_to_node(
        self,
        root: Optional[QueryNode],
        target_id: Optional[str]
    ) -> Optional[List[QueryNode]]:
        """Depth-first path ``[root, ..., target]``, or None when unreachable."""
        if root is None or not target_id:
            return None

        visited = set()

        async def visit(node: QueryNode, path: List[QueryNode]) -> Optional[List[QueryNode]]:
            if node.id:
                if node.id in visited:
                    return None
                visited.add(node.id)

            path = path + [node]
            if node.id == target_id:
                return path

            node = await self.repository.ensure_children(node)
            for child in node.children or []:
                if child is None:
                    continue
                found = await visit(child, path)
                if found:
                    return found
            return None

        return await visit(root, [])

    async def build_fallback_chain(
        self,
        root: Optional[QueryNode],
        starting: Optional[QueryNode]
    ) -> List[QueryNode]:
        """
        Candidates to try in order: ``starting``, its ancestors, then ``root``.

        Deduplicated by id. When ``starting`` cannot be located under ``root``
        the chain is just ``[starting, root]``.
        """
        path = None
        if starting is not None and starting.id:
            path = await self.find_path_to_node(root, starting.id)

        if path:
            ordered = list(reversed(path))
        else:
            ordered = [node for node in (starting,) if node is not None]

        if root is not None:
            ordered.append(root)

        chain = []
        seen = set()
        for node in ordered:
            key = _chain_key(node, root)
            if key in seen:
                continue
            seen.add(key)
            chain.append(node)
        return chain

    async def fetch_with_ancestor_fallback(
        self,
        root: Optional[QueryNode],
        starting: Optional[QueryNode],
        fetcher: Fetcher,
        context: str = '',
        validator: Optional[Validator] = None
    ) -> FallbackFetchOutcome:
        """
        Run ``fetcher`` on each chain candidate until ``validator`` accepts.

        Every candidate is tried at most once. If none is accepted the last
        candidate's result is returned with that candidate as ``used_folder``.
        """
        validator = validator or has_any_query_tree
        chain = await self.build_fallback_chain(root, starting or root)

        outcome = FallbackFetchOutcome(result=None, used_folder=None)
        for index, candidate in enumerate(chain):
            candidate = await self.repository.ensure_children(candidate)
            result = await fetcher(candidate)
            outcome = FallbackFetchOutcome(result=result, used_folder=candidate)

            if validator(result):
                if index > 0:
                    logger.info(
                        f"[{context}] Using fallback folder '{candidate.name}' "
                        f"({index} level(s) above '{chain[0].name}')"
                    )
                return outcome

            logger.debug(f"[{context}] No usable queries under '{candidate.name}'")

        if chain:
            logger.warning(
                f"[{context}] No candidate folder produced queries; "
                f"using result from '{outcome.used_folder.name}'"
            )
        return outcome
