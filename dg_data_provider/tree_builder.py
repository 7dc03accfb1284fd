"""
Builders turning a shared query folder into forward/reverse output trees.

Both builders mirror the folder structure of the input and keep a folder
only when at least one query below it was selected. Siblings are walked
concurrently; output order follows input order.
"""
import asyncio
import logging
from typing import Awaitable, Callable, Dict, Iterable, List, Optional

from . import wiql as wiql_classifier
from .constants import FieldNames, LinkContext, QueryTypes
from .errors import AzureDevOpsError
from .log_sanitizer import safe_log_error
from .models import EMPTY_PAIR, LinkClassification, QueryNode, TreeOutputNode, TreePair
from .query_repository import QueryNodeRepository

logger = logging.getLogger(__name__)

WorkItemTypeResolver = Callable[[int], Awaitable[Optional[str]]]
LeafClassifier = Callable[[QueryNode, Optional[str]], Awaitable[TreePair]]


class QueryTreeBuilder:
    """Shared traversal; subclasses decide which leaves are kept."""

    def __init__(self, repository: QueryNodeRepository):
        self.repository = repository

    async def _walk(
        self,
        node: Optional[QueryNode],
        parent_id: Optional[str],
        classify_leaf: LeafClassifier,
        excluded_folder_names: Iterable[str] = ()
    ) -> TreePair:
        if node is None:
            return EMPTY_PAIR

        if node.is_folder and node.name.lower() in excluded_folder_names:
            logger.debug(f"Skipping excluded folder '{node.name}'")
            return EMPTY_PAIR

        if not node.has_children and not node.children:
            if node.is_folder:
                return EMPTY_PAIR
            return await classify_leaf(node, parent_id)

        if node.children is None:
            expanded = await self.repository.ensure_children(node)
            if expanded.children is None:
                return EMPTY_PAIR
            # the fetched node may turn out to be a leaf
            return await self._walk(expanded, parent_id, classify_leaf, excluded_folder_names)

        pairs = await asyncio.gather(*(
            self._walk(child, node.id, classify_leaf, excluded_folder_names)
            for child in node.children or []
        ))

        tree1_children = [pair.tree1 for pair in pairs if pair.tree1 is not None]
        tree2_children = [pair.tree2 for pair in pairs if pair.tree2 is not None]

        return TreePair(
            tree1=TreeOutputNode.folder(node, parent_id, tree1_children) if tree1_children else None,
            tree2=TreeOutputNode.folder(node, parent_id, tree2_children) if tree2_children else None,
        )

    async def _with_details(self, node: QueryNode) -> QueryNode:
        if node.wiql:
            return node
        return await self.repository.ensure_details(node)


class LinkedQueryTreeBuilder(QueryTreeBuilder):
    """
    Selects queries linking one set of work item types to another.

    tree1 holds queries going from ``sources`` to ``targets``; tree2 holds
    queries going the other way. A query may land in both when the type
    lists overlap.
    """

    def __init__(
        self,
        repository: QueryNodeRepository,
        type_resolver: Optional[WorkItemTypeResolver] = None
    ):
        super().__init__(repository)
        self.type_resolver = type_resolver

    async def build(
        self,
        node: Optional[QueryNode],
        options: LinkClassification,
        parent_id: Optional[str] = None
    ) -> TreePair:
        excluded = [name.lower() for name in options.excluded_folder_names]

        async def classify(leaf: QueryNode, leaf_parent_id: Optional[str]) -> TreePair:
            return await self._classify_leaf(leaf, leaf_parent_id, options)

        return await self._walk(node, parent_id, classify, excluded)

    def _is_eligible(self, leaf: QueryNode, options: LinkClassification) -> bool:
        if leaf.query_type == QueryTypes.ONE_HOP:
            return True
        if leaf.query_type == QueryTypes.TREE:
            return options.include_tree_queries
        if leaf.query_type == QueryTypes.FLAT:
            return options.include_flat_queries
        return False

    async def _classify_leaf(
        self,
        leaf: QueryNode,
        parent_id: Optional[str],
        options: LinkClassification
    ) -> TreePair:
        if leaf.is_folder or not self._is_eligible(leaf, options):
            return EMPTY_PAIR

        leaf = await self._with_details(leaf)
        text = leaf.wiql
        if not text:
            return EMPTY_PAIR

        # shared by the forward and reverse checks of this leaf
        id_types: Dict[int, Optional[str]] = {}

        if leaf.query_type == QueryTypes.FLAT:
            in_tree1 = (
                await self._side_allowed(text, None, options.sources, id_types)
                and wiql_classifier.matches_flat_area_condition(text, options.source_area_filter)
            )
            return TreePair(tree1=TreeOutputNode.leaf(leaf, parent_id) if in_tree1 else None)

        in_tree1 = (
            await self._side_allowed(text, LinkContext.SOURCE, options.sources, id_types)
            and await self._side_allowed(text, LinkContext.TARGET, options.targets, id_types)
            and wiql_classifier.matches_area_path_condition(
                text, options.source_area_filter, options.target_area_filter
            )
        )
        in_tree2 = (
            await self._side_allowed(text, LinkContext.SOURCE, options.targets, id_types)
            and await self._side_allowed(text, LinkContext.TARGET, options.sources, id_types)
            and wiql_classifier.matches_area_path_condition(
                text, options.target_area_filter, options.source_area_filter
            )
        )

        if in_tree1 or in_tree2:
            logger.debug(f"Selected {leaf!r} (forward={in_tree1}, reverse={in_tree2})")

        return TreePair(
            tree1=TreeOutputNode.leaf(leaf, parent_id) if in_tree1 else None,
            tree2=TreeOutputNode.leaf(leaf, parent_id) if in_tree2 else None,
        )

    async def _side_allowed(
        self,
        text: str,
        context: Optional[str],
        allowed_types: Iterable[str],
        id_types: Dict[int, Optional[str]]
    ) -> bool:
        """
        Type check for one side of a link query (or a flat query when
        ``context`` is None).

        Queries that pin specific items with ``[System.Id]`` instead of a type
        literal are checked by resolving each item's type.
        """
        allowed_types = list(allowed_types or [])
        if not allowed_types:
            return wiql_classifier.references_field(
                text, wiql_classifier.field_pattern(FieldNames.WORK_ITEM_TYPE, context)
            )

        types = wiql_classifier.extract_work_item_types(text, context)
        if types:
            return wiql_classifier.types_allowed(types, allowed_types)

        ids = wiql_classifier.extract_work_item_ids(text, context)
        if not ids or self.type_resolver is None:
            return False

        resolved: List[Optional[str]] = []
        for work_item_id in ids:
            if work_item_id not in id_types:
                id_types[work_item_id] = await self._resolve_type(work_item_id)
            resolved.append(id_types[work_item_id])

        if any(work_item_type is None for work_item_type in resolved):
            return False
        return wiql_classifier.types_allowed(resolved, allowed_types)

    async def _resolve_type(self, work_item_id: int) -> Optional[str]:
        try:
            return await self.type_resolver(work_item_id)
        except AzureDevOpsError as e:
            logger.warning(safe_log_error(e, f"Could not resolve type of work item {work_item_id}"))
            return None


class AllQueriesTreeBuilder(QueryTreeBuilder):
    """
    Collects every query below a folder.

    tree1 holds all queries; tree2 holds the flat queries selecting bugs.
    """

    async def build(self, node: Optional[QueryNode], parent_id: Optional[str] = None) -> TreePair:
        return await self._walk(node, parent_id, self._classify_leaf)

    async def _classify_leaf(self, leaf: QueryNode, parent_id: Optional[str]) -> TreePair:
        if leaf.is_folder:
            return EMPTY_PAIR

        is_bug_query = False
        if leaf.query_type == QueryTypes.FLAT:
            leaf = await self._with_details(leaf)
            is_bug_query = wiql_classifier.matches_bug_condition(leaf.wiql)

        return TreePair(
            tree1=TreeOutputNode.leaf(leaf, parent_id),
            tree2=TreeOutputNode.leaf(leaf, parent_id) if is_bug_query else None,
        )
