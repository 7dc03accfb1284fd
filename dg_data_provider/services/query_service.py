"""
Shared queries service for Azure DevOps
Resolves the shared query folders of a document type into output trees
"""
import logging
from typing import Any, Awaitable, Callable, Dict, Optional
from urllib.parse import quote

from ..constants import ApiPaths
from ..decorators import PerformanceMonitor
from ..doc_types import DocTypeRecipe, get_recipe
from ..fallback import AncestorFallbackEngine, VALIDATORS, has_any_query_tree
from ..folder_locator import FolderLocator
from ..log_sanitizer import safe_log_error
from ..models import (
    BranchConfig,
    BranchOperation,
    DocTypeRootResolution,
    QueryNode,
    TreeOutputNode,
    TreePair,
)
from ..query_repository import QueryNodeRepository
from ..tree_builder import AllQueriesTreeBuilder, LinkedQueryTreeBuilder

logger = logging.getLogger(__name__)

PublishedTrees = Dict[str, Optional[TreeOutputNode]]


class _Request:
    """Collaborators for one get_shared_queries call"""

    def __init__(self, fetcher, type_resolver=None):
        self.repository = QueryNodeRepository(fetcher)
        self.locator = FolderLocator(self.repository)
        self.fallback = AncestorFallbackEngine(self.repository)
        self.linked_builder = LinkedQueryTreeBuilder(self.repository, type_resolver)
        self.all_builder = AllQueriesTreeBuilder(self.repository)


class SharedQueriesService:
    """Service building document query trees from shared queries"""

    def __init__(
        self,
        fetcher,
        organization_url: str,
        project: str,
        workitem_service=None
    ):
        """
        Initialize shared queries service

        Args:
            fetcher: ContentFetcher for raw REST calls
            organization_url: Azure DevOps organization URL
            project: Azure DevOps project name
            workitem_service: Optional WorkItemService; enables type lookups
                for queries selecting items by id
        """
        self.fetcher = fetcher
        self.organization_url = organization_url.rstrip('/') + '/'
        self.project = project
        self.workitem_service = workitem_service

    def queries_url(self, path: Optional[str] = None) -> str:
        """URL of a query folder, expanded two levels deep."""
        encoded_path = quote(path, safe='/') if path else ApiPaths.SHARED_QUERIES_ROOT
        url = ApiPaths.QUERIES.format(
            org=self.organization_url,
            project=quote(self.project),
            path=encoded_path
        )
        return f"{url}?{ApiPaths.EXPAND_CHILDREN}"

    async def get_shared_queries(
        self,
        path: Optional[str] = None,
        doc_type: str = ''
    ) -> Optional[Dict[str, Any]]:
        """
        Get the query trees of a document type

        Args:
            path: Query folder path; defaults to "Shared Queries"
            doc_type: One of std, str, svd, srs, test-reporter

        Returns:
            Document-type specific dictionary of trees (a tree is None when
            no matching query was found), or None for an unknown doc type

        Raises:
            AzureDevOpsError: If fetching the query hierarchy fails
        """
        try:
            payload = await self.fetcher.fetch_json(self.queries_url(path))
            root = QueryNode.from_dict(payload or {})

            recipe = get_recipe(doc_type)
            if recipe is None:
                logger.warning(f"No query recipe for document type '{doc_type}'")
                return None

            async with PerformanceMonitor(f"get_shared_queries[{recipe.doc_type}]", warn_threshold_ms=5000.0):
                return await self._resolve_recipe(recipe, root)

        except Exception as e:
            logger.error(
                safe_log_error(e, f"Failed to get shared queries for '{doc_type}' in {self.project}"),
                exc_info=True
            )
            raise

    async def resolve_doc_type_root(
        self,
        locator: FolderLocator,
        root: QueryNode,
        folder_name: str
    ) -> DocTypeRootResolution:
        """Find the document type's folder, falling back to the query root."""
        folder = await locator.find_folder_by_exact_name(root, folder_name)
        if folder is not None:
            return DocTypeRootResolution(root=folder, found=True)

        logger.info(f"Folder '{folder_name}' not found; searching from '{root.name or 'query root'}'")
        return DocTypeRootResolution(root=root, found=False)

    async def _resolve_recipe(self, recipe: DocTypeRecipe, root: QueryNode) -> Dict[str, Any]:
        type_resolver = self.workitem_service.get_work_item_type if self.workitem_service else None
        request = _Request(self.fetcher, type_resolver)

        resolution = await self.resolve_doc_type_root(request.locator, root, recipe.root_folder_name)

        results: Dict[str, PublishedTrees] = {}
        for branch in recipe.branches:
            results[branch.id] = await self._run_branch(request, branch, resolution.root)

        logger.info(
            f"Resolved {recipe.doc_type} queries for {self.project}: "
            f"{sum(1 for trees in results.values() for tree in trees.values() if tree)} tree(s) found "
            f"({request.repository.fetch_count} folder fetch(es))"
        )
        return recipe.assemble(results)

    async def _run_branch(
        self,
        request: _Request,
        branch: BranchConfig,
        doc_root: QueryNode
    ) -> PublishedTrees:
        start = await self._find_start_folder(request, branch, doc_root)
        fetcher = self._branch_fetcher(request, branch)
        validator = VALIDATORS.get(branch.validator or '', has_any_query_tree)

        outcome = await request.fallback.fetch_with_ancestor_fallback(
            doc_root,
            start,
            fetcher,
            context=branch.id,
            validator=validator
        )
        return outcome.result or {}

    async def _find_start_folder(
        self,
        request: _Request,
        branch: BranchConfig,
        doc_root: QueryNode
    ) -> QueryNode:
        if branch.candidate_names:
            folder = await request.locator.find_child_by_candidate_names(doc_root, branch.candidate_names)
            if folder is not None:
                return folder
            logger.debug(f"[{branch.id}] No folder matching {list(branch.candidate_names)}")

        if branch.fallback_start:
            folder = await request.locator.find_child_by_exact_name(doc_root, branch.fallback_start)
            if folder is not None:
                return folder

        return doc_root

    def _branch_fetcher(
        self,
        request: _Request,
        branch: BranchConfig
    ) -> Callable[[QueryNode], Awaitable[PublishedTrees]]:
        operations = {
            BranchOperation.LINKED_QUERIES: lambda folder: request.linked_builder.build(
                folder, branch.classification
            ),
            BranchOperation.ALL_QUERIES: lambda folder: request.all_builder.build(folder),
        }
        if branch.operation not in operations:
            raise ValueError(f"Unknown branch operation: {branch.operation}")
        build = operations[branch.operation]

        async def fetch(folder: QueryNode) -> PublishedTrees:
            pair: TreePair = await build(folder)
            return {
                key: tree
                for key, tree in zip(branch.result_keys, (pair.tree1, pair.tree2))
                if key
            }

        return fetch
