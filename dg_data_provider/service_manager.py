"""
Service Manager for handling multiple Azure DevOps projects
Provides lazy-loading service instances per project
"""
from typing import Any, Dict, List, Optional
from .services.query_service import SharedQueriesService
from .services.workitem_service import WorkItemService
from .auth import AzureDevOpsAuth
from .fetcher import ContentFetcher
from .validation import ValidationError, validate_project_name


class ServiceManager:
    """
    Manages service instances for multiple Azure DevOps projects

    - Single authentication instance and content fetcher shared across projects
    - Lazy-loading: services created only when first accessed
    - Services hold no per-request state, so instances are reused

    Example:
        auth = AzureDevOpsAuth(org_url)
        await auth.initialize()

        manager = ServiceManager(auth)
        queries = manager.get_query_service("AI-Proj")
        trees = await queries.get_shared_queries(doc_type="std")
    """

    def __init__(self, auth: AzureDevOpsAuth, default_project: Optional[str] = None):
        """
        Initialize service manager

        Args:
            auth: Authenticated AzureDevOpsAuth instance
            default_project: Optional default project name
        """
        if not auth or not auth.connection:
            raise ValueError(
                "ServiceManager requires an initialized AzureDevOpsAuth instance. "
                "Call auth.initialize() before creating ServiceManager."
            )

        self.auth = auth
        self.default_project = default_project
        self.fetcher = ContentFetcher(auth)

        # Service instances keyed by project name
        self._query_services: Dict[str, SharedQueriesService] = {}
        self._workitem_services: Dict[str, WorkItemService] = {}

        self._service_creation_count = 0
        self._reuse_count = 0

    def get_workitem_service(self, project: Optional[str] = None) -> WorkItemService:
        """
        Get or create a WorkItemService instance for a project

        Raises:
            ValidationError: If no project specified and no default set
        """
        project = self._resolve_project(project)

        if project in self._workitem_services:
            self._reuse_count += 1
            return self._workitem_services[project]

        service = WorkItemService(self.auth, project)
        self._workitem_services[project] = service
        self._service_creation_count += 1

        return service

    def get_query_service(self, project: Optional[str] = None) -> SharedQueriesService:
        """
        Get or create a SharedQueriesService instance for a project

        The service resolves work item types through the project's
        WorkItemService.

        Raises:
            ValidationError: If no project specified and no default set
        """
        project = self._resolve_project(project)

        if project in self._query_services:
            self._reuse_count += 1
            return self._query_services[project]

        service = SharedQueriesService(
            self.fetcher,
            self.auth.organization_url,
            project,
            workitem_service=self.get_workitem_service(project)
        )
        self._query_services[project] = service
        self._service_creation_count += 1

        return service

    def _resolve_project(self, project: Optional[str]) -> str:
        """
        Resolve project name, using default if not specified

        Raises:
            ValidationError: If no project specified and no default
        """
        if project:
            return validate_project_name(project)

        if self.default_project:
            return self.default_project

        raise ValidationError(
            "Project name is required. Either specify project parameter or set "
            "AZURE_DEVOPS_PROJECT environment variable as default."
        )

    def get_loaded_projects(self) -> List[str]:
        """Projects that have service instances loaded"""
        return sorted(set(self._query_services) | set(self._workitem_services))

    def clear_project_services(self, project: str) -> None:
        """Remove service instances for a specific project"""
        self._query_services.pop(project, None)
        self._workitem_services.pop(project, None)

    def clear_all_services(self) -> None:
        """Clear all service instances"""
        self._query_services.clear()
        self._workitem_services.clear()

    def get_statistics(self) -> Dict[str, Any]:
        """Service manager usage statistics"""
        return {
            "loaded_projects": len(self.get_loaded_projects()),
            "query_services": len(self._query_services),
            "workitem_services": len(self._workitem_services),
            "total_services": len(self._query_services) + len(self._workitem_services),
            "service_creations": self._service_creation_count,
            "reused": self._reuse_count,
            "default_project": self.default_project
        }

    def __repr__(self) -> str:
        stats = self.get_statistics()
        return (
            f"ServiceManager(projects={stats['loaded_projects']}, "
            f"services={stats['total_services']}, "
            f"default='{self.default_project}')"
        )
