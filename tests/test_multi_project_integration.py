"""
Integration tests for multi-project support.

Tests the integration between the server tools, ServiceManager and the
query services. Tests needing real Azure DevOps credentials are marked
with @pytest.mark.integration.
"""

import pytest
import pytest_asyncio
import os
from unittest.mock import Mock, patch, AsyncMock
from dg_data_provider import server
from dg_data_provider.service_manager import ServiceManager
from dg_data_provider.auth import AzureDevOpsAuth
from dg_data_provider.services.query_service import SharedQueriesService
from dg_data_provider.validation import ValidationError


def tool_fn(tool):
    """The plain coroutine behind a registered MCP tool."""
    return getattr(tool, 'fn', tool)


def make_auth():
    auth = Mock(spec=AzureDevOpsAuth)
    auth.connection = Mock()
    auth.organization_url = "https://dev.azure.com/test-org/"
    return auth


@pytest.fixture
def ctx():
    context = Mock()
    context.info = AsyncMock()
    return context


class TestMultiProjectServiceManager:
    """Test ServiceManager across several projects."""

    @pytest.fixture
    def service_manager(self):
        return ServiceManager(make_auth(), default_project="DefaultProject")

    def test_query_services_are_isolated_per_project(self, service_manager):
        service1 = service_manager.get_query_service("Project1")
        service2 = service_manager.get_query_service("Project2")

        assert service1 is not service2
        assert service1.queries_url().startswith("https://dev.azure.com/test-org/Project1/")
        assert service2.queries_url().startswith("https://dev.azure.com/test-org/Project2/")

    def test_handles_multiple_projects_efficiently(self, service_manager):
        for project in ["Project1", "Project2", "Project3"]:
            service_manager.get_query_service(project)

        for project in ["Project1", "Project2", "Project3"]:
            service_manager.get_query_service(project)
            service_manager.get_workitem_service(project)

        stats = service_manager.get_statistics()
        assert stats['query_services'] == 3
        assert stats['workitem_services'] == 3
        assert stats['service_creations'] == 6
        assert stats['reused'] == 6

    def test_whitespace_in_project_names(self):
        manager = ServiceManager(make_auth())

        assert manager.get_query_service("  ProjectName  ").project == "ProjectName"

    def test_clearing_services_keeps_statistics(self):
        manager = ServiceManager(make_auth())
        manager.get_query_service("Project1")
        manager.get_query_service("Project2")
        creations_before = manager.get_statistics()['service_creations']

        manager.clear_all_services()

        stats = manager.get_statistics()
        assert stats['service_creations'] == creations_before
        assert stats['total_services'] == 0


class TestServerTools:
    """Test server tools with a mocked service manager."""

    @pytest.fixture
    def manager(self):
        manager = Mock(spec=ServiceManager)
        query_service = Mock()
        query_service.project = "TestProject"
        query_service.get_shared_queries = AsyncMock(return_value={'systemOverviewQueryTree': None})
        manager.get_query_service.return_value = query_service

        workitem_service = Mock()
        workitem_service.project = "TestProject"
        workitem_service.get_work_item_type = AsyncMock(return_value="Requirement")
        manager.get_workitem_service.return_value = workitem_service

        manager.get_statistics.return_value = {'total_services': 2}
        manager.get_loaded_projects.return_value = ["TestProject"]
        return manager

    @pytest.mark.asyncio
    async def test_get_shared_queries_tool(self, manager, ctx):
        with patch.object(server, '_service_manager', manager):
            result = await tool_fn(server.get_shared_queries)(
                doc_type="SVD",
                path="/Shared Queries/",
                project="TestProject",
                ctx=ctx
            )

        assert result == {'systemOverviewQueryTree': None}
        manager.get_query_service.assert_called_once_with("TestProject")
        manager.get_query_service.return_value.get_shared_queries.assert_awaited_once_with(
            path="Shared Queries", doc_type="svd"
        )
        assert ctx.info.await_count == 2

    @pytest.mark.asyncio
    async def test_get_shared_queries_uses_default_project(self, manager, ctx):
        with patch.object(server, '_service_manager', manager):
            await tool_fn(server.get_shared_queries)(doc_type="std", ctx=ctx)

        manager.get_query_service.assert_called_once_with(None)

    @pytest.mark.asyncio
    async def test_get_shared_queries_rejects_unknown_doc_type(self, manager, ctx):
        with patch.object(server, '_service_manager', manager):
            with pytest.raises(ValidationError):
                await tool_fn(server.get_shared_queries)(doc_type="sdd", ctx=ctx)

        manager.get_query_service.assert_not_called()

    @pytest.mark.asyncio
    async def test_get_work_item_type_tool(self, manager, ctx):
        with patch.object(server, '_service_manager', manager):
            result = await tool_fn(server.get_work_item_type)(work_item_id=42, ctx=ctx)

        assert result == {"id": 42, "work_item_type": "Requirement"}

    @pytest.mark.asyncio
    async def test_service_statistics_tool(self, manager, ctx):
        with patch.object(server, '_service_manager', manager):
            result = await tool_fn(server.get_service_statistics)(ctx=ctx)

        assert result['service_manager'] == {'total_services': 2}
        assert result['loaded_projects'] == ["TestProject"]
        assert 'timestamp' in result

    @pytest.mark.asyncio
    async def test_statistics_before_startup(self, ctx):
        with patch.object(server, '_service_manager', None):
            result = await tool_fn(server.get_service_statistics)(ctx=ctx)

        assert result == {"error": "Service manager not initialized"}

    @pytest.mark.asyncio
    async def test_health_check(self, ctx):
        auth = Mock()
        auth.get_auth_info.return_value = {
            "method": "Personal Access Token",
            "organization_url": "https://dev.azure.com/test-org/",
            "authenticated": True
        }

        with patch.object(server, '_auth', auth):
            result = await tool_fn(server.health_check)(ctx=ctx)

        assert result["status"] == "healthy"
        assert result["authenticated"] is True
        assert result["auth_method"] == "Personal Access Token"


class TestServerLifespan:
    """Test startup and shutdown."""

    @pytest.mark.asyncio
    async def test_lifespan_builds_service_manager(self):
        auth = make_auth()
        auth.initialize = AsyncMock()
        auth.close = AsyncMock()
        env = {'AZURE_DEVOPS_ORG_URL': 'https://dev.azure.com/test-org', 'AZURE_DEVOPS_PROJECT': 'Proj'}

        with patch.dict(os.environ, env), \
                patch.object(server, 'load_dotenv'), \
                patch.object(server, 'AzureDevOpsAuth', return_value=auth) as MockAuth, \
                patch.object(server, '_auth', None), \
                patch.object(server, '_service_manager', None):
            async with server.lifespan(server.mcp):
                assert server._service_manager.default_project == 'Proj'
                assert server._service_manager.auth is auth

        MockAuth.assert_called_once_with('https://dev.azure.com/test-org')
        auth.initialize.assert_awaited_once()
        auth.close.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_lifespan_requires_org_url(self):
        with patch.dict(os.environ, {}, clear=True), \
                patch.object(server, 'load_dotenv'):
            with pytest.raises(ValueError, match="AZURE_DEVOPS_ORG_URL"):
                async with server.lifespan(server.mcp):
                    pass


@pytest.mark.integration
class TestMultiProjectRealIntegration:
    """Integration tests with real Azure DevOps connection.

    These tests require actual Azure DevOps credentials and are skipped
    when they are not configured. Run with: pytest -m integration
    """

    @pytest_asyncio.fixture
    async def real_auth(self):
        org_url = os.getenv("AZURE_DEVOPS_ORG_URL")
        if not org_url:
            pytest.skip("AZURE_DEVOPS_ORG_URL not set")

        auth = AzureDevOpsAuth(org_url)
        await auth.initialize()
        yield auth
        await auth.close()

    @pytest.mark.asyncio
    async def test_real_query_trees_for_two_projects(self, real_auth):
        project1 = os.getenv("AZURE_DEVOPS_PROJECT")
        project2 = os.getenv("AZURE_DEVOPS_PROJECT_2", project1)
        if not project1:
            pytest.skip("AZURE_DEVOPS_PROJECT not set")

        manager = ServiceManager(real_auth)
        for project in {project1, project2}:
            service = manager.get_query_service(project)
            assert isinstance(service, SharedQueriesService)

            result = await service.get_shared_queries(doc_type="svd")
            assert set(result) == {'systemOverviewQueryTree', 'knownBugsQueryTree'}
