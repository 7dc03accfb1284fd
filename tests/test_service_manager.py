"""
Unit tests for ServiceManager module.

Tests multi-project service management, lazy loading, reuse, and statistics.
"""

import pytest
from unittest.mock import Mock, patch
from dg_data_provider.service_manager import ServiceManager
from dg_data_provider.auth import AzureDevOpsAuth
from dg_data_provider.fetcher import ContentFetcher
from dg_data_provider.services.query_service import SharedQueriesService
from dg_data_provider.validation import ValidationError

ORG_URL = "https://dev.azure.com/test-org/"


def make_auth():
    auth = Mock(spec=AzureDevOpsAuth)
    auth.connection = Mock()  # Simulate initialized auth
    auth.organization_url = ORG_URL
    return auth


class TestServiceManagerInitialization:
    """Test ServiceManager initialization."""

    def test_initialization_with_auth_and_default_project(self):
        auth = make_auth()

        manager = ServiceManager(auth, default_project="TestProject")

        assert manager.auth == auth
        assert manager.default_project == "TestProject"
        assert isinstance(manager.fetcher, ContentFetcher)
        assert len(manager._query_services) == 0
        assert len(manager._workitem_services) == 0

    def test_initialization_requires_initialized_auth(self):
        """Test that ServiceManager requires initialized auth."""
        auth = Mock(spec=AzureDevOpsAuth)
        auth.connection = None

        with pytest.raises(ValueError, match="initialized AzureDevOpsAuth"):
            ServiceManager(auth)

    def test_initialization_requires_auth_parameter(self):
        with pytest.raises(ValueError, match="initialized AzureDevOpsAuth"):
            ServiceManager(None)


class TestServiceManagerQueryService:
    """Test ServiceManager query service management."""

    def test_get_query_service_creates_new_instance(self):
        manager = ServiceManager(make_auth(), default_project="DefaultProject")

        service = manager.get_query_service("TestProject")

        assert isinstance(service, SharedQueriesService)
        assert service.project == "TestProject"
        assert service.organization_url == ORG_URL
        assert service.fetcher is manager.fetcher
        assert service.workitem_service is manager.get_workitem_service("TestProject")

    def test_get_query_service_reuses_instance(self):
        manager = ServiceManager(make_auth())

        service1 = manager.get_query_service("TestProject")
        service2 = manager.get_query_service("TestProject")

        assert service1 is service2
        # query service + its work item service
        assert manager._service_creation_count == 2
        assert manager._reuse_count == 1

    def test_get_query_service_uses_default_project(self):
        manager = ServiceManager(make_auth(), default_project="DefaultProject")

        assert manager.get_query_service().project == "DefaultProject"

    def test_get_query_service_raises_without_project_or_default(self):
        manager = ServiceManager(make_auth())

        with pytest.raises(ValidationError, match="Project name is required"):
            manager.get_query_service()

    def test_get_query_service_rejects_invalid_project(self):
        manager = ServiceManager(make_auth())

        with pytest.raises(ValidationError):
            manager.get_query_service("../etc")

    def test_multiple_projects_are_isolated(self):
        manager = ServiceManager(make_auth())

        a = manager.get_query_service("ProjectA")
        b = manager.get_query_service("ProjectB")

        assert a is not b
        assert a.fetcher is b.fetcher
        assert a.workitem_service is not b.workitem_service
        assert manager.get_loaded_projects() == ["ProjectA", "ProjectB"]


class TestServiceManagerWorkItemService:
    """Test ServiceManager work item service management."""

    def test_get_workitem_service_creates_new_instance(self):
        auth = make_auth()
        manager = ServiceManager(auth)

        with patch('dg_data_provider.service_manager.WorkItemService') as MockService:
            mock_instance = Mock()
            MockService.return_value = mock_instance

            service = manager.get_workitem_service("TestProject")

            MockService.assert_called_once_with(auth, "TestProject")
            assert service == mock_instance

    def test_get_workitem_service_reuses_instance(self):
        manager = ServiceManager(make_auth())

        assert manager.get_workitem_service("P") is manager.get_workitem_service("P")
        assert manager._reuse_count == 1


class TestServiceManagerClearing:
    """Test clearing service instances."""

    def test_clear_project_services(self):
        manager = ServiceManager(make_auth())
        first = manager.get_query_service("ProjectA")
        manager.get_query_service("ProjectB")

        manager.clear_project_services("ProjectA")

        assert manager.get_loaded_projects() == ["ProjectB"]
        assert manager.get_query_service("ProjectA") is not first

    def test_clear_unknown_project_is_noop(self):
        manager = ServiceManager(make_auth())
        manager.clear_project_services("Missing")
        assert manager.get_loaded_projects() == []

    def test_clear_all_services(self):
        manager = ServiceManager(make_auth())
        manager.get_query_service("ProjectA")
        manager.get_workitem_service("ProjectB")

        manager.clear_all_services()

        assert manager.get_loaded_projects() == []


class TestServiceManagerStatistics:
    """Test statistics reporting."""

    def test_statistics(self):
        manager = ServiceManager(make_auth(), default_project="ProjectA")
        manager.get_query_service("ProjectA")
        manager.get_query_service("ProjectA")
        manager.get_workitem_service("ProjectB")

        stats = manager.get_statistics()

        assert stats == {
            "loaded_projects": 2,
            "query_services": 1,
            "workitem_services": 2,
            "total_services": 3,
            "service_creations": 3,
            "reused": 1,
            "default_project": "ProjectA"
        }

    def test_repr(self):
        manager = ServiceManager(make_auth(), default_project="ProjectA")
        manager.get_query_service()

        assert repr(manager) == "ServiceManager(projects=1, services=2, default='ProjectA')"
