"""
Authentication handling for Azure DevOps
Supports Personal Access Tokens, Azure Managed Identity and Service Principals
"""
import os
import sys
import asyncio
from typing import Optional

from azure.identity import DefaultAzureCredential, ClientSecretCredential
from azure.devops.connection import Connection
from msrest.authentication import BasicAuthentication

from .log_sanitizer import safe_log_error


class AzureDevOpsAuth:
    """
    Handles authentication to Azure DevOps using multiple methods:
    1. Personal Access Token (explicit or AZURE_DEVOPS_PAT)
    2. Managed Identity / DefaultAzureCredential
    3. Service Principal (for automation)

    The same credentials back both the azure-devops SDK clients and the
    signed requests session used for raw REST calls.
    """

    # Azure DevOps resource ID for token acquisition
    AZURE_DEVOPS_RESOURCE_ID = "499b84ac-1321-427f-aa17-267ca6975798"

    def __init__(self, organization_url: str, personal_access_token: Optional[str] = None):
        """
        Initialize authentication handler

        Args:
            organization_url: Azure DevOps organization URL
                            (e.g., https://dev.azure.com/yourorg)
            personal_access_token: Optional PAT; takes precedence over the
                            environment
        """
        if not organization_url:
            raise ValueError("organization_url is required")

        # REST urls are built as f"{org}{project}/..."
        self.organization_url = organization_url.rstrip('/') + '/'
        self._personal_access_token = personal_access_token
        self.connection: Optional[Connection] = None
        self.credentials: Optional[BasicAuthentication] = None
        self._credential = None
        self._auth_method = None

    async def initialize(self):
        """Initialize and establish connection to Azure DevOps"""
        auth_methods = [
            self._try_pat,
            self._try_managed_identity,
            self._try_service_principal,
        ]

        for auth_method in auth_methods:
            try:
                credentials = await auth_method()
                if credentials:
                    self.credentials = credentials
                    self.connection = Connection(base_url=self.organization_url, creds=credentials)
                    print(f"✓ Authenticated using: {self._auth_method}", file=sys.stderr)
                    return
            except Exception as e:
                # Sanitize error message to prevent credential leakage
                safe_error = safe_log_error(e, auth_method.__name__)
                print(f"✗ {safe_error}", file=sys.stderr)
                continue

        raise ValueError(
            "Failed to authenticate. Please configure one of:\n"
            "1. Personal Access Token (AZURE_DEVOPS_PAT)\n"
            "2. Azure Managed Identity\n"
            "3. Service Principal (AZURE_CLIENT_ID, AZURE_CLIENT_SECRET, AZURE_TENANT_ID)"
        )

    async def _try_pat(self) -> Optional[BasicAuthentication]:
        """
        Attempt authentication using a Personal Access Token
        Uses the constructor argument, else AZURE_DEVOPS_PAT
        """
        pat = self._personal_access_token or os.getenv("AZURE_DEVOPS_PAT")

        if not pat:
            raise ValueError("AZURE_DEVOPS_PAT environment variable not set")

        self._auth_method = "Personal Access Token"
        return BasicAuthentication('', pat)

    async def _try_managed_identity(self) -> Optional[BasicAuthentication]:
        """
        Attempt authentication using Azure Managed Identity or DefaultAzureCredential
        This works for Azure-hosted workloads and for local development with
        Azure CLI login
        """
        try:
            credential = DefaultAzureCredential()

            token = await asyncio.to_thread(
                credential.get_token,
                f"{self.AZURE_DEVOPS_RESOURCE_ID}/.default"
            )

            # Azure DevOps accepts the access token in the same way as a PAT
            self._credential = credential
            self._auth_method = "Azure Managed Identity / DefaultAzureCredential"
            return BasicAuthentication('', token.token)

        except Exception as e:
            raise Exception(f"Managed Identity authentication failed: {str(e)}")

    async def _try_service_principal(self) -> Optional[BasicAuthentication]:
        """
        Attempt authentication using Service Principal
        Requires environment variables:
        - AZURE_CLIENT_ID
        - AZURE_CLIENT_SECRET
        - AZURE_TENANT_ID
        """
        client_id = os.getenv("AZURE_CLIENT_ID")
        client_secret = os.getenv("AZURE_CLIENT_SECRET")
        tenant_id = os.getenv("AZURE_TENANT_ID")

        if not all([client_id, client_secret, tenant_id]):
            raise ValueError("Missing service principal credentials")

        try:
            credential = ClientSecretCredential(
                tenant_id=tenant_id,
                client_id=client_id,
                client_secret=client_secret
            )

            token = await asyncio.to_thread(
                credential.get_token,
                f"{self.AZURE_DEVOPS_RESOURCE_ID}/.default"
            )

            self._credential = credential
            self._auth_method = "Service Principal"
            return BasicAuthentication('', token.token)

        except Exception as e:
            raise Exception(f"Service Principal authentication failed: {str(e)}")

    def get_client(self, client_type: str):
        """
        Get a specific Azure DevOps client

        Args:
            client_type: Type of client to get. Options:
                - 'work_item_tracking': For work items and queries
                - 'core': For projects

        Returns:
            The requested client instance
        """
        if not self.connection:
            raise RuntimeError("Not authenticated. Call initialize() first.")

        client_map = {
            'work_item_tracking': self.connection.clients.get_work_item_tracking_client,
            'core': self.connection.clients.get_core_client,
        }

        if client_type not in client_map:
            raise ValueError(f"Unknown client type: {client_type}")

        return client_map[client_type]()

    def get_session(self):
        """
        Get a requests.Session signed with the current credentials

        Used for REST calls addressed by url (query folder expansion).
        """
        if not self.credentials:
            raise RuntimeError("Not authenticated. Call initialize() first.")

        session = self.credentials.signed_session()
        session.headers.update({'Accept': 'application/json'})
        return session

    async def close(self):
        """Clean up resources"""
        if hasattr(self._credential, 'close'):
            self._credential.close()

        self.connection = None
        self.credentials = None

    def get_auth_info(self) -> dict:
        """Get information about current authentication"""
        return {
            "method": self._auth_method,
            "organization_url": self.organization_url,
            "authenticated": self.connection is not None
        }
