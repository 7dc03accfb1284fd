"""
Content fetcher for raw Azure DevOps REST calls.

The azure-devops SDK has no client call for expanding a query folder by
url, so these requests go through the signed ``requests`` session of the
authenticated connection instead.
"""
import asyncio
import logging
import threading
from typing import Any, Dict, Optional

from .decorators import azure_devops_operation
from .log_sanitizer import sanitize_url

logger = logging.getLogger(__name__)


class ContentFetcher:
    """Authenticated GET/POST returning parsed JSON"""

    def __init__(self, auth):
        """
        Args:
            auth: AzureDevOpsAuth instance (initialized)
        """
        self.auth = auth
        self._local = threading.local()

    @property
    def session(self):
        """Signed requests session of the calling thread, created on first use"""
        # one session per worker thread, requests.Session is not thread-safe
        session = getattr(self._local, "session", None)
        if session is None:
            session = self._local.session = self.auth.get_session()
        return session

    def _request(self, method, url, body, headers):
        return self.session.request(method, url, json=body, headers=headers)

    @azure_devops_operation(timeout_seconds=30, max_retries=3)
    async def fetch_json(
        self,
        url: str,
        method: str = "GET",
        body: Optional[Any] = None,
        headers: Optional[Dict[str, str]] = None
    ) -> Any:
        """
        Request ``url`` and return the decoded JSON body.

        HTTP errors are raised by ``raise_for_status`` and mapped to
        AzureDevOpsError subclasses by the decorator; 429 and 5xx responses
        are retried.
        """
        logger.debug(f"{method} {sanitize_url(url)}")

        response = await asyncio.to_thread(self._request, method, url, body, headers)
        response.raise_for_status()

        if not response.content:
            return None
        return response.json()
