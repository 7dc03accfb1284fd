"""
Work Item service for Azure DevOps operations
Resolves work item metadata needed while classifying saved queries
"""
import asyncio
import logging
from typing import Dict, Any, Optional

from ..decorators import azure_devops_operation, validate_work_item_id
from ..constants import FieldNames

logger = logging.getLogger(__name__)


class WorkItemService:
    """Service for work item lookups"""

    def __init__(self, auth, project: str):
        """
        Initialize work item service

        Args:
            auth: AzureDevOpsAuth instance
            project: Azure DevOps project name
        """
        self.auth = auth
        self.project = project
        self._wit_client = None

    @property
    def wit_client(self):
        """Lazy load work item tracking client"""
        if not self._wit_client:
            self._wit_client = self.auth.get_client('work_item_tracking')
        return self._wit_client

    @validate_work_item_id
    @azure_devops_operation(timeout_seconds=30, max_retries=3)
    async def get_work_item_fields(
        self,
        work_item_id: int,
        fields: Optional[list] = None
    ) -> Dict[str, Any]:
        """
        Get selected fields of a work item

        Args:
            work_item_id: Work item ID
            fields: Field reference names (default: id, title, type, area path)

        Returns:
            Dictionary with 'id' and 'fields'
        """
        if fields is None:
            fields = [
                FieldNames.ID,
                FieldNames.TITLE,
                FieldNames.WORK_ITEM_TYPE,
                FieldNames.AREA_PATH,
            ]

        work_item = await asyncio.to_thread(
            self.wit_client.get_work_item,
            id=work_item_id,
            project=self.project,
            fields=fields
        )

        return {
            'id': work_item.id,
            'fields': dict(work_item.fields or {}),
        }

    @validate_work_item_id
    async def get_work_item_type(self, work_item_id: int) -> Optional[str]:
        """
        Get the work item type name (e.g. "Requirement") of a work item

        Used for queries that select specific items by id instead of
        filtering on a type literal.
        """
        result = await self.get_work_item_fields(
            work_item_id,
            fields=[FieldNames.WORK_ITEM_TYPE]
        )
        work_item_type = result['fields'].get(FieldNames.WORK_ITEM_TYPE)
        logger.debug(f"Work item {work_item_id} is a '{work_item_type}'")
        return work_item_type
