"""
Constants for Azure DevOps shared-query traversal.

Field reference names, query types, REST URL templates and the work item
type groups used when classifying saved queries.
"""

from typing import List


# ============================================================================
# Field Reference Names
# ============================================================================

class FieldNames:
    """Azure DevOps field reference names used by the classifier."""

    ID = "System.Id"
    TITLE = "System.Title"
    AREA_PATH = "System.AreaPath"
    WORK_ITEM_TYPE = "System.WorkItemType"


# ============================================================================
# Query Types
# ============================================================================

class QueryTypes:
    """Values of the ``queryType`` attribute on saved query leaves."""

    FLAT = "flat"
    TREE = "tree"
    ONE_HOP = "oneHop"


class LinkContext:
    """Sides of a link (WorkItemLinks) query."""

    SOURCE = "Source"
    TARGET = "Target"


# ============================================================================
# REST API
# ============================================================================

class ApiPaths:
    """URL fragments of the work item tracking REST API."""

    SHARED_QUERIES_ROOT = "Shared%20Queries"
    QUERIES = "{org}{project}/_apis/wit/queries/{path}"

    # Expands a query folder two levels down with WIQL text and columns
    EXPAND_CHILDREN = "$depth=2&$expand=all"
    EXPAND_DETAILS = "$expand=all"


# ============================================================================
# Work Item Types
# ============================================================================

class WorkItemTypes:
    """Work item type names as they appear in WIQL literals."""

    EPIC = "Epic"
    FEATURE = "Feature"
    REQUIREMENT = "Requirement"
    TASK = "Task"
    TEST_CASE = "Test Case"
    BUG = "Bug"
    CHANGE_REQUEST = "Change Request"
    ISSUE = "Issue"
    REVIEW = "Review"
    RISK = "Risk"


REQUIREMENT_TYPES: List[str] = [
    WorkItemTypes.EPIC,
    WorkItemTypes.FEATURE,
    WorkItemTypes.REQUIREMENT,
]

SYSTEM_REQUIREMENT_TYPES: List[str] = [
    *REQUIREMENT_TYPES,
    WorkItemTypes.TASK,
]

TEST_CASE_TYPES: List[str] = [WorkItemTypes.TEST_CASE]

# Open problem/change reports tracked against test cases in STR documents
OPEN_PCR_TYPES: List[str] = [
    WorkItemTypes.BUG,
    WorkItemTypes.CHANGE_REQUEST,
]

# Items linked to test cases from minutes of meeting
MOM_TYPES: List[str] = [
    WorkItemTypes.TASK,
    WorkItemTypes.BUG,
    WorkItemTypes.ISSUE,
    WorkItemTypes.REVIEW,
    WorkItemTypes.RISK,
]


# ============================================================================
# Sentinels
# ============================================================================

ROOT_SENTINEL_ID = "__root__"


def lower_all(values: List[str]) -> List[str]:
    """Lowercase and strip a list of names, dropping empty entries."""
    return [value.strip().lower() for value in (values or []) if value and value.strip()]
