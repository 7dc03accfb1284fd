"""
Azure DevOps Document Query MCP Server
Exposes the shared query trees used for document generation
"""
from fastmcp import FastMCP, Context
from typing import Optional, Dict, Any
import os
import logging
from datetime import datetime, timezone
from contextlib import asynccontextmanager
from dotenv import load_dotenv

from .auth import AzureDevOpsAuth
from .service_manager import ServiceManager
from .validation import validate_doc_type, validate_query_path, validate_work_item_id


# Global state for authentication and service manager
# Initialized during lifespan startup
_auth = None
_service_manager = None


@asynccontextmanager
async def lifespan(app):
    """Initialize services on startup"""
    global _auth, _service_manager

    # Load environment variables from .env file
    load_dotenv()

    logging.basicConfig(
        level=os.getenv("LOG_LEVEL", "INFO").upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s"
    )

    org_url = os.getenv("AZURE_DEVOPS_ORG_URL")
    default_project = os.getenv("AZURE_DEVOPS_PROJECT")  # Optional default

    if not org_url:
        raise ValueError(
            "Missing required environment variable: AZURE_DEVOPS_ORG_URL"
        )

    _auth = AzureDevOpsAuth(org_url)
    await _auth.initialize()

    _service_manager = ServiceManager(_auth, default_project=default_project)

    yield  # Server runs

    await _auth.close()


mcp = FastMCP(
    name="Azure DevOps Document Queries",
    lifespan=lifespan
)


# ============================================================================
# TOOLS
# ============================================================================

@mcp.tool()
async def get_shared_queries(
    doc_type: str,
    path: Optional[str] = None,
    project: Optional[str] = None,
    ctx: Context = None
) -> Optional[Dict[str, Any]]:
    """
    Get the shared query trees for a document type.

    Args:
        doc_type: Document type: std, str, svd, srs or test-reporter
        path: Query folder path (default: "Shared Queries")
        project: Azure DevOps project name. If None, uses default project.

    Returns:
        Dictionary of query trees keyed by document section. Each tree has
        id, pId, value, title and children; leaves carry queryType, wiql and
        isValidQuery. Sections without matching queries are null.
    """
    doc_type = validate_doc_type(doc_type)
    path = validate_query_path(path)

    query_service = _service_manager.get_query_service(project)
    await ctx.info(
        f"Resolving {doc_type} queries under '{path or 'Shared Queries'}' "
        f"in project: {query_service.project}..."
    )

    result = await query_service.get_shared_queries(path=path, doc_type=doc_type)

    await ctx.info(f"Resolved {doc_type} query trees")
    return result


@mcp.tool()
async def get_work_item_type(
    work_item_id: int,
    project: Optional[str] = None,
    ctx: Context = None
) -> Dict[str, Any]:
    """
    Get the work item type of a work item.

    Args:
        work_item_id: Work item ID
        project: Azure DevOps project name. If None, uses default project.

    Returns:
        Dictionary with id and work_item_type
    """
    work_item_id = validate_work_item_id(work_item_id)

    workitem_service = _service_manager.get_workitem_service(project)
    await ctx.info(f"Fetching type of work item {work_item_id} from project: {workitem_service.project}...")

    work_item_type = await workitem_service.get_work_item_type(work_item_id)
    return {"id": work_item_id, "work_item_type": work_item_type}


# ============================================================================
# MONITORING TOOLS (Health and Statistics)
# ============================================================================

@mcp.tool()
async def health_check(ctx: Context = None) -> Dict[str, Any]:
    """
    Get server health status for monitoring.

    Returns:
        Dictionary with health status and authentication info
    """
    try:
        auth_info = _auth.get_auth_info() if _auth else None

        return {
            "status": "healthy",
            "service": "Azure DevOps Document Queries",
            "authenticated": auth_info.get("authenticated") if auth_info else False,
            "auth_method": auth_info.get("method") if auth_info else None,
            "organization": auth_info.get("organization_url") if auth_info else None,
        }
    except Exception as e:
        return {
            "status": "unhealthy",
            "error": str(e)
        }


@mcp.tool()
async def get_service_statistics(ctx: Context = None) -> Dict[str, Any]:
    """
    Get service manager statistics and loaded projects.
    """
    try:
        if not _service_manager:
            return {"error": "Service manager not initialized"}

        return {
            "service_manager": _service_manager.get_statistics(),
            "loaded_projects": _service_manager.get_loaded_projects(),
            "timestamp": datetime.now(timezone.utc).isoformat()
        }
    except Exception as e:
        return {"error": str(e)}


# Entry point for running the server
if __name__ == "__main__":
    transport_mode = os.getenv("MCP_TRANSPORT", "stdio").lower()

    if transport_mode == "stdio":
        import sys
        print("Starting MCP server in STDIO mode", file=sys.stderr)
        mcp.run()
    else:
        port = int(os.getenv("PORT", 8000))
        print(f"Starting MCP server with HTTP streaming on port {port}")
        print(f"Server URL: http://localhost:{port}/mcp")
        mcp.run(transport="streamable-http", port=port, host="0.0.0.0")
