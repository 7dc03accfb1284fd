#!/usr/bin/env python3
"""
Run the document query MCP server in STDIO mode
Uses AZURE_DEVOPS_PAT or your local Azure credentials (az login)
"""
import sys
import os

# Add the project root to Python path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from dg_data_provider.server import mcp

if __name__ == "__main__":
    mcp.run()
