#!/usr/bin/env python
"""Print the query trees resolved for a document type"""
import asyncio
import os
import sys
from dotenv import load_dotenv
from dg_data_provider.auth import AzureDevOpsAuth
from dg_data_provider.service_manager import ServiceManager


def print_tree(node, indent=0):
    if node is None:
        print(" " * indent + "(no matching queries)")
        return
    marker = "📄" if node.get('isValidQuery') else "📁"
    query_type = f" [{node['queryType']}]" if node.get('queryType') else ""
    print(f"{' ' * indent}{marker} {node['title']}{query_type}")
    for child in node.get('children', []):
        print_tree(child, indent + 2)


def print_section(name, value, indent=0):
    # sections are either nested dicts of trees or trees themselves
    if value is None or 'title' in value:
        print(f"\n{' ' * indent}▶ {name}")
        print_tree(value, indent + 2)
        return
    print(f"\n{' ' * indent}■ {name}")
    for key, child in value.items():
        print_section(key, child, indent + 2)


async def main():
    load_dotenv()
    org_url = os.getenv('AZURE_DEVOPS_ORG_URL')
    project = os.getenv('AZURE_DEVOPS_PROJECT')
    doc_type = sys.argv[1] if len(sys.argv) > 1 else 'std'

    print(f"🔗 Organization: {org_url}")
    print(f"📁 Project: {project}")
    print(f"📝 Document type: {doc_type}\n")

    auth = AzureDevOpsAuth(org_url)
    await auth.initialize()

    manager = ServiceManager(auth, default_project=project)
    trees = await manager.get_query_service().get_shared_queries(doc_type=doc_type)

    print("=" * 70)
    if trees is None:
        print(f"No query recipe for '{doc_type}'")
    else:
        for section, value in trees.items():
            print_section(section, value)

    await auth.close()

if __name__ == '__main__':
    asyncio.run(main())
