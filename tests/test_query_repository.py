"""
Unit tests for query node models and lazy expansion.
"""
import pytest
from unittest.mock import AsyncMock, Mock

from dg_data_provider.errors import TransientError
from dg_data_provider.models import QueryNode, TreeOutputNode
from dg_data_provider.query_repository import QueryNodeRepository


def make_fetcher(responses):
    """Fetcher returning canned JSON by url."""
    fetcher = Mock()

    async def fetch_json(url, *args, **kwargs):
        return responses[url]

    fetcher.fetch_json = AsyncMock(side_effect=fetch_json)
    return fetcher


FOLDER_URL = "https://dev.azure.com/org/proj/_apis/wit/queries/f1"


class TestQueryNode:
    """Test QueryNode parsing and enrichment"""

    def test_from_dict_parses_nested_children(self):
        node = QueryNode.from_dict({
            'id': 'root',
            'name': 'Shared Queries',
            'isFolder': True,
            'hasChildren': True,
            'children': [
                {
                    'id': 'q1',
                    'name': 'Req to Test',
                    'queryType': 'oneHop',
                    'wiql': 'SELECT 1',
                    'columns': [{'referenceName': 'System.Id', 'name': 'ID'}],
                    '_links': {'wiql': {'href': 'https://example.com/wiql'}},
                },
            ],
        })

        assert node.is_folder
        assert node.children[0].query_type == 'oneHop'
        assert node.children[0].columns[0].reference_name == 'System.Id'
        assert node.children[0].wiql_link == {'href': 'https://example.com/wiql'}

    def test_children_absent_stays_none(self):
        node = QueryNode.from_dict({'id': 'f', 'isFolder': True, 'hasChildren': True})
        assert node.children is None

    def test_merged_with_returns_new_node(self):
        node = QueryNode(id='f1', name='Folder', is_folder=True, has_children=True, url=FOLDER_URL)
        merged = node.merged_with({'children': [{'id': 'c1', 'name': 'Child'}]})

        assert merged is not node
        assert node.children is None
        assert merged.children[0].id == 'c1'
        assert merged.name == 'Folder'
        assert merged.url == FOLDER_URL

    def test_merged_with_overlays_present_keys(self):
        node = QueryNode(id='q1', name='Old', wiql=None)
        merged = node.merged_with({'name': 'New', 'wiql': 'SELECT 1'})
        assert merged.name == 'New'
        assert merged.wiql == 'SELECT 1'
        assert merged.id == 'q1'


class TestTreeOutputNode:
    """Test output node serialization"""

    def test_leaf_to_dict(self):
        query = QueryNode(id='q1', name='Q', query_type='flat', links={'wiql': {'href': 'h'}})
        leaf = TreeOutputNode.leaf(query, 'f1')
        assert leaf.to_dict() == {
            'id': 'q1',
            'pId': 'f1',
            'value': 'Q',
            'title': 'Q',
            'queryType': 'flat',
            'wiql': {'href': 'h'},
            'isValidQuery': True,
        }

    def test_folder_iter_leaves(self):
        folder = QueryNode(id='f', name='F', is_folder=True)
        a = TreeOutputNode.leaf(QueryNode(id='a', name='A'), 'f')
        b = TreeOutputNode.leaf(QueryNode(id='b', name='B'), 'f')
        tree = TreeOutputNode.folder(folder, None, [a, b])

        assert [leaf.id for leaf in tree.iter_leaves()] == ['a', 'b']
        assert tree.to_dict()['pId'] is None
        assert 'queryType' not in tree.to_dict()


class TestQueryNodeRepository:
    """Test lazy expansion"""

    @pytest.mark.asyncio
    async def test_none_and_loaded_nodes_unchanged(self):
        fetcher = make_fetcher({})
        repository = QueryNodeRepository(fetcher)
        loaded = QueryNode(id='f', is_folder=True, has_children=True, children=[], url=FOLDER_URL)
        childless = QueryNode(id='g', is_folder=True, has_children=False, url=FOLDER_URL)

        assert await repository.ensure_children(None) is None
        assert await repository.ensure_children(loaded) is loaded
        assert await repository.ensure_children(childless) is childless
        fetcher.fetch_json.assert_not_called()

    @pytest.mark.asyncio
    async def test_node_without_url_unchanged(self):
        fetcher = make_fetcher({})
        repository = QueryNodeRepository(fetcher)
        node = QueryNode(id='f', is_folder=True, has_children=True)

        assert await repository.ensure_children(node) is node
        fetcher.fetch_json.assert_not_called()

    @pytest.mark.asyncio
    async def test_fetches_children_with_depth_expand(self):
        fetcher = make_fetcher({
            f"{FOLDER_URL}?$depth=2&$expand=all": {
                'id': 'f1',
                'children': [{'id': 'c1', 'name': 'Child', 'isFolder': True}],
            },
        })
        repository = QueryNodeRepository(fetcher)
        node = QueryNode(id='f1', name='Folder', is_folder=True, has_children=True, url=FOLDER_URL)

        expanded = await repository.ensure_children(node)

        fetcher.fetch_json.assert_awaited_once_with(f"{FOLDER_URL}?$depth=2&$expand=all")
        assert [child.id for child in expanded.children] == ['c1']
        assert node.children is None

    @pytest.mark.asyncio
    async def test_expansion_is_idempotent(self):
        fetcher = make_fetcher({
            f"{FOLDER_URL}?$depth=2&$expand=all": {'children': [{'id': 'c1', 'name': 'Child'}]},
        })
        repository = QueryNodeRepository(fetcher)
        node = QueryNode(id='f1', is_folder=True, has_children=True, url=FOLDER_URL)

        first = await repository.ensure_children(node)
        again_from_original = await repository.ensure_children(node)
        again_from_expanded = await repository.ensure_children(first)

        assert again_from_original is first
        assert again_from_expanded is first
        assert fetcher.fetch_json.await_count == 1
        assert repository.fetch_count == 1

    @pytest.mark.asyncio
    async def test_empty_response_marks_folder_loaded(self):
        fetcher = make_fetcher({f"{FOLDER_URL}?$depth=2&$expand=all": {'id': 'f1'}})
        repository = QueryNodeRepository(fetcher)
        node = QueryNode(id='f1', is_folder=True, has_children=True, url=FOLDER_URL)

        expanded = await repository.ensure_children(node)
        assert expanded.children == []

    @pytest.mark.asyncio
    async def test_fetch_errors_propagate(self):
        fetcher = Mock()
        fetcher.fetch_json = AsyncMock(side_effect=TransientError(status_code=503))
        repository = QueryNodeRepository(fetcher)
        node = QueryNode(id='f1', is_folder=True, has_children=True, url=FOLDER_URL)

        with pytest.raises(TransientError):
            await repository.ensure_children(node)

    @pytest.mark.asyncio
    async def test_ensure_details_loads_wiql(self):
        url = "https://dev.azure.com/org/proj/_apis/wit/queries/q1"
        fetcher = make_fetcher({f"{url}?$expand=all": {'wiql': 'SELECT 1', 'queryType': 'flat'}})
        repository = QueryNodeRepository(fetcher)
        leaf = QueryNode(id='q1', name='Q', url=url)

        detailed = await repository.ensure_details(leaf)

        assert detailed.wiql == 'SELECT 1'
        assert detailed.query_type == 'flat'
        assert await repository.ensure_details(detailed) is detailed
        assert fetcher.fetch_json.await_count == 1
