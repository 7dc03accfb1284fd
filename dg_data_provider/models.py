"""
Data models for the shared query hierarchy and the trees built from it
"""
from dataclasses import dataclass, field, fields as dataclass_fields
from typing import Optional, List, Dict, Any, Iterator, Tuple


@dataclass(frozen=True)
class QueryColumn:
    """A column of a saved query"""
    reference_name: str
    name: str
    url: Optional[str] = None

    @classmethod
    def from_dict(cls, payload: Dict[str, Any]) -> "QueryColumn":
        return cls(
            reference_name=payload.get('referenceName', ''),
            name=payload.get('name', ''),
            url=payload.get('url'),
        )


# QueryNode attribute -> REST JSON key
_QUERY_NODE_KEYS = {
    'id': 'id',
    'name': 'name',
    'is_folder': 'isFolder',
    'has_children': 'hasChildren',
    'children': 'children',
    'query_type': 'queryType',
    'wiql': 'wiql',
    'columns': 'columns',
    'url': 'url',
    'links': '_links',
}


@dataclass
class QueryNode:
    """
    A saved query or query folder from the ``wit/queries`` endpoint.

    ``children`` is None until the folder has been expanded; an empty list
    means the folder was expanded and is empty. Nodes are never mutated by
    the provider: enrichment produces a new node through ``merged_with``.
    """
    id: Optional[str] = None
    name: str = ''
    is_folder: bool = False
    has_children: bool = False
    children: Optional[List["QueryNode"]] = None
    query_type: Optional[str] = None
    wiql: Optional[str] = None
    columns: List[QueryColumn] = field(default_factory=list)
    url: Optional[str] = None
    links: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, payload: Optional[Dict[str, Any]]) -> Optional["QueryNode"]:
        """Build a node (and its loaded descendants) from REST JSON."""
        if payload is None:
            return None

        children = payload.get('children')
        return cls(
            id=payload.get('id'),
            name=payload.get('name') or '',
            is_folder=bool(payload.get('isFolder', False)),
            has_children=bool(payload.get('hasChildren', False)),
            children=[cls.from_dict(child) for child in children] if children is not None else None,
            query_type=payload.get('queryType'),
            wiql=payload.get('wiql'),
            columns=[QueryColumn.from_dict(column) for column in payload.get('columns') or []],
            url=payload.get('url'),
            links=dict(payload.get('_links') or {}),
        )

    def merged_with(self, payload: Dict[str, Any]) -> "QueryNode":
        """
        Return a new node with the keys present in ``payload`` overlaid.

        Attributes whose JSON key is absent from the payload keep their
        current value (children keep their identity).
        """
        incoming = QueryNode.from_dict(payload)
        values = {}
        for attr in dataclass_fields(self):
            key = _QUERY_NODE_KEYS[attr.name]
            source = incoming if key in payload else self
            values[attr.name] = getattr(source, attr.name)
        return QueryNode(**values)

    @property
    def wiql_link(self) -> Optional[Any]:
        """The ``_links.wiql`` object used to execute the query later."""
        return self.links.get('wiql')

    def __repr__(self) -> str:
        kind = 'folder' if self.is_folder else (self.query_type or 'query')
        return f"QueryNode(id={self.id!r}, name={self.name!r}, {kind})"


@dataclass
class TreeOutputNode:
    """A node of a synthetic query tree handed to document generation"""
    id: Optional[str]
    p_id: Optional[str]
    value: str
    title: str
    query_type: Optional[str] = None
    wiql: Optional[Any] = None
    is_valid_query: Optional[bool] = None
    children: Optional[List["TreeOutputNode"]] = None

    @classmethod
    def leaf(cls, node: QueryNode, parent_id: Optional[str]) -> "TreeOutputNode":
        return cls(
            id=node.id,
            p_id=parent_id,
            value=node.name,
            title=node.name,
            query_type=node.query_type,
            wiql=node.wiql_link,
            is_valid_query=True,
        )

    @classmethod
    def folder(
        cls,
        node: QueryNode,
        parent_id: Optional[str],
        children: List["TreeOutputNode"]
    ) -> "TreeOutputNode":
        return cls(
            id=node.id,
            p_id=parent_id,
            value=node.name,
            title=node.name,
            children=children,
        )

    def iter_leaves(self) -> Iterator["TreeOutputNode"]:
        """Yield leaf nodes depth-first, left to right."""
        if self.children is None:
            yield self
            return
        for child in self.children:
            yield from child.iter_leaves()

    def to_dict(self) -> Dict[str, Any]:
        """Serialize using the JSON keys the document renderers expect."""
        data: Dict[str, Any] = {
            'id': self.id,
            'pId': self.p_id,
            'value': self.value,
            'title': self.title,
        }
        if self.query_type is not None:
            data['queryType'] = self.query_type
        if self.wiql is not None:
            data['wiql'] = self.wiql
        if self.is_valid_query is not None:
            data['isValidQuery'] = self.is_valid_query
        if self.children is not None:
            data['children'] = [child.to_dict() for child in self.children]
        return data


@dataclass(frozen=True)
class TreePair:
    """Forward (tree1) and reverse (tree2) trees built from one query node"""
    tree1: Optional[TreeOutputNode] = None
    tree2: Optional[TreeOutputNode] = None


EMPTY_PAIR = TreePair()


@dataclass(frozen=True)
class LinkClassification:
    """
    Parameters deciding which saved queries belong to a linked-query tree.

    tree1 takes queries whose Source side matches ``sources`` and Target side
    matches ``targets``; tree2 takes the reverse direction.
    """
    sources: Tuple[str, ...] = ()
    targets: Tuple[str, ...] = ()
    source_area_filter: str = ''
    target_area_filter: str = ''
    include_tree_queries: bool = False
    include_flat_queries: bool = False
    excluded_folder_names: Tuple[str, ...] = ()


class BranchOperation:
    """Names of the fetch operations a branch can dispatch to"""
    LINKED_QUERIES = "linked_queries"
    ALL_QUERIES = "all_queries"


@dataclass(frozen=True)
class BranchConfig:
    """
    One fetch-and-classify unit of a document type.

    ``result_keys`` names the keys under which tree1 and tree2 are published;
    a None entry drops that tree from the branch result.
    """
    id: str
    operation: str
    result_keys: Tuple[Optional[str], Optional[str]]
    candidate_names: Tuple[str, ...] = ()
    classification: LinkClassification = LinkClassification()
    validator: Optional[str] = None
    fallback_start: Optional[str] = None


@dataclass
class FallbackFetchOutcome:
    """Result of the first fallback candidate accepted by the validator"""
    result: Any
    used_folder: Optional[QueryNode]


@dataclass
class DocTypeRootResolution:
    """The folder a document type's branches are searched under"""
    root: Optional[QueryNode]
    found: bool
