"""
Query recipes for each document type.

A recipe names the folder holding the document's queries and lists its
branches. Branches are plain records; the query service dispatches them
by operation name. Folder candidate names are lowercase.
"""
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional, Tuple

from .constants import (
    MOM_TYPES,
    OPEN_PCR_TYPES,
    REQUIREMENT_TYPES,
    SYSTEM_REQUIREMENT_TYPES,
    TEST_CASE_TYPES,
    lower_all,
)
from .models import BranchConfig, BranchOperation, LinkClassification, TreeOutputNode

BranchResults = Dict[str, Dict[str, Optional[TreeOutputNode]]]


@dataclass(frozen=True)
class DocTypeRecipe:
    doc_type: str
    root_folder_name: str
    branches: Tuple[BranchConfig, ...]
    assemble: Callable[[BranchResults], Dict[str, Any]]


def _types(values) -> Tuple[str, ...]:
    return tuple(lower_all(values))


REQUIREMENTS = _types(REQUIREMENT_TYPES)
SYSTEM_REQUIREMENTS = _types(SYSTEM_REQUIREMENT_TYPES)
TEST_CASES = _types(TEST_CASE_TYPES)
OPEN_PCRS = _types(OPEN_PCR_TYPES)
MOM_ITEMS = _types(MOM_TYPES)

REQ_TO_TEST_NAMES = ('requirement - test', 'requirement to test case', 'requirements to test cases', 'req to test', 'req - test')
TEST_TO_REQ_NAMES = ('test - requirement', 'test case to requirement', 'test cases to requirements', 'test to req', 'test - req')
MOM_NAMES = ('linked mom', 'mom', 'minutes of meeting')
OPEN_PCR_TO_TEST_NAMES = ('open pcr - test', 'open pcr to test case', 'pcr to test', 'pcr - test')
TEST_TO_OPEN_PCR_NAMES = ('test - open pcr', 'test case to open pcr', 'test to pcr', 'test - pcr')
SYSTEM_OVERVIEW_NAMES = ('system overview',)
KNOWN_BUGS_NAMES = ('known bugs', 'known bug')
SYSTEM_REQUIREMENTS_NAMES = ('system requirements', 'system requirement', 'sys req')
SYS_TO_SOFT_REQ_NAMES = ('system to software requirements', 'system - software', 'sysreq to softreq', 'sys to soft')


def _tree(results: BranchResults, branch_id: str, key: str):
    tree = results.get(branch_id, {}).get(key)
    return tree.to_dict() if tree is not None else None


def _first_tree(results: BranchResults, *sources: Tuple[str, str]):
    for branch_id, key in sources:
        tree = _tree(results, branch_id, key)
        if tree is not None:
            return tree
    return None


def _requirement_test_branches(excluded: Tuple[str, ...] = ()) -> Tuple[BranchConfig, ...]:
    return (
        BranchConfig(
            id='reqToTest',
            operation=BranchOperation.LINKED_QUERIES,
            result_keys=('reqTestTree', 'testReqTree'),
            candidate_names=REQ_TO_TEST_NAMES,
            classification=LinkClassification(
                sources=REQUIREMENTS,
                targets=TEST_CASES,
                excluded_folder_names=excluded,
            ),
        ),
        BranchConfig(
            id='testToReq',
            operation=BranchOperation.LINKED_QUERIES,
            result_keys=('testReqTree', None),
            candidate_names=TEST_TO_REQ_NAMES,
            classification=LinkClassification(
                sources=TEST_CASES,
                targets=REQUIREMENTS,
                excluded_folder_names=excluded,
            ),
        ),
    )


def _assemble_std(results: BranchResults) -> Dict[str, Any]:
    return {
        'reqTestQueries': {
            'reqTestTree': _tree(results, 'reqToTest', 'reqTestTree'),
            'testReqTree': _first_tree(
                results, ('testToReq', 'testReqTree'), ('reqToTest', 'testReqTree')
            ),
        },
        'linkedMomQueries': {
            'linkedMomTree': _tree(results, 'mom', 'linkedMomTree'),
        },
    }


def _assemble_str(results: BranchResults) -> Dict[str, Any]:
    return {
        'reqTestTrees': {
            'reqTestTree': _tree(results, 'reqToTest', 'reqTestTree'),
            'testReqTree': _first_tree(
                results, ('testToReq', 'testReqTree'), ('reqToTest', 'testReqTree')
            ),
        },
        'openPcrTestTrees': {
            'OpenPcrToTestTree': _tree(results, 'openPcrToTest', 'OpenPcrToTestTree'),
            'TestToOpenPcrTree': _first_tree(
                results,
                ('testToOpenPcr', 'TestToOpenPcrTree'),
                ('openPcrToTest', 'TestToOpenPcrTree'),
            ),
        },
    }


def _assemble_svd(results: BranchResults) -> Dict[str, Any]:
    return {
        'systemOverviewQueryTree': _tree(results, 'systemOverview', 'systemOverviewQueryTree'),
        'knownBugsQueryTree': _tree(results, 'knownBugs', 'knownBugsQueryTree'),
    }


def _assemble_srs(results: BranchResults) -> Dict[str, Any]:
    return {
        'systemRequirementsQueries': {
            'systemRequirementsQueryTree': _tree(
                results, 'systemRequirements', 'systemRequirementsQueryTree'
            ),
        },
        'sysReqToSoftReqQueries': {
            'sysReqToSoftReqTree': _tree(results, 'sysReqToSoftReq', 'sysReqToSoftReqTree'),
            'softReqToSysReqTree': _tree(results, 'sysReqToSoftReq', 'softReqToSysReqTree'),
        },
    }


def _assemble_test_reporter(results: BranchResults) -> Dict[str, Any]:
    return {
        'testReporterQueries': {
            'testReporterQueryTree': _tree(results, 'testReporter', 'testReporterQueryTree'),
        },
    }


DOC_TYPE_RECIPES: Dict[str, DocTypeRecipe] = {
    'std': DocTypeRecipe(
        doc_type='std',
        root_folder_name='STD',
        branches=_requirement_test_branches(excluded=MOM_NAMES) + (
            BranchConfig(
                id='mom',
                operation=BranchOperation.LINKED_QUERIES,
                result_keys=('linkedMomTree', None),
                candidate_names=MOM_NAMES,
                classification=LinkClassification(
                    sources=TEST_CASES,
                    targets=MOM_ITEMS,
                ),
            ),
        ),
        assemble=_assemble_std,
    ),
    'str': DocTypeRecipe(
        doc_type='str',
        root_folder_name='STR',
        branches=_requirement_test_branches() + (
            BranchConfig(
                id='openPcrToTest',
                operation=BranchOperation.LINKED_QUERIES,
                result_keys=('OpenPcrToTestTree', 'TestToOpenPcrTree'),
                candidate_names=OPEN_PCR_TO_TEST_NAMES,
                classification=LinkClassification(
                    sources=OPEN_PCRS,
                    targets=TEST_CASES,
                ),
            ),
            BranchConfig(
                id='testToOpenPcr',
                operation=BranchOperation.LINKED_QUERIES,
                result_keys=('TestToOpenPcrTree', None),
                candidate_names=TEST_TO_OPEN_PCR_NAMES,
                classification=LinkClassification(
                    sources=TEST_CASES,
                    targets=OPEN_PCRS,
                ),
            ),
        ),
        assemble=_assemble_str,
    ),
    'svd': DocTypeRecipe(
        doc_type='svd',
        root_folder_name='SVD',
        branches=(
            BranchConfig(
                id='systemOverview',
                operation=BranchOperation.ALL_QUERIES,
                result_keys=('systemOverviewQueryTree', None),
                candidate_names=SYSTEM_OVERVIEW_NAMES,
            ),
            BranchConfig(
                id='knownBugs',
                operation=BranchOperation.ALL_QUERIES,
                result_keys=(None, 'knownBugsQueryTree'),
                candidate_names=KNOWN_BUGS_NAMES,
                fallback_start='System Overview',
            ),
        ),
        assemble=_assemble_svd,
    ),
    'srs': DocTypeRecipe(
        doc_type='srs',
        root_folder_name='SRS',
        branches=(
            BranchConfig(
                id='systemRequirements',
                operation=BranchOperation.LINKED_QUERIES,
                result_keys=('systemRequirementsQueryTree', None),
                candidate_names=SYSTEM_REQUIREMENTS_NAMES,
                classification=LinkClassification(
                    sources=SYSTEM_REQUIREMENTS,
                    targets=SYSTEM_REQUIREMENTS,
                    include_tree_queries=True,
                    include_flat_queries=True,
                    excluded_folder_names=SYS_TO_SOFT_REQ_NAMES,
                ),
            ),
            BranchConfig(
                id='sysReqToSoftReq',
                operation=BranchOperation.LINKED_QUERIES,
                result_keys=('sysReqToSoftReqTree', 'softReqToSysReqTree'),
                candidate_names=SYS_TO_SOFT_REQ_NAMES,
                classification=LinkClassification(
                    sources=SYSTEM_REQUIREMENTS,
                    targets=SYSTEM_REQUIREMENTS,
                    source_area_filter='system',
                    target_area_filter='software',
                    include_tree_queries=True,
                ),
            ),
        ),
        assemble=_assemble_srs,
    ),
    'test-reporter': DocTypeRecipe(
        doc_type='test-reporter',
        root_folder_name='Test Reporter',
        branches=(
            BranchConfig(
                id='testReporter',
                operation=BranchOperation.LINKED_QUERIES,
                result_keys=('testReporterQueryTree', None),
                classification=LinkClassification(
                    sources=TEST_CASES,
                    include_tree_queries=True,
                    include_flat_queries=True,
                ),
            ),
        ),
        assemble=_assemble_test_reporter,
    ),
}


def get_recipe(doc_type: Optional[str]) -> Optional[DocTypeRecipe]:
    """Recipe for ``doc_type`` (case-insensitive), or None when unknown."""
    if not doc_type:
        return None
    return DOC_TYPE_RECIPES.get(doc_type.strip().lower())
