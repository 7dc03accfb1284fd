"""
WIQL classification helpers.

Saved queries are classified by scanning their WIQL text for a handful of
field shapes: work item type and area path literals on the Source/Target
side of a link query, or un-prefixed on a flat query. This is not a WIQL
parser; anything it does not recognize reads as "no match".

All extraction goes through ``extract_field_equality`` and
``extract_field_in_clause`` so the regexes stay in one place.
"""
import re
from typing import List, Optional, Iterable

from .constants import FieldNames, WorkItemTypes

_QUOTED_VALUE = re.compile(r"'([^']*)'")
_NUMBER = re.compile(r"\d+")


def field_pattern(field: str, context: Optional[str] = None) -> str:
    """
    Regex fragment matching a field reference.

    With a context ("Source"/"Target") both ``Source.[System.X]`` and
    ``[Source].[System.X]`` are accepted. Without one, only the bare
    ``[System.X]`` form matches.
    """
    bracketed = r"\[" + re.escape(field) + r"\]"
    if context:
        return r"\[?" + re.escape(context) + r"\]?\." + bracketed
    return r"(?<![.\w])" + bracketed


def references_field(wiql: Optional[str], pattern: str, ignore_case: bool = False) -> bool:
    if not wiql:
        return False
    flags = re.IGNORECASE if ignore_case else 0
    return re.search(pattern, wiql, flags) is not None


def extract_field_equality(
    wiql: Optional[str],
    pattern: str,
    operators: Iterable[str] = ('=',),
    ignore_case: bool = False
) -> List[str]:
    """Quoted literals compared to the field with one of ``operators``."""
    if not wiql:
        return []
    flags = re.IGNORECASE if ignore_case else 0
    ops = '|'.join(re.escape(op) if not op.isalpha() else op for op in operators)
    regex = re.compile(pattern + r"\s*(?:" + ops + r")\s*'([^']*)'", flags)
    return [match.group(1) for match in regex.finditer(wiql)]


def extract_field_in_clause(
    wiql: Optional[str],
    pattern: str,
    ignore_case: bool = False
) -> List[str]:
    """Quoted literals listed in ``field IN (...)`` clauses."""
    if not wiql:
        return []
    flags = re.IGNORECASE if ignore_case else 0
    regex = re.compile(pattern + r"\s*(?i:IN)\s*\(([^)]*)\)", flags)
    values = []
    for match in regex.finditer(wiql):
        values.extend(_QUOTED_VALUE.findall(match.group(1)))
    return values


def extract_work_item_types(wiql: Optional[str], context: Optional[str] = None) -> List[str]:
    """Work item type literals constrained on one side (or the flat query)."""
    pattern = field_pattern(FieldNames.WORK_ITEM_TYPE, context)
    return extract_field_equality(wiql, pattern) + extract_field_in_clause(wiql, pattern)


def extract_work_item_ids(wiql: Optional[str], context: Optional[str] = None) -> List[int]:
    """Work item ids filtered with ``[System.Id] = N`` or ``IN (N, ...)``."""
    if not wiql:
        return []
    pattern = field_pattern(FieldNames.ID, context)
    ids = []
    for match in re.finditer(pattern + r"\s*=\s*'?(\d+)'?", wiql):
        ids.append(int(match.group(1)))
    for match in re.finditer(pattern + r"\s*(?i:IN)\s*\(([^)]*)\)", wiql):
        ids.extend(int(value) for value in _NUMBER.findall(match.group(1)))

    # dedupe, keep order
    return list(dict.fromkeys(ids))


def references_work_item_id(wiql: Optional[str], context: Optional[str] = None) -> bool:
    """Whether the WHERE clause filters on work item ids; selected columns do not count."""
    return bool(extract_work_item_ids(wiql, context))


def extract_area_paths(wiql: Optional[str], context: Optional[str] = None) -> List[str]:
    """Area path literals; field names and operators match case-insensitively."""
    pattern = field_pattern(FieldNames.AREA_PATH, context)
    return (
        extract_field_equality(wiql, pattern, operators=('=', 'UNDER'), ignore_case=True)
        + extract_field_in_clause(wiql, pattern, ignore_case=True)
    )


def area_leaf(path: str) -> str:
    """Last segment of an area path (after the final backslash or slash)."""
    if not path:
        return ''
    return re.split(r"[\\/]", path)[-1]


def _normalize(values: Optional[Iterable[str]]) -> set:
    return {value.strip().lower() for value in (values or []) if value and value.strip()}


def types_allowed(types: Iterable[str], allowed_types: Iterable[str]) -> bool:
    """True when at least one type is given and every one is allowed."""
    allowed = _normalize(allowed_types)
    types = list(types)
    return bool(types) and all(t.strip().lower() in allowed for t in types)


def matches_work_item_type_condition(
    wiql: Optional[str],
    context: str,
    allowed_types: Optional[Iterable[str]]
) -> bool:
    """
    Check the work item types constrained on one side of a link query.

    An empty ``allowed_types`` only requires the side's type field to be
    referenced. Otherwise every extracted type must be allowed; a query that
    also names a disallowed type is rejected.
    """
    if not wiql:
        return False

    if not _normalize(allowed_types):
        return references_field(wiql, field_pattern(FieldNames.WORK_ITEM_TYPE, context))

    return types_allowed(extract_work_item_types(wiql, context), allowed_types)


def matches_source_target_condition(
    wiql: Optional[str],
    sources: Optional[Iterable[str]],
    targets: Optional[Iterable[str]]
) -> bool:
    return (
        matches_work_item_type_condition(wiql, 'Source', sources)
        and matches_work_item_type_condition(wiql, 'Target', targets)
    )


def _area_matches(paths: List[str], area_filter: str) -> bool:
    needle = area_filter.strip().lower()
    return any(needle in area_leaf(path).lower() for path in paths)


def matches_area_path_condition(
    wiql: Optional[str],
    source_area_filter: Optional[str],
    target_area_filter: Optional[str]
) -> bool:
    """
    Check area path filters on both sides of a link query.

    Each non-empty filter must be contained in the leaf segment of at least
    one area path on its side. Empty filters always pass.
    """
    for context, area_filter in (('Source', source_area_filter), ('Target', target_area_filter)):
        if not area_filter or not area_filter.strip():
            continue
        if not _area_matches(extract_area_paths(wiql, context), area_filter):
            return False
    return True


def matches_flat_work_item_type_condition(
    wiql: Optional[str],
    allowed_types: Optional[Iterable[str]]
) -> bool:
    if not wiql:
        return False

    if not _normalize(allowed_types):
        return references_field(wiql, field_pattern(FieldNames.WORK_ITEM_TYPE))

    return types_allowed(extract_work_item_types(wiql), allowed_types)


def matches_flat_area_condition(wiql: Optional[str], area_filter: Optional[str]) -> bool:
    if not area_filter or not area_filter.strip():
        return True
    return _area_matches(extract_area_paths(wiql), area_filter)


def matches_bug_condition(wiql: Optional[str]) -> bool:
    if not wiql:
        return False
    return f"[{FieldNames.WORK_ITEM_TYPE}] = '{WorkItemTypes.BUG}'" in wiql
