"""
Input validation for shared query requests.

Whitelist-based checks on everything that ends up in a REST url or selects
a document recipe: doc types, query paths, project names and work item ids.
"""

import re
from typing import Iterable, List, Optional, Set


class ValidationError(Exception):
    """Raised when input validation fails."""
    pass


# Document types with a query recipe
ALLOWED_DOC_TYPES: Set[str] = {
    'std',
    'str',
    'svd',
    'srs',
    'test-reporter',
}

MAX_QUERY_PATH_LENGTH = 1024
MAX_CANDIDATE_NAME_LENGTH = 256

_CONTROL_CHARS = re.compile(r'[\x00-\x1f\x7f]')
_PROJECT_NAME_FORBIDDEN = re.compile(r'[\\/:*?"<>|;#$+%,=@\[\]{}]')


class DocTypeValidator:
    """Validator for document types."""

    @staticmethod
    def validate(doc_type: str) -> str:
        """
        Validate a document type against the whitelist.

        Args:
            doc_type: Document type, any case (e.g. "STD", "test-reporter")

        Returns:
            The lowercase document type

        Raises:
            ValidationError: If the doc type has no recipe
        """
        if not doc_type or not doc_type.strip():
            raise ValidationError("Document type cannot be empty")

        normalized = doc_type.strip().lower()
        if normalized not in ALLOWED_DOC_TYPES:
            raise ValidationError(
                f"Invalid document type: '{doc_type}'. "
                f"Allowed types: {', '.join(sorted(ALLOWED_DOC_TYPES))}"
            )

        return normalized


class QueryPathValidator:
    """Validator for shared query folder paths."""

    @staticmethod
    def validate(path: str) -> str:
        """
        Validate a query folder path such as ``Shared Queries/STD``.

        Returns:
            The path without surrounding whitespace or slashes

        Raises:
            ValidationError: On traversal sequences, control characters or
                excessive length
        """
        if not path or not path.strip():
            raise ValidationError("Query path cannot be empty")

        path = path.strip().strip('/')

        if len(path) > MAX_QUERY_PATH_LENGTH:
            raise ValidationError(
                f"Query path too long ({len(path)} characters). "
                f"Maximum allowed: {MAX_QUERY_PATH_LENGTH}"
            )

        if '..' in path or '//' in path or '?' in path or '#' in path:
            raise ValidationError(
                f"Invalid query path: '{path}'. "
                "Path traversal and query characters not allowed."
            )

        if _CONTROL_CHARS.search(path):
            raise ValidationError("Query path contains control characters")

        return path


class ProjectNameValidator:
    """Validator for Azure DevOps project names."""

    @staticmethod
    def validate(project: str) -> str:
        if not project or not project.strip():
            raise ValidationError("Project name cannot be empty")

        project = project.strip()
        if _PROJECT_NAME_FORBIDDEN.search(project) or _CONTROL_CHARS.search(project):
            raise ValidationError(f"Invalid project name: '{project}'")

        return project


class WorkItemIdValidator:
    """Validator for work item ids."""

    @staticmethod
    def validate(work_item_id) -> int:
        # bool is an int subclass
        if isinstance(work_item_id, bool):
            raise ValidationError(f"Invalid work item ID: {work_item_id}")

        try:
            value = int(work_item_id)
        except (TypeError, ValueError):
            raise ValidationError(f"Invalid work item ID: {work_item_id!r}")

        if value <= 0:
            raise ValidationError(f"Work item ID must be positive, got {value}")

        return value


class CandidateNamesValidator:
    """Validator for folder candidate-name lists."""

    @staticmethod
    def validate(names: Iterable[str]) -> List[str]:
        """
        Normalize candidate folder names (lowercase, stripped, no duplicates).

        Raises:
            ValidationError: If a name is not a string or is too long
        """
        normalized: List[str] = []
        for name in names or []:
            if not isinstance(name, str):
                raise ValidationError(f"Candidate folder name must be a string, got {type(name).__name__}")
            name = name.strip().lower()
            if not name:
                continue
            if len(name) > MAX_CANDIDATE_NAME_LENGTH:
                raise ValidationError(
                    f"Candidate folder name too long ({len(name)} characters)"
                )
            if name not in normalized:
                normalized.append(name)
        return normalized


# Convenience functions for common validations

def validate_doc_type(doc_type: Optional[str]) -> Optional[str]:
    """Validate doc type if provided."""
    return DocTypeValidator.validate(doc_type) if doc_type else None


def validate_query_path(path: Optional[str]) -> Optional[str]:
    """Validate query path if provided; None means the Shared Queries root."""
    return QueryPathValidator.validate(path) if path else None


def validate_project_name(project: str) -> str:
    """Validate project name."""
    return ProjectNameValidator.validate(project)


def validate_work_item_id(work_item_id) -> int:
    """Validate work item id."""
    return WorkItemIdValidator.validate(work_item_id)


def validate_candidate_names(names: Iterable[str]) -> List[str]:
    """Validate and normalize candidate folder names."""
    return CandidateNamesValidator.validate(names)
