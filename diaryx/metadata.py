"""
Metadata normalization and validation for Diaryx frontmatter.

Link-bearing fields (`contents`, `part_of`) arrive as either a single string or a
list of strings. They are wrapped in a `MetadataList` at the boundary and flattened
into an ordered list of raw reference strings before anything else looks at them.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Annotated, Any, Dict, Iterable, List, Mapping, Optional, Set, Tuple, Union

from pydantic import BaseModel, Field, ValidationError

from .models import DiaryxMetadata, ValidationIssue, coerce_text

REQUIRED_METADATA_FIELDS = (
    "title",
    "author",
    "created",
    "updated",
    "visibility",
    "format",
    "reachable",
)

RFC3339_PATTERN = (
    r"^(\d{4})-(0[1-9]|1[0-2])-(0[1-9]|[12]\d|3[01])T([01]\d|2[0-3]):([0-5]\d):([0-5]\d)"
    r"(\.\d+)?(Z|[+-]([01]\d|2[0-3]):?[0-5]\d)$"
)

_LINE_SPLIT = re.compile(r"\r?\n")


@dataclass(frozen=True)
class Single:
    value: str


@dataclass(frozen=True)
class Many:
    values: Tuple[str, ...]


MetadataList = Union[Single, Many]


def metadata_list_from(value: Any) -> MetadataList:
    """Wrap a raw frontmatter value as a single entry or an ordered list."""
    if isinstance(value, (list, tuple)):
        return Many(tuple(coerce_text(item) for item in value))
    if value is None:
        return Many(())
    return Single(coerce_text(value))


def _split_lines(text: str) -> List[str]:
    return [line.strip() for line in _LINE_SPLIT.split(text) if line.strip()]


def normalize_metadata_list(value: Any) -> List[str]:
    """
    Return the canonical ordered list of raw reference strings for a metadata field.

    Strings are split on newlines; list items are split the same way and flattened.
    Entries are trimmed and blanks dropped.
    """
    wrapped = value if isinstance(value, (Single, Many)) else metadata_list_from(value)
    if isinstance(wrapped, Single):
        return _split_lines(wrapped.value)
    results: List[str] = []
    for item in wrapped.values:
        results.extend(_split_lines(item))
    return results


# Validation ---------------------------------------------------------------------

NonEmptyText = Annotated[str, Field(min_length=1)]
NonEmptyList = Annotated[List[NonEmptyText], Field(min_length=1)]
Timestamp = Annotated[str, Field(pattern=RFC3339_PATTERN)]


class _StrictMetadata(BaseModel):
    """Strict shape of a valid Diaryx header."""

    title: NonEmptyText
    author: Union[NonEmptyText, NonEmptyList]
    created: Timestamp
    updated: Timestamp
    visibility: Union[NonEmptyText, NonEmptyList]
    format: Union[NonEmptyText, NonEmptyList]
    reachable: Union[NonEmptyText, NonEmptyList]

    version: Optional[Union[str, NonEmptyList]] = None
    copying: Optional[Union[str, NonEmptyList]] = None
    contents: Optional[Union[str, NonEmptyList]] = None
    part_of: Optional[Union[str, NonEmptyList]] = None
    checksums: Optional[Union[str, NonEmptyList]] = None

    model_config = {"extra": "allow", "strict": True}


def _issues_from(exc: ValidationError) -> List[ValidationIssue]:
    return [
        ValidationIssue(
            path=".".join(str(part) for part in error["loc"]),
            message=error["msg"],
        )
        for error in exc.errors()
    ]


def validate_metadata(metadata: DiaryxMetadata) -> List[ValidationIssue]:
    """Check a metadata object against the Diaryx header rules."""
    try:
        _StrictMetadata.model_validate(metadata.model_dump())
    except ValidationError as exc:
        return _issues_from(exc)
    return []


def normalize_metadata(
    raw: Optional[Mapping[str, Any]],
) -> Tuple[DiaryxMetadata, List[ValidationIssue]]:
    """
    Coerce raw frontmatter into `DiaryxMetadata` and report validation issues.

    Values that cannot be coerced at all are dropped and reported; nothing here
    raises for a mapping input.
    """
    base: Dict[str, Any] = dict(raw) if isinstance(raw, Mapping) else {}
    base = {str(key): value for key, value in base.items()}

    dropped: List[ValidationIssue] = []
    try:
        metadata = DiaryxMetadata.model_validate(base)
    except ValidationError as exc:
        dropped = _issues_from(exc)
        for error in exc.errors():
            base.pop(str(error["loc"][0]), None)
        metadata = DiaryxMetadata.model_validate(base)

    return metadata, dropped + validate_metadata(metadata)


def is_value_present(value: Any) -> bool:
    if value is None:
        return False
    if isinstance(value, (list, tuple)):
        return any(coerce_text(item).strip() for item in value)
    return bool(coerce_text(value).strip())


def missing_metadata_fields(metadata: DiaryxMetadata) -> Set[str]:
    return {
        key for key in REQUIRED_METADATA_FIELDS if not is_value_present(getattr(metadata, key))
    }


def describe_issues(issues: Iterable[ValidationIssue]) -> Optional[str]:
    """Summarize issues as one line, keeping the first message per path."""
    unique: Dict[str, str] = {}
    for issue in issues:
        unique.setdefault(issue.path or issue.message, issue.message)
    if not unique:
        return None
    return "; ".join(unique.values())
