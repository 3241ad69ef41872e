"""
Shared pydantic models used across the application.
"""

from __future__ import annotations

from datetime import date, datetime, timezone
from pathlib import Path
from typing import Any, List, Optional, Union

from pydantic import BaseModel, Field, field_validator

StringOrList = Union[str, List[str]]

STRING_OR_LIST_FIELDS = (
    "author",
    "visibility",
    "format",
    "reachable",
    "version",
    "copying",
    "contents",
    "part_of",
    "checksums",
)


def coerce_text(value: Any) -> str:
    """Render a loosely-typed YAML scalar as text."""
    if isinstance(value, str):
        return value
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if value is None:
        return ""
    return str(value)


def coerce_text_or_list(value: Any) -> StringOrList:
    if isinstance(value, (list, tuple)):
        items = [coerce_text(item) for item in value]
        return [item for item in items if item]
    return coerce_text(value)


class DiaryxMetadata(BaseModel):
    """Frontmatter of a Diaryx note. Unknown keys are kept as extras."""

    title: str = ""
    author: StringOrList = ""
    created: str = ""
    updated: str = ""
    visibility: StringOrList = ""
    format: StringOrList = ""
    reachable: StringOrList = ""

    version: Optional[StringOrList] = None
    copying: Optional[StringOrList] = None
    contents: Optional[StringOrList] = None
    part_of: Optional[StringOrList] = None
    checksums: Optional[StringOrList] = None
    banner: Optional[str] = None
    language: Optional[str] = None
    tags: Optional[List[str]] = None
    aliases: Optional[List[str]] = None
    this_file_is_root_index: Optional[bool] = None
    starred: Optional[bool] = None
    pinned: Optional[bool] = None

    model_config = {
        "extra": "allow",
    }

    @field_validator("title", "created", "updated", mode="before")
    @classmethod
    def coerce_required_text(cls, value: Any) -> str:
        return coerce_text(value)

    @field_validator("banner", "language", mode="before")
    @classmethod
    def coerce_optional_text(cls, value: Any) -> Any:
        if value is None:
            return value
        return coerce_text(value)

    @field_validator(*STRING_OR_LIST_FIELDS, mode="before")
    @classmethod
    def coerce_string_or_list(cls, value: Any) -> Any:
        if value is None:
            return value
        return coerce_text_or_list(value)

    @field_validator("tags", "aliases", mode="before")
    @classmethod
    def coerce_list(cls, value: Any) -> Any:
        if value is None:
            return value
        if isinstance(value, (list, tuple)):
            return [coerce_text(item) for item in value if coerce_text(item).strip()]
        text = coerce_text(value).strip()
        return [text] if text else []


class DiaryxNote(BaseModel):
    """A parsed Diaryx document."""

    id: str
    body: str = ""
    metadata: DiaryxMetadata = Field(default_factory=DiaryxMetadata)
    # Raw YAML text between the frontmatter delimiters.
    frontmatter: Optional[str] = None
    # File name or relative path the note was imported from.
    source_name: Optional[str] = None
    last_modified: datetime = Field(default_factory=lambda: datetime.now(tz=timezone.utc))
    auto_update_timestamp: bool = False


class ValidationIssue(BaseModel):
    """A single metadata validation problem."""

    path: str
    message: str


class ParseResult(BaseModel):
    note: DiaryxNote
    warnings: List[ValidationIssue] = Field(default_factory=list)


class BatchImportInput(BaseModel):
    """One file of a folder upload together with its path inside the folder."""

    file: Path
    relative_path: str


class ImportFailure(BaseModel):
    """A file that could not be parsed during a batch import."""

    relative_path: str
    message: str

    def __str__(self) -> str:
        return f"{self.relative_path}: {self.message}"


class SkippedFile(BaseModel):
    """A file excluded from a batch import before parsing."""

    relative_path: str
    reason: str

    def __str__(self) -> str:
        return f"{self.relative_path} ({self.reason})"


class UnresolvedReference(BaseModel):
    """A `contents` entry that matched no file in the batch."""

    parent: str
    target: str
