"""
Diaryx file parsing and serialization: split YAML frontmatter from the Markdown body.
"""

from __future__ import annotations

import uuid
from pathlib import Path
from typing import Optional

import yaml
from frontmatter.default_handlers import YAMLHandler

from .metadata import normalize_metadata
from .models import DiaryxNote, ParseResult

YAML_HANDLER = YAMLHandler()
BYTE_ORDER_MARK = "\ufeff"


class DiaryxParseError(ValueError):
    """Raised when a file cannot be read as a Diaryx note."""


def parse_diaryx_string(
    text: str,
    *,
    note_id: Optional[str] = None,
    source_name: Optional[str] = None,
) -> ParseResult:
    """
    Parse Diaryx text into a note plus metadata warnings.

    Missing or invalid header fields are reported as warnings. Broken YAML, or a
    header that is not a mapping, raises `DiaryxParseError`.
    """
    raw_frontmatter, body = _split(text.removeprefix(BYTE_ORDER_MARK))
    data = _load_yaml(raw_frontmatter) if raw_frontmatter is not None else {}
    metadata, issues = normalize_metadata(data)

    note = DiaryxNote(
        id=note_id or str(uuid.uuid4()),
        body=body.lstrip(),
        metadata=metadata,
        frontmatter=raw_frontmatter.strip() if raw_frontmatter and raw_frontmatter.strip() else None,
        source_name=source_name,
        auto_update_timestamp=bool(metadata.updated),
    )
    return ParseResult(note=note, warnings=issues)


def parse_diaryx_file(
    path: Path,
    *,
    source_name: Optional[str] = None,
    note_id: Optional[str] = None,
) -> ParseResult:
    try:
        text = path.read_text(encoding="utf-8-sig")
    except UnicodeDecodeError as exc:
        raise DiaryxParseError(f"File is not valid UTF-8: {exc.reason}") from exc
    return parse_diaryx_string(text, note_id=note_id, source_name=source_name or path.name)


def stringify_note(note: DiaryxNote, include_frontmatter: bool = True) -> str:
    """Serialize a note back to `---` delimited YAML followed by the body."""
    if not include_frontmatter:
        return note.body
    metadata = note.metadata.model_dump(exclude_none=True)
    header = yaml.safe_dump(
        metadata, sort_keys=False, allow_unicode=True, default_flow_style=False, width=1000
    ).rstrip()
    return f"---\n{header}\n---\n\n{note.body}"


def _split(text: str) -> tuple[Optional[str], str]:
    if not YAML_HANDLER.detect(text):
        return None, text
    try:
        raw_frontmatter, body = YAML_HANDLER.split(text)
    except ValueError as exc:
        raise DiaryxParseError("Unterminated frontmatter block") from exc
    return raw_frontmatter, body


def _load_yaml(raw_frontmatter: str) -> dict:
    try:
        data = YAML_HANDLER.load(raw_frontmatter)
    except yaml.YAMLError as exc:
        raise DiaryxParseError(f"Invalid YAML frontmatter: {exc}") from exc
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise DiaryxParseError("Frontmatter must be a YAML mapping")
    return data
