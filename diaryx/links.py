"""
Parsing, normalization and lookup of note references found in `contents` and `part_of`.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional
from urllib.parse import unquote

from .models import DiaryxNote

MARKDOWN_LINK_PATTERN = re.compile(r"^\s*\[(?P<label>[^\]]*)\]\((?P<target>.+)\)\s*$")
WHITESPACE_PATTERN = re.compile(r"\s")


@dataclass(frozen=True)
class ContentLink:
    """A single parsed metadata reference."""

    raw: str
    label: str
    target: str


def normalize_key(value: str) -> str:
    """Create a normalized key for title and alias lookups."""
    return value.strip().lower()


def strip_angles(value: str) -> str:
    value = value.strip()
    if value.startswith("<") and value.endswith(">"):
        return value[1:-1].strip()
    return value


def parse_link(raw: str) -> ContentLink:
    """
    Parse `[label](target)` or a bare target into a `ContentLink`.

    Never fails: anything that is not a single Markdown link is treated as a bare
    target, and an empty label falls back to the target.
    """
    trimmed = raw.strip()
    match = MARKDOWN_LINK_PATTERN.match(trimmed)
    if not match:
        target = strip_angles(trimmed)
        return ContentLink(raw=raw, label=target, target=target)

    label = match.group("label").strip()
    target = strip_angles(match.group("target"))
    return ContentLink(raw=raw, label=label or target, target=target)


def format_link(label: str, target: str) -> str:
    """Build a Markdown link, wrapping the target in angle brackets if it has whitespace."""
    normalized_target = target.strip()
    normalized_label = label.strip() or normalized_target
    if WHITESPACE_PATTERN.search(normalized_target):
        normalized_target = f"<{normalized_target}>"
    return f"[{normalized_label}]({normalized_target})"


def normalize_variants(target: str) -> List[str]:
    """
    Return every lookup key a target may be indexed or searched under.

    Variants are distinct and ordered: lower-cased, percent-decoded, then the
    lower-cased form without a trailing `.md`.
    """
    stripped = strip_angles(target)
    if not stripped:
        return []

    lowercase = stripped.lower()
    variants: Dict[str, None] = {lowercase: None}

    try:
        variants[unquote(stripped, errors="strict").lower()] = None
    except UnicodeDecodeError:
        pass

    if lowercase.endswith(".md"):
        variants[lowercase[:-3]] = None

    return list(variants)


@dataclass
class ReferenceIndex:
    """
    Lookup tables from normalized keys to note ids for one resolution pass.

    The first note to claim a key keeps it; later claims are ignored.
    """

    href_index: Dict[str, str] = field(default_factory=dict)
    title_index: Dict[str, str] = field(default_factory=dict)

    def add_note(self, note: DiaryxNote) -> None:
        source_name = (note.source_name or "").strip()
        if source_name:
            for variant in normalize_variants(source_name):
                self.href_index.setdefault(variant, note.id)

        title = note.metadata.title.strip()
        if title:
            self.title_index.setdefault(normalize_key(title), note.id)

        for alias in note.metadata.aliases or []:
            key = normalize_key(str(alias))
            if key:
                self.title_index.setdefault(key, note.id)

    def get_by_href(self, target: str) -> Optional[str]:
        for variant in normalize_variants(target):
            found = self.href_index.get(variant)
            if found:
                return found
        return None

    def get_by_title(self, title: str) -> Optional[str]:
        key = normalize_key(title)
        if not key:
            return None
        return self.title_index.get(key)

    def resolve(self, link: ContentLink) -> Optional[str]:
        """Match a link by target path first, then by label against titles and aliases."""
        return self.get_by_href(link.target) or self.get_by_title(link.label)


def build_reference_index(notes: Iterable[DiaryxNote]) -> ReferenceIndex:
    index = ReferenceIndex()
    for note in notes:
        index.add_note(note)
    return index
