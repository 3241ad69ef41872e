"""
Bulk folder import: parse every Markdown file and order notes root-first.

References are matched against normalized relative paths of the uploaded files,
both as written and relative to the referencing file's own directory.
"""

from __future__ import annotations

import asyncio
import logging
import posixpath
import re
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Sequence, Union
from urllib.parse import unquote

from .links import parse_link
from .metadata import normalize_metadata_list
from .models import (
    BatchImportInput,
    DiaryxNote,
    ImportFailure,
    ParseResult,
    SkippedFile,
    UnresolvedReference,
)
from .parser import DiaryxParseError, parse_diaryx_file

LOG = logging.getLogger(__name__)

MARKDOWN_EXTENSIONS = {".md", ".markdown"}
DEFAULT_CONCURRENCY = 8

EXTENSION_PATTERN = re.compile(r"\.[a-z0-9]+$", re.IGNORECASE)
SCHEME_PATTERN = re.compile(r"^[a-z]+://", re.IGNORECASE)

Parser = Callable[[BatchImportInput], ParseResult]


@dataclass
class BatchImportResult:
    notes: List[DiaryxNote] = field(default_factory=list)
    roots: List[str] = field(default_factory=list)
    errors: List[ImportFailure] = field(default_factory=list)
    unresolved: List[UnresolvedReference] = field(default_factory=list)
    skipped: List[SkippedFile] = field(default_factory=list)


@dataclass
class _ParsedEntry:
    note: DiaryxNote
    relative_path: str
    normalized_path: str
    content_targets: List[str]


def collapse_path(path: str) -> str:
    """Resolve `.` and `..` segments; `..` above the top is dropped."""
    stack: List[str] = []
    for part in path.split("/"):
        if not part or part == ".":
            continue
        if part == "..":
            if stack:
                stack.pop()
        else:
            stack.append(part)
    return "/".join(stack)


def normalize_path(path: str) -> str:
    posix = path.replace("\\", "/")
    if posix.startswith("./"):
        posix = posix[2:]
    return collapse_path(posix).lower()


def is_markdown_path(relative_path: str) -> bool:
    _, extension = posixpath.splitext(relative_path.replace("\\", "/").lower())
    return extension in MARKDOWN_EXTENSIONS


def candidate_paths(target: str, relative_path: str) -> List[str]:
    """
    Return the normalized paths a `contents` target may refer to.

    Extension-less targets also try `.md` and `.markdown`. Each candidate is tried
    as given and relative to the directory of the referencing file.
    """
    stripped = target.strip()
    if stripped.startswith("<") and stripped.endswith(">"):
        stripped = stripped[1:-1]
    posix = stripped.replace("\\", "/")
    cleaned = collapse_path(posix)
    if not cleaned or SCHEME_PATTERN.match(posix) or posix.startswith("#"):
        return []

    relative_dir = posixpath.dirname(relative_path.replace("\\", "/"))

    # Candidates keep their `..` segments until joined with the directory.
    variations = [posix]
    try:
        decoded = unquote(posix, errors="strict")
    except UnicodeDecodeError:
        decoded = posix
    if decoded != posix:
        variations.append(decoded)

    candidates: Dict[str, None] = {}
    for variation in variations:
        with_extensions = (
            [variation]
            if EXTENSION_PATTERN.search(variation)
            else [variation, f"{variation}.md", f"{variation}.markdown"]
        )
        for candidate in with_extensions:
            candidates[normalize_path(candidate)] = None
            if relative_dir:
                candidates[normalize_path(f"{relative_dir}/{candidate}")] = None
    return list(candidates)


def _default_parser(item: BatchImportInput) -> ParseResult:
    return parse_diaryx_file(item.file, source_name=item.relative_path)


async def _parse_all(
    items: Sequence[BatchImportInput], parser: Parser, concurrency: int
) -> List[Union[ParseResult, Exception]]:
    semaphore = asyncio.Semaphore(max(1, concurrency))

    async def parse_one(item: BatchImportInput) -> Union[ParseResult, Exception]:
        async with semaphore:
            try:
                return await asyncio.to_thread(parser, item)
            except (DiaryxParseError, ValueError, OSError) as exc:
                return exc

    return list(await asyncio.gather(*(parse_one(item) for item in items)))


def _match(target: str, relative_path: str, known: Dict[str, _ParsedEntry]) -> Optional[str]:
    for path in candidate_paths(target, relative_path):
        if path in known:
            return path
    return None


async def import_batch(
    inputs: Sequence[BatchImportInput],
    *,
    parser: Parser = _default_parser,
    concurrency: int = DEFAULT_CONCURRENCY,
) -> BatchImportResult:
    """
    Parse a folder upload and return its notes in root-first traversal order.

    Per-file problems never abort the batch: unparseable files land in `errors`,
    non-Markdown files and duplicate paths in `skipped`, and `contents` entries that
    match no file in `unresolved`.
    """
    result = BatchImportResult()

    markdown_inputs: List[BatchImportInput] = []
    for item in inputs:
        if is_markdown_path(item.relative_path):
            markdown_inputs.append(item)
        else:
            result.skipped.append(SkippedFile(relative_path=item.relative_path, reason="not markdown"))

    parsed = await _parse_all(markdown_inputs, parser, concurrency)

    # Merge in input order so the first occurrence of a path always wins.
    entries: Dict[str, _ParsedEntry] = {}
    for item, outcome in zip(markdown_inputs, parsed):
        normalized = normalize_path(item.relative_path)
        if normalized in entries:
            result.skipped.append(
                SkippedFile(relative_path=item.relative_path, reason="duplicate in folder")
            )
            continue
        if isinstance(outcome, Exception):
            message = str(outcome) or "Unable to parse file."
            LOG.warning(
                "Failed to parse imported file",
                extra={"extra_payload": {"path": item.relative_path, "error": message}},
            )
            result.errors.append(ImportFailure(relative_path=item.relative_path, message=message))
            continue
        note = outcome.note
        if note.source_name != item.relative_path:
            note = note.model_copy(update={"source_name": item.relative_path})
        targets = [
            parse_link(raw).target for raw in normalize_metadata_list(note.metadata.contents)
        ]
        entries[normalized] = _ParsedEntry(
            note=note,
            relative_path=item.relative_path,
            normalized_path=normalized,
            content_targets=[target for target in targets if target],
        )

    children: Dict[str, List[str]] = {}
    for entry in entries.values():
        resolved_children: Dict[str, None] = {}
        for target in entry.content_targets:
            match = _match(target, entry.relative_path, entries)
            if match:
                resolved_children[match] = None
            else:
                LOG.debug(
                    "Unresolved contents reference",
                    extra={"extra_payload": {"parent": entry.relative_path, "target": target}},
                )
                result.unresolved.append(
                    UnresolvedReference(parent=entry.relative_path, target=target)
                )
        if resolved_children:
            children[entry.normalized_path] = list(resolved_children)

    root_candidates: List[str] = []
    for entry in entries.values():
        if not normalize_metadata_list(entry.note.metadata.contents):
            continue
        part_of_targets = [
            parse_link(raw).target for raw in normalize_metadata_list(entry.note.metadata.part_of)
        ]
        if not any(_match(target, entry.relative_path, entries) for target in part_of_targets):
            root_candidates.append(entry.normalized_path)

    ordered = _traverse(root_candidates, entries, children)

    result.notes = [entries[path].note for path in ordered]
    result.roots = [entries[path].relative_path for path in root_candidates]

    LOG.info(
        "Batch import finished",
        extra={
            "extra_payload": {
                "imported": len(result.notes),
                "roots": len(result.roots),
                "errors": len(result.errors),
                "unresolved": len(result.unresolved),
                "skipped": len(result.skipped),
            }
        },
    )
    return result


def _traverse(
    roots: Sequence[str], entries: Dict[str, _ParsedEntry], children: Dict[str, List[str]]
) -> List[str]:
    """Depth-first pre-order from each root, then any unreached entry in input order."""
    visited: set[str] = set()
    ordered: List[str] = []
    for start in list(roots) + list(entries):
        stack = [start]
        while stack:
            path = stack.pop()
            if path in visited:
                continue
            visited.add(path)
            ordered.append(path)
            stack.extend(reversed(children.get(path, [])))
    return ordered
