"""
Command-line entry point: import a folder of Diaryx notes and print its hierarchy.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional

from .batch_import import BatchImportResult, import_batch
from .config import ConfigurationError, Settings, load_settings
from .logging_setup import configure_logging
from .models import BatchImportInput
from .tree import NoteTree, TreeNode, build_note_tree

LOG = logging.getLogger(__name__)


def parse_args(argv: list[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Reconstruct the note tree of a folder of Diaryx Markdown files."
    )
    parser.add_argument(
        "path",
        nargs="?",
        type=Path,
        help="Folder to import. Defaults to DIARYX_NOTES_PATH.",
    )
    parser.add_argument(
        "--json",
        action="store_true",
        help="Print the tree and import diagnostics as JSON.",
    )
    parser.add_argument(
        "--report",
        action="store_true",
        help="Write a Markdown import report to REPORT_DIR.",
    )
    parser.add_argument(
        "--env-file",
        type=Path,
        default=None,
        help="Load settings from this .env file.",
    )
    return parser.parse_args(argv)


def collect_inputs(folder: Path, include_hidden: bool = False) -> List[BatchImportInput]:
    """List every file under `folder` with its folder-relative POSIX path."""
    inputs: List[BatchImportInput] = []
    for path in sorted(folder.rglob("*")):
        if not path.is_file():
            continue
        relative = path.relative_to(folder)
        if not include_hidden and _is_hidden(relative):
            continue
        inputs.append(BatchImportInput(file=path, relative_path=relative.as_posix()))
    return inputs


def _is_hidden(relative: Path) -> bool:
    return any(part.startswith(".") for part in relative.parts)


def display_name(node: TreeNode) -> str:
    return node.note.metadata.title or node.note.source_name or node.note.id


def render_outline(tree: NoteTree) -> str:
    return "\n".join(f"{'  ' * depth}- {display_name(node)}" for depth, node in tree.walk())


def tree_to_dict(node: TreeNode) -> Dict[str, Any]:
    return {
        "id": node.note.id,
        "title": node.note.metadata.title,
        "source_name": node.note.source_name,
        "children": [tree_to_dict(child) for child in node.children],
    }


def result_to_dict(result: BatchImportResult, tree: NoteTree) -> Dict[str, Any]:
    return {
        "roots": result.roots,
        "tree": [tree_to_dict(root) for root in tree.roots],
        "errors": [str(error) for error in result.errors],
        "unresolved": [item.model_dump() for item in result.unresolved],
        "skipped": [str(item) for item in result.skipped],
    }


def log_diagnostics(result: BatchImportResult) -> None:
    for error in result.errors:
        LOG.warning(
            "File could not be imported",
            extra={"extra_payload": {"path": error.relative_path, "error": error.message}},
        )
    for item in result.unresolved:
        LOG.warning(
            "Contents entry did not match any file",
            extra={"extra_payload": {"parent": item.parent, "target": item.target}},
        )
    for skipped in result.skipped:
        LOG.info(
            "File skipped",
            extra={"extra_payload": {"path": skipped.relative_path, "reason": skipped.reason}},
        )


def write_import_report(result: BatchImportResult, tree: NoteTree, directory: Path) -> Path:
    directory.mkdir(parents=True, exist_ok=True)
    timestamp = datetime.now(tz=timezone.utc).strftime("%Y%m%dT%H%M%SZ")
    path = directory / f"import_{timestamp}.md"

    lines = [
        "# Import Report",
        "",
        f"Generated at {datetime.now(tz=timezone.utc).isoformat()}",
        "",
        f"Imported notes: {len(result.notes)}",
        "",
        "## Tree",
        "",
        render_outline(tree) or "_empty_",
        "",
    ]
    if result.errors:
        lines.extend(["## Errors", ""])
        lines.extend(f"- `{error.relative_path}`: {error.message}" for error in result.errors)
        lines.append("")
    if result.unresolved:
        lines.extend(["## Unresolved references", ""])
        lines.extend(f"- `{item.parent}` → {item.target}" for item in result.unresolved)
        lines.append("")
    if result.skipped:
        lines.extend(["## Skipped", ""])
        lines.extend(f"- `{item.relative_path}` ({item.reason})" for item in result.skipped)
        lines.append("")

    path.write_text("\n".join(lines), encoding="utf-8")
    return path


def run(folder: Path, settings: Settings) -> tuple[BatchImportResult, NoteTree]:
    inputs = collect_inputs(folder, include_hidden=settings.include_hidden)
    result = asyncio.run(import_batch(inputs, concurrency=settings.import_concurrency))
    return result, build_note_tree(result.notes)


def main(argv: Optional[list[str]] = None) -> int:
    args = parse_args(sys.argv[1:] if argv is None else argv)

    try:
        settings = load_settings(args.env_file)
    except (ConfigurationError, FileNotFoundError) as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 2
    configure_logging(settings.log_level)

    folder = args.path or settings.notes_path
    if folder is None or not folder.is_dir():
        LOG.error(
            "Notes folder not found",
            extra={"extra_payload": {"path": str(folder) if folder else None}},
        )
        return 2

    result, tree = run(folder, settings)
    log_diagnostics(result)

    if args.json:
        print(json.dumps(result_to_dict(result, tree), indent=2, ensure_ascii=False))
    else:
        print(render_outline(tree))

    if args.report:
        report_path = write_import_report(result, tree, settings.report_dir)
        LOG.info(
            "Import report written",
            extra={"extra_payload": {"report_path": str(report_path)}},
        )

    return 0


if __name__ == "__main__":  # pragma: no cover - CLI entry
    raise SystemExit(main())
