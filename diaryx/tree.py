"""
Reconstruct the note hierarchy from `contents` and `part_of` references.

Every call builds a fresh tree; input notes are only read. Parent assignment is
single-valued per child and the first claim wins, in this order of precedence:

1. `contents` declarations, in input order of the declaring note and then in
   declaration order within it.
2. The note's own `part_of` entries, first resolvable entry only, for notes that
   no `contents` list claimed.

A claim that would make a note its own parent or ancestor is dropped, so the result
is always a forest. A note that is listed in someone's `contents` keeps that parent
even if its own `part_of` names a different note.
"""

from __future__ import annotations

import logging
import sys
from dataclasses import dataclass, field
from typing import Dict, Iterator, List, Optional, Sequence, Set, Tuple

from .links import ContentLink, ReferenceIndex, build_reference_index, parse_link
from .metadata import normalize_metadata_list
from .models import DiaryxNote

LOG = logging.getLogger(__name__)

UNDECLARED_POSITION = sys.maxsize


@dataclass(eq=False)
class TreeNode:
    note: DiaryxNote
    children: List["TreeNode"] = field(default_factory=list)
    content_links: List[ContentLink] = field(default_factory=list)
    parent_id: Optional[str] = None

    @property
    def id(self) -> str:
        return self.note.id


@dataclass
class NoteTree:
    roots: List[TreeNode]
    nodes_by_id: Dict[str, TreeNode]
    parent_by_id: Dict[str, str]

    def walk(self) -> Iterator[Tuple[int, TreeNode]]:
        """Yield `(depth, node)` pairs depth-first, roots and children in display order."""
        stack: List[Tuple[int, TreeNode]] = [(0, root) for root in reversed(self.roots)]
        while stack:
            depth, node = stack.pop()
            yield depth, node
            stack.extend((depth + 1, child) for child in reversed(node.children))

    def ancestors(self, note_id: str) -> List[str]:
        """Return parent ids from the nearest parent up to the root."""
        chain: List[str] = []
        current = self.parent_by_id.get(note_id)
        while current is not None:
            chain.append(current)
            current = self.parent_by_id.get(current)
        return chain


def _closes_cycle(parent_by_id: Dict[str, str], child_id: str, parent_id: str) -> bool:
    """True if making `parent_id` the parent of `child_id` would form a loop."""
    current: Optional[str] = parent_id
    while current is not None:
        if current == child_id:
            return True
        current = parent_by_id.get(current)
    return False


def parse_links(value: object) -> List[ContentLink]:
    return [parse_link(raw) for raw in normalize_metadata_list(value)]


def build_note_tree(notes: Sequence[DiaryxNote]) -> NoteTree:
    """Build the parent/child forest for an ordered collection of notes."""
    index: ReferenceIndex = build_reference_index(notes)
    order_index: Dict[str, int] = {}
    nodes_by_id: Dict[str, TreeNode] = {}
    for position, note in enumerate(notes):
        order_index.setdefault(note.id, position)
        nodes_by_id[note.id] = TreeNode(note=note, content_links=parse_links(note.metadata.contents))

    # Resolved children per parent, in declaration order, plus each pair's first position.
    declared_children: Dict[str, List[str]] = {}
    declared_position: Dict[Tuple[str, str], int] = {}
    for parent_id, node in nodes_by_id.items():
        for position, link in enumerate(node.content_links):
            child_id = index.resolve(link)
            if not child_id or child_id == parent_id:
                continue
            declared_children.setdefault(parent_id, []).append(child_id)
            declared_position.setdefault((parent_id, child_id), position)

    parent_by_id: Dict[str, str] = {}
    for parent_id, child_ids in declared_children.items():
        for child_id in child_ids:
            if child_id not in parent_by_id and not _closes_cycle(parent_by_id, child_id, parent_id):
                parent_by_id[child_id] = parent_id

    for note_id, node in nodes_by_id.items():
        if note_id in parent_by_id:
            continue
        for link in parse_links(node.note.metadata.part_of):
            parent_id = index.resolve(link)
            if parent_id and not _closes_cycle(parent_by_id, note_id, parent_id):
                parent_by_id[note_id] = parent_id
                break

    for note_id, node in nodes_by_id.items():
        node.parent_id = parent_by_id.get(note_id)

    attached: Dict[str, Set[str]] = {}

    def attach(parent_id: str, child_id: str) -> None:
        seen = attached.setdefault(parent_id, set())
        if child_id not in seen:
            seen.add(child_id)
            nodes_by_id[parent_id].children.append(nodes_by_id[child_id])

    for parent_id, child_ids in declared_children.items():
        for child_id in child_ids:
            if parent_by_id.get(child_id) == parent_id:
                attach(parent_id, child_id)

    for child_id, parent_id in parent_by_id.items():
        attach(parent_id, child_id)

    for parent_id, node in nodes_by_id.items():
        if len(node.children) > 1:
            node.children.sort(
                key=lambda child, parent_id=parent_id: (
                    declared_position.get((parent_id, child.id), UNDECLARED_POSITION),
                    order_index[child.id],
                )
            )

    roots = [node for note_id, node in nodes_by_id.items() if note_id not in parent_by_id]
    roots.sort(key=lambda node: order_index[node.id])

    LOG.debug(
        "Built note tree",
        extra={
            "extra_payload": {
                "notes": len(nodes_by_id),
                "roots": len(roots),
                "links": len(parent_by_id),
            }
        },
    )
    return NoteTree(roots=roots, nodes_by_id=nodes_by_id, parent_by_id=parent_by_id)
