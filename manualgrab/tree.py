"""Table-of-contents model and the flattened save plan.

The portal hands us either a nested tree (``ContentNode``) or a flat
alphabetical list (``FlatDocumentEntry``).  Both are reduced to the same
ordered list of :class:`PlanStep` so that one code path saves them.
"""

from __future__ import annotations

import enum
import re
from dataclasses import dataclass, field
from pathlib import PurePosixPath
from typing import Callable, Iterable, Iterator

#: Regex for characters that are unsafe in filenames on any major OS.
UNSAFE_FILENAME = re.compile(r'[<>:"/\\|?*\x00-\x1f]')
MAX_NAME_LENGTH = 120


class NodeKind(str, enum.Enum):
    CATEGORY = "category"
    DOCUMENT = "document"


@dataclass
class ContentNode:
    id: str
    title: str
    kind: NodeKind = NodeKind.CATEGORY
    children: list[ContentNode] = field(default_factory=list)
    source_ref: str | None = None

    def walk(self) -> Iterator[ContentNode]:
        """Yield this node and its descendants in pre-order."""
        yield self
        for child in self.children:
            yield from child.walk()


@dataclass
class FlatDocumentEntry:
    title: str
    source_ref: str
    group_label: str = ""

    def to_dict(self) -> dict[str, str]:
        return {
            "title": self.title,
            "sourceRef": self.source_ref,
            "groupLabel": self.group_label,
        }


@dataclass(frozen=True)
class PlanStep:
    """One node to materialize on disk.

    For categories *rel_path* is a directory; for documents it is the
    artifact base path without extension.
    """

    node_id: str
    kind: NodeKind
    rel_path: PurePosixPath
    url: str | None = None


def safe_name(title: str, fallback: str = "untitled") -> str:
    """Return a filesystem-safe version of *title*."""
    name = UNSAFE_FILENAME.sub("_", title or "")
    name = " ".join(name.split()).strip("_ .")
    if len(name) > MAX_NAME_LENGTH:
        name = name[:MAX_NAME_LENGTH].rstrip("_ .")
    return name or fallback


class _NameAllocator:
    """Hands out unique names within one directory."""

    def __init__(self) -> None:
        self._seen: dict[str, int] = {}

    def take(self, name: str) -> str:
        key = name.lower()
        count = self._seen.get(key, 0) + 1
        self._seen[key] = count
        if count == 1:
            return name
        return self.take(f"{name} ({count})")


def plan_tree(root: ContentNode, resolve_url: Callable[[str], str]) -> list[PlanStep]:
    """Flatten *root* into pre-order steps.

    A category root maps onto the output directory itself (``"."``); every
    other category becomes a directory under its parent.
    """
    steps: list[PlanStep] = []

    def visit(node: ContentNode, parent: PurePosixPath) -> None:
        names = _NameAllocator()
        for child in node.children:
            rel = parent / names.take(safe_name(child.title, fallback=child.id))
            if child.kind is NodeKind.DOCUMENT:
                url = resolve_url(child.source_ref) if child.source_ref else None
                steps.append(PlanStep(child.id, NodeKind.DOCUMENT, rel, url))
            else:
                steps.append(PlanStep(child.id, NodeKind.CATEGORY, rel))
                visit(child, rel)

    if root.kind is NodeKind.DOCUMENT:
        url = resolve_url(root.source_ref) if root.source_ref else None
        rel = PurePosixPath(safe_name(root.title, fallback=root.id))
        return [PlanStep(root.id, NodeKind.DOCUMENT, rel, url)]
    steps.append(PlanStep(root.id, NodeKind.CATEGORY, PurePosixPath()))
    visit(root, PurePosixPath())
    return steps


def entry_basename(entry: FlatDocumentEntry) -> str:
    if entry.group_label:
        return safe_name(f"{entry.group_label} - {entry.title}")
    return safe_name(entry.title)


def plan_index(
    entries: Iterable[FlatDocumentEntry], resolve_url: Callable[[str], str]
) -> list[PlanStep]:
    """Flatten the legacy alphabetical list; every file lands in the root."""
    names = _NameAllocator()
    steps = []
    for position, entry in enumerate(entries):
        rel = PurePosixPath(names.take(entry_basename(entry)))
        steps.append(
            PlanStep(str(position), NodeKind.DOCUMENT, rel, resolve_url(entry.source_ref))
        )
    return steps


def count_nodes(root: ContentNode) -> int:
    return sum(1 for _ in root.walk())
