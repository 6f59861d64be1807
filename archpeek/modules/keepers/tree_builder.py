"""Hierarchical tree construction from flat archive entry lists."""

from __future__ import annotations

import locale
import re
from dataclasses import dataclass
from datetime import datetime
from typing import Iterable, Iterator, Optional

from archpeek.modules.finders.archive_entry import ArchiveEntry


_DIGIT_RUN = re.compile(r"(\d+)")


@dataclass
class TreeNode:
    """
    One node of the preview hierarchy.

    ``children`` is a list for directories and ``None`` for files. Every node
    owns its children; there are no parent references.
    """

    name: str
    is_directory: bool
    size: Optional[int] = None
    modification_date: Optional[datetime] = None
    children: Optional[list[TreeNode]] = None

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        data = {
            "name": self.name,
            "is_directory": self.is_directory,
            "size": self.size,
            "modification_date": (
                self.modification_date.isoformat() if self.modification_date else None
            ),
        }
        if self.children is not None:
            data["children"] = [child.to_dict() for child in self.children]
        return data


def use_system_collation() -> None:
    """Sort names by the user's collation locale instead of the C default."""
    try:
        locale.setlocale(locale.LC_COLLATE, "")
    except locale.Error:
        # Unset or missing locale: code-point order stays in effect
        pass


def name_sort_key(name: str) -> tuple:
    """Locale-aware, case-insensitive key that orders digit runs numerically."""
    parts = []
    for index, chunk in enumerate(_DIGIT_RUN.split(name.casefold())):
        if not chunk:
            continue
        if index % 2:
            parts.append((0, int(chunk), ""))
        else:
            parts.append((1, 0, locale.strxfrm(chunk)))
    return tuple(parts)


def child_sort_key(node: TreeNode) -> tuple:
    """Directories first, then natural name order; raw name breaks ties."""
    return (not node.is_directory, name_sort_key(node.name), node.name)


def sort_tree(nodes: list[TreeNode]) -> None:
    """Recursively sort ``nodes`` and all descendants in place."""
    nodes.sort(key=child_sort_key)
    for node in nodes:
        if node.children:
            sort_tree(node.children)


def _entry_components(entry: ArchiveEntry) -> list[str]:
    path = entry.path.rstrip("/") if entry.is_directory else entry.path
    return [part for part in path.split("/") if part]


def build_tree(entries: Iterable[ArchiveEntry]) -> list[TreeNode]:
    """
    Build a sorted forest of TreeNode from flat entries.

    Missing intermediate directories are synthesized without size or date.
    Nodes are looked up by full path, so an entry seen twice (or a directory
    listed after its children) reuses the existing node.
    """
    root = TreeNode(name="", is_directory=True, children=[])
    node_map: dict[str, TreeNode] = {"": root}

    for entry in entries:
        components = _entry_components(entry)
        if not components:
            continue

        parent = root
        current_path = ""
        for index, component in enumerate(components):
            is_last = index == len(components) - 1
            part_path = f"{current_path}/{component}" if current_path else component

            node = node_map.get(part_path)
            if node is None:
                is_dir = entry.is_directory if is_last else True
                node = TreeNode(
                    name=component,
                    is_directory=is_dir,
                    size=entry.uncompressed_size if is_last and not is_dir else None,
                    modification_date=entry.modification_date if is_last else None,
                    children=[] if is_dir else None,
                )
                parent.children.append(node)
                node_map[part_path] = node
            elif is_last and entry.is_directory and node.is_directory:
                if node.modification_date is None:
                    node.modification_date = entry.modification_date
            elif not is_last and not node.is_directory:
                # A file path reused as a parent becomes a directory
                node.is_directory = True
                node.size = None
                node.children = []

            parent = node
            current_path = part_path

    sort_tree(root.children)
    return root.children


def iter_tree_paths(nodes: list[TreeNode], prefix: str = "") -> Iterator[tuple[str, TreeNode]]:
    """Yield ``(full_path, node)`` for every node, depth first."""
    for node in nodes:
        path = f"{prefix}/{node.name}" if prefix else node.name
        yield path, node
        if node.children:
            yield from iter_tree_paths(node.children, path)


def count_nodes(nodes: list[TreeNode]) -> tuple[int, int]:
    """Return (directories, files) below ``nodes``."""
    directories = files = 0
    for _, node in iter_tree_paths(nodes):
        if node.is_directory:
            directories += 1
        else:
            files += 1
    return directories, files
