# glt/tree.py
"""
Node arena for the resource tree.

Nodes live in a flat list and refer to each other by index. A node owns
its `children` list exclusively; `parent` is only used for navigation
(collapse-to-parent, depth) and never for lifetime.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Iterator

from glt.models import CurrentUser, Group, Project


class NodeKind(str, Enum):
    GROUP = "group"
    PROJECT = "project"
    USER_ROOT = "user"


@dataclass(slots=True)
class Node:
    kind: NodeKind
    entity: Group | Project | CurrentUser
    parent: int | None = None
    expanded: bool = False
    children_loaded: bool = False
    children: list[int] = field(default_factory=list)
    error: str | None = None

    @property
    def ident(self) -> tuple[str, int]:
        """Logical identity, stable across tree rebuilds."""
        return self.kind.value, self.entity.id

    @property
    def label(self) -> str:
        if self.kind is NodeKind.USER_ROOT:
            return self.entity.username
        return self.entity.name

    @property
    def web_url(self) -> str:
        return self.entity.web_url

    @property
    def full_path(self) -> str:
        if self.kind is NodeKind.GROUP:
            return self.entity.full_path
        if self.kind is NodeKind.PROJECT:
            return self.entity.path_with_namespace or self.entity.path
        return self.entity.username

    @property
    def last_activity_at(self) -> str | None:
        if self.kind is NodeKind.PROJECT:
            return self.entity.last_activity_at
        return None

    @property
    def expandable(self) -> bool:
        return self.kind is not NodeKind.PROJECT


class ResourceTree:
    """
    Arena of nodes for one tree generation.

    A refresh never patches an existing tree: it builds a new
    ResourceTree and the caller swaps it in.
    """

    def __init__(self) -> None:
        self.nodes: list[Node] = []
        self.roots: list[int] = []

    def __len__(self) -> int:
        return len(self.nodes)

    def __getitem__(self, index: int) -> Node:
        return self.nodes[index]

    def add(self, node: Node) -> int:
        """Append `node` and link it under its parent (or as a root)."""
        index = len(self.nodes)
        self.nodes.append(node)
        if node.parent is None:
            self.roots.append(index)
        else:
            self.nodes[node.parent].children.append(index)
        return index

    def add_group(self, group: Group, parent: int | None = None) -> int:
        return self.add(Node(kind=NodeKind.GROUP, entity=group, parent=parent))

    def add_project(self, project: Project, parent: int | None = None) -> int:
        # Projects are leaves: nothing left to fetch.
        return self.add(Node(kind=NodeKind.PROJECT, entity=project, parent=parent, children_loaded=True))

    def add_user_root(self, user: CurrentUser) -> int:
        return self.add(Node(kind=NodeKind.USER_ROOT, entity=user))

    def depth(self, index: int) -> int:
        depth = 0
        parent = self.nodes[index].parent
        while parent is not None:
            depth += 1
            parent = self.nodes[parent].parent
        return depth

    def ancestors(self, index: int) -> Iterator[int]:
        parent = self.nodes[index].parent
        while parent is not None:
            yield parent
            parent = self.nodes[parent].parent

    def find(self, ident: tuple[str, int]) -> int | None:
        """Return the first node index with the given identity, if any."""
        for index, node in enumerate(self.nodes):
            if node.ident == ident:
                return index
        return None

    def count(self, kind: NodeKind) -> int:
        return sum(1 for node in self.nodes if node.kind is kind)
