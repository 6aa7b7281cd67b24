# glt/projection.py
"""Sibling ordering and the visible-row projection handed to renderers."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum

from glt.tree import Node, NodeKind, ResourceTree


class SortKey(str, Enum):
    NAME = "name"
    RECENT_ACTIVITY = "recent_activity"


class MatchMode(str, Enum):
    FUZZY = "fuzzy"
    SUBSTRING = "substring"


@dataclass(frozen=True, slots=True)
class Row:
    """One visible row: arena index, depth and display flags."""
    index: int
    depth: int
    is_expanded: bool
    is_match: bool = False
    score: int | None = None


_KIND_RANK = {NodeKind.GROUP: 0, NodeKind.PROJECT: 1, NodeKind.USER_ROOT: 2}


def _activity_timestamp(value: str | None) -> float | None:
    if not value:
        return None
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00")).timestamp()
    except ValueError:
        return None


def node_sort_key(node: Node, key: SortKey) -> tuple:
    tie = (node.entity.id, _KIND_RANK[node.kind])
    if key is SortKey.RECENT_ACTIVITY:
        ts = _activity_timestamp(node.last_activity_at)
        if ts is None:
            return (1, 0.0, *tie)
        return (0, -ts, *tie)
    return (node.label.casefold(), *tie)


def sort_children(tree: ResourceTree, indices: list[int], key: SortKey) -> list[int]:
    """Order siblings by `key`; ties break by id then kind, so the result is total and idempotent."""
    return sorted(indices, key=lambda i: node_sort_key(tree[i], key))


def fuzzy_score(query: str, candidate: str) -> int | None:
    """
    Score `query` as a subsequence of `candidate`, or None when it is not one.

    Contiguous runs and word-boundary hits add points, gaps and long
    candidates cost points, and an early first hit earns a small bonus.
    """
    if not query:
        return 0
    query_folded = query.casefold()
    candidate_folded = candidate.casefold()

    score = 0
    prev_idx = -1
    first_idx = -1
    run = 0
    for needle in query_folded:
        idx = candidate_folded.find(needle, prev_idx + 1)
        if idx < 0:
            return None
        if first_idx < 0:
            first_idx = idx
        if idx == prev_idx + 1:
            run += 1
            score += 20 + min(16, run * 4)
        else:
            gap = idx - prev_idx - 1
            run = 0
            score -= min(40, gap * 2)
        if idx == 0 or candidate_folded[idx - 1] in "/_- .":
            score += 35
        prev_idx = idx

    score += max(0, 10 - first_idx)
    score -= len(candidate_folded) // 5
    return score


def substring_index(query: str, candidate: str) -> int | None:
    if not query:
        return 0
    idx = candidate.casefold().find(query.casefold())
    if idx < 0:
        return None
    return idx


def match_score(term: str, label: str, mode: MatchMode) -> int | None:
    if mode is MatchMode.SUBSTRING:
        idx = substring_index(term, label)
        return None if idx is None else 10_000 - idx * 50 - len(label)
    return fuzzy_score(term, label)


def project_rows(
        tree: ResourceTree,
        sort_key: SortKey = SortKey.NAME,
        term: str = "",
        mode: MatchMode = MatchMode.FUZZY,
) -> list[Row]:
    """
    Flatten the tree into the rows eligible for rendering.

    Without a term this is every root plus the children of expanded nodes.
    With a term, a node is kept when its label matches or any loaded
    descendant matches; ancestors of matches are expanded in the rows only,
    the tree's own `expanded` flags are left untouched.
    """
    rows: list[Row] = []
    needle = term.strip()

    if not needle:
        def walk(index: int, depth: int) -> None:
            node = tree[index]
            rows.append(Row(index, depth, node.expanded and node.children_loaded))
            if node.expanded:
                for child in sort_children(tree, node.children, sort_key):
                    walk(child, depth + 1)

        for root in sort_children(tree, tree.roots, sort_key):
            walk(root, 0)
        return rows

    own: dict[int, int | None] = {}
    best: dict[int, int | None] = {}

    def score(index: int) -> int | None:
        node = tree[index]
        own[index] = match_score(needle, node.label, mode)
        candidates = [s for s in (score(c) for c in node.children) if s is not None]
        if own[index] is not None:
            candidates.append(own[index])
        best[index] = max(candidates) if candidates else None
        return best[index]

    for root in tree.roots:
        score(root)

    def ordered(indices: list[int]) -> list[int]:
        kept = sort_children(tree, [i for i in indices if best[i] is not None], sort_key)
        if mode is MatchMode.FUZZY:
            kept.sort(key=lambda i: -best[i])
        return kept

    def emit(index: int, depth: int) -> None:
        children = ordered(tree[index].children)
        rows.append(Row(index, depth, bool(children), own[index] is not None, own[index]))
        for child in children:
            emit(child, depth + 1)

    for root in ordered(tree.roots):
        emit(root, 0)
    return rows
