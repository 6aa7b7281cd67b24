# glt/builder.py
from __future__ import annotations

import logging
from typing import Callable

from glt.cache import GROUPS, PROJECTS, SUBGROUPS, USER_PROJECTS, CacheStore, query_signature
from glt.config import ApiFilters
from glt.exceptions import FetchError
from glt.fetcher import Fetcher
from glt.models import CurrentUser, Entity, Group, Page, Project
from glt.tree import NodeKind, ResourceTree

logger = logging.getLogger("gitlab_tree.builder")

PageCallback = Callable[[str, Page], None]


class TreeBuilder:
    """
    Turns fetched or cached pages into tree nodes.

    Fetching (`fetch_children`, `build_tree`) never touches an existing
    tree and may run on the background worker. Attaching
    (`attach_children`) mutates the tree and belongs to the foreground.
    """

    def __init__(
            self,
            fetcher: Fetcher,
            cache: CacheStore,
            filters: ApiFilters,
            *,
            scope: str | None = None,
    ) -> None:
        self.fetcher = fetcher
        self.cache = cache
        self.filters = filters
        self.scope = fetcher.instance_id() if scope is None else scope

    def _call(self, endpoint: str, parent_id: int | None, number: int) -> Page:
        match endpoint:
            case "groups":
                return self.fetcher.fetch_groups(self.filters, number)
            case "subgroups":
                return self.fetcher.fetch_subgroups(parent_id, self.filters, number)
            case "projects":
                return self.fetcher.fetch_projects(parent_id, self.filters, number)
            case "user_projects":
                return self.fetcher.fetch_user_projects(self.filters, number)
            case _:
                raise ValueError(f"Unknown endpoint: {endpoint}")

    def fetch_page(self, endpoint: str, parent_id: int | None, number: int) -> Page:
        """Return one page, from the cache when fresh, else from the API (write-through)."""
        signature = query_signature(endpoint, parent_id, self.filters, number, self.scope)
        cached = self.cache.get(signature)
        if cached is not None:
            return cached.page

        page = self._call(endpoint, parent_id, number)
        self.cache.put(signature, page)
        return page

    def load_pages(
            self,
            endpoint: str,
            parent_id: int | None = None,
            on_page: PageCallback | None = None,
    ) -> list[Entity]:
        """
        Page through an endpoint until the listing is exhausted.

        Stops on an empty page or on a page shorter than `per_page`. If any
        page fails, the pages collected so far are discarded and a single
        FetchError is raised for the whole listing.
        """
        items: list[Entity] = []
        number = 1
        while True:
            try:
                page = self.fetch_page(endpoint, parent_id, number)
            except FetchError as err:
                if number == 1:
                    raise
                logger.warning(
                    "Listing %s (parent=%s) failed on page %s; discarding %s items.",
                    endpoint, parent_id, number, len(items),
                )
                raise type(err)(
                    f"{err.args[0]} (page {number}; {len(items)} items discarded)",
                    status=err.status,
                ) from err

            items.extend(page.items)
            if on_page is not None:
                on_page(endpoint, page)
            if not page.items or len(page.items) < self.filters.per_page:
                break
            number += 1

        logger.debug("Listed %s %s (parent=%s) in %s page(s).", len(items), endpoint, parent_id, number)
        return items

    def personal_projects(self, user: CurrentUser, on_page: PageCallback | None = None) -> list[Project]:
        """
        Projects living in the user's personal namespace.

        The personal listing may contain projects the user owns inside
        groups; those are dropped by namespace id and kind, never by
        comparing names or paths.
        """
        projects = self.load_pages(USER_PROJECTS, on_page=on_page)
        personal = [
            p for p in projects
            if p.namespace_id == user.namespace_id and p.namespace_kind != "group"
        ]
        if len(personal) != len(projects):
            logger.debug("Dropped %s group-owned projects from the personal listing.", len(projects) - len(personal))
        return personal

    def fetch_children(self, tree: ResourceTree, index: int) -> list[Entity]:
        node = tree[index]
        match node.kind:
            case NodeKind.GROUP:
                subgroups = self.load_pages(SUBGROUPS, node.entity.id)
                projects = self.load_pages(PROJECTS, node.entity.id)
                return [*subgroups, *projects]
            case NodeKind.USER_ROOT:
                return list(self.personal_projects(node.entity))
            case _:
                return []

    @staticmethod
    def attach_children(tree: ResourceTree, index: int, entities: list[Entity]) -> None:
        node = tree[index]
        if node.children_loaded:
            return

        seen: set[tuple[type, int]] = set()
        for entity in entities:
            key = (type(entity), entity.id)
            if key in seen:
                continue
            seen.add(key)
            if isinstance(entity, Group):
                tree.add_group(entity, parent=index)
            else:
                tree.add_project(entity, parent=index)

        node.children_loaded = True
        node.error = None

    def ensure_children_loaded(self, tree: ResourceTree, index: int) -> None:
        """Fetch and attach the children of `index` unless already loaded."""
        if tree[index].children_loaded:
            return
        self.attach_children(tree, index, self.fetch_children(tree, index))

    def build_user_root(
            self,
            tree: ResourceTree,
            user: CurrentUser,
            on_page: PageCallback | None = None,
    ) -> int:
        """Add the personal-projects root with its projects already loaded."""
        index = tree.add_user_root(user)
        self.attach_children(tree, index, list(self.personal_projects(user, on_page)))
        return index

    def build_tree(self, on_page: PageCallback | None = None) -> ResourceTree:
        """
        Build a fresh tree: top-level groups followed by the user root.

        A group is a root when its parent is absent from the listing; groups
        nested under a listed parent show up when that parent is expanded.
        If the personal projects cannot be listed the user root is kept
        collapsed with an error so it can be retried by expanding it.
        """
        groups = self.load_pages(GROUPS, on_page=on_page)
        listed = {g.id for g in groups}

        tree = ResourceTree()
        seen: set[int] = set()
        for group in groups:
            if group.id in seen:
                continue
            seen.add(group.id)
            if group.parent_id is None or group.parent_id not in listed:
                tree.add_group(group)

        user = self.fetcher.current_user()
        try:
            self.build_user_root(tree, user, on_page)
        except FetchError as err:
            logger.warning("Personal projects unavailable: %s", err)
            tree[tree.roots[-1]].error = str(err)

        logger.info("Built tree: %s root(s), %s node(s).", len(tree.roots), len(tree))
        return tree

    def rebuild_tree(self) -> ResourceTree:
        """Full refresh: drop cached pages so every level is fetched from the API again."""
        self.cache.clear()
        return self.build_tree()
