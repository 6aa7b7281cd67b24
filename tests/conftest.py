"""Shared fixtures: an in-memory GitLab and a loader driven by the test."""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

import pytest

from glt.builder import TreeBuilder
from glt.cache import CacheStore
from glt.config import ApiFilters
from glt.exceptions import FetchError
from glt.loader import LoadResult
from glt.models import CurrentUser, Group, Page, Project
from glt.navigation import Navigator


def make_group(id: int, name: str, parent_id: int | None = None) -> Group:
    return Group(
        id=id,
        name=name,
        path=name.lower(),
        full_path=name.lower(),
        parent_id=parent_id,
        visibility="private",
        web_url=f"https://gitlab.example.com/{name.lower()}",
    )


def make_project(
        id: int,
        name: str,
        namespace_id: int,
        *,
        kind: str = "group",
        last_activity_at: str | None = None,
) -> Project:
    return Project(
        id=id,
        name=name,
        path=name.lower(),
        namespace_id=namespace_id,
        visibility="private",
        web_url=f"https://gitlab.example.com/ns{namespace_id}/{name.lower()}",
        last_activity_at=last_activity_at,
        path_with_namespace=f"ns{namespace_id}/{name.lower()}",
        namespace_kind=kind,
    )


class FakeFetcher:
    """
    In-memory Fetcher.

    Listings are sliced into pages of `filters.per_page`. Every call is
    recorded as (endpoint, parent_id, page); `fail()` makes a given call
    raise until `heal()` is called.
    """

    def __init__(
            self,
            *,
            user: CurrentUser | None = None,
            groups: list[Group] | None = None,
            subgroups: dict[int, list[Group]] | None = None,
            projects: dict[int, list[Project]] | None = None,
            user_projects: list[Project] | None = None,
    ) -> None:
        self.user = user or CurrentUser(id=1, username="alice", namespace_id=100)
        self.groups = groups or []
        self.subgroups = subgroups or {}
        self.projects = projects or {}
        self.user_projects = user_projects or []
        self.calls: list[tuple[str, int | None, int]] = []
        self.errors: dict[tuple[str, int | None, int], FetchError] = {}

    def fail(self, endpoint: str, parent_id: int | None, page: int, error: FetchError) -> None:
        self.errors[(endpoint, parent_id, page)] = error

    def heal(self) -> None:
        self.errors.clear()

    def _page(self, endpoint: str, parent_id: int | None, items: list[Any], filters: ApiFilters, page: int) -> Page:
        key = (endpoint, parent_id, page)
        self.calls.append(key)
        if key in self.errors:
            raise self.errors[key]
        start = (page - 1) * filters.per_page
        return Page(items=tuple(items[start:start + filters.per_page]), number=page)

    def calls_to(self, endpoint: str) -> list[tuple[str, int | None, int]]:
        return [c for c in self.calls if c[0] == endpoint]

    def instance_id(self) -> str:
        return "gitlab_example_com"

    def current_user(self) -> CurrentUser:
        return self.user

    def fetch_groups(self, filters: ApiFilters, page: int) -> Page:
        return self._page("groups", None, self.groups, filters, page)

    def fetch_subgroups(self, parent_id: int, filters: ApiFilters, page: int) -> Page:
        return self._page("subgroups", parent_id, self.subgroups.get(parent_id, []), filters, page)

    def fetch_projects(self, group_id: int, filters: ApiFilters, page: int) -> Page:
        return self._page("projects", group_id, self.projects.get(group_id, []), filters, page)

    def fetch_user_projects(self, filters: ApiFilters, page: int) -> Page:
        return self._page("user_projects", None, self.user_projects, filters, page)


class ManualLoader:
    """Loader that holds submitted jobs until `run_all()` is called."""

    def __init__(self) -> None:
        self.submitted: list[tuple[int, int | None, Callable[[], Any]]] = []
        self._results: list[LoadResult] = []
        self.closed = False

    def submit(self, generation: int, index: int | None, job: Callable[[], Any]) -> None:
        self.submitted.append((generation, index, job))

    def run_all(self) -> None:
        for generation, index, job in self.submitted:
            try:
                self._results.append(LoadResult(generation, index, payload=job()))
            except FetchError as err:
                self._results.append(LoadResult(generation, index, error=err))
        self.submitted.clear()

    def drain_results(self) -> list[LoadResult]:
        results, self._results = self._results, []
        return results

    def close(self) -> None:
        self.closed = True


@pytest.fixture
def filters() -> ApiFilters:
    return ApiFilters(per_page=2)


@pytest.fixture
def fetcher() -> FakeFetcher:
    return FakeFetcher(
        groups=[make_group(1, "acme"), make_group(2, "beta"), make_group(3, "core", parent_id=1)],
        subgroups={1: [make_group(3, "core", parent_id=1)]},
        projects={
            1: [make_project(10, "api", 1), make_project(11, "web", 1)],
            2: [make_project(20, "docs", 2)],
            3: [make_project(30, "lib", 3)],
        },
        user_projects=[make_project(40, "dotfiles", 100, kind="user")],
    )


@pytest.fixture
def builder(fetcher: FakeFetcher, filters: ApiFilters) -> TreeBuilder:
    return TreeBuilder(fetcher, CacheStore.disabled(), filters)


@pytest.fixture
def manual_loader() -> ManualLoader:
    return ManualLoader()


def row_labels(navigator: Navigator) -> list[str]:
    return [navigator.tree[row.index].label for row in navigator.rows]


def select_label(navigator: Navigator, label: str) -> None:
    """Move the selection onto the first row showing `label`."""
    for position, row in enumerate(navigator.rows):
        if navigator.tree[row.index].label == label:
            navigator._set_selected(position)
            return
    raise AssertionError(f"{label!r} is not visible")
