"""Tests for the resource records and tree nodes."""

import pytest

from conftest import make_group, make_project
from glt.exceptions import MalformedResponseError
from glt.models import CurrentUser, Group, Project
from glt.tree import NodeKind, ResourceTree


class TestGroup:
    """Tests for Group."""

    def test_from_api(self) -> None:
        group = Group.from_api(
            {"id": "3", "name": "Core", "path": "core", "full_path": "acme/core", "parent_id": 1}
        )
        assert group == Group(3, "Core", "core", "acme/core", 1, "", "")

    def test_missing_field(self) -> None:
        with pytest.raises(MalformedResponseError, match="full_path"):
            Group.from_api({"id": 1, "name": "acme", "path": "acme"})

    def test_dict_round_trip(self) -> None:
        group = make_group(2, "beta", parent_id=1)
        assert Group.from_dict(group.to_dict()) == group


class TestProject:
    """Tests for Project."""

    def test_namespace_without_id(self) -> None:
        payload = {"id": 1, "name": "api", "path": "api", "namespace": {"kind": "group"}}
        with pytest.raises(MalformedResponseError):
            Project.from_api(payload)

    def test_dict_round_trip(self) -> None:
        project = make_project(10, "api", 1, last_activity_at="2024-05-01T10:00:00Z")
        assert Project.from_dict(project.to_dict()) == project


class TestNode:
    """Tests for node identity and display fields."""

    def test_ident_is_kind_and_id(self) -> None:
        tree = ResourceTree()
        g = tree.add_group(make_group(7, "acme"))
        p = tree.add_project(make_project(7, "acme", 7), parent=g)
        u = tree.add_user_root(CurrentUser(id=7, username="acme", namespace_id=70))
        assert {tree[i].ident for i in (g, p, u)} == {("group", 7), ("project", 7), ("user", 7)}
        assert tree.find(("project", 7)) == p

    def test_projects_are_loaded_leaves(self) -> None:
        tree = ResourceTree()
        p = tree.add_project(make_project(1, "api", 1))
        node = tree[p]
        assert node.kind is NodeKind.PROJECT
        assert node.children_loaded is True
        assert node.expandable is False
        assert node.full_path == "ns1/api"

    def test_user_root_label(self) -> None:
        tree = ResourceTree()
        u = tree.add_user_root(CurrentUser(id=1, username="alice", namespace_id=100))
        assert tree[u].label == "alice"
        assert tree[u].last_activity_at is None
        assert tree.count(NodeKind.USER_ROOT) == 1
