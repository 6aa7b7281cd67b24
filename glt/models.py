# glt/models.py
"""
Plain data records for GitLab resources.

Records are immutable once fetched; a refresh replaces them wholesale.
`from_api()` builds a record from a raw REST payload, `to_dict()` /
`from_dict()` round-trip every field through the persisted cache.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any

from glt.exceptions import MalformedResponseError


def _require(payload: dict[str, Any], *keys: str) -> None:
    missing = [k for k in keys if k not in payload]
    if missing:
        raise MalformedResponseError(f"missing field(s): {', '.join(missing)}")


@dataclass(frozen=True, slots=True)
class Group:
    id: int
    name: str
    path: str
    full_path: str
    parent_id: int | None
    visibility: str
    web_url: str = ""

    @classmethod
    def from_api(cls, payload: dict[str, Any]) -> Group:
        """Build a Group from a `/groups` or `/groups/:id/subgroups` item."""
        _require(payload, "id", "name", "path", "full_path")
        parent_id = payload.get("parent_id")
        return cls(
            id=int(payload["id"]),
            name=str(payload["name"]),
            path=str(payload["path"]),
            full_path=str(payload["full_path"]),
            parent_id=int(parent_id) if parent_id is not None else None,
            visibility=str(payload.get("visibility") or ""),
            web_url=str(payload.get("web_url") or ""),
        )

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Group:
        return cls(**data)


@dataclass(frozen=True, slots=True)
class Project:
    id: int
    name: str
    path: str
    namespace_id: int
    visibility: str
    web_url: str
    last_activity_at: str | None
    path_with_namespace: str = ""
    namespace_kind: str = ""

    @classmethod
    def from_api(cls, payload: dict[str, Any]) -> Project:
        """
        Build a Project from a `/projects`-style item.

        The namespace id and kind come from the embedded `namespace` object;
        a payload without it cannot be placed in the tree.
        """
        _require(payload, "id", "name", "path", "namespace")
        namespace = payload["namespace"]
        if not isinstance(namespace, dict) or "id" not in namespace:
            raise MalformedResponseError(f"project {payload['id']} has no namespace id")
        return cls(
            id=int(payload["id"]),
            name=str(payload["name"]),
            path=str(payload["path"]),
            namespace_id=int(namespace["id"]),
            visibility=str(payload.get("visibility") or ""),
            web_url=str(payload.get("web_url") or ""),
            last_activity_at=payload.get("last_activity_at"),
            path_with_namespace=str(payload.get("path_with_namespace") or ""),
            namespace_kind=str(namespace.get("kind") or ""),
        )

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Project:
        return cls(**data)


@dataclass(frozen=True, slots=True)
class CurrentUser:
    """The authenticated user and the id of their personal namespace."""
    id: int
    username: str
    namespace_id: int
    web_url: str = ""


Entity = Group | Project


@dataclass(frozen=True, slots=True)
class Page:
    """One page of a list endpoint, 1-based."""
    items: tuple[Entity, ...]
    number: int

    def __len__(self) -> int:
        return len(self.items)
