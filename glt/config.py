# glt/config.py
from __future__ import annotations

import os
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any, Callable

from platformdirs import user_cache_dir

from glt.exceptions import ConfigError

APP_NAME = "gitlab-tree"
DEFAULT_URL = "https://gitlab.com"
DEFAULT_PER_PAGE = 100
DEFAULT_CACHE_TTL_SECONDS = 300
VISIBILITIES = ("private", "internal", "public")

_TRUE = {"1", "true", "yes", "on"}
_FALSE = {"0", "false", "no", "off"}

EnvReader = Callable[[str], str | None]


def default_cache_path() -> Path:
    return Path(user_cache_dir(APP_NAME, appauthor=False)) / "cache.json"


@dataclass(frozen=True, slots=True)
class ApiFilters:
    """
    List-query options passed through to the GitLab API.

    Attributes:
        include_subgroups: Also list projects of nested subgroups under a group.
        top_level_only: Restrict the group listing to top-level groups.
        owned: Only groups explicitly owned by the current user.
        all_available: All groups the user can see, not only memberships.
        visibility: Restrict to "private", "internal" or "public".
        per_page: Page size for every list call.

    Boolean options left as None are not sent at all, so GitLab's own
    defaults apply.
    """
    include_subgroups: bool | None = None
    top_level_only: bool | None = None
    owned: bool | None = None
    all_available: bool | None = None
    visibility: str | None = None
    per_page: int = DEFAULT_PER_PAGE

    def as_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True, slots=True)
class Config:
    gitlab_url: str
    gitlab_token: str
    filters: ApiFilters
    cache_path: Path
    cache_ttl: int
    proxy: str | None = None

    @classmethod
    def from_env(cls, reader: EnvReader | None = None) -> Config:
        """
        Build the configuration from GITLAB_* environment variables.

        Args:
            reader: Lookup function, defaults to os.environ.get. Tests pass
                a dict's `get` instead of touching the real environment.

        Raises:
            ConfigError: If GITLAB_TOKEN is missing or any value is invalid.
        """
        reader = reader or os.environ.get

        per_page = _read_int(reader, "GITLAB_PER_PAGE")
        if per_page is None:
            per_page = DEFAULT_PER_PAGE
        if not 1 <= per_page <= 100:
            raise ConfigError(f"GITLAB_PER_PAGE must be between 1 and 100, got {per_page}")

        visibility = _read(reader, "GITLAB_VISIBILITY")
        if visibility is not None:
            visibility = visibility.lower()
            if visibility not in VISIBILITIES:
                raise ConfigError(
                    f"invalid GITLAB_VISIBILITY: {visibility!r} (expected one of {', '.join(VISIBILITIES)})"
                )

        filters = ApiFilters(
            include_subgroups=_read_bool(reader, "GITLAB_INCLUDE_SUBGROUPS"),
            top_level_only=_read_bool(reader, "GITLAB_TOP_LEVEL_ONLY"),
            owned=_read_bool(reader, "GITLAB_OWNED"),
            all_available=_read_bool(reader, "GITLAB_ALL_AVAILABLE"),
            visibility=visibility,
            per_page=per_page,
        )

        token = _read(reader, "GITLAB_TOKEN")
        if token is None:
            raise ConfigError("missing required environment variable: GITLAB_TOKEN")

        cache_ttl = _read_int(reader, "GITLAB_CACHE_TTL_SECONDS")
        cache_path = _read(reader, "GITLAB_CACHE_PATH")

        return cls(
            gitlab_url=(_read(reader, "GITLAB_URL") or DEFAULT_URL).rstrip("/"),
            gitlab_token=token,
            filters=filters,
            cache_path=Path(cache_path).expanduser() if cache_path else default_cache_path(),
            cache_ttl=DEFAULT_CACHE_TTL_SECONDS if cache_ttl is None else cache_ttl,
            proxy=_read(reader, "GITLAB_PROXY"),
        )


def _read(reader: EnvReader, key: str) -> str | None:
    value = reader(key)
    if value is None or not value.strip():
        return None
    return value.strip()


def _read_bool(reader: EnvReader, key: str) -> bool | None:
    value = _read(reader, key)
    if value is None:
        return None
    v = value.lower()
    if v in _TRUE:
        return True
    if v in _FALSE:
        return False
    raise ConfigError(f"invalid boolean for {key}: {value}")


def _read_int(reader: EnvReader, key: str) -> int | None:
    value = _read(reader, key)
    if value is None:
        return None
    if not value.isdigit():
        raise ConfigError(f"invalid integer for {key}: {value}")
    return int(value)
