# glt/cache.py
"""
Persisted page cache keyed by query signature.

The file is a single JSON document:

    {
        "version": 1,
        "entries": {
            "<signature>": {
                "fetched_at": 1700000000.0,
                "kind": "group" | "project",
                "number": 1,
                "items": [...]
            }
        }
    }

Caching is an optimization only. Any failure to read or write the file
turns the store into an always-miss cache for the rest of the process.
"""

from __future__ import annotations

import json
import logging
import os
import threading
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable

from glt.config import ApiFilters
from glt.exceptions import CacheError
from glt.models import Group, Page, Project

logger = logging.getLogger("gitlab_tree.cache")

CACHE_VERSION = 1

# Endpoint kinds used in signatures.
GROUPS = "groups"
SUBGROUPS = "subgroups"
PROJECTS = "projects"
USER_PROJECTS = "user_projects"


def query_signature(
        endpoint: str,
        parent_id: int | None,
        filters: ApiFilters,
        page: int,
        scope: str = "",
) -> str:
    """
    Canonical cache key for one list query.

    Keys are sorted during serialization, so two logically identical
    queries produce the same signature whatever order the filter fields
    were given in.
    """
    return json.dumps(
        {
            "scope": scope,
            "endpoint": endpoint,
            "parent": parent_id,
            "filters": filters.as_dict(),
            "page": page,
        },
        sort_keys=True,
        separators=(",", ":"),
    )


@dataclass(frozen=True, slots=True)
class CachedPage:
    page: Page
    fetched_at: float


def _encode_page(page: Page, fetched_at: float) -> dict[str, Any]:
    kind = "project" if any(isinstance(x, Project) for x in page.items) else "group"
    return {
        "fetched_at": fetched_at,
        "kind": kind,
        "number": page.number,
        "items": [x.to_dict() for x in page.items],
    }


def _decode_page(record: dict[str, Any]) -> CachedPage:
    cls = Project if record["kind"] == "project" else Group
    page = Page(items=tuple(cls.from_dict(x) for x in record["items"]), number=int(record["number"]))
    return CachedPage(page=page, fetched_at=float(record["fetched_at"]))


class CacheStore:
    """
    Read/write-through page cache with TTL expiry.

    Entries are valid while `now - fetched_at < ttl`. Expired entries are
    ignored on read and stay on disk until overwritten.
    """

    def __init__(
            self,
            path: Path | str | None,
            ttl: float,
            *,
            clock: Callable[[], float] = time.time,
    ) -> None:
        self.path = Path(path) if path is not None else None
        self.ttl = ttl
        self._clock = clock
        self._entries: dict[str, dict[str, Any]] = {}
        self._loaded = False
        self._disabled = self.path is None
        self._lock = threading.Lock()

    @classmethod
    def disabled(cls) -> CacheStore:
        """An always-miss cache that never touches the filesystem."""
        return cls(None, 0)

    @property
    def is_disabled(self) -> bool:
        return self._disabled

    def _degrade(self, err: CacheError) -> None:
        if not self._disabled:
            logger.warning("Cache disabled for this session: %s", err)
        self._disabled = True
        self._entries.clear()

    def _ensure_loaded(self) -> None:
        """Read the cache file once per process."""
        if self._loaded or self._disabled:
            return
        self._loaded = True
        try:
            self._entries = self._read()
        except CacheError as err:
            self._degrade(err)

    def _read(self) -> dict[str, dict[str, Any]]:
        if not self.path.exists():
            return {}
        try:
            with self.path.open("r", encoding="utf-8") as fp:
                data = json.load(fp)
        except (OSError, json.JSONDecodeError, UnicodeDecodeError) as e:
            raise CacheError(f"cannot read {self.path}: {e}") from e

        if not isinstance(data, dict) or data.get("version") != CACHE_VERSION:
            raise CacheError(f"unsupported cache layout in {self.path}")
        entries = data.get("entries")
        if not isinstance(entries, dict):
            raise CacheError(f"cache file {self.path} has no entries")

        logger.debug("Loaded %s cache entries from %s.", len(entries), self.path)
        return entries

    def _write(self) -> None:
        tmp_path = self.path.with_name(f"{self.path.name}.{os.getpid()}.tmp")
        payload = {"version": CACHE_VERSION, "entries": self._entries}
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with tmp_path.open("w", encoding="utf-8") as fp:
                json.dump(payload, fp, ensure_ascii=False)
            os.replace(tmp_path, self.path)
        except OSError as e:
            try:
                tmp_path.unlink(missing_ok=True)
            except OSError:
                logger.debug("Could not remove temporary cache file %s.", tmp_path)
            raise CacheError(f"cannot write {self.path}: {e}") from e

    def get(self, signature: str) -> CachedPage | None:
        """Return the cached page for `signature` if present and fresh."""
        with self._lock:
            self._ensure_loaded()
            if self._disabled:
                return None

            record = self._entries.get(signature)
            if record is None:
                return None
            try:
                cached = _decode_page(record)
            except (KeyError, TypeError, ValueError) as e:
                logger.debug("Dropping unreadable cache entry: %s", e)
                self._entries.pop(signature, None)
                return None

            if self._clock() - cached.fetched_at >= self.ttl:
                return None
            return cached

    def put(self, signature: str, page: Page, fetched_at: float | None = None) -> None:
        """Store `page` under `signature` and persist the file."""
        with self._lock:
            self._ensure_loaded()
            if self._disabled:
                return

            stamp = self._clock() if fetched_at is None else fetched_at
            self._entries[signature] = _encode_page(page, stamp)
            try:
                self._write()
            except CacheError as err:
                self._degrade(err)

    def clear(self) -> None:
        """Forget every entry in memory; the file is rewritten on the next put."""
        with self._lock:
            self._ensure_loaded()
            self._entries.clear()
