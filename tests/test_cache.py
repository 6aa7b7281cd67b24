"""Tests for the persisted page cache."""

import json

from conftest import make_group, make_project
from glt.cache import CacheStore, query_signature
from glt.config import ApiFilters
from glt.models import Page


def _groups_page() -> Page:
    return Page(items=(make_group(1, "acme"), make_group(2, "beta", parent_id=1)), number=1)


def _projects_page() -> Page:
    return Page(
        items=(make_project(10, "api", 1, last_activity_at="2024-05-01T10:00:00Z"),),
        number=3,
    )


class TestQuerySignature:
    """Tests for cache keys."""

    def test_field_order_does_not_matter(self) -> None:
        """Logically identical queries share a signature."""
        a = ApiFilters(owned=True, visibility="private", per_page=50)
        b = ApiFilters(per_page=50, visibility="private", owned=True)
        assert query_signature("groups", None, a, 1) == query_signature("groups", None, b, 1)

    def test_every_component_is_part_of_the_key(self) -> None:
        """Endpoint, parent, filters, page and scope all change the key."""
        filters = ApiFilters()
        base = query_signature("projects", 1, filters, 1, "gitlab_com")
        assert base != query_signature("subgroups", 1, filters, 1, "gitlab_com")
        assert base != query_signature("projects", 2, filters, 1, "gitlab_com")
        assert base != query_signature("projects", 1, ApiFilters(owned=True), 1, "gitlab_com")
        assert base != query_signature("projects", 1, filters, 2, "gitlab_com")
        assert base != query_signature("projects", 1, filters, 1, "gitlab_example_com")


class TestCacheStore:
    """Tests for CacheStore reads, writes and expiry."""

    def test_round_trip_through_file(self, tmp_path) -> None:
        """Every Group and Project field survives a write and a fresh read."""
        path = tmp_path / "cache.json"
        CacheStore(path, ttl=300, clock=lambda: 100.0).put("g", _groups_page())
        CacheStore(path, ttl=300, clock=lambda: 100.0).put("p", _projects_page())

        store = CacheStore(path, ttl=300, clock=lambda: 150.0)
        assert store.get("g").page == _groups_page()
        cached = store.get("p")
        assert cached.page == _projects_page()
        assert cached.fetched_at == 100.0

    def test_file_layout(self, tmp_path) -> None:
        """The file is one versioned JSON document."""
        path = tmp_path / "cache.json"
        CacheStore(path, ttl=300, clock=lambda: 5.0).put("sig", _projects_page())

        data = json.loads(path.read_text(encoding="utf-8"))
        assert data["version"] == 1
        entry = data["entries"]["sig"]
        assert entry["kind"] == "project"
        assert entry["number"] == 3
        assert entry["fetched_at"] == 5.0
        assert entry["items"][0]["namespace_id"] == 1
        assert not list(tmp_path.glob("*.tmp"))

    def test_ttl_boundary(self, tmp_path) -> None:
        """Valid while now - fetched_at < ttl."""
        now = 1_000.0
        store = CacheStore(tmp_path / "cache.json", ttl=60, clock=lambda: now)
        store.put("fresh", _groups_page(), fetched_at=now - 60 + 1)
        store.put("stale", _groups_page(), fetched_at=now - 60 - 1)
        store.put("edge", _groups_page(), fetched_at=now - 60)

        assert store.get("fresh") is not None
        assert store.get("stale") is None
        assert store.get("edge") is None

    def test_expired_entry_stays_on_disk(self, tmp_path) -> None:
        """Expiry is a read-time decision only."""
        path = tmp_path / "cache.json"
        store = CacheStore(path, ttl=10, clock=lambda: 100.0)
        store.put("old", _groups_page(), fetched_at=0.0)
        assert store.get("old") is None
        assert "old" in json.loads(path.read_text(encoding="utf-8"))["entries"]

    def test_missing_file_is_empty_cache(self, tmp_path) -> None:
        """No file yet: every lookup misses, nothing is disabled."""
        store = CacheStore(tmp_path / "missing" / "cache.json", ttl=300)
        assert store.get("anything") is None
        assert store.is_disabled is False

    def test_corrupt_file_degrades_to_no_op(self, tmp_path) -> None:
        """A broken file turns the store into an always-miss cache."""
        path = tmp_path / "cache.json"
        path.write_text("{not json", encoding="utf-8")
        store = CacheStore(path, ttl=300)

        assert store.get("sig") is None
        assert store.is_disabled is True
        store.put("sig", _groups_page())
        assert store.get("sig") is None
        assert path.read_text(encoding="utf-8") == "{not json"

    def test_unknown_version_degrades(self, tmp_path) -> None:
        """A file from another layout version is not trusted."""
        path = tmp_path / "cache.json"
        path.write_text(json.dumps({"version": 99, "entries": {}}), encoding="utf-8")
        store = CacheStore(path, ttl=300)
        assert store.get("sig") is None
        assert store.is_disabled is True

    def test_unwritable_location_degrades(self, tmp_path) -> None:
        """A failed write disables the cache instead of raising."""
        blocker = tmp_path / "blocker"
        blocker.write_text("", encoding="utf-8")
        store = CacheStore(blocker / "cache.json", ttl=300)

        store.put("sig", _groups_page())
        assert store.is_disabled is True
        assert store.get("sig") is None

    def test_clear_forgets_entries(self, tmp_path) -> None:
        """Cleared entries miss until they are written again."""
        store = CacheStore(tmp_path / "cache.json", ttl=300, clock=lambda: 1.0)
        store.put("sig", _groups_page())
        store.clear()
        assert store.get("sig") is None

    def test_disabled_store(self) -> None:
        """The --no-cache store never hits and never writes."""
        store = CacheStore.disabled()
        store.put("sig", _groups_page())
        assert store.get("sig") is None
        assert store.is_disabled is True
