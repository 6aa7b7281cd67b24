"""
glt: GitLab Tree package
========================

Browse the groups, subgroups and projects of a GitLab instance as an
interactive, searchable tree in the terminal.

The package provides:

- A python-gitlab backed fetcher that lists one page at a time.
- An on-disk page cache with a TTL, written atomically.
- A tree builder that loads children lazily, on expansion.
- Sorting, substring / fuzzy filtering and a flat row projection.
- A navigation state machine with background loading and refresh.
- A textual front-end and a CLI.

Modules
-------

builder
    TreeBuilder: pagination, write-through caching, personal projects.

projection
    Sibling ordering, search matching and the visible-row projection.

navigation
    Navigator: selection, scrolling, search, expansion and refresh.

tui
    textual application drawing the navigator.

Typical usage
-------------

As a library:

    from glt import CacheStore, GitlabFetcher, TreeBuilder
    from glt.config import ApiFilters

    fetcher = GitlabFetcher("https://gitlab.example.com", token="...")
    builder = TreeBuilder(fetcher, CacheStore.disabled(), ApiFilters())
    tree = builder.build_tree()

As a CLI:

    GITLAB_TOKEN=XXX gitlab-tree --url https://gitlab.example.com --sort recent_activity

"""

__version__ = "0.1.0"

from .builder import TreeBuilder
from .cache import CacheStore
from .cli import CliParser
from .fetcher import GitlabFetcher
from .navigation import Navigator

__all__ = [
    "__version__",
    "TreeBuilder",
    "CacheStore",
    "CliParser",
    "GitlabFetcher",
    "Navigator",
]
