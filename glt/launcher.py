# glt/launcher.py
"""
Session wiring for gitlab-tree.

Turns parsed CLI arguments into a running session:
- configuration from GITLAB_* variables with CLI overrides
- logger, fetcher, cache store, tree builder
- initial tree load in the foreground (tqdm progress)
- navigator + textual app

Core logic lives in the builder, navigator and renderer modules.
"""

from __future__ import annotations

import os
import sys

from glt.builder import TreeBuilder
from glt.cache import CacheStore
from glt.cli import CliArgs
from glt.config import Config, EnvReader
from glt.exceptions import ConfigError, FetchError
from glt.fetcher import GitlabFetcher
from glt.loader import BackgroundLoader
from glt.models import Page
from glt.navigation import Navigator
from glt.tree import ResourceTree
from glt.tui import GitlabTreeApp
from glt.utils import logging_utils, terminal_utils

# CLI option -> environment variable it overrides
_OVERRIDES = {
    "url": "GITLAB_URL",
    "token": "GITLAB_TOKEN",
    "proxy": "GITLAB_PROXY",
}


def overlay_reader(args: CliArgs, base: EnvReader | None = None) -> EnvReader:
    """Environment lookup where CLI options take precedence over the environment."""
    base = base or os.environ.get
    overrides = {env: getattr(args, opt) for opt, env in _OVERRIDES.items() if getattr(args, opt)}

    def read(key: str) -> str | None:
        if key in overrides:
            return overrides[key]
        return base(key)

    return read


def load_initial_tree(builder: TreeBuilder, host: str) -> ResourceTree:
    """Build the first tree with a page counter on the terminal."""
    lay = terminal_utils.layout()
    base = f"Loading tree: {host}"

    with terminal_utils.mk_tqdm(
            total=None,
            position=0,
            leave=False,
            layout_=lay,
            unit="items",
    ) as pbar:
        terminal_utils.set_desc(pbar, base, lay)
        pages = 0

        def on_page(endpoint: str, page: Page) -> None:
            nonlocal pages
            pages += 1
            desc = terminal_utils.animate_desc(base, terminal_utils.LOAD_TREE_ANIM_FRAMES, pages)
            terminal_utils.set_desc(pbar, desc, lay)
            terminal_utils.set_postfix(pbar, f"{endpoint} p{page.number}", lay)
            pbar.update(len(page))

        return builder.build_tree(on_page=on_page)


def run(args: CliArgs, reader: EnvReader | None = None) -> int:
    """
    Run one interactive session.

    Returns:
        Process exit code: 0 after a normal quit, 2 on invalid configuration.
    """
    logger = logging_utils.build_logger(
        level=logging_utils.coerce_log_level(args.log_level),
        log_file=args.log_file,
    )

    try:
        config = Config.from_env(overlay_reader(args, reader))
        try:
            fetcher = GitlabFetcher(config.gitlab_url, config.gitlab_token, config.proxy)
        except ValueError as e:
            raise ConfigError(str(e)) from e
    except ConfigError as e:
        print(f"gitlab-tree: {e}", file=sys.stderr)
        return 2

    if args.no_cache:
        cache = CacheStore.disabled()
    else:
        cache = CacheStore(config.cache_path, config.cache_ttl)
    builder = TreeBuilder(fetcher, cache, config.filters)

    notice: str | None = None
    try:
        tree = load_initial_tree(builder, config.gitlab_url)
    except FetchError as e:
        logger.error("Initial load failed: %s", e)
        tree = ResourceTree()
        notice = f"initial load failed: {e} (press r to retry)"

    navigator = Navigator(
        tree,
        builder,
        BackgroundLoader(),
        sort_key=args.sort,
        match_mode=args.match,
    )
    if notice:
        navigator.post_notice(notice)

    logging_utils.detach_console(logger)
    GitlabTreeApp(navigator, instance=config.gitlab_url, token_set=bool(config.gitlab_token)).run()
    logger.info("Session closed.")
    return 0
