from __future__ import annotations

import argparse
from dataclasses import dataclass

from glt import __version__
from glt.projection import MatchMode, SortKey


@dataclass(frozen=True, slots=True)
class CliArgs:
    url: str | None
    token: str | None
    proxy: str | None

    sort: SortKey
    match: MatchMode
    no_cache: bool

    log_level: str
    log_file: str | None


class CliParser:
    """Argument parser builder for the gitlab-tree CLI."""

    @staticmethod
    def build() -> argparse.ArgumentParser:
        """
        Construct and configure the argument parser for gitlab-tree.

        The parser defines options for:
            - GitLab connectivity (URL, token, proxy), overriding GITLAB_* variables.
            - Sibling ordering and search matching.
            - Cache bypass.
            - Logging.

        Returns:
            A fully configured ArgumentParser instance ready to parse CLI arguments.
        """

        parser = argparse.ArgumentParser(
            prog="gitlab-tree",
            description=(
                "Browse GitLab groups, subgroups and projects as an interactive tree. "
                "Connection and list filters are read from GITLAB_* environment variables; "
                "the options below override them."
            ),
        )

        parser.add_argument("-V", "--version", action="version", version=f"%(prog)s {__version__}")

        # Core connectivity
        parser.add_argument("-u", "--url", default=None, help="GitLab URL (default: $GITLAB_URL or https://gitlab.com).")
        parser.add_argument("-t", "--token", default=None, help="GitLab token with read_api scope (default: $GITLAB_TOKEN).")
        parser.add_argument(
            "-p",
            "--proxy",
            default=None,
            help=(
                "HTTP(S) proxy URL for GitLab API traffic (e.g., http://127.0.0.1:8080). "
                "Default: $GITLAB_PROXY."
            ),
        )

        # Tree presentation
        parser.add_argument(
            "--sort",
            choices=[k.value for k in SortKey],
            default=SortKey.NAME.value,
            help="Sibling order: name (A-Z) or recent_activity (most recent first). Default: name.",
        )
        parser.add_argument(
            "--match",
            choices=[m.value for m in MatchMode],
            default=MatchMode.FUZZY.value,
            help="Search matching: fuzzy (subsequence, ranked) or substring. Default: fuzzy.",
        )

        parser.add_argument(
            "--no-cache",
            action="store_true",
            help="Do not read or write the on-disk page cache.",
        )

        # Logging
        parser.add_argument(
            "--log-level",
            default="WARNING",
            help="Log level: DEBUG, INFO, WARNING, ERROR (default: WARNING).",
        )
        parser.add_argument(
            "--log-file",
            default=None,
            help="Write logs to this file. Console logging stops once the tree is on screen.",
        )

        return parser

    @classmethod
    def parse(cls, argv: list[str] | None = None) -> CliArgs:
        """
        Parse CLI arguments.

        Args:
            argv: Optional list of command-line arguments. If None, sys.argv is used.

        Returns:
            CliArgs dataclass instance containing validated and normalized parameters.
        """
        ns = cls.build().parse_args(argv)

        return CliArgs(
            url=ns.url.rstrip("/") if ns.url else None,
            token=ns.token,
            proxy=ns.proxy,

            sort=SortKey(ns.sort),
            match=MatchMode(ns.match),
            no_cache=ns.no_cache,

            log_level=ns.log_level,
            log_file=ns.log_file,
        )
