# glt/fetcher.py
"""
Fetcher adapter: the whole GitLab API surface the tree engine touches.

Each call fetches exactly one page and returns a `Page`; failures are
translated into the FetchError taxonomy. There is no caching and no
tree logic here.
"""

from __future__ import annotations

import contextlib
import logging
import threading
from typing import Any, Callable, Iterator, Protocol
from urllib.parse import urlparse

import gitlab.exceptions
import requests.exceptions
from gitlab import Gitlab
from requests import Session

from glt.config import ApiFilters
from glt.exceptions import (
    FetchError,
    MalformedResponseError,
    NetworkError,
    NotFoundError,
    RateLimitedError,
    UnauthorizedError,
)
from glt.models import CurrentUser, Group, Page, Project

logger = logging.getLogger("gitlab_tree.fetcher")


class Fetcher(Protocol):
    """Interface the tree builder calls to obtain raw pages."""

    def instance_id(self) -> str: ...

    def current_user(self) -> CurrentUser: ...

    def fetch_groups(self, filters: ApiFilters, page: int) -> Page: ...

    def fetch_subgroups(self, parent_id: int, filters: ApiFilters, page: int) -> Page: ...

    def fetch_projects(self, group_id: int, filters: ApiFilters, page: int) -> Page: ...

    def fetch_user_projects(self, filters: ApiFilters, page: int) -> Page: ...


def translate_error(exc: Exception) -> FetchError:
    """Map a python-gitlab / requests exception onto the FetchError taxonomy."""
    if isinstance(exc, FetchError):
        return exc
    if isinstance(exc, gitlab.exceptions.GitlabAuthenticationError):
        return UnauthorizedError(str(exc.error_message or exc), status=401)
    if isinstance(exc, gitlab.exceptions.GitlabError):
        code = exc.response_code
        message = str(exc.error_message or exc)
        if code == 401:
            return UnauthorizedError(message, status=code)
        if code in (403, 404):
            return NotFoundError(message, status=code)
        if code == 429:
            return RateLimitedError(message, status=code)
        if code is None:
            return NetworkError(message)
        return NetworkError(f"HTTP {code}: {message}", status=code)
    if isinstance(exc, requests.exceptions.RequestException):
        return NetworkError(str(exc))
    if isinstance(exc, (KeyError, TypeError, ValueError)):
        return MalformedResponseError(str(exc))
    return FetchError(str(exc))


@contextlib.contextmanager
def api_call(what: str) -> Iterator[None]:
    """Translate any failure inside the block into a FetchError."""
    try:
        yield
    except (
        gitlab.exceptions.GitlabError,
        requests.exceptions.RequestException,
        KeyError,
        TypeError,
        ValueError,
    ) as exc:
        err = translate_error(exc)
        logger.warning("GitLab call failed (%s): %s", what, err)
        raise err from exc


def client_required(func: Callable) -> Callable:
    """
    Decorator ensuring that a GitLab client is connected before method execution.

    The client is created lazily on first use so that construction never
    performs network I/O; connection failures surface as FetchError from
    whichever call needed the client first.
    """

    def wrapper(*args, **kwargs) -> Any:
        fetcher: GitlabFetcher = args[0]
        fetcher._connect()
        return func(*args, **kwargs)

    wrapper.__name__ = func.__name__
    wrapper.__doc__ = func.__doc__
    return wrapper


class GitlabFetcher:
    """python-gitlab backed Fetcher.

    The fetcher manages:
    - GitLab API client initialization (token, proxy, TLS fallback)
    - resolving the authenticated user and their personal namespace
    - one-page list calls with per-endpoint filter marshalling
    """

    def __init__(
            self,
            url: str,
            token: str,
            proxy: str | None = None,
            *,
            timeout: int = 30,
    ) -> None:
        self.url = url
        self._token = token
        self._proxy = self._normalize_proxy(proxy) if proxy else None
        self._timeout = timeout
        self._gl: Gitlab | None = None
        self._user: CurrentUser | None = None
        self._lock = threading.Lock()

    def instance_id(self) -> str:
        """Return a filesystem-safe identifier for the configured GitLab instance.

        Returns:
            Instance identifier like 'gitlab_example_com'.
        """
        parsed = urlparse(self.url if "://" in self.url else f"https://{self.url}")
        host = (parsed.netloc or parsed.path).strip("/")
        return host.replace(".", "_").replace(":", "_") or "undefined"

    @staticmethod
    def _normalize_proxy(proxy: str) -> str:
        p = proxy.strip()
        if not p:
            return p
        if "://" not in p:
            p = f"http://{p}"
        parsed = urlparse(p)
        if not parsed.scheme or not parsed.netloc:
            raise ValueError(f"Invalid proxy URL: {proxy!r}. Example: http://127.0.0.1:8080")
        return p

    def _connect(self) -> Gitlab:
        with self._lock:
            if self._gl is None:
                with api_call("authenticate"):
                    self._gl = self._get_gl_client()
            return self._gl

    def _get_gl_client(
            self,
            ssl_verify: bool = True,
            allow_ssl_fallback: bool = True,
    ) -> Gitlab:
        """
        Initialize and authenticate a GitLab API client.

        Args:
            ssl_verify: Whether to verify TLS certificates.
            allow_ssl_fallback: If True, retries auth with ssl_verify=False on SSLError.

        Returns:
            Authenticated Gitlab client instance.

        Raises:
            requests.exceptions.SSLError: If TLS fails and fallback is disabled or also fails.
        """
        logger.debug("Connecting to GitLab: %s", self.url)

        kwargs: dict[str, Any] = {
            "url": self.url,
            "private_token": self._token,
            "timeout": self._timeout,
            "ssl_verify": ssl_verify,
        }

        if self._proxy:
            session = Session()
            session.proxies.update({"http": self._proxy, "https": self._proxy})
            kwargs["session"] = session

        gl = Gitlab(**kwargs)

        try:
            gl.auth()
            logger.debug("Authenticated to GitLab: %s", self.url)
            return gl
        except requests.exceptions.SSLError:
            if not allow_ssl_fallback or not ssl_verify:
                logger.exception("TLS handshake failed for %s", self.url)
                raise

            # Fallback: retry once with ssl verification disabled
            logger.warning("TLS failed for %s; retrying with ssl_verify=False", self.url)
            import urllib3
            urllib3.disable_warnings(urllib3.exceptions.InsecureRequestWarning)

            kwargs["ssl_verify"] = False
            gl = Gitlab(**kwargs)
            gl.auth()
            logger.debug("Authenticated to GitLab (ssl_verify=False): %s", self.url)
            return gl

    @client_required
    def current_user(self) -> CurrentUser:
        """
        Resolve the authenticated user and the id of their personal namespace.

        The namespace is looked up by the username and must be of kind
        "user"; a group that happens to share the name is rejected.
        """
        if self._user is not None:
            return self._user

        with api_call("current user"):
            user = self._gl.user
            if user is None:
                self._gl.auth()
                user = self._gl.user
            namespace = self._gl.namespaces.get(user.username)
            attrs = namespace.attributes
            if attrs.get("kind") != "user":
                raise MalformedResponseError(f"namespace {user.username!r} is not a user namespace")
            self._user = CurrentUser(
                id=int(user.id),
                username=str(user.username),
                namespace_id=int(attrs["id"]),
                web_url=str(getattr(user, "web_url", "") or f"{self.url.rstrip('/')}/{user.username}"),
            )
        return self._user

    @staticmethod
    def _params(filters: ApiFilters, page: int, *names: str) -> dict[str, Any]:
        params: dict[str, Any] = {"page": page, "per_page": filters.per_page, "get_all": False}
        for name in names:
            value = getattr(filters, name)
            if value is not None:
                params[name] = value
        return params

    @client_required
    def fetch_groups(self, filters: ApiFilters, page: int) -> Page:
        params = self._params(filters, page, "all_available", "owned", "top_level_only", "visibility")
        with api_call(f"groups page {page}"):
            batch = self._gl.groups.list(**params)
            items = tuple(Group.from_api(g.attributes) for g in batch)
        logger.debug("Fetched %s groups (page %s).", len(items), page)
        return Page(items=items, number=page)

    @client_required
    def fetch_subgroups(self, parent_id: int, filters: ApiFilters, page: int) -> Page:
        params = self._params(filters, page, "all_available", "owned", "visibility")
        with api_call(f"subgroups of {parent_id} page {page}"):
            batch = self._gl.groups.get(parent_id, lazy=True).subgroups.list(**params)
            items = tuple(Group.from_api(g.attributes) for g in batch)
        logger.debug("Fetched %s subgroups of group %s (page %s).", len(items), parent_id, page)
        return Page(items=items, number=page)

    @client_required
    def fetch_projects(self, group_id: int, filters: ApiFilters, page: int) -> Page:
        params = self._params(filters, page, "include_subgroups", "visibility")
        with api_call(f"projects of {group_id} page {page}"):
            batch = self._gl.groups.get(group_id, lazy=True).projects.list(**params)
            items = tuple(Project.from_api(p.attributes) for p in batch)
        logger.debug("Fetched %s projects of group %s (page %s).", len(items), group_id, page)
        return Page(items=items, number=page)

    @client_required
    def fetch_user_projects(self, filters: ApiFilters, page: int) -> Page:
        user = self.current_user()
        params = self._params(filters, page, "visibility")
        with api_call(f"personal projects page {page}"):
            batch = self._gl.users.get(user.id, lazy=True).projects.list(**params)
            items = tuple(Project.from_api(p.attributes) for p in batch)
        logger.debug("Fetched %s personal projects of %s (page %s).", len(items), user.username, page)
        return Page(items=items, number=page)
