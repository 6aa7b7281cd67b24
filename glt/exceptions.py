class GitlabTreeError(Exception):
    """
    Base exception for gitlab-tree specific errors.

    Raised to indicate incorrect usage or unrecoverable conditions
    within the tree browser, such as an invalid configuration value or
    a failed GitLab API call.
    """
    pass


class ConfigError(GitlabTreeError):
    """Missing or invalid configuration value. Fatal at startup."""
    pass


class CacheError(GitlabTreeError):
    """
    Persisted cache could not be read or written.

    Never surfaced to the user: the cache store catches it and degrades
    to an always-miss cache.
    """
    pass


class FetchError(GitlabTreeError):
    """
    A single GitLab API call failed.

    Fetch errors are scoped to the expand/refresh operation that triggered
    them; the rest of the tree stays usable.
    """
    kind: str = "error"

    def __init__(self, message: str = "", *, status: int | None = None) -> None:
        super().__init__(message or self.kind)
        self.status = status

    def __str__(self) -> str:
        message = super().__str__()
        if message == self.kind:
            return self.kind
        return f"{self.kind}: {message}"


class UnauthorizedError(FetchError):
    kind = "unauthorized"


class NotFoundError(FetchError):
    kind = "not found"


class RateLimitedError(FetchError):
    kind = "rate limited"


class NetworkError(FetchError):
    kind = "network error"


class MalformedResponseError(FetchError):
    kind = "malformed response"
