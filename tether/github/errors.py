"""Errors raised by the GitHub REST clients."""

from __future__ import annotations

# Upstream marker for transient failures worth re-issuing.
SERVER_ERROR_MARKER = '"Server Error"'

_BODY_PREVIEW_LIMIT = 500


def _preview(body: str) -> str:
    if len(body) > _BODY_PREVIEW_LIMIT:
        return body[:_BODY_PREVIEW_LIMIT] + "..."
    return body


class GitHubAPIError(RuntimeError):
    """Base class for failed GitHub API calls.

    Attributes
    ----------
    path
        Request path relative to the client's base URL.
    status_code
        HTTP status code, or ``None`` when no response was received.
    body
        Raw response body as text.

    """

    def __init__(
        self,
        message: str,
        *,
        path: str,
        status_code: int | None = None,
        body: str = "",
    ) -> None:
        """Initialise with a message and the failing request context."""
        self.path = path
        self.status_code = status_code
        self.body = body
        super().__init__(message)


class RetryableApiError(GitHubAPIError):
    """A transient failure; re-issuing the same call may succeed."""

    @classmethod
    def server_error(cls, path: str, status_code: int, body: str) -> RetryableApiError:
        """Return an error for a response carrying the server error marker."""
        return cls(
            f"GitHub API server error on {path} (HTTP {status_code})",
            path=path,
            status_code=status_code,
            body=body,
        )

    @classmethod
    def transport(cls, path: str, detail: str) -> RetryableApiError:
        """Return an error for a request that never produced a response."""
        return cls(f"GitHub API request to {path} failed: {detail}", path=path)


class FatalApiError(GitHubAPIError):
    """A non-transient failure that aborts the whole invocation."""

    @classmethod
    def http_error(cls, path: str, status_code: int, body: str) -> FatalApiError:
        """Return an error for any other non-2xx response."""
        return cls(
            f"GitHub API HTTP {status_code} on {path}: {_preview(body)}",
            path=path,
            status_code=status_code,
            body=body,
        )


class GitHubResponseShapeError(FatalApiError):
    """Raised when a GitHub response body cannot be decoded."""

    @classmethod
    def invalid(cls, path: str, detail: str, body: str = "") -> GitHubResponseShapeError:
        """Return an error for an undecodable response."""
        return cls(
            f"GitHub API response for {path} is malformed: {detail}",
            path=path,
            body=body,
        )


def classify_http_failure(path: str, status_code: int, body: str) -> GitHubAPIError:
    """Map a non-2xx response onto the retryable/fatal taxonomy."""
    if SERVER_ERROR_MARKER in body:
        return RetryableApiError.server_error(path, status_code, body)
    return FatalApiError.http_error(path, status_code, body)
