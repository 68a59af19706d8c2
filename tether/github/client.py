"""GitHub Actions REST client used to dispatch and observe workflow runs."""

from __future__ import annotations

import dataclasses
import datetime as dt
import typing as typ
from urllib.parse import quote

import httpx
import msgspec

from tether.logging import get_logger, log_debug

from .errors import (
    GitHubResponseShapeError,
    RetryableApiError,
    classify_http_failure,
)
from .models import DispatchRequest, WorkflowRun, WorkflowRunsPage

logger = get_logger(__name__)

DEFAULT_API_URL = "https://api.github.com"
_DEFAULT_TIMEOUT_S = 30.0
_USER_AGENT = "tether/0.1"
_RUNS_PAGE_SIZE = 100


@dataclasses.dataclass(frozen=True, slots=True)
class GitHubClientConfig:
    """Connection settings for one credential scope."""

    token: str
    owner: str
    repo: str
    api_url: str = DEFAULT_API_URL
    timeout_s: float = _DEFAULT_TIMEOUT_S
    user_agent: str = _USER_AGENT

    @property
    def repo_url(self) -> str:
        """Return ``{api_url}/repos/{owner}/{repo}``."""
        return f"{self.api_url.rstrip('/')}/repos/{self.owner}/{self.repo}"


def _ensure_tzaware(value: dt.datetime, *, field: str) -> dt.datetime:
    if value.tzinfo is None:
        msg = f"{field} must be timezone-aware"
        raise ValueError(msg)
    return value.astimezone(dt.UTC)


def format_since(since: dt.datetime) -> str:
    """Render a ``created`` lower bound in the ISO-8601 form GitHub expects."""
    return _ensure_tzaware(since, field="since").replace(microsecond=0).isoformat()


def _decode[T](response: httpx.Response, path: str, type_: type[T]) -> T:
    try:
        return msgspec.json.decode(response.content, type=type_)
    except msgspec.DecodeError as exc:
        raise GitHubResponseShapeError.invalid(path, str(exc), response.text) from exc


class GitHubRestClient:
    """Shared request plumbing for GitHub REST calls.

    The client owns its ``httpx.AsyncClient`` unless one is injected, in which
    case the caller is responsible for closing it. Credentials are attached per
    request so several scopes can share one injected transport.
    """

    accept = "application/vnd.github.v3+json"

    def __init__(
        self,
        config: GitHubClientConfig,
        *,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        """Initialise the client with a credential scope."""
        self._config = config
        self._owns_client = http_client is None
        self._client = http_client or httpx.AsyncClient(
            timeout=config.timeout_s,
            follow_redirects=True,
        )

    @property
    def config(self) -> GitHubClientConfig:
        """Return the configuration this client was built with."""
        return self._config

    async def aclose(self) -> None:
        """Close any owned HTTP resources."""
        if self._owns_client:
            await self._client.aclose()

    def _headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self._config.token}",
            "Accept": self.accept,
            "Content-Type": "application/json",
            "User-Agent": self._config.user_agent,
        }

    async def _send(
        self,
        method: str,
        url: str,
        *,
        path: str,
        params: typ.Mapping[str, str | int] | None = None,
        json: object | None = None,
    ) -> httpx.Response:
        """Issue one request and classify any failure.

        Raises
        ------
        RetryableApiError
            For transport failures and bodies carrying the server error marker.
        FatalApiError
            For every other non-2xx response.

        """
        try:
            response = await self._client.request(
                method,
                url,
                params=params,
                json=json,
                headers=self._headers(),
            )
        except httpx.TransportError as exc:
            raise RetryableApiError.transport(path, str(exc)) from exc

        if response.is_success:
            log_debug(logger, "%s %s -> %d", method, path, response.status_code)
            return response

        raise classify_http_failure(path, response.status_code, response.text)


class GitHubActionsClient(GitHubRestClient):
    """Client for ``/repos/{owner}/{repo}/actions`` endpoints.

    Examples
    --------
    >>> import asyncio
    >>> config = GitHubClientConfig(token="ghp_...", owner="octo", repo="reef")
    >>> client = GitHubActionsClient(config)
    >>> # run = asyncio.run(client.get_run(42))
    >>> asyncio.run(client.aclose())

    """

    @property
    def base_url(self) -> str:
        """Return the Actions API root for the configured repository."""
        return f"{self._config.repo_url}/actions"

    async def request(
        self,
        method: str,
        path: str,
        *,
        params: typ.Mapping[str, str | int] | None = None,
        json: object | None = None,
    ) -> httpx.Response:
        """Call ``{base_url}/{path}`` with authentication and classification."""
        return await self._send(
            method,
            f"{self.base_url}/{path}",
            path=path,
            params=params,
            json=json,
        )

    async def dispatch_workflow(self, request: DispatchRequest) -> None:
        """Create a ``workflow_dispatch`` event; GitHub returns no run id."""
        await self.request(
            "POST",
            f"workflows/{quote(request.workflow, safe='')}/dispatches",
            json=request.body(),
        )

    async def list_workflow_run_ids(
        self,
        workflow: str,
        *,
        since: dt.datetime,
        actor: str | None = None,
    ) -> list[int]:
        """Return ids of dispatch-triggered runs created at or after ``since``.

        Follows ``Link: rel="next"`` pagination so busy workflows with more
        than one page of recent runs are still listed completely.
        """
        path = f"workflows/{quote(workflow, safe='')}/runs"
        params: dict[str, str | int] = {
            "event": "workflow_dispatch",
            "created": f">={format_since(since)}",
            "per_page": _RUNS_PAGE_SIZE,
        }
        if actor:
            params["actor"] = actor

        response = await self.request("GET", path, params=params)
        run_ids = _decode(response, path, WorkflowRunsPage).run_ids()
        next_url = response.links.get("next", {}).get("url")
        while next_url:
            response = await self._send("GET", next_url, path=path)
            run_ids.extend(_decode(response, path, WorkflowRunsPage).run_ids())
            next_url = response.links.get("next", {}).get("url")
        return run_ids

    async def get_run(self, run_id: int) -> WorkflowRun:
        """Fetch the current state of a workflow run."""
        path = f"runs/{run_id}"
        response = await self.request("GET", path)
        return _decode(response, path, WorkflowRun)


__all__ = [
    "DEFAULT_API_URL",
    "GitHubActionsClient",
    "GitHubClientConfig",
    "GitHubRestClient",
    "format_since",
]
