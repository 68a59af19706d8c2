"""Best-effort calls made with the comment credential scope.

These calls decorate a run's outcome for humans: a comment pointing at the
downstream run and the list of open pull requests it may have produced. They
raise the usual :mod:`tether.github.errors` types; callers decide to swallow
them.
"""

from __future__ import annotations

import msgspec

from .client import GitHubRestClient
from .errors import GitHubResponseShapeError
from .models import PullRequestLink

_GITHUB_API_VERSION = "2022-11-28"


class GitHubSideChannelClient(GitHubRestClient):
    """Posts downstream comments and lists open pull requests."""

    accept = "application/vnd.github+json"

    def _headers(self) -> dict[str, str]:
        headers = super()._headers()
        headers["X-GitHub-Api-Version"] = _GITHUB_API_VERSION
        return headers

    async def post_comment(self, url: str, body: str) -> None:
        """POST ``{"body": body}`` to an issue or pull request comments URL."""
        await self._send("POST", url, path=url, json={"body": body})

    async def list_open_pull_request_urls(self) -> list[str]:
        """Return ``html_url`` for every open pull request in the repository."""
        path = "pulls"
        response = await self._send(
            "GET",
            f"{self._config.repo_url}/{path}",
            path=path,
            params={"state": "open"},
        )
        try:
            pulls = msgspec.json.decode(response.content, type=list[PullRequestLink])
        except msgspec.DecodeError as exc:
            raise GitHubResponseShapeError.invalid(
                path, str(exc), response.text
            ) from exc
        return [pull.html_url for pull in pulls]
