"""Configuration for a single Tether invocation.

Tether runs as a GitHub Action, so its inputs arrive as ``INPUT_<NAME>``
environment variables. :meth:`TetherConfig.from_env` reads them once at
startup; the resulting frozen value is passed by reference to every
component and never consulted through globals.

Usage
-----
>>> config = TetherConfig.from_inputs(
...     {
...         "owner": "octo",
...         "repo": "reef",
...         "github_token": "ghp_example",
...         "workflow_file_name": "deploy.yml",
...     }
... )
>>> config.ref
'main'

"""

from __future__ import annotations

import dataclasses as dc
import datetime as dt
import math
import os
import typing as typ

import msgspec

from tether.errors import TetherConfigError
from tether.github.client import DEFAULT_API_URL, GitHubClientConfig
from tether.github.models import DispatchRequest

if typ.TYPE_CHECKING:
    import collections.abc as cabc

DEFAULT_SERVER_URL = "https://github.com"
_DEFAULT_REF = "main"
_DEFAULT_WAIT_INTERVAL_S = 10.0
_DEFAULT_SKEW_MARGIN_S = 120.0
_DEFAULT_DISPATCH_TIMEOUT_S = 300.0
_DEFAULT_WAIT_TIMEOUT_S = 6 * 60 * 60.0
_DEFAULT_MAX_TRANSIENT_RETRIES = 10

_TRUE_VALUES = frozenset({"true", "yes", "1", "on"})
_FALSE_VALUES = frozenset({"false", "no", "0", "off"})

# Input names accepted by the action, in the order they are validated.
INPUT_NAMES = (
    "owner",
    "repo",
    "github_token",
    "workflow_file_name",
    "github_user",
    "ref",
    "client_payload",
    "wait_interval",
    "skew_margin",
    "trigger_workflow",
    "wait_workflow",
    "propagate_failure",
    "comment_downstream_url",
    "comment_github_token",
    "dispatch_timeout",
    "wait_timeout",
    "max_transient_retries",
)


def input_env_var(name: str) -> str:
    """Return the environment variable GitHub Actions uses for an input."""
    return f"INPUT_{name.upper()}"


def _text(inputs: cabc.Mapping[str, str], name: str) -> str | None:
    raw = inputs.get(name)
    if raw is None:
        return None
    value = raw.strip()
    return value or None


@dc.dataclass(frozen=True, slots=True)
class TetherConfig:
    """Immutable settings shared by every Tether component.

    Attributes
    ----------
    owner, repo
        Repository hosting the workflow to dispatch.
    github_token
        Token used for the dispatch, run listing, and run polling calls.
    workflow
        Workflow file name (``deploy.yml``) or numeric id.
    actor
        Restrict run snapshots to runs triggered by this login.
    ref
        Branch or tag the workflow runs against.
    inputs
        JSON object passed as the workflow's ``inputs``.
    wait_interval_s
        Ceiling for the exponential backoff between polls.
    skew_margin_s
        How far before "now" run snapshots start, to absorb clock skew.
    trigger_workflow, wait_workflow, propagate_failure
        Stage toggles; disabled stages are skipped without error.
    comment_downstream_url
        Comments endpoint notified when each run finishes.
    comment_github_token
        Token for the comment and pull request calls; defaults to
        ``github_token``.
    dispatch_timeout_s, wait_timeout_s
        Deadlines for run identification and for each run's completion.
        ``None`` waits indefinitely.
    max_transient_retries
        Consecutive transient API failures tolerated per call.
    api_url, server_url
        GitHub REST API and web roots (GitHub Enterprise friendly).

    """

    owner: str
    repo: str
    github_token: str
    workflow: str
    actor: str | None = None
    ref: str = _DEFAULT_REF
    inputs: cabc.Mapping[str, typ.Any] = dc.field(default_factory=dict)
    wait_interval_s: float = _DEFAULT_WAIT_INTERVAL_S
    skew_margin_s: float = _DEFAULT_SKEW_MARGIN_S
    trigger_workflow: bool = True
    wait_workflow: bool = True
    propagate_failure: bool = True
    comment_downstream_url: str | None = None
    comment_github_token: str | None = None
    dispatch_timeout_s: float | None = _DEFAULT_DISPATCH_TIMEOUT_S
    wait_timeout_s: float | None = _DEFAULT_WAIT_TIMEOUT_S
    max_transient_retries: int = _DEFAULT_MAX_TRANSIENT_RETRIES
    api_url: str = DEFAULT_API_URL
    server_url: str = DEFAULT_SERVER_URL

    @property
    def skew_margin(self) -> dt.timedelta:
        """Return the snapshot look-back as a timedelta."""
        return dt.timedelta(seconds=self.skew_margin_s)

    @property
    def side_channel_token(self) -> str:
        """Return the token for comment and pull request calls."""
        return self.comment_github_token or self.github_token

    def dispatch_request(self) -> DispatchRequest:
        """Build the dispatch request described by this configuration."""
        return DispatchRequest(workflow=self.workflow, ref=self.ref, inputs=self.inputs)

    def actions_client_config(self) -> GitHubClientConfig:
        """Return client settings for the workflow credential scope."""
        return GitHubClientConfig(
            token=self.github_token,
            owner=self.owner,
            repo=self.repo,
            api_url=self.api_url,
        )

    def side_channel_client_config(self) -> GitHubClientConfig:
        """Return client settings for the comment credential scope."""
        return GitHubClientConfig(
            token=self.side_channel_token,
            owner=self.owner,
            repo=self.repo,
            api_url=self.api_url,
        )

    @staticmethod
    def _parse_bool(
        inputs: cabc.Mapping[str, str], name: str, *, default: bool
    ) -> bool:
        raw = _text(inputs, name)
        if raw is None:
            return default
        lowered = raw.lower()
        if lowered in _TRUE_VALUES:
            return True
        if lowered in _FALSE_VALUES:
            return False
        raise TetherConfigError.invalid(name, raw, "Must be true or false")

    @staticmethod
    def _parse_seconds(
        inputs: cabc.Mapping[str, str], name: str, default: float
    ) -> float:
        raw = _text(inputs, name)
        if raw is None:
            return default
        try:
            value = float(raw)
        except ValueError as exc:
            raise TetherConfigError.invalid(
                name, raw, "Must be a number of seconds"
            ) from exc
        if not math.isfinite(value):
            raise TetherConfigError.invalid(name, raw, "Must be a finite number")
        if value < 0:
            raise TetherConfigError.invalid(name, raw, "Must not be negative")
        return value

    @classmethod
    def _parse_deadline(
        cls, inputs: cabc.Mapping[str, str], name: str, default: float
    ) -> float | None:
        value = cls._parse_seconds(inputs, name, default)
        # Zero disables the deadline.
        return value or None

    @staticmethod
    def _parse_count(inputs: cabc.Mapping[str, str], name: str, default: int) -> int:
        raw = _text(inputs, name)
        if raw is None:
            return default
        try:
            value = int(raw)
        except ValueError as exc:
            raise TetherConfigError.invalid(name, raw, "Must be an integer") from exc
        if value < 0:
            raise TetherConfigError.invalid(name, raw, "Must not be negative")
        return value

    @staticmethod
    def _parse_payload(inputs: cabc.Mapping[str, str]) -> dict[str, typ.Any]:
        raw = _text(inputs, "client_payload")
        if raw is None:
            return {}
        try:
            payload = msgspec.json.decode(raw)
        except msgspec.DecodeError as exc:
            raise TetherConfigError.invalid(
                "client_payload", raw, "Must be valid JSON"
            ) from exc
        if not isinstance(payload, dict):
            raise TetherConfigError.invalid(
                "client_payload", raw, "Must be a JSON object"
            )
        return payload

    @classmethod
    def from_inputs(
        cls,
        inputs: cabc.Mapping[str, str],
        *,
        api_url: str | None = None,
        server_url: str | None = None,
    ) -> TetherConfig:
        """Validate raw action inputs and build the configuration.

        Parameters
        ----------
        inputs
            Raw values keyed by input name (see :data:`INPUT_NAMES`). Blank
            values count as unset.
        api_url, server_url
            Optional overrides for the GitHub API and web roots.

        Raises
        ------
        TetherConfigError
            If a required input is missing or any value is malformed. Raised
            before any network call is made.

        """
        owner = _text(inputs, "owner")
        if owner is None:
            raise TetherConfigError.missing("Owner")
        repo = _text(inputs, "repo")
        if repo is None:
            raise TetherConfigError.missing("Repo")
        github_token = _text(inputs, "github_token")
        if github_token is None:
            raise TetherConfigError.missing_token()
        workflow = _text(inputs, "workflow_file_name")
        if workflow is None:
            raise TetherConfigError.missing("Workflow File Name")

        return cls(
            owner=owner,
            repo=repo,
            github_token=github_token,
            workflow=workflow,
            actor=_text(inputs, "github_user"),
            ref=_text(inputs, "ref") or _DEFAULT_REF,
            inputs=cls._parse_payload(inputs),
            wait_interval_s=cls._parse_seconds(
                inputs, "wait_interval", _DEFAULT_WAIT_INTERVAL_S
            ),
            skew_margin_s=cls._parse_seconds(
                inputs, "skew_margin", _DEFAULT_SKEW_MARGIN_S
            ),
            trigger_workflow=cls._parse_bool(
                inputs, "trigger_workflow", default=True
            ),
            wait_workflow=cls._parse_bool(
                inputs, "wait_workflow", default=True
            ),
            propagate_failure=cls._parse_bool(
                inputs, "propagate_failure", default=True
            ),
            comment_downstream_url=_text(inputs, "comment_downstream_url"),
            comment_github_token=_text(inputs, "comment_github_token"),
            dispatch_timeout_s=cls._parse_deadline(
                inputs, "dispatch_timeout", _DEFAULT_DISPATCH_TIMEOUT_S
            ),
            wait_timeout_s=cls._parse_deadline(
                inputs, "wait_timeout", _DEFAULT_WAIT_TIMEOUT_S
            ),
            max_transient_retries=cls._parse_count(
                inputs, "max_transient_retries", _DEFAULT_MAX_TRANSIENT_RETRIES
            ),
            api_url=(api_url or "").strip() or DEFAULT_API_URL,
            server_url=(server_url or "").strip() or DEFAULT_SERVER_URL,
        )

    @classmethod
    def from_env(cls, environ: cabc.Mapping[str, str] | None = None) -> TetherConfig:
        """Build configuration from ``INPUT_*``, ``API_URL`` and ``SERVER_URL``."""
        env = os.environ if environ is None else environ
        return cls.from_inputs(
            read_inputs(env),
            api_url=env.get("API_URL"),
            server_url=env.get("SERVER_URL"),
        )


def read_inputs(environ: cabc.Mapping[str, str]) -> dict[str, str]:
    """Collect the action inputs present in ``environ``."""
    inputs: dict[str, str] = {}
    for name in INPUT_NAMES:
        value = environ.get(input_env_var(name))
        if value is not None:
            inputs[name] = value
    return inputs
