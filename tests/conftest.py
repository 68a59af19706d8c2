"""Shared fixtures for unit and feature tests."""

from __future__ import annotations

import typing as typ

import httpx
import pytest
import pytest_asyncio

from tests.helpers.fake_github import (
    OWNER,
    REPO,
    TEST_TOKEN,
    WORKFLOW,
    FakeClock,
    FakeGitHubActions,
    client_config,
)
from tests.helpers.recording import RecordingOutput
from tether.config import TetherConfig
from tether.dispatch.retry import Backoff, PollingPolicy
from tether.github.client import GitHubActionsClient
from tether.github.side_channel import GitHubSideChannelClient

if typ.TYPE_CHECKING:
    import collections.abc as cabc
    from pathlib import Path


@pytest.fixture
def fake_github() -> FakeGitHubActions:
    """Provide an empty fake GitHub Actions API."""
    return FakeGitHubActions()


@pytest.fixture
def fake_clock() -> FakeClock:
    """Provide a clock that only moves when the code under test sleeps."""
    return FakeClock()


@pytest.fixture
def policy(fake_clock: FakeClock) -> PollingPolicy:
    """Provide a polling policy driven by ``fake_clock``."""
    return PollingPolicy(
        backoff=Backoff(initial_s=1.0, maximum_s=10.0),
        timeout_s=60.0,
        max_transient_retries=3,
        sleep=fake_clock.sleep,
        clock=fake_clock.monotonic,
    )


@pytest.fixture
def recording_output(tmp_path: Path) -> RecordingOutput:
    """Provide an output sink backed by a temporary ``GITHUB_OUTPUT`` file."""
    return RecordingOutput(tmp_path / "github_output")


@pytest_asyncio.fixture
async def http_client(
    fake_github: FakeGitHubActions,
) -> cabc.AsyncIterator[httpx.AsyncClient]:
    """Yield an httpx client routed to ``fake_github``."""
    client = httpx.AsyncClient(transport=fake_github.transport())
    try:
        yield client
    finally:
        await client.aclose()


@pytest.fixture
def actions_client(http_client: httpx.AsyncClient) -> GitHubActionsClient:
    """Provide an Actions client bound to the fake API."""
    return GitHubActionsClient(client_config(), http_client=http_client)


@pytest.fixture
def side_channel_client(http_client: httpx.AsyncClient) -> GitHubSideChannelClient:
    """Provide a side-channel client bound to the fake API."""
    return GitHubSideChannelClient(
        client_config("ghp_comment_token"), http_client=http_client
    )


@pytest.fixture
def make_config() -> cabc.Callable[..., TetherConfig]:
    """Return a factory for configurations targeting the fake repository."""

    def _make(**overrides: typ.Any) -> TetherConfig:  # noqa: ANN401
        values: dict[str, typ.Any] = {
            "owner": OWNER,
            "repo": REPO,
            "github_token": TEST_TOKEN,
            "workflow": WORKFLOW,
        }
        values.update(overrides)
        return TetherConfig(**values)

    return _make
