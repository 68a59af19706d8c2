"""Unit tests for run identification by snapshot diffing."""

from __future__ import annotations

import datetime as dt

import pytest

from tests.helpers.fake_github import (
    BASE_TIME,
    WORKFLOW,
    FakeClock,
    FakeGitHubActions,
    FakeRun,
)
from tests.helpers.femtologging_capture import capture_femto_logs
from tether.dispatch.retry import PollingPolicy
from tether.dispatch.snapshot import RunIdentifier, RunSnapshot
from tether.errors import WaitTimeoutError
from tether.github.client import GitHubActionsClient
from tether.github.models import DispatchRequest

_SINCE = BASE_TIME - dt.timedelta(minutes=2)


class TestRunSnapshot:
    """Tests for the snapshot value type."""

    def test_of_sorts_and_deduplicates(self) -> None:
        """Listing order and duplicates do not matter."""
        snapshot = RunSnapshot.of([30, 10, 20, 10])

        assert tuple(snapshot) == (10, 20, 30)
        assert len(snapshot) == 3
        assert 20 in snapshot

    def test_new_since_is_the_ordered_difference(self) -> None:
        """Only ids absent from the older snapshot count as new."""
        old = RunSnapshot.of([10, 20])
        new = RunSnapshot.of([30, 20, 25, 10])

        assert new.new_since(old) == (25, 30), (
            "Expected only ids absent from the old snapshot, in ascending order."
        )

    def test_vanished_runs_are_not_new(self) -> None:
        """A run deleted between snapshots does not produce a diff."""
        old = RunSnapshot.of([10, 20])
        new = RunSnapshot.of([20])

        assert new.new_since(old) == (), "Expected a vanished run to be ignored."


@pytest.mark.asyncio
async def test_snapshot_passes_since_and_actor(
    actions_client: GitHubActionsClient,
    fake_github: FakeGitHubActions,
    policy: PollingPolicy,
) -> None:
    """Snapshots only contain runs by the configured actor."""
    fake_github.add_run(FakeRun(id=5, created_at=BASE_TIME, actor="hubot"))
    fake_github.add_run(FakeRun(id=6, created_at=BASE_TIME, actor="octo"))
    identifier = RunIdentifier(actions_client, WORKFLOW, actor="hubot", policy=policy)

    snapshot = await identifier.snapshot(_SINCE)

    assert tuple(snapshot) == (5,), f"Expected only hubot's run, got {tuple(snapshot)}"


@pytest.mark.asyncio
async def test_resolve_waits_for_the_new_run_to_become_visible(
    actions_client: GitHubActionsClient,
    fake_github: FakeGitHubActions,
    fake_clock: FakeClock,
    policy: PollingPolicy,
) -> None:
    """Listings are repeated with backoff until the dispatched run appears."""
    fake_github.listings_before_visible = 2
    fake_github.add_run(FakeRun(id=7, created_at=BASE_TIME))
    identifier = RunIdentifier(actions_client, WORKFLOW, policy=policy)

    old = await identifier.snapshot(_SINCE)
    await actions_client.dispatch_workflow(DispatchRequest(workflow=WORKFLOW))
    new_ids = await identifier.resolve_new_runs(old, _SINCE)

    assert new_ids == (42,)
    assert fake_clock.sleeps == [1.0, 2.0], (
        f"Expected exponential backoff between listings, got {fake_clock.sleeps}"
    )
    listed_bounds = {
        request.url.params["created"] for request in fake_github.requests_for("list")
    }
    assert listed_bounds == {">=2099-01-01T11:58:00+00:00"}


@pytest.mark.asyncio
async def test_run_created_inside_the_skew_margin_is_not_mistaken_for_new(
    actions_client: GitHubActionsClient,
    fake_github: FakeGitHubActions,
    policy: PollingPolicy,
) -> None:
    """A pre-existing run stamped just before the dispatch stays in the old set.

    The local clock runs a minute ahead of GitHub, so a lower bound without
    margin would exclude the earlier run from the first snapshot and then see
    it "appear" later.
    """
    local_now = BASE_TIME + dt.timedelta(minutes=1)
    since = local_now - dt.timedelta(minutes=2)
    fake_github.add_run(FakeRun(id=41, created_at=BASE_TIME - dt.timedelta(seconds=30)))
    identifier = RunIdentifier(actions_client, WORKFLOW, policy=policy)

    old = await identifier.snapshot(since)
    await actions_client.dispatch_workflow(DispatchRequest(workflow=WORKFLOW))
    new_ids = await identifier.resolve_new_runs(old, since)

    assert 41 in old, "Expected the skewed run in the pre-dispatch snapshot."
    assert new_ids == (42,)


@pytest.mark.asyncio
async def test_resolve_times_out_when_no_run_appears(
    actions_client: GitHubActionsClient,
    fake_clock: FakeClock,
    policy: PollingPolicy,
) -> None:
    """An empty diff past the deadline raises a timeout."""
    identifier = RunIdentifier(actions_client, WORKFLOW, policy=policy)
    old = await identifier.snapshot(_SINCE)

    with pytest.raises(WaitTimeoutError, match="Timed out after 60s"):
        await identifier.resolve_new_runs(old, _SINCE)

    assert fake_clock.now == pytest.approx(60.0), (
        f"Expected to give up at the 60s deadline, stopped at {fake_clock.now}"
    )


@pytest.mark.asyncio
async def test_racing_dispatches_are_all_returned_with_a_warning(
    actions_client: GitHubActionsClient,
    fake_github: FakeGitHubActions,
    policy: PollingPolicy,
) -> None:
    """Another dispatcher's run in the same window is followed too."""
    fake_github.concurrent_dispatches = [FakeRun(id=43, created_at=BASE_TIME)]
    identifier = RunIdentifier(actions_client, WORKFLOW, policy=policy)

    old = await identifier.snapshot(_SINCE)
    await actions_client.dispatch_workflow(DispatchRequest(workflow=WORKFLOW))
    with capture_femto_logs("tether.dispatch.snapshot") as capture:
        new_ids = await identifier.resolve_new_runs(old, _SINCE)
        # One "no new run yet" debug record, then the race warning.
        capture.wait_for_count(2)

    assert new_ids == (42, 43)
    warnings = capture.messages_containing("Resolved 2 new runs")
    assert len(warnings) == 1, f"expected one race warning, got {capture.records}"
    assert "42, 43" in warnings[0]
