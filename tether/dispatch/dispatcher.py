"""Trigger a workflow and resolve the run ids the dispatch created."""

from __future__ import annotations

import datetime as dt
import typing as typ

import msgspec

from tether.logging import get_logger, log_info

from .retry import PollingPolicy, call_with_retries

if typ.TYPE_CHECKING:
    import collections.abc as cabc

    from tether.github.client import GitHubActionsClient
    from tether.github.models import DispatchRequest

    from .snapshot import RunIdentifier

logger = get_logger(__name__)

# Local and GitHub clocks may disagree; look this far back before "now".
DEFAULT_SKEW_MARGIN = dt.timedelta(minutes=2)


def utcnow() -> dt.datetime:
    """Return an aware UTC timestamp."""
    return dt.datetime.now(dt.UTC)


class Dispatcher:
    """Issue a ``workflow_dispatch`` event and find the resulting run(s).

    Parameters
    ----------
    client
        Actions client for the target repository.
    identifier
        Snapshot differ bound to the same workflow.
    skew_margin
        How far before "now" the snapshot window starts.
    policy
        Retry pacing for the dispatch call itself.
    now
        Clock returning an aware UTC datetime.

    """

    def __init__(
        self,
        client: GitHubActionsClient,
        identifier: RunIdentifier,
        *,
        skew_margin: dt.timedelta = DEFAULT_SKEW_MARGIN,
        policy: PollingPolicy | None = None,
        now: cabc.Callable[[], dt.datetime] = utcnow,
    ) -> None:
        """Store collaborators; nothing is called until :meth:`trigger`."""
        self._client = client
        self._identifier = identifier
        self._skew_margin = skew_margin
        self._policy = policy or PollingPolicy()
        self._now = now

    async def trigger(self, request: DispatchRequest) -> tuple[int, ...]:
        """Dispatch ``request`` and return the new run ids in ascending order."""
        since = self._now() - self._skew_margin
        old_runs = await self._identifier.snapshot(since)

        log_info(
            logger,
            "Triggering workflow: workflows/%s/dispatches %s",
            request.workflow,
            msgspec.json.encode(request.body()).decode(),
        )
        await call_with_retries(
            lambda: self._client.dispatch_workflow(request),
            policy=self._policy,
            activity=f"dispatching {request.workflow}",
        )

        return await self._identifier.resolve_new_runs(old_runs, since)
