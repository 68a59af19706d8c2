"""Identify the run(s) created by a dispatch by diffing run-id snapshots.

GitHub's dispatch endpoint answers ``204 No Content`` without telling the
caller which run it created. Tether therefore lists recent dispatch runs
before the call, lists them again afterwards until something new shows up,
and treats the difference as the runs it caused.

Both listings use the same ``since`` lower bound, fixed once per dispatch at
"now minus the skew margin". A run created just before the dispatch therefore
lands in the first snapshot and is never mistaken for a new one, even when
the local clock runs ahead of GitHub's.

Two dispatchers racing inside the same window can each see the other's run
as new. That misattribution is accepted and reported with a warning.
"""

from __future__ import annotations

import dataclasses
import typing as typ

from tether.errors import WaitTimeoutError
from tether.logging import get_logger, log_debug, log_warning

from .retry import PollingPolicy, call_with_retries

if typ.TYPE_CHECKING:
    import collections.abc as cabc
    import datetime as dt

    from tether.github.client import GitHubActionsClient

logger = get_logger(__name__)


@dataclasses.dataclass(frozen=True, slots=True)
class RunSnapshot:
    """Sorted, de-duplicated run ids observed at one point in time."""

    run_ids: tuple[int, ...] = ()

    @classmethod
    def of(cls, run_ids: cabc.Iterable[int]) -> RunSnapshot:
        """Build a snapshot regardless of the order the API listed ids in."""
        return cls(tuple(sorted(set(run_ids))))

    def __iter__(self) -> cabc.Iterator[int]:
        """Iterate run ids in ascending order."""
        return iter(self.run_ids)

    def __len__(self) -> int:
        """Return the number of runs observed."""
        return len(self.run_ids)

    def __contains__(self, run_id: object) -> bool:
        """Whether ``run_id`` was observed."""
        return run_id in self.run_ids

    def new_since(self, older: RunSnapshot) -> tuple[int, ...]:
        """Return ids present here but absent from ``older``, ascending."""
        seen = set(older.run_ids)
        return tuple(run_id for run_id in self.run_ids if run_id not in seen)


class RunIdentifier:
    """Capture snapshots of one workflow's dispatch runs and diff them."""

    def __init__(
        self,
        client: GitHubActionsClient,
        workflow: str,
        *,
        actor: str | None = None,
        policy: PollingPolicy | None = None,
    ) -> None:
        """Bind the identifier to a workflow and optional triggering actor."""
        self._client = client
        self._workflow = workflow
        self._actor = actor
        self._policy = policy or PollingPolicy()

    async def snapshot(self, since: dt.datetime) -> RunSnapshot:
        """List dispatch runs created at or after ``since``."""
        run_ids = await call_with_retries(
            lambda: self._client.list_workflow_run_ids(
                self._workflow, since=since, actor=self._actor
            ),
            policy=self._policy,
            activity=f"listing runs of {self._workflow}",
        )
        return RunSnapshot.of(run_ids)

    async def resolve_new_runs(
        self, old: RunSnapshot, since: dt.datetime
    ) -> tuple[int, ...]:
        """Re-snapshot with the same ``since`` until new run ids appear.

        Parameters
        ----------
        old
            Snapshot captured before the dispatch call.
        since
            The lower bound used for ``old``; never recomputed here.

        Returns
        -------
        tuple[int, ...]
            Newly observed run ids in ascending order. Usually one; more when
            another dispatcher raced this one.

        Raises
        ------
        WaitTimeoutError
            If no new run shows up before the policy deadline.

        """
        deadline = self._policy.deadline()
        delays = self._policy.backoff.delays()
        attempts = 0
        while True:
            attempts += 1
            current = await self.snapshot(since)
            new_ids = current.new_since(old)
            if new_ids:
                break
            log_debug(
                logger,
                "No new run of %s yet (attempt %d, %d known)",
                self._workflow,
                attempts,
                len(current),
            )
            if deadline.expired():
                raise WaitTimeoutError.deadline(
                    f"waiting for a new run of {self._workflow} to appear",
                    typ.cast("float", self._policy.timeout_s),
                )
            await self._policy.pause(next(delays), deadline)

        if len(new_ids) > 1:
            log_warning(
                logger,
                "Resolved %d new runs of %s (%s); another dispatch may have raced "
                "this one and every new run will be followed",
                len(new_ids),
                self._workflow,
                ", ".join(str(run_id) for run_id in new_ids),
            )
        return new_ids
