"""Wait for a workflow run to reach a terminal state.

Each run moves through a small state machine::

    PENDING --(status == completed)--+--> COMPLETED_SUCCESS
                                     +--> COMPLETED_FAILURE
                                     +--> COMPLETED_OTHER

Every tick fetches the run afresh; GitHub is the only source of truth. The
conclusion is read only once ``status`` is ``completed``.
"""

from __future__ import annotations

import dataclasses
import enum
import typing as typ

import httpx

from tether.errors import WaitTimeoutError
from tether.github.errors import GitHubAPIError
from tether.github.models import RunConclusion
from tether.logging import get_logger, log_debug, log_info, log_warning

from .retry import PollingPolicy, call_with_retries

if typ.TYPE_CHECKING:
    import collections.abc as cabc

    from tether.github.client import GitHubActionsClient
    from tether.github.models import WorkflowRun
    from tether.github.side_channel import GitHubSideChannelClient
    from tether.outputs import ActionOutput

logger = get_logger(__name__)

_FAILURE_CONCLUSIONS = frozenset(
    {
        RunConclusion.FAILURE,
        RunConclusion.TIMED_OUT,
        RunConclusion.STARTUP_FAILURE,
    }
)

# Side-channel errors are reported and then ignored.
_BEST_EFFORT_ERRORS = (GitHubAPIError, httpx.HTTPError, httpx.InvalidURL)


class PollState(enum.StrEnum):
    """Where a run sits in the completion state machine."""

    PENDING = "pending"
    COMPLETED_SUCCESS = "completed_success"
    COMPLETED_FAILURE = "completed_failure"
    COMPLETED_OTHER = "completed_other"

    @property
    def is_terminal(self) -> bool:
        """Whether no further transitions can happen."""
        return self is not PollState.PENDING


def classify_run(run: WorkflowRun) -> PollState:
    """Map a fetched run onto :class:`PollState`.

    Incomplete runs stay ``PENDING`` whatever their conclusion field says.
    """
    if not run.is_completed:
        return PollState.PENDING
    conclusion = run.run_conclusion
    if conclusion is RunConclusion.SUCCESS:
        return PollState.COMPLETED_SUCCESS
    if conclusion in _FAILURE_CONCLUSIONS:
        return PollState.COMPLETED_FAILURE
    return PollState.COMPLETED_OTHER


def build_run_url(server_url: str, owner: str, repo: str, run_id: int) -> str:
    """Return the human-facing URL of a workflow run."""
    return f"{server_url.rstrip('/')}/{owner}/{repo}/actions/runs/{run_id}"


@dataclasses.dataclass(frozen=True, slots=True)
class RunOutcome:
    """Terminal observation of one run."""

    run_id: int
    state: PollState
    conclusion: str | None
    url: str

    @property
    def succeeded(self) -> bool:
        """Whether the run concluded with ``success``."""
        return self.state is PollState.COMPLETED_SUCCESS


class CompletionPoller:
    """Poll runs until they finish and publish their terminal side effects.

    Parameters
    ----------
    client
        Actions client used for ``GET runs/{id}``.
    output
        Sink for progress lines and step outputs.
    run_url
        Callable building the web URL for a run id.
    policy
        Backoff between ticks, wait deadline, and transient retry budget.
    side_channel
        Client for the comment and pull request calls, if any.
    comment_url
        Comments endpoint notified once per finished run, if configured.

    """

    def __init__(
        self,
        client: GitHubActionsClient,
        output: ActionOutput,
        *,
        run_url: cabc.Callable[[int], str],
        policy: PollingPolicy | None = None,
        side_channel: GitHubSideChannelClient | None = None,
        comment_url: str | None = None,
    ) -> None:
        """Store collaborators for later polling."""
        self._client = client
        self._output = output
        self._run_url = run_url
        self._policy = policy or PollingPolicy()
        self._side_channel = side_channel
        self._comment_url = comment_url

    async def poll_once(self, run_id: int) -> tuple[PollState, WorkflowRun]:
        """Run a single tick: fetch the run and classify it."""
        run = await call_with_retries(
            lambda: self._client.get_run(run_id),
            policy=self._policy,
            activity=f"fetching run {run_id}",
        )
        return classify_run(run), run

    async def wait(self, run_id: int) -> RunOutcome:
        """Block until ``run_id`` is terminal, then publish its outcome.

        Raises
        ------
        FatalApiError
            If fetching the run fails non-transiently.
        WaitTimeoutError
            If the run is still pending when the wait deadline passes.

        """
        url = self._run_url(run_id)
        self._output.say("Waiting for workflow to finish:")
        self._output.say(f"The workflow id is [{run_id}].")
        self._output.say(f"The workflow logs can be found at {url}")
        self._output.say()

        deadline = self._policy.deadline()
        delays = self._policy.backoff.delays()
        while True:
            state, run = await self.poll_once(run_id)
            if state.is_terminal:
                break
            log_debug(logger, "Run %d is %s", run_id, run.status)
            if deadline.expired():
                raise WaitTimeoutError.deadline(
                    f"waiting for run {run_id} to complete",
                    typ.cast("float", self._policy.timeout_s),
                )
            await self._policy.pause(next(delays), deadline)

        outcome = RunOutcome(
            run_id=run_id,
            state=state,
            conclusion=run.conclusion,
            url=url,
        )
        log_info(logger, "Run %d finished in state %s", run_id, state)
        await self._publish(outcome)
        return outcome

    async def _publish(self, outcome: RunOutcome) -> None:
        self._output.say(f"workflow_id={outcome.run_id}")
        self._output.say(f"workflow_url={outcome.url}")
        self._output.set("workflow_id", outcome.run_id)
        self._output.set("workflow_url", outcome.url)

        await self._notify_downstream(outcome)
        if outcome.succeeded:
            await self._surface_pull_requests()

    async def _notify_downstream(self, outcome: RunOutcome) -> None:
        if self._comment_url is None or self._side_channel is None:
            return
        body = (
            f"Downstream job at {outcome.url} finished with conclusion "
            f"`{outcome.conclusion}`"
        )
        try:
            await self._side_channel.post_comment(self._comment_url, body)
        except _BEST_EFFORT_ERRORS as exc:
            log_warning(
                logger, "failed to comment to %s: %s", self._comment_url, exc
            )

    async def _surface_pull_requests(self) -> None:
        if self._side_channel is None:
            return
        self._output.say("Fetching The PR Link")
        try:
            urls = await self._side_channel.list_open_pull_request_urls()
        except _BEST_EFFORT_ERRORS as exc:
            log_warning(logger, "PR link not fetched: %s", exc)
            self._output.say("PR Link Not Fetched Due To Some Error")
            return
        for pull_url in urls:
            self._output.say(pull_url)
