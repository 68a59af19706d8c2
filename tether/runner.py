"""Wire Tether's components together for one invocation.

The sequence mirrors the action's contract:

1. dispatch the workflow and resolve the new run ids (unless triggering is
   disabled, in which case there is nothing to wait for);
2. wait for each run in ascending id order (unless waiting is disabled);
3. AND the per-run verdicts into one exit signal.

Everything runs on one event loop and runs are never polled concurrently.
"""

from __future__ import annotations

import asyncio
import dataclasses
import functools
import time
import typing as typ

import httpx

from tether.dispatch.dispatcher import Dispatcher, utcnow
from tether.dispatch.outcome import OutcomeReporter, ProcessExitSignal, combine
from tether.dispatch.poller import CompletionPoller, build_run_url
from tether.dispatch.retry import Backoff, PollingPolicy
from tether.dispatch.snapshot import RunIdentifier
from tether.github.client import GitHubActionsClient
from tether.github.side_channel import GitHubSideChannelClient
from tether.logging import get_logger, log_info
from tether.outputs import ActionOutput

if typ.TYPE_CHECKING:
    import collections.abc as cabc
    import datetime as dt

    from tether.config import TetherConfig
    from tether.dispatch.retry import Clock, Sleep

logger = get_logger(__name__)

_INITIAL_BACKOFF_S = 1.0


@dataclasses.dataclass(frozen=True, slots=True)
class RunnerEnvironment:
    """Process-level collaborators, replaceable in tests.

    Attributes
    ----------
    output
        Progress and step-output sink.
    transport
        httpx transport shared by both GitHub clients; the default network
        transport when ``None``.
    sleep, clock, now
        Async sleep, monotonic clock, and aware UTC wall clock.

    """

    output: ActionOutput = dataclasses.field(default_factory=ActionOutput.from_env)
    transport: httpx.AsyncBaseTransport | None = None
    sleep: Sleep = asyncio.sleep
    clock: Clock = time.monotonic
    now: cabc.Callable[[], dt.datetime] = utcnow


def _policy(
    config: TetherConfig, env: RunnerEnvironment, timeout_s: float | None
) -> PollingPolicy:
    return PollingPolicy(
        backoff=Backoff(
            initial_s=min(_INITIAL_BACKOFF_S, config.wait_interval_s),
            maximum_s=config.wait_interval_s,
        ),
        timeout_s=timeout_s,
        max_transient_retries=config.max_transient_retries,
        sleep=env.sleep,
        clock=env.clock,
    )


async def run_action(
    config: TetherConfig, env: RunnerEnvironment | None = None
) -> ProcessExitSignal:
    """Dispatch and/or wait as configured and return the overall verdict.

    Raises
    ------
    FatalApiError
        When any workflow call fails non-transiently.
    WaitTimeoutError
        When run identification or completion outlives its deadline, or a
        call keeps failing transiently.

    """
    env = env or RunnerEnvironment()
    actions_config = config.actions_client_config()
    # Both credential scopes share one connection pool.
    http_client = httpx.AsyncClient(
        transport=env.transport,
        timeout=actions_config.timeout_s,
        follow_redirects=True,
    )
    actions = GitHubActionsClient(actions_config, http_client=http_client)
    side_channel = GitHubSideChannelClient(
        config.side_channel_client_config(), http_client=http_client
    )
    try:
        run_ids: tuple[int, ...] = ()
        if config.trigger_workflow:
            identifier = RunIdentifier(
                actions,
                config.workflow,
                actor=config.actor,
                policy=_policy(config, env, config.dispatch_timeout_s),
            )
            dispatcher = Dispatcher(
                actions,
                identifier,
                skew_margin=config.skew_margin,
                policy=_policy(config, env, None),
                now=env.now,
            )
            run_ids = await dispatcher.trigger(config.dispatch_request())
            log_info(
                logger,
                "Dispatch of %s resolved to run(s) %s",
                config.workflow,
                ", ".join(str(run_id) for run_id in run_ids),
            )
        else:
            env.output.say("Skipping triggering the workflow.")

        if not config.wait_workflow:
            env.output.say("Skipping waiting for workflow.")
            return ProcessExitSignal.SUCCESS

        poller = CompletionPoller(
            actions,
            env.output,
            run_url=functools.partial(
                build_run_url, config.server_url, config.owner, config.repo
            ),
            policy=_policy(config, env, config.wait_timeout_s),
            side_channel=side_channel,
            comment_url=config.comment_downstream_url,
        )
        reporter = OutcomeReporter(env.output)
        signals: list[ProcessExitSignal] = []
        for run_id in run_ids:
            outcome = await poller.wait(run_id)
            signals.append(
                reporter.report(outcome, propagate_failure=config.propagate_failure)
            )
        return combine(signals)
    finally:
        await http_client.aclose()
