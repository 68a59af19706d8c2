"""Run identification, completion polling, and outcome reporting."""

from __future__ import annotations

from .dispatcher import DEFAULT_SKEW_MARGIN, Dispatcher
from .outcome import OutcomeReporter, ProcessExitSignal, combine
from .poller import CompletionPoller, PollState, RunOutcome, classify_run
from .retry import Backoff, Deadline, PollingPolicy, call_with_retries
from .snapshot import RunIdentifier, RunSnapshot

__all__ = [
    "DEFAULT_SKEW_MARGIN",
    "Backoff",
    "CompletionPoller",
    "Deadline",
    "Dispatcher",
    "OutcomeReporter",
    "PollState",
    "PollingPolicy",
    "ProcessExitSignal",
    "RunIdentifier",
    "RunOutcome",
    "RunSnapshot",
    "call_with_retries",
    "classify_run",
    "combine",
]
