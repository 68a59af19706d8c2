"""Translate finished runs into Tether's own exit status."""

from __future__ import annotations

import enum
import typing as typ

from tether.logging import get_logger, log_info

if typ.TYPE_CHECKING:
    import collections.abc as cabc

    from tether.outputs import ActionOutput

    from .poller import RunOutcome

logger = get_logger(__name__)


class ProcessExitSignal(enum.IntEnum):
    """Overall verdict, valued as the process exit code."""

    SUCCESS = 0
    FAILURE = 1

    @property
    def exit_code(self) -> int:
        """Return the process exit status."""
        return int(self)


def combine(signals: cabc.Iterable[ProcessExitSignal]) -> ProcessExitSignal:
    """AND per-run verdicts together; an empty iterable succeeds."""
    if all(signal is ProcessExitSignal.SUCCESS for signal in signals):
        return ProcessExitSignal.SUCCESS
    return ProcessExitSignal.FAILURE


class OutcomeReporter:
    """Announce each run's conclusion and decide whether it fails the caller."""

    def __init__(self, output: ActionOutput) -> None:
        """Bind the reporter to an output sink."""
        self._output = output

    def report(
        self, outcome: RunOutcome, *, propagate_failure: bool
    ) -> ProcessExitSignal:
        """Return the exit signal for one terminal run.

        With ``propagate_failure`` disabled every run counts as a success, so
        the caller can observe a downstream run without being failed by it.
        """
        if outcome.succeeded:
            self._output.say("Workflow Completed Successfully")
            return ProcessExitSignal.SUCCESS

        self._output.say(f"Conclusion is not success, it's [{outcome.conclusion}].")
        if propagate_failure:
            self._output.say("Propagating failure to upstream job")
            return ProcessExitSignal.FAILURE

        log_info(
            logger,
            "Run %d ended as %s; failure propagation is disabled",
            outcome.run_id,
            outcome.state,
        )
        return ProcessExitSignal.SUCCESS
