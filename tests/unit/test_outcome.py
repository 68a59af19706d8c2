"""Unit tests for outcome reporting and exit signals."""

from __future__ import annotations

import pytest

from tests.helpers.recording import RecordingOutput
from tether.dispatch.outcome import OutcomeReporter, ProcessExitSignal, combine
from tether.dispatch.poller import PollState, RunOutcome

_URL = "https://github.com/octo/reef/actions/runs/42"


def _outcome(state: PollState, conclusion: str) -> RunOutcome:
    return RunOutcome(run_id=42, state=state, conclusion=conclusion, url=_URL)


def test_success_is_announced() -> None:
    """A successful run yields SUCCESS whatever the propagation setting."""
    output = RecordingOutput()

    signal = OutcomeReporter(output).report(
        _outcome(PollState.COMPLETED_SUCCESS, "success"), propagate_failure=True
    )

    assert signal is ProcessExitSignal.SUCCESS
    assert output.lines == ["Workflow Completed Successfully"], (
        f"Expected only the success line, got {output.lines}"
    )


@pytest.mark.parametrize(
    ("state", "conclusion"),
    [
        (PollState.COMPLETED_FAILURE, "failure"),
        (PollState.COMPLETED_OTHER, "cancelled"),
    ],
)
def test_failure_is_propagated_when_enabled(state: PollState, conclusion: str) -> None:
    """Any non-success conclusion fails the caller."""
    output = RecordingOutput()

    signal = OutcomeReporter(output).report(
        _outcome(state, conclusion), propagate_failure=True
    )

    assert signal is ProcessExitSignal.FAILURE
    assert signal.exit_code == 1, "Propagated failures must exit non-zero."
    assert output.lines == [
        f"Conclusion is not success, it's [{conclusion}].",
        "Propagating failure to upstream job",
    ]


def test_failure_is_swallowed_when_propagation_is_disabled() -> None:
    """With propagation off a failed run still exits zero."""
    output = RecordingOutput()

    signal = OutcomeReporter(output).report(
        _outcome(PollState.COMPLETED_FAILURE, "failure"), propagate_failure=False
    )

    assert signal is ProcessExitSignal.SUCCESS
    assert signal.exit_code == 0, "Without propagation a failure still exits zero."
    assert output.lines == ["Conclusion is not success, it's [failure]."]


@pytest.mark.parametrize(
    ("signals", "expected"),
    [
        ([], ProcessExitSignal.SUCCESS),
        ([ProcessExitSignal.SUCCESS, ProcessExitSignal.SUCCESS], ProcessExitSignal.SUCCESS),
        ([ProcessExitSignal.SUCCESS, ProcessExitSignal.FAILURE], ProcessExitSignal.FAILURE),
    ],
)
def test_combine_ands_verdicts(
    signals: list[ProcessExitSignal], expected: ProcessExitSignal
) -> None:
    """One failed run fails the whole invocation."""
    assert combine(signals) is expected, (
        f"Expected {signals} to combine to {expected}"
    )
