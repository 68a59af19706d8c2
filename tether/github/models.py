"""Typed models for the GitHub Actions REST payloads Tether consumes."""

from __future__ import annotations

import dataclasses
import enum
import types
import typing as typ

import msgspec


class RunStatus(enum.StrEnum):
    """Lifecycle status reported for a workflow run."""

    REQUESTED = "requested"
    QUEUED = "queued"
    PENDING = "pending"
    WAITING = "waiting"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    UNKNOWN = "unknown"


class RunConclusion(enum.StrEnum):
    """Final result of a completed workflow run."""

    SUCCESS = "success"
    FAILURE = "failure"
    CANCELLED = "cancelled"
    TIMED_OUT = "timed_out"
    STARTUP_FAILURE = "startup_failure"
    SKIPPED = "skipped"
    NEUTRAL = "neutral"
    ACTION_REQUIRED = "action_required"
    STALE = "stale"
    UNKNOWN = "unknown"


class WorkflowRun(msgspec.Struct, kw_only=True):
    """Single run as returned by ``GET actions/runs/{id}``.

    Only ``status`` and ``conclusion`` drive behaviour; the record is fetched
    fresh on every poll.
    """

    id: int
    status: str | None = None
    conclusion: str | None = None
    html_url: str = ""

    @property
    def run_status(self) -> RunStatus:
        """Return the status as an enum, ``UNKNOWN`` when unrecognised."""
        if self.status is None:
            return RunStatus.UNKNOWN
        try:
            return RunStatus(self.status)
        except ValueError:
            return RunStatus.UNKNOWN

    @property
    def run_conclusion(self) -> RunConclusion | None:
        """Return the conclusion, or ``None`` while the run is incomplete."""
        if self.conclusion is None:
            return None
        try:
            return RunConclusion(self.conclusion)
        except ValueError:
            return RunConclusion.UNKNOWN

    @property
    def is_completed(self) -> bool:
        """Whether the conclusion can be trusted."""
        return self.run_status is RunStatus.COMPLETED


class _RunIdentity(msgspec.Struct):
    id: int


class WorkflowRunsPage(msgspec.Struct):
    """One page of ``GET workflows/{workflow}/runs``."""

    workflow_runs: list[_RunIdentity] = msgspec.field(default_factory=list)

    def run_ids(self) -> list[int]:
        """Return the run identifiers on this page."""
        return [run.id for run in self.workflow_runs]


class PullRequestLink(msgspec.Struct):
    """Pull request entry reduced to the field surfaced to users."""

    html_url: str


@dataclasses.dataclass(frozen=True, slots=True)
class DispatchRequest:
    """A ``workflow_dispatch`` invocation.

    Attributes
    ----------
    workflow
        Workflow file name (``deploy.yml``) or numeric workflow id.
    ref
        Branch or tag the workflow runs against.
    inputs
        JSON object forwarded as the workflow's ``inputs``.

    """

    workflow: str
    ref: str = "main"
    inputs: typ.Mapping[str, typ.Any] = dataclasses.field(default_factory=dict)

    def __post_init__(self) -> None:
        """Freeze the inputs mapping so the request cannot drift after creation."""
        object.__setattr__(self, "inputs", types.MappingProxyType(dict(self.inputs)))

    def body(self) -> dict[str, typ.Any]:
        """Return the JSON body for the dispatches endpoint."""
        return {"ref": self.ref, "inputs": dict(self.inputs)}
