"""GitHub REST clients for workflow dispatch and run observation."""

from __future__ import annotations

from .client import GitHubActionsClient, GitHubClientConfig, format_since
from .errors import (
    FatalApiError,
    GitHubAPIError,
    GitHubResponseShapeError,
    RetryableApiError,
)
from .models import (
    DispatchRequest,
    RunConclusion,
    RunStatus,
    WorkflowRun,
    WorkflowRunsPage,
)
from .side_channel import GitHubSideChannelClient

__all__ = [
    "DispatchRequest",
    "FatalApiError",
    "GitHubAPIError",
    "GitHubActionsClient",
    "GitHubClientConfig",
    "GitHubResponseShapeError",
    "GitHubSideChannelClient",
    "RetryableApiError",
    "RunConclusion",
    "RunStatus",
    "WorkflowRun",
    "WorkflowRunsPage",
    "format_since",
]
