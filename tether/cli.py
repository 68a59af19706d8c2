"""Trigger a GitHub Actions workflow and wait for the run it creates.

Inputs are read from ``INPUT_*`` environment variables, as GitHub Actions
provides them; command-line flags override individual inputs. Tokens are
only accepted from the environment.
"""

from __future__ import annotations

import argparse
import asyncio
import os
import typing as typ

from tether.config import TetherConfig, read_inputs
from tether.errors import TetherConfigError, WaitTimeoutError
from tether.github.errors import FatalApiError
from tether.logging import configure_logging, get_logger, log_error, log_warning
from tether.runner import RunnerEnvironment, run_action

if typ.TYPE_CHECKING:
    import collections.abc as cabc

logger = get_logger(__name__)

_FAILURE_EXIT_CODE = 1

# Flag destinations that map one-to-one onto action input names.
_OVERRIDABLE_INPUTS = (
    "owner",
    "repo",
    "workflow_file_name",
    "github_user",
    "ref",
    "client_payload",
    "wait_interval",
    "skew_margin",
    "trigger_workflow",
    "wait_workflow",
    "propagate_failure",
    "comment_downstream_url",
    "dispatch_timeout",
    "wait_timeout",
    "max_transient_retries",
)


def build_parser() -> argparse.ArgumentParser:
    """Return the argument parser for the ``tether`` command."""
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("--owner", help="Repository owner")
    parser.add_argument("--repo", help="Repository name")
    parser.add_argument(
        "--workflow",
        dest="workflow_file_name",
        help="Workflow file name or id to dispatch",
    )
    parser.add_argument(
        "--github-user", help="Only consider runs triggered by this login"
    )
    parser.add_argument("--ref", help="Branch or tag to run against (default main)")
    parser.add_argument(
        "--client-payload", help="JSON object passed as workflow inputs"
    )
    parser.add_argument(
        "--wait-interval", help="Maximum seconds between polls (default 10)"
    )
    parser.add_argument(
        "--skew-margin", help="Seconds of clock skew to tolerate (default 120)"
    )
    parser.add_argument(
        "--trigger-workflow",
        action=argparse.BooleanOptionalAction,
        default=None,
        help="Dispatch the workflow (default true)",
    )
    parser.add_argument(
        "--wait-workflow",
        action=argparse.BooleanOptionalAction,
        default=None,
        help="Wait for dispatched runs to finish (default true)",
    )
    parser.add_argument(
        "--propagate-failure",
        action=argparse.BooleanOptionalAction,
        default=None,
        help="Exit non-zero when a run does not succeed (default true)",
    )
    parser.add_argument(
        "--comment-downstream-url",
        help="Comments URL to notify when a run finishes",
    )
    parser.add_argument(
        "--dispatch-timeout",
        help="Seconds to wait for the dispatched run to appear; 0 waits forever",
    )
    parser.add_argument(
        "--wait-timeout",
        help="Seconds to wait for each run to finish; 0 waits forever",
    )
    parser.add_argument(
        "--max-transient-retries",
        help="Consecutive transient API failures tolerated per call",
    )
    parser.add_argument("--api-url", help="GitHub REST API root")
    parser.add_argument("--server-url", help="GitHub web root")
    parser.add_argument(
        "--log-level",
        default=os.environ.get("TETHER_LOG_LEVEL", "INFO"),
        help="Log level (default from TETHER_LOG_LEVEL or INFO)",
    )
    return parser


def _merge_inputs(
    args: argparse.Namespace, environ: cabc.Mapping[str, str]
) -> dict[str, str]:
    inputs = read_inputs(environ)
    for name in _OVERRIDABLE_INPUTS:
        value = getattr(args, name)
        if value is None:
            continue
        if isinstance(value, bool):
            inputs[name] = "true" if value else "false"
        else:
            inputs[name] = str(value)
    return inputs


def load_config(
    args: argparse.Namespace, environ: cabc.Mapping[str, str] | None = None
) -> TetherConfig:
    """Combine environment inputs with command-line overrides."""
    env = os.environ if environ is None else environ
    return TetherConfig.from_inputs(
        _merge_inputs(args, env),
        api_url=args.api_url or env.get("API_URL"),
        server_url=args.server_url or env.get("SERVER_URL"),
    )


def main(
    argv: list[str] | None = None,
    *,
    environment: RunnerEnvironment | None = None,
) -> int:
    """Run Tether and return the process exit status.

    Parameters
    ----------
    argv : list[str] | None, optional
        Command-line arguments. ``None`` defaults to ``sys.argv``.
    environment : RunnerEnvironment | None, optional
        Collaborators to use instead of the process defaults.

    Returns
    -------
    int
        0 when every followed run succeeded (or failures are not propagated),
        1 on propagated failure, configuration error, fatal API error, or
        timeout.

    """
    args = build_parser().parse_args(argv)

    normalized_level, invalid_level = configure_logging(args.log_level, force=True)
    if invalid_level:
        log_warning(
            logger,
            "Invalid log level %r, falling back to %s",
            args.log_level,
            normalized_level,
        )

    try:
        config = load_config(args)
    except TetherConfigError as exc:
        print(f"Error: {exc}")
        return _FAILURE_EXIT_CODE

    try:
        signal = asyncio.run(run_action(config, environment))
    except FatalApiError as exc:
        log_error(
            logger,
            "api failed: path=%s status=%s response=%s",
            exc.path,
            exc.status_code,
            exc.body,
        )
        print(f"Error: {exc}")
        return _FAILURE_EXIT_CODE
    except WaitTimeoutError as exc:
        log_error(logger, "%s", exc)
        print(f"Error: {exc}")
        return _FAILURE_EXIT_CODE
    return signal.exit_code


if __name__ == "__main__":
    raise SystemExit(main())
