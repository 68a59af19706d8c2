"""Unit tests for GitHub failure classification."""

from __future__ import annotations

import pytest

from tether.github.errors import (
    FatalApiError,
    GitHubAPIError,
    GitHubResponseShapeError,
    RetryableApiError,
    classify_http_failure,
)


@pytest.mark.parametrize(
    ("status", "body", "expected"),
    [
        (500, '{"message": "Server Error"}', RetryableApiError),
        (502, '{"message":"Server Error","documentation_url":""}', RetryableApiError),
        (500, '{"message": "Internal"}', FatalApiError),
        (404, '{"message": "Not Found"}', FatalApiError),
        (422, '{"message": "Unexpected inputs provided"}', FatalApiError),
        (401, "", FatalApiError),
    ],
)
def test_classify_http_failure(
    status: int, body: str, expected: type[GitHubAPIError]
) -> None:
    """Only bodies carrying the server error marker are retryable."""
    error = classify_http_failure("runs/42", status, body)

    assert type(error) is expected, f"HTTP {status} {body!r} -> {type(error)}"
    assert error.status_code == status
    assert error.path == "runs/42"
    assert error.body == body


def test_fatal_error_message_truncates_long_bodies() -> None:
    """Huge bodies are previewed in the message but kept whole on the error."""
    body = "x" * 2000

    error = FatalApiError.http_error("runs/42", 500, body)

    assert str(error).endswith("x" * 500 + "...")
    assert error.body == body


def test_transport_error_has_no_status() -> None:
    """Requests that never got a response carry no status code."""
    error = RetryableApiError.transport("workflows/deploy.yml/runs", "timed out")

    assert error.status_code is None
    assert "timed out" in str(error)


def test_shape_error_is_fatal() -> None:
    """Malformed bodies abort rather than retry."""
    error = GitHubResponseShapeError.invalid("runs/42", "Expected `int`")

    assert isinstance(error, FatalApiError)
    assert not isinstance(error, RetryableApiError)
