"""Errors that are not tied to a single GitHub call."""

from __future__ import annotations


class TetherError(Exception):
    """Base class for Tether failures outside the GitHub client."""


class TetherConfigError(TetherError):
    """Raised when action inputs are missing or invalid."""

    @classmethod
    def missing(cls, label: str) -> TetherConfigError:
        """Return an error naming a required input that was not supplied."""
        return cls(f"{label} is a required argument.")

    @classmethod
    def missing_token(cls) -> TetherConfigError:
        """Return an error for an absent GitHub token."""
        return cls(
            "Github token is required. Create a personal access token with "
            "repo access under Settings > Developer settings."
        )

    @classmethod
    def invalid(cls, name: str, value: str, constraint: str) -> TetherConfigError:
        """Return an error for an input whose value fails validation."""
        return cls(f"Invalid {name} {value!r}. {constraint}")


class WaitTimeoutError(TetherError):
    """Raised when a polling loop gives up before reaching its goal."""

    @classmethod
    def deadline(cls, activity: str, seconds: float) -> WaitTimeoutError:
        """Return an error for a polling loop that outlived its deadline."""
        return cls(f"Timed out after {seconds:g}s while {activity}")

    @classmethod
    def retries_exhausted(cls, activity: str, attempts: int) -> WaitTimeoutError:
        """Return an error for a call that kept failing transiently."""
        return cls(
            f"Gave up after {attempts} consecutive transient failures while {activity}"
        )
