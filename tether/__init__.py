"""Dispatch a GitHub Actions workflow and follow the run it created."""

from __future__ import annotations

__all__ = ["__version__"]

__version__ = "0.1.0"
