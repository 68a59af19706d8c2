"""Step outputs and progress lines for the invoking workflow.

GitHub Actions collects step outputs from the file named by ``GITHUB_OUTPUT``;
each ``name=value`` line becomes ``steps.<id>.outputs.<name>``. Outside
Actions the variable is unset and only the printed lines remain.
"""

from __future__ import annotations

import os
import sys
import typing as typ
from pathlib import Path

if typ.TYPE_CHECKING:
    import collections.abc as cabc


class ActionOutput:
    """Write progress to stdout and step outputs to ``GITHUB_OUTPUT``."""

    def __init__(
        self,
        output_path: Path | None = None,
        *,
        stream: typ.TextIO | None = None,
    ) -> None:
        """Initialise with an optional outputs file and text stream."""
        self.output_path = output_path
        self._stream = stream

    @classmethod
    def from_env(cls, environ: cabc.Mapping[str, str] | None = None) -> ActionOutput:
        """Build an output writer from ``GITHUB_OUTPUT`` when it is set."""
        env = os.environ if environ is None else environ
        raw_path = env.get("GITHUB_OUTPUT", "").strip()
        return cls(Path(raw_path) if raw_path else None)

    def say(self, line: str = "") -> None:
        """Print a progress line for humans reading the job log."""
        print(line, file=self._stream or sys.stdout)

    def set(self, name: str, value: object) -> None:
        """Append a step output; a no-op outside GitHub Actions."""
        if self.output_path is None:
            return
        with self.output_path.open("a", encoding="utf-8") as handle:
            handle.write(f"{name}={value}\n")
