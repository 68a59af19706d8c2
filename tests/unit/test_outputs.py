"""Unit tests for step outputs."""

from __future__ import annotations

import typing as typ

from tether.outputs import ActionOutput

if typ.TYPE_CHECKING:
    from pathlib import Path

    import pytest


def test_set_appends_name_value_lines(tmp_path: Path) -> None:
    """Outputs are appended so earlier steps' values survive."""
    path = tmp_path / "output"
    path.write_text("previous=1\n", encoding="utf-8")
    output = ActionOutput.from_env({"GITHUB_OUTPUT": str(path)})

    output.set("workflow_id", 42)
    output.set("workflow_url", "https://github.com/octo/reef/actions/runs/42")

    assert path.read_text(encoding="utf-8").splitlines() == [
        "previous=1",
        "workflow_id=42",
        "workflow_url=https://github.com/octo/reef/actions/runs/42",
    ]


def test_set_is_a_no_op_outside_actions(tmp_path: Path) -> None:
    """Without GITHUB_OUTPUT nothing is written."""
    output = ActionOutput.from_env({"GITHUB_OUTPUT": "  "})

    output.set("workflow_id", 42)

    assert output.output_path is None
    assert list(tmp_path.iterdir()) == [], "Expected no outputs file to be created."


def test_say_prints_to_stdout(capsys: pytest.CaptureFixture[str]) -> None:
    """Progress lines go to stdout by default."""
    ActionOutput().say("Skipping waiting for workflow.")

    assert capsys.readouterr().out == "Skipping waiting for workflow.\n"
