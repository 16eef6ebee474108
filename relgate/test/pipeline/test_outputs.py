from __future__ import annotations

from pathlib import Path

from relgate.core.result import Err, Ok
from relgate.pipeline.model import RunOutputs
from relgate.pipeline.outputs import format_outputs, write_outputs

OUTPUTS = RunOutputs(resolved_version="1.3.0", commits_since_version_source=3)


def test_format_outputs() -> None:
    assert format_outputs(OUTPUTS) == "version=1.3.0\ncommits_since_version_source=3\n"


def test_write_outputs_appends(tmp_path: Path) -> None:
    path = tmp_path / "github_output"
    path.write_text("other=1\n", encoding="utf-8")

    assert write_outputs(OUTPUTS, path) == Ok(None)

    assert path.read_text(encoding="utf-8") == (
        "other=1\nversion=1.3.0\ncommits_since_version_source=3\n"
    )


def test_write_outputs_reports_unwritable_path(tmp_path: Path) -> None:
    path = tmp_path / "missing" / "github_output"

    result = write_outputs(OUTPUTS, path)

    assert isinstance(result, Err)
    assert result.error.path == path
