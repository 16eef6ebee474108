"""Tests for relgate.platform.process module."""

from __future__ import annotations

import sys
from pathlib import Path

import pytest

from relgate.core.result import Err, Ok
from relgate.platform.process import ProcessError, run


class TestProcessError:
    def test_str_short_command(self) -> None:
        error = ProcessError(
            command=("gitversion", "/nofetch"),
            returncode=1,
            stdout="",
            stderr="not a git repository",
        )
        assert str(error) == "gitversion /nofetch failed (exit 1)"

    def test_str_truncates_trailing_arguments(self) -> None:
        error = ProcessError(
            command=("dotnet", "nuget", "push", "Demo.nupkg", "--api-key", "secret"),
            returncode=1,
            stdout="",
            stderr="",
        )
        assert str(error) == "dotnet nuget push ... failed (exit 1)"
        assert "secret" not in str(error)

    def test_str_timeout(self) -> None:
        error = ProcessError(("dotnet", "pack"), -1, "", "", timed_out=True)
        assert str(error) == "dotnet pack timed out"

    def test_frozen(self) -> None:
        error = ProcessError(("cmd",), 1, "", "")
        with pytest.raises(AttributeError):
            error.returncode = 2  # type: ignore[misc]


class TestRun:
    def test_returns_stdout(self, tmp_path: Path) -> None:
        result = run([sys.executable, "-c", "print('hello')"], cwd=tmp_path)
        assert isinstance(result, Ok)
        assert result.value.strip() == "hello"

    def test_runs_in_cwd(self, tmp_path: Path) -> None:
        result = run([sys.executable, "-c", "import os; print(os.getcwd())"], cwd=tmp_path)
        assert isinstance(result, Ok)
        assert Path(result.value.strip()).resolve() == tmp_path.resolve()

    def test_nonzero_exit(self, tmp_path: Path) -> None:
        script = "import sys; sys.stderr.write('bad'); sys.exit(3)"
        result = run([sys.executable, "-c", script], cwd=tmp_path)
        assert isinstance(result, Err)
        assert result.error.returncode == 3
        assert result.error.stderr == "bad"
        assert not result.error.timed_out

    def test_passes_env(self, tmp_path: Path) -> None:
        script = "import os; print(os.environ['RELGATE_PROBE'])"
        result = run([sys.executable, "-c", script], cwd=tmp_path, env={"RELGATE_PROBE": "x"})
        assert isinstance(result, Ok)
        assert result.value.strip() == "x"

    def test_missing_binary(self, tmp_path: Path) -> None:
        result = run(["relgate-definitely-missing-tool"], cwd=tmp_path)
        assert isinstance(result, Err)
        assert result.error.returncode == -1
        assert not result.error.timed_out

    def test_timeout(self, tmp_path: Path) -> None:
        result = run([sys.executable, "-c", "import time; time.sleep(5)"], cwd=tmp_path, timeout=0.2)
        assert isinstance(result, Err)
        assert result.error.timed_out
        assert result.error.returncode == -1
