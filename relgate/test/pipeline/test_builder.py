from __future__ import annotations

import zipfile
from pathlib import Path

import pytest

from relgate.core.result import Err, Ok, Result
from relgate.output.console import MockConsole
from relgate.platform.process import ProcessError
from relgate.pipeline import builder as builder_mod
from relgate.pipeline.builder import DotnetPackBuilder, collect_artifacts
from relgate.pipeline.errors import BuildError, StageTimeoutError, VersionMismatchError
from relgate.pipeline.model import Artifact, BuildConfiguration, BuildContext, VersionInfo


def _write_nupkg(path: Path, version: str) -> Path:
    package_id = path.name.split(".")[0]
    path.parent.mkdir(parents=True, exist_ok=True)
    with zipfile.ZipFile(path, "w") as archive:
        archive.writestr(
            f"{package_id}.nuspec",
            f"<package><metadata><id>{package_id}</id><version>{version}</version></metadata></package>",
        )
    return path


def _context(source: Path, version: str = "1.3.0") -> BuildContext:
    return BuildContext(
        source_path=source,
        target_version=VersionInfo(resolved_version=version, commits_since_version_source=3),
        configuration=BuildConfiguration.RELEASE,
    )


def _builder(staging: Path, timeout: float = 60.0) -> tuple[DotnetPackBuilder, MockConsole]:
    console = MockConsole()
    return (
        DotnetPackBuilder(
            staging=staging, artifact_pattern="*.nupkg", timeout=timeout, console=console
        ),
        console,
    )


def test_build_stamps_version_and_collects_packages(
    monkeypatch: pytest.MonkeyPatch, tmp_path: Path
) -> None:
    source = tmp_path / "src"
    source.mkdir()
    staging = tmp_path / "out"
    seen: dict[str, object] = {}

    def fake_run(cmd: list[str], cwd: Path, env=None, *, timeout: float | None = None):
        seen["cmd"] = cmd
        seen["cwd"] = cwd
        seen["timeout"] = timeout
        _write_nupkg(staging / "Demo.1.3.0.nupkg", "1.3.0")
        return Ok("")

    monkeypatch.setattr(builder_mod, "run_process", fake_run)
    builder, _ = _builder(staging)

    result = builder.build(_context(source))

    assert result == Ok((Artifact(path=staging / "Demo.1.3.0.nupkg", version="1.3.0"),))
    assert seen["cmd"] == [
        "dotnet",
        "pack",
        str(source),
        "-p:Version=1.3.0",
        "-c",
        "Release",
        "-o",
        str(staging),
    ]
    assert seen["cwd"] == source
    assert seen["timeout"] == 60.0


def test_stale_packages_are_removed_before_build(
    monkeypatch: pytest.MonkeyPatch, tmp_path: Path
) -> None:
    source = tmp_path / "src"
    source.mkdir()
    staging = tmp_path / "out"
    _write_nupkg(staging / "Demo.1.2.0.nupkg", "1.2.0")

    def fake_run(cmd, cwd, env=None, *, timeout=None):
        _write_nupkg(staging / "Demo.1.3.0.nupkg", "1.3.0")
        return Ok("")

    monkeypatch.setattr(builder_mod, "run_process", fake_run)
    builder, _ = _builder(staging)

    result = builder.build(_context(source))

    assert isinstance(result, Ok)
    assert [a.name for a in result.value] == ["Demo.1.3.0.nupkg"]
    assert not (staging / "Demo.1.2.0.nupkg").exists()


def test_embedded_version_drift_is_rejected(tmp_path: Path) -> None:
    _write_nupkg(tmp_path / "Demo.1.3.0.nupkg", "1.3.0.0")
    result = collect_artifacts(tmp_path, "*.nupkg", "1.3.0")
    assert isinstance(result, Err)
    assert isinstance(result.error, VersionMismatchError)
    assert result.error.actual == "1.3.0.0"


def test_no_packages_is_build_error(tmp_path: Path) -> None:
    result = collect_artifacts(tmp_path, "*.nupkg", "1.3.0")
    assert isinstance(result, Err)
    assert isinstance(result.error, BuildError)


def test_missing_source_path(tmp_path: Path) -> None:
    builder, _ = _builder(tmp_path / "out")
    result = builder.build(_context(tmp_path / "nope"))
    assert isinstance(result, Err)
    assert "source path not found" in result.error.message


def test_compile_failure_reports_tail_of_output(
    monkeypatch: pytest.MonkeyPatch, tmp_path: Path
) -> None:
    def fake_run(cmd, cwd, env=None, *, timeout=None) -> Result[str, ProcessError]:
        return Err(ProcessError(tuple(cmd), 1, "Program.cs(3,1): error CS1002: ; expected", ""))

    monkeypatch.setattr(builder_mod, "run_process", fake_run)
    builder, _ = _builder(tmp_path / "out")

    result = builder.build(_context(tmp_path))

    assert isinstance(result, Err)
    assert isinstance(result.error, BuildError)
    assert result.error.message == "dotnet pack failed (exit 1)"
    assert result.error.hint is not None and "CS1002" in result.error.hint


def test_timeout_is_stage_timeout(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    def fake_run(cmd, cwd, env=None, *, timeout=None) -> Result[str, ProcessError]:
        return Err(ProcessError(tuple(cmd), -1, "", "timed out", timed_out=True))

    monkeypatch.setattr(builder_mod, "run_process", fake_run)
    builder, _ = _builder(tmp_path / "out", timeout=5.0)

    result = builder.build(_context(tmp_path))

    assert result == Err(StageTimeoutError(stage="build", timeout_seconds=5.0))
