from __future__ import annotations

from pathlib import Path
from typing import Protocol

from relgate.core.result import Err, Ok, Result
from relgate.output.console import ConsoleProtocol, Style
from relgate.platform.process import run as run_process
from relgate.pipeline.errors import BuildError, StageTimeoutError, VersionMismatchError
from relgate.pipeline.model import Artifact, BuildContext
from relgate.pipeline.package import read_manifest

BuildFailure = BuildError | VersionMismatchError | StageTimeoutError


class ArtifactBuilder(Protocol):
    def build(self, context: BuildContext) -> Result[tuple[Artifact, ...], BuildFailure]: ...


def _tail(text: str, lines: int = 20) -> str:
    return "\n".join(text.strip().splitlines()[-lines:])


def clear_stale_packages(staging: Path, pattern: str) -> None:
    """Remove packages left by earlier builds so only this run's output is collected."""
    if not staging.is_dir():
        return
    for stale in staging.glob(pattern):
        if stale.is_file():
            stale.unlink()


def collect_artifacts(
    staging: Path, pattern: str, expected_version: str
) -> Result[tuple[Artifact, ...], BuildError | VersionMismatchError]:
    paths = sorted(p for p in staging.glob(pattern) if p.is_file()) if staging.is_dir() else []
    if not paths:
        return Err(
            BuildError(
                f"no packages matching {pattern} in {staging}",
                hint="Check build.staging_path and build.artifact_pattern.",
            )
        )

    artifacts: list[Artifact] = []
    for path in paths:
        manifest = read_manifest(path)
        if isinstance(manifest, Err):
            return manifest
        embedded = manifest.value.version
        # Exact string match: "1.3.0" and "1.3.0.0" are different packages.
        if embedded != expected_version:
            return Err(VersionMismatchError(path=path, expected=expected_version, actual=embedded))
        artifacts.append(Artifact(path=path, version=embedded))

    return Ok(tuple(artifacts))


class DotnetPackBuilder:
    """Build NuGet packages with ``dotnet pack``, stamped with the resolved version."""

    def __init__(
        self,
        *,
        staging: Path,
        artifact_pattern: str,
        timeout: float,
        console: ConsoleProtocol,
    ) -> None:
        self._staging = staging
        self._pattern = artifact_pattern
        self._timeout = timeout
        self._console = console

    def build(self, context: BuildContext) -> Result[tuple[Artifact, ...], BuildFailure]:
        version = context.target_version.resolved_version
        source = context.source_path
        if not source.exists():
            return Err(BuildError(f"source path not found: {source}"))
        cwd = source if source.is_dir() else source.parent
        clear_stale_packages(self._staging, self._pattern)

        cmd = [
            "dotnet",
            "pack",
            str(source),
            f"-p:Version={version}",
            "-c",
            context.configuration.value,
            "-o",
            str(self._staging),
        ]
        self._console.print(" ".join(cmd), Style.DIM)
        result = run_process(cmd, cwd=cwd, timeout=self._timeout)
        if isinstance(result, Err):
            e = result.error
            if e.timed_out:
                return Err(StageTimeoutError(stage="build", timeout_seconds=self._timeout))
            if e.returncode == -1:
                return Err(
                    BuildError(
                        "dotnet: missing",
                        hint="Install the .NET SDK: https://dotnet.microsoft.com/download",
                    )
                )
            # dotnet reports compiler errors on stdout
            return Err(
                BuildError(
                    f"dotnet pack failed (exit {e.returncode})",
                    hint=_tail(e.stdout + "\n" + e.stderr) or None,
                )
            )

        return collect_artifacts(self._staging, self._pattern, version)
