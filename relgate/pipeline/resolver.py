"""Version resolution.

``VersionResolver`` is the narrow seam around whatever mines history for a
semantic version. Implementations must be side-effect free and idempotent: the
same head yields the same ``VersionInfo``, and the version never decreases as
the branch grows.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Protocol

from relgate.core.result import Err, Ok, Result
from relgate.core.structured import as_str_dict, get_int, get_str
from relgate.output.console import ConsoleProtocol, Style
from relgate.platform.process import run as run_process
from relgate.pipeline.errors import ResolutionError
from relgate.pipeline.model import VersionInfo
from relgate.pipeline.semver import is_semver

GITVERSION_TIMEOUT_SECONDS = 2 * 60.0

_CONFIG_MARKERS = (
    "configuration",
    "gitversion.yml",
    "branch configuration",
    "could not find a 'develop' or 'main' branch",
)


class VersionResolver(Protocol):
    def resolve(self, repository: Path) -> Result[VersionInfo, ResolutionError]: ...


def parse_gitversion_output(text: str) -> Result[VersionInfo, ResolutionError]:
    """Read ``SemVer`` and ``CommitsSinceVersionSource`` from GitVersion JSON."""
    try:
        obj: object = json.loads(text)
    except json.JSONDecodeError as e:
        return Err(ResolutionError(f"gitversion returned invalid JSON: {e}"))

    data = as_str_dict(obj)
    if data is None:
        return Err(ResolutionError("unexpected gitversion payload (expected an object)"))

    semver = get_str(data, "SemVer")
    if semver is None:
        return Err(ResolutionError("gitversion output is missing SemVer"))
    if not is_semver(semver):
        return Err(ResolutionError(f"gitversion SemVer is not a semantic version: {semver}"))

    commits = get_int(data, "CommitsSinceVersionSource")
    if commits is None or commits < 0:
        return Err(
            ResolutionError(
                "gitversion output has no valid CommitsSinceVersionSource",
                hint=repr(data.get("CommitsSinceVersionSource")),
            )
        )

    return Ok(VersionInfo(resolved_version=semver, commits_since_version_source=commits))


class GitVersionResolver:
    """Resolve versions with the GitVersion CLI.

    Runs with ``/nofetch`` so resolution never touches remotes; the checkout
    must already contain full history.
    """

    def __init__(
        self,
        *,
        console: ConsoleProtocol,
        executable: str = "gitversion",
        timeout: float = GITVERSION_TIMEOUT_SECONDS,
    ) -> None:
        self._console = console
        self._executable = executable
        self._timeout = timeout

    def resolve(self, repository: Path) -> Result[VersionInfo, ResolutionError]:
        if not (repository / ".git").exists():
            return Err(
                ResolutionError(
                    f"not a git checkout: {repository}",
                    hint="Run from the repository root or pass --config.",
                )
            )
        if (repository / ".git" / "shallow").exists():
            return Err(
                ResolutionError(
                    "history is shallow; version cannot be derived",
                    hint="Check out with full history (fetch-depth: 0).",
                )
            )

        cmd = [self._executable, str(repository), "/output", "json", "/nofetch"]
        self._console.print(" ".join(cmd), Style.DIM)
        result = run_process(cmd, cwd=repository, timeout=self._timeout)
        if isinstance(result, Err):
            e = result.error
            if e.timed_out:
                return Err(ResolutionError(f"gitversion timed out after {self._timeout:g}s"))
            if e.returncode == -1:
                return Err(
                    ResolutionError(
                        f"{self._executable}: missing",
                        hint="Install GitVersion: dotnet tool install --global GitVersion.Tool",
                    )
                )
            detail = (e.stderr.strip() or e.stdout.strip())[-500:]
            if any(marker in detail.lower() for marker in _CONFIG_MARKERS):
                return Err(
                    ResolutionError(
                        "versioning configuration is invalid",
                        hint=detail or None,
                    )
                )
            return Err(
                ResolutionError(
                    f"gitversion failed (exit {e.returncode})",
                    hint=detail or None,
                )
            )

        return parse_gitversion_output(result.value)
