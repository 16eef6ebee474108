from __future__ import annotations

import typer

from relgate.core.errors import ErrorCode
from relgate.pipeline.gate import decide
from relgate.pipeline.model import Trigger, VersionInfo


def gate(
    branch: str = typer.Option(..., "--branch", help="Triggering branch or ref."),
    version: str = typer.Option(..., "--version", help="Resolved semantic version."),
    commits: int = typer.Option(
        ..., "--commits", min=0, help="Commits since the version source."
    ),
    release_branch: str = typer.Option("main", "--release-branch", help="Release branch name."),
) -> None:
    """Print the release decision for the given inputs."""
    try:
        info = VersionInfo(resolved_version=version, commits_since_version_source=commits)
    except ValueError as e:
        typer.echo(f"error: {e}", err=True)
        raise typer.Exit(code=int(ErrorCode.USER_ERROR))

    trigger = Trigger.from_ref(branch, "")
    decision = decide(info, trigger.branch_name, release_branch)
    typer.echo(f"should_release={str(decision.should_release).lower()}")
    typer.echo(f"reason={decision.reason}")
