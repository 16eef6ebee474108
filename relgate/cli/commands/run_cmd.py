from __future__ import annotations

from pathlib import Path

import typer

from relgate.cli.commands._helpers import emit_outputs, exit_with_error
from relgate.cli.context import CLIContext, build_context, build_pipeline
from relgate.core.errors import ErrorCode
from relgate.output.errors import pipeline_error_exit_code, print_pipeline_error
from relgate.pipeline.credential import Credential
from relgate.pipeline.model import Trigger
from relgate.pipeline.runner import RunReport, RunState

GITHUB_REF_ENV = "GITHUB_REF"
GITHUB_SHA_ENV = "GITHUB_SHA"


def resolve_trigger(ctx: CLIContext, *, branch: str | None, commit: str | None) -> Trigger:
    ref = branch or ctx.env.get(GITHUB_REF_ENV, "")
    sha = commit or ctx.env.get(GITHUB_SHA_ENV, "")
    if not ref.strip():
        exit_with_error(
            ctx.console,
            f"no branch given (pass --branch or set {GITHUB_REF_ENV})",
            code=ErrorCode.USER_ERROR,
        )
    return Trigger.from_ref(ref, sha)


def report_run(ctx: CLIContext, report: RunReport, *, dry_run: bool = False) -> int:
    """Print the terminal state and return the process exit code."""
    console = ctx.console
    match report.state:
        case RunState.RELEASED:
            assert report.record is not None
            suffix = " (already recorded)" if report.record.already_existed else ""
            if dry_run:
                suffix += " (dry run)"
            console.success(f"released {report.record.tag}{suffix}")
            return int(ErrorCode.OK)
        case RunState.SKIPPED:
            reason = report.decision.reason if report.decision else "unknown"
            console.info(f"skipped: {reason}")
            return int(ErrorCode.OK)
        case _:
            assert report.error is not None
            console.print(f"failed in {report.failed_in}")
            print_pipeline_error(report.error, console)
            return pipeline_error_exit_code(report.error)


def run(
    branch: str | None = typer.Option(
        None, "--branch", help="Triggering branch or ref (default: $GITHUB_REF)."
    ),
    commit: str | None = typer.Option(
        None, "--commit", help="Triggering commit (default: $GITHUB_SHA)."
    ),
    config: Path | None = typer.Option(None, "--config", help="Path to relgate.toml."),
    dry_run: bool = typer.Option(
        False, "--dry-run", help="Resolve, build and gate; print publish/record commands only."
    ),
    outputs_file: Path | None = typer.Option(
        None, "--outputs-file", help="Append run outputs here (default: $GITHUB_OUTPUT)."
    ),
) -> None:
    """Run the full pipeline for one push."""
    ctx = build_context(config)
    trigger = resolve_trigger(ctx, branch=branch, commit=commit)
    credential = Credential.from_env(ctx.env, ctx.config.registry.credential_env)

    pipeline = build_pipeline(ctx, credential=credential, dry_run=dry_run)
    report = pipeline.run(trigger)

    if report.outputs is not None:
        emit_outputs(report.outputs, console=ctx.console, env=ctx.env, outputs_file=outputs_file)

    code = report_run(ctx, report, dry_run=dry_run)
    if code != int(ErrorCode.OK):
        raise typer.Exit(code=code)
