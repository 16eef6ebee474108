from __future__ import annotations

from pathlib import Path

import typer

from relgate.cli.commands._helpers import emit_outputs
from relgate.cli.context import build_context, build_resolver
from relgate.core.result import Err
from relgate.output.errors import pipeline_error_exit_code, print_pipeline_error
from relgate.pipeline.model import RunOutputs


def resolve(
    config: Path | None = typer.Option(None, "--config", help="Path to relgate.toml."),
    outputs_file: Path | None = typer.Option(
        None, "--outputs-file", help="Append outputs here (default: $GITHUB_OUTPUT)."
    ),
) -> None:
    """Resolve the version of the current head without building."""
    ctx = build_context(config)
    result = build_resolver(ctx).resolve(ctx.config.repository_root)
    if isinstance(result, Err):
        print_pipeline_error(result.error, ctx.console)
        raise typer.Exit(code=pipeline_error_exit_code(result.error))

    emit_outputs(
        RunOutputs.from_version(result.value),
        console=ctx.console,
        env=ctx.env,
        outputs_file=outputs_file,
    )
