"""Shared helpers for CLI commands."""

from __future__ import annotations

from collections.abc import Mapping
from pathlib import Path
from typing import NoReturn

import typer

from relgate.core.errors import ErrorCode
from relgate.core.result import Err
from relgate.output.console import ConsoleProtocol, Style
from relgate.pipeline.model import RunOutputs
from relgate.pipeline.outputs import GITHUB_OUTPUT_ENV, format_outputs, write_outputs


def exit_with_error(console: ConsoleProtocol, message: str, *, code: ErrorCode) -> NoReturn:
    console.error(message)
    raise typer.Exit(code=int(code))


def emit_outputs(
    outputs: RunOutputs,
    *,
    console: ConsoleProtocol,
    env: Mapping[str, str],
    outputs_file: Path | None,
) -> None:
    """Write outputs for downstream steps, or print them when there is no sink."""
    target = outputs_file
    if target is None and env.get(GITHUB_OUTPUT_ENV):
        target = Path(env[GITHUB_OUTPUT_ENV])

    if target is None:
        console.print(format_outputs(outputs).rstrip("\n"))
        return

    written = write_outputs(outputs, target)
    if isinstance(written, Err):
        exit_with_error(console, written.error.message, code=ErrorCode.ENV_ERROR)
    console.print(f"outputs -> {target}", Style.DIM)
