"""Error presentation and exit-code mapping for pipeline runs."""

from __future__ import annotations

from typing import TYPE_CHECKING

from relgate.core.errors import ErrorCode
from relgate.output.console import Style
from relgate.pipeline.errors import (
    AuthError,
    BuildError,
    ConflictError,
    PipelineError,
    RecordError,
    RegistryError,
    ResolutionError,
    StageTimeoutError,
    VersionMismatchError,
)

if TYPE_CHECKING:
    from relgate.output.console import ConsoleProtocol

__all__ = ["pipeline_error_exit_code", "print_pipeline_error"]


def print_pipeline_error(error: PipelineError, console: ConsoleProtocol) -> None:
    console.error(f"[{error.kind}] {error.message}")
    if error.hint:
        console.print(f"hint: {error.hint}", Style.DIM)


def pipeline_error_exit_code(error: PipelineError) -> int:
    match error:
        case ResolutionError():
            return int(ErrorCode.ENV_ERROR)
        case BuildError() | VersionMismatchError():
            return int(ErrorCode.BUILD_ERROR)
        case AuthError():
            return int(ErrorCode.AUTH_ERROR)
        case ConflictError() | RecordError():
            return int(ErrorCode.CONSISTENCY_ERROR)
        case StageTimeoutError() | RegistryError():
            return int(ErrorCode.NETWORK_ERROR)
