from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from relgate.core.result import Err, Ok, Result
from relgate.pipeline.model import RunOutputs

# GitHub Actions step outputs file
GITHUB_OUTPUT_ENV = "GITHUB_OUTPUT"


@dataclass(frozen=True, slots=True)
class OutputsError:
    message: str
    path: Path


def format_outputs(outputs: RunOutputs) -> str:
    return "".join(f"{key}={value}\n" for key, value in outputs.as_pairs())


def write_outputs(outputs: RunOutputs, path: Path) -> Result[None, OutputsError]:
    """Append ``key=value`` lines; the file may already hold other steps' outputs."""
    try:
        with path.open("a", encoding="utf-8") as f:
            f.write(format_outputs(outputs))
    except OSError as e:
        return Err(OutputsError(f"failed to write outputs: {e}", path=path))
    return Ok(None)
