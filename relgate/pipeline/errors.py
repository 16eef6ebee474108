"""Stage error values.

Each stage returns one of these inside ``Err``. ``kind`` is the stable short
name used in run reports and exit-code mapping.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import ClassVar, TypeGuard


@dataclass(frozen=True, slots=True)
class ResolutionError:
    """History unreadable or versioning configuration malformed."""

    kind: ClassVar[str] = "resolution"

    message: str
    hint: str | None = None


@dataclass(frozen=True, slots=True)
class BuildError:
    """Compilation or packaging failed; needs a source change."""

    kind: ClassVar[str] = "build"

    message: str
    hint: str | None = None


@dataclass(frozen=True, slots=True)
class VersionMismatchError:
    """An artifact's embedded version differs from the run's resolved version."""

    kind: ClassVar[str] = "version_mismatch"

    path: Path
    expected: str
    actual: str

    @property
    def message(self) -> str:
        return f"{self.path.name}: embedded version {self.actual} != resolved {self.expected}"

    @property
    def hint(self) -> str | None:
        return "The packager must stamp the exact resolved version."


@dataclass(frozen=True, slots=True)
class AuthError:
    """Registry rejected the credential."""

    kind: ClassVar[str] = "auth"

    message: str
    hint: str | None = "Rotate the registry token and re-run."


@dataclass(frozen=True, slots=True)
class ConflictError:
    """Registry already holds this version with different content."""

    kind: ClassVar[str] = "conflict"

    package: str
    version: str
    message: str
    hint: str | None = "Registry and tag history disagree; investigate before re-running."


@dataclass(frozen=True, slots=True)
class RegistryError:
    """Registry request failed for a reason other than auth, conflict or timeout."""

    kind: ClassVar[str] = "registry"

    message: str
    hint: str | None = None


@dataclass(frozen=True, slots=True)
class RecordError:
    """Release entry could not be created, or the tag holds a different release."""

    kind: ClassVar[str] = "record"

    tag: str
    message: str
    hint: str | None = None


@dataclass(frozen=True, slots=True)
class StageTimeoutError:
    """A bounded stage call exceeded its timeout (retryable)."""

    kind: ClassVar[str] = "timeout"

    stage: str
    timeout_seconds: float

    @property
    def message(self) -> str:
        return f"{self.stage} timed out after {self.timeout_seconds:g}s"

    @property
    def hint(self) -> str | None:
        return "Transient; the stage is retried up to the configured attempt count."


PublishError = (
    AuthError | ConflictError | RegistryError | VersionMismatchError | StageTimeoutError
)

PipelineError = (
    ResolutionError
    | BuildError
    | VersionMismatchError
    | AuthError
    | ConflictError
    | RegistryError
    | RecordError
    | StageTimeoutError
)


def is_retryable(error: object) -> TypeGuard[StageTimeoutError]:
    return isinstance(error, StageTimeoutError)
