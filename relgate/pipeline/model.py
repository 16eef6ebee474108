from __future__ import annotations

import hashlib
from dataclasses import dataclass
from enum import Enum
from pathlib import Path

from relgate.pipeline.semver import is_semver

_BRANCH_REF_PREFIX = "refs/heads/"


@dataclass(frozen=True, slots=True)
class VersionInfo:
    """Resolved version of the current head.

    ``commits_since_version_source == 0`` means the head is already released.
    """

    resolved_version: str
    commits_since_version_source: int

    def __post_init__(self) -> None:
        if self.commits_since_version_source < 0:
            raise ValueError(
                f"commits_since_version_source must be >= 0, got {self.commits_since_version_source}"
            )
        if not is_semver(self.resolved_version):
            raise ValueError(f"not a semantic version: {self.resolved_version!r}")

    @property
    def has_new_commits(self) -> bool:
        return self.commits_since_version_source > 0


class BuildConfiguration(Enum):
    RELEASE = "Release"
    DEBUG = "Debug"


@dataclass(frozen=True, slots=True)
class BuildContext:
    source_path: Path
    target_version: VersionInfo
    configuration: BuildConfiguration = BuildConfiguration.RELEASE


@dataclass(frozen=True, slots=True)
class Artifact:
    path: Path
    version: str

    @property
    def name(self) -> str:
        return self.path.name

    def sha256(self) -> str:
        h = hashlib.sha256()
        with self.path.open("rb") as f:
            for chunk in iter(lambda: f.read(64 * 1024), b""):
                h.update(chunk)
        return h.hexdigest()

    def size(self) -> int:
        return self.path.stat().st_size


class DecisionReason(Enum):
    NO_NEW_COMMITS = "NoNewCommits"
    WRONG_BRANCH = "WrongBranch"
    APPROVED = "Approved"

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True, slots=True)
class ReleaseDecision:
    should_release: bool
    reason: DecisionReason


@dataclass(frozen=True, slots=True)
class ReleaseRecord:
    tag: str
    title: str
    artifacts: tuple[Artifact, ...]
    # True when the tag already held these exact artifacts.
    already_existed: bool = False


@dataclass(frozen=True, slots=True)
class Trigger:
    branch_name: str
    commit_hash: str

    @classmethod
    def from_ref(cls, ref: str, commit_hash: str) -> Trigger:
        """Build from a CI ref such as ``refs/heads/main``."""
        branch = ref.strip()
        if branch.startswith(_BRANCH_REF_PREFIX):
            branch = branch[len(_BRANCH_REF_PREFIX) :]
        return cls(branch_name=branch, commit_hash=commit_hash.strip())


@dataclass(frozen=True, slots=True)
class RunOutputs:
    """Values exposed to downstream stages after resolution."""

    resolved_version: str
    commits_since_version_source: int

    @classmethod
    def from_version(cls, version: VersionInfo) -> RunOutputs:
        return cls(
            resolved_version=version.resolved_version,
            commits_since_version_source=version.commits_since_version_source,
        )

    def as_pairs(self) -> tuple[tuple[str, str], ...]:
        return (
            ("version", self.resolved_version),
            ("commits_since_version_source", str(self.commits_since_version_source)),
        )


@dataclass(frozen=True, slots=True)
class PublishResult:
    artifacts: tuple[Artifact, ...]
    # Subset the registry already held byte-for-byte (retried run).
    already_present: tuple[Artifact, ...] = ()

    @property
    def newly_published(self) -> tuple[Artifact, ...]:
        return tuple(a for a in self.artifacts if a not in self.already_present)
