from __future__ import annotations

from collections.abc import Sequence

from relgate.core.result import Err, Ok, Result
from relgate.output.console import ConsoleProtocol
from relgate.pipeline.errors import RecordError
from relgate.pipeline.gh import ExistingRelease, ReleaseAsset, ReleaseStore
from relgate.pipeline.model import Artifact, ReleaseDecision, ReleaseRecord, VersionInfo


def release_title(version: str) -> str:
    return f"Release {version}"


def _expected_assets(artifacts: Sequence[Artifact]) -> frozenset[ReleaseAsset]:
    return frozenset(ReleaseAsset(name=a.name, size=a.size()) for a in artifacts)


def matches_existing(existing: ExistingRelease, artifacts: Sequence[Artifact]) -> bool:
    return frozenset(existing.assets) == _expected_assets(artifacts)


class ReleaseRecorder:
    """Create the tagged release entry for a published version.

    Only called after publishing succeeded, so every record references
    artifacts already in the registry.
    """

    def __init__(self, *, store: ReleaseStore, console: ConsoleProtocol) -> None:
        self._store = store
        self._console = console

    def record(
        self,
        decision: ReleaseDecision,
        version: VersionInfo,
        artifacts: Sequence[Artifact],
        *,
        target: str | None = None,
    ) -> Result[ReleaseRecord, RecordError]:
        tag = version.resolved_version
        if not decision.should_release:
            return Err(RecordError(tag=tag, message=f"release not approved ({decision.reason})"))

        record = ReleaseRecord(tag=tag, title=release_title(tag), artifacts=tuple(artifacts))
        created = self._store.create(
            tag=record.tag,
            title=record.title,
            target=target,
            files=tuple(a.path for a in record.artifacts),
        )
        if isinstance(created, Ok):
            return Ok(record)

        if not created.error.tag_exists:
            return Err(RecordError(tag=tag, message=created.error.message, hint=created.error.hint))

        existing = self._store.find(tag)
        if isinstance(existing, Err):
            return Err(RecordError(tag=tag, message=existing.error.message, hint=existing.error.hint))
        if existing.value is None or not matches_existing(existing.value, record.artifacts):
            return Err(
                RecordError(
                    tag=tag,
                    message=f"tag {tag} already exists with different artifacts",
                    hint="Another run claimed this version; investigate before re-running.",
                )
            )

        self._console.info(f"release {tag} already recorded with identical artifacts")
        return Ok(
            ReleaseRecord(
                tag=record.tag,
                title=record.title,
                artifacts=record.artifacts,
                already_existed=True,
            )
        )
