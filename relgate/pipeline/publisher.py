from __future__ import annotations

from collections.abc import Sequence

from relgate.core.result import Err, Ok, Result
from relgate.output.console import ConsoleProtocol, Style
from relgate.pipeline.credential import Credential
from relgate.pipeline.errors import ConflictError, PublishError, RegistryError, VersionMismatchError
from relgate.pipeline.model import Artifact, PublishResult, VersionInfo
from relgate.pipeline.registry import RegistryClient


def check_artifact_versions(
    artifacts: Sequence[Artifact], version: VersionInfo
) -> Result[None, VersionMismatchError]:
    expected = version.resolved_version
    for artifact in artifacts:
        if artifact.version != expected:
            return Err(
                VersionMismatchError(path=artifact.path, expected=expected, actual=artifact.version)
            )
    return Ok(None)


class Publisher:
    """Push artifacts to the registry.

    Pushing is not idempotent. A conflict on a version whose registry copy is
    byte-identical to ours is "already done" (a retried run); any other
    conflict is fatal.
    """

    def __init__(
        self,
        *,
        registry: RegistryClient,
        console: ConsoleProtocol,
        dry_run: bool = False,
    ) -> None:
        self._registry = registry
        self._console = console
        self._dry_run = dry_run

    def publish(
        self,
        artifacts: Sequence[Artifact],
        credential: Credential,
        version: VersionInfo,
    ) -> Result[PublishResult, PublishError]:
        if not artifacts:
            return Err(RegistryError("nothing to publish"))

        # Validate everything before the first push: never publish half a set.
        checked = check_artifact_versions(artifacts, version)
        if isinstance(checked, Err):
            return checked

        already_present: list[Artifact] = []
        for artifact in artifacts:
            self._console.print(f"push {artifact.name}", Style.DIM)
            if self._dry_run:
                continue

            pushed = self._registry.push(artifact, credential)
            if isinstance(pushed, Ok):
                continue

            error = pushed.error
            if not isinstance(error, ConflictError):
                return Err(error)

            same = self._matches_registry_copy(artifact, credential)
            if isinstance(same, Err):
                return Err(
                    ConflictError(
                        package=error.package,
                        version=error.version,
                        message=f"{error.message}; could not compare contents: {same.error.message}",
                    )
                )
            if not same.value:
                return Err(
                    ConflictError(
                        package=error.package,
                        version=error.version,
                        message=f"{error.message} with different contents",
                    )
                )

            self._console.info(f"{artifact.name} already in registry (identical)")
            already_present.append(artifact)

        return Ok(PublishResult(artifacts=tuple(artifacts), already_present=tuple(already_present)))

    def _matches_registry_copy(
        self, artifact: Artifact, credential: Credential
    ) -> Result[bool, RegistryError]:
        remote = self._registry.fetch_digest(artifact, credential)
        if isinstance(remote, Err):
            return remote
        return Ok(remote.value == artifact.sha256())
