"""Package registry adapter.

Pushes go through ``dotnet nuget push`` against a feed registered in a
throwaway ``nuget.config``, so the machine-wide NuGet configuration is never
touched. Reads (conflict digests) go through the NuGet v3 service index over
HTTP with basic auth.
"""

from __future__ import annotations

import hashlib
import re
import tempfile
from pathlib import Path
from typing import Protocol

from relgate.core.config import RegistryConfig
from relgate.core.result import Err, Ok, Result
from relgate.core.structured import as_obj_list, as_str_dict, get_str
from relgate.output.console import ConsoleProtocol, Style
from relgate.platform.http import HttpClient, basic_auth_header
from relgate.platform.process import ProcessError
from relgate.platform.process import run as run_process
from relgate.pipeline.credential import Credential
from relgate.pipeline.errors import AuthError, ConflictError, RegistryError, StageTimeoutError
from relgate.pipeline.model import Artifact
from relgate.pipeline.package import package_id_from_filename

PushError = AuthError | ConflictError | RegistryError | StageTimeoutError

SOURCE_NAME = "relgate"
PACKAGE_BASE_ADDRESS = "PackageBaseAddress/3.0.0"

_AUTH_STATUSES = frozenset({401, 403})
_CONFLICT_STATUS = 409
# NuGet reports registry rejections as "Response status code does not indicate success: 409 (...)"
_STATUS_RE = re.compile(r"does not indicate success:\s*(\d{3})\b", re.IGNORECASE)
# Only consulted on stderr when no status line was printed; stdout echoes the
# package file name and feed URL, which may contain any of these.
_AUTH_MARKERS = ("401", "403", "unauthorized", "forbidden")
_CONFLICT_MARKERS = ("409", "conflict", "already exists")


class RegistryClient(Protocol):
    def push(self, artifact: Artifact, credential: Credential) -> Result[None, PushError]: ...

    def fetch_digest(
        self, artifact: Artifact, credential: Credential
    ) -> Result[str, RegistryError]:
        """sha256 of the registry's copy of ``artifact``'s package id and version."""
        ...


def _http_status(error: ProcessError) -> int | None:
    m = _STATUS_RE.search(error.stderr) or _STATUS_RE.search(error.stdout)
    return int(m.group(1)) if m else None


def _is_auth_failure(status: int | None, stderr: str) -> bool:
    if status is not None:
        return status in _AUTH_STATUSES
    return any(marker in stderr for marker in _AUTH_MARKERS)


def _is_conflict(status: int | None, stderr: str) -> bool:
    if status is not None:
        return status == _CONFLICT_STATUS
    return any(marker in stderr for marker in _CONFLICT_MARKERS)


def classify_push_failure(
    error: ProcessError,
    *,
    artifact: Artifact,
    credential: Credential,
    timeout: float,
) -> PushError:
    if error.timed_out:
        return StageTimeoutError(stage="publish", timeout_seconds=timeout)

    detail = credential.redact(f"{error.stdout}\n{error.stderr}").strip()
    stderr = credential.redact(error.stderr).lower()
    status = _http_status(error)
    package = package_id_from_filename(artifact.path, artifact.version)
    if _is_auth_failure(status, stderr):
        return AuthError(f"registry rejected the credential while pushing {artifact.name}")
    if _is_conflict(status, stderr):
        return ConflictError(
            package=package,
            version=artifact.version,
            message=f"registry already has {package} {artifact.version}",
        )
    if error.returncode == -1:
        return RegistryError("dotnet: missing", hint="Install the .NET SDK.")
    status_text = f"HTTP {status}" if status is not None else f"exit {error.returncode}"
    return RegistryError(
        f"push failed for {artifact.name} ({status_text})",
        hint=detail[-500:] or None,
    )


class NugetRegistryClient:
    def __init__(
        self,
        *,
        config: RegistryConfig,
        http: HttpClient,
        timeout: float,
        console: ConsoleProtocol,
    ) -> None:
        self._config = config
        self._http = http
        self._timeout = timeout
        self._console = console

    @property
    def feed_url(self) -> str:
        return self._config.feed_url

    def _add_source(self, work: Path, credential: Credential) -> Result[None, ProcessError]:
        cmd = [
            "dotnet",
            "nuget",
            "add",
            "source",
            self.feed_url,
            "--name",
            SOURCE_NAME,
            "--username",
            self._config.user,
            "--password",
            credential.token,
            "--store-password-in-clear-text",
            "--configfile",
            str(work / "nuget.config"),
        ]
        self._console.print(credential.redact_cmd(cmd), Style.DIM)
        result = run_process(cmd, cwd=work, timeout=self._timeout)
        if isinstance(result, Err):
            return result
        return Ok(None)

    def push(self, artifact: Artifact, credential: Credential) -> Result[None, PushError]:
        with tempfile.TemporaryDirectory(prefix="relgate-nuget-") as tmp:
            work = Path(tmp)
            added = self._add_source(work, credential)
            if isinstance(added, Err):
                return Err(
                    classify_push_failure(
                        added.error, artifact=artifact, credential=credential, timeout=self._timeout
                    )
                )

            cmd = [
                "dotnet",
                "nuget",
                "push",
                str(artifact.path.resolve()),
                "--api-key",
                credential.token,
                "--source",
                SOURCE_NAME,
                "--timeout",
                str(int(self._timeout)),
            ]
            self._console.print(credential.redact_cmd(cmd), Style.DIM)
            # NuGet picks up nuget.config from the working directory.
            result = run_process(cmd, cwd=work, timeout=self._timeout)
            if isinstance(result, Err):
                return Err(
                    classify_push_failure(
                        result.error, artifact=artifact, credential=credential, timeout=self._timeout
                    )
                )
        return Ok(None)

    def _package_base_address(self, headers: dict[str, str]) -> Result[str, RegistryError]:
        index = self._http.get_json(self.feed_url, headers)
        if isinstance(index, Err):
            return Err(RegistryError(f"failed to read service index: {index.error}"))

        resources = as_obj_list(index.value.get("resources"))
        for item in resources or []:
            resource = as_str_dict(item)
            if resource is None:
                continue
            if get_str(resource, "@type") != PACKAGE_BASE_ADDRESS:
                continue
            url = get_str(resource, "@id")
            if url:
                return Ok(url if url.endswith("/") else url + "/")

        return Err(RegistryError(f"service index has no {PACKAGE_BASE_ADDRESS} resource"))

    def fetch_digest(
        self, artifact: Artifact, credential: Credential
    ) -> Result[str, RegistryError]:
        headers = basic_auth_header(self._config.user, credential.token)
        base = self._package_base_address(headers)
        if isinstance(base, Err):
            return base

        package = package_id_from_filename(artifact.path, artifact.version).lower()
        version = artifact.version.lower()
        url = f"{base.value}{package}/{version}/{package}.{version}.nupkg"
        body = self._http.get_bytes(url, headers)
        if isinstance(body, Err):
            return Err(RegistryError(f"failed to download registry copy: {body.error}"))
        return Ok(hashlib.sha256(body.value).hexdigest())
