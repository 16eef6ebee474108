"""Release store backed by GitHub releases via the ``gh`` CLI.

Creating a release also creates its tag at the triggering commit, so the tag
namespace and the release store are claimed in one compare-and-fail step.
"""

from __future__ import annotations

import json
import os
from dataclasses import dataclass
from pathlib import Path
from time import sleep
from typing import Protocol

from relgate.core.result import Err, Ok, Result
from relgate.core.structured import as_obj_list, as_str_dict, get_int, get_list, get_str
from relgate.output.console import ConsoleProtocol, Style
from relgate.platform.process import ProcessError
from relgate.platform.process import run as run_process
from relgate.pipeline.credential import Credential

GH_TIMEOUT_SECONDS = 60.0
GH_UPLOAD_TIMEOUT_SECONDS = 10 * 60.0
GH_READ_RETRY_ATTEMPTS = 3
GH_READ_RETRY_DELAY_SECONDS = 1.0


@dataclass(frozen=True, slots=True)
class ReleaseAsset:
    name: str
    size: int


@dataclass(frozen=True, slots=True)
class ExistingRelease:
    tag: str
    title: str
    assets: tuple[ReleaseAsset, ...]


@dataclass(frozen=True, slots=True)
class StoreError:
    message: str
    hint: str | None = None
    tag_exists: bool = False


class ReleaseStore(Protocol):
    def create(
        self, *, tag: str, title: str, target: str | None, files: tuple[Path, ...]
    ) -> Result[None, StoreError]: ...

    def find(self, tag: str) -> Result[ExistingRelease | None, StoreError]: ...


def _is_transient_gh_error(error: ProcessError) -> bool:
    text = f"{error.stderr}\n{error.stdout}".lower()
    markers = (
        "timed out",
        "timeout",
        "connection reset",
        "connection refused",
        "temporarily unavailable",
        "service unavailable",
        "bad gateway",
        "gateway timeout",
        "http 429",
        "http 500",
        "http 502",
        "http 503",
        "http 504",
    )
    return any(marker in text for marker in markers)


def _is_not_found(error: ProcessError) -> bool:
    text = f"{error.stderr}\n{error.stdout}".lower()
    return "release not found" in text or "http 404" in text


def parse_release_view(text: str) -> Result[ExistingRelease, StoreError]:
    try:
        obj: object = json.loads(text)
    except json.JSONDecodeError as e:
        return Err(StoreError(f"invalid JSON from gh release view: {e}"))

    data = as_str_dict(obj)
    if data is None:
        return Err(StoreError("unexpected gh release view payload"))

    tag = get_str(data, "tagName")
    if tag is None:
        return Err(StoreError("gh release view payload has no tagName"))

    assets: list[ReleaseAsset] = []
    for item in as_obj_list(get_list(data, "assets")) or []:
        asset = as_str_dict(item)
        if asset is None:
            continue
        name = get_str(asset, "name")
        size = get_int(asset, "size")
        if name is None or size is None:
            continue
        assets.append(ReleaseAsset(name=name, size=size))

    return Ok(ExistingRelease(tag=tag, title=get_str(data, "name") or "", assets=tuple(assets)))


def parse_tag_ref(text: str) -> Result[str, StoreError]:
    """Read ``object.sha`` from a ``git/ref/tags/<tag>`` API payload."""
    try:
        obj: object = json.loads(text)
    except json.JSONDecodeError as e:
        return Err(StoreError(f"invalid JSON from gh api: {e}"))

    data = as_str_dict(obj)
    target = as_str_dict(data.get("object")) if data is not None else None
    sha = get_str(target, "sha") if target is not None else None
    if sha is None:
        return Err(StoreError("tag ref payload has no object.sha"))
    return Ok(sha)


class GhReleaseStore:
    def __init__(
        self,
        *,
        workspace_root: Path,
        repository: str | None,
        credential: Credential | None,
        console: ConsoleProtocol,
        dry_run: bool = False,
    ) -> None:
        self._root = workspace_root
        self._repository = repository
        self._credential = credential
        self._console = console
        self._dry_run = dry_run

    def _repo_args(self) -> list[str]:
        return ["--repo", self._repository] if self._repository else []

    def _env(self) -> dict[str, str] | None:
        if self._credential is None:
            return None
        return {**os.environ, "GH_TOKEN": self._credential.token}

    def _redact(self, text: str) -> str:
        return self._credential.redact(text) if self._credential else text

    def _read(self, cmd: list[str]) -> Result[str | None, ProcessError]:
        """Run a read-only gh command; ``Ok(None)`` when the object does not exist."""
        attempts = max(1, GH_READ_RETRY_ATTEMPTS)
        result = run_process(cmd, cwd=self._root, env=self._env(), timeout=GH_TIMEOUT_SECONDS)
        for attempt in range(1, attempts):
            if isinstance(result, Ok):
                break
            error = result.error
            if _is_not_found(error) or not (error.timed_out or _is_transient_gh_error(error)):
                break
            sleep(GH_READ_RETRY_DELAY_SECONDS * attempt)
            result = run_process(cmd, cwd=self._root, env=self._env(), timeout=GH_TIMEOUT_SECONDS)

        if isinstance(result, Err) and _is_not_found(result.error):
            return Ok(None)
        return result

    def tag_target(self, tag: str) -> Result[str | None, StoreError]:
        """Object sha the tag ref points at, or None when the tag does not exist."""
        repo = self._repository or "{owner}/{repo}"
        cmd = ["gh", "api", f"repos/{repo}/git/ref/tags/{tag}"]
        read = self._read(cmd)
        if isinstance(read, Err):
            return Err(
                StoreError(
                    f"failed to look up tag {tag}",
                    hint=self._redact(read.error.stderr.strip()) or None,
                )
            )
        if read.value is None:
            return Ok(None)
        return parse_tag_ref(read.value)

    def create(
        self, *, tag: str, title: str, target: str | None, files: tuple[Path, ...]
    ) -> Result[None, StoreError]:
        cmd = ["gh", "release", "create", tag, *(str(f) for f in files), "--title", title]
        cmd += ["--notes", title]
        if target:
            cmd += ["--target", target]
        cmd += self._repo_args()

        self._console.print(" ".join(cmd), Style.DIM)
        if self._dry_run:
            return Ok(None)

        # gh attaches a new release to an existing bare tag and ignores --target.
        existing = self.tag_target(tag)
        if isinstance(existing, Err):
            return existing
        if existing.value is not None and existing.value != target:
            return Err(
                StoreError(
                    f"tag already exists: {tag}",
                    hint=f"{tag} points at {existing.value}",
                    tag_exists=True,
                )
            )

        result = run_process(cmd, cwd=self._root, env=self._env(), timeout=GH_UPLOAD_TIMEOUT_SECONDS)
        if isinstance(result, Err):
            e = result.error
            detail = self._redact(e.stderr.strip() or e.stdout.strip())
            if "already exists" in detail.lower():
                return Err(StoreError(f"tag already exists: {tag}", hint=detail, tag_exists=True))
            if e.returncode == -1 and not e.timed_out:
                return Err(
                    StoreError("gh: missing", hint="Install GitHub CLI: https://cli.github.com/")
                )
            return Err(StoreError(f"failed to create release {tag}", hint=detail or None))
        return Ok(None)

    def find(self, tag: str) -> Result[ExistingRelease | None, StoreError]:
        cmd = ["gh", "release", "view", tag, "--json", "tagName,name,assets", *self._repo_args()]
        read = self._read(cmd)
        if isinstance(read, Err):
            return Err(
                StoreError(
                    f"failed to read release {tag}",
                    hint=self._redact(read.error.stderr.strip()) or None,
                )
            )
        if read.value is None:
            return Ok(None)
        parsed = parse_release_view(read.value)
        if isinstance(parsed, Err):
            return parsed
        return Ok(parsed.value)
