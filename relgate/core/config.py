"""Typed pipeline configuration.

One immutable ``PipelineConfig`` is built per run from ``relgate.toml`` plus a
small set of environment overrides, and handed to every component at
construction. Components never read the environment themselves.
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass, field, replace
from pathlib import Path

from .result import Err, Ok, Result
from .structured import StrDict, as_str_dict, get_float, get_int, get_str, get_table

__all__ = [
    "BuildConfig",
    "ConfigError",
    "DEFAULT_CONFIG_FILENAME",
    "ENV_OVERRIDES",
    "PipelineConfig",
    "RegistryConfig",
    "ReleaseConfig",
    "TimeoutsConfig",
    "load_config",
]

DEFAULT_CONFIG_FILENAME = "relgate.toml"

DEFAULT_REGISTRY_HOST = "nuget.pkg.github.com"
DEFAULT_CREDENTIAL_ENV = "NUGET_PACKAGE_TOKEN"
DEFAULT_ARTIFACT_PATTERN = "*.nupkg"
DEFAULT_RELEASE_BRANCH = "main"

BUILD_CONFIGURATIONS = ("Release", "Debug")

# env var -> (section, key)
ENV_OVERRIDES: dict[str, tuple[str, str]] = {
    "RELGATE_REGISTRY_USER": ("registry", "user"),
    "RELGATE_REGISTRY_ORGANIZATION": ("registry", "organization"),
    "RELGATE_ARTIFACT_SOURCE_PATH": ("build", "source_path"),
    "RELGATE_RELEASE_BRANCH": ("release", "branch"),
}


@dataclass(frozen=True, slots=True)
class ConfigError:
    """Configuration could not be loaded or is incomplete."""

    message: str
    path: Path | None = None
    hint: str | None = None


@dataclass(frozen=True, slots=True)
class RegistryConfig:
    user: str
    organization: str
    host: str = DEFAULT_REGISTRY_HOST
    credential_env: str = DEFAULT_CREDENTIAL_ENV

    @property
    def feed_url(self) -> str:
        return f"https://{self.host}/{self.organization}/index.json"


@dataclass(frozen=True, slots=True)
class BuildConfig:
    source_path: str
    staging_path: str | None = None
    artifact_pattern: str = DEFAULT_ARTIFACT_PATTERN
    configuration: str = "Release"

    @property
    def staging_dir(self) -> str:
        """Where packages land; defaults to the packager's conventional output."""
        if self.staging_path:
            return self.staging_path
        return f"{self.source_path.rstrip('/')}/bin/{self.configuration}"


@dataclass(frozen=True, slots=True)
class ReleaseConfig:
    branch: str = DEFAULT_RELEASE_BRANCH
    # owner/name; None means "the repository gh infers from the checkout"
    repository: str | None = None


@dataclass(frozen=True, slots=True)
class TimeoutsConfig:
    build_seconds: float = 15 * 60.0
    publish_seconds: float = 5 * 60.0
    resolve_seconds: float = 2 * 60.0
    retry_attempts: int = 3
    retry_delay_seconds: float = 2.0


@dataclass(frozen=True, slots=True)
class PipelineConfig:
    """Everything a run needs besides the trigger and the credential."""

    registry: RegistryConfig
    build: BuildConfig
    release: ReleaseConfig = field(default_factory=ReleaseConfig)
    timeouts: TimeoutsConfig = field(default_factory=TimeoutsConfig)
    repository_root: Path = field(default_factory=Path.cwd)

    @property
    def release_branch(self) -> str:
        return self.release.branch

    def source_dir(self) -> Path:
        return self.repository_root / self.build.source_path

    def staging_dir(self) -> Path:
        return self.repository_root / self.build.staging_dir

    @classmethod
    def from_dict(cls, data: Mapping[str, object], *, root: Path) -> Result[PipelineConfig, ConfigError]:
        registry: StrDict = get_table(data, "registry") or {}
        build: StrDict = get_table(data, "build") or {}
        release: StrDict = get_table(data, "release") or {}
        timeouts: StrDict = get_table(data, "timeouts") or {}

        user = get_str(registry, "user")
        organization = get_str(registry, "organization")
        source_path = get_str(build, "source_path")

        missing = [
            name
            for name, value in (
                ("registry.user", user),
                ("registry.organization", organization),
                ("build.source_path", source_path),
            )
            if value is None
        ]
        if missing or user is None or organization is None or source_path is None:
            return Err(
                ConfigError(
                    f"missing required config: {', '.join(missing)}",
                    hint="Set them in relgate.toml or via RELGATE_* environment variables.",
                )
            )

        configuration = get_str(build, "configuration") or "Release"
        if configuration not in BUILD_CONFIGURATIONS:
            return Err(
                ConfigError(
                    f"invalid build.configuration: {configuration}",
                    hint=f"Expected one of: {', '.join(BUILD_CONFIGURATIONS)}",
                )
            )

        parsed_timeouts = _parse_timeouts(timeouts)
        if isinstance(parsed_timeouts, Err):
            return parsed_timeouts

        return Ok(
            cls(
                registry=RegistryConfig(
                    user=user,
                    organization=organization,
                    host=get_str(registry, "host") or DEFAULT_REGISTRY_HOST,
                    credential_env=get_str(registry, "credential_env") or DEFAULT_CREDENTIAL_ENV,
                ),
                build=BuildConfig(
                    source_path=source_path,
                    staging_path=get_str(build, "staging_path"),
                    artifact_pattern=get_str(build, "artifact_pattern") or DEFAULT_ARTIFACT_PATTERN,
                    configuration=configuration,
                ),
                release=ReleaseConfig(
                    branch=get_str(release, "branch") or DEFAULT_RELEASE_BRANCH,
                    repository=get_str(release, "repository"),
                ),
                timeouts=parsed_timeouts.value,
                repository_root=root,
            )
        )


def _parse_timeouts(table: StrDict) -> Result[TimeoutsConfig, ConfigError]:
    defaults = TimeoutsConfig()
    # key -> (default, whether 0 is allowed)
    bounds = {
        "build_seconds": (defaults.build_seconds, False),
        "publish_seconds": (defaults.publish_seconds, False),
        "resolve_seconds": (defaults.resolve_seconds, False),
        "retry_delay_seconds": (defaults.retry_delay_seconds, True),
    }
    seconds: dict[str, float] = {}
    for key, (default, allow_zero) in bounds.items():
        value = get_float(table, key)
        if value is None:
            seconds[key] = default
            continue
        if value < 0 or (value == 0 and not allow_zero):
            bound = ">= 0" if allow_zero else "> 0"
            return Err(ConfigError(f"timeouts.{key} must be {bound}, got {value:g}"))
        seconds[key] = value

    retry_attempts = get_int(table, "retry_attempts")
    if retry_attempts is None:
        retry_attempts = defaults.retry_attempts
    elif retry_attempts < 1:
        return Err(ConfigError("timeouts.retry_attempts must be >= 1"))

    return Ok(
        TimeoutsConfig(
            build_seconds=seconds["build_seconds"],
            publish_seconds=seconds["publish_seconds"],
            resolve_seconds=seconds["resolve_seconds"],
            retry_attempts=retry_attempts,
            retry_delay_seconds=seconds["retry_delay_seconds"],
        )
    )


def _parse_toml(path: Path) -> Result[StrDict, ConfigError]:
    import tomllib

    try:
        data_obj: object = tomllib.loads(path.read_bytes().decode("utf-8"))
    except FileNotFoundError:
        return Err(ConfigError(f"config file not found: {path}", path=path))
    except PermissionError:
        return Err(ConfigError(f"permission denied reading: {path}", path=path))
    except tomllib.TOMLDecodeError as e:
        return Err(ConfigError(f"invalid TOML syntax: {e}", path=path))
    except UnicodeDecodeError as e:
        return Err(ConfigError(f"error reading config: {e}", path=path))

    data = as_str_dict(data_obj)
    if data is None:
        return Err(ConfigError("config root must be a TOML table", path=path))
    return Ok(data)


def apply_env_overrides(data: StrDict, env: Mapping[str, str]) -> StrDict:
    """Return a copy of ``data`` with RELGATE_* environment values applied."""
    merged: StrDict = {k: v for k, v in data.items()}
    for var, (section, key) in ENV_OVERRIDES.items():
        value = env.get(var, "").strip()
        if not value:
            continue
        table: StrDict = dict(get_table(merged, section) or {})
        table[key] = value
        merged[section] = table
    return merged


def load_config(
    path: Path,
    *,
    env: Mapping[str, str] | None = None,
    allow_missing_file: bool = True,
) -> Result[PipelineConfig, ConfigError]:
    """Load ``relgate.toml`` and apply environment overrides.

    Args:
        path: Config file path. Its parent is the repository root.
        env: Environment mapping (defaults to ``os.environ``).
        allow_missing_file: Treat a missing file as empty so a config can be
            supplied entirely through RELGATE_* variables.

    Returns:
        Ok(PipelineConfig) on success, Err(ConfigError) otherwise.
    """
    environ = os.environ if env is None else env

    data: StrDict = {}
    if path.exists() or not allow_missing_file:
        parsed = _parse_toml(path)
        if isinstance(parsed, Err):
            return parsed
        data = parsed.value

    result = PipelineConfig.from_dict(
        apply_env_overrides(data, environ), root=path.resolve().parent
    )
    if isinstance(result, Err) and result.error.path is None:
        return Err(replace(result.error, path=path))
    return result
