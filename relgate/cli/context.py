from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path

import typer

from relgate.core.config import DEFAULT_CONFIG_FILENAME, PipelineConfig, load_config
from relgate.core.errors import ErrorCode
from relgate.core.result import Err
from relgate.output.console import ConsoleProtocol, RichConsole, Style
from relgate.platform.http import RealHttpClient
from relgate.pipeline.builder import DotnetPackBuilder
from relgate.pipeline.credential import Credential
from relgate.pipeline.gh import GhReleaseStore
from relgate.pipeline.publisher import Publisher
from relgate.pipeline.recorder import ReleaseRecorder
from relgate.pipeline.registry import NugetRegistryClient
from relgate.pipeline.resolver import GitVersionResolver
from relgate.pipeline.runner import ReleasePipeline


@dataclass(frozen=True, slots=True)
class CLIContext:
    config: PipelineConfig
    console: ConsoleProtocol
    env: Mapping[str, str]


def build_context(config_path: Path | None) -> CLIContext:
    console = RichConsole()
    path = config_path or Path.cwd() / DEFAULT_CONFIG_FILENAME
    result = load_config(path, env=os.environ, allow_missing_file=config_path is None)
    if isinstance(result, Err):
        console.error(result.error.message)
        if result.error.hint:
            console.print(f"hint: {result.error.hint}", Style.DIM)
        raise typer.Exit(code=int(ErrorCode.ENV_ERROR))

    return CLIContext(config=result.value, console=console, env=os.environ)


def build_resolver(ctx: CLIContext) -> GitVersionResolver:
    return GitVersionResolver(
        console=ctx.console,
        timeout=ctx.config.timeouts.resolve_seconds,
    )


def build_pipeline(
    ctx: CLIContext,
    *,
    credential: Credential | None,
    dry_run: bool,
) -> ReleasePipeline:
    config = ctx.config
    registry = NugetRegistryClient(
        config=config.registry,
        http=RealHttpClient(timeout=config.timeouts.publish_seconds),
        timeout=config.timeouts.publish_seconds,
        console=ctx.console,
    )
    store = GhReleaseStore(
        workspace_root=config.repository_root,
        repository=config.release.repository,
        credential=credential,
        console=ctx.console,
        dry_run=dry_run,
    )
    return ReleasePipeline(
        config=config,
        resolver=build_resolver(ctx),
        builder=DotnetPackBuilder(
            staging=config.staging_dir(),
            artifact_pattern=config.build.artifact_pattern,
            timeout=config.timeouts.build_seconds,
            console=ctx.console,
        ),
        publisher=Publisher(registry=registry, console=ctx.console, dry_run=dry_run),
        recorder=ReleaseRecorder(store=store, console=ctx.console),
        console=ctx.console,
        credential=credential,
        dry_run=dry_run,
    )
