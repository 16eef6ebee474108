from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

import pytest
from typer.testing import CliRunner

from relgate import __version__
from relgate.cli.app import app
from relgate.cli.commands import run_cmd
from relgate.cli.context import CLIContext
from relgate.core.config import BuildConfig, PipelineConfig, RegistryConfig
from relgate.output.console import MockConsole
from relgate.pipeline.credential import Credential
from relgate.pipeline.errors import ConflictError
from relgate.pipeline.model import (
    DecisionReason,
    ReleaseDecision,
    ReleaseRecord,
    Trigger,
    VersionInfo,
)
from relgate.pipeline.runner import RunReport, RunState

runner = CliRunner()


def test_version_flag() -> None:
    result = runner.invoke(app, ["--version"])
    assert result.exit_code == 0
    assert result.stdout.strip() == __version__


class TestGate:
    def test_approved(self) -> None:
        result = runner.invoke(
            app, ["gate", "--branch", "refs/heads/main", "--version", "1.3.0", "--commits", "3"]
        )
        assert result.exit_code == 0
        assert result.stdout.splitlines() == ["should_release=true", "reason=Approved"]

    def test_no_new_commits(self) -> None:
        result = runner.invoke(
            app, ["gate", "--branch", "main", "--version", "1.2.0", "--commits", "0"]
        )
        assert result.exit_code == 0
        assert "reason=NoNewCommits" in result.stdout

    def test_wrong_branch(self) -> None:
        result = runner.invoke(
            app,
            [
                "gate",
                "--branch",
                "feature/x",
                "--version",
                "1.3.0-x.1",
                "--commits",
                "5",
                "--release-branch",
                "main",
            ],
        )
        assert result.exit_code == 0
        assert "should_release=false" in result.stdout
        assert "reason=WrongBranch" in result.stdout

    def test_invalid_version_is_user_error(self) -> None:
        result = runner.invoke(
            app, ["gate", "--branch", "main", "--version", "one", "--commits", "1"]
        )
        assert result.exit_code == 1

    def test_negative_commits_rejected(self) -> None:
        result = runner.invoke(
            app, ["gate", "--branch", "main", "--version", "1.0.0", "--commits", "-1"]
        )
        assert result.exit_code != 0


@dataclass
class FakePipeline:
    report: RunReport
    triggers: list[Trigger]

    def run(self, trigger: Trigger) -> RunReport:
        self.triggers.append(trigger)
        return self.report


VERSION = VersionInfo(resolved_version="1.3.0", commits_since_version_source=3)


def _context(tmp_path: Path, env: dict[str, str]) -> CLIContext:
    config = PipelineConfig(
        registry=RegistryConfig(user="bot", organization="acme"),
        build=BuildConfig(source_path="src/Demo"),
        repository_root=tmp_path,
    )
    return CLIContext(config=config, console=MockConsole(), env=env)


def _install(
    monkeypatch: pytest.MonkeyPatch,
    ctx: CLIContext,
    report: RunReport,
) -> tuple[list[Trigger], list[Credential | None]]:
    triggers: list[Trigger] = []
    credentials: list[Credential | None] = []

    def fake_build_pipeline(
        _ctx: CLIContext, *, credential: Credential | None, dry_run: bool
    ) -> FakePipeline:
        credentials.append(credential)
        return FakePipeline(report=report, triggers=triggers)

    monkeypatch.setattr(run_cmd, "build_context", lambda config: ctx)
    monkeypatch.setattr(run_cmd, "build_pipeline", fake_build_pipeline)
    return triggers, credentials


class TestRun:
    def test_released_writes_outputs(self, monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
        outputs = tmp_path / "github_output"
        env = {
            "GITHUB_REF": "refs/heads/main",
            "GITHUB_SHA": "abc123",
            "GITHUB_OUTPUT": str(outputs),
            "NUGET_PACKAGE_TOKEN": "tok",
        }
        ctx = _context(tmp_path, env)
        report = RunReport(
            state=RunState.RELEASED,
            trigger=Trigger("main", "abc123"),
            version=VERSION,
            decision=ReleaseDecision(True, DecisionReason.APPROVED),
            record=ReleaseRecord(tag="1.3.0", title="Release 1.3.0", artifacts=()),
        )
        triggers, credentials = _install(monkeypatch, ctx, report)

        result = runner.invoke(app, ["run"])

        assert result.exit_code == 0
        assert triggers == [Trigger("main", "abc123")]
        assert credentials == [Credential("tok")]
        assert outputs.read_text(encoding="utf-8") == (
            "version=1.3.0\ncommits_since_version_source=3\n"
        )
        assert isinstance(ctx.console, MockConsole)
        assert ctx.console.find("released 1.3.0")
        assert not ctx.console.find("(dry run)")

    def test_dry_run_release_is_labelled(
        self, monkeypatch: pytest.MonkeyPatch, tmp_path: Path
    ) -> None:
        ctx = _context(tmp_path, {})
        report = RunReport(
            state=RunState.RELEASED,
            trigger=Trigger("main", ""),
            version=VERSION,
            decision=ReleaseDecision(True, DecisionReason.APPROVED),
            record=ReleaseRecord(tag="1.3.0", title="Release 1.3.0", artifacts=()),
        )
        _install(monkeypatch, ctx, report)

        result = runner.invoke(app, ["run", "--branch", "main", "--dry-run"])

        assert result.exit_code == 0
        assert isinstance(ctx.console, MockConsole)
        assert ctx.console.find("released 1.3.0 (dry run)")

    def test_skipped_exits_zero(self, monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
        ctx = _context(tmp_path, {})
        report = RunReport(
            state=RunState.SKIPPED,
            trigger=Trigger("feature/x", ""),
            version=VersionInfo("1.3.0-x.1", 5),
            decision=ReleaseDecision(False, DecisionReason.WRONG_BRANCH),
        )
        _install(monkeypatch, ctx, report)

        result = runner.invoke(app, ["run", "--branch", "feature/x"])

        assert result.exit_code == 0
        assert isinstance(ctx.console, MockConsole)
        assert ctx.console.find("skipped: WrongBranch")
        assert ctx.console.find("version=1.3.0-x.1")

    def test_failed_maps_exit_code(self, monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
        ctx = _context(tmp_path, {})
        report = RunReport(
            state=RunState.FAILED,
            trigger=Trigger("main", ""),
            version=VERSION,
            error=ConflictError("Demo", "1.3.0", "registry already has Demo 1.3.0"),
            failed_in=RunState.PUBLISHING,
        )
        _install(monkeypatch, ctx, report)

        result = runner.invoke(app, ["run", "--branch", "main"])

        assert result.exit_code == 7
        assert isinstance(ctx.console, MockConsole)
        assert ctx.console.find("failed in Publishing")
        assert ctx.console.has_error()

    def test_missing_branch_is_user_error(
        self, monkeypatch: pytest.MonkeyPatch, tmp_path: Path
    ) -> None:
        ctx = _context(tmp_path, {})
        triggers, _ = _install(monkeypatch, ctx, RunReport(RunState.SKIPPED, Trigger("x", "")))

        result = runner.invoke(app, ["run"])

        assert result.exit_code == 1
        assert triggers == []


def test_run_with_bad_config_exits_2(tmp_path: Path) -> None:
    config = tmp_path / "relgate.toml"
    config.write_text("[registry\n", encoding="utf-8")

    result = runner.invoke(app, ["run", "--branch", "main", "--config", str(config)])

    assert result.exit_code == 2
