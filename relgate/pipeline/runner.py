"""One pipeline run as an explicit state machine.

    Resolving -> Building -> Gating -> Skipped
                                    -> Publishing -> Recording -> Released

Any stage error moves the run to Failed. Skipped, Released and Failed are
terminal. Building always runs; only publishing and recording are gated.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, replace
from enum import Enum
from typing import TypeVar

from relgate.core.config import PipelineConfig
from relgate.core.result import Err, Ok, Result
from relgate.output.console import ConsoleProtocol, Style
from relgate.pipeline.builder import ArtifactBuilder
from relgate.pipeline.credential import Credential
from relgate.pipeline.errors import AuthError, PipelineError
from relgate.pipeline.fsm import FINISH, StepOutcome, advance, run_state_machine
from relgate.pipeline.gate import decide
from relgate.pipeline.model import (
    Artifact,
    BuildConfiguration,
    BuildContext,
    PublishResult,
    ReleaseDecision,
    ReleaseRecord,
    RunOutputs,
    Trigger,
    VersionInfo,
)
from relgate.pipeline.publisher import Publisher
from relgate.pipeline.recorder import ReleaseRecorder
from relgate.pipeline.resolver import VersionResolver
from relgate.pipeline.retry import retry_on_timeout

T = TypeVar("T")
E = TypeVar("E")


class RunState(Enum):
    RESOLVING = "Resolving"
    BUILDING = "Building"
    GATING = "Gating"
    PUBLISHING = "Publishing"
    RECORDING = "Recording"
    RELEASED = "Released"
    SKIPPED = "Skipped"
    FAILED = "Failed"

    @property
    def is_terminal(self) -> bool:
        return self in (RunState.RELEASED, RunState.SKIPPED, RunState.FAILED)

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True, slots=True)
class RunReport:
    """Snapshot of a run; the final one is what the CLI reports."""

    state: RunState
    trigger: Trigger
    version: VersionInfo | None = None
    artifacts: tuple[Artifact, ...] = ()
    decision: ReleaseDecision | None = None
    published: PublishResult | None = None
    record: ReleaseRecord | None = None
    error: PipelineError | None = None
    # state the run was in when ``error`` happened
    failed_in: RunState | None = None

    @property
    def outputs(self) -> RunOutputs | None:
        if self.version is None:
            return None
        return RunOutputs.from_version(self.version)


StepResult = Result[StepOutcome[RunReport], PipelineError]


class ReleasePipeline:
    def __init__(
        self,
        *,
        config: PipelineConfig,
        resolver: VersionResolver,
        builder: ArtifactBuilder,
        publisher: Publisher,
        recorder: ReleaseRecorder,
        console: ConsoleProtocol,
        credential: Credential | None,
        dry_run: bool = False,
    ) -> None:
        self._config = config
        self._resolver = resolver
        self._builder = builder
        self._publisher = publisher
        self._recorder = recorder
        self._console = console
        self._credential = credential
        self._dry_run = dry_run

    def run(self, trigger: Trigger) -> RunReport:
        handlers = {
            RunState.RESOLVING: self._resolve,
            RunState.BUILDING: self._build,
            RunState.GATING: self._gate,
            RunState.PUBLISHING: self._publish,
            RunState.RECORDING: self._record,
            RunState.RELEASED: self._finish,
            RunState.SKIPPED: self._finish,
            RunState.FAILED: self._finish,
        }
        return run_state_machine(
            initial_state=RunReport(state=RunState.RESOLVING, trigger=trigger),
            get_step=lambda report: report.state,
            handlers=handlers,
            on_error=self._fail,
            on_transition=self._announce,
        )

    def _announce(self, report: RunReport) -> None:
        self._console.print(f"state: {report.state}", Style.DIM)

    @staticmethod
    def _fail(report: RunReport, error: PipelineError) -> RunReport:
        return replace(report, state=RunState.FAILED, error=error, failed_in=report.state)

    @staticmethod
    def _finish(report: RunReport) -> StepResult:
        return Ok(FINISH)

    def _retry(self, op: Callable[[], Result[T, E]]) -> Result[T, E]:
        timeouts = self._config.timeouts
        return retry_on_timeout(
            op,
            attempts=timeouts.retry_attempts,
            delay_seconds=timeouts.retry_delay_seconds,
            console=self._console,
        )

    def _resolve(self, report: RunReport) -> StepResult:
        resolved = self._resolver.resolve(self._config.repository_root)
        if isinstance(resolved, Err):
            return resolved
        version = resolved.value
        self._console.print(
            f"version: {version.resolved_version} "
            f"(commits since version source: {version.commits_since_version_source})"
        )
        return Ok(advance(replace(report, state=RunState.BUILDING, version=version)))

    def _build(self, report: RunReport) -> StepResult:
        assert report.version is not None
        context = BuildContext(
            source_path=self._config.source_dir(),
            target_version=report.version,
            configuration=BuildConfiguration(self._config.build.configuration),
        )
        built = self._retry(lambda: self._builder.build(context))
        if isinstance(built, Err):
            return built
        for artifact in built.value:
            self._console.print(f"built {artifact.name}", Style.DIM)
        return Ok(advance(replace(report, state=RunState.GATING, artifacts=built.value)))

    def _gate(self, report: RunReport) -> StepResult:
        assert report.version is not None
        decision = decide(report.version, report.trigger.branch_name, self._config.release_branch)
        self._console.print(f"gate: {decision.reason}")
        next_state = RunState.PUBLISHING if decision.should_release else RunState.SKIPPED
        return Ok(advance(replace(report, state=next_state, decision=decision)))

    def _publish(self, report: RunReport) -> StepResult:
        assert report.version is not None
        version = report.version
        credential = self._credential
        if credential is None and self._dry_run:
            credential = Credential(token="")
        if credential is None:
            return Err(
                AuthError(
                    "no registry credential supplied",
                    hint=f"Set {self._config.registry.credential_env}.",
                )
            )
        published = self._retry(
            lambda: self._publisher.publish(report.artifacts, credential, version)
        )
        if isinstance(published, Err):
            return published
        return Ok(advance(replace(report, state=RunState.RECORDING, published=published.value)))

    def _record(self, report: RunReport) -> StepResult:
        assert report.version is not None and report.decision is not None
        # Publishing finished; the record may now reference the artifacts.
        recorded = self._recorder.record(
            report.decision,
            report.version,
            report.artifacts,
            target=report.trigger.commit_hash or None,
        )
        if isinstance(recorded, Err):
            return recorded
        return Ok(advance(replace(report, state=RunState.RELEASED, record=recorded.value)))
