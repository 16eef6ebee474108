"""Release pipeline: version resolution, gating, publishing and recording."""

from .gate import decide
from .model import (
    Artifact,
    BuildConfiguration,
    BuildContext,
    DecisionReason,
    ReleaseDecision,
    ReleaseRecord,
    RunOutputs,
    Trigger,
    VersionInfo,
)
from .runner import ReleasePipeline, RunReport, RunState

__all__ = [
    "Artifact",
    "BuildConfiguration",
    "BuildContext",
    "DecisionReason",
    "ReleaseDecision",
    "ReleasePipeline",
    "ReleaseRecord",
    "RunOutputs",
    "RunReport",
    "RunState",
    "Trigger",
    "VersionInfo",
    "decide",
]
