"""Release gate.

The single decision that keeps a run from publishing twice for the same head
or publishing from a non-release branch. It is pure and total: no I/O and no
exceptions.
"""

from __future__ import annotations

from relgate.pipeline.model import DecisionReason, ReleaseDecision, VersionInfo

_WRONG_BRANCH = ReleaseDecision(should_release=False, reason=DecisionReason.WRONG_BRANCH)
_NO_NEW_COMMITS = ReleaseDecision(should_release=False, reason=DecisionReason.NO_NEW_COMMITS)
_APPROVED = ReleaseDecision(should_release=True, reason=DecisionReason.APPROVED)


def decide(version: VersionInfo, branch_name: str, release_branch_name: str) -> ReleaseDecision:
    # Branch is checked first: a non-release branch never releases.
    if branch_name != release_branch_name:
        return _WRONG_BRANCH
    if version.commits_since_version_source == 0:
        return _NO_NEW_COMMITS
    return _APPROVED
