from __future__ import annotations

from collections.abc import Callable

import pytest

from relgate.core.result import Err, Ok, Result
from relgate.output.console import MockConsole
from relgate.pipeline import retry as retry_mod
from relgate.pipeline.errors import (
    AuthError,
    BuildError,
    ConflictError,
    StageTimeoutError,
    is_retryable,
)
from relgate.pipeline.retry import retry_on_timeout


@pytest.fixture
def sleeps(monkeypatch: pytest.MonkeyPatch) -> list[float]:
    seen: list[float] = []
    monkeypatch.setattr(retry_mod, "sleep", seen.append)
    return seen


def _sequence(
    results: list[Result[str, StageTimeoutError | BuildError]],
) -> tuple[list[int], Callable[[], Result[str, StageTimeoutError | BuildError]]]:
    calls: list[int] = []

    def op() -> Result[str, StageTimeoutError | BuildError]:
        calls.append(1)
        return results.pop(0)

    return calls, op


def test_timeout_then_success_is_retried(sleeps: list[float]) -> None:
    calls, op = _sequence([Err(StageTimeoutError("build", 900)), Ok("done")])
    console = MockConsole()

    result = retry_on_timeout(op, attempts=3, delay_seconds=2.0, console=console)

    assert result == Ok("done")
    assert len(calls) == 2
    assert sleeps == [2.0]
    assert console.find("retry 1/2")


def test_non_timeout_error_is_not_retried(sleeps: list[float]) -> None:
    calls, op = _sequence([Err(BuildError("dotnet pack failed (exit 1)"))])

    result = retry_on_timeout(op, attempts=3, delay_seconds=2.0, console=MockConsole())

    assert isinstance(result, Err)
    assert result.error.kind == "build"
    assert len(calls) == 1
    assert sleeps == []


def test_gives_up_after_attempts(sleeps: list[float]) -> None:
    calls, op = _sequence([Err(StageTimeoutError("publish", 300)) for _ in range(3)])

    result = retry_on_timeout(op, attempts=3, delay_seconds=1.0, console=MockConsole())

    assert isinstance(result, Err)
    assert isinstance(result.error, StageTimeoutError)
    assert len(calls) == 3
    assert sleeps == [1.0, 2.0]


def test_single_attempt_never_sleeps(sleeps: list[float]) -> None:
    calls, op = _sequence([Err(StageTimeoutError("build", 1))])

    retry_on_timeout(op, attempts=1, delay_seconds=5.0, console=MockConsole())

    assert len(calls) == 1
    assert sleeps == []


def test_only_timeouts_are_retryable() -> None:
    assert is_retryable(StageTimeoutError("publish", 300))
    assert not is_retryable(AuthError("registry rejected the credential"))
    assert not is_retryable(ConflictError("A", "1.3.0", "registry already has A 1.3.0"))
    assert not is_retryable(BuildError("dotnet pack failed (exit 1)"))
