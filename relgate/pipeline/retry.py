from __future__ import annotations

from collections.abc import Callable
from time import sleep
from typing import TypeVar

from relgate.core.result import Err, Result
from relgate.output.console import ConsoleProtocol, Style
from relgate.pipeline.errors import is_retryable

T = TypeVar("T")
E = TypeVar("E")


def retry_on_timeout(
    op: Callable[[], Result[T, E]],
    *,
    attempts: int,
    delay_seconds: float,
    console: ConsoleProtocol,
) -> Result[T, E]:
    """Run ``op`` until it succeeds, fails with a non-timeout error, or
    ``attempts`` is exhausted. Only ``StageTimeoutError`` is retried."""
    attempts = max(1, attempts)
    result = op()
    for attempt in range(1, attempts):
        if not (isinstance(result, Err) and is_retryable(result.error)):
            return result
        console.print(
            f"{result.error.message}; retry {attempt}/{attempts - 1}",
            Style.DIM,
        )
        sleep(delay_seconds * attempt)
        result = op()
    return result
