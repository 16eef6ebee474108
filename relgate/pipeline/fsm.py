from __future__ import annotations

from collections.abc import Callable, Mapping
from dataclasses import dataclass
from typing import Generic, TypeVar

from relgate.core.result import Err, Result

S = TypeVar("S")
K = TypeVar("K")
E = TypeVar("E")


@dataclass(frozen=True, slots=True)
class StepAdvance(Generic[S]):
    session: S


@dataclass(frozen=True, slots=True)
class StepFinish:
    pass


StepOutcome = StepAdvance[S] | StepFinish
StepHandler = Callable[[S], Result[StepOutcome[S], E]]


FINISH = StepFinish()


def advance(session: S) -> StepAdvance[S]:
    return StepAdvance(session=session)


def run_state_machine(
    *,
    initial_state: S,
    get_step: Callable[[S], K],
    handlers: Mapping[K, StepHandler[S, E]],
    on_error: Callable[[S, E], S],
    on_transition: Callable[[S], None] | None = None,
) -> S:
    """Drive ``initial_state`` through ``handlers`` until one finishes.

    A handler error is folded into the session by ``on_error``; the resulting
    step's handler runs next, so failure is a state like any other.
    """
    current = initial_state
    if on_transition is not None:
        on_transition(current)

    while True:
        step = get_step(current)
        handler = handlers.get(step)
        if handler is None:
            raise LookupError(f"no handler for step: {step}")

        outcome = handler(current)
        if isinstance(outcome, Err):
            current = on_error(current, outcome.error)
        elif isinstance(outcome.value, StepFinish):
            return current
        else:
            current = outcome.value.session

        if on_transition is not None:
            on_transition(current)
