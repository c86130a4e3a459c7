"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

Explicit attempt outcomes so the retry loop branches on a tag, not on
exception flow.
"""

from __future__ import annotations

import inspect
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Generic, Literal, TypeVar, Union

T = TypeVar("T")

TaskOperation = Callable[[], Union[Awaitable[T], T]]


@dataclass(frozen=True, slots=True)
class AttemptSuccess(Generic[T]):
    """Attempt that produced a value."""

    value: T
    ok: Literal[True] = True


@dataclass(frozen=True, slots=True)
class AttemptFailure:
    """Attempt that raised."""

    error: Exception
    ok: Literal[False] = False


AttemptOutcome = Union[AttemptSuccess[T], AttemptFailure]


async def run_attempt(operation: TaskOperation[T]) -> AttemptOutcome[T]:
    """Invoke `operation` once, awaiting its result when it is awaitable."""
    try:
        result = operation()
        if inspect.isawaitable(result):
            result = await result
    except Exception as error:
        return AttemptFailure(error=error)
    return AttemptSuccess(value=result)
