"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

Bookkeeping for in-flight executions, keyed by task key.
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Hashable, Iterator
from dataclasses import dataclass, field
from typing import Any, Generic, Literal, TypeVar

from .contracts import ExecuteOptions

K = TypeVar("K", bound=Hashable)

ExecutionState = Literal[
    "created",
    "attempting",
    "retrying",
    "succeeded",
    "failed",
    "timed_out",
    "cancelled",
]

TERMINAL_STATES: frozenset[str] = frozenset(
    {"succeeded", "failed", "timed_out", "cancelled"}
)


@dataclass(slots=True, eq=False)
class PendingEntry:
    """
    One logical execution shared by every caller of the same key.

    Attributes:
        key: Task key the execution was admitted under.
        future: Shared result cell; settled exactly once.
        options: Options of the caller that admitted the execution.
        state: Current lifecycle state.
        attempts: Number of attempts started so far.
        timer: Armed timeout handle, if a timeout was requested.
        runner: Task running the attempt loop.
        waiters: Callers sharing this execution, including the first.
        created_at_s: Monotonic admission time.
    """

    key: Hashable
    future: asyncio.Future[Any]
    options: ExecuteOptions
    state: ExecutionState = "created"
    attempts: int = 0
    timer: asyncio.TimerHandle | None = None
    runner: asyncio.Task[None] | None = None
    waiters: int = 1
    created_at_s: float = field(default_factory=time.monotonic)

    @property
    def settled(self) -> bool:
        return self.future.done()

    @property
    def elapsed_s(self) -> float:
        """Seconds since admission."""
        return time.monotonic() - self.created_at_s

    def disarm(self) -> None:
        """Cancel the timeout timer if it is still armed."""
        if self.timer is not None:
            self.timer.cancel()
            self.timer = None


class PendingMap(Generic[K]):
    """Explicit key -> in-flight entry mapping owned by one executor."""

    def __init__(self) -> None:
        self._entries: dict[K, PendingEntry] = {}

    def get(self, key: K) -> PendingEntry | None:
        return self._entries.get(key)

    def insert(self, entry: PendingEntry) -> None:
        """Register `entry`; a key can hold only one entry at a time."""
        if entry.key in self._entries:
            raise ValueError(f"Key {entry.key!r} already has a pending entry")
        self._entries[entry.key] = entry  # type: ignore[index]

    def remove(self, entry: PendingEntry) -> bool:
        """
        Remove `entry` if the mapping still holds that exact entry.

        Returns False when the key is absent or now belongs to a newer
        execution, so late cleanup never evicts a fresh entry.
        """
        current = self._entries.get(entry.key)  # type: ignore[arg-type]
        if current is not entry:
            return False
        del self._entries[entry.key]  # type: ignore[arg-type]
        return True

    def pop_all(self) -> list[PendingEntry]:
        entries = list(self._entries.values())
        self._entries.clear()
        return entries

    def keys(self) -> list[K]:
        return list(self._entries)

    def __contains__(self, key: object) -> bool:
        return key in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[PendingEntry]:
        return iter(list(self._entries.values()))
