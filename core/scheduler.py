"""Keyed debounce queue driven by an injectable clock.

Each slice of persisted state (``"windows"``, ``"desktop"``) owns at most one
pending task. Scheduling a key again replaces the pending task, so a burst of
mutations collapses into a single save once the burst has been quiet for the
debounce interval. Nothing here spawns threads: the owner of the event loop
calls :meth:`TaskScheduler.run_due` when it gets a chance, and tests drive a
:class:`ManualClock` to advance virtual time deterministically.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass

logger = logging.getLogger("desktop.scheduler")

Clock = Callable[[], float]


class ManualClock:
    """Virtual clock for deterministic tests and replay."""

    def __init__(self, start: float = 0.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@dataclass
class ScheduledTask:
    """Pending callback for one key."""

    key: str
    due_at: float
    callback: Callable[[], None]


class TaskScheduler:
    """Map from slice key to its pending debounced task."""

    def __init__(self, clock: Clock | None = None) -> None:
        self.clock: Clock = clock or time.monotonic
        self._pending: dict[str, ScheduledTask] = {}

    def schedule(self, key: str, delay: float, callback: Callable[[], None]) -> ScheduledTask:
        """Schedule ``callback`` for ``key``, superseding any pending task."""
        task = ScheduledTask(key=key, due_at=self.clock() + max(0.0, delay), callback=callback)
        if key in self._pending:
            logger.debug("Rescheduled %s save for +%.2fs", key, delay)
        self._pending[key] = task
        return task

    def cancel(self, key: str) -> bool:
        return self._pending.pop(key, None) is not None

    def is_pending(self, key: str) -> bool:
        return key in self._pending

    def pending_keys(self) -> list[str]:
        return sorted(self._pending)

    def next_due(self) -> float | None:
        if not self._pending:
            return None
        return min(task.due_at for task in self._pending.values())

    def run_due(self) -> list[str]:
        """Run every task whose due time has passed; return the keys run."""
        now = self.clock()
        due = sorted(
            (task for task in self._pending.values() if task.due_at <= now),
            key=lambda task: task.due_at,
        )
        return self._run(due)

    def flush(self) -> list[str]:
        """Run all pending tasks immediately regardless of due time."""
        tasks = sorted(self._pending.values(), key=lambda task: task.due_at)
        return self._run(tasks)

    def advance(self, seconds: float) -> list[str]:
        """Advance a :class:`ManualClock` and run whatever became due."""
        if not isinstance(self.clock, ManualClock):
            raise TypeError("advance() requires a ManualClock")
        self.clock.advance(seconds)
        return self.run_due()

    def _run(self, tasks: list[ScheduledTask]) -> list[str]:
        ran: list[str] = []
        for task in tasks:
            # A callback may have rescheduled this key; only run the task we picked.
            if self._pending.get(task.key) is not task:
                continue
            del self._pending[task.key]
            task.callback()
            ran.append(task.key)
        return ran
