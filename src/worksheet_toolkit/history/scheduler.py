"""
Module: history.scheduler

Purpose:
    Cancelable, named timers for debounced work (history records,
    rebalancing). Nothing runs on its own: the host calls run_due() from
    its event loop, and tests drive time with a VirtualClock.

Key Classes:
    - Clock: Protocol returning milliseconds
    - MonotonicClock: Wall clock based on time.monotonic()
    - VirtualClock: Manually advanced clock for tests
    - ScheduledTask: One pending callback
    - Scheduler: Named tasks; rescheduling a name cancels the pending run

Dependencies:
    - time (std)

Used By:
    - history.engine.HistoryEngine.record_later()
    - session.EditorSession: Debounced rebalance and typing records
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Protocol

logger = logging.getLogger(__name__)


class Clock(Protocol):
    """Millisecond clock."""

    def now_ms(self) -> float:
        ...


class MonotonicClock:
    """Clock backed by time.monotonic()."""

    def now_ms(self) -> float:
        return time.monotonic() * 1000


class VirtualClock:
    """
    Clock that only moves when told to.

    Example:
        >>> clock = VirtualClock()
        >>> clock.advance(250)
        250.0
        >>> clock.now_ms()
        250.0
    """

    def __init__(self, start_ms: float = 0.0):
        self._now = float(start_ms)

    def now_ms(self) -> float:
        return self._now

    def advance(self, ms: float) -> float:
        if ms < 0:
            raise ValueError(f"Cannot move a clock backwards: {ms}")
        self._now += ms
        return self._now


@dataclass
class ScheduledTask:
    """
    A callback due at ``due_ms``.

    Attributes:
        name: Key used for rescheduling (one pending task per name)
        due_ms: Clock time the task becomes runnable
        callback: Called with no arguments
        cancelled: Set by cancel(); cancelled tasks never run
        done: Set once the callback has run
    """

    name: str
    due_ms: float
    callback: Callable[[], Any] = field(repr=False)
    cancelled: bool = False
    done: bool = False

    @property
    def pending(self) -> bool:
        return not (self.cancelled or self.done)

    def cancel(self) -> None:
        self.cancelled = True

    def run(self) -> Any:
        self.done = True
        return self.callback()


class Scheduler:
    """
    Holds named delayed callbacks.

    Scheduling a name that already has a pending task cancels that task,
    so a burst of calls within the delay collapses into one run.

    Example:
        >>> clock = VirtualClock()
        >>> sched = Scheduler(clock)
        >>> calls = []
        >>> _ = sched.schedule("save", 300, lambda: calls.append(1))
        >>> _ = sched.schedule("save", 300, lambda: calls.append(2))
        >>> _ = clock.advance(300)
        >>> sched.run_due()
        1
        >>> calls
        [2]
    """

    def __init__(self, clock: Optional[Clock] = None):
        self.clock = clock or MonotonicClock()
        self._tasks: Dict[str, ScheduledTask] = {}

    def schedule(self, name: str, delay_ms: float, callback: Callable[[], Any]) -> ScheduledTask:
        """Schedule ``callback`` after ``delay_ms``, replacing a pending task of the same name."""
        self.cancel(name)
        task = ScheduledTask(name=name, due_ms=self.clock.now_ms() + max(0.0, delay_ms), callback=callback)
        self._tasks[name] = task
        return task

    def cancel(self, name: str) -> bool:
        """Cancel the pending task with this name. Returns True if one was pending."""
        task = self._tasks.pop(name, None)
        if task is None or not task.pending:
            return False
        task.cancel()
        logger.debug(f"Cancelled scheduled task {name}")
        return True

    def cancel_all(self) -> None:
        for name in list(self._tasks):
            self.cancel(name)

    def pending(self, name: str) -> Optional[ScheduledTask]:
        task = self._tasks.get(name)
        return task if task is not None and task.pending else None

    def next_due_ms(self) -> Optional[float]:
        """Earliest due time among pending tasks."""
        dues = [t.due_ms for t in self._tasks.values() if t.pending]
        return min(dues) if dues else None

    def run_due(self) -> int:
        """
        Run every pending task whose due time has passed, oldest first.

        Tasks scheduled by a running callback are not run in the same call
        unless already due. Returns the number of callbacks run.
        """
        now = self.clock.now_ms()
        due: List[ScheduledTask] = sorted(
            (t for t in self._tasks.values() if t.pending and t.due_ms <= now),
            key=lambda t: t.due_ms,
        )
        ran = 0
        for task in due:
            if not task.pending:
                continue
            if self._tasks.get(task.name) is task:
                del self._tasks[task.name]
            task.run()
            ran += 1
        return ran

    def flush(self) -> int:
        """Run every pending task now, regardless of due time."""
        ran = 0
        while self._tasks:
            name, task = next(iter(self._tasks.items()))
            del self._tasks[name]
            if task.pending:
                task.run()
                ran += 1
        return ran
