"""
History Package

Snapshot undo/redo with typing coalescing, cancelable timers and an
autosave draft store.
"""

from .autosave import AutosaveStore, locked_draft
from .engine import (
    DEFAULT_COALESCE_MS,
    DEFAULT_HISTORY_LIMIT,
    REASON_MANUAL,
    REASON_TYPING,
    HistoryEngine,
    HistoryEntry,
    HistoryMeta,
    build_snapshot,
)
from .scheduler import Clock, MonotonicClock, ScheduledTask, Scheduler, VirtualClock

__all__ = [
    "AutosaveStore",
    "locked_draft",
    "DEFAULT_COALESCE_MS",
    "DEFAULT_HISTORY_LIMIT",
    "REASON_MANUAL",
    "REASON_TYPING",
    "HistoryEngine",
    "HistoryEntry",
    "HistoryMeta",
    "build_snapshot",
    "Clock",
    "MonotonicClock",
    "ScheduledTask",
    "Scheduler",
    "VirtualClock",
]
