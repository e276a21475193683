"""
Module: history.engine

Purpose:
    Snapshot-based undo/redo.
    Each entry is a deep, canonical snapshot of the document and settings.
    Consecutive typing records for the same block within a short window
    replace the top entry instead of pushing a new one, so a burst of
    keystrokes undoes as a single step.

Key Functions:
    - build_snapshot(): Canonical snapshot dict and its serialized form

Key Classes:
    - HistoryMeta: Why and when an entry was recorded
    - HistoryEntry: Snapshot + serialized string + meta
    - HistoryEngine: Bounded stack with a cursor

Dependencies:
    - markup.serializer: Canonical block content
    - history.scheduler: Debounced records
    - history.autosave: Draft persistence

Used By:
    - session.EditorSession
"""

from __future__ import annotations

import copy
import json
import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Protocol, Tuple

from worksheet_toolkit.core.models import Document, Settings
from worksheet_toolkit.history.scheduler import Clock, MonotonicClock, ScheduledTask, Scheduler
from worksheet_toolkit.markup.serializer import canonicalize_content

logger = logging.getLogger(__name__)

DEFAULT_HISTORY_LIMIT = 30
DEFAULT_COALESCE_MS = 2000

REASON_MANUAL = "manual"
REASON_TYPING = "typing"

RECORD_TASK = "history.record"
DRAFT_TASK = "history.draft"

Snapshot = Dict[str, Any]


def build_snapshot(document: Document, settings: Settings) -> Tuple[Snapshot, str]:
    """
    Deep snapshot of a project with every block's content canonicalized.

    The serialized form uses sorted keys so equal states always compare
    equal as strings.

    Example:
        >>> from worksheet_toolkit.core.models import Block
        >>> snap, text = build_snapshot(Document(blocks=[Block(id="a", content="x")]), Settings())
        >>> snap["data"]["blocks"][0]["content"]
        'x'
    """
    data = document.to_dict()
    for block in data["blocks"]:
        if "content" in block:
            block["content"] = canonicalize_content(block["content"])
    snapshot = {"data": data, "settings": settings.to_dict()}
    serialized = json.dumps(snapshot, sort_keys=True, ensure_ascii=False)
    return snapshot, serialized


class DraftSink(Protocol):
    """Where serialized snapshots are persisted (see AutosaveStore)."""

    def save(self, serialized: str) -> None:
        ...


@dataclass(frozen=True)
class HistoryMeta:
    """
    Why and when an entry was recorded.

    Attributes:
        reason: "manual", "typing", or a host-defined tag
        block_id: Block being edited (typing records)
        time_ms: Clock time of the record
    """

    reason: str = REASON_MANUAL
    block_id: Optional[str] = None
    time_ms: float = 0.0


@dataclass
class HistoryEntry:
    """One undo step."""

    snapshot: Snapshot
    serialized: str
    meta: HistoryMeta


class HistoryEngine:
    """
    Bounded undo/redo stack.

    The engine does not own the document: ``capture`` returns the current
    (snapshot, serialized) pair and ``restore`` applies a snapshot back to
    the owner.

    Attributes:
        limit: Maximum number of entries kept
        coalesce_ms: Default typing coalescing window

    Example:
        >>> state = {"v": 0}
        >>> engine = HistoryEngine(
        ...     capture=lambda: ({"v": state["v"]}, str(state["v"])),
        ...     restore=lambda snap: state.update(snap),
        ... )
        >>> engine.record()
        True
        >>> state["v"] = 1
        >>> engine.record()
        True
        >>> engine.undo(), state["v"]
        (True, 0)
    """

    def __init__(
        self,
        capture: Callable[[], Tuple[Snapshot, str]],
        restore: Callable[[Snapshot], None],
        *,
        limit: int = DEFAULT_HISTORY_LIMIT,
        coalesce_ms: float = DEFAULT_COALESCE_MS,
        scheduler: Optional[Scheduler] = None,
        clock: Optional[Clock] = None,
        autosave: Optional[DraftSink] = None,
    ):
        if limit < 1:
            raise ValueError(f"History limit must be at least 1: {limit}")
        self.capture = capture
        self.restore = restore
        self.limit = limit
        self.coalesce_ms = coalesce_ms
        self.scheduler = scheduler
        self.clock = clock or (scheduler.clock if scheduler else MonotonicClock())
        self.autosave = autosave
        self._entries: List[HistoryEntry] = []
        self._index = -1
        # Meta of the last record; cleared by undo/redo so typing after an
        # undo always starts a new entry
        self._last_meta: Optional[HistoryMeta] = None

    # ─────────────────────────────────────────────────────────────────────
    # State
    # ─────────────────────────────────────────────────────────────────────

    @property
    def depth(self) -> int:
        return len(self._entries)

    @property
    def cursor(self) -> int:
        return self._index

    @property
    def can_undo(self) -> bool:
        return self._index > 0

    @property
    def can_redo(self) -> bool:
        return self._index < len(self._entries) - 1

    @property
    def entries(self) -> Tuple[HistoryEntry, ...]:
        return tuple(self._entries)

    def current(self) -> Optional[HistoryEntry]:
        if self._index < 0:
            return None
        return self._entries[self._index]

    def clear(self) -> None:
        """Drop every entry (used when a new project is loaded)."""
        self._entries = []
        self._index = -1
        self._last_meta = None
        if self.scheduler:
            self.scheduler.cancel(RECORD_TASK)

    # ─────────────────────────────────────────────────────────────────────
    # Recording
    # ─────────────────────────────────────────────────────────────────────

    def _can_coalesce(self, reason: str, block_id: Optional[str], window_ms: float, now: float) -> bool:
        if reason != REASON_TYPING:
            return False
        if self._index < 0 or self._index != len(self._entries) - 1:
            return False
        last = self._last_meta
        if last is None or last.reason != REASON_TYPING:
            return False
        if now - last.time_ms > window_ms:
            return False
        if block_id and block_id != last.block_id:
            return False
        return True

    def record(
        self,
        reason: str = REASON_MANUAL,
        block_id: Optional[str] = None,
        coalesce_ms: Optional[float] = None,
    ) -> bool:
        """
        Snapshot the current state.

        Args:
            reason: "typing" records may coalesce with the top entry
            block_id: Block being edited
            coalesce_ms: Coalescing window (engine default when None)

        Returns:
            True if the stack changed, False for a no-op (state identical
            to the current entry)
        """
        if self.scheduler:
            self.scheduler.cancel(RECORD_TASK)
        snapshot, serialized = self.capture()
        now = self.clock.now_ms()
        window = self.coalesce_ms if coalesce_ms is None else coalesce_ms
        if reason != REASON_TYPING:
            # Any other record ends the typing burst, even when nothing changed
            self._last_meta = HistoryMeta(reason=reason or REASON_MANUAL, block_id=block_id, time_ms=now)

        if self._can_coalesce(reason, block_id, window, now):
            top = self._entries[self._index]
            if top.serialized == serialized:
                return False
            meta = HistoryMeta(reason=REASON_TYPING, block_id=block_id, time_ms=now)
            self._entries[self._index] = HistoryEntry(snapshot, serialized, meta)
            self._last_meta = meta
            self._persist(serialized)
            logger.debug(f"Coalesced typing record for block {block_id}")
            return True

        if self._index >= 0 and self._entries[self._index].serialized == serialized:
            return False

        meta = HistoryMeta(reason=reason or REASON_MANUAL, block_id=block_id, time_ms=now)
        del self._entries[self._index + 1:]
        self._entries.append(HistoryEntry(snapshot, serialized, meta))
        self._index = len(self._entries) - 1
        if len(self._entries) > self.limit:
            evicted = len(self._entries) - self.limit
            del self._entries[:evicted]
            self._index -= evicted
        self._last_meta = meta
        self._persist(serialized)
        logger.debug(f"History record ({meta.reason}): depth {self.depth}, cursor {self._index}")
        return True

    def record_later(
        self,
        delay_ms: float,
        reason: str = REASON_MANUAL,
        block_id: Optional[str] = None,
        coalesce_ms: Optional[float] = None,
    ) -> Optional[ScheduledTask]:
        """
        Record after ``delay_ms``; a later call replaces a pending one.

        Without a scheduler, or with a zero delay, records immediately and
        returns None.
        """
        if delay_ms <= 0 or self.scheduler is None:
            self.record(reason, block_id, coalesce_ms)
            return None
        return self.scheduler.schedule(
            RECORD_TASK,
            delay_ms,
            lambda: self.record(reason, block_id, coalesce_ms),
        )

    def flush_pending(self) -> bool:
        """Run a pending delayed record now. Returns True if one was pending."""
        if self.scheduler is None:
            return False
        task = self.scheduler.pending(RECORD_TASK)
        if task is None:
            return False
        self.scheduler.cancel(RECORD_TASK)
        task.callback()
        return True

    # ─────────────────────────────────────────────────────────────────────
    # Navigation
    # ─────────────────────────────────────────────────────────────────────

    def undo(self) -> bool:
        """Restore the previous entry. False when there is nothing to undo."""
        if not self.can_undo:
            return False
        self._index -= 1
        self._apply(self._entries[self._index])
        return True

    def redo(self) -> bool:
        """Restore the next entry. False when there is nothing to redo."""
        if not self.can_redo:
            return False
        self._index += 1
        self._apply(self._entries[self._index])
        return True

    def _apply(self, entry: HistoryEntry) -> None:
        if self.scheduler:
            self.scheduler.cancel(RECORD_TASK)
        self.restore(copy.deepcopy(entry.snapshot))
        self._last_meta = None

    # ─────────────────────────────────────────────────────────────────────
    # Autosave
    # ─────────────────────────────────────────────────────────────────────

    def _persist(self, serialized: str) -> None:
        if self.autosave is not None:
            self.autosave.save(serialized)

    def autosave_draft(self, delay_ms: float = 0) -> Optional[ScheduledTask]:
        """Write the current state to the autosave store without recording."""
        if self.autosave is None:
            return None

        def save() -> None:
            _, serialized = self.capture()
            self._persist(serialized)

        if delay_ms <= 0 or self.scheduler is None:
            save()
            return None
        return self.scheduler.schedule(DRAFT_TASK, delay_ms, save)

    def load_autosave(self) -> Optional[Snapshot]:
        """The persisted draft, if the store supports loading one."""
        loader = getattr(self.autosave, "load", None)
        return loader() if loader else None
