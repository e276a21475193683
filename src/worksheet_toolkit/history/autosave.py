"""
Module: history.autosave

Purpose:
    Crash-recovery draft storage. Every successful history record writes
    the serialized snapshot here; on startup the host may offer to restore
    it. Uses portalocker so two editor processes never interleave writes.

Key Functions:
    - locked_draft: Open the draft file with a shared or exclusive lock

Key Classes:
    - AutosaveStore: Save / load / clear one draft file

Dependencies:
    - portalocker: Cross-platform file locking

Used By:
    - history.engine.HistoryEngine: Persists each record
    - session.EditorSession.recover_autosave()
"""

from __future__ import annotations

import json
import logging
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Dict, Generator, Optional

import portalocker

logger = logging.getLogger(__name__)

AUTOSAVE_FILENAME = "editor_autosave.json"


@contextmanager
def locked_draft(path: Path, exclusive: bool = True) -> Generator:
    """
    Open a draft file for reading and writing while holding a lock.

    Writers take an exclusive lock and readers a shared one. The file and
    its parent directory are created when missing.

    Example:
        >>> with locked_draft(path) as f:
        ...     f.write("{}")
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    path.touch(exist_ok=True)
    lock_type = portalocker.LOCK_EX if exclusive else portalocker.LOCK_SH

    with open(path, "r+", encoding="utf-8") as handle:
        portalocker.lock(handle, lock_type)
        try:
            yield handle
        finally:
            portalocker.unlock(handle)


class AutosaveStore:
    """
    One autosave draft on disk.

    The draft is the serialized history snapshot
    ``{"data": {...}, "settings": {...}}``.

    Example:
        >>> store = AutosaveStore(tmp_path / "draft.json")
        >>> store.save('{"data": {"blocks": []}, "settings": {}}')
        >>> store.load()["data"]
        {'blocks': []}
    """

    def __init__(self, path: Path):
        self.path = Path(path)

    def exists(self) -> bool:
        return self.path.exists() and self.path.stat().st_size > 0

    def save(self, serialized: str) -> None:
        """Replace the draft with ``serialized`` under an exclusive lock."""
        with locked_draft(self.path) as f:
            f.seek(0)
            f.truncate()
            f.write(serialized)
            f.flush()
        logger.debug(f"Autosaved {len(serialized)} chars to {self.path.name}")

    def load(self) -> Optional[Dict[str, Any]]:
        """
        Read the draft back.

        Returns:
            The snapshot dict, or None when there is no draft or the file
            is corrupt (a warning is logged).
        """
        if not self.exists():
            return None
        with locked_draft(self.path, exclusive=False) as f:
            content = f.read()
        try:
            data = json.loads(content)
        except json.JSONDecodeError as e:
            logger.warning(f"Ignoring corrupt autosave {self.path}: {e}")
            return None
        if not isinstance(data, dict) or not isinstance(data.get("data"), dict):
            logger.warning(f"Ignoring autosave {self.path}: unexpected shape")
            return None
        return data

    def clear(self) -> None:
        if self.path.exists():
            self.path.unlink()
            logger.info(f"Cleared autosave {self.path}")
