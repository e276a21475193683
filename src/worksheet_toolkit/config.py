"""
Module: config

Purpose:
    Editor session configuration: history depth, coalescing and debounce
    windows, autosave location and the page layout geometry.

    Configuration files are optional JSON. Any malformed value falls back
    to its default with a warning, never an exception.

Key Classes:
    - EditorConfig: Immutable session configuration

Key Functions:
    - load_editor_config(): Read an EditorConfig from a JSON file

Dependencies:
    - layout.config: LayoutConfig

Used By:
    - session.EditorSession
    - cli: --config option
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field, fields, replace
from pathlib import Path
from typing import Any, Dict, Optional

from worksheet_toolkit.layout.config import LayoutConfig

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class EditorConfig:
    """
    Configuration for an editing session (immutable).

    Attributes:
        history_limit: Maximum undo entries
        coalesce_ms: Window in which typing records on one block merge
        rebalance_debounce_ms: Delay before re-paginating after an edit
        history_debounce_ms: Delay before a typing edit is recorded
            (0 records immediately)
        autosave_path: Draft file; None disables autosave
        layout: Page geometry and pagination tolerances

    Example:
        >>> EditorConfig().history_limit
        30
    """

    history_limit: int = 30
    coalesce_ms: float = 2000
    rebalance_debounce_ms: float = 300
    history_debounce_ms: float = 0
    autosave_path: Optional[Path] = None
    layout: LayoutConfig = field(default_factory=LayoutConfig)

    def __post_init__(self) -> None:
        """Validate configuration on construction."""
        if self.history_limit < 1:
            raise ValueError(f"history_limit must be at least 1: {self.history_limit}")
        if self.coalesce_ms < 0:
            raise ValueError(f"coalesce_ms must not be negative: {self.coalesce_ms}")
        if self.rebalance_debounce_ms < 0:
            raise ValueError(f"rebalance_debounce_ms must not be negative: {self.rebalance_debounce_ms}")
        if self.history_debounce_ms < 0:
            raise ValueError(f"history_debounce_ms must not be negative: {self.history_debounce_ms}")
        if self.autosave_path is not None and not isinstance(self.autosave_path, Path):
            object.__setattr__(self, "autosave_path", Path(self.autosave_path))

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "EditorConfig":
        """
        Build from a plain dict (snake_case keys, layout under "layout").

        Unknown keys are ignored; invalid values are replaced by defaults.
        """
        config = cls()
        if not isinstance(data, dict):
            return config

        layout_data = data.get("layout")
        if isinstance(layout_data, dict):
            known = {f.name for f in fields(LayoutConfig)}
            layout = config.layout
            for key, value in layout_data.items():
                if key not in known:
                    logger.debug(f"Ignoring unknown layout option {key}")
                    continue
                try:
                    layout = replace(layout, **{key: value})
                except (TypeError, ValueError) as e:
                    logger.warning(f"Invalid layout option {key}={value!r}, using default: {e}")
            config = replace(config, layout=layout)

        for key in ("history_limit", "coalesce_ms", "rebalance_debounce_ms", "history_debounce_ms", "autosave_path"):
            if key not in data:
                continue
            value = data[key]
            if key == "autosave_path" and value is not None:
                value = Path(value)
            try:
                config = replace(config, **{key: value})
            except (TypeError, ValueError) as e:
                logger.warning(f"Invalid editor option {key}={value!r}, using default: {e}")
        return config


def load_editor_config(path: Optional[Path]) -> EditorConfig:
    """
    Load an EditorConfig from a JSON file.

    A missing path gives the defaults; a corrupt file logs a warning and
    gives the defaults.
    """
    if path is None or not Path(path).exists():
        return EditorConfig()
    try:
        data = json.loads(Path(path).read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        logger.warning(f"Config file {path} is corrupted, using defaults: {e}")
        return EditorConfig()
    return EditorConfig.from_dict(data)
