"""
Serialization Utilities

Project <-> dict / JSON conversion with normalization.

A project file is ``{"data": {"meta": .., "blocks": [..]}, "settings": {..}}``.
Loading never crashes on malformed values: every field is normalized to
a valid value or its default (unique ids, known types, positive sizes).
Use core.schemas.validate_project() first to reject files instead.
"""

from __future__ import annotations

import json
import logging
import re
from datetime import datetime
from pathlib import Path
from typing import Any, Optional

from ..models.document import (
    Block,
    BlockType,
    BlockVariant,
    DocMeta,
    Document,
    Settings,
    DEFAULT_SPACER_HEIGHT,
    TEXT_ALIGNMENTS,
    new_block_id,
)
from ..schemas.validator import validate_project
from .images import ImageResolver, normalize_image_refs, rehydrate_image_refs

logger = logging.getLogger(__name__)

DEFAULT_BLOCK_LABEL = "안내"
DEFAULT_BLOCK_CONTENT = "내용 입력..."


# ─────────────────────────────────────────────────────────────────────────────
# Value helpers
# ─────────────────────────────────────────────────────────────────────────────

def _to_number(value: Any) -> Optional[float]:
    if isinstance(value, bool) or value is None:
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if number != number or number in (float("inf"), float("-inf")):
        return None
    return int(number) if number.is_integer() else number


def _positive(value: Any, default):
    number = _to_number(value)
    return number if number is not None and number > 0 else default


def _non_negative(value: Any, default):
    number = _to_number(value)
    return number if number is not None and number >= 0 else default


def _non_empty_str(value: Any, default):
    return value if isinstance(value, str) and value.strip() else default


# ─────────────────────────────────────────────────────────────────────────────
# Normalization
# ─────────────────────────────────────────────────────────────────────────────

def normalize_meta(raw: Any) -> DocMeta:
    """DocMeta from a raw dict; non-string fields fall back to defaults."""
    data = raw if isinstance(raw, dict) else {}
    defaults = DocMeta()
    return DocMeta(
        title=data["title"] if isinstance(data.get("title"), str) else defaults.title,
        subtitle=data["subtitle"] if isinstance(data.get("subtitle"), str) else defaults.subtitle,
        footer_text=data["footerText"] if isinstance(data.get("footerText"), str) else defaults.footer_text,
        zoom=_positive(data.get("zoom"), defaults.zoom),
    )


def normalize_settings(raw: Any) -> Settings:
    """Settings from a raw dict; invalid values fall back to defaults."""
    data = raw if isinstance(raw, dict) else {}
    defaults = Settings()

    label_size = data.get("labelFontSizePt")
    label_size = None if label_size in (None, "") else _positive(label_size, None)

    layouts = {}
    raw_layouts = data.get("pageLayouts")
    if isinstance(raw_layouts, dict):
        for key, value in raw_layouts.items():
            number = _to_number(value)
            if number in (1, 2):
                layouts[str(key)] = int(number)

    return Settings(
        zoom=_positive(data.get("zoom"), defaults.zoom),
        columns=1 if _to_number(data.get("columns")) == 1 else 2,
        margin_top_mm=_non_negative(data.get("marginTopMm"), defaults.margin_top_mm),
        margin_side_mm=_non_negative(data.get("marginSideMm"), defaults.margin_side_mm),
        column_gap_mm=_non_negative(data.get("columnGapMm"), defaults.column_gap_mm),
        font_family=_non_empty_str(data.get("fontFamily"), defaults.font_family),
        font_size_pt=_positive(data.get("fontSizePt"), defaults.font_size_pt),
        label_font_family=_non_empty_str(data.get("labelFontFamily"), defaults.label_font_family),
        label_font_size_pt=label_size,
        label_bold=data["labelBold"] if isinstance(data.get("labelBold"), bool) else defaults.label_bold,
        label_underline=(
            data["labelUnderline"] if isinstance(data.get("labelUnderline"), bool) else defaults.label_underline
        ),
        page_layouts=layouts,
    )


def normalize_block(raw: Any, index: int, used_ids: set) -> Block:
    """
    Block from a raw dict.

    Missing or duplicate ids are regenerated and recorded in ``used_ids``.
    """
    data = raw if isinstance(raw, dict) else {}
    block_id = data.get("id").strip() if isinstance(data.get("id"), str) else ""
    if not block_id or block_id in used_ids:
        block_id = new_block_id("b")
        logger.debug(f"Regenerated id for block {index}")
    used_ids.add(block_id)

    style = data.get("style") if isinstance(data.get("style"), dict) else {}
    text_align = style.get("textAlign") if style.get("textAlign") in TEXT_ALIGNMENTS else None

    variant = None
    if data.get("variant") in {v.value for v in BlockVariant}:
        variant = BlockVariant(data["variant"])

    block_type = BlockType.parse(data.get("type"))
    return Block(
        id=block_id,
        type=block_type,
        content=data["content"] if isinstance(data.get("content"), str) else "",
        label=_non_empty_str(data.get("label"), None),
        bordered=data["bordered"] if isinstance(data.get("bordered"), bool) else False,
        bg_gray=data["bgGray"] if isinstance(data.get("bgGray"), bool) else False,
        text_align=text_align,
        font_family=_non_empty_str(data.get("fontFamily"), None),
        font_size_pt=_positive(data.get("fontSizePt"), None),
        height=_positive(data.get("height"), DEFAULT_SPACER_HEIGHT) if block_type == BlockType.SPACER else None,
        variant=variant,
        derived=data["derived"] if isinstance(data.get("derived"), str) and data["derived"] else None,
    )


def default_block() -> Block:
    """Placeholder block for an otherwise empty document."""
    return Block(id="b0", type=BlockType.CONCEPT, label=DEFAULT_BLOCK_LABEL, content=DEFAULT_BLOCK_CONTENT)


def normalize_blocks(raw: Any, *, ensure_at_least_one: bool = False) -> list[Block]:
    """Normalize a raw block list (non-lists give an empty list)."""
    items = raw if isinstance(raw, list) else []
    used_ids: set = set()
    blocks = [normalize_block(item, idx, used_ids) for idx, item in enumerate(items)]
    if ensure_at_least_one and not blocks:
        blocks.append(default_block())
    return blocks


# ─────────────────────────────────────────────────────────────────────────────
# Document / project
# ─────────────────────────────────────────────────────────────────────────────

def document_from_dict(data: Any, *, ensure_at_least_one: bool = True) -> Document:
    """Document from its persisted dict."""
    raw = data if isinstance(data, dict) else {}
    toc = raw.get("toc") if isinstance(raw.get("toc"), dict) else None
    return Document(
        meta=normalize_meta(raw.get("meta")),
        blocks=normalize_blocks(raw.get("blocks"), ensure_at_least_one=ensure_at_least_one),
        toc=toc,
    )


def project_to_dict(document: Document, settings: Settings) -> dict[str, Any]:
    """
    Serialize a project for saving.

    Image sources are replaced by their stable relative paths.
    """
    data = document.to_dict()
    for block in data["blocks"]:
        if "content" in block:
            block["content"] = normalize_image_refs(block["content"])
    return {"data": data, "settings": settings.to_dict()}


def project_from_dict(
    data: Any,
    *,
    resolver: Optional[ImageResolver] = None,
    validate: bool = False,
    ensure_at_least_one: bool = True,
) -> tuple[Document, Settings]:
    """
    Deserialize a project.

    Args:
        data: Project dict
        resolver: Maps relative image paths to session sources
        validate: Run strict schema validation first
        ensure_at_least_one: Add a placeholder block to empty documents

    Raises:
        DocumentValidationError: If validate=True and data is invalid
    """
    if validate:
        validate_project(data, strict=True)
    raw = data if isinstance(data, dict) else {}
    document = document_from_dict(raw.get("data"), ensure_at_least_one=ensure_at_least_one)
    if resolver is not None:
        for block in document.blocks:
            block.content = rehydrate_image_refs(block.content, resolver)
    return document, normalize_settings(raw.get("settings"))


def save_project(path: Path, document: Document, settings: Settings) -> Path:
    """Write a project JSON file (UTF-8, indented)."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        json.dump(project_to_dict(document, settings), f, ensure_ascii=False, indent=2)
    logger.info(f"Saved project with {len(document.blocks)} block(s) to {path}")
    return path


def load_project(
    path: Path,
    *,
    resolver: Optional[ImageResolver] = None,
    validate: bool = False,
) -> tuple[Document, Settings]:
    """
    Read a project JSON file.

    Raises:
        FileNotFoundError: If the file is missing
        json.JSONDecodeError: If the file is not JSON
        DocumentValidationError: If validate=True and data is invalid
    """
    with open(path, "r", encoding="utf-8") as f:
        data = json.load(f)
    return project_from_dict(data, resolver=resolver, validate=validate)


_UNSAFE_FILENAME = re.compile(r'[\\/:*?"<>|]')


def suggest_project_filename(title: str, now: Optional[datetime] = None) -> str:
    """
    File name for saving a project, derived from its title.

    Example:
        >>> suggest_project_filename("중2 수학: 1단원", datetime(2026, 3, 1, 9, 5))
        '중2_수학_1단원_20260301_0905.json'
    """
    now = now or datetime.now()
    safe = _UNSAFE_FILENAME.sub("", (title or "exam").strip())
    safe = re.sub(r"\s+", "_", safe)[:40] or "exam"
    return f"{safe}_{now:%Y%m%d_%H%M}.json"
