"""
Module: document

Purpose:
    Document data model: the ordered list of content blocks, the document
    meta (title, subtitle, footer) and the persisted editor settings.
    Blocks are mutable - the editing session changes content and style
    flags in place. Page and column containers are never stored here.

Key Classes:
    - BlockType: concept / example / answer / break / spacer
    - BlockVariant: left-concept / top-concept / two-col-concept
    - Block: Single content unit
    - DocMeta: Title, subtitle, footer text, zoom
    - Document: meta + ordered blocks + optional table of contents
    - Settings: Page and typography settings persisted with a project

Key Functions:
    - new_block_id(): Generate a session-unique block id

Dependencies:
    - dataclasses (std)

Used By:
    - core.utils.serialization: dict conversion and normalization
    - markup.importer: Creates blocks from imported text
    - layout.paginator: Flows blocks into columns
    - session: Owns the Document
"""

from __future__ import annotations

import itertools
import secrets
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional


_id_counter = itertools.count(1)


def new_block_id(prefix: str = "b") -> str:
    """
    Generate a block id that is unique for the lifetime of the process.

    Example:
        >>> new_block_id("imp").startswith("imp_")
        True
    """
    stamp = int(time.time() * 1000)
    return f"{prefix}_{stamp}_{next(_id_counter)}_{secrets.token_hex(2)}"


class BlockType(str, Enum):
    """Semantic kind of a block."""
    CONCEPT = "concept"
    EXAMPLE = "example"
    ANSWER = "answer"
    BREAK = "break"      # Forces a column/page advance, no content
    SPACER = "spacer"    # Fixed vertical gap, no content

    def __str__(self) -> str:
        return self.value

    @property
    def has_content(self) -> bool:
        return self not in (BlockType.BREAK, BlockType.SPACER)

    @classmethod
    def parse(cls, value: Any, default: Optional["BlockType"] = None) -> "BlockType":
        """Parse a block type string, falling back to ``default`` (EXAMPLE)."""
        fallback = default or cls.EXAMPLE
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip())
        except ValueError:
            return fallback


class BlockVariant(str, Enum):
    """Concept layout variant selected by header style flags."""
    LEFT_CONCEPT = "left-concept"
    TOP_CONCEPT = "top-concept"
    TWO_COL_CONCEPT = "two-col-concept"

    def __str__(self) -> str:
        return self.value


TEXT_ALIGNMENTS = ("left", "center", "right")
DEFAULT_SPACER_HEIGHT = 50
CONCEPT_ANSWERS_TAG = "concept-answers"


@dataclass
class Block:
    """
    A single content unit in the document's ordered sequence.

    Attributes:
        id: Unique within the document for the session lifetime
        type: Semantic block type
        content: Canonical markup text (empty for break/spacer)
        label: Question label shown before the content (optional)
        bordered: Draw a border around the block
        bg_gray: Shaded background; shaded blocks do not count towards
            the per-column import limit
        text_align: left / center / right, or None for default
        font_family: Per-block font override
        font_size_pt: Per-block font size override
        height: Spacer height in px (spacer only)
        variant: Concept layout variant
        derived: Tag for generated blocks, e.g. "concept-answers"
    """

    id: str
    type: BlockType = BlockType.EXAMPLE
    content: str = ""
    label: Optional[str] = None
    bordered: bool = False
    bg_gray: bool = False
    text_align: Optional[str] = None
    font_family: Optional[str] = None
    font_size_pt: Optional[float] = None
    height: Optional[float] = None
    variant: Optional[BlockVariant] = None
    derived: Optional[str] = None

    def __post_init__(self) -> None:
        self.type = BlockType.parse(self.type)
        if not self.type.has_content:
            self.content = ""
            self.label = None
        if self.type == BlockType.SPACER and not self.height:
            self.height = DEFAULT_SPACER_HEIGHT

    @property
    def is_derived(self) -> bool:
        return bool(self.derived)

    @property
    def counts_towards_limit(self) -> bool:
        """Whether the block counts towards the per-column import limit."""
        return self.type != BlockType.ANSWER and not self.bg_gray

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the persisted JSON shape (optional keys omitted when unset)."""
        data: Dict[str, Any] = {"id": self.id, "type": self.type.value}
        if self.type.has_content:
            data["content"] = self.content
        if self.label:
            data["label"] = self.label
        if self.bordered:
            data["bordered"] = True
        if self.bg_gray:
            data["bgGray"] = True
        if self.text_align:
            data["style"] = {"textAlign": self.text_align}
        if self.font_family:
            data["fontFamily"] = self.font_family
        if self.font_size_pt:
            data["fontSizePt"] = self.font_size_pt
        if self.type == BlockType.SPACER:
            data["height"] = self.height
        if self.variant:
            data["variant"] = self.variant.value
        if self.derived:
            data["derived"] = self.derived
        return data


DEFAULT_TITLE = "시험지 제목"
DEFAULT_SUBTITLE = "단원명"
DEFAULT_FOOTER_TEXT = "학원명"


@dataclass
class DocMeta:
    """Document-level meta shown in the first-page header and footers."""

    title: str = DEFAULT_TITLE
    subtitle: str = DEFAULT_SUBTITLE
    footer_text: str = DEFAULT_FOOTER_TEXT
    zoom: float = 1.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "title": self.title,
            "subtitle": self.subtitle,
            "footerText": self.footer_text,
            "zoom": self.zoom,
        }


@dataclass
class Document:
    """
    The editable document: meta + ordered blocks.

    Replaced wholesale on load, undo and redo.
    """

    meta: DocMeta = field(default_factory=DocMeta)
    blocks: List[Block] = field(default_factory=list)
    toc: Optional[Dict[str, Any]] = None

    def find(self, block_id: str) -> Optional[Block]:
        """Find a block by id."""
        for block in self.blocks:
            if block.id == block_id:
                return block
        return None

    def index_of(self, block_id: str) -> int:
        """Position of a block, or -1 when absent."""
        for idx, block in enumerate(self.blocks):
            if block.id == block_id:
                return idx
        return -1

    def content_blocks(self) -> List[Block]:
        """Blocks carrying user content (derived blocks excluded)."""
        return [b for b in self.blocks if b.type.has_content and not b.is_derived]

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "meta": self.meta.to_dict(),
            "blocks": [b.to_dict() for b in self.blocks],
        }
        if self.toc is not None:
            data["toc"] = self.toc
        return data


@dataclass
class Settings:
    """
    Page and typography settings persisted alongside the document.

    Attributes:
        page_layouts: Per-page column override keyed by page number
            string ("1", "2", ...), value 1 or 2.
    """

    zoom: float = 1.0
    columns: int = 2
    margin_top_mm: float = 15
    margin_side_mm: float = 10
    column_gap_mm: float = 5
    font_family: str = "serif"
    font_size_pt: float = 10.5
    label_font_family: str = "gothic"
    label_font_size_pt: Optional[float] = None
    label_bold: bool = True
    label_underline: bool = False
    page_layouts: Dict[str, int] = field(default_factory=dict)

    def columns_for_page(self, page_number: int) -> int:
        """Column count for a 1-indexed page number."""
        override = self.page_layouts.get(str(page_number))
        if override in (1, 2):
            return override
        return 1 if self.columns == 1 else 2

    def to_dict(self) -> Dict[str, Any]:
        return {
            "zoom": self.zoom,
            "columns": self.columns,
            "marginTopMm": self.margin_top_mm,
            "marginSideMm": self.margin_side_mm,
            "columnGapMm": self.column_gap_mm,
            "fontFamily": self.font_family,
            "fontSizePt": self.font_size_pt,
            "labelFontFamily": self.label_font_family,
            "labelFontSizePt": self.label_font_size_pt,
            "labelBold": self.label_bold,
            "labelUnderline": self.label_underline,
            "pageLayouts": dict(self.page_layouts),
        }
