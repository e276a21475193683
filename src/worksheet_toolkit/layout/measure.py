"""
Module: layout.measure

Purpose:
    Block height measurement. The rendering surface is the authority on
    heights; this module defines the protocol it implements and ships an
    estimator for headless use (CLI, tests, previews).

Key Classes:
    - BlockMeasurer: Protocol, measure(block, width_px) -> height_px
    - FixedHeightMeasurer: Heights from a lookup table
    - TextHeightEstimator: Font-metric based estimate

Dependencies:
    - reportlab: CID font metrics for Korean text widths
    - PIL: Image sizes for loaded images
    - markup.tokenizer: Content structure

Used By:
    - layout.paginator.HeightProbe
    - cli: paginate command
"""

from __future__ import annotations

import logging
import math
from pathlib import Path
from typing import Dict, Iterable, Mapping, Optional, Protocol, Tuple

from PIL import Image
from reportlab.pdfbase import pdfmetrics
from reportlab.pdfbase.cidfonts import UnicodeCIDFont

from worksheet_toolkit.core.models import (
    BlankToken,
    Block,
    BlockType,
    BoxToken,
    ChoiceGridToken,
    ConceptBlankToken,
    ImagePlaceholderToken,
    InlineImageToken,
    MathToken,
    RectBoxToken,
    Settings,
    StyledSpanToken,
    TableToken,
    TextToken,
    Token,
)
from worksheet_toolkit.markup.builders import CHOICE_LAYOUT_GRIDS
from worksheet_toolkit.markup.tokenizer import tokenize

logger = logging.getLogger(__name__)

SERIF_FONT = "HYSMyeongJo-Medium"
GOTHIC_FONT = "HYGothic-Medium"
_FONT_FAMILIES = {"serif": SERIF_FONT, "gothic": GOTHIC_FONT, "sans-serif": GOTHIC_FONT}

PX_PER_PT = 96 / 72
DEFAULT_IMAGE_HEIGHT_PX = 150
IMAGE_PLACEHOLDER_HEIGHT_PX = 120
BOX_PADDING_PX = 24
BLOCK_PADDING_PX = 8
BLANK_PADDING_PX = 24

_registered_fonts: set = set()


def _ensure_font(name: str) -> str:
    """Register a built-in CID font with reportlab once."""
    if name not in _registered_fonts:
        pdfmetrics.registerFont(UnicodeCIDFont(name))
        _registered_fonts.add(name)
    return name


def font_for_family(family: Optional[str]) -> str:
    """Map a settings font family to a registered reportlab font."""
    return _ensure_font(_FONT_FAMILIES.get((family or "serif").lower(), SERIF_FONT))


class BlockMeasurer(Protocol):
    """Anything that can report a block's rendered height."""

    def measure(self, block: Block, width_px: float) -> float:
        ...


class FixedHeightMeasurer:
    """
    Heights from a table keyed by block id.

    Spacer blocks use their own height; unknown blocks use ``default``.

    Example:
        >>> m = FixedHeightMeasurer({"a": 300})
        >>> m.measure(Block(id="a"), 350)
        300
    """

    def __init__(self, heights: Mapping[str, float], default: float = 100):
        self.heights = dict(heights)
        self.default = default

    def measure(self, block: Block, width_px: float) -> float:
        if block.type == BlockType.BREAK:
            return 0
        if block.id in self.heights:
            return self.heights[block.id]
        if block.type == BlockType.SPACER:
            return block.height or 0
        return self.default


class TextHeightEstimator:
    """
    Estimate block heights from font metrics.

    Text widths come from reportlab's metrics for the built-in Korean CID
    fonts; each paragraph wraps to ceil(width / column width) lines. Math
    is sized by TeX length, tables and choice grids by row count, and
    loaded images by their pixel size read with Pillow.

    Attributes:
        settings: Font family and size defaults
        image_root: Directory relative image paths resolve against
        line_spacing: Line height as a multiple of the font size
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        *,
        image_root: Optional[Path] = None,
        line_spacing: float = 1.6,
    ):
        self.settings = settings or Settings()
        self.image_root = Path(image_root) if image_root else None
        self.line_spacing = line_spacing
        self._cache: Dict[Tuple, float] = {}
        self._image_sizes: Dict[str, Optional[Tuple[int, int]]] = {}

    def measure(self, block: Block, width_px: float) -> float:
        if block.type == BlockType.BREAK:
            return 0
        if block.type == BlockType.SPACER:
            return block.height or 0

        key = (block.content, block.label, block.font_family, block.font_size_pt, block.bordered, round(width_px, 1))
        cached = self._cache.get(key)
        if cached is not None:
            return cached

        font = font_for_family(block.font_family or self.settings.font_family)
        size_px = (block.font_size_pt or self.settings.font_size_pt) * PX_PER_PT
        inner_width = width_px - (BOX_PADDING_PX if block.bordered else 0)

        label_width = 0.0
        if block.label:
            label_font = font_for_family(self.settings.label_font_family)
            label_size = (self.settings.label_font_size_pt or self.settings.font_size_pt) * PX_PER_PT
            label_width = pdfmetrics.stringWidth(f"{block.label} ", label_font, label_size)

        height = self._measure_tokens(tokenize(block.content), inner_width, font, size_px, label_width)
        height += BLOCK_PADDING_PX + (BOX_PADDING_PX if block.bordered else 0)
        self._cache[key] = height
        return height

    # ─────────────────────────────────────────────────────────────────────

    def _line_height(self, size_px: float) -> float:
        return size_px * self.line_spacing

    def _measure_tokens(
        self,
        tokens: Iterable[Token],
        width_px: float,
        font: str,
        size_px: float,
        lead_width: float = 0.0,
    ) -> float:
        """Height of a token sequence stacked in a column of ``width_px``."""
        width_px = max(width_px, size_px)
        line_h = self._line_height(size_px)
        height = 0.0
        run = lead_width

        def flush() -> float:
            if run <= 0:
                return 0.0
            return max(1, math.ceil(run / width_px)) * line_h

        for token in tokens:
            if isinstance(token, TextToken):
                paragraphs = token.text.split("\n")
                for i, para in enumerate(paragraphs):
                    if i > 0:
                        height += flush() or line_h
                        run = 0.0
                    run += pdfmetrics.stringWidth(para, font, size_px)
            elif isinstance(token, MathToken):
                if token.display:
                    height += flush()
                    run = 0.0
                    height += 2 * line_h
                else:
                    run += self._math_width(token, size_px)
            elif isinstance(token, (BlankToken, ConceptBlankToken)):
                label = token.label if isinstance(token, BlankToken) else "(00)"
                run += pdfmetrics.stringWidth(label, font, size_px) + BLANK_PADDING_PX
            elif isinstance(token, StyledSpanToken):
                run += self._inline_width(token.children, font, size_px)
            else:
                height += flush()
                run = 0.0
                height += self._block_token_height(token, width_px, font, size_px)
        return height + flush()

    def _inline_width(self, tokens: Iterable[Token], font: str, size_px: float) -> float:
        width = 0.0
        for token in tokens:
            if isinstance(token, TextToken):
                width += pdfmetrics.stringWidth(token.text.replace("\n", " "), font, size_px)
            elif isinstance(token, MathToken):
                width += self._math_width(token, size_px)
            elif isinstance(token, StyledSpanToken):
                width += self._inline_width(token.children, font, size_px)
            else:
                width += size_px * 2
        return width

    @staticmethod
    def _math_width(token: MathToken, size_px: float) -> float:
        # Control words render far narrower than their source
        visible = len(token.tex) - token.tex.count("\\") * 3
        return max(1, visible) * size_px * 0.55

    def _block_token_height(self, token: Token, width_px: float, font: str, size_px: float) -> float:
        line_h = self._line_height(size_px)
        if isinstance(token, TableToken):
            return token.rows * (line_h + 8) + 4
        if isinstance(token, ChoiceGridToken):
            rows = len(CHOICE_LAYOUT_GRIDS.get(token.layout, CHOICE_LAYOUT_GRIDS["2"]))
            return rows * line_h * 1.2
        if isinstance(token, BoxToken):
            label_h = line_h if token.label else 0
            inner = self._measure_tokens(token.children, width_px - BOX_PADDING_PX, font, size_px)
            return inner + label_h + BOX_PADDING_PX
        if isinstance(token, RectBoxToken):
            return self._measure_tokens(token.children, width_px - BOX_PADDING_PX, font, size_px) + BOX_PADDING_PX
        if isinstance(token, ImagePlaceholderToken):
            return IMAGE_PLACEHOLDER_HEIGHT_PX
        if isinstance(token, InlineImageToken):
            return self._image_height(token, width_px)
        return line_h

    def _image_height(self, token: InlineImageToken, width_px: float) -> float:
        size = self._image_size(token.path or token.src)
        if size is None:
            return DEFAULT_IMAGE_HEIGHT_PX
        w, h = size
        if w <= 0:
            return DEFAULT_IMAGE_HEIGHT_PX
        scale = min(1.0, width_px / w)
        return h * scale

    def _image_size(self, ref: str) -> Optional[Tuple[int, int]]:
        if ref in self._image_sizes:
            return self._image_sizes[ref]
        size = None
        if self.image_root is not None and ref:
            path = self.image_root / ref
            try:
                with Image.open(path) as img:
                    size = img.size
            except (OSError, ValueError) as e:
                logger.debug(f"Could not read image size for {path}: {e}")
        self._image_sizes[ref] = size
        return size
