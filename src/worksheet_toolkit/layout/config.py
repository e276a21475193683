"""
Module: layout.config

Purpose:
    Configuration for the pagination engine.
    Defines page dimensions, margins, header/footer space and the overflow
    tolerances used while flowing and rebalancing.

Key Classes:
    - LayoutConfig: Immutable layout configuration

Dependencies:
    - dataclasses (std)

Used By:
    - layout.paginator: Column capacities
    - layout.measure: Column widths for text wrapping
    - config.EditorConfig: Default layout
"""

from __future__ import annotations

from dataclasses import dataclass, replace

# A4 portrait
DEFAULT_PAGE_WIDTH_MM = 210.0
DEFAULT_PAGE_HEIGHT_MM = 297.0
# CSS reference pixel: 96 per inch
PX_PER_MM = 96 / 25.4


@dataclass(frozen=True)
class LayoutConfig:
    """
    Configuration for page layout (immutable).

    Dimensions are in millimetres as persisted in settings; heights handed to
    measurers and probes are in CSS pixels.

    Attributes:
        page_width_mm: Page width
        page_height_mm: Page height
        margin_top_mm: Top margin (bottom margin uses the same value)
        margin_side_mm: Left and right margins
        column_gap_mm: Gap between the two columns
        first_page_header_px: Title header height on page 1
        header_px: Running header height on later pages
        footer_px: Footer height on every page
        block_gap_px: Vertical gap between stacked blocks
        flow_tolerance_px: Slack allowed before a column counts as overflowing
            while flowing
        rebalance_tolerance_px: Slack allowed while rebalancing
        max_rebalance_loops: Upper bound on moves out of one column per pass

    Example:
        >>> config = LayoutConfig()
        >>> round(config.column_width_px(2))
        350
    """

    # Page dimensions
    page_width_mm: float = DEFAULT_PAGE_WIDTH_MM
    page_height_mm: float = DEFAULT_PAGE_HEIGHT_MM

    # Margins
    margin_top_mm: float = 15
    margin_side_mm: float = 10
    column_gap_mm: float = 5

    # Fixed page furniture
    first_page_header_px: float = 120
    header_px: float = 30
    footer_px: float = 40

    # Spacing
    block_gap_px: float = 0

    # Behavior
    flow_tolerance_px: float = 5
    rebalance_tolerance_px: float = 2
    max_rebalance_loops: int = 50

    def __post_init__(self) -> None:
        """Validate configuration on construction."""
        if self.page_width_mm <= 0:
            raise ValueError(f"page_width_mm must be positive: {self.page_width_mm}")
        if self.page_height_mm <= 0:
            raise ValueError(f"page_height_mm must be positive: {self.page_height_mm}")
        if min(self.margin_top_mm, self.margin_side_mm, self.column_gap_mm) < 0:
            raise ValueError("Margins and column gap must not be negative")
        if self.max_rebalance_loops < 1:
            raise ValueError(f"max_rebalance_loops must be at least 1: {self.max_rebalance_loops}")
        if self.column_width_px(2) <= 0:
            raise ValueError("Margins and column gap exceed page width")
        if self.column_height_px(1) <= 0:
            raise ValueError("Margins, header and footer exceed page height")

    def for_settings(self, settings) -> "LayoutConfig":
        """Copy with margins and column gap taken from persisted settings."""
        return replace(
            self,
            margin_top_mm=settings.margin_top_mm,
            margin_side_mm=settings.margin_side_mm,
            column_gap_mm=settings.column_gap_mm,
        )

    @property
    def page_width_px(self) -> float:
        return self.page_width_mm * PX_PER_MM

    @property
    def page_height_px(self) -> float:
        return self.page_height_mm * PX_PER_MM

    def column_width_px(self, column_count: int) -> float:
        """Width of one column on a page with ``column_count`` columns."""
        content = (self.page_width_mm - 2 * self.margin_side_mm) * PX_PER_MM
        if column_count <= 1:
            return content
        gaps = (column_count - 1) * self.column_gap_mm * PX_PER_MM
        return (content - gaps) / column_count

    def column_height_px(self, page_number: int) -> float:
        """Content height of a column on a 1-indexed page."""
        header = self.first_page_header_px if page_number == 1 else self.header_px
        margins = 2 * self.margin_top_mm * PX_PER_MM
        return self.page_height_px - margins - header - self.footer_px
