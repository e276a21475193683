"""
Module: layout.models

Purpose:
    Data models for pagination output.
    Immutable dataclasses describing which block sits in which column of
    which page. Pages and columns are derived output only; they are never
    persisted with the document.

Key Classes:
    - ColumnSlot: Geometry of one column (what a probe measures against)
    - ColumnPlan: Blocks placed in one column
    - PagePlan: Columns of one page
    - PageLayout: Final layout output with diagnostics

Dependencies:
    - dataclasses (std)

Used By:
    - layout.paginator: Creates PageLayouts
    - session.EditorSession: Exposes the current layout to the host
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional, Tuple


@dataclass(frozen=True)
class ColumnSlot:
    """
    Geometry of a column.

    Attributes:
        page_index: Page number (0-indexed)
        column_index: Column within the page (0-indexed)
        column_count: Columns on this page (1 or 2)
        width_px: Column width
        capacity_px: Usable column height

    Example:
        >>> ColumnSlot(0, 1, 2, 350.0, 900.0).page_number
        1
    """

    page_index: int
    column_index: int
    column_count: int
    width_px: float
    capacity_px: float

    @property
    def page_number(self) -> int:
        """1-indexed page number (settings key)."""
        return self.page_index + 1


@dataclass(frozen=True)
class ColumnPlan:
    """
    Blocks placed in one column, top to bottom.

    Attributes:
        slot: Column geometry
        block_ids: Ids of the placed blocks, in order
    """

    slot: ColumnSlot
    block_ids: Tuple[str, ...] = ()

    @property
    def is_empty(self) -> bool:
        return not self.block_ids


@dataclass(frozen=True)
class PagePlan:
    """
    Layout plan for a single page.

    Attributes:
        index: Page number (0-indexed)
        columns: Tuple of ColumnPlans, left to right
    """

    index: int
    columns: Tuple[ColumnPlan, ...]

    @property
    def column_count(self) -> int:
        return len(self.columns)

    @property
    def block_ids(self) -> Tuple[str, ...]:
        """All block ids on the page in reading order."""
        return tuple(bid for col in self.columns for bid in col.block_ids)

    @property
    def is_empty(self) -> bool:
        """Check if page has no blocks."""
        return all(col.is_empty for col in self.columns)


@dataclass(frozen=True)
class PageLayout:
    """
    Final layout output with diagnostics.

    Attributes:
        pages: Tuple of PagePlans
        warnings: Messages for oversized blocks and exhausted rebalancing
        block_map: Block id -> (page_index, column_index)

    Example:
        >>> layout = PageLayout(pages=())
        >>> layout.page_count
        0
    """

    pages: Tuple[PagePlan, ...]
    warnings: Tuple[str, ...] = ()
    block_map: dict = field(default_factory=dict)

    @property
    def page_count(self) -> int:
        """Number of pages in layout."""
        return len(self.pages)

    @property
    def block_ids(self) -> Tuple[str, ...]:
        """All placed block ids in reading order."""
        return tuple(bid for page in self.pages for bid in page.block_ids)

    def location_of(self, block_id: str) -> Optional[Tuple[int, int]]:
        """(page_index, column_index) of a block, None when not placed."""
        return self.block_map.get(block_id)

    def columns(self) -> Tuple[ColumnPlan, ...]:
        """Every column in page order."""
        return tuple(col for page in self.pages for col in page.columns)

    def to_dict(self) -> dict:
        """Summary shape used by the CLI."""
        return {
            "pages": [
                {
                    "index": page.index,
                    "columns": [list(col.block_ids) for col in page.columns],
                }
                for page in self.pages
            ],
            "warnings": list(self.warnings),
        }
