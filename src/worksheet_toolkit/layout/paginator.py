"""
Module: layout.paginator

Purpose:
    Flow blocks into columns and pages.
    Blocks are placed one at a time into the current column; a block that
    makes its column overflow moves to the next column, unless it is the
    column's only child (an oversized block stays where it is so the flow
    always advances). A bounded rebalancing pass then pushes trailing
    blocks out of any column that still overflows.

Key Functions:
    - flow(): Initial placement with overflow backtracking
    - rebalance(): Bounded pass moving last children forward
    - paginate(): flow() followed by rebalance()

Key Classes:
    - OverflowProbe: Protocol answering "does this column overflow?"
    - HeightProbe: OverflowProbe that sums measured block heights

Dependencies:
    - layout.config: Page geometry and tolerances
    - layout.models: Output dataclasses
    - layout.measure: BlockMeasurer protocol

Used By:
    - session.EditorSession.repaginate()
    - cli: paginate command
"""

from __future__ import annotations

import logging
from typing import Dict, List, Optional, Protocol, Sequence, Tuple, Union

from worksheet_toolkit.core.models import Block, BlockType, Settings
from worksheet_toolkit.layout.config import LayoutConfig
from worksheet_toolkit.layout.measure import BlockMeasurer
from worksheet_toolkit.layout.models import ColumnPlan, ColumnSlot, PageLayout, PagePlan

logger = logging.getLogger(__name__)


class OverflowProbe(Protocol):
    """Reports whether a column's content exceeds its capacity."""

    def overflows(self, blocks: Sequence[Block], slot: ColumnSlot, tolerance: float) -> bool:
        ...


class HeightProbe:
    """
    Overflow probe backed by a BlockMeasurer.

    A column overflows when the summed block heights (plus gaps between
    blocks) exceed its capacity by more than ``tolerance`` pixels.

    Example:
        >>> from worksheet_toolkit.layout.measure import FixedHeightMeasurer
        >>> probe = HeightProbe(FixedHeightMeasurer({}, default=600))
        >>> slot = ColumnSlot(0, 0, 2, 350, 1000)
        >>> probe.overflows([Block(id="a"), Block(id="b")], slot, 5)
        True
    """

    def __init__(self, measurer: BlockMeasurer, config: Optional[LayoutConfig] = None):
        self.measurer = measurer
        self.config = config or LayoutConfig()

    def content_height(self, blocks: Sequence[Block], slot: ColumnSlot) -> float:
        heights = [self.measurer.measure(block, slot.width_px) for block in blocks]
        gaps = self.config.block_gap_px * max(0, len(heights) - 1)
        return sum(heights) + gaps

    def overflows(self, blocks: Sequence[Block], slot: ColumnSlot, tolerance: float) -> bool:
        return self.content_height(blocks, slot) > slot.capacity_px + tolerance


ProbeOrMeasurer = Union[OverflowProbe, BlockMeasurer]


# ─────────────────────────────────────────────────────────────────────────────
# Working state
# ─────────────────────────────────────────────────────────────────────────────

class _Columns:
    """Mutable page/column grid used while placing blocks."""

    def __init__(self, config: LayoutConfig, settings: Settings):
        self.config = config
        self.settings = settings
        self.pages: List[List[List[Block]]] = []
        self.add_page()

    def add_page(self) -> None:
        count = self.settings.columns_for_page(len(self.pages) + 1)
        self.pages.append([[] for _ in range(count)])

    def slot(self, page_index: int, column_index: int) -> ColumnSlot:
        count = len(self.pages[page_index])
        return ColumnSlot(
            page_index=page_index,
            column_index=column_index,
            column_count=count,
            width_px=self.config.column_width_px(count),
            capacity_px=self.config.column_height_px(page_index + 1),
        )

    def next_position(self, page_index: int, column_index: int) -> Tuple[int, int]:
        """Position after (page, column), creating a page when needed."""
        if column_index + 1 < len(self.pages[page_index]):
            return page_index, column_index + 1
        if page_index + 1 >= len(self.pages):
            self.add_page()
        return page_index + 1, 0

    def trim(self) -> None:
        while len(self.pages) > 1 and all(not col for col in self.pages[-1]):
            self.pages.pop()

    def to_layout(self, warnings: List[str]) -> PageLayout:
        self.trim()
        pages = []
        block_map: Dict[str, Tuple[int, int]] = {}
        for p, columns in enumerate(self.pages):
            plans = []
            for c, blocks in enumerate(columns):
                plans.append(ColumnPlan(slot=self.slot(p, c), block_ids=tuple(b.id for b in blocks)))
                for block in blocks:
                    block_map[block.id] = (p, c)
            pages.append(PagePlan(index=p, columns=tuple(plans)))
        return PageLayout(pages=tuple(pages), warnings=tuple(warnings), block_map=block_map)


def _as_probe(measurer: ProbeOrMeasurer, config: LayoutConfig) -> OverflowProbe:
    if hasattr(measurer, "overflows"):
        return measurer
    return HeightProbe(measurer, config)


# ─────────────────────────────────────────────────────────────────────────────
# Public API
# ─────────────────────────────────────────────────────────────────────────────

def flow(
    blocks: Sequence[Block],
    measurer: ProbeOrMeasurer,
    config: Optional[LayoutConfig] = None,
    settings: Optional[Settings] = None,
) -> PageLayout:
    """
    Place blocks into columns in document order.

    Args:
        blocks: Document blocks; break blocks advance to the next column
            and are not placed
        measurer: BlockMeasurer (or a ready OverflowProbe)
        config: Page geometry and tolerances
        settings: Per-page column counts

    Returns:
        PageLayout (always at least one page)

    Example:
        >>> from worksheet_toolkit.layout.measure import FixedHeightMeasurer
        >>> layout = flow([Block(id="a"), Block(id="b")], FixedHeightMeasurer({}))
        >>> layout.location_of("b")
        (0, 0)
    """
    config = config or LayoutConfig()
    settings = settings or Settings()
    probe = _as_probe(measurer, config)
    grid = _Columns(config, settings)
    warnings: List[str] = []
    page, col = 0, 0

    for block in blocks:
        if block.type == BlockType.BREAK:
            page, col = grid.next_position(page, col)
            continue

        column = grid.pages[page][col]
        column.append(block)
        if not probe.overflows(column, grid.slot(page, col), config.flow_tolerance_px):
            continue

        if len(column) == 1:
            warnings.append(f"Block {block.id} is taller than a column (page {page + 1}, column {col + 1})")
            logger.warning(warnings[-1])
            page, col = grid.next_position(page, col)
            continue

        column.pop()
        page, col = grid.next_position(page, col)
        column = grid.pages[page][col]
        column.append(block)
        if probe.overflows(column, grid.slot(page, col), config.flow_tolerance_px):
            warnings.append(f"Block {block.id} is taller than a column (page {page + 1}, column {col + 1})")
            logger.warning(warnings[-1])
            page, col = grid.next_position(page, col)

    return grid.to_layout(warnings)


def rebalance(
    layout: PageLayout,
    blocks: Sequence[Block],
    measurer: ProbeOrMeasurer,
    config: Optional[LayoutConfig] = None,
    settings: Optional[Settings] = None,
) -> PageLayout:
    """
    Push trailing blocks out of overflowing columns.

    Columns are visited in order. While a column has more than one child
    and overflows, its last child moves to the front of the next column
    (a page is added when needed). Each column gives up at most
    ``config.max_rebalance_loops`` blocks per pass. The input layout and
    the blocks are not modified.

    Args:
        layout: Layout from flow()
        blocks: The blocks the layout was built from (looked up by id)
        measurer: BlockMeasurer (or a ready OverflowProbe)
        config: Page geometry and tolerances
        settings: Per-page column counts

    Returns:
        New PageLayout; warnings from the input layout are carried over
    """
    config = config or LayoutConfig()
    settings = settings or Settings()
    probe = _as_probe(measurer, config)
    by_id = {block.id: block for block in blocks}

    grid = _Columns(config, settings)
    grid.pages = []
    for page in layout.pages:
        grid.pages.append([[by_id[bid] for bid in col.block_ids if bid in by_id] for col in page.columns])
    if not grid.pages:
        grid.add_page()

    warnings = list(layout.warnings)
    page, col = 0, 0
    while page < len(grid.pages):
        column = grid.pages[page][col]
        loops = 0
        while len(column) > 1 and probe.overflows(column, grid.slot(page, col), config.rebalance_tolerance_px):
            if loops >= config.max_rebalance_loops:
                warnings.append(f"Rebalancing stopped after {loops} moves (page {page + 1}, column {col + 1})")
                logger.warning(warnings[-1])
                break
            moved = column.pop()
            next_page, next_col = grid.next_position(page, col)
            grid.pages[next_page][next_col].insert(0, moved)
            loops += 1

        if col + 1 < len(grid.pages[page]):
            col += 1
        else:
            page, col = page + 1, 0

    return grid.to_layout(warnings)


def paginate(
    blocks: Sequence[Block],
    measurer: ProbeOrMeasurer,
    config: Optional[LayoutConfig] = None,
    settings: Optional[Settings] = None,
) -> PageLayout:
    """
    Lay out a document: flow() then rebalance().

    Example:
        >>> from worksheet_toolkit.layout.measure import FixedHeightMeasurer
        >>> blocks = [Block(id="a"), Block(id="b")]
        >>> paginate(blocks, FixedHeightMeasurer({"a": 800, "b": 800})).location_of("b")
        (0, 1)
    """
    config = config or LayoutConfig()
    settings = settings or Settings()
    initial = flow(blocks, measurer, config, settings)
    layout = rebalance(initial, blocks, measurer, config, settings)
    placed = len(layout.block_ids)
    logger.info(f"Paginated {placed} blocks onto {layout.page_count} pages")
    return layout
