"""
Tests for the pagination engine.

Verifies:
- Flow places blocks in order and honours column breaks
- Oversized blocks are kept (with a warning) instead of looping
- Rebalance moves trailing blocks forward and stops at its loop bound
- Per-page column overrides
"""

from unittest.mock import MagicMock

import pytest

from worksheet_toolkit.core.models import Block, BlockType, Settings
from worksheet_toolkit.layout import (
    ColumnPlan,
    ColumnSlot,
    FixedHeightMeasurer,
    HeightProbe,
    LayoutConfig,
    PageLayout,
    PagePlan,
    flow,
    paginate,
    rebalance,
)


def _blocks(*ids):
    return [Block(id=bid) for bid in ids]


def _slot(page, col):
    return ColumnSlot(page_index=page, column_index=col, column_count=2, width_px=350, capacity_px=849)


class TestHeightProbe:
    """Tests for HeightProbe."""

    def test_content_height_when_gap_configured_then_gaps_between_blocks(self):
        # Arrange
        probe = HeightProbe(FixedHeightMeasurer({}, default=100), LayoutConfig(block_gap_px=10))

        # Act
        height = probe.content_height(_blocks("a", "b"), _slot(0, 0))

        # Assert
        assert height == 210

    def test_overflows_when_within_tolerance_then_false(self):
        probe = HeightProbe(FixedHeightMeasurer({"a": 852}))

        assert not probe.overflows(_blocks("a"), _slot(0, 0), 5)
        assert probe.overflows(_blocks("a"), _slot(0, 0), 2)


class TestFlow:
    """Tests for flow()."""

    def test_flow_when_blocks_fit_then_single_column(self):
        layout = flow(_blocks("a", "b", "c"), FixedHeightMeasurer({}))

        assert layout.page_count == 1
        assert layout.pages[0].columns[0].block_ids == ("a", "b", "c")

    def test_flow_when_second_block_overflows_then_moves_to_next_column(self):
        layout = flow(_blocks("a", "b"), FixedHeightMeasurer({"a": 800, "b": 800}))

        assert layout.location_of("a") == (0, 0)
        assert layout.location_of("b") == (0, 1)

    def test_flow_when_break_then_next_block_in_next_column(self):
        # Arrange
        blocks = [Block(id="a"), Block(id="br", type=BlockType.BREAK), Block(id="b")]

        # Act
        layout = flow(blocks, FixedHeightMeasurer({}))

        # Assert
        assert layout.location_of("b") == (0, 1)
        assert layout.location_of("br") is None

    def test_flow_when_block_taller_than_column_then_kept_with_warning(self):
        # Act
        layout = flow(_blocks("big", "small"), FixedHeightMeasurer({"big": 2000}))

        # Assert
        assert layout.location_of("big") == (0, 0)
        assert layout.location_of("small") == (0, 1)
        assert len(layout.warnings) == 1
        assert "big" in layout.warnings[0]

    def test_flow_when_trailing_breaks_then_empty_pages_trimmed(self):
        blocks = [Block(id="a")] + [Block(id=f"br{i}", type=BlockType.BREAK) for i in range(3)]

        layout = flow(blocks, FixedHeightMeasurer({}))

        assert layout.page_count == 1

    def test_flow_when_no_blocks_then_one_empty_page(self):
        layout = flow([], FixedHeightMeasurer({}))

        assert layout.page_count == 1
        assert layout.pages[0].is_empty

    def test_flow_when_probe_given_then_used_directly(self):
        # Arrange
        probe = MagicMock()
        probe.overflows.return_value = False

        # Act
        layout = flow(_blocks("a", "b"), probe)

        # Assert
        assert layout.location_of("b") == (0, 0)
        assert probe.overflows.call_count == 2


class TestPaginate:
    """Tests for paginate()."""

    def test_paginate_when_many_blocks_then_each_placed_once_in_order(self):
        # Arrange
        blocks = _blocks(*[f"q{i}" for i in range(30)])
        measurer = FixedHeightMeasurer({}, default=300)

        # Act
        layout = paginate(blocks, measurer)

        # Assert
        assert layout.block_ids == tuple(b.id for b in blocks)
        assert len(layout.block_map) == 30
        # Page 1 holds two per column, later pages three per column
        assert layout.pages[0].columns[0].block_ids == ("q0", "q1")
        assert layout.pages[1].columns[0].block_ids == ("q4", "q5", "q6")
        assert layout.page_count == 6

    def test_paginate_when_run_twice_then_same_layout(self):
        blocks = _blocks(*[f"q{i}" for i in range(12)])
        measurer = FixedHeightMeasurer({"q3": 500, "q7": 700}, default=250)

        first = paginate(blocks, measurer)
        second = rebalance(first, blocks, measurer)

        assert second.pages == first.pages

    def test_paginate_when_page_one_single_column_then_override_applied(self):
        # Arrange
        settings = Settings(page_layouts={"1": 1})
        blocks = _blocks("a", "b")

        # Act
        layout = paginate(blocks, FixedHeightMeasurer({"a": 800, "b": 800}), settings=settings)

        # Assert
        assert layout.pages[0].column_count == 1
        assert layout.pages[1].column_count == 2
        assert layout.location_of("b") == (1, 0)

    def test_paginate_when_single_column_setting_then_every_page_single(self):
        settings = Settings(columns=1)

        layout = paginate(_blocks("a", "b", "c"), FixedHeightMeasurer({}, default=400), settings=settings)

        assert all(page.column_count == 1 for page in layout.pages)
        assert layout.page_count == 2


class TestRebalance:
    """Tests for rebalance()."""

    @staticmethod
    def _layout(*columns):
        plans = tuple(ColumnPlan(slot=_slot(0, c), block_ids=tuple(ids)) for c, ids in enumerate(columns))
        return PageLayout(pages=(PagePlan(index=0, columns=plans),))

    def test_rebalance_when_column_overflows_then_trailing_blocks_cascade(self):
        # Arrange
        blocks = _blocks("a", "b", "c")
        layout = self._layout(("a", "b"), ("c",))

        # Act
        result = rebalance(layout, blocks, FixedHeightMeasurer({}, default=500))

        # Assert
        assert result.location_of("a") == (0, 0)
        assert result.location_of("b") == (0, 1)
        assert result.location_of("c") == (1, 0)
        assert layout.pages[0].columns[0].block_ids == ("a", "b")

    def test_rebalance_when_loop_bound_reached_then_stops_with_warning(self):
        # Arrange
        blocks = _blocks("a", "b", "c")
        layout = self._layout(("a", "b", "c"), ())
        config = LayoutConfig(max_rebalance_loops=1)

        # Act
        result = rebalance(layout, blocks, FixedHeightMeasurer({}, default=500), config)

        # Assert
        assert result.location_of("b") == (0, 0)
        assert result.location_of("c") == (0, 1)
        assert any("Rebalancing stopped after 1 moves" in w for w in result.warnings)

    def test_rebalance_when_single_oversized_child_then_left_in_place(self):
        layout = self._layout(("big",), ())

        result = rebalance(layout, _blocks("big"), FixedHeightMeasurer({"big": 5000}))

        assert result.location_of("big") == (0, 0)
        assert result.page_count == 1

    def test_rebalance_when_input_has_warnings_then_carried_over(self):
        layout = PageLayout(pages=self._layout(("a",), ()).pages, warnings=("earlier",))

        result = rebalance(layout, _blocks("a"), FixedHeightMeasurer({}))

        assert result.warnings == ("earlier",)


class TestLayoutConfig:
    """Tests for LayoutConfig geometry."""

    def test_config_when_default_a4_then_expected_capacities(self):
        config = LayoutConfig()

        assert config.column_width_px(2) == pytest.approx(349.6, abs=0.1)
        assert config.column_height_px(1) == pytest.approx(849.1, abs=0.1)
        assert config.column_height_px(2) == pytest.approx(939.1, abs=0.1)

    def test_config_when_margins_exceed_page_then_value_error(self):
        with pytest.raises(ValueError):
            LayoutConfig(margin_side_mm=120)

    def test_config_when_loops_zero_then_value_error(self):
        with pytest.raises(ValueError, match="max_rebalance_loops"):
            LayoutConfig(max_rebalance_loops=0)

    def test_for_settings_when_called_then_margins_copied(self):
        settings = Settings(margin_top_mm=20, margin_side_mm=12, column_gap_mm=6)

        config = LayoutConfig().for_settings(settings)

        assert (config.margin_top_mm, config.margin_side_mm, config.column_gap_mm) == (20, 12, 6)
