"""
Tests for block height measurement.
"""

import pytest

from worksheet_toolkit.core.models import Block, BlockType, Settings
from worksheet_toolkit.layout.measure import (
    BLOCK_PADDING_PX,
    DEFAULT_IMAGE_HEIGHT_PX,
    GOTHIC_FONT,
    SERIF_FONT,
    FixedHeightMeasurer,
    TextHeightEstimator,
    font_for_family,
)


class TestFixedHeightMeasurer:
    """Tests for FixedHeightMeasurer."""

    def test_measure_when_known_id_then_table_height(self):
        assert FixedHeightMeasurer({"a": 300}).measure(Block(id="a"), 350) == 300

    def test_measure_when_unknown_id_then_default(self):
        assert FixedHeightMeasurer({}, default=42).measure(Block(id="x"), 350) == 42

    def test_measure_when_spacer_then_own_height(self):
        block = Block(id="sp", type=BlockType.SPACER, height=70)

        assert FixedHeightMeasurer({}).measure(block, 350) == 70

    def test_measure_when_break_then_zero(self):
        block = Block(id="br", type=BlockType.BREAK)

        assert FixedHeightMeasurer({"br": 99}).measure(block, 350) == 0


class TestTextHeightEstimator:
    """Tests for TextHeightEstimator."""

    def test_font_for_family_when_known_then_mapped(self):
        assert font_for_family("gothic") == GOTHIC_FONT
        assert font_for_family("serif") == SERIF_FONT
        assert font_for_family("unknown") == SERIF_FONT

    def test_measure_when_longer_text_then_taller(self):
        # Arrange
        estimator = TextHeightEstimator()

        # Act
        short = estimator.measure(Block(id="a", content="가" * 5), 350)
        long = estimator.measure(Block(id="b", content="가" * 400), 350)

        # Assert
        assert long > short > 0

    def test_measure_when_narrower_column_then_not_shorter(self):
        estimator = TextHeightEstimator()
        block = Block(id="a", content="수학 문제 " * 40)

        assert estimator.measure(block, 200) >= estimator.measure(block, 700)

    def test_measure_when_bordered_then_padding_added(self):
        estimator = TextHeightEstimator()

        plain = estimator.measure(Block(id="a", content="x"), 350)
        boxed = estimator.measure(Block(id="b", content="x", bordered=True), 350)

        assert boxed > plain

    def test_measure_when_spacer_and_break_then_fixed(self):
        estimator = TextHeightEstimator()

        assert estimator.measure(Block(id="sp", type=BlockType.SPACER, height=30), 350) == 30
        assert estimator.measure(Block(id="br", type=BlockType.BREAK), 350) == 0

    def test_measure_when_table_then_rows_counted(self):
        # Arrange
        estimator = TextHeightEstimator(Settings(font_size_pt=10.5))
        line_h = 10.5 * 96 / 72 * 1.6

        # Act
        height = estimator.measure(Block(id="t", content="[표_2x2]"), 350)

        # Assert
        assert height == pytest.approx(2 * (line_h + 8) + 4 + BLOCK_PADDING_PX)

    def test_measure_when_image_on_disk_then_pixel_height(self, sample_image):
        # Arrange
        estimator = TextHeightEstimator(image_root=sample_image.parent)
        block = Block(id="img", content=f'<img src="{sample_image.name}">')

        # Act / Assert
        assert estimator.measure(block, 350) == pytest.approx(100 + BLOCK_PADDING_PX)
        assert estimator.measure(block, 100) == pytest.approx(50 + BLOCK_PADDING_PX)

    def test_measure_when_image_missing_then_default_height(self, tmp_path):
        estimator = TextHeightEstimator(image_root=tmp_path)
        block = Block(id="img", content='<img src="missing.png">')

        assert estimator.measure(block, 350) == pytest.approx(DEFAULT_IMAGE_HEIGHT_PX + BLOCK_PADDING_PX)

    def test_measure_when_called_twice_then_cached_value(self):
        estimator = TextHeightEstimator()
        block = Block(id="a", content="$x^2$ 의 값은?")

        assert estimator.measure(block, 350) == estimator.measure(block, 350)
