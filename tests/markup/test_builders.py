"""
Tests for table and choice grid builders.
"""

import pytest

from worksheet_toolkit.markup.builders import (
    build_choice_grid,
    build_table,
    choice_label,
    decode_quoted_value,
    normalize_choice_layout,
    parse_choice_data,
    parse_table_cell_data,
)


class TestTableBuilder:
    """Tests for build_table and cell data parsing."""

    def test_build_table_when_seeded_then_cells_placed(self):
        # Act
        grid = build_table(2, 3, {"1x1": "A", "2x3": "F"})

        # Assert
        assert (grid.rows, grid.cols) == (2, 3)
        assert grid.cell(1, 1) == "A"
        assert grid.cell(2, 3) == "F"
        assert grid.cell(1, 2) == ""

    def test_build_table_when_seed_outside_grid_then_ignored(self):
        grid = build_table(1, 1, {"3x3": "X"})

        assert grid.cells == (("",),)

    def test_build_table_when_dimension_not_positive_then_value_error(self):
        with pytest.raises(ValueError):
            build_table(0, 2)

    def test_with_cell_when_called_then_new_grid_returned(self):
        grid = build_table(1, 2)

        updated = grid.with_cell(1, 2, "B")

        assert updated.cell(1, 2) == "B"
        assert grid.cell(1, 2) == ""

    def test_parse_table_cell_data_when_duplicate_then_later_wins(self):
        data = parse_table_cell_data('(1x1_"A"), (1x1_"B")')

        assert data == {"1x1": "B"}

    def test_decode_quoted_value_when_escaped_then_unescaped(self):
        assert decode_quoted_value('"a\\"b"') == 'a"b'

    def test_decode_quoted_value_when_html_quoted_then_unwrapped(self):
        assert decode_quoted_value("&quot;a&quot;") == "a"


class TestChoiceGridBuilder:
    """Tests for build_choice_grid."""

    @pytest.mark.parametrize("layout,expected_rows", [
        ("1", [["①", "②", "③", "④", "⑤"]]),
        ("2", [["①", "②", "③"], ["④", "⑤", ""]]),
        ("5", [["①"], ["②"], ["③"], ["④"], ["⑤"]]),
    ])
    def test_build_choice_grid_when_layout_then_expected_shape(self, layout, expected_rows):
        grid = build_choice_grid(layout)

        assert [[c.label for c in row] for row in grid.rows] == expected_rows

    def test_build_choice_grid_when_seeded_then_text_on_choice(self):
        grid = build_choice_grid("2행", {"4": "D"})

        choices = grid.choices()
        assert [c.index for c in choices] == [1, 2, 3, 4, 5]
        assert choices[3].text == "D"

    def test_build_choice_grid_when_two_rows_then_last_cell_is_filler(self):
        grid = build_choice_grid("2")

        assert grid.rows[1][2].is_filler
        assert grid.column_count == 3

    @pytest.mark.parametrize("value,expected", [
        ("5행", "5"), ("1", "1"), (2, "2"), ("3행", "2"), (None, "2"),
    ])
    def test_normalize_choice_layout_when_value_then_known_key(self, value, expected):
        assert normalize_choice_layout(value) == expected

    def test_choice_label_when_beyond_five_then_numeric(self):
        assert choice_label(6) == "6."

    def test_parse_choice_data_when_bare_values_then_parsed(self):
        assert parse_choice_data("(1_A), (2_B)") == {"1": "A", "2": "B"}
