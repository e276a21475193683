"""
Module: markup.builders

Purpose:
    Editable grid structures for tables and multiple-choice grids, and the
    parsers for their data suffixes. A grid is what the rendering surface
    edits; the serializer turns it back into a token.

Key Classes:
    - TableGrid: R x C cells, row-major
    - ChoiceCell / ChoiceGrid: Choice slots arranged per layout

Key Functions:
    - build_table(): Grid from a sparse "RxC" -> markup seed
    - build_choice_grid(): Grid from layout + sparse index -> markup seed
    - parse_table_cell_data() / parse_choice_data(): Data suffix parsing
    - decode_quoted_value(): "..." / &quot;...&quot; / bare value decoding
    - normalize_choice_layout(): "1" / "2" / "5" with "2" as default

Dependencies:
    - markup.grammar: Cell patterns

Used By:
    - markup.tokenizer: Data suffix parsing
    - markup.serializer: Grid -> markup
    - markup.render: Grid -> HTML
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Mapping, Optional, Tuple

from .grammar import CHOICE_CELL_PATTERN, TABLE_CELL_PATTERN

CHOICE_LAYOUT_GRIDS: Dict[str, Tuple[Tuple[int, ...], ...]] = {
    "1": ((1, 2, 3, 4, 5),),
    "2": ((1, 2, 3), (4, 5, 0)),
    "5": ((1,), (2,), (3,), (4,), (5,)),
}
DEFAULT_CHOICE_LAYOUT = "2"
CHOICE_LABELS = ("①", "②", "③", "④", "⑤")


# ─────────────────────────────────────────────────────────────────────────────
# Data suffix parsing
# ─────────────────────────────────────────────────────────────────────────────

def decode_quoted_value(raw: str) -> str:
    """
    Decode a cell value from a data suffix.

    Example:
        >>> decode_quoted_value('"a \\\\"b\\\\""')
        'a "b"'
        >>> decode_quoted_value("&quot;x&quot;")
        'x'
    """
    value = (raw or "").strip()
    if len(value) >= 2 and value.startswith('"') and value.endswith('"'):
        return _unescape(value[1:-1])
    if len(value) >= 12 and value.startswith("&quot;") and value.endswith("&quot;"):
        inner = value[6:-6].replace("\\&quot;", '"').replace("&quot;", '"')
        return inner.replace("\\\\", "\\")
    return value


def _unescape(value: str) -> str:
    """Single-pass \\" and \\\\ unescape (other escapes kept verbatim)."""
    out = []
    i = 0
    while i < len(value):
        ch = value[i]
        if ch == "\\" and i + 1 < len(value) and value[i + 1] in ('"', "\\"):
            out.append(value[i + 1])
            i += 2
            continue
        out.append(ch)
        i += 1
    return "".join(out)


def parse_table_cell_data(data: str) -> Dict[str, str]:
    """
    Parse ``(1x1_"A"), (2x2_"B")`` into ``{"1x1": "A", "2x2": "B"}``.

    Later duplicates win.
    """
    cells: Dict[str, str] = {}
    if not data:
        return cells
    for match in TABLE_CELL_PATTERN.finditer(data):
        key = f"{int(match.group(1))}x{int(match.group(2))}"
        cells[key] = decode_quoted_value(match.group(3))
    return cells


def parse_choice_data(data: str) -> Dict[str, str]:
    """Parse ``(1_"A"), (3_"C")`` into ``{"1": "A", "3": "C"}``."""
    choices: Dict[str, str] = {}
    if not data:
        return choices
    for match in CHOICE_CELL_PATTERN.finditer(data):
        choices[str(int(match.group(1)))] = decode_quoted_value(match.group(2))
    return choices


def normalize_choice_layout(value: object) -> str:
    """Map "1"/"1행", "2"/"2행", "5"/"5행" to the layout key; default "2"."""
    text = str(value or "").strip()
    if text in ("1", "1행"):
        return "1"
    if text in ("5", "5행"):
        return "5"
    return DEFAULT_CHOICE_LAYOUT


def choice_label(index: int) -> str:
    """Circled numeral for 1..5, "N." otherwise."""
    if 1 <= index <= len(CHOICE_LABELS):
        return CHOICE_LABELS[index - 1]
    return f"{index}."


# ─────────────────────────────────────────────────────────────────────────────
# Grids
# ─────────────────────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class TableGrid:
    """
    Editable table.

    Attributes:
        cells: Row-major cell markup, len(cells) == rows, len(row) == cols
    """
    cells: Tuple[Tuple[str, ...], ...]

    @property
    def rows(self) -> int:
        return len(self.cells)

    @property
    def cols(self) -> int:
        return len(self.cells[0]) if self.cells else 0

    def cell(self, row: int, col: int) -> str:
        """Cell markup by 1-indexed position."""
        return self.cells[row - 1][col - 1]

    def with_cell(self, row: int, col: int, value: str) -> "TableGrid":
        """Copy with one cell replaced (1-indexed)."""
        rows = [list(r) for r in self.cells]
        rows[row - 1][col - 1] = value
        return TableGrid(cells=tuple(tuple(r) for r in rows))


@dataclass(frozen=True)
class ChoiceCell:
    """One choice slot. index 0 marks an empty filler slot."""
    index: int
    label: str
    text: str = ""

    @property
    def is_filler(self) -> bool:
        return self.index == 0


@dataclass(frozen=True)
class ChoiceGrid:
    """Choice slots arranged in rows according to the layout."""
    layout: str
    rows: Tuple[Tuple[ChoiceCell, ...], ...]

    @property
    def column_count(self) -> int:
        return len(self.rows[0]) if self.rows else 1

    def choices(self) -> Tuple[ChoiceCell, ...]:
        """Non-filler cells in ascending index order."""
        cells = [c for row in self.rows for c in row if not c.is_filler]
        return tuple(sorted(cells, key=lambda c: c.index))


def build_table(rows: int, cols: int, cell_data: Optional[Mapping[str, str]] = None) -> TableGrid:
    """
    Build an R x C grid seeded from sparse ``"RxC" -> markup`` data.

    Seeds outside the grid are ignored.

    Example:
        >>> grid = build_table(2, 2, {"1x1": "A", "2x2": "B"})
        >>> grid.cells
        (('A', ''), ('', 'B'))
    """
    if rows <= 0 or cols <= 0:
        raise ValueError(f"Table dimensions must be positive: {rows}x{cols}")
    data = cell_data or {}
    return TableGrid(
        cells=tuple(
            tuple(data.get(f"{r}x{c}", "") for c in range(1, cols + 1))
            for r in range(1, rows + 1)
        )
    )


def build_choice_grid(layout: object, choice_data: Optional[Mapping[str, str]] = None) -> ChoiceGrid:
    """
    Build a choice grid for a layout seeded from ``index -> markup`` data.

    Example:
        >>> grid = build_choice_grid("2행", {"1": "A"})
        >>> [[c.label for c in row] for row in grid.rows]
        [['①', '②', '③'], ['④', '⑤', '']]
    """
    key = normalize_choice_layout(layout)
    data = choice_data or {}
    rows = []
    for row in CHOICE_LAYOUT_GRIDS[key]:
        cells = []
        for index in row:
            if index == 0:
                cells.append(ChoiceCell(index=0, label=""))
            else:
                cells.append(ChoiceCell(index=index, label=choice_label(index), text=data.get(str(index), "")))
        rows.append(tuple(cells))
    return ChoiceGrid(layout=key, rows=tuple(rows))
