"""
Module: markup.serializer

Purpose:
    Token AST -> canonical markup. Serialization is the inverse of the
    tokenizer up to whitespace inside data suffixes and box bodies, so
    serialize(tokenize(serialize(tokenize(x)))) == serialize(tokenize(x)).

Key Functions:
    - serialize_tokens(): Tokens -> markup
    - serialize_table() / serialize_choice_grid(): Grids -> token text
    - escape_token_value(): Quote escaping for data suffix values
    - canonicalize_content(): Markup -> canonical markup
    - export_markup(): Document -> header-dialect import text

Dependencies:
    - markup.builders: Grids
    - markup.tokenizer: canonicalize_content reparses

Used By:
    - history.engine: Canonical snapshots
    - cli: export command
"""

from __future__ import annotations

import html
from typing import Iterable, List

from worksheet_toolkit.core.models import (
    BlankToken,
    BlockType,
    BoxToken,
    ChoiceGridToken,
    ConceptBlankToken,
    Document,
    ImagePlaceholderToken,
    InlineImageToken,
    MathToken,
    RectBoxToken,
    StyledSpanToken,
    TableToken,
    TextToken,
    Token,
)

from .builders import ChoiceGrid, TableGrid, build_choice_grid, build_table
from .grammar import (
    BOX_CLOSE,
    CHOICE_LAYOUT_TOKENS,
    DEFAULT_STYLE,
    RECT_CLOSE,
    STYLE_BOXED,
    STYLE_CONCEPT,
    STYLE_SHADED,
    VARIANT_STYLES,
)
from .html_text import NBSP


def escape_token_value(value: str) -> str:
    """
    Escape a value for a quoted data suffix entry.

    Example:
        >>> escape_token_value('a"b')
        'a\\\\"b'
    """
    return value.replace("\\", "\\\\").replace('"', '\\"')


def _cell_value(value: str) -> str:
    return (value or "").replace(NBSP, " ")


def serialize_table(grid: TableGrid) -> str:
    """
    Serialize a table grid, row-major, skipping empty cells.

    Example:
        >>> serialize_table(build_table(2, 2, {"1x1": "A", "2x2": "B"}))
        '[표_2x2] : (1x1_"A"), (2x2_"B")'
    """
    if not grid.rows or not grid.cols:
        return ""
    entries = []
    for r, row in enumerate(grid.cells, start=1):
        for c, raw in enumerate(row, start=1):
            value = _cell_value(raw)
            if not value.strip():
                continue
            entries.append(f'({r}x{c}_"{escape_token_value(value)}")')
    head = f"[표_{grid.rows}x{grid.cols}]"
    return f"{head} : {', '.join(entries)}" if entries else head


def serialize_choice_grid(grid: ChoiceGrid) -> str:
    """
    Serialize a choice grid in ascending choice index order.

    Example:
        >>> serialize_choice_grid(build_choice_grid("2", {"3": "C", "1": "A"}))
        '[선지_2행] : (1_"A"), (3_"C")'
    """
    entries = []
    for cell in grid.choices():
        value = _cell_value(cell.text)
        if not value.strip():
            continue
        entries.append(f'({cell.index}_"{escape_token_value(value)}")')
    head = f"[선지_{CHOICE_LAYOUT_TOKENS.get(grid.layout, '2행')}]"
    return f"{head} : {', '.join(entries)}" if entries else head


def _serialize_token(token: Token) -> str:
    if isinstance(token, TextToken):
        return token.text
    if isinstance(token, MathToken):
        return token.source
    if isinstance(token, BlankToken):
        return f"[빈칸{token.delimiter}{token.label}]"
    if isinstance(token, ConceptBlankToken):
        return f"[개념빈칸{token.delimiter}{token.raw_label}]{token.answer_body}[/개념빈칸]"
    if isinstance(token, ImagePlaceholderToken):
        return f"[이미지:{token.label}]"
    if isinstance(token, InlineImageToken):
        attrs = f'src="{html.escape(token.src, quote=True)}"'
        if token.path:
            attrs += f' data-path="{html.escape(token.path, quote=True)}"'
        return f"<img {attrs}>"
    if isinstance(token, TableToken):
        return serialize_table(build_table(token.rows, token.cols, token.cell_data))
    if isinstance(token, ChoiceGridToken):
        return serialize_choice_grid(build_choice_grid(token.layout, token.cell_data))
    if isinstance(token, StyledSpanToken):
        return f"[{token.keyword}{token.delimiter}{serialize_tokens(token.children)}]"
    if isinstance(token, BoxToken):
        return f"[블록박스_{token.label}]\n{serialize_tokens(token.children)}\n{BOX_CLOSE}"
    if isinstance(token, RectBoxToken):
        return f"[블록사각형]\n{serialize_tokens(token.children)}\n{RECT_CLOSE}"
    raise TypeError(f"Unknown token type: {type(token).__name__}")


def serialize_tokens(tokens: Iterable[Token]) -> str:
    """Serialize a token list back to markup."""
    return "".join(_serialize_token(t) for t in tokens)


def canonicalize_content(text: str) -> str:
    """Reparse and reserialize markup (no concept blank tracking)."""
    from .tokenizer import tokenize

    return serialize_tokens(tokenize(text or ""))


# ─────────────────────────────────────────────────────────────────────────────
# Header dialect export
# ─────────────────────────────────────────────────────────────────────────────

_VARIANT_TO_STYLE = {v: k for k, v in VARIANT_STYLES.items()}


def block_header(block) -> str:
    """
    Header text (without brackets) for a block.

    Example:
        >>> from worksheet_toolkit.core.models import Block
        >>> block_header(Block(id="b", type="concept", bordered=True, label="개념1"))
        '개념,박스_개념1'
    """
    styles: List[str] = []
    if block.type == BlockType.CONCEPT:
        styles.append(STYLE_CONCEPT)
    if block.bordered:
        styles.append(STYLE_BOXED)
    if block.bg_gray:
        styles.append(STYLE_SHADED)
    if block.variant:
        styles.append(_VARIANT_TO_STYLE[block.variant.value])
    label = (block.label or "").replace("_", " ").strip()
    if not styles:
        return label or DEFAULT_STYLE
    return f"{','.join(styles)}_{label}"


def export_markup(document: Document, *, include_meta: bool = True) -> str:
    """
    Export a document as import text in the header dialect.

    Break, spacer and derived blocks are layout artefacts and are not
    exported; re-import regenerates them.
    """
    parts: List[str] = []
    if include_meta:
        parts.append(f"[[머릿말_과정]] {document.meta.title}")
        parts.append(f"[[머릿말_단원]] {document.meta.subtitle}")
        parts.append(f"[[꼬릿말:{document.meta.footer_text}]]")
    for block in document.content_blocks():
        content = canonicalize_content(block.content)
        parts.append(f"[[{block_header(block)}]] : {content}")
    return "\n".join(parts) + "\n"
