"""
Module: markup.render

Purpose:
    Token AST -> host HTML. Rendering is a separate step from tokenizing:
    the tokenizer never produces markup for a surface, and every text
    value is HTML-escaped here.

    Math regions are emitted either as typeset nodes (when a lookup
    returns one) or as literal source in a pending span that the host
    typesets later.

Key Classes:
    - HtmlRenderer: Token list -> HTML string

Key Functions:
    - math_tex_for(): TeX handed to the typesetter for a MathToken
    - render_block(): Block wrapper around rendered tokens

Dependencies:
    - markup.math_regions: Math-safe token rendering
    - markup.builders: Table / choice grids

Used By:
    - session.EditorSession.render_block
    - typeset.cache: math_tex_for as cache key source
"""

from __future__ import annotations

from typing import Callable, Iterable, List, Optional

from worksheet_toolkit.core.models import (
    BlankToken,
    Block,
    BoxToken,
    ChoiceGridToken,
    ConceptBlankToken,
    ImagePlaceholderToken,
    InlineImageToken,
    MathToken,
    RectBoxToken,
    StyledSpanToken,
    TableToken,
    TextToken,
    Token,
)

from .builders import build_choice_grid, build_table
from .html_text import escape_html
from .math_regions import apply_math_display_rules, decode_math_entities, sanitize_math_tokens

VIEW_LABEL = "보기"

# (tex, display) -> typeset node HTML, or None when not available yet
MathLookup = Callable[[str, bool], Optional[str]]


def math_tex_for(token: MathToken) -> str:
    """
    TeX for a math token, ready for the typesetter.

    Concept blanks inside the region render as their assigned indices.

    Example:
        >>> math_tex_for(MathToken(tex="x + [빈칸:a]")).startswith("\\\\displaystyle x + \\\\class")
        True
    """
    indices = [cb.assigned_index for cb in token.concept_blanks]
    prepared = sanitize_math_tokens(decode_math_entities(token.tex), indices)
    return apply_math_display_rules(prepared)


class HtmlRenderer:
    """
    Render tokens to HTML.

    Attributes:
        math_lookup: Optional typeset node lookup for math regions

    Example:
        >>> HtmlRenderer().render([TextToken("a<b")])
        'a&lt;b'
    """

    def __init__(self, math_lookup: Optional[MathLookup] = None):
        self.math_lookup = math_lookup

    def render(self, tokens: Iterable[Token]) -> str:
        return "".join(self._render_token(t) for t in tokens)

    def render_markup(self, markup: str) -> str:
        """Render nested markup (table cells, choices) without numbering."""
        from .tokenizer import tokenize

        return self.render(tokenize(markup))

    # ─────────────────────────────────────────────────────────────────────

    def _render_token(self, token: Token) -> str:
        if isinstance(token, TextToken):
            return escape_html(token.text).replace("\n", "<br>")
        if isinstance(token, MathToken):
            return self._render_math(token)
        if isinstance(token, BlankToken):
            return (
                f'<span class="blank-box" data-delim="{escape_html(token.delimiter)}">'
                f"{escape_html(token.label)}</span>"
            )
        if isinstance(token, ConceptBlankToken):
            return self._render_concept_blank(token)
        if isinstance(token, ImagePlaceholderToken):
            label = token.label.strip()
            display = f"[이미지: {label}]" if label else "이미지 박스"
            return (
                f'<span class="image-placeholder" data-label="{escape_html(label)}">'
                f"{escape_html(display)}</span>"
            )
        if isinstance(token, InlineImageToken):
            attrs = f'src="{escape_html(token.src)}"'
            if token.path:
                attrs += f' data-path="{escape_html(token.path)}"'
            return f"<img {attrs}>"
        if isinstance(token, TableToken):
            return self._render_table(token)
        if isinstance(token, ChoiceGridToken):
            return self._render_choices(token)
        if isinstance(token, StyledSpanToken):
            tag = "u" if token.kind == "underline" else "strong"
            return f"<{tag}>{self.render(token.children)}</{tag}>"
        if isinstance(token, BoxToken):
            return self._render_box(token)
        if isinstance(token, RectBoxToken):
            return (
                '<div class="rect-box"><div class="rect-box-content">'
                f"{self.render(token.children)}</div></div>"
            )
        raise TypeError(f"Unknown token type: {type(token).__name__}")

    def _render_math(self, token: MathToken) -> str:
        tex = math_tex_for(token)
        node = self.math_lookup(tex, token.display) if self.math_lookup is not None else None
        if node is not None:
            return node
        mode = "display" if token.display else "inline"
        return (
            f'<span class="math-pending" data-mode="{mode}" data-tex="{escape_html(tex)}">'
            f"{escape_html(token.source)}</span>"
        )

    @staticmethod
    def _render_concept_blank(token: ConceptBlankToken) -> str:
        shown = f"({token.assigned_index})" if token.assigned_index is not None else "(#)"
        return (
            '<span class="blank-box concept-blank-box" data-blank-kind="concept" '
            f'data-raw-label="{escape_html(token.raw_label)}" '
            f'data-delim="{escape_html(token.delimiter)}" '
            f'data-answer="{escape_html(token.answer_text)}">{shown}</span>'
        )

    def _render_table(self, token: TableToken) -> str:
        grid = build_table(token.rows, token.cols, token.cell_data)
        rows: List[str] = []
        for row in grid.cells:
            cells = "".join(f"<td>{self.render_markup(cell)}</td>" for cell in row)
            rows.append(f"<tr>{cells}</tr>")
        return f'<table class="editor-table"><tbody>{"".join(rows)}</tbody></table>'

    def _render_choices(self, token: ChoiceGridToken) -> str:
        grid = build_choice_grid(token.layout, token.cell_data)
        rows: List[str] = []
        for row in grid.rows:
            cells = []
            for cell in row:
                if cell.is_filler:
                    cells.append('<td class="choice-empty"></td>')
                    continue
                cells.append(
                    f'<td data-choice-index="{cell.index}">'
                    f'<span class="choice-label">{cell.label}</span>'
                    f'<span class="choice-text">{self.render_markup(cell.text)}</span></td>'
                )
            rows.append(f"<tr>{''.join(cells)}</tr>")
        return (
            f'<table class="choice-table" data-layout="{grid.layout}">'
            f'<tbody>{"".join(rows)}</tbody></table>'
        )

    def _render_box(self, token: BoxToken) -> str:
        body = self.render(token.children)
        if not token.label:
            return f'<div class="custom-box simple-box"><div class="box-content">{body}</div></div>'
        label_class = "box-label view-label" if token.label == VIEW_LABEL else "box-label"
        return (
            f'<div class="custom-box labeled-box"><div class="{label_class}">'
            f"{escape_html(token.label)}</div>"
            f'<div class="box-content">{body}</div></div>'
        )


def render_block(block: Block, tokens: Iterable[Token], renderer: Optional[HtmlRenderer] = None) -> str:
    """
    Render a block with its wrapper, label and style classes.

    Break and spacer blocks render as empty markers.
    """
    renderer = renderer or HtmlRenderer()
    classes = ["block-wrapper", f"type-{block.type.value}"]
    if block.bordered:
        classes.append("bordered")
    if block.bg_gray:
        classes.append("bg-gray")
    if block.variant:
        classes.append(f"variant-{block.variant.value}")

    attrs = f'class="{" ".join(classes)}" data-id="{escape_html(block.id)}"'
    if block.derived:
        attrs += f' data-derived="{escape_html(block.derived)}"'

    if not block.type.has_content:
        if block.height:
            attrs += f' style="height: {block.height:g}px"'
        return f"<div {attrs}></div>"

    styles = []
    if block.text_align:
        styles.append(f"text-align: {block.text_align}")
    if block.font_size_pt:
        styles.append(f"font-size: {block.font_size_pt:g}pt")
    style_attr = f' style="{"; ".join(styles)}"' if styles else ""

    label_html = f'<span class="q-label">{escape_html(block.label)}</span> ' if block.label else ""
    return (
        f"<div {attrs}><div class=\"editable-box\"{style_attr}>"
        f"{label_html}{renderer.render(tokens)}</div></div>"
    )
