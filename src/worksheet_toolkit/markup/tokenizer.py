"""
Module: markup.tokenizer

Purpose:
    Turn a block's markup into the token AST. Lexing runs in two phases:

    1. Token scan: box openers, then the single inline alternation, each
       accepted only when its match starts outside every math region.
    2. Data-suffix lookahead: after a table or choice-grid head, a bounded
       match at the head's end picks up the optional ``: (..)`` cell list.

    Anything that does not form a complete token stays literal text.

Key Classes:
    - MarkupLexer: Stateful lexer bound to an optional ConceptBlankTracker

Key Functions:
    - tokenize(): Convenience wrapper around MarkupLexer

Dependencies:
    - bs4: <img> attribute parsing
    - markup.grammar, markup.math_regions, markup.builders, markup.concept_blank

Used By:
    - markup.serializer.canonicalize_content
    - markup.render
    - session.EditorSession: Full reparse with concept blank tracking
"""

from __future__ import annotations

import logging
from typing import List, Optional, Sequence

from bs4 import BeautifulSoup

from worksheet_toolkit.core.models import (
    BlankToken,
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

from .builders import normalize_choice_layout, parse_choice_data, parse_table_cell_data
from .concept_blank import ConceptBlankTracker, concept_answer_text
from .grammar import (
    BOX_CLOSE,
    BOX_OPEN_PATTERN,
    BOX_SEPARATOR_PATTERN,
    CHOICE_DATA_PATTERN,
    CONCEPT_BLANK_PATTERN,
    INLINE_TOKEN_PATTERN,
    RECT_CLOSE,
    TABLE_DATA_PATTERN,
    UNDERLINE_KEYWORD,
)
from .math_regions import Region, is_in_math, split_math_regions

logger = logging.getLogger(__name__)


class MarkupLexer:
    """
    Markup -> token list.

    Concept blanks are recorded on the tracker (when given) in the order
    they appear, including the ones written inside math regions.

    Example:
        >>> lexer = MarkupLexer()
        >>> lexer.tokenize("a [빈칸:x]")
        [TextToken(text='a '), BlankToken(delimiter=':', label='x')]
    """

    def __init__(self, tracker: Optional[ConceptBlankTracker] = None):
        self.tracker = tracker

    def tokenize(self, text: str) -> List[Token]:
        """Tokenize a full markup string."""
        if not text:
            return []
        tokens: List[Token] = []
        regions = split_math_regions(text)
        cursor = 0
        pos = 0
        while True:
            opener = self._next_box_opener(text, pos, regions)
            if opener is None:
                break
            parsed = self._read_box(text, opener)
            if parsed is None or _crosses_math(opener.start(), parsed[2], regions):
                pos = opener.end()
                continue
            label, body, after = parsed
            self._tokenize_inline(text, cursor, opener.start(), regions, tokens)
            children = tuple(self.tokenize(body.strip()))
            if label is not None:
                tokens.append(BoxToken(label=label.strip(), children=children))
            else:
                tokens.append(RectBoxToken(children=children))
            cursor = pos = after
        self._tokenize_inline(text, cursor, len(text), regions, tokens)
        return _merge_text(tokens)

    # ─────────────────────────────────────────────────────────────────────
    # Phase 1a: boxes
    # ─────────────────────────────────────────────────────────────────────

    @staticmethod
    def _next_box_opener(text: str, pos: int, regions: Sequence[Region]):
        while True:
            match = BOX_OPEN_PATTERN.search(text, pos)
            if match is None:
                return None
            if not is_in_math(match.start(), regions):
                return match
            pos = match.start() + 1

    @staticmethod
    def _read_box(text: str, opener):
        """Locate label, body and end of the box at ``opener``; None when it stays literal."""
        label = opener.group("label")
        close = BOX_CLOSE if label is not None else RECT_CLOSE
        body_start = BOX_SEPARATOR_PATTERN.match(text, opener.end()).end()
        line_end = text.find("\n", opener.end())
        if line_end == -1:
            line_end = len(text)

        if text[body_start:line_end].strip():
            # Single-line form: body runs to the close tag or the line end.
            close_idx = text.find(close, body_start, line_end)
            if close_idx == -1:
                body, after = text[body_start:line_end], line_end
            else:
                body, after = text[body_start:close_idx], close_idx + len(close)
        else:
            close_idx = text.find(close, line_end)
            if close_idx == -1:
                logger.debug(f"Unterminated box at offset {opener.start()} kept as text")
                return None
            body, after = text[line_end:close_idx], close_idx + len(close)

        return label, body, after

    # ─────────────────────────────────────────────────────────────────────
    # Phase 1b + 2: inline tokens and data suffixes
    # ─────────────────────────────────────────────────────────────────────

    def _tokenize_inline(
        self,
        text: str,
        start: int,
        end: int,
        regions: Sequence[Region],
        out: List[Token],
    ) -> None:
        cursor = start
        pos = start
        while pos < end:
            match = INLINE_TOKEN_PATTERN.search(text, pos, end)
            if match is None:
                break
            if is_in_math(match.start(), regions):
                pos = _region_end(match.start(), regions)
                continue
            if _crosses_math(match.start(), match.end(), regions):
                logger.debug(f"Token at offset {match.start()} ends inside math; kept as text")
                pos = match.start() + 1
                continue
            # Flush first so blanks inside earlier math are numbered first.
            self._emit_gap(text, cursor, match.start(), regions, out)
            cursor = match.start()
            converted = self._convert(text, match, end, regions)
            if converted is None:
                pos = match.start() + 1
                continue
            token, after = converted
            out.append(token)
            cursor = pos = after
        self._emit_gap(text, cursor, end, regions, out)

    def _convert(self, text: str, match, end: int, regions: Sequence[Region]):
        group = match.group
        if group("cb_delim") is not None:
            raw_label, body = group("cb_label"), group("cb_body")
            return self._concept_blank(group("cb_delim"), raw_label, body, is_math=False), match.end()

        if group("bl_delim") is not None:
            return BlankToken(delimiter=group("bl_delim"), label=group("bl_label")), match.end()

        if group("img_label") is not None:
            return ImagePlaceholderToken(label=group("img_label").strip()), match.end()

        if group("tb_rows") is not None:
            rows, cols = int(group("tb_rows")), int(group("tb_cols"))
            if rows <= 0 or cols <= 0:
                logger.debug(f"Table head with empty dimension {rows}x{cols} kept as text")
                return None
            cell_data, after = {}, match.end()
            suffix = TABLE_DATA_PATTERN.match(text, match.end(), end)
            if suffix is not None and _crosses_math(match.start(), suffix.end(), regions):
                return None
            if suffix is not None:
                cell_data, after = parse_table_cell_data(suffix.group(1)), suffix.end()
            return TableToken(rows=rows, cols=cols, cell_data=cell_data), after

        if group("ch_layout") is not None:
            choice_data, after = {}, match.end()
            suffix = CHOICE_DATA_PATTERN.match(text, match.end(), end)
            if suffix is not None and _crosses_math(match.start(), suffix.end(), regions):
                return None
            if suffix is not None:
                choice_data, after = parse_choice_data(suffix.group(1)), suffix.end()
            layout = normalize_choice_layout(group("ch_layout"))
            return ChoiceGridToken(layout=layout, cell_data=choice_data), after

        if group("st_kind") is not None:
            keyword = group("st_kind")
            kind = "underline" if keyword == UNDERLINE_KEYWORD else "bold"
            children = tuple(self.tokenize(group("st_body")))
            token = StyledSpanToken(kind=kind, children=children, keyword=keyword, delimiter=group("st_delim"))
            return token, match.end()

        if group("lr_body") is not None:
            return RectBoxToken(children=tuple(self.tokenize(group("lr_body").strip()))), match.end()

        if group("img_tag") is not None:
            token = _image_token(group("img_tag"))
            return (token, match.end()) if token is not None else None

        return None

    def _concept_blank(self, delimiter: str, raw_label: str, body: str, *, is_math: bool) -> ConceptBlankToken:
        answer = concept_answer_text(raw_label, body)
        index = self.tracker.record(answer, is_math=is_math) if self.tracker is not None else None
        return ConceptBlankToken(
            delimiter=delimiter,
            raw_label=raw_label,
            answer_body=body,
            answer_text=answer,
            is_math=is_math,
            assigned_index=index,
        )

    def _emit_gap(self, text: str, start: int, end: int, regions: Sequence[Region], out: List[Token]) -> None:
        """Split [start, end) into text and whole math regions."""
        if start >= end:
            return
        for region in regions:
            if region.end <= start or region.start >= end:
                continue
            lo, hi = max(region.start, start), min(region.end, end)
            if region.is_math and lo == region.start and hi == region.end:
                out.append(self._math_token(text[lo:hi]))
            else:
                out.append(TextToken(text=text[lo:hi]))

    def _math_token(self, source: str) -> MathToken:
        display = source.startswith("$$") and source.endswith("$$") and len(source) >= 4
        tex = source[2:-2] if display else source[1:-1]
        blanks = tuple(
            self._concept_blank(m.group(1), m.group(2), m.group(3), is_math=True)
            for m in CONCEPT_BLANK_PATTERN.finditer(tex)
        )
        return MathToken(tex=tex, display=display, concept_blanks=blanks)


def _crosses_math(start: int, end: int, regions: Sequence[Region]) -> bool:
    """True when [start, end) cuts through a math region instead of containing it whole."""
    for region in regions:
        if not region.is_math or region.end <= start or region.start >= end:
            continue
        if region.start < start or region.end > end:
            return True
    return False


def _region_end(index: int, regions: Sequence[Region]) -> int:
    for region in regions:
        if region.contains(index):
            return region.end
    return index + 1


def _image_token(tag: str) -> Optional[InlineImageToken]:
    img = BeautifulSoup(tag, "html.parser").find("img")
    if img is None:
        return None
    src = img.get("src") or ""
    path = img.get("data-path") or None
    if not src and not path:
        logger.debug(f"Image tag without source kept as text: {tag!r}")
        return None
    return InlineImageToken(src=src or path, path=path)


def _merge_text(tokens: List[Token]) -> List[Token]:
    """Merge adjacent text tokens."""
    merged: List[Token] = []
    for token in tokens:
        if isinstance(token, TextToken) and merged and isinstance(merged[-1], TextToken):
            merged[-1] = TextToken(text=merged[-1].text + token.text)
        else:
            merged.append(token)
    return merged


def tokenize(text: str, tracker: Optional[ConceptBlankTracker] = None) -> List[Token]:
    """
    Tokenize markup, recording concept blanks on ``tracker`` when given.

    Example:
        >>> [type(t).__name__ for t in tokenize("$[빈칸:x]$ 뒤")]
        ['MathToken', 'TextToken']
    """
    return MarkupLexer(tracker).tokenize(text)
