"""
Module: tokens

Purpose:
    Token AST produced by the markup tokenizer. Tokens are transient:
    they are rebuilt from a block's markup on every parse and are never
    persisted on their own. The serializer turns them back into canonical
    markup, the renderer turns them into host HTML.

Key Classes:
    - TextToken, MathToken: plain text and $...$ / $$...$$ regions
    - BlankToken, ConceptBlankToken: fill-in blanks
    - ImagePlaceholderToken, InlineImageToken: image slots and loaded images
    - TableToken, ChoiceGridToken: grid structures with sparse cell data
    - StyledSpanToken: bold / underline spans
    - BoxToken, RectBoxToken: boxed callouts

Invariants:
    - Token boundaries never cross a math region.
    - Tokens written inside a math region never become DOM tokens; concept
      blanks found there are kept on the MathToken (is_math=True) so they
      are still indexed.

Dependencies:
    - dataclasses (std)

Used By:
    - markup.tokenizer: Produces tokens
    - markup.serializer: Tokens -> markup
    - markup.render: Tokens -> HTML
    - layout.measure: Height estimation
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Mapping, Optional, Tuple, Union


@dataclass(frozen=True)
class TextToken:
    """Literal text (may contain newlines)."""
    text: str


@dataclass(frozen=True)
class ConceptBlankToken:
    """
    Auto-numbered blank whose answer is collected for the answer key.

    Attributes:
        delimiter: ":" or "_" as written after the keyword
        raw_label: Label text between the delimiter and "]"
        answer_body: Markup between the opening and closing tag
        answer_text: Normalized answer recorded by the tracker
        is_math: True when the token was written inside a math region
        assigned_index: Sequential index from the tracker, None when untracked
    """
    delimiter: str
    raw_label: str
    answer_body: str
    answer_text: str = ""
    is_math: bool = False
    assigned_index: Optional[int] = None


@dataclass(frozen=True)
class MathToken:
    """
    A math region.

    Attributes:
        tex: Source between the delimiters
        display: True for $$...$$
        concept_blanks: Concept blanks written inside the region, in order
    """
    tex: str
    display: bool = False
    concept_blanks: Tuple[ConceptBlankToken, ...] = ()

    @property
    def source(self) -> str:
        """The region as written, delimiters included."""
        delim = "$$" if self.display else "$"
        return f"{delim}{self.tex}{delim}"


@dataclass(frozen=True)
class BlankToken:
    """Plain fill-in blank: [빈칸:label]."""
    delimiter: str
    label: str


@dataclass(frozen=True)
class ImagePlaceholderToken:
    """Image slot awaiting a picture: [이미지:label]."""
    label: str


@dataclass(frozen=True)
class InlineImageToken:
    """
    A loaded image embedded as an <img> tag.

    Attributes:
        src: Current source (relative path on disk, session URL in memory)
        path: Stable relative path used when saving
    """
    src: str
    path: Optional[str] = None


@dataclass(frozen=True)
class TableToken:
    """
    R x C table. cell_data maps "RxC" (1-indexed) to cell markup.
    """
    rows: int
    cols: int
    cell_data: Mapping[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class ChoiceGridToken:
    """
    Multiple-choice grid. layout is "1", "2" or "5"; cell_data maps the
    choice index ("1".."5") to its markup.
    """
    layout: str
    cell_data: Mapping[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class StyledSpanToken:
    """
    Bold or underlined span.

    Attributes:
        kind: "bold" or "underline"
        children: Tokens of the span body
        keyword: Keyword as written (굵게 / 볼드 / BOLD / 밑줄)
        delimiter: ":" or "_"
    """
    kind: str
    children: Tuple["Token", ...] = ()
    keyword: str = "굵게"
    delimiter: str = ":"


@dataclass(frozen=True)
class BoxToken:
    """Labeled (or simple, when label is empty) callout box."""
    label: str
    children: Tuple["Token", ...] = ()


@dataclass(frozen=True)
class RectBoxToken:
    """Unlabeled rectangular box used inside concept blocks."""
    children: Tuple["Token", ...] = ()


Token = Union[
    TextToken,
    MathToken,
    BlankToken,
    ConceptBlankToken,
    ImagePlaceholderToken,
    InlineImageToken,
    TableToken,
    ChoiceGridToken,
    StyledSpanToken,
    BoxToken,
    RectBoxToken,
]


def iter_tokens(tokens):
    """Depth-first walk over tokens and the children of container tokens."""
    for token in tokens:
        yield token
        children = getattr(token, "children", None)
        if children:
            yield from iter_tokens(children)
