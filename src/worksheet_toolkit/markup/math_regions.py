"""
Module: markup.math_regions

Purpose:
    Classify text into math and non-math spans so that token substitution
    never fires inside $...$ or $$...$$, and provide the math-safe
    rendering path for tokens that were written inside math.

Key Functions:
    - split_math_regions(): Ordered, disjoint [start, end) regions
    - is_in_math(): Whether an index falls inside a math region
    - protect_math_environments(): Keep \\begin{env}...\\end{env} in one region
    - sanitize_math_tokens(): Blank / concept blank / image tokens -> TeX boxes
    - apply_math_display_rules(): \\displaystyle prefix and \\frac -> \\dfrac

Dependencies:
    - markup.grammar: MATH_PATTERN, MATH_ENV_PATTERN, token patterns

Used By:
    - markup.tokenizer: Region checks for every substitution
    - markup.importer: Environment protection during LLM normalization
    - markup.render / typeset.cache: TeX handed to the typesetter
"""

from __future__ import annotations

import bisect
import re
from dataclasses import dataclass
from typing import List, Optional, Sequence

from .grammar import (
    BLANK_PATTERN,
    CONCEPT_BLANK_PATTERN,
    IMAGE_PATTERN,
    MATH_ENV_PATTERN,
    MATH_PATTERN,
)


@dataclass(frozen=True)
class Region:
    """A [start, end) span of text classified as math or non-math."""
    start: int
    end: int
    is_math: bool

    def contains(self, index: int) -> bool:
        return self.start <= index < self.end


def split_math_regions(text: str) -> List[Region]:
    """
    Split text into ordered, disjoint math / non-math regions.

    Math regions are the non-greedy ``$$...$$`` / ``$...$`` matches; the
    gaps between them are non-math. Empty text gives no regions.

    Example:
        >>> [(r.start, r.end, r.is_math) for r in split_math_regions("a $x$ b")]
        [(0, 2, False), (2, 5, True), (5, 7, False)]
    """
    regions: List[Region] = []
    cursor = 0
    for match in MATH_PATTERN.finditer(text):
        if match.start() > cursor:
            regions.append(Region(cursor, match.start(), False))
        regions.append(Region(match.start(), match.end(), True))
        cursor = match.end()
    if cursor < len(text):
        regions.append(Region(cursor, len(text), False))
    return regions


def math_spans(regions: Sequence[Region]) -> List[Region]:
    """Only the math regions, in order."""
    return [r for r in regions if r.is_math]


def is_in_math(index: int, regions: Sequence[Region]) -> bool:
    """
    Check whether ``index`` falls inside a math region.

    ``regions`` may be the full region list or just the math spans; it must
    be ordered by start.
    """
    starts = [r.start for r in regions]
    pos = bisect.bisect_right(starts, index) - 1
    if pos < 0:
        return False
    region = regions[pos]
    return region.is_math and region.contains(index)


# ─────────────────────────────────────────────────────────────────────────────
# Environment protection
# ─────────────────────────────────────────────────────────────────────────────

def _toggle_math_state(segment: str, in_math: bool) -> bool:
    """Flip the math state for each unescaped $ in segment."""
    for i, ch in enumerate(segment):
        if ch != "$":
            continue
        if i > 0 and segment[i - 1] == "\\":
            continue
        in_math = not in_math
    return in_math


def protect_math_environments(text: str) -> str:
    """
    Make matrix-like environments safe for region splitting.

    ``$`` characters inside ``\\begin{env}...\\end{env}`` are removed so they
    cannot close a math region early, then each environment is wrapped in
    ``$...$`` unless a left-to-right scan says it already sits inside an
    open math region.

    Example:
        >>> protect_math_environments(r"\\begin{cases}x$\\end{cases}")
        '$\\\\begin{cases}x\\\\end{cases}$'
    """
    if not text:
        return text
    stripped = MATH_ENV_PATTERN.sub(lambda m: m.group(0).replace("$", ""), text)

    parts: List[str] = []
    cursor = 0
    in_math = False
    for match in MATH_ENV_PATTERN.finditer(stripped):
        before = stripped[cursor:match.start()]
        in_math = _toggle_math_state(before, in_math)
        parts.append(before)
        parts.append(match.group(0) if in_math else f"${match.group(0)}$")
        cursor = match.end()
    parts.append(stripped[cursor:])
    return "".join(parts)


# ─────────────────────────────────────────────────────────────────────────────
# Math-safe token rendering
# ─────────────────────────────────────────────────────────────────────────────

_TEX_SPECIALS = re.compile(r"([{}#%&_$])")


def escape_for_math_tex(value: str) -> str:
    """Escape plain text for use inside \\text{...}."""
    escaped = value.replace("\\", "\\textbackslash ")
    escaped = _TEX_SPECIALS.sub(r"\\\1", escaped)
    escaped = escaped.replace("^", "\\^{}")
    return escaped.replace("~", "\\~{}")


def decode_math_entities(value: str) -> str:
    """Undo HTML entity encoding that leaked into TeX source."""
    text = str(value)
    if "&" not in text:
        return text
    while "&amp;" in text:
        text = text.replace("&amp;", "&")
    return (
        text.replace("&lt;", "<")
        .replace("&gt;", ">")
        .replace("&nbsp;", " ")
        .replace("&quot;", '"')
        .replace("&#39;", "'")
    )


def _normalize_blank_label(value: str) -> str:
    return re.sub(r"\s+", " ", value).strip()


def math_blank_box(label: str) -> str:
    """TeX for a blank box drawn inside math."""
    text = escape_for_math_tex(_normalize_blank_label(label))
    return (
        "\\class{math-blank-box}{\\bbox[border:1.5px solid #000; "
        "padding: 3px 12px; background: #fff]{\\text{" + text + "}}}"
    )


def sanitize_math_tokens(
    tex: str,
    concept_indices: Optional[Sequence[Optional[int]]] = None,
) -> str:
    """
    Replace markup tokens written inside math with TeX-safe boxes.

    Args:
        tex: Math source without delimiters
        concept_indices: Indices assigned to the concept blanks of this
            region, in order. When omitted (or shorter than the number of
            blanks) the blank shows its raw label instead.

    Returns:
        TeX where concept blanks render as ``(n)`` boxes, blanks as boxed
        labels and image placeholders as ``\\boxed{\\text{label}}``.
    """
    if not tex:
        return tex
    indices = list(concept_indices or [])
    position = 0

    def _concept(match: re.Match) -> str:
        nonlocal position
        index = indices[position] if position < len(indices) else None
        position += 1
        if index is None:
            label = _normalize_blank_label(match.group(2)) or "#"
            return math_blank_box(f"({label})")
        return math_blank_box(f"({index})")

    result = CONCEPT_BLANK_PATTERN.sub(_concept, tex)
    result = BLANK_PATTERN.sub(lambda m: math_blank_box(m.group(2)), result)
    return IMAGE_PATTERN.sub(
        lambda m: "\\boxed{\\text{" + escape_for_math_tex(m.group(1)) + "}}", result
    )


def strip_concept_blank_tokens(tex: str) -> str:
    """Drop concept blank tags from math, keeping only the answer text."""
    if not tex:
        return tex
    return CONCEPT_BLANK_PATTERN.sub(lambda m: m.group(3) or "", tex)


# ─────────────────────────────────────────────────────────────────────────────
# Display rules
# ─────────────────────────────────────────────────────────────────────────────

# Argument counts for commands whose arguments belong to a script.
_ARG_COUNTS = {
    "frac": 2, "dfrac": 2, "tfrac": 2, "cfrac": 2,
    "binom": 2, "dbinom": 2, "tbinom": 2,
    "overset": 2, "underset": 2, "stackrel": 2,
    "sqrt": 1, "overline": 1, "underline": 1, "bar": 1, "vec": 1,
    "hat": 1, "tilde": 1, "dot": 1, "ddot": 1,
    "text": 1, "textbf": 1, "textit": 1,
    "mathrm": 1, "mathbf": 1, "mathit": 1, "mathcal": 1,
    "mathbb": 1, "mathfrak": 1, "mathsf": 1, "operatorname": 1,
}
_OPTIONAL_ARG_COMMANDS = {"sqrt"}
_STYLE_PREFIX = re.compile(r"^\s*\\(?:displaystyle|textstyle|scriptstyle|scriptscriptstyle)\b")


def _read_control_sequence(tex: str, start: int) -> tuple[str, int]:
    i = start + 1
    if i >= len(tex):
        return "", i
    if tex[i].isascii() and tex[i].isalpha():
        while i < len(tex) and tex[i].isascii() and tex[i].isalpha():
            i += 1
    else:
        i += 1
    return tex[start + 1:i], i


def _is_escaped(tex: str, index: int) -> bool:
    count = 0
    i = index - 1
    while i >= 0 and tex[i] == "\\":
        count += 1
        i -= 1
    return count % 2 == 1


def _consume_group(tex: str, start: int, open_char: str, close_char: str) -> int:
    depth = 0
    i = start
    while i < len(tex):
        ch = tex[i]
        if ch == open_char and not _is_escaped(tex, i):
            depth += 1
        elif ch == close_char and not _is_escaped(tex, i):
            depth -= 1
            if depth == 0:
                return i + 1
        i += 1
    return i


def _consume_argument(tex: str, start: int) -> int:
    if start >= len(tex):
        return start
    ch = tex[start]
    if ch == "{":
        return _consume_group(tex, start, "{", "}")
    if ch == "[":
        return _consume_group(tex, start, "[", "]")
    if ch == "\\":
        name, end = _read_control_sequence(tex, start)
        if name in _OPTIONAL_ARG_COMMANDS and end < len(tex) and tex[end] == "[":
            end = _consume_group(tex, end, "[", "]")
        for _ in range(_ARG_COUNTS.get(name, 0)):
            while end < len(tex) and tex[end].isspace():
                end += 1
            nxt = _consume_argument(tex, end)
            if nxt <= end:
                break
            end = nxt
        return end
    return start + 1


def apply_math_display_rules(tex: str) -> str:
    """
    Force display style and upgrade fractions outside scripts.

    ``\\frac`` becomes ``\\dfrac`` unless it is the argument of a ``_`` or
    ``^`` script, so fraction sizes stay consistent across inline math.

    Example:
        >>> apply_math_display_rules(r"\\frac{1}{2}^{\\frac{1}{3}}")
        '\\\\displaystyle \\\\dfrac{1}{2}^{\\\\frac{1}{3}}'
    """
    if not tex:
        return tex
    source = tex if _STYLE_PREFIX.match(tex) else f"\\displaystyle {tex}"

    out: List[str] = []
    i = 0
    pending_script = False
    while i < len(source):
        ch = source[i]
        if pending_script:
            if ch.isspace():
                out.append(ch)
                i += 1
                continue
            end = _consume_argument(source, i)
            end = max(end, i + 1)
            out.append(source[i:end])
            i = end
            pending_script = False
            continue
        if ch in "_^" and i + 1 < len(source):
            out.append(ch)
            i += 1
            pending_script = True
            continue
        if source.startswith("\\frac", i) and not source[i + 5:i + 6].isalpha():
            out.append("\\dfrac")
            i += 5
            continue
        out.append(ch)
        i += 1
    return "".join(out)
