"""
Module: markup.grammar

Purpose:
    Pattern definitions for every token of the worksheet markup language.
    Pure regular expressions, independent of any rendering surface.

Token forms:
    $...$ / $$...$$                      math region
    [빈칸:label]                          blank (":" or "_")
    [개념빈칸:label]answer[/개념빈칸]     concept blank
    [이미지:label]                        image placeholder
    [표_RxC] : (1x1_"..."), ...          table with optional data suffix
    [선지_1행|2행|5행] : (1_"..."), ...   choice grid with optional data suffix
    [굵게|볼드|BOLD|밑줄:body]            styled span
    [블록박스_label] ... [/블록박스]       labeled box (block form)
    [블록사각형] ... [/블록사각형]         rect box (block form)
    [블록사각형_body]                     rect box (legacy inline form)
    <img src="..." data-path="...">      loaded image

Header dialect (importer only):
    [[style[,style]_label]] : body
    [[머릿말_과정]] value / [[머릿말_단원]] value / [[꼬릿말:value]]

Dependencies:
    - re (std)

Used By:
    - markup.math_regions, markup.tokenizer, markup.importer, markup.builders
"""

from __future__ import annotations

import re

# ─────────────────────────────────────────────────────────────────────────────
# Math
# ─────────────────────────────────────────────────────────────────────────────

MATH_PATTERN = re.compile(r"\$\$[\s\S]+?\$\$|\$[\s\S]+?\$")

MATH_ENVIRONMENTS = (
    "matrix", "pmatrix", "bmatrix", "vmatrix", "Vmatrix",
    "array", "aligned", "align", "cases",
)
MATH_ENV_PATTERN = re.compile(
    r"\\begin\{(" + "|".join(MATH_ENVIRONMENTS) + r")\}[\s\S]*?\\end\{\1\}"
)

# ─────────────────────────────────────────────────────────────────────────────
# Inline tokens
# ─────────────────────────────────────────────────────────────────────────────

CONCEPT_BLANK_SOURCE = r"\[개념빈칸([:_])([^\]]*?)\]([\s\S]*?)\[/개념빈칸\]"
CONCEPT_BLANK_PATTERN = re.compile(CONCEPT_BLANK_SOURCE)
BLANK_PATTERN = re.compile(r"\[빈칸([:_])(.*?)\]")
IMAGE_PATTERN = re.compile(r"\[이미지\s*:\s*(.*?)\]")

STYLE_KEYWORDS = ("굵게", "볼드", "BOLD", "밑줄")
UNDERLINE_KEYWORD = "밑줄"

CHOICE_LAYOUT_TOKENS = {"1": "1행", "2": "2행", "5": "5행"}

# One alternation, scanned left to right. Table and choice data suffixes
# are not part of this pattern; they are picked up by a bounded lookahead
# after the head token matches.
INLINE_TOKEN_PATTERN = re.compile(
    r"\[개념빈칸(?P<cb_delim>[:_])(?P<cb_label>[^\]]*?)\](?P<cb_body>[\s\S]*?)\[/개념빈칸\]"
    r"|\[빈칸(?P<bl_delim>[:_])(?P<bl_label>.*?)\]"
    r"|\[이미지\s*:\s*(?P<img_label>.*?)\]"
    r"|\[표_(?P<tb_rows>\d+)x(?P<tb_cols>\d+)\]"
    r"|\[선지_(?P<ch_layout>1행|2행|5행)\]"
    r"|\[(?P<st_kind>굵게|볼드|BOLD|밑줄)(?P<st_delim>[:_])(?P<st_body>[\s\S]*?)\]"
    r"|\[블록사각형_(?P<lr_body>[^\]]*?)\]"
    r"|(?P<img_tag><img\b[^>]*>)",
    re.IGNORECASE,
)

# Quoted cell value: "..." with \" and \\ escapes, &quot;...&quot;, or bare.
_CELL_VALUE = r'(?:"(?:\\.|[^"\\])*"|&quot;[\s\S]*?&quot;|[^)]*)'

TABLE_DATA_PATTERN = re.compile(
    r"[ \t]*(?::[ \t]*)?((?:\(\d+x\d+_" + _CELL_VALUE + r"\)[ \t]*,?[ \t]*)+)"
)
CHOICE_DATA_PATTERN = re.compile(
    r"[ \t]*(?::[ \t]*)?((?:\(\d+_" + _CELL_VALUE + r"\)[ \t]*,?[ \t]*)+)"
)
TABLE_CELL_PATTERN = re.compile(r"\((\d+)x(\d+)_(" + _CELL_VALUE + r")\)")
CHOICE_CELL_PATTERN = re.compile(r"\((\d+)_(" + _CELL_VALUE + r")\)")

# ─────────────────────────────────────────────────────────────────────────────
# Block-level boxes
# ─────────────────────────────────────────────────────────────────────────────

BOX_OPEN_PATTERN = re.compile(r"\[블록박스_(?P<label>[^\]\n]*)\]|\[블록사각형\]")
BOX_SEPARATOR_PATTERN = re.compile(r"[ \t]*:?[ \t]*")
BOX_CLOSE = "[/블록박스]"
RECT_CLOSE = "[/블록사각형]"

LEGACY_BOX_OPEN_PATTERN = re.compile(r"\[블록박스_[^\]]*\]")

# ─────────────────────────────────────────────────────────────────────────────
# Header dialect
# ─────────────────────────────────────────────────────────────────────────────

HEADER_COURSE_PATTERN = re.compile(r"\[\[머릿말_과정\]\][ \t]*:?[ \t]*([^\n\[]*)")
HEADER_UNIT_PATTERN = re.compile(r"\[\[머릿말_단원\]\][ \t]*:?[ \t]*([^\n\[]*)")
FOOTER_PATTERN = re.compile(r"\[\[꼬릿말\s*:\s*([^\]]*)\]\]")

DEFAULT_STYLE = "기본"
STYLE_CONCEPT = "개념"
STYLE_BOXED = "박스"
STYLE_SHADED = "음영"
VARIANT_STYLES = {
    "좌컨셉": "left-concept",
    "상단컨셉": "top-concept",
    "2단컨셉": "two-col-concept",
}
# "개념", "개념 1", "개념1" but not "개념적"
CONCEPT_LABEL_PATTERN = re.compile(r"^개념(?![가-힣])")
