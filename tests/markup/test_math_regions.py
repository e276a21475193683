"""
Tests for math region detection and math-safe TeX rewriting.

Verifies:
- Region splitting (inline, display, unclosed dollars)
- Environment protection
- Token sanitizing inside math
- Display-style rules for fractions
"""

import pytest

from worksheet_toolkit.markup.math_regions import (
    apply_math_display_rules,
    decode_math_entities,
    escape_for_math_tex,
    is_in_math,
    math_spans,
    protect_math_environments,
    sanitize_math_tokens,
    split_math_regions,
    strip_concept_blank_tokens,
)


class TestSplitMathRegions:
    """Tests for split_math_regions and is_in_math."""

    def test_split_when_inline_math_then_three_regions(self):
        # Act
        regions = split_math_regions("a $x$ b")

        # Assert
        assert [(r.start, r.end, r.is_math) for r in regions] == [
            (0, 2, False), (2, 5, True), (5, 7, False),
        ]

    def test_split_when_display_math_then_single_region(self):
        regions = split_math_regions("$$a+b$$")

        assert len(regions) == 1
        assert regions[0].is_math
        assert (regions[0].start, regions[0].end) == (0, 7)

    def test_split_when_unclosed_dollar_then_no_math(self):
        regions = split_math_regions("가격은 $5")

        assert math_spans(regions) == []

    def test_split_when_empty_then_no_regions(self):
        assert split_math_regions("") == []

    def test_is_in_math_when_index_inside_region_then_true(self):
        # Arrange
        text = "ab $x+y$ cd"
        regions = split_math_regions(text)

        # Assert
        assert is_in_math(text.index("x"), regions)
        assert not is_in_math(0, regions)
        assert not is_in_math(text.index("c"), regions)

    def test_is_in_math_when_only_math_spans_given_then_still_works(self):
        text = "ab $x$ cd"
        spans = math_spans(split_math_regions(text))

        assert is_in_math(text.index("x"), spans)
        assert not is_in_math(1, spans)


class TestProtectMathEnvironments:
    """Tests for protect_math_environments."""

    def test_protect_when_bare_environment_then_wrapped(self):
        result = protect_math_environments(r"\begin{cases}x$\end{cases}")

        assert result == r"$\begin{cases}x\end{cases}$"

    def test_protect_when_already_in_math_then_unchanged(self):
        text = r"$\begin{cases}x\end{cases}$"

        assert protect_math_environments(text) == text

    def test_protect_when_no_environment_then_unchanged(self):
        assert protect_math_environments("a $x$ b") == "a $x$ b"


class TestSanitizeMathTokens:
    """Tests for sanitize_math_tokens and friends."""

    def test_sanitize_when_blank_then_boxed_label(self):
        result = sanitize_math_tokens("[빈칸:x]")

        assert "\\class{math-blank-box}" in result
        assert "\\text{x}" in result

    def test_sanitize_when_concept_index_given_then_numbered(self):
        result = sanitize_math_tokens("a[개념빈칸:_답]b[/개념빈칸]", [3])

        assert "\\text{(3)}" in result
        assert "답" not in result

    def test_sanitize_when_concept_without_index_or_label_then_hash(self):
        result = sanitize_math_tokens("[개념빈칸:]x[/개념빈칸]")

        assert "\\text{(\\#)}" in result

    def test_sanitize_when_image_placeholder_then_boxed_text(self):
        assert sanitize_math_tokens("[이미지:그림]") == "\\boxed{\\text{그림}}"

    def test_strip_concept_blank_tokens_when_present_then_body_kept(self):
        assert strip_concept_blank_tokens("a[개념빈칸:_]b[/개념빈칸]") == "ab"

    def test_escape_for_math_tex_when_specials_then_escaped(self):
        assert escape_for_math_tex("a_b#") == "a\\_b\\#"

    def test_decode_math_entities_when_double_encoded_then_decoded(self):
        assert decode_math_entities("a &amp;lt; b") == "a < b"


class TestDisplayRules:
    """Tests for apply_math_display_rules."""

    @pytest.mark.parametrize("tex,expected", [
        (r"\frac{1}{2}", r"\displaystyle \dfrac{1}{2}"),
        (r"\frac{1}{2}^{\frac{1}{3}}", r"\displaystyle \dfrac{1}{2}^{\frac{1}{3}}"),
        (r"x_\frac{1}{2}", r"\displaystyle x_\frac{1}{2}"),
    ])
    def test_display_rules_when_fraction_then_upgraded_outside_scripts(self, tex, expected):
        assert apply_math_display_rules(tex) == expected

    def test_display_rules_when_style_prefix_present_then_not_duplicated(self):
        assert apply_math_display_rules(r"\textstyle x") == r"\textstyle x"

    def test_display_rules_when_empty_then_empty(self):
        assert apply_math_display_rules("") == ""
