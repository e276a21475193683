"""
Tests for import text parsing.

Verifies:
- Header dialect parsing (styles, labels, concept detection, variants)
- JSON and data-item HTML detection
- Break / spacer expansion
- LLM output normalization
"""

import pytest

from worksheet_toolkit.core.models import (
    Block,
    BlockType,
    BlockVariant,
    ConceptBlankToken,
    Document,
    MathToken,
)
from worksheet_toolkit.errors import MarkupImportError
from worksheet_toolkit.markup.concept_blank import ConceptBlankTracker
from worksheet_toolkit.markup.importer import (
    expand_imported_blocks,
    extract_header_meta,
    import_into_document,
    normalize_llm_output,
    parse_header,
    parse_import,
)
from worksheet_toolkit.markup.tokenizer import tokenize


class TestHeaderDialect:
    """Tests for [[header]] : content chunks."""

    def test_parse_when_two_chunks_then_example_and_concept(self):
        # Arrange
        text = "[[박스_라벨1]] : 본문1[[박스_개념_개념1]] : $x^2$[개념빈칸:_답]본문[/개념빈칸]"

        # Act
        result = parse_import(text)

        # Assert
        first, second = result.blocks
        assert (first.type, first.bordered, first.label, first.content) == (
            BlockType.EXAMPLE, True, "라벨1", "본문1",
        )
        assert (second.type, second.bordered, second.label) == (BlockType.CONCEPT, True, "개념1")

    def test_parse_when_concept_content_tokenized_then_math_and_numbered_blank(self):
        # Arrange
        block = parse_import("[[박스_개념_개념1]] : $x^2$[개념빈칸:_답]본문[/개념빈칸]").blocks[0]
        tracker = ConceptBlankTracker()

        # Act
        tokens = tokenize(block.content, tracker)

        # Assert
        assert tokens[0] == MathToken(tex="x^2")
        assert isinstance(tokens[1], ConceptBlankToken)
        assert tokens[1].assigned_index == 1
        assert tokens[1].answer_text == "답본문"

    def test_parse_when_header_without_underscore_then_whole_header_is_label(self):
        header = parse_header("라벨1")

        assert header.styles == ("기본",)
        assert header.label == "라벨1"

    def test_parse_when_label_starts_with_concept_word_then_concept(self):
        block = parse_import("[[개념 2]] : x").blocks[0]

        assert block.type == BlockType.CONCEPT

    def test_parse_when_label_is_longer_word_starting_with_concept_then_example(self):
        block = parse_import("[[개념적 사고]] : x").blocks[0]

        assert block.type == BlockType.EXAMPLE

    def test_parse_when_variant_style_then_variant_set(self):
        block = parse_import("[[좌컨셉_개념3]] : x").blocks[0]

        assert block.variant == BlockVariant.LEFT_CONCEPT
        assert block.type == BlockType.CONCEPT

    def test_parse_when_shaded_style_then_bg_gray(self):
        block = parse_import("[[음영_메모]] : x").blocks[0]

        assert block.bg_gray
        assert not block.bordered

    def test_parse_when_concept_contains_labeled_box_then_rewritten_as_rect(self):
        block = parse_import("[[개념_개념2]] : [블록박스_정의]\n내용\n[/블록박스]").blocks[0]

        assert block.content == "[블록사각형]\n내용\n[/블록사각형]"

    def test_parse_when_meta_lines_then_meta_extracted(self):
        # Act
        text, meta = extract_header_meta("[[머릿말_과정]] 중2 수학\n[[머릿말_단원]] : 함수\n[[꼬릿말:학원]]")

        # Assert
        assert meta == {"title": "중2 수학", "subtitle": "함수", "footer_text": "학원"}
        assert text.strip() == ""

    def test_parse_when_blank_input_then_empty_result(self):
        result = parse_import("   ")

        assert result.blocks == []
        assert result.source == "markup"


class TestJsonImport:
    """Tests for JSON detection and parsing."""

    def test_parse_when_json_list_then_blocks(self):
        result = parse_import('[{"type": "concept", "content": "a", "bgGray": true}]')

        assert result.source == "json"
        assert len(result.blocks) == 1
        assert result.blocks[0].type == BlockType.CONCEPT
        assert result.blocks[0].bg_gray

    def test_parse_when_single_object_then_one_block(self):
        result = parse_import('{"type": "example", "content": "b", "label": "1"}')

        assert [(b.content, b.label) for b in result.blocks] == [("b", "1")]

    def test_parse_when_json_malformed_then_import_error(self):
        with pytest.raises(MarkupImportError) as exc_info:
            parse_import('{"type": ')

        assert exc_info.value.source == "json"

    def test_parse_when_json_item_not_object_then_import_error(self):
        with pytest.raises(MarkupImportError, match="not an object"):
            parse_import("[1]")


class TestDataItemImport:
    """Data-item HTML is detected by its div markers."""

    def test_parse_when_data_items_then_html_source(self):
        html = (
            '<div class="data-item" data-type="example" data-label="3">'
            '<div class="data-content">$x$</div></div>'
        )

        result = parse_import(html)

        assert result.source == "html"
        assert [(b.type, b.label, b.content) for b in result.blocks] == [(BlockType.EXAMPLE, "3", "$x$")]


class TestExpandImportedBlocks:
    """Tests for expand_imported_blocks."""

    @staticmethod
    def _types(blocks):
        return [b.type.value for b in blocks]

    def test_expand_when_limit_and_spacer_then_breaks_between_columns(self):
        # Arrange
        blocks = [Block(id=f"e{i}") for i in range(3)]

        # Act
        result = expand_imported_blocks(blocks, limit=2, add_spacer=True)

        # Assert
        assert self._types(result) == [
            "example", "spacer", "example", "spacer", "break", "example", "spacer",
        ]

    def test_expand_when_answer_block_then_not_counted(self):
        blocks = [Block(id="e0"), Block(id="a", type=BlockType.ANSWER), Block(id="e1")]

        result = expand_imported_blocks(blocks, limit=1)

        assert self._types(result) == ["example", "break", "answer", "example"]

    def test_expand_when_no_limit_then_unchanged(self):
        blocks = [Block(id="e0"), Block(id="e1")]

        assert expand_imported_blocks(blocks) == blocks


class TestImportIntoDocument:
    """Tests for import_into_document."""

    def test_import_when_nothing_parsed_then_error(self):
        with pytest.raises(MarkupImportError):
            import_into_document(Document(), "   ")

    def test_import_when_append_then_existing_blocks_kept(self, make_block):
        # Arrange
        document = Document(blocks=[make_block("x", "old")])

        # Act
        import_into_document(document, "[[1]] : new")

        # Assert
        assert [b.content for b in document.blocks] == ["old", "new"]

    def test_import_when_overwrite_then_blocks_replaced_and_meta_applied(self, make_block):
        # Arrange
        document = Document(blocks=[make_block("x", "old")])

        # Act
        result = import_into_document(document, "[[머릿말_과정]] 제목\n[[1]] : new", overwrite=True)

        # Assert
        assert [b.content for b in document.blocks] == ["new"]
        assert document.meta.title == "제목"
        assert result.source == "markup"


class TestNormalizeLlmOutput:
    """Tests for normalize_llm_output."""

    def test_normalize_when_fenced_output_then_cleaned(self):
        # Arrange
        text = "```\n[[박스_개념]] : $$\\frac{1}{2}$$ **강조**\n```"

        # Act
        result = normalize_llm_output(text)

        # Assert
        assert "```" not in result
        assert "**" not in result
        assert "$\\dfrac{1}{2}$" in result
        assert result.startswith("[[박스_개념 1]]")

    def test_normalize_when_invalid_choice_layout_then_head_dropped(self):
        result = normalize_llm_output("[선지_3행] : (1_a)")

        assert "[선지_3행]" not in result
        assert result == "(1_a)"

    def test_normalize_when_valid_choice_layout_then_kept(self):
        assert normalize_llm_output("[선지_2행] : (1_a)") == "[선지_2행] : (1_a)"

    def test_normalize_when_concept_headers_then_numbered_in_order(self):
        result = normalize_llm_output("[[박스_개념]] : a\n[[개념_정의]] : b")

        assert "[[박스_개념 1]]" in result
        assert "[[박스_개념 2]]" in result

    def test_parse_when_normalize_requested_then_concept_block(self):
        result = parse_import("```\n[[박스_개념]] : 내용\n```", normalize_llm=True)

        assert result.blocks[0].type == BlockType.CONCEPT
        assert result.blocks[0].label == "개념 1"
