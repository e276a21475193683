"""
Unit Tests for Document Models

Tests for Block, Document and Settings behaviour.
"""

from worksheet_toolkit.core.models import Block, BlockType, Document, Settings, new_block_id


class TestBlock:
    def test_block_when_type_string_then_parsed_to_enum(self):
        assert Block(id="a", type="concept").type == BlockType.CONCEPT

    def test_block_when_spacer_without_height_then_default_height(self):
        assert Block(id="s", type=BlockType.SPACER).height == 50

    def test_block_when_answer_or_shaded_then_not_counted_towards_limit(self):
        assert Block(id="a", type=BlockType.ANSWER).counts_towards_limit is False
        assert Block(id="b", bg_gray=True).counts_towards_limit is False
        assert Block(id="c").counts_towards_limit is True

    def test_to_dict_when_optional_fields_unset_then_omitted(self):
        data = Block(id="a", content="x").to_dict()

        assert data == {"id": "a", "type": "example", "content": "x"}

    def test_to_dict_when_styled_then_uses_persisted_keys(self):
        data = Block(id="a", bg_gray=True, text_align="right", font_size_pt=12).to_dict()

        assert data["bgGray"] is True
        assert data["style"] == {"textAlign": "right"}
        assert data["fontSizePt"] == 12


class TestDocument:
    def test_content_blocks_when_derived_and_breaks_present_then_excluded(self):
        doc = Document(blocks=[
            Block(id="a"),
            Block(id="br", type=BlockType.BREAK),
            Block(id="ans", type=BlockType.ANSWER, derived="concept-answers"),
        ])

        assert [b.id for b in doc.content_blocks()] == ["a"]

    def test_index_of_when_missing_then_minus_one(self):
        doc = Document(blocks=[Block(id="a")])

        assert doc.index_of("a") == 0
        assert doc.index_of("zzz") == -1
        assert doc.find("zzz") is None


class TestSettings:
    def test_columns_for_page_when_override_then_override_wins(self):
        settings = Settings(columns=2, page_layouts={"3": 1})

        assert settings.columns_for_page(1) == 2
        assert settings.columns_for_page(3) == 1


def test_new_block_id_when_called_twice_then_unique():
    assert new_block_id() != new_block_id()
