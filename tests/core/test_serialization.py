"""
Unit Tests for Serialization Utilities

Tests for project <-> dict conversion, normalization and file round trips.
"""

import json
from datetime import datetime

import pytest

from worksheet_toolkit.core.models import Block, BlockType, BlockVariant, DocMeta, Document, Settings
from worksheet_toolkit.core.utils.serialization import (
    load_project,
    normalize_blocks,
    normalize_settings,
    project_from_dict,
    project_to_dict,
    save_project,
    suggest_project_filename,
)
from worksheet_toolkit.errors import DocumentValidationError


class TestNormalizeBlocks:
    """Loading never crashes on malformed block data."""

    def test_normalize_when_ids_missing_or_duplicate_then_regenerates(self):
        # Arrange
        raw = [{"id": "a", "type": "example"}, {"id": "a", "type": "example"}, {"type": "concept"}]

        # Act
        blocks = normalize_blocks(raw)

        # Assert
        ids = [b.id for b in blocks]
        assert ids[0] == "a"
        assert len(set(ids)) == 3

    def test_normalize_when_type_unknown_then_defaults_to_example(self):
        blocks = normalize_blocks([{"id": "x", "type": "poem", "content": "c"}])

        assert blocks[0].type == BlockType.EXAMPLE

    def test_normalize_when_spacer_height_invalid_then_uses_default(self):
        blocks = normalize_blocks([{"id": "s", "type": "spacer", "height": -3}])

        assert blocks[0].height == 50

    def test_normalize_when_not_a_list_then_empty(self):
        assert normalize_blocks("nope") == []

    def test_normalize_when_empty_and_required_then_adds_placeholder(self):
        blocks = normalize_blocks([], ensure_at_least_one=True)

        assert len(blocks) == 1
        assert blocks[0].type == BlockType.CONCEPT
        assert blocks[0].label == "안내"

    def test_normalize_when_break_has_content_then_content_dropped(self):
        blocks = normalize_blocks([{"id": "br", "type": "break", "content": "x"}])

        assert blocks[0].content == ""


class TestNormalizeSettings:
    def test_settings_when_values_invalid_then_defaults(self):
        settings = normalize_settings({"columns": 7, "fontSizePt": "big", "marginTopMm": -1, "labelBold": "yes"})

        assert settings.columns == 2
        assert settings.font_size_pt == 10.5
        assert settings.margin_top_mm == 15
        assert settings.label_bold is True

    def test_settings_when_page_layouts_given_then_keeps_valid_entries(self):
        settings = normalize_settings({"columns": 1, "pageLayouts": {"1": 2, "2": 3, "3": "1"}})

        assert settings.page_layouts == {"1": 2, "3": 1}
        assert settings.columns_for_page(1) == 2
        assert settings.columns_for_page(2) == 1


class TestProjectRoundTrip:
    @pytest.fixture
    def document(self) -> Document:
        return Document(
            meta=DocMeta(title="중2 수학", subtitle="1단원"),
            blocks=[
                Block(id="c", type=BlockType.CONCEPT, content="개념", label="개념1", variant=BlockVariant.TOP_CONCEPT),
                Block(id="i", content='그림 <img src="blob:session/1" data-path="images/a.png">', text_align="center"),
                Block(id="s", type=BlockType.SPACER, height=80),
            ],
        )

    def test_to_dict_when_images_present_then_src_uses_stable_path(self, document):
        data = project_to_dict(document, Settings())

        content = data["data"]["blocks"][1]["content"]
        assert 'src="images/a.png"' in content
        assert "blob:" not in content

    def test_from_dict_when_resolver_given_then_images_rehydrated(self, document):
        # Arrange
        data = project_to_dict(document, Settings())

        # Act
        loaded, _ = project_from_dict(data, resolver=lambda path: f"blob:new/{path}")

        # Assert
        assert 'src="blob:new/images/a.png"' in loaded.blocks[1].content

    def test_round_trip_when_saved_and_loaded_then_blocks_equal(self, tmp_path, document):
        # Arrange
        settings = Settings(columns=1, page_layouts={"2": 2})
        path = tmp_path / "project.json"

        # Act
        save_project(path, document, settings)
        loaded, loaded_settings = load_project(path)

        # Assert
        assert [b.id for b in loaded.blocks] == ["c", "i", "s"]
        assert loaded.blocks[0].variant == BlockVariant.TOP_CONCEPT
        assert loaded.blocks[1].text_align == "center"
        assert loaded.blocks[2].height == 80
        assert loaded.meta.title == "중2 수학"
        assert loaded_settings.columns == 1
        assert loaded_settings.page_layouts == {"2": 2}

    def test_save_when_korean_text_then_written_unescaped(self, tmp_path, document):
        path = save_project(tmp_path / "p.json", document, Settings())

        assert "중2 수학" in path.read_text(encoding="utf-8")

    def test_load_when_validate_and_invalid_then_raises(self, tmp_path):
        path = tmp_path / "bad.json"
        path.write_text(json.dumps({"data": {"blocks": [{"id": "a", "type": "poem"}]}}), encoding="utf-8")

        with pytest.raises(DocumentValidationError):
            load_project(path, validate=True)

    def test_load_when_file_missing_then_raises(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_project(tmp_path / "missing.json")


class TestSuggestProjectFilename:
    def test_filename_when_title_has_unsafe_chars_then_stripped(self):
        name = suggest_project_filename('a/b:c*"d', datetime(2026, 1, 2, 3, 4))

        assert name == "abcd_20260102_0304.json"

    def test_filename_when_title_empty_then_uses_exam(self):
        assert suggest_project_filename("", datetime(2026, 1, 2, 3, 4)) == "exam_20260102_0304.json"
