"""
Tests for EditorSession: the edit cycle, block operations, history,
persistence and rendering working together.
"""

import asyncio

import pytest

from worksheet_toolkit.config import EditorConfig
from worksheet_toolkit.core.models import BlockType, BlockVariant, ConceptBlankToken, Document
from worksheet_toolkit.errors import MarkupImportError
from worksheet_toolkit.layout import FixedHeightMeasurer
from worksheet_toolkit.session import EditorSession


@pytest.fixture
def session(sample_document, virtual_clock):
    return EditorSession(sample_document, measurer=FixedHeightMeasurer({}), clock=virtual_clock)


class FakeTypesetter:
    async def typeset(self, tex, display_mode):
        return "<svg class='typeset'/>"


class TestSessionStartup:
    """State after construction."""

    def test_session_when_no_document_then_placeholder_block(self):
        session = EditorSession(measurer=FixedHeightMeasurer({}))

        assert len(session.document.blocks) == 1
        assert session.history.depth == 1
        assert session.layout.page_count == 1

    def test_session_when_concept_blank_present_then_answer_block_derived(self, session):
        # Act
        answer = session.document.blocks[-1]

        # Assert
        assert answer.type == BlockType.ANSWER
        assert answer.content == "(1) 답본문"
        concept = session.tokens["c1"][1]
        assert isinstance(concept, ConceptBlankToken)
        assert concept.assigned_index == 1

    def test_session_when_break_block_then_following_block_in_next_column(self, session):
        assert session.layout.location_of("e1") == (0, 0)
        assert session.layout.location_of("e2") == (0, 1)


class TestEditCycle:
    """edit_block -> reparse -> debounced repaginate -> history."""

    def test_edit_when_typing_in_bursts_then_one_history_entry(self, session, virtual_clock):
        # Arrange
        start = session.history.depth

        # Act
        for text in ("a", "ab", "abc"):
            virtual_clock.advance(100)
            session.edit_block("e1", text)

        # Assert
        assert session.history.depth == start + 1
        assert session.history.current().snapshot["data"]["blocks"][1]["content"] == "abc"

    def test_edit_when_typing_pauses_beyond_window_then_new_entry(self, session, virtual_clock):
        start = session.history.depth

        session.edit_block("e1", "a")
        virtual_clock.advance(2500)
        session.edit_block("e1", "ab")

        assert session.history.depth == start + 2

    def test_edit_when_unknown_block_then_false(self, session):
        assert not session.edit_block("missing", "x")

    def test_edit_when_derived_answer_block_then_false_and_unchanged(self, session):
        # Arrange
        answer = session.document.blocks[-1]
        start = session.history.depth

        # Act
        edited = session.edit_block(answer.id, "손으로 쓴 답")

        # Assert
        assert not edited
        assert answer.content == "(1) 답본문"
        assert session.history.depth == start

    def test_edit_when_concept_blank_removed_then_answer_block_removed(self, session):
        session.edit_block("c1", "정의만")

        assert all(b.type != BlockType.ANSWER for b in session.document.blocks)

    def test_edit_when_rebalance_debounced_then_layout_refreshed_after_tick(self, session, virtual_clock):
        # Arrange
        before = session.layout

        # Act
        session.edit_block("e1", "바뀐 내용")
        unchanged = session.layout is before
        virtual_clock.advance(300)
        ran = session.tick()

        # Assert
        assert unchanged
        assert ran == 1
        assert session.layout is not before

    def test_edit_when_recorded_before_repaginate_then_snapshot_has_no_layout(self, session):
        session.edit_block("e1", "새 내용")

        assert set(session.history.current().snapshot) == {"data", "settings"}

    def test_edit_when_history_debounced_then_recorded_on_tick(self, sample_document, virtual_clock):
        # Arrange
        config = EditorConfig(history_debounce_ms=500)
        session = EditorSession(sample_document, config=config, measurer=FixedHeightMeasurer({}), clock=virtual_clock)

        # Act
        session.edit_block("e1", "x")
        pending_depth = session.history.depth
        virtual_clock.advance(500)
        session.tick()

        # Assert
        assert pending_depth == 1
        assert session.history.depth == 2

    def test_undo_when_record_pending_then_flushed_first(self, sample_document, virtual_clock):
        config = EditorConfig(history_debounce_ms=500)
        session = EditorSession(sample_document, config=config, measurer=FixedHeightMeasurer({}), clock=virtual_clock)
        original = session.document.find("e1").content
        session.edit_block("e1", "x")

        assert session.undo()
        assert session.document.find("e1").content == original


class TestBlockOperations:
    """Structural edits."""

    def test_add_block_when_after_id_then_inserted_below(self, session):
        block = session.add_block("example", after_id="c1")

        assert session.document.index_of(block.id) == 1

    def test_add_block_when_before_id_then_inserted_above(self, session):
        block = session.add_block("example", before_id="c1")

        assert session.document.index_of(block.id) == 0

    def test_add_block_when_image_kind_then_placeholder_example(self, session):
        block = session.add_block("image")

        assert block.type == BlockType.EXAMPLE
        assert block.content == "[이미지: ]"

    def test_add_block_when_concept_then_default_label(self, session):
        assert session.add_block("concept").label == "개념"

    def test_add_block_when_two_col_variant_then_example_with_variant(self, session):
        block = session.add_block("concept", variant=BlockVariant.TWO_COL_CONCEPT)

        assert block.type == BlockType.EXAMPLE
        assert block.variant == BlockVariant.TWO_COL_CONCEPT

    def test_delete_block_when_undone_then_block_back(self, session):
        # Act
        deleted = session.delete_block("e1")
        gone = session.document.find("e1") is None
        session.undo()

        # Assert
        assert deleted and gone
        assert session.document.find("e1") is not None

    def test_delete_block_when_missing_then_false(self, session):
        assert not session.delete_block("missing")

    def test_move_block_when_index_out_of_range_then_clamped(self, session):
        assert session.move_block("c1", 99)
        assert session.document.blocks[-1].id == "c1"

    def test_duplicate_block_when_called_then_copy_follows_original(self, session):
        clone = session.duplicate_block("e1")

        assert clone.id.startswith("copy")
        assert session.document.index_of(clone.id) == session.document.index_of("e1") + 1
        assert clone.content == session.document.find("e1").content

    def test_split_block_when_offset_inside_math_then_math_kept_whole(self, session):
        # Arrange
        session.edit_block("e1", "ab $x+y$ cd")

        # Act
        tail = session.split_block("e1", 5)

        # Assert
        assert session.document.find("e1").content == "ab $x+y$"
        assert tail.content == " cd"
        assert tail.label is None

    def test_split_block_when_break_then_none(self, session):
        assert session.split_block("br", 0) is None

    def test_toggle_style_when_unknown_flag_then_value_error(self, session):
        with pytest.raises(ValueError):
            session.toggle_style("e1", "italic")

    def test_toggle_style_when_bordered_then_flipped(self, session):
        session.toggle_style("e1", "bordered")

        assert session.document.find("e1").bordered

    def test_set_alignment_when_invalid_then_value_error(self, session):
        with pytest.raises(ValueError):
            session.set_alignment("e1", "justify")

    def test_set_font_when_default_then_override_cleared(self, session):
        session.set_font("e1", "gothic", 12)
        session.set_font("e1", "default", 0)

        block = session.document.find("e1")
        assert (block.font_family, block.font_size_pt) == (None, None)

    def test_set_spacer_height_when_too_small_then_minimum(self, session):
        spacer = session.add_block("spacer")

        session.set_spacer_height(spacer.id, 2)

        assert session.document.find(spacer.id).height == 10

    def test_set_page_columns_when_single_then_layout_uses_one_column(self, session):
        session.set_page_columns(1, 1)

        assert session.layout.pages[0].column_count == 1

    def test_set_page_columns_when_three_then_value_error(self, session):
        with pytest.raises(ValueError):
            session.set_page_columns(1, 3)

    def test_update_meta_when_unknown_field_then_attribute_error(self, session):
        with pytest.raises(AttributeError):
            session.update_meta(author="x")

    def test_update_settings_when_columns_changed_then_repaginated(self, session):
        session.update_settings(columns=1)

        assert all(page.column_count == 1 for page in session.layout.pages)


class TestImportExport:
    """Import, export and persistence."""

    def test_import_text_when_markup_then_blocks_appended(self, session):
        start = session.history.depth

        result = session.import_text("[[5]] : 새 문제")

        assert result.source == "markup"
        assert any(b.content == "새 문제" for b in session.document.blocks)
        assert session.history.depth == start + 1

    def test_import_text_when_empty_then_error(self, session):
        with pytest.raises(MarkupImportError):
            session.import_text("  ")

    def test_export_markup_when_called_then_header_dialect(self, session):
        text = session.export_markup(include_meta=False)

        assert text.startswith("[[개념_개념1]] : ")
        assert "(1) 답본문" not in text

    def test_save_and_load_when_round_trip_then_same_blocks(self, session, tmp_path, virtual_clock):
        # Arrange
        path = tmp_path / "project.json"
        session.edit_block("e1", "저장할 내용")

        # Act
        session.save(path)
        other = EditorSession(measurer=FixedHeightMeasurer({}), clock=virtual_clock)
        other.load(path)

        # Assert
        assert other.document.find("e1").content == "저장할 내용"
        assert other.history.depth == 1

    def test_recover_autosave_when_draft_exists_then_document_restored(self, sample_document, tmp_path):
        # Arrange
        config = EditorConfig(autosave_path=tmp_path / "draft.json")
        first = EditorSession(sample_document, config=config, measurer=FixedHeightMeasurer({}))
        first.edit_block("e1", "임시 저장")

        # Act
        second = EditorSession(config=config, measurer=FixedHeightMeasurer({}))
        recovered = second.recover_autosave()

        # Assert
        assert recovered
        assert second.document.find("e1").content == "임시 저장"
        assert second.history.depth == 1

    def test_recover_autosave_when_no_draft_then_false(self, tmp_path):
        config = EditorConfig(autosave_path=tmp_path / "draft.json")

        assert not EditorSession(config=config, measurer=FixedHeightMeasurer({})).recover_autosave()


class TestRendering:
    """Rendering and typesetting."""

    def test_render_block_when_unknown_then_none(self, session):
        assert session.render_block("missing") is None

    def test_render_block_when_no_typesetter_then_pending_math(self, session):
        assert "math-pending" in session.render_block("e1")

    def test_typeset_block_when_typesetter_then_node_rendered(self, sample_document):
        # Arrange
        session = EditorSession(sample_document, measurer=FixedHeightMeasurer({}), typesetter=FakeTypesetter())

        # Act
        count = asyncio.run(session.typeset_block("e1"))

        # Assert
        assert count == 1
        assert "<svg class='typeset'/>" in session.render_block("e1")

    def test_session_when_typesetter_given_then_renderer_reads_empty_cache(self, sample_document):
        session = EditorSession(sample_document, measurer=FixedHeightMeasurer({}), typesetter=FakeTypesetter())

        assert len(session.math_cache) == 0
        assert session.renderer.math_lookup == session.math_cache.peek

    def test_typeset_block_when_no_typesetter_then_zero(self, session):
        assert asyncio.run(session.typeset_block("e1")) == 0

    def test_render_all_when_called_then_every_block(self):
        session = EditorSession(Document(), measurer=FixedHeightMeasurer({}))

        assert session.render_all() == {}
