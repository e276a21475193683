"""
Module: session

Purpose:
    The editing session. Owns the document, settings, concept blank
    tracker, token cache, current page layout, history and timers, and
    runs the edit cycle:

        edit block -> reparse -> (debounced) repaginate -> history record

    Nothing here is global: a host creates one EditorSession per open
    document and drives its timers with tick().

Key Classes:
    - EditorSession: Document operations, undo/redo, load/save, rendering

Dependencies:
    - markup: Tokenizer, concept blanks, import/export, rendering
    - layout: Pagination
    - history: Undo/redo, scheduler, autosave
    - typeset: Math node cache (optional)

Used By:
    - cli: Batch import / export / paginate
    - Host applications (rendering surface, persistence UI)
"""

from __future__ import annotations

import copy
import logging
from pathlib import Path
from typing import Dict, List, Optional, Union

from worksheet_toolkit.config import EditorConfig
from worksheet_toolkit.core.models import (
    Block,
    BlockType,
    BlockVariant,
    Document,
    Settings,
    TEXT_ALIGNMENTS,
    Token,
    new_block_id,
)
from worksheet_toolkit.core.utils.images import ImageResolver
from worksheet_toolkit.core.utils.serialization import (
    default_block,
    load_project,
    project_from_dict,
    project_to_dict,
    save_project,
)
from worksheet_toolkit.history import (
    REASON_MANUAL,
    REASON_TYPING,
    AutosaveStore,
    Clock,
    HistoryEngine,
    Scheduler,
    build_snapshot,
)
from worksheet_toolkit.layout import BlockMeasurer, PageLayout, TextHeightEstimator, paginate
from worksheet_toolkit.markup import (
    ConceptBlankTracker,
    HtmlRenderer,
    ImportResult,
    export_data_items,
    export_markup,
    import_into_document,
    render_block,
    split_math_regions,
    sync_answer_block,
)
from worksheet_toolkit.markup.tokenizer import tokenize
from worksheet_toolkit.typeset import MathNodeCache, MathTypesetter

logger = logging.getLogger(__name__)

REBALANCE_TASK = "session.rebalance"

CONCEPT_DEFAULT_LABEL = "개념"
DEFAULT_NEW_CONTENT = "내용 입력..."
IMAGE_PLACEHOLDER_MARKUP = "[이미지: ]"
STYLE_FLAGS = ("bordered", "bg_gray")


class EditorSession:
    """
    One open worksheet.

    Attributes:
        document: The document being edited
        settings: Page and typography settings
        config: Session configuration
        tracker: Concept blank numbering from the last reparse
        tokens: Block id -> tokens from the last reparse
        layout: Page layout from the last repaginate
        history: Undo/redo engine
        scheduler: Debounce timers (run with tick())

    Example:
        >>> session = EditorSession()
        >>> block = session.add_block("example")
        >>> session.edit_block(block.id, "$x^2$ [빈칸:a]")
        True
        >>> session.undo()
        True
    """

    def __init__(
        self,
        document: Optional[Document] = None,
        settings: Optional[Settings] = None,
        *,
        config: Optional[EditorConfig] = None,
        measurer: Optional[BlockMeasurer] = None,
        clock: Optional[Clock] = None,
        typesetter: Optional[MathTypesetter] = None,
        image_root: Optional[Path] = None,
    ):
        self.config = config or EditorConfig()
        self.document = document or Document(blocks=[default_block()])
        self.settings = settings or Settings()
        self.image_root = image_root
        self.scheduler = Scheduler(clock)
        self.tracker = ConceptBlankTracker()
        self.tokens: Dict[str, List[Token]] = {}
        self.layout: Optional[PageLayout] = None

        self._custom_measurer = measurer
        self.measurer: BlockMeasurer = measurer or TextHeightEstimator(self.settings, image_root=image_root)

        self.math_cache = MathNodeCache(typesetter) if typesetter is not None else None
        self.renderer = HtmlRenderer(math_lookup=self.math_cache.peek if self.math_cache is not None else None)

        self.autosave = AutosaveStore(self.config.autosave_path) if self.config.autosave_path else None
        self.history = HistoryEngine(
            self._capture,
            self._restore,
            limit=self.config.history_limit,
            coalesce_ms=self.config.coalesce_ms,
            scheduler=self.scheduler,
        )

        self.reparse()
        self.repaginate()
        self.history.record()
        # A draft left by an earlier session stays on disk until the first edit
        self.history.autosave = self.autosave

    # ─────────────────────────────────────────────────────────────────────
    # Edit cycle
    # ─────────────────────────────────────────────────────────────────────

    def reparse(self) -> bool:
        """
        Tokenize every block in document order and refresh the answer block.

        Concept blanks are numbered from 1 on every call.

        Returns:
            True if the derived answer block was added, removed or changed
        """
        self.tracker.reset()
        tokens: Dict[str, List[Token]] = {}
        for block in self.document.blocks:
            if block.type.has_content and not block.is_derived:
                tokens[block.id] = tokenize(block.content, self.tracker)

        changed = sync_answer_block(self.document, self.tracker)
        for block in self.document.blocks:
            if block.is_derived and block.type.has_content:
                tokens[block.id] = tokenize(block.content)
        self.tokens = tokens
        return changed

    def repaginate(self) -> PageLayout:
        """Flow and rebalance the whole document."""
        self.scheduler.cancel(REBALANCE_TASK)
        layout_config = self.config.layout.for_settings(self.settings)
        self.layout = paginate(self.document.blocks, self.measurer, layout_config, self.settings)
        return self.layout

    def schedule_repaginate(self) -> None:
        """Repaginate after the rebalance debounce; repeated calls collapse."""
        if self.config.rebalance_debounce_ms <= 0:
            self.repaginate()
            return
        self.scheduler.schedule(REBALANCE_TASK, self.config.rebalance_debounce_ms, self.repaginate)

    def commit(self, reason: str = REASON_MANUAL, block_id: Optional[str] = None) -> bool:
        """Reparse, repaginate and record a history entry (structural edits)."""
        self.reparse()
        self.repaginate()
        return self.history.record(reason, block_id)

    def tick(self) -> int:
        """Run due timers. Hosts call this from their event loop."""
        return self.scheduler.run_due()

    def flush(self) -> int:
        """Run every pending timer now (before saving or closing)."""
        return self.scheduler.flush()

    def edit_block(self, block_id: str, content: str) -> bool:
        """
        Replace a block's content as the user types.

        Reparses immediately, repaginates after the rebalance debounce and
        records a coalescing "typing" history entry. The snapshot holds no
        layout, so it may be taken before the pending repaginate runs.

        Returns:
            False if the block does not exist, cannot hold content or is
            derived (the answer key is rebuilt on every reparse)
        """
        block = self.document.find(block_id)
        if block is None or not block.type.has_content or block.is_derived:
            return False
        block.content = content
        self.reparse()
        self.schedule_repaginate()
        self.history.record_later(
            self.config.history_debounce_ms,
            reason=REASON_TYPING,
            block_id=block_id,
            coalesce_ms=self.config.coalesce_ms,
        )
        return True

    # ─────────────────────────────────────────────────────────────────────
    # Block operations
    # ─────────────────────────────────────────────────────────────────────

    def _new_block(self, kind: Union[str, BlockType], variant: Optional[BlockVariant], label: Optional[str]) -> Block:
        if str(kind) == "image":
            return Block(id=new_block_id("b"), type=BlockType.EXAMPLE, content=IMAGE_PLACEHOLDER_MARKUP, label=label)
        block_type = BlockType.parse(kind)
        if variant is not None:
            return Block(
                id=new_block_id("b"),
                type=BlockType.EXAMPLE if variant == BlockVariant.TWO_COL_CONCEPT else BlockType.CONCEPT,
                content=DEFAULT_NEW_CONTENT,
                label=label,
                variant=variant,
            )
        if block_type == BlockType.CONCEPT:
            return Block(id=new_block_id("b"), type=block_type, label=label or CONCEPT_DEFAULT_LABEL)
        return Block(id=new_block_id("b"), type=block_type, label=label)

    def add_block(
        self,
        kind: Union[str, BlockType] = BlockType.EXAMPLE,
        *,
        after_id: Optional[str] = None,
        before_id: Optional[str] = None,
        variant: Optional[BlockVariant] = None,
        label: Optional[str] = None,
    ) -> Block:
        """
        Insert a new block.

        Args:
            kind: Block type, or "image" for an example holding an image
                placeholder
            after_id: Insert below this block (default: end of document)
            before_id: Insert above this block
            variant: Concept layout variant
            label: Question label

        Returns:
            The inserted block
        """
        block = self._new_block(kind, variant, label)
        if before_id is not None and self.document.index_of(before_id) >= 0:
            position = self.document.index_of(before_id)
        elif after_id is not None and self.document.index_of(after_id) >= 0:
            position = self.document.index_of(after_id) + 1
        else:
            position = len(self.document.blocks)
        self.document.blocks.insert(position, block)
        self.commit()
        return block

    def delete_block(self, block_id: str) -> bool:
        before = len(self.document.blocks)
        self.document.blocks = [b for b in self.document.blocks if b.id != block_id]
        if len(self.document.blocks) == before:
            return False
        self.commit()
        return True

    def move_block(self, block_id: str, new_index: int) -> bool:
        """Move a block to ``new_index`` (clamped to the document)."""
        index = self.document.index_of(block_id)
        if index < 0:
            return False
        new_index = max(0, min(new_index, len(self.document.blocks) - 1))
        if new_index == index:
            return False
        block = self.document.blocks.pop(index)
        self.document.blocks.insert(new_index, block)
        self.commit()
        return True

    def duplicate_block(self, block_id: str) -> Optional[Block]:
        index = self.document.index_of(block_id)
        if index < 0:
            return None
        clone = copy.deepcopy(self.document.blocks[index])
        clone.id = new_block_id("copy")
        clone.derived = None
        self.document.blocks.insert(index + 1, clone)
        self.commit()
        return clone

    def split_block(self, block_id: str, position: int) -> Optional[Block]:
        """
        Split a content block at a character offset of its markup.

        An offset inside a math region moves to the end of that region, so
        math is never cut in two. The new block copies the original's style.
        """
        index = self.document.index_of(block_id)
        if index < 0:
            return None
        base = self.document.blocks[index]
        if not base.type.has_content or base.is_derived:
            return None

        content = base.content
        position = max(0, min(position, len(content)))
        for region in split_math_regions(content):
            if region.is_math and region.start < position < region.end:
                position = region.end
                break

        tail = copy.deepcopy(base)
        tail.id = new_block_id("b")
        tail.label = None
        tail.content = content[position:]
        base.content = content[:position]
        self.document.blocks.insert(index + 1, tail)
        self.commit()
        return tail

    def toggle_style(self, block_id: str, flag: str) -> bool:
        """Flip ``bordered`` or ``bg_gray``."""
        if flag not in STYLE_FLAGS:
            raise ValueError(f"Unknown style flag: {flag}")
        block = self.document.find(block_id)
        if block is None:
            return False
        setattr(block, flag, not getattr(block, flag))
        self.commit()
        return True

    def set_alignment(self, block_id: str, align: Optional[str]) -> bool:
        if align is not None and align not in TEXT_ALIGNMENTS:
            raise ValueError(f"Unknown alignment: {align}")
        block = self.document.find(block_id)
        if block is None:
            return False
        block.text_align = align
        self.commit()
        return True

    def set_font(self, block_id: str, family: Optional[str] = None, size_pt: Optional[float] = None) -> bool:
        """Per-block font override; "default", empty or non-positive values clear it."""
        block = self.document.find(block_id)
        if block is None:
            return False
        block.font_family = family if family and family != "default" else None
        block.font_size_pt = size_pt if size_pt and size_pt > 0 else None
        self.commit()
        return True

    def set_spacer_height(self, block_id: str, height: float) -> bool:
        block = self.document.find(block_id)
        if block is None or block.type != BlockType.SPACER:
            return False
        block.height = max(10, height)
        self.commit()
        return True

    def update_meta(self, **fields) -> None:
        """Set title / subtitle / footer_text."""
        for key, value in fields.items():
            if not hasattr(self.document.meta, key):
                raise AttributeError(f"Unknown meta field: {key}")
            setattr(self.document.meta, key, value)
        self.commit()

    def update_settings(self, **fields) -> None:
        """Set settings fields and repaginate with the new geometry."""
        for key, value in fields.items():
            if not hasattr(self.settings, key):
                raise AttributeError(f"Unknown settings field: {key}")
            setattr(self.settings, key, value)
        self._reset_measurer()
        self.commit()

    def set_page_columns(self, page_number: int, columns: Optional[int]) -> None:
        """Override the column count of one page (None restores the default)."""
        key = str(page_number)
        if columns is None:
            self.settings.page_layouts.pop(key, None)
        elif columns in (1, 2):
            self.settings.page_layouts[key] = columns
        else:
            raise ValueError(f"Pages have 1 or 2 columns, got {columns}")
        self.commit()

    def import_text(
        self,
        text: str,
        *,
        overwrite: bool = False,
        limit: int = 0,
        add_spacer: bool = False,
        normalize_llm: bool = False,
    ) -> ImportResult:
        """
        Import markup, JSON or data-item HTML into the document.

        Raises:
            MarkupImportError: Malformed JSON or nothing to import
        """
        result = import_into_document(
            self.document,
            text,
            overwrite=overwrite,
            limit=limit,
            add_spacer=add_spacer,
            normalize_llm=normalize_llm,
        )
        self.commit()
        return result

    # ─────────────────────────────────────────────────────────────────────
    # History
    # ─────────────────────────────────────────────────────────────────────

    def _capture(self):
        return build_snapshot(self.document, self.settings)

    def _restore(self, snapshot: dict) -> None:
        self.document, self.settings = project_from_dict(snapshot, ensure_at_least_one=False)
        self._reset_measurer()
        self.reparse()
        self.repaginate()

    def undo(self) -> bool:
        """Undo; a pending typing record is committed first."""
        self.history.flush_pending()
        return self.history.undo()

    def redo(self) -> bool:
        self.history.flush_pending()
        return self.history.redo()

    def recover_autosave(self) -> bool:
        """
        Replace the document with the autosaved draft, if there is one.

        History restarts from the recovered state.
        """
        snapshot = self.history.load_autosave()
        if snapshot is None:
            return False
        self._restore(snapshot)
        self.history.clear()
        self.history.record()
        logger.info(f"Recovered autosaved draft with {len(self.document.blocks)} block(s)")
        return True

    # ─────────────────────────────────────────────────────────────────────
    # Persistence
    # ─────────────────────────────────────────────────────────────────────

    def _reset_measurer(self) -> None:
        if self._custom_measurer is None:
            self.measurer = TextHeightEstimator(self.settings, image_root=self.image_root)

    def to_dict(self) -> dict:
        return project_to_dict(self.document, self.settings)

    def save(self, path: Path) -> Path:
        """Commit pending work and write the project file."""
        self.flush()
        return save_project(path, self.document, self.settings)

    def load(self, path: Path, *, resolver: Optional[ImageResolver] = None, validate: bool = False) -> None:
        """Load a project file, replacing the document and restarting history."""
        self.scheduler.cancel_all()
        self.document, self.settings = load_project(path, resolver=resolver, validate=validate)
        self._reset_measurer()
        self.history.clear()
        self.commit()
        logger.info(f"Loaded project {Path(path).name} ({len(self.document.blocks)} blocks)")

    def export_markup(self, *, include_meta: bool = True) -> str:
        return export_markup(self.document, include_meta=include_meta)

    def export_data_items(self) -> str:
        return export_data_items(self.document)

    # ─────────────────────────────────────────────────────────────────────
    # Rendering
    # ─────────────────────────────────────────────────────────────────────

    def render_block(self, block_id: str) -> Optional[str]:
        """Host HTML for one block (None for unknown ids)."""
        block = self.document.find(block_id)
        if block is None:
            return None
        return render_block(block, self.tokens.get(block_id, []), self.renderer)

    def render_all(self) -> Dict[str, str]:
        return {block.id: self.render_block(block.id) for block in self.document.blocks}

    async def typeset_block(self, block_id: str) -> int:
        """
        Typeset the math of one block into the cache.

        Returns:
            Number of math regions now available as nodes (0 without a
            typesetter)
        """
        if self.math_cache is None:
            return 0
        tokens = self.tokens.get(block_id)
        if not tokens:
            return 0
        return await self.math_cache.typeset_tokens(tokens, owner=block_id)
