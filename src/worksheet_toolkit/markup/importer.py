"""
Module: markup.importer

Purpose:
    Turn pasted import text into blocks. Three input shapes are accepted:

    - Header dialect: ``[[style[,style]_label]] : body`` chunks, with
      optional ``[[머릿말_과정]]`` / ``[[머릿말_단원]]`` / ``[[꼬릿말:..]]`` meta
    - JSON: a list (or single object) of block dicts
    - Data-item HTML: ``<div class="data-item">`` exports

    Block bodies stay canonical markup; the tokenizer parses them when the
    document is reparsed.

Key Classes:
    - ImportResult: Blocks + meta overrides found in the text
    - HeaderInfo: Parsed chunk header

Key Functions:
    - parse_import(): Text -> ImportResult
    - parse_header(): "박스,개념_개념1" -> HeaderInfo
    - parse_json_import(): JSON text -> blocks
    - expand_imported_blocks(): Insert spacers and column breaks
    - import_into_document(): Append / replace blocks on a document
    - normalize_llm_output(): Clean up LLM-generated import text

Dependencies:
    - json (std)
    - markup.html_items: Data-item HTML
    - markup.math_regions: Environment protection

Used By:
    - session.EditorSession.import_text
    - cli: import command
"""

from __future__ import annotations

import itertools
import json
import logging
import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from worksheet_toolkit.core.models import (
    Block,
    BlockType,
    BlockVariant,
    Document,
    DEFAULT_SPACER_HEIGHT,
    new_block_id,
)
from worksheet_toolkit.errors import MarkupImportError

from .grammar import (
    CONCEPT_LABEL_PATTERN,
    DEFAULT_STYLE,
    FOOTER_PATTERN,
    HEADER_COURSE_PATTERN,
    HEADER_UNIT_PATTERN,
    STYLE_BOXED,
    STYLE_CONCEPT,
    STYLE_SHADED,
    VARIANT_STYLES,
)
from .math_regions import protect_math_environments

logger = logging.getLogger(__name__)


@dataclass
class ImportResult:
    """
    Outcome of parsing import text.

    Attributes:
        blocks: Parsed blocks, in order, with fresh ids
        meta: Meta overrides ("title", "subtitle", "footer_text")
        source: "markup", "json" or "html"
    """
    blocks: List[Block] = field(default_factory=list)
    meta: Dict[str, str] = field(default_factory=dict)
    source: str = "markup"


@dataclass(frozen=True)
class HeaderInfo:
    """Parsed ``[[...]]`` header."""
    styles: tuple
    label: Optional[str]

    def has_style(self, name: str) -> bool:
        return name in self.styles

    @property
    def is_concept(self) -> bool:
        if self.has_style(STYLE_CONCEPT):
            return True
        return bool(self.label and CONCEPT_LABEL_PATTERN.match(self.label))

    @property
    def variant(self) -> Optional[BlockVariant]:
        for style in self.styles:
            if style in VARIANT_STYLES:
                return BlockVariant(VARIANT_STYLES[style])
        return None


def parse_header(header: str) -> HeaderInfo:
    """
    Parse a chunk header.

    Without "_" the whole header is the label and the style is 기본; with
    several "_" the last segment is the label and the others are styles.

    Example:
        >>> parse_header("박스_개념_개념1")
        HeaderInfo(styles=('박스', '개념'), label='개념1')
        >>> parse_header("라벨1")
        HeaderInfo(styles=('기본',), label='라벨1')
    """
    clean = header.strip()
    if "_" not in clean:
        label = None if clean in ("", DEFAULT_STYLE) else clean
        return HeaderInfo(styles=(DEFAULT_STYLE,), label=label)
    *style_parts, label = clean.split("_")
    styles = tuple(
        s.strip() for part in style_parts for s in part.split(",") if s.strip()
    )
    return HeaderInfo(styles=styles or (DEFAULT_STYLE,), label=label.strip() or None)


def _rewrite_concept_boxes(content: str) -> str:
    content = re.sub(r"\[블록박스_[^\]]*\]", "[블록사각형]", content)
    return content.replace("[/블록박스]", "[/블록사각형]")


def extract_header_meta(text: str) -> tuple:
    """
    Strip header/footer meta tokens from import text.

    Returns:
        (remaining_text, meta_dict)

    Example:
        >>> extract_header_meta("[[머릿말_과정]] 중2 수학\\n[[꼬릿말:학원]]")[1]
        {'title': '중2 수학', 'footer_text': '학원'}
    """
    meta: Dict[str, str] = {}

    def _take(pattern: re.Pattern, key: str, source: str) -> str:
        match = pattern.search(source)
        if match is None:
            return source
        value = match.group(1).strip()
        if value:
            meta[key] = value
        return source[:match.start()] + source[match.end():]

    text = _take(HEADER_COURSE_PATTERN, "title", text)
    text = _take(HEADER_UNIT_PATTERN, "subtitle", text)
    text = _take(FOOTER_PATTERN, "footer_text", text)
    return text, meta


def parse_markup_import(text: str) -> List[Block]:
    """Parse header-dialect text into blocks (meta tokens already removed)."""
    blocks: List[Block] = []
    for chunk in text.split("[["):
        if not chunk.strip():
            continue
        close_idx = chunk.find("]]")
        if close_idx == -1:
            logger.debug(f"Skipping chunk without header close: {chunk[:30]!r}")
            continue
        header = parse_header(chunk[:close_idx])
        content = chunk[close_idx + 2:].strip()
        if content.startswith(":"):
            content = content[1:].strip()

        is_concept = header.is_concept
        if is_concept:
            content = _rewrite_concept_boxes(content)

        blocks.append(Block(
            id=new_block_id("imp"),
            type=BlockType.CONCEPT if is_concept else BlockType.EXAMPLE,
            content=content,
            label=header.label,
            bordered=header.has_style(STYLE_BOXED),
            bg_gray=header.has_style(STYLE_SHADED),
            variant=header.variant,
        ))
    return blocks


def _looks_like_json(text: str) -> bool:
    return text.startswith("{") or (text.startswith("[") and not text.startswith("[["))


def _looks_like_data_items(text: str) -> bool:
    return "<div" in text and "data-item" in text


def _block_from_json(item: Dict[str, Any]) -> Block:
    return Block(
        id=new_block_id("imp_json"),
        type=BlockType.parse(item.get("type")),
        content=str(item.get("content") or ""),
        label=item.get("label") or None,
        bordered=bool(item.get("bordered", False)),
        bg_gray=bool(item.get("bgGray", item.get("bg_gray", False))),
        height=item.get("height"),
    )


def parse_json_import(text: str) -> List[Block]:
    """
    Parse a JSON list (or single object) of block dicts.

    Raises:
        MarkupImportError: If the JSON is malformed or not made of objects
    """
    try:
        parsed = json.loads(text)
    except json.JSONDecodeError as e:
        raise MarkupImportError(
            f"JSON 형식이 올바르지 않습니다 (line {e.lineno}, column {e.colno})",
            source="json",
        ) from e
    items = parsed if isinstance(parsed, list) else [parsed]
    blocks = []
    for idx, item in enumerate(items):
        if not isinstance(item, dict):
            raise MarkupImportError(f"JSON item {idx} is not an object", source="json")
        blocks.append(_block_from_json(item))
    return blocks


def parse_import(text: str, *, normalize_llm: bool = False) -> ImportResult:
    """
    Parse import text of any supported shape.

    Args:
        text: Pasted text
        normalize_llm: Run normalize_llm_output() on header-dialect input

    Returns:
        ImportResult with blocks and meta overrides

    Raises:
        MarkupImportError: Malformed JSON
    """
    stripped = (text or "").strip()
    if not stripped:
        return ImportResult()

    if _looks_like_json(stripped):
        blocks = parse_json_import(stripped)
        logger.info(f"Parsed {len(blocks)} block(s) from JSON import")
        return ImportResult(blocks=blocks, source="json")

    if _looks_like_data_items(stripped):
        from .html_items import parse_data_items

        blocks = parse_data_items(stripped)
        logger.info(f"Parsed {len(blocks)} block(s) from data-item HTML")
        return ImportResult(blocks=blocks, source="html")

    body = normalize_llm_output(stripped) if normalize_llm else stripped
    body, meta = extract_header_meta(body)
    blocks = parse_markup_import(body)
    logger.info(f"Parsed {len(blocks)} block(s) from markup import")
    return ImportResult(blocks=blocks, meta=meta, source="markup")


def expand_imported_blocks(blocks: List[Block], limit: int = 0, add_spacer: bool = False) -> List[Block]:
    """
    Insert spacers and column breaks between imported blocks.

    A spacer follows each counting block when ``add_spacer`` is set, and a
    break follows every ``limit`` counting blocks, never after the last
    block. Answer blocks and shaded blocks do not count.

    Example:
        >>> blocks = [Block(id=str(i)) for i in range(3)]
        >>> [b.type.value for b in expand_imported_blocks(blocks, limit=2)]
        ['example', 'example', 'break', 'example']
    """
    processed: List[Block] = []
    count_in_column = 0
    last = len(blocks) - 1
    for idx, block in enumerate(blocks):
        processed.append(block)
        if block.counts_towards_limit:
            count_in_column += 1
            if add_spacer:
                processed.append(Block(id=new_block_id("sp"), type=BlockType.SPACER, height=DEFAULT_SPACER_HEIGHT))
        if limit > 0 and count_in_column >= limit and idx < last:
            processed.append(Block(id=new_block_id("br"), type=BlockType.BREAK))
            count_in_column = 0
    return processed


def import_into_document(
    document: Document,
    text: str,
    *,
    overwrite: bool = False,
    limit: int = 0,
    add_spacer: bool = False,
    normalize_llm: bool = False,
) -> ImportResult:
    """
    Parse ``text`` and append its blocks to (or replace the blocks of) a document.

    Meta found in the header dialect overrides the document meta. Ids that
    collide with blocks already in the document are regenerated.

    Raises:
        MarkupImportError: Malformed JSON or no blocks found
    """
    result = parse_import(text, normalize_llm=normalize_llm)
    if not result.blocks:
        raise MarkupImportError("가져올 블록이 없습니다", source=result.source)

    processed = expand_imported_blocks(result.blocks, limit=limit, add_spacer=add_spacer)
    existing = set() if overwrite else {b.id for b in document.blocks}
    for block in processed:
        if block.id in existing:
            block.id = new_block_id("imp")
        existing.add(block.id)

    document.blocks = processed if overwrite else document.blocks + processed
    for key, value in result.meta.items():
        setattr(document.meta, key, value)
    logger.info(
        f"Imported {len(result.blocks)} block(s) "
        f"({'overwrite' if overwrite else 'append'}, limit={limit}, spacer={add_spacer})"
    )
    return result


# ─────────────────────────────────────────────────────────────────────────────
# LLM output normalization
# ─────────────────────────────────────────────────────────────────────────────

_FENCED = re.compile(r"^```[^\n]*\n([\s\S]*?)\n```$")
_FENCE_OPEN = re.compile(r"^\s*```[^\n]*\n?", re.MULTILINE)
_FENCE_CLOSE = re.compile(r"\n?\s*```\s*$", re.MULTILINE)
_CHOICE_HEAD = re.compile(r"\[선지_([^\]]+)\]\s*:?\s*")
_CONCEPT_BOX = re.compile(r"\[블록박스_개념\]\s*([\s\S]*?)\s*\[/블록박스\]")
_CONCEPT_HEADER = re.compile(r"\[\[(박스_개념(?:\s*\d+)?|개념_[^\]]+)\]\]")


def normalize_llm_output(text: str) -> str:
    """
    Clean up import text produced by a language model.

    Removes code fences and ``**`` emphasis, collapses display math to
    inline math, prefers ``\\dfrac`` and ``\\cdots``, protects matrix-like
    environments, drops invalid choice layouts and turns concept boxes into
    numbered ``[[박스_개념 n]]`` headers.
    """
    result = (text or "").strip()
    fenced = _FENCED.match(result)
    if fenced:
        result = fenced.group(1).strip()
    result = _FENCE_CLOSE.sub("", _FENCE_OPEN.sub("", result))
    result = re.sub(r"\*\*([^*]+?)\*\*", r"\1", result).replace("**", "")
    result = re.sub(r"\$\$([\s\S]*?)\$\$", lambda m: f"${m.group(1)}$", result)
    result = re.sub(r"\\frac(?![a-zA-Z])", r"\\dfrac", result)
    result = re.sub(r"\\cdot(?:\s*\\cdot){2}", r"\\cdots", result)
    result = protect_math_environments(result)

    def _choice(match: re.Match) -> str:
        return match.group(0) if match.group(1).strip() in ("1행", "2행", "5행") else ""

    result = _CHOICE_HEAD.sub(_choice, result)
    result = _CONCEPT_BOX.sub(lambda m: f"[[박스_개념]] :\n{m.group(1).strip()}", result)
    result = re.sub(r"\[/?블록박스_개념\]", "", result)

    counter = itertools.count(1)
    result = _CONCEPT_HEADER.sub(lambda m: f"[[박스_개념 {next(counter)}]]", result)
    return result.strip()
