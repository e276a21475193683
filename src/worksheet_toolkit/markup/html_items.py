"""
Module: markup.html_items

Purpose:
    Data-item HTML exchange format. Each block is one
    ``<div class="data-item">`` carrying its flags as data attributes and its
    markup in a ``.data-content`` child.

Key Functions:
    - parse_data_items(): HTML -> blocks
    - export_data_items(): Document -> HTML

Dependencies:
    - bs4: HTML parsing and building

Used By:
    - markup.importer.parse_import
    - cli: export --format html
"""

from __future__ import annotations

import logging
from typing import List, Optional

from bs4 import BeautifulSoup, Tag

from worksheet_toolkit.core.models import Block, BlockType, Document, new_block_id

from .html_text import NBSP

logger = logging.getLogger(__name__)

_TRUE_VALUES = ("1", "true", "yes", "on")


def _flag(element: Tag, name: str) -> bool:
    value = element.get(name)
    return value is not None and str(value).strip().lower() in _TRUE_VALUES


def _height(value) -> Optional[float]:
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    return number if number > 0 else None


def _content_text(element: Tag) -> str:
    """Markup stored in the item, <br> read as newlines."""
    content = element.select_one(".data-content") or element
    for br in content.find_all("br"):
        br.replace_with("\n")
    return content.get_text().replace(NBSP, " ").strip()


def parse_data_items(html: str) -> List[Block]:
    """
    Parse ``div.data-item`` elements into blocks.

    Unknown ``data-type`` values fall back to example.

    Example:
        >>> html = '<div class="data-item" data-type="concept"><div class="data-content">x</div></div>'
        >>> [(b.type.value, b.content) for b in parse_data_items(html)]
        [('concept', 'x')]
    """
    soup = BeautifulSoup(html, "html.parser")
    blocks: List[Block] = []
    for item in soup.select("div.data-item"):
        block_type = BlockType.parse(item.get("data-type"))
        height = item.get("data-height")
        blocks.append(Block(
            id=new_block_id("imp_html"),
            type=block_type,
            content=_content_text(item) if block_type.has_content else "",
            label=item.get("data-label") or None,
            bordered=_flag(item, "data-bordered"),
            bg_gray=_flag(item, "data-bg-gray"),
            height=_height(height) if block_type == BlockType.SPACER else None,
        ))
    logger.debug(f"Found {len(blocks)} data item(s)")
    return blocks


def export_data_items(document: Document) -> str:
    """
    Export the document's blocks as data-item HTML.

    Derived blocks are skipped; everything else round-trips through
    parse_data_items().
    """
    soup = BeautifulSoup("", "html.parser")
    root = soup.new_tag("div", attrs={"class": "data-items"})
    soup.append(root)
    for block in document.blocks:
        if block.is_derived:
            continue
        attrs = {"class": "data-item", "data-type": block.type.value}
        if block.label:
            attrs["data-label"] = block.label
        if block.bordered:
            attrs["data-bordered"] = "true"
        if block.bg_gray:
            attrs["data-bg-gray"] = "true"
        if block.type == BlockType.SPACER:
            attrs["data-height"] = f"{block.height:g}"
        item = soup.new_tag("div", attrs=attrs)
        if block.type.has_content:
            content = soup.new_tag("div", attrs={"class": "data-content"})
            content.string = block.content
            item.append(content)
        root.append(item)
    return str(soup)
