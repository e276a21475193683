"""
Module: markup.html_text

Purpose:
    Plain-text helpers built on BeautifulSoup. Answer text, cell content and
    imported HTML fragments may carry stray tags or entities; these helpers
    reduce them to normalized text.

Key Functions:
    - strip_html(): Tag-free text with entities decoded
    - normalize_cell_text(): NBSP -> space, trimmed
    - escape_html(): Minimal escaping for the renderer

Dependencies:
    - bs4: HTML parsing

Used By:
    - markup.concept_blank, markup.serializer, markup.render
"""

from __future__ import annotations

import html

from bs4 import BeautifulSoup

NBSP = "\u00a0"


def strip_html(value: str) -> str:
    """
    Reduce an HTML fragment to its text.

    Example:
        >>> strip_html("<b>x</b>&nbsp;y")
        'x y'
    """
    if not value:
        return ""
    if "<" not in value and "&" not in value:
        return value.replace(NBSP, " ")
    text = BeautifulSoup(value, "html.parser").get_text()
    return text.replace(NBSP, " ")


def normalize_cell_text(value: str) -> str:
    """Normalize cell content for serialization."""
    return (value or "").replace(NBSP, " ").replace("&nbsp;", " ").strip()


def escape_html(value: str) -> str:
    """Escape text for HTML output (quotes included)."""
    return html.escape(value, quote=True)
