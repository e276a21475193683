"""
Image Reference Utilities

Loaded images live in block content as ``<img src=".." data-path="..">``.
In memory ``src`` may point at a session URL; on disk it must be the stable
relative ``data-path``. Only the tags are touched, the surrounding markup is
never reparsed as HTML.
"""

from __future__ import annotations

import re
from typing import Callable, Optional

from bs4 import BeautifulSoup

IMG_TAG_PATTERN = re.compile(r"<img\b[^>]*>", re.IGNORECASE)

# Sources that are already absolute / session-bound and need no resolving
_ABSOLUTE_PREFIXES = ("data:", "blob:", "http://", "https://", "file:")

ImageResolver = Callable[[str], Optional[str]]


def is_relative_ref(src: str) -> bool:
    """True for relative paths such as ``images/a.png``."""
    return bool(src) and not src.lower().startswith(_ABSOLUTE_PREFIXES) and not src.startswith("/")


def _rewrite_tags(content: str, rewrite: Callable) -> str:
    if not content or "<img" not in content.lower():
        return content

    def _one(match: re.Match) -> str:
        soup = BeautifulSoup(match.group(0), "html.parser")
        img = soup.find("img")
        if img is None:
            return match.group(0)
        rewrite(img)
        return str(img)

    return IMG_TAG_PATTERN.sub(_one, content)


def normalize_image_refs(content: str) -> str:
    """
    Point every image at its stable path before saving.

    Example:
        >>> normalize_image_refs('a <img src="blob:x" data-path="images/p.png"> b')
        'a <img src="images/p.png" data-path="images/p.png"/> b'
    """
    def _rewrite(img) -> None:
        path = img.get("data-path")
        if path:
            img["src"] = path

    return _rewrite_tags(content, _rewrite)


def rehydrate_image_refs(content: str, resolver: ImageResolver) -> str:
    """
    Resolve relative image paths to session sources after loading.

    The relative path is kept in ``data-path``; ``src`` becomes whatever the
    resolver returns. Unresolvable images keep their relative source.
    """
    def _rewrite(img) -> None:
        src = img.get("src") or ""
        path = img.get("data-path") or (src if is_relative_ref(src) else None)
        if not path:
            return
        img["data-path"] = path
        resolved = resolver(path)
        if resolved:
            img["src"] = resolved

    return _rewrite_tags(content, _rewrite)
