"""
Module: typeset.cache

Purpose:
    Memoised asynchronous math typesetting.
    The typesetter itself is an external collaborator (e.g. a MathJax
    bridge); this module caches its output per (normalized TeX, display
    mode), shares in-flight requests, logs failures and drops results that
    arrive after their block has moved on to different math.

Key Classes:
    - MathTypesetter: Protocol, async typeset(tex, display_mode) -> node
    - MathNodeCache: Cache + request coordination

Dependencies:
    - asyncio (std)
    - markup.render: math_tex_for() for MathTokens

Used By:
    - session.EditorSession.typeset_block()
    - markup.render.HtmlRenderer (peek() as math lookup)
"""

from __future__ import annotations

import asyncio
import logging
import re
from collections import OrderedDict
from typing import Dict, Hashable, Iterable, List, Optional, Protocol, Tuple

from worksheet_toolkit.core.models import MathToken, Token, iter_tokens
from worksheet_toolkit.markup.render import math_tex_for

logger = logging.getLogger(__name__)

CacheKey = Tuple[str, bool]

_WHITESPACE = re.compile(r"\s+")


class MathTypesetter(Protocol):
    """Turns TeX into a rendered node (HTML/SVG string). Raises on failure."""

    async def typeset(self, tex: str, display_mode: bool) -> str:
        ...


def cache_key(tex: str, display: bool) -> CacheKey:
    """
    Cache key for a TeX string: surrounding whitespace trimmed and
    internal runs collapsed.

    Example:
        >>> cache_key("  x  +\\n y ", False)
        ('x + y', False)
    """
    return _WHITESPACE.sub(" ", tex.strip()), bool(display)


class MathNodeCache:
    """
    Cache of typeset math nodes.

    Attributes:
        typesetter: Async collaborator producing nodes
        max_entries: Least recently used entries beyond this are dropped

    Example:
        >>> cache = MathNodeCache(typesetter)
        >>> node = asyncio.run(cache.get("x^2", False))
        >>> cache.peek("x^2", False) == node
        True
    """

    def __init__(self, typesetter: MathTypesetter, max_entries: int = 1000):
        if max_entries < 1:
            raise ValueError(f"max_entries must be at least 1: {max_entries}")
        self.typesetter = typesetter
        self.max_entries = max_entries
        self._nodes: "OrderedDict[CacheKey, str]" = OrderedDict()
        self._inflight: Dict[CacheKey, asyncio.Future] = {}
        self._latest: Dict[Hashable, set] = {}
        self.failures = 0

    def __len__(self) -> int:
        return len(self._nodes)

    def __contains__(self, key: CacheKey) -> bool:
        return key in self._nodes

    def clear(self) -> None:
        self._nodes.clear()
        self._latest.clear()

    def peek(self, tex: str, display: bool) -> Optional[str]:
        """Cached node or None; never starts a typeset."""
        key = cache_key(tex, display)
        node = self._nodes.get(key)
        if node is not None:
            self._nodes.move_to_end(key)
        return node

    def _store(self, key: CacheKey, node: str) -> None:
        self._nodes[key] = node
        self._nodes.move_to_end(key)
        while len(self._nodes) > self.max_entries:
            self._nodes.popitem(last=False)

    async def get(self, tex: str, display: bool) -> Optional[str]:
        """
        Typeset node for ``tex``, from cache when possible.

        Concurrent requests for the same key share one typesetter call.

        Returns:
            The node, or None when typesetting failed (a warning is logged
            and the caller keeps the literal source)
        """
        key = cache_key(tex, display)
        cached = self.peek(tex, display)
        if cached is not None:
            return cached

        pending = self._inflight.get(key)
        if pending is not None:
            return await asyncio.shield(pending)

        loop = asyncio.get_running_loop()
        future: asyncio.Future = loop.create_future()
        self._inflight[key] = future
        node: Optional[str] = None
        try:
            node = await self.typesetter.typeset(key[0], key[1])
        except Exception as e:
            self.failures += 1
            logger.warning(f"Math typesetting failed for {key[0]!r}: {e}")
        finally:
            del self._inflight[key]
            future.set_result(node)

        if node is not None:
            self._store(key, node)
        return node

    async def render_for(self, owner: Hashable, requests: Iterable[CacheKey]) -> Dict[CacheKey, Optional[str]]:
        """
        Typeset every request on behalf of ``owner`` (typically a block id).

        A later call for the same owner supersedes this one: results for
        keys the owner no longer requests are cached but returned as None.
        """
        wanted = [cache_key(tex, display) for tex, display in requests]
        self._latest[owner] = set(wanted)
        results = await asyncio.gather(*(self.get(tex, display) for tex, display in wanted))
        current = self._latest.get(owner, set())
        out: Dict[CacheKey, Optional[str]] = {}
        for key, node in zip(wanted, results):
            if key not in current:
                logger.debug(f"Discarding stale math result for {owner}: {key[0]!r}")
                node = None
            out[key] = node
        return out

    async def typeset_tokens(self, tokens: Iterable[Token], owner: Hashable = None) -> int:
        """
        Typeset every math region in a token list.

        Returns:
            Number of regions that now have a node
        """
        requests: List[CacheKey] = [
            (math_tex_for(token), token.display) for token in iter_tokens(tokens) if isinstance(token, MathToken)
        ]
        if not requests:
            return 0
        results = await self.render_for(owner, requests)
        return sum(1 for tex, display in requests if results.get(cache_key(tex, display)) is not None)
