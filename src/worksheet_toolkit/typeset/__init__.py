"""
Typeset Package

Asynchronous math typesetting cache. The typesetter is supplied by the
host through the MathTypesetter protocol.
"""

from .cache import MathNodeCache, MathTypesetter, cache_key

__all__ = ["MathNodeCache", "MathTypesetter", "cache_key"]
