"""
Core data models: document, blocks, settings and the markup token AST.
"""

from .document import (
    Block,
    BlockType,
    BlockVariant,
    DocMeta,
    Document,
    Settings,
    CONCEPT_ANSWERS_TAG,
    DEFAULT_SPACER_HEIGHT,
    TEXT_ALIGNMENTS,
    new_block_id,
)
from .tokens import (
    Token,
    TextToken,
    MathToken,
    BlankToken,
    ConceptBlankToken,
    ImagePlaceholderToken,
    InlineImageToken,
    TableToken,
    ChoiceGridToken,
    StyledSpanToken,
    BoxToken,
    RectBoxToken,
    iter_tokens,
)

__all__ = [
    # Document
    "Block",
    "BlockType",
    "BlockVariant",
    "DocMeta",
    "Document",
    "Settings",
    "CONCEPT_ANSWERS_TAG",
    "DEFAULT_SPACER_HEIGHT",
    "TEXT_ALIGNMENTS",
    "new_block_id",
    # Tokens
    "Token",
    "TextToken",
    "MathToken",
    "BlankToken",
    "ConceptBlankToken",
    "ImagePlaceholderToken",
    "InlineImageToken",
    "TableToken",
    "ChoiceGridToken",
    "StyledSpanToken",
    "BoxToken",
    "RectBoxToken",
    "iter_tokens",
]
