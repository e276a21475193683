"""
Markup language: grammar, tokenizer, serializer, importer and renderer.

Pipeline:
    import text --importer--> Blocks(content markup)
    content markup --tokenizer--> tokens --serializer--> canonical markup
                                        --render-----> host HTML
"""

from .builders import (
    ChoiceCell,
    ChoiceGrid,
    TableGrid,
    build_choice_grid,
    build_table,
    decode_quoted_value,
    normalize_choice_layout,
    parse_choice_data,
    parse_table_cell_data,
)
from .concept_blank import ConceptBlankTracker, format_answer_key, sync_answer_block
from .html_items import export_data_items, parse_data_items
from .importer import (
    ImportResult,
    expand_imported_blocks,
    import_into_document,
    normalize_llm_output,
    parse_import,
)
from .math_regions import (
    Region,
    apply_math_display_rules,
    is_in_math,
    protect_math_environments,
    sanitize_math_tokens,
    split_math_regions,
)
from .render import HtmlRenderer, math_tex_for, render_block
from .serializer import (
    canonicalize_content,
    escape_token_value,
    export_markup,
    serialize_choice_grid,
    serialize_table,
    serialize_tokens,
)
from .tokenizer import MarkupLexer, tokenize

__all__ = [
    # Builders
    "ChoiceCell",
    "ChoiceGrid",
    "TableGrid",
    "build_choice_grid",
    "build_table",
    "decode_quoted_value",
    "normalize_choice_layout",
    "parse_choice_data",
    "parse_table_cell_data",
    # Concept blanks
    "ConceptBlankTracker",
    "format_answer_key",
    "sync_answer_block",
    # Import / export
    "ImportResult",
    "expand_imported_blocks",
    "export_data_items",
    "export_markup",
    "import_into_document",
    "normalize_llm_output",
    "parse_data_items",
    "parse_import",
    # Math regions
    "Region",
    "apply_math_display_rules",
    "is_in_math",
    "protect_math_environments",
    "sanitize_math_tokens",
    "split_math_regions",
    # Rendering
    "HtmlRenderer",
    "math_tex_for",
    "render_block",
    # Serialization
    "canonicalize_content",
    "escape_token_value",
    "serialize_choice_grid",
    "serialize_table",
    "serialize_tokens",
    # Tokenizing
    "MarkupLexer",
    "tokenize",
]
