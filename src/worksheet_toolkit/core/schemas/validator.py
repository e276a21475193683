"""
Schema Validation Utilities

Validates project JSON (document + settings) before it is loaded.

Two levels:
- Basic checks (always): top-level shape, block ids and types
- Strict checks: full jsonschema validation against project.schema.json

Loaders normalize what they can; validation is for callers that want to
reject bad files instead of repairing them (CLI, tests).
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import jsonschema

from worksheet_toolkit.errors import DocumentValidationError

_SCHEMAS: dict[str, dict] = {}

_BLOCK_TYPES = ("concept", "example", "answer", "break", "spacer")


def _load_schema(name: str) -> dict:
    """Load a schema from the schemas directory."""
    if name not in _SCHEMAS:
        schema_path = Path(__file__).parent / f"{name}.schema.json"
        if not schema_path.exists():
            raise FileNotFoundError(f"Schema not found: {schema_path}")
        with open(schema_path, "r", encoding="utf-8") as f:
            _SCHEMAS[name] = json.load(f)
    return _SCHEMAS[name]


def validate_project(data: dict[str, Any], *, strict: bool = False) -> None:
    """
    Validate project data.

    Args:
        data: Project dictionary ({"data": {...}, "settings": {...}})
        strict: If True, also run jsonschema validation

    Raises:
        DocumentValidationError: If data is invalid
    """
    if not isinstance(data, dict):
        raise DocumentValidationError(f"Project must be an object, got {type(data).__name__}")

    doc = data.get("data")
    if not isinstance(doc, dict):
        raise DocumentValidationError("Missing document data", path="data", errors=["Missing field: data"])

    blocks = doc.get("blocks")
    if not isinstance(blocks, list):
        raise DocumentValidationError("Blocks must be a list", path="data.blocks")

    seen: set[str] = set()
    errors: list[str] = []
    for idx, block in enumerate(blocks):
        if not isinstance(block, dict):
            errors.append(f"data.blocks.{idx}: not an object")
            continue
        block_id = block.get("id")
        if not isinstance(block_id, str) or not block_id:
            errors.append(f"data.blocks.{idx}.id: missing")
        elif block_id in seen:
            errors.append(f"data.blocks.{idx}.id: duplicate id {block_id!r}")
        else:
            seen.add(block_id)
        if block.get("type") not in _BLOCK_TYPES:
            errors.append(f"data.blocks.{idx}.type: unknown type {block.get('type')!r}")
    if errors:
        raise DocumentValidationError(
            f"Invalid blocks: {len(errors)} problem(s)",
            path="data.blocks",
            errors=errors,
        )

    if strict:
        schema = _load_schema("project")
        try:
            jsonschema.validate(data, schema)
        except jsonschema.ValidationError as e:
            raise DocumentValidationError(
                f"Schema validation failed: {e.message}",
                path=".".join(str(p) for p in e.absolute_path),
                errors=[e.message],
            ) from e
