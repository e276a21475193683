"""
Module: errors

Purpose:
    Exception types shared across the toolkit.

Key Classes:
    - WorksheetError: Base class for all toolkit errors
    - MarkupImportError: Import input could not be turned into blocks
    - DocumentValidationError: Project JSON failed schema validation

Used By:
    - markup.importer: JSON / data-item import failures
    - core.schemas.validator: Project validation
    - session: Surfaces a single human-readable message to the host
"""

from __future__ import annotations


class WorksheetError(Exception):
    """Base class for toolkit errors."""
    pass


class MarkupImportError(WorksheetError):
    """
    Raised when imported text cannot be converted into blocks.

    The message is meant to be shown to the user as-is.
    """

    def __init__(self, message: str, *, source: str = ""):
        super().__init__(message)
        self.source = source


class DocumentValidationError(WorksheetError):
    """Raised when project data fails schema validation."""

    def __init__(self, message: str, path: str = "", errors: list[str] | None = None):
        super().__init__(message)
        self.path = path
        self.errors = errors or []
