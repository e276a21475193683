"""
Utils Package

Project serialization and image reference utilities.
"""

from .images import normalize_image_refs, rehydrate_image_refs
from .serialization import (
    document_from_dict,
    load_project,
    normalize_blocks,
    normalize_settings,
    project_from_dict,
    project_to_dict,
    save_project,
    suggest_project_filename,
)

__all__ = [
    "normalize_image_refs",
    "rehydrate_image_refs",
    "document_from_dict",
    "load_project",
    "normalize_blocks",
    "normalize_settings",
    "project_from_dict",
    "project_to_dict",
    "save_project",
    "suggest_project_filename",
]
