"""
Schemas Package

JSON schema definitions and validation utilities.
"""

from .validator import validate_project

__all__ = [
    "validate_project",
]
