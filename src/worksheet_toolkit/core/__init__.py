"""
Core package: data models, serialization and schema validation.
"""
