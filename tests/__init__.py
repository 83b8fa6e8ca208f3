"""
docschema Test Suite.

This package contains:
- unit/: Unit tests (no database connection needed)
"""
