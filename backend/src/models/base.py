"""
Database base models and utilities.

This module re-exports the declarative Base and provides column types shared
by several models.
"""

from sqlalchemy import JSON
from sqlalchemy.dialects.postgresql import JSONB

from core.database import Base  # type: ignore[reportUnusedImport]

# JSONB on PostgreSQL, plain JSON elsewhere (SQLite in tests)
JSONType = JSON().with_variant(JSONB(), "postgresql")

__all__ = ["Base", "JSONType"]
