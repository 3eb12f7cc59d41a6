"""
Metadata index package.

Holds the id -> {name, content type, creation time} table and its
additive schema migrations.
"""

from tempstore.index.store import MetadataIndex

__all__ = ["MetadataIndex"]
