# ABOUTME: Data persistence and storage layer
# ABOUTME: SQLite link store, in-memory store, blob cache and schema migrations

"""
Persistence Layer: Link storage

This layer handles:
- The links table and its on-disk encodings
- Ordered schema migrations applied at startup
- The content-addressed blob cache for large payloads

Data Flow: pipeline/ writes → links table + blob cache → pipeline/ reads
"""

from .blobs import BlobCache
from .manager import LinkReader, LinkStore, LinkWriter, ListParams
from .memory import InMemoryLinkStore
from .migrations import MIGRATIONS, Migration, apply_migrations

__all__ = [
    "BlobCache",
    "InMemoryLinkStore",
    "LinkReader",
    "LinkStore",
    "LinkWriter",
    "ListParams",
    "MIGRATIONS",
    "Migration",
    "apply_migrations",
]
