"""
Storage — persisted units and the key/value roots they live on.

Public surface
--------------
- :class:`DocumentStore` — save / scan / list persisted units.
- :class:`StorageRoot` — abstract backend (subclass for S3, databases, etc.).
- :class:`LocalDirectoryRoot` — default one-file-per-unit backend.
- :class:`InMemoryRoot` — dict-backed backend for tests.
"""

from knowledge_rag.storage.backends import InMemoryRoot, LocalDirectoryRoot, StorageRoot
from knowledge_rag.storage.document_store import DocumentStore, StoreSnapshot

__all__ = [
    "DocumentStore",
    "InMemoryRoot",
    "LocalDirectoryRoot",
    "StorageRoot",
    "StoreSnapshot",
]
