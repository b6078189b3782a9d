"""
Collaborator Stores
===================

Key-value store, content source and attachment resolver interfaces with
in-memory and local-filesystem implementations.
"""

from idml_core.store.base import (
    KeyValueStore,
    ContentSource,
    AttachmentResolver,
    template_key,
    registry_key,
    mappings_key,
)

from idml_core.store.backends import (
    InMemoryStore,
    JSONFileStore,
    InMemoryContentSource,
    DirectoryAttachmentResolver,
)

__all__ = [
    # Interfaces
    "KeyValueStore",
    "ContentSource",
    "AttachmentResolver",
    "template_key",
    "registry_key",
    "mappings_key",
    # Implementations
    "InMemoryStore",
    "JSONFileStore",
    "InMemoryContentSource",
    "DirectoryAttachmentResolver",
]
