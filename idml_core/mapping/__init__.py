"""
Content Mapping
===============

Typed content mappings and their resolution into per-tag substitutions.
"""

from idml_core.mapping.models import (
    MappingElement,
    ContentItem,
    SingleTag,
    ChunkRef,
    Chunked,
    Assignment,
    ElementAssignment,
    ContentMapping,
    ExportBatch,
    strip_markup,
)

from idml_core.mapping.resolver import (
    Substitution,
    ItemResolution,
    Resolution,
    resolve,
    lookup_item,
)

__all__ = [
    # Models
    "MappingElement",
    "ContentItem",
    "SingleTag",
    "ChunkRef",
    "Chunked",
    "Assignment",
    "ElementAssignment",
    "ContentMapping",
    "ExportBatch",
    "strip_markup",
    # Resolution
    "Substitution",
    "ItemResolution",
    "Resolution",
    "resolve",
    "lookup_item",
]
