"""
Document Index
==============

Manifest, spread and page placement lookup for extracted packages.
"""

from idml_core.document.index import (
    DocumentIndex,
    FrameInfo,
    PageInfo,
    read_manifest,
    DESIGNMAP,
)

__all__ = [
    "DocumentIndex",
    "FrameInfo",
    "PageInfo",
    "read_manifest",
    "DESIGNMAP",
]
