"""
Linked Media
============

Staging of substituted images and the package link manifest.
"""

from idml_core.links.media_map import (
    MediaMap,
    StagedMedia,
    read_image_info,
    safe_link_name,
)

from idml_core.links.manifest import (
    LinkManifestBuilder,
)

__all__ = [
    "MediaMap",
    "StagedMedia",
    "read_image_info",
    "safe_link_name",
    "LinkManifestBuilder",
]
