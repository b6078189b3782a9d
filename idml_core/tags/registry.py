"""
Tag Registry Builder
====================

Deduplicates scanner markers into named tags.
"""

from typing import Dict, List, Optional, Set
import logging

from idml_core.document.index import DocumentIndex
from idml_core.tags.models import Marker, Tag, TagRegistry, TagType
from idml_core.tags.scanner import MarkersByStory

logger = logging.getLogger(__name__)


def word_count(text: str) -> int:
    """Count whitespace-delimited tokens."""
    return len(text.split())


def build(markers_by_story: MarkersByStory,
          index: Optional[DocumentIndex] = None,
          tag_convention: str = "tag-based") -> TagRegistry:
    """
    Build a registry from scanned markers.

    The first occurrence of a name (in scan order) decides the tag's type,
    content, length and word count; page numbers are unioned over all
    occurrences.

    Args:
        markers_by_story: Output of TagScanner.scan_package
        index: Document index used for page lookup
        tag_convention: Convention recorded on the registry

    Returns:
        A new TagRegistry
    """
    occurrences: Dict[str, List[Marker]] = {}
    pages: Dict[str, Set[int]] = {}

    for _story_id, markers in markers_by_story:
        for marker in markers:
            if marker.type_hint == TagType.IMAGE:
                found = index.pages_for_element(marker.story_id, marker.frame_id) if index else []
            else:
                found = index.pages_for_story(marker.story_id) if index else []

            seen = occurrences.setdefault(marker.raw_name, [])
            if seen and seen[0].type_hint != marker.type_hint:
                logger.warning(f"Tag '{marker.raw_name}' occurs as {marker.type_hint.value} in "
                               f"{marker.resource}; keeping first type {seen[0].type_hint.value}")
            seen.append(marker)
            pages.setdefault(marker.raw_name, set()).update(found)

    registry = TagRegistry(tag_convention=tag_convention)
    for name, markers in occurrences.items():
        first = markers[0]
        is_text = first.type_hint == TagType.TEXT
        registry.tags[name] = Tag(
            name=name,
            type=first.type_hint,
            length=len(first.context) if is_text else 0,
            word_count=word_count(first.context) if is_text else 0,
            source_story_id=first.story_id,
            internal_id=first.element_id,
            page_numbers=tuple(sorted(pages[name])),
            content=first.context,
            occurrences=tuple(markers),
        )

    logger.info(f"Built registry with {len(registry)} tags")
    return registry
