"""
Tag Extraction
==============

Scanning package resources for tag-based markers and building the tag
registry.

Components:
- TagScanner: Finds markers in story resources
- build: Deduplicates markers into a TagRegistry
- analyze: Image/text split and word count warnings
"""

from idml_core.tags.models import (
    TagType,
    Marker,
    Tag,
    TagRegistry,
)

from idml_core.tags.scanner import (
    TagScanner,
    MarkersByStory,
    BACKING_STORY_ID,
)

from idml_core.tags.registry import (
    build,
    word_count,
)

from idml_core.tags.analysis import (
    TemplateAnalysis,
    analyze,
    page_label,
    trim_words,
)

__all__ = [
    # Models
    "TagType",
    "Marker",
    "Tag",
    "TagRegistry",
    # Scanning
    "TagScanner",
    "MarkersByStory",
    "BACKING_STORY_ID",
    # Registry
    "build",
    "word_count",
    # Analysis
    "TemplateAnalysis",
    "analyze",
    "page_label",
    "trim_words",
]
