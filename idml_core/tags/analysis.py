"""
Template Analysis
=================

Summaries of an extracted registry for mapping screens: image and text
tags, word count warnings for text placeholders, and page labels.
"""

from dataclasses import dataclass, field
from typing import Dict, List, Any

from idml_core.tags.models import TagRegistry, TagType

PREVIEW_WORDS = 10


def trim_words(text: str, count: int, more: str = "…") -> str:
    """Keep the first `count` words of text, appending `more` if anything was cut."""
    words = text.split()
    if len(words) <= count:
        return ' '.join(words)
    return ' '.join(words[:count]) + more


def page_label(pages: List[int]) -> str:
    """
    Compact page label.

    Example:
        >>> page_label([3, 1])
        '1, 3'
        >>> page_label([1, 2, 3, 4])
        '1-4'
    """
    unique = sorted(set(pages))
    if not unique:
        return "-"
    if len(unique) > 3:
        return f"{unique[0]}-{unique[-1]}"
    return ', '.join(str(p) for p in unique)


@dataclass
class TemplateAnalysis:
    image_tags: List[Dict[str, Any]] = field(default_factory=list)
    text_tags: List[Dict[str, Any]] = field(default_factory=list)
    word_count_warnings: Dict[str, Dict[str, Any]] = field(default_factory=dict)

    @property
    def total_tags(self) -> int:
        return len(self.image_tags) + len(self.text_tags)

    def to_dict(self) -> dict:
        return {
            'image_tags': self.image_tags,
            'text_tags': self.text_tags,
            'word_count_warnings': self.word_count_warnings,
            'total_tags': self.total_tags,
            'total_image_tags': len(self.image_tags),
            'total_text_tags': len(self.text_tags),
        }


def analyze(registry: TagRegistry) -> TemplateAnalysis:
    """Split a registry into image and text tags and flag text placeholders to resize."""
    analysis = TemplateAnalysis()

    for tag in registry:
        entry = {
            'name': tag.name,
            'pages': page_label(tag.page_numbers),
            'details': {
                'type': tag.type.value,
                'length': tag.length,
                'word_count': tag.word_count,
                'source_story': tag.source_story_id,
                'internal_id': tag.internal_id,
                'page_numbers': list(tag.page_numbers),
            },
        }
        if tag.type == TagType.IMAGE:
            analysis.image_tags.append(entry)
            continue

        analysis.text_tags.append(entry)
        if tag.word_count > 0:
            analysis.word_count_warnings[tag.name] = {
                'current_word_count': tag.word_count,
                'current_length': tag.length,
                'content_preview': trim_words(tag.content, PREVIEW_WORDS),
            }

    return analysis
