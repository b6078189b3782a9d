"""
Tag Models
==========

Markers found by the scanner and the named, typed tags built from them.
"""

from dataclasses import dataclass, field, asdict
from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional, Iterator, Tuple
import logging

from idml_core.errors import FormatError

logger = logging.getLogger(__name__)


class TagType(str, Enum):
    TEXT = "text"
    IMAGE = "image"


@dataclass
class Marker:
    """
    One occurrence of a tag inside a package resource.

    Attributes:
        raw_name: Tag name without the markup prefix
        type_hint: Inferred type of this occurrence
        type_source: How the type was decided ("explicit", "structural", "prefix", "default")
        context: Captured text (text markers) or link URI (image markers)
        element_id: Self id of the marked XMLElement
        story_id: Story the occurrence belongs to
        resource: Package-relative resource file holding the element
        frame_id: Graphic frame the marker points at (image markers)
        whole_story: Whether the marker tags an entire story
    """
    raw_name: str
    type_hint: TagType
    type_source: str
    context: str
    element_id: str
    story_id: str
    resource: str
    frame_id: Optional[str] = None
    whole_story: bool = False

    def to_dict(self) -> dict:
        data = asdict(self)
        data['type_hint'] = self.type_hint.value
        return data

    @classmethod
    def from_dict(cls, data: dict) -> 'Marker':
        data = dict(data)
        data['type_hint'] = TagType(data['type_hint'])
        return cls(**data)


@dataclass(frozen=True)
class Tag:
    """
    A named placeholder aggregated across all of its occurrences.

    The first occurrence in scan order decides type and content; page
    numbers are the union over every occurrence. Tags are frozen: a new
    extraction builds new ones.
    """
    name: str
    type: TagType
    length: int = 0
    word_count: int = 0
    source_story_id: str = ""
    internal_id: str = ""
    page_numbers: Tuple[int, ...] = ()
    content: str = ""
    occurrences: Tuple[Marker, ...] = ()

    @property
    def is_image(self) -> bool:
        return self.type == TagType.IMAGE

    def signature(self) -> tuple:
        """Comparable identity used to check extraction idempotence."""
        return (self.name, self.type.value, self.length, self.word_count,
                tuple(sorted(set(self.page_numbers))))

    def to_dict(self) -> dict:
        return {
            'name': self.name,
            'type': self.type.value,
            'length': self.length,
            'word_count': self.word_count,
            'source_story': self.source_story_id,
            'internal_id': self.internal_id,
            'page_numbers': list(self.page_numbers),
            'content': self.content,
            'occurrences': [m.to_dict() for m in self.occurrences],
        }

    @classmethod
    def from_dict(cls, data: dict) -> 'Tag':
        return cls(
            name=data['name'],
            type=TagType(data.get('type', TagType.TEXT.value)),
            length=int(data.get('length', 0)),
            word_count=int(data.get('word_count', 0)),
            source_story_id=data.get('source_story', ''),
            internal_id=data.get('internal_id', ''),
            page_numbers=tuple(int(p) for p in data.get('page_numbers', [])),
            content=data.get('content', ''),
            occurrences=tuple(Marker.from_dict(m) for m in data.get('occurrences', [])),
        )


@dataclass
class TagRegistry:
    """
    Tag name -> Tag for one template, created whole by one extraction pass.

    Iteration order is first-occurrence scan order.
    """
    tags: Dict[str, Tag] = field(default_factory=dict)
    tag_convention: str = "tag-based"
    created_at: str = field(default_factory=lambda: datetime.now().isoformat())

    def __len__(self) -> int:
        return len(self.tags)

    def __contains__(self, name: str) -> bool:
        return name in self.tags

    def __iter__(self) -> Iterator[Tag]:
        return iter(self.tags.values())

    def get(self, name: str) -> Optional[Tag]:
        return self.tags.get(name)

    def names(self) -> List[str]:
        return list(self.tags.keys())

    def is_empty(self) -> bool:
        return not self.tags

    def signature(self) -> Dict[str, tuple]:
        return {name: tag.signature() for name, tag in self.tags.items()}

    def details(self) -> Dict[str, dict]:
        """Tag metadata without the per-occurrence breakdown."""
        details = {}
        for name, tag in self.tags.items():
            data = tag.to_dict()
            data.pop('occurrences')
            details[name] = data
        return details

    def to_dict(self) -> dict:
        return {
            'tag_convention': self.tag_convention,
            'created_at': self.created_at,
            'tags': [tag.to_dict() for tag in self.tags.values()],
        }

    @classmethod
    def from_dict(cls, data: dict) -> 'TagRegistry':
        """
        Rebuild a registry from its stored form.

        Raises:
            FormatError: If the stored value does not describe a registry
        """
        try:
            registry = cls(
                tag_convention=data.get('tag_convention', 'tag-based'),
                created_at=data.get('created_at', ''),
            )
            for tag_data in data.get('tags', []):
                tag = Tag.from_dict(tag_data)
                registry.tags[tag.name] = tag
        except (AttributeError, KeyError, TypeError, ValueError) as e:
            raise FormatError("Stored tag registry is malformed", detail=str(e)) from e
        return registry
