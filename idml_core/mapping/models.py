"""
Content Mapping Models
======================

Content items, element -> tag assignments, and export batches.

Persisted mappings arrive in loosely shaped form:

    {
        "42": {
            "title": "headline",
            "image": "image_main",
            "content": [
                {"tag": "body_1", "start": 0, "end": 400},
                {"tag": "body_2", "start": 400, "end": ""},
                "legacy_tag"
            ]
        }
    }

They are converted once, at the boundary, by ``ContentMapping.from_raw`` and
``ExportBatch.from_raw``; everything downstream works with typed objects.
"""

import json
from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import Any, Dict, List, Optional, Union
import logging

from lxml import etree
from lxml import html as lxml_html

from idml_core.errors import ValidationError
from idml_core.xml.utils import normalize_whitespace

logger = logging.getLogger(__name__)

EXCERPT_WORDS = 20
UNCATEGORIZED = "Uncategorized"


class MappingElement(str, Enum):
    TITLE = "title"
    CONTENT = "content"
    EXCERPT = "excerpt"
    AUTHOR = "author"
    DATE = "date"
    CATEGORIES = "categories"
    IMAGE = "image"

    @classmethod
    def parse(cls, value: str) -> 'MappingElement':
        try:
            return cls(value)
        except ValueError:
            raise ValidationError(f"Unknown mapping element: {value}") from None


def strip_markup(body: str) -> str:
    """Plain text of an HTML fragment, whitespace collapsed."""
    if not body or not body.strip():
        return ""
    try:
        text = lxml_html.fromstring(body).text_content()
    except (etree.ParserError, ValueError):
        text = body
    return normalize_whitespace(text)


@dataclass
class ContentItem:
    """
    External content record (read-only to the engine).

    Attributes:
        id: Identifier of the record
        title: Title
        body: Body, HTML allowed
        excerpt: Hand-written excerpt, may be empty
        author: Display name of the author
        date: Display date
        categories: Category names
        thumbnail: Filesystem path of the featured image
    """
    id: str
    title: str = ""
    body: str = ""
    excerpt: str = ""
    author: str = ""
    date: str = ""
    categories: List[str] = field(default_factory=list)
    thumbnail: Optional[str] = None

    def plain_content(self) -> str:
        return strip_markup(self.body)

    def element_value(self, element: MappingElement) -> Optional[str]:
        """Literal value substituted for an element (None when there is nothing to place)."""
        if element == MappingElement.TITLE:
            return self.title
        if element == MappingElement.CONTENT:
            return self.plain_content()
        if element == MappingElement.EXCERPT:
            if self.excerpt and self.excerpt.strip():
                return normalize_whitespace(self.excerpt)
            words = self.plain_content().split()
            if len(words) <= EXCERPT_WORDS:
                return ' '.join(words)
            return ' '.join(words[:EXCERPT_WORDS]) + "…"
        if element == MappingElement.AUTHOR:
            return self.author
        if element == MappingElement.DATE:
            return self.date
        if element == MappingElement.CATEGORIES:
            names = [c for c in self.categories if c]
            return ', '.join(names) if names else UNCATEGORIZED
        if element == MappingElement.IMAGE:
            return self.thumbnail or None
        return None

    def to_dict(self) -> dict:
        return {
            'id': self.id,
            'title': self.title,
            'body': self.body,
            'excerpt': self.excerpt,
            'author': self.author,
            'date': self.date,
            'categories': list(self.categories),
            'thumbnail': self.thumbnail,
        }

    @classmethod
    def from_dict(cls, data: dict) -> 'ContentItem':
        if 'id' not in data:
            raise ValidationError("Content item without id")
        categories = data.get('categories') or []
        if isinstance(categories, str):
            categories = [c.strip() for c in categories.split(',') if c.strip()]
        return cls(
            id=str(data['id']),
            title=data.get('title') or "",
            body=data.get('body') or "",
            excerpt=data.get('excerpt') or "",
            author=data.get('author') or "",
            date=data.get('date') or "",
            categories=list(categories),
            thumbnail=data.get('thumbnail'),
        )


@dataclass(frozen=True)
class SingleTag:
    """The whole element value goes to one tag."""
    name: str


@dataclass(frozen=True)
class ChunkRef:
    """A [start, end) character slice of the element value for one tag."""
    tag: str
    start: Optional[int] = None   # None means 0
    end: Optional[int] = None     # None means end of value

    def slice(self, value: str) -> str:
        length = len(value)
        start = min(self.start or 0, length)
        end = length if self.end is None else min(self.end, length)
        return value[start:end]


@dataclass(frozen=True)
class Chunked:
    """The element value split across several tags."""
    chunks: tuple

    @property
    def tags(self) -> List[str]:
        return [chunk.tag for chunk in self.chunks]


Assignment = Union[SingleTag, Chunked]


def _parse_offset(value: Any, item_id: str) -> Optional[int]:
    if value is None or value == "":
        return None
    if isinstance(value, bool):
        raise ValidationError(f"Invalid chunk offset for item {item_id}: {value!r}")
    try:
        offset = int(value)
    except (TypeError, ValueError):
        raise ValidationError(f"Invalid chunk offset for item {item_id}: {value!r}") from None
    if isinstance(value, float) and value != offset:
        raise ValidationError(f"Invalid chunk offset for item {item_id}: {value!r}")
    if offset < 0:
        raise ValidationError(f"Negative chunk offset for item {item_id}: {offset}")
    return offset


def _parse_chunk(raw: Any, item_id: str) -> Optional[ChunkRef]:
    if isinstance(raw, str):
        # Legacy chunk: bare tag name covering the whole value
        return ChunkRef(tag=raw.strip()) if raw.strip() else None
    if isinstance(raw, dict):
        tag = str(raw.get('tag') or '').strip()
        if not tag:
            return None
        return ChunkRef(
            tag=tag,
            start=_parse_offset(raw.get('start'), item_id),
            end=_parse_offset(raw.get('end'), item_id),
        )
    raise ValidationError(f"Invalid chunk for item {item_id}: {raw!r}")


@dataclass
class ElementAssignment:
    element: MappingElement
    assignment: Assignment

    @property
    def tags(self) -> List[str]:
        if isinstance(self.assignment, SingleTag):
            return [self.assignment.name]
        return self.assignment.tags


@dataclass
class ContentMapping:
    """Element assignments for one content item."""

    item_id: str
    assignments: List[ElementAssignment] = field(default_factory=list)

    def tags(self) -> List[str]:
        names: List[str] = []
        for assignment in self.assignments:
            for name in assignment.tags:
                if name not in names:
                    names.append(name)
        return names

    @classmethod
    def from_raw(cls, item_id: Any, raw: Any) -> 'ContentMapping':
        """
        Convert a persisted element mapping into a ContentMapping.

        Raises:
            ValidationError: On unknown elements, bad offsets or unexpected shapes
        """
        item_id = str(item_id).strip()
        if not item_id:
            raise ValidationError("Mapping without content item id")
        if isinstance(raw, str):
            raw = _decode_json(raw)
        if not isinstance(raw, dict):
            raise ValidationError(f"Mapping for item {item_id} must be an object")

        mapping = cls(item_id=item_id)
        for element_name, value in raw.items():
            element = MappingElement.parse(element_name)

            if value is None or value == "" or value == []:
                continue
            if isinstance(value, str):
                mapping.assignments.append(ElementAssignment(element, SingleTag(value.strip())))
                continue
            if isinstance(value, dict):
                value = [value]
            if not isinstance(value, list):
                raise ValidationError(f"Invalid assignment for {element.value} of item {item_id}")
            if element == MappingElement.IMAGE:
                raise ValidationError(f"Image element of item {item_id} cannot be split into chunks")

            chunks = tuple(c for c in (_parse_chunk(raw_chunk, item_id) for raw_chunk in value) if c)
            if chunks:
                mapping.assignments.append(ElementAssignment(element, Chunked(chunks)))

        return mapping

    def to_raw(self) -> dict:
        raw: Dict[str, Any] = {}
        for assignment in self.assignments:
            if isinstance(assignment.assignment, SingleTag):
                raw[assignment.element.value] = assignment.assignment.name
            else:
                raw[assignment.element.value] = [
                    {'tag': c.tag,
                     'start': '' if c.start is None else c.start,
                     'end': '' if c.end is None else c.end}
                    for c in assignment.assignment.chunks
                ]
        return raw


@dataclass
class ExportBatch:
    """
    Every mapping considered for one export, in batch order.

    Attributes:
        mappings: ContentMappings in batch order
        title: Title used to name the delivery (default: first item's title)
        export_date: Date used to name the delivery (default: today)
    """
    mappings: List[ContentMapping] = field(default_factory=list)
    title: Optional[str] = None
    export_date: Optional[date] = None

    def item_ids(self) -> List[str]:
        return [m.item_id for m in self.mappings]

    def is_empty(self) -> bool:
        return not any(m.assignments for m in self.mappings)

    @classmethod
    def from_raw(cls, raw: Any, title: Optional[str] = None,
                 export_date: Optional[date] = None) -> 'ExportBatch':
        """
        Convert a persisted batch ({item_id: {element: assignment}}) into an ExportBatch.

        Raises:
            ValidationError: If the batch or any mapping is malformed
        """
        if isinstance(raw, str):
            raw = _decode_json(raw)
        if raw is None:
            raw = {}
        if not isinstance(raw, dict):
            raise ValidationError("Mapping batch must be an object keyed by content item id")
        return cls(
            mappings=[ContentMapping.from_raw(item_id, value) for item_id, value in raw.items()],
            title=title,
            export_date=export_date,
        )

    def to_raw(self) -> dict:
        return {m.item_id: m.to_raw() for m in self.mappings}


def _decode_json(raw: str) -> Any:
    try:
        return json.loads(raw)
    except json.JSONDecodeError as e:
        raise ValidationError("Mapping is not valid JSON", detail=str(e)) from e
