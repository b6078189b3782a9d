"""
Mapping Resolver
================

Turns an export batch into literal substitutions per tag.

Precedence: batch order, last wins. When several items assign the same
tag, every assignment is resolved and reported in ``conflicts``; the
value applied is the last one in batch order. Tags absent from the
registry are reported in ``unknown_tags``. Neither is rejected.
"""

from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Union, Mapping
import logging

from idml_core.errors import NotFoundError
from idml_core.mapping.models import (
    ContentItem,
    ExportBatch,
    MappingElement,
    SingleTag,
)
from idml_core.tags.models import TagRegistry, TagType

logger = logging.getLogger(__name__)

ItemLookup = Union[Mapping[str, ContentItem], Callable[[str], ContentItem]]


@dataclass
class Substitution:
    """Literal value for one tag from one content item element."""

    tag: str
    value: str
    item_id: str
    element: MappingElement

    @property
    def kind(self) -> TagType:
        return TagType.IMAGE if self.element == MappingElement.IMAGE else TagType.TEXT

    def to_dict(self) -> dict:
        return {
            'tag': self.tag,
            'value': self.value,
            'item_id': self.item_id,
            'element': self.element.value,
            'kind': self.kind.value,
        }


@dataclass
class ItemResolution:
    item_id: str
    substitutions: List[Substitution] = field(default_factory=list)


@dataclass
class Resolution:
    """
    Result of resolving one export batch.

    Attributes:
        items: Per-item substitutions, in batch order
        used_tags: Every distinct tag referenced by the batch, first-use order
        conflicts: Tag -> item ids assigning it, for tags assigned by several items
        unknown_tags: Referenced tags missing from the registry
    """
    items: List[ItemResolution] = field(default_factory=list)
    used_tags: List[str] = field(default_factory=list)
    conflicts: Dict[str, List[str]] = field(default_factory=dict)
    unknown_tags: List[str] = field(default_factory=list)

    def final_values(self) -> Dict[str, Substitution]:
        """Tag -> substitution applied (batch order, last wins)."""
        values: Dict[str, Substitution] = {}
        for item in self.items:
            for substitution in item.substitutions:
                values[substitution.tag] = substitution
        return values

    def to_dict(self) -> dict:
        return {
            'items': {
                item.item_id: [s.to_dict() for s in item.substitutions]
                for item in self.items
            },
            'used_tags': list(self.used_tags),
            'conflicts': {k: list(v) for k, v in self.conflicts.items()},
            'unknown_tags': list(self.unknown_tags),
        }


def lookup_item(items: ItemLookup, item_id: str) -> ContentItem:
    if callable(items):
        item = items(item_id)
    else:
        item = items.get(item_id)
    if item is None:
        raise NotFoundError(f"Content item not found: {item_id}")
    return item


def resolve(batch: ExportBatch,
            items: ItemLookup,
            registry: Optional[TagRegistry] = None) -> Resolution:
    """
    Resolve every element assignment of a batch into literal substitutions.

    Args:
        batch: Export batch
        items: Content items by id (mapping or lookup callable)
        registry: Registry used to report unknown tags

    Returns:
        Resolution

    Raises:
        NotFoundError: If a mapped content item does not exist
    """
    resolution = Resolution()
    assigned_by: Dict[str, List[str]] = {}

    for mapping in batch.mappings:
        item = lookup_item(items, mapping.item_id)
        item_resolution = ItemResolution(item_id=mapping.item_id)

        for element_assignment in mapping.assignments:
            element = element_assignment.element
            assignment = element_assignment.assignment
            value = item.element_value(element)

            for tag in element_assignment.tags:
                if tag not in resolution.used_tags:
                    resolution.used_tags.append(tag)
                owners = assigned_by.setdefault(tag, [])
                if mapping.item_id not in owners:
                    owners.append(mapping.item_id)

            if value is None:
                logger.warning(f"Item {mapping.item_id} has no value for '{element.value}'; "
                               f"tags {element_assignment.tags} left unchanged")
                continue

            if isinstance(assignment, SingleTag):
                item_resolution.substitutions.append(
                    Substitution(assignment.name, value, mapping.item_id, element))
            else:
                for chunk in assignment.chunks:
                    item_resolution.substitutions.append(
                        Substitution(chunk.tag, chunk.slice(value), mapping.item_id, element))

        resolution.items.append(item_resolution)

    resolution.conflicts = {tag: owners for tag, owners in assigned_by.items() if len(owners) > 1}
    if registry is not None:
        resolution.unknown_tags = [tag for tag in resolution.used_tags if tag not in registry]

    if resolution.conflicts:
        logger.info(f"Tags assigned by more than one item (last wins): {sorted(resolution.conflicts)}")
    if resolution.unknown_tags:
        logger.warning(f"Mapped tags not found in template: {resolution.unknown_tags}")

    logger.debug(f"Resolved {len(resolution.used_tags)} tags for {len(resolution.items)} items")
    return resolution
