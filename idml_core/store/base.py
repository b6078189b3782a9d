"""
Collaborator Interfaces
=======================

Abstract interfaces for the services the engine consumes but does not own:

- KeyValueStore: opaque persisted store for template records, cached tag
  registries and publication mappings (get/set/delete, no transactions)
- ContentSource: read-only lookup of content items by identifier
- AttachmentResolver: binary attachment identifier -> filesystem path

Key layout used by the engine:

    template/<id>              {"attachment": <id>, "tag_convention": "tag-based"}
    template/<id>/registry     serialized TagRegistry
    publication/<id>/mappings  {item_id: {element: assignment}}
"""

from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Optional
import logging

from idml_core.mapping.models import ContentItem

logger = logging.getLogger(__name__)


def template_key(template_id: str) -> str:
    return f"template/{template_id}"


def registry_key(template_id: str) -> str:
    return f"template/{template_id}/registry"


def mappings_key(publication_id: str) -> str:
    return f"publication/{publication_id}/mappings"


class KeyValueStore(ABC):
    """
    Abstract base class for key-value backends.

    Values are JSON-compatible structures.
    """

    @abstractmethod
    def get(self, key: str) -> Optional[Any]:
        """Return the value stored under key, or None."""
        pass

    @abstractmethod
    def set(self, key: str, value: Any) -> None:
        """Store value under key, replacing any previous value."""
        pass

    @abstractmethod
    def delete(self, key: str) -> bool:
        """Delete key. Returns True if something was removed."""
        pass


class ContentSource(ABC):
    """Read-only content item lookup."""

    @abstractmethod
    def get_item(self, item_id: str) -> Optional[ContentItem]:
        pass

    def __call__(self, item_id: str) -> Optional[ContentItem]:
        return self.get_item(item_id)


class AttachmentResolver(ABC):
    """Binary attachment storage lookup."""

    @abstractmethod
    def resolve(self, attachment_id: str) -> Optional[Path]:
        """
        Filesystem path of an attachment.

        Returns:
            Path, or None if the attachment is unknown
        """
        pass
