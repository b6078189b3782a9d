"""
Store Backends
==============

In-memory and local-filesystem implementations of the collaborator
interfaces, for development, tests and single-host deployments.
"""

import json
import os
import re
import tempfile
import threading
from pathlib import Path
from typing import Any, Dict, Iterable, Optional
import logging

from idml_core.errors import ResourceIOError, ValidationError
from idml_core.mapping.models import ContentItem
from idml_core.store.base import AttachmentResolver, ContentSource, KeyValueStore

logger = logging.getLogger(__name__)

_KEY_SEGMENT = re.compile(r'^[A-Za-z0-9._-]+$')


class InMemoryStore(KeyValueStore):
    """Process-local store. Values are deep-copied through JSON on write."""

    def __init__(self):
        self._data: Dict[str, str] = {}
        self._lock = threading.Lock()

    def get(self, key: str) -> Optional[Any]:
        with self._lock:
            raw = self._data.get(key)
        return None if raw is None else json.loads(raw)

    def set(self, key: str, value: Any) -> None:
        raw = json.dumps(value)
        with self._lock:
            self._data[key] = raw

    def delete(self, key: str) -> bool:
        with self._lock:
            return self._data.pop(key, None) is not None

    def keys(self) -> Iterable[str]:
        with self._lock:
            return list(self._data.keys())


class JSONFileStore(KeyValueStore):
    """
    Local filesystem store: one JSON file per key.

    "template/12/registry" is stored at <base_path>/template/12/registry.json.
    Writes go to a temporary file first and are moved into place.
    """

    def __init__(self, base_path: Path):
        self.base_path = Path(base_path)
        try:
            self.base_path.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise ResourceIOError(f"Cannot create store directory: {self.base_path}", detail=str(e)) from e
        logger.info(f"Local store initialized at: {self.base_path}")

    def _get_path(self, key: str) -> Path:
        segments = key.split('/')
        if not segments or not all(_KEY_SEGMENT.match(s) and s not in ('.', '..') for s in segments):
            raise ValidationError(f"Invalid store key: {key}")
        return self.base_path.joinpath(*segments[:-1], f"{segments[-1]}.json")

    def get(self, key: str) -> Optional[Any]:
        path = self._get_path(key)
        if not path.is_file():
            return None
        try:
            return json.loads(path.read_text(encoding='utf-8'))
        except (OSError, json.JSONDecodeError) as e:
            raise ResourceIOError(f"Cannot read stored value: {key}", detail=str(e)) from e

    def set(self, key: str, value: Any) -> None:
        path = self._get_path(key)
        data = json.dumps(value, indent=2, ensure_ascii=False)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(dir=str(path.parent), suffix='.tmp')
            with os.fdopen(fd, 'w', encoding='utf-8') as f:
                f.write(data)
            os.replace(tmp_name, path)
        except OSError as e:
            raise ResourceIOError(f"Cannot write stored value: {key}", detail=str(e)) from e
        logger.debug(f"Stored {key}")

    def delete(self, key: str) -> bool:
        path = self._get_path(key)
        if not path.exists():
            return False
        try:
            path.unlink()
        except OSError as e:
            raise ResourceIOError(f"Cannot delete stored value: {key}", detail=str(e)) from e
        return True


class InMemoryContentSource(ContentSource):
    """Content items held in a dictionary."""

    def __init__(self, items: Optional[Iterable[ContentItem]] = None):
        self.items: Dict[str, ContentItem] = {}
        for item in items or []:
            self.add(item)

    def add(self, item: ContentItem) -> None:
        self.items[item.id] = item

    def get_item(self, item_id: str) -> Optional[ContentItem]:
        return self.items.get(str(item_id))


class DirectoryAttachmentResolver(AttachmentResolver):
    """
    Attachments stored as files in one directory.

    An attachment id resolves to an explicitly registered path, else to
    <base_path>/<attachment_id> when that file exists.
    """

    def __init__(self, base_path: Optional[Path] = None):
        self.base_path = Path(base_path) if base_path else None
        self.registered: Dict[str, Path] = {}

    def register(self, attachment_id: str, path: Path) -> None:
        self.registered[str(attachment_id)] = Path(path)

    def resolve(self, attachment_id: str) -> Optional[Path]:
        attachment_id = str(attachment_id)
        if attachment_id in self.registered:
            return self.registered[attachment_id]
        if self.base_path is None or not _KEY_SEGMENT.match(attachment_id):
            return None
        candidate = self.base_path / attachment_id
        return candidate if candidate.is_file() else None
