"""
Engine Service
==============

Event-facing surface of the extraction and export engine.

An external router subscribes to the two events returned by
``Engine.subscriptions()`` and calls the handlers with typed requests.
Identity and permission checks happen in the router, before the engine
is called. Handlers never raise engine errors: every outcome is a
response object carrying either a payload or an error kind and message.
"""

import threading
from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional
import logging

from idml_core.config.settings import EngineConfig
from idml_core.errors import ErrorKind, FormatError, IDMLEngineError, NotFoundError, ValidationError
from idml_core.mapping.models import ExportBatch
from idml_core.pipeline.extraction import TagExtractor
from idml_core.pipeline.orchestrator import ExportOrchestrator
from idml_core.store.base import (
    AttachmentResolver,
    ContentSource,
    KeyValueStore,
    mappings_key,
    registry_key,
    template_key,
)
from idml_core.tags.analysis import analyze
from idml_core.tags.models import TagRegistry

logger = logging.getLogger(__name__)

EXTRACT_REQUESTED = "extract_requested"
EXPORT_REQUESTED = "export_requested"


class CachePolicy(str, Enum):
    """How an extraction request treats the cached registry."""
    FORCE = "force"                        # always re-extract
    CACHED = "cached"                      # cached registry or NotFoundError
    REFRESH_IF_EMPTY = "refresh_if_empty"  # cached registry unless missing or empty


@dataclass
class ExtractionRequest:
    template_id: str
    tag_convention: str = "tag-based"
    force: bool = False
    policy: Optional[CachePolicy] = None


@dataclass
class ExtractionResponse:
    success: bool = True
    tags: List[str] = field(default_factory=list)
    tags_details: Dict[str, dict] = field(default_factory=dict)
    action: Optional[str] = None           # "extracted" | "loaded"
    extracted_at: Optional[str] = None
    analysis: Dict[str, Any] = field(default_factory=dict)
    message: str = ""
    error_kind: Optional[ErrorKind] = None

    @classmethod
    def failure(cls, error: IDMLEngineError) -> 'ExtractionResponse':
        return cls(success=False, message=error.message, error_kind=error.kind)

    def to_dict(self) -> dict:
        if not self.success:
            return {'success': False, 'message': self.message,
                    'kind': self.error_kind.value if self.error_kind else None}
        return {
            'success': True,
            'tags': list(self.tags),
            'tags_details': self.tags_details,
            'action': self.action,
            'extracted_at': self.extracted_at,
            'analysis': self.analysis,
            'message': self.message,
        }


@dataclass
class ExportRequest:
    """
    Export request.

    Exactly one package source: template_id (template mode) or
    package_attachment_id (direct package mode). Mappings come inline
    (raw batch or ExportBatch) or from a publication's stored mappings.
    """
    template_id: Optional[str] = None
    package_attachment_id: Optional[str] = None
    mappings: Any = None
    publication_id: Optional[str] = None
    title: Optional[str] = None
    export_date: Optional[date] = None


@dataclass
class ExportResponse:
    success: bool = True
    download_url: Optional[str] = None
    filename: Optional[str] = None
    message: str = ""
    error_kind: Optional[ErrorKind] = None
    used_tags: List[str] = field(default_factory=list)
    conflicts: Dict[str, List[str]] = field(default_factory=dict)
    unknown_tags: List[str] = field(default_factory=list)

    @classmethod
    def failure(cls, error: IDMLEngineError) -> 'ExportResponse':
        return cls(success=False, message=error.message, error_kind=error.kind)

    def to_dict(self) -> dict:
        if not self.success:
            return {'success': False, 'message': self.message,
                    'kind': self.error_kind.value if self.error_kind else None}
        return {
            'success': True,
            'download_url': self.download_url,
            'filename': self.filename,
            'message': self.message,
            'used_tags': list(self.used_tags),
            'conflicts': self.conflicts,
            'unknown_tags': list(self.unknown_tags),
        }


class Engine:
    """
    Extraction and export engine.

    Example:
        engine = Engine(store, content_source, attachments, config)
        router.subscribe(engine.subscriptions())

        response = engine.on_extract_requested(ExtractionRequest(template_id="12"))
    """

    def __init__(self,
                 store: KeyValueStore,
                 content: ContentSource,
                 attachments: AttachmentResolver,
                 config: Optional[EngineConfig] = None,
                 extractor: Optional[TagExtractor] = None,
                 orchestrator: Optional[ExportOrchestrator] = None):
        self.config = config or EngineConfig()
        self.store = store
        self.content = content
        self.attachments = attachments
        self.extractor = extractor or TagExtractor(self.config)
        self.orchestrator = orchestrator or ExportOrchestrator(self.config)

        self._locks: Dict[str, threading.Lock] = {}
        self._locks_guard = threading.Lock()

    def subscriptions(self) -> Dict[str, Callable]:
        return {
            EXTRACT_REQUESTED: self.on_extract_requested,
            EXPORT_REQUESTED: self.on_export_requested,
        }

    # ------------------------------------------------------------------
    # Templates
    # ------------------------------------------------------------------

    def register_template(self, template_id: str, attachment_id: str) -> None:
        """Record a template and its package attachment."""
        if not template_id or not attachment_id:
            raise ValidationError("Template id and attachment id are required")
        self.store.set(template_key(template_id), {
            'attachment': str(attachment_id),
            'tag_convention': self.config.tags.convention,
        })

    def template_package(self, template_id: str) -> Path:
        """
        Package path for a template.

        Raises:
            NotFoundError: If the template or its package is missing
        """
        record = self.store.get(template_key(template_id))
        if not record or not record.get('attachment'):
            raise NotFoundError(f"Template not found: {template_id}")
        return self._attachment_path(record['attachment'])

    def cached_registry(self, template_id: str) -> Optional[TagRegistry]:
        """
        Registry cached for a template, or None.

        Raises:
            FormatError: If the stored value is not a readable registry
        """
        raw = self.store.get(registry_key(template_id))
        if raw is None:
            return None
        return TagRegistry.from_dict(raw)

    def _attachment_path(self, attachment_id: str) -> Path:
        path = self.attachments.resolve(str(attachment_id))
        if path is None or not Path(path).is_file():
            raise NotFoundError(f"Package file not found for attachment {attachment_id}")
        return Path(path)

    def _template_lock(self, template_id: str) -> threading.Lock:
        with self._locks_guard:
            if template_id not in self._locks:
                self._locks[template_id] = threading.Lock()
            return self._locks[template_id]

    # ------------------------------------------------------------------
    # Extraction
    # ------------------------------------------------------------------

    def on_extract_requested(self, request: ExtractionRequest) -> ExtractionResponse:
        """Handle an extraction request."""
        try:
            return self._extract(request)
        except IDMLEngineError as e:
            logger.error(f"Extraction request for template {request.template_id} failed: {e.message}")
            return ExtractionResponse.failure(e)

    def _extract(self, request: ExtractionRequest) -> ExtractionResponse:
        template_id = str(request.template_id or '').strip()
        if not template_id:
            raise ValidationError("Template id is required")
        if request.tag_convention != self.config.tags.convention:
            raise ValidationError(f"Unsupported tag convention: {request.tag_convention}")

        package_path = self.template_package(template_id)
        policy = CachePolicy.FORCE if request.force else (
            request.policy or self._default_policy())

        with self._template_lock(template_id):
            cached = None
            if policy != CachePolicy.FORCE:
                try:
                    cached = self.cached_registry(template_id)
                except FormatError as e:
                    if policy == CachePolicy.CACHED:
                        raise
                    logger.warning(f"Ignoring unreadable cached registry for template {template_id}: {e.detail}")

            if policy == CachePolicy.CACHED:
                if cached is None or cached.is_empty():
                    raise NotFoundError(f"No extracted tags cached for template {template_id}")
                return self._registry_response(cached, "loaded")

            if policy == CachePolicy.REFRESH_IF_EMPTY and cached is not None and not cached.is_empty():
                logger.debug(f"Loaded cached registry for template {template_id}")
                return self._registry_response(cached, "loaded")

            if policy == CachePolicy.REFRESH_IF_EMPTY:
                logger.info(f"Cached registry for template {template_id} is empty; re-extracting")

            result = self.extractor.extract(package_path)
            if not result.success:
                return ExtractionResponse(success=False, message=result.message,
                                          error_kind=result.error_kind)

            self.store.set(registry_key(template_id), result.registry.to_dict())
            logger.info(f"Stored registry for template {template_id} ({len(result.registry)} tags)")
            return self._registry_response(result.registry, "extracted")

    def _default_policy(self) -> CachePolicy:
        try:
            return CachePolicy(self.config.cache.policy)
        except ValueError:
            raise ValidationError(f"Unknown cache policy: {self.config.cache.policy}")

    def _registry_response(self, registry: TagRegistry, action: str) -> ExtractionResponse:
        return ExtractionResponse(
            success=True,
            tags=registry.names(),
            tags_details=registry.details(),
            action=action,
            extracted_at=registry.created_at,
            analysis=analyze(registry).to_dict(),
            message=f"{len(registry)} tags {action}.",
        )

    # ------------------------------------------------------------------
    # Export
    # ------------------------------------------------------------------

    def on_export_requested(self, request: ExportRequest) -> ExportResponse:
        """Handle an export request."""
        try:
            package_path = self._export_package(request)
            batch = self._export_batch(request)
        except IDMLEngineError as e:
            logger.error(f"Export request rejected: {e.message}")
            return ExportResponse.failure(e)

        result = self.orchestrator.export(package_path, batch, self.content)
        if not result.success:
            return ExportResponse(success=False, message=result.message, error_kind=result.error_kind)

        return ExportResponse(
            success=True,
            download_url=result.download_url,
            filename=result.filename,
            message=result.message,
            used_tags=result.used_tags,
            conflicts=result.conflicts,
            unknown_tags=result.unknown_tags,
        )

    def _export_package(self, request: ExportRequest) -> Path:
        if request.template_id and request.package_attachment_id:
            raise ValidationError("Give either a template or a package attachment, not both")
        if request.template_id:
            return self.template_package(str(request.template_id))
        if request.package_attachment_id:
            return self._attachment_path(request.package_attachment_id)
        raise ValidationError("A template or a package attachment is required")

    def _export_batch(self, request: ExportRequest) -> ExportBatch:
        if isinstance(request.mappings, ExportBatch):
            batch = request.mappings
        elif request.mappings is not None:
            batch = ExportBatch.from_raw(request.mappings)
        elif request.publication_id:
            raw = self.store.get(mappings_key(str(request.publication_id)))
            if raw is None:
                raise NotFoundError(f"No mappings stored for publication {request.publication_id}")
            batch = ExportBatch.from_raw(raw)
        else:
            raise ValidationError("Export request carries no mappings")

        if request.title:
            batch.title = request.title
        if request.export_date:
            batch.export_date = request.export_date
        return batch
