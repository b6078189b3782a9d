"""
HTTP Adapter
============

Thin FastAPI router over the engine's two events.

Endpoints:
    POST /api/v1/templates/{template_id}/extract
    POST /api/v1/exports
    GET  /api/v1/downloads/{filename}
    GET  /api/v1/health

Failures map to HTTP status codes by error kind (validation 400,
not_found 404, format 422, io 500) with a ``{"message": ...}`` body.
No authentication: callers are expected to sit behind their own.
"""

import os
from datetime import date, datetime
from pathlib import Path
from typing import Any, Dict, List, Optional
import logging

from fastapi import FastAPI, HTTPException
from fastapi.responses import FileResponse, JSONResponse
from pydantic import BaseModel, Field

from idml_core.config.settings import EngineConfig, load_config, setup_logging
from idml_core.errors import ErrorKind
from idml_core.service import (
    CachePolicy,
    Engine,
    EXPORT_REQUESTED,
    EXTRACT_REQUESTED,
    ExportRequest,
    ExtractionRequest,
)
from idml_core.store.backends import DirectoryAttachmentResolver, InMemoryContentSource, JSONFileStore

logger = logging.getLogger(__name__)

STATUS_BY_KIND = {
    ErrorKind.VALIDATION: 400,
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.FORMAT: 422,
    ErrorKind.IO: 500,
}


class ExtractOptions(BaseModel):
    """Options for tag extraction."""
    tag_convention: str = Field(default="tag-based", description="Tag convention (only 'tag-based')")
    force: bool = Field(default=False, description="Re-extract even if a registry is cached")
    policy: Optional[CachePolicy] = Field(default=None, description="Cache policy override")


class ExtractionInfo(BaseModel):
    """Extracted tags of a template."""
    tags: List[str]
    tags_details: Dict[str, Dict[str, Any]]
    action: str
    extracted_at: Optional[str] = None
    analysis: Dict[str, Any] = Field(default_factory=dict)
    message: str = ""


class ExportOptions(BaseModel):
    """Export request body."""
    template_id: Optional[str] = Field(default=None, description="Template mode")
    package_attachment_id: Optional[str] = Field(default=None, description="Direct package mode")
    mappings: Optional[Dict[str, Any]] = Field(default=None, description="{item_id: {element: assignment}}")
    publication_id: Optional[str] = Field(default=None, description="Read mappings from this publication")
    title: Optional[str] = None
    export_date: Optional[date] = None


class ExportInfo(BaseModel):
    """Result of an export."""
    download_url: str
    filename: str
    message: str = ""
    used_tags: List[str] = Field(default_factory=list)
    conflicts: Dict[str, List[str]] = Field(default_factory=dict)
    unknown_tags: List[str] = Field(default_factory=list)


def _error_response(kind: Optional[ErrorKind], message: str) -> JSONResponse:
    status = STATUS_BY_KIND.get(kind, 500)
    return JSONResponse(status_code=status, content={"message": message})


def create_app(engine: Engine) -> FastAPI:
    """Create and configure the FastAPI application around an engine."""

    app = FastAPI(
        title="IDML Tag Export API",
        description="""
Extract tags from IDML templates and export packages filled with content.

## Workflow

1. **Extract**: `POST /api/v1/templates/{template_id}/extract` - list the template's tags
2. **Export**: `POST /api/v1/exports` - apply a content mapping, returns a download URL
3. **Download**: `GET /api/v1/downloads/{filename}`
        """,
        version="1.0.0",
        docs_url="/docs",
        redoc_url="/redoc",
    )

    handlers = engine.subscriptions()
    output_dir = engine.config.output_path

    @app.post("/api/v1/templates/{template_id}/extract", response_model=ExtractionInfo, tags=["Templates"])
    def extract_tags(template_id: str, options: Optional[ExtractOptions] = None):
        """Extract (or load cached) tags for a template."""
        options = options or ExtractOptions()
        response = handlers[EXTRACT_REQUESTED](ExtractionRequest(
            template_id=template_id,
            tag_convention=options.tag_convention,
            force=options.force,
            policy=options.policy,
        ))
        if not response.success:
            return _error_response(response.error_kind, response.message)

        return ExtractionInfo(
            tags=response.tags,
            tags_details=response.tags_details,
            action=response.action,
            extracted_at=response.extracted_at,
            analysis=response.analysis,
            message=response.message,
        )

    @app.post("/api/v1/exports", response_model=ExportInfo, tags=["Exports"])
    def export_package(options: ExportOptions):
        """Export a template or package with mapped content."""
        response = handlers[EXPORT_REQUESTED](ExportRequest(
            template_id=options.template_id,
            package_attachment_id=options.package_attachment_id,
            mappings=options.mappings,
            publication_id=options.publication_id,
            title=options.title,
            export_date=options.export_date,
        ))
        if not response.success:
            return _error_response(response.error_kind, response.message)

        return ExportInfo(
            download_url=response.download_url,
            filename=response.filename,
            message=response.message,
            used_tags=response.used_tags,
            conflicts=response.conflicts,
            unknown_tags=response.unknown_tags,
        )

    @app.get("/api/v1/downloads/{filename}", tags=["Exports"])
    def download_export(filename: str):
        """Download a delivery archive."""
        if Path(filename).name != filename or filename.startswith('.'):
            raise HTTPException(status_code=404, detail="File not found")

        file_path = output_dir / filename
        if not file_path.is_file():
            raise HTTPException(status_code=404, detail="File not found")

        return FileResponse(
            path=file_path,
            filename=file_path.name,
            media_type="application/zip",
        )

    @app.get("/api/v1/health", tags=["System"])
    def health_check():
        """Health check endpoint."""
        return {
            "status": "healthy",
            "timestamp": datetime.now().isoformat(),
            "tag_convention": engine.config.tags.convention,
            "cache_policy": engine.config.cache.policy,
        }

    return app


def build_local_engine(config: EngineConfig) -> Engine:
    """
    Engine backed by the local filesystem, for development.

    Uses config.custom["store_dir"] (default "store") for stored records and
    config.custom["attachments_dir"] (default "<store_dir>/attachments") for packages.
    """
    store_dir = Path(config.custom.get("store_dir", "store"))
    attachments_dir = Path(config.custom.get("attachments_dir", store_dir / "attachments"))
    return Engine(
        store=JSONFileStore(store_dir / "records"),
        content=InMemoryContentSource(),
        attachments=DirectoryAttachmentResolver(attachments_dir),
        config=config,
    )


if __name__ == "__main__":
    import uvicorn

    config_path = os.environ.get("IDML_ENGINE_CONFIG")
    config = load_config(Path(config_path)) if config_path else EngineConfig()
    setup_logging(config)
    uvicorn.run(create_app(build_local_engine(config)), host="0.0.0.0", port=8000)
