"""
IDML Core Library
=================

Tag extraction, content mapping and export for Adobe InDesign IDML packages:

- Package archive reading and writing (mimetype first and stored)
- Document index: stories, spreads, frames and page numbers
- Tag scanning and the per-template tag registry
- Content mapping and substitution resolution (single tags and chunks)
- Text and image substitution with linked media and a rebuilt link manifest
- Delivery archives and a staged, always-cleaned-up export pipeline

Architecture
------------

    idml_core/
    ├── xml/           - XML parsing, writing and geometry helpers
    ├── packaging/     - IDML archive and delivery archive
    ├── document/      - Designmap and spread index
    ├── tags/          - Tag scanning, registry and analysis
    ├── mapping/       - Content items, mappings and resolution
    ├── substitution/  - In-place text and image substitution
    ├── links/         - Media map and link manifest
    ├── validation/    - Well-formedness validation
    ├── pipeline/      - Extraction and export pipelines
    ├── store/         - Collaborator interfaces and local backends
    ├── config/        - Configuration management
    ├── service.py     - Event handlers (extract / export requested)
    └── api.py         - FastAPI adapter

Usage
-----

    from idml_core import Engine, ExtractionRequest, ExportRequest
    from idml_core.store import InMemoryStore, InMemoryContentSource, DirectoryAttachmentResolver

    engine = Engine(InMemoryStore(), InMemoryContentSource(items), DirectoryAttachmentResolver(uploads))
    engine.register_template("12", "template.idml")

    response = engine.on_extract_requested(ExtractionRequest(template_id="12"))
    print(response.tags)

    response = engine.on_export_requested(ExportRequest(
        template_id="12",
        mappings={"101": {"title": "headline", "image": "hero_image"}},
    ))
    print(response.download_url)
"""

__version__ = "1.0.0"

from idml_core.errors import (
    ErrorKind,
    IDMLEngineError,
    ValidationError,
    NotFoundError,
    FormatError,
    ResourceIOError,
)

from idml_core.config.settings import (
    EngineConfig,
    load_config,
    get_default_config,
)

from idml_core.tags.models import (
    TagType,
    Tag,
    TagRegistry,
)

from idml_core.mapping.models import (
    ContentItem,
    ContentMapping,
    ExportBatch,
)

from idml_core.pipeline.extraction import TagExtractor, ExtractionResult
from idml_core.pipeline.orchestrator import ExportOrchestrator, ExportResult, ExportState

from idml_core.service import (
    Engine,
    CachePolicy,
    ExtractionRequest,
    ExtractionResponse,
    ExportRequest,
    ExportResponse,
)

__all__ = [
    # Version
    "__version__",
    # Errors
    "ErrorKind",
    "IDMLEngineError",
    "ValidationError",
    "NotFoundError",
    "FormatError",
    "ResourceIOError",
    # Config
    "EngineConfig",
    "load_config",
    "get_default_config",
    # Tags
    "TagType",
    "Tag",
    "TagRegistry",
    # Mapping
    "ContentItem",
    "ContentMapping",
    "ExportBatch",
    # Pipelines
    "TagExtractor",
    "ExtractionResult",
    "ExportOrchestrator",
    "ExportResult",
    "ExportState",
    # Service
    "Engine",
    "CachePolicy",
    "ExtractionRequest",
    "ExtractionResponse",
    "ExportRequest",
    "ExportResponse",
]
