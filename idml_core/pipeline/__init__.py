"""
Pipelines
=========

Extraction and export pipelines and their job workspaces.

Components:
- Workspace: Exclusively owned temporary directory for one job
- TagExtractor: open -> index -> scan -> build
- ExportOrchestrator: the export state machine
"""

from idml_core.pipeline.workspace import (
    Workspace,
    job_workspace,
    PACKAGE_DIR,
)

from idml_core.pipeline.extraction import (
    TagExtractor,
    ExtractionResult,
)

from idml_core.pipeline.orchestrator import (
    ExportOrchestrator,
    ExportResult,
    ExportState,
)

__all__ = [
    "Workspace",
    "job_workspace",
    "PACKAGE_DIR",
    "TagExtractor",
    "ExtractionResult",
    "ExportOrchestrator",
    "ExportResult",
    "ExportState",
]
