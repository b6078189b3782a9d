"""
Extraction Pipeline
===================

Opens a template package in a private workspace, scans it and builds a
fresh TagRegistry. The workspace is always removed before returning.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, List, Optional
import logging

from idml_core.config.settings import EngineConfig
from idml_core.document.index import DocumentIndex, read_manifest
from idml_core.errors import ErrorKind, FormatError, IDMLEngineError
from idml_core.packaging.archive import IDMLArchive
from idml_core.pipeline.workspace import job_workspace
from idml_core.tags.models import TagRegistry
from idml_core.tags.registry import build
from idml_core.tags.scanner import TagScanner

logger = logging.getLogger(__name__)


@dataclass
class ExtractionResult:
    """
    Outcome of one extraction pass.

    Attributes:
        success: Whether a non-empty registry was built
        registry: The new registry (None on failure)
        marker_count: Markers found before deduplication
        error_kind: ErrorKind of the failure, if any
        message: Human-readable failure message
        errors: Diagnostic messages
    """
    success: bool = True
    registry: Optional[TagRegistry] = None
    marker_count: int = 0
    error_kind: Optional[ErrorKind] = None
    message: str = ""
    errors: List[str] = field(default_factory=list)

    def fail(self, error: IDMLEngineError) -> None:
        self.success = False
        self.registry = None
        self.error_kind = error.kind
        self.message = error.message
        self.errors.append(error.detail or error.message)

    def summary(self) -> str:
        if not self.success:
            return f"Extraction FAILED ({self.error_kind.value}): {self.message}"
        return (f"Extraction: SUCCESS\n"
                f"Markers: {self.marker_count}\n"
                f"Tags: {len(self.registry) if self.registry else 0}")


class TagExtractor:
    """
    Extraction pipeline: open -> index -> scan -> build.

    Example:
        extractor = TagExtractor(config)
        result = extractor.extract(Path("template.idml"))
        if result.success:
            store.set(key, result.registry.to_dict())
    """

    def __init__(self,
                 config: Optional[EngineConfig] = None,
                 archive: Optional[IDMLArchive] = None,
                 scanner: Optional[TagScanner] = None,
                 indexer: Callable[[Path], DocumentIndex] = read_manifest):
        self.config = config or EngineConfig()
        self.archive = archive or IDMLArchive(self.config.packaging.stored_entries,
                                              self.config.packaging.compression_level)
        self.scanner = scanner or TagScanner(self.config.tags)
        self.indexer = indexer

    def extract(self, package_path: Path) -> ExtractionResult:
        """Extract a fresh registry from a package file."""
        result = ExtractionResult()

        try:
            with job_workspace(self.config.temp_path, prefix="idml-extract-") as workspace:
                self.archive.open(package_path, workspace.package_dir)
                index = self.indexer(workspace.package_dir)
                markers_by_story = self.scanner.scan_package(index)
                result.marker_count = sum(len(markers) for _, markers in markers_by_story)

                registry = build(markers_by_story, index, self.config.tags.convention)
                if registry.is_empty():
                    raise FormatError(f"No tags found in package: {package_path.name}")
                result.registry = registry

        except IDMLEngineError as e:
            logger.error(f"Extraction failed for {package_path.name}: {e.message}"
                         + (f" ({e.detail})" if e.detail else ""))
            result.fail(e)

        if result.success:
            logger.info(f"Extracted {len(result.registry)} tags from {package_path.name}")
        return result
