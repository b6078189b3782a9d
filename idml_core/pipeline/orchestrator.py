"""
Export Orchestrator
===================

Runs one export as a state machine:

    INIT -> EXTRACTED -> INDEXED -> RESOLVED -> SUBSTITUTED
         -> MANIFEST_REBUILT -> PACKAGED -> DONE

Any stage failure moves the job to FAILED. The job workspace is removed
before the job reaches DONE or FAILED, whatever happened in between, and
no partial output is returned on failure.
"""

from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from pathlib import Path
from typing import Callable, Dict, List, Optional
import logging

from idml_core.config.settings import EngineConfig
from idml_core.document.index import DocumentIndex, read_manifest
from idml_core.errors import ErrorKind, IDMLEngineError, ValidationError
from idml_core.links.manifest import LinkManifestBuilder
from idml_core.mapping.models import ExportBatch
from idml_core.mapping.resolver import ItemLookup, Resolution, resolve, lookup_item
from idml_core.packaging.archive import IDMLArchive
from idml_core.packaging.delivery import DeliveryPackager
from idml_core.pipeline.workspace import Workspace
from idml_core.substitution.engine import SubstitutionEngine
from idml_core.tags.registry import build
from idml_core.tags.scanner import TagScanner

logger = logging.getLogger(__name__)


class ExportState(str, Enum):
    INIT = "init"
    EXTRACTED = "extracted"
    INDEXED = "indexed"
    RESOLVED = "resolved"
    SUBSTITUTED = "substituted"
    MANIFEST_REBUILT = "manifest_rebuilt"
    PACKAGED = "packaged"
    DONE = "done"
    FAILED = "failed"


@dataclass
class ExportResult:
    """
    Container for export results.

    Attributes:
        success: Whether the export reached DONE
        state: Final state
        history: Every state entered, in order
        failed_stage: State the job was in when it failed
        download_url: Where the delivery archive can be fetched
        output_path: Delivery archive on disk
        filename: Delivery archive name
        error_kind: ErrorKind of the failure
        message: Human-readable outcome
        workspace_path: Job workspace (removed before returning)
        used_tags: Every tag referenced by the batch
        conflicts: Tags assigned by more than one item
        unknown_tags: Referenced tags missing from the package
        skipped_tags: Tags left unchanged, with the reason
        images_staged: Distinct source images staged
        errors: Diagnostic messages
    """
    success: bool = False
    state: ExportState = ExportState.INIT
    history: List[ExportState] = field(default_factory=lambda: [ExportState.INIT])
    failed_stage: Optional[ExportState] = None
    download_url: Optional[str] = None
    output_path: Optional[Path] = None
    filename: Optional[str] = None
    error_kind: Optional[ErrorKind] = None
    message: str = ""
    workspace_path: Optional[Path] = None
    used_tags: List[str] = field(default_factory=list)
    conflicts: Dict[str, List[str]] = field(default_factory=dict)
    unknown_tags: List[str] = field(default_factory=list)
    skipped_tags: Dict[str, str] = field(default_factory=dict)
    images_staged: int = 0
    errors: List[str] = field(default_factory=list)

    def advance(self, state: ExportState) -> None:
        self.state = state
        self.history.append(state)

    def fail(self, kind: ErrorKind, message: str) -> None:
        self.failed_stage = self.state
        self.success = False
        self.error_kind = kind
        self.message = message
        self.download_url = None
        self.output_path = None
        self.filename = None
        self.advance(ExportState.FAILED)

    def summary(self) -> str:
        """Generate a text summary of the export."""
        if not self.success:
            stage = self.failed_stage.value if self.failed_stage else "?"
            return f"Export FAILED at {stage} ({self.error_kind.value}): {self.message}"

        lines = [
            "Export: SUCCESS",
            f"Delivery: {self.filename}",
            f"Tags used: {len(self.used_tags)}",
            f"Images staged: {self.images_staged}",
        ]
        if self.conflicts:
            lines.append(f"Conflicting tags (last wins): {', '.join(sorted(self.conflicts))}")
        if self.unknown_tags:
            lines.append(f"Unknown tags: {', '.join(self.unknown_tags)}")
        return "\n".join(lines)


class ExportOrchestrator:
    """
    Owns the lifecycle of a single export.

    Each stage component can be replaced, which is how the test suite
    forces failures at every stage.

    Example:
        orchestrator = ExportOrchestrator(config)
        result = orchestrator.export(Path("template.idml"), batch, items)
        if result.success:
            print(result.download_url)
    """

    def __init__(self,
                 config: Optional[EngineConfig] = None,
                 archive: Optional[IDMLArchive] = None,
                 indexer: Callable[[Path], DocumentIndex] = read_manifest,
                 scanner: Optional[TagScanner] = None,
                 resolver: Callable[..., Resolution] = resolve,
                 substitution: Optional[SubstitutionEngine] = None,
                 link_builder: Optional[LinkManifestBuilder] = None,
                 delivery: Optional[DeliveryPackager] = None):
        self.config = config or EngineConfig()
        packaging = self.config.packaging
        self.archive = archive or IDMLArchive(packaging.stored_entries, packaging.compression_level)
        self.indexer = indexer
        self.scanner = scanner or TagScanner(self.config.tags)
        self.resolver = resolver
        self.substitution = substitution or SubstitutionEngine(self.config)
        self.link_builder = link_builder or LinkManifestBuilder(packaging.link_dir_name,
                                                                packaging.link_manifest_name)
        self.delivery = delivery or DeliveryPackager(packaging.export_prefix,
                                                     packaging.delivery_media_dir,
                                                     packaging.compression_level)

    def export(self,
               package_path: Path,
               batch: ExportBatch,
               items: ItemLookup) -> ExportResult:
        """
        Run the export pipeline.

        Args:
            package_path: Template package (.idml)
            batch: Mappings to apply
            items: Content items by id (mapping or lookup callable)

        Returns:
            ExportResult; on failure it carries the error kind and message only
        """
        result = ExportResult()
        workspace = None

        try:
            if batch.is_empty():
                raise ValidationError("Export batch contains no mappings")

            workspace = Workspace.create(self.config.temp_path, prefix="idml-export-")
            result.workspace_path = workspace.path
            self._run(package_path, batch, items, workspace, result)

        except IDMLEngineError as e:
            logger.error(f"Export failed at {result.state.value}: {e.message}"
                         + (f" ({e.detail})" if e.detail else ""))
            result.errors.append(e.detail or e.message)
            self._discard_output(result)
            result.fail(e.kind, e.message)
        except Exception as e:
            logger.error(f"Unexpected export failure at {result.state.value}: {e}", exc_info=True)
            result.errors.append(str(e))
            self._discard_output(result)
            result.fail(ErrorKind.IO, f"Export failed during {result.state.value}")
        finally:
            if workspace is not None:
                workspace.cleanup()

        if result.success:
            result.advance(ExportState.DONE)
            logger.info(f"Export complete: {result.filename}")
        return result

    def _run(self, package_path: Path, batch: ExportBatch, items: ItemLookup,
             workspace: Workspace, result: ExportResult) -> None:
        package_dir = workspace.package_dir

        layout = self.archive.open(package_path, package_dir)
        result.advance(ExportState.EXTRACTED)

        index = self.indexer(package_dir)
        registry = build(self.scanner.scan_package(index), index, self.config.tags.convention)
        result.advance(ExportState.INDEXED)

        resolution = self.resolver(batch, items, registry)
        result.used_tags = list(resolution.used_tags)
        result.conflicts = dict(resolution.conflicts)
        result.unknown_tags = list(resolution.unknown_tags)
        result.advance(ExportState.RESOLVED)

        applied = self.substitution.apply(index, registry, resolution)
        result.skipped_tags = dict(applied.skipped)
        result.images_staged = len(applied.media_map)
        if applied.media_map:
            logger.debug(applied.media_map.generate_report())
        result.advance(ExportState.SUBSTITUTED)

        self.link_builder.rebuild(package_dir, applied.media_map)
        result.advance(ExportState.MANIFEST_REBUILT)

        idml_bytes = self.archive.pack(package_dir, layout)
        extras: Dict[str, bytes] = {}
        if self.config.tracking.export_media_map and applied.media_map:
            extras[self.config.tracking.media_map_filename] = applied.media_map.to_json().encode('utf-8')

        packaged = self.delivery.package(
            idml_bytes=idml_bytes,
            title=self._title(batch, items),
            media_files=[package_dir / entry.staged_path for entry in applied.media_map],
            output_dir=self.config.output_path,
            on=batch.export_date or date.today(),
            extras=extras,
        )
        result.output_path = packaged.output_path
        result.filename = packaged.metadata['filename']
        result.download_url = self.download_url(packaged.output_path)
        result.advance(ExportState.PACKAGED)

        result.success = True
        result.message = "Export completed successfully."

    def download_url(self, output_path: Path) -> str:
        base = self.config.download_base_url
        if base:
            return f"{base.rstrip('/')}/{output_path.name}"
        return output_path.resolve().as_uri()

    def _title(self, batch: ExportBatch, items: ItemLookup) -> str:
        if batch.title:
            return batch.title
        for item_id in batch.item_ids():
            title = lookup_item(items, item_id).title
            if title:
                return title
        return "export"

    def _discard_output(self, result: ExportResult) -> None:
        if result.output_path is not None and result.output_path.exists():
            try:
                result.output_path.unlink()
            except OSError as e:
                logger.error(f"Failed to remove partial output {result.output_path}: {e}")
