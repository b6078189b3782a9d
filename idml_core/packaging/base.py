"""
Base Packaging Classes
======================

Result containers shared by the archive writer and the delivery packager.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Dict, Any, Optional
import zipfile
import logging

logger = logging.getLogger(__name__)


@dataclass
class ArchiveEntry:
    """One member of a source package, in archive order."""

    name: str                            # Member name (e.g., "Stories/Story_u1d8.xml")
    compress_type: int = zipfile.ZIP_DEFLATED


@dataclass
class ArchiveLayout:
    """
    Entry ordering and compression modes recorded when a package is opened,
    so the package can be rebuilt the way it was read.
    """

    entries: List[ArchiveEntry] = field(default_factory=list)

    def names(self) -> List[str]:
        return [entry.name for entry in self.entries]

    def compress_type_for(self, name: str) -> Optional[int]:
        for entry in self.entries:
            if entry.name == name:
                return entry.compress_type
        return None


@dataclass
class PackageResult:
    """
    Container for packaging results.

    Attributes:
        success: Whether packaging succeeded
        output_path: Path to the created package
        entries_packaged: Number of archive members written
        images_packaged: Number of media files written
        total_size_bytes: Total package size in bytes
        errors: List of error messages
        metadata: Additional packaging metadata
    """
    success: bool = True
    output_path: Optional[Path] = None
    entries_packaged: int = 0
    images_packaged: int = 0
    total_size_bytes: int = 0
    errors: List[str] = field(default_factory=list)
    metadata: Dict[str, Any] = field(default_factory=dict)

    def add_error(self, error: str) -> None:
        """Add an error message."""
        self.errors.append(error)
        self.success = False

    def summary(self) -> str:
        """Generate a text summary of packaging results."""
        status = "SUCCESS" if self.success else "FAILED"
        lines = [
            f"Packaging: {status}",
            f"Output: {self.output_path}",
            f"Entries: {self.entries_packaged}",
            f"Images: {self.images_packaged}",
        ]

        if self.total_size_bytes > 0:
            size_mb = self.total_size_bytes / (1024 * 1024)
            lines.append(f"Size: {size_mb:.2f} MB")

        if self.errors:
            lines.append(f"\nErrors ({len(self.errors)}):")
            for error in self.errors[:5]:
                lines.append(f"  - {error}")
            if len(self.errors) > 5:
                lines.append(f"  ... and {len(self.errors) - 5} more")

        return "\n".join(lines)
