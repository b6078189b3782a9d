"""
Packaging Framework
===================

Reading and rebuilding IDML packages, and bundling exports for delivery.

Components:
- IDMLArchive: Extracts packages and rebuilds them with the required layout
- DeliveryPackager: Bundles an exported package with its staged media
- PackageResult: Container for packaging results
"""

from idml_core.packaging.base import (
    ArchiveEntry,
    ArchiveLayout,
    PackageResult,
)

from idml_core.packaging.archive import (
    IDMLArchive,
    MIMETYPE_ENTRY,
    IDML_MIMETYPE,
)

from idml_core.packaging.delivery import (
    DeliveryPackager,
    claim_output_path,
    delivery_filename,
    slugify,
)

__all__ = [
    # Base classes
    "ArchiveEntry",
    "ArchiveLayout",
    "PackageResult",
    # Package archive
    "IDMLArchive",
    "MIMETYPE_ENTRY",
    "IDML_MIMETYPE",
    # Delivery
    "DeliveryPackager",
    "claim_output_path",
    "delivery_filename",
    "slugify",
]
