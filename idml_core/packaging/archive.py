"""
Package Archive
===============

Reads an IDML package into a working directory and rebuilds a package
from a directory tree.

The rebuilt archive keeps the original member order and compression modes.
The ``mimetype`` member is always written first and stored (not deflated);
InDesign refuses to open the package otherwise.
"""

import io
import os
import zipfile
from pathlib import Path
from typing import List, Optional, Sequence
import logging

from idml_core.errors import FormatError, NotFoundError, ResourceIOError
from idml_core.packaging.base import ArchiveEntry, ArchiveLayout, PackageResult

logger = logging.getLogger(__name__)

MIMETYPE_ENTRY = "mimetype"
IDML_MIMETYPE = "application/vnd.adobe.indesign-idml-package"


class IDMLArchive:
    """
    Archive reader/writer for IDML packages.

    Example:
        archive = IDMLArchive()
        layout = archive.open(Path("template.idml"), workspace / "package")
        # ... rewrite resources ...
        data = archive.pack(workspace / "package", layout)
    """

    def __init__(self,
                 stored_entries: Sequence[str] = (MIMETYPE_ENTRY,),
                 compression_level: int = 6):
        """
        Initialize archive handler.

        Args:
            stored_entries: Members that must never be deflated
            compression_level: Deflate level for all other members (0-9)
        """
        self.stored_entries = set(stored_entries) | {MIMETYPE_ENTRY}
        self.compression_level = compression_level

    def open(self, archive_path: Path, dest_dir: Path) -> ArchiveLayout:
        """
        Extract every member of a package into dest_dir.

        Args:
            archive_path: Path to the .idml package
            dest_dir: Fresh directory to extract into (created if missing)

        Returns:
            ArchiveLayout recording member order and compression

        Raises:
            NotFoundError: If the archive does not exist
            FormatError: If the archive cannot be opened or a member cannot be written
        """
        if not archive_path.is_file():
            raise NotFoundError(f"Package not found: {archive_path.name}")

        layout = ArchiveLayout()
        root = dest_dir.resolve()

        try:
            root.mkdir(parents=True, exist_ok=True)
            with zipfile.ZipFile(archive_path, 'r') as zf:
                for info in zf.infolist():
                    target = (root / info.filename).resolve()
                    if target != root and root not in target.parents:
                        raise FormatError(f"Package member escapes workspace: {info.filename}")

                    if info.is_dir():
                        target.mkdir(parents=True, exist_ok=True)
                        continue

                    target.parent.mkdir(parents=True, exist_ok=True)
                    with zf.open(info) as src, open(target, 'wb') as dst:
                        while True:
                            chunk = src.read(1024 * 64)
                            if not chunk:
                                break
                            dst.write(chunk)

                    layout.entries.append(ArchiveEntry(info.filename, info.compress_type))
        except zipfile.BadZipFile as e:
            raise FormatError(f"Cannot open package: {archive_path.name}", detail=str(e)) from e
        except OSError as e:
            raise FormatError(f"Cannot extract package: {archive_path.name}", detail=str(e)) from e

        logger.info(f"Extracted {len(layout.entries)} members from {archive_path.name} to {dest_dir}")
        return layout

    def pack(self, directory: Path, layout: Optional[ArchiveLayout] = None) -> bytes:
        """
        Build a package from a directory tree.

        Members listed in layout keep their original order and compression;
        files added since (linked images, link manifest) follow in sorted order.

        Args:
            directory: Package root directory
            layout: Layout recorded by open(), if any

        Returns:
            Archive bytes

        Raises:
            ResourceIOError: If any file cannot be read
        """
        names = self._ordered_names(directory, layout)
        buffer = io.BytesIO()

        with zipfile.ZipFile(buffer, 'w') as zf:
            for name in names:
                path = directory / name
                try:
                    data = path.read_bytes()
                except OSError as e:
                    raise ResourceIOError(f"Cannot read package member: {name}", detail=str(e)) from e

                compress_type = self._compress_type(name, layout)
                info = zipfile.ZipInfo.from_file(str(path), arcname=name, strict_timestamps=False)
                info.compress_type = compress_type
                if compress_type == zipfile.ZIP_STORED:
                    zf.writestr(info, data)
                else:
                    zf.writestr(info, data, compresslevel=self.compression_level)

        logger.debug(f"Packed {len(names)} members from {directory}")
        return buffer.getvalue()

    def pack_to(self,
                directory: Path,
                output_path: Path,
                layout: Optional[ArchiveLayout] = None) -> PackageResult:
        """Pack a directory and write the archive to output_path."""
        result = PackageResult(output_path=output_path)
        data = self.pack(directory, layout)

        try:
            output_path.parent.mkdir(parents=True, exist_ok=True)
            output_path.write_bytes(data)
        except OSError as e:
            raise ResourceIOError(f"Cannot write package: {output_path.name}", detail=str(e)) from e

        result.entries_packaged = len(self._ordered_names(directory, layout))
        result.total_size_bytes = len(data)
        logger.info(f"Created package: {output_path} ({result.total_size_bytes} bytes)")
        return result

    def _ordered_names(self, directory: Path, layout: Optional[ArchiveLayout]) -> List[str]:
        present = set()
        for dirpath, _dirnames, filenames in os.walk(directory):
            for filename in filenames:
                rel = Path(dirpath, filename).relative_to(directory).as_posix()
                present.add(rel)

        ordered: List[str] = []
        if MIMETYPE_ENTRY in present:
            ordered.append(MIMETYPE_ENTRY)

        if layout is not None:
            for name in layout.names():
                if name in present and name not in ordered:
                    ordered.append(name)

        seen = set(ordered)
        ordered.extend(sorted(name for name in present if name not in seen))
        return ordered

    def _compress_type(self, name: str, layout: Optional[ArchiveLayout]) -> int:
        if name in self.stored_entries:
            return zipfile.ZIP_STORED
        if layout is not None:
            original = layout.compress_type_for(name)
            if original is not None:
                return original
        return zipfile.ZIP_DEFLATED
