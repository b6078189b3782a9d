"""
Delivery Packager
=================

Bundles an exported package together with its staged media into the
single archive handed back to the caller.

Layout of the delivery archive:
- export-<slug>.idml
- images/<staged image files>
- media_map.json (optional)

The first export of a title on a given day gets the plain name; later
exports that would collide get a numeric suffix (-2, -3, ...).
"""

import itertools
import os
import re
import unicodedata
import zipfile
from datetime import date
from pathlib import Path
from typing import Dict, List, Optional
import logging

from idml_core.errors import ResourceIOError
from idml_core.packaging.base import PackageResult

logger = logging.getLogger(__name__)


def slugify(text: str, fallback: str = "untitled") -> str:
    """
    Convert a title into a lowercase, hyphen-separated filename fragment.

    Example:
        >>> slugify("Spring Issue: Café & Co.")
        'spring-issue-cafe-co'
    """
    normalized = unicodedata.normalize('NFKD', text or "")
    ascii_text = normalized.encode('ascii', 'ignore').decode('ascii').lower()
    slug = re.sub(r'[^a-z0-9]+', '-', ascii_text).strip('-')
    return slug or fallback


def delivery_filename(prefix: str, title: str, on: Optional[date] = None) -> str:
    """Deterministic delivery archive name: <prefix>-<slug>-<YYYY-MM-DD>.zip"""
    on = on or date.today()
    return f"{prefix}-{slugify(title)}-{on.isoformat()}.zip"


def claim_output_path(output_dir: Path, filename: str) -> Path:
    """
    Reserve a delivery path that no other export is using.

    The file is created exclusively, so two jobs can never be handed the
    same path. Taken names get -2, -3, ... before the extension.

    Returns:
        Path of the (empty) reserved file
    """
    stem, suffix = Path(filename).stem, Path(filename).suffix
    for attempt in itertools.count(1):
        name = filename if attempt == 1 else f"{stem}-{attempt}{suffix}"
        path = output_dir / name
        try:
            fd = os.open(str(path), os.O_CREAT | os.O_EXCL | os.O_WRONLY)
        except FileExistsError:
            continue
        os.close(fd)
        return path


class DeliveryPackager:
    """
    Creates the delivery archive for one export.

    Example:
        packager = DeliveryPackager(export_prefix="idml-export")
        result = packager.package(
            idml_bytes=data,
            title="Spring Issue",
            media_files=[package_root / "Links" / "cover.jpg"],
            output_dir=Path("output"),
        )
    """

    def __init__(self,
                 export_prefix: str = "idml-export",
                 media_dir_name: str = "images",
                 compression_level: int = 6):
        self.export_prefix = export_prefix
        self.media_dir_name = media_dir_name
        self.compression_level = compression_level

    def package(self,
                idml_bytes: bytes,
                title: str,
                media_files: List[Path],
                output_dir: Path,
                on: Optional[date] = None,
                extras: Optional[Dict[str, bytes]] = None) -> PackageResult:
        """
        Write the delivery archive.

        Args:
            idml_bytes: Packed IDML archive
            title: Title used for both the archive and the inner package name
            media_files: Staged image files to include under images/
            output_dir: Directory receiving the archive
            on: Export date (default today)
            extras: Additional members {arcname: bytes}

        Returns:
            PackageResult with output_path and counts

        Raises:
            ResourceIOError: If the archive cannot be written or a media file read
        """
        filename = delivery_filename(self.export_prefix, title, on)
        try:
            output_dir.mkdir(parents=True, exist_ok=True)
            output_path = claim_output_path(output_dir, filename)
        except OSError as e:
            raise ResourceIOError(f"Cannot create delivery archive: {filename}", detail=str(e)) from e

        if output_path.name != filename:
            logger.warning(f"Delivery archive {filename} already exists; writing {output_path.name}")

        result = PackageResult(output_path=output_path)
        result.metadata['filename'] = output_path.name
        result.metadata['requested_filename'] = filename

        idml_name = f"export-{slugify(title)}.idml"
        written_media = set()
        part_path = output_path.with_name(f".{output_path.name}.part")

        try:
            with zipfile.ZipFile(part_path, 'w', zipfile.ZIP_DEFLATED,
                                 compresslevel=self.compression_level,
                                 strict_timestamps=False) as zf:
                zf.writestr(idml_name, idml_bytes)
                result.entries_packaged += 1

                for media_file in media_files:
                    arcname = f"{self.media_dir_name}/{media_file.name}"
                    if arcname in written_media:
                        continue
                    zf.write(media_file, arcname)
                    written_media.add(arcname)
                    result.images_packaged += 1
                    result.entries_packaged += 1

                for arcname, data in (extras or {}).items():
                    zf.writestr(arcname, data)
                    result.entries_packaged += 1
            os.replace(part_path, output_path)
        except OSError as e:
            # part_path and output_path were both created by this job
            for leftover in (part_path, output_path):
                if leftover.exists():
                    leftover.unlink()
            raise ResourceIOError(f"Cannot write delivery archive: {output_path.name}", detail=str(e)) from e

        result.total_size_bytes = output_path.stat().st_size
        result.metadata['idml_name'] = idml_name
        logger.info(f"Created delivery archive: {output_path} "
                    f"({result.images_packaged} images, {result.total_size_bytes} bytes)")
        return result
