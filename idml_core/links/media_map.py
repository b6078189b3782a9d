"""
Media Mapping System
====================

Tracks every source image staged into a package during one export, so the
same source is staged exactly once and every image tag pointing at it
reuses the same link entry.

This module provides:
- Mapping of original media source -> staged link entry
- Image metadata (dimensions, format, size) read with Pillow
- Export of mapping data for debugging and delivery
"""

from dataclasses import dataclass, field, asdict
from typing import Dict, List, Optional, Tuple
from pathlib import Path
import json
import logging
import re
from datetime import datetime

from PIL import Image

logger = logging.getLogger(__name__)

_UNSAFE_NAME_CHARS = re.compile(r'[^A-Za-z0-9._-]+')


@dataclass
class StagedMedia:
    """Tracks a single source image staged into the package link directory."""

    source_path: str            # Original media source (e.g., "/uploads/2024/05/cover.jpg")
    link_name: str              # Filename inside the link directory (e.g., "cover.jpg")
    staged_path: str            # Package-relative path (e.g., "Links/cover.jpg")
    link_uri: str               # Value written to LinkResourceURI (e.g., "file:Links/cover.jpg")

    referenced_by: List[str] = field(default_factory=list)  # Tag names using this image

    # Image-specific metadata
    width: Optional[int] = None
    height: Optional[int] = None
    image_format: Optional[str] = None
    file_size: Optional[int] = None

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> 'StagedMedia':
        """Create from dictionary."""
        return cls(**data)


def read_image_info(path: Path) -> Tuple[Optional[int], Optional[int], Optional[str]]:
    """
    Read image dimensions and format.

    Returns:
        (width, height, format); all None when Pillow cannot identify the file
        (EPS without Ghostscript, AI, PDF, ...)
    """
    try:
        with Image.open(path) as img:
            width, height = img.size
            return width, height, img.format
    except OSError as e:
        logger.debug(f"Could not read image dimensions for {path.name}: {e}")
        return None, None, None


def safe_link_name(source_path: str) -> str:
    """Derive a filesystem- and URI-safe link filename from a media source."""
    name = Path(source_path).name
    stem, suffix = Path(name).stem, Path(name).suffix.lower()
    stem = _UNSAFE_NAME_CHARS.sub('-', stem).strip('-') or "image"
    return f"{stem}{suffix}"


class MediaMap:
    """
    Map of media sources staged during one export (the applied media map).

    Example usage:
        media_map = MediaMap(link_dir_name="Links")

        if media_map.get("/uploads/cover.jpg") is None:
            media_map.add_media("/uploads/cover.jpg", staged_file)
        media_map.add_reference("/uploads/cover.jpg", "image_main")

        logger.debug(media_map.generate_report())
    """

    def __init__(self, link_dir_name: str = "Links"):
        self.link_dir_name = link_dir_name
        self.media: Dict[str, StagedMedia] = {}  # Key: source_path
        self._names: Dict[str, str] = {}         # link_name -> source_path

    def __len__(self) -> int:
        return len(self.media)

    def __bool__(self) -> bool:
        return bool(self.media)

    def __iter__(self):
        return iter(self.media.values())

    def get(self, source_path: str) -> Optional[StagedMedia]:
        return self.media.get(source_path)

    def reserve_name(self, source_path: str) -> str:
        """
        Choose a unique link filename for a source.

        Two different sources with the same basename get "name-2.ext",
        "name-3.ext", ...
        """
        if source_path in self.media:
            return self.media[source_path].link_name

        base = safe_link_name(source_path)
        candidate = base
        counter = 2
        while candidate in self._names and self._names[candidate] != source_path:
            stem, suffix = Path(base).stem, Path(base).suffix
            candidate = f"{stem}-{counter}{suffix}"
            counter += 1

        self._names[candidate] = source_path
        return candidate

    def add_media(self, source_path: str, staged_file: Path) -> StagedMedia:
        """
        Register a staged image.

        Args:
            source_path: Original media source
            staged_file: Absolute path of the copy inside the package

        Returns:
            StagedMedia entry
        """
        link_name = staged_file.name
        staged_path = f"{self.link_dir_name}/{link_name}"
        width, height, image_format = read_image_info(staged_file)

        entry = StagedMedia(
            source_path=source_path,
            link_name=link_name,
            staged_path=staged_path,
            link_uri=f"file:{staged_path}",
            width=width,
            height=height,
            image_format=image_format,
            file_size=staged_file.stat().st_size,
        )

        self.media[source_path] = entry
        self._names[link_name] = source_path
        logger.debug(f"Staged media: {source_path} -> {staged_path}")
        return entry

    def add_reference(self, source_path: str, tag_name: str) -> None:
        """Record that an image tag points at a staged source."""
        entry = self.media.get(source_path)
        if entry is None:
            logger.warning(f"Reference to unstaged media: {source_path} from tag {tag_name}")
            return
        if tag_name not in entry.referenced_by:
            entry.referenced_by.append(tag_name)

    def get_statistics(self) -> Dict[str, int]:
        return {
            'total_media': len(self.media),
            'total_references': sum(len(e.referenced_by) for e in self.media.values()),
            'total_bytes': sum(e.file_size or 0 for e in self.media.values()),
            'without_dimensions': sum(1 for e in self.media.values() if e.width is None),
        }

    def export_mapping(self) -> dict:
        """Export mapping data as dictionary (for in-memory transfer)."""
        return {
            'link_dir_name': self.link_dir_name,
            'media': {source: entry.to_dict() for source, entry in self.media.items()},
            'statistics': self.get_statistics(),
        }

    def import_mapping(self, data: dict) -> None:
        """Import mapping from dictionary."""
        self.link_dir_name = data.get('link_dir_name', self.link_dir_name)
        self.media = {
            source: StagedMedia.from_dict(entry)
            for source, entry in data.get('media', {}).items()
        }
        self._names = {entry.link_name: source for source, entry in self.media.items()}

    def to_json(self) -> str:
        data = self.export_mapping()
        data['metadata'] = {
            'created': datetime.now().isoformat(),
            'total_media': len(self.media),
        }
        return json.dumps(data, indent=2, ensure_ascii=False)

    def generate_report(self) -> str:
        """Generate a human-readable report of staged media."""
        stats = self.get_statistics()
        lines = [
            "=" * 60,
            "MEDIA MAP REPORT",
            "=" * 60,
            f"Staged media: {stats['total_media']}",
            f"Tag references: {stats['total_references']}",
            f"Total bytes: {stats['total_bytes']}",
        ]
        for entry in list(self.media.values())[:10]:
            size = f"{entry.width}x{entry.height}" if entry.width else "unknown size"
            lines.append(f"  {entry.source_path}")
            lines.append(f"    -> {entry.staged_path} ({size})")
            lines.append(f"    -> tags: {', '.join(entry.referenced_by) or 'NONE'}")
        if len(self.media) > 10:
            lines.append(f"  ... and {len(self.media) - 10} more")
        lines.append("=" * 60)
        return "\n".join(lines)
