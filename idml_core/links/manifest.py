"""
Link Manifest Builder
=====================

Creates or updates the link directory and its manifest (Links/Links.xml)
so every image staged during an export is listed with its package-relative
path when the package is reopened.
"""

from pathlib import Path
from typing import Optional, Dict
import logging

from lxml import etree

from idml_core.errors import ResourceIOError
from idml_core.links.media_map import MediaMap, StagedMedia
from idml_core.xml.utils import parse_xml, write_xml, iter_local

logger = logging.getLogger(__name__)


class LinkManifestBuilder:
    """
    Maintains the package link manifest.

    Example:
        builder = LinkManifestBuilder()
        manifest_path = builder.rebuild(package_root, media_map)
    """

    def __init__(self, link_dir_name: str = "Links", manifest_name: str = "Links.xml"):
        self.link_dir_name = link_dir_name
        self.manifest_name = manifest_name

    def ensure_link_dir(self, package_root: Path) -> Path:
        """
        Create the link directory if missing.

        Raises:
            ResourceIOError: If the directory cannot be created
        """
        link_dir = package_root / self.link_dir_name
        try:
            link_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise ResourceIOError(f"Cannot create link directory: {self.link_dir_name}", detail=str(e)) from e
        return link_dir

    def rebuild(self, package_root: Path, media_map: MediaMap) -> Optional[Path]:
        """
        Update (or create) the link manifest from the applied media map.

        Existing entries are kept; entries for the same path are replaced.
        Does nothing when the media map is empty.

        Args:
            package_root: Extracted package directory
            media_map: Media staged during this export

        Returns:
            Path to the manifest, or None when nothing was staged
        """
        if not media_map:
            logger.debug("No staged media; link manifest left untouched")
            return None

        link_dir = self.ensure_link_dir(package_root)
        manifest_path = link_dir / self.manifest_name

        if manifest_path.exists():
            tree = parse_xml(manifest_path)
            root = tree.getroot()
        else:
            root = etree.Element('Links')
            tree = etree.ElementTree(root)

        existing: Dict[str, object] = {}
        for link in iter_local(root, 'Link'):
            path = link.get('Path')
            if path:
                existing[path] = link

        for entry in media_map:
            link = existing.get(entry.staged_path)
            if link is None:
                link = etree.SubElement(root, 'Link')
            self._fill_link(link, entry)

        write_xml(tree, manifest_path)
        logger.info(f"Link manifest lists {len(root)} entries ({len(media_map)} staged this export)")
        return manifest_path

    def _fill_link(self, link, entry: StagedMedia) -> None:
        link.set('Self', f"link_{Path(entry.link_name).stem}")
        link.set('Name', entry.link_name)
        link.set('Path', entry.staged_path)
        link.set('LinkResourceURI', entry.link_uri)
        if entry.image_format:
            link.set('LinkResourceFormat', entry.image_format)
        if entry.width is not None and entry.height is not None:
            link.set('Width', str(entry.width))
            link.set('Height', str(entry.height))
        if entry.file_size is not None:
            link.set('Size', str(entry.file_size))
