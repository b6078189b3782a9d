"""
Content Substitution Engine
===========================

Rewrites package resources so that every mapped tag carries its new value.

Text tags: the first ``Content`` run beneath the tagged element receives
the new text and the remaining runs of the placeholder are removed; style
ranges and every element outside the tag are left as they were. Newlines
in the value become ``Br`` elements.

Image tags: the source image is copied once per export into the link
directory and the tagged frame's ``Link`` is pointed at the copy.

Every resource written is re-checked for well-formedness.
"""

import shutil
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple
import logging

from lxml import etree

from idml_core.config.settings import EngineConfig
from idml_core.document.index import DocumentIndex
from idml_core.errors import NotFoundError, ResourceIOError, ValidationError
from idml_core.links.manifest import LinkManifestBuilder
from idml_core.links.media_map import MediaMap, StagedMedia
from idml_core.mapping.resolver import Resolution, Substitution
from idml_core.tags.models import Marker, TagRegistry, TagType
from idml_core.validation.wellformed import WellFormednessValidator
from idml_core.xml.utils import (
    GRAPHIC_FRAMES,
    IMAGE_CONTENT_ELEMENTS,
    local_name,
    parse_xml,
    write_xml,
    iter_local,
    find_by_self,
    sanitize_xml_text,
)

logger = logging.getLogger(__name__)


@dataclass
class SubstitutionResult:
    """
    Outcome of applying one resolution to a package.

    Attributes:
        media_map: Images staged during this export
        modified_resources: Package-relative resources rewritten
        applied: Tag -> number of occurrences rewritten
        skipped: Tag -> reason it was left unchanged
    """
    media_map: MediaMap
    modified_resources: List[str] = field(default_factory=list)
    applied: Dict[str, int] = field(default_factory=dict)
    skipped: Dict[str, str] = field(default_factory=dict)

    def summary(self) -> str:
        lines = [
            f"Tags applied: {len(self.applied)}",
            f"Resources rewritten: {len(self.modified_resources)}",
            f"Images staged: {len(self.media_map)}",
        ]
        if self.skipped:
            lines.append(f"Skipped ({len(self.skipped)}):")
            for tag, reason in self.skipped.items():
                lines.append(f"  - {tag}: {reason}")
        return "\n".join(lines)


def replace_text(target: Any, value: str) -> None:
    """
    Replace the text runs beneath target with value.

    The first Content run keeps its place (and therefore its character and
    paragraph styles); other Content and Br runs beneath target are removed.
    """
    text = sanitize_xml_text(value).replace('\r\n', '\n').replace('\r', '\n')
    lines = text.split('\n')

    contents = list(iter_local(target, 'Content'))
    breaks = list(iter_local(target, 'Br'))

    if contents:
        first = contents[0]
        for elem in contents[1:] + breaks:
            _remove_keep_tail(elem)
        for child in list(first):
            first.remove(child)
        first.text = lines[0]
        parent = first.getparent()
        position = parent.index(first)
    else:
        parent = next(iter_local(target, 'CharacterStyleRange'), target)
        first = etree.SubElement(parent, 'Content')
        first.text = lines[0]
        position = parent.index(first)

    for line in lines[1:]:
        br = etree.Element('Br')
        content = etree.Element('Content')
        content.text = line
        parent.insert(position + 1, br)
        parent.insert(position + 2, content)
        position += 2


def _remove_keep_tail(elem: Any) -> None:
    parent = elem.getparent()
    if parent is None:
        return
    if elem.tail:
        previous = elem.getprevious()
        if previous is not None:
            previous.tail = (previous.tail or '') + elem.tail
        else:
            parent.text = (parent.text or '') + elem.tail
    parent.remove(elem)


def relink_frame(frame: Any, staged: StagedMedia) -> None:
    """Point a graphic frame's placed image at a staged link."""
    placed = None
    for child in frame.iter():
        if child is not frame and local_name(child) in IMAGE_CONTENT_ELEMENTS:
            placed = child
            break

    if placed is not None and local_name(placed) != 'Image':
        _remove_keep_tail(placed)
        placed = None

    frame_id = frame.get('Self') or 'frame'
    if placed is None:
        placed = etree.SubElement(frame, 'Image')
        placed.set('Self', f"{frame_id}_image")

    link = next(iter_local(placed, 'Link'), None)
    if link is None:
        link = etree.SubElement(placed, 'Link')
        link.set('Self', f"{frame_id}_link")

    link.set('LinkResourceURI', staged.link_uri)
    link.set('StoredState', 'Normal')
    if staged.image_format:
        link.set('LinkResourceFormat', staged.image_format)


class SubstitutionEngine:
    """
    Applies resolved substitutions to an extracted package.

    Example:
        engine = SubstitutionEngine(config)
        result = engine.apply(index, registry, resolution)
        LinkManifestBuilder().rebuild(index.root, result.media_map)
    """

    def __init__(self,
                 config: Optional[EngineConfig] = None,
                 validator: Optional[WellFormednessValidator] = None):
        self.config = config or EngineConfig()
        self.validator = validator or WellFormednessValidator()
        packaging = self.config.packaging
        self.links = LinkManifestBuilder(packaging.link_dir_name, packaging.link_manifest_name)

    def apply(self,
              index: DocumentIndex,
              registry: TagRegistry,
              resolution: Resolution) -> SubstitutionResult:
        """
        Rewrite every resource holding a mapped tag.

        Args:
            index: Document index of the extracted package
            registry: Registry scanned from the same package
            resolution: Substitutions to apply (batch order, last wins)

        Returns:
            SubstitutionResult with the applied media map

        Raises:
            NotFoundError: If a source image does not exist
            ValidationError: If a source image has an unsupported format
            ResourceIOError: If a resource or image cannot be read or written
            FormatError: If a rewritten resource is not well-formed
        """
        result = SubstitutionResult(media_map=MediaMap(self.config.packaging.link_dir_name))
        plan: Dict[str, List[Tuple[Marker, Substitution]]] = {}

        for tag_name, substitution in resolution.final_values().items():
            tag = registry.get(tag_name)
            if tag is None:
                result.skipped[tag_name] = "not in template"
                continue
            if tag.type != substitution.kind:
                result.skipped[tag_name] = (f"{substitution.element.value} value cannot fill "
                                            f"{tag.type.value} tag")
                logger.warning(f"Skipping tag '{tag_name}': {result.skipped[tag_name]}")
                continue

            targets: List[Tuple[str, Marker]] = []
            for marker in tag.occurrences:
                if tag.type == TagType.IMAGE:
                    resource = self._frame_resource(marker, index)
                    if resource is None:
                        logger.warning(f"Image tag '{tag_name}' in {marker.resource} has no frame to relink")
                        continue
                else:
                    resource = self._text_resource(marker, index)
                targets.append((resource, marker))

            if not targets:
                result.skipped[tag_name] = "no frame to relink"
                continue

            if tag.type == TagType.IMAGE:
                self._stage(index.root, substitution.value, result.media_map)
                result.media_map.add_reference(substitution.value, tag_name)

            for resource, marker in targets:
                plan.setdefault(resource, []).append((marker, substitution))

        for resource, work in plan.items():
            self._rewrite(index.root, resource, work, result)

        logger.info(f"Substitution applied {len(result.applied)} tags across "
                    f"{len(result.modified_resources)} resources, staged {len(result.media_map)} images")
        return result

    def _text_resource(self, marker: Marker, index: DocumentIndex) -> str:
        if marker.whole_story and marker.story_id in index.story_files:
            return index.story_files[marker.story_id]
        return marker.resource

    def _frame_resource(self, marker: Marker, index: DocumentIndex) -> Optional[str]:
        if not marker.frame_id:
            return None
        if marker.frame_id in index.frames:
            return index.frames[marker.frame_id].resource
        return marker.resource

    def _stage(self, package_root: Path, source: str, media_map: MediaMap) -> StagedMedia:
        existing = media_map.get(source)
        if existing is not None:
            return existing

        source_path = Path(source)
        if not source_path.is_file():
            raise NotFoundError(f"Image not found: {source_path.name}", detail=source)

        suffix = source_path.suffix.lower()
        supported = self.config.packaging.supported_image_formats
        if supported and suffix not in supported:
            raise ValidationError(f"Unsupported image format: {suffix or source_path.name}")

        link_dir = self.links.ensure_link_dir(package_root)
        target = link_dir / media_map.reserve_name(source)
        try:
            shutil.copyfile(source_path, target)
        except OSError as e:
            raise ResourceIOError(f"Cannot stage image: {source_path.name}", detail=str(e)) from e

        return media_map.add_media(source, target)

    def _rewrite(self, package_root: Path, resource: str,
                 work: List[Tuple[Marker, Substitution]],
                 result: SubstitutionResult) -> None:
        path = package_root / resource
        tree = parse_xml(path)
        root = tree.getroot()
        changed = False

        for marker, substitution in work:
            if substitution.kind == TagType.IMAGE:
                frame = find_by_self(root, marker.frame_id)
                if frame is None or local_name(frame) not in GRAPHIC_FRAMES:
                    logger.warning(f"Frame {marker.frame_id} for tag '{marker.raw_name}' not found in {resource}")
                    continue
                relink_frame(frame, result.media_map.get(substitution.value))
            else:
                if marker.whole_story:
                    target = next(iter_local(root, 'Story'), None)
                else:
                    target = find_by_self(root, marker.element_id) if marker.element_id else None
                if target is None:
                    logger.warning(f"Element for tag '{marker.raw_name}' not found in {resource}")
                    continue
                replace_text(target, substitution.value)

            result.applied[marker.raw_name] = result.applied.get(marker.raw_name, 0) + 1
            changed = True

        if not changed:
            return

        write_xml(tree, path)
        self.validator.validate_file(path, resource=resource).raise_for_errors()
        result.modified_resources.append(resource)
        logger.debug(f"Rewrote {resource} ({len(work)} substitutions)")
