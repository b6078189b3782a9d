"""
Tag Scanner
===========

Finds markers of the "tag-based" convention in package resources.

A marker is an ``XMLElement`` whose ``MarkupTag`` starts with the markup
prefix (``XMLTag/``). Its type is decided, in order, by:

1. an explicit child ``XMLAttribute`` (``Name="type"``, ``Value="image|text"``)
2. structure: ``XMLContent`` pointing at a graphic frame
3. the tag name prefix (image, img, photo, picture, pic)
4. otherwise text

Stories are scanned in manifest order and elements in document order, so
the same package always yields the same ordered marker list.
"""

import re
from typing import Any, Dict, List, Optional, Tuple
from urllib.parse import unquote
import logging

from idml_core.config.settings import TagConfig
from idml_core.document.index import DocumentIndex
from idml_core.errors import FormatError
from idml_core.tags.models import Marker, TagType
from idml_core.xml.utils import (
    GRAPHIC_FRAMES,
    IMAGE_CONTENT_ELEMENTS,
    local_name,
    parse_xml,
    iter_local,
    collect_text,
)

logger = logging.getLogger(__name__)

BACKING_STORY_ID = "BackingStory"

# (story_id, markers) pairs in scan order
MarkersByStory = List[Tuple[str, List[Marker]]]


class TagScanner:
    """
    Scanner for tag-based markers.

    Example:
        scanner = TagScanner(TagConfig())
        markers_by_story = scanner.scan_package(index)
    """

    def __init__(self, config: Optional[TagConfig] = None):
        self.config = config or TagConfig()
        prefixes = '|'.join(re.escape(p) for p in self.config.image_prefixes)
        self._image_name = re.compile(rf'^({prefixes})', re.IGNORECASE)

    def scan_package(self, index: DocumentIndex) -> MarkersByStory:
        """
        Scan every story in manifest order, then the backing story.

        Raises:
            FormatError: If a listed story resource is missing or malformed
        """
        story_texts: Dict[str, str] = {}
        results: MarkersByStory = []

        for story_id in index.stories:
            resource = index.story_files[story_id]
            path = index.root / resource
            if not path.is_file():
                raise FormatError(f"Story listed in manifest is missing: {resource}")
            root = parse_xml(path).getroot()
            results.append((story_id, self.scan(root, story_id, resource, index, story_texts)))

        if index.backing_story and (index.root / index.backing_story).is_file():
            root = parse_xml(index.root / index.backing_story).getroot()
            backing_id = self._backing_story_id(root)
            results.append((backing_id, self.scan(root, backing_id, index.backing_story, index, story_texts)))

        total = sum(len(markers) for _, markers in results)
        logger.info(f"Scanned {len(results)} resources, found {total} markers")
        return results

    def scan(self,
             root: Any,
             story_id: str,
             resource: str,
             index: Optional[DocumentIndex] = None,
             story_texts: Optional[Dict[str, str]] = None) -> List[Marker]:
        """
        Scan one resource tree for markers.

        Args:
            root: Root element of the parsed resource
            story_id: Story the resource holds
            resource: Package-relative resource path
            index: Document index for frame and story lookups
            story_texts: Whole-story text already collected during this scan

        Returns:
            Markers in document order
        """
        local_frames = {
            elem.get('Self'): elem
            for elem in root.iter()
            if local_name(elem) in GRAPHIC_FRAMES and elem.get('Self')
        }
        spread_frames = set(index.graphic_frame_ids()) if index else set()
        story_ids = set(index.stories) if index else set()
        story_texts = {} if story_texts is None else story_texts

        markers = []
        for elem in iter_local(root, 'XMLElement'):
            name = self.tag_name(elem.get('MarkupTag'))
            if not name:
                continue

            xml_content = elem.get('XMLContent')
            points_at_frame = bool(xml_content) and (xml_content in local_frames or xml_content in spread_frames)
            whole_story = bool(xml_content) and xml_content in story_ids

            tag_type, type_source = self.infer_type(elem, name, points_at_frame)

            if tag_type == TagType.IMAGE:
                frame_id = xml_content if points_at_frame else self._inline_frame_id(elem)
                context = self._link_uri(frame_id, local_frames, index) or ""
            else:
                frame_id = None
                if whole_story:
                    context = self._story_text(xml_content, index, story_texts)
                else:
                    context = collect_text(elem)

            markers.append(Marker(
                raw_name=name,
                type_hint=tag_type,
                type_source=type_source,
                context=context,
                element_id=elem.get('Self') or "",
                story_id=xml_content if whole_story else story_id,
                resource=resource,
                frame_id=frame_id,
                whole_story=whole_story,
            ))

        logger.debug(f"{resource}: {len(markers)} markers")
        return markers

    def tag_name(self, markup_tag: Optional[str]) -> Optional[str]:
        """Tag name for a MarkupTag value, or None if it is not a marker."""
        prefix = self.config.markup_prefix
        if not markup_tag or not markup_tag.startswith(prefix):
            return None
        name = unquote(markup_tag[len(prefix):]).strip()
        if not name or name in self.config.ignored_tags:
            return None
        return name

    def infer_type(self, elem: Any, name: str, points_at_frame: bool) -> Tuple[TagType, str]:
        explicit = self._explicit_type(elem)
        if explicit is not None:
            return explicit, "explicit"
        if points_at_frame:
            return TagType.IMAGE, "structural"
        if self._image_name.match(name):
            return TagType.IMAGE, "prefix"
        return TagType.TEXT, "default"

    def _explicit_type(self, elem: Any) -> Optional[TagType]:
        for child in elem:
            if local_name(child) != 'XMLAttribute':
                continue
            if child.get('Name') != self.config.type_attribute:
                continue
            value = (child.get('Value') or '').strip().lower()
            if value in (TagType.IMAGE.value, TagType.TEXT.value):
                return TagType(value)
            logger.warning(f"Ignoring unknown tag type '{value}' on {elem.get('MarkupTag')}")
        return None

    def _inline_frame_id(self, elem: Any) -> Optional[str]:
        for child in elem.iter():
            if local_name(child) in GRAPHIC_FRAMES and child.get('Self'):
                return child.get('Self')
        return None

    def _link_uri(self, frame_id: Optional[str], local_frames: Dict[str, Any],
                  index: Optional[DocumentIndex]) -> Optional[str]:
        if not frame_id:
            return None
        frame = local_frames.get(frame_id)
        if frame is not None:
            for elem in frame.iter():
                if local_name(elem) in IMAGE_CONTENT_ELEMENTS:
                    for link in iter_local(elem, 'Link'):
                        if link.get('LinkResourceURI'):
                            return link.get('LinkResourceURI')
            return None
        if index and frame_id in index.frames:
            return index.frames[frame_id].link_uri
        return None

    def _story_text(self, story_id: str, index: Optional[DocumentIndex], cache: Dict[str, str]) -> str:
        if story_id in cache:
            return cache[story_id]
        text = ""
        if index and story_id in index.story_files:
            path = index.root / index.story_files[story_id]
            if path.is_file():
                root = parse_xml(path).getroot()
                story = next(iter_local(root, 'Story'), root)
                text = collect_text(story)
        cache[story_id] = text
        return text

    def _backing_story_id(self, root: Any) -> str:
        for elem in root.iter():
            if local_name(elem) == 'XmlStory' and elem.get('Self'):
                return elem.get('Self')
        return BACKING_STORY_ID
