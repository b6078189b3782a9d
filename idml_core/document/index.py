"""
Document Index
==============

Reads the package manifest (designmap.xml) and the spread resources to
answer two questions for the tag scanner and the substitution engine:

- which story and spread resources exist, in manifest order
- which page(s) a story or a frame is placed on

Page numbers come from the Page ``Name`` attribute when it is an integer,
otherwise from the page's 1-based ordinal across the document. A frame
belongs to the page whose horizontal extent contains the frame's centre
(in spread coordinates), falling back to the nearest page.
"""

import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional, Tuple, Any
import logging

from idml_core.errors import FormatError
from idml_core.xml.utils import (
    GRAPHIC_FRAMES,
    IMAGE_CONTENT_ELEMENTS,
    IDENTITY,
    local_name,
    parse_xml,
    iter_local,
    parse_transform,
    compose,
    apply_transform,
    path_anchors,
)

logger = logging.getLogger(__name__)

DESIGNMAP = "designmap.xml"

_STORY_FILE = re.compile(r'Story_(.+)\.xml$')
_SPREAD_FILE = re.compile(r'Spread_(.+)\.xml$')


@dataclass
class PageInfo:
    """A page placed on a spread."""

    number: int
    name: str
    spread_id: str
    x_min: float
    x_max: float

    def distance(self, x: float) -> float:
        if self.x_min <= x <= self.x_max:
            return 0.0
        return min(abs(x - self.x_min), abs(x - self.x_max))


@dataclass
class FrameInfo:
    """A text or graphic frame found on a spread."""

    frame_id: str
    kind: str                         # TextFrame, Rectangle, Oval, Polygon
    spread_id: str
    resource: str                     # Package-relative spread file
    pages: List[int] = field(default_factory=list)
    parent_story: Optional[str] = None
    link_uri: Optional[str] = None    # Placed image link, graphic frames only

    @property
    def is_graphic(self) -> bool:
        return self.kind in GRAPHIC_FRAMES


@dataclass
class DocumentIndex:
    """
    Ordered story/spread listing plus page placement for one package.

    Attributes:
        root: Extracted package directory
        stories: Story ids in manifest order
        spreads: Spread ids in manifest order
        story_files: Story id -> package-relative resource path
        spread_files: Spread id -> package-relative resource path
        backing_story: Package-relative backing story path, if listed
        story_to_spreads: Story id -> spread ids placing one of its frames
        frames: Frame id -> FrameInfo
        pages: Every page, in document order
    """

    root: Path
    stories: List[str] = field(default_factory=list)
    spreads: List[str] = field(default_factory=list)
    story_files: Dict[str, str] = field(default_factory=dict)
    spread_files: Dict[str, str] = field(default_factory=dict)
    backing_story: Optional[str] = None
    story_to_spreads: Dict[str, List[str]] = field(default_factory=dict)
    frames: Dict[str, FrameInfo] = field(default_factory=dict)
    pages: List[PageInfo] = field(default_factory=list)

    def graphic_frame_ids(self) -> List[str]:
        return [fid for fid, frame in self.frames.items() if frame.is_graphic]

    def pages_for_story(self, story_id: str) -> List[int]:
        """Pages of every text frame threading the story (sorted, unique)."""
        pages = set()
        for frame in self.frames.values():
            if frame.parent_story == story_id:
                pages.update(frame.pages)
        return sorted(pages)

    def pages_for_element(self, story_id: str, element_id: Optional[str]) -> List[int]:
        """
        Page numbers for an element of a story.

        A spread frame id resolves to that frame's pages; anything else
        (inline content, XML elements) resolves to the pages of the story.
        """
        if element_id and element_id in self.frames:
            pages = self.frames[element_id].pages
            if pages:
                return list(pages)
        return self.pages_for_story(story_id)

    def to_dict(self) -> dict:
        return {
            'stories': list(self.stories),
            'spreads': list(self.spreads),
            'story_to_spreads': {k: list(v) for k, v in self.story_to_spreads.items()},
        }


def read_manifest(package_root: Path) -> DocumentIndex:
    """
    Build the DocumentIndex for an extracted package.

    Args:
        package_root: Extracted package directory

    Returns:
        DocumentIndex

    Raises:
        FormatError: If designmap.xml is missing, malformed, or lists no stories
    """
    designmap_path = package_root / DESIGNMAP
    if not designmap_path.is_file():
        raise FormatError("Package manifest missing: designmap.xml")

    document = parse_xml(designmap_path).getroot()
    index = DocumentIndex(root=package_root)

    for child in document:
        name = local_name(child)
        src = child.get('src')
        if not src:
            continue
        if name == 'Story':
            story_id = _id_from_src(src, _STORY_FILE)
            if story_id not in index.story_files:
                index.stories.append(story_id)
                index.story_files[story_id] = src
        elif name == 'Spread':
            spread_id = _id_from_src(src, _SPREAD_FILE)
            if spread_id not in index.spread_files:
                index.spreads.append(spread_id)
                index.spread_files[spread_id] = src
        elif name == 'BackingStory':
            index.backing_story = src

    # StoryList may name stories the manifest does not list individually
    for story_id in (document.get('StoryList') or '').split():
        if story_id in index.story_files:
            continue
        candidate = f"Stories/Story_{story_id}.xml"
        if (package_root / candidate).is_file():
            index.stories.append(story_id)
            index.story_files[story_id] = candidate

    if not index.stories:
        raise FormatError("Package manifest lists no stories", detail=str(designmap_path))

    _index_spreads(index)

    logger.info(f"Indexed {len(index.stories)} stories, {len(index.spreads)} spreads, "
                f"{len(index.pages)} pages, {len(index.frames)} frames")
    return index


def _id_from_src(src: str, pattern: re.Pattern) -> str:
    match = pattern.search(src)
    if match:
        return match.group(1)
    return Path(src).stem


def _index_spreads(index: DocumentIndex) -> None:
    ordinal = 0
    for spread_id in index.spreads:
        resource = index.spread_files[spread_id]
        path = index.root / resource
        if not path.is_file():
            logger.warning(f"Spread listed in manifest but missing: {resource}")
            continue

        root = parse_xml(path).getroot()
        # idPkg:Spread wraps the Spread element proper
        spread = next((e for e in iter_local(root, 'Spread') if e is not root), root)

        spread_pages: List[PageInfo] = []
        for page in spread:
            if local_name(page) != 'Page':
                continue
            ordinal += 1
            spread_pages.append(_page_info(page, spread_id, ordinal))
        index.pages.extend(spread_pages)

        for frame, matrix in _walk_frames(spread, IDENTITY):
            frame_id = frame.get('Self')
            if not frame_id:
                continue
            kind = local_name(frame)
            info = FrameInfo(
                frame_id=frame_id,
                kind=kind,
                spread_id=spread_id,
                resource=resource,
                pages=_pages_for_frame(frame, matrix, spread_pages),
                parent_story=frame.get('ParentStory') if kind == 'TextFrame' else None,
                link_uri=_placed_link(frame) if kind in GRAPHIC_FRAMES else None,
            )
            index.frames[frame_id] = info

            if info.parent_story:
                spreads = index.story_to_spreads.setdefault(info.parent_story, [])
                if spread_id not in spreads:
                    spreads.append(spread_id)


def _page_info(page: Any, spread_id: str, ordinal: int) -> PageInfo:
    name = page.get('Name') or ''
    number = int(name) if name.strip().isdigit() else ordinal

    matrix = parse_transform(page.get('ItemTransform'))
    bounds = _parse_bounds(page.get('GeometricBounds'))
    if bounds is None:
        x_min = x_max = apply_transform(matrix, 0.0, 0.0)[0]
    else:
        top, left, bottom, right = bounds
        x1 = apply_transform(matrix, left, top)[0]
        x2 = apply_transform(matrix, right, bottom)[0]
        x_min, x_max = min(x1, x2), max(x1, x2)

    return PageInfo(number=number, name=name, spread_id=spread_id, x_min=x_min, x_max=x_max)


def _parse_bounds(value: Optional[str]) -> Optional[Tuple[float, float, float, float]]:
    if not value:
        return None
    try:
        numbers = [float(v) for v in value.split()]
    except ValueError:
        return None
    if len(numbers) != 4:
        return None
    return numbers[0], numbers[1], numbers[2], numbers[3]


def _walk_frames(element: Any, matrix):
    """Yield (frame, spread transform) for frames beneath element, through groups."""
    for child in element:
        name = local_name(child)
        if name == 'TextFrame' or name in GRAPHIC_FRAMES:
            yield child, compose(matrix, parse_transform(child.get('ItemTransform')))
        elif name == 'Group':
            yield from _walk_frames(child, compose(matrix, parse_transform(child.get('ItemTransform'))))


def _pages_for_frame(frame: Any, matrix, pages: List[PageInfo]) -> List[int]:
    if not pages:
        return []

    anchors = path_anchors(frame) or [(0.0, 0.0)]
    xs = [apply_transform(matrix, x, y)[0] for x, y in anchors]
    centre = (min(xs) + max(xs)) / 2.0

    containing = [p.number for p in pages if p.x_min <= centre <= p.x_max]
    if containing:
        return sorted(set(containing))
    nearest = min(pages, key=lambda p: p.distance(centre))
    return [nearest.number]


def _placed_link(frame: Any) -> Optional[str]:
    for elem in frame.iter():
        if local_name(elem) in IMAGE_CONTENT_ELEMENTS:
            for link in iter_local(elem, 'Link'):
                uri = link.get('LinkResourceURI')
                if uri:
                    return uri
    return None
