"""
XML Utility Functions
=====================

XML helpers for reading and rewriting package resources. These functions
work with lxml elements and provide consistent handling of namespaces,
text collection, identifiers and serialization for designmap, story and
spread resources.
"""

import re
from pathlib import Path
from typing import Iterator, Optional, List, Any, Tuple
import logging

from lxml import etree

from idml_core.errors import FormatError, ResourceIOError

logger = logging.getLogger(__name__)

IDPKG_NS = "http://ns.adobe.com/AdobeInDesign/idml/1.0/packaging"

# Frames that can hold placed graphics
GRAPHIC_FRAMES = {'Rectangle', 'Oval', 'Polygon'}

# Elements that carry a Link to placed content
IMAGE_CONTENT_ELEMENTS = {'Image', 'PDF', 'EPS', 'WMF', 'PICT', 'ImportedPage'}

# Characters not allowed in XML 1.0 documents
_INVALID_XML_CHARS = re.compile(
    '[\x00-\x08\x0b\x0c\x0e-\x1f\ufffe\uffff]'
)

Matrix = Tuple[float, float, float, float, float, float]
IDENTITY: Matrix = (1.0, 0.0, 0.0, 1.0, 0.0, 0.0)


def local_name(element: Any) -> str:
    """
    Extract local name from element tag, stripping any namespace prefix.

    Args:
        element: XML element

    Returns:
        Local tag name without namespace (empty for comments and PIs)

    Example:
        >>> elem = etree.Element("{http://ns.adobe.com/AdobeInDesign/idml/1.0/packaging}Story")
        >>> local_name(elem)
        'Story'
    """
    tag = element.tag
    if not isinstance(tag, str):
        return ""
    if tag.startswith("{"):
        return tag.split("}", 1)[1]
    return tag


def make_parser() -> etree.XMLParser:
    """Parser used for every package resource."""
    return etree.XMLParser(resolve_entities=False, no_network=True, huge_tree=True)


def parse_xml(path: Path) -> Any:
    """
    Parse an XML resource from disk.

    Args:
        path: Path to the XML file

    Returns:
        lxml ElementTree

    Raises:
        ResourceIOError: If the file cannot be read
        FormatError: If the file is not well-formed XML
    """
    try:
        data = path.read_bytes()
    except OSError as e:
        raise ResourceIOError(f"Cannot read resource: {path.name}", detail=str(e)) from e

    try:
        return etree.ElementTree(etree.fromstring(data, make_parser()))
    except etree.XMLSyntaxError as e:
        logger.error(f"XML syntax error in {path}: {e}")
        raise FormatError(f"Malformed XML resource: {path.name}", detail=str(e)) from e


def write_xml(tree: Any, path: Path) -> None:
    """
    Serialize a tree back to disk the way package resources are stored
    (UTF-8, XML declaration, standalone="yes").

    Raises:
        ResourceIOError: If the file cannot be written
    """
    try:
        tree.write(str(path), encoding='UTF-8', xml_declaration=True, standalone=True)
    except OSError as e:
        raise ResourceIOError(f"Cannot write resource: {path.name}", detail=str(e)) from e


def iter_local(root: Any, name: str) -> Iterator[Any]:
    """Iterate over all elements with a given local name, in document order."""
    for elem in root.iter():
        if local_name(elem) == name:
            yield elem


def find_by_self(root: Any, self_id: str) -> Optional[Any]:
    """Find the element whose Self attribute equals self_id."""
    for elem in root.iter():
        if isinstance(elem.tag, str) and elem.get('Self') == self_id:
            return elem
    return None


def collect_text(element: Any) -> str:
    """
    Collect the text runs beneath an element.

    Content text is concatenated in document order and each Br becomes a
    newline. Text belonging to nested XMLAttribute elements is ignored.

    Args:
        element: Story, XMLElement or any run container

    Returns:
        Captured text
    """
    parts: List[str] = []
    for elem in element.iter():
        name = local_name(elem)
        if name == 'Content' and elem.text:
            parts.append(elem.text)
        elif name == 'Br':
            parts.append('\n')
    return ''.join(parts)


def sanitize_xml_text(text: str) -> str:
    """
    Remove characters that cannot appear in an XML 1.0 text node.

    Markup characters (&, <, >) are kept; lxml escapes them on write.
    """
    if not text:
        return ""
    return _INVALID_XML_CHARS.sub('', text)


def normalize_whitespace(text: str) -> str:
    """
    Normalize whitespace in text (collapse multiple spaces, trim).

    Args:
        text: Input text

    Returns:
        Normalized text
    """
    if not text:
        return ""
    return ' '.join(text.split())



def parse_transform(value: Optional[str]) -> Matrix:
    """Parse an ItemTransform attribute ("a b c d tx ty")."""
    if not value:
        return IDENTITY
    try:
        numbers = [float(v) for v in value.split()]
    except ValueError:
        return IDENTITY
    if len(numbers) != 6:
        return IDENTITY
    return tuple(numbers)  # type: ignore[return-value]


def compose(outer: Matrix, inner: Matrix) -> Matrix:
    """Compose two affine transforms: apply inner first, then outer."""
    a1, b1, c1, d1, tx1, ty1 = outer
    a2, b2, c2, d2, tx2, ty2 = inner
    return (
        a1 * a2 + c1 * b2,
        b1 * a2 + d1 * b2,
        a1 * c2 + c1 * d2,
        b1 * c2 + d1 * d2,
        a1 * tx2 + c1 * ty2 + tx1,
        b1 * tx2 + d1 * ty2 + ty1,
    )


def apply_transform(matrix: Matrix, x: float, y: float) -> Tuple[float, float]:
    a, b, c, d, tx, ty = matrix
    return (a * x + c * y + tx, b * x + d * y + ty)


def path_anchors(frame: Any) -> List[Tuple[float, float]]:
    """Return the Anchor points of a frame's path geometry (frame coordinates)."""
    anchors = []
    for point in iter_local(frame, 'PathPointType'):
        anchor = point.get('Anchor')
        if not anchor:
            continue
        try:
            x, y = (float(v) for v in anchor.split())
        except ValueError:
            continue
        anchors.append((x, y))
    return anchors
