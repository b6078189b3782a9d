"""
XML Processing Utilities
========================

XML reading, rewriting and geometry helpers for package resources.
"""

from idml_core.xml.utils import (
    IDPKG_NS,
    GRAPHIC_FRAMES,
    IMAGE_CONTENT_ELEMENTS,
    local_name,
    make_parser,
    parse_xml,
    write_xml,
    iter_local,
    find_by_self,
    collect_text,
    sanitize_xml_text,
    normalize_whitespace,
    parse_transform,
    compose,
    apply_transform,
    path_anchors,
)

__all__ = [
    "IDPKG_NS",
    "GRAPHIC_FRAMES",
    "IMAGE_CONTENT_ELEMENTS",
    "local_name",
    "make_parser",
    "parse_xml",
    "write_xml",
    "iter_local",
    "find_by_self",
    "collect_text",
    "sanitize_xml_text",
    "normalize_whitespace",
    "parse_transform",
    "compose",
    "apply_transform",
    "path_anchors",
]
