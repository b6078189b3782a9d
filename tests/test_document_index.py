"""
Document index tests: manifest order, page numbers and frame placement.

Run with: pytest tests/test_document_index.py -v
"""

import pytest

from conftest import IDPKG, SAMPLE_FILES, write_tree
from idml_core.document import read_manifest
from idml_core.errors import FormatError


def _spread(body: str) -> str:
    return f"""<?xml version="1.0" encoding="UTF-8" standalone="yes"?>
<idPkg:Spread {IDPKG}><Spread Self="sx">{body}</Spread></idPkg:Spread>"""


def _square(x1, x2):
    return (f'<Properties><PathGeometry><GeometryPathType><PathPointArray>'
            f'<PathPointType Anchor="{x1} 0"/><PathPointType Anchor="{x2} 100"/>'
            f'</PathPointArray></GeometryPathType></PathGeometry></Properties>')


def _package(tmp_path, spread_body: str):
    files = dict(SAMPLE_FILES)
    files["designmap.xml"] = f"""<?xml version="1.0" encoding="UTF-8" standalone="yes"?>
<Document {IDPKG}>
  <idPkg:Spread src="Spreads/Spread_sx.xml"/>
  <idPkg:Story src="Stories/Story_u100.xml"/>
</Document>"""
    files["Spreads/Spread_sx.xml"] = _spread(spread_body)
    return write_tree(tmp_path / "pkg", files)


class TestManifest:
    """Tests for designmap reading."""

    def test_manifest_order(self, package_dir):
        """Stories and spreads should keep manifest order."""
        index = read_manifest(package_dir)
        assert index.stories == ["u100", "u200", "u300"]
        assert index.spreads == ["sp1", "sp2"]
        assert index.story_files["u200"] == "Stories/Story_u200.xml"
        assert index.backing_story == "XML/BackingStory.xml"

    def test_story_list_adds_unlisted_story(self, package_dir):
        """StoryList entries with a story file should be indexed too."""
        (package_dir / "Stories" / "Story_u400.xml").write_text(
            (package_dir / "Stories" / "Story_u300.xml").read_text())
        designmap = (package_dir / "designmap.xml").read_text()
        (package_dir / "designmap.xml").write_text(
            designmap.replace('StoryList="u100 u200 u300"', 'StoryList="u100 u200 u300 u400 u999"'))

        index = read_manifest(package_dir)
        assert index.stories == ["u100", "u200", "u300", "u400"]

    def test_missing_designmap(self, tmp_path):
        with pytest.raises(FormatError):
            read_manifest(tmp_path)

    def test_no_stories(self, tmp_path):
        """A manifest without stories is not a usable template."""
        write_tree(tmp_path, {"designmap.xml": f'<Document {IDPKG}/>'})
        with pytest.raises(FormatError):
            read_manifest(tmp_path)

    def test_malformed_designmap(self, tmp_path):
        write_tree(tmp_path, {"designmap.xml": "<Document><oops></Document>"})
        with pytest.raises(FormatError):
            read_manifest(tmp_path)


class TestPages:
    """Tests for page numbering and frame placement."""

    def test_pages_from_names(self, package_dir):
        index = read_manifest(package_dir)
        assert [p.number for p in index.pages] == [1, 2, 3]

    def test_frames_on_pages(self, package_dir):
        """Frames should land on the page containing their centre."""
        index = read_manifest(package_dir)
        assert index.frames["tf1"].pages == [1]
        assert index.frames["tf2"].pages == [2]
        assert index.frames["rect1"].pages == [3]
        assert index.frames["rect1"].is_graphic
        assert index.frames["rect1"].link_uri == "file:Links/old.jpg"
        assert not index.frames["tf1"].is_graphic

    def test_story_pages(self, package_dir):
        index = read_manifest(package_dir)
        assert index.pages_for_story("u100") == [1]
        assert index.pages_for_story("u200") == [2]
        assert index.pages_for_story("missing") == []
        assert index.story_to_spreads == {"u100": ["sp1"], "u300": ["sp1"], "u200": ["sp2"]}

    def test_element_pages_prefer_frame(self, package_dir):
        index = read_manifest(package_dir)
        assert index.pages_for_element("ubs", "rect1") == [3]
        assert index.pages_for_element("u200", "inline-only") == [2]

    def test_non_numeric_page_name_uses_ordinal(self, tmp_path):
        root = _package(tmp_path, """
            <Page Self="pa" Name="A" GeometricBounds="0 0 100 100" ItemTransform="1 0 0 1 -100 0"/>
            <Page Self="pb" Name="B" GeometricBounds="0 0 100 100" ItemTransform="1 0 0 1 0 0"/>""")
        index = read_manifest(root)
        assert [(p.name, p.number) for p in index.pages] == [("A", 1), ("B", 2)]

    def test_grouped_frame_uses_group_transform(self, tmp_path):
        """Frames inside groups are placed through the group's transform."""
        root = _package(tmp_path, f"""
            <Page Self="pa" Name="7" GeometricBounds="0 0 100 100" ItemTransform="1 0 0 1 -100 0"/>
            <Page Self="pb" Name="8" GeometricBounds="0 0 100 100" ItemTransform="1 0 0 1 0 0"/>
            <Group Self="g1" ItemTransform="1 0 0 1 100 0">
              <Rectangle Self="r1" ItemTransform="1 0 0 1 0 0">{_square(-90, -60)}</Rectangle>
            </Group>""")
        index = read_manifest(root)
        # local centre -75, shifted by the group to 25: page "8"
        assert index.frames["r1"].pages == [8]

    def test_frame_off_page_uses_nearest(self, tmp_path):
        root = _package(tmp_path, f"""
            <Page Self="pa" Name="1" GeometricBounds="0 0 100 100" ItemTransform="1 0 0 1 0 0"/>
            <Page Self="pb" Name="2" GeometricBounds="0 0 100 100" ItemTransform="1 0 0 1 100 0"/>
            <Rectangle Self="r1" ItemTransform="1 0 0 1 0 0">{_square(240, 260)}</Rectangle>""")
        index = read_manifest(root)
        assert index.frames["r1"].pages == [2]
