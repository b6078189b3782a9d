"""
Substitution engine and link manifest tests.

Run with: pytest tests/test_substitution.py -v
"""

import pytest
from lxml import etree

from conftest import make_image
from idml_core.document import read_manifest
from idml_core.errors import NotFoundError, ValidationError
from idml_core.links import LinkManifestBuilder, MediaMap, safe_link_name
from idml_core.mapping import ExportBatch, resolve
from idml_core.substitution import SubstitutionEngine, relink_frame, replace_text
from idml_core.tags import Marker, Tag, TagScanner, TagType, build
from idml_core.validation import WellFormednessValidator
from idml_core.xml import collect_text, find_by_self, iter_local, parse_xml


@pytest.fixture
def index(package_dir):
    return read_manifest(package_dir)


@pytest.fixture
def registry(index):
    return build(TagScanner().scan_package(index), index)


def _apply(index, registry, items, raw):
    resolution = resolve(ExportBatch.from_raw(raw), items, registry)
    return SubstitutionEngine().apply(index, registry, resolution)


def _element(index, resource, self_id):
    root = parse_xml(index.root / resource).getroot()
    return find_by_self(root, self_id)


class TestReplaceText:
    """Tests for in-place text replacement."""

    def test_keeps_first_run_and_styles(self):
        target = etree.fromstring(
            '<XMLElement><ParagraphStyleRange AppliedParagraphStyle="P">'
            '<CharacterStyleRange AppliedCharacterStyle="C">'
            '<Content>one</Content><Br/><Content>two</Content>'
            '</CharacterStyleRange></ParagraphStyleRange></XMLElement>')
        replace_text(target, "fresh")

        assert collect_text(target) == "fresh"
        contents = list(iter_local(target, "Content"))
        assert len(contents) == 1
        assert contents[0].getparent().get("AppliedCharacterStyle") == "C"

    def test_newlines_become_breaks(self):
        target = etree.fromstring('<XMLElement><Content>x</Content></XMLElement>')
        replace_text(target, "a\nb\r\nc")
        assert collect_text(target) == "a\nb\nc"
        assert len(list(iter_local(target, "Br"))) == 2

    def test_creates_content_when_missing(self):
        target = etree.fromstring('<XMLElement><CharacterStyleRange/></XMLElement>')
        replace_text(target, "new")
        assert collect_text(target) == "new"

    def test_markup_characters_escaped(self):
        target = etree.fromstring('<XMLElement><Content>x</Content></XMLElement>')
        replace_text(target, "Tom & Jerry <3 \x01")
        data = etree.tostring(target)
        assert b"Tom &amp; Jerry &lt;3 " in data
        etree.fromstring(data)


class TestRelinkFrame:
    """Tests for pointing graphic frames at staged images."""

    def test_creates_image_and_link(self, tmp_path):
        media_map = MediaMap()
        staged = media_map.add_media("/src/a.png", make_image(tmp_path / "Links" / "a.png"))
        frame = etree.fromstring('<Rectangle Self="r9"/>')

        relink_frame(frame, staged)

        link = next(iter_local(frame, "Link"))
        assert link.get("LinkResourceURI") == "file:Links/a.png"
        assert link.get("LinkResourceFormat") == "PNG"
        assert link.getparent().tag == "Image"

    def test_replaces_non_image_content(self, tmp_path):
        media_map = MediaMap()
        staged = media_map.add_media("/src/a.png", make_image(tmp_path / "Links" / "a.png"))
        frame = etree.fromstring('<Rectangle Self="r9"><PDF><Link LinkResourceURI="file:old.pdf"/></PDF></Rectangle>')

        relink_frame(frame, staged)

        assert list(iter_local(frame, "PDF")) == []
        assert [link.get("LinkResourceURI") for link in iter_local(frame, "Link")] == ["file:Links/a.png"]


class TestSubstitutionEngine:
    """Tests for applying resolutions to an extracted package."""

    def test_every_occurrence_replaced(self, index, registry, items):
        result = _apply(index, registry, items, {"101": {"title": "headline"}})

        assert result.applied == {"headline": 2}
        assert collect_text(_element(index, "Stories/Story_u100.xml", "di2")) == "Spring Issue"
        assert collect_text(_element(index, "Stories/Story_u200.xml", "di5")) == "Spring Issue"
        assert sorted(result.modified_resources) == ["Stories/Story_u100.xml", "Stories/Story_u200.xml"]

    def test_untouched_text_preserved(self, index, registry, items):
        _apply(index, registry, items, {"101": {"title": "headline"}})
        story = parse_xml(index.root / "Stories/Story_u100.xml").getroot()
        text = collect_text(story)
        assert "Static text" in text
        assert "First part\nsecond line" in text

    def test_chunks_fill_separate_tags(self, index, registry, items):
        _apply(index, registry, items, {"101": {"content": [
            {"tag": "body_1", "start": 0, "end": 4},
            {"tag": "body_2", "start": 4, "end": ""},
        ]}})
        assert collect_text(_element(index, "Stories/Story_u100.xml", "di3")) == "ABCD"
        assert collect_text(_element(index, "Stories/Story_u100.xml", "di4")) == "EFGH"

    def test_whole_story_replaced(self, index, registry, items):
        _apply(index, registry, items, {"101": {"author": "sidebar"}})
        story = parse_xml(index.root / "Stories/Story_u300.xml").getroot()
        assert collect_text(story) == "Ada Writer"

    def test_output_is_well_formed(self, index, registry, items):
        items["101"].title = "Fish & Chips <special>"
        _apply(index, registry, items, {"101": {"title": "headline", "image": "hero_image"}})
        assert WellFormednessValidator().validate_package(index.root).is_valid

    def test_image_staged_once(self, index, registry, items, hero_image):
        """Two image tags with the same source share one staged link."""
        result = _apply(index, registry, items, {
            "101": {"image": "hero_image"},
            "102": {"image": "image_thumb"},
        })

        assert len(result.media_map) == 1
        staged = result.media_map.get(str(hero_image))
        assert staged.staged_path == "Links/hero.png"
        assert sorted(staged.referenced_by) == ["hero_image", "image_thumb"]
        assert (index.root / "Links" / "hero.png").is_file()

        rect1 = _element(index, "Spreads/Spread_sp2.xml", "rect1")
        rect2 = _element(index, "Stories/Story_u200.xml", "rect2")
        for frame in (rect1, rect2):
            assert next(iter_local(frame, "Link")).get("LinkResourceURI") == "file:Links/hero.png"

    def test_kind_mismatch_skipped(self, index, registry, items):
        result = _apply(index, registry, items, {"101": {"title": "hero_image", "image": "byline"}})
        assert set(result.skipped) == {"hero_image", "byline"}
        assert result.applied == {}
        assert result.modified_resources == []

    def test_image_without_frame_not_staged(self, index, registry, items):
        marker = Marker(raw_name="loose_image", type_hint=TagType.IMAGE, type_source="prefix",
                        context="", element_id="di99", story_id="u100",
                        resource="Stories/Story_u100.xml")
        registry.tags["loose_image"] = Tag(name="loose_image", type=TagType.IMAGE, occurrences=(marker,))

        result = _apply(index, registry, items, {"101": {"image": "loose_image"}})

        assert result.skipped == {"loose_image": "no frame to relink"}
        assert len(result.media_map) == 0
        assert not (index.root / "Links").exists()

    def test_unknown_tag_skipped(self, index, registry, items):
        result = _apply(index, registry, items, {"101": {"title": "nowhere"}})
        assert result.skipped == {"nowhere": "not in template"}

    def test_missing_image(self, index, registry, items, tmp_path):
        items["101"].thumbnail = str(tmp_path / "gone.png")
        with pytest.raises(NotFoundError):
            _apply(index, registry, items, {"101": {"image": "hero_image"}})

    def test_unsupported_image(self, index, registry, items, tmp_path):
        bad = tmp_path / "notes.txt"
        bad.write_text("hello")
        items["101"].thumbnail = str(bad)
        with pytest.raises(ValidationError):
            _apply(index, registry, items, {"101": {"image": "hero_image"}})


class TestMediaMap:
    """Tests for staged media bookkeeping."""

    def test_reserve_unique_names(self):
        media_map = MediaMap()
        assert media_map.reserve_name("/a/cover.jpg") == "cover.jpg"
        assert media_map.reserve_name("/b/cover.jpg") == "cover-2.jpg"
        assert media_map.reserve_name("/a/cover.jpg") == "cover.jpg"

    def test_safe_link_name(self):
        assert safe_link_name("/x/My Photo (1).JPG") == "My-Photo-1.jpg"
        assert safe_link_name("/x/???.png") == "image.png"

    def test_export_import(self, tmp_path):
        media_map = MediaMap()
        media_map.add_media("/src/a.png", make_image(tmp_path / "a.png", size=(5, 7)))
        media_map.add_reference("/src/a.png", "hero")

        restored = MediaMap()
        restored.import_mapping(media_map.export_mapping())
        entry = restored.get("/src/a.png")
        assert (entry.width, entry.height) == (5, 7)
        assert entry.referenced_by == ["hero"]
        assert restored.get_statistics()["total_references"] == 1


    def test_report(self, tmp_path):
        media_map = MediaMap()
        media_map.add_media("/src/a.png", make_image(tmp_path / "a.png", size=(5, 7)))
        media_map.add_reference("/src/a.png", "hero")

        report = media_map.generate_report()

        assert "Staged media: 1" in report
        assert "-> Links/a.png (5x7)" in report
        assert "-> tags: hero" in report


class TestLinkManifest:
    """Tests for the link manifest."""

    def test_empty_map_is_noop(self, package_dir):
        assert LinkManifestBuilder().rebuild(package_dir, MediaMap()) is None
        assert not (package_dir / "Links").exists()

    def test_lists_staged_media(self, package_dir):
        media_map = MediaMap()
        staged_file = make_image(package_dir / "Links" / "hero.png")
        media_map.add_media("/src/hero.png", staged_file)

        path = LinkManifestBuilder().rebuild(package_dir, media_map)

        links = list(iter_local(parse_xml(path).getroot(), "Link"))
        assert path == package_dir / "Links" / "Links.xml"
        assert len(links) == 1
        assert links[0].get("Path") == "Links/hero.png"
        assert links[0].get("LinkResourceURI") == "file:Links/hero.png"
        assert links[0].get("Width") == "40"

    def test_existing_entries_updated_not_duplicated(self, package_dir):
        builder = LinkManifestBuilder()
        media_map = MediaMap()
        media_map.add_media("/src/hero.png", make_image(package_dir / "Links" / "hero.png"))
        builder.rebuild(package_dir, media_map)

        second = MediaMap()
        second.add_media("/src/hero.png", make_image(package_dir / "Links" / "hero.png", size=(8, 8)))
        second.add_media("/src/other.png", make_image(package_dir / "Links" / "other.png"))
        path = builder.rebuild(package_dir, second)

        links = {link.get("Path"): link for link in iter_local(parse_xml(path).getroot(), "Link")}
        assert sorted(links) == ["Links/hero.png", "Links/other.png"]
        assert links["Links/hero.png"].get("Width") == "8"
