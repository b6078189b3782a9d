"""
Shared fixtures: a small tagged IDML template, content items and an engine.

Template layout:

    Spread sp1: page "1"          TextFrame tf1 (story u100), TextFrame tf3 (story u300)
    Spread sp2: pages "2" and "3" TextFrame tf2 (story u200), Rectangle rect1 (placed old.jpg)

    u100: headline, body_1, body_2
    u200: headline, byline, photo_caption (explicit text), image_thumb (inline rect2)
    u300: untagged sidebar text
    BackingStory: Root > hero_image -> rect1, sidebar -> whole story u300
"""

import zipfile
from pathlib import Path
from typing import Dict, Optional

import pytest
from PIL import Image

from idml_core.config.settings import EngineConfig
from idml_core.mapping.models import ContentItem
from idml_core.service import Engine
from idml_core.store.backends import DirectoryAttachmentResolver, InMemoryContentSource, InMemoryStore

IDPKG = 'xmlns:idPkg="http://ns.adobe.com/AdobeInDesign/idml/1.0/packaging"'
MIMETYPE = "application/vnd.adobe.indesign-idml-package"


def _frame_path(x1, y1, x2, y2):
    return f"""
      <Properties>
        <PathGeometry>
          <GeometryPathType PathOpen="false">
            <PathPointArray>
              <PathPointType Anchor="{x1} {y1}" LeftDirection="{x1} {y1}" RightDirection="{x1} {y1}"/>
              <PathPointType Anchor="{x1} {y2}" LeftDirection="{x1} {y2}" RightDirection="{x1} {y2}"/>
              <PathPointType Anchor="{x2} {y2}" LeftDirection="{x2} {y2}" RightDirection="{x2} {y2}"/>
              <PathPointType Anchor="{x2} {y1}" LeftDirection="{x2} {y1}" RightDirection="{x2} {y1}"/>
            </PathPointArray>
          </GeometryPathType>
        </PathGeometry>
      </Properties>"""


DESIGNMAP = f"""<?xml version="1.0" encoding="UTF-8" standalone="yes"?>
<?aid style="50" type="document" readerVersion="6.0" featureSet="257" product="8.0(370)" ?>
<Document {IDPKG} DOMVersion="8.0" Self="d" StoryList="u100 u200 u300">
  <idPkg:Graphic src="Resources/Graphic.xml"/>
  <idPkg:Spread src="Spreads/Spread_sp1.xml"/>
  <idPkg:Spread src="Spreads/Spread_sp2.xml"/>
  <idPkg:BackingStory src="XML/BackingStory.xml"/>
  <idPkg:Story src="Stories/Story_u100.xml"/>
  <idPkg:Story src="Stories/Story_u200.xml"/>
  <idPkg:Story src="Stories/Story_u300.xml"/>
</Document>
"""

SPREAD_1 = f"""<?xml version="1.0" encoding="UTF-8" standalone="yes"?>
<idPkg:Spread {IDPKG} DOMVersion="8.0">
  <Spread Self="sp1" PageCount="1" ItemTransform="1 0 0 1 0 0">
    <Page Self="p1" Name="1" GeometricBounds="0 0 792 612" ItemTransform="1 0 0 1 0 -396"/>
    <TextFrame Self="tf1" ParentStory="u100" ItemTransform="1 0 0 1 0 0">{_frame_path(100, -300, 500, -100)}
    </TextFrame>
    <TextFrame Self="tf3" ParentStory="u300" ItemTransform="1 0 0 1 0 0">{_frame_path(100, 0, 500, 200)}
    </TextFrame>
  </Spread>
</idPkg:Spread>
"""

SPREAD_2 = f"""<?xml version="1.0" encoding="UTF-8" standalone="yes"?>
<idPkg:Spread {IDPKG} DOMVersion="8.0">
  <Spread Self="sp2" PageCount="2" ItemTransform="1 0 0 1 0 0">
    <Page Self="p2" Name="2" GeometricBounds="0 0 792 612" ItemTransform="1 0 0 1 -612 -396"/>
    <Page Self="p3" Name="3" GeometricBounds="0 0 792 612" ItemTransform="1 0 0 1 0 -396"/>
    <TextFrame Self="tf2" ParentStory="u200" ItemTransform="1 0 0 1 0 0">{_frame_path(-500, -300, -100, -100)}
    </TextFrame>
    <Rectangle Self="rect1" ItemTransform="1 0 0 1 0 0">{_frame_path(100, -300, 300, -100)}
      <Image Self="img1" ItemTransform="1 0 0 1 100 -300">
        <Link Self="lnk1" LinkResourceURI="file:Links/old.jpg" StoredState="Normal"/>
      </Image>
    </Rectangle>
  </Spread>
</idPkg:Spread>
"""

STORY_U100 = f"""<?xml version="1.0" encoding="UTF-8" standalone="yes"?>
<idPkg:Story {IDPKG} DOMVersion="8.0">
  <Story Self="u100" AppliedTOCStyle="n">
    <XMLElement Self="di2" MarkupTag="XMLTag/headline">
      <ParagraphStyleRange AppliedParagraphStyle="ParagraphStyle/Title">
        <CharacterStyleRange AppliedCharacterStyle="CharacterStyle/Bold">
          <Content>Hello world  foo</Content>
        </CharacterStyleRange>
      </ParagraphStyleRange>
    </XMLElement>
    <ParagraphStyleRange AppliedParagraphStyle="ParagraphStyle/Body">
      <CharacterStyleRange AppliedCharacterStyle="CharacterStyle/Plain">
        <Content>Static text</Content>
        <Br/>
      </CharacterStyleRange>
    </ParagraphStyleRange>
    <XMLElement Self="di3" MarkupTag="XMLTag/body_1">
      <ParagraphStyleRange AppliedParagraphStyle="ParagraphStyle/Body">
        <CharacterStyleRange AppliedCharacterStyle="CharacterStyle/Plain">
          <Content>First part</Content>
          <Br/>
          <Content>second line</Content>
        </CharacterStyleRange>
      </ParagraphStyleRange>
    </XMLElement>
    <XMLElement Self="di4" MarkupTag="XMLTag/body_2">
      <ParagraphStyleRange AppliedParagraphStyle="ParagraphStyle/Body">
        <CharacterStyleRange AppliedCharacterStyle="CharacterStyle/Plain">
          <Content>Body two placeholder</Content>
        </CharacterStyleRange>
      </ParagraphStyleRange>
    </XMLElement>
  </Story>
</idPkg:Story>
"""

STORY_U200 = f"""<?xml version="1.0" encoding="UTF-8" standalone="yes"?>
<idPkg:Story {IDPKG} DOMVersion="8.0">
  <Story Self="u200">
    <XMLElement Self="di5" MarkupTag="XMLTag/headline">
      <ParagraphStyleRange AppliedParagraphStyle="ParagraphStyle/Title">
        <CharacterStyleRange AppliedCharacterStyle="CharacterStyle/Bold">
          <Content>Repeat headline</Content>
        </CharacterStyleRange>
      </ParagraphStyleRange>
    </XMLElement>
    <XMLElement Self="di6" MarkupTag="XMLTag/byline">
      <ParagraphStyleRange AppliedParagraphStyle="ParagraphStyle/Byline">
        <CharacterStyleRange AppliedCharacterStyle="CharacterStyle/Italic">
          <Content>By Someone</Content>
        </CharacterStyleRange>
      </ParagraphStyleRange>
    </XMLElement>
    <XMLElement Self="di7" MarkupTag="XMLTag/photo_caption">
      <XMLAttribute Self="di7a" Name="type" Value="text"/>
      <ParagraphStyleRange AppliedParagraphStyle="ParagraphStyle/Caption">
        <CharacterStyleRange AppliedCharacterStyle="CharacterStyle/Plain">
          <Content>Caption here</Content>
        </CharacterStyleRange>
      </ParagraphStyleRange>
    </XMLElement>
    <XMLElement Self="di10" MarkupTag="XMLTag/image_thumb">
      <ParagraphStyleRange AppliedParagraphStyle="ParagraphStyle/Body">
        <CharacterStyleRange AppliedCharacterStyle="CharacterStyle/Plain">
          <Rectangle Self="rect2" ItemTransform="1 0 0 1 0 0">
            <Image Self="img2">
              <Link Self="lnk2" LinkResourceURI="file:Links/thumb.png" StoredState="Normal"/>
            </Image>
          </Rectangle>
        </CharacterStyleRange>
      </ParagraphStyleRange>
    </XMLElement>
  </Story>
</idPkg:Story>
"""

STORY_U300 = f"""<?xml version="1.0" encoding="UTF-8" standalone="yes"?>
<idPkg:Story {IDPKG} DOMVersion="8.0">
  <Story Self="u300">
    <ParagraphStyleRange AppliedParagraphStyle="ParagraphStyle/Sidebar">
      <CharacterStyleRange AppliedCharacterStyle="CharacterStyle/Plain">
        <Content>Sidebar text</Content>
      </CharacterStyleRange>
    </ParagraphStyleRange>
  </Story>
</idPkg:Story>
"""

BACKING_STORY = f"""<?xml version="1.0" encoding="UTF-8" standalone="yes"?>
<idPkg:BackingStory {IDPKG} DOMVersion="8.0">
  <XmlStory Self="ubs">
    <XMLElement Self="di1" MarkupTag="XMLTag/Root">
      <XMLElement Self="di8" MarkupTag="XMLTag/hero_image" XMLContent="rect1"/>
      <XMLElement Self="di9" MarkupTag="XMLTag/sidebar" XMLContent="u300"/>
    </XMLElement>
  </XmlStory>
</idPkg:BackingStory>
"""

GRAPHIC = f"""<?xml version="1.0" encoding="UTF-8" standalone="yes"?>
<idPkg:Graphic {IDPKG} DOMVersion="8.0"/>
"""

SAMPLE_FILES: Dict[str, str] = {
    "designmap.xml": DESIGNMAP,
    "Resources/Graphic.xml": GRAPHIC,
    "Spreads/Spread_sp1.xml": SPREAD_1,
    "Spreads/Spread_sp2.xml": SPREAD_2,
    "Stories/Story_u100.xml": STORY_U100,
    "Stories/Story_u200.xml": STORY_U200,
    "Stories/Story_u300.xml": STORY_U300,
    "XML/BackingStory.xml": BACKING_STORY,
}

UNTAGGED_STORY = f"""<?xml version="1.0" encoding="UTF-8" standalone="yes"?>
<idPkg:Story {IDPKG} DOMVersion="8.0">
  <Story Self="u100">
    <ParagraphStyleRange><CharacterStyleRange><Content>Nothing tagged</Content></CharacterStyleRange></ParagraphStyleRange>
  </Story>
</idPkg:Story>
"""

UNTAGGED_DESIGNMAP = f"""<?xml version="1.0" encoding="UTF-8" standalone="yes"?>
<Document {IDPKG} DOMVersion="8.0" Self="d">
  <idPkg:Story src="Stories/Story_u100.xml"/>
</Document>
"""


def write_tree(root: Path, files: Dict[str, str]) -> Path:
    """Write package resources into a directory."""
    for name, text in files.items():
        path = root / name
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(text, encoding="utf-8")
    return root


def write_idml(path: Path, files: Optional[Dict[str, str]] = None, mimetype: bool = True) -> Path:
    """Write an .idml archive: mimetype first and stored, everything else deflated."""
    files = SAMPLE_FILES if files is None else files
    path.parent.mkdir(parents=True, exist_ok=True)
    with zipfile.ZipFile(path, "w") as zf:
        if mimetype:
            zf.writestr(zipfile.ZipInfo("mimetype"), MIMETYPE, compress_type=zipfile.ZIP_STORED)
        for name, text in files.items():
            zf.writestr(name, text, compress_type=zipfile.ZIP_DEFLATED)
    return path


def make_image(path: Path, size=(40, 30), color=(200, 30, 30)) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    Image.new("RGB", size, color).save(path)
    return path


@pytest.fixture
def package_path(tmp_path):
    """Sample template package."""
    return write_idml(tmp_path / "uploads" / "template.idml")


@pytest.fixture
def untagged_package_path(tmp_path):
    return write_idml(tmp_path / "uploads" / "untagged.idml", {
        "designmap.xml": UNTAGGED_DESIGNMAP,
        "Stories/Story_u100.xml": UNTAGGED_STORY,
    })


@pytest.fixture
def package_dir(tmp_path):
    """Sample template resources as an extracted directory."""
    return write_tree(tmp_path / "extracted", SAMPLE_FILES)


@pytest.fixture
def hero_image(tmp_path):
    return make_image(tmp_path / "media" / "hero.png")


@pytest.fixture
def items(hero_image):
    """Content items keyed by id."""
    return {
        "101": ContentItem(
            id="101",
            title="Spring Issue",
            body="<p>ABCDEFGH</p>",
            author="Ada Writer",
            date="2024-05-01",
            categories=["News"],
            thumbnail=str(hero_image),
        ),
        "102": ContentItem(
            id="102",
            title="Second Story",
            body="<p>Other <b>body</b> text</p>",
            excerpt="Short excerpt",
            author="Bo Reporter",
            thumbnail=str(hero_image),
        ),
        "103": ContentItem(id="103", title="No Image"),
    }


@pytest.fixture
def config(tmp_path):
    config = EngineConfig()
    config.output_dir = str(tmp_path / "output")
    config.temp_dir = str(tmp_path / "work")
    return config


@pytest.fixture
def engine(config, items, package_path, untagged_package_path):
    """Engine with template "t1" (tagged) and "t-empty" (no tags) registered."""
    attachments = DirectoryAttachmentResolver()
    attachments.register("a1", package_path)
    attachments.register("a-empty", untagged_package_path)

    engine = Engine(
        store=InMemoryStore(),
        content=InMemoryContentSource(items.values()),
        attachments=attachments,
        config=config,
    )
    engine.register_template("t1", "a1")
    engine.register_template("t-empty", "a-empty")
    return engine
