from __future__ import annotations

from lxml import etree

from topicforge.canonical import CanonicalNode, element, heading, leaf
from topicforge.emit.dita import DEFAULT_MAP_NAME, render_package
from topicforge.engine.pipeline import convert


def _tree() -> CanonicalNode:
    return element(
        "document",
        heading(1, "Intro"),
        element(
            "paragraph",
            leaf("#text", "See "),
            element("link", leaf("#text", "the diagram"), href="#fig-1"),
            leaf("#text", " for details."),
        ),
        heading(2, "Setup"),
        element("ordered-list", leaf("list-item", "Install the tool"), leaf("list-item", "Run the build")),
        element("figure", leaf("caption", "Diagram"), element("image", src="img/diagram.png"), anchor="fig-1"),
        title="Guide",
    )


def test_package_contains_map_and_every_topic() -> None:
    files = render_package(convert(_tree()))

    assert set(files) == {DEFAULT_MAP_NAME, "topics/intro.dita", "topics/intro/setup.dita"}
    assert files["topics/intro.dita"].startswith(b"<?xml")
    assert b"<!DOCTYPE concept" in files["topics/intro.dita"]
    assert b"<!DOCTYPE map" in files[DEFAULT_MAP_NAME]


def test_map_nests_topicrefs() -> None:
    files = render_package(convert(_tree()))

    ditamap = etree.fromstring(files[DEFAULT_MAP_NAME])

    assert ditamap.tag == "map"
    assert ditamap.findtext("title") == "Guide"
    intro = ditamap.find("topicref")
    assert intro.get("href") == "topics/intro.dita"
    assert intro.get("type") == "concept"
    setup = intro.find("topicref")
    assert setup.get("href") == "topics/intro/setup.dita"
    assert setup.get("navtitle") == "Setup"
    assert setup.get("type") == "task"


def test_topics_render_variant_markup_and_relative_hrefs() -> None:
    files = render_package(convert(_tree()))

    concept = etree.fromstring(files["topics/intro.dita"])
    task = etree.fromstring(files["topics/intro/setup.dita"])

    assert concept.tag == "concept"
    assert concept.get("id") == "intro"
    assert concept.findtext("title") == "Intro"
    paragraph = concept.find("conbody/p")
    assert paragraph.text == "See "
    xref = paragraph.find("xref")
    assert xref.get("href") == "intro/setup.dita#setup/fig-1"
    assert xref.text == "the diagram"
    assert xref.tail == " for details."

    assert task.tag == "task"
    assert [step.text for step in task.findall("taskbody/steps/step")] == ["Install the tool", "Run the build"]
    figure = task.find("taskbody/fig")
    assert figure.get("id") == "fig-1"
    assert figure.findtext("title") == "Diagram"
    assert figure.find("image").get("href") == "../../media/diagram.png"
