from __future__ import annotations

import pytest

from topicforge.canonical import CanonicalNode, element, heading, leaf
from topicforge.engine.context import JobContext
from topicforge.engine.diagnostics import MappingWarning
from topicforge.engine.errors import MissingInitialHeading
from topicforge.engine.models import TopicNode, TopicVariant
from topicforge.engine.navmap import synthesize
from topicforge.engine.segmentation import segment


def _intro_and_setup() -> CanonicalNode:
    return element(
        "document",
        heading(1, "Intro"),
        leaf("paragraph", "Welcome to the guide."),
        heading(2, "Setup"),
        element(
            "ordered-list",
            leaf("list-item", "Install the tool"),
            leaf("list-item", "Configure the proxy"),
            leaf("list-item", "Run the build"),
        ),
    )


def test_concept_with_nested_task_and_map() -> None:
    result = segment(_intro_and_setup(), JobContext.create())

    assert result.root.synthetic
    assert len(result.root.children) == 1

    intro = result.root.children[0]
    assert intro.id == "intro"
    assert intro.title_text == "Intro"
    assert intro.variant is TopicVariant.CONCEPT
    assert [child.id for child in intro.children] == ["setup"]

    setup = intro.children[0]
    assert setup.variant is TopicVariant.TASK
    assert setup.body[0].tag == "steps"
    assert [item.tag for item in setup.body[0].children] == ["step", "step", "step"]

    document = synthesize(result.root)
    assert len(document.entries) == 1
    assert [child.title for child in document.entries[0].children] == ["Setup"]


def test_topic_never_nests_under_equal_or_deeper_level() -> None:
    levels = [1, 3, 2, 1, 2, 4, 3, 2]
    children: list[CanonicalNode] = []
    for index, level in enumerate(levels):
        children.append(heading(level, f"Heading {index}"))
        children.append(leaf("paragraph", f"Body {index}"))

    result = segment(element("document", *children), JobContext.create())

    def _check(topic: TopicNode) -> None:
        for child in topic.children:
            assert child.level > topic.level
            for descendant in child.walk():
                assert descendant.level > topic.level
            _check(child)

    assert len(result.root.topics()) == len(levels)
    assert [topic.level for topic in result.root.children] == [1, 1]
    for top in result.root.children:
        _check(top)


def test_heading_inside_table_cell_does_not_segment() -> None:
    tree = element(
        "document",
        heading(1, "Data"),
        element("table", element("table-row", element("table-cell", heading(3, "Inside")))),
    )

    result = segment(tree, JobContext.create())

    topics = result.root.topics()
    assert [topic.title_text for topic in topics] == ["Data"]
    cell = topics[0].body[0].children[0].children[0]
    assert cell.tag == "stentry"
    assert cell.children[0].tag == "p"
    assert cell.children[0].get("outputclass") == "heading"


def test_sections_are_descended_and_keep_their_anchor() -> None:
    tree = element(
        "document",
        element("section", heading(1, "First"), leaf("paragraph", "One"), anchor="sec-first"),
        element("division", heading(1, "Second"), leaf("paragraph", "Two")),
    )

    result = segment(tree, JobContext.create())

    first, second = result.root.children
    assert first.title.anchor == "sec-first"
    assert second.title_text == "Second"


def test_leading_content_becomes_implicit_root_topic() -> None:
    tree = element(
        "document",
        leaf("paragraph", "Preface"),
        heading(1, "Chapter"),
        leaf("paragraph", "Text"),
        title="Handbook",
    )

    result = segment(tree, JobContext.create())

    root = result.root
    assert not root.synthetic
    assert root.level == 0
    assert root.title_text == "Handbook"
    assert root.body[0].tag == "p"
    assert [topic.title_text for topic in root.topics()] == ["Handbook", "Chapter"]


def test_missing_initial_heading_is_structural() -> None:
    with pytest.raises(MissingInitialHeading, match="no heading"):
        segment(element("document"), JobContext.create())

    with pytest.raises(MissingInitialHeading):
        segment(element("document", leaf("#text", "   ")), JobContext.create())

    strict = JobContext.create(require_initial_heading=True)
    with pytest.raises(MissingInitialHeading, match="before the first heading"):
        segment(element("document", leaf("paragraph", "Stray"), heading(1, "A")), strict)


def test_empty_topic_is_warned_not_rejected() -> None:
    tree = element("document", heading(1, "Empty"), heading(1, "Full"), leaf("paragraph", "Body"))

    result = segment(tree, JobContext.create())

    assert [warning.topic_id for warning in result.topic_warnings] == ["empty"]
    assert [topic.id for topic in result.root.topics()] == ["empty", "full"]


def test_duplicate_titles_get_unique_ids() -> None:
    tree = element(
        "document",
        heading(1, "Notes"),
        leaf("paragraph", "a"),
        heading(1, "Notes"),
        leaf("paragraph", "b"),
        heading(1, "2024"),
        leaf("paragraph", "c"),
    )

    result = segment(tree, JobContext.create())

    assert [topic.id for topic in result.root.topics()] == ["notes", "notes-2", "topic-2024"]


def test_unmapped_tags_are_counted_once_per_tag() -> None:
    tree = element("document", heading(1, "A"), leaf("marquee", "x"), leaf("marquee", "y"))

    result = segment(tree, JobContext.create())

    assert result.mapping_warnings == [MappingWarning(tag="marquee", occurrences=2)]
    assert result.root.children[0].body[0].tag == "marquee"


def test_source_tree_is_left_untouched() -> None:
    tree = _intro_and_setup()
    before = repr(tree)

    segment(tree, JobContext.create())

    assert repr(tree) == before


def test_named_anchor_before_heading_becomes_title_anchor() -> None:
    tree = element(
        "document",
        heading(1, "Intro"),
        leaf("paragraph", "Start here."),
        CanonicalNode(tag="anchor", anchor="setup"),
        heading(2, "Setup"),
        leaf("paragraph", "Body"),
    )

    result = segment(tree, JobContext.create())

    intro = result.root.children[0]
    setup = intro.children[0]
    assert [node.tag for node in intro.body] == ["p"]
    assert setup.title.anchor == "setup"


def test_anchor_with_visible_text_counts_as_content() -> None:
    tree = element(
        "document",
        heading(1, "A"),
        CanonicalNode(tag="anchor", anchor="x", children=[leaf("#text", "real words here")]),
    )

    result = segment(tree, JobContext.create())

    assert result.topic_warnings == []
    assert result.root.children[0].body[0].tag == "anchor"


def test_heading_as_tree_root_opens_a_topic() -> None:
    result = segment(heading(1, "Only"), JobContext.create())

    assert result.root.synthetic
    assert [(topic.id, topic.title_text) for topic in result.root.topics()] == [("only", "Only")]
