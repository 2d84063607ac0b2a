"""Tests for topic-variant inference."""

from __future__ import annotations

from topicforge.canonical import CanonicalNode, element, heading, leaf
from topicforge.engine.classifier import TopicDraft, classify, first_word, is_imperative
from topicforge.engine.models import TopicVariant


def _steps(*items: str) -> CanonicalNode:
    return element("ordered-list", *(leaf("list-item", item) for item in items))


def test_first_word_skips_punctuation() -> None:
    assert first_word("  «Install» the package") == "install"
    assert first_word("42 - ?") is None
    assert is_imperative("Configure the proxy")
    assert not is_imperative("The proxy is configured")


def test_imperative_ordered_list_makes_task() -> None:
    draft = TopicDraft(
        title=heading(2, "Setup"),
        body=[_steps("Install the package", "Run the tests", "Open the report")],
        level=2,
    )

    assert classify(draft) is TopicVariant.TASK


def test_anchor_markers_do_not_hide_the_first_list() -> None:
    draft = TopicDraft(
        title=heading(2, "Setup"),
        body=[CanonicalNode(tag="anchor", anchor="setup"), _steps("Install it", "Restart it")],
        level=2,
    )

    assert classify(draft) is TopicVariant.TASK


def test_descriptive_list_is_not_a_task() -> None:
    draft = TopicDraft(
        title=heading(2, "Components"),
        body=[_steps("The parser reads input", "A writer emits output", "Install the tool")],
        level=2,
    )

    assert classify(draft) is TopicVariant.GENERIC


def test_list_after_paragraph_is_not_a_task() -> None:
    draft = TopicDraft(
        title=heading(1, "Setup"),
        body=[leaf("paragraph", "Before you begin."), _steps("Install it", "Run it")],
        level=1,
    )

    assert classify(draft) is TopicVariant.CONCEPT


def test_definition_list_majority_makes_reference() -> None:
    definitions = element(
        "definition-list",
        element(
            "definition-entry",
            leaf("definition-term", "timeout"),
            leaf("definition-description", "Seconds to wait before the request is abandoned."),
        ),
        element(
            "definition-entry",
            leaf("definition-term", "retries"),
            leaf("definition-description", "How many times a failed request is attempted again."),
        ),
    )
    draft = TopicDraft(title=heading(2, "Options"), body=[leaf("paragraph", "Options."), definitions], level=2)

    assert classify(draft) is TopicVariant.REFERENCE


def test_default_variant_depends_on_level() -> None:
    body = [leaf("paragraph", "Some prose.")]

    assert classify(TopicDraft(title=heading(1, "A"), body=body, level=1)) is TopicVariant.CONCEPT
    assert classify(TopicDraft(title=heading(3, "B"), body=body, level=3)) is TopicVariant.GENERIC
    assert classify(TopicDraft(title=CanonicalNode(tag="title"), body=body, level=0)) is TopicVariant.GENERIC


def test_classification_is_idempotent() -> None:
    drafts = [
        TopicDraft(title=heading(1, "Intro"), body=[leaf("paragraph", "Hello")], level=1),
        TopicDraft(title=heading(2, "Setup"), body=[_steps("Install it", "Run it")], level=2),
        TopicDraft(title=heading(2, "Empty"), body=[], level=2),
    ]

    for draft in drafts:
        assert classify(draft) is classify(draft)


def test_anchor_with_text_is_the_first_structural_child() -> None:
    labelled = CanonicalNode(tag="anchor", anchor="x", children=[leaf("#text", "Read this first")])
    draft = TopicDraft(title=heading(2, "Setup"), body=[labelled, _steps("Install it", "Run it")], level=2)

    assert classify(draft) is TopicVariant.GENERIC
