from __future__ import annotations

import pytest

from topicforge.canonical import CanonicalNode, element, heading, leaf
from topicforge.engine.context import JobContext
from topicforge.engine.errors import ConversionFailed, MissingInitialHeading
from topicforge.engine.models import TopicVariant
from topicforge.engine.pipeline import convert


def _guide() -> CanonicalNode:
    return element(
        "document",
        heading(1, "Intro"),
        element("paragraph", leaf("#text", "Jump to "), element("link", leaf("#text", "setup"), href="#setup")),
        element("image", src="img/overview.png"),
        heading(2, "Setup", anchor="setup"),
        element("ordered-list", leaf("list-item", "Install the tool"), leaf("list-item", "Run the build")),
        element("image", src="img/overview.png"),
        title="Guide",
    )


def test_convert_runs_every_stage() -> None:
    result = convert(_guide())

    assert [topic.id for topic in result.topics] == ["intro", "setup"]
    assert [topic.variant for topic in result.topics] == [TopicVariant.CONCEPT, TopicVariant.TASK]
    assert result.map.title == "Guide"
    assert result.map.entries[0].href == "topics/intro.dita"
    assert result.unresolved_references == []
    assert [asset.relative_path for asset in result.assets] == ["../media/overview.png", "../../media/overview.png"]
    assert result.errors == []
    assert result.diagnostics() == result.validation_issues


def test_fail_on_error_raises_with_full_diagnostics() -> None:
    tree = element("document", leaf("paragraph", "Untitled preface"), heading(1, "Body"), leaf("marquee", "x"))

    with pytest.raises(ConversionFailed, match="error severity") as excinfo:
        convert(tree, JobContext.create(fail_on_error=True))

    kinds = {type(item).__name__ for item in excinfo.value.diagnostics}
    assert kinds == {"MappingWarning", "ValidationIssue"}


def test_repair_lets_strict_job_succeed() -> None:
    tree = element("document", leaf("paragraph", "Untitled preface"), heading(1, "Body"), leaf("paragraph", "x"))

    result = convert(tree, JobContext.create(fail_on_error=True, repair=True))

    assert result.root.title_text == "Untitled"
    assert result.repairs
    assert result.errors == []


def test_structural_errors_propagate() -> None:
    with pytest.raises(MissingInitialHeading):
        convert(element("document"))


def test_independent_jobs_do_not_share_state() -> None:
    first = convert(_guide(), JobContext.create())
    second = convert(_guide(), JobContext.create(max_workers=4))

    assert [topic.id for topic in first.topics] == [topic.id for topic in second.topics]
    assert first.assets == second.assets
    assert first.map == second.map
