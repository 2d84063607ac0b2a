from __future__ import annotations

import json
from pathlib import Path

import pytest

from topicforge.canonical import element, heading, leaf
from topicforge.canonical.serialization import dumps
from topicforge.cli.convert_document import main as convert_main

_GUIDE = """<!DOCTYPE html>
<html><head><title>Guide</title></head><body>
<h1>Intro</h1>
<p>Read <a href="#steps">the steps</a> first.</p>
<p><img src="img/logo.png" alt="Logo"></p>
<h2 id="steps">Setup</h2>
<ol><li>Install the tool</li><li>Run the build</li></ol>
<p><a href="#nowhere">broken</a></p>
</body></html>
"""


@pytest.fixture(autouse=True)
def _clean_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in (
        "TOPICFORGE_MAX_WORKERS",
        "TOPICFORGE_MEDIA_DIR",
        "TOPICFORGE_LOG_LEVEL",
        "TOPICFORGE_RULES_PATH",
        "TOPICFORGE_GRAMMAR_PATH",
        "TOPICFORGE_FAIL_ON_ERROR",
        "TOPICFORGE_REPAIR",
        "TOPICFORGE_REQUIRE_INITIAL_HEADING",
    ):
        monkeypatch.delenv(name, raising=False)


def _write_guide(tmp_path: Path) -> Path:
    source = tmp_path / "guide.html"
    source.write_text(_GUIDE, encoding="utf-8")
    (tmp_path / "img").mkdir()
    (tmp_path / "img" / "logo.png").write_bytes(b"\x89PNG fake")
    return source


def test_cli_writes_topics_map_and_assets(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    source = _write_guide(tmp_path)
    output = tmp_path / "out"

    exit_code = convert_main(["--input", str(source), "--output", str(output), "--max-workers", "2"])
    payload = json.loads(capsys.readouterr().out)

    assert exit_code == 0
    assert payload["topic_count"] == 2
    assert [topic["variant"] for topic in payload["topics"]] == ["concept", "task"]
    assert payload["unresolved_references"] == ["#nowhere"]
    assert payload["missing_assets"] == []
    assert (output / "index.ditamap").is_file()
    assert (output / "topics" / "intro.dita").is_file()
    assert (output / "topics" / "intro" / "setup.dita").is_file()
    assert (output / "media" / "logo.png").read_bytes() == b"\x89PNG fake"


def test_cli_applies_job_rules(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    source = _write_guide(tmp_path)
    rules = tmp_path / "rules.json"
    rules.write_text('[{"source": "strong", "target": "b"}, {"source": "paragraph", "target": "shortdesc"}]', encoding="utf-8")

    exit_code = convert_main(["--input", str(source), "--output", str(tmp_path / "out"), "--rules", str(rules)])
    payload = json.loads(capsys.readouterr().out)

    assert exit_code == 0
    kinds = {(issue["element"], issue["kind"]) for issue in payload["validation_issues"]}
    assert ("shortdesc", "disallowed-child") in kinds


def test_cli_accepts_canonical_json(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    source = tmp_path / "tree.json"
    source.write_text(dumps(element("document", heading(1, "Only"), leaf("paragraph", "Body"))), encoding="utf-8")

    exit_code = convert_main(["--input", str(source), "--output", str(tmp_path / "out")])
    payload = json.loads(capsys.readouterr().out)

    assert exit_code == 0
    assert payload["topics"][0]["path"] == "topics/only.dita"


def test_cli_reports_failures_as_json(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    source = tmp_path / "stray.html"
    source.write_text("<html><body><p>No heading yet</p><h1>Late</h1></body></html>", encoding="utf-8")

    strict_exit = convert_main(["--input", str(source), "--output", str(tmp_path / "out"), "--fail-on-error"])
    strict_payload = json.loads(capsys.readouterr().out)

    missing_exit = convert_main(["--input", str(tmp_path / "absent.html"), "--output", str(tmp_path / "out")])
    missing_payload = json.loads(capsys.readouterr().out)

    assert strict_exit == 1
    assert "error severity" in strict_payload["error"]
    assert strict_payload["diagnostics"]
    assert missing_exit == 1
    assert "absent.html" in missing_payload["error"]
    assert not (tmp_path / "out").exists()


def test_cli_does_not_copy_assets_outside_input_directory(
    tmp_path: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    docs = tmp_path / "docs"
    docs.mkdir()
    (tmp_path / "secret.png").write_bytes(b"private")
    source = docs / "page.html"
    source.write_text(
        '<html><head><title>T</title></head><body><h1>Doc</h1><p><img src="../secret.png"></p></body></html>',
        encoding="utf-8",
    )
    output = tmp_path / "out"

    exit_code = convert_main(["--input", str(source), "--output", str(output)])
    payload = json.loads(capsys.readouterr().out)

    assert exit_code == 0
    assert payload["missing_assets"] == ["../secret.png"]
    assert not (output / "media" / "secret.png").exists()
