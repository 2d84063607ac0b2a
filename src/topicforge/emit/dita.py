"""Serialize the topic tree and navigation map as DITA XML with lxml.

Only bytes and relative output paths are produced here; writing them is
the caller's job.
"""

from __future__ import annotations

import posixpath
import re
from typing import Mapping

from lxml import etree

from topicforge.canonical.models import ANCHOR_TAG, TEXT_TAG, CanonicalNode
from topicforge.engine.grammar import Grammar, load_default_grammar
from topicforge.engine.models import TopicNode, TopicVariant
from topicforge.engine.navmap import MapDocument, MapEntry
from topicforge.engine.pipeline import ConversionResult

DEFAULT_MAP_NAME = "index.ditamap"

_ROOT_TAGS: dict[TopicVariant, str] = {
    TopicVariant.CONCEPT: "concept",
    TopicVariant.TASK: "task",
    TopicVariant.REFERENCE: "reference",
    TopicVariant.GENERIC: "topic",
}

_DOCTYPES: dict[str, str] = {
    "concept": '<!DOCTYPE concept PUBLIC "-//OASIS//DTD DITA Concept//EN" "concept.dtd">',
    "task": '<!DOCTYPE task PUBLIC "-//OASIS//DTD DITA Task//EN" "task.dtd">',
    "reference": '<!DOCTYPE reference PUBLIC "-//OASIS//DTD DITA Reference//EN" "reference.dtd">',
    "topic": '<!DOCTYPE topic PUBLIC "-//OASIS//DTD DITA Topic//EN" "topic.dtd">',
    "map": '<!DOCTYPE map PUBLIC "-//OASIS//DTD DITA Map//EN" "map.dtd">',
}

_XML_NAME_RE = re.compile(r"^[A-Za-z_][\w.-]*$")
_ANCHOR_ELEMENT = "ph"
_REFERENCE_ATTRIBUTE = "href"


def _append_text(parent: etree._Element, text: str) -> None:
    if len(parent):
        last = parent[-1]
        last.tail = (last.tail or "") + text
    else:
        parent.text = (parent.text or "") + text


class _TopicWriter:
    def __init__(self, topic: TopicNode, topic_paths: Mapping[str, str]) -> None:
        self._topic = topic
        self._paths = topic_paths
        self._topic_dir = posixpath.dirname(topic_paths.get(topic.id, ""))

    def href(self, value: str) -> str:
        """Turn ``#topic/fragment`` into a file-relative href."""

        if not value.startswith("#"):
            return value
        target, _sep, _fragment = value[1:].partition("/")
        if target == self._topic.id or target not in self._paths:
            return value
        relative = posixpath.relpath(self._paths[target], start=self._topic_dir or ".")
        return f"{relative}{value}"

    def append(self, parent: etree._Element, candidate: CanonicalNode) -> None:
        if candidate.tag == TEXT_TAG:
            if candidate.text:
                _append_text(parent, candidate.text)
            return

        tag = _ANCHOR_ELEMENT if candidate.tag == ANCHOR_TAG else candidate.tag
        element = etree.SubElement(parent, tag if _XML_NAME_RE.match(tag) else "ph")
        for key, value in candidate.attributes:
            if not _XML_NAME_RE.match(key):
                continue
            if key == _REFERENCE_ATTRIBUTE and tag == "xref":
                value = self.href(value)
            element.set(key, value)
        if candidate.text:
            element.text = candidate.text
        for child in candidate.children:
            self.append(element, child)

    def build(self, grammar: Grammar) -> etree._Element:
        topic = self._topic
        root = etree.Element(_ROOT_TAGS[topic.variant], id=topic.id)

        title = etree.SubElement(root, "title")
        if topic.title.text:
            title.text = topic.title.text
        for child in topic.title.children:
            self.append(title, child)

        body = etree.SubElement(root, grammar.body_tag(topic.variant))
        for candidate in topic.body:
            self.append(body, candidate)
        return root


def topic_to_element(
    topic: TopicNode,
    topic_paths: Mapping[str, str],
    grammar: Grammar | None = None,
) -> etree._Element:
    return _TopicWriter(topic, topic_paths).build(grammar or load_default_grammar())


def _topicref(parent: etree._Element, entry: MapEntry) -> None:
    element = etree.SubElement(parent, "topicref", navtitle=entry.title, type=_ROOT_TAGS[entry.variant])
    if entry.href:
        element.set("href", entry.href)
    for child in entry.children:
        _topicref(element, child)


def map_to_element(document: MapDocument) -> etree._Element:
    root = etree.Element("map")
    if document.title:
        title = etree.SubElement(root, "title")
        title.text = document.title
    for entry in document.entries:
        _topicref(root, entry)
    return root


def serialize(element: etree._Element) -> bytes:
    return etree.tostring(
        element,
        xml_declaration=True,
        encoding="UTF-8",
        pretty_print=True,
        doctype=_DOCTYPES.get(element.tag),
    )


def render_package(
    result: ConversionResult,
    *,
    grammar: Grammar | None = None,
    map_name: str = DEFAULT_MAP_NAME,
) -> dict[str, bytes]:
    """Return ``{relative output path: file bytes}`` for the map and every topic."""

    active_grammar = grammar or load_default_grammar()
    files: dict[str, bytes] = {map_name: serialize(map_to_element(result.map))}
    for topic in result.topics:
        path = result.topic_paths[topic.id]
        files[path] = serialize(topic_to_element(topic, result.topic_paths, active_grammar))
    return files
