"""Navigation map mirroring the final topic hierarchy."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Iterator, Mapping

from topicforge.engine.models import TopicNode, TopicVariant


@dataclass(slots=True)
class MapEntry:
    topic_id: str
    title: str
    variant: TopicVariant
    href: str | None = None
    children: list[MapEntry] = field(default_factory=list)

    def walk(self) -> Iterator[MapEntry]:
        yield self
        for child in self.children:
            yield from child.walk()

    def to_dict(self) -> dict[str, Any]:
        return {
            "topic_id": self.topic_id,
            "title": self.title,
            "variant": self.variant.value,
            "href": self.href,
            "children": [child.to_dict() for child in self.children],
        }


@dataclass(slots=True)
class MapDocument:
    title: str
    entries: list[MapEntry] = field(default_factory=list)

    def walk(self) -> Iterator[MapEntry]:
        for entry in self.entries:
            yield from entry.walk()

    def to_dict(self) -> dict[str, Any]:
        return {"title": self.title, "entries": [entry.to_dict() for entry in self.entries]}


def _entry(topic: TopicNode, topic_paths: Mapping[str, str]) -> MapEntry:
    return MapEntry(
        topic_id=topic.id,
        title=topic.title_text,
        variant=topic.variant,
        href=topic_paths.get(topic.id),
        children=[_entry(child, topic_paths) for child in topic.children],
    )


def synthesize(root: TopicNode, topic_paths: Mapping[str, str] | None = None) -> MapDocument:
    """Structural copy of the topic tree; run only once the tree is final."""

    paths = topic_paths or {}
    if root.synthetic:
        entries = [_entry(child, paths) for child in root.children]
    else:
        entries = [_entry(root, paths)]
    return MapDocument(title=root.title_text, entries=entries)
