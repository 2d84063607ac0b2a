"""Topic tree structures built by segmentation and rewritten by later stages."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Iterator

from topicforge.canonical.models import CanonicalNode, text_of
from topicforge.canonical.normalization import normalize_whitespace


class TopicVariant(str, Enum):
    CONCEPT = "concept"
    TASK = "task"
    REFERENCE = "reference"
    GENERIC = "generic-topic"


@dataclass(slots=True)
class TopicNode:
    """A self-contained topic cut from the canonical tree.

    ``body`` holds mapped copies of the canonical content, never the source
    nodes themselves. ``synthetic`` marks the container that only groups
    root-level siblings; it is never emitted.
    """

    id: str
    variant: TopicVariant
    title: CanonicalNode
    body: list[CanonicalNode] = field(default_factory=list)
    level: int = 0
    children: list[TopicNode] = field(default_factory=list)
    synthetic: bool = False

    @property
    def title_text(self) -> str:
        return normalize_whitespace(text_of(self.title))

    def walk(self) -> Iterator[TopicNode]:
        """Yield this topic and its descendants in preorder."""

        yield self
        for child in self.children:
            yield from child.walk()

    def topics(self) -> list[TopicNode]:
        """Every emitted topic in preorder, skipping the synthetic container."""

        return [topic for topic in self.walk() if not topic.synthetic]


def iter_body(topic: TopicNode) -> Iterator[tuple[tuple[int, ...], CanonicalNode]]:
    """Yield ``(path, node)`` for every body node in document order."""

    def _walk(candidate: CanonicalNode, path: tuple[int, ...]) -> Iterator[tuple[tuple[int, ...], CanonicalNode]]:
        yield path, candidate
        for index, child in enumerate(candidate.children):
            yield from _walk(child, path + (index,))

    for index, candidate in enumerate(topic.body):
        yield from _walk(candidate, (index,))


class ReferenceStatus(str, Enum):
    RESOLVED = "resolved"
    UNRESOLVED = "unresolved"


@dataclass(slots=True)
class CrossReference:
    """One reference-bearing attribute and what it resolved to."""

    topic_id: str
    path: tuple[int, ...]
    attribute: str
    original: str
    target_topic: str | None = None
    fragment: str | None = None
    status: ReferenceStatus = ReferenceStatus.UNRESOLVED

    @property
    def rewritten(self) -> str | None:
        if self.target_topic is None:
            return None
        if self.fragment is None:
            return f"#{self.target_topic}"
        return f"#{self.target_topic}/{self.fragment}"


@dataclass(frozen=True, slots=True)
class AssetRef:
    """A media reference relocated relative to its topic's output file."""

    topic_id: str
    original: str
    topic_path: str
    asset_path: str
    relative_path: str
