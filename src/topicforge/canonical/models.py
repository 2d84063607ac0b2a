"""Canonical, format-agnostic content tree produced by ingestion adapters."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterator

TEXT_TAG = "#text"
ANCHOR_TAG = "anchor"
HEADING_TAG = "heading"

# Containers whose children stay on the document flow.
FLOW_CONTAINER_TAGS = frozenset({"document", "body", "section", "division"})

_HEADING_ALIASES = {f"h{level}": level for level in range(1, 7)}


@dataclass(slots=True)
class CanonicalNode:
    """One block or inline node of the canonical tree.

    Attributes are kept as an ordered list of pairs so that ingestion order
    survives into the emitted markup. Children are owned by their parent.
    """

    tag: str
    attributes: list[tuple[str, str]] = field(default_factory=list)
    children: list[CanonicalNode] = field(default_factory=list)
    text: str | None = None
    anchor: str | None = None

    @property
    def is_leaf(self) -> bool:
        return not self.children

    def get(self, key: str, default: str | None = None) -> str | None:
        for name, value in self.attributes:
            if name == key:
                return value
        return default

    def set(self, key: str, value: str) -> None:
        """Replace the first attribute named *key* in place, or append it."""

        for index, (name, _value) in enumerate(self.attributes):
            if name == key:
                self.attributes[index] = (key, value)
                return
        self.attributes.append((key, value))

    def iter(self) -> Iterator[CanonicalNode]:
        """Yield this node and all descendants in document order."""

        yield self
        for child in self.children:
            yield from child.iter()


def leaf(tag: str, value: str) -> CanonicalNode:
    return CanonicalNode(tag=tag, text=value)


def element(tag: str, *children: CanonicalNode, anchor: str | None = None, **attributes: str) -> CanonicalNode:
    """Compact constructor used by adapters and tests."""

    return CanonicalNode(
        tag=tag,
        attributes=[(key.replace("_", "-"), value) for key, value in attributes.items()],
        children=list(children),
        anchor=anchor,
    )


def heading(level: int, title: str, *, anchor: str | None = None) -> CanonicalNode:
    return CanonicalNode(tag=HEADING_TAG, attributes=[("level", str(level))], text=title, anchor=anchor)


def heading_level(candidate: CanonicalNode) -> int | None:
    """Return the heading level of *candidate*, or None when it is not a heading."""

    if candidate.tag in _HEADING_ALIASES:
        return _HEADING_ALIASES[candidate.tag]
    if candidate.tag != HEADING_TAG:
        return None

    raw_level = candidate.get("level", "1") or "1"
    try:
        level = int(raw_level)
    except ValueError:
        return 1
    return max(level, 1)


def is_anchor_marker(candidate: CanonicalNode) -> bool:
    """True for an ``anchor`` node that only marks a position and shows nothing."""

    if candidate.tag != ANCHOR_TAG or candidate.children:
        return False
    return not (candidate.text and candidate.text.strip())


def text_of(candidate: CanonicalNode) -> str:
    """Concatenate every text payload under *candidate* in document order."""

    parts = [item.text for item in candidate.iter() if item.text]
    return " ".join(parts)


def deep_copy(candidate: CanonicalNode) -> CanonicalNode:
    return CanonicalNode(
        tag=candidate.tag,
        attributes=list(candidate.attributes),
        children=[deep_copy(child) for child in candidate.children],
        text=candidate.text,
        anchor=candidate.anchor,
    )
