"""Two-pass resolution of internal cross references across the topic tree.

The first pass indexes every anchor in the finished tree; the second pass
rewrites reference attributes against that index. Both passes are needed
because a reference may precede its anchor in document order.
"""

from __future__ import annotations

from dataclasses import dataclass, field
import logging
from typing import Iterable, Mapping

from topicforge.canonical.models import CanonicalNode
from topicforge.canonical.normalization import slugify
from topicforge.engine.assets import DEFAULT_MEDIA_ATTRIBUTES, is_external
from topicforge.engine.diagnostics import ReferenceWarning
from topicforge.engine.models import CrossReference, ReferenceStatus, TopicNode, iter_body

LOGGER = logging.getLogger(__name__)

DEFAULT_REFERENCE_ATTRIBUTES = ("href",)
FRAGMENT_ATTRIBUTE = "id"


@dataclass(slots=True)
class AnchorTarget:
    topic_id: str
    fragment: str | None = None
    node: CanonicalNode | None = field(default=None, repr=False, compare=False)


@dataclass(slots=True)
class ResolutionResult:
    root: TopicNode
    references: list[CrossReference] = field(default_factory=list)
    warnings: list[ReferenceWarning] = field(default_factory=list)

    @property
    def unresolved(self) -> list[CrossReference]:
        return [ref for ref in self.references if ref.status is ReferenceStatus.UNRESOLVED]


def build_anchor_index(root: TopicNode) -> dict[str, AnchorTarget]:
    """Pass 1: map every source anchor to its topic and a fresh fragment id.

    Fragments are assigned in first-appearance order and are unique within
    their topic. Anchors on the title address the topic itself.
    """

    index: dict[str, AnchorTarget] = {}

    def _register(anchor: str, target: AnchorTarget) -> None:
        if anchor in index:
            LOGGER.warning(
                "Duplicate anchor '%s' in topic %s ignored; first seen in topic %s",
                anchor,
                target.topic_id,
                index[anchor].topic_id,
            )
            return
        index[anchor] = target

    for topic in root.topics():
        for candidate in topic.title.iter():
            if candidate.anchor:
                _register(candidate.anchor, AnchorTarget(topic_id=topic.id))

        used: set[str] = set()
        for _path, candidate in iter_body(topic):
            if not candidate.anchor:
                continue
            if candidate.anchor in index:
                _register(candidate.anchor, AnchorTarget(topic_id=topic.id))
                continue

            base = slugify(candidate.anchor, fallback="fragment")
            fragment = base
            counter = 2
            while fragment in used:
                fragment = f"{base}-{counter}"
                counter += 1
            used.add(fragment)
            _register(candidate.anchor, AnchorTarget(topic_id=topic.id, fragment=fragment, node=candidate))

    return index


def _split_token(token: str) -> tuple[str, str | None]:
    if "#" not in token:
        return token, None
    path, fragment = token.split("#", 1)
    return path, fragment


def _lookup(token: str, index: Mapping[str, AnchorTarget], topic_ids: set[str]) -> AnchorTarget | None:
    path, fragment = _split_token(token)
    if not fragment:
        return None
    if fragment in index:
        return index[fragment]

    # Tokens rewritten by an earlier run: "#topic" or "#topic/fragment".
    if not path:
        topic_id, _sep, local = fragment.partition("/")
        if topic_id in topic_ids:
            return AnchorTarget(topic_id=topic_id, fragment=local or None)
    return None


def resolve(
    root: TopicNode,
    *,
    reference_attributes: Iterable[str] = DEFAULT_REFERENCE_ATTRIBUTES,
    media_tags: Iterable[str] = tuple(DEFAULT_MEDIA_ATTRIBUTES),
) -> ResolutionResult:
    """Resolve internal references in place; unresolved ones keep their token."""

    index = build_anchor_index(root)
    topics = root.topics()
    topic_ids = {topic.id for topic in topics}
    attributes = tuple(reference_attributes)
    skipped_tags = frozenset(media_tags)

    for target in index.values():
        if target.node is not None and target.fragment is not None:
            target.node.set(FRAGMENT_ATTRIBUTE, target.fragment)

    result = ResolutionResult(root=root)
    for topic in topics:
        for path, candidate in iter_body(topic):
            if candidate.tag in skipped_tags:
                continue
            for attribute in attributes:
                token = candidate.get(attribute)
                if not token or is_external(token):
                    continue

                reference = CrossReference(topic_id=topic.id, path=path, attribute=attribute, original=token)
                target = _lookup(token, index, topic_ids)
                if target is None:
                    warning = ReferenceWarning(topic_id=topic.id, path=path, target=token)
                    LOGGER.warning(warning.message)
                    result.warnings.append(warning)
                else:
                    reference.target_topic = target.topic_id
                    reference.fragment = target.fragment
                    reference.status = ReferenceStatus.RESOLVED
                    candidate.set(attribute, reference.rewritten or token)
                result.references.append(reference)

    LOGGER.info(
        "Resolved %s of %s cross references (%s anchors indexed)",
        len(result.references) - len(result.unresolved),
        len(result.references),
        len(index),
    )
    return result
