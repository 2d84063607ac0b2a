"""Partition a canonical tree into a topic tree along heading levels."""

from __future__ import annotations

from dataclasses import dataclass, field
import logging

from topicforge.canonical.models import (
    ANCHOR_TAG,
    FLOW_CONTAINER_TAGS,
    TEXT_TAG,
    CanonicalNode,
    heading_level,
    is_anchor_marker,
)
from topicforge.engine.classifier import TopicDraft, classify
from topicforge.engine.context import ROOT_TOPIC_ID, JobContext
from topicforge.engine.diagnostics import EmptyTopicWarning, MappingWarning
from topicforge.engine.errors import MissingInitialHeading
from topicforge.engine.mapping import PASSTHROUGH_TAGS, NodeContext
from topicforge.engine.models import TopicNode, TopicVariant

LOGGER = logging.getLogger(__name__)

TITLE_TAG = "title"


@dataclass(slots=True)
class SegmentationResult:
    """Topic tree plus the non-fatal findings of the segmentation pass."""

    root: TopicNode
    mapping_warnings: list[MappingWarning] = field(default_factory=list)
    topic_warnings: list[EmptyTopicWarning] = field(default_factory=list)


@dataclass(slots=True)
class _Builder:
    topic: TopicNode
    heading: CanonicalNode | None
    draft: list[CanonicalNode] = field(default_factory=list)

    @property
    def level(self) -> int:
        return self.topic.level


def _anchor_marker(anchor: str) -> CanonicalNode:
    return CanonicalNode(tag=ANCHOR_TAG, anchor=anchor)


def has_content(nodes: list[CanonicalNode]) -> bool:
    """True when *nodes* hold anything besides anchor markers and blank text."""

    for candidate in nodes:
        if is_anchor_marker(candidate):
            continue
        if candidate.tag == TEXT_TAG and not (candidate.text and candidate.text.strip()):
            continue
        return True
    return False


class _Segmenter:
    def __init__(self, context: JobContext) -> None:
        self._context = context
        self._unmapped: dict[str, int] = {}
        self._empty: list[EmptyTopicWarning] = []
        self._pending_anchors: list[str] = []
        self._stack: list[_Builder] = []

    def run(self, tree: CanonicalNode) -> SegmentationResult:
        root_topic = TopicNode(
            id=self._context.ids.reserve(ROOT_TOPIC_ID),
            variant=TopicVariant.GENERIC,
            title=CanonicalNode(tag=TITLE_TAG),
            level=0,
        )
        root = _Builder(topic=root_topic, heading=None)
        self._stack = [root]

        root_level = heading_level(tree)
        if root_level is not None:
            self._open(tree, root_level)
        elif tree.tag in FLOW_CONTAINER_TAGS:
            self._walk_flow(tree)
        else:
            self._append(tree)

        self._stack[-1].draft.extend(_anchor_marker(anchor) for anchor in self._pending_anchors)
        self._pending_anchors.clear()
        while len(self._stack) > 1:
            self._finalize(self._stack.pop())

        self._finalize_root(root, tree)

        warnings = [MappingWarning(tag=tag, occurrences=count) for tag, count in self._unmapped.items()]
        for warning in warnings:
            LOGGER.warning(warning.message)

        topic_count = len(root.topic.topics())
        LOGGER.info("Segmented document into %s topics", topic_count)
        return SegmentationResult(root=root.topic, mapping_warnings=warnings, topic_warnings=self._empty)

    def _walk_flow(self, container: CanonicalNode) -> None:
        if container.anchor:
            self._pending_anchors.append(container.anchor)
        if container.text and container.text.strip():
            self._append(CanonicalNode(tag=TEXT_TAG, text=container.text))

        for child in container.children:
            level = heading_level(child)
            if level is not None:
                self._open(child, level)
            elif child.tag in FLOW_CONTAINER_TAGS:
                self._walk_flow(child)
            elif is_anchor_marker(child):
                # Named anchors attach to whatever content comes next.
                if child.anchor:
                    self._pending_anchors.append(child.anchor)
            else:
                self._append(child)

    def _append(self, candidate: CanonicalNode) -> None:
        builder = self._stack[-1]
        builder.draft.extend(_anchor_marker(anchor) for anchor in self._pending_anchors)
        self._pending_anchors.clear()
        builder.draft.append(candidate)

    def _open(self, heading: CanonicalNode, level: int) -> None:
        while len(self._stack) > 1 and self._stack[-1].level >= level:
            self._finalize(self._stack.pop())

        title_text = " ".join(item.text for item in heading.iter() if item.text)
        topic = TopicNode(
            id=self._context.ids.allocate(title_text),
            variant=TopicVariant.GENERIC,
            title=CanonicalNode(tag=TITLE_TAG),
            level=level,
        )
        builder = _Builder(topic=topic, heading=heading)

        if self._pending_anchors and heading.anchor is None:
            builder.topic.title.anchor = self._pending_anchors.pop(0)
        builder.draft.extend(_anchor_marker(anchor) for anchor in self._pending_anchors)
        self._pending_anchors.clear()

        self._stack[-1].topic.children.append(topic)
        self._stack.append(builder)
        LOGGER.debug("Opened topic %s at level %s", topic.id, level)

    def _finalize(self, builder: _Builder) -> None:
        topic = builder.topic
        title_source = builder.heading or CanonicalNode(tag=TITLE_TAG)
        topic.variant = classify(TopicDraft(title=title_source, body=builder.draft, level=topic.level))
        topic.title = self._build_title(topic, title_source)
        topic.body = [self._copy(candidate, (), topic.variant) for candidate in builder.draft]

        if not has_content(builder.draft) and builder.heading is not None:
            warning = EmptyTopicWarning(topic_id=topic.id, title=topic.title_text)
            LOGGER.warning(warning.message)
            self._empty.append(warning)

    def _finalize_root(self, root: _Builder, tree: CanonicalNode) -> None:
        leading = has_content(root.draft)
        topic = root.topic

        if leading and self._context.require_initial_heading:
            raise MissingInitialHeading("Content appears before the first heading")
        if not leading and not topic.children:
            raise MissingInitialHeading()

        document_title = tree.get("title")
        if document_title:
            root.heading = CanonicalNode(tag=TITLE_TAG, text=document_title)

        if leading:
            self._finalize(root)
            return

        topic.synthetic = True
        topic.title = self._build_title(topic, root.heading or CanonicalNode(tag=TITLE_TAG))

    def _build_title(self, topic: TopicNode, source: CanonicalNode) -> CanonicalNode:
        context = NodeContext.of(source, variant=topic.variant)
        tag = self._context.mapper.map(TITLE_TAG, context)
        return CanonicalNode(
            tag=tag,
            children=[self._copy(child, (TITLE_TAG,), topic.variant) for child in source.children],
            text=source.text,
            anchor=source.anchor or topic.title.anchor,
        )

    def _copy(self, candidate: CanonicalNode, ancestors: tuple[str, ...], variant: TopicVariant) -> CanonicalNode:
        """Deep-copy *candidate* translating every tag through the mapper."""

        tag = candidate.tag
        attributes = list(candidate.attributes)
        if tag not in PASSTHROUGH_TAGS:
            rule = self._context.mapper.lookup(tag, NodeContext.of(candidate, ancestors=ancestors, variant=variant))
            if rule is None:
                self._unmapped[tag] = self._unmapped.get(tag, 0) + 1
            else:
                tag = rule.target
                attributes = rule.translate_attributes(attributes)

        child_ancestors = ancestors + (candidate.tag,)
        return CanonicalNode(
            tag=tag,
            attributes=attributes,
            children=[self._copy(child, child_ancestors, variant) for child in candidate.children],
            text=candidate.text,
            anchor=candidate.anchor,
        )


def segment(tree: CanonicalNode, context: JobContext) -> SegmentationResult:
    """Cut *tree* into topics; raises :class:`MissingInitialHeading` on empty input."""

    return _Segmenter(context).run(tree)
