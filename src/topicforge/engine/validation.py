"""Check synthesized topics against the content-model grammar.

``validate`` is a read-only pass. ``repair`` is a separate opt-in pass that
inserts the defaults a grammar declares and then needs a fresh validation.
"""

from __future__ import annotations

from concurrent import futures
from dataclasses import dataclass
import logging
from typing import Sequence

from topicforge.canonical.models import ANCHOR_TAG, TEXT_TAG, CanonicalNode
from topicforge.engine.diagnostics import IssueKind, ValidationIssue, format_path
from topicforge.engine.grammar import ElementRule, Grammar
from topicforge.engine.models import TopicNode, TopicVariant

LOGGER = logging.getLogger(__name__)

TITLE_SCOPE = "title"
BODY_SCOPE = "body"


@dataclass(frozen=True, slots=True)
class RepairAction:
    topic_id: str
    path: tuple[int, ...]
    description: str
    scope: str = BODY_SCOPE


def _present_tags(children: Sequence[CanonicalNode], text: str | None) -> list[tuple[int | None, str]]:
    """Child tags that count for content models, with their index.

    Anchor markers and blank text runs are invisible to the grammar. A text
    payload on the parent shows up as a ``#text`` child without an index.
    """

    present: list[tuple[int | None, str]] = []
    if text and text.strip():
        present.append((None, TEXT_TAG))
    for index, child in enumerate(children):
        if child.tag == ANCHOR_TAG:
            continue
        if child.tag == TEXT_TAG and not (child.text and child.text.strip()):
            continue
        present.append((index, child.tag))
    return present


class _TopicValidator:
    def __init__(self, topic: TopicNode, grammar: Grammar) -> None:
        self._topic = topic
        self._grammar = grammar
        self._variant: TopicVariant = topic.variant
        self.issues: list[ValidationIssue] = []

    def _issue(self, kind: IssueKind, path: tuple[int, ...], element: str, message: str, scope: str) -> None:
        self.issues.append(
            ValidationIssue(
                topic_id=self._topic.id,
                path=path,
                kind=kind,
                severity=self._grammar.severity(kind),
                element=element,
                message=message,
                scope=scope,
            )
        )

    def run(self) -> list[ValidationIssue]:
        topic = self._topic
        title = topic.title
        if not topic.title_text:
            self._issue(IssueKind.MISSING_TITLE, (), title.tag, "Topic title is empty", TITLE_SCOPE)
        self._check_subtree(title, (), TITLE_SCOPE)

        body_tag = self._grammar.body_tag(self._variant)
        body_rule = self._grammar.rule_for(self._variant, body_tag)
        if body_rule is not None:
            self._check(body_tag, topic.body, None, None, body_rule, (), BODY_SCOPE)
        for index, candidate in enumerate(topic.body):
            self._check_subtree(candidate, (index,), BODY_SCOPE)
        return self.issues

    def _check_subtree(self, candidate: CanonicalNode, path: tuple[int, ...], scope: str) -> None:
        rule = self._grammar.rule_for(self._variant, candidate.tag)
        if rule is not None:
            self._check(candidate.tag, candidate.children, candidate.text, candidate, rule, path, scope)
        for index, child in enumerate(candidate.children):
            self._check_subtree(child, path + (index,), scope)

    def _check(
        self,
        tag: str,
        children: Sequence[CanonicalNode],
        text: str | None,
        owner: CanonicalNode | None,
        rule: ElementRule,
        path: tuple[int, ...],
        scope: str,
    ) -> None:
        present = _present_tags(children, text)

        if rule.allowed is not None:
            for index, child_tag in present:
                if child_tag in rule.allowed:
                    continue
                child_path = path if index is None else path + (index,)
                self._issue(
                    IssueKind.DISALLOWED_CHILD,
                    child_path,
                    child_tag,
                    f"<{child_tag}> is not allowed in <{tag}>",
                    scope,
                )

        tags = {child_tag for _index, child_tag in present}
        for required in rule.required:
            if required not in tags:
                self._issue(
                    IssueKind.MISSING_REQUIRED_CHILD,
                    path,
                    tag,
                    f"<{tag}> requires a <{required}> child",
                    scope,
                )

        if owner is None:
            return
        for attribute in rule.required_attributes:
            value = owner.get(attribute)
            if value is None or not value.strip():
                self._issue(
                    IssueKind.EMPTY_REQUIRED_ATTRIBUTE,
                    path,
                    tag,
                    f"<{tag}> requires a non-empty '{attribute}' attribute",
                    scope,
                )


def validate_topic(topic: TopicNode, grammar: Grammar) -> list[ValidationIssue]:
    return _TopicValidator(topic, grammar).run()


def validate(root: TopicNode, grammar: Grammar, *, max_workers: int = 1) -> list[ValidationIssue]:
    """Return every grammar violation in the tree without touching it.

    Topics are independent, so they may be checked on worker threads; the
    result order is preorder by topic either way.
    """

    topics = root.topics()
    if max_workers > 1 and len(topics) > 1:
        with futures.ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="topicforge-validate") as executor:
            per_topic = list(executor.map(lambda topic: validate_topic(topic, grammar), topics))
    else:
        per_topic = [validate_topic(topic, grammar) for topic in topics]

    issues = [issue for batch in per_topic for issue in batch]
    LOGGER.info("Validated %s topics: %s issues", len(topics), len(issues))
    for issue in issues:
        LOGGER.debug("%s %s at %s: %s", issue.topic_id, issue.kind.value, format_path(issue.path, issue.scope), issue.message)
    return issues


def _repair_children(
    topic: TopicNode,
    grammar: Grammar,
    tag: str,
    children: list[CanonicalNode],
    owner: CanonicalNode | None,
    path: tuple[int, ...],
    actions: list[RepairAction],
) -> None:
    rule = grammar.rule_for(topic.variant, tag)
    if rule is not None:
        present = {child_tag for _index, child_tag in _present_tags(children, owner.text if owner else None)}
        for position, required in enumerate(rule.required):
            if required in present or required not in rule.defaults:
                continue
            default = rule.defaults[required]
            inserted = CanonicalNode(tag=required, text=default or None)
            if position == 0:
                children.insert(0, inserted)
            else:
                children.append(inserted)
            present.add(required)
            actions.append(RepairAction(topic.id, path, f"Inserted default <{required}> into <{tag}>"))

        if owner is not None:
            for attribute in rule.required_attributes:
                current = owner.get(attribute)
                if (current is None or not current.strip()) and attribute in rule.attribute_defaults:
                    owner.set(attribute, rule.attribute_defaults[attribute])
                    actions.append(RepairAction(topic.id, path, f"Set default '{attribute}' on <{tag}>"))

    for index, child in enumerate(children):
        _repair_children(topic, grammar, child.tag, child.children, child, path + (index,), actions)


def repair(root: TopicNode, grammar: Grammar) -> list[RepairAction]:
    """Apply grammar defaults in place. Run only when the caller opts in."""

    actions: list[RepairAction] = []
    for topic in root.topics():
        if not topic.title_text:
            topic.title.text = grammar.default_title
            actions.append(RepairAction(topic.id, (), f"Set default title '{grammar.default_title}'", TITLE_SCOPE))

        body_tag = grammar.body_tag(topic.variant)
        _repair_children(topic, grammar, body_tag, topic.body, None, (), actions)

    LOGGER.info("Applied %s grammar repairs", len(actions))
    return actions
