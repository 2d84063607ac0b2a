"""Heuristic topic-variant inference over a topic's draft body.

Heuristics are applied in priority order and the first match wins:
ordered imperative steps make a task, a body dominated by definition lists
makes a reference, and everything else is a concept at level 1 or a
generic topic below it.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from functools import lru_cache
import json
from pathlib import Path
from typing import Sequence

from razdel import tokenize

from topicforge.canonical.models import TEXT_TAG, CanonicalNode, is_anchor_marker, text_of
from topicforge.canonical.normalization import normalize_text, normalize_whitespace
from topicforge.engine.models import TopicVariant

_LEXICON_PATH = Path(__file__).parent / "imperative_verbs.json"

ORDERED_LIST_TAG = "ordered-list"
LIST_ITEM_TAG = "list-item"
DEFINITION_LIST_TAG = "definition-list"

# Share of list items that must open with a base-form verb.
MIN_IMPERATIVE_RATIO = 0.5
# Share of body text that definition lists must hold.
MIN_DEFINITION_SHARE = 0.5


@dataclass(slots=True)
class TopicDraft:
    """A topic before tag mapping: raw canonical body plus its cut level."""

    title: CanonicalNode
    body: Sequence[CanonicalNode] = field(default_factory=list)
    level: int = 1


@lru_cache(maxsize=1)
def _load_verbs() -> frozenset[str]:
    payload = json.loads(_LEXICON_PATH.read_text(encoding="utf-8"))
    return frozenset(normalize_text(verb) for verb in payload["verbs"])


def first_word(text: str) -> str | None:
    """Return the first alphabetic token of *text*, normalized."""

    for token in tokenize(text):
        candidate = token.text.strip("-'")
        if candidate and any(char.isalpha() for char in candidate):
            return normalize_text(candidate)
    return None


def is_imperative(text: str) -> bool:
    word = first_word(text)
    return word is not None and word in _load_verbs()


def _is_structural(candidate: CanonicalNode) -> bool:
    if is_anchor_marker(candidate):
        return False
    if candidate.tag == TEXT_TAG:
        return bool(candidate.text and candidate.text.strip())
    return True


def _first_structural(body: Sequence[CanonicalNode]) -> CanonicalNode | None:
    return next((candidate for candidate in body if _is_structural(candidate)), None)


def _looks_like_steps(candidate: CanonicalNode) -> bool:
    if candidate.tag != ORDERED_LIST_TAG:
        return False

    items = [child for child in candidate.children if child.tag == LIST_ITEM_TAG]
    if not items:
        return False

    imperative = sum(1 for item in items if is_imperative(text_of(item)))
    return imperative / len(items) >= MIN_IMPERATIVE_RATIO


def _definition_share(body: Sequence[CanonicalNode]) -> float:
    total = 0
    definitions = 0
    for candidate in body:
        size = len(normalize_whitespace(text_of(candidate)))
        total += size
        if candidate.tag == DEFINITION_LIST_TAG:
            definitions += size
    if total == 0:
        return 0.0
    return definitions / total


def classify(draft: TopicDraft) -> TopicVariant:
    """Infer the variant of *draft*. Pure and deterministic."""

    first = _first_structural(draft.body)
    if first is not None and _looks_like_steps(first):
        return TopicVariant.TASK

    if _definition_share(draft.body) > MIN_DEFINITION_SHARE:
        return TopicVariant.REFERENCE

    if draft.level == 1:
        return TopicVariant.CONCEPT
    return TopicVariant.GENERIC
