"""Canonical-to-target tag translation against a layered rule table."""

from __future__ import annotations

from dataclasses import dataclass, field
from functools import lru_cache
import json
from pathlib import Path
import re
from typing import Any, Iterable, Mapping

from topicforge.canonical.models import ANCHOR_TAG, TEXT_TAG, CanonicalNode, text_of
from topicforge.canonical.normalization import normalize_whitespace
from topicforge.engine.models import TopicVariant

_DEFAULT_RULES_PATH = Path(__file__).parent / "default_rules.json"

# Tags copied through unchanged without consulting the table.
PASSTHROUGH_TAGS = frozenset({TEXT_TAG, ANCHOR_TAG})


@dataclass(slots=True)
class NodeContext:
    """What a predicate may inspect about the node being mapped."""

    tag: str
    attributes: tuple[tuple[str, str], ...] = ()
    ancestors: tuple[str, ...] = ()
    variant: TopicVariant | None = None
    source: CanonicalNode | None = None

    @classmethod
    def of(
        cls,
        candidate: CanonicalNode,
        *,
        ancestors: tuple[str, ...] = (),
        variant: TopicVariant | None = None,
    ) -> "NodeContext":
        return cls(
            tag=candidate.tag,
            attributes=tuple(candidate.attributes),
            ancestors=ancestors,
            variant=variant,
            source=candidate,
        )

    @property
    def parent(self) -> str | None:
        return self.ancestors[-1] if self.ancestors else None

    @property
    def text(self) -> str:
        if self.source is None:
            return ""
        return normalize_whitespace(text_of(self.source))

    def attribute(self, key: str) -> str | None:
        for name, value in self.attributes:
            if name == key:
                return value
        return None


@dataclass(frozen=True, slots=True)
class RulePredicate:
    """Declarative condition narrowing when a rule applies.

    Every condition that is set must hold. ``ancestors`` compares the whole
    chain, so ``()`` means "directly in the topic body".
    """

    attributes: tuple[tuple[str, str], ...] = ()
    ancestor: str | None = None
    parent: str | None = None
    ancestors: tuple[str, ...] | None = None
    text_pattern: re.Pattern[str] | None = None
    variant: TopicVariant | None = None

    def __call__(self, context: NodeContext) -> bool:
        if self.variant is not None and context.variant is not self.variant:
            return False
        if self.ancestors is not None and context.ancestors != self.ancestors:
            return False
        if self.parent is not None and context.parent != self.parent:
            return False
        if self.ancestor is not None and self.ancestor not in context.ancestors:
            return False
        for key, value in self.attributes:
            if context.attribute(key) != value:
                return False
        if self.text_pattern is not None and not self.text_pattern.fullmatch(context.text):
            return False
        return True

    @classmethod
    def from_dict(cls, raw: Mapping[str, Any]) -> "RulePredicate":
        unknown = set(raw) - {"attributes", "ancestor", "parent", "ancestors", "text_pattern", "variant"}
        if unknown:
            raise ValueError(f"Unknown predicate keys: {', '.join(sorted(unknown))}")

        ancestors = raw.get("ancestors")
        pattern = raw.get("text_pattern")
        variant = raw.get("variant")
        return cls(
            attributes=tuple(sorted((str(k), str(v)) for k, v in (raw.get("attributes") or {}).items())),
            ancestor=raw.get("ancestor"),
            parent=raw.get("parent"),
            ancestors=tuple(ancestors) if ancestors is not None else None,
            text_pattern=re.compile(pattern) if pattern else None,
            variant=TopicVariant(variant) if variant else None,
        )


@dataclass(frozen=True, slots=True)
class TagRule:
    """Map ``source`` to ``target``, optionally only when ``predicate`` holds."""

    source: str
    target: str
    predicate: RulePredicate | None = None
    attributes: tuple[tuple[str, str], ...] = ()
    renames: tuple[tuple[str, str], ...] = ()

    def applies(self, context: NodeContext) -> bool:
        return self.predicate is None or self.predicate(context)

    def translate_attributes(self, attributes: Iterable[tuple[str, str]]) -> list[tuple[str, str]]:
        renames = dict(self.renames)
        translated = [(renames.get(key, key), value) for key, value in attributes]
        for key, value in self.attributes:
            translated = [(name, current) for name, current in translated if name != key]
            translated.append((key, value))
        return translated

    @classmethod
    def from_dict(cls, raw: Mapping[str, Any]) -> "TagRule":
        source = str(raw.get("source") or "").strip()
        target = str(raw.get("target") or "").strip()
        if not source or not target:
            raise ValueError("Tag rules need non-empty 'source' and 'target'")

        when = raw.get("when")
        return cls(
            source=source,
            target=target,
            predicate=RulePredicate.from_dict(when) if when else None,
            attributes=tuple((str(k), str(v)) for k, v in (raw.get("attributes") or {}).items()),
            renames=tuple((str(k), str(v)) for k, v in (raw.get("rename") or {}).items()),
        )


def rules_from_json(payload: str | list[Mapping[str, Any]]) -> tuple[TagRule, ...]:
    """Parse a rule list as stored in the external rule source."""

    raw = json.loads(payload) if isinstance(payload, str) else payload
    if not isinstance(raw, list):
        raise ValueError("Tag rule payload must be a JSON list")
    return tuple(TagRule.from_dict(entry) for entry in raw)


@lru_cache(maxsize=1)
def load_default_rules() -> tuple[TagRule, ...]:
    return rules_from_json(_DEFAULT_RULES_PATH.read_text(encoding="utf-8"))


@dataclass(frozen=True, slots=True)
class RuleTable:
    """Global defaults shadowed by job-specific rules; last match wins."""

    global_rules: tuple[TagRule, ...] = ()
    job_rules: tuple[TagRule, ...] = ()

    @classmethod
    def with_defaults(cls, job_rules: Iterable[TagRule] = ()) -> "RuleTable":
        return cls(global_rules=load_default_rules(), job_rules=tuple(job_rules))

    def candidates(self, tag: str) -> list[TagRule]:
        """Rules for *tag* in the order they must be tried."""

        ordered = [rule for rule in reversed(self.job_rules) if rule.source == tag]
        ordered.extend(rule for rule in reversed(self.global_rules) if rule.source == tag)
        return ordered


@dataclass(slots=True)
class TagMapper:
    """Resolve target tags for one job.

    Lookups are pure: the same tag and context always give the same rule.
    """

    table: RuleTable
    _by_tag: dict[str, list[TagRule]] = field(default_factory=dict, init=False, repr=False)

    def lookup(self, tag: str, context: NodeContext) -> TagRule | None:
        if tag not in self._by_tag:
            self._by_tag[tag] = self.table.candidates(tag)
        for rule in self._by_tag[tag]:
            if rule.applies(context):
                return rule
        return None

    def map(self, tag: str, context: NodeContext) -> str:
        """Return the target tag, falling back to identity when unmapped."""

        if tag in PASSTHROUGH_TAGS:
            return tag
        rule = self.lookup(tag, context)
        return rule.target if rule is not None else tag

    def is_mapped(self, tag: str, context: NodeContext) -> bool:
        return tag in PASSTHROUGH_TAGS or self.lookup(tag, context) is not None
