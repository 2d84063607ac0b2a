"""Content-model grammar: allowed and required children per (variant, tag)."""

from __future__ import annotations

from dataclasses import dataclass, field
from functools import lru_cache
import json
from pathlib import Path
from typing import Any, Mapping

from topicforge.engine.diagnostics import IssueKind, Severity
from topicforge.engine.models import TopicVariant

_DEFAULT_GRAMMAR_PATH = Path(__file__).parent / "default_grammar.json"

SHARED_SECTION = "*"

_DEFAULT_SEVERITIES = {kind: Severity.WARNING for kind in IssueKind}


@dataclass(frozen=True, slots=True)
class ElementRule:
    """Constraints for one tag. ``allowed=None`` leaves children unconstrained."""

    allowed: frozenset[str] | None = None
    required: tuple[str, ...] = ()
    required_attributes: tuple[str, ...] = ()
    defaults: Mapping[str, str | None] = field(default_factory=dict)
    attribute_defaults: Mapping[str, str] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, raw: Mapping[str, Any]) -> "ElementRule":
        allowed = raw.get("allowed")
        return cls(
            allowed=frozenset(allowed) if allowed is not None else None,
            required=tuple(raw.get("required") or ()),
            required_attributes=tuple(raw.get("required_attributes") or ()),
            defaults=dict(raw.get("defaults") or {}),
            attribute_defaults=dict(raw.get("attribute_defaults") or {}),
        )


@dataclass(frozen=True, slots=True)
class Grammar:
    """Per-variant element rules layered over a shared section.

    Read-only once built, so one instance can be shared by parallel
    validation workers.
    """

    rules: Mapping[str, Mapping[str, ElementRule]]
    body_tags: Mapping[TopicVariant, str]
    severities: Mapping[IssueKind, Severity] = field(default_factory=lambda: dict(_DEFAULT_SEVERITIES))
    default_title: str = "Untitled"

    def rule_for(self, variant: TopicVariant, tag: str) -> ElementRule | None:
        specific = self.rules.get(variant.value, {})
        if tag in specific:
            return specific[tag]
        return self.rules.get(SHARED_SECTION, {}).get(tag)

    def body_tag(self, variant: TopicVariant) -> str:
        return self.body_tags.get(variant, "body")

    def severity(self, kind: IssueKind) -> Severity:
        return self.severities.get(kind, Severity.WARNING)

    def with_severity(self, kind: IssueKind, severity: Severity) -> "Grammar":
        """Copy with one kind escalated or relaxed."""

        severities = dict(self.severities)
        severities[kind] = severity
        return Grammar(
            rules=self.rules,
            body_tags=self.body_tags,
            severities=severities,
            default_title=self.default_title,
        )

    @classmethod
    def from_dict(cls, raw: Mapping[str, Any]) -> "Grammar":
        sections = raw.get("elements")
        if not isinstance(sections, Mapping):
            raise ValueError("Grammar requires an 'elements' mapping")

        known_sections = {SHARED_SECTION} | {variant.value for variant in TopicVariant}
        unknown = set(sections) - known_sections
        if unknown:
            raise ValueError(f"Unknown grammar sections: {', '.join(sorted(unknown))}")

        rules = {
            section: {tag: ElementRule.from_dict(rule) for tag, rule in entries.items()}
            for section, entries in sections.items()
        }
        body_tags = {TopicVariant(name): tag for name, tag in (raw.get("body_tags") or {}).items()}

        severities = dict(_DEFAULT_SEVERITIES)
        for name, value in (raw.get("severity") or {}).items():
            severities[IssueKind(name)] = Severity(value)

        return cls(
            rules=rules,
            body_tags=body_tags,
            severities=severities,
            default_title=str(raw.get("default_title") or "Untitled"),
        )

    @classmethod
    def from_json(cls, payload: str) -> "Grammar":
        return cls.from_dict(json.loads(payload))


@lru_cache(maxsize=1)
def load_default_grammar() -> Grammar:
    return Grammar.from_json(_DEFAULT_GRAMMAR_PATH.read_text(encoding="utf-8"))
