"""Non-fatal diagnostics collected by every conversion stage."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class Severity(str, Enum):
    ERROR = "error"
    WARNING = "warning"


class IssueKind(str, Enum):
    DISALLOWED_CHILD = "disallowed-child"
    MISSING_REQUIRED_CHILD = "missing-required-child"
    MISSING_TITLE = "missing-title"
    EMPTY_REQUIRED_ATTRIBUTE = "empty-required-attribute"


def format_path(path: tuple[int, ...], scope: str = "body") -> str:
    if not path:
        return scope
    return f"{scope}/" + "/".join(str(index) for index in path)


@dataclass(frozen=True, slots=True)
class ValidationIssue:
    """A content-model violation found in one topic."""

    topic_id: str
    path: tuple[int, ...]
    kind: IssueKind
    severity: Severity
    element: str = ""
    message: str = ""
    scope: str = "body"

    def to_dict(self) -> dict[str, str]:
        return {
            "topic_id": self.topic_id,
            "path": format_path(self.path, self.scope),
            "element": self.element,
            "kind": self.kind.value,
            "severity": self.severity.value,
            "message": self.message,
        }


@dataclass(frozen=True, slots=True)
class MappingWarning:
    """A canonical tag with no rule; it was copied through unchanged."""

    tag: str
    occurrences: int = 1
    severity: Severity = Severity.WARNING

    @property
    def message(self) -> str:
        return f"No mapping rule for tag '{self.tag}', kept as-is ({self.occurrences}x)"


@dataclass(frozen=True, slots=True)
class ReferenceWarning:
    """A cross reference whose target token matched no anchor."""

    topic_id: str
    path: tuple[int, ...]
    target: str
    severity: Severity = Severity.WARNING

    @property
    def message(self) -> str:
        return f"Unresolved reference '{self.target}' in topic '{self.topic_id}' at {format_path(self.path)}"


@dataclass(frozen=True, slots=True)
class EmptyTopicWarning:
    """A heading was followed by no body content before the next cut."""

    topic_id: str
    title: str
    severity: Severity = Severity.WARNING

    @property
    def message(self) -> str:
        return f"Topic '{self.topic_id}' ({self.title!r}) has an empty body"
