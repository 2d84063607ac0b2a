"""Run one conversion job through every engine stage in order."""

from __future__ import annotations

from dataclasses import dataclass, field
import logging

from topicforge.canonical.models import CanonicalNode
from topicforge.engine.assets import relocate
from topicforge.engine.context import JobContext
from topicforge.engine.diagnostics import (
    EmptyTopicWarning,
    MappingWarning,
    ReferenceWarning,
    Severity,
    ValidationIssue,
)
from topicforge.engine.errors import ConversionFailed
from topicforge.engine.models import AssetRef, CrossReference, ReferenceStatus, TopicNode
from topicforge.engine.navmap import MapDocument, synthesize
from topicforge.engine.references import resolve
from topicforge.engine.segmentation import segment
from topicforge.engine.validation import RepairAction, repair, validate

LOGGER = logging.getLogger(__name__)


@dataclass(slots=True)
class ConversionResult:
    """Everything a job produced; callers decide which issues are fatal."""

    root: TopicNode
    map: MapDocument
    topic_paths: dict[str, str]
    references: list[CrossReference] = field(default_factory=list)
    assets: list[AssetRef] = field(default_factory=list)
    mapping_warnings: list[MappingWarning] = field(default_factory=list)
    topic_warnings: list[EmptyTopicWarning] = field(default_factory=list)
    reference_warnings: list[ReferenceWarning] = field(default_factory=list)
    validation_issues: list[ValidationIssue] = field(default_factory=list)
    repairs: list[RepairAction] = field(default_factory=list)

    @property
    def topics(self) -> list[TopicNode]:
        return self.root.topics()

    @property
    def unresolved_references(self) -> list[CrossReference]:
        return [ref for ref in self.references if ref.status is ReferenceStatus.UNRESOLVED]

    @property
    def errors(self) -> list[ValidationIssue]:
        return [issue for issue in self.validation_issues if issue.severity is Severity.ERROR]

    def diagnostics(self) -> list[object]:
        """All non-fatal findings, in stage order."""

        collected: list[object] = []
        collected.extend(self.mapping_warnings)
        collected.extend(self.topic_warnings)
        collected.extend(self.reference_warnings)
        collected.extend(self.validation_issues)
        return collected


def convert(tree: CanonicalNode, context: JobContext | None = None) -> ConversionResult:
    """Segment, resolve, relocate, validate and map one canonical tree.

    Raises :class:`StructuralError` for unusable input, and
    :class:`ConversionFailed` when the context escalates error-severity
    issues. No partial result is returned in either case.
    """

    job = context or JobContext.create()

    segmented = segment(tree, job)
    root = segmented.root

    resolved = resolve(root)
    relocated = relocate(root, job.asset_layout, max_workers=job.max_workers)

    issues = validate(root, job.grammar, max_workers=job.max_workers)
    repairs: list[RepairAction] = []
    if job.repair and issues:
        repairs = repair(root, job.grammar)
        if repairs:
            issues = validate(root, job.grammar, max_workers=job.max_workers)

    errors = [issue for issue in issues if issue.severity is Severity.ERROR]
    if job.fail_on_error and errors:
        raise ConversionFailed(
            f"{len(errors)} validation issues have error severity",
            diagnostics=(*segmented.mapping_warnings, *segmented.topic_warnings, *resolved.warnings, *issues),
        )

    result = ConversionResult(
        root=root,
        map=synthesize(root, relocated.topic_paths),
        topic_paths=relocated.topic_paths,
        references=resolved.references,
        assets=relocated.assets,
        mapping_warnings=segmented.mapping_warnings,
        topic_warnings=segmented.topic_warnings,
        reference_warnings=resolved.warnings,
        validation_issues=issues,
        repairs=repairs,
    )

    LOGGER.info(
        "Converted %s topics (%s warnings, %s validation issues)",
        len(result.topics),
        len(result.mapping_warnings) + len(result.topic_warnings) + len(result.reference_warnings),
        len(result.validation_issues),
    )
    return result
