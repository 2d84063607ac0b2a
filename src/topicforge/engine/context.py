"""Explicit per-job state threaded through every engine stage."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable

from topicforge.canonical.normalization import slugify
from topicforge.engine.assets import AssetLayout, MediaLayout
from topicforge.engine.grammar import Grammar, load_default_grammar
from topicforge.engine.mapping import RuleTable, TagMapper, TagRule

ROOT_TOPIC_ID = "map-root"


@dataclass(slots=True)
class IdAllocator:
    """Hand out topic ids unique within one job, in allocation order."""

    _counts: dict[str, int] = field(default_factory=dict)

    def reserve(self, identifier: str) -> str:
        self._counts.setdefault(identifier, 1)
        return identifier

    def allocate(self, title: str) -> str:
        base = slugify(title)
        count = self._counts.get(base, 0) + 1
        candidate = base if count == 1 else f"{base}-{count}"
        while candidate in self._counts:
            count += 1
            candidate = f"{base}-{count}"
        self._counts[base] = count
        self._counts[candidate] = max(self._counts.get(candidate, 0), 1)
        return candidate


@dataclass(slots=True)
class JobContext:
    """Inputs and mutable bookkeeping for exactly one conversion job.

    Never share an instance between jobs: the id allocator and the default
    media layout both remember what they have handed out.
    """

    mapper: TagMapper
    grammar: Grammar
    asset_layout: AssetLayout
    ids: IdAllocator = field(default_factory=IdAllocator)
    max_workers: int = 1
    fail_on_error: bool = False
    repair: bool = False
    require_initial_heading: bool = False

    @classmethod
    def create(
        cls,
        *,
        rules: RuleTable | Iterable[TagRule] | None = None,
        grammar: Grammar | None = None,
        asset_layout: AssetLayout | None = None,
        media_dir: str = "media",
        max_workers: int = 1,
        fail_on_error: bool = False,
        repair: bool = False,
        require_initial_heading: bool = False,
    ) -> "JobContext":
        if max_workers < 1:
            raise ValueError("max_workers must be >= 1")

        if rules is None:
            table = RuleTable.with_defaults()
        elif isinstance(rules, RuleTable):
            table = rules
        else:
            table = RuleTable.with_defaults(rules)

        return cls(
            mapper=TagMapper(table),
            grammar=grammar or load_default_grammar(),
            asset_layout=asset_layout or MediaLayout(media_dir=media_dir),
            max_workers=max_workers,
            fail_on_error=fail_on_error,
            repair=repair,
            require_initial_heading=require_initial_heading,
        )
