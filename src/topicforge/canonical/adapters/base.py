"""Shared adapter contract for per-format ingestion parsers."""

from __future__ import annotations

from pathlib import Path
from typing import Protocol, runtime_checkable

from topicforge.canonical.models import CanonicalNode


@runtime_checkable
class CanonicalAdapter(Protocol):
    """Protocol that every source-format adapter must implement."""

    def supports(self, path: Path, sniffed_bytes: bytes | None = None) -> bool:
        """Return True when this adapter can parse the given file."""

    def extract(self, path: Path) -> CanonicalNode:
        """Parse a source file into a canonical tree rooted at ``document``."""
