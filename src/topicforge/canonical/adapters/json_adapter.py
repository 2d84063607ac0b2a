"""Adapter for canonical trees already serialized by an upstream stage."""

from __future__ import annotations

from pathlib import Path

from topicforge.canonical.models import CanonicalNode
from topicforge.canonical.serialization import loads


class JSONAdapter:
    def supports(self, path: Path, sniffed_bytes: bytes | None = None) -> bool:
        if path.suffix.lower() == ".json":
            return True
        if not sniffed_bytes:
            return False
        return sniffed_bytes.lstrip().startswith(b"{") and b'"tag"' in sniffed_bytes

    def extract(self, path: Path) -> CanonicalNode:
        return loads(path.read_bytes())
