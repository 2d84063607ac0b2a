"""Ingestion adapter implementations and contracts."""

from .base import CanonicalAdapter
from .html_adapter import HTMLAdapter
from .json_adapter import JSONAdapter


def build_default_adapters() -> dict[str, CanonicalAdapter]:
    """Return the default source adapters keyed by format name."""

    return {"json": JSONAdapter(), "html": HTMLAdapter()}


__all__ = ["CanonicalAdapter", "HTMLAdapter", "JSONAdapter", "build_default_adapters"]
