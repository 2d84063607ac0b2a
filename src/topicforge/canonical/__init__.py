"""Canonical content tree shared by ingestion adapters and the engine."""

from .models import CanonicalNode, deep_copy, element, heading, heading_level, leaf, text_of
from .serialization import node_from_dict, node_to_dict

__all__ = [
    "CanonicalNode",
    "deep_copy",
    "element",
    "heading",
    "heading_level",
    "leaf",
    "node_from_dict",
    "node_to_dict",
    "text_of",
]
