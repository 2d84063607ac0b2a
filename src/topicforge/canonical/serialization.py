"""Plain-data form of the canonical tree, the wire contract with ingestion."""

from __future__ import annotations

import json
from typing import Any, Mapping

from topicforge.canonical.models import CanonicalNode
from topicforge.engine.errors import StructuralError


def node_to_dict(candidate: CanonicalNode) -> dict[str, Any]:
    payload: dict[str, Any] = {"tag": candidate.tag}
    if candidate.attributes:
        payload["attributes"] = [[key, value] for key, value in candidate.attributes]
    if candidate.text is not None:
        payload["text"] = candidate.text
    if candidate.anchor is not None:
        payload["anchor"] = candidate.anchor
    if candidate.children:
        payload["children"] = [node_to_dict(child) for child in candidate.children]
    return payload


def _attributes(raw: Any, path: tuple[int, ...]) -> list[tuple[str, str]]:
    if raw is None:
        return []
    if isinstance(raw, Mapping):
        return [(str(key), str(value)) for key, value in raw.items()]
    if not isinstance(raw, list):
        raise StructuralError("Node attributes must be a list of pairs", path)

    pairs: list[tuple[str, str]] = []
    for entry in raw:
        if not isinstance(entry, (list, tuple)) or len(entry) != 2:
            raise StructuralError("Node attribute entries must be [key, value] pairs", path)
        pairs.append((str(entry[0]), str(entry[1])))
    return pairs


def node_from_dict(raw: Any, path: tuple[int, ...] = ()) -> CanonicalNode:
    """Rebuild a canonical tree, rejecting anything that is not tree-shaped."""

    if not isinstance(raw, Mapping):
        raise StructuralError("Canonical node must be an object", path)

    tag = raw.get("tag")
    if not isinstance(tag, str) or not tag.strip():
        raise StructuralError("Canonical node is missing its tag", path)

    children_raw = raw.get("children") or []
    if not isinstance(children_raw, list):
        raise StructuralError("Canonical node children must be a list", path)

    text = raw.get("text")
    anchor = raw.get("anchor")
    return CanonicalNode(
        tag=tag,
        attributes=_attributes(raw.get("attributes"), path),
        children=[node_from_dict(child, path + (index,)) for index, child in enumerate(children_raw)],
        text=str(text) if text is not None else None,
        anchor=str(anchor) if anchor else None,
    )


def loads(payload: str | bytes) -> CanonicalNode:
    try:
        raw = json.loads(payload)
    except json.JSONDecodeError as exc:
        raise StructuralError(f"Canonical tree is not valid JSON: {exc}") from exc
    return node_from_dict(raw)


def dumps(candidate: CanonicalNode) -> str:
    return json.dumps(node_to_dict(candidate), ensure_ascii=False, indent=2)
