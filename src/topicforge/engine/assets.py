"""Relocate embedded media references relative to each topic's output file."""

from __future__ import annotations

from concurrent import futures
from dataclasses import dataclass, field
import logging
import posixpath
import re
from typing import Callable, Mapping
from urllib.parse import unquote, urlsplit

from topicforge.engine.models import AssetRef, TopicNode, iter_body

LOGGER = logging.getLogger(__name__)

TOPICS_DIR = "topics"
TOPIC_SUFFIX = ".dita"

# Media tag -> attribute holding the asset token, in mapped vocabulary.
DEFAULT_MEDIA_ATTRIBUTES: Mapping[str, str] = {
    "image": "href",
    "object": "data",
    "video": "href",
    "audio": "href",
}

_SCHEME_RE = re.compile(r"^[a-zA-Z][a-zA-Z0-9+.-]*:")

AssetLayout = Callable[[str, str], str]


def is_external(token: str) -> bool:
    """True for URLs, data URIs and other scheme-qualified tokens."""

    return bool(_SCHEME_RE.match(token)) or token.startswith("//")


def asset_key(token: str) -> str:
    """Normalize a token to the identity used for caching its final location."""

    path = unquote(urlsplit(token).path).replace("\\", "/")
    return posixpath.normpath(path).lstrip("/")


def plan_topic_paths(root: TopicNode) -> dict[str, str]:
    """Planned output path per topic id, nested along the map hierarchy."""

    paths: dict[str, str] = {}

    def _visit(topic: TopicNode, parents: tuple[str, ...]) -> None:
        if topic.synthetic:
            for child in topic.children:
                _visit(child, parents)
            return

        paths[topic.id] = posixpath.join(TOPICS_DIR, *parents, f"{topic.id}{TOPIC_SUFFIX}")
        for child in topic.children:
            _visit(child, parents + (topic.id,))

    _visit(root, ())
    return paths


@dataclass(slots=True)
class MediaLayout:
    """Default layout policy: every asset lands flat in ``media_dir``.

    Distinct assets sharing a basename get numeric suffixes in the order the
    policy is asked about them.
    """

    media_dir: str = "media"
    _assigned: dict[str, str] = field(default_factory=dict, init=False, repr=False)
    _taken: set[str] = field(default_factory=set, init=False, repr=False)

    def __call__(self, topic_id: str, token: str) -> str:
        key = asset_key(token)
        if key in self._assigned:
            return self._assigned[key]

        basename = posixpath.basename(key) or "asset"
        stem, suffix = posixpath.splitext(basename)
        candidate = posixpath.join(self.media_dir, basename)
        counter = 2
        while candidate in self._taken:
            candidate = posixpath.join(self.media_dir, f"{stem}-{counter}{suffix}")
            counter += 1

        self._assigned[key] = candidate
        self._taken.add(candidate)
        return candidate


@dataclass(slots=True)
class RelocationResult:
    root: TopicNode
    assets: list[AssetRef]
    topic_paths: dict[str, str]


def _relocate_topic(
    topic: TopicNode,
    topic_path: str,
    locations: Mapping[str, str],
    media_attributes: Mapping[str, str],
) -> list[AssetRef]:
    topic_dir = posixpath.dirname(topic_path)
    relocated: list[AssetRef] = []

    for _path, candidate in iter_body(topic):
        attribute = media_attributes.get(candidate.tag)
        if attribute is None:
            continue
        token = candidate.get(attribute)
        if not token or is_external(token):
            continue

        asset_path = locations[asset_key(token)]
        relative = posixpath.relpath(asset_path, start=topic_dir or ".")
        candidate.set(attribute, relative)
        relocated.append(
            AssetRef(
                topic_id=topic.id,
                original=token,
                topic_path=topic_path,
                asset_path=asset_path,
                relative_path=relative,
            )
        )
    return relocated


def relocate(
    root: TopicNode,
    asset_layout: AssetLayout,
    *,
    media_attributes: Mapping[str, str] = DEFAULT_MEDIA_ATTRIBUTES,
    max_workers: int = 1,
) -> RelocationResult:
    """Rewrite media tokens in place to paths relative to their topic.

    The layout policy is consulted once per distinct asset, in document
    order, before any topic is rewritten; only that final location is shared
    between topics.
    """

    topic_paths = plan_topic_paths(root)
    topics = root.topics()

    locations: dict[str, str] = {}
    for topic in topics:
        for _path, candidate in iter_body(topic):
            attribute = media_attributes.get(candidate.tag)
            token = candidate.get(attribute) if attribute else None
            if not token or is_external(token):
                continue
            key = asset_key(token)
            if key not in locations:
                locations[key] = asset_layout(topic.id, token)

    def _work(topic: TopicNode) -> list[AssetRef]:
        return _relocate_topic(topic, topic_paths[topic.id], locations, media_attributes)

    if max_workers > 1 and len(topics) > 1:
        with futures.ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="topicforge-assets") as executor:
            per_topic = list(executor.map(_work, topics))
    else:
        per_topic = [_work(topic) for topic in topics]

    assets = [asset for batch in per_topic for asset in batch]
    LOGGER.info("Relocated %s media references to %s distinct assets", len(assets), len(locations))
    return RelocationResult(root=root, assets=assets, topic_paths=topic_paths)
