"""HTML adapter producing the canonical block/inline tree."""

from __future__ import annotations

from pathlib import Path

from bs4 import BeautifulSoup
from bs4.element import Comment, NavigableString, Tag

from topicforge.canonical.models import ANCHOR_TAG, HEADING_TAG, TEXT_TAG, CanonicalNode
from topicforge.canonical.normalization import collapse_whitespace, normalize_whitespace

_HTML_SUFFIXES = {".html", ".htm", ".xhtml"}

_SIMPLE_TAGS: dict[str, str] = {
    "p": "paragraph",
    "ol": "ordered-list",
    "ul": "unordered-list",
    "li": "list-item",
    "table": "table",
    "td": "table-cell",
    "th": "table-cell",
    "figure": "figure",
    "figcaption": "caption",
    "caption": "caption",
    "em": "emphasis",
    "i": "emphasis",
    "strong": "strong",
    "b": "strong",
    "u": "underline",
    "code": "code",
    "blockquote": "blockquote",
    "aside": "note",
    "span": "span",
    "br": "line-break",
    "video": "video",
    "section": "section",
    "article": "section",
    "main": "section",
    "div": "division",
    "header": "division",
    "footer": "division",
}

# Wrappers whose children are lifted into the parent.
_TRANSPARENT_TAGS = {"thead", "tbody", "tfoot", "colgroup", "html", "font", "center", "nav"}
_SKIPPED_TAGS = {"script", "style", "head", "template", "noscript", "col"}
_BLOCK_PARENTS = {"document", "section", "division", "ordered-list", "unordered-list", "table", "table-row", "definition-list", "definition-entry"}


def _anchor_of(element: Tag) -> str | None:
    anchor = element.get("id") or element.get("name")
    return str(anchor) if anchor else None


def _collapse_single_text(node: CanonicalNode) -> CanonicalNode:
    """Fold a lone text child into the parent's payload."""

    if len(node.children) == 1 and node.children[0].tag == TEXT_TAG and node.text is None:
        node.text = node.children[0].text
        node.children = []
    return node


class _Converter:
    def convert_children(self, element: Tag, parent_tag: str) -> list[CanonicalNode]:
        converted: list[CanonicalNode] = []
        for child in element.children:
            if isinstance(child, Comment):
                continue
            if isinstance(child, NavigableString):
                text = collapse_whitespace(str(child))
                if not text.strip() and parent_tag in _BLOCK_PARENTS:
                    continue
                if text:
                    converted.append(CanonicalNode(tag=TEXT_TAG, text=text))
                continue
            if isinstance(child, Tag):
                converted.extend(self.convert(child, parent_tag))
        return converted

    def convert(self, element: Tag, parent_tag: str) -> list[CanonicalNode]:
        name = element.name.lower()
        if name in _SKIPPED_TAGS:
            return []
        if name in _TRANSPARENT_TAGS:
            return self.convert_children(element, parent_tag)

        if len(name) == 2 and name[0] == "h" and name[1] in "123456":
            node = CanonicalNode(
                tag=HEADING_TAG,
                attributes=[("level", name[1])],
                children=self.convert_children(element, HEADING_TAG),
                anchor=_anchor_of(element),
            )
            return [_collapse_single_text(node)]

        if name == "a":
            return [self._link(element, parent_tag)]
        if name == "img":
            return [self._image(element)]
        if name == "pre":
            return [CanonicalNode(tag="code-block", text=element.get_text(), anchor=_anchor_of(element))]
        if name == "dl":
            return [self._definition_list(element)]
        if name == "tr":
            return [self._table_row(element)]

        tag = _SIMPLE_TAGS.get(name, name)
        attributes: list[tuple[str, str]] = []
        if name == "video" and element.get("src"):
            attributes.append(("src", str(element["src"])))
        node = CanonicalNode(
            tag=tag,
            attributes=attributes,
            children=self.convert_children(element, tag),
            anchor=_anchor_of(element),
        )
        return [_collapse_single_text(node)]

    def _link(self, element: Tag, parent_tag: str) -> CanonicalNode:
        href = element.get("href")
        if not href:
            return CanonicalNode(tag=ANCHOR_TAG, anchor=_anchor_of(element), children=self.convert_children(element, parent_tag))
        node = CanonicalNode(
            tag="link",
            attributes=[("href", str(href))],
            children=self.convert_children(element, "link"),
            anchor=_anchor_of(element),
        )
        return _collapse_single_text(node)

    def _image(self, element: Tag) -> CanonicalNode:
        attributes = [("src", str(element.get("src") or ""))]
        alt = element.get("alt")
        children = [CanonicalNode(tag="alt", text=normalize_whitespace(str(alt)))] if alt else []
        return CanonicalNode(tag="image", attributes=attributes, children=children, anchor=_anchor_of(element))

    def _definition_list(self, element: Tag) -> CanonicalNode:
        entries: list[CanonicalNode] = []
        current: CanonicalNode | None = None
        for child in element.find_all(["dt", "dd"], recursive=False):
            if child.name == "dt" or current is None:
                current = CanonicalNode(tag="definition-entry")
                entries.append(current)
            tag = "definition-term" if child.name == "dt" else "definition-description"
            current.children.append(
                _collapse_single_text(
                    CanonicalNode(tag=tag, children=self.convert_children(child, tag), anchor=_anchor_of(child))
                )
            )
        return CanonicalNode(tag="definition-list", children=entries, anchor=_anchor_of(element))

    def _table_row(self, element: Tag) -> CanonicalNode:
        cells = self.convert_children(element, "table-row")
        header = element.parent is not None and element.parent.name == "thead"
        if not header:
            header_cells = element.find_all(["th", "td"], recursive=False)
            header = bool(header_cells) and all(cell.name == "th" for cell in header_cells)
        attributes = [("role", "header")] if header else []
        return CanonicalNode(tag="table-row", attributes=attributes, children=cells, anchor=_anchor_of(element))


class HTMLAdapter:
    """Parse HTML documents with BeautifulSoup's lxml tree builder."""

    def supports(self, path: Path, sniffed_bytes: bytes | None = None) -> bool:
        if path.suffix.lower() in _HTML_SUFFIXES:
            return True
        if not sniffed_bytes:
            return False
        head = sniffed_bytes.lstrip()[:64].lower()
        return head.startswith(b"<!doctype html") or head.startswith(b"<html")

    def extract(self, path: Path) -> CanonicalNode:
        return self.parse(path.read_bytes())

    def parse(self, markup: bytes | str) -> CanonicalNode:
        soup = BeautifulSoup(markup, "lxml")
        title = normalize_whitespace(soup.title.get_text()) if soup.title else ""
        body = soup.body or soup

        converter = _Converter()
        document = CanonicalNode(tag="document", children=converter.convert_children(body, "document"))
        if title:
            document.set("title", title)
        return document
