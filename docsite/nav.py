"""
nav.py

Responsibility: Parse, generate and validate the navigation tree.

The navigation is a declarative tree checked once at build time: a node that references a
page must resolve to an existing Markdown file, otherwise the build stops with a `NavError`
listing every dangling reference.
"""

from __future__ import annotations

import dataclasses
import logging
import posixpath
import re
from collections import Counter
from dataclasses import dataclass, field
from typing import Any, Iterator

from docsite.pages import Page, title_from_path

logger = logging.getLogger(__name__)

_URL_RE = re.compile(r"^([a-zA-Z][a-zA-Z0-9+.-]*:|//)")


class NavError(ValueError):
    pass


@dataclass(frozen=True)
class NavNode:
    """A label mapped to a page, an external URL, or child nodes (exactly one of them)."""

    label: str | None
    page: str | None = None
    url: str | None = None
    children: tuple[NavNode, ...] = field(default_factory=tuple)

    @property
    def is_section(self) -> bool:
        return self.page is None and self.url is None

    def walk(self) -> Iterator[NavNode]:
        yield self
        for child in self.children:
            yield from child.walk()


def is_external(target: str) -> bool:
    return bool(_URL_RE.match(target))


def _normalize_ref(target: str) -> str:
    return posixpath.normpath(target.strip().lstrip("/"))


def _parse_item(item: Any, where: str) -> NavNode:
    if isinstance(item, str):
        target = item.strip()
        if not target:
            raise NavError(f"{where}: empty nav entry")
        if is_external(target):
            return NavNode(label=target, url=target)
        return NavNode(label=None, page=_normalize_ref(target))

    if isinstance(item, dict):
        if len(item) != 1:
            raise NavError(f"{where}: nav entries must have exactly one label, got {sorted(map(str, item))}")
        ((label, value),) = item.items()
        label = str(label).strip()
        if isinstance(value, str):
            if is_external(value.strip()):
                return NavNode(label=label, url=value.strip())
            return NavNode(label=label, page=_normalize_ref(value))
        if isinstance(value, list):
            children = tuple(_parse_item(child, f"{where} > {label}") for child in value)
            return NavNode(label=label, children=children)
        raise NavError(f"{where} > {label}: expected a path, URL or list, got {type(value).__name__}")

    raise NavError(f"{where}: unsupported nav entry {item!r}")


def parse_nav(raw: list[Any]) -> list[NavNode]:
    """Parse the mkdocs-style `nav` list."""
    if not isinstance(raw, list):
        raise NavError("`nav` must be a list")
    return [_parse_item(item, "nav") for item in raw]


def _section_label(dirname: str) -> str:
    return dirname.replace("-", " ").replace("_", " ").strip().title()


def auto_nav(pages: dict[str, Page]) -> list[NavNode]:
    """
    Build a tree from the directory layout: within each directory `index` comes first,
    then files, then subdirectories as sections, each group in sorted order.
    """
    tree: dict[str, Any] = {}
    for src in sorted(pages):
        parts = src.split("/")
        node = tree
        for part in parts[:-1]:
            node = node.setdefault(part + "/", {})
        node[parts[-1]] = src

    def build(level: dict[str, Any]) -> list[NavNode]:
        files = sorted(k for k in level if not k.endswith("/"))
        dirs = sorted(k for k in level if k.endswith("/"))
        files.sort(key=lambda name: (name.rsplit(".", 1)[0] != "index", name))
        out = [NavNode(label=None, page=level[name]) for name in files]
        for d in dirs:
            out.append(NavNode(label=_section_label(d.rstrip("/")), children=tuple(build(level[d]))))
        return out

    return build(tree)


def iter_page_refs(tree: list[NavNode]) -> Iterator[str]:
    for root in tree:
        for node in root.walk():
            if node.page is not None:
                yield node.page


def validate_nav(tree: list[NavNode], pages: dict[str, Page]) -> None:
    """
    Fail on any page reference that does not exist; warn on pages referenced twice and
    log pages that are not reachable from the nav.
    """
    refs = list(iter_page_refs(tree))
    missing = sorted({ref for ref in refs if ref not in pages})
    if missing:
        raise NavError(
            "Nav references files that do not exist in the docs directory: " + ", ".join(missing)
        )

    for ref, count in sorted(Counter(refs).items()):
        if count > 1:
            logger.warning("Page is referenced %d times in nav: %s", count, ref)

    unused = sorted(set(pages) - set(refs))
    if unused:
        logger.info(
            "The following pages exist in the docs directory, but are not included in the nav: %s",
            ", ".join(unused),
        )


def resolve_labels(tree: list[NavNode], pages: dict[str, Page]) -> list[NavNode]:
    """Fill missing labels from page titles."""

    def fill(node: NavNode) -> NavNode:
        label = node.label
        if label is None and node.page is not None:
            page = pages.get(node.page)
            label = page.title if page is not None else title_from_path(node.page)
        children = tuple(fill(child) for child in node.children)
        return dataclasses.replace(node, label=label, children=children)

    return [fill(node) for node in tree]


def flatten(tree: list[NavNode]) -> list[str]:
    """Page src paths in navigation order, first occurrence wins."""
    seen: dict[str, None] = {}
    for ref in iter_page_refs(tree):
        seen.setdefault(ref, None)
    return list(seen)


def build_nav(raw: list[Any] | None, pages: dict[str, Page]) -> list[NavNode]:
    """Parse (or generate), validate and label the site navigation."""
    tree = auto_nav(pages) if raw is None else parse_nav(raw)
    validate_nav(tree, pages)
    return resolve_labels(tree, pages)
