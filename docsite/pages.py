"""
pages.py

Responsibility: Discover the content tree and load Markdown files into `Page` records.

Rules:
- Walk `docs_dir` in sorted POSIX order so every downstream step is deterministic.
- Dot-files, dot-directories and `exclude_docs` matches never become pages or assets.
- YAML front matter (between `---` lines) is split off and parsed; the body is kept verbatim.
- Each page knows its output location (`dest_path`) and site-relative `url`.
"""

from __future__ import annotations

import dataclasses
import fnmatch
import logging
import os
import posixpath
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any
from urllib.parse import unquote, urlsplit

import yaml

logger = logging.getLogger(__name__)

MARKDOWN_SUFFIXES = (".md", ".markdown")

_H1_RE = re.compile(r"^#\s+(.+?)(?:\s+#+)?\s*$")
_FENCE_RE = re.compile(r"^\s{0,3}(`{3,}|~{3,})")


class PageError(ValueError):
    pass


@dataclass(frozen=True)
class Page:
    """A Markdown source file plus everything derived from its location and front matter."""

    src_path: str
    title: str
    markdown: str
    dest_path: str
    url: str
    meta: dict[str, Any] = field(default_factory=dict)
    search_exclude: bool = False
    search_boost: float | None = None

    @property
    def is_index(self) -> bool:
        return posixpath.basename(self.src_path).rsplit(".", 1)[0] == "index"

    def with_markdown(self, markdown: str) -> Page:
        return dataclasses.replace(self, markdown=markdown)


@dataclass(frozen=True)
class DocsFiles:
    markdown: list[str]
    assets: list[str]


def split_front_matter(text: str) -> tuple[dict[str, Any], str]:
    """
    If the markdown begins with YAML front matter delimited by '---', parse it.
    Returns (front_matter, remaining_markdown_text); front matter is {} when absent.
    """
    text = text.lstrip("\ufeff")
    if not text.startswith("---\n") and not text.startswith("---\r\n"):
        return {}, text
    text = text.replace("\r\n", "\n")

    end = text.find("\n---\n", 3)
    if end == -1:
        if text.endswith("\n---"):
            end = len(text) - 4
        else:
            raise PageError("Front matter starts with '---' but no closing '---' was found.")

    fm_text = text[4:end]
    rest = text[end + len("\n---\n") :]
    try:
        data = yaml.safe_load(fm_text) or {}
    except yaml.YAMLError as e:
        raise PageError(f"Invalid YAML front matter: {e}") from e
    if not isinstance(data, dict):
        raise PageError("Front matter must be a mapping/object at the top level.")
    return data, rest


def _is_excluded(rel: str, patterns: tuple[str, ...]) -> bool:
    name = posixpath.basename(rel)
    for pattern in patterns:
        if pattern.endswith("/"):
            prefix = pattern.rstrip("/").lstrip("/")
            if rel == prefix or rel.startswith(prefix + "/"):
                return True
            continue
        if fnmatch.fnmatchcase(rel, pattern.lstrip("/")) or fnmatch.fnmatchcase(name, pattern):
            return True
    return False


def discover_files(docs_dir: str | Path, exclude: tuple[str, ...] = ()) -> DocsFiles:
    """
    Return Markdown sources and static assets under docs_dir as POSIX paths relative to
    docs_dir, in deterministic lexicographic order.
    """
    root_dir = Path(docs_dir)
    if not root_dir.is_dir():
        raise PageError(f"Docs directory not found: {root_dir}")

    markdown: list[str] = []
    assets: list[str] = []
    for root, dirs, filenames in os.walk(root_dir):
        dirs[:] = sorted(d for d in dirs if not d.startswith("."))
        root_path = Path(root)
        for name in sorted(filenames):
            if name.startswith("."):
                continue
            rel = (root_path / name).relative_to(root_dir).as_posix()
            if _is_excluded(rel, exclude):
                logger.debug("Excluded from docs: %s", rel)
                continue
            if name.lower().endswith(MARKDOWN_SUFFIXES):
                markdown.append(rel)
            else:
                assets.append(rel)
    markdown.sort()
    assets.sort()
    return DocsFiles(markdown=markdown, assets=assets)


def page_location(src_path: str, *, use_directory_urls: bool) -> tuple[str, str]:
    """
    Map a source path to (dest_path, url).

    `guide/a.md` -> (`guide/a.html`, `guide/a.html`), or with directory URLs
    (`guide/a/index.html`, `guide/a/`). `index.md` always maps to its directory index.
    """
    stem = src_path.rsplit(".", 1)[0]
    directory, name = posixpath.split(stem)
    if not use_directory_urls:
        dest = f"{stem}.html"
        return dest, dest
    if name == "index":
        dest = posixpath.join(directory, "index.html")
        return dest, f"{directory}/" if directory else ""
    return f"{stem}/index.html", f"{stem}/"


def relative_url(from_dest: str, to_url: str) -> str:
    """Link from the page written at `from_dest` to a site-relative `to_url`."""
    base = posixpath.dirname(from_dest) or "."
    if to_url == "" or to_url.endswith("/"):
        target = to_url.rstrip("/") or "."
        rel = posixpath.relpath(target, base)
        return "./" if rel == "." else rel + "/"
    return posixpath.relpath(to_url, base)


def _first_h1(markdown: str) -> str | None:
    fence: str | None = None
    for line in markdown.splitlines():
        m = _FENCE_RE.match(line)
        if m:
            marker = m.group(1)
            if fence is None:
                fence = marker
            elif marker[0] == fence[0] and len(marker) >= len(fence):
                fence = None
            continue
        if fence is not None:
            continue
        h = _H1_RE.match(line)
        if h:
            return h.group(1).strip()
    return None


def title_from_path(src_path: str) -> str:
    stem = posixpath.basename(src_path).rsplit(".", 1)[0]
    if stem == "index":
        parent = posixpath.basename(posixpath.dirname(src_path))
        if not parent:
            return "Home"
        stem = parent
    return stem.replace("-", " ").replace("_", " ").strip().capitalize()


def _search_directives(meta: dict[str, Any], src_path: str) -> tuple[bool, float | None]:
    raw = meta.get("search")
    if raw is None:
        return False, None
    if not isinstance(raw, dict):
        raise PageError(f"{src_path}: `search` front matter must be a mapping.")
    exclude = raw.get("exclude", False)
    if not isinstance(exclude, bool):
        raise PageError(f"{src_path}: `search.exclude` must be true or false.")
    boost = raw.get("boost")
    if boost is not None:
        if isinstance(boost, bool) or not isinstance(boost, (int, float)) or boost <= 0:
            raise PageError(f"{src_path}: `search.boost` must be a positive number.")
        boost = float(boost)
    return exclude, boost


def load_page(docs_dir: str | Path, src_path: str, *, use_directory_urls: bool) -> Page:
    path = Path(docs_dir) / src_path
    try:
        text = path.read_text(encoding="utf-8")
    except UnicodeDecodeError as e:
        raise PageError(f"{src_path}: not valid UTF-8") from e

    try:
        meta, body = split_front_matter(text)
    except PageError as e:
        raise PageError(f"{src_path}: {e}") from e

    title = str(meta.get("title") or "").strip() or _first_h1(body) or title_from_path(src_path)
    dest_path, url = page_location(src_path, use_directory_urls=use_directory_urls)
    exclude, boost = _search_directives(meta, src_path)
    return Page(
        src_path=src_path,
        title=title,
        markdown=body,
        dest_path=dest_path,
        url=url,
        meta=meta,
        search_exclude=exclude,
        search_boost=boost,
    )


def load_pages(docs_dir: str | Path, sources: list[str], *, use_directory_urls: bool) -> dict[str, Page]:
    """Load every source into a mapping keyed by src_path (insertion order = sorted order)."""
    pages: dict[str, Page] = {}
    seen_dest: dict[str, str] = {}
    for src in sources:
        page = load_page(docs_dir, src, use_directory_urls=use_directory_urls)
        other = seen_dest.get(page.dest_path)
        if other is not None:
            raise PageError(f"{src} and {other} would both be written to {page.dest_path}")
        seen_dest[page.dest_path] = src
        pages[src] = page
    return pages


@dataclass(frozen=True)
class LinkTarget:
    """An internal link split into its docs-relative path and fragment."""

    path: str
    fragment: str
    absolute: bool = False


def resolve_href(from_src: str, href: str) -> LinkTarget | None:
    """
    Resolve `href` as written in `from_src` against the docs tree.

    Returns None for external URLs (any scheme, or protocol-relative). A same-page
    anchor resolves to `from_src` itself.
    """
    parts = urlsplit(href)
    if parts.scheme or parts.netloc:
        return None
    path = unquote(parts.path)
    if not path:
        return LinkTarget(path=from_src, fragment=parts.fragment)
    if path.startswith("/"):
        return LinkTarget(path=posixpath.normpath(path.lstrip("/")), fragment=parts.fragment, absolute=True)
    target = posixpath.normpath(posixpath.join(posixpath.dirname(from_src), path))
    return LinkTarget(path=target, fragment=parts.fragment)
