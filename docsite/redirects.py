"""
redirects.py

Responsibility: Validate the old-path -> new-path redirect table and write HTML redirect stubs.

The table is loaded once per build into a read-only mapping. Chains are collapsed so every
source points straight at its final destination. Redirects never expire.
"""

from __future__ import annotations

import html
import logging
import posixpath
from pathlib import Path
from types import MappingProxyType
from typing import Mapping

from docsite.nav import is_external
from docsite.pages import Page, page_location, relative_url

logger = logging.getLogger(__name__)

Redirects = Mapping[str, str]

_STUB = """<!doctype html>
<html lang="en">
<head>
<meta charset="utf-8">
<title>Redirecting...</title>
<link rel="canonical" href="{href}">
<meta name="robots" content="noindex">
<meta http-equiv="refresh" content="0; url={href}">
<script>var anchor = window.location.hash.substr(1); location.replace("{js_href}" + (anchor ? "#" + anchor : ""));</script>
</head>
<body>
<p>Redirecting to <a href="{href}">{href}</a>...</p>
</body>
</html>
"""


class RedirectError(ValueError):
    pass


def _normalize(path: str) -> str:
    return posixpath.normpath(path.strip().lstrip("/"))


def load_redirects(raw: Mapping[str, str], pages: Mapping[str, Page]) -> Redirects:
    """
    Validate and collapse the redirect table.

    - sources must not be existing pages
    - targets must be existing pages (optionally with `#fragment`) or absolute URLs
    - chains a -> b -> c become a -> c; cycles are rejected
    """
    table: dict[str, str] = {}
    for source, target in raw.items():
        src = _normalize(source)
        if not src.lower().endswith((".md", ".markdown")):
            raise RedirectError(f"Redirect source must be a Markdown path: {source}")
        if src in pages:
            raise RedirectError(f"Redirect source still exists as a page: {src}")
        if is_external(target):
            table[src] = target.strip()
            continue
        path, sep, fragment = target.partition("#")
        table[src] = _normalize(path) + (sep + fragment if sep else "")

    resolved: dict[str, str] = {}
    for src in sorted(table):
        seen = [src]
        target = table[src]
        fragment: str | None = None
        while True:
            path, sep, frag = target.partition("#")
            # The first explicit fragment along a chain wins.
            if sep and fragment is None:
                fragment = frag
            if is_external(target) or path not in table:
                break
            if path in seen:
                raise RedirectError("Redirect cycle: " + " -> ".join(seen + [path]))
            seen.append(path)
            target = table[path]
        if is_external(target):
            resolved[src] = target
            continue
        if path not in pages:
            raise RedirectError(f"Redirect target does not exist: {src} -> {target}")
        resolved[src] = path + (f"#{fragment}" if fragment is not None else "")

    return MappingProxyType(resolved)


def redirect_stub(href: str) -> str:
    return _STUB.format(href=html.escape(href, quote=True), js_href=href.replace("\\", "\\\\").replace('"', '\\"'))


def write_redirects(
    redirects: Redirects,
    site_dir: str | Path,
    pages: Mapping[str, Page],
    *,
    use_directory_urls: bool,
) -> int:
    """Write one stub per source at the location the old page used to occupy."""
    out_dir = Path(site_dir)
    written = 0
    for source, target in sorted(redirects.items()):
        dest_path, _url = page_location(source, use_directory_urls=use_directory_urls)
        if is_external(target):
            href = target
        else:
            path, sep, fragment = target.partition("#")
            href = relative_url(dest_path, pages[path].url) + (sep + fragment if sep else "")
        file_path = out_dir / dest_path
        if file_path.exists():
            logger.warning("Redirect stub would overwrite an existing file, skipping: %s", dest_path)
            continue
        file_path.parent.mkdir(parents=True, exist_ok=True)
        file_path.write_text(redirect_stub(href), encoding="utf-8", newline="\n")
        logger.debug("Redirect %s -> %s", dest_path, href)
        written += 1
    return written
