"""
search.py

Responsibility: Build the client-side search index (`search/search_index.json`).

One entry per page plus one per heading section, in navigation order. Front matter
`search: {exclude: true}` drops a page; `search: {boost: N}` is carried on its entries.
"""

from __future__ import annotations

import json
import re
from typing import Any, Mapping

from docsite.pages import Page
from docsite.render import ParsedPage, inline_text

_WS_RE = re.compile(r"\s+")

INDEX_PATH = "search/search_index.json"


def _clean(parts: list[str]) -> str:
    return _WS_RE.sub(" ", " ".join(parts)).strip()


def page_entries(parsed: ParsedPage) -> list[dict[str, Any]]:
    page = parsed.page
    location = page.url
    entries: list[dict[str, Any]] = []
    page_text: list[str] = []
    section: dict[str, Any] | None = None
    section_text: list[str] = []
    heading_index = 0

    def close_section() -> None:
        if section is not None:
            section["text"] = _clean(section_text)
            entries.append(section)

    tokens = parsed.tokens
    for i, tok in enumerate(tokens):
        if tok.type == "heading_open":
            heading = parsed.headings[heading_index]
            heading_index += 1
            if heading.level == 1 and section is None and not entries:
                continue
            close_section()
            section = {"location": f"{location}#{heading.anchor}", "title": heading.title}
            section_text = []
            continue
        if tok.type == "inline":
            prev = tokens[i - 1] if i else None
            if prev is not None and prev.type == "heading_open":
                continue
            text = inline_text(tok)
        elif tok.type in ("fence", "code_block"):
            text = tok.content
        else:
            continue
        page_text.append(text)
        if section is not None:
            section_text.append(text)
    close_section()

    entries.insert(0, {"location": location, "title": page.title, "text": _clean(page_text)})
    if page.search_boost is not None:
        for entry in entries:
            entry["boost"] = page.search_boost
    return entries


def build_search_index(order: list[str], parsed_pages: Mapping[str, ParsedPage]) -> str:
    """Serialize the index for pages in `order`; output is byte-stable for equal input."""
    docs: list[dict[str, Any]] = []
    for src in order:
        parsed = parsed_pages[src]
        if parsed.page.search_exclude:
            continue
        docs.extend(page_entries(parsed))
    index = {
        "config": {"lang": ["en"], "separator": r"[\s\-]+"},
        "docs": docs,
    }
    return json.dumps(index, sort_keys=True, ensure_ascii=False, separators=(",", ":")) + "\n"


def search_order(nav_order: list[str], pages: Mapping[str, Page]) -> list[str]:
    """Nav order first, then pages that are not in the nav, sorted."""
    rest = sorted(set(pages) - set(nav_order))
    return [src for src in nav_order if src in pages] + rest
