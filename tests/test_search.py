from __future__ import annotations

import json

from docsite.pages import Page, page_location
from docsite.render import create_markdown, parse_page
from docsite.search import build_search_index, search_order


def _parsed(src: str, markdown: str, **kwargs: object):
    dest, url = page_location(src, use_directory_urls=False)
    page = Page(src_path=src, title=src.upper(), markdown=markdown, dest_path=dest, url=url, **kwargs)
    return parse_page(create_markdown(), page)


def test_index_has_page_and_section_entries() -> None:
    parsed = {
        "a.md": _parsed("a.md", "# Title\n\nIntro text.\n\n## Install\n\nRun `uv sync`.\n\n```sh\nuv run pytest\n```\n"),
    }
    index = json.loads(build_search_index(["a.md"], parsed))
    docs = index["docs"]
    assert docs[0] == {"location": "a.html", "title": "A.MD", "text": "Intro text. Run uv sync. uv run pytest"}
    assert docs[1] == {"location": "a.html#install", "title": "Install", "text": "Run uv sync. uv run pytest"}


def test_exclude_and_boost_directives() -> None:
    parsed = {
        "a.md": _parsed("a.md", "text\n", search_boost=2.0),
        "secret.md": _parsed("secret.md", "hidden\n", search_exclude=True),
    }
    docs = json.loads(build_search_index(["a.md", "secret.md"], parsed))["docs"]
    assert [d["location"] for d in docs] == ["a.html"]
    assert docs[0]["boost"] == 2.0


def test_output_is_stable_and_ordered() -> None:
    parsed = {src: _parsed(src, "x\n") for src in ("b.md", "a.md", "c.md")}
    order = search_order(["c.md", "a.md"], {src: p.page for src, p in parsed.items()})
    assert order == ["c.md", "a.md", "b.md"]
    assert build_search_index(order, parsed) == build_search_index(order, parsed)
