from __future__ import annotations

from types import MappingProxyType

from docsite.pages import Page, page_location
from docsite.render import create_markdown, parse_page, render_body, rewrite_links, slugify


def _page(src: str, markdown: str, *, directory_urls: bool = False) -> Page:
    dest, url = page_location(src, use_directory_urls=directory_urls)
    return Page(src_path=src, title=src, markdown=markdown, dest_path=dest, url=url)


def test_slugify() -> None:
    assert slugify("Linting and formatting") == "linting-and-formatting"
    assert slugify("CI/CD: `uv` & Ruff!") == "cicd-uv--ruff"
    assert slugify("Überblick") == "uberblick"
    assert slugify("!!!") == "section"


def test_headings_get_unique_ids() -> None:
    md = create_markdown()
    parsed = parse_page(md, _page("a.md", "# Title\n\n## Setup\n\n## Setup\n\n### `code` *here*\n"))
    assert [(h.level, h.anchor) for h in parsed.headings] == [
        (1, "title"),
        (2, "setup"),
        (2, "setup-1"),
        (3, "code-here"),
    ]
    html = render_body(md, parsed)
    assert '<h2 id="setup">Setup</h2>' in html
    assert '<h2 id="setup-1">Setup</h2>' in html


def test_suffixed_ids_do_not_collide_with_existing_headings() -> None:
    md = create_markdown()
    parsed = parse_page(md, _page("a.md", "## Setup 1\n\n## Setup\n\n## Setup\n"))
    assert [h.anchor for h in parsed.headings] == ["setup-1", "setup", "setup-2"]
    assert len(parsed.anchors) == 3


def test_tables_and_strikethrough_render() -> None:
    md = create_markdown()
    html = render_body(md, parse_page(md, _page("a.md", "| A | B |\n| --- | --- |\n| 1 | ~~2~~ |\n")))
    assert "<table>" in html
    assert "<s>2</s>" in html


def test_rewrite_links_between_pages_assets_and_redirects() -> None:
    pages = {
        "index.md": _page("index.md", ""),
        "guide/a.md": _page(
            "guide/a.md",
            "[home](../index.md) [b](b.md#x) [self](#top) [img](../img/logo.png) "
            "[old](../old.md) [ext](https://example.com/a.md) [dir](../guide/)\n",
        ),
        "guide/b.md": _page("guide/b.md", ""),
        "guide/index.md": _page("guide/index.md", ""),
    }
    md = create_markdown()
    parsed = parse_page(md, pages["guide/a.md"])
    rewrite_links(parsed, pages, {"img/logo.png"}, MappingProxyType({"old.md": "guide/b.md#moved"}))
    html = render_body(md, parsed)
    assert 'href="../index.html"' in html
    assert 'href="b.html#x"' in html
    assert 'href="#top"' in html
    assert 'href="../img/logo.png"' in html
    assert 'href="b.html#moved"' in html
    assert 'href="https://example.com/a.md"' in html
    assert 'href="index.html"' in html


def test_rewrite_links_with_directory_urls() -> None:
    pages = {
        "index.md": _page("index.md", "[b](guide/b.md) ![logo](img/logo.png)\n", directory_urls=True),
        "guide/b.md": _page("guide/b.md", "[home](../index.md) ![logo](../img/logo.png)\n", directory_urls=True),
    }
    md = create_markdown()
    home = parse_page(md, pages["index.md"])
    rewrite_links(home, pages, {"img/logo.png"}, {})
    assert 'href="guide/b/"' in render_body(md, home)

    guide = parse_page(md, pages["guide/b.md"])
    rewrite_links(guide, pages, {"img/logo.png"}, {})
    html = render_body(md, guide)
    assert 'href="../../"' in html
    assert 'src="../../img/logo.png"' in html
