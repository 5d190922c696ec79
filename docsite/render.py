"""
render.py

Responsibility: Turn page Markdown into HTML documents.

Rules:
- Markdown is parsed once per page with markdown-it-py (CommonMark + tables + strikethrough).
- Every heading gets a stable `id`; repeated slugs on one page get `-1`, `-2`, ... suffixes.
- Relative links to `.md` sources are rewritten to the target page's output URL.
- Pages are wrapped in the Jinja2 `page.html` layout; no timestamps are embedded, so the
  same input always yields the same bytes.
"""

from __future__ import annotations

import unicodedata
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Iterator, Mapping

from jinja2 import Environment, FileSystemLoader, StrictUndefined, TemplateError, select_autoescape
from markdown_it import MarkdownIt
from markdown_it.token import Token
from markupsafe import Markup
from pymdownx import slugs

from docsite import __version__
from docsite.config import SiteConfig
from docsite.nav import NavNode
from docsite.pages import LinkTarget, Page, relative_url, resolve_href

THEME_DIR = Path(__file__).resolve().parent / "theme"
TOC_DEPTH = 3


class RenderError(RuntimeError):
    pass


@dataclass(frozen=True)
class Heading:
    level: int
    title: str
    anchor: str


@dataclass
class ParsedPage:
    """A page's token stream plus the headings found in it."""

    page: Page
    tokens: list[Token]
    headings: list[Heading] = field(default_factory=list)

    @property
    def anchors(self) -> set[str]:
        return {h.anchor for h in self.headings}


def create_markdown() -> MarkdownIt:
    return MarkdownIt("commonmark", {"html": True}).enable(["table", "strikethrough"])


_slugify_lower = slugs.slugify(case="lower")


def slugify(text: str) -> str:
    """Heading id with MkDocs semantics, transliterated to ASCII."""
    text = unicodedata.normalize("NFKD", text).encode("ascii", "ignore").decode("ascii")
    return _slugify_lower(text, "-") or "section"


def unique_anchor(slug: str, used: set[str]) -> str:
    candidate, n = slug, 0
    while candidate in used:
        n += 1
        candidate = f"{slug}-{n}"
    used.add(candidate)
    return candidate


def inline_text(token: Token) -> str:
    """Plain text of an inline token (markup and raw HTML dropped)."""
    if not token.children:
        return token.content
    return "".join(c.content for c in token.children if c.type in ("text", "code_inline"))


def parse_page(md: MarkdownIt, page: Page) -> ParsedPage:
    tokens = md.parse(page.markdown)
    headings: list[Heading] = []
    used: set[str] = set()
    for i, tok in enumerate(tokens):
        if tok.type != "heading_open":
            continue
        title = inline_text(tokens[i + 1]).strip()
        slug = unique_anchor(slugify(title), used)
        tok.attrSet("id", slug)
        headings.append(Heading(level=int(tok.tag[1]), title=title, anchor=slug))
    return ParsedPage(page=page, tokens=tokens, headings=headings)


def iter_link_tokens(tokens: list[Token]) -> Iterator[tuple[Token, str, int]]:
    """Yield (token, attribute_name, line_number) for every link and image."""
    for tok in tokens:
        if tok.type != "inline" or not tok.children:
            continue
        line = tok.map[0] + 1 if tok.map else 0
        for child in tok.children:
            if child.type == "link_open":
                yield child, "href", line
            elif child.type == "image":
                yield child, "src", line


def lookup_page(target: LinkTarget, pages: Mapping[str, Page]) -> Page | None:
    """Match a resolved link against page sources, accepting directory links to index pages."""
    if target.path in pages:
        return pages[target.path]
    for candidate in (f"{target.path}/index.md", f"{target.path}.md"):
        if candidate.startswith("./"):
            candidate = candidate[2:]
        if candidate in pages:
            return pages[candidate]
    return None


def rewrite_links(
    parsed: ParsedPage,
    pages: Mapping[str, Page],
    assets: set[str],
    redirects: Mapping[str, str],
) -> None:
    """Rewrite internal links in-place so they point at output files instead of sources."""
    page = parsed.page
    for tok, attr, _line in iter_link_tokens(parsed.tokens):
        href = tok.attrGet(attr)
        if not href:
            continue
        target = resolve_href(page.src_path, str(href))
        if target is None or (target.path == page.src_path and not urlpath(str(href))):
            continue
        suffix = f"#{target.fragment}" if target.fragment else ""

        dest = lookup_page(target, pages)
        if dest is None and target.path in redirects:
            final = redirects[target.path]
            final_path, _, final_fragment = final.partition("#")
            if final_path in pages:
                dest = pages[final_path]
                suffix = suffix or (f"#{final_fragment}" if final_fragment else "")
            else:
                tok.attrSet(attr, final)
                continue
        if dest is not None:
            tok.attrSet(attr, relative_url(page.dest_path, dest.url) + suffix)
        elif target.path in assets:
            tok.attrSet(attr, relative_url(page.dest_path, target.path) + suffix)


def urlpath(href: str) -> str:
    return href.split("#", 1)[0]


def render_body(md: MarkdownIt, parsed: ParsedPage) -> str:
    return md.renderer.render(parsed.tokens, md.options, {})


def create_environment(config: SiteConfig) -> Environment:
    search_path = [str(THEME_DIR)]
    if config.theme.custom_dir is not None:
        search_path.insert(0, str(config.theme.custom_dir))
    return Environment(
        loader=FileSystemLoader(search_path),
        autoescape=select_autoescape(["html", "xml"]),
        undefined=StrictUndefined,
        keep_trailing_newline=True,
    )


def nav_items(tree: list[NavNode], pages: Mapping[str, Page], current: Page) -> list[dict[str, Any]]:
    """Template-friendly nav tree with hrefs relative to the current page."""
    items: list[dict[str, Any]] = []
    for node in tree:
        children = nav_items(list(node.children), pages, current)
        href = None
        if node.page is not None:
            href = relative_url(current.dest_path, pages[node.page].url)
        elif node.url is not None:
            href = node.url
        active = node.page == current.src_path or any(c["active"] for c in children)
        items.append(
            {
                "label": node.label,
                "href": href,
                "external": node.url is not None,
                "active": active,
                "current": node.page == current.src_path,
                "children": children,
            }
        )
    return items


def _neighbour(page: Page | None, current: Page) -> dict[str, str] | None:
    if page is None:
        return None
    return {"title": page.title, "href": relative_url(current.dest_path, page.url)}


def render_page(
    env: Environment,
    config: SiteConfig,
    parsed: ParsedPage,
    body_html: str,
    *,
    tree: list[NavNode],
    pages: Mapping[str, Page],
    previous: Page | None,
    next_page: Page | None,
) -> str:
    page = parsed.page
    base_url = relative_url(page.dest_path, "")
    template_name = str(page.meta.get("template") or "page.html")
    context = {
        "site": config,
        "page": page,
        "content": Markup(body_html),
        "toc": [h for h in parsed.headings if 1 < h.level <= TOC_DEPTH],
        "nav": nav_items(tree, pages, page),
        "previous_page": _neighbour(previous, page),
        "next_page": _neighbour(next_page, page),
        "base_url": base_url,
        "versioning": config.versioning,
        "generator": f"docsite {__version__}",
    }
    try:
        return env.get_template(template_name).render(**context)
    except TemplateError as e:
        raise RenderError(f"Failed rendering layout {template_name} for {page.src_path}: {e}") from e
