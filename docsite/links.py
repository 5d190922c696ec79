"""
links.py

Responsibility: Check that internal Markdown links resolve to existing pages, anchors and files.

External URLs are never fetched. Issues are returned rather than raised; the caller decides
whether they are warnings (default build) or failures (strict build, `check`).
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Mapping

from docsite.pages import Page, resolve_href
from docsite.render import ParsedPage, iter_link_tokens, lookup_page

logger = logging.getLogger(__name__)

MISSING_PAGE = "missing-page"
MISSING_ANCHOR = "missing-anchor"
MISSING_ASSET = "missing-asset"
REDIRECTED = "redirected"
ABSOLUTE = "absolute"


@dataclass(frozen=True, order=True)
class LinkIssue:
    src_path: str
    line: int
    kind: str
    href: str
    message: str

    def __str__(self) -> str:
        return f"{self.src_path}:{self.line}: [{self.kind}] {self.message}"


def _check_one(
    parsed: ParsedPage,
    href: str,
    line: int,
    parsed_pages: Mapping[str, ParsedPage],
    pages: Mapping[str, Page],
    assets: set[str],
    redirects: Mapping[str, str],
) -> LinkIssue | None:
    src = parsed.page.src_path
    target = resolve_href(src, href)
    if target is None:
        return None

    def issue(kind: str, message: str) -> LinkIssue:
        return LinkIssue(src_path=src, line=line, kind=kind, href=href, message=message)

    if target.absolute:
        return issue(ABSOLUTE, f"'{href}' is an absolute path; use a path relative to this page.")

    dest = lookup_page(target, pages)
    if dest is None:
        if target.path in redirects:
            return issue(REDIRECTED, f"'{href}' points at a moved page; link to '{redirects[target.path]}' instead.")
        if target.path in assets:
            return None
        if target.path.lower().endswith((".md", ".markdown")):
            return issue(MISSING_PAGE, f"'{href}' points at '{target.path}', which is not in the docs directory.")
        return issue(MISSING_ASSET, f"'{href}' points at '{target.path}', which is not in the docs directory.")

    if target.fragment and target.fragment not in parsed_pages[dest.src_path].anchors:
        where = "this page" if dest.src_path == src else f"'{dest.src_path}'"
        return issue(MISSING_ANCHOR, f"'{href}': there is no '#{target.fragment}' anchor on {where}.")
    return None


def check_links(
    parsed_pages: Mapping[str, ParsedPage],
    assets: set[str],
    redirects: Mapping[str, str],
) -> list[LinkIssue]:
    """Return every broken internal link across the site, sorted by location."""
    pages = {src: p.page for src, p in parsed_pages.items()}
    issues: list[LinkIssue] = []
    for parsed in parsed_pages.values():
        for tok, attr, line in iter_link_tokens(parsed.tokens):
            href = tok.attrGet(attr)
            if not href:
                continue
            found = _check_one(parsed, str(href), line, parsed_pages, pages, assets, redirects)
            if found is not None:
                issues.append(found)
    issues.sort()
    return issues


def report_links(issues: list[LinkIssue]) -> None:
    for found in issues:
        logger.warning("%s", found)
