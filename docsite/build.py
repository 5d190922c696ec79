"""
build.py

Responsibility: Orchestrate a site build (validate -> render -> write) and the `check` gate.

Everything that can fail statically (front matter, nav references, redirects, macros, links)
is resolved in `load_site`, and every document is rendered in memory before `site_dir` is
cleaned, so a failing build never leaves a half-written `site_dir` behind.

Output is deterministic: sources are processed in sorted/nav order, JSON is written with
sorted keys and no timestamps are embedded. Building twice yields identical bytes.
"""

from __future__ import annotations

import html
import logging
import shutil
from dataclasses import dataclass, field
from pathlib import Path

from docsite.config import SiteConfig
from docsite.links import LinkIssue, check_links, report_links
from docsite.lint import LintIssue, Styleguide, lint_docs
from docsite.macros import apply_macros
from docsite.nav import NavNode, build_nav, flatten
from docsite.pages import Page, discover_files, load_pages
from docsite.redirects import Redirects, load_redirects, write_redirects
from docsite.render import (
    THEME_DIR,
    ParsedPage,
    create_environment,
    create_markdown,
    parse_page,
    render_body,
    render_page,
    rewrite_links,
)
from docsite.search import INDEX_PATH, build_search_index, search_order

logger = logging.getLogger(__name__)


class BuildError(RuntimeError):
    pass


@dataclass
class Site:
    """Everything known about a site after validation and before any output is written."""

    config: SiteConfig
    pages: dict[str, Page]
    assets: list[str]
    nav: list[NavNode]
    nav_order: list[str]
    redirects: Redirects
    parsed: dict[str, ParsedPage]
    link_issues: list[LinkIssue] = field(default_factory=list)


@dataclass(frozen=True)
class BuildResult:
    site_dir: Path
    pages: int
    assets: int
    redirects: int
    link_issues: list[LinkIssue]


@dataclass(frozen=True)
class CheckResult:
    link_issues: list[LinkIssue]
    lint_issues: list[LintIssue]

    @property
    def ok(self) -> bool:
        return not self.link_issues and not self.lint_issues


def load_site(config: SiteConfig) -> Site:
    files = discover_files(config.docs_dir, config.exclude_docs)
    pages = load_pages(config.docs_dir, files.markdown, use_directory_urls=config.use_directory_urls)
    logger.debug("Found %d pages and %d assets in %s", len(pages), len(files.assets), config.docs_dir)

    redirects = load_redirects(config.redirects, pages)
    tree = build_nav(config.nav, pages)
    pages = apply_macros(config, pages)

    md = create_markdown()
    parsed = {src: parse_page(md, page) for src, page in pages.items()}
    issues = check_links(parsed, set(files.assets), redirects)
    return Site(
        config=config,
        pages=pages,
        assets=files.assets,
        nav=tree,
        nav_order=flatten(tree),
        redirects=redirects,
        parsed=parsed,
        link_issues=issues,
    )


def clean_site_dir(site_dir: Path) -> None:
    """Remove previous output; hidden entries (e.g. a `.git` checkout) are left alone."""
    if not site_dir.exists():
        return
    for child in sorted(site_dir.iterdir()):
        if child.name.startswith("."):
            continue
        if child.is_dir() and not child.is_symlink():
            shutil.rmtree(child)
        else:
            child.unlink()


def _copy_tree(src_dir: Path, dst_dir: Path) -> int:
    copied = 0
    for path in sorted(src_dir.rglob("*")):
        if not path.is_file():
            continue
        target = dst_dir / path.relative_to(src_dir)
        target.parent.mkdir(parents=True, exist_ok=True)
        shutil.copy2(path, target)
        copied += 1
    return copied


def _write(path: Path, text: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8", newline="\n")


def sitemap(site_url: str, order: list[str], pages: dict[str, Page]) -> str:
    base = site_url.rstrip("/") + "/"
    lines = [
        '<?xml version="1.0" encoding="UTF-8"?>',
        '<urlset xmlns="http://www.sitemaps.org/schemas/sitemap/0.9">',
    ]
    for src in order:
        lines.append(f"  <url><loc>{html.escape(base + pages[src].url)}</loc></url>")
    lines.append("</urlset>")
    return "\n".join(lines) + "\n"


def _guard_site_dir(config: SiteConfig) -> None:
    site_dir = config.site_dir
    project_root = config.config_path.parent
    if site_dir == project_root or site_dir in project_root.parents:
        raise BuildError(f"Refusing to build into {site_dir}: it contains the project itself.")


def render_documents(site: Site) -> dict[str, str]:
    """Render every page, the search index and the sitemap in memory, keyed by output path."""
    config = site.config
    md = create_markdown()
    env = create_environment(config)
    asset_set = set(site.assets)
    order = site.nav_order
    position = {src: i for i, src in enumerate(order)}
    documents: dict[str, str] = {}
    for src, parsed in site.parsed.items():
        rewrite_links(parsed, site.pages, asset_set, site.redirects)
        body = render_body(md, parsed)
        i = position.get(src)
        previous = site.pages[order[i - 1]] if i is not None and i > 0 else None
        next_page = site.pages[order[i + 1]] if i is not None and i + 1 < len(order) else None
        documents[parsed.page.dest_path] = render_page(
            env,
            config,
            parsed,
            body,
            tree=site.nav,
            pages=site.pages,
            previous=previous,
            next_page=next_page,
        )

    everything = search_order(order, site.pages)
    documents[INDEX_PATH] = build_search_index(everything, site.parsed)
    if config.site_url:
        documents["sitemap.xml"] = sitemap(config.site_url, everything, site.pages)
    return documents


def write_site(site: Site, *, dirty: bool = False) -> BuildResult:
    config = site.config
    site_dir = config.site_dir
    _guard_site_dir(config)
    # Nothing is removed until every document has rendered.
    documents = render_documents(site)
    if not dirty:
        clean_site_dir(site_dir)
    site_dir.mkdir(parents=True, exist_ok=True)

    # Theme assets first so files in docs_dir can override them.
    theme_assets = 0
    for theme_dir in (THEME_DIR, config.theme.custom_dir):
        if theme_dir is not None and (theme_dir / "assets").is_dir():
            theme_assets += _copy_tree(theme_dir / "assets", site_dir / "assets")
    logger.debug("Copied %d theme assets", theme_assets)

    for rel in site.assets:
        target = site_dir / rel
        target.parent.mkdir(parents=True, exist_ok=True)
        shutil.copy2(config.docs_dir / rel, target)

    for rel, text in documents.items():
        _write(site_dir / rel, text)
        logger.debug("Wrote %s", rel)

    redirects = write_redirects(
        site.redirects, site_dir, site.pages, use_directory_urls=config.use_directory_urls
    )

    return BuildResult(
        site_dir=site_dir,
        pages=len(site.parsed),
        assets=len(site.assets),
        redirects=redirects,
        link_issues=site.link_issues,
    )


def build_site(config: SiteConfig, *, dirty: bool = False) -> BuildResult:
    """
    Build the site into `config.site_dir`.

    Broken internal links are logged as warnings; with `config.strict` they abort the
    build before anything is written.
    """
    logger.info("Building documentation to directory: %s", config.site_dir)
    site = load_site(config)
    report_links(site.link_issues)
    if config.strict and site.link_issues:
        raise BuildError(f"Aborted with {len(site.link_issues)} link issue(s) in strict mode.")
    result = write_site(site, dirty=dirty)
    logger.info(
        "Documentation built: %d pages, %d assets, %d redirects",
        result.pages,
        result.assets,
        result.redirects,
    )
    return result


def check_site(config: SiteConfig, styleguide: Styleguide | None = None) -> CheckResult:
    """Run every static check without writing output; the regression gate for CI."""
    site = load_site(config)
    lint_issues: list[LintIssue] = []
    if styleguide is not None:
        lint_issues = lint_docs(config.docs_dir, sorted(site.pages), styleguide)
    return CheckResult(link_issues=site.link_issues, lint_issues=lint_issues)
