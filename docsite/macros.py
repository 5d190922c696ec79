"""
macros.py

Responsibility: Substitute variables into page Markdown before it is rendered.

`render_macros` is a pure function: template text + mapping in, substituted text out.
Referencing an undefined variable is an error (StrictUndefined), never an empty string.
Text without Jinja2 markers is returned untouched.
"""

from __future__ import annotations

from typing import Any, Mapping

from jinja2 import Environment, StrictUndefined, TemplateError

from docsite.config import SiteConfig
from docsite.pages import Page


class MacroError(RuntimeError):
    pass


_env = Environment(
    autoescape=False,
    undefined=StrictUndefined,
    keep_trailing_newline=True,
)


def has_markers(text: str) -> bool:
    return ("{{" in text) or ("{%" in text) or ("{#" in text)


def render_macros(template: str, variables: Mapping[str, Any], *, name: str = "<string>") -> str:
    if not has_markers(template):
        return template
    try:
        return _env.from_string(template).render(**variables)
    except TemplateError as e:
        raise MacroError(f"Failed rendering macros in {name}: {e}") from e


def page_variables(config: SiteConfig, page: Page) -> dict[str, Any]:
    # `extra` keys first so `config` and `page` cannot be shadowed by them.
    return {
        **config.extra,
        "extra": config.extra,
        "config": config,
        "page": page,
    }


def apply_macros(config: SiteConfig, pages: dict[str, Page]) -> dict[str, Page]:
    """Return pages with macros rendered; `macros: false` front matter opts a page out."""
    out: dict[str, Page] = {}
    for src, page in pages.items():
        if page.meta.get("macros") is False:
            out[src] = page
            continue
        text = render_macros(page.markdown, page_variables(config, page), name=src)
        out[src] = page if text == page.markdown else page.with_markdown(text)
    return out
