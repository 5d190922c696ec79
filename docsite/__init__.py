"""
docsite package

This package builds the engineering-standards documentation site as a CLI-first utility.

Key responsibilities are split across modules:
- `config.py`: load the site configuration (mkdocs.yml dialect) into a typed model
- `pages.py`: discover Markdown sources, parse front matter, map sources to output URLs
- `nav.py`: parse/generate and validate the navigation tree
- `macros.py`: substitute variables into page Markdown (strict: undefined is an error)
- `render.py`: Markdown -> HTML with heading anchors, link rewriting and the page layout
- `links.py`: internal link integrity checks
- `redirects.py`: old-path -> new-path table and redirect stubs
- `search.py`: search index generation
- `lint.py`: style and terminology lint for the corpus
- `build.py`: build pipeline and the `check` gate
- `versions.py`: multiple site versions side by side in one publish directory
- `publish.py` / `github_client.py`: push to GitHub Pages, configure Pages via the REST API
- `serve.py`: local preview with rebuild-on-change
- `cli.py`: CLI entrypoint and orchestration
"""

from __future__ import annotations

__all__ = ["__version__"]

__version__ = "0.1.0"
