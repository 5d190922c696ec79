from __future__ import annotations

from pathlib import Path
from typing import Any, Callable

import pytest
import yaml

from docsite.config import SiteConfig, load_config

REPO_ROOT = Path(__file__).resolve().parents[1]


def write_files(root: Path, files: dict[str, str | bytes]) -> None:
    for rel, content in files.items():
        path = root / rel
        path.parent.mkdir(parents=True, exist_ok=True)
        if isinstance(content, bytes):
            path.write_bytes(content)
        else:
            path.write_text(content, encoding="utf-8")


def read_tree(root: Path) -> dict[str, bytes]:
    return {p.relative_to(root).as_posix(): p.read_bytes() for p in sorted(root.rglob("*")) if p.is_file()}


@pytest.fixture
def make_site(tmp_path: Path) -> Callable[..., SiteConfig]:
    """Write docs files plus a docsite.yml under tmp_path and return the loaded config."""

    def _make(files: dict[str, str | bytes], **config: Any) -> SiteConfig:
        data = {"site_name": "Test Site", **config}
        (tmp_path / "docsite.yml").write_text(yaml.safe_dump(data, sort_keys=False), encoding="utf-8")
        write_files(tmp_path / "docs", files)
        return load_config(tmp_path / "docsite.yml")

    return _make
