from __future__ import annotations

from pathlib import Path

import pytest

from docsite.config import ConfigError, load_config


def _write(tmp_path: Path, text: str) -> Path:
    path = tmp_path / "docsite.yml"
    path.write_text(text, encoding="utf-8")
    return path


def test_defaults_resolve_relative_to_config(tmp_path: Path) -> None:
    config = load_config(_write(tmp_path, "site_name: Standards\n"))
    assert config.site_name == "Standards"
    assert config.docs_dir == (tmp_path / "docs").resolve()
    assert config.site_dir == (tmp_path / "site").resolve()
    assert config.use_directory_urls is False
    assert config.strict is False
    assert config.nav is None
    assert config.publish.branch == "gh-pages"


def test_full_config(tmp_path: Path) -> None:
    (tmp_path / "overrides").mkdir()
    config = load_config(
        _write(
            tmp_path,
            """
site_name: Standards
docs_dir: content
site_dir: public
nav:
  - index.md
theme:
  custom_dir: overrides
  language: de
extra:
  version: "3.12"
redirects:
  old.md: new.md
exclude_docs: |
  drafts/
  *.tmp
strict: true
publish:
  branch: pages
  cname: docs.example.com
""",
        )
    )
    assert config.docs_dir.name == "content"
    assert config.site_dir.name == "public"
    assert config.nav == ["index.md"]
    assert config.theme.custom_dir == (tmp_path / "overrides").resolve()
    assert config.theme.language == "de"
    assert config.extra == {"version": "3.12"}
    assert config.redirects == {"old.md": "new.md"}
    assert config.exclude_docs == ("drafts/", "*.tmp")
    assert config.strict is True
    assert config.publish.branch == "pages"
    assert config.publish.cname == "docs.example.com"


def test_env_tag(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("DOCS_URL", "https://docs.example.com/")
    monkeypatch.delenv("DOCS_NAME", raising=False)
    config = load_config(
        _write(
            tmp_path,
            "site_name: !ENV [DOCS_NAME, 'Fallback']\nsite_url: !ENV DOCS_URL\n",
        )
    )
    assert config.site_name == "Fallback"
    assert config.site_url == "https://docs.example.com/"


def test_overrides_ignore_none(tmp_path: Path) -> None:
    config = load_config(_write(tmp_path, "site_name: S\n"), strict=True, site_dir=None)
    assert config.strict is True
    assert config.site_dir == (tmp_path / "site").resolve()


@pytest.mark.parametrize(
    "text, message",
    [
        ("site_name: [unclosed\n", "Failed to parse"),
        ("- a\n- b\n", "mapping"),
        ("site_url: https://x\n", "site_name"),
        ("site_name: S\nsite_nmae: typo\n", "Unknown config keys: site_nmae"),
        ("site_name: S\nstrict: maybe\n", "strict"),
        ("site_name: S\nnav: index.md\n", "nav"),
        ("site_name: S\nextra: [1]\n", "extra"),
        ("site_name: S\nsite_dir: docs/site\n", "site_dir"),
        ("site_name: S\ntheme:\n  custom_dir: missing\n", "custom_dir"),
    ],
)
def test_malformed_config_fails_at_load(tmp_path: Path, text: str, message: str) -> None:
    with pytest.raises(ConfigError, match=message):
        load_config(_write(tmp_path, text))


def test_missing_file(tmp_path: Path) -> None:
    with pytest.raises(ConfigError, match="does not exist"):
        load_config(tmp_path / "nope.yml")
