"""
config.py

Responsibility: Load the site configuration file (mkdocs.yml dialect) into a typed model.

Rules:
- The file must be a YAML mapping with at least `site_name`.
- Unknown top-level keys are rejected so typos surface at build start.
- `!ENV` tags are resolved from the environment; `!!python/name:` tags are kept as strings.
- Directory settings are resolved relative to the config file's directory.
"""

from __future__ import annotations

import dataclasses
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml


class ConfigError(ValueError):
    pass


DEFAULT_CONFIG_FILE = "docsite.yml"


class _ConfigLoader(yaml.SafeLoader):
    """SafeLoader that tolerates the tags commonly found in mkdocs-style configs."""


def _construct_env(loader: yaml.SafeLoader, node: yaml.Node) -> str:
    """
    `!ENV VAR` or `!ENV [VAR, FALLBACK_VAR, "default"]`: the first set variable wins,
    the last list item is the literal default.
    """
    if isinstance(node, yaml.ScalarNode):
        return os.environ.get(loader.construct_scalar(node), "")
    if isinstance(node, yaml.SequenceNode):
        items = [str(i) for i in loader.construct_sequence(node)]
        if not items:
            return ""
        names, default = (items[:-1], items[-1]) if len(items) > 1 else (items, "")
        for name in names:
            value = os.environ.get(name)
            if value is not None:
                return value
        return default
    return ""


def _construct_python_name(loader: yaml.SafeLoader, _suffix: str, node: yaml.Node) -> str:
    if isinstance(node, yaml.ScalarNode):
        return loader.construct_scalar(node)
    return ""


_ConfigLoader.add_constructor("!ENV", _construct_env)
_ConfigLoader.add_multi_constructor("tag:yaml.org,2002:python/name", _construct_python_name)


@dataclass(frozen=True)
class ThemeConfig:
    """Theme options understood by the built-in layout."""

    custom_dir: Path | None = None
    language: str = "en"


@dataclass(frozen=True)
class PublishConfig:
    """Where and how the built site is pushed for static hosting."""

    remote: str = "origin"
    branch: str = "gh-pages"
    cname: str | None = None
    message: str = "Deploy documentation"


@dataclass(frozen=True)
class SiteConfig:
    """Parsed site configuration; the single source of truth for a build."""

    site_name: str
    config_path: Path
    docs_dir: Path
    site_dir: Path
    site_url: str = ""
    site_description: str = ""
    repo_url: str = ""
    nav: list[Any] | None = None
    theme: ThemeConfig = field(default_factory=ThemeConfig)
    extra: dict[str, Any] = field(default_factory=dict)
    redirects: dict[str, str] = field(default_factory=dict)
    exclude_docs: tuple[str, ...] = ()
    strict: bool = False
    use_directory_urls: bool = False
    versioning: bool = False
    publish: PublishConfig = field(default_factory=PublishConfig)

    def replace(self, **changes: Any) -> SiteConfig:
        return dataclasses.replace(self, **changes)


_KNOWN_KEYS = {
    "site_name",
    "site_url",
    "site_description",
    "repo_url",
    "docs_dir",
    "site_dir",
    "nav",
    "theme",
    "extra",
    "redirects",
    "exclude_docs",
    "strict",
    "use_directory_urls",
    "versioning",
    "publish",
}


def _mapping(data: dict[str, Any], key: str) -> dict[str, Any]:
    raw = data.get(key)
    if raw is None:
        return {}
    if not isinstance(raw, dict):
        raise ConfigError(f"`{key}` must be a mapping when provided.")
    return raw


def _bool(data: dict[str, Any], key: str, default: bool) -> bool:
    raw = data.get(key, default)
    if not isinstance(raw, bool):
        raise ConfigError(f"`{key}` must be true or false, got {raw!r}.")
    return raw


def _str(data: dict[str, Any], key: str, default: str = "") -> str:
    raw = data.get(key)
    if raw is None:
        return default
    if not isinstance(raw, (str, int, float)):
        raise ConfigError(f"`{key}` must be a string, got {type(raw).__name__}.")
    return str(raw).strip()


def _parse_theme(raw: Any, root: Path) -> ThemeConfig:
    if raw is None:
        return ThemeConfig()
    if isinstance(raw, str):
        # `theme: name` shorthand; only the built-in layout exists.
        return ThemeConfig()
    if not isinstance(raw, dict):
        raise ConfigError("`theme` must be a mapping or a theme name.")
    custom = raw.get("custom_dir")
    custom_dir = (root / str(custom)).resolve() if custom else None
    if custom_dir is not None and not custom_dir.is_dir():
        raise ConfigError(f"theme.custom_dir does not exist: {custom_dir}")
    return ThemeConfig(custom_dir=custom_dir, language=_str(raw, "language", "en"))


def _parse_publish(data: dict[str, Any]) -> PublishConfig:
    raw = _mapping(data, "publish")
    defaults = PublishConfig()
    cname = _str(raw, "cname") or None
    return PublishConfig(
        remote=_str(raw, "remote", defaults.remote),
        branch=_str(raw, "branch", defaults.branch),
        cname=cname,
        message=_str(raw, "message", defaults.message),
    )


def _parse_redirects(data: dict[str, Any]) -> dict[str, str]:
    raw = _mapping(data, "redirects")
    out: dict[str, str] = {}
    for k, v in raw.items():
        if not isinstance(k, str) or not isinstance(v, str) or not k.strip() or not v.strip():
            raise ConfigError(f"`redirects` entries must map a path to a path or URL: {k!r}: {v!r}")
        out[k.strip()] = v.strip()
    return dict(sorted(out.items()))


def _parse_exclude(data: dict[str, Any]) -> tuple[str, ...]:
    raw = data.get("exclude_docs")
    if raw is None:
        return ()
    if isinstance(raw, str):
        # mkdocs writes this as a block of gitignore-style lines.
        patterns = [line.strip() for line in raw.splitlines()]
    elif isinstance(raw, list):
        patterns = [str(p).strip() for p in raw]
    else:
        raise ConfigError("`exclude_docs` must be a list of patterns or a multi-line string.")
    return tuple(p for p in patterns if p and not p.startswith("#"))


def parse_config(data: dict[str, Any], *, config_path: Path) -> SiteConfig:
    """Validate a raw mapping into a `SiteConfig`."""
    if not isinstance(data, dict):
        raise ConfigError("Config must be a mapping/object at the top level.")

    unknown = sorted(set(data) - _KNOWN_KEYS)
    if unknown:
        raise ConfigError(f"Unknown config keys: {', '.join(unknown)}")

    site_name = _str(data, "site_name")
    if not site_name:
        raise ConfigError("Config must define `site_name`.")

    root = config_path.parent
    docs_dir = (root / _str(data, "docs_dir", "docs")).resolve()
    site_dir = (root / _str(data, "site_dir", "site")).resolve()
    if docs_dir == site_dir or docs_dir in site_dir.parents:
        raise ConfigError("`site_dir` must not be inside `docs_dir`.")

    nav = data.get("nav")
    if nav is not None and not isinstance(nav, list):
        raise ConfigError("`nav` must be a list when provided.")

    extra = _mapping(data, "extra")

    return SiteConfig(
        site_name=site_name,
        config_path=config_path,
        docs_dir=docs_dir,
        site_dir=site_dir,
        site_url=_str(data, "site_url"),
        site_description=_str(data, "site_description"),
        repo_url=_str(data, "repo_url"),
        nav=nav,
        theme=_parse_theme(data.get("theme"), root),
        extra=dict(sorted(extra.items(), key=lambda kv: str(kv[0]))),
        redirects=_parse_redirects(data),
        exclude_docs=_parse_exclude(data),
        strict=_bool(data, "strict", False),
        use_directory_urls=_bool(data, "use_directory_urls", False),
        versioning=_bool(data, "versioning", False),
        publish=_parse_publish(data),
    )


def load_config(config_path: str | Path = DEFAULT_CONFIG_FILE, **overrides: Any) -> SiteConfig:
    """
    Load and validate a config file.

    `overrides` replace parsed values after validation (CLI flags); `None` values are ignored.
    """
    path = Path(config_path).resolve()
    if not path.exists():
        raise ConfigError(f"Config file does not exist: {path}")
    try:
        data = yaml.load(path.read_text(encoding="utf-8"), Loader=_ConfigLoader)  # noqa: S506 - SafeLoader subclass
    except yaml.YAMLError as e:
        raise ConfigError(f"Failed to parse config file {path}: {e}") from e
    if data is None:
        data = {}

    config = parse_config(data, config_path=path)
    changes = {k: v for k, v in overrides.items() if v is not None}
    if "site_dir" in changes:
        changes["site_dir"] = Path(changes["site_dir"]).resolve()
    return config.replace(**changes) if changes else config
