"""
versions.py

Responsibility: Keep several built versions of the site side by side in a publish directory.

Layout of a publish directory (usually a checkout of the Pages branch):

    versions.json        [{"version": "2.0", "title": "2.0", "aliases": ["latest"]}, ...]
    index.html           optional redirect to the default version
    2.0/...              a full copy of the site built for 2.0
    latest/...           redirect stubs pointing into 2.0/

`versions.json` is kept newest first using natural version ordering.
"""

from __future__ import annotations

import html
import json
import logging
import posixpath
import re
import shutil
from dataclasses import dataclass, field
from pathlib import Path

from docsite.redirects import redirect_stub

logger = logging.getLogger(__name__)

VERSIONS_FILE = "versions.json"

_NUM_RE = re.compile(r"(\d+)")
_CANONICAL_RE = re.compile(r'<link rel="canonical" href="([^"]*)">')


class VersionError(ValueError):
    pass


@dataclass(frozen=True)
class VersionInfo:
    version: str
    title: str
    aliases: tuple[str, ...] = field(default_factory=tuple)

    def to_dict(self) -> dict[str, object]:
        return {"version": self.version, "title": self.title, "aliases": list(self.aliases)}


def validate_name(name: str) -> str:
    name = name.strip()
    if not name or name in (".", "..") or "/" in name or "\\" in name:
        raise VersionError(f"Invalid version or alias name: {name!r}")
    if name.startswith(".") or name == VERSIONS_FILE:
        raise VersionError(f"Invalid version or alias name: {name!r}")
    return name


def version_key(version: str) -> tuple[tuple[int, int, str], ...]:
    """Natural ordering: `1.10` sorts after `1.9`; numeric parts sort before text."""
    key: list[tuple[int, int, str]] = []
    for part in _NUM_RE.split(version):
        if not part:
            continue
        if part.isdigit():
            key.append((1, int(part), ""))
        else:
            key.append((0, 0, part))
    return tuple(key)


def list_versions(publish_dir: str | Path) -> list[VersionInfo]:
    path = Path(publish_dir) / VERSIONS_FILE
    if not path.exists():
        return []
    try:
        raw = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        raise VersionError(f"Corrupt {VERSIONS_FILE} in {publish_dir}: {e}") from e
    if not isinstance(raw, list):
        raise VersionError(f"{VERSIONS_FILE} must contain a list.")
    out: list[VersionInfo] = []
    for entry in raw:
        if not isinstance(entry, dict) or not isinstance(entry.get("version"), str):
            raise VersionError(f"Malformed entry in {VERSIONS_FILE}: {entry!r}")
        out.append(
            VersionInfo(
                version=entry["version"],
                title=str(entry.get("title") or entry["version"]),
                aliases=tuple(str(a) for a in entry.get("aliases") or ()),
            )
        )
    return out


def _write_versions(publish_dir: Path, versions: list[VersionInfo]) -> None:
    ordered = sorted(versions, key=lambda v: version_key(v.version), reverse=True)
    text = json.dumps([v.to_dict() for v in ordered], indent=2) + "\n"
    (publish_dir / VERSIONS_FILE).write_text(text, encoding="utf-8", newline="\n")


def _remove(path: Path) -> None:
    if path.is_dir() and not path.is_symlink():
        shutil.rmtree(path)
    elif path.exists():
        path.unlink()


def _write_alias(publish_dir: Path, alias: str, version: str) -> None:
    """Mirror every HTML file of `version` under `alias` as a redirect stub."""
    alias_dir = publish_dir / alias
    _remove(alias_dir)
    version_dir = publish_dir / version
    for path in sorted(version_dir.rglob("*.html")):
        rel = path.relative_to(version_dir).as_posix()
        href = posixpath.relpath(f"{version}/{rel}", posixpath.dirname(f"{alias}/{rel}"))
        if rel == "index.html" or rel.endswith("/index.html"):
            href = posixpath.dirname(href) + "/"
        stub = alias_dir / rel
        stub.parent.mkdir(parents=True, exist_ok=True)
        stub.write_text(redirect_stub(href), encoding="utf-8", newline="\n")


def deploy_version(
    site_dir: str | Path,
    publish_dir: str | Path,
    version: str,
    *,
    title: str | None = None,
    aliases: tuple[str, ...] | list[str] = (),
    update_aliases: bool = False,
) -> VersionInfo:
    """Copy a built site into `publish_dir/<version>/` and (re)point its aliases."""
    version = validate_name(version)
    aliases = tuple(dict.fromkeys(validate_name(a) for a in aliases))
    if version in aliases:
        raise VersionError(f"Version {version} cannot be its own alias.")
    src = Path(site_dir)
    if not src.is_dir():
        raise VersionError(f"Built site not found: {src}")

    publish = Path(publish_dir)
    publish.mkdir(parents=True, exist_ok=True)
    versions = list_versions(publish)
    names = {v.version for v in versions}

    for v in versions:
        if v.version != version and version in v.aliases:
            raise VersionError(f"{version} is already an alias of version {v.version}.")

    updated: list[VersionInfo] = []
    for v in versions:
        if v.version == version:
            continue
        taken = [a for a in aliases if a in v.aliases]
        if taken and not update_aliases:
            raise VersionError(
                f"Alias {', '.join(taken)} already points at version {v.version} (use update_aliases)."
            )
        updated.append(VersionInfo(v.version, v.title, tuple(a for a in v.aliases if a not in aliases)))
    for alias in aliases:
        if alias in names:
            raise VersionError(f"Alias {alias} is already the name of a version.")

    previous = next((v for v in versions if v.version == version), None)
    merged = tuple(dict.fromkeys((previous.aliases if previous else ()) + aliases))
    info = VersionInfo(
        version=version,
        title=title or (previous.title if previous else version),
        aliases=merged,
    )

    target = publish / version
    _remove(target)
    shutil.copytree(src, target)
    for alias in merged:
        _write_alias(publish, alias, version)

    _write_versions(publish, updated + [info])
    logger.info("Deployed version %s%s", version, f" (aliases: {', '.join(merged)})" if merged else "")
    return info


def default_version(publish_dir: str | Path) -> str | None:
    """Name the root `index.html` redirects to, or None when there is no default."""
    root_index = Path(publish_dir) / "index.html"
    if not root_index.is_file():
        return None
    match = _CANONICAL_RE.search(root_index.read_text(encoding="utf-8"))
    if match is None:
        return None
    return html.unescape(match.group(1)).rstrip("/") or None


def delete_version(publish_dir: str | Path, name: str) -> None:
    """Delete a version (with all its aliases) or a single alias."""
    publish = Path(publish_dir)
    name = validate_name(name)
    versions = list_versions(publish)
    kept: list[VersionInfo] = []
    removed: set[str] = set()
    for v in versions:
        if v.version == name:
            removed.update((v.version, *v.aliases))
            _remove(publish / v.version)
            for alias in v.aliases:
                _remove(publish / alias)
            continue
        if name in v.aliases:
            removed.add(name)
            _remove(publish / name)
            v = VersionInfo(v.version, v.title, tuple(a for a in v.aliases if a != name))
        kept.append(v)
    if not removed:
        raise VersionError(f"No version or alias named {name}.")
    default = default_version(publish)
    if default in removed:
        (publish / "index.html").unlink()
        logger.warning("Removed the root redirect to %s; set a new default version.", default)
    _write_versions(publish, kept)
    logger.info("Deleted %s", name)


def set_default(publish_dir: str | Path, name: str) -> None:
    """Make the publish root redirect to a version or alias."""
    publish = Path(publish_dir)
    name = validate_name(name)
    known = {v.version for v in list_versions(publish)}
    known.update(a for v in list_versions(publish) for a in v.aliases)
    if name not in known:
        raise VersionError(f"Cannot set default to unknown version {name}.")
    (publish / "index.html").write_text(redirect_stub(f"{name}/"), encoding="utf-8", newline="\n")
    logger.info("Default version set to %s", name)
