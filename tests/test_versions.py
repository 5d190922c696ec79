from __future__ import annotations

import json
from pathlib import Path

import pytest

from conftest import write_files
from docsite.versions import (
    VersionError,
    default_version,
    delete_version,
    deploy_version,
    list_versions,
    set_default,
    version_key,
)


@pytest.fixture
def built(tmp_path: Path) -> Path:
    site = tmp_path / "site"
    write_files(site, {"index.html": "home", "guide/a.html": "a", "assets/style.css": "css"})
    return site


def test_version_key_orders_naturally() -> None:
    assert sorted(["1.10", "1.9", "2.0", "1.9.1"], key=version_key) == ["1.9", "1.9.1", "1.10", "2.0"]


def test_deploy_writes_copy_aliases_and_manifest(built: Path, tmp_path: Path) -> None:
    publish = tmp_path / "publish"
    deploy_version(built, publish, "1.0", aliases=["latest"])
    deploy_version(built, publish, "1.10", title="1.10 (beta)")

    assert (publish / "1.0/guide/a.html").read_text(encoding="utf-8") == "a"
    assert 'url=../../1.0/guide/a.html"' in (publish / "latest/guide/a.html").read_text(encoding="utf-8")
    assert 'url=../1.0/"' in (publish / "latest/index.html").read_text(encoding="utf-8")
    assert not (publish / "latest/assets").exists()

    manifest = json.loads((publish / "versions.json").read_text(encoding="utf-8"))
    assert manifest == [
        {"version": "1.10", "title": "1.10 (beta)", "aliases": []},
        {"version": "1.0", "title": "1.0", "aliases": ["latest"]},
    ]


def test_alias_conflicts(built: Path, tmp_path: Path) -> None:
    publish = tmp_path / "publish"
    deploy_version(built, publish, "1.0", aliases=["latest"])
    with pytest.raises(VersionError, match="already points at version 1.0"):
        deploy_version(built, publish, "2.0", aliases=["latest"])

    deploy_version(built, publish, "2.0", aliases=["latest"], update_aliases=True)
    versions = {v.version: v.aliases for v in list_versions(publish)}
    assert versions == {"2.0": ("latest",), "1.0": ()}
    assert "2.0/" in (publish / "latest/index.html").read_text(encoding="utf-8")

    with pytest.raises(VersionError, match="name of a version"):
        deploy_version(built, publish, "3.0", aliases=["1.0"])
    with pytest.raises(VersionError, match="already an alias"):
        deploy_version(built, publish, "latest")


def test_redeploy_keeps_existing_aliases(built: Path, tmp_path: Path) -> None:
    publish = tmp_path / "publish"
    deploy_version(built, publish, "1.0", title="One", aliases=["stable"])
    (built / "new.html").write_text("new", encoding="utf-8")
    info = deploy_version(built, publish, "1.0")
    assert info.aliases == ("stable",)
    assert info.title == "One"
    assert (publish / "stable/new.html").exists()


@pytest.mark.parametrize("name", ["", ".", "..", "a/b", ".hidden", "versions.json"])
def test_invalid_names(built: Path, tmp_path: Path, name: str) -> None:
    with pytest.raises(VersionError, match="Invalid"):
        deploy_version(built, tmp_path / "publish", name)


def test_delete_alias_then_version(built: Path, tmp_path: Path) -> None:
    publish = tmp_path / "publish"
    deploy_version(built, publish, "1.0", aliases=["latest", "stable"])
    delete_version(publish, "stable")
    assert not (publish / "stable").exists()
    assert list_versions(publish)[0].aliases == ("latest",)

    delete_version(publish, "1.0")
    assert not (publish / "1.0").exists()
    assert not (publish / "latest").exists()
    assert list_versions(publish) == []

    with pytest.raises(VersionError, match="No version"):
        delete_version(publish, "1.0")


def test_set_default(built: Path, tmp_path: Path) -> None:
    publish = tmp_path / "publish"
    deploy_version(built, publish, "1.0", aliases=["latest"])
    set_default(publish, "latest")
    assert 'url=latest/"' in (publish / "index.html").read_text(encoding="utf-8")
    with pytest.raises(VersionError, match="unknown version"):
        set_default(publish, "9.9")


def test_corrupt_manifest(tmp_path: Path) -> None:
    (tmp_path / "versions.json").write_text("{not json", encoding="utf-8")
    with pytest.raises(VersionError, match="Corrupt"):
        list_versions(tmp_path)


def test_deleting_the_default_drops_the_root_redirect(built: Path, tmp_path: Path) -> None:
    publish = tmp_path / "publish"
    deploy_version(built, publish, "1.0", aliases=["latest"])
    deploy_version(built, publish, "2.0")
    assert default_version(publish) is None

    set_default(publish, "latest")
    assert default_version(publish) == "latest"
    delete_version(publish, "2.0")
    assert (publish / "index.html").exists()

    delete_version(publish, "1.0")
    assert not (publish / "index.html").exists()
    assert default_version(publish) is None
