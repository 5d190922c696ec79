from __future__ import annotations

import logging
from pathlib import Path

import pytest
from watchdog.events import FileModifiedEvent, FileMovedEvent

from docsite.build import build_site
from docsite.serve import Watcher


def _preview(make_site, tmp_path: Path, files: dict[str, str]):
    config = make_site(files)
    config = config.replace(site_dir=tmp_path / "preview")
    build_site(config)
    return config


def _touch(watcher: Watcher, path: Path) -> None:
    watcher.dispatch(FileModifiedEvent(str(path)))


def test_watcher_rebuilds_on_change(make_site, tmp_path: Path) -> None:
    config = _preview(make_site, tmp_path, {"a.md": "# Before\n"})
    watcher = Watcher(config)

    assert watcher.poll() is False
    page = config.docs_dir / "a.md"
    page.write_text("# After the edit\n", encoding="utf-8")
    _touch(watcher, page)
    assert watcher.poll() is True
    assert watcher.poll() is False
    assert "After the edit" in (config.site_dir / "a.html").read_text(encoding="utf-8")


def test_watcher_ignores_unrelated_paths(make_site, tmp_path: Path) -> None:
    config = _preview(make_site, tmp_path, {"a.md": "# A\n"})
    watcher = Watcher(config)

    _touch(watcher, tmp_path / "README.md")
    _touch(watcher, config.site_dir / "a.html")
    assert not watcher.changed.is_set()

    _touch(watcher, config.config_path)
    assert watcher.changed.is_set()


def test_watcher_sees_editor_renames(make_site, tmp_path: Path) -> None:
    config = _preview(make_site, tmp_path, {"a.md": "# A\n"})
    watcher = Watcher(config)
    watcher.dispatch(FileMovedEvent(str(tmp_path / ".a.md.swp"), str(config.docs_dir / "a.md")))
    assert watcher.changed.is_set()


def test_failed_rebuild_keeps_previous_output(make_site, tmp_path: Path, caplog: pytest.LogCaptureFixture) -> None:
    config = _preview(make_site, tmp_path, {"a.md": "# Good\n"})
    watcher = Watcher(config)

    page = config.docs_dir / "a.md"
    page.write_text("{{ undefined_variable }}\n", encoding="utf-8")
    _touch(watcher, page)
    with caplog.at_level(logging.ERROR, logger="docsite.serve"):
        assert watcher.poll() is True
    assert "Rebuild failed" in caplog.text
    assert "Good" in (config.site_dir / "a.html").read_text(encoding="utf-8")


def test_layout_error_during_rebuild_keeps_previous_output(
    make_site, tmp_path: Path, caplog: pytest.LogCaptureFixture
) -> None:
    config = _preview(make_site, tmp_path, {"a.md": "# A\n", "b.md": "# B\n"})
    before = sorted(p.relative_to(config.site_dir).as_posix() for p in config.site_dir.rglob("*"))
    watcher = Watcher(config)

    page = config.docs_dir / "b.md"
    page.write_text("---\ntemplate: missing.html\n---\n# B\n", encoding="utf-8")
    _touch(watcher, page)
    with caplog.at_level(logging.ERROR, logger="docsite.serve"):
        watcher.poll()
    assert "missing.html" in caplog.text
    after = sorted(p.relative_to(config.site_dir).as_posix() for p in config.site_dir.rglob("*"))
    assert after == before
    assert (config.site_dir / "b.html").exists()
    assert (config.site_dir / "search" / "search_index.json").exists()


def test_strict_override_survives_reload(make_site, tmp_path: Path, caplog: pytest.LogCaptureFixture) -> None:
    config = _preview(make_site, tmp_path, {"a.md": "# A\n[gone](missing.md)\n"})
    watcher = Watcher(config, strict=True)

    _touch(watcher, config.docs_dir / "a.md")
    with caplog.at_level(logging.ERROR, logger="docsite.serve"):
        watcher.poll()
    assert "strict mode" in caplog.text
    assert watcher.config.strict is False


def test_observer_is_joined_on_stop(make_site, tmp_path: Path) -> None:
    config = _preview(make_site, tmp_path, {"a.md": "# A\n"})
    watcher = Watcher(config, interval=0.1)
    assert watcher.watched_paths() == [(config.config_path.parent, False), (config.docs_dir, True)]

    watcher.start()
    observer = watcher.observer
    assert observer is not None and observer.is_alive()
    watcher.stop()
    assert not observer.is_alive()
    assert watcher.observer is None
