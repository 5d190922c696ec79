"""
serve.py

Responsibility: Local preview server.

The site is built into a temporary directory and served over HTTP. A watchdog observer
reports changes to the config file, `docs_dir` and the theme `custom_dir`; the main loop
rebuilds after a change, and a failed rebuild is logged while the previous output keeps
being served.
"""

from __future__ import annotations

import functools
import logging
import os
import tempfile
import threading
import time
from http.server import SimpleHTTPRequestHandler, ThreadingHTTPServer
from pathlib import Path

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers.polling import PollingObserver

from docsite.build import build_site
from docsite.config import SiteConfig, load_config

logger = logging.getLogger(__name__)

# Errors a rebuild may raise without taking the preview server down.
REBUILD_ERRORS: tuple[type[Exception], ...] = (ValueError, RuntimeError, OSError)

# Time to let a burst of events (editor save, git checkout) settle before rebuilding.
SETTLE_SECONDS = 0.2

# Events that do not change file contents.
_IGNORED_EVENTS = {"opened", "closed_no_write"}


class _QuietHandler(SimpleHTTPRequestHandler):
    def log_message(self, format: str, *args: object) -> None:  # noqa: A002 - stdlib signature
        logger.debug("%s - %s", self.address_string(), format % args)


def _is_within(path: Path, root: Path | None) -> bool:
    return root is not None and (path == root or root in path.parents)


class Watcher(FileSystemEventHandler):
    """
    Collects file system events for a site and rebuilds it on `poll()`.

    `strict` is the command-line override, re-applied on every config reload.
    """

    def __init__(self, config: SiteConfig, *, strict: bool | None = None, interval: float = 1.0) -> None:
        super().__init__()
        self.config = config
        self.strict = strict
        self.interval = interval
        self.changed = threading.Event()
        self.observer: PollingObserver | None = None

    def watched_paths(self) -> list[tuple[Path, bool]]:
        """(directory, recursive) pairs to schedule on the observer."""
        paths = [(self.config.config_path.parent, False), (self.config.docs_dir, True)]
        if self.config.theme.custom_dir is not None and self.config.theme.custom_dir.is_dir():
            paths.append((self.config.theme.custom_dir, True))
        return paths

    def is_relevant(self, path: Path) -> bool:
        if _is_within(path, self.config.site_dir):
            return False
        return (
            path == self.config.config_path
            or _is_within(path, self.config.docs_dir)
            or _is_within(path, self.config.theme.custom_dir)
        )

    def on_any_event(self, event: FileSystemEvent) -> None:
        if event.event_type in _IGNORED_EVENTS:
            return
        if event.is_directory and event.event_type == "modified":
            return
        paths = [event.src_path, getattr(event, "dest_path", "")]
        if any(p and self.is_relevant(Path(os.fsdecode(p)).resolve()) for p in paths):
            logger.debug("%s: %s", event.event_type, event.src_path)
            self.changed.set()

    def poll(self) -> bool:
        """Rebuild if a change was seen since the last poll; return whether it did."""
        if not self.changed.is_set():
            return False
        self.changed.clear()
        logger.info("Detected file changes, rebuilding...")
        try:
            # Reload so edits to the config file itself take effect.
            fresh = load_config(self.config.config_path, site_dir=self.config.site_dir, strict=self.strict)
            build_site(fresh)
            self.config = fresh
        except REBUILD_ERRORS as e:
            logger.error("Rebuild failed: %s", e)
        return True

    def start(self) -> None:
        observer = PollingObserver(timeout=self.interval)
        for path, recursive in self.watched_paths():
            observer.schedule(self, str(path), recursive=recursive)
        observer.start()
        self.observer = observer

    def stop(self) -> None:
        if self.observer is None:
            return
        self.observer.stop()
        self.observer.join()
        self.observer = None


def serve(
    config: SiteConfig,
    host: str = "127.0.0.1",
    port: int = 8000,
    *,
    watch: bool = True,
    strict: bool | None = None,
) -> None:
    with tempfile.TemporaryDirectory(prefix="docsite-serve-") as tmp:
        config = config.replace(site_dir=Path(tmp))
        build_site(config)

        handler = functools.partial(_QuietHandler, directory=os.fspath(config.site_dir))
        server = ThreadingHTTPServer((host, port), handler)
        thread = threading.Thread(target=server.serve_forever, name="docsite-server", daemon=True)
        watcher = Watcher(config, strict=strict) if watch else None
        thread.start()
        if watcher is not None:
            watcher.start()
        logger.info("Serving on http://%s:%d/", host, server.server_address[1])
        try:
            while True:
                if watcher is None:
                    thread.join(1.0)
                elif watcher.changed.wait(1.0):
                    time.sleep(SETTLE_SECONDS)
                    watcher.poll()
        except KeyboardInterrupt:
            logger.info("Shutting down...")
        finally:
            if watcher is not None:
                watcher.stop()
            server.shutdown()
            server.server_close()
            thread.join()
