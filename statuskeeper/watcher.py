"""
Configuration file watcher using watchdog.
"""

from collections.abc import Callable
from pathlib import Path
from typing import TYPE_CHECKING

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer as WatchdogObserver

from statuskeeper.logging_config import get_logger

if TYPE_CHECKING:
    from watchdog.observers.api import BaseObserver

logger = get_logger(__name__)


class ConfigFileWatcher:
    """
    Calls back when the configuration file is written, created or replaced.

    This only shortens the delay before a change is noticed; the periodic
    config-watch loop still reloads on its own schedule.
    """

    def __init__(self, path: str | Path, callback: Callable[[], None]) -> None:
        self.path = Path(path).resolve()
        self.callback = callback
        self.observer: BaseObserver | None = None

    def _create_event_handler(self) -> FileSystemEventHandler:
        callback = self.callback
        watch_path = self.path

        class Handler(FileSystemEventHandler):
            """Forwards events for the watched file only."""

            def _matches(self, path: str | bytes) -> bool:
                if isinstance(path, bytes):
                    path = path.decode()
                return Path(path).resolve() == watch_path

            def on_any_event(self, event: FileSystemEvent) -> None:
                if event.is_directory or event.event_type not in ("modified", "created", "moved"):
                    return
                dest = getattr(event, "dest_path", "")
                if self._matches(event.src_path) or (dest and self._matches(dest)):
                    logger.debug("Configuration file event: %s", event.event_type)
                    callback()

        return Handler()

    def start(self) -> None:
        """Start watching the file's directory."""
        self.observer = WatchdogObserver()
        # Directory watch, so atomically replaced files are still seen
        self.observer.schedule(self._create_event_handler(), str(self.path.parent), recursive=False)
        self.observer.start()
        logger.info("Watching %s for changes", self.path)

    def stop(self) -> None:
        """Stop watching."""
        if self.observer:
            self.observer.stop()
            self.observer.join()
            self.observer = None
