"""Filesystem watching on top of watchdog."""

import logging
import os
from pathlib import Path
from typing import Any, Callable, Optional, Union

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

from .dispatcher import EventKind

logger = logging.getLogger(__name__)

EventCallback = Callable[[EventKind, Path], Any]


class LocalChangeHandler(FileSystemEventHandler):
    """Translates watchdog events into ``EventKind`` notifications.

    A move is reported as the removal of the source followed by the
    creation of the destination.
    """

    def __init__(self, callback: EventCallback):
        """Initialize event handler.

        Args:
            callback: Called with (kind, path) for every notification
        """
        self.callback = callback

    def on_created(self, event: FileSystemEvent) -> None:
        """Handle file or directory creation."""
        kind = EventKind.CREATED_DIRECTORY if event.is_directory else EventKind.CREATED
        self._emit(kind, event.src_path)

    def on_modified(self, event: FileSystemEvent) -> None:
        """Handle file modification (directory mtime changes are noise)."""
        if not event.is_directory:
            self._emit(EventKind.MODIFIED, event.src_path)

    def on_deleted(self, event: FileSystemEvent) -> None:
        """Handle file or directory deletion."""
        kind = EventKind.REMOVED_DIRECTORY if event.is_directory else EventKind.REMOVED
        self._emit(kind, event.src_path)

    def on_moved(self, event: FileSystemEvent) -> None:
        """Handle a rename as removal plus creation."""
        if event.is_directory:
            self._emit(EventKind.REMOVED_DIRECTORY, event.src_path)
            self._emit(EventKind.CREATED_DIRECTORY, event.dest_path)
        else:
            self._emit(EventKind.REMOVED, event.src_path)
            self._emit(EventKind.CREATED, event.dest_path)

    def _emit(self, kind: EventKind, raw_path: Union[str, bytes]) -> None:
        path = Path(os.fsdecode(raw_path))
        logger.debug(f"Local event: {kind.value} {path}")
        try:
            self.callback(kind, path)
        except Exception:
            # Keep the observer thread alive
            logger.exception(f"Failed to handle {kind.value} event for {path}")


class DirectoryWatcher:
    """Watches a directory tree and forwards events to a callback."""

    def __init__(self, directory: Union[str, Path], callback: EventCallback):
        """Initialize the watcher.

        Args:
            directory: Directory to watch recursively
            callback: Called with (kind, path) for every notification
        """
        self.directory = Path(directory)
        self.handler = LocalChangeHandler(callback)
        self._observer: Optional[Any] = None

    @property
    def is_running(self) -> bool:
        """Whether the observer thread is alive."""
        return self._observer is not None and self._observer.is_alive()

    def start(self) -> None:
        """Start watching."""
        if self._observer is not None:
            return
        observer = Observer()
        observer.schedule(self.handler, str(self.directory), recursive=True)
        observer.start()
        self._observer = observer
        logger.info(f"Watching {self.directory}")

    def stop(self, timeout: Optional[float] = 5.0) -> None:
        """Stop watching and wait for the observer thread."""
        if self._observer is None:
            return
        self._observer.stop()
        self._observer.join(timeout)
        self._observer = None
        logger.debug(f"Stopped watching {self.directory}")

    def __enter__(self) -> "DirectoryWatcher":
        self.start()
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.stop()
