"""Debounced file-save trigger built on watchdog."""

import asyncio
import threading
from collections.abc import Callable, Coroutine, Iterable
from pathlib import Path
from typing import Any

import structlog
from watchdog.events import (
    FileModifiedEvent,
    FileMovedEvent,
    FileSystemEvent,
    FileSystemEventHandler,
)
from watchdog.observers import Observer

logger = structlog.get_logger()

DEFAULT_EXTENSIONS: tuple[str, ...] = (
    ".ts",
    ".tsx",
    ".js",
    ".jsx",
    ".lua",
    ".luau",
    ".json",
)

TEMP_FILE_SUFFIXES: tuple[str, ...] = (
    ".swp",
    ".swo",
    ".swn",
    ".tmp",
    ".temp",
    "~",
)

IGNORED_DIRECTORIES = frozenset({".git", "node_modules"})

SaveCallback = Callable[[str], Coroutine[Any, Any, object]]


def _event_path(event: FileSystemEvent) -> str:
    raw = event.dest_path if isinstance(event, FileMovedEvent) else event.src_path
    if isinstance(raw, str):
        return raw
    return bytes(raw).decode("utf-8", errors="replace")


def is_save_candidate(path: str, extensions: Iterable[str]) -> bool:
    """Check whether a written path should trigger a restart.

    Args:
        path: File path reported by the observer.
        extensions: Lower-case extensions that count as source files.

    Returns:
        True for watched source files outside ignored directories.
    """
    p = Path(path)
    if IGNORED_DIRECTORIES.intersection(p.parts):
        return False
    name = p.name
    if name.startswith(".#") or name.endswith(TEMP_FILE_SUFFIXES):
        return False
    return p.suffix.lower() in set(extensions)


class SaveDebouncer(FileSystemEventHandler):
    """Watchdog handler collapsing bursts of writes into one save per path.

    Attributes:
        debounce_ms: Debounce window in milliseconds.
    """

    def __init__(
        self,
        loop: asyncio.AbstractEventLoop,
        callback: SaveCallback,
        extensions: Iterable[str] = DEFAULT_EXTENSIONS,
        debounce_ms: int = 200,
    ) -> None:
        """Initialize debouncing handler.

        Args:
            loop: Event loop for scheduling async callbacks.
            callback: Async function called with the saved path.
            extensions: File extensions that count as saves.
            debounce_ms: Debounce window in milliseconds.
        """
        super().__init__()
        self._loop = loop
        self._callback = callback
        self._extensions = tuple(ext.lower() for ext in extensions)
        self.debounce_ms = debounce_ms
        self._pending: dict[str, threading.Timer] = {}
        self._lock = threading.Lock()
        self._coalesced_count = 0

    @property
    def coalesced_events(self) -> int:
        """Number of writes folded into an already pending save."""
        return self._coalesced_count

    def _emit(self, path: str) -> None:
        with self._lock:
            if self._pending.pop(path, None) is None:
                return

        logger.info("file_saved", path=path)
        try:
            future = asyncio.run_coroutine_threadsafe(self._callback(path), self._loop)
            future.result(timeout=5.0)
        except Exception as e:
            logger.error("save_callback_error", error=str(e), path=path)

    def on_any_event(self, event: FileSystemEvent) -> None:
        """Schedule a debounced save for watched file writes.

        Only content writes and renames onto a watched path count as saves.
        Creating a file alone does not.

        Args:
            event: Raw watchdog filesystem event.
        """
        if event.is_directory:
            return
        if not isinstance(event, (FileModifiedEvent, FileMovedEvent)):
            return

        path = _event_path(event)
        if not is_save_candidate(path, self._extensions):
            return

        with self._lock:
            existing = self._pending.get(path)
            if existing is not None:
                existing.cancel()
                self._coalesced_count += 1
            timer = threading.Timer(self.debounce_ms / 1000.0, self._emit, args=(path,))
            timer.daemon = True
            self._pending[path] = timer
            timer.start()

    def cancel_all(self) -> None:
        """Cancel all pending timers during shutdown."""
        with self._lock:
            for timer in self._pending.values():
                timer.cancel()
            self._pending.clear()


class SaveWatcher:
    """Watches project directories and reports file saves.

    Attributes:
        paths: Directories being watched.
    """

    def __init__(
        self,
        paths: list[str],
        loop: asyncio.AbstractEventLoop,
        on_save: SaveCallback,
        extensions: Iterable[str] = DEFAULT_EXTENSIONS,
        debounce_ms: int = 200,
    ) -> None:
        """Initialize save watcher.

        Args:
            paths: Directories to watch recursively.
            loop: Event loop for async callbacks.
            on_save: Async callback receiving the saved path.
            extensions: File extensions that count as saves.
            debounce_ms: Debounce window in milliseconds.
        """
        self._paths = paths
        self._handler = SaveDebouncer(loop, on_save, extensions, debounce_ms)
        self._observer: Observer | None = None  # pyright: ignore[reportInvalidTypeForm]

    @property
    def paths(self) -> list[str]:
        """Directories being watched."""
        return self._paths.copy()

    @property
    def coalesced_events(self) -> int:
        """Number of writes folded by debouncing."""
        return self._handler.coalesced_events

    def start(self) -> None:
        """Start the filesystem observer.

        Raises:
            ValueError: If a path does not exist or is not a directory.
        """
        for path in self._paths:
            p = Path(path)
            if not p.exists():
                raise ValueError(f"Watch path does not exist: {path}")
            if not p.is_dir():
                raise ValueError(f"Watch path is not a directory: {path}")

        observer = Observer()
        for path in self._paths:
            observer.schedule(self._handler, path, recursive=True)
            logger.info("watcher_scheduled", path=path)

        observer.start()
        self._observer = observer
        logger.info("watcher_started", paths=self._paths)

    def stop(self) -> None:
        """Stop the filesystem observer."""
        self._handler.cancel_all()

        if self._observer is not None:
            self._observer.stop()
            self._observer.join(timeout=5.0)
            self._observer = None

        logger.info("watcher_stopped")
