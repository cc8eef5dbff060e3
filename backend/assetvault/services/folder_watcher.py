"""Local folder watcher with per-path debouncing.

Watchdog delivers events on its own thread; they are forwarded into the
asyncio loop, so the timer map and the in-flight set are only ever
touched from the loop thread.
"""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator, Awaitable, Callable
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from pathlib import Path

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

from assetvault.core.config import settings
from assetvault.core.file_types import guess_content_type, has_allowed_extension
from assetvault.core.logging import get_logger
from assetvault.db.models import SourceProvider
from assetvault.services.errors import ConfigurationError, TransferError
from assetvault.services.sources import SourceEnumerator, SourceFile

logger = get_logger(__name__)

FileHandler = Callable[[SourceFile], Awaitable[None]]


class WatchEventHandler(FileSystemEventHandler):
    """Watchdog handler that hands file paths to a thread-safe callback."""

    def __init__(self, callback: Callable[[str, Path], None]):
        super().__init__()
        self.callback = callback

    def on_created(self, event: FileSystemEvent) -> None:
        if not event.is_directory:
            self.callback("created", Path(event.src_path))

    def on_modified(self, event: FileSystemEvent) -> None:
        if not event.is_directory:
            self.callback("modified", Path(event.src_path))

    def on_deleted(self, event: FileSystemEvent) -> None:
        if not event.is_directory:
            self.callback("deleted", Path(event.src_path))

    def on_moved(self, event: FileSystemEvent) -> None:
        # Exporters often write a temp file and rename it into place
        if not event.is_directory and getattr(event, "dest_path", None):
            self.callback("moved", Path(event.dest_path))


class FolderWatcher(SourceEnumerator):
    """Watches a folder and emits each file once it stops changing.

    A file is handed on only after ``stability_window`` seconds pass with
    no new event for its path. While a path is being handled, further
    events for it are ignored.

    Stabilized files go to ``handler`` when one is given (each in its own
    task), otherwise they are queued for ``iter_files()``.
    """

    def __init__(
        self,
        watch_path: Path | str,
        handler: FileHandler | None = None,
        stability_window: float | None = None,
        provider: SourceProvider = SourceProvider.LOCAL_EXPORT,
        label: str = "Export",
        recursive: bool = True,
    ):
        self.watch_path = Path(watch_path).expanduser()
        self.handler = handler
        self.stability_window = (
            stability_window if stability_window is not None else settings.watcher_stability_seconds
        )
        self.provider = provider
        self.label = label
        self.recursive = recursive

        self._loop: asyncio.AbstractEventLoop | None = None
        self._observer: Observer | None = None
        self._timers: dict[Path, asyncio.TimerHandle] = {}
        self._in_flight: set[Path] = set()
        self._tasks: set[asyncio.Task] = set()
        self._queue: asyncio.Queue[SourceFile | None] = asyncio.Queue()
        self._stopping = False

    @property
    def is_running(self) -> bool:
        return self._observer is not None and self._observer.is_alive()

    @property
    def pending_paths(self) -> set[Path]:
        """Paths waiting for their stability window to elapse."""
        return set(self._timers)

    @property
    def in_flight_paths(self) -> set[Path]:
        return set(self._in_flight)

    def describe(self) -> str:
        return self.label

    async def start(self) -> None:
        """Begin observing the watch path.

        Raises:
            ConfigurationError: If the path does not exist or is not a directory.
        """
        if not self.watch_path.is_dir():
            raise ConfigurationError(f"Watch path does not exist: {self.watch_path}")

        self._loop = asyncio.get_running_loop()
        self._stopping = False

        observer = Observer()
        observer.schedule(
            WatchEventHandler(self._forward_event),
            str(self.watch_path),
            recursive=self.recursive,
        )
        observer.start()
        self._observer = observer

        logger.info(
            "watcher_started",
            watch_path=str(self.watch_path),
            provider=self.provider.value,
            stability_window=self.stability_window,
        )

    async def stop(self) -> None:
        """Stop observing, drop pending timers and wait for in-flight files.

        Handlers already running are allowed to finish.
        """
        self._stopping = True

        if self._observer is not None:
            observer = self._observer
            self._observer = None
            observer.stop()
            await asyncio.to_thread(observer.join, 5)

        for timer in self._timers.values():
            timer.cancel()
        dropped = len(self._timers)
        self._timers.clear()

        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)

        self._queue.put_nowait(None)
        logger.info("watcher_stopped", watch_path=str(self.watch_path), pending_dropped=dropped)

    def _forward_event(self, event_type: str, path: Path) -> None:
        """Runs on the watchdog thread."""
        loop = self._loop
        if loop is None or self._stopping or loop.is_closed():
            return
        loop.call_soon_threadsafe(self._on_event, event_type, path)

    def _on_event(self, event_type: str, path: Path) -> None:
        if self._stopping:
            return

        if path.name.startswith("."):
            return
        if not has_allowed_extension(path.name):
            logger.debug("watcher_file_filtered", path=str(path))
            return

        if event_type == "deleted":
            timer = self._timers.pop(path, None)
            if timer is not None:
                timer.cancel()
            return

        if path in self._in_flight:
            logger.debug("watcher_event_ignored_in_flight", path=str(path))
            return

        timer = self._timers.pop(path, None)
        if timer is not None:
            timer.cancel()

        loop = self._loop or asyncio.get_running_loop()
        self._timers[path] = loop.call_later(self.stability_window, self._on_stable, path)

    def _on_stable(self, path: Path) -> None:
        self._timers.pop(path, None)
        if self._stopping or path in self._in_flight:
            return
        if not path.is_file():
            logger.debug("watcher_file_vanished", path=str(path))
            return

        try:
            source_file = self.source_file_for(path)
        except OSError as e:
            logger.warning("watcher_stat_failed", path=str(path), error=str(e))
            return

        self._in_flight.add(path)
        logger.info("watcher_file_stable", path=str(path), size=source_file.size)

        if self.handler is None:
            self._queue.put_nowait(source_file)
            return

        task = asyncio.ensure_future(self._run_handler(path, source_file))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _run_handler(self, path: Path, source_file: SourceFile) -> None:
        try:
            await self.handler(source_file)
        except Exception:
            logger.exception("watcher_handler_failed", path=str(path))
        finally:
            self._in_flight.discard(path)

    def source_file_for(self, path: Path) -> SourceFile:
        """Describe a local file; the revision is its modification time."""
        stat = path.stat()
        modified = datetime.fromtimestamp(stat.st_mtime, tz=timezone.utc).isoformat()
        try:
            file_id = path.relative_to(self.watch_path).as_posix()
        except ValueError:
            file_id = path.name

        return SourceFile(
            provider=self.provider,
            file_id=file_id,
            name=path.name,
            revision=modified,
            mime_type=guess_content_type(path.name),
            size=stat.st_size,
            local_path=path,
            source_metadata={
                "localPath": str(path),
                "modifiedTime": modified,
            },
        )

    async def iter_files(self) -> AsyncIterator[SourceFile]:
        """Stream stabilized files until the watcher is stopped.

        A yielded file stays in flight until the consumer asks for the
        next one.
        """
        while True:
            source_file = await self._queue.get()
            if source_file is None:
                return
            try:
                yield source_file
            finally:
                if source_file.local_path is not None:
                    self._in_flight.discard(source_file.local_path)

    @asynccontextmanager
    async def open_local(self, source_file: SourceFile) -> AsyncIterator[Path]:
        path = source_file.local_path
        if path is None or not path.is_file():
            raise TransferError(f"Watched file disappeared: {source_file.name}", file_id=source_file.file_id)
        yield path
