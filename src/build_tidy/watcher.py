"""Build pipeline host driven by a stats file, watched with watchdog."""

from __future__ import annotations

import asyncio
import json
import logging
from pathlib import Path
from typing import TYPE_CHECKING, Any, Callable

from watchdog.events import FileCreatedEvent, FileModifiedEvent, FileMovedEvent, FileSystemEventHandler
from watchdog.observers import Observer

from .matcher import BuildCycle

if TYPE_CHECKING:
    from watchdog.events import FileSystemEvent

    from .cleaner import CleanupReport
    from .plugin import AfterEmitHandler, BeforeRunHandler


class StatsEventHandler(FileSystemEventHandler):
    """Signals when the stats file is (re)written."""

    def __init__(self, stats_path: Path, callback: Callable[[], None], logger: logging.Logger) -> None:
        """Initialize the event handler.

        Args:
            stats_path: Stats file to track.
            callback: Function to call when the stats file changes.
            logger: Logger instance.

        """
        super().__init__()
        self.stats_path = stats_path.resolve()
        self.callback = callback
        self.logger = logger

    def on_created(self, event: FileSystemEvent) -> None:
        """Handle file creation events.

        Args:
            event: File system event.

        """
        if isinstance(event, FileCreatedEvent) and not event.is_directory:
            self._check_path(Path(event.src_path))

    def on_modified(self, event: FileSystemEvent) -> None:
        """Handle file modification events.

        Args:
            event: File system event.

        """
        if isinstance(event, FileModifiedEvent) and not event.is_directory:
            self._check_path(Path(event.src_path))

    def on_moved(self, event: FileSystemEvent) -> None:
        """Handle move events (bundlers often write to a temp file and rename)."""
        if isinstance(event, FileMovedEvent) and not event.is_directory:
            self._check_path(Path(event.dest_path))

    def _check_path(self, path: Path) -> None:
        """Notify if path is the tracked stats file.

        Args:
            path: Path to check.

        """
        if path.resolve() == self.stats_path:
            self.logger.debug("Stats file changed: %s", path.name)
            self.callback()


class StatsFileCompiler:
    """Replays build cycles recorded in a webpack-style stats JSON file."""

    def __init__(
        self,
        stats_path: Path,
        output_path: str | None = None,
        *,
        watch: bool = False,
        logger: logging.Logger | None = None,
    ) -> None:
        """Initialize the host.

        Args:
            stats_path: Stats file written by the build.
            output_path: Output directory. Read from the stats file if None.
            watch: Whether this is a watch session.
            logger: Logger instance.

        """
        self.stats_path = stats_path
        self.watch = watch
        self.logger = logger or logging.getLogger("build-tidy")
        self.output_path = output_path
        if self.output_path is None and stats_path.exists():
            self.output_path = self._read_stats().get("outputPath")

        self._after_emit: list[AfterEmitHandler] = []
        self._before_run: list[BeforeRunHandler] = []
        self._observer: Observer | None = None
        self._changes: asyncio.Queue[None] | None = None
        self._running = False

    def on_after_emit(self, handler: AfterEmitHandler) -> None:
        """Register a handler run after every cycle.

        Args:
            handler: Coroutine receiving the cycle and a continuation.

        """
        self._after_emit.append(handler)

    def on_before_run(self, handler: BeforeRunHandler) -> None:
        """Register a handler run once before the first cycle.

        Args:
            handler: Coroutine receiving a continuation.

        """
        self._before_run.append(handler)

    def _read_stats(self) -> dict[str, Any]:
        with self.stats_path.open(encoding="utf-8") as f:
            stats = json.load(f)
        if not isinstance(stats, dict):
            raise ValueError(f"{self.stats_path.name} is not a JSON object")
        return stats

    def read_cycle(self) -> BuildCycle:
        """Parse the current stats file into a build cycle."""
        return BuildCycle.from_stats(self._read_stats())

    def _done(self, stage: str) -> Callable[[BaseException | None], None]:
        def done(error: BaseException | None) -> None:
            if error is None:
                self.logger.debug("%s finished", stage)
            else:
                self.logger.debug("%s failed: %s", stage, error)

        return done

    async def before_run(self) -> list[CleanupReport]:
        """Fire the before-run handlers."""
        return [await handler(self._done("before-run")) for handler in self._before_run]

    async def emit(self) -> list[CleanupReport]:
        """Read the stats file and fire the after-emit handlers."""
        cycle = self.read_cycle()
        return [await handler(cycle, self._done("after-emit")) for handler in self._after_emit]

    async def run(self) -> list[CleanupReport]:
        """Run one build session: before-run handlers, then a single cycle."""
        reports = await self.before_run()
        reports.extend(await self.emit())
        return reports

    def _on_stats_changed(self, loop: asyncio.AbstractEventLoop) -> None:
        if self._changes is not None:
            loop.call_soon_threadsafe(self._changes.put_nowait, None)

    def start(self) -> None:
        """Start observing the stats file."""
        if self._observer is not None:
            return

        loop = asyncio.get_running_loop()
        self._changes = asyncio.Queue()
        handler = StatsEventHandler(self.stats_path, lambda: self._on_stats_changed(loop), self.logger)

        self._observer = Observer()
        self._observer.schedule(handler, str(self.stats_path.parent.resolve()), recursive=False)
        self._observer.start()
        self._running = True
        self.logger.info("Watching stats file: %s", self.stats_path)

    def stop(self) -> None:
        """Stop observing the stats file."""
        self._running = False
        if self._changes is not None:
            self._changes.put_nowait(None)
        if self._observer is not None:
            self._observer.stop()
            self._observer.join(timeout=5.0)
            self._observer = None
            self.logger.info("Stats watcher stopped")

    @property
    def is_running(self) -> bool:
        """Check if the stats watcher is running."""
        return self._running

    async def watch_forever(self) -> None:
        """Run the first cycle, then one cycle per stats file change until stopped."""
        await self.before_run()
        self.start()
        if self.stats_path.exists():
            self._changes.put_nowait(None)

        try:
            while self._running:
                await self._changes.get()
                if not self._running:
                    break
                # Collapse bursts of writes into a single cycle
                while not self._changes.empty():
                    self._changes.get_nowait()
                try:
                    await self.emit()
                except (OSError, ValueError) as e:
                    self.logger.error("Cleanup cycle failed: %s", e)
        finally:
            self.stop()
