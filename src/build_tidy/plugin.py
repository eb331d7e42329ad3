"""Hooks build-tidy into a build pipeline's lifecycle events."""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from typing import TYPE_CHECKING, Protocol, runtime_checkable

from .cleaner import Cleaner, CleanupReport, Continuation, UsageError
from .matcher import BuildCycle, StaleArtifactMatcher

if TYPE_CHECKING:
    from .config import Settings, TidyConfig

AfterEmitHandler = Callable[[BuildCycle, Continuation], Awaitable[CleanupReport]]
BeforeRunHandler = Callable[[Continuation], Awaitable[CleanupReport]]


@runtime_checkable
class Compiler(Protocol):
    """The parts of a build pipeline build-tidy relies on."""

    output_path: str | None
    watch: bool

    def on_after_emit(self, handler: AfterEmitHandler) -> None:
        """Register a handler run after every build cycle has written its files."""
        ...

    def on_before_run(self, handler: BeforeRunHandler) -> None:
        """Register a handler run once before the first build cycle."""
        ...


class TidyPlugin:
    """Removes stale hashed artifacts after each build cycle."""

    def __init__(self, config: TidyConfig, logger: logging.Logger | None = None) -> None:
        self.config = config
        self.logger = logger or logging.getLogger("build-tidy")
        self.settings: Settings | None = None
        self.matcher: StaleArtifactMatcher | None = None
        self.cleaner: Cleaner | None = None

    def apply(self, compiler: Compiler) -> None:
        """Resolve settings from the compiler and register one lifecycle handler.

        Raises:
            ConfigError: If the compiler's output path is unusable.

        """
        self.settings = self.config.resolve(compiler.output_path)
        self.matcher = StaleArtifactMatcher(self.settings)
        self.cleaner = Cleaner(self.settings, self.logger)

        if self.settings.clean_output and not compiler.watch:
            compiler.on_before_run(self.before_run)
            self.logger.debug("Registered output wipe for %s", self.settings.output_path)
        else:
            compiler.on_after_emit(self.after_emit)
            self.logger.debug("Registered stale cleanup for %s", self.settings.output_path)

    async def after_emit(self, cycle: BuildCycle, done: Continuation) -> CleanupReport:
        """Remove files left over from earlier cycles.

        Args:
            cycle: The cycle that just wrote its files.
            done: Continuation called once with the error or None.

        Returns:
            Report of the pass.

        Raises:
            OSError: If a deletion failed, after done has been called.

        """
        if self.matcher is None or self.cleaner is None:
            raise UsageError("TidyPlugin.apply() must run before lifecycle handlers")
        candidates = self.matcher.find_stale(cycle)
        report = await self.cleaner.apply(candidates, done)
        report.raise_for_error()
        return report

    async def before_run(self, done: Continuation) -> CleanupReport:
        """Empty the output directory before the first cycle.

        Args:
            done: Continuation called once with the error or None.

        Returns:
            Report of the wipe.

        """
        if self.cleaner is None:
            raise UsageError("TidyPlugin.apply() must run before lifecycle handlers")
        report = await self.cleaner.wipe_output_directory(done)
        report.raise_for_error()
        return report
