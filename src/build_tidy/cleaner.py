"""Removal of stale build artifacts and full output-directory wipes."""

from __future__ import annotations

import asyncio
import logging
import os
import shutil
from collections.abc import Awaitable, Callable, Iterable
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .config import Settings
    from .matcher import Candidate

LOG_DELETED = "DELETED"
LOG_DRY_DELETE = "[dry-run] DELETE"
LOG_CLEAN = "CLEAN"
LOG_DRY_CLEAN = "[dry-run] CLEAN"

Continuation = Callable[[BaseException | None], None]


class UsageError(RuntimeError):
    """Raised when the host pipeline omits a required continuation."""


@dataclass
class CleanupOutcome:
    """Result for a single path."""

    path: Path
    action: str  # "deleted", "reported", "failed"
    error: str | None = None


@dataclass
class CleanupReport:
    """Outcome of one cleanup pass."""

    outcomes: list[CleanupOutcome] = field(default_factory=list)
    error: OSError | None = None

    @property
    def success(self) -> bool:
        return self.error is None

    def paths(self, action: str) -> list[Path]:
        """Paths with the given action, in processing order."""
        return [o.path for o in self.outcomes if o.action == action]

    def raise_for_error(self) -> None:
        """Re-raise the error that stopped the pass, if any."""
        if self.error is not None:
            raise self.error


def _remove(path: Path) -> None:
    if path.is_dir() and not path.is_symlink():
        shutil.rmtree(path)
    else:
        path.unlink()


def _list_files(directory: Path) -> list[Path]:
    return sorted(p for p in directory.rglob("*") if p.is_file())


class Cleaner:
    """Deletes, or reports in dry-run mode, build artifacts."""

    def __init__(self, settings: Settings, logger: logging.Logger) -> None:
        """Initialize the cleaner.

        Args:
            settings: Resolved settings.
            logger: Logger instance.

        """
        self.settings = settings
        self.logger = logger

    async def apply(
        self,
        candidates: Iterable[Candidate],
        on_complete: Continuation | None = None,
    ) -> CleanupReport:
        """Delete stale candidates one at a time.

        The first failing deletion stops the pass. Files removed before it stay
        removed. ``on_complete`` is called exactly once with the error or None.

        Args:
            candidates: Stale files from the matcher.
            on_complete: Completion continuation.

        Returns:
            Report of the pass.

        """
        report = CleanupReport()
        try:
            for candidate in candidates:
                path = candidate.path
                if self.settings.dry_run:
                    self.logger.info("%s %s", LOG_DRY_DELETE, path.name)
                    report.outcomes.append(CleanupOutcome(path=path, action="reported"))
                    continue

                try:
                    await asyncio.to_thread(path.unlink)
                except OSError as e:
                    self.logger.error("Error deleting %s: %s", path, e)
                    report.outcomes.append(CleanupOutcome(path=path, action="failed", error=str(e)))
                    report.error = e
                    break

                self.logger.info("%s %s", LOG_DELETED, path.name)
                report.outcomes.append(CleanupOutcome(path=path, action="deleted"))
        except BaseException as e:
            if on_complete is not None:
                on_complete(e)
            raise

        if on_complete is not None:
            on_complete(report.error)
        return report

    def wipe_output_directory(self, on_complete: Continuation | None) -> Awaitable[CleanupReport]:
        """Empty the output directory before the first build cycle.

        Args:
            on_complete: Completion continuation. Required.

        Returns:
            Awaitable resolving to the report of the wipe.

        Raises:
            UsageError: If no continuation was provided.

        """
        if on_complete is None:
            raise UsageError("No callback provided for async event")
        return self._wipe(on_complete)

    async def _wipe(self, on_complete: Continuation) -> CleanupReport:
        report = CleanupReport()
        directory = self.settings.output_dir

        try:
            if not directory.exists():
                self.logger.debug("Nothing to clean: %s does not exist", directory)
            elif self.settings.dry_run:
                await self._report_wipe(directory, report)
            else:
                await self._empty(directory, report)
        except OSError as e:
            self.logger.error("Error cleaning %s: %s", directory, e)
            report.error = e
        except BaseException as e:
            on_complete(e)
            raise

        on_complete(report.error)
        return report

    async def _report_wipe(self, directory: Path, report: CleanupReport) -> None:
        self.logger.info("%s %s", LOG_DRY_CLEAN, self.settings.output_path)
        for path in await asyncio.to_thread(_list_files, directory):
            self.logger.info("%s %s", LOG_DRY_CLEAN, os.path.relpath(path, directory))
            report.outcomes.append(CleanupOutcome(path=path, action="reported"))

    async def _empty(self, directory: Path, report: CleanupReport) -> None:
        self.logger.info("%s %s", LOG_CLEAN, self.settings.output_path)
        for child in sorted(directory.iterdir()):
            try:
                await asyncio.to_thread(_remove, child)
            except OSError as e:
                report.outcomes.append(CleanupOutcome(path=child, action="failed", error=str(e)))
                raise
            report.outcomes.append(CleanupOutcome(path=child, action="deleted"))
