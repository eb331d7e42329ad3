"""Detect build artifacts left behind by previous build cycles."""

from __future__ import annotations

import glob
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from .config import Settings

WILDCARD = "*"

# Characters that delimit the hash segment in names like app.ab12e.js or app-ab12e.js
_SEGMENT_BREAKS = frozenset(".-_~")

logger = logging.getLogger("build-tidy")


@dataclass(frozen=True)
class ProducedFile:
    """A file emitted by one build cycle."""

    name: str
    hash: str
    written: bool = True


@dataclass
class BuildCycle:
    """Files produced by one build cycle."""

    files: list[ProducedFile] = field(default_factory=list)
    hash: str | None = None

    @classmethod
    def from_stats(cls, stats: dict[str, Any]) -> BuildCycle:
        """Build a cycle from a webpack-style stats document.

        Every chunk contributes its ``files`` and ``auxiliaryFiles`` tagged with
        the chunk hash. Chunks without a ``rendered`` flag count as written.

        Raises:
            ValueError: If the document or a chunk is not a JSON object.

        """
        if not isinstance(stats, dict):
            raise ValueError("stats document must be a JSON object")

        files: list[ProducedFile] = []
        for chunk in stats.get("chunks") or []:
            if not isinstance(chunk, dict):
                raise ValueError(f"chunk entries must be objects, got {chunk!r}")
            chunk_hash = str(chunk.get("hash") or stats.get("hash") or "")
            written = bool(chunk.get("rendered", True))
            for name in [*(chunk.get("files") or []), *(chunk.get("auxiliaryFiles") or [])]:
                files.append(ProducedFile(name=str(name), hash=chunk_hash, written=written))
        return cls(files=files, hash=stats.get("hash"))


@dataclass(frozen=True)
class Candidate:
    """A stale file matched by a produced file's name pattern."""

    path: Path
    source: str
    pattern: str

    def __str__(self) -> str:
        return f"Candidate({self.path.name} <- {self.source})"


def locate_hash(name: str, token: str) -> int:
    """Find where a hash prefix is embedded in a file name.

    Prefers the first occurrence that forms a whole name segment, so
    ``ab12e`` in ``lib-ab12ef.ab12e.js`` resolves to the segment after the
    dot rather than the start of ``ab12ef``. Falls back to the first occurrence.

    Returns:
        Index of the occurrence, or -1 if the token is absent.

    """
    first = name.find(token)
    start = first
    while start >= 0:
        end = start + len(token)
        bounded_left = start == 0 or name[start - 1] in _SEGMENT_BREAKS
        bounded_right = end == len(name) or name[end] in _SEGMENT_BREAKS
        if bounded_left and bounded_right:
            return start
        start = name.find(token, start + 1)
    return first


class StaleArtifactMatcher:
    """Finds previous-cycle siblings of freshly produced files."""

    def __init__(self, settings: Settings) -> None:
        """Initialize the matcher.

        Args:
            settings: Resolved settings.

        """
        self.settings = settings

    def _full_path(self, name: str) -> str:
        return os.path.normpath(os.path.join(self.settings.output_path, name))

    def derive_pattern(self, produced: ProducedFile) -> str | None:
        """Build the glob pattern matching any-hash versions of a produced file.

        Args:
            produced: File emitted this cycle.

        Returns:
            Absolute glob pattern, or None if the hash is not in the file name.

        """
        token = produced.hash[: self.settings.hash_length]
        full_path = self._full_path(produced.name)
        directory, name = os.path.split(full_path)

        index = locate_hash(name, token) if token else -1
        if index < 0:
            logger.debug("Hash %r not found in %s", token, name)
            return None

        name_pattern = (
            glob.escape(name[:index]) + WILDCARD + glob.escape(name[index + len(token) :])
        )
        return os.path.join(glob.escape(directory), name_pattern)

    def current_outputs(self, cycle: BuildCycle) -> set[str]:
        """Full paths of every file in the cycle plus their sidecars."""
        outputs: set[str] = set()
        for produced in cycle.files:
            full_path = self._full_path(produced.name)
            outputs.add(full_path)
            outputs.update(full_path + suffix for suffix in self.settings.sidecar_suffixes)
        return outputs

    def find_stale(self, cycle: BuildCycle) -> list[Candidate]:
        """Find stale candidates for every written file of a cycle.

        Args:
            cycle: The cycle that just completed.

        Returns:
            Deduplicated candidates in discovery order.

        """
        keep = self.current_outputs(cycle)
        found: dict[str, Candidate] = {}

        for produced in cycle.files:
            if not produced.written:
                continue

            pattern = self.derive_pattern(produced)
            if pattern is None:
                continue

            patterns = [pattern, *(pattern + glob.escape(s) for s in self.settings.sidecar_suffixes)]
            for current in patterns:
                for match in sorted(glob.glob(current)):
                    path = os.path.normpath(match)
                    if path in keep or path in found or not os.path.isfile(path):
                        continue
                    found[path] = Candidate(path=Path(path), source=produced.name, pattern=current)

        logger.debug("Found %d stale files", len(found))
        return list(found.values())
