"""Remove stale hashed build artifacts after each build cycle."""

from .cleaner import Cleaner, CleanupOutcome, CleanupReport, UsageError
from .config import ConfigError, Settings, TidyConfig
from .matcher import BuildCycle, Candidate, ProducedFile, StaleArtifactMatcher
from .plugin import Compiler, TidyPlugin

__all__ = [
    "BuildCycle",
    "Candidate",
    "Cleaner",
    "CleanupOutcome",
    "CleanupReport",
    "Compiler",
    "ConfigError",
    "ProducedFile",
    "Settings",
    "StaleArtifactMatcher",
    "TidyConfig",
    "TidyPlugin",
    "UsageError",
]
