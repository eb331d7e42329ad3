"""Configuration management for build-tidy."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

# Option aliases accepted from JavaScript-style build configs
_ALIASES = {
    "dryRun": "dry_run",
    "hashLength": "hash_length",
    "cleanOutput": "clean_output",
    "sidecarSuffixes": "sidecar_suffixes",
}


class ConfigError(ValueError):
    """Raised when the resolved configuration cannot be used."""


def parse_bool(value: Any, default: bool) -> bool:
    """Interpret a YAML/CLI value as a boolean.

    Args:
        value: Raw value (bool, int, str or None).
        default: Returned when value is None.

    Returns:
        Parsed boolean.

    """
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    if isinstance(value, int):
        return value != 0
    return str(value).strip().lower() in {"true", "yes", "on", "1"}


@dataclass(frozen=True)
class Settings:
    """Resolved, immutable settings for one plugin instance."""

    output_path: str
    dry_run: bool = False
    hash_length: int = 5
    clean_output: bool = False
    sidecar_suffixes: tuple[str, ...] = (".map",)

    @property
    def output_dir(self) -> Path:
        """Output path as a Path."""
        return Path(self.output_path)


@dataclass
class TidyConfig:
    """Options for build-tidy."""

    # Log what would be removed instead of removing it
    dry_run: bool = False

    # Number of leading hash characters embedded in output file names
    hash_length: int = 5

    # Wipe the output directory before the first cycle of a one-off build
    clean_output: bool = False

    # Derived files that share a produced file's name (e.g. app.ab12e.js.map)
    sidecar_suffixes: list[str] = field(default_factory=lambda: [".map"])

    # Logging
    log_file: Path | None = None
    log_level: str = "INFO"

    @classmethod
    def get_config_path(cls) -> Path:
        """Get the default configuration file path."""
        return Path.cwd() / "build-tidy.yaml"

    @classmethod
    def load(cls, config_path: Path | None = None) -> TidyConfig:
        """Load configuration from YAML file.

        Args:
            config_path: Path to config file. Uses default if None.

        Returns:
            Loaded configuration.

        """
        if config_path is None:
            config_path = cls.get_config_path()

        if not config_path.exists():
            return cls()

        with config_path.open(encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}

        return cls.from_dict(data)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> TidyConfig:
        """Create config from a partial options dictionary.

        Unknown keys are ignored.
        """
        config = cls()
        data = {_ALIASES.get(key, key): value for key, value in data.items()}

        if "dry_run" in data:
            config.dry_run = parse_bool(data["dry_run"], config.dry_run)
        if "hash_length" in data:
            config.hash_length = int(data["hash_length"])
        if "clean_output" in data:
            config.clean_output = parse_bool(data["clean_output"], config.clean_output)
        if "sidecar_suffixes" in data:
            config.sidecar_suffixes = [str(s) for s in data["sidecar_suffixes"] or []]

        # Logging
        if "logging" in data:
            logging_cfg = data["logging"] or {}
            if logging_cfg.get("file"):
                config.log_file = Path(os.path.expanduser(logging_cfg["file"]))
            if "level" in logging_cfg:
                config.log_level = str(logging_cfg["level"]).upper()

        return config

    def resolve(self, output_path: str | os.PathLike[str] | None) -> Settings:
        """Validate the build's output path and freeze the settings.

        Args:
            output_path: Output directory reported by the build pipeline.

        Returns:
            Settings with a normalized output path ending in a separator.

        Raises:
            ConfigError: If the output path is missing or is the filesystem root,
                or hash_length is not positive.

        """
        if output_path is None or not str(output_path).strip():
            raise ConfigError("No output path found in the build config.")

        normalized = os.path.normpath(os.fspath(output_path))
        # Relative paths count too: ".." chains can climb to the root
        resolved = Path(normalized).resolve()
        if resolved.parent == resolved:
            raise ConfigError("Root is not a valid output path.")

        if self.hash_length < 1:
            raise ConfigError(f"hash_length must be positive, got {self.hash_length}")

        if not normalized.endswith(os.sep):
            normalized += os.sep

        return Settings(
            output_path=normalized,
            dry_run=self.dry_run,
            hash_length=self.hash_length,
            clean_output=self.clean_output,
            sidecar_suffixes=tuple(self.sidecar_suffixes),
        )

    def save(self, config_path: Path | None = None) -> None:
        """Save configuration to YAML file.

        Args:
            config_path: Path to save config. Uses default if None.

        """
        if config_path is None:
            config_path = self.get_config_path()

        config_path.parent.mkdir(parents=True, exist_ok=True)

        data = {
            "dry_run": self.dry_run,
            "hash_length": self.hash_length,
            "clean_output": self.clean_output,
            "sidecar_suffixes": list(self.sidecar_suffixes),
            "logging": {
                "file": str(self.log_file) if self.log_file else None,
                "level": self.log_level,
            },
        }

        with config_path.open("w", encoding="utf-8") as f:
            yaml.dump(data, f, default_flow_style=False, sort_keys=False)
