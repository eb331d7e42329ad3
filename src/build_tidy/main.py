"""Main entry point for build-tidy."""

from __future__ import annotations

import argparse
import asyncio
import logging
import signal
import sys
from pathlib import Path

from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from .cleaner import Cleaner
from .config import ConfigError, TidyConfig
from .matcher import BuildCycle, ProducedFile, StaleArtifactMatcher
from .plugin import TidyPlugin
from .watcher import StatsFileCompiler

_VALID_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


def setup_logging(config: TidyConfig) -> logging.Logger:
    """Set up the build-tidy logger.

    Returns:
        Configured logger instance.

    Raises:
        ValueError: If the configured log level is unknown.

    """
    if config.log_level not in _VALID_LOG_LEVELS:
        raise ValueError(f"Invalid log_level: {config.log_level!r}")

    logger = logging.getLogger("build-tidy")
    logger.setLevel(getattr(logging, config.log_level))

    # Clear existing handlers to avoid duplicates when called twice
    if logger.handlers:
        logger.handlers.clear()

    console_handler = RichHandler(
        console=Console(stderr=True),
        show_time=False,
        show_path=False,
    )
    logger.addHandler(console_handler)

    if config.log_file is not None:
        config.log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(config.log_file)
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(
            logging.Formatter("%(asctime)s | %(levelname)s | %(message)s")
        )
        logger.addHandler(file_handler)

    return logger


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command line arguments.

    Returns:
        Parsed arguments.

    """
    parser = argparse.ArgumentParser(
        prog="build-tidy",
        description="Remove stale hashed build artifacts",
    )

    parser.add_argument(
        "--config",
        "-c",
        type=Path,
        default=None,
        help="Path to configuration file",
    )
    parser.add_argument(
        "--dry-run",
        "-n",
        action="store_true",
        help="Report files that would be deleted without deleting them",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    run_parser = subparsers.add_parser("run", help="Clean up after a single build")
    run_parser.add_argument("--stats", type=Path, required=True, help="Stats JSON written by the build")
    run_parser.add_argument("--output", default=None, help="Output directory (default: from stats)")
    run_parser.add_argument(
        "--clean",
        action="store_true",
        help="Wipe the output directory before the build instead",
    )

    watch_parser = subparsers.add_parser("watch", help="Clean up after every rebuild")
    watch_parser.add_argument("--stats", type=Path, required=True, help="Stats JSON written by the build")
    watch_parser.add_argument("--output", default=None, help="Output directory (default: from stats)")

    scan_parser = subparsers.add_parser("scan", help="List stale files without deleting")
    scan_parser.add_argument("--output", "-o", required=True, help="Output directory")
    scan_parser.add_argument("--hash", required=True, help="Hash of the current build")
    scan_parser.add_argument("files", nargs="+", help="Files produced by the current build")

    wipe_parser = subparsers.add_parser("wipe", help="Empty the output directory")
    wipe_parser.add_argument("--output", "-o", required=True, help="Output directory")

    config_parser = subparsers.add_parser("config", help="Configuration management")
    config_parser.add_argument(
        "--init",
        action="store_true",
        help="Create default configuration file",
    )
    config_parser.add_argument(
        "--show",
        action="store_true",
        help="Show current configuration",
    )

    return parser.parse_args(argv)


def cmd_scan(config: TidyConfig, args: argparse.Namespace) -> int:
    """Execute scan command.

    Returns:
        Exit code.

    """
    console = Console()
    settings = config.resolve(args.output)
    cycle = BuildCycle(files=[ProducedFile(name=f, hash=args.hash) for f in args.files], hash=args.hash)
    candidates = StaleArtifactMatcher(settings).find_stale(cycle)

    if not candidates:
        console.print("[green]No stale files found[/green]")
        return 0

    table = Table(title=f"Found {len(candidates)} stale files")
    table.add_column("Stale File", style="red")
    table.add_column("Current", style="green")
    table.add_column("Location", style="dim")

    for candidate in candidates:
        table.add_row(
            candidate.path.name,
            Path(candidate.source).name,
            str(candidate.path.parent),
        )

    console.print(table)
    return 0


def cmd_wipe(config: TidyConfig, args: argparse.Namespace, logger: logging.Logger) -> int:
    """Execute wipe command.

    Returns:
        Exit code.

    """
    cleaner = Cleaner(config.resolve(args.output), logger)
    report = asyncio.run(cleaner.wipe_output_directory(lambda error: None))
    report.raise_for_error()
    return 0


def cmd_config(config: TidyConfig, args: argparse.Namespace) -> int:
    """Execute config command.

    Returns:
        Exit code.

    """
    console = Console()

    if args.init:
        config_path = args.config or TidyConfig.get_config_path()
        if config_path.exists():
            console.print(f"[yellow]Config already exists: {config_path}[/yellow]")
            return 1
        config.save(config_path)
        console.print(f"[green]Created config: {config_path}[/green]")
        return 0

    if args.show:
        table = Table(title="Current Configuration")
        table.add_column("Setting", style="cyan")
        table.add_column("Value", style="green")

        table.add_row("Dry run", str(config.dry_run))
        table.add_row("Hash length", str(config.hash_length))
        table.add_row("Clean output", str(config.clean_output))
        table.add_row("Sidecar suffixes", ", ".join(config.sidecar_suffixes))
        table.add_row("Log file", str(config.log_file) if config.log_file else "-")
        table.add_row("Log level", config.log_level)

        console.print(table)
        return 0

    console.print("[yellow]Use --init or --show[/yellow]")
    return 1


def cmd_run(config: TidyConfig, args: argparse.Namespace, logger: logging.Logger) -> int:
    """Execute run command.

    Returns:
        Exit code.

    """
    if args.clean:
        config.clean_output = True

    compiler = StatsFileCompiler(args.stats, args.output, watch=False, logger=logger)
    TidyPlugin(config, logger).apply(compiler)

    reports = asyncio.run(compiler.run())
    processed = sum(len(r.outcomes) for r in reports)
    logger.info("Processed %d files", processed)
    return 0


async def _watch(compiler: StatsFileCompiler) -> None:
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGTERM, signal.SIGINT):
        loop.add_signal_handler(sig, compiler.stop)
    await compiler.watch_forever()


def cmd_watch(config: TidyConfig, args: argparse.Namespace, logger: logging.Logger) -> int:
    """Execute watch command.

    Returns:
        Exit code.

    """
    compiler = StatsFileCompiler(args.stats, args.output, watch=True, logger=logger)
    TidyPlugin(config, logger).apply(compiler)
    asyncio.run(_watch(compiler))
    return 0


def main(argv: list[str] | None = None) -> int:
    """Main entry point.

    Returns:
        Exit code.

    """
    args = parse_args(argv)
    config = TidyConfig.load(args.config)
    if args.dry_run:
        config.dry_run = True

    # Default to showing the configuration
    if args.command is None:
        args.command, args.init, args.show = "config", False, True

    command = args.command
    if command == "config":
        return cmd_config(config, args)

    logger = setup_logging(config)
    console = Console(stderr=True)

    try:
        if command == "scan":
            return cmd_scan(config, args)
        elif command == "wipe":
            return cmd_wipe(config, args, logger)
        elif command == "run":
            return cmd_run(config, args, logger)
        elif command == "watch":
            return cmd_watch(config, args, logger)
    except ConfigError as e:
        console.print(f"[red]Configuration error: {e}[/red]")
        return 1
    except OSError as e:
        console.print(f"[red]Cleanup failed: {e}[/red]")
        return 1
    except ValueError as e:
        console.print(f"[red]Invalid stats file: {e}[/red]")
        return 1

    print(f"Unknown command: {command}")
    return 1


if __name__ == "__main__":
    sys.exit(main())
