"""Entry point for running error-autofixer.

This module provides the command line interface. It handles:
- Configuration loading
- Logging setup with secret sanitization
- ErrorFixer instantiation and lifecycle
- The scan / analyze / key management / cache commands

Results are printed to stdout; logs go to stderr.
"""

from __future__ import annotations

import argparse
import asyncio
import sys
from pathlib import Path
from typing import TYPE_CHECKING

import structlog

from error_autofixer._version import __version__

if TYPE_CHECKING:
    from error_autofixer.config.schema import FixerConfig
    from error_autofixer.core.fixer import ErrorFixer
    from error_autofixer.models.analysis import AnalysisResult
    from error_autofixer.models.error import CapturedError

log = structlog.get_logger()


def setup_logging(
    debug: bool = False,
    log_format: str = "console",
    file_path: Path | None = None,
    file_enabled: bool = False,
) -> None:
    """Configure structured logging with secret sanitization.

    Args:
        debug: Enable debug logging if True
        log_format: Output format ("json" or "console")
        file_path: Path to log file (if file logging enabled)
        file_enabled: Whether to enable file logging
    """
    from error_autofixer.utils.logging import LogFormat, LogLevel, configure_logging

    level = LogLevel.DEBUG if debug else LogLevel.WARNING
    fmt = LogFormat(log_format.lower()) if isinstance(log_format, str) else log_format

    configure_logging(
        level=level,
        log_format=fmt,
        file_path=file_path,
        file_enabled=file_enabled,
    )


def build_parser() -> argparse.ArgumentParser:
    """Build the command line parser."""
    parser = argparse.ArgumentParser(
        prog="error-autofixer",
        description="error-autofixer - Diagnose captured errors and apply suggested fixes",
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )

    parser.add_argument(
        "-c",
        "--config",
        type=Path,
        default=None,
        help="Path to configuration file (default: built-in defaults and environment)",
    )

    parser.add_argument(
        "-d",
        "--debug",
        action="store_true",
        help="Enable debug logging",
    )

    parser.add_argument(
        "--format",
        choices=["json", "console"],
        default="console",
        help="Log output format (default: console)",
    )

    commands = parser.add_subparsers(dest="command", required=True)

    scan = commands.add_parser("scan", help="List the errors found in a build log")
    scan.add_argument("--console-log", type=Path, required=True, help="Build output file")

    analyze = commands.add_parser("analyze", help="Diagnose one error from a build log")
    analyze.add_argument("--console-log", type=Path, required=True, help="Build output file")
    analyze.add_argument("--index", type=int, default=0, help="Error index as listed by scan")
    analyze.add_argument("--apply", action="store_true", help="Apply the suggested patch")
    analyze.add_argument("--yes", action="store_true", help="Do not ask before applying")

    test_key = commands.add_parser("test-key", help="Check that an API key is accepted")
    test_key.add_argument("key", nargs="?", default=None, help="Key to test (default: stored key)")

    set_key = commands.add_parser("set-key", help="Store the API key")
    set_key.add_argument("key", help="API key (empty string removes the stored key)")

    commands.add_parser("clear-cache", help="Delete all cached analysis results")
    commands.add_parser("status", help="Show configuration and cache state")

    return parser


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command line arguments.

    Returns:
        Parsed argument namespace
    """
    return build_parser().parse_args(argv)


def format_error_line(index: int, error: CapturedError) -> str:
    """One listing line for a captured error."""
    parts = [f"[{index}]", "compile" if error.is_compile_error else str(error.severity)]
    if error.error_code:
        parts.append(error.error_code)
    if error.file_path:
        parts.append(
            f"{error.file_path}:{error.line_number}" if error.line_number else error.file_path
        )
    parts.append(error.summary)
    return " ".join(parts)


def format_result(result: AnalysisResult) -> str:
    """Human-readable rendering of an analysis result."""
    lines = [
        f"Fixable:    {'yes' if result.fixable else 'no'}",
        f"Confidence: {result.confidence}",
    ]
    if result.file:
        lines.append(f"File:       {result.file}" + (f":{result.line}" if result.line else ""))
    lines += ["", "Diagnosis:", result.diagnosis, "", "Solution:", result.solution]
    return "\n".join(lines)


def _confirm(prompt: str) -> bool:
    try:
        answer = input(f"{prompt} [y/N] ")
    except EOFError:
        return False
    return answer.strip().lower() in ("y", "yes")


async def cmd_scan(fixer: ErrorFixer) -> int:
    errors = fixer.store.errors
    if not errors:
        print("No errors found.")
        return 0

    for index, error in enumerate(errors):
        print(format_error_line(index, error))
    return 0


async def cmd_analyze(fixer: ErrorFixer, index: int, apply: bool, assume_yes: bool) -> int:
    from error_autofixer.core.diff_engine import diff_stats, render_diff

    error = fixer.store.get(index)
    if error is None:
        print(f"No error at index {index} ({len(fixer.store)} captured).", file=sys.stderr)
        return 1

    print(format_error_line(index, error))
    outcome = await fixer.analyze(error)
    if not outcome.success or outcome.result is None:
        print(outcome.message, file=sys.stderr)
        return 1

    result = outcome.result
    if outcome.from_cache:
        print("(cached)")
    print(format_result(result))

    if not result.fixable or result.patch is None:
        return 0

    diff = fixer.diff_for(result)
    removed, added = diff_stats(diff)
    print(f"\nSuggested patch (-{removed} +{added}):")
    print(render_diff(diff))

    if not apply:
        return 0

    preview = fixer.preview_patch(result)
    if preview is None:
        # apply_patch reports the precise reason
        outcome_patch = fixer.apply_patch(result)
        print(outcome_patch.message, file=sys.stderr)
        return 1

    print()
    print(preview, end="" if preview.endswith("\n") else "\n")
    if not assume_yes and not _confirm("Apply this patch?"):
        print("Patch not applied.")
        return 0

    patch_outcome = fixer.apply_patch(result)
    print(patch_outcome.message, file=sys.stdout if patch_outcome.success else sys.stderr)
    return 0 if patch_outcome.success else 1


async def cmd_test_key(fixer: ErrorFixer, key: str | None) -> int:
    valid, message = await fixer.test_credential(key)
    print(message, file=sys.stdout if valid else sys.stderr)
    return 0 if valid else 1


async def cmd_set_key(fixer: ErrorFixer, key: str) -> int:
    fixer.set_api_key(key)
    print("API key saved." if fixer.settings.has_api_key else "API key removed.")
    return 0


async def cmd_clear_cache(fixer: ErrorFixer) -> int:
    fixer.clear_cache()
    print("Cache cleared.")
    return 0


async def cmd_status(fixer: ErrorFixer) -> int:
    for key, value in fixer.status().items():
        print(f"{key}: {value}")
    return 0


def create_cli_fixer(config: FixerConfig, console_log: Path | None = None) -> ErrorFixer:
    """Build the ErrorFixer used by one CLI invocation."""
    from error_autofixer.adapters.host.build_log import BuildLogConsoleReader
    from error_autofixer.core.fixer import create_fixer

    reader = BuildLogConsoleReader(console_log) if console_log is not None else None
    return create_fixer(config, console_reader=reader)


async def run_command(args: argparse.Namespace) -> int:
    """Run one CLI command.

    Returns:
        Exit code (0 for success, non-zero for error)
    """
    try:
        from error_autofixer.config.loader import load_config

        config = load_config(args.config)

        # Reconfigure file logging from config file settings
        if config.logging.file.enabled:
            setup_logging(
                debug=args.debug,
                log_format=args.format,
                file_path=config.logging.file.path,
                file_enabled=True,
            )

        console_log = getattr(args, "console_log", None)
        if console_log is not None and not console_log.is_file():
            print(f"Build log not found: {console_log}", file=sys.stderr)
            return 1

        fixer = create_cli_fixer(config, console_log)

    except FileNotFoundError as e:
        log.error("configuration_file_not_found", path=str(args.config), error=str(e))
        print(str(e), file=sys.stderr)
        return 1
    except ValueError as e:
        log.error("configuration_invalid", error=str(e))
        print(f"Invalid configuration: {e}", file=sys.stderr)
        return 1

    await fixer.start()
    try:
        if args.command == "scan":
            return await cmd_scan(fixer)
        if args.command == "analyze":
            return await cmd_analyze(fixer, args.index, args.apply, args.yes)
        if args.command == "test-key":
            return await cmd_test_key(fixer, args.key)
        if args.command == "set-key":
            return await cmd_set_key(fixer, args.key)
        if args.command == "clear-cache":
            return await cmd_clear_cache(fixer)
        if args.command == "status":
            return await cmd_status(fixer)

        print(f"Unknown command: {args.command}", file=sys.stderr)
        return 1
    except Exception as e:
        log.exception("fatal_error", error=str(e))
        print(f"Error: {e}", file=sys.stderr)
        return 1
    finally:
        await fixer.stop()


def main(argv: list[str] | None = None) -> int:
    """Main entry point."""
    args = parse_args(argv)

    # Setup logging with CLI options
    setup_logging(
        debug=args.debug,
        log_format=args.format,
    )

    try:
        return asyncio.run(run_command(args))
    except KeyboardInterrupt:
        log.info("interrupted")
        return 130


if __name__ == "__main__":
    sys.exit(main())
