"""
Command-line interface for the TLS stack comparison tool.

This module provides the main CLI entry point with commands for:
- run: Probe every domain in a list with all TLS strategies
- self-test: Validate configuration and check connectivity
- config: Configuration management
"""

import argparse
import asyncio
import sys
from pathlib import Path
from typing import Optional

from . import __version__
from .audit_logger import AuditLogger
from .config import (
    VALID_LOG_LEVELS,
    VALID_OUTPUT_FORMATS,
    ProbeConfig,
    apply_environment,
    config_from_dict,
    load_config_from_file,
    save_config_to_file,
)
from .exceptions import ConfigError, SetupError
from .orchestrator import ComparisonRun
from .self_test import run_self_test


DEFAULT_CONFIG_PATH = Path.home() / ".tls_compare" / "config.json"


def build_config(args: argparse.Namespace) -> ProbeConfig:
    """
    Layer defaults, config file, environment and flags into one config.

    Raises:
        ConfigError: If the file cannot be loaded or a value is invalid
    """
    config = ProbeConfig()
    if getattr(args, "config", None):
        config = load_config_from_file(Path(args.config), base=config)

    config = apply_environment(config)

    overrides: dict = {}
    for key in ("parallelism", "timeout", "domains", "output_dir"):
        value = getattr(args, key, None)
        if value is not None:
            overrides[key] = value
    if getattr(args, "no_probe_request", False):
        overrides["probe_request"] = False
    if getattr(args, "self_test", False):
        overrides["startup_self_test"] = True

    log_level = getattr(args, "log_level", None)
    log_format = getattr(args, "log_format", None)
    if log_level or log_format:
        overrides["logging"] = {
            "level": log_level or config.logging.level,
            "output_format": log_format or config.logging.output_format,
        }

    if overrides:
        config = config_from_dict(overrides, config)

    config.validate()
    return config


async def run_domains(config: ProbeConfig, logger: AuditLogger) -> int:
    """
    Run a comparison over the configured domain list.

    Returns:
        Exit code (0 when the list was processed, 1 on a fatal setup error)
    """
    if config.startup_self_test:
        result = await run_self_test(config, stream=sys.stderr)
        if not result.success:
            logger.log_error("CLI", "Startup self-test failed")
            return 1

    try:
        await ComparisonRun(config, logger=logger).run()
    except SetupError as e:
        print(f"Error: {e.message}", file=sys.stderr)
        return 1

    return 0


def cmd_run(args: argparse.Namespace) -> int:
    """Handle the 'run' command."""
    try:
        config = build_config(args)
    except ConfigError as e:
        print(f"Error: {e.message}", file=sys.stderr)
        return 1

    logger = AuditLogger.from_config(config.logging.level, config.logging.output_format)
    return asyncio.run(run_domains(config, logger))


def cmd_self_test(args: argparse.Namespace) -> int:
    """Handle the 'self-test' command."""
    try:
        config = build_config(args)
    except ConfigError as e:
        print(f"Error: {e.message}", file=sys.stderr)
        return 1

    result = asyncio.run(run_self_test(config, stream=sys.stdout))
    return 0 if result.success else 1


def cmd_config(args: argparse.Namespace) -> int:
    """Handle the 'config' command."""
    config_path = Path(args.path) if args.path else DEFAULT_CONFIG_PATH

    if args.action == "init":
        if config_path.exists() and not args.force:
            print(f"Configuration already exists at: {config_path}")
            print("Use --force to overwrite.")
            return 1
        try:
            save_config_to_file(ProbeConfig(), config_path)
        except ConfigError as e:
            print(f"Error: {e.message}", file=sys.stderr)
            return 1
        print(f"Configuration created at: {config_path}")
        return 0

    try:
        config = load_config_from_file(config_path)
        config.validate()
    except ConfigError as e:
        print(f"Error: {e.message}", file=sys.stderr)
        return 1

    if args.action == "show":
        print(f"Configuration from: {config_path}")
        print(f"  Parallelism: {config.parallelism}")
        print(f"  Timeout: {config.timeout}s")
        print(f"  Domains: {config.domains}")
        print(f"  Output dir: {config.output_dir}")
        print(f"  Connect timeout: {config.connect_timeout}s")
        print(f"  Probe request: {config.probe_request}")
        print(f"  Log level: {config.logging.level}")
        return 0

    print(f"Configuration at {config_path} is valid.")
    return 0


def _add_common_options(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--config", "-c",
        help="Path to configuration file",
    )
    parser.add_argument(
        "--log-level",
        choices=VALID_LOG_LEVELS,
        help="Minimum log level written to stderr",
    )
    parser.add_argument(
        "--log-format",
        choices=VALID_OUTPUT_FORMATS,
        help="Log output format",
    )


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser for the CLI."""
    parser = argparse.ArgumentParser(
        prog="tls-compare",
        description="Compare TLS handshake success of standard and fingerprint-mimicking clients",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # 'run' command
    run_parser = subparsers.add_parser(
        "run",
        help="Probe every domain in a list",
    )
    run_parser.add_argument(
        "--parallelism", "-p",
        type=int,
        help="How many domains are probed concurrently (default: 100)",
    )
    run_parser.add_argument(
        "--timeout", "-t",
        type=float,
        help="Seconds after which probing a domain is given up (default: 20)",
    )
    run_parser.add_argument(
        "--domains", "-d",
        help="List of domains to test, one per line (default: citizenlab-domains.txt)",
    )
    run_parser.add_argument(
        "--output-dir", "-o",
        help="Directory for the comparison-<ts>.csv file (default: .)",
    )
    run_parser.add_argument(
        "--no-probe-request",
        action="store_true",
        help="Only handshake; skip the GET request over the secured connection",
    )
    run_parser.add_argument(
        "--self-test",
        action="store_true",
        help="Run the self-test before probing and abort if it fails",
    )
    _add_common_options(run_parser)
    run_parser.set_defaults(func=cmd_run)

    # 'self-test' command
    self_test_parser = subparsers.add_parser(
        "self-test",
        help="Validate configuration and check connectivity",
    )
    _add_common_options(self_test_parser)
    self_test_parser.set_defaults(func=cmd_self_test)

    # 'config' command
    config_parser = subparsers.add_parser(
        "config",
        help="Configuration management",
    )
    config_parser.add_argument(
        "action",
        choices=["show", "init", "validate"],
        help="Configuration action",
    )
    config_parser.add_argument(
        "--path",
        help="Path to configuration file",
    )
    config_parser.add_argument(
        "--force", "-f",
        action="store_true",
        help="Force overwrite existing configuration",
    )
    config_parser.set_defaults(func=cmd_config)

    return parser


def main(argv: Optional[list[str]] = None) -> int:
    """
    Main entry point for the CLI.

    Args:
        argv: Command line arguments (defaults to sys.argv[1:])

    Returns:
        Exit code
    """
    parser = create_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return 0

    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
