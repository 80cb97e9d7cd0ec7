"""
Autopilot import command line interface.

Commands:
- run: register this device for Autopilot and wait for the import (default)
- detect: exit 0 when the import has already completed, 1 otherwise
- status: show configuration and completion marker
"""

from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path
from typing import Any

from loguru import logger

from . import __version__
from .config import ImportConfig, get_config_manager, setup_logging
from .marker import CompletionMarker
from .orchestrator import ImportOrchestrator, run_detection


def main(argv: list[str] | None = None) -> int:
    """Main entry point for the CLI."""
    parser = argparse.ArgumentParser(
        prog="autopilot-import",
        description="Register this Windows device for Autopilot through the device-management API",
    )
    parser.add_argument(
        "-V", "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )
    parser.add_argument(
        "-w", "--work-dir",
        metavar="DIR",
        help="Working directory for logs and the completion marker",
    )
    parser.add_argument(
        "--log-level",
        metavar="LEVEL",
        help="Log level (DEBUG, INFO, WARNING, ERROR)",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # run command
    run_parser = subparsers.add_parser("run", help="Register the device and wait for the import")
    run_parser.add_argument(
        "-g", "--group-tag",
        metavar="TAG",
        help="Group tag attached to the imported device",
    )
    run_parser.add_argument(
        "-t", "--timeout",
        type=float,
        metavar="SECONDS",
        help="Polling timeout in seconds",
    )
    run_parser.set_defaults(func=cmd_run)

    # detect command
    detect_parser = subparsers.add_parser("detect", help="Check whether the import already completed")
    detect_parser.set_defaults(func=cmd_detect)

    # status command
    status_parser = subparsers.add_parser("status", help="Show configuration and marker status")
    status_parser.add_argument(
        "--json",
        action="store_true",
        help="Output in JSON format",
    )
    status_parser.set_defaults(func=cmd_status)

    argv = sys.argv[1:] if argv is None else argv
    args = parser.parse_args(argv)
    if args.command is None:
        args = parser.parse_args([*argv, "run"])

    config = get_config_manager().load_config(
        work_dir=Path(args.work_dir) if args.work_dir else None,
        group_tag=getattr(args, "group_tag", None),
        poll_timeout=getattr(args, "timeout", None),
        log_level=args.log_level,
    )

    return args.func(args, config)


def cmd_run(args: argparse.Namespace, config: ImportConfig) -> int:
    """Run the import workflow."""
    setup_logging(config)
    logger.info(f"autopilot-import {__version__} starting (work dir: {config.work_dir})")
    return ImportOrchestrator(config).run()


def cmd_detect(args: argparse.Namespace, config: ImportConfig) -> int:
    """Run the detection routine."""
    setup_logging(config)
    return run_detection(config)


def cmd_status(args: argparse.Namespace, config: ImportConfig) -> int:
    """Print configuration and marker status."""
    is_valid, errors = config.validate()
    marker = CompletionMarker(config.marker_path)

    status: dict[str, Any] = {
        "version": __version__,
        "config": config.describe(),
        "config_valid": is_valid,
        "config_errors": errors,
        "marker_path": str(marker.path),
        "completed": marker.exists(),
        "marker": marker.read(),
    }

    if args.json:
        print(json.dumps(status, indent=2))
        return 0

    print(f"autopilot-import {__version__}")
    print(f"Working directory: {config.work_dir}")
    print(f"Configuration:     {'valid' if is_valid else 'INVALID'}")
    for error in errors:
        print(f"  - {error}")
    print(f"Import completed:  {'yes' if status['completed'] else 'no'}")
    if status["marker"]:
        print()
        print(status["marker"].rstrip())
    return 0
