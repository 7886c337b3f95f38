from __future__ import annotations

import argparse
import logging
from pathlib import Path

from rich.console import Console

from stopgap.cli.commands import (
    detect_cmd,
    doctor_cmd,
    export_cmd,
    init_cmd,
    pages_cmd,
    sitemap_cmd,
    web_cmd,
)
from stopgap.cli.context import CLIContext
from stopgap.core.config import load_paths, load_settings
from stopgap.core.errors import StopgapError
from stopgap.core.logging import configure_logging

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="stopgap",
        description="Temporary pages for broken links",
    )
    parser.add_argument(
        "--project-root",
        type=Path,
        default=Path.cwd(),
        help="Project root to use for .stopgap data (default: current working directory)",
    )
    parser.add_argument("-v", "--verbose", action="count", default=0)

    subparsers = parser.add_subparsers(dest="command", required=True)
    init_cmd.register(subparsers)
    pages_cmd.register(subparsers)
    detect_cmd.register(subparsers)
    sitemap_cmd.register(subparsers)
    export_cmd.register(subparsers)
    doctor_cmd.register(subparsers)
    web_cmd.register(subparsers)

    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    configure_logging(args.verbose)
    console = Console()

    handler = getattr(args, "handler", None)
    if handler is None:
        parser.print_help()
        return 2

    try:
        ctx = CLIContext(paths=load_paths(args.project_root), settings=load_settings(), console=console)
        return handler(args, ctx)
    except StopgapError as exc:
        logger.error(str(exc))
        return 1
