from __future__ import annotations

import argparse

from rich.panel import Panel

from stopgap.application.services.project_service import ProjectService
from stopgap.cli.context import CLIContext


def register(subparsers: argparse._SubParsersAction[argparse.ArgumentParser]) -> None:
    parser = subparsers.add_parser("init", help="Create the temporary page registry and its directories")
    parser.set_defaults(handler=run)


def run(args: argparse.Namespace, ctx: CLIContext) -> int:
    result = ProjectService(ctx.paths).init_project()

    for path in result.paths_created:
        ctx.console.print(f"[green]Created[/green] {path}")

    sitemap_state = "present" if result.sitemap_present else "not generated yet"
    ctx.console.print(
        Panel.fit(
            f"Registry: {result.db_path}\n"
            f"Temporary pages: {result.registered_pages} ({result.reactive_pages} reactive)\n"
            f"Sitemap: {result.sitemap_path} ({sitemap_state})",
            title="Stopgap Project",
        )
    )
    if result.registered_pages == 0:
        ctx.console.print("Run 'stopgap detect' to register temporary pages for broken links.")
    return 0
