from __future__ import annotations

import argparse

from rich.panel import Panel
from rich.table import Table

from stopgap.cli.context import CLIContext


def register(subparsers: argparse._SubParsersAction[argparse.ArgumentParser]) -> None:
    parser = subparsers.add_parser("sitemap", help="Keep temporary pages listed in the sitemap")
    sitemap_subparsers = parser.add_subparsers(dest="sitemap_command", required=True)

    sync_parser = sitemap_subparsers.add_parser("sync", help="Replace temporary page entries with the registry")
    sync_parser.set_defaults(handler=run_sync)

    remove_parser = sitemap_subparsers.add_parser("remove", help="Drop every temporary page entry")
    remove_parser.set_defaults(handler=run_remove)

    validate_parser = sitemap_subparsers.add_parser("validate", help="Check sitemap structure")
    validate_parser.set_defaults(handler=run_validate)


def run_sync(args: argparse.Namespace, ctx: CLIContext) -> int:
    result = ctx.services().site_index.sync()
    ctx.console.print(
        Panel.fit(
            f"Removed: {result.removed}\nAdded: {result.added}\nTotal URLs: {result.total}",
            title=f"Sitemap {ctx.paths.sitemap_path}",
        )
    )
    return 0


def run_remove(args: argparse.Namespace, ctx: CLIContext) -> int:
    removed = ctx.services().site_index.remove_all()
    ctx.console.print(f"[green]Removed[/green] {removed} temporary page entries from {ctx.paths.sitemap_path}")
    return 0


def run_validate(args: argparse.Namespace, ctx: CLIContext) -> int:
    report = ctx.services().site_index.validate()

    ctx.console.print(
        Panel.fit(
            f"URLs: {report.url_count}\n"
            f"Temporary pages: {report.placeholder_count}\n"
            f"Status: {'PASS' if report.ok else 'FAIL'}",
            title="Sitemap Validation",
        )
    )
    if report.issues:
        table = Table(title="Sitemap Issues")
        table.add_column("Level")
        table.add_column("Message", overflow="fold")
        for issue in report.issues:
            table.add_row(issue.level, issue.message)
        ctx.console.print(table)

    return 0 if report.ok else 1
