from __future__ import annotations

import argparse

from rich.panel import Panel
from rich.table import Table

from stopgap.application.services.temporary_page_service import TemporaryPageRequest
from stopgap.cli.context import CLIContext
from stopgap.domain.models.resource_entry import DEVELOPMENT_STATUSES, PRIORITIES, RESOURCE_TYPES


def register(subparsers: argparse._SubParsersAction[argparse.ArgumentParser]) -> None:
    parser = subparsers.add_parser("pages", help="Temporary page management")
    pages_subparsers = parser.add_subparsers(dest="pages_command", required=True)

    list_parser = pages_subparsers.add_parser("list", help="List temporary pages")
    list_parser.add_argument("--origin", choices=["manual", "detection", "reactive"])
    list_parser.set_defaults(handler=run_list)

    create_parser = pages_subparsers.add_parser("create", help="Create or refresh a temporary page")
    create_parser.add_argument("url", help="Missing resource URL, e.g. /ressources/guide.pdf")
    _add_field_arguments(create_parser)
    create_parser.set_defaults(handler=run_create)

    update_parser = pages_subparsers.add_parser("update", help="Update fields of an existing temporary page")
    update_parser.add_argument("url")
    _add_field_arguments(update_parser)
    update_parser.set_defaults(handler=run_update)

    remove_parser = pages_subparsers.add_parser("remove", help="Remove a temporary page and its redirect")
    remove_parser.add_argument("url")
    remove_parser.set_defaults(handler=run_remove)

    stats_parser = pages_subparsers.add_parser("stats", help="Show registry statistics")
    stats_parser.set_defaults(handler=run_stats)


def _add_field_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--source", dest="source_url", help="Page that links to the resource")
    parser.add_argument("--type", dest="resource_type", choices=sorted(RESOURCE_TYPES))
    parser.add_argument("--title")
    parser.add_argument("--description")
    parser.add_argument("--estimated-date", dest="estimated_date")
    parser.add_argument("--priority", choices=sorted(PRIORITIES))
    parser.add_argument("--status", dest="development_status", choices=sorted(DEVELOPMENT_STATUSES))
    parser.add_argument("--progress", type=int)


def _field_values(args: argparse.Namespace) -> dict[str, object]:
    names = (
        "source_url",
        "resource_type",
        "title",
        "description",
        "estimated_date",
        "priority",
        "development_status",
        "progress",
    )
    return {name: getattr(args, name) for name in names if getattr(args, name) is not None}


def run_list(args: argparse.Namespace, ctx: CLIContext) -> int:
    service = ctx.services().pages
    entries = [e for e in service.list().values() if args.origin is None or e.origin == args.origin]

    table = Table(title=f"Temporary Pages ({len(entries)})")
    table.add_column("Resource URL", overflow="fold")
    table.add_column("Type")
    table.add_column("Priority")
    table.add_column("Status")
    table.add_column("Progress")
    table.add_column("Origin")
    table.add_column("Title", overflow="fold")

    for e in entries:
        table.add_row(
            e.resource_url,
            e.resource_type,
            e.priority,
            e.development_status,
            f"{e.progress}%",
            e.origin,
            e.title,
        )

    ctx.console.print(table)
    return 0


def run_create(args: argparse.Namespace, ctx: CLIContext) -> int:
    service = ctx.services().pages
    result = service.upsert(TemporaryPageRequest(resource_url=args.url, **_field_values(args)))

    ctx.console.print(
        Panel.fit(
            "\n".join(
                [
                    f"Resource: {result.entry.resource_url}",
                    f"Title: {result.entry.title}",
                    f"Action: {result.action}",
                    f"Route: {result.route}",
                ]
            ),
            title="Temporary Page",
        )
    )
    return 0


def run_update(args: argparse.Namespace, ctx: CLIContext) -> int:
    service = ctx.services().pages
    entry = service.update(args.url, **_field_values(args))
    if entry is None:
        ctx.console.print(f"[yellow]No temporary page for[/yellow] {args.url}")
        return 1
    ctx.console.print(f"[green]Updated[/green] {entry.resource_url} -> {service.route_for(entry)}")
    return 0


def run_remove(args: argparse.Namespace, ctx: CLIContext) -> int:
    service = ctx.services().pages
    if service.remove(args.url):
        ctx.console.print(f"[green]Removed[/green] {args.url}")
    else:
        ctx.console.print(f"[yellow]No temporary page for[/yellow] {args.url}")
    return 0


def run_stats(args: argparse.Namespace, ctx: CLIContext) -> int:
    stats = ctx.services().pages.stats()

    ctx.console.print(Panel.fit(f"Total temporary pages: {stats.total}", title="Registry"))
    for title, counts in (
        ("By Type", stats.by_type),
        ("By Priority", stats.by_priority),
        ("By Status", stats.by_status),
    ):
        table = Table(title=title)
        table.add_column("Value")
        table.add_column("Count", justify="right")
        for key, count in sorted(counts.items()):
            table.add_row(key, str(count))
        ctx.console.print(table)
    return 0
