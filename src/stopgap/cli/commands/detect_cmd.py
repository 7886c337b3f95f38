from __future__ import annotations

import argparse

from rich.panel import Panel
from rich.table import Table

from stopgap.application.services.detection_service import DetectionConfig
from stopgap.cli.context import CLIContext


def register(subparsers: argparse._SubParsersAction[argparse.ArgumentParser]) -> None:
    detect_parser = subparsers.add_parser("detect", help="Crawl the site and create temporary pages for broken links")
    detect_parser.add_argument("--base-url", help="Site to crawl (default: STOPGAP_BASE_URL)")
    detect_parser.add_argument("--max-depth", type=int, default=3)
    detect_parser.add_argument("--include-external", action="store_true")
    detect_parser.add_argument("--exclude", action="append", default=[], help="Extra glob pattern to skip")
    detect_parser.add_argument("--timeout", type=float, default=10.0)
    detect_parser.add_argument("--retries", type=int, default=2)
    detect_parser.add_argument("--batch-size", type=int, default=10)
    detect_parser.add_argument("--update-sitemap", action="store_true")
    detect_parser.set_defaults(handler=run_detect)

    cleanup_parser = subparsers.add_parser("cleanup", help="Remove temporary pages whose resource is back")
    cleanup_parser.add_argument("--workers", type=int, default=4)
    cleanup_parser.add_argument("--update-sitemap", action="store_true")
    cleanup_parser.set_defaults(handler=run_cleanup)


def run_detect(args: argparse.Namespace, ctx: CLIContext) -> int:
    services = ctx.services()
    defaults = DetectionConfig()
    config = DetectionConfig(
        base_url=(args.base_url or ctx.settings.base_url).rstrip("/"),
        max_depth=args.max_depth,
        exclude_patterns=defaults.exclude_patterns + tuple(args.exclude),
        include_external=args.include_external,
        timeout=args.timeout,
        retry_attempts=args.retries,
        batch_size=args.batch_size,
    )
    result = services.detection.detect_and_create_temporary_pages(config)

    ctx.console.print(
        Panel.fit(
            "\n".join(
                [
                    f"Links scanned: {result.total_links}",
                    f"Broken links: {result.broken_links}",
                    f"Temporary pages created: {result.placeholders_created}",
                    f"Already remediated: {result.already_remediated}",
                    f"Errors: {len(result.errors)}",
                ]
            ),
            title="Detection Summary",
        )
    )

    if result.details:
        table = Table(title="Broken Links")
        table.add_column("URL", overflow="fold")
        table.add_column("Kind")
        table.add_column("Outcome")
        table.add_column("Sources", overflow="fold")
        table.add_column("Error", overflow="fold")
        for detail in result.details:
            table.add_row(
                detail.url,
                detail.link_kind,
                detail.outcome,
                ", ".join(detail.source_files),
                detail.error,
            )
        ctx.console.print(table)

    for error in result.errors:
        ctx.console.print(f"[red]{error}[/red]")

    if args.update_sitemap:
        sync = services.detection.update_site_index()
        ctx.console.print(f"[green]Sitemap synced[/green] +{sync.added} / -{sync.removed} ({sync.total} URLs)")

    return 0 if not result.errors else 1


def run_cleanup(args: argparse.Namespace, ctx: CLIContext) -> int:
    services = ctx.services()
    result = services.detection.cleanup_obsolete_pages(max_workers=args.workers)

    ctx.console.print(
        Panel.fit(
            f"Checked: {result.checked}\nRemoved: {result.removed}\nErrors: {len(result.errors)}",
            title="Cleanup Summary",
        )
    )
    for url in result.removed_urls:
        ctx.console.print(f"[green]Removed[/green] {url}")
    for error in result.errors:
        ctx.console.print(f"[red]{error}[/red]")

    if args.update_sitemap:
        sync = services.detection.update_site_index()
        ctx.console.print(f"[green]Sitemap synced[/green] +{sync.added} / -{sync.removed} ({sync.total} URLs)")

    return 0 if not result.errors else 1
