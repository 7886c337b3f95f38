from __future__ import annotations

import argparse
from pathlib import Path

from stopgap.cli.context import CLIContext


def register(subparsers: argparse._SubParsersAction[argparse.ArgumentParser]) -> None:
    export_parser = subparsers.add_parser("export", help="Write the registry and redirect table as JSON")
    export_parser.add_argument("--config", type=Path, help="Registry document path")
    export_parser.add_argument("--redirects", type=Path, help="Redirect table document path")
    export_parser.set_defaults(handler=run_export)

    import_parser = subparsers.add_parser("import", help="Load a registry JSON document")
    import_parser.add_argument("file", type=Path)
    import_parser.set_defaults(handler=run_import)


def run_export(args: argparse.Namespace, ctx: CLIContext) -> int:
    services = ctx.services()
    config_path = args.config or ctx.paths.export_dir / "temporary-pages.json"
    redirects_path = args.redirects or ctx.paths.export_dir / "redirects.json"

    entries, rules = services.pages.export_documents(config_path, redirects_path)
    ctx.console.print(f"[green]Exported[/green] {entries} temporary pages to {config_path}")
    ctx.console.print(f"[green]Exported[/green] {rules} redirect rules to {redirects_path}")
    return 0


def run_import(args: argparse.Namespace, ctx: CLIContext) -> int:
    imported = ctx.services().pages.import_documents(args.file)
    ctx.console.print(f"[green]Imported[/green] {imported} temporary pages from {args.file}")
    return 0
