from __future__ import annotations

import argparse
from collections import Counter

from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from stopgap.cli.context import CLIContext

CHECK_LABELS = {
    "db_runtime": "Registry database",
    "redirect_integrity": "Pages and redirect rules",
    "sitemap": "Sitemap",
}


def register(subparsers: argparse._SubParsersAction[argparse.ArgumentParser]) -> None:
    parser = subparsers.add_parser("doctor", help="Check the registry, redirect rules and sitemap")
    parser.add_argument("--strict", action="store_true", help="Exit non-zero on warnings too")
    parser.set_defaults(handler=run_doctor)


def run_doctor(args: argparse.Namespace, ctx: CLIContext) -> int:
    report = ctx.services().health.run_doctor()
    levels = Counter((issue.check, issue.level) for issue in report.issues)
    passed = report.ok and not (args.strict and report.issues)

    ctx.console.print(
        Panel.fit(
            f"Checks run: {report.checks_run}\n"
            f"Errors: {sum(1 for i in report.issues if i.level == 'error')}\n"
            f"Warnings: {sum(1 for i in report.issues if i.level == 'warning')}\n"
            f"Status: {'PASS' if passed else 'FAIL'}",
            title="Doctor Summary",
        )
    )

    checks = Table(title="Checks")
    checks.add_column("Check")
    checks.add_column("Errors", justify="right")
    checks.add_column("Warnings", justify="right")
    for key, label in CHECK_LABELS.items():
        if key == "sitemap" and report.checks_run < len(CHECK_LABELS):
            checks.add_row(label, "-", "-")
            continue
        checks.add_row(label, str(levels[(key, "error")]), str(levels[(key, "warning")]))
    ctx.console.print(checks)

    runtime = ", ".join(f"{key}={value}" for key, value in report.db_runtime.items())
    ctx.console.print(f"[dim]SQLite: {runtime}[/dim]")

    for issue in report.issues:
        color = "red" if issue.level == "error" else "yellow"
        label = CHECK_LABELS.get(issue.check, issue.check)
        ctx.console.print(f"[{color}]{issue.level}[/{color}] {label}: {escape(issue.message)}")

    return 0 if passed else 1
