"""CLI applications for paket."""

import asyncio
import json
import os
from pathlib import Path

import typer
from rich.console import Console
from rich.markup import escape

from paket.cache import VersionCache
from paket.config import (
    DEFAULT_CONCURRENCY,
    DEFAULT_PNPM,
    DEFAULT_REGISTRY,
    DEFAULT_TIMEOUT,
    ENV_CONCURRENCY,
    ENV_PNPM,
    ENV_REGISTRY,
    ENV_TIMEOUT,
    Settings,
)
from paket.discover import load_ignore
from paket.engine import update_workspace
from paket.logs import configure_logging
from paket.models import ChangeRecord, Mode, Operation, RunReport
from paket.pnpm import apply_bump, plan_bump, split_arguments
from paket.sources import RegistrySource

console = Console()

POLICY_TEXT = {
    Mode.ANY: "to the last published version.",
    Mode.LATEST: "to the latest version.",
}
VERB = {
    Operation.CHECK: "Checking",
    Operation.UPDATE: "Updating",
}


def format_change(change: ChangeRecord) -> str:
    """Format one change line with rich markup."""
    return (
        f"{escape(change.name)} ([magenta]{change.category}[/magenta]): "
        f"[yellow]{escape(change.old)}[/yellow] -> [green]{escape(change.new)}[/green]"
    )


def format_json_output(report: RunReport) -> str:
    """Format JSON output."""
    manifests = []
    for manifest_report in report.manifests:
        manifests.append({
            "path": str(manifest_report.manifest.path),
            "name": manifest_report.manifest.name,
            "written": manifest_report.written,
            "changes": [
                {
                    "name": change.name,
                    "category": change.category,
                    "old": change.old,
                    "new": change.new,
                    "delta": change.delta,
                }
                for change in manifest_report.unique_changes()
            ],
        })

    return json.dumps({
        "operation": report.operation.value,
        "mode": report.mode.value,
        "changed": report.changed,
        "manifests": manifests,
    }, indent=2)


def print_banner(root: Path, settings: Settings, operation: Operation, mode: Mode, globs: list[str]) -> None:
    console.print(f"Using root folder: {escape(str(root))}")
    console.print(f"Using registry '{escape(settings.registry)}'")
    console.print(f"\n{VERB[operation]} packages matching globs:")
    for glob in globs:
        console.print(f" - [yellow]{escape(glob)}[/yellow]")
    console.print(f"{POLICY_TEXT[mode]}\n")
    console.print("Using ignore paths:")
    for pattern in settings.ignore:
        console.print(f" - '{escape(pattern)}'")


def print_report(report: RunReport) -> None:
    for manifest_report in report.manifests:
        changes = manifest_report.unique_changes()
        if not changes:
            continue
        console.print(f"[cyan]{escape(manifest_report.manifest.display_name)}[/cyan]:")
        for change in changes:
            console.print("  " + format_change(change))

    if not report.changed:
        console.print("No updates required.")
    console.print("")


async def _run_workspace(root: Path, operation: Operation, mode: Mode, globs: list[str], settings: Settings) -> RunReport:
    cache = VersionCache(RegistrySource(settings.registry, timeout=settings.timeout), max_concurrency=settings.concurrency)
    return await update_workspace(root, operation, mode, globs, cache, ignore=settings.ignore)


app = typer.Typer(
    name="paket",
    help="paket - Update package.json dependencies matching globs across a workspace",
    add_completion=False,
)


@app.command()
def run(
    operation: Operation = typer.Argument(help="'update' rewrites package.json files, 'check' only reports"),
    mode: Mode = typer.Argument(help="'any' picks the last published version, 'latest' the latest tag"),
    globs: list[str] = typer.Argument(help="Package name globs, e.g. '@types/*'"),
    cwd: Path | None = typer.Option(None, "--cwd", help="Workspace root (defaults to the current directory)"),
    registry: str = typer.Option(DEFAULT_REGISTRY, "--registry", envvar=ENV_REGISTRY, help="Registry base URL"),
    timeout: float = typer.Option(DEFAULT_TIMEOUT, "--timeout", envvar=ENV_TIMEOUT, help="Request timeout in seconds"),
    concurrency: int = typer.Option(DEFAULT_CONCURRENCY, "--concurrency", envvar=ENV_CONCURRENCY, help="Maximum concurrent lookups"),
    format_type: str = typer.Option("text", "--format", help="Output format: text or json"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log debug output"),
) -> None:
    """paket - Check or update dependencies matching globs in every package.json."""
    configure_logging(verbose)

    try:
        root = (cwd or Path.cwd()).resolve()
        settings = Settings(registry=registry, timeout=timeout, concurrency=concurrency, ignore=load_ignore(root))

        if format_type != "json":
            print_banner(root, settings, operation, mode, globs)

        report = asyncio.run(_run_workspace(root, operation, mode, globs, settings))

        if format_type == "json":
            typer.echo(format_json_output(report))
        else:
            print_report(report)

    except typer.Exit:
        raise
    except Exception as e:
        console.print(f"Error: {e}", style="red", markup=False)
        raise typer.Exit(1)


pnpm_app = typer.Typer(
    name="paket-pnpm",
    help="paket-pnpm - Bump dependencies matching globs to a version spec with pnpm",
    add_completion=False,
)


@pnpm_app.command()
def bump(
    args: list[str] = typer.Argument(help="One or more globs followed by a version spec"),
    cwd: Path | None = typer.Option(None, "--cwd", help="Workspace root (defaults to the current directory)"),
    pnpm: str = typer.Option(DEFAULT_PNPM, "--pnpm", envvar=ENV_PNPM, help="pnpm executable"),
    concurrency: int = typer.Option(DEFAULT_CONCURRENCY, "--concurrency", envvar=ENV_CONCURRENCY, help="Maximum concurrent lookups"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log debug output"),
) -> None:
    """Bump every matching dependency to the version pnpm finds for the spec."""
    configure_logging(verbose)

    try:
        globs, version_spec = split_arguments(args)
        root = (cwd or Path.cwd()).resolve()
        env = dict(os.environ)
        console.print(f"Running in {escape(str(root))}")

        plan = asyncio.run(
            plan_bump(globs, version_spec, cwd=root, env=env, executable=pnpm, max_concurrency=concurrency)
        )

        console.print("Found packages")
        for name, version in plan.local.items():
            console.print(f"  {escape(name)}: {escape(version)}")
        console.print("Found non-workspace dependencies")
        for name in plan.candidates:
            console.print(f"  {escape(name)}")
        console.print("Matching versions")
        for name, version in plan.resolved.items():
            console.print(f"  {escape(name)}: [green]{escape(version)}[/green]")

        console.print("Updating...")
        asyncio.run(apply_bump(plan, cwd=root, env=env, executable=pnpm))

    except typer.Exit:
        raise
    except Exception as e:
        console.print(f"Error: {e}", style="red", markup=False)
        raise typer.Exit(1)


def main() -> None:
    app()


def pnpm_main() -> None:
    pnpm_app()


if __name__ == "__main__":
    main()
