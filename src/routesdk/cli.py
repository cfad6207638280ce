from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.table import Table

from routesdk.config import GeneratorConfig
from routesdk.errors import ArtifactWriteError, ConfigError
from routesdk.observability.logging import set_debug
from routesdk.orchestrator.coordinator import IncrementalCoordinator
from routesdk.orchestrator.pipeline import load_tree, route_rows, run_generate
from routesdk.repo.scanner import scan_route_files

app = typer.Typer(no_args_is_help=True, add_completion=False)

console = Console()


def _load_config(
    project: str,
    app_dir: Optional[str],
    out_dir: Optional[str],
    no_format: bool,
    debug: bool,
) -> GeneratorConfig:
    project_path = Path(project).expanduser().resolve()
    if not project_path.is_dir():
        raise typer.BadParameter(f"Project path is not a directory: {project_path}")

    overrides: dict = {"app_dir": app_dir, "out_dir": out_dir, "debug": debug or None}
    if no_format:
        overrides["formatter"] = []
    try:
        config = GeneratorConfig.load(project_path, **overrides)
    except ConfigError as e:
        raise typer.BadParameter(str(e))
    if not config.app_dir.is_dir():
        raise typer.BadParameter(f"App directory does not exist: {config.app_dir}")

    set_debug(config.debug)
    return config


@app.command()
def generate(
    project: str = typer.Argument(".", help="Project root containing the app directory"),
    app_dir: Optional[str] = typer.Option(None, help="Route directory (default: app/ or src/app/)"),
    out_dir: Optional[str] = typer.Option(None, help="Output directory for the SDK files (default: api/)"),
    no_format: bool = typer.Option(False, "--no-format", help="Skip the external pretty-printer"),
    debug: bool = typer.Option(False, "--debug", help="Print diagnostic output"),
) -> None:
    """Generate the client and server SDKs once."""
    config = _load_config(project, app_dir, out_dir, no_format, debug)

    try:
        result = asyncio.run(run_generate(config))
    except ArtifactWriteError as e:
        console.print(f"[bold red]error[/bold red] {e}")
        raise typer.Exit(code=1)

    console.print(f"[bold green]routesdk[/bold green] generate: {config.app_dir}")
    console.print(f"Routes found: [bold]{len(result.routes)}[/bold]")
    console.print(f"Client SDK: {result.client_path}")
    console.print(f"Server SDK: {result.server_path}")
    console.print(f"Done in {result.elapsed_ms}ms")


@app.command()
def watch(
    project: str = typer.Argument(".", help="Project root containing the app directory"),
    app_dir: Optional[str] = typer.Option(None, help="Route directory (default: app/ or src/app/)"),
    out_dir: Optional[str] = typer.Option(None, help="Output directory for the SDK files (default: api/)"),
    no_format: bool = typer.Option(False, "--no-format", help="Skip the external pretty-printer"),
    debug: bool = typer.Option(False, "--debug", help="Print diagnostic output"),
) -> None:
    """Generate, then regenerate on every route file change."""
    config = _load_config(project, app_dir, out_dir, no_format, debug)
    coordinator = IncrementalCoordinator(config)

    console.print(f"[bold green]routesdk[/bold green] watching {config.app_dir} (Ctrl+C to stop)")
    try:
        asyncio.run(coordinator.watch())
    except KeyboardInterrupt:
        console.print("Stopped.")


@app.command()
def routes(
    project: str = typer.Argument(".", help="Project root containing the app directory"),
    app_dir: Optional[str] = typer.Option(None, help="Route directory (default: app/ or src/app/)"),
    debug: bool = typer.Option(False, "--debug", help="Print diagnostic output"),
) -> None:
    """List analyzed handlers with their inferred types."""
    config = _load_config(project, app_dir, None, True, debug)
    tree = asyncio.run(load_tree(config))
    rows = route_rows(tree)

    route_files = scan_route_files(config.app_dir, config.route_file_name)
    console.print(f"[bold]Route files:[/bold] {len(route_files)}")
    console.print(f"[bold]Routes:[/bold] {len(rows)}")

    table = Table(show_header=True, header_style="bold")
    table.add_column("METHOD", no_wrap=True)
    table.add_column("PATH")
    table.add_column("INPUT")
    table.add_column("OUTPUT")
    table.add_column("MODE", no_wrap=True)

    for r in rows:
        table.add_row(r.method, r.path, r.input_type, r.output_type, r.marker)

    console.print(table)


def main() -> None:
    app()


if __name__ == "__main__":
    main()
