"""Scan command - list compose files and their services."""
from typing import List, Optional

import typer
from rich.console import Console
from rich.table import Table

from compman.cli_support import (
    handle_cli_error,
    load_cli_config,
    print_info,
    print_success,
    print_warning,
    render_compose_files,
)
from compman.core.errors import CompmanError
from compman.models.compose import ComposeFile
from compman.services.compose import ComposeScanner

# Module-level console instance (will be set by register function)
console: Console = Console()


def _render_services(files: List[ComposeFile]) -> None:
    table = Table(title="Services", show_header=True, header_style="bold cyan")
    table.add_column("Project", style="cyan")
    table.add_column("Service", style="bold")
    table.add_column("Image", overflow="fold")

    for compose_file in files:
        for name, service in compose_file.services.items():
            if service.has_image:
                image = service.image
            elif service.build is not None:
                image = f"[dim]build: {service.build.context}[/dim]"
            else:
                image = "[red]none[/red]"
            table.add_row(compose_file.project_name, name, image)
    console.print(table)


def scan(
    paths: Optional[List[str]] = typer.Option(
        None, "--paths", "-p", help="Compose search paths (repeatable)"
    ),
    config: Optional[str] = typer.Option(None, "--config", "-c", help="Config file path"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output"),
):
    """Scan for Docker Compose files and show their services."""
    cfg = load_cli_config(console, config, verbose)
    if paths:
        cfg = cfg.with_overrides(compose_paths=list(paths))

    print_info(console, f"Scanning {', '.join(cfg.compose_paths)}")
    try:
        result, files = ComposeScanner().scan_with_result(cfg.compose_paths)
    except CompmanError as e:
        handle_cli_error(e, console, verbose)

    if not files:
        print_warning(console, "No Docker Compose files found")
        return

    render_compose_files(console, files)
    _render_services(files)

    for path in result.invalid_files:
        print_warning(console, f"Could not parse {path}")

    image_count = sum(len(f.image_services()) for f in files)
    print_success(
        console,
        f"Found {result.valid_files} compose file(s) with {image_count} image service(s) "
        f"in {result.duration:.2f}s",
    )


def register_scan_commands(app: typer.Typer, shared_console: Console) -> None:
    """Register the scan command with the main Typer app."""
    global console
    console = shared_console
    app.command()(scan)
