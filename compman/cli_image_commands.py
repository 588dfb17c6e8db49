"""Image commands - clean unused images and inspect published tags."""
from typing import Optional

import typer
from rich.console import Console
from rich.table import Table

from compman.cli_support import (
    confirm_action,
    handle_cli_error,
    load_cli_config,
    print_info,
    print_success,
)
from compman.core.errors import CompmanError
from compman.models.image import format_size
from compman.services.docker_client import DockerClient
from compman.services.registry import RegistryTagClient
from compman.services.strategy import SemverStrategy, build_strategy

# Module-level console instance (will be set by register function)
console: Console = Console()


def clean(
    dry_run: bool = typer.Option(False, "--dry-run", "-n", help="Only list unused images"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Do not ask for confirmation"),
    config: Optional[str] = typer.Option(None, "--config", "-c", help="Config file path"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output"),
):
    """Remove Docker images that no container uses."""
    cfg = load_cli_config(console, config, verbose)
    client = DockerClient(cfg.docker)

    try:
        if dry_run:
            images = client.list_unused_images()
            if not images:
                print_success(console, "No unused images")
                return

            table = Table(title="Unused Images", show_header=True, header_style="bold cyan")
            table.add_column("Repository", style="cyan")
            table.add_column("Tag")
            table.add_column("ID", style="dim")
            table.add_column("Size", justify="right")
            table.add_column("Created", style="dim")
            for image in images:
                created = image.created.strftime("%Y-%m-%d") if image.created else ""
                table.add_row(image.repository, image.tag, image.image_id,
                              format_size(image.size), created)
            console.print(table)
            total = sum(image.size for image in images)
            print_info(console, f"{len(images)} unused image(s), {format_size(total)} in total")
            return

        if not confirm_action("Remove all unused images?", yes):
            print_info(console, "Aborted")
            return

        with console.status("Pruning unused images..."):
            report = client.prune_images()
    except CompmanError as e:
        handle_cli_error(e, console, verbose)
    finally:
        client.close()

    print_success(
        console,
        f"Removed {report.deleted_count} image(s), reclaimed {format_size(report.space_reclaimed)}",
    )


def tags(
    image: str = typer.Argument(..., help="Image name, e.g. nginx or grafana/grafana"),
    strategy: Optional[str] = typer.Option(None, "--strategy", "-s", help="latest or semver"),
    pattern: Optional[str] = typer.Option(None, "--pattern", help="Semver constraint"),
    limit: int = typer.Option(10, "--limit", "-l", help="Number of tags to show"),
    config: Optional[str] = typer.Option(None, "--config", "-c", help="Config file path"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output"),
):
    """Show the tag a strategy would pick for an image."""
    cfg = load_cli_config(console, config, verbose)
    cfg = cfg.with_overrides(image_tag_strategy=strategy, semver_pattern=pattern)
    registry = RegistryTagClient()

    try:
        chosen = build_strategy(cfg, registry)
        target = chosen.resolve_tag(image)
        if isinstance(chosen, SemverStrategy):
            candidates = chosen.version_list(image, limit)
        else:
            candidates = registry.get_tags(image)[:limit]
    except CompmanError as e:
        handle_cli_error(e, console, verbose)

    title = f"Tags for {image}"
    if isinstance(chosen, SemverStrategy):
        title += f" matching '{chosen.pattern}'"
    table = Table(title=title, show_header=True, header_style="bold cyan")
    table.add_column("Tag")
    for tag in candidates:
        table.add_row(f"[green]{tag}[/green]" if tag == target else tag)
    console.print(table)

    print_success(console, f"{chosen.name} strategy selects [bold]{target}[/bold]")


def register_image_commands(app: typer.Typer, shared_console: Console) -> None:
    """Register image commands with the main Typer app."""
    global console
    console = shared_console
    app.command()(clean)
    app.command()(tags)
