"""Update command - scan, select, pull and recreate compose services."""
import threading
from typing import List, Optional

import typer
from rich.console import Console
from rich.progress import BarColumn, Progress, SpinnerColumn, TaskProgressColumn, TextColumn
from rich.table import Table

from compman.cli_support import (
    handle_cli_error,
    load_cli_config,
    parse_selection,
    print_error,
    print_info,
    print_success,
    print_warning,
    render_compose_files,
)
from compman.core.config import CompmanConfig, validate_config
from compman.core.errors import CompmanError
from compman.models.compose import ComposeFile
from compman.models.image import format_size
from compman.models.result import UpdateResult, summarize
from compman.services.compose import ComposeScanner, ProgressEvent, UpdateOrchestrator
from compman.services.strategy import build_strategy


# Module-level console instance (will be set by register function)
console: Console = Console()


def _apply_flags(
    config: CompmanConfig,
    paths: Optional[List[str]],
    strategy: Optional[str],
    pattern: Optional[str],
    exclude: Optional[List[str]],
    dry_run: bool,
    no_prune: bool,
) -> CompmanConfig:
    """Merge command-line flags over the loaded configuration."""
    return config.with_overrides(
        compose_paths=list(paths) if paths else None,
        image_tag_strategy=strategy,
        semver_pattern=pattern,
        exclude_images=list(exclude) if exclude else None,
        dry_run=True if dry_run else None,
        prune_after_update=False if no_prune else None,
    )


def _choose_files(
    files: List[ComposeFile],
    selection: Optional[List[str]],
    all_files: bool,
) -> List[ComposeFile]:
    if all_files:
        print_info(console, f"Updating all {len(files)} compose file(s)")
        return list(files)

    if selection:
        text = " ".join(selection)
    elif len(files) == 1:
        return list(files)
    else:
        text = typer.prompt("Select files to update (e.g. 1 3 5, 1-3, all)", default="all")

    try:
        indices = parse_selection(text, len(files))
    except ValueError as e:
        print_error(console, str(e))
        raise typer.Exit(2)
    return [files[index] for index in indices]


def _run_with_progress(orchestrator: UpdateOrchestrator, files: List[ComposeFile]) -> List[UpdateResult]:
    """Run the batch on a worker thread so Ctrl-C can cancel it cleanly."""
    results: List[UpdateResult] = []
    failure: List[BaseException] = []

    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        BarColumn(),
        TaskProgressColumn(),
        console=console,
    ) as progress:
        task = progress.add_task("Starting...", total=100)

        def on_progress(event: ProgressEvent) -> None:
            progress.update(
                task,
                completed=event.percent,
                description=f"[{event.file_index + 1}/{event.total_files}] {event.label}",
            )

        orchestrator.on_progress = on_progress

        def work() -> None:
            try:
                results.extend(orchestrator.update(files))
            except Exception as e:  # re-raised on the main thread
                failure.append(e)

        worker = threading.Thread(target=work, name="compman-update", daemon=True)
        worker.start()
        try:
            while worker.is_alive():
                worker.join(0.2)
        except KeyboardInterrupt:
            print_warning(console, "Cancelling, waiting for the current step to stop...")
            orchestrator.cancel()
            worker.join()

    if failure:
        raise failure[0]
    return results


def _status(result: UpdateResult) -> str:
    if result.success:
        return "[green]✓ updated[/green]"
    if result.skipped:
        return "[yellow]- skipped[/yellow]"
    return "[red]✗ failed[/red]"


def render_results(results: List[UpdateResult]) -> None:
    """Print per-service results and a summary line."""
    table = Table(title="Update Results", show_header=True, header_style="bold cyan")
    table.add_column("Service", style="cyan")
    table.add_column("Old Image", overflow="fold")
    table.add_column("New Image", overflow="fold")
    table.add_column("Status")
    table.add_column("Error", style="red", overflow="fold")

    for result in results:
        table.add_row(
            result.service,
            result.old_image,
            result.new_image,
            _status(result),
            str(result.error) if result.error else "",
        )
    console.print(table)

    summary = summarize(results)
    console.print(
        f"[bold]Summary:[/bold] [green]{summary.succeeded} succeeded[/green], "
        f"[yellow]{summary.skipped} skipped[/yellow], [red]{summary.failed} failed[/red]"
    )


def update(
    selection: Optional[List[str]] = typer.Argument(
        None, help="File numbers to update: '1 3 5', '1-3' or '1,3,5'"
    ),
    all_files: bool = typer.Option(False, "--all", "-a", help="Update every compose file found"),
    paths: Optional[List[str]] = typer.Option(
        None, "--paths", "-p", help="Override compose search paths (repeatable)"
    ),
    strategy: Optional[str] = typer.Option(
        None, "--strategy", "-s", help="Image tag strategy (latest, semver)"
    ),
    pattern: Optional[str] = typer.Option(None, "--pattern", help="Semver constraint, e.g. '^1.0.0'"),
    exclude: Optional[List[str]] = typer.Option(
        None, "--exclude", "-e", help="Skip images containing this text (repeatable)"
    ),
    dry_run: bool = typer.Option(False, "--dry-run", "-n", help="Show what would happen"),
    no_prune: bool = typer.Option(False, "--no-prune", help="Keep unused images afterwards"),
    config: Optional[str] = typer.Option(None, "--config", "-c", help="Config file path"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output"),
):
    """Pull new images and recreate services for selected compose files."""
    cfg = load_cli_config(console, config, verbose)
    cfg = _apply_flags(cfg, paths, strategy, pattern, exclude, dry_run, no_prune)

    try:
        validate_config(cfg)
        files = ComposeScanner().scan(cfg.compose_paths)
    except CompmanError as e:
        handle_cli_error(e, console, verbose)

    if not files:
        print_warning(console, "No Docker Compose files found")
        return

    render_compose_files(console, files)
    chosen = _choose_files(files, selection, all_files)
    if not chosen:
        print_warning(console, "No files selected")
        return

    mode = "[bold yellow]DRY RUN[/bold yellow] " if cfg.dry_run else ""
    console.print(f"\n{mode}Updating {len(chosen)} compose file(s) with the "
                  f"[cyan]{cfg.image_tag_strategy}[/cyan] strategy\n")

    try:
        orchestrator = UpdateOrchestrator(cfg, build_strategy(cfg))
        results = _run_with_progress(orchestrator, chosen)
    except Exception as e:  # pragma: no cover - CLI guard
        handle_cli_error(e, console, verbose)

    render_results(results)

    if cfg.prune_after_update and not cfg.dry_run and not orchestrator.cancel_event.is_set():
        with console.status("Pruning unused images..."):
            report = orchestrator.prune()
        if report is not None:
            print_success(
                console,
                f"Removed {report.deleted_count} image(s), reclaimed {format_size(report.space_reclaimed)}",
            )
        for warning in orchestrator.warnings:
            print_warning(console, warning)

    if summarize(results).failed:
        raise typer.Exit(1)


def register_update_commands(app: typer.Typer, shared_console: Console) -> None:
    """Register the update command with the main Typer app.

    Args:
        app: Main Typer application
        shared_console: Shared Rich console instance
    """
    global console
    console = shared_console
    app.command()(update)
