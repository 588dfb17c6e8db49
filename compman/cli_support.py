"""Shared utilities for compman CLI modules."""
from __future__ import annotations

import re
from typing import List, Optional

import typer
from rich.console import Console
from rich.table import Table

from compman.core.config import CompmanConfig, load_config
from compman.core.errors import CompmanError
from compman.core.logger import set_console_level
from compman.models.compose import ComposeFile

_RANGE_RE = re.compile(r"^(\d+)-(\d+)$")


def setup_file_logging(log_file: Optional[str] = None, verbose: bool = False) -> None:
    """Set up file logging for CLI commands.

    Args:
        log_file: Path to log file (optional)
        verbose: Enable verbose logging
    """
    from compman.core.logger import setup_file_logging as _setup_file_logging
    _setup_file_logging(log_file=log_file, verbose=verbose)
    set_console_level(verbose)


def load_cli_config(
    console: Console,
    config_path: Optional[str] = None,
    verbose: bool = False,
) -> CompmanConfig:
    """Load configuration for a command, exiting with an error when it is unusable."""
    setup_file_logging(verbose=verbose)
    try:
        return load_config(config_path)
    except CompmanError as e:
        handle_cli_error(e, console, verbose)


def parse_selection(text: str, count: int) -> List[int]:
    """Parse a file selection into zero-based indices.

    Accepts '1 3 5', '1,3,5', '1-3', mixtures of those, and 'all'. Numbers are
    one-based; order of first appearance is kept and duplicates dropped.

    Raises:
        ValueError: For tokens that are not numbers/ranges or fall outside 1..count
    """
    tokens = [token for token in re.split(r"[\s,]+", text.strip()) if token]
    if not tokens:
        raise ValueError("No files selected")

    if len(tokens) == 1 and tokens[0].lower() in ("all", "a", "*"):
        return list(range(count))

    indices: List[int] = []
    for token in tokens:
        match = _RANGE_RE.match(token)
        if match:
            start, end = int(match.group(1)), int(match.group(2))
            if start > end:
                raise ValueError(f"Invalid range: {token}")
            numbers = range(start, end + 1)
        elif token.isdigit():
            numbers = [int(token)]
        else:
            raise ValueError(f"Invalid selection: {token}")

        for number in numbers:
            if not 1 <= number <= count:
                raise ValueError(f"Selection {number} is out of range (1-{count})")
            if number - 1 not in indices:
                indices.append(number - 1)
    return indices


def render_compose_files(console: Console, files: List[ComposeFile], title: str = "Compose Files") -> None:
    """Print a numbered table of compose files."""
    table = Table(title=title, show_header=True, header_style="bold cyan")
    table.add_column("#", justify="right", style="dim")
    table.add_column("Project", style="cyan")
    table.add_column("File", overflow="fold")
    table.add_column("Services", justify="right")
    table.add_column("Images", justify="right")

    for number, compose_file in enumerate(files, start=1):
        table.add_row(
            str(number),
            compose_file.project_name,
            compose_file.file_path,
            str(len(compose_file.services)),
            str(len(compose_file.image_services())),
        )
    console.print(table)


def confirm_action(message: str, yes_flag: bool = False) -> bool:
    """Prompt user for confirmation unless --yes.

    Args:
        message: Confirmation message to display
        yes_flag: Skip prompt if True (from --yes flag)

    Returns:
        True if confirmed, False otherwise
    """
    if yes_flag:
        return True
    return typer.confirm(message)


def handle_cli_error(
    e: Exception,
    console: Console,
    verbose: bool = False,
    exit_code: int = 1
) -> None:
    """Handle CLI errors with consistent formatting.

    Args:
        e: Exception to handle
        console: Rich console for output
        verbose: Show exception traceback if True
        exit_code: Exit code to use
    """
    console.print(f"[red]Error:[/red] {e}")
    if verbose:
        console.print_exception()
    raise typer.Exit(exit_code)


def print_success(console: Console, message: str, prefix: str = "✓") -> None:
    """Print success message with consistent formatting.

    Args:
        console: Rich console for output
        message: Success message
        prefix: Prefix symbol (default: ✓)
    """
    console.print(f"[green]{prefix}[/green] {message}")


def print_error(console: Console, message: str, prefix: str = "✗") -> None:
    """Print error message with consistent formatting."""
    console.print(f"[red]{prefix}[/red] {message}")


def print_warning(console: Console, message: str, prefix: str = "⚠") -> None:
    """Print warning message with consistent formatting."""
    console.print(f"[yellow]{prefix}[/yellow] {message}")


def print_info(console: Console, message: str, prefix: str = "ℹ") -> None:
    """Print info message with consistent formatting."""
    console.print(f"[cyan]{prefix}[/cyan] {message}")
