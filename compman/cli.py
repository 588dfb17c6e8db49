#!/usr/bin/env python3
"""compman CLI - Keep Docker Compose services on current images."""

from typing import Optional

import typer

from compman.cli_config_commands import register_config_commands
from compman.cli_image_commands import register_image_commands
from compman.cli_scan_commands import register_scan_commands
from compman.cli_update_commands import register_update_commands
from compman.core.logger import console, get_logger

VERSION = "1.0.0"

app = typer.Typer(
    name="compman",
    help="""compman - Docker Compose image updater

Finds compose files, resolves new image tags and recreates services.

Quick start:
  compman scan                 # List compose files under configured paths
  compman update --all         # Pull and recreate everything
  compman update 1 3 --dry-run # Preview two files
  compman clean                # Remove unused images
""",
    add_completion=False,
)

logger = get_logger(__name__)


def _version_callback(value: bool) -> None:
    if value:
        console.print(f"compman {VERSION}")
        raise typer.Exit()


@app.callback()
def main(
    version: Optional[bool] = typer.Option(
        None, "--version", callback=_version_callback, is_eager=True, help="Show version and exit"
    ),
) -> None:
    """compman - Docker Compose image updater."""


# Attach modular subcommands
register_update_commands(app, console)
register_scan_commands(app, console)
register_image_commands(app, console)
register_config_commands(app, console)

if __name__ == "__main__":
    app()
