"""Config command group - show and initialise the configuration file."""
from typing import Optional

import typer
import yaml
from rich.console import Console
from rich.syntax import Syntax

from compman.cli_support import (
    handle_cli_error,
    load_cli_config,
    print_error,
    print_info,
    print_success,
)
from compman.core.config import default_config, resolve_config_path, save_config
from compman.core.errors import CompmanError

ConfigApp = typer.Typer(help="Show or create the compman configuration", add_completion=False)

_console: Console = Console()


def register_config_commands(app: typer.Typer, console: Console) -> None:
    """Attach config commands to the primary CLI."""
    global _console
    _console = console
    app.add_typer(ConfigApp, name="config")


@ConfigApp.callback(invoke_without_command=True)
def config_show(
    ctx: typer.Context,
    path_only: bool = typer.Option(False, "--path-only", help="Only print the config file path"),
    config: Optional[str] = typer.Option(None, "--config", "-c", help="Config file path"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output"),
) -> None:
    """Show the active configuration."""
    if ctx.invoked_subcommand is not None:
        return

    path = resolve_config_path(config)
    if path_only:
        _console.print(str(path))
        return

    cfg = load_cli_config(_console, config, verbose)
    if path.exists():
        print_info(_console, f"Config file: {path}")
    else:
        print_info(_console, f"No config file at {path}, showing defaults (run 'compman config init')")

    rendered = yaml.safe_dump(cfg.to_dict(), default_flow_style=False, sort_keys=False)
    _console.print(Syntax(rendered, "yaml", theme="ansi_dark"))


@ConfigApp.command("init")
def config_init(
    force: bool = typer.Option(False, "--force", "-f", help="Overwrite an existing file"),
    config: Optional[str] = typer.Option(None, "--config", "-c", help="Config file path"),
) -> None:
    """Write a default configuration file."""
    path = resolve_config_path(config)
    if path.exists() and not force:
        print_error(_console, f"{path} already exists (use --force to overwrite)")
        raise typer.Exit(1)

    try:
        written = save_config(default_config(), str(path))
    except (CompmanError, OSError) as e:
        handle_cli_error(e, _console)

    print_success(_console, f"Wrote default configuration to {written}")
