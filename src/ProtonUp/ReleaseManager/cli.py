"""Typer command line for listing, installing, and checking releases.

Provides:
- Global options (--config, --module, -v/-vv, --json-logs, --version)
- ``list``, ``install`` and ``check`` subcommands; running ``pup`` without a
  subcommand performs the update check
- Rich tables for listings and red error messages with exit code 1

Example:
    $ pup list --count 5
    $ pup install GE-Proton7-51
    $ pup -m wine-ge check
"""

import logging
from pathlib import Path
from typing import List, NoReturn, Optional

import typer
from rich.console import Console
from rich.table import Table

from . import __version__
from .errors import ReleaseManagerError
from .logging_config import setup_logging
from .manager import ReleaseManager
from .models import Release
from .net import apply_http_settings
from .settings import AppConfig, ModuleConfig, load_config, select_module

logger = logging.getLogger(__name__)

_console = Console()


class CliContext:
    """Shared state for one invocation: configuration, selected module, console."""

    def __init__(self, config: AppConfig, module_name: str, module: ModuleConfig) -> None:
        self.config = config
        self.module_name = module_name
        self.module = module
        self.console = _console

    def manager(self, module: Optional[ModuleConfig] = None) -> ReleaseManager:
        return ReleaseManager(module or self.module, http_settings=self.config.http)


app = typer.Typer(
    name="pup",
    help="Install and track Proton-GE style releases published on GitHub.",
    no_args_is_help=False,
)


def _fail(exc: Exception) -> NoReturn:
    _console.print(f"Error: {exc}", style="red", markup=False, soft_wrap=True)
    raise typer.Exit(1)


def _get_context(ctx: typer.Context) -> CliContext:
    state = ctx.obj
    if not isinstance(state, CliContext):
        raise RuntimeError("CLI context not initialized")
    return state


def _format_date(release: Release) -> str:
    stamp = release.published_at or release.created_at
    return stamp.strftime("%Y-%m-%d") if stamp else "-"


def _release_table(releases: List[Release], title: str) -> Table:
    table = Table(title=title)
    table.add_column("Tag", style="bold", no_wrap=True)
    table.add_column("Date", no_wrap=True)
    table.add_column("Installed in", overflow="fold")
    for release in releases:
        table.add_row(release.tag_name, _format_date(release), str(release.installed_in or ""))
    return table


@app.callback(invoke_without_command=True)
def main(
    ctx: typer.Context,
    config: Optional[Path] = typer.Option(
        None,
        "--config",
        "-c",
        envvar="PUP_CONFIG",
        help="Path to config file (YAML, JSON or TOML)",
    ),
    module: Optional[str] = typer.Option(
        None,
        "--module",
        "-m",
        help="Config module to operate on (defaults to the first one)",
    ),
    verbosity: int = typer.Option(
        0,
        "--verbose",
        "-v",
        count=True,
        help="Increase verbosity (-v for INFO, -vv for DEBUG)",
    ),
    json_logs: bool = typer.Option(
        False,
        "--json-logs",
        help="Emit log records as JSON lines on stderr",
    ),
    version: bool = typer.Option(
        False,
        "--version",
        "-V",
        help="Show version and exit",
    ),
) -> None:
    """Manage release installs.  Without a subcommand, check for updates."""

    if version:
        typer.echo(f"pup {__version__}")
        raise typer.Exit(0)

    try:
        app_config = load_config(config)
        module_name, module_config = select_module(app_config, module)
    except ReleaseManagerError as exc:
        _fail(exc)

    level = None
    if verbosity >= 2:
        level = "DEBUG"
    elif verbosity == 1:
        level = "INFO"
    setup_logging(app_config.logging, level=level, emit_json=json_logs or None)
    apply_http_settings(app_config.http)
    logger.debug(
        "using config module",
        extra={"stage": "cli", "config_module": module_name, "config": str(app_config.source or "defaults")},
    )

    ctx.obj = CliContext(app_config, module_name, module_config)
    if ctx.invoked_subcommand is None:
        _run_check(ctx.obj)


@app.command("list")
def list_cmd(
    ctx: typer.Context,
    installed: bool = typer.Option(False, "--installed", "-i", help="Only list installed releases"),
    count: int = typer.Option(10, "--count", "-n", min=1, max=100, help="Number of releases to show"),
) -> None:
    """List the newest releases, or the installed ones."""

    state = _get_context(ctx)
    try:
        releases = state.manager().list_releases(count, installed_only=installed)
    except ReleaseManagerError as exc:
        _fail(exc)
    if not releases:
        state.console.print("No installed releases." if installed else "No releases found.")
        return
    title = "Installed releases" if installed else f"Releases of {state.module.owner}/{state.module.repo}"
    state.console.print(_release_table(releases, title))


@app.command()
def install(
    ctx: typer.Context,
    tag: str = typer.Argument(..., help="Release tag to install, e.g. GE-Proton7-51"),
    no_cache: bool = typer.Option(False, "--no-cache", help="Always download, ignoring cached archives"),
    no_verify: bool = typer.Option(False, "--no-verify", help="Skip checksum verification"),
    install_dir: Optional[Path] = typer.Option(None, "--install-dir", help="Override the install directory"),
    cache_dir: Optional[Path] = typer.Option(None, "--cache-dir", help="Override the download cache directory"),
) -> None:
    """Download, verify, and unpack the release tagged TAG."""

    state = _get_context(ctx)
    overrides = {}
    if install_dir is not None:
        overrides["install_dir"] = install_dir.expanduser()
    if cache_dir is not None:
        overrides["cache_dir"] = cache_dir.expanduser()
    module = state.module.model_copy(update=overrides) if overrides else state.module

    try:
        result = state.manager(module).install(tag, use_cache=not no_cache, verify=not no_verify)
    except ReleaseManagerError as exc:
        _fail(exc)

    if result.verification == "skipped":
        state.console.print("[yellow]Checksum verification was skipped[/yellow]")
    state.console.print(
        f"[green]Installed {result.release.tag_name}[/green] into {result.installed_path}",
        highlight=False,
        soft_wrap=True,
    )


def _run_check(state: CliContext) -> None:
    try:
        status = state.manager().check_for_updates()
    except ReleaseManagerError as exc:
        _fail(exc)

    if status.latest is None:
        state.console.print("[red]No releases found.[/red]")
        raise typer.Exit(1)
    latest = status.latest
    if status.installed is None:
        state.console.print(
            f"The latest release {latest.tag_name} ({_format_date(latest)}) is not installed.",
            highlight=False,
            soft_wrap=True,
        )
    elif status.update_available:
        state.console.print(
            f"[yellow]Update available:[/yellow] {latest.tag_name} ({_format_date(latest)}), "
            f"installed {status.installed.tag_name}",
            highlight=False,
            soft_wrap=True,
        )
    else:
        state.console.print(
            f"[green]Up to date:[/green] {status.installed.tag_name} is the latest release.",
            highlight=False,
            soft_wrap=True,
        )


@app.command()
def check(ctx: typer.Context) -> None:
    """Report whether a newer release than the installed one is available."""

    _run_check(_get_context(ctx))


def run() -> None:
    """Console script entry point."""

    app(prog_name="pup")


__all__ = ["app", "run"]
