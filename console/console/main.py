"""Main CLI entry point for container-stats.

This module defines the Typer application and its commands.
"""

from __future__ import annotations

import asyncio
import logging
import sys
import time
from pathlib import Path
from typing import TYPE_CHECKING, Annotated

import structlog
import typer
import yaml
from pydantic import ValidationError
from rich.console import Console
from rich.live import Live
from rich.table import Table

from monitor import (
    ConfigManager,
    DockerRuntime,
    LogLevel,
    MonitorError,
    open_subscription_from_config,
)

from . import __version__
from .rows import DEFAULT_THEME, StatsRow

if TYPE_CHECKING:
    from monitor import ContainerRef, ContainerRuntime, MonitorConfig, Subscription

app = typer.Typer(
    name="container-stats",
    help="Live resource usage of running containers.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)
config_app = typer.Typer(help="Manage the configuration file.", no_args_is_help=True)
app.add_typer(config_app, name="config")

console = Console()

# How often the live table is redrawn, independent of the sampling interval
REFRESH_SECONDS = 0.5

STATS_COLUMNS = (
    "CONTAINER",
    "NAME",
    "CPU %",
    "MEM USAGE / LIMIT",
    "NET RX / TX",
    "BLOCK I/O",
    "PIDS",
)


def configure_logging(log_level: str) -> None:
    """Configure structlog and standard logging with the specified level.

    Log output goes to stderr so it does not interleave with the live table.

    Args:
        log_level: Log level string (debug, info, warning, error).
    """
    level_map = {
        "debug": logging.DEBUG,
        "info": logging.INFO,
        "warning": logging.WARNING,
        "error": logging.ERROR,
    }
    level = level_map.get(log_level.lower(), logging.WARNING)

    logging.basicConfig(
        format="%(message)s",
        level=level,
        stream=sys.stderr,
        force=True,
    )

    structlog.configure(
        wrapper_class=structlog.make_filtering_bound_logger(level),
        processors=[
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="%Y-%m-%d %H:%M:%S"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.dev.ConsoleRenderer(),
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=False,
    )


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        console.print(f"[bold blue]container-stats[/bold blue] version {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: Annotated[
        bool | None,
        typer.Option(
            "--version",
            "-V",
            help="Show version and exit.",
            callback=version_callback,
            is_eager=True,
        ),
    ] = None,
) -> None:
    """Container-Stats: live CPU, memory, network and block I/O of containers."""


ConfigOption = Annotated[
    Path | None,
    typer.Option("--config", "-c", help="Path to the configuration file."),
]
LogLevelOption = Annotated[
    LogLevel | None,
    typer.Option("--log-level", "-l", help="Override the configured log level."),
]


def _load_config(config_path: Path | None, log_level: LogLevel | None = None) -> MonitorConfig:
    """Load configuration and set up logging, exiting on invalid files."""
    try:
        config = ConfigManager(config_path).load()
    except (yaml.YAMLError, ValidationError, ValueError) as e:
        console.print(f"[red]Invalid configuration:[/red] {e}")
        raise typer.Exit(1) from None

    configure_logging((log_level or config.log_level).value)
    return config


def build_stats_table(rows: list[StatsRow], show_processes: bool = False) -> Table:
    """Build the live stats table.

    Args:
        rows: Rows to render, in display order.
        show_processes: Add a column with process commands.

    Returns:
        Rich table.
    """
    table = Table(expand=True, box=None, header_style="bold")
    for column in STATS_COLUMNS:
        table.add_column(column, no_wrap=True)
    if show_processes:
        table.add_column("PROCESSES", overflow="ellipsis", no_wrap=True)
    for row in rows:
        table.add_row(*row.cells(show_processes=show_processes))
    return table


@app.command()
def ps(
    all_containers: Annotated[
        bool,
        typer.Option("--all", "-a", help="Show stopped containers too."),
    ] = False,
    config_path: ConfigOption = None,
    log_level: LogLevelOption = None,
) -> None:
    """List containers."""
    config = _load_config(config_path, log_level)
    try:
        containers = asyncio.run(_list_containers(config, all_containers))
    except MonitorError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1) from None

    table = Table(title="Containers")
    table.add_column("CONTAINER ID", style="cyan", no_wrap=True)
    table.add_column("NAME")
    table.add_column("IMAGE")
    table.add_column("COMMAND")
    table.add_column("STATUS")
    for container in containers:
        status_style = "green" if container.is_running else "dim"
        table.add_row(
            container.short_id,
            container.display_name,
            container.image,
            container.command,
            f"[{status_style}]{container.status or container.state}[/{status_style}]",
        )
    console.print(table)


async def _list_containers(config: MonitorConfig, all_containers: bool) -> list[ContainerRef]:
    async with DockerRuntime.from_config(config) as runtime:
        return await runtime.list_containers(all=all_containers)


@app.command()
def watch(
    containers: Annotated[
        list[str] | None,
        typer.Argument(help="Container names or IDs. Defaults to every running container."),
    ] = None,
    all_containers: Annotated[
        bool,
        typer.Option("--all", "-a", help="Include stopped containers as inactive rows."),
    ] = False,
    interval: Annotated[
        float | None,
        typer.Option("--interval", "-i", min=0.1, help="Seconds between samples."),
    ] = None,
    no_processes: Annotated[
        bool,
        typer.Option("--no-processes", help="Do not query container process lists."),
    ] = False,
    show_processes: Annotated[
        bool,
        typer.Option("--processes", "-p", help="Show process commands in the table."),
    ] = False,
    duration: Annotated[
        float | None,
        typer.Option("--duration", "-d", min=0.0, help="Stop after this many seconds."),
    ] = None,
    config_path: ConfigOption = None,
    log_level: LogLevelOption = None,
) -> None:
    """Show live resource usage of containers until interrupted."""
    config = _load_config(config_path, log_level)
    updates: dict[str, object] = {}
    if interval is not None:
        updates["sample_interval_seconds"] = interval
    if no_processes:
        updates["process_list_enabled"] = False
    if updates:
        config = config.model_copy(update=updates)

    try:
        asyncio.run(
            _watch(config, containers or [], all_containers, show_processes, duration)
        )
    except KeyboardInterrupt:
        pass
    except MonitorError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1) from None


async def _resolve_containers(
    runtime: ContainerRuntime, names: list[str], all_containers: bool
) -> list[ContainerRef]:
    if names:
        return [await runtime.inspect_container(name) for name in names]
    return await runtime.list_containers(all=all_containers)


async def _watch(
    config: MonitorConfig,
    names: list[str],
    all_containers: bool,
    show_processes: bool,
    duration: float | None,
) -> None:
    async with DockerRuntime.from_config(config) as runtime:
        targets = await _resolve_containers(runtime, names, all_containers)
        if not targets:
            console.print("[yellow]No containers to watch.[/yellow]")
            return
        await watch_containers(runtime, targets, config, show_processes, duration)


async def watch_containers(
    runtime: ContainerRuntime,
    containers: list[ContainerRef],
    config: MonitorConfig,
    show_processes: bool = False,
    duration: float | None = None,
) -> list[StatsRow]:
    """Render live stats of containers until done.

    Stops when ``duration`` elapses, every subscription has ended, or the
    surrounding task is cancelled. All subscriptions are cancelled on exit.

    Args:
        runtime: Runtime to subscribe through.
        containers: Containers to show.
        config: Monitor configuration.
        show_processes: Show process commands in the table.
        duration: Seconds to run, or None to run until interrupted.

    Returns:
        The rows in their final state.
    """
    rows = [StatsRow(container, DEFAULT_THEME) for container in containers]
    subscriptions: list[Subscription] = [
        open_subscription_from_config(runtime, container, config) for container in containers
    ]
    followers = [
        asyncio.create_task(row.follow(sub)) for row, sub in zip(rows, subscriptions, strict=True)
    ]
    deadline = None if duration is None else time.monotonic() + duration

    try:
        with Live(
            build_stats_table(rows, show_processes),
            console=console,
            refresh_per_second=1 / REFRESH_SECONDS,
            transient=False,
        ) as live:
            while not all(task.done() for task in followers):
                if deadline is not None and time.monotonic() >= deadline:
                    break
                await asyncio.sleep(REFRESH_SECONDS)
                live.update(build_stats_table(rows, show_processes))
            live.update(build_stats_table(rows, show_processes))
    finally:
        for sub in subscriptions:
            await sub.aclose()
        await asyncio.gather(*followers, return_exceptions=True)

    return rows


@config_app.command("init")
def config_init(
    force: Annotated[
        bool,
        typer.Option("--force", "-f", help="Overwrite an existing configuration file."),
    ] = False,
    config_path: ConfigOption = None,
) -> None:
    """Write a configuration file with default values."""
    manager = ConfigManager(config_path)
    if manager.init_config(force=force):
        console.print(f"[green]Configuration written to[/green] {manager.config_path}")
    else:
        console.print(
            f"[yellow]Configuration already exists at[/yellow] {manager.config_path} "
            "(use --force to overwrite)"
        )


@config_app.command("show")
def config_show(config_path: ConfigOption = None) -> None:
    """Show the effective configuration."""
    config = _load_config(config_path)
    console.print(
        yaml.dump(config.model_dump(mode="json"), default_flow_style=False, sort_keys=False),
        markup=False,
    )


if __name__ == "__main__":
    app()
