"""CLI entry point for pack8s.

Thin commands over the podman session handle; failures are rendered with
``sprint_error``.
"""

import logging
import sys
from collections.abc import Generator
from contextlib import contextmanager
from typing import Annotated

import typer
from pydantic import ValidationError
from rich import print as rprint
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.table import Table

from pack8s.config import Pack8sSettings
from pack8s.podman import Handle, Pack8sError, sprint_error

app = typer.Typer(
    name="pack8s",
    help="pack8s - provision and inspect podman containers for ephemeral clusters",
    no_args_is_help=True,
)

console = Console()


def configure_logging(settings: Pack8sSettings) -> None:
    """Configure the root logger from settings."""
    handler: logging.Handler
    if settings.log_format == "rich":
        handler = RichHandler(console=Console(stderr=True), show_path=False)
        fmt = "%(message)s"
    else:
        handler = logging.StreamHandler()
        fmt = "%(asctime)s %(levelname)s %(name)s: %(message)s"
    logging.basicConfig(level=settings.log_level, format=fmt, handlers=[handler], force=True)


@contextmanager
def reporting(method: str) -> Generator[None, None, None]:
    """Turn pack8s errors into a rendered message and exit code 1."""
    try:
        yield
    except Pack8sError as e:
        rprint(f"[red]{escape(sprint_error(method, e).rstrip())}[/red]")
        raise typer.Exit(1) from None


def _open(ctx: typer.Context) -> Handle:
    settings: Pack8sSettings = ctx.obj
    with reporting("open"):
        return Handle.from_settings(settings)


@app.callback()
def main(
    ctx: typer.Context,
    socket: Annotated[
        str | None,
        typer.Option("--socket", "-s", help="Engine socket URL"),
    ] = None,
    log_level: Annotated[
        str | None,
        typer.Option("--log-level", help="DEBUG, INFO, WARNING, ERROR or CRITICAL"),
    ] = None,
) -> None:
    """Load settings and configure logging."""
    overrides: dict[str, str] = {}
    if socket:
        overrides["socket"] = socket
    if log_level:
        overrides["log_level"] = log_level.upper()
    try:
        settings = Pack8sSettings(**overrides)
    except ValidationError as e:
        rprint(f"[red]Error:[/red] invalid settings: {escape(str(e))}")
        raise typer.Exit(2) from None

    configure_logging(settings)
    ctx.obj = settings


@app.command("ps")
def cmd_ps(
    ctx: typer.Context,
    prefix: Annotated[str, typer.Argument(help="Name prefix")] = "",
) -> None:
    """List containers whose name starts with PREFIX."""
    with _open(ctx) as hnd, reporting("prefixed_containers"):
        containers = hnd.prefixed_containers(prefix)

    table = Table(title="Containers")
    table.add_column("ID", style="cyan")
    table.add_column("Name")
    table.add_column("State")
    table.add_column("Status")
    table.add_column("Generation")

    for cont in containers:
        table.add_row(cont.id[:12], cont.name, cont.state, cont.status, cont.generation or "")

    console.print(table)


@app.command("volumes")
def cmd_volumes(
    ctx: typer.Context,
    prefix: Annotated[str, typer.Argument(help="Name prefix")] = "",
) -> None:
    """List volumes whose name starts with PREFIX."""
    with _open(ctx) as hnd, reporting("prefixed_volumes"):
        volumes = hnd.prefixed_volumes(prefix)

    table = Table(title="Volumes")
    table.add_column("Name", style="cyan")
    table.add_column("Mountpoint")

    for vol in volumes:
        table.add_row(vol.name, vol.mountpoint)

    console.print(table)


@app.command("pull")
def cmd_pull(
    ctx: typer.Context,
    reference: Annotated[str, typer.Argument(help="Image reference")],
) -> None:
    """Download an image, retrying on failure."""
    with _open(ctx) as hnd, reporting("pull_image"):
        image_id = hnd.pull_image(reference)
    rprint(f"[green]✓[/green] Pulled {reference} ({image_id})")


@app.command("shell")
def cmd_shell(
    ctx: typer.Context,
    name: Annotated[str, typer.Argument(help="Unique container name prefix")],
    command: Annotated[
        list[str],
        typer.Argument(help="Command to run next to the attached session"),
    ],
) -> None:
    """
    Attach the terminal to a container and run COMMAND in it.

    The terminal talks to the container's main process. COMMAND runs
    alongside it without input of its own; the session ends when it exits.
    """
    with _open(ctx) as hnd:
        with reporting("find_one_prefixed"):
            cont = hnd.find_one_prefixed(name)
        with reporting("terminal"):
            hnd.terminal(cont.id, command, sys.stdin)


@app.command("stop")
def cmd_stop(
    ctx: typer.Context,
    name: Annotated[str, typer.Argument(help="Unique container name prefix")],
    timeout: Annotated[
        int | None,
        typer.Option("--timeout", "-t", help="Seconds before the container is killed"),
    ] = None,
) -> None:
    """Stop a container."""
    settings: Pack8sSettings = ctx.obj
    with _open(ctx) as hnd:
        with reporting("find_one_prefixed"):
            cont = hnd.find_one_prefixed(name)
        with reporting("stop_container"):
            hnd.stop_container(cont.id, timeout if timeout is not None else settings.stop_timeout)
    rprint(f"[green]✓[/green] Stopped {cont.name}")


@app.command("rm")
def cmd_rm(
    ctx: typer.Context,
    prefix: Annotated[str, typer.Argument(help="Name prefix")],
    force: Annotated[bool, typer.Option("--force", "-f", help="Remove running containers")] = False,
    volumes: Annotated[
        bool, typer.Option("--volumes", "-v", help="Also remove volumes matching PREFIX")
    ] = False,
) -> None:
    """Remove every container (and optionally volume) whose name starts with PREFIX."""
    with _open(ctx) as hnd:
        with reporting("prefixed_containers"):
            containers = hnd.prefixed_containers(prefix)
        for cont in containers:
            with reporting("remove_container"):
                hnd.remove_container(cont, force=force, remove_volumes=volumes)
            rprint(f"[green]✓[/green] Removed container {cont.name}")

        if volumes:
            with reporting("prefixed_volumes"):
                matching = hnd.prefixed_volumes(prefix)
            with reporting("remove_volumes"):
                hnd.remove_volumes(matching)
            for vol in matching:
                rprint(f"[green]✓[/green] Removed volume {vol.name}")


# Entry point for the CLI
if __name__ == "__main__":
    app()
