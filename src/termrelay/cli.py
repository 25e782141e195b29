"""CLI entry point for termrelay."""

from __future__ import annotations

import asyncio
import logging
import os
import sys
from pathlib import Path

import typer
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel

from termrelay.bus.wire import EventType, Wire, WireEvent
from termrelay.config import RelayConfig
from termrelay.errors import RelayError
from termrelay.keys import key_sequence
from termrelay.models import OutputKind, OutputUnit, SessionStatus
from termrelay.output.classifier import classify
from termrelay.output.response import match_option
from termrelay.pty.manager import SessionManager

app = typer.Typer(
    name="termrelay",
    help="Drive interactive coding CLIs (Claude Code, OpenCode) through their terminals.",
    no_args_is_help=True,
)

CONSOLE_CHANNEL = "console"

console = Console()


def setup_logging(verbose: bool = False) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )


def render_unit(unit: OutputUnit) -> None:
    if unit.requires_confirm:
        console.print(Panel(escape(unit.content), title="confirm", border_style="yellow"))
    elif unit.kind == OutputKind.ERROR:
        console.print(f"[bold red]{escape(unit.content)}[/bold red]")
    else:
        console.print(escape(unit.content))


def render_event(event: WireEvent) -> None:
    d = event.data
    name = d.get("session", "?")
    if event.type == EventType.OUTPUT_RECEIVED:
        render_unit(d["unit"])
    elif event.type == EventType.ERROR and d["error"].startswith("Process exited"):
        # Classified errors already arrive as OUTPUT_RECEIVED
        console.print(f"[bold red][{escape(name)}] {escape(d['error'])}[/bold red]")
    elif event.type == EventType.SESSION_CREATED:
        console.print(f"[green]session {escape(name)} started in {escape(d['work_dir'])}[/green]")
    elif event.type == EventType.SESSION_CLOSED:
        console.print(f"[dim]session {escape(name)} closed[/dim]")
    elif event.type == EventType.SESSION_SWITCHED:
        console.print(f"[cyan]channel {escape(d['channel_id'])} -> {escape(name)}[/cyan]")


async def _consume_wire(queue: asyncio.Queue[WireEvent | None]) -> None:
    while True:
        event = await queue.get()
        if event is None:
            break
        render_event(event)


async def _handle_line(manager: SessionManager, line: str) -> bool:
    """Route one console line. Returns False when the user asked to quit."""
    session = manager.get_active_session(CONSOLE_CHANNEL)
    command = line.strip()

    if command in (":quit", ":q"):
        return False
    if session is None:
        console.print("[yellow]No active session[/yellow]")
        return True
    if command == ":restart":
        await manager.restart_session(session.name)
        return True
    if command == ":status":
        info = session.get_info()
        console.print(f"{info.name}: {info.status.value} ({info.work_dir})")
        return True
    if session.status == SessionStatus.ERROR:
        console.print("[yellow]Session has crashed; use :restart[/yellow]")
        return True
    if command.startswith(":"):
        try:
            await session.send_raw_input(key_sequence(command[1:]))
        except KeyError:
            console.print(f"[yellow]Unknown key: {escape(command[1:])}[/yellow]")
        return True

    pending = session.pending_confirm
    if pending is not None:
        choice = match_option(line, pending.options)
        if choice is None:
            console.print(f"[yellow]Choose one of: {', '.join(pending.options)}[/yellow]")
            return True
        await session.send_confirm_response(choice)
        return True

    await session.send_input(line)
    return True


async def _run_console(
    config: RelayConfig, name: str, work_dir: str, tool: str | None
) -> None:
    wire = Wire()
    manager = SessionManager(config, wire)
    queue = wire.subscribe()
    consumer_task = asyncio.create_task(_consume_wire(queue))

    try:
        await manager.create_session(name, work_dir, CONSOLE_CHANNEL, tool)
    except RelayError as e:
        console.print(f"[bold red]ERROR: {escape(str(e))}[/bold red]")
        console.print("[dim]Use :restart to try again or :quit to exit[/dim]")

    try:
        while True:
            line = await asyncio.to_thread(sys.stdin.readline)
            if not line:
                break
            try:
                if not await _handle_line(manager, line.rstrip("\n")):
                    break
            except RelayError as e:
                console.print(f"[bold red]ERROR: {escape(str(e))}[/bold red]")
    finally:
        await manager.close_all()
        wire.close()
        await consumer_task


@app.command()
def run(
    tool: str | None = typer.Option(
        None, "--tool", "-t", help="CLI tool kind (default: from config)."
    ),
    workdir: str = typer.Option(
        ".", "--workdir", "-w", help="Working directory for the session."
    ),
    name: str = typer.Option("main", "--name", "-n", help="Session name."),
    verbose: bool = typer.Option(
        False, "--verbose", "-v", help="Enable debug logging."
    ),
    config_file: str | None = typer.Option(
        None, "--config", "-c", help="Config file path (YAML or JSON)."
    ),
) -> None:
    """Run one session and relay it through this console.

    Lines are sent as input, or as the answer when a prompt is pending.
    ``:up``/``:down``/``:enter``/``:esc`` send keys, ``:restart`` restarts
    a crashed session, ``:quit`` exits.
    """
    setup_logging(verbose)
    config = RelayConfig.load(config_file)
    typer.echo(f"Tool: {tool or config.cli.default}")
    typer.echo(f"Workdir: {os.path.abspath(workdir)}")
    typer.echo("---")
    asyncio.run(_run_console(config, name, workdir, tool))


@app.command(name="classify")
def classify_file(
    capture: str = typer.Argument(..., help="File with raw terminal output."),
) -> None:
    """Classify a raw terminal capture and print the resulting units."""
    path = Path(capture)
    if not path.is_file():
        typer.echo(f"Error: File not found: {capture}", err=True)
        raise typer.Exit(1)

    units = classify(path.read_bytes())
    if not units:
        typer.echo("(no output)")
    for unit in units:
        console.print(f"[bold]{unit.kind.value}[/bold]")
        if unit.options:
            console.print(f"options: {list(unit.options)}")
        render_unit(unit)


if __name__ == "__main__":
    app()
