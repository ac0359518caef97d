"""
Birdie CLI entry point.

Commands:
    birdie version     — Show version
    birdie listen      — Narrate notifications read as JSON lines from stdin
    birdie tabs        — Connect to Chrome and list tabs
    birdie monitor     — Watch chat tabs and print (or narrate) new messages
    birdie run-script  — Evaluate JavaScript in a tab
"""

from __future__ import annotations

import asyncio
import logging

import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table

app = typer.Typer(
    name="birdie",
    help="Birdie — reads your notifications out loud.",
    add_completion=False,
)

console = Console()


def _load_config(verbose: bool):
    from birdie.core.config import BirdieConfig
    from birdie.middleware.logging import setup_logging

    config = BirdieConfig.load()
    setup_logging(
        log_dir=config.get_log_dir(),
        console_level=logging.DEBUG if verbose else logging.WARNING,
    )
    return config


def _make_kernel(config):
    from birdie.core.kernel import Kernel
    from birdie.middleware.logging import EventLogger

    kernel = Kernel(config=config)
    kernel.use(
        EventLogger(log_dir=config.get_log_dir(), log_events=config.logging.log_events).middleware
    )
    return kernel


def _make_session(config, kernel):
    from birdie.cdp.client import ChromeCDPClient
    from birdie.cdp.session import CDPSession

    client = ChromeCDPClient(
        host=config.cdp.host,
        connect_timeout=config.cdp.connect_timeout,
        script_timeout=config.cdp.script_timeout,
        help_url=config.cdp.help_url,
    )
    session = CDPSession(client, bus=kernel.bus, config=config.cdp)
    kernel.on_shutdown(session.disconnect)
    return session


def _print_connection_error(session) -> None:
    console.print(f"[red]✗ {escape(session.last_error or 'Connection failed')}[/red]")
    if session.error_help_url:
        console.print(f"[dim]Help: {session.error_help_url}[/dim]")


@app.command()
def version() -> None:
    """Show Birdie version."""
    from birdie import __version__

    console.print(f"Birdie v{__version__}")


# ━━━ listen ━━━


@app.command()
def listen(
    lang: str = typer.Option(None, "--lang", "-l", help="Narration language code"),
    engine: str = typer.Option(None, "--engine", "-e", help="auto, say, espeak, espeak-ng, mock"),
    drain: bool = typer.Option(True, "--drain/--no-drain", help="Play the rest of the queue at EOF"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show debug output"),
) -> None:
    """Narrate notifications piped in as JSON lines."""
    asyncio.run(_run_listen(lang, engine, drain, verbose))


async def _run_listen(
    lang: str | None, engine_name: str | None, drain: bool, verbose: bool
) -> None:
    from birdie.core.events import Event, EventType
    from birdie.notifications.source import JsonLinesSource
    from birdie.playback.controller import PlaybackController
    from birdie.speech.detect import detect_engine

    config = _load_config(verbose)
    if lang:
        config.playback.lang = lang

    kernel = _make_kernel(config)
    speech = detect_engine(engine_name or config.speech.engine, voice=config.speech.voice)
    controller = PlaybackController(speech, bus=kernel.bus, config=config.playback)

    async def on_started(event: Event) -> None:
        n = event.data["notification"]
        console.print(
            f"[bold green]▶[/bold green] [cyan]{escape(n['app_name'])}[/cyan] · "
            f"{escape(n['sender'])}: {escape(n['message'])}"
        )

    async def on_queued(event: Event) -> None:
        console.print(f"[dim]queued ({event.data['queue_size']} waiting)[/dim]")

    async def on_error(event: Event) -> None:
        console.print(f"[red]✗ {escape(event.data['error'])}[/red]")

    kernel.on(EventType.PLAYBACK_STARTED, on_started)
    kernel.on(EventType.NOTIFICATION_QUEUED, on_queued)
    kernel.on(EventType.PLAYBACK_ERROR, on_error)
    kernel.on_shutdown(speech.close)
    kernel.on_shutdown(controller.close)

    await kernel.start()
    try:
        await JsonLinesSource().run(controller.enqueue)
        await controller.wait_until_finished()
        while drain and controller.queue:
            await controller.play_next()
            await controller.wait_until_finished()
    finally:
        await kernel.stop()


# ━━━ tabs ━━━


@app.command()
def tabs(
    port: int = typer.Option(None, "--port", "-p", help="Chrome remote debugging port"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show debug output"),
) -> None:
    """Connect to Chrome and list its tabs."""
    asyncio.run(_run_tabs(port, verbose))


async def _run_tabs(port: int | None, verbose: bool) -> None:
    config = _load_config(verbose)
    kernel = _make_kernel(config)
    session = _make_session(config, kernel)

    try:
        result = await session.connect(port)
        if not result.success:
            _print_connection_error(session)
            raise typer.Exit(1)

        table = Table(title=f"Chrome tabs (port {session.port})")
        table.add_column("ID", style="dim")
        table.add_column("Title")
        table.add_column("Domain", style="cyan")
        table.add_column("Monitorable", justify="center")
        for tab in session.tabs:
            table.add_row(
                tab.id,
                escape(tab.title),
                tab.domain,
                "[green]✓[/green]" if tab.has_selector else "",
            )
        console.print(table)
    finally:
        await kernel.stop()


# ━━━ monitor ━━━


@app.command()
def monitor(
    port: int = typer.Option(None, "--port", "-p", help="Chrome remote debugging port"),
    interval: int = typer.Option(None, "--interval", "-i", help="Polling interval in ms (500-10000)"),
    speak: bool = typer.Option(False, "--speak", "-s", help="Narrate detected messages"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show debug output"),
) -> None:
    """Watch chat tabs for new messages until Ctrl+C."""
    try:
        asyncio.run(_run_monitor(port, interval, speak, verbose))
    except KeyboardInterrupt:
        console.print("[dim]Stopped.[/dim]")


async def _run_monitor(
    port: int | None, interval: int | None, speak: bool, verbose: bool
) -> None:
    from birdie.cdp.monitor import MonitorLoop
    from birdie.core.events import Event, EventType
    from birdie.notifications.base import Notification
    from birdie.playback.controller import PlaybackController
    from birdie.speech.detect import detect_engine

    config = _load_config(verbose)
    kernel = _make_kernel(config)
    session = _make_session(config, kernel)
    loop = MonitorLoop(session, bus=kernel.bus, config=config.monitor)

    controller: PlaybackController | None = None
    speech = None
    if speak:
        speech = detect_engine(config.speech.engine, voice=config.speech.voice)
        controller = PlaybackController(speech, bus=kernel.bus, config=config.playback)
        kernel.on_shutdown(speech.close)
        kernel.on_shutdown(controller.close)
    kernel.on_shutdown(loop.stop)

    async def on_message(event: Event) -> None:
        m = event.data
        console.print(
            f"[bold magenta]●[/bold magenta] [cyan]{escape(m['source'])}[/cyan] "
            f"{escape(m['sender'] or '?')}: {escape(m['message'])}"
        )
        if controller is not None:
            await controller.enqueue(
                Notification(app_name=m["source"], sender=m["sender"], message=m["message"])
            )
            await controller.play_next()

    kernel.on(EventType.MONITOR_MESSAGE, on_message)
    await kernel.start()

    try:
        result = await session.connect(port)
        if not result.success:
            _print_connection_error(session)
            raise typer.Exit(1)

        status = await loop.start(interval)
        if status.tabs_monitored == 0:
            console.print("[yellow]No monitorable tabs open (Meet, Teams, Discord, WhatsApp, Telegram).[/yellow]")
        else:
            console.print(
                f"[green]Monitoring {status.tabs_monitored} tabs every {status.interval_ms}ms.[/green] "
                f"[dim]Ctrl+C to stop.[/dim]"
            )
        await asyncio.Event().wait()
    finally:
        await kernel.stop()


# ━━━ run-script ━━━


@app.command("run-script")
def run_script(
    tab: str = typer.Argument(..., help="Tab id, or a substring of its title"),
    script: str = typer.Argument(..., help="JavaScript expression to evaluate"),
    port: int = typer.Option(None, "--port", "-p", help="Chrome remote debugging port"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show debug output"),
) -> None:
    """Evaluate JavaScript in a tab and print the result."""
    asyncio.run(_run_script(tab, script, port, verbose))


async def _run_script(tab_ref: str, script: str, port: int | None, verbose: bool) -> None:
    config = _load_config(verbose)
    kernel = _make_kernel(config)
    session = _make_session(config, kernel)

    try:
        result = await session.connect(port)
        if not result.success:
            _print_connection_error(session)
            raise typer.Exit(1)

        target = session.registry.get(tab_ref) or session.find_tab(tab_ref)
        if target is None:
            console.print(f"[red]✗ No tab matches {escape(tab_ref)!r}[/red]")
            raise typer.Exit(1)

        outcome = await session.execute_script(target.id, script)
        if not outcome.success:
            console.print(f"[red]✗ {escape(outcome.error or 'Script failed')}[/red]")
            raise typer.Exit(1)
        console.print(outcome.result if outcome.result is not None else "[dim]null[/dim]")
    finally:
        await kernel.stop()


if __name__ == "__main__":
    app()
