"""
adapters.cli.main - CLI adapter for the assistant.

Mirrors src/adapters/rest/ but for terminal use. Uses the same
ServiceFactory, ChatService and TaskScheduler as the REST API so all
behaviour (planning, budgets, memory, scheduling) is identical.

Commands
--------
  ask              One-shot request
  chat             Interactive chat session (streams the answer as it is drafted)
  tasks list       Show scheduled tasks
  tasks add        Schedule a recurring tool call
  tasks remove     Delete a task (by id or name)
  tasks enable     Re-enable a task
  tasks disable    Pause a task
  scheduler run    Run the scheduler in the foreground

Usage
-----
  python run_cli.py ask "what's 12*7"
  python run_cli.py chat
  python run_cli.py tasks add "morning weather" "daily at 7am" weather "weather in Lisbon"
"""

from __future__ import annotations

import asyncio
import json
import sys
from pathlib import Path
from typing import Any, Optional

# ── Ensure src/ is on the path ──
_SRC = Path(__file__).resolve().parent.parent.parent
sys.path.insert(0, str(_SRC))

import typer
from rich import box
from rich.console import Console
from rich.markdown import Markdown
from rich.panel import Panel
from rich.prompt import Prompt
from rich.table import Table

from adapters.cli.session import current_session
from application.dto import ChatReply
from domain.exceptions import ScheduleParseError, TaskNotFoundError
from factory import ServiceFactory
from infrastructure.config import Settings
from infrastructure.logging_config import configure_logging

__version__ = "0.1.0"

console = Console()
app = typer.Typer(
    help="Local agent orchestrator CLI",
    add_completion=False,
    no_args_is_help=True,
)
tasks_app = typer.Typer(help="Manage scheduled tasks.", no_args_is_help=True)
scheduler_app = typer.Typer(help="Run the task scheduler.", no_args_is_help=True)
app.add_typer(tasks_app, name="tasks")
app.add_typer(scheduler_app, name="scheduler")


# ---------------------------------------------------------------------------
# Shared helpers
# ---------------------------------------------------------------------------

async def _make_factory() -> ServiceFactory:
    """Create and initialise a ServiceFactory from the environment."""
    config = Settings.from_env()
    configure_logging(config.log_level, rich=True)
    factory = ServiceFactory(config)
    await factory.initialize()
    return factory


def _version_callback(value: bool) -> None:
    if value:
        console.print(f"local-agent v{__version__}")
        raise typer.Exit()


def _footer(reply: ChatReply) -> str:
    result = reply.result
    colour = "green" if result.success else "red"
    return (
        f"[{colour}]{result.tool}[/{colour}] · "
        f"confidence {result.confidence:.0%} · "
        f"{len(result.trace)} step(s)"
    )


def _print_trace(reply: ChatReply) -> None:
    t = Table(box=box.SIMPLE, padding=(0, 1))
    t.add_column("Step", justify="right")
    t.add_column("Tool", style="bold")
    t.add_column("OK")
    t.add_column("Flags")
    t.add_column("Output", overflow="fold")
    for entry in reply.result.trace:
        flags = ", ".join(entry.contradictions + entry.citation_miss) or "[dim]—[/dim]"
        output = entry.output if isinstance(entry.output, str) else json.dumps(entry.output, default=str)
        t.add_row(
            f"{entry.step:g}",
            entry.tool,
            "[green]yes[/green]" if entry.success else "[red]no[/red]",
            flags,
            output[:160],
        )
    console.print(Panel(t, title="Trace", border_style="dim"))


async def _converse(
    factory: ServiceFactory, message: str, conversation_id: Optional[str],
) -> ChatReply:
    """Run one message, showing step progress and streaming the answer."""
    service = factory.create_chat_service()
    streamed: list[str] = []
    status = console.status("[bold cyan]Planning…", spinner="dots")
    status.start()

    def on_step(event: dict[str, Any]) -> None:
        if event.get("event") == "step_start":
            status.update(
                f"[bold cyan]Step {event['step']}/{event['total']}: {event['tool']}…"
            )

    def on_chunk(chunk: str) -> None:
        if not streamed:
            status.stop()
            console.print()
        streamed.append(chunk)
        console.print(chunk, end="", markup=False, highlight=False)

    try:
        reply = await service.handle(
            message, conversation_id, on_chunk=on_chunk, on_step=on_step,
        )
    finally:
        status.stop()

    if streamed:
        console.print()
        console.print(_footer(reply))
    else:
        console.print()
        console.print(Panel(
            Markdown(reply.reply),
            subtitle=_footer(reply),
            border_style="green" if reply.result.success else "red",
        ))
    return reply


# ---------------------------------------------------------------------------
# Commands: chat
# ---------------------------------------------------------------------------

@app.command()
def ask(
    request: str = typer.Argument(..., help="What you want the assistant to do."),
    trace: bool = typer.Option(False, "--trace", "-t", help="Print the execution trace."),
) -> None:
    """Ask a one-shot question."""

    async def _run() -> None:
        factory = await _make_factory()
        reply = await _converse(factory, request, None)
        if trace:
            _print_trace(reply)

    asyncio.run(_run())


@app.command()
def chat(
    new: bool = typer.Option(False, "--new", "-n", help="Start a new conversation."),
    trace: bool = typer.Option(False, "--trace", "-t", help="Print the trace after each answer."),
) -> None:
    """Start an interactive chat session."""
    session = current_session(new=new)

    async def _run() -> None:
        factory = await _make_factory()
        console.print(Panel(
            "[bold]Local Agent Chat[/bold]\n"
            f"Conversation [bold]{session.conversation_id}[/bold]\n"
            "Type your request, or [bold]exit[/bold] / [bold]quit[/bold] to stop.",
            border_style="cyan",
        ))

        while True:
            try:
                user_input = Prompt.ask("\n[bold cyan]You[/bold cyan]")
            except (KeyboardInterrupt, EOFError):
                console.print("\n[dim]Goodbye![/dim]")
                break

            if user_input.strip().lower() in ("exit", "quit", "q", "bye"):
                console.print("[dim]Goodbye![/dim]")
                break

            if not user_input.strip():
                continue

            reply = await _converse(factory, user_input, session.conversation_id)
            if trace:
                _print_trace(reply)

    asyncio.run(_run())


# ---------------------------------------------------------------------------
# Commands: tasks
# ---------------------------------------------------------------------------

@tasks_app.command("list")
def tasks_list() -> None:
    """Show scheduled tasks."""

    async def _run() -> None:
        factory = await _make_factory()
        status = await factory.create_scheduler().status()
        if not status["tasks"]:
            console.print("[dim]No scheduled tasks.[/dim]")
            return

        t = Table(box=box.SIMPLE, padding=(0, 2))
        for column in ("ID", "Name", "Schedule", "Tool", "Enabled", "Runs", "Last run"):
            t.add_column(column)
        for task in status["tasks"]:
            t.add_row(
                task["id"],
                task["name"],
                task["schedule"],
                task["tool"],
                "[green]yes[/green]" if task["enabled"] else "[dim]no[/dim]",
                str(task["run_count"]),
                task["last_run"] or "[dim]never[/dim]",
            )
        console.print(Panel(
            t,
            title=f"Scheduled tasks ({status['enabled_count']}/{status['task_count']} enabled)",
            border_style="blue",
        ))

    asyncio.run(_run())


@tasks_app.command("add")
def tasks_add(
    name: str = typer.Argument(..., help="Human-readable task name."),
    schedule: str = typer.Argument(..., help='e.g. "every 30 minutes", "daily at 9am".'),
    tool: str = typer.Argument(..., help="Tool to invoke."),
    input: str = typer.Argument("", help="Input passed to the tool."),
) -> None:
    """Schedule a recurring tool call."""

    async def _run() -> None:
        factory = await _make_factory()
        if not factory.create_registry().has(tool):
            known = ", ".join(factory.create_registry().names())
            console.print(f"[bold red]Unknown tool '{tool}'.[/bold red] Known: {known}")
            raise typer.Exit(code=1)
        try:
            task = await factory.create_scheduler().add_task(name, schedule, tool, input)
        except ScheduleParseError as e:
            console.print(f"[bold red]{e}[/bold red]")
            console.print(
                "[dim]Try: every N minutes · every N hours · daily at 9am · "
                "weekly on Monday at 14:30[/dim]"
            )
            raise typer.Exit(code=1)
        console.print(f"[green]Added[/green] {task.id} ({task.name}: {task.schedule_text} → {task.tool})")

    asyncio.run(_run())


def _task_command(action: str, id_or_name: str) -> None:
    async def _run() -> None:
        factory = await _make_factory()
        scheduler = factory.create_scheduler()
        try:
            if action == "remove":
                task = await scheduler.remove_task(id_or_name)
            else:
                task = await scheduler.toggle_task(id_or_name, action == "enable")
        except TaskNotFoundError as e:
            console.print(f"[bold red]{e}[/bold red]")
            raise typer.Exit(code=1)
        console.print(f"[green]{action.capitalize()}d[/green] {task.name} ({task.id})")

    asyncio.run(_run())


@tasks_app.command("remove")
def tasks_remove(id_or_name: str = typer.Argument(..., help="Task id or name.")) -> None:
    """Delete a task."""
    _task_command("remove", id_or_name)


@tasks_app.command("enable")
def tasks_enable(id_or_name: str = typer.Argument(..., help="Task id or name.")) -> None:
    """Re-enable a task."""
    _task_command("enable", id_or_name)


@tasks_app.command("disable")
def tasks_disable(id_or_name: str = typer.Argument(..., help="Task id or name.")) -> None:
    """Pause a task."""
    _task_command("disable", id_or_name)


# ---------------------------------------------------------------------------
# Commands: scheduler
# ---------------------------------------------------------------------------

@scheduler_app.command("run")
def scheduler_run() -> None:
    """Run the scheduler in the foreground until interrupted."""

    async def _run() -> None:
        factory = await _make_factory()
        scheduler = factory.create_scheduler()
        await scheduler.start()
        status = await scheduler.status()
        console.print(Panel(
            f"Scheduler running with {status['enabled_count']} enabled task(s).\n"
            "Press [bold]Ctrl+C[/bold] to stop.",
            border_style="cyan",
        ))
        try:
            while True:
                await asyncio.sleep(3600)
        finally:
            await scheduler.stop()

    try:
        asyncio.run(_run())
    except KeyboardInterrupt:
        console.print("\n[dim]Scheduler stopped.[/dim]")


# ---------------------------------------------------------------------------
# Global version option
# ---------------------------------------------------------------------------

@app.callback()
def _callback(
    version: bool = typer.Option(
        False, "--version", "-v",
        help="Show version and exit.",
        callback=_version_callback,
        is_eager=True,
    ),
) -> None:
    """Local agent orchestrator CLI"""


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------

if __name__ == "__main__":
    app()
