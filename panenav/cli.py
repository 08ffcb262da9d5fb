from __future__ import annotations

import logging
import time

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.table import Table

from . import __version__
from .classify import Verdict, classify, detect, is_editor_command
from .config import Settings
from .errors import MissingRootId, PanenavError
from .proc import descendants, read_all_processes, read_command_lines, summarize_pids
from . import tmux as tmuxlib

app = typer.Typer(
    add_completion=False,
    help="panenav: tell whether a tmux pane is running vim, so navigation keys go to the right place.",
)
console = Console()
err_console = Console(stderr=True)

logger = logging.getLogger(__name__)


# -----------------------------
# Helpers
# -----------------------------


def setup_logging(verbose: bool) -> None:
    """Diagnostics go to stderr, and only when asked for."""
    root = logging.getLogger("panenav")
    root.handlers.clear()
    if not verbose:
        root.addHandler(logging.NullHandler())
        root.propagate = False
        return
    root.addHandler(RichHandler(console=err_console, show_path=False, log_time_format="%H:%M:%S"))
    root.setLevel(logging.DEBUG)
    root.propagate = False


def load_settings(verbose: bool, include_root: bool | None = None) -> Settings:
    settings = Settings.from_env()
    if include_root:
        settings = settings.with_overrides(include_root=True)
    setup_logging(verbose or settings.debug)
    return settings


def resolve_root(pid: str | None) -> int:
    """Explicit pid argument, else the pane we are running in."""
    if pid is not None:
        return tmuxlib.parse_root_pid(pid)
    return tmuxlib.current_pane_pid()


def version_callback(value: bool) -> None:
    if value:
        console.print(f"panenav {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool = typer.Option(False, "--version", callback=version_callback, is_eager=True, help="Show version."),
) -> None:
    pass


# -----------------------------
# Commands
# -----------------------------


@app.command()
def check(
    pid: str = typer.Argument(None, help="Pane root pid (default: ask tmux)."),
    include_root: bool = typer.Option(False, "--include-root", help="Also treat the pane root itself as a candidate."),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Explain the verdict on stderr."),
) -> None:
    """Exit 0 if vim runs somewhere below the pane's root process, 1 otherwise."""
    verdict = Verdict(False, None, "not checked")
    try:
        settings = load_settings(verbose, include_root)
        started = time.monotonic()
        try:
            root = resolve_root(pid)
        except PanenavError as e:
            verdict = Verdict(False, None, str(e))
        else:
            verdict = detect(root, settings)
        logger.debug(
            "pane %s: %s (%s) in %.1fms",
            verdict.root,
            "editor" if verdict.editor else "not editor",
            verdict.reason,
            (time.monotonic() - started) * 1000,
        )
    except Exception as e:  # the caller only understands 0 or 1
        logger.debug("check failed: %s", e)
        verdict = Verdict(False, None, str(e))
    raise typer.Exit(code=0 if verdict.editor else 1)


@app.command()
def tree(
    pid: str = typer.Argument(None, help="Pane root pid (default: ask tmux)."),
    include_root: bool = typer.Option(False, "--include-root", help="Also treat the pane root itself as a candidate."),
    verbose: bool = typer.Option(False, "--verbose", "-v"),
) -> None:
    """Show the pane's descendants and which of them look like an editor."""
    settings = load_settings(verbose, include_root)
    deadline = time.monotonic() + settings.timeout if settings.timeout > 0 else None
    try:
        root = resolve_root(pid)
        table = read_all_processes(proc_root=settings.proc_root, deadline=deadline)
        if root not in table:
            raise MissingRootId(f"process {root} not found")
        pids = descendants(root, table.children_map())
        commands = read_command_lines(pids | {root}, proc_root=settings.proc_root, deadline=deadline)
    except PanenavError as e:
        err_console.print(f"[red]Error:[/red] {escape(str(e))}")
        raise typer.Exit(code=1)

    out = Table(title=f"pane root {root}: {escape(commands.get(root, table[root].command))}")
    out.add_column("pid", justify="right")
    out.add_column("ppid", justify="right")
    out.add_column("command")
    out.add_column("editor")

    rows = sorted(pids | {root}) if settings.include_root else sorted(pids)
    for p in rows:
        cmd = commands.get(p)
        hit = cmd is not None and is_editor_command(cmd)
        out.add_row(
            str(p),
            str(table[p].ppid),
            escape(cmd) if cmd is not None else "[dim](exited)[/dim]",
            "[green]yes[/green]" if hit else "",
        )

    editor = classify(table, root, lambda wanted: commands, include_root=settings.include_root)

    console.print(out)
    if pids:
        console.print("top commands: " + ", ".join(summarize_pids(pids, commands, max_items=6)))
    console.print(f"verdict: [bold]{'editor' if editor else 'not editor'}[/bold]")


@app.command()
def match(commands: list[str] = typer.Argument(..., help="Command lines to test.")) -> None:
    """Test command lines against the editor pattern."""
    ok = True
    for cmd in commands:
        hit = is_editor_command(cmd)
        ok = ok and hit
        console.print(f"{'editor' if hit else 'not editor':<12}{cmd}", markup=False, highlight=False, soft_wrap=True)
    raise typer.Exit(code=0 if ok else 1)


@app.command()
def bindings(
    command: str = typer.Option("panenav check #{pane_pid}", "--command", help="Shell command tmux runs to test the pane."),
) -> None:
    """Print a tmux.conf snippet wiring the navigation keys to `panenav check`."""
    try:
        snippet = tmuxlib.binding_snippet(command)
    except ValueError as e:
        err_console.print(f"[red]Error:[/red] {escape(str(e))}")
        raise typer.Exit(code=1)
    console.print(snippet, markup=False, highlight=False, soft_wrap=True, end="")
