from __future__ import annotations

import platform
import sys

import typer
from rich import box
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from pangene import __version__
from pangene.commands import analyze

console = Console()
SUBCOMMANDS = ["analyze"]

app = typer.Typer(
    add_completion=False,
    no_args_is_help=True,
    rich_markup_mode="rich",
    help=(
        "pangene command-line toolkit: ortholog clustering, pan-genome matrices "
        "and pan/core-genome growth simulation from pairwise homology tables."
    ),
)

app.add_typer(
    analyze.app,
    name="analyze",
    help="Cluster orthologs and estimate pan/core-genome composition.",
)


def _print_startup_intro(command_name: str) -> None:
    banner = Panel(
        f"[bold cyan]pangene {__version__}[/bold cyan]\n"
        "[white]Pan-genome analysis from ortholog calls[/white]",
        title="[bold]CLI Start[/bold]",
        border_style="cyan",
        expand=False,
    )
    console.print(banner)

    stats = Table(
        title="[bold]Session Summary[/bold]",
        box=box.SIMPLE_HEAVY,
        show_header=False,
        expand=False,
    )
    stats.add_column("Key", style="bold cyan")
    stats.add_column("Value", style="white")
    stats.add_row("Command", command_name)
    stats.add_row("Subcommands", str(len(SUBCOMMANDS)))
    stats.add_row("Python", sys.version.split()[0])
    stats.add_row("Platform", f"{platform.system()} {platform.release()}")
    console.print(stats)


@app.callback()
def main(
    ctx: typer.Context,
    version: bool = typer.Option(False, "--version", help="Show pangene version and exit."),
) -> None:
    if version:
        console.print(f"pangene {__version__}")
        raise typer.Exit()

    if ctx.invoked_subcommand:
        _print_startup_intro(ctx.invoked_subcommand)
