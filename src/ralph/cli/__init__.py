"""
Ralph CLI - Main application entry point.

This module sets up the Typer CLI application with all subcommands.
"""

import logging
import sys

import typer
from rich.console import Console

from ralph import __version__
from ralph.cli import run
from ralph.core.config.env import load_layered_env

# Create the main Typer app
app = typer.Typer(
    name="ralph",
    help="Run an AI coding agent in a loop until the plan is done",
    no_args_is_help=False,
    invoke_without_command=True,
    add_completion=True,
    context_settings={"help_option_names": ["--help", "-h"]},
)

console = Console()


def setup_logging(debug: bool = False) -> None:
    """
    Configure logging for all commands.

    Args:
        debug: If True, enable DEBUG level logging
    """
    level = logging.DEBUG if debug else logging.WARNING
    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        stream=sys.stderr,
    )


def _version_callback(value: bool) -> None:
    if value:
        console.print(f"ralph version {__version__}")
        raise typer.Exit(0)


@app.callback(invoke_without_command=True)
def main(
    ctx: typer.Context,
    debug: bool = typer.Option(
        False,
        "--debug",
        help="Enable debug logging and write iteration logs to .ralph/logs",
    ),
    version_flag: bool = typer.Option(
        False,
        "--version",
        "-v",
        callback=_version_callback,
        is_eager=True,
        help="Show version and exit",
    ),
) -> None:
    """
    Ralph - Autonomous Agent Runner.

    Runs the opencode agent over and over against your plan.md until it
    reports that every task is done.

    Quick Start:
        1. Write plan.md with a checkbox per task
        2. Create an empty progress.md
        3. ralph run

    Examples:
        ralph run                        # Up to 100 iterations
        ralph run -i 10                  # Up to 10 iterations
        ralph run -m opencode/gpt-5      # Different model
        ralph run -p my-prompt.md        # Custom prompt
        ralph --debug run                # Keep per-iteration logs
    """
    setup_logging(debug)

    # Load layered env files early so API keys are available to the agent.
    # Precedence: OS env > project .env > user .env
    load_layered_env()

    # Store debug flag in context for subcommands
    ctx.obj = {"debug": debug}

    if ctx.invoked_subcommand is None:
        typer.echo(ctx.get_help())
        raise typer.Exit(0)


@app.command()
def version() -> None:
    """Show ralph version and exit."""
    console.print(f"ralph version {__version__}")
    raise typer.Exit(0)


app.command(name="run")(run.run)


def cli_main() -> None:
    """Main CLI entry point."""
    app()


__all__ = ["app", "cli_main"]
