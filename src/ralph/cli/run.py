"""
Ralph CLI - Run command.

Checks the project, then runs the iteration supervisor under a live
dashboard and exits with:
    0    the agent reported that every task is complete
    1    iteration ceiling reached, retries exhausted, or bad input
    130  cancelled with Ctrl-C / SIGTERM
"""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path

import typer
from pydantic import ValidationError
from rich.console import Console
from rich.live import Live
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from ralph.core.config.loader import load_config
from ralph.core.config.models import RalphConfig
from ralph.core.run.interrupt import EXIT_CODE_CANCELLED
from ralph.core.run.loop import RunLoop
from ralph.core.run.models import RunConfig, RunPhase, RunResult
from ralph.core.validation import format_validation_errors, validate_required_files
from ralph.dashboard.renderer import DashboardRenderer, format_elapsed_time, format_token_count
from ralph.dashboard.state import DashboardCallbacks, DashboardState
from ralph.utils.git import check_git_status, format_git_warning

logger = logging.getLogger(__name__)

console = Console()


def build_run_config(
    config: RalphConfig,
    project_dir: Path,
    iterations: int | None = None,
    model: str | None = None,
    prompt_file: Path | None = None,
    debug: bool = False,
) -> RunConfig:
    """Combine loaded configuration with CLI flags (flags win)."""
    return RunConfig(
        model=model if model is not None else config.harness.model,
        max_iterations=iterations if iterations is not None else config.loop.max_iterations,
        cwd=str(project_dir),
        prompt_file=str(prompt_file) if prompt_file is not None else None,
        debug=debug or config.debug.enabled,
        executable=config.harness.executable,
        max_retries=config.retry.max_retries,
        retry_delay=config.retry.delay,
        iteration_delay=config.loop.iteration_delay,
        kill_grace=config.harness.kill_grace,
    )


def exit_code_for(result: RunResult) -> int:
    """Process exit code for a finished run."""
    if result.phase == RunPhase.COMPLETE:
        return 0
    if result.phase == RunPhase.CANCELLED:
        return EXIT_CODE_CANCELLED
    return 1


def display_banner(config: RunConfig) -> None:
    """Show what is about to run."""
    table = Table(show_header=False, box=None)
    table.add_column("Field", style="cyan")
    table.add_column("Value")

    table.add_row("Max iterations", str(config.max_iterations))
    table.add_row("Model", config.model)
    table.add_row("Workspace", config.cwd)
    table.add_row("Prompt", config.prompt_file or "built-in")
    if config.debug:
        table.add_row("Debug logs", str(Path(config.cwd) / ".ralph" / "logs"))

    console.print(Panel(table, title="[bold]Ralph[/bold]", border_style="cyan"))


def display_summary(result: RunResult) -> None:
    """Display run summary at the end."""
    table = Table(title="Run Summary", show_header=True)
    table.add_column("Metric", style="cyan")
    table.add_column("Value", style="green")

    table.add_row("Duration", format_elapsed_time(result.duration_seconds))
    table.add_row("Iterations", str(result.iterations_run))
    table.add_row("Input Tokens", format_token_count(result.total_tokens.input_tokens))
    table.add_row("Output Tokens", format_token_count(result.total_tokens.output_tokens))
    if result.total_tokens.cost_usd:
        table.add_row("Cost", f"${result.total_tokens.cost_usd:.4f}")
    table.add_row("Final Phase", result.phase.value)
    if result.error:
        table.add_row("Reason", f"[red]{result.error}[/red]")

    console.print(table)


async def execute_run(config: RunConfig) -> RunResult:
    """Run the supervisor with the live dashboard attached."""
    state = DashboardState(model=config.model, max_iterations=config.max_iterations)
    renderer = DashboardRenderer()
    loop = RunLoop(config, DashboardCallbacks(state), handle_signals=True)

    with Live(
        console=console,
        refresh_per_second=4,
        get_renderable=lambda: renderer.render(state),
    ):
        return await loop.run()


def run(
    ctx: typer.Context,
    iterations: int | None = typer.Option(
        None,
        "--iterations",
        "-i",
        min=1,
        help="Maximum number of iterations (default: 100)",
    ),
    model: str | None = typer.Option(
        None,
        "--model",
        "-m",
        help="Model to run the agent with (default: opencode/claude-opus-4-5)",
    ),
    prompt: Path | None = typer.Option(
        None,
        "--prompt",
        "-p",
        exists=True,
        file_okay=True,
        dir_okay=False,
        readable=True,
        help="Custom prompt file (default: built-in prompt)",
    ),
    yes: bool = typer.Option(
        False,
        "--yes",
        "-y",
        help="Start even if the git working tree has uncommitted changes",
    ),
    debug: bool = typer.Option(
        False,
        "--debug",
        help="Write per-iteration logs to .ralph/logs",
    ),
) -> None:
    """
    Run the agent until every task in plan.md is done.

    Each iteration spawns `opencode run` with the same prompt. The loop stops
    when the agent prints <promise>COMPLETE</promise>, when an iteration
    fails four times in a row, or at the iteration limit.

    Examples:
        ralph run
        ralph run --iterations 20 --model opencode/claude-sonnet-4
        ralph run --prompt prompts/refactor.md --yes
    """
    debug = debug or (ctx.obj.get("debug", False) if ctx.obj else False)
    project_dir = Path.cwd()

    if model is not None and not model.strip():
        console.print("[red]--model must not be empty[/red]")
        raise typer.Exit(1)

    try:
        config = load_config(project_dir)
    except ValidationError as e:
        console.print(f"[red]Invalid configuration:[/red]\n{escape(str(e))}")
        raise typer.Exit(1)

    run_config = build_run_config(
        config,
        project_dir,
        iterations=iterations,
        model=model.strip() if model is not None else None,
        prompt_file=prompt,
        debug=debug,
    )

    validation = validate_required_files(project_dir)
    if not validation.valid:
        console.print(f"[red]{escape(format_validation_errors(validation))}[/red]")
        raise typer.Exit(1)

    warning = format_git_warning(check_git_status(project_dir))
    if warning:
        console.print(f"[yellow]{escape(warning)}[/yellow]")
        if not yes and not typer.confirm("Continue anyway?", default=False):
            console.print("[dim]Aborted.[/dim]")
            raise typer.Exit(0)

    display_banner(run_config)
    logger.debug("Starting run: %s", run_config)

    result = asyncio.run(execute_run(run_config))

    display_summary(result)
    raise typer.Exit(exit_code_for(result))
