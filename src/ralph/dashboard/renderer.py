"""
Rich-based dashboard renderer for ralph.

Provides the real-time terminal UI shown while the supervisor runs.
"""

from rich.console import Group, RenderableType
from rich.layout import Layout
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from ralph.core.run.models import AppStatus, OutputKind
from ralph.dashboard.state import DashboardState

OUTPUT_COLORS: dict[OutputKind, str] = {
    OutputKind.SUCCESS: "green",
    OutputKind.WARNING: "yellow",
    OutputKind.ERROR: "red",
    OutputKind.TOOL: "blue",
    OutputKind.INFO: "white",
    OutputKind.DEFAULT: "bright_black",
}

STATUS_COLORS: dict[AppStatus, str] = {
    AppStatus.IDLE: "blue",
    AppStatus.RUNNING: "green",
    AppStatus.COMPLETE: "green",
    AppStatus.ERROR: "red",
    AppStatus.CANCELLED: "yellow",
}


def format_elapsed_time(seconds: float) -> str:
    """Format seconds as HH:MM:SS."""
    total = max(int(seconds), 0)
    hours, remainder = divmod(total, 3600)
    minutes, secs = divmod(remainder, 60)
    return f"{hours:02d}:{minutes:02d}:{secs:02d}"


def format_token_count(tokens: int) -> str:
    """Format a token count with thousands separators."""
    return f"{tokens:,}"


class DashboardRenderer:
    """
    Render the live dashboard for a ralph run using Rich.

    The dashboard displays:
    - Header: name, model, run status
    - Current task: the task the agent last announced
    - Output: the most recent output lines, colored by kind
    - Status bar: iteration, elapsed time, tokens, retries

    Example:
        >>> state = DashboardState(model="opencode/claude-opus-4-5", max_iterations=10)
        >>> renderer = DashboardRenderer()
        >>> renderer.render(state)  # Returns Rich Layout
    """

    def __init__(self, output_lines: int = 20):
        """
        Initialize the dashboard renderer.

        Args:
            output_lines: How many recent output lines the output pane shows.
        """
        self.output_lines = output_lines

    def render(self, state: DashboardState) -> Layout:
        """
        Render the full dashboard layout from the current state.

        Args:
            state: Dashboard state to display

        Returns:
            Rich Layout containing all dashboard panels
        """
        layout = Layout()
        layout.split_column(
            Layout(name="header", size=5),
            Layout(name="task", size=3),
            Layout(name="output"),
            Layout(name="status", size=3),
        )

        layout["header"].update(self._render_header(state))
        layout["task"].update(self._render_current_task(state))
        layout["output"].update(self._render_output(state))
        layout["status"].update(self._render_status_bar(state))

        return layout

    def _render_header(self, state: DashboardState) -> Panel:
        """Render the header panel with model and status."""
        color = STATUS_COLORS[state.status]
        status_text = Text()
        status_text.append("Status: ", style="bold")
        status_text.append(state.status.value.upper(), style=f"bold {color}")
        if state.status_message:
            status_text.append(f"  {state.status_message}", style=color)

        title = Text(justify="center")
        title.append("RALPH", style="bold cyan")
        title.append(" - ", style="bright_black")
        title.append("Autonomous Agent Runner")

        return Panel(
            Group(title, Text(f"Model: {state.model}", justify="center"), status_text),
            border_style=color,
            padding=(0, 1),
        )

    def _render_current_task(self, state: DashboardState) -> Panel:
        """Render the current task line."""
        text = Text()
        text.append("Current Task: ", style="bright_black")
        if state.current_task:
            text.append(state.current_task, style="green")
        else:
            text.append("Waiting for task...", style="bright_black italic")
        return Panel(text, border_style="cyan", padding=(0, 1))

    def _render_output(self, state: DashboardState) -> Panel:
        """Render the most recent output lines."""
        visible = state.output_lines[-self.output_lines :]

        if not visible:
            content: RenderableType = Text("Waiting for output...", style="bright_black italic")
        else:
            content = Group(
                *(
                    Text(line.content, style=OUTPUT_COLORS[line.kind], overflow="ellipsis", no_wrap=True)
                    for line in visible
                )
            )

        hidden = len(state.output_lines) - len(visible)
        subtitle = f"[dim]{hidden} earlier line(s)[/dim]" if hidden > 0 else None
        return Panel(
            content,
            title="[bold]Output[/bold]",
            subtitle=subtitle,
            border_style="cyan",
            padding=(0, 1),
        )

    def _render_status_bar(self, state: DashboardState) -> Panel:
        """Render iteration, elapsed time, tokens, and retries in one row."""
        grid = Table.grid(expand=True, padding=(0, 2))
        grid.add_column(justify="left")
        grid.add_column(justify="center")
        grid.add_column(justify="center")
        grid.add_column(justify="right")

        iteration = Text()
        iteration.append("Iteration: ", style="bright_black")
        iteration.append(f"{state.current_iteration}/{state.max_iterations}", style="bold yellow")

        elapsed = Text()
        elapsed.append("Time: ", style="bright_black")
        elapsed.append(format_elapsed_time(state.elapsed_seconds()))

        tokens = Text()
        tokens.append("Tokens: ", style="bright_black")
        tokens.append(format_token_count(state.tokens.total_tokens), style="magenta")

        retries = Text()
        if state.retry_count:
            retries.append(f"Retry {state.retry_count}", style="bold yellow")

        grid.add_row(iteration, elapsed, tokens, retries)
        return Panel(grid, border_style="cyan", padding=(0, 1))
