"""
Terminal dashboard for ralph runs.

Modules:
    state: DashboardState and the RunnerCallbacks that update it.
    renderer: Rich layout rendering of a DashboardState.
"""

from ralph.dashboard.renderer import DashboardRenderer, format_elapsed_time, format_token_count
from ralph.dashboard.state import MAX_OUTPUT_LINES, DashboardCallbacks, DashboardState

__all__ = [
    "MAX_OUTPUT_LINES",
    "DashboardCallbacks",
    "DashboardRenderer",
    "DashboardState",
    "format_elapsed_time",
    "format_token_count",
]
