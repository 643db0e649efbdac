"""
Ralph - Iteration Supervisor for Autonomous Agents

A CLI tool that re-runs the opencode agent in a bounded loop until it signals
that all planned work is complete.
"""

__version__ = "0.4.0"

# Re-export core models for convenience
from ralph.core.config.models import RalphConfig
from ralph.core.run.models import RunConfig, RunPhase, RunResult

__all__ = ["RalphConfig", "RunConfig", "RunPhase", "RunResult", "__version__"]
