"""
Configuration data models for ralph.

These models define the structure of .ralph.json and
~/.config/ralph/config.json files, with validation and type safety via
Pydantic.
"""

from pydantic import BaseModel, ConfigDict, Field, field_validator

DEFAULT_MODEL = "opencode/claude-opus-4-5"


class LoopConfig(BaseModel):
    """
    Iteration limits and pacing.
    """
    max_iterations: int = Field(
        default=100,
        ge=1,
        description="Maximum iterations before the run gives up"
    )
    iteration_delay: float = Field(
        default=2.0,
        ge=0.0,
        description="Seconds to wait between iterations"
    )


class RetryConfig(BaseModel):
    """
    Retry behavior for a failed iteration.
    """
    max_retries: int = Field(
        default=3,
        ge=0,
        description="Retries per iteration after the first attempt"
    )
    delay: float = Field(
        default=3.0,
        ge=0.0,
        description="Seconds to wait between attempts"
    )


class HarnessConfig(BaseModel):
    """
    Which agent CLI to run and how.
    """
    executable: str = Field(
        default="opencode",
        description="Agent CLI executable name or path"
    )
    model: str = Field(
        default=DEFAULT_MODEL,
        description="Model identifier passed to --model"
    )
    kill_grace: float = Field(
        default=1.0,
        ge=0.0,
        description="Seconds between SIGTERM and SIGKILL when cancelling"
    )

    @field_validator("executable", "model")
    @classmethod
    def validate_not_blank(cls, v: str) -> str:
        """Reject empty or whitespace-only values."""
        if not v.strip():
            raise ValueError("must not be empty")
        return v.strip()


class DebugConfig(BaseModel):
    """
    Debug output settings.
    """
    enabled: bool = Field(
        default=False,
        description="Write per-iteration logs under .ralph/logs"
    )


class RalphConfig(BaseModel):
    """
    Complete ralph configuration.

    Merged from defaults, user config, project config, and environment.
    """
    model_config = ConfigDict(extra="ignore")

    loop: LoopConfig = Field(default_factory=LoopConfig)
    retry: RetryConfig = Field(default_factory=RetryConfig)
    harness: HarnessConfig = Field(default_factory=HarnessConfig)
    debug: DebugConfig = Field(default_factory=DebugConfig)
