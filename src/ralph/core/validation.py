"""
Pre-flight validation of the project directory.

The built-in prompt expects a plan to work through and a log to append to.
A run without them would burn iterations doing nothing useful, so the CLI
refuses to start.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path

REQUIRED_FILES: tuple[str, ...] = ("plan.md", "progress.md")


@dataclass
class ValidationResult:
    """Outcome of checking for required files."""

    missing_files: list[str] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)

    @property
    def valid(self) -> bool:
        return not self.missing_files


def validate_required_files(cwd: Path | str) -> ValidationResult:
    """
    Check that every required file exists and is readable in ``cwd``.

    Args:
        cwd: Project directory.

    Returns:
        ValidationResult listing missing files and user-facing messages.
    """
    result = ValidationResult()
    base = Path(cwd)

    for name in REQUIRED_FILES:
        path = base / name
        if not (path.is_file() and os.access(path, os.R_OK)):
            result.missing_files.append(name)
            result.errors.append(f"Missing required file: {name}")

    if result.missing_files:
        result.errors.extend(
            [
                "",
                "Ralph requires the following files in your project:",
                "  - plan.md      Task list with checkboxes for tracking progress",
                "  - progress.md  Log of completed work and learnings",
                "",
                "Optional: Use --prompt <path> to specify a custom prompt file.",
            ]
        )

    return result


def format_validation_errors(result: ValidationResult) -> str:
    """Join validation messages for display ('' when valid)."""
    if result.valid:
        return ""
    return "\n".join(result.errors)
