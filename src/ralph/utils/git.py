"""
Git utilities for ralph.

The agent commits as it works, so ralph warns before starting when the
working tree already has uncommitted changes that could get swept into
those commits.
"""

from __future__ import annotations

import subprocess
from dataclasses import dataclass, field
from pathlib import Path

# Changed files listed in the warning before summarizing the rest
MAX_FILES_SHOWN = 10

GIT_STATUS_TIMEOUT = 10.0


@dataclass
class GitStatus:
    """Result of checking a directory for uncommitted changes."""

    is_git_repo: bool
    has_uncommitted_changes: bool = False
    changed_files: list[str] = field(default_factory=list)
    error: str | None = None


def check_git_status(cwd: Path | str) -> GitStatus:
    """Check for staged, unstaged, and untracked changes.

    Runs ``git status --porcelain`` in ``cwd``.

    Returns:
        GitStatus; ``is_git_repo`` is False when git is missing or ``cwd``
        is not inside a repository.
    """
    try:
        result = subprocess.run(
            ["git", "status", "--porcelain"],
            cwd=cwd,
            capture_output=True,
            text=True,
            check=True,
            timeout=GIT_STATUS_TIMEOUT,
        )
    except FileNotFoundError:
        # Git not installed
        return GitStatus(is_git_repo=False, error="Git is not installed or not in PATH")
    except subprocess.CalledProcessError as e:
        if "not a git repository" in (e.stderr or "").lower():
            return GitStatus(is_git_repo=False, error="Not a git repository")
        detail = (e.stderr or "").strip() or f"exit code {e.returncode}"
        return GitStatus(is_git_repo=False, error=f"Git status check failed: {detail}")
    except subprocess.TimeoutExpired:
        return GitStatus(is_git_repo=False, error="Git status check failed: timed out")

    lines = [line for line in result.stdout.split("\n") if line.strip()]
    # Porcelain format is "XY path"; drop the two status columns and separator
    changed_files = [line[3:] if len(line) > 3 else line.strip() for line in lines]
    return GitStatus(
        is_git_repo=True,
        has_uncommitted_changes=bool(lines),
        changed_files=changed_files,
    )


def format_git_warning(status: GitStatus) -> str:
    """Build the uncommitted-changes warning, or '' if there is nothing to warn about."""
    if not status.is_git_repo or not status.has_uncommitted_changes:
        return ""

    lines = ["Warning: You have uncommitted changes in your repository:", ""]
    for path in status.changed_files[:MAX_FILES_SHOWN]:
        lines.append(f"  - {path}")

    remaining = len(status.changed_files) - MAX_FILES_SHOWN
    if remaining > 0:
        lines.append(f"  ... and {remaining} more file{'' if remaining == 1 else 's'}")

    lines.append("")
    lines.append("Ralph may commit these changes as part of its work.")
    lines.append("Consider committing or stashing your changes first.")
    return "\n".join(lines)
