"""
Instruction payload sent to the agent on every iteration.

The same prompt goes out every time. Progress lives in the project files
(plan.md, progress.md), which the agent itself updates between iterations.
"""

from __future__ import annotations

from pathlib import Path

from ralph.core.detection.completion import COMPLETION_MARKER
from ralph.core.run.errors import PromptLoadError

DEFAULT_PROMPT = f"""
You are working through an implementation plan one task at a time.

## Context

- `plan.md` lists the tasks. Each task is a markdown checkbox: `- [ ]` is
  pending, `- [x]` is done.
- `progress.md` is a running log of completed work and lessons learned.

## Instructions

1. Read `plan.md` and `progress.md`.
2. Pick the first unchecked task. Announce it on its own line as:
   `Working on: <task title>`
3. Implement that task only. Keep changes focused.
4. Run the project's checks (tests, type checks, linters) and fix failures.
5. Mark the task done in `plan.md` by changing `- [ ]` to `- [x]`.
6. Append a short entry to `progress.md`: what you did, files touched, and
   anything the next iteration should know.
7. Commit your changes with a descriptive message.

## Completion

If every task in `plan.md` is checked after your work, output exactly:

{COMPLETION_MARKER}

Otherwise stop after finishing one task. Do not output the marker unless all
tasks are done.
"""


def load_prompt(prompt_file: str | Path | None = None) -> str:
    """
    Load the instruction payload.

    Args:
        prompt_file: Custom prompt path. Uses DEFAULT_PROMPT when None.

    Returns:
        The prompt text, stripped of surrounding whitespace.

    Raises:
        PromptLoadError: If the custom prompt file cannot be read or is empty.
    """
    if prompt_file is None:
        return DEFAULT_PROMPT.strip()

    path = Path(prompt_file)
    try:
        content = path.read_text(encoding="utf-8").strip()
    except (OSError, UnicodeDecodeError) as e:
        raise PromptLoadError(str(prompt_file), str(e)) from e
    if not content:
        raise PromptLoadError(str(prompt_file), "file is empty")
    if "\x00" in content:
        raise PromptLoadError(str(prompt_file), "file contains NUL bytes")
    return content
