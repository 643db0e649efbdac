"""
Task progress detection from streamed agent text.

The agent narrates which plan item it is working on ("Working on: ...",
"### Task 1.2: ...", "Let me implement ..."). TaskDetector watches the text
stream for those phrases and surfaces the current task label so the
dashboard can show it.

Recognition is data-driven: TASK_PATTERNS is an ordered table of
(name, regex, sanitizer) entries tried first-match-wins against the whole
trailing buffer. Add or reorder entries there; the control flow does not
change.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Callable
from dataclasses import dataclass

logger = logging.getLogger(__name__)

# Trailing window of recent text searched for task phrases
TASK_BUFFER_SIZE = 500

# Longest label surfaced to the UI
MAX_TASK_LENGTH = 100


def clean_task_name(raw: str) -> str:
    """
    Sanitize a captured task label for display.

    Strips markdown emphasis and code markers, leading/trailing colons,
    dashes and whitespace, and a leading checkbox. Collapses whitespace and
    truncates to MAX_TASK_LENGTH with an ellipsis.

    Example:
        >>> clean_task_name("  **[ ] Add login**  ")
        'Add login'
    """
    task = raw.strip()
    task = task.replace("**", "").replace("*", "").replace("`", "")
    task = re.sub(r"^[:\-\s]+", "", task)
    task = re.sub(r"[:\-\s]+$", "", task)
    task = re.sub(r"^\[[ x]\]\s*", "", task, flags=re.IGNORECASE)
    task = re.sub(r"\s+", " ", task)
    if len(task) > MAX_TASK_LENGTH:
        task = task[: MAX_TASK_LENGTH - 3] + "..."
    return task.strip()


@dataclass(frozen=True)
class TaskPattern:
    """One entry of the recognition table."""

    name: str
    regex: re.Pattern[str]
    sanitize: Callable[[str], str] = clean_task_name


def _pattern(name: str, expr: str) -> TaskPattern:
    return TaskPattern(name=name, regex=re.compile(expr, re.IGNORECASE))


# Priority order: explicit phrasing, then plan.md headings, then loose prose.
TASK_PATTERNS: list[TaskPattern] = [
    _pattern("found-next-task", r"Found next task:\s*(.+?)(?:\n|$)"),
    _pattern("working-on", r"Working on:\s*(.+?)(?:\n|$)"),
    _pattern("current-task", r"Current task:\s*(.+?)(?:\n|$)"),
    _pattern("starting-task", r"Starting task:\s*(.+?)(?:\n|$)"),
    _pattern("next-task", r"Next task:\s*(.+?)(?:\n|$)"),
    _pattern("task-heading", r"###\s*Task\s+\d+\.\d+[:\s]+(.+?)(?:\n|$)"),
    _pattern("task-numbered", r"Task\s+\d+\.\d+[:\s]+(.+?)(?:\n|$)"),
    _pattern(
        "picking-task",
        r"(?:Pick|Select|Chose|Choosing|Picking|Selecting)(?:ing)?\s+"
        r"(?:the\s+)?(?:next\s+)?task[:\s]+(.+?)(?:\n|$)",
    ),
    _pattern(
        "implementing",
        r"(?:I'll|I will|Let me|Going to|Now)\s+"
        r"(?:implement|work on|tackle|start with|begin with)[:\s]+(.+?)(?:\n|$)",
    ),
]


@dataclass(frozen=True)
class TaskDetection:
    """Result of scanning text for a task label."""

    detected: bool
    task: str | None = None
    pattern: str | None = None


def detect_task_from_content(
    content: str,
    patterns: list[TaskPattern] | None = None,
) -> TaskDetection:
    """
    Find the first task label in ``content``.

    Args:
        content: Text to scan.
        patterns: Recognition table (defaults to TASK_PATTERNS).

    Returns:
        TaskDetection with the sanitized label and the matching pattern name.
    """
    for entry in patterns if patterns is not None else TASK_PATTERNS:
        match = entry.regex.search(content)
        if match is None or not match.group(1):
            continue
        task = entry.sanitize(match.group(1))
        if task:
            return TaskDetection(detected=True, task=task, pattern=entry.name)
    return TaskDetection(detected=False)


class TaskDetector:
    """
    Stateful task detector over a trailing text window.

    A label is surfaced only when it differs from the last one; the window
    is then cleared so the same phrase is not matched again.
    """

    def __init__(
        self,
        on_task_change: Callable[[str], None] | None = None,
        patterns: list[TaskPattern] | None = None,
    ) -> None:
        self.on_task_change = on_task_change
        self.patterns = patterns if patterns is not None else TASK_PATTERNS
        self._buffer = ""
        self._current: str | None = None

    @property
    def current_task(self) -> str | None:
        return self._current

    def process_content(self, content: str) -> TaskDetection:
        """
        Feed one text payload.

        Returns:
            The detection if a new label was surfaced, otherwise a miss.
        """
        if not content:
            return TaskDetection(detected=False)

        self._buffer += content
        if len(self._buffer) > TASK_BUFFER_SIZE:
            self._buffer = self._buffer[-TASK_BUFFER_SIZE:]

        result = detect_task_from_content(self._buffer, self.patterns)
        if not result.detected or result.task == self._current:
            return TaskDetection(detected=False)

        assert result.task is not None
        self._current = result.task
        self._buffer = ""
        logger.debug("Detected task %r (pattern: %s)", result.task, result.pattern)
        if self.on_task_change is not None:
            self.on_task_change(result.task)
        return result

    def set_task(self, task: str) -> None:
        """Force the current label, notifying if it changed."""
        if task == self._current:
            return
        self._current = task
        if self.on_task_change is not None:
            self.on_task_change(task)

    def reset(self) -> None:
        """Clear the window and the last surfaced label."""
        self._buffer = ""
        self._current = None
