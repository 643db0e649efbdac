"""
Detectors that read signals out of the agent's streamed text.

Modules:
    task: Current-task label recognition (ordered pattern table).
    completion: Sticky ``<promise>COMPLETE</promise>`` detection.
"""

from ralph.core.detection.completion import (
    COMPLETION_MARKER,
    CompletionDetector,
    detect_completion,
)
from ralph.core.detection.task import (
    TASK_PATTERNS,
    TaskDetection,
    TaskDetector,
    TaskPattern,
    clean_task_name,
    detect_task_from_content,
)

__all__ = [
    # Completion
    "COMPLETION_MARKER",
    "CompletionDetector",
    "detect_completion",
    # Task
    "TASK_PATTERNS",
    "TaskDetection",
    "TaskDetector",
    "TaskPattern",
    "clean_task_name",
    "detect_task_from_content",
]
