"""
Completion marker detection.

The agent signals that every task in the plan is done by printing the
literal ``<promise>COMPLETE</promise>``. Text arrives in fragments, so the
detector keeps a short trailing window to catch a marker split across two
payloads. Once seen, completion is sticky until reset.
"""

from __future__ import annotations

import logging
from collections.abc import Callable

logger = logging.getLogger(__name__)

COMPLETION_MARKER = "<promise>COMPLETE</promise>"

# Trailing window kept between payloads; must exceed the marker length
COMPLETION_BUFFER_SIZE = 100


def detect_completion(content: str) -> bool:
    """Whether ``content`` contains the completion marker."""
    return COMPLETION_MARKER in content


class CompletionDetector:
    """
    Stateful, split-tolerant completion detector.

    The window is checked before it is trimmed, so a marker at the end of a
    payload longer than the window is never lost.

    Example:
        >>> detector = CompletionDetector()
        >>> detector.process_content("done <promise>COMP")
        False
        >>> detector.process_content("LETE</promise>")
        True
    """

    def __init__(self, on_complete: Callable[[], None] | None = None) -> None:
        self.on_complete = on_complete
        self._buffer = ""
        self._complete = False

    @property
    def is_complete(self) -> bool:
        return self._complete

    def process_content(self, content: str) -> bool:
        """
        Feed one text payload.

        Returns:
            True if completion has been detected (now or earlier).
        """
        if self._complete:
            return True
        if not content:
            return False

        self._buffer += content
        if detect_completion(self._buffer):
            self._mark_complete()
            return True

        if len(self._buffer) > COMPLETION_BUFFER_SIZE:
            self._buffer = self._buffer[-COMPLETION_BUFFER_SIZE:]
        return False

    def set_complete(self) -> None:
        """Force the complete state (notifies once)."""
        if not self._complete:
            self._mark_complete()

    def reset(self) -> None:
        """Clear the window and the sticky flag. Only done at run start."""
        self._buffer = ""
        self._complete = False

    def _mark_complete(self) -> None:
        self._complete = True
        self._buffer = ""
        logger.debug("Completion marker detected")
        if self.on_complete is not None:
            self.on_complete()
