"""
Error types and diagnostic message tables for the run loop.

The agent's stderr is free-form. NETWORK_ERROR_PATTERNS turns the common
transient failures into advice the user can act on; the match is advisory
and never changes what the loop does. spawn_error_message does the same for
failures to start the agent at all.
"""

from __future__ import annotations

import errno
import re


class RalphError(Exception):
    """Base class for errors raised by ralph."""

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)

    def __str__(self) -> str:
        return self.message


class PromptLoadError(RalphError):
    """The instruction payload could not be loaded."""

    def __init__(self, path: str | None, detail: str) -> None:
        self.path = path
        self.detail = detail
        if path:
            message = f"Failed to read prompt file ({path}): {detail}"
        else:
            message = f"Failed to get prompt: {detail}"
        super().__init__(message)


# Ordered (pattern, advice) pairs; first match wins.
NETWORK_ERROR_PATTERNS: list[tuple[re.Pattern[str], str]] = [
    (re.compile(r"ECONNREFUSED", re.IGNORECASE), "Connection refused - is the API server running?"),
    (re.compile(r"ENOTFOUND", re.IGNORECASE), "DNS lookup failed - check your internet connection"),
    (re.compile(r"ETIMEDOUT", re.IGNORECASE), "Connection timed out - the server may be slow or unreachable"),
    (re.compile(r"ECONNRESET", re.IGNORECASE), "Connection reset by server - try again"),
    (re.compile(r"EHOSTUNREACH", re.IGNORECASE), "Host unreachable - check your network connection"),
    (re.compile(r"SSL|certificate|TLS", re.IGNORECASE), "SSL/TLS error - check your certificates or network"),
    (re.compile(r"rate.?limit", re.IGNORECASE), "Rate limited - wait before retrying"),
    (re.compile(r"401|unauthorized", re.IGNORECASE), "Authentication failed - check your API key"),
    (re.compile(r"403|forbidden", re.IGNORECASE), "Access forbidden - check your permissions"),
    (re.compile(r"429|too.?many.?requests", re.IGNORECASE), "Too many requests - rate limited"),
    (re.compile(r"500|internal.?server.?error", re.IGNORECASE), "Server error - try again later"),
    (re.compile(r"502|bad.?gateway", re.IGNORECASE), "Bad gateway - API server may be down"),
    (re.compile(r"503|service.?unavailable", re.IGNORECASE), "Service unavailable - try again later"),
    (re.compile(r"timeout", re.IGNORECASE), "Request timed out"),
    (re.compile(r"network.?error", re.IGNORECASE), "Network error - check your connection"),
]


def detect_network_error(text: str) -> str | None:
    """
    Map a stderr line to actionable advice.

    Returns:
        Advice for the first matching signature, or None.
    """
    for pattern, advice in NETWORK_ERROR_PATTERNS:
        if pattern.search(text):
            return advice
    return None


def spawn_error_message(error: OSError | ValueError, executable: str) -> str:
    """
    Cause-specific message for a failure to start the agent.

    Args:
        error: The exception raised by process creation. ValueError covers
            arguments the OS cannot pass, such as an embedded NUL byte.
        executable: Agent executable name, for the message.
    """
    if isinstance(error, ValueError):
        return f"Failed to start {executable}: invalid argument ({error})"
    if isinstance(error, FileNotFoundError) or error.errno == errno.ENOENT:
        return (
            f"{executable} command not found. "
            f"Please ensure {executable} is installed and in your PATH."
        )
    if isinstance(error, PermissionError) or error.errno == errno.EACCES:
        return f"Permission denied when trying to run {executable}. Check file permissions."
    if error.errno == errno.EMFILE:
        return (
            "Too many open files. "
            "Try closing some applications or increasing file descriptor limit."
        )
    return f"Failed to start {executable}: {error.strerror or error}"
