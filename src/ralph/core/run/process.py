"""
Process helpers for spawning and stopping the agent.

The agent runs in its own session (process group) on Unix so that stopping
it also stops any tools it launched. Termination escalates: SIGTERM to the
group, a bounded grace period, then SIGKILL.
"""

from __future__ import annotations

import asyncio
import logging
import os
import signal
import sys

logger = logging.getLogger(__name__)

# Platform detection
IS_WINDOWS = sys.platform == "win32"
IS_UNIX = not IS_WINDOWS

# Exit via these signals means the process was stopped on purpose
TERMINATION_SIGNALS = frozenset({signal.SIGTERM, signal.SIGKILL} if IS_UNIX else {signal.SIGTERM})


def signal_name(returncode: int) -> str:
    """Name of the signal behind a negative asyncio return code."""
    try:
        return signal.Signals(-returncode).name
    except ValueError:
        return f"signal {-returncode}"


def killed_by_termination_signal(returncode: int | None) -> bool:
    """Whether a return code means SIGTERM or SIGKILL ended the process."""
    if returncode is None or returncode >= 0:
        return False
    try:
        return signal.Signals(-returncode) in TERMINATION_SIGNALS
    except ValueError:
        return False


def _signal_group(process: asyncio.subprocess.Process, force: bool) -> None:
    if IS_UNIX:
        try:
            os.killpg(os.getpgid(process.pid), signal.SIGKILL if force else signal.SIGTERM)
            return
        except (ProcessLookupError, PermissionError) as e:
            logger.debug("Process group signal failed (process may be dead): %s", e)
            return
    if force:
        process.kill()
    else:
        process.terminate()


async def terminate_process(process: asyncio.subprocess.Process, grace: float = 1.0) -> None:
    """
    Stop a process, escalating from SIGTERM to SIGKILL.

    Args:
        process: The agent process.
        grace: Seconds to wait after SIGTERM before SIGKILL.
    """
    if process.returncode is not None:
        return

    try:
        logger.debug("Terminating process %s", process.pid)
        _signal_group(process, force=False)
        try:
            await asyncio.wait_for(process.wait(), timeout=grace)
            return
        except asyncio.TimeoutError:
            logger.debug("Process %s ignored SIGTERM for %.1fs, killing", process.pid, grace)

        _signal_group(process, force=True)
        await process.wait()
    except ProcessLookupError:
        logger.debug("Process %s already exited", process.pid)
