"""Run shell commands on the control machine."""

from __future__ import annotations

import logging
import subprocess

from tfansible.core.errors import ApplyError

__all__ = ["run_local_command"]

logger = logging.getLogger(__name__)


def _normalize_exit_status(returncode: int) -> int:
    """Map a subprocess return code to a conventional shell exit code."""

    if returncode < 0:
        return 128 - returncode
    return returncode


def run_local_command(command: str) -> None:
    """Execute ``command`` through the local shell, streaming its output.

    Raises :class:`ApplyError` when the command cannot be started or exits
    with a non-zero status.
    """

    logger.debug("Executing: %s", command)
    try:
        completed = subprocess.run(command, shell=True, check=False)  # nosec B602
    except OSError as exc:
        raise ApplyError(command, None, f"unable to start command: {exc}") from exc

    exit_code = _normalize_exit_status(completed.returncode)
    if exit_code != 0:
        raise ApplyError(command, exit_code)
