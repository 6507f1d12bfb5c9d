"""
Runs the resolved backup command through the shell.
"""

import logging
import subprocess
from dataclasses import dataclass
from typing import Optional


logger = logging.getLogger(__name__)


class CommandError(Exception):
    """Raised when the backup command fails."""
    pass


@dataclass
class CommandResult:
    command: str
    returncode: int
    stdout: str = ''
    stderr: str = ''


def run_command(command: str, timeout: Optional[int] = None, display_command: Optional[str] = None) -> CommandResult:
    """
    Run a shell command and wait for it.

    Args:
        command: Fully resolved command line
        timeout: Seconds before the command is abandoned (None = no limit)
        display_command: Command text used in messages (e.g. with secrets masked)

    Returns:
        CommandResult with captured output

    Raises:
        CommandError: If the command cannot be started, times out or exits non-zero
    """
    shown = display_command or command

    try:
        result = subprocess.run(
            command,
            shell=True,
            capture_output=True,
            text=True,
            timeout=timeout,
        )
    except subprocess.TimeoutExpired as e:
        raise CommandError(f"Command '{shown}' timed out after {timeout} seconds") from e
    except OSError as e:
        raise CommandError(f"Failed to start command '{shown}': {e}") from e

    if result.stdout:
        logger.debug("STDOUT: %s", result.stdout.strip())
    if result.stderr:
        logger.warning("STDERR: %s", result.stderr.strip())

    if result.returncode != 0:
        raise CommandError(
            f"Command '{shown}' exited with status {result.returncode}: {result.stderr.strip()}"
        )

    return CommandResult(command, result.returncode, result.stdout, result.stderr)
