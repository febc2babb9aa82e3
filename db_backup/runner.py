import os
import subprocess
from dataclasses import dataclass
from typing import Dict, List, Optional

from .logger import get_logger

logger = get_logger(__name__)

# Exit status a POSIX shell reports for a command it cannot find
COMMAND_NOT_FOUND = 127


@dataclass
class CommandResult:
    returncode: int
    stdout: str = ""
    stderr: str = ""


class CommandRunner:
    """Runs an external command and reports its outcome without raising on failure."""

    def run(self, args: List[str], env: Optional[Dict[str, str]] = None) -> CommandResult:
        raise NotImplementedError


class SubprocessRunner(CommandRunner):
    def run(self, args: List[str], env: Optional[Dict[str, str]] = None) -> CommandResult:
        full_env = os.environ.copy()
        if env:
            # Unset values (e.g. no password configured) are left out instead of exported empty
            full_env.update({k: v for k, v in env.items() if v is not None})

        logger.debug(f"Executing command: {args[0]} ({len(args) - 1} arguments)")
        try:
            result = subprocess.run(args, env=full_env, capture_output=True, text=True, errors="replace")
        except OSError as e:
            return CommandResult(returncode=COMMAND_NOT_FOUND, stderr=str(e))

        return CommandResult(
            returncode=result.returncode,
            stdout=result.stdout,
            stderr=result.stderr,
        )
