"""
Blocking external command execution.

Every external process the pipeline starts (git, the Lua version probe, the
autoconf script) goes through a CommandRunner, so tests can swap in a stub
that returns canned results without spawning anything.
"""

from __future__ import annotations

import logging
import subprocess
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Protocol, Sequence, Union

from luabuild.errors import CommandLaunchError

logger = logging.getLogger(__name__)


@dataclass
class CommandResult:
    """Outcome of one finished process."""

    argv: List[str] = field(default_factory=list)
    returncode: int = 0
    stdout: str = ""
    stderr: str = ""

    @property
    def ok(self) -> bool:
        return self.returncode == 0

    def combined_output(self) -> str:
        """stdout and stderr joined by a newline, trimmed."""
        return "\n".join(part for part in (self.stdout, self.stderr) if part).strip()


class CommandRunner(Protocol):
    def run(
        self,
        argv: Sequence[str],
        cwd: Optional[Union[str, Path]] = None,
        timeout: Optional[float] = None,
    ) -> CommandResult:
        ...


class SubprocessRunner:
    """
    Runs commands with `subprocess.run`, capturing text output.

    Args:
        timeout: Default timeout in seconds applied when `run` gets none.
            None waits forever.
    """

    def __init__(self, timeout: Optional[float] = None):
        self.timeout = timeout

    def run(
        self,
        argv: Sequence[str],
        cwd: Optional[Union[str, Path]] = None,
        timeout: Optional[float] = None,
    ) -> CommandResult:
        argv = [str(arg) for arg in argv]
        timeout = timeout if timeout is not None else self.timeout
        logger.debug("Running %s", " ".join(argv))
        try:
            proc = subprocess.run(
                argv,
                cwd=str(cwd) if cwd is not None else None,
                capture_output=True,
                text=True,
                timeout=timeout,
            )
        except subprocess.TimeoutExpired as e:
            raise CommandLaunchError(f"Command timed out after {timeout}s: {' '.join(argv)}") from e
        except OSError as e:
            raise CommandLaunchError(f"Could not run {argv[0]}: {e}") from e
        return CommandResult(
            argv=argv,
            returncode=proc.returncode,
            stdout=proc.stdout or "",
            stderr=proc.stderr or "",
        )
