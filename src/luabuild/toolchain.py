"""
Lua toolchain probe and autoconf invocation.

The toolchain is optional. It is probed once per run; when it is missing
the run carries on and only the autoconf sidecars are skipped. Autoconf
failures are logged per artifact and never abort the build.

Autoconf command line (argument order is fixed):

    <lua> <autoconf script> <source.lua> <metadata.json> [--handle-errors] [--slots s1 s2 ...]
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Sequence, Union

from luabuild.errors import CommandLaunchError, ToolchainInvocationFailed, ToolchainUnavailable
from luabuild.model import BuildTarget
from luabuild.process import CommandResult, CommandRunner

logger = logging.getLogger(__name__)

LUA_DOWNLOAD_URL = "http://luabinaries.sourceforge.net/"


class Toolchain:
    """
    Capability object for the external Lua interpreter.

    Args:
        runner: Executes commands
        executable: Interpreter command
        version_args: Arguments of the version probe
        timeout: Timeout in seconds for every invocation
    """

    def __init__(
        self,
        runner: CommandRunner,
        executable: str = "lua",
        version_args: Sequence[str] = ("-v",),
        timeout: Optional[float] = None,
    ):
        self.runner = runner
        self.executable = executable
        self.version_args = list(version_args)
        self.timeout = timeout
        self.version: Optional[str] = None
        self.error: Optional[ToolchainUnavailable] = None
        self._probed = False

    def probe(self) -> bool:
        """
        Run the version command once and remember the outcome.

        Returns:
            True when the toolchain is usable
        """
        if self._probed:
            return self.version is not None
        self._probed = True

        argv = [self.executable] + self.version_args
        try:
            result = self.runner.run(argv, timeout=self.timeout)
        except CommandLaunchError as e:
            self._unavailable(str(e))
            return False

        # Lua 5.1 prints its version on stderr, later releases on stdout
        version = result.stdout.strip() or result.stderr.strip()
        if not result.ok or not version:
            self._unavailable(f"{' '.join(argv)} exited with {result.returncode}")
            return False

        self.version = version
        logger.info(version)
        return True

    def _unavailable(self, reason: str) -> None:
        self.error = ToolchainUnavailable(reason)
        logger.debug("Toolchain probe failed: %s", reason)
        logger.warning("No Lua tools found on your system. Autoconfig might not be generated.")
        logger.warning("You can download the binaries at: %s", LUA_DOWNLOAD_URL)

    def available(self) -> bool:
        return self.probe()

    def run(self, args: Sequence[Union[str, Path]]) -> CommandResult:
        """
        Run the interpreter with `args`.

        Raises:
            CommandLaunchError: The process could not be started or timed out
        """
        return self.runner.run([self.executable] + [str(a) for a in args], timeout=self.timeout)


def build_autoconf_args(target: BuildTarget, slots: Sequence[str]) -> List[str]:
    """
    Autoconf flags for one artifact.

    Args:
        target: Build target (only `handle_errors` matters)
        slots: Rendered slot strings, in declaration order

    Returns:
        `[--handle-errors] [--slots s1 s2 ...]`
    """
    args: List[str] = []
    if target.handle_errors:
        args.append("--handle-errors")
    if slots:
        args.append("--slots")
        args.extend(slots)
    return args


@dataclass
class AutoconfOutcome:
    """Result of one autoconf invocation."""
    metadata_path: Path
    args: List[str]
    result: Optional[CommandResult] = None
    error: Optional[ToolchainInvocationFailed] = None

    @property
    def ok(self) -> bool:
        return self.error is None


class AutoconfInvoker:
    """
    Generates metadata sidecars through the toolchain.

    Args:
        toolchain: An available Toolchain
        script: Autoconf Lua script passed as the interpreter's first argument
    """

    def __init__(self, toolchain: Toolchain, script: Union[str, Path]):
        self.toolchain = toolchain
        self.script = Path(script)

    def generate(
        self,
        source_path: Path,
        metadata_path: Path,
        target: BuildTarget,
        slots: Sequence[str],
    ) -> AutoconfOutcome:
        flags = build_autoconf_args(target, slots)
        outcome = AutoconfOutcome(metadata_path=metadata_path, args=flags)
        logger.info("Generating autoconf file with following flags: %s", " ".join(flags))

        try:
            result = self.toolchain.run([self.script, source_path, metadata_path] + flags)
        except CommandLaunchError as e:
            outcome.error = ToolchainInvocationFailed(str(e), path=metadata_path)
            logger.error("Autoconf generation failed for %s: %s", source_path, e)
            return outcome

        outcome.result = result
        output = result.combined_output()
        if output:
            logger.info(output)
        if not result.ok:
            outcome.error = ToolchainInvocationFailed(
                f"Autoconf exited with {result.returncode}", path=metadata_path,
            )
            logger.error("Autoconf generation failed for %s (exit code %d)", source_path, result.returncode)
        return outcome
